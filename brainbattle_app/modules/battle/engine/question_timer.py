# File: brainbattle_app/modules/battle/engine/question_timer.py
# Per-question countdown. The timer never mutates the session: each tick is
# posted back to the owner as a message tagged with the timer generation, and
# the owner applies it with QuestionTimer.tick().

import itertools
import logging
import threading
import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler

logger = logging.getLogger(__name__)

_timer_ids = itertools.count(1)


class BaseTicker(ABC):
    """Source of periodic callbacks used by QuestionTimer."""

    @abstractmethod
    def schedule(self, job_id: str, interval: float, func: Callable[[], None]) -> None:
        pass

    @abstractmethod
    def cancel(self, job_id: str) -> None:
        pass

    def shutdown(self) -> None:
        pass


class SchedulerTicker(BaseTicker):
    """Ticker backed by an APScheduler BackgroundScheduler (one interval job per timer)."""

    def __init__(self, scheduler: Optional[BackgroundScheduler] = None):
        self._owns_scheduler = scheduler is None
        self.scheduler = scheduler or BackgroundScheduler(daemon=True)
        self._lock = threading.Lock()

    def schedule(self, job_id, interval, func):
        with self._lock:
            if not self.scheduler.running:
                self.scheduler.start()
        self.scheduler.add_job(
            func,
            trigger='interval',
            seconds=interval,
            id=job_id,
            replace_existing=True,
            max_instances=1,
            coalesce=False,
        )

    def cancel(self, job_id):
        try:
            self.scheduler.remove_job(job_id)
        except JobLookupError:
            pass

    def shutdown(self):
        if self._owns_scheduler and self.scheduler.running:
            self.scheduler.shutdown(wait=False)


class TickResult(str, Enum):
    STALE = 'stale'        # tick from a cancelled or replaced countdown
    TICKED = 'ticked'
    EXPIRED = 'expired'


class QuestionTimer:
    """
    Cancellable countdown owning exactly one ticker job at a time.

    ``start()`` bumps the generation, so ticks already in flight for an older
    countdown are reported as STALE and ignored.
    """

    def __init__(self, ticker: BaseTicker, tick_seconds: float = 1, clock: Callable[[], float] = time.monotonic):
        self.ticker = ticker
        self.tick_seconds = tick_seconds
        self.clock = clock
        self.job_id = f'battle-timer-{next(_timer_ids)}'
        self.generation = 0
        self.budget = 0
        self._remaining = 0
        self._started_at: Optional[float] = None
        self._stopped_at: Optional[float] = None
        self.running = False

    def start(self, budget_seconds: int, post: Callable[[int], None]) -> int:
        """Begin a new countdown; ``post(generation)`` is called on every tick."""
        self.cancel()
        self.generation += 1
        generation = self.generation
        self.budget = int(budget_seconds)
        self._remaining = self.budget
        self._started_at = self.clock()
        self._stopped_at = None
        self.running = True
        self.ticker.schedule(self.job_id, self.tick_seconds, lambda: post(generation))
        logger.debug('Timer %s started generation %s with %ss', self.job_id, generation, self.budget)
        return generation

    def tick(self, generation: int) -> TickResult:
        if not self.running or generation != self.generation:
            return TickResult.STALE
        self._remaining = max(0, self._remaining - 1)
        if self._remaining == 0:
            self.cancel()
            return TickResult.EXPIRED
        return TickResult.TICKED

    def cancel(self) -> None:
        if not self.running:
            return
        self.running = False
        self._stopped_at = self.clock()
        # Invalidate ticks that were queued before the job was removed
        self.generation += 1
        self.ticker.cancel(self.job_id)

    @property
    def remaining(self) -> int:
        return self._remaining

    def elapsed(self) -> float:
        """Seconds spent on the current countdown, capped at its budget."""
        if self._started_at is None:
            return 0.0
        end = self._stopped_at if self._stopped_at is not None else self.clock()
        return round(min(float(self.budget), max(0.0, end - self._started_at)), 3)
