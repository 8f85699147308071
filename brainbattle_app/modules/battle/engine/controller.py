# File: brainbattle_app/modules/battle/engine/controller.py
# SessionController: runs one timed battle attempt.
#
# All inputs (player actions, timer ticks, cheat reports, submission results)
# become messages in a bounded inbox and are applied one at a time by pump(),
# so a single thread of control mutates the session. Timer and anti-cheat
# callbacks arrive on other threads and only ever post.

import logging
import queue
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional

from brainbattle_app.core.error_handlers import SessionIdentityMismatch, SubmissionError, ValidationError
from brainbattle_app.core.signals import battle_completed, battle_result_confirmed, cheat_detected
from ..logics import session_state as states
from ..logics.answer_evaluator import evaluate_answer
from ..logics.question_parser import parse_questions, time_budget
from ..logics.session_state import AnswerOutcome, BattleState, BattleStatus
from ..logics.xp_engine import build_xp_result
from ..schemas import (
    NO_SELECTION,
    UNANSWERED,
    Answer,
    CheatEvent,
    EngineSettings,
    Question,
    ServerAck,
    XPResult,
)
from .anti_cheat import AntiCheatMonitor, CheatAlert, CheatAlertBoard
from .question_timer import BaseTicker, QuestionTimer, SchedulerTicker, TickResult
from .result_submitter import ResultSubmitter

logger = logging.getLogger(__name__)

SUBMISSION_WARNING = 'Your result could not be confirmed by the server. The estimated XP is shown.'


# ============================================
# Inbox messages
# ============================================

@dataclass(frozen=True)
class SubmitAnswer:
    answer: Answer


@dataclass(frozen=True)
class TimerTick:
    generation: int


@dataclass(frozen=True)
class NextQuestion:
    pass


@dataclass(frozen=True)
class CheatReported:
    event: CheatEvent


@dataclass(frozen=True)
class SubmissionSettled:
    ack: Optional[ServerAck] = None
    error: Optional[SubmissionError] = None


class SessionController:
    """State machine for a single battle session."""

    def __init__(
        self,
        session_id: str,
        topic: str = '',
        difficulty: str = 'medium',
        settings: Optional[EngineSettings] = None,
        ticker: Optional[BaseTicker] = None,
        submitter: Optional[ResultSubmitter] = None,
        player_xp: int = 0,
        win_streak: int = 0,
        clock: Callable[[], float] = time.monotonic,
        wall_clock_ms: Optional[Callable[[], int]] = None,
    ):
        self.settings = settings or EngineSettings()
        self.session_id = session_id
        self.clock = clock
        self.wall_clock_ms = wall_clock_ms or (lambda: int(time.time() * 1000))
        self.state: BattleState = states.new_session(session_id, topic, difficulty, created_at=time.time())

        self._owns_ticker = ticker is None
        self.ticker = ticker or SchedulerTicker()
        self.timer = QuestionTimer(self.ticker, self.settings.tick_seconds, clock=clock)
        self.monitor = AntiCheatMonitor(session_id, self.settings.cheat_threshold_ms, clock=self.wall_clock_ms)
        self.alerts = CheatAlertBoard(self.settings.cheat_alert_display_ms)
        self.submitter = submitter
        self.inbox: 'queue.Queue[Any]' = queue.Queue(maxsize=self.settings.inbox_capacity)

        self.player_xp = player_xp
        self.win_streak = win_streak

        # Transient per-question UI state
        self.selected_option: Optional[int] = None
        self.text_buffer = ''

        self.estimate: Optional[XPResult] = None
        self.confirmed: Optional[ServerAck] = None
        self.warning: Optional[str] = None
        self.submission = None
        self._subscribed = False

    # ------------------------------------------------------------------
    # Projection helpers
    # ------------------------------------------------------------------
    @property
    def status(self) -> BattleStatus:
        return self.state.status

    @property
    def current_question(self) -> Optional[Question]:
        return self.state.current_question

    @property
    def displayed_xp(self) -> Optional[int]:
        """Server-confirmed XP once known, the local estimate until then."""
        if self.confirmed is not None:
            return self.confirmed.xp_earned
        return self.estimate.xp_earned if self.estimate else None

    def visible_alerts(self) -> List[CheatAlert]:
        return self.alerts.visible(self.wall_clock_ms())

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------
    def load(self, raw_questions: Optional[Iterable[Any]], stored_session_id: Optional[str] = None) -> BattleState:
        """
        Loading -> Active.

        Raises:
            SessionIdentityMismatch: ``stored_session_id`` is not this session.
            ValidationError: the question list is empty or malformed.
        Both leave the session in Error.
        """
        if self.state.status != BattleStatus.LOADING:
            raise states.TransitionError('load', self.state.status)

        if stored_session_id is not None and str(stored_session_id) != self.session_id:
            self.state = states.fail(self.state, 'session identity mismatch')
            logger.error('Session %s: stored id %s does not match', self.session_id, stored_session_id)
            raise SessionIdentityMismatch(expected=self.session_id, actual=str(stored_session_id))

        try:
            questions = parse_questions(raw_questions)
        except ValidationError as exc:
            self.state = states.fail(self.state, exc.message)
            logger.error('Session %s unavailable: %s', self.session_id, exc.message)
            raise

        self.state = states.start(self.state, questions)
        self.monitor.attach()
        cheat_detected.connect(self._on_cheat_detected, weak=False)
        self._subscribed = True
        self._start_question_timer()
        logger.debug('Session %s active with %s questions', self.session_id, len(questions))
        return self.state

    # ------------------------------------------------------------------
    # Inbox
    # ------------------------------------------------------------------
    def post(self, message: Any) -> bool:
        try:
            self.inbox.put_nowait(message)
            return True
        except queue.Full:
            logger.warning('Session %s inbox full, dropping %s', self.session_id, type(message).__name__)
            return False

    def pump(self, block: bool = False, timeout: Optional[float] = None) -> int:
        """Apply queued messages in arrival order. Returns how many were applied."""
        applied = 0
        while True:
            try:
                if block and applied == 0:
                    message = self.inbox.get(timeout=timeout)
                else:
                    message = self.inbox.get_nowait()
            except queue.Empty:
                return applied
            self._dispatch(message)
            applied += 1

    def _dispatch(self, message: Any) -> None:
        if isinstance(message, SubmitAnswer):
            self._on_submit(message.answer)
        elif isinstance(message, TimerTick):
            self._on_tick(message.generation)
        elif isinstance(message, NextQuestion):
            self._on_next()
        elif isinstance(message, CheatReported):
            self._on_cheat(message.event)
        elif isinstance(message, SubmissionSettled):
            self._on_settled(message.ack, message.error)
        else:
            logger.warning('Session %s: unknown message %r', self.session_id, message)

    # ------------------------------------------------------------------
    # Player actions
    # ------------------------------------------------------------------
    def select_option(self, index: int) -> bool:
        question = self.current_question
        if self.status != BattleStatus.ACTIVE or not question.is_multiple_choice:
            return False
        if isinstance(index, bool) or not isinstance(index, int):
            return False
        if not 0 <= index < len(question.options):
            return False
        self.selected_option = index
        return True

    def update_text(self, text: str) -> bool:
        question = self.current_question
        if self.status != BattleStatus.ACTIVE or question.is_multiple_choice:
            return False
        self.text_buffer = text or ''
        return True

    def submit_answer(self, answer: Answer = None) -> bool:
        """
        Submit ``answer`` or, when omitted, the current selection / text buffer.

        Returns False when the answer was not applied: not Active, no selection,
        a blank open-ended answer (which keeps the question Active), or a timer
        expiry already queued ahead of it.
        """
        question = self.current_question
        if self.status != BattleStatus.ACTIVE:
            return False
        if answer is None:
            answer = self.selected_option if question.is_multiple_choice else self.text_buffer
        if answer is None:
            return False
        if not question.is_multiple_choice and not str(answer).strip():
            return False
        slot = len(self.state.records)
        if not self.post(SubmitAnswer(answer)):
            return False
        self.pump()
        records = self.state.records
        return len(records) > slot and records[slot].outcome != AnswerOutcome.TIMED_OUT

    def next_question(self) -> bool:
        if self.status != BattleStatus.LOCKED:
            return False
        if not self.post(NextQuestion()):
            return False
        self.pump()
        return True

    def abandon(self) -> bool:
        """Leave the session before Complete; no late event can touch it afterwards."""
        if self.state.status in states.TERMINAL_STATUSES:
            return False
        self.state = states.abandon(self.state)
        self._teardown()
        self._release_ticker()
        self._drain_inbox()
        logger.info('Session %s abandoned at question %s', self.session_id, self.state.index + 1)
        return True

    def close(self) -> None:
        """Release timer and monitor resources; the controller is inert afterwards."""
        self._teardown()
        self._release_ticker()
        if self.submitter is not None:
            self.submitter.shutdown(wait=False)

    # ------------------------------------------------------------------
    # Message handlers
    # ------------------------------------------------------------------
    def _on_submit(self, answer: Answer) -> None:
        if self.status != BattleStatus.ACTIVE:
            logger.debug('Session %s: answer discarded in %s', self.session_id, self.status.value)
            return
        question = self.current_question
        elapsed = self.timer.elapsed()
        self.timer.cancel()
        correct = evaluate_answer(question, answer, **self.settings.evaluator_options())
        outcome = AnswerOutcome.CORRECT if correct else AnswerOutcome.INCORRECT
        self.state = states.lock(self.state, answer, outcome, elapsed)
        logger.debug('Session %s: question %s answered (%s)', self.session_id, self.state.index + 1, outcome.value)

    def _on_tick(self, generation: int) -> None:
        if self.status != BattleStatus.ACTIVE:
            return
        if self.timer.tick(generation) == TickResult.EXPIRED:
            self._on_expired()

    def _on_expired(self) -> None:
        question = self.current_question
        if question.is_multiple_choice:
            answer = NO_SELECTION
        else:
            # Open-ended timeouts are shown without grading
            answer = UNANSWERED
        self.state = states.lock(self.state, answer, AnswerOutcome.TIMED_OUT, self.timer.budget)
        logger.debug('Session %s: question %s timed out', self.session_id, self.state.index + 1)

    def _on_next(self) -> None:
        if self.status != BattleStatus.LOCKED:
            return
        self.selected_option = None
        self.text_buffer = ''
        if self.state.is_last_question:
            self._complete()
            return
        self.state = states.advance(self.state)
        self._start_question_timer()

    def _on_cheat(self, event: CheatEvent) -> None:
        if self.status not in states.MONITORED_STATUSES:
            return
        self.state = states.record_cheat(self.state, event)
        self.alerts.push(event, self.wall_clock_ms())

    def _on_settled(self, ack: Optional[ServerAck], error: Optional[SubmissionError]) -> None:
        if error is not None:
            logger.error('Session %s: keeping local estimate, submission failed: %s',
                         self.session_id, error.message)
            self.warning = SUBMISSION_WARNING
            return
        if ack is None or self.confirmed is not None:
            return
        if ack.session_id != self.session_id:
            logger.warning('Session %s: ignoring acknowledgement for %s', self.session_id, ack.session_id)
            return
        self.confirmed = ack
        self.warning = None
        battle_result_confirmed.send(self.session_id, ack=ack)

    def _on_cheat_detected(self, sender, **kwargs):
        if sender != self.session_id:
            return
        event = kwargs.get('event')
        if event is not None:
            self.post(CheatReported(event))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _start_question_timer(self) -> None:
        budget = time_budget(
            self.current_question, self.settings.mcq_time_limit, self.settings.open_ended_time_limit
        )
        self.timer.start(budget, lambda generation: self.post(TimerTick(generation)))

    def _complete(self) -> None:
        self.state = states.complete(self.state)
        self._teardown()
        self._release_ticker()

        outcome = states.outcome_from_state(self.state, win_streak=self.win_streak)
        self.estimate = build_xp_result(outcome, self.player_xp, **self.settings.xp_constants)
        logger.info('Session %s complete: %s/%s correct, estimated %s XP', self.session_id,
                    self.state.score, self.state.total_questions, self.estimate.xp_earned)
        battle_completed.send(self.session_id, outcome=outcome, estimate=self.estimate)

        if self.submitter is not None:
            self.submission = self.submitter.submit(
                states.payload_from_state(self.state),
                on_settled=lambda ack, error: self.post(SubmissionSettled(ack, error)),
            )

    def _teardown(self) -> None:
        self.timer.cancel()
        self.monitor.detach()
        if self._subscribed:
            cheat_detected.disconnect(self._on_cheat_detected)
            self._subscribed = False

    def _release_ticker(self) -> None:
        # A ticker we created is private to this session; stop its scheduler thread
        if self._owns_ticker:
            self.ticker.shutdown()

    def _drain_inbox(self) -> None:
        while True:
            try:
                self.inbox.get_nowait()
            except queue.Empty:
                return
