# File: brainbattle_app/modules/battle/engine/result_submitter.py
# Delivers a finished session to the authoritative scoring backend.
# Delivery runs on a worker thread so the optimistic result is never blocked.

import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Callable, Optional, Set

import requests

from brainbattle_app.core.error_handlers import BrainBattleError, SubmissionError
from ..config import BattleDefaultConfig
from ..schemas import ServerAck, SubmissionPayload

logger = logging.getLogger(__name__)

SettledCallback = Callable[[Optional[ServerAck], Optional[SubmissionError]], None]


class ScoringClient(ABC):
    """Transport to the scoring backend: one payload in, one ServerAck out."""

    @abstractmethod
    def submit_result(self, payload: SubmissionPayload) -> ServerAck:
        """Raise SubmissionError on any failure."""


class HttpScoringClient(ScoringClient):
    """Posts results to ``POST {base_url}/api/battle/results`` with requests."""

    RESULTS_PATH = '/api/battle/results'

    def __init__(self, base_url: str, http: Optional[requests.Session] = None,
                 timeout: float = BattleDefaultConfig.SUBMIT_TIMEOUT_SECONDS):
        self.base_url = base_url.rstrip('/')
        self.http = http or requests.Session()
        self.timeout = timeout

    def submit_result(self, payload):
        url = f'{self.base_url}{self.RESULTS_PATH}'
        try:
            response = self.http.post(url, json=payload.to_dict(), timeout=self.timeout)
        except requests.RequestException as exc:
            raise SubmissionError(f'Scoring backend unreachable: {exc}') from exc

        if response.status_code >= 400:
            raise SubmissionError(
                f'Scoring backend answered HTTP {response.status_code}',
                status=response.status_code,
            )
        try:
            return ServerAck.from_dict(response.json())
        except (ValueError, KeyError, TypeError) as exc:
            raise SubmissionError(f'Malformed scoring response: {exc}', status=response.status_code) from exc


class LocalScoringClient(ScoringClient):
    """Calls the scoring service in-process, inside the given app's context."""

    def __init__(self, app, user_id: int):
        self.app = app
        self.user_id = user_id

    def submit_result(self, payload):
        from ..services.scoring_service import BattleScoringService

        with self.app.app_context():
            try:
                data = BattleScoringService.record_result(self.user_id, payload.to_dict())
            except SubmissionError:
                raise
            except BrainBattleError as exc:
                raise SubmissionError(exc.message, status=exc.status_code) from exc
        return ServerAck.from_dict(data)


def _is_retriable(error: SubmissionError) -> bool:
    # 4xx means the backend rejected the payload; resending cannot help
    status = error.upstream_status
    return status is None or status >= 500


class ResultSubmitter:
    """
    Submits each session at most once.

    Transport failures are retried ``retries`` times; this is safe because the
    backend upserts on session id. ``submit()`` for an already submitted session
    returns None without touching the network.
    """

    def __init__(self, client: ScoringClient, retries: int = BattleDefaultConfig.SUBMIT_RETRIES,
                 executor: Optional[Executor] = None):
        self.client = client
        self.retries = max(0, int(retries))
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix='battle-submit')
        self._submitted: Set[str] = set()
        self._lock = threading.Lock()

    def has_submitted(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._submitted

    def submit(self, payload: SubmissionPayload,
               on_settled: Optional[SettledCallback] = None) -> Optional[Future]:
        with self._lock:
            if payload.session_id in self._submitted:
                logger.info('Session %s already submitted, skipping', payload.session_id)
                return None
            self._submitted.add(payload.session_id)

        future = self._executor.submit(self._deliver, payload)
        if on_settled is not None:
            future.add_done_callback(lambda done: on_settled(*self._settle(done)))
        return future

    def _deliver(self, payload: SubmissionPayload) -> ServerAck:
        attempt = 0
        while True:
            attempt += 1
            try:
                ack = self.client.submit_result(payload)
                logger.info('Session %s confirmed by backend (attempt %s)', payload.session_id, attempt)
                return ack
            except SubmissionError as exc:
                if attempt > self.retries or not _is_retriable(exc):
                    logger.error('Submitting session %s failed: %s', payload.session_id, exc.message)
                    raise
                logger.warning('Submitting session %s failed (attempt %s), retrying: %s',
                               payload.session_id, attempt, exc.message)

    @staticmethod
    def _settle(future: Future):
        try:
            return future.result(), None
        except SubmissionError as exc:
            return None, exc
        except Exception as exc:
            logger.error('Unexpected submission failure: %s', exc, exc_info=True)
            return None, SubmissionError(str(exc))

    def shutdown(self, wait: bool = True) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=wait)
