"""
Tests for ResultSubmitter and the scoring clients

Tests cover:
- At-most-once submission per session id
- Retry on transport failures, none on rejected payloads
- HTTP client request shape and error mapping
"""

from unittest.mock import MagicMock

import pytest
import requests

from brainbattle_app.core.error_handlers import SubmissionError
from brainbattle_app.modules.battle.engine.result_submitter import HttpScoringClient, ResultSubmitter, ScoringClient
from brainbattle_app.modules.battle.schemas import ServerAck, SubmissionPayload


def payload(session_id='s-1'):
    return SubmissionPayload(session_id=session_id, answers=[1, None], score=1, total_questions=2,
                             correct_answers=1, duration=12.5, topic='CS')


ACK = ServerAck(session_id='s-1', xp_earned=15, old_xp=100, new_xp=115)


class FlakyClient(ScoringClient):
    def __init__(self, failures, status=None):
        self.failures = failures
        self.status = status
        self.calls = 0

    def submit_result(self, payload):
        self.calls += 1
        if self.calls <= self.failures:
            raise SubmissionError('boom', status=self.status)
        return ACK


class TestResultSubmitter:

    def test_submits_once_per_session(self, inline_executor):
        client = FlakyClient(failures=0)
        submitter = ResultSubmitter(client, executor=inline_executor)

        first = submitter.submit(payload())
        second = submitter.submit(payload())

        assert first.result() == ACK
        assert second is None
        assert client.calls == 1
        assert submitter.has_submitted('s-1')

    def test_retries_transport_failures(self, inline_executor):
        client = FlakyClient(failures=2)
        submitter = ResultSubmitter(client, retries=2, executor=inline_executor)
        assert submitter.submit(payload()).result() == ACK
        assert client.calls == 3

    def test_gives_up_after_retries(self, inline_executor):
        client = FlakyClient(failures=5, status=502)
        submitter = ResultSubmitter(client, retries=2, executor=inline_executor)
        settled = []
        submitter.submit(payload(), on_settled=lambda ack, error: settled.append((ack, error)))
        assert client.calls == 3
        ack, error = settled[0]
        assert ack is None
        assert isinstance(error, SubmissionError)

    def test_rejected_payload_is_not_retried(self, inline_executor):
        client = FlakyClient(failures=5, status=400)
        submitter = ResultSubmitter(client, retries=3, executor=inline_executor)
        with pytest.raises(SubmissionError):
            submitter.submit(payload()).result()
        assert client.calls == 1

    def test_real_worker_thread(self):
        submitter = ResultSubmitter(FlakyClient(failures=0))
        try:
            assert submitter.submit(payload()).result(timeout=5) == ACK
        finally:
            submitter.shutdown()


class TestHttpScoringClient:

    def test_posts_payload_and_parses_ack(self):
        http = MagicMock()
        http.post.return_value.status_code = 200
        http.post.return_value.json.return_value = {
            'success': True, 'sessionId': 's-1', 'xpEarned': 15, 'oldXP': 100, 'newXP': 115,
        }
        client = HttpScoringClient('http://battle.local/', http=http, timeout=3)

        assert client.submit_result(payload()) == ACK
        http.post.assert_called_once_with(
            'http://battle.local/api/battle/results',
            json=payload().to_dict(),
            timeout=3,
        )

    def test_connection_error(self):
        http = MagicMock()
        http.post.side_effect = requests.ConnectionError('refused')
        with pytest.raises(SubmissionError) as excinfo:
            HttpScoringClient('http://battle.local', http=http).submit_result(payload())
        assert excinfo.value.upstream_status is None

    def test_http_error_status(self):
        http = MagicMock()
        http.post.return_value.status_code = 503
        with pytest.raises(SubmissionError) as excinfo:
            HttpScoringClient('http://battle.local', http=http).submit_result(payload())
        assert excinfo.value.upstream_status == 503

    def test_malformed_body(self):
        http = MagicMock()
        http.post.return_value.status_code = 200
        http.post.return_value.json.return_value = {'success': True}
        with pytest.raises(SubmissionError):
            HttpScoringClient('http://battle.local', http=http).submit_result(payload())
