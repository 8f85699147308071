"""
Tests for SessionController

Tests cover:
- Loading, identity check and the Error state
- Answer submission, timer expiry and the first-wins guard
- Advancing, completion, local XP estimate
- Cheat reporting through signals
- Reconciliation with the scoring backend
- Abandon teardown
"""

import pytest

from brainbattle_app.core.error_handlers import SessionIdentityMismatch, SubmissionError, ValidationError
from brainbattle_app.core.signals import focus_changed
from brainbattle_app.modules.battle.engine.controller import SessionController, TimerTick
from brainbattle_app.modules.battle.engine.result_submitter import ResultSubmitter, ScoringClient
from brainbattle_app.modules.battle.logics.session_state import AnswerOutcome, BattleStatus
from brainbattle_app.modules.battle.schemas import NO_SELECTION, UNANSWERED, ServerAck

from conftest import CORRECT_ANSWERS


class RecordingClient(ScoringClient):
    def __init__(self, ack=None, error=None):
        self.ack = ack
        self.error = error
        self.payloads = []

    def submit_result(self, payload):
        self.payloads.append(payload)
        if self.error is not None:
            raise self.error
        return self.ack


@pytest.fixture
def make_controller(ticker, clock):
    created = []

    def _make(session_id='s-1', **kwargs):
        kwargs.setdefault('ticker', ticker)
        kwargs.setdefault('clock', clock)
        kwargs.setdefault('wall_clock_ms', lambda: 0)
        controller = SessionController(session_id, topic='CS', difficulty='medium', **kwargs)
        created.append(controller)
        return controller

    yield _make
    for controller in created:
        controller.close()


def answer_all(controller, answers, clock=None, seconds=5):
    for i, answer in enumerate(answers):
        if clock is not None:
            clock.advance(seconds)
        assert controller.submit_answer(answer) is True
        if i < len(answers) - 1:
            assert controller.next_question() is True


class TestLoading:

    def test_load_activates_first_question(self, make_controller, sample_questions, ticker):
        controller = make_controller()
        controller.load(sample_questions)
        assert controller.status == BattleStatus.ACTIVE
        assert controller.current_question.id == 'q1'
        assert controller.timer.budget == 30
        assert len(ticker.jobs) == 1
        assert controller.monitor.attached

    @pytest.mark.parametrize('raw', [[], None, [{'question': 'broken', 'type': 'multiple_choice'}]])
    def test_invalid_questions_move_to_error(self, make_controller, raw, ticker):
        controller = make_controller()
        with pytest.raises(ValidationError):
            controller.load(raw)
        assert controller.status == BattleStatus.ERROR
        assert ticker.jobs == {}
        assert not controller.monitor.attached

    def test_identity_mismatch(self, make_controller, sample_questions):
        controller = make_controller('route-id')
        with pytest.raises(SessionIdentityMismatch) as excinfo:
            controller.load(sample_questions, stored_session_id='stored-id')
        assert excinfo.value.status_code == 409
        assert controller.status == BattleStatus.ERROR


class TestAnswering:

    def test_correct_answer_locks_and_scores(self, make_controller, sample_questions, clock):
        controller = make_controller()
        controller.load(sample_questions)
        clock.advance(4)
        controller.select_option(1)
        assert controller.submit_answer() is True
        assert controller.status == BattleStatus.LOCKED
        assert controller.state.score == 1
        record = controller.state.records[0]
        assert record.outcome == AnswerOutcome.CORRECT
        assert record.elapsed_seconds == 4

    def test_submit_without_selection_is_ignored(self, make_controller, sample_questions):
        controller = make_controller()
        controller.load(sample_questions)
        assert controller.submit_answer() is False
        assert controller.status == BattleStatus.ACTIVE

    def test_blank_open_ended_answer_stays_active(self, make_controller, sample_questions):
        controller = make_controller()
        controller.load(sample_questions[2:])
        controller.update_text('   ')
        assert controller.submit_answer() is False
        assert controller.status == BattleStatus.ACTIVE
        assert controller.state.records == ()

    def test_second_answer_is_discarded(self, make_controller, sample_questions):
        controller = make_controller()
        controller.load(sample_questions)
        controller.submit_answer(0)
        assert controller.submit_answer(1) is False
        assert len(controller.state.records) == 1
        assert controller.state.score == 0

    def test_select_option_rejects_non_int(self, make_controller, sample_questions):
        controller = make_controller()
        controller.load(sample_questions)
        assert controller.select_option('1') is False
        assert controller.select_option(True) is False
        assert controller.select_option(4) is False
        assert controller.selected_option is None
        assert controller.select_option(1) is True

    def test_next_clears_transient_state(self, make_controller, sample_questions):
        controller = make_controller()
        controller.load(sample_questions)
        controller.select_option(1)
        controller.submit_answer()
        controller.next_question()
        assert controller.selected_option is None
        assert controller.text_buffer == ''
        assert controller.current_question.id == 'q2'


class TestTimer:

    def test_mcq_timeout_records_no_selection(self, make_controller, sample_questions, ticker):
        controller = make_controller()
        controller.load(sample_questions)
        ticker.fire(30)
        controller.pump()
        assert controller.status == BattleStatus.LOCKED
        record = controller.state.records[0]
        assert record.answer == NO_SELECTION
        assert record.outcome == AnswerOutcome.TIMED_OUT
        assert record.elapsed_seconds == 30
        assert controller.state.score == 0

    def test_open_ended_timeout_is_ungraded(self, make_controller, sample_questions, ticker):
        controller = make_controller()
        controller.load(sample_questions[2:])
        controller.update_text('350')
        ticker.fire(60)
        controller.pump()
        record = controller.state.records[0]
        assert record.answer is UNANSWERED
        assert record.outcome == AnswerOutcome.TIMED_OUT
        assert controller.state.score == 0

    def test_answer_beats_pending_ticks(self, make_controller, sample_questions, ticker):
        controller = make_controller()
        controller.load(sample_questions)
        ticker.fire(29)
        stale_generation = controller.timer.generation
        controller.submit_answer(1)
        controller.post(TimerTick(stale_generation))
        controller.pump()
        assert controller.state.records[0].outcome == AnswerOutcome.CORRECT
        assert len(controller.state.records) == 1

    def test_expiry_beats_late_answer(self, make_controller, sample_questions, ticker):
        controller = make_controller()
        controller.load(sample_questions)
        ticker.fire(30)
        assert controller.submit_answer(1) is False
        assert len(controller.state.records) == 1
        record = controller.state.records[0]
        assert record.answer == NO_SELECTION
        assert record.outcome == AnswerOutcome.TIMED_OUT
        assert controller.state.score == 0
        assert controller.status == BattleStatus.LOCKED

    def test_next_question_gets_its_own_budget(self, make_controller, sample_questions):
        controller = make_controller()
        controller.load(sample_questions)
        answer_all(controller, CORRECT_ANSWERS[:2])
        controller.next_question()
        assert controller.current_question.id == 'q3'
        assert controller.timer.budget == 60


class TestCompletion:

    def test_complete_produces_estimate(self, make_controller, sample_questions, clock, ticker):
        controller = make_controller()
        controller.load(sample_questions)
        answer_all(controller, CORRECT_ANSWERS, clock=clock, seconds=5)
        controller.next_question()

        assert controller.status == BattleStatus.COMPLETE
        assert controller.state.score == 4
        # 4 correct * 10 * 1.5 + speed 50 + perfect 100
        assert controller.estimate.xp_earned == 210
        assert controller.displayed_xp == 210
        assert ticker.jobs == {}
        assert not controller.monitor.attached

    def test_score_never_exceeds_total(self, make_controller, sample_questions, ticker):
        controller = make_controller()
        controller.load(sample_questions)
        for answer in [1, 0]:
            controller.submit_answer(answer)
            controller.next_question()
        ticker.fire(60)
        controller.pump()
        controller.next_question()
        controller.submit_answer('binary search tree')
        controller.next_question()
        assert controller.status == BattleStatus.COMPLETE
        assert 0 <= controller.state.score <= controller.state.total_questions
        assert controller.state.score == 2

    def test_no_mutation_after_complete(self, make_controller, sample_questions):
        controller = make_controller()
        controller.load(sample_questions)
        answer_all(controller, CORRECT_ANSWERS)
        controller.next_question()
        assert controller.submit_answer(1) is False
        assert controller.next_question() is False
        assert controller.abandon() is False


    def test_owned_scheduler_stops_on_complete(self, make_controller, sample_questions):
        controller = make_controller(ticker=None)
        controller.load(sample_questions)
        assert controller.ticker.scheduler.running
        answer_all(controller, CORRECT_ANSWERS)
        controller.next_question()
        assert controller.status == BattleStatus.COMPLETE
        assert controller.ticker.scheduler.running is False

    def test_owned_scheduler_stops_on_abandon(self, make_controller, sample_questions):
        controller = make_controller(ticker=None)
        controller.load(sample_questions)
        assert controller.abandon() is True
        assert controller.ticker.scheduler.running is False


class TestSubmission:

    def test_server_ack_supersedes_estimate(self, make_controller, sample_questions, inline_executor):
        ack = ServerAck(session_id='s-1', xp_earned=180, old_xp=0, new_xp=180)
        client = RecordingClient(ack=ack)
        controller = make_controller(submitter=ResultSubmitter(client, executor=inline_executor))
        controller.load(sample_questions)
        answer_all(controller, CORRECT_ANSWERS)
        controller.next_question()

        payload = client.payloads[0]
        assert payload.session_id == 's-1'
        assert payload.answers == CORRECT_ANSWERS
        assert payload.correct_answers == 4

        controller.pump()
        assert controller.confirmed == ack
        assert controller.displayed_xp == 180
        assert controller.warning is None

    def test_duplicate_ack_is_not_shown_twice(self, make_controller, sample_questions, inline_executor):
        ack = ServerAck(session_id='s-1', xp_earned=180, old_xp=0, new_xp=180)
        controller = make_controller(submitter=ResultSubmitter(RecordingClient(ack=ack), executor=inline_executor))
        controller.load(sample_questions)
        answer_all(controller, CORRECT_ANSWERS)
        controller.next_question()
        controller.pump()

        from brainbattle_app.modules.battle.engine.controller import SubmissionSettled
        duplicate = ServerAck(session_id='s-1', xp_earned=180, old_xp=180, new_xp=180, duplicate=True)
        controller.post(SubmissionSettled(ack=duplicate))
        controller.pump()
        assert controller.confirmed == ack

    def test_failure_keeps_estimate_with_warning(self, make_controller, sample_questions, inline_executor):
        client = RecordingClient(error=SubmissionError('down', status=503))
        controller = make_controller(submitter=ResultSubmitter(client, retries=1, executor=inline_executor))
        controller.load(sample_questions)
        answer_all(controller, CORRECT_ANSWERS)
        controller.next_question()
        controller.pump()

        assert controller.status == BattleStatus.COMPLETE
        assert controller.confirmed is None
        assert controller.displayed_xp == controller.estimate.xp_earned
        assert controller.warning
        assert len(client.payloads) == 2


class TestCheatReporting:

    def test_focus_loss_is_logged_without_touching_score(self, sample_questions, ticker, clock):
        controller = SessionController('s-cheat', ticker=ticker, clock=clock, wall_clock_ms=lambda: 1000)
        try:
            controller.load(sample_questions)
            controller.submit_answer(1)
            focus_changed.send('s-cheat', kind='hidden', timestamp_ms=0)
            focus_changed.send('s-cheat', kind='visible', timestamp_ms=4000)
            controller.pump()

            assert len(controller.state.cheat_events) == 1
            assert controller.state.cheat_events[0].duration_ms == 4000
            assert controller.state.score == 1
            assert len(controller.visible_alerts()) == 1
        finally:
            controller.close()

    def test_abandon_tears_everything_down(self, make_controller, sample_questions, ticker):
        controller = make_controller('s-gone')
        controller.load(sample_questions)
        ticker_job_count = len(ticker.jobs)
        assert controller.abandon() is True

        focus_changed.send('s-gone', kind='blur', timestamp_ms=0)
        focus_changed.send('s-gone', kind='focus', timestamp_ms=9000)
        ticker.fire(40)
        controller.pump()

        assert ticker_job_count == 1
        assert ticker.jobs == {}
        assert controller.status == BattleStatus.ABANDONED
        assert controller.state.cheat_events == ()
        assert controller.state.records == ()
