"""Tests for the pure session transitions."""

import pytest

from brainbattle_app.modules.battle.logics import session_state as states
from brainbattle_app.modules.battle.logics.question_parser import parse_questions
from brainbattle_app.modules.battle.logics.session_state import AnswerOutcome, BattleStatus, TransitionError
from brainbattle_app.modules.battle.schemas import CheatEvent, CheatEventType


@pytest.fixture
def active(sample_questions):
    state = states.new_session('s-1', topic='CS', difficulty='Hard')
    return states.start(state, parse_questions(sample_questions))


def test_new_session_is_loading():
    state = states.new_session('s-1')
    assert state.status == BattleStatus.LOADING
    assert state.current_question is None


def test_start_requires_questions():
    with pytest.raises(TransitionError):
        states.start(states.new_session('s-1'), [])


def test_full_walk(active):
    assert active.difficulty == 'hard'
    state = active
    for i, outcome in enumerate([AnswerOutcome.CORRECT, AnswerOutcome.INCORRECT,
                                 AnswerOutcome.TIMED_OUT, AnswerOutcome.CORRECT]):
        state = states.lock(state, i, outcome, elapsed_seconds=5)
        assert state.status == BattleStatus.LOCKED
        if i < 3:
            state = states.advance(state)
    state = states.complete(state)

    assert state.status == BattleStatus.COMPLETE
    assert state.score == 2
    assert state.correct_answers == 2
    assert state.duration == 20
    assert state.average_time == 5
    assert 0 <= state.score <= state.total_questions


def test_transitions_do_not_mutate_input(active):
    locked = states.lock(active, 1, AnswerOutcome.CORRECT)
    assert active.status == BattleStatus.ACTIVE
    assert active.records == ()
    assert locked.records[0].answer == 1


def test_double_lock_is_rejected(active):
    locked = states.lock(active, 1, AnswerOutcome.CORRECT)
    with pytest.raises(TransitionError):
        states.lock(locked, 2, AnswerOutcome.INCORRECT)


def test_complete_only_after_last_question(active):
    with pytest.raises(TransitionError):
        states.complete(states.lock(active, 1, AnswerOutcome.CORRECT))


def test_cheat_events_never_touch_score(active):
    event = CheatEvent(type=CheatEventType.WINDOW_BLUR, duration_ms=4000, timestamp_ms=1)
    state = states.record_cheat(active, event)
    assert state.cheat_events == (event,)
    assert state.score == active.score
    assert state.records == active.records


def test_abandon_terminal_states(active):
    abandoned = states.abandon(active)
    assert abandoned.status == BattleStatus.ABANDONED
    with pytest.raises(TransitionError):
        states.abandon(abandoned)


def test_payload_requires_complete(active):
    with pytest.raises(TransitionError):
        states.payload_from_state(active)
