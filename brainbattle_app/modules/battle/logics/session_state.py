"""
Session State - the battle session as an immutable value.

Every transition is a pure function returning a new ``BattleState``; illegal
transitions raise ``TransitionError`` and leave the input untouched.

This module contains ONLY pure Python logic.
NO database, NO Flask, NO threads.
"""
from dataclasses import dataclass, replace
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from ..schemas import Answer, CheatEvent, GameOutcome, Question, SubmissionPayload


class BattleStatus(str, Enum):
    LOADING = 'loading'
    ACTIVE = 'active'
    LOCKED = 'locked'
    COMPLETE = 'complete'
    ERROR = 'error'
    ABANDONED = 'abandoned'


TERMINAL_STATUSES = frozenset({BattleStatus.COMPLETE, BattleStatus.ERROR, BattleStatus.ABANDONED})
# Phases during which focus loss counts as a violation
MONITORED_STATUSES = frozenset({BattleStatus.ACTIVE, BattleStatus.LOCKED})


class AnswerOutcome(str, Enum):
    CORRECT = 'correct'
    INCORRECT = 'incorrect'
    TIMED_OUT = 'timed_out'


class TransitionError(Exception):
    """Raised when a transition is not allowed from the current status."""

    def __init__(self, action: str, status: BattleStatus):
        self.action = action
        self.status = status
        super().__init__(f"Cannot {action} a session in status '{status.value}'")


@dataclass(frozen=True)
class AnswerRecord:
    answer: Answer
    outcome: AnswerOutcome
    elapsed_seconds: float = 0.0

    @property
    def is_correct(self) -> bool:
        return self.outcome == AnswerOutcome.CORRECT


@dataclass(frozen=True)
class BattleState:
    session_id: str
    topic: str = ''
    difficulty: str = 'medium'
    status: BattleStatus = BattleStatus.LOADING
    questions: Tuple[Question, ...] = ()
    index: int = 0
    records: Tuple[AnswerRecord, ...] = ()
    score: int = 0
    created_at: float = 0.0
    cheat_events: Tuple[CheatEvent, ...] = ()
    error: Optional[str] = None

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @property
    def current_question(self) -> Optional[Question]:
        if self.status not in (BattleStatus.ACTIVE, BattleStatus.LOCKED):
            return None
        return self.questions[self.index]

    @property
    def is_last_question(self) -> bool:
        return self.index >= len(self.questions) - 1

    @property
    def answers(self) -> List[Answer]:
        return [record.answer for record in self.records]

    @property
    def correct_answers(self) -> int:
        return sum(1 for record in self.records if record.is_correct)

    @property
    def duration(self) -> float:
        return round(sum(record.elapsed_seconds for record in self.records), 3)

    @property
    def average_time(self) -> float:
        if not self.records:
            return 0.0
        return round(self.duration / len(self.records), 3)


def _require(state: BattleState, action: str, *allowed: BattleStatus) -> None:
    if state.status not in allowed:
        raise TransitionError(action, state.status)


def new_session(session_id: str, topic: str = '', difficulty: str = 'medium',
                created_at: float = 0.0) -> BattleState:
    if not session_id:
        raise ValueError('session_id is required')
    return BattleState(
        session_id=str(session_id),
        topic=topic or '',
        difficulty=(difficulty or 'medium').lower(),
        created_at=created_at,
    )


def start(state: BattleState, questions: Sequence[Question]) -> BattleState:
    """Loading -> Active on the first question."""
    _require(state, 'start', BattleStatus.LOADING)
    if not questions:
        raise TransitionError('start without questions', state.status)
    return replace(state, status=BattleStatus.ACTIVE, questions=tuple(questions), index=0)


def fail(state: BattleState, reason: str) -> BattleState:
    """Loading -> Error."""
    _require(state, 'fail', BattleStatus.LOADING)
    return replace(state, status=BattleStatus.ERROR, error=reason)


def lock(state: BattleState, answer: Answer, outcome: AnswerOutcome,
         elapsed_seconds: float = 0.0) -> BattleState:
    """Active -> Locked, recording the answer of the current question."""
    _require(state, 'lock', BattleStatus.ACTIVE)
    record = AnswerRecord(answer=answer, outcome=outcome, elapsed_seconds=max(0.0, float(elapsed_seconds)))
    return replace(
        state,
        status=BattleStatus.LOCKED,
        records=state.records + (record,),
        score=state.score + (1 if record.is_correct else 0),
    )


def advance(state: BattleState) -> BattleState:
    """Locked -> Active on the next question."""
    _require(state, 'advance', BattleStatus.LOCKED)
    if state.is_last_question:
        raise TransitionError('advance past the last question of', state.status)
    return replace(state, status=BattleStatus.ACTIVE, index=state.index + 1)


def complete(state: BattleState) -> BattleState:
    """Locked -> Complete after the last question."""
    _require(state, 'complete', BattleStatus.LOCKED)
    if not state.is_last_question:
        raise TransitionError('complete before the last question of', state.status)
    return replace(state, status=BattleStatus.COMPLETE)


def abandon(state: BattleState) -> BattleState:
    if state.status in TERMINAL_STATUSES:
        raise TransitionError('abandon', state.status)
    return replace(state, status=BattleStatus.ABANDONED)


def record_cheat(state: BattleState, event: CheatEvent) -> BattleState:
    """Append a violation; score and answers are never touched."""
    _require(state, 'record a cheat event on', *MONITORED_STATUSES)
    return replace(state, cheat_events=state.cheat_events + (event,))


def outcome_from_state(state: BattleState, win_streak: int = 0, is_multiplayer: bool = False,
                       rank: Optional[int] = None) -> GameOutcome:
    total = state.total_questions
    correct = state.correct_answers
    return GameOutcome(
        correct_answers=correct,
        total_questions=total,
        average_time_per_question=state.average_time,
        difficulty=state.difficulty,
        win_streak=win_streak,
        is_perfect_score=total > 0 and correct == total,
        is_multiplayer=is_multiplayer,
        rank=rank,
    )


def payload_from_state(state: BattleState) -> SubmissionPayload:
    _require(state, 'submit', BattleStatus.COMPLETE)
    return SubmissionPayload(
        session_id=state.session_id,
        answers=state.answers,
        score=state.score,
        total_questions=state.total_questions,
        correct_answers=state.correct_answers,
        duration=state.duration,
        topic=state.topic,
    )
