from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from .config import BattleDefaultConfig

# Recorded for a multiple-choice question whose timer ran out; never a valid option index.
NO_SELECTION = -1
# Recorded for an open-ended question whose timer ran out; never graded.
UNANSWERED = None

Answer = Union[int, str, None]


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = 'multiple_choice'
    OPEN_ENDED = 'open_ended'


class AnswerFormat(str, Enum):
    TEXT = 'text'
    NUMERIC = 'numeric'


class CheatEventType(str, Enum):
    VISIBILITY_CHANGE = 'visibility_change'
    WINDOW_BLUR = 'window_blur'


@dataclass(frozen=True)
class Question:
    id: str
    prompt: str
    type: QuestionType
    options: Tuple[str, ...] = ()
    correct_index: Optional[int] = None
    expected_answers: Tuple[str, ...] = ()
    answer_format: AnswerFormat = AnswerFormat.TEXT
    hints: Tuple[str, ...] = ()
    explanation: str = ''
    source: Optional[str] = None
    time_limit: Optional[int] = None

    @property
    def is_multiple_choice(self) -> bool:
        return self.type == QuestionType.MULTIPLE_CHOICE

    @property
    def correct_answer_text(self) -> Optional[str]:
        if self.is_multiple_choice:
            return self.options[self.correct_index]
        return self.expected_answers[0] if self.expected_answers else None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'question': self.prompt,
            'type': self.type.value,
            'explanation': self.explanation,
            'hints': list(self.hints),
            'source': self.source,
            'time_limit': self.time_limit,
        }
        if self.is_multiple_choice:
            data['options'] = list(self.options)
            data['correct'] = self.correct_index
        else:
            data['expected_answers'] = list(self.expected_answers)
            data['answer_format'] = self.answer_format.value
        return data


@dataclass(frozen=True)
class CheatEvent:
    type: CheatEventType
    duration_ms: int
    timestamp_ms: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type.value,
            'duration': self.duration_ms,
            'timestamp': self.timestamp_ms,
        }


@dataclass(frozen=True)
class GameOutcome:
    """Everything the XP engine needs to know about a finished battle."""
    correct_answers: int
    total_questions: int
    average_time_per_question: float
    difficulty: str = 'medium'
    win_streak: int = 0
    is_perfect_score: bool = False
    is_multiplayer: bool = False
    rank: Optional[int] = None


@dataclass(frozen=True)
class XPBreakdown:
    base_xp: int
    difficulty_multiplier: float
    speed_bonus: int
    perfect_score_bonus: int
    rank_bonus: int
    streak_multiplier: float
    total_xp: int


@dataclass(frozen=True)
class XPResult:
    xp_earned: int
    old_xp: int
    new_xp: int
    breakdown: Tuple[str, ...] = ()
    leveled_up: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'xpEarned': self.xp_earned,
            'oldXP': self.old_xp,
            'newXP': self.new_xp,
            'xpBreakdown': list(self.breakdown),
            'leveledUp': self.leveled_up,
        }


@dataclass(frozen=True)
class SubmissionPayload:
    session_id: str
    answers: List[Answer]
    score: int
    total_questions: int
    correct_answers: int
    duration: float
    topic: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'sessionId': self.session_id,
            'answers': list(self.answers),
            'score': self.score,
            'totalQuestions': self.total_questions,
            'correctAnswers': self.correct_answers,
            'duration': self.duration,
            'topic': self.topic,
        }


@dataclass(frozen=True)
class ServerAck:
    session_id: str
    xp_earned: int
    old_xp: int
    new_xp: int
    duplicate: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ServerAck':
        """Build from the JSON body of the results endpoint. Raises KeyError/ValueError on a malformed body."""
        return cls(
            session_id=str(data['sessionId']),
            xp_earned=int(data['xpEarned']),
            old_xp=int(data['oldXP']),
            new_xp=int(data['newXP']),
            duplicate=bool(data.get('duplicate', False)),
        )


@dataclass(frozen=True)
class EngineSettings:
    """Tunables handed to a SessionController; defaults mirror BattleDefaultConfig."""
    mcq_time_limit: int = BattleDefaultConfig.MCQ_TIME_LIMIT_SECONDS
    open_ended_time_limit: int = BattleDefaultConfig.OPEN_ENDED_TIME_LIMIT_SECONDS
    tick_seconds: float = BattleDefaultConfig.TIMER_TICK_SECONDS
    fuzzy_threshold: float = BattleDefaultConfig.FUZZY_MATCH_THRESHOLD
    numeric_tolerance: float = BattleDefaultConfig.NUMERIC_TOLERANCE_RATIO
    significant_word_min_length: int = BattleDefaultConfig.SIGNIFICANT_WORD_MIN_LENGTH
    short_answer_max_words: int = BattleDefaultConfig.SHORT_ANSWER_MAX_WORDS
    cheat_threshold_ms: int = BattleDefaultConfig.CHEAT_THRESHOLD_MS
    cheat_alert_display_ms: int = BattleDefaultConfig.CHEAT_ALERT_DISPLAY_MS
    inbox_capacity: int = BattleDefaultConfig.INBOX_CAPACITY
    xp_constants: Dict[str, Any] = field(default_factory=dict)

    def evaluator_options(self) -> Dict[str, Any]:
        return {
            'fuzzy_threshold': self.fuzzy_threshold,
            'numeric_tolerance': self.numeric_tolerance,
            'significant_word_min_length': self.significant_word_min_length,
            'short_answer_max_words': self.short_answer_max_words,
        }
