"""
Answer Evaluator - deterministic grading for battle questions.

This module contains ONLY pure Python logic.
NO database, NO Flask, NO network calls allowed.

Grading never raises: anything that cannot be interpreted is incorrect.
"""
import re
from typing import List, Optional

from ..config import BattleDefaultConfig
from ..schemas import Answer, AnswerFormat, Question

NUMBER_PATTERN = re.compile(r'[-+]?(?:\d+\.?\d*|\.\d+)')
_THOUSANDS_SEPARATOR = re.compile(r'(?<=\d),(?=\d{3}(?!\d))')
_PUNCTUATION = re.compile(r'[^\w\s]')
_WHITESPACE = re.compile(r'\s+')


def normalize_text(text: str) -> str:
    """
    Lowercase, strip punctuation and collapse whitespace.

    Examples:
        >>> normalize_text('  Binary-Search   Tree! ')
        'binarysearch tree'
    """
    if not text:
        return ''
    text = _PUNCTUATION.sub('', str(text).lower())
    return _WHITESPACE.sub(' ', text).strip()


def extract_first_number(text: str) -> Optional[float]:
    """
    Return the first signed decimal number in ``text``, or None.

    Examples:
        >>> extract_first_number('about 350 MPa')
        350.0
        >>> extract_first_number('-2.5 degrees')
        -2.5
        >>> extract_first_number('no digits') is None
        True
    """
    if not text:
        return None
    match = NUMBER_PATTERN.search(_THOUSANDS_SEPARATOR.sub('', str(text)))
    if not match:
        return None
    try:
        return float(match.group())
    except ValueError:
        return None


def is_numeric_correct(
    user_text: str,
    expected: str,
    tolerance: float = BattleDefaultConfig.NUMERIC_TOLERANCE_RATIO,
) -> bool:
    """Compare the first numbers of both sides within a relative tolerance."""
    user_value = extract_first_number(user_text)
    expected_value = extract_first_number(expected)
    if user_value is None or expected_value is None:
        return False
    return abs(user_value - expected_value) <= tolerance * abs(expected_value)


def _significant_words(text: str, min_length: int) -> List[str]:
    return [word for word in text.split(' ') if len(word) >= min_length]


def is_fuzzy_text_correct(
    user_text: str,
    expected: str,
    threshold: float = BattleDefaultConfig.FUZZY_MATCH_THRESHOLD,
    significant_word_min_length: int = BattleDefaultConfig.SIGNIFICANT_WORD_MIN_LENGTH,
    short_answer_max_words: int = BattleDefaultConfig.SHORT_ANSWER_MAX_WORDS,
) -> bool:
    """
    Text heuristic for open-ended answers.

    Both sides are normalized. Equal strings match. Short expected answers
    (few significant words) require that exact equality. Longer ones match when
    enough of their significant words appear, as substrings in either
    direction, among the user's significant words. User words shorter than
    ``significant_word_min_length`` are not candidates either, so fillers such
    as "a" or "of" cannot substring-match every expected word.

    Examples:
        >>> is_fuzzy_text_correct('a tree for binary search', 'binary search tree')
        True
        >>> is_fuzzy_text_correct('paris city', 'Paris')
        False
    """
    user_norm = normalize_text(user_text)
    expected_norm = normalize_text(expected)
    if not user_norm or not expected_norm:
        return False
    if user_norm == expected_norm:
        return True

    expected_words = _significant_words(expected_norm, significant_word_min_length)
    if len(expected_words) <= short_answer_max_words:
        return False

    user_words = _significant_words(user_norm, significant_word_min_length)
    if not user_words:
        return False

    matched = sum(
        1 for word in expected_words
        if any(word in candidate or candidate in word for candidate in user_words)
    )
    return matched / len(expected_words) >= threshold


def _evaluate_multiple_choice(question: Question, answer: Answer) -> bool:
    if isinstance(answer, bool):
        return False
    if isinstance(answer, int):
        # NO_SELECTION (-1) and out-of-range indices never equal the correct index
        return answer == question.correct_index
    if isinstance(answer, str):
        chosen = normalize_text(answer)
        if not chosen:
            return False
        if chosen.isdigit():
            return int(chosen) == question.correct_index
        return chosen == normalize_text(question.options[question.correct_index])
    return False


def evaluate_answer(
    question: Question,
    answer: Answer,
    *,
    fuzzy_threshold: float = BattleDefaultConfig.FUZZY_MATCH_THRESHOLD,
    numeric_tolerance: float = BattleDefaultConfig.NUMERIC_TOLERANCE_RATIO,
    significant_word_min_length: int = BattleDefaultConfig.SIGNIFICANT_WORD_MIN_LENGTH,
    short_answer_max_words: int = BattleDefaultConfig.SHORT_ANSWER_MAX_WORDS,
) -> bool:
    """
    Grade a single answer.

    Args:
        question: A validated Question.
        answer: Option index (multiple choice), free text (open-ended), or one of
            the timeout sentinels ``NO_SELECTION`` / ``UNANSWERED``.

    Returns:
        True when correct. Empty input, sentinels and anything unparseable are
        False. Open-ended questions match if ANY expected answer matches.
    """
    if answer is None:
        return False
    if isinstance(answer, str) and not answer.strip():
        return False

    if question.is_multiple_choice:
        return _evaluate_multiple_choice(question, answer)

    if isinstance(answer, bool):
        return False
    if isinstance(answer, (int, float)):
        answer = str(answer)
    if not isinstance(answer, str):
        return False

    if question.answer_format == AnswerFormat.NUMERIC:
        return any(
            is_numeric_correct(answer, expected, numeric_tolerance)
            for expected in question.expected_answers
        )
    return any(
        is_fuzzy_text_correct(
            answer,
            expected,
            threshold=fuzzy_threshold,
            significant_word_min_length=significant_word_min_length,
            short_answer_max_words=short_answer_max_words,
        )
        for expected in question.expected_answers
    )
