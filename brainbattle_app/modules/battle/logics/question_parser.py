"""
Question Parser - turns the generation collaborator's question records into
validated ``Question`` objects.

This module contains ONLY pure Python logic.
NO database, NO Flask request/app context.
"""
from typing import Any, Dict, Iterable, List, Optional, Tuple

from brainbattle_app.core.error_handlers import ValidationError
from ..config import BattleDefaultConfig
from ..schemas import AnswerFormat, Question, QuestionType

_NUMERIC_FORMATS = {'numeric', 'number'}


def parse_questions(records: Optional[Iterable[Any]]) -> List[Question]:
    """
    Validate and convert a raw question list.

    Args:
        records: List of dicts as produced by the question generator. Accepted keys:
            ``id``, ``question``/``q``/``prompt``, ``type``, ``options``, ``correct``,
            ``expected_answers``, ``answer_format``, ``hints``, ``explanation``,
            ``source``, ``time_limit``.

    Returns:
        The questions in their original order.

    Raises:
        ValidationError: if the list is empty or any record breaks a question
            invariant. ``errors`` maps the record index to its problems.
    """
    if records is None or isinstance(records, (str, bytes, dict)):
        raise ValidationError('Question list is missing', errors={'questions': ['expected a list']})

    records = list(records)
    if not records:
        raise ValidationError('Question list is empty', errors={'questions': ['at least one question is required']})

    questions: List[Question] = []
    errors: Dict[str, List[str]] = {}
    for index, record in enumerate(records):
        question, problems = _parse_one(index, record)
        if problems:
            errors[str(index)] = problems
        else:
            questions.append(question)

    if errors:
        raise ValidationError(f'{len(errors)} malformed question(s)', errors=errors)
    return questions


def _parse_one(index: int, record: Any) -> Tuple[Optional[Question], List[str]]:
    if not isinstance(record, dict):
        return None, ['question must be an object']

    problems: List[str] = []
    prompt = record.get('question') or record.get('q') or record.get('prompt')
    if not isinstance(prompt, str) or not prompt.strip():
        problems.append('prompt text is required')

    raw_type = str(record.get('type') or '').strip().lower()
    has_options = record.get('options') is not None
    has_expected = record.get('expected_answers') is not None
    if not raw_type:
        # Untyped records are classified by the fields they carry
        raw_type = QuestionType.MULTIPLE_CHOICE.value if has_options else QuestionType.OPEN_ENDED.value
    try:
        q_type = QuestionType(raw_type)
    except ValueError:
        return None, problems + [f'unknown question type {raw_type!r}']

    time_limit = record.get('time_limit')
    if time_limit is not None:
        if isinstance(time_limit, bool) or not isinstance(time_limit, (int, float)) or time_limit <= 0:
            problems.append('time_limit must be a positive number of seconds')
        else:
            time_limit = int(time_limit)

    options: Tuple[str, ...] = ()
    correct_index = None
    expected: Tuple[str, ...] = ()
    answer_format = AnswerFormat.TEXT

    if q_type == QuestionType.MULTIPLE_CHOICE:
        if has_expected:
            problems.append('multiple-choice question cannot carry expected_answers')
        raw_options = record.get('options')
        if not isinstance(raw_options, (list, tuple)) or len(raw_options) < 2:
            problems.append('multiple-choice question needs at least 2 options')
        else:
            options = tuple(str(option) for option in raw_options)
        correct_index = record.get('correct')
        if isinstance(correct_index, bool) or not isinstance(correct_index, int):
            problems.append('correct option index is required')
        elif options and not 0 <= correct_index < len(options):
            problems.append(f'correct index {correct_index} is out of range')
    else:
        if has_options:
            problems.append('open-ended question cannot carry options')
        raw_expected = record.get('expected_answers')
        if isinstance(raw_expected, str):
            raw_expected = [raw_expected]
        if not isinstance(raw_expected, (list, tuple)):
            raw_expected = []
        expected = tuple(str(answer) for answer in raw_expected if str(answer).strip())
        if not expected:
            problems.append('open-ended question needs at least 1 expected answer')
        raw_format = str(record.get('answer_format') or AnswerFormat.TEXT.value).strip().lower()
        answer_format = AnswerFormat.NUMERIC if raw_format in _NUMERIC_FORMATS else AnswerFormat.TEXT

    if problems:
        return None, problems

    hints = record.get('hints') or ()
    if isinstance(hints, str):
        hints = (hints,)

    return Question(
        id=str(record.get('id') if record.get('id') is not None else index),
        prompt=prompt.strip(),
        type=q_type,
        options=options,
        correct_index=correct_index,
        expected_answers=expected,
        answer_format=answer_format,
        hints=tuple(str(hint) for hint in hints),
        explanation=str(record.get('explanation') or ''),
        source=record.get('source'),
        time_limit=time_limit,
    ), []


def time_budget(
    question: Question,
    mcq_default: int = BattleDefaultConfig.MCQ_TIME_LIMIT_SECONDS,
    open_ended_default: int = BattleDefaultConfig.OPEN_ENDED_TIME_LIMIT_SECONDS,
) -> int:
    """Seconds allowed for ``question``: its own override, else the per-type default."""
    if question.time_limit:
        return int(question.time_limit)
    return mcq_default if question.is_multiple_choice else open_ended_default
