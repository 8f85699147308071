"""
XP Engine - Pure functions for battle rewards and the level curve.

This module contains ONLY pure Python logic.
NO database, NO Flask, NO model dependencies allowed.

Reward for one battle:
    base      = correct_answers * XP_PER_CORRECT * difficulty multiplier
    speed     = clamp(SPEED_BONUS_MAX - SPEED_DECAY_PER_SECOND * (avg - SPEED_TARGET_SECONDS),
                      0, SPEED_BONUS_MAX), only with at least one correct answer
    perfect   = PERFECT_SCORE_BONUS when the outcome is a perfect score
    rank      = RANK_BONUSES[rank] (multiplayer only)
    total     = (base + speed + perfect + rank) * (1 + STREAK_MULTIPLIER_STEP * min(streak, CAP))

Level curve:
    level(xp) = max(1, xp // XP_PER_LEVEL)
"""
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Mapping, Optional

from ..config import BattleDefaultConfig as Defaults
from ..schemas import GameOutcome, XPBreakdown, XPResult


def _round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def _format_multiplier(value: float) -> str:
    return f'{value:.2f}'.rstrip('0').rstrip('.')


def difficulty_multiplier(
    difficulty: Optional[str],
    multipliers: Mapping[str, float] = Defaults.DIFFICULTY_MULTIPLIERS,
) -> float:
    """Unknown difficulties score like 'easy' (x1.0)."""
    return float(multipliers.get(str(difficulty or '').lower(), 1.0))


def speed_bonus(
    average_seconds: float,
    bonus_max: int = Defaults.SPEED_BONUS_MAX,
    target_seconds: float = Defaults.SPEED_TARGET_SECONDS,
    decay_per_second: float = Defaults.SPEED_DECAY_PER_SECOND,
) -> int:
    """
    Bonus for answering quickly, bounded to [0, bonus_max].

    Examples:
        >>> speed_bonus(8)
        50
        >>> speed_bonus(20)
        30
        >>> speed_bonus(45)
        0
    """
    raw = bonus_max - decay_per_second * (max(0.0, float(average_seconds)) - target_seconds)
    return _round_half_up(min(bonus_max, max(0.0, raw)))


def streak_multiplier(
    win_streak: int,
    step: float = Defaults.STREAK_MULTIPLIER_STEP,
    cap: int = Defaults.STREAK_MULTIPLIER_CAP,
) -> float:
    return round(1.0 + step * min(max(0, int(win_streak or 0)), cap), 4)


def calculate_xp(
    outcome: GameOutcome,
    *,
    xp_per_correct: int = Defaults.XP_PER_CORRECT,
    difficulty_multipliers: Mapping[str, float] = Defaults.DIFFICULTY_MULTIPLIERS,
    speed_bonus_max: int = Defaults.SPEED_BONUS_MAX,
    speed_target_seconds: float = Defaults.SPEED_TARGET_SECONDS,
    speed_decay_per_second: float = Defaults.SPEED_DECAY_PER_SECOND,
    perfect_score_bonus: int = Defaults.PERFECT_SCORE_BONUS,
    streak_multiplier_step: float = Defaults.STREAK_MULTIPLIER_STEP,
    streak_multiplier_cap: int = Defaults.STREAK_MULTIPLIER_CAP,
    rank_bonuses: Mapping[int, int] = Defaults.RANK_BONUSES,
    rank_bonus_default: int = Defaults.RANK_BONUS_DEFAULT,
) -> XPBreakdown:
    """
    Compute the XP components for a finished battle.

    Returns:
        XPBreakdown with every component and the rounded total. Negative or
        inconsistent counts are clamped so the total is never negative.
    """
    total_questions = max(0, int(outcome.total_questions or 0))
    correct = min(max(0, int(outcome.correct_answers or 0)), total_questions)

    base_xp = correct * xp_per_correct
    multiplier = difficulty_multiplier(outcome.difficulty, difficulty_multipliers)

    speed = 0
    if correct > 0:
        speed = speed_bonus(
            outcome.average_time_per_question,
            bonus_max=speed_bonus_max,
            target_seconds=speed_target_seconds,
            decay_per_second=speed_decay_per_second,
        )

    perfect = perfect_score_bonus if outcome.is_perfect_score and total_questions > 0 else 0

    rank = 0
    if outcome.is_multiplayer and outcome.rank:
        rank = int(rank_bonuses.get(outcome.rank, rank_bonus_default))

    streak = streak_multiplier(outcome.win_streak, streak_multiplier_step, streak_multiplier_cap)
    subtotal = base_xp * multiplier + speed + perfect + rank

    return XPBreakdown(
        base_xp=base_xp,
        difficulty_multiplier=multiplier,
        speed_bonus=speed,
        perfect_score_bonus=perfect,
        rank_bonus=rank,
        streak_multiplier=streak,
        total_xp=max(0, _round_half_up(subtotal * streak)),
    )


def get_xp_explanation(breakdown: XPBreakdown, outcome: GameOutcome) -> List[str]:
    """Human-readable lines, in the order the components are applied."""
    correct = max(0, int(outcome.correct_answers or 0))
    lines = [f'Base: {correct} correct answer(s) = {breakdown.base_xp} XP']

    difficulty = str(outcome.difficulty or 'easy').lower()
    scaled = _round_half_up(breakdown.base_xp * breakdown.difficulty_multiplier)
    lines.append(
        f'Difficulty ({difficulty}): x{_format_multiplier(breakdown.difficulty_multiplier)} = {scaled} XP'
    )
    if breakdown.speed_bonus:
        lines.append(f'Speed bonus: +{breakdown.speed_bonus} XP')
    if breakdown.perfect_score_bonus:
        lines.append(f'Perfect score: +{breakdown.perfect_score_bonus} XP')
    if breakdown.rank_bonus:
        lines.append(f'Rank #{outcome.rank} bonus: +{breakdown.rank_bonus} XP')
    if breakdown.streak_multiplier > 1.0:
        lines.append(
            f'Win streak ({outcome.win_streak}): x{_format_multiplier(breakdown.streak_multiplier)}'
        )
    lines.append(f'Total: {breakdown.total_xp} XP')
    return lines


def calculate_level(xp: int, xp_per_level: int = Defaults.XP_PER_LEVEL) -> int:
    """
    Monotonic level curve.

    Examples:
        >>> calculate_level(950)
        9
        >>> calculate_level(1050)
        10
        >>> calculate_level(0)
        1
    """
    return max(1, max(0, int(xp or 0)) // xp_per_level)


def check_level_up(old_xp: int, new_xp: int, xp_per_level: int = Defaults.XP_PER_LEVEL) -> bool:
    return calculate_level(new_xp, xp_per_level) > calculate_level(old_xp, xp_per_level)


def xp_to_next_level(xp: int, xp_per_level: int = Defaults.XP_PER_LEVEL) -> int:
    """XP still missing before the next level is reached."""
    next_threshold = (calculate_level(xp, xp_per_level) + 1) * xp_per_level
    return next_threshold - max(0, int(xp or 0))


def level_up_info(old_xp: int, new_xp: int, xp_per_level: int = Defaults.XP_PER_LEVEL) -> Dict[str, Any]:
    old_level = calculate_level(old_xp, xp_per_level)
    new_level = calculate_level(new_xp, xp_per_level)
    return {
        'leveled_up': new_level > old_level,
        'old_level': old_level,
        'new_level': new_level,
        'levels_gained': max(0, new_level - old_level),
        'xp_to_next_level': xp_to_next_level(new_xp, xp_per_level),
    }


def build_xp_result(
    outcome: GameOutcome,
    old_xp: int,
    xp_per_level: int = Defaults.XP_PER_LEVEL,
    **xp_constants: Any,
) -> XPResult:
    """
    Full reward for one battle: earned XP, new total, breakdown and level-up flag.

    Same outcome and same ``old_xp`` always give the same result.
    """
    old_xp = max(0, int(old_xp or 0))
    breakdown = calculate_xp(outcome, **xp_constants)
    new_xp = old_xp + breakdown.total_xp
    return XPResult(
        xp_earned=breakdown.total_xp,
        old_xp=old_xp,
        new_xp=new_xp,
        breakdown=tuple(get_xp_explanation(breakdown, outcome)),
        leveled_up=check_level_up(old_xp, new_xp, xp_per_level),
    )
