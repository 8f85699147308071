# modules/battle/services/battle_config_service.py
from typing import Any, Dict

from flask import current_app, has_app_context

from ..config import BattleDefaultConfig
from ..schemas import EngineSettings

# Keys handed to the XP engine as keyword arguments
XP_CONFIG_KEYS = (
    'XP_PER_CORRECT',
    'DIFFICULTY_MULTIPLIERS',
    'SPEED_BONUS_MAX',
    'SPEED_TARGET_SECONDS',
    'SPEED_DECAY_PER_SECOND',
    'PERFECT_SCORE_BONUS',
    'STREAK_MULTIPLIER_STEP',
    'STREAK_MULTIPLIER_CAP',
    'RANK_BONUSES',
    'RANK_BONUS_DEFAULT',
    'XP_PER_LEVEL',
)


class BattleConfigService:
    """
    Resolves battle tunables.
    Handles fallback logic between the Flask app config and BattleDefaultConfig.
    """

    @staticmethod
    def get_config(key: str) -> Any:
        """Get a single config value."""
        # 1. Try app config
        if has_app_context():
            value = current_app.config.get(key)
            if value is not None:
                return value

        # 2. Try Fallback
        return getattr(BattleDefaultConfig, key, None)

    @staticmethod
    def xp_constants() -> Dict[str, Any]:
        return {key.lower(): BattleConfigService.get_config(key) for key in XP_CONFIG_KEYS}

    @staticmethod
    def evaluator_options() -> Dict[str, Any]:
        return BattleConfigService.engine_settings().evaluator_options()

    @staticmethod
    def engine_settings() -> EngineSettings:
        """Snapshot of every engine tunable, so the engine never reads app config itself."""
        get = BattleConfigService.get_config
        return EngineSettings(
            mcq_time_limit=int(get('MCQ_TIME_LIMIT_SECONDS')),
            open_ended_time_limit=int(get('OPEN_ENDED_TIME_LIMIT_SECONDS')),
            tick_seconds=float(get('TIMER_TICK_SECONDS')),
            fuzzy_threshold=float(get('FUZZY_MATCH_THRESHOLD')),
            numeric_tolerance=float(get('NUMERIC_TOLERANCE_RATIO')),
            significant_word_min_length=int(get('SIGNIFICANT_WORD_MIN_LENGTH')),
            short_answer_max_words=int(get('SHORT_ANSWER_MAX_WORDS')),
            cheat_threshold_ms=int(get('CHEAT_THRESHOLD_MS')),
            cheat_alert_display_ms=int(get('CHEAT_ALERT_DISPLAY_MS')),
            inbox_capacity=int(get('INBOX_CAPACITY')),
            xp_constants=BattleConfigService.xp_constants(),
        )
