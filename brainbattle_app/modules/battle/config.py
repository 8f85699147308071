# modules/battle/config.py


class BattleDefaultConfig:
    """
    Default configuration for the Battle module.
    Every value can be overridden through the Flask app config under the same key.
    """

    # --- Question timer ---
    MCQ_TIME_LIMIT_SECONDS = 30
    OPEN_ENDED_TIME_LIMIT_SECONDS = 60
    TIMER_TICK_SECONDS = 1

    # --- Answer evaluation ---
    FUZZY_MATCH_THRESHOLD = 0.70     # share of significant words that must match
    SIGNIFICANT_WORD_MIN_LENGTH = 3  # words shorter than this are ignored
    SHORT_ANSWER_MAX_WORDS = 2       # at or below this, exact match is required
    NUMERIC_TOLERANCE_RATIO = 0.05   # |user - expected| <= ratio * |expected|

    # --- Anti-cheat ---
    CHEAT_THRESHOLD_MS = 2500
    CHEAT_ALERT_DISPLAY_MS = 5000

    # --- XP ---
    XP_PER_CORRECT = 10
    DIFFICULTY_MULTIPLIERS = {
        'easy': 1.0,
        'medium': 1.5,
        'hard': 2.0,
    }
    SPEED_BONUS_MAX = 50
    SPEED_TARGET_SECONDS = 10        # no decay at or below this average
    SPEED_DECAY_PER_SECOND = 2
    PERFECT_SCORE_BONUS = 100
    STREAK_MULTIPLIER_STEP = 0.05    # per win in the current streak
    STREAK_MULTIPLIER_CAP = 10       # wins counted towards the multiplier
    RANK_BONUSES = {1: 200, 2: 150, 3: 100}
    RANK_BONUS_DEFAULT = 50

    # --- Levels ---
    XP_PER_LEVEL = 100

    # --- Engine plumbing ---
    INBOX_CAPACITY = 256
    SUBMIT_RETRIES = 2
    SUBMIT_TIMEOUT_SECONDS = 10
