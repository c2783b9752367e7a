"""Centralized constants for the cardwise scheduler and review flow.

All magic numbers live here so every layer imports from a single source of truth.
"""

# ---------- Ratings ----------
MIN_QUALITY = 0
MAX_QUALITY = 4
CORRECT_THRESHOLD = 2  # session stats: quality >= 2 counts as "correct"

# ---------- SM-2 ----------
DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3
FAILURE_EASE_PENALTY = 0.2
SUCCESS_INTERNAL_QUALITY = 3  # on the internal 0-5 scale
SECOND_INTERVAL_DAYS = {2: 3, 3: 6, 4: 7}
HARD_MULTIPLIER = 1.5
EASY_BONUS = 1.2
MAX_INTERVAL_DAYS = 36500  # about a century

# ---------- Due dates ----------
RELEARN_DELAY_MINUTES = 10

# ---------- Speech ----------
NO_LANGUAGE = "none"
AUTO_LANGUAGE = "auto"

# ---------- Persistence ----------
DEFAULT_PERSIST_ATTEMPTS = 1
REQUEST_TIMEOUT = 10.0
