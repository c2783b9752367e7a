"""Study statistics derived from session counters and the daily review log."""

import math
from collections.abc import Iterable
from datetime import date, timedelta


def accuracy_percent(correct: int, reviewed: int) -> int:
    """Share of correct ratings as a whole percentage (0 when nothing was reviewed)."""
    if reviewed <= 0:
        return 0
    return math.floor(correct / reviewed * 100 + 0.5)


def study_streak(days: Iterable[date], today: date) -> int:
    """
    Count consecutive study days ending today.

    If there is no record for today yet, a streak that ended yesterday still
    counts, so the streak doesn't reset before the user has had a chance to study.
    """
    studied = set(days)
    cursor = today if today in studied else today - timedelta(days=1)

    streak = 0
    while cursor in studied:
        streak += 1
        cursor -= timedelta(days=1)
    return streak
