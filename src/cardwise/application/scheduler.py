"""
SM-2 scheduler.

Pure computation: the only outside input is "now", which callers may pass in.

Ratings use a 0-4 scale that is remapped onto SM-2's 0-5 scale, skipping
internal value 2:

    0 Forgot -> 0, 1 Fuzzy -> 1, 2 Hard -> 3, 3 Good -> 4, 4 Easy -> 5

so 0 and 1 are the only failing ratings.
"""

import math
from datetime import datetime

from cardwise.application.dates import local_now, next_review_at
from cardwise.domain.constants import (
    EASY_BONUS,
    FAILURE_EASE_PENALTY,
    HARD_MULTIPLIER,
    MAX_INTERVAL_DAYS,
    MAX_QUALITY,
    MIN_EASE_FACTOR,
    MIN_QUALITY,
    SECOND_INTERVAL_DAYS,
    SUCCESS_INTERNAL_QUALITY,
)
from cardwise.domain.errors import InvalidInput
from cardwise.domain.review.models import CardSchedulingState, ReviewInput, ScheduleResult

RATING_LABELS = {
    0: "Forgot",
    1: "Fuzzy",
    2: "Hard",
    3: "Good",
    4: "Easy",
}


def _round_half_up(value: float, digits: int = 0) -> float:
    scale = 10**digits
    scaled = value * scale
    if not math.isfinite(scaled):
        return value
    return math.floor(scaled + 0.5) / scale


def validate_review(review: ReviewInput) -> None:
    """
    Reject inputs outside the scheduler's contract.

    Raises:
        InvalidInput: For an unknown rating or an impossible prior state.
    """
    quality = review.quality
    if isinstance(quality, bool) or not isinstance(quality, int):
        raise InvalidInput(f"Quality must be an integer, got {quality!r}")
    if not MIN_QUALITY <= quality <= MAX_QUALITY:
        raise InvalidInput(f"Quality must be between {MIN_QUALITY} and {MAX_QUALITY}, got {quality}")
    if review.interval < 0:
        raise InvalidInput(f"Interval cannot be negative, got {review.interval}")
    if review.repetition_count < 0:
        raise InvalidInput(f"Repetition count cannot be negative, got {review.repetition_count}")
    if not math.isfinite(review.ease_factor):
        raise InvalidInput(f"Ease factor must be a finite number, got {review.ease_factor}")
    if review.ease_factor < MIN_EASE_FACTOR:
        raise InvalidInput(
            f"Ease factor cannot be below {MIN_EASE_FACTOR}, got {review.ease_factor}"
        )


def calculate_sm2(review: ReviewInput, now: datetime | None = None) -> ScheduleResult:
    """
    Compute the next scheduling state for one rating.

    Args:
        review: The rating plus the card's current scheduling fields.
        now: Reference time for the due date. Defaults to the local time.

    Returns:
        ScheduleResult with the new interval, ease factor (2 decimals),
        repetition count and next review timestamp.
    """
    validate_review(review)
    if now is None:
        now = local_now()

    quality = review.quality
    internal = quality if quality <= 1 else quality + 1

    if internal < SUCCESS_INTERNAL_QUALITY:
        repetitions = 0
        # Forgot: again in a few minutes. Fuzzy: tomorrow.
        interval = 0 if quality == 0 else 1
        ease = max(MIN_EASE_FACTOR, review.ease_factor - FAILURE_EASE_PENALTY)
    else:
        repetitions = review.repetition_count + 1

        if repetitions == 1:
            interval = 1
        elif repetitions == 2:
            interval = SECOND_INTERVAL_DAYS[quality]
        else:
            if quality == 2:
                multiplier = HARD_MULTIPLIER
            elif quality == 3:
                multiplier = review.ease_factor
            else:
                multiplier = review.ease_factor * EASY_BONUS
            previous = min(review.interval, MAX_INTERVAL_DAYS)
            interval = int(_round_half_up(min(previous * multiplier, MAX_INTERVAL_DAYS)))

        gap = 5 - internal
        ease = review.ease_factor + (0.1 - gap * (0.08 + gap * 0.02))
        ease = max(MIN_EASE_FACTOR, ease)

    return ScheduleResult(
        interval=interval,
        ease_factor=_round_half_up(ease, 2),
        repetitions=repetitions,
        next_review=next_review_at(interval, now),
    )


def preview_ratings(
    state: CardSchedulingState, now: datetime | None = None
) -> dict[int, ScheduleResult]:
    """Result of every possible rating for a card, keyed by quality."""
    if now is None:
        now = local_now()
    return {
        quality: calculate_sm2(ReviewInput.for_state(state, quality), now)
        for quality in RATING_LABELS
    }


def next_review_text(days: int) -> str:
    """Short label for an interval, shown on the rating buttons."""
    if days == 0:
        return "10 minutes"
    if days == 1:
        return "tomorrow"
    if days < 7:
        return f"in {days} days"
    if days < 30:
        return _in_units(days / 7, "week")
    if days < 365:
        return _in_units(days / 30, "month")
    return _in_units(days / 365, "year")


def _in_units(amount: float, unit: str) -> str:
    count = int(_round_half_up(amount))
    return f"in {count} {unit}" if count == 1 else f"in {count} {unit}s"
