"""
Domain models for flashcard scheduling and review sessions.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from cardwise.domain.constants import CORRECT_THRESHOLD, DEFAULT_EASE_FACTOR


@dataclass(frozen=True)
class CardSchedulingState:
    """
    Persistent per-card scheduling record.

    Attributes:
        ease_factor: How quickly intervals grow. Never below 1.3.
        interval: Days until the next review. 0 means "again today, in a few minutes".
        repetition_count: Consecutive successful recalls.
        next_review_at: When the card becomes due again.
    """

    ease_factor: float
    interval: int
    repetition_count: int
    next_review_at: datetime

    @classmethod
    def new(cls, now: datetime) -> "CardSchedulingState":
        """Defaults for a card that was just added to a deck (due immediately)."""
        return cls(
            ease_factor=DEFAULT_EASE_FACTOR,
            interval=0,
            repetition_count=0,
            next_review_at=now,
        )

    @classmethod
    def from_stored(
        cls,
        ease_factor: float | None,
        interval: int | None,
        repetition_count: int | None,
        next_review_at: datetime,
    ) -> "CardSchedulingState":
        """Build a state from storage columns, filling null columns with defaults."""
        return cls(
            ease_factor=float(ease_factor) if ease_factor is not None else DEFAULT_EASE_FACTOR,
            interval=int(interval) if interval is not None else 0,
            repetition_count=int(repetition_count) if repetition_count is not None else 0,
            next_review_at=next_review_at,
        )


@dataclass(frozen=True)
class DueCard:
    """A card handed to a review session by the due-card query."""

    card_id: str
    front: str
    back: str
    state: CardSchedulingState
    note: str | None = None
    front_lang: str | None = None
    back_lang: str | None = None

    @property
    def next_review_at(self) -> datetime:
        return self.state.next_review_at


@dataclass(frozen=True)
class ReviewInput:
    """
    Everything the scheduler needs for one rating event.

    Attributes:
        quality: 0=Forgot, 1=Fuzzy, 2=Hard, 3=Good, 4=Easy.
        interval: Current interval in days.
        ease_factor: Current ease factor.
        repetition_count: Current consecutive success count.
    """

    quality: int
    interval: int
    ease_factor: float
    repetition_count: int

    @classmethod
    def for_state(cls, state: CardSchedulingState, quality: int) -> "ReviewInput":
        return cls(
            quality=quality,
            interval=state.interval,
            ease_factor=state.ease_factor,
            repetition_count=state.repetition_count,
        )


@dataclass(frozen=True)
class ScheduleResult:
    """Scheduler output for one rating."""

    interval: int
    ease_factor: float
    repetitions: int
    next_review: datetime

    def to_state(self) -> CardSchedulingState:
        return CardSchedulingState(
            ease_factor=self.ease_factor,
            interval=self.interval,
            repetition_count=self.repetitions,
            next_review_at=self.next_review,
        )


class SessionPhase(str, Enum):
    LOADING = "loading"
    FRONT_SHOWN = "front_shown"
    BACK_SHOWN = "back_shown"
    COMPLETE = "complete"


@dataclass
class SessionStats:
    """Session-local counters. Discarded when the session ends."""

    reviewed: int = 0
    correct: int = 0
    incorrect: int = 0

    def record(self, quality: int) -> None:
        self.reviewed += 1
        if quality >= CORRECT_THRESHOLD:
            self.correct += 1
        else:
            self.incorrect += 1


@dataclass(frozen=True)
class SessionSummary:
    """
    What the completion screen shows.

    `nothing_due` separates "the queue was empty at load time" from
    "the user finished a non-empty session".
    """

    reviewed: int
    correct: int
    incorrect: int
    accuracy: int  # percent, 0-100
    nothing_due: bool
    load_error: str | None = None

    @property
    def headline(self) -> str:
        if self.nothing_due:
            return "No cards due. Come back tomorrow!"
        noun = "card" if self.reviewed == 1 else "cards"
        return f"Review complete! You reviewed {self.reviewed} {noun} ({self.accuracy}% correct)."
