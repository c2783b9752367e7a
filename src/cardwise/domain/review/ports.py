"""
Ports (interfaces) for the collaborators a review session talks to.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from .models import CardSchedulingState, DueCard


class CardRepository(ABC):
    """
    Port for reading due cards and writing scheduling updates.

    Implementations:
        - YamlDeckStore: A deck stored as a local YAML file.
        - RestCardRepository: A hosted PostgREST backend over HTTP.
        - InMemoryCardStore: Dict-backed store for tests and demos.
    """

    @abstractmethod
    async def fetch_due(self, deck_id: str, now: datetime) -> list[DueCard]:
        """
        Fetch every card in the deck whose next review is at or before `now`.

        Args:
            deck_id: The deck to review.
            now: The reference time.

        Returns:
            Cards ordered ascending by next_review_at (oldest due first).
        """
        pass

    @abstractmethod
    async def save_scheduling(self, card_id: str, state: CardSchedulingState) -> None:
        """
        Persist the new scheduling fields of a single card atomically.

        Raises:
            PersistenceFailure: If the store rejects the write.
        """
        pass

    async def aclose(self) -> None:
        """Release connections held by the store. Nothing to release by default."""
        return None


class ActivityCounter(ABC):
    """Port for the per-day review counter (create if absent, else increment)."""

    @abstractmethod
    async def increment_reviews(self, user_id: str, study_date: str, delta: int = 1) -> None:
        """
        Add `delta` to the count for `study_date` (YYYY-MM-DD in the user's zone).

        Raises:
            PersistenceFailure: If the store rejects the write.
        """
        pass


class SpeechPlayer(ABC):
    """Port for best-effort text-to-speech playback."""

    @abstractmethod
    async def speak(self, text: str, lang: str) -> None:
        """
        Start reading `text` aloud in `lang`, interrupting any previous utterance.

        Returns once playback has started. Raises SpeechUnavailable on failure.
        """
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop the current utterance, if any."""
        pass
