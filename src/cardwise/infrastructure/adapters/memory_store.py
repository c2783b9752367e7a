"""In-memory card store. Useful for tests, demos and embedding."""

from collections import defaultdict
from dataclasses import replace
from datetime import datetime

from cardwise.application.dates import is_due
from cardwise.domain.errors import PersistenceFailure
from cardwise.domain.review.models import CardSchedulingState, DueCard
from cardwise.domain.review.ports import ActivityCounter, CardRepository


class InMemoryCardStore(CardRepository, ActivityCounter):
    def __init__(self, decks: dict[str, list[DueCard]] | None = None):
        self._decks: dict[str, list[DueCard]] = {k: list(v) for k, v in (decks or {}).items()}
        self.activity: dict[tuple[str, str], int] = defaultdict(int)

    def add(self, deck_id: str, card: DueCard) -> None:
        self._decks.setdefault(deck_id, []).append(card)

    def get(self, card_id: str) -> DueCard:
        for cards in self._decks.values():
            for card in cards:
                if card.card_id == card_id:
                    return card
        raise KeyError(card_id)

    async def fetch_due(self, deck_id: str, now: datetime) -> list[DueCard]:
        cards = self._decks.get(deck_id, [])
        return sorted(
            (card for card in cards if is_due(card.next_review_at, now)),
            key=lambda card: card.next_review_at,
        )

    async def save_scheduling(self, card_id: str, state: CardSchedulingState) -> None:
        for cards in self._decks.values():
            for i, card in enumerate(cards):
                if card.card_id == card_id:
                    cards[i] = replace(card, state=state)
                    return
        raise PersistenceFailure(f"Card {card_id} not found")

    async def increment_reviews(self, user_id: str, study_date: str, delta: int = 1) -> None:
        self.activity[(user_id, study_date)] += delta
