"""
YAML Deck Store: Infrastructure adapter for a deck kept in a local YAML file.

File layout:

    deck:
      id: spanish
      title: Spanish basics
      front_lang: en-US
      back_lang: es-ES
    cards:
      - id: card_01J...
        front: house
        back: casa
        note: null
        ease_factor: 2.5
        interval: 0
        repetition_count: 0
        next_review_at: '2026-10-19T00:00:00+08:00'
    study_log:
      local:
        '2026-10-19': 12

Every write rewrites the whole file through a temp file, so a card update is
either fully applied or not at all.
"""

import logging
import os
import tempfile
from datetime import date, datetime
from pathlib import Path
from typing import Any

import yaml
from ulid import ULID

from cardwise.application.dates import ensure_aware, is_due, local_now
from cardwise.domain.errors import PersistenceFailure
from cardwise.domain.review.models import CardSchedulingState, DueCard
from cardwise.domain.review.ports import ActivityCounter, CardRepository

logger = logging.getLogger(__name__)


def generate_card_id() -> str:
    """Generate a stable card ID using ULID."""
    return f"card_{ULID()}"


class YamlDeckStore(CardRepository, ActivityCounter):
    """
    Reads and writes a single deck file.

    Implements both the card repository and the daily activity counter.
    """

    def __init__(self, path: Path, tz_name: str | None = None):
        self.path = Path(path)
        self.tz_name = tz_name

    @classmethod
    def create(
        cls,
        path: Path,
        deck_id: str | None = None,
        title: str | None = None,
        front_lang: str | None = None,
        back_lang: str | None = None,
        tz_name: str | None = None,
    ) -> "YamlDeckStore":
        """Create an empty deck file. Fails if the file already exists."""
        path = Path(path)
        if path.exists():
            raise PersistenceFailure(f"Deck file already exists: {path}")

        store = cls(path, tz_name=tz_name)
        store._write(
            {
                "deck": {
                    "id": deck_id or path.stem,
                    "title": title or path.stem,
                    "front_lang": front_lang,
                    "back_lang": back_lang,
                },
                "cards": [],
                "study_log": {},
            }
        )
        logger.info(f"Created deck file {path}")
        return store

    # ------------------------------------------------------------------
    # File access
    # ------------------------------------------------------------------

    def _read(self) -> dict[str, Any]:
        try:
            content = self.path.read_text(encoding="utf-8")
            data = yaml.safe_load(content) or {}
        except (OSError, yaml.YAMLError) as e:
            raise PersistenceFailure(f"Could not read deck file {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise PersistenceFailure(f"Deck file {self.path} is not a mapping")
        # Blank keys parse as None.
        data["deck"] = data.get("deck") or {}
        data["cards"] = data.get("cards") or []
        data["study_log"] = data.get("study_log") or {}
        if not isinstance(data["deck"], dict) or not isinstance(data["study_log"], dict):
            raise PersistenceFailure(f"Deck file {self.path} has a malformed deck or study_log")
        if not isinstance(data["cards"], list):
            raise PersistenceFailure(f"Deck file {self.path} has a malformed cards list")
        # PyYAML turns unquoted dates into date objects; key the log by ISO string.
        for user_id, log in list(data["study_log"].items()):
            log = log or {}
            if not isinstance(log, dict):
                raise PersistenceFailure(f"Deck file {self.path} has a malformed log for {user_id}")
            data["study_log"][user_id] = {str(k): v for k, v in log.items()}
        return data

    def _write(self, data: dict[str, Any]) -> None:
        dumped = yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_name = None
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(dumped)
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise PersistenceFailure(f"Could not write deck file {self.path}: {e}") from e

    def _parse_time(self, value: Any, fallback: datetime) -> datetime:
        if value is None:
            return fallback
        if isinstance(value, datetime):
            return ensure_aware(value, self.tz_name)
        try:
            return ensure_aware(datetime.fromisoformat(str(value)), self.tz_name)
        except ValueError as e:
            raise PersistenceFailure(f"Bad timestamp {value!r} in {self.path}") from e

    def _to_card(self, raw: dict[str, Any], deck: dict[str, Any], now: datetime) -> DueCard:
        try:
            card_id = str(raw["id"])
            state = CardSchedulingState.from_stored(
                ease_factor=raw.get("ease_factor"),
                interval=raw.get("interval"),
                repetition_count=raw.get("repetition_count"),
                next_review_at=self._parse_time(raw.get("next_review_at"), now),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise PersistenceFailure(f"Malformed card {raw!r} in {self.path}: {e!r}") from e
        return DueCard(
            card_id=card_id,
            front=str(raw.get("front", "")),
            back=str(raw.get("back", "")),
            note=raw.get("note"),
            state=state,
            front_lang=deck.get("front_lang"),
            back_lang=deck.get("back_lang"),
        )

    # ------------------------------------------------------------------
    # Deck
    # ------------------------------------------------------------------

    @property
    def deck_id(self) -> str:
        return str(self._read()["deck"].get("id") or self.path.stem)

    def list_cards(self, now: datetime | None = None) -> list[DueCard]:
        """All cards in file order, due or not."""
        now = now or local_now(self.tz_name)
        data = self._read()
        return [self._to_card(raw, data["deck"], now) for raw in data["cards"]]

    def add_card(
        self,
        front: str,
        back: str,
        note: str | None = None,
        now: datetime | None = None,
    ) -> DueCard:
        """Append a new card with default scheduling, due immediately."""
        now = now or local_now(self.tz_name)
        data = self._read()
        state = CardSchedulingState.new(now)
        raw = {
            "id": generate_card_id(),
            "front": front,
            "back": back,
            "note": note,
            **self._dump_state(state),
        }
        data["cards"].append(raw)
        self._write(data)
        logger.info(f"Added {raw['id']} to {self.path}")
        return self._to_card(raw, data["deck"], now)

    @staticmethod
    def _dump_state(state: CardSchedulingState) -> dict[str, Any]:
        return {
            "ease_factor": state.ease_factor,
            "interval": state.interval,
            "repetition_count": state.repetition_count,
            "next_review_at": state.next_review_at.isoformat(),
        }

    # ------------------------------------------------------------------
    # CardRepository
    # ------------------------------------------------------------------

    async def fetch_due(self, deck_id: str, now: datetime) -> list[DueCard]:
        data = self._read()
        file_deck_id = str(data["deck"].get("id") or self.path.stem)
        if deck_id != file_deck_id:
            raise PersistenceFailure(f"Deck {deck_id!r} not found in {self.path}")

        cards = [self._to_card(raw, data["deck"], now) for raw in data["cards"]]
        due = [card for card in cards if is_due(card.next_review_at, now)]
        return sorted(due, key=lambda card: card.next_review_at)

    async def save_scheduling(self, card_id: str, state: CardSchedulingState) -> None:
        data = self._read()
        for raw in data["cards"]:
            if str(raw.get("id")) == card_id:
                raw.update(self._dump_state(state))
                break
        else:
            raise PersistenceFailure(f"Card {card_id} not found in {self.path}")
        self._write(data)

    # ------------------------------------------------------------------
    # ActivityCounter
    # ------------------------------------------------------------------

    async def increment_reviews(self, user_id: str, study_date: str, delta: int = 1) -> None:
        data = self._read()
        log = data["study_log"].setdefault(user_id, {})
        log[study_date] = int(log.get(study_date) or 0) + delta
        self._write(data)

    def study_days(self, user_id: str) -> list[date]:
        """Days with at least one review for `user_id`."""
        log = self._read()["study_log"].get(user_id) or {}
        return sorted(date.fromisoformat(key) for key, count in log.items() if count)
