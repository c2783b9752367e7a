"""
REST Card Repository: Infrastructure adapter for a hosted PostgREST backend.

Tables used:
    decks        (id, front_lang, back_lang)
    flashcards   (id, deck_id, front, back, note, ease_factor, interval,
                  repetition_count, next_review_at)
    study_logs   (id, user_id, study_date, flashcards_reviewed, ...)
"""

import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from cardwise.domain.constants import REQUEST_TIMEOUT
from cardwise.domain.errors import PersistenceFailure
from cardwise.domain.review.models import CardSchedulingState, DueCard
from cardwise.domain.review.ports import ActivityCounter, CardRepository


class RestCardRepository(CardRepository, ActivityCounter):
    """Talks to the backend's REST endpoint (`<url>/rest/v1/<table>`)."""

    def __init__(self, url: str, api_key: str, client: httpx.AsyncClient | None = None):
        self.logger = logging.getLogger(__name__)
        self.url = url.rstrip("/")
        self._client = client
        self._headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "Prefer": "return=minimal",
        }

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=REQUEST_TIMEOUT)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        table: str,
        params: dict[str, str] | None = None,
        payload: dict[str, Any] | None = None,
    ) -> Any:
        endpoint = f"{self.url}/rest/v1/{table}"
        try:
            resp = await self._get_client().request(
                method, endpoint, params=params, json=payload, headers=self._headers
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise PersistenceFailure(f"{method} {table} failed: {e}") from e

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise PersistenceFailure(f"{method} {table} returned invalid JSON: {e}") from e

    # ------------------------------------------------------------------
    # CardRepository
    # ------------------------------------------------------------------

    async def fetch_due(self, deck_id: str, now: datetime) -> list[DueCard]:
        decks = await self._request(
            "GET",
            "decks",
            params={"select": "id,front_lang,back_lang", "id": f"eq.{deck_id}"},
        )
        deck = decks[0] if decks else {}
        if not deck:
            self.logger.warning(f"Deck {deck_id} not found, reviewing without speech settings")

        rows = await self._request(
            "GET",
            "flashcards",
            params={
                "select": "*",
                "deck_id": f"eq.{deck_id}",
                "next_review_at": f"lte.{_to_utc_iso(now)}",
                "order": "next_review_at.asc",
            },
        )
        return [self._to_card(row, deck, now) for row in rows or []]

    def _to_card(self, row: dict[str, Any], deck: dict[str, Any], now: datetime) -> DueCard:
        try:
            raw_due = row.get("next_review_at")
            next_review = datetime.fromisoformat(raw_due) if raw_due else now
            if next_review.tzinfo is None:
                next_review = next_review.replace(tzinfo=timezone.utc)

            return DueCard(
                card_id=str(row["id"]),
                front=row.get("front") or "",
                back=row.get("back") or "",
                note=row.get("note"),
                state=CardSchedulingState.from_stored(
                    ease_factor=row.get("ease_factor"),
                    interval=row.get("interval"),
                    repetition_count=row.get("repetition_count"),
                    next_review_at=next_review,
                ),
                front_lang=deck.get("front_lang"),
                back_lang=deck.get("back_lang"),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise PersistenceFailure(f"Malformed flashcard row {row!r}: {e!r}") from e

    async def save_scheduling(self, card_id: str, state: CardSchedulingState) -> None:
        await self._request(
            "PATCH",
            "flashcards",
            params={"id": f"eq.{card_id}"},
            payload={
                "ease_factor": state.ease_factor,
                "interval": state.interval,
                "repetition_count": state.repetition_count,
                "next_review_at": _to_utc_iso(state.next_review_at),
            },
        )

    # ------------------------------------------------------------------
    # ActivityCounter
    # ------------------------------------------------------------------

    async def increment_reviews(self, user_id: str, study_date: str, delta: int = 1) -> None:
        rows = await self._request(
            "GET",
            "study_logs",
            params={
                "select": "id,flashcards_reviewed",
                "user_id": f"eq.{user_id}",
                "study_date": f"eq.{study_date}",
            },
        )

        if rows:
            existing = rows[0]
            await self._request(
                "PATCH",
                "study_logs",
                params={"id": f"eq.{existing['id']}"},
                payload={
                    "flashcards_reviewed": (existing.get("flashcards_reviewed") or 0) + delta,
                    "updated_at": _to_utc_iso(datetime.now(timezone.utc)),
                },
            )
        else:
            await self._request(
                "POST",
                "study_logs",
                payload={
                    "user_id": user_id,
                    "study_date": study_date,
                    "flashcards_reviewed": delta,
                    "questions_practiced": 0,
                    "study_minutes": 0,
                    "pomodoro_sessions": 0,
                },
            )


def _to_utc_iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat()
