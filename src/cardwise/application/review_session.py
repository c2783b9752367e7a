"""
Review session controller.

Drives one pass over the cards that are due in a deck:

    LOADING -> FRONT_SHOWN <-> BACK_SHOWN -> ... -> COMPLETE

The queue is fixed at load time (oldest due first). Each rating is scheduled,
persisted, counted towards today's activity and then the next card is shown.
Storage and speech failures are logged and never interrupt the session.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from ulid import ULID

from cardwise.application.dates import is_due, local_date_string, local_now
from cardwise.application.scheduler import calculate_sm2
from cardwise.application.speech import resolve_language
from cardwise.application.study_stats import accuracy_percent
from cardwise.domain.constants import DEFAULT_PERSIST_ATTEMPTS
from cardwise.domain.errors import PersistenceFailure, SessionStateError, SpeechUnavailable
from cardwise.domain.review.models import (
    CardSchedulingState,
    DueCard,
    ReviewInput,
    ScheduleResult,
    SessionPhase,
    SessionStats,
    SessionSummary,
)
from cardwise.domain.review.ports import ActivityCounter, CardRepository, SpeechPlayer

logger = logging.getLogger(__name__)


class ReviewSession:
    """
    One user-initiated review of a deck. Never persisted itself.

    Depends only on the CardRepository, ActivityCounter and SpeechPlayer ports.
    """

    def __init__(
        self,
        deck_id: str,
        user_id: str,
        cards: CardRepository,
        activity: ActivityCounter,
        speech: SpeechPlayer | None = None,
        clock: Callable[[], datetime] = local_now,
        persist_attempts: int = DEFAULT_PERSIST_ATTEMPTS,
    ):
        """
        Args:
            deck_id: Deck to review.
            user_id: Owner of the daily activity counter.
            cards: Source of due cards and sink for scheduling updates.
            activity: Daily review counter.
            speech: Optional text-to-speech player.
            clock: Returns the current (timezone-aware) time.
            persist_attempts: Tries per storage write before giving up on it.
        """
        self.deck_id = deck_id
        self.user_id = user_id
        self.session_id = f"review_{ULID()}"
        self._cards = cards
        self._activity = activity
        self._speech = speech
        self._clock = clock
        self._persist_attempts = max(1, persist_attempts)

        self.phase = SessionPhase.LOADING
        self.queue: list[DueCard] = []
        self.cursor = 0
        self.stats = SessionStats()
        self.load_error: str | None = None
        self.unsaved_card_ids: list[str] = []

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def flipped(self) -> bool:
        return self.phase is SessionPhase.BACK_SHOWN

    @property
    def is_complete(self) -> bool:
        return self.phase is SessionPhase.COMPLETE

    @property
    def current_card(self) -> DueCard | None:
        if self.phase in (SessionPhase.FRONT_SHOWN, SessionPhase.BACK_SHOWN):
            return self.queue[self.cursor]
        return None

    @property
    def progress(self) -> tuple[int, int]:
        """(1-based position of the current card, queue length)."""
        return min(self.cursor + 1, len(self.queue)), len(self.queue)

    def _require(self, action: str, *phases: SessionPhase) -> None:
        if self.phase not in phases:
            allowed = ", ".join(p.value for p in phases)
            raise SessionStateError(
                f"Cannot {action} while {self.phase.value} (allowed: {allowed})"
            )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def load(self) -> list[DueCard]:
        """
        Fetch the due queue and show the first card.

        A failed fetch is treated like an empty deck: the session completes
        with nothing reviewed, and `load_error` records why.
        """
        self._require("load", SessionPhase.LOADING)
        now = self._clock()

        try:
            fetched = await self._cards.fetch_due(self.deck_id, now)
        except PersistenceFailure as e:
            logger.warning(f"[{self.session_id}] Failed to load due cards for {self.deck_id}: {e}")
            self.load_error = str(e)
            fetched = []

        # Stable sort keeps the store's order for equal due times.
        self.queue = sorted(
            (card for card in fetched if is_due(card.next_review_at, now)),
            key=lambda card: card.next_review_at,
        )
        logger.info(f"[{self.session_id}] {len(self.queue)} cards due in {self.deck_id}")

        if self.queue:
            self.phase = SessionPhase.FRONT_SHOWN
        else:
            self.phase = SessionPhase.COMPLETE
        return list(self.queue)

    async def flip(self) -> None:
        """Reveal the answer and read it aloud in the back language."""
        self._require("flip", SessionPhase.FRONT_SHOWN)
        self.phase = SessionPhase.BACK_SHOWN
        card = self.queue[self.cursor]
        await self._speak(card.back, card.back_lang)

    async def flip_back(self) -> None:
        """Return to the question side and read it aloud in the front language."""
        self._require("flip back", SessionPhase.BACK_SHOWN)
        self.phase = SessionPhase.FRONT_SHOWN
        card = self.queue[self.cursor]
        await self._speak(card.front, card.front_lang)

    async def rate(self, quality: int) -> ScheduleResult:
        """
        Rate the current card and move on.

        Only allowed once the answer has been revealed.

        Raises:
            SessionStateError: If the back side is not shown.
            InvalidInput: If `quality` is not 0-4. The session is left unchanged.
        """
        self._require("rate", SessionPhase.BACK_SHOWN)
        card = self.queue[self.cursor]
        now = self._clock()

        result = calculate_sm2(ReviewInput.for_state(card.state, quality), now)
        logger.debug(
            f"[{self.session_id}] card={card.card_id} q={quality} "
            f"interval={result.interval} ease={result.ease_factor}"
        )

        await self._persist(card, result.to_state())
        await self._count_activity(now)
        self.stats.record(quality)

        self.cursor += 1
        if self.cursor >= len(self.queue):
            self.phase = SessionPhase.COMPLETE
            logger.info(
                f"[{self.session_id}] Session complete: {self.stats.reviewed} reviewed, "
                f"{self.stats.correct} correct"
            )
        else:
            self.phase = SessionPhase.FRONT_SHOWN
        return result

    def end(self) -> None:
        """Leave the session early. Remaining cards stay due."""
        if self.phase is not SessionPhase.COMPLETE:
            logger.info(f"[{self.session_id}] Ended after {self.stats.reviewed} reviews")
        self.phase = SessionPhase.COMPLETE
        if self._speech is not None:
            self._speech.stop()

    async def close(self) -> None:
        """Stop speech and release the store's connections. Safe to call in any phase."""
        if self._speech is not None:
            self._speech.stop()
        await self._cards.aclose()

    # ------------------------------------------------------------------
    # Speech
    # ------------------------------------------------------------------

    async def speak_current(self) -> None:
        """Replay the visible side of the current card."""
        self._require("speak", SessionPhase.FRONT_SHOWN, SessionPhase.BACK_SHOWN)
        card = self.queue[self.cursor]
        if self.flipped:
            await self._speak(card.back, card.back_lang)
        else:
            await self._speak(card.front, card.front_lang)

    async def speak_note(self) -> None:
        """Read the card's note in the back language."""
        self._require("speak the note", SessionPhase.BACK_SHOWN)
        card = self.queue[self.cursor]
        if card.note:
            await self._speak(card.note, card.back_lang)

    async def _speak(self, text: str, lang: str | None) -> None:
        if self._speech is None:
            return
        resolved = resolve_language(lang, text)
        if resolved is None:
            return
        try:
            await self._speech.speak(text, resolved)
        except SpeechUnavailable as e:
            logger.debug(f"[{self.session_id}] Speech unavailable: {e}")

    # ------------------------------------------------------------------
    # Side effects
    # ------------------------------------------------------------------

    async def _persist(self, card: DueCard, state: CardSchedulingState) -> None:
        for attempt in range(1, self._persist_attempts + 1):
            try:
                await self._cards.save_scheduling(card.card_id, state)
                return
            except PersistenceFailure as e:
                logger.warning(
                    f"[{self.session_id}] Saving card {card.card_id} failed "
                    f"(attempt {attempt}/{self._persist_attempts}): {e}"
                )
        self.unsaved_card_ids.append(card.card_id)
        logger.error(f"[{self.session_id}] Rating for card {card.card_id} was not saved")

    async def _count_activity(self, now: datetime) -> None:
        try:
            await self._activity.increment_reviews(self.user_id, local_date_string(now), 1)
        except PersistenceFailure as e:
            logger.warning(f"[{self.session_id}] Failed to update daily activity: {e}")

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    def summary(self) -> SessionSummary:
        """Completion summary. Only available once the session is complete."""
        self._require("summarize", SessionPhase.COMPLETE)
        return SessionSummary(
            reviewed=self.stats.reviewed,
            correct=self.stats.correct,
            incorrect=self.stats.incorrect,
            accuracy=accuracy_percent(self.stats.correct, self.stats.reviewed),
            nothing_due=not self.queue,
            load_error=self.load_error,
        )
