"""
Collaborator factory.
Centralizes the logic for selecting the storage and speech adapters.
"""

import logging

from cardwise.application.config import AppConfig
from cardwise.application.dates import local_now
from cardwise.application.review_session import ReviewSession
from cardwise.domain.errors import InvalidInput
from cardwise.domain.review.ports import SpeechPlayer
from cardwise.infrastructure.adapters.rest_store import RestCardRepository
from cardwise.infrastructure.adapters.speech_command import CommandSpeechPlayer
from cardwise.infrastructure.adapters.yaml_store import YamlDeckStore

logger = logging.getLogger(__name__)


def get_card_store(config: AppConfig) -> YamlDeckStore | RestCardRepository:
    """
    Returns the store for the configured backend.

    Both stores implement CardRepository and ActivityCounter.
    """
    if config.backend == "rest":
        if not config.rest_url or not config.rest_api_key:
            raise InvalidInput("The rest backend needs rest_url and rest_api_key")
        return RestCardRepository(url=config.rest_url, api_key=config.rest_api_key)

    if config.deck_file is None:
        raise InvalidInput("No deck file given (pass a path or set CARDWISE_DECK_FILE)")
    return YamlDeckStore(config.deck_file, tz_name=config.timezone)


def get_speech_player(config: AppConfig) -> SpeechPlayer | None:
    if not config.speech_enabled:
        return None
    player = CommandSpeechPlayer(command=config.speech_command)
    if not player.available:
        logger.debug("No speech command found, speech disabled")
        return None
    return player


def build_review_session(config: AppConfig) -> ReviewSession:
    """Wire a ReviewSession to the configured collaborators."""
    store = get_card_store(config)

    if isinstance(store, YamlDeckStore):
        deck_id = config.deck_id or store.deck_id
    else:
        if not config.deck_id:
            raise InvalidInput("The rest backend needs a deck_id")
        deck_id = config.deck_id

    return ReviewSession(
        deck_id=deck_id,
        user_id=config.user_id,
        cards=store,
        activity=store,
        speech=get_speech_player(config),
        clock=lambda: local_now(config.timezone),
        persist_attempts=config.persist_attempts,
    )
