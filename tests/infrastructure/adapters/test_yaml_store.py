from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest
import yaml

from cardwise.application.review_session import ReviewSession
from cardwise.domain.errors import PersistenceFailure
from cardwise.domain.review.models import CardSchedulingState
from cardwise.infrastructure.adapters.yaml_store import YamlDeckStore

TAIPEI = ZoneInfo("Asia/Taipei")
NOW = datetime(2026, 10, 19, 15, 42, tzinfo=TAIPEI)


@pytest.fixture
def deck_file(tmp_path):
    return tmp_path / "spanish.yaml"


@pytest.fixture
def store(deck_file):
    return YamlDeckStore.create(deck_file, title="Spanish", front_lang="en-US", back_lang="es-ES")


def test_create_writes_empty_deck(store, deck_file):
    data = yaml.safe_load(deck_file.read_text(encoding="utf-8"))

    assert data["deck"] == {
        "id": "spanish",
        "title": "Spanish",
        "front_lang": "en-US",
        "back_lang": "es-ES",
    }
    assert data["cards"] == []
    assert store.deck_id == "spanish"


def test_create_refuses_to_overwrite(store, deck_file):
    with pytest.raises(PersistenceFailure):
        YamlDeckStore.create(deck_file)


def test_add_card_uses_new_card_defaults(store):
    card = store.add_card("house", "casa", note="feminine", now=NOW)

    assert card.card_id.startswith("card_")
    assert card.state == CardSchedulingState(2.5, 0, 0, NOW)
    assert card.back_lang == "es-ES"
    assert store.list_cards(NOW) == [card]


@pytest.mark.asyncio
async def test_fetch_due_orders_and_filters(store):
    late = store.add_card("late", "tarde", now=NOW - timedelta(hours=1))
    early = store.add_card("early", "temprano", now=NOW - timedelta(days=2))
    store.add_card("future", "futuro", now=NOW + timedelta(days=1))

    due = await store.fetch_due("spanish", NOW)

    assert [c.card_id for c in due] == [early.card_id, late.card_id]


@pytest.mark.asyncio
async def test_fetch_due_unknown_deck(store):
    with pytest.raises(PersistenceFailure):
        await store.fetch_due("french", NOW)


@pytest.mark.asyncio
async def test_save_scheduling_round_trip(store, deck_file):
    card = store.add_card("house", "casa", now=NOW)
    new_state = CardSchedulingState(2.6, 7, 2, datetime(2026, 10, 26, tzinfo=TAIPEI))

    await store.save_scheduling(card.card_id, new_state)

    reloaded = YamlDeckStore(deck_file).list_cards(NOW)[0]
    assert reloaded.state == new_state
    assert reloaded.front == "house"


@pytest.mark.asyncio
async def test_save_unknown_card(store):
    with pytest.raises(PersistenceFailure):
        await store.save_scheduling("card_missing", CardSchedulingState.new(NOW))


@pytest.mark.asyncio
async def test_increment_reviews_upserts_per_day(store):
    await store.increment_reviews("local", "2026-10-18")
    await store.increment_reviews("local", "2026-10-19")
    await store.increment_reviews("local", "2026-10-19", delta=2)
    await store.increment_reviews("someone", "2026-10-19")

    assert store.study_days("local") == [date(2026, 10, 18), date(2026, 10, 19)]
    assert store.study_days("nobody") == []


@pytest.mark.asyncio
async def test_hand_written_dates_are_normalized(deck_file):
    deck_file.write_text(
        "deck:\n"
        "  id: kanji\n"
        "cards:\n"
        "  - id: c1\n"
        "    front: 水\n"
        "    back: water\n"
        "    next_review_at: 2026-10-18 08:00:00+09:00\n"
        "study_log:\n"
        "  local:\n"
        "    2026-10-18: 4\n",
        encoding="utf-8",
    )
    store = YamlDeckStore(deck_file)

    await store.increment_reviews("local", "2026-10-18")
    due = await store.fetch_due("kanji", NOW)

    assert store.study_days("local") == [date(2026, 10, 18)]
    assert yaml.safe_load(deck_file.read_text(encoding="utf-8"))["study_log"]["local"] == {
        "2026-10-18": 5
    }
    # Missing scheduling columns fall back to new-card defaults.
    assert due[0].state.ease_factor == 2.5
    assert due[0].state.repetition_count == 0


def test_unreadable_file_is_persistence_failure(tmp_path):
    broken = tmp_path / "broken.yaml"
    broken.write_text("cards: [unclosed", encoding="utf-8")

    with pytest.raises(PersistenceFailure):
        YamlDeckStore(broken).list_cards(NOW)
    with pytest.raises(PersistenceFailure):
        YamlDeckStore(tmp_path / "missing.yaml").list_cards(NOW)


@pytest.mark.asyncio
async def test_blank_sections_read_as_empty(deck_file):
    deck_file.write_text("deck:\ncards:\nstudy_log:\n", encoding="utf-8")
    store = YamlDeckStore(deck_file)

    assert store.list_cards(NOW) == []
    assert store.study_days("local") == []
    assert await store.fetch_due("spanish", NOW) == []


@pytest.mark.parametrize(
    "card",
    [
        "  - front: no id\n",
        "  - id: c1\n    interval: soon\n",
        "  - id: c1\n    next_review_at: next tuesday\n",
    ],
)
def test_malformed_card_is_persistence_failure(deck_file, card):
    deck_file.write_text(f"deck:\n  id: spanish\ncards:\n{card}", encoding="utf-8")

    with pytest.raises(PersistenceFailure):
        YamlDeckStore(deck_file).list_cards(NOW)


@pytest.mark.asyncio
async def test_malformed_deck_file_gives_empty_session(deck_file):
    deck_file.write_text("deck:\n  id: spanish\ncards:\n  - front: no id\n", encoding="utf-8")
    store = YamlDeckStore(deck_file)
    session = ReviewSession(
        deck_id="spanish", user_id="local", cards=store, activity=store, clock=lambda: NOW
    )

    await session.load()

    assert session.is_complete
    summary = session.summary()
    assert summary.nothing_due
    assert "Malformed card" in summary.load_error


@pytest.mark.asyncio
async def test_review_session_against_deck_file(store, deck_file):
    store.add_card("house", "casa", now=NOW - timedelta(days=1))
    store.add_card("dog", "perro", now=NOW - timedelta(hours=2))

    session = ReviewSession(
        deck_id=store.deck_id, user_id="local", cards=store, activity=store, clock=lambda: NOW
    )
    await session.load()
    for quality in (4, 0):
        await session.flip()
        await session.rate(quality)

    cards = {c.front: c.state for c in YamlDeckStore(deck_file).list_cards(NOW)}
    assert cards["house"].interval == 1
    assert cards["house"].next_review_at == datetime(2026, 10, 20, tzinfo=TAIPEI)
    assert cards["dog"].interval == 0
    assert cards["dog"].next_review_at == NOW + timedelta(minutes=10)
    assert store.study_days("local") == [date(2026, 10, 19)]
