from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

TAIPEI = ZoneInfo("Asia/Taipei")


@pytest.fixture
def now():
    """Mid-afternoon local time, so day-granular due dates visibly snap to midnight."""
    return datetime(2026, 10, 19, 15, 42, 7, tzinfo=TAIPEI)


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config/logs
    monkeypatch.setenv("HOME", str(home))
    for var in (
        "CARDWISE_BACKEND",
        "CARDWISE_DECK_FILE",
        "CARDWISE_TIMEZONE",
        "CARDWISE_USER_ID",
        "CARDWISE_VERBOSE",
        "CARDWISE_LOG_DIR",
    ):
        monkeypatch.delenv(var, raising=False)
    return home
