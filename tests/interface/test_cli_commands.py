"""Tests for CLI commands: help, add, review, preview, streak, config, logs and server."""

import json
import logging
from unittest.mock import patch

import yaml
from typer.testing import CliRunner

from cardwise.interface.cli import app

runner = CliRunner()


def _add(deck, front, back, *extra):
    return runner.invoke(app, ["add", str(deck), "--front", front, "--back", back, *extra])


# --- Help ---


def test_cli_help():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "Spaced-repetition flashcard reviews" in result.output
    assert "review" in result.output
    assert "preview" in result.output


# --- Add ---


def test_add_creates_deck_file(tmp_path, mock_home):
    deck = tmp_path / "spanish.yaml"

    result = _add(deck, "house", "casa", "--back-lang", "es-ES", "--note", "feminine")

    assert result.exit_code == 0, result.output
    card_id = result.output.strip()
    data = yaml.safe_load(deck.read_text(encoding="utf-8"))
    assert data["deck"]["id"] == "spanish"
    assert data["deck"]["back_lang"] == "es-ES"
    assert data["cards"][0]["id"] == card_id
    assert data["cards"][0]["interval"] == 0
    assert data["cards"][0]["ease_factor"] == 2.5


def test_add_appends_to_existing_deck(tmp_path, mock_home):
    deck = tmp_path / "spanish.yaml"
    _add(deck, "house", "casa")
    _add(deck, "dog", "perro")

    data = yaml.safe_load(deck.read_text(encoding="utf-8"))
    assert [c["front"] for c in data["cards"]] == ["house", "dog"]


def test_add_rejects_unsupported_language(tmp_path, mock_home):
    deck = tmp_path / "spanish.yaml"

    result = _add(deck, "house", "casa", "--back-lang", "klingon")

    assert result.exit_code == 1
    assert not deck.exists()


# --- Review ---


def test_review_session_end_to_end(tmp_path, mock_home):
    deck = tmp_path / "spanish.yaml"
    _add(deck, "house", "casa")
    _add(deck, "dog", "perro")

    # flip, rate Easy, flip, rate Forgot
    result = runner.invoke(app, ["review", str(deck), "--no-speech"], input="\n4\n\n0\n")

    assert result.exit_code == 0, result.output
    assert "[1/2] house" in result.output
    assert "casa" in result.output
    assert "Forgot (10 minutes)" in result.output
    assert "Review complete!" in result.output
    assert "Accuracy: 50%" in result.output

    cards = yaml.safe_load(deck.read_text(encoding="utf-8"))["cards"]
    assert cards[0]["interval"] == 1
    assert cards[0]["repetition_count"] == 1
    assert cards[1]["interval"] == 0
    assert cards[1]["ease_factor"] == 2.3


def test_review_rejects_out_of_range_rating(tmp_path, mock_home):
    deck = tmp_path / "spanish.yaml"
    _add(deck, "house", "casa")

    result = runner.invoke(app, ["review", str(deck), "--no-speech"], input="\n9\n3\n")

    assert result.exit_code == 0, result.output
    assert "Please enter a number from 0 to 4." in result.output
    assert "Accuracy: 100%" in result.output


def test_review_quit_early(tmp_path, mock_home):
    deck = tmp_path / "spanish.yaml"
    _add(deck, "house", "casa")

    result = runner.invoke(app, ["review", str(deck), "--no-speech"], input="q\n")

    assert result.exit_code == 0, result.output
    assert "You reviewed 0 cards" in result.output
    cards = yaml.safe_load(deck.read_text(encoding="utf-8"))["cards"]
    assert cards[0]["repetition_count"] == 0


def test_review_nothing_due(tmp_path, mock_home):
    deck = tmp_path / "spanish.yaml"
    _add(deck, "house", "casa")
    runner.invoke(app, ["review", str(deck), "--no-speech"], input="\n4\n")

    result = runner.invoke(app, ["review", str(deck), "--no-speech"])

    assert result.exit_code == 0, result.output
    assert "No cards due" in result.output
    assert "Accuracy" not in result.output


def test_review_missing_deck_file(tmp_path, mock_home):
    result = runner.invoke(app, ["review", str(tmp_path / "missing.yaml"), "--no-speech"])
    assert result.exit_code == 1


def test_review_without_deck(mock_home):
    result = runner.invoke(app, ["review", "--no-speech"])
    assert result.exit_code == 1


# --- Preview ---


def test_preview_lists_every_rating(mock_home):
    result = runner.invoke(app, ["preview", "--interval", "6", "--ease", "2.5", "--reps", "3"])

    assert result.exit_code == 0, result.output
    lines = result.output.strip().splitlines()
    assert len(lines) == 5
    assert lines[0].startswith("0 Forgot")
    assert "interval=15" in lines[3]


def test_preview_rejects_bad_state(mock_home):
    result = runner.invoke(app, ["preview", "--ease", "1.0"])
    assert result.exit_code == 1


# --- Streak ---


def test_streak_after_review(tmp_path, mock_home):
    deck = tmp_path / "spanish.yaml"
    _add(deck, "house", "casa")
    runner.invoke(app, ["review", str(deck), "--no-speech"], input="\n3\n")

    result = runner.invoke(app, ["streak", str(deck)])

    assert result.exit_code == 0, result.output
    assert "Study streak: 1 day" in result.output


# --- Config ---


def test_config_show(mock_home, monkeypatch):
    monkeypatch.setenv("CARDWISE_USER_ID", "ana")

    result = runner.invoke(app, ["config", "show"])

    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["backend"] == "yaml"
    assert data["user_id"] == "ana"


# --- Logging ---


def test_review_writes_log_file(tmp_path, mock_home):
    deck = tmp_path / "spanish.yaml"
    _add(deck, "house", "casa")

    result = runner.invoke(app, ["review", str(deck), "--no-speech"], input="\n3\n")

    assert result.exit_code == 0, result.output
    log_file = mock_home / ".config/cardwise/logs/cardwise.log"
    assert "1 cards due in spanish" in log_file.read_text(encoding="utf-8")


def test_verbosity_from_config_and_flag(mock_home, monkeypatch):
    monkeypatch.setenv("CARDWISE_VERBOSE", "0")
    runner.invoke(app, ["preview"])
    assert logging.getLogger("cardwise").level == logging.WARNING

    runner.invoke(app, ["-v", "preview"])
    assert logging.getLogger("cardwise").level == logging.DEBUG


@patch("subprocess.run")
def test_logs_opens_log_dir(mock_run, mock_home):
    with patch("cardwise.interface.cli.sys.platform", "linux"):
        result = runner.invoke(app, ["logs"])

    assert result.exit_code == 0, result.output
    log_dir = mock_home / ".config/cardwise/logs"
    assert log_dir.is_dir()
    mock_run.assert_called_once_with(["xdg-open", str(log_dir)])


# --- Server ---


@patch("uvicorn.run")
def test_server_command(mock_run):
    result = runner.invoke(app, ["server", "--port", "9000"])
    assert result.exit_code == 0
    mock_run.assert_called_with("cardwise.server:app", host="127.0.0.1", port=9000, reload=False)
