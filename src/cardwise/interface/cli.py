"""cardwise CLI: review sessions, deck editing, previews and the HTTP server."""

import asyncio
import json
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Annotated

import typer

from cardwise.application.config import AppConfig, resolve_config
from cardwise.application.dates import local_now
from cardwise.application.factory import build_review_session
from cardwise.application.review_session import ReviewSession
from cardwise.application.scheduler import RATING_LABELS, next_review_text, preview_ratings
from cardwise.application.speech import check_language
from cardwise.application.study_stats import study_streak
from cardwise.domain.errors import CardwiseError
from cardwise.domain.review.models import CardSchedulingState
from cardwise.infrastructure.adapters.yaml_store import YamlDeckStore

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="cardwise: Spaced-repetition flashcard reviews.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(help="Manage cardwise configuration.")
app.add_typer(config_app, name="config")

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)


LOG_LEVELS = {0: logging.WARNING, 1: logging.INFO}
LOG_FILE_NAME = "cardwise.log"


def _setup_logging(config: AppConfig) -> None:
    """Apply the configured verbosity and mirror cardwise logs into `log_dir`."""
    package_logger = logging.getLogger("cardwise")
    package_logger.setLevel(LOG_LEVELS.get(config.verbose, logging.DEBUG))

    for handler in list(package_logger.handlers):
        if isinstance(handler, RotatingFileHandler):
            package_logger.removeHandler(handler)
            handler.close()

    try:
        config.log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            config.log_dir / LOG_FILE_NAME,
            maxBytes=1024 * 1024,
            backupCount=3,
            encoding="utf-8",
        )
    except OSError as e:
        logger.warning(f"File logging disabled: {e}")
        return
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    package_logger.addHandler(file_handler)


def _load_config(ctx: typer.Context, overrides: dict | None = None) -> AppConfig:
    """Resolve config, letting -v raise the configured verbosity, then set up logging."""
    overrides = dict(overrides or {})
    bonus = (ctx.obj or {}).get("verbose_bonus", 0)
    if bonus:
        overrides["verbose"] = 1 + bonus
    config = resolve_config(overrides)
    _setup_logging(config)
    return config


def _fail(error: Exception) -> None:
    typer.secho(f"Error: {error}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 0,
):
    """Global settings for cardwise."""
    ctx.ensure_object(dict)
    ctx.obj["verbose_bonus"] = verbose


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------


def _format_choices(card_state: CardSchedulingState) -> str:
    previews = preview_ratings(card_state)
    return "  ".join(
        f"[{q}] {label} ({next_review_text(previews[q].interval)})"
        for q, label in RATING_LABELS.items()
    )


async def _run_review(session: ReviewSession) -> None:
    try:
        await _review_loop(session)
    finally:
        await session.close()


async def _review_loop(session: ReviewSession) -> None:
    await session.load()

    while not session.is_complete:
        card = session.current_card
        position, total = session.progress
        typer.secho(f"\n[{position}/{total}] {card.front}", bold=True)

        answer = typer.prompt("Enter to flip, q to quit", default="", show_default=False)
        if answer.strip().lower() == "q":
            session.end()
            break

        await session.flip()
        typer.echo(card.back)
        if card.note:
            typer.secho(f"Note: {card.note}", fg=typer.colors.YELLOW)

        typer.echo(_format_choices(card.state))
        while True:
            raw = typer.prompt("How well did you remember? (0-4, q to quit)")
            if raw.strip().lower() == "q":
                session.end()
                break
            if raw.strip() in {str(q) for q in RATING_LABELS}:
                await session.rate(int(raw))
                break
            typer.secho("Please enter a number from 0 to 4.", fg=typer.colors.RED)

    summary = session.summary()
    typer.secho(f"\n{summary.headline}", fg=typer.colors.GREEN, bold=True)
    if not summary.nothing_due:
        typer.echo(
            f"Reviewed: {summary.reviewed}  Remembered: {summary.correct}  "
            f"Needs work: {summary.incorrect}  Accuracy: {summary.accuracy}%"
        )
    if session.unsaved_card_ids:
        typer.secho(
            f"Warning: {len(session.unsaved_card_ids)} ratings could not be saved.",
            fg=typer.colors.YELLOW,
            err=True,
        )


@app.command()
def review(
    ctx: typer.Context,
    deck_file: Annotated[
        Path | None,
        typer.Argument(help="Deck YAML file. Defaults to 'deck_file' in config."),
    ] = None,
    backend: Annotated[str | None, typer.Option(help="Storage backend: yaml, rest.")] = None,
    deck_id: Annotated[str | None, typer.Option(help="Deck to review (rest backend).")] = None,
    user_id: Annotated[str | None, typer.Option(help="User for the daily review log.")] = None,
    speech: Annotated[
        bool | None, typer.Option("--speech/--no-speech", help="Read cards aloud.")
    ] = None,
):
    """[bold green]Review[/bold green] the cards that are due now."""
    try:
        config = _load_config(
            ctx,
            {
                "deck_file": deck_file,
                "backend": backend,
                "deck_id": deck_id,
                "user_id": user_id,
                "speech_enabled": speech,
            }
        )
        session = build_review_session(config)
        asyncio.run(_run_review(session))
    except CardwiseError as e:
        _fail(e)


# ---------------------------------------------------------------------------
# Deck editing
# ---------------------------------------------------------------------------


@app.command()
def add(
    ctx: typer.Context,
    deck_file: Annotated[Path, typer.Argument(help="Deck YAML file (created if missing).")],
    front: Annotated[str, typer.Option(help="Question side.")],
    back: Annotated[str, typer.Option(help="Answer side.")],
    note: Annotated[str | None, typer.Option(help="Optional note shown with the answer.")] = None,
    title: Annotated[str | None, typer.Option(help="Deck title for a new file.")] = None,
    front_lang: Annotated[
        str | None, typer.Option(help="Speech language for the front (e.g. en-US, auto).")
    ] = None,
    back_lang: Annotated[
        str | None, typer.Option(help="Speech language for the back (e.g. es-ES, auto).")
    ] = None,
):
    """Add a card to a deck. It is due immediately."""
    try:
        config = _load_config(ctx)
        if deck_file.exists():
            store = YamlDeckStore(deck_file, tz_name=config.timezone)
        else:
            store = YamlDeckStore.create(
                deck_file,
                title=title,
                front_lang=check_language(front_lang),
                back_lang=check_language(back_lang),
                tz_name=config.timezone,
            )
        card = store.add_card(front, back, note)
    except CardwiseError as e:
        _fail(e)
    typer.echo(card.card_id)


@app.command()
def preview(
    ctx: typer.Context,
    interval: Annotated[int, typer.Option(help="Current interval in days.")] = 0,
    ease: Annotated[float, typer.Option(help="Current ease factor.")] = 2.5,
    reps: Annotated[int, typer.Option(help="Current repetition count.")] = 0,
):
    """Show what each rating would do to a card."""
    try:
        config = _load_config(ctx)
        now = local_now(config.timezone)
        state = CardSchedulingState(
            ease_factor=ease, interval=interval, repetition_count=reps, next_review_at=now
        )
        previews = preview_ratings(state, now)
    except CardwiseError as e:
        _fail(e)

    for quality, result in previews.items():
        typer.echo(
            f"{quality} {RATING_LABELS[quality]:<7} interval={result.interval:<4} "
            f"ease={result.ease_factor:<5} reps={result.repetitions}  "
            f"next={result.next_review.isoformat(timespec='minutes')} "
            f"({next_review_text(result.interval)})"
        )


@app.command()
def streak(
    ctx: typer.Context,
    deck_file: Annotated[Path, typer.Argument(help="Deck YAML file.")],
    user_id: Annotated[str | None, typer.Option(help="User to report on.")] = None,
):
    """Show how many days in a row you have studied."""
    try:
        config = _load_config(ctx, {"user_id": user_id})
        store = YamlDeckStore(deck_file, tz_name=config.timezone)
        days = store.study_days(config.user_id)
    except CardwiseError as e:
        _fail(e)

    count = study_streak(days, local_now(config.timezone).date())
    typer.echo(f"Study streak: {count} day{'s' if count != 1 else ''}")


# ---------------------------------------------------------------------------
# Config & server
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show():
    """Print the resolved configuration as JSON."""
    config = resolve_config()
    typer.echo(json.dumps(config.model_dump(mode="json"), indent=2))


@app.command()
def logs():
    """Open the log directory."""
    import subprocess

    config = resolve_config()
    if not config.log_dir.exists():
        config.log_dir.mkdir(parents=True, exist_ok=True)

    if sys.platform == "darwin":
        subprocess.run(["open", str(config.log_dir)])
    elif sys.platform == "win32":
        os.startfile(str(config.log_dir))
    else:
        subprocess.run(["xdg-open", str(config.log_dir)])


@app.command()
def server(
    host: Annotated[str, typer.Option(help="Interface to bind.")] = "127.0.0.1",
    port: Annotated[int, typer.Option(help="Port to listen on.")] = 8777,
    reload: Annotated[bool, typer.Option(help="Reload on code changes.")] = False,
):
    """Start the scheduling HTTP server."""
    import uvicorn

    uvicorn.run("cardwise.server:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
