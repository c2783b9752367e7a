import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field, StrictInt

from cardwise.application.dates import ensure_aware, local_now
from cardwise.application.scheduler import (
    RATING_LABELS,
    calculate_sm2,
    next_review_text,
    preview_ratings,
)
from cardwise.consts import VERSION
from cardwise.domain.constants import DEFAULT_EASE_FACTOR
from cardwise.domain.errors import InvalidInput
from cardwise.domain.review.models import CardSchedulingState, ReviewInput

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("cardwise.server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"cardwise server v{VERSION} starting up...")
    yield
    # Shutdown
    logger.info("cardwise server shutting down...")


app = FastAPI(
    title="cardwise server",
    description="SM-2 scheduling for flashcard review UIs.",
    version=VERSION,
    lifespan=lifespan,
)


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


start_time = time.time()


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)


@app.get("/version")
async def get_version():
    return {"version": VERSION}


class CardStateRequest(BaseModel):
    interval: int = 0
    ease_factor: float = Field(default=DEFAULT_EASE_FACTOR, allow_inf_nan=False)
    repetition_count: int = 0
    # Reference time; naive values are read in `timezone` (or server local time).
    now: datetime | None = None
    timezone: str | None = None


class ScheduleRequest(CardStateRequest):
    # JSON true must not pass as rating 1.
    quality: StrictInt


class ScheduleResponse(BaseModel):
    quality: int
    label: str
    interval: int
    ease_factor: float
    repetitions: int
    next_review: datetime
    next_review_text: str


def _reference_time(req: CardStateRequest) -> datetime:
    if req.now is None:
        return local_now(req.timezone)
    return ensure_aware(req.now, req.timezone)


@app.post("/schedule", response_model=ScheduleResponse)
async def schedule(req: ScheduleRequest):
    """
    Apply one rating to a card's scheduling state.
    """
    try:
        now = _reference_time(req)
        result = calculate_sm2(
            ReviewInput(
                quality=req.quality,
                interval=req.interval,
                ease_factor=req.ease_factor,
                repetition_count=req.repetition_count,
            ),
            now,
        )
    except InvalidInput as e:
        raise HTTPException(status_code=422, detail=str(e)) from e

    return ScheduleResponse(
        quality=req.quality,
        label=RATING_LABELS[req.quality],
        interval=result.interval,
        ease_factor=result.ease_factor,
        repetitions=result.repetitions,
        next_review=result.next_review,
        next_review_text=next_review_text(result.interval),
    )


@app.post("/preview", response_model=list[ScheduleResponse])
async def preview(req: CardStateRequest):
    """
    Outcome of every rating, for labelling the rating buttons.
    """
    try:
        now = _reference_time(req)
        state = CardSchedulingState(
            ease_factor=req.ease_factor,
            interval=req.interval,
            repetition_count=req.repetition_count,
            next_review_at=now,
        )
        previews = preview_ratings(state, now)
    except InvalidInput as e:
        raise HTTPException(status_code=422, detail=str(e)) from e

    return [
        ScheduleResponse(
            quality=quality,
            label=RATING_LABELS[quality],
            interval=result.interval,
            ease_factor=result.ease_factor,
            repetitions=result.repetitions,
            next_review=result.next_review,
            next_review_text=next_review_text(result.interval),
        )
        for quality, result in previews.items()
    ]
