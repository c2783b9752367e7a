# Domain Review Package
from .models import (
    CardSchedulingState,
    DueCard,
    ReviewInput,
    ScheduleResult,
    SessionPhase,
    SessionStats,
    SessionSummary,
)
from .ports import ActivityCounter, CardRepository, SpeechPlayer

__all__ = [
    "CardSchedulingState",
    "DueCard",
    "ReviewInput",
    "ScheduleResult",
    "SessionPhase",
    "SessionStats",
    "SessionSummary",
    "CardRepository",
    "ActivityCounter",
    "SpeechPlayer",
]
