"""
Due-date helpers.

Day-granular intervals always land on local midnight of the target day; the
sub-day relearn interval is an exact timestamp. Arithmetic is done on the wall
clock of the datetime's own zone, so an IANA zone (ZoneInfo) gives DST-correct
midnights. Without a configured zone we fall back to the system's current UTC
offset.
"""

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from cardwise.domain.constants import RELEARN_DELAY_MINUTES
from cardwise.domain.errors import InvalidInput


def get_zone(tz_name: str) -> ZoneInfo:
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidInput(f"Unknown timezone: {tz_name!r}") from e


def local_now(tz_name: str | None = None) -> datetime:
    """Timezone-aware 'now' in `tz_name`, or in the system local zone."""
    if tz_name:
        return datetime.now(get_zone(tz_name))
    return datetime.now().astimezone()


def ensure_aware(dt: datetime, tz_name: str | None = None) -> datetime:
    """Attach a zone to a naive datetime, interpreting it as local wall time."""
    if dt.tzinfo is not None:
        return dt
    if tz_name:
        return dt.replace(tzinfo=get_zone(tz_name))
    return dt.astimezone()


def start_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def add_days(dt: datetime, days: int) -> datetime:
    # Aware datetime + timedelta keeps the wall clock and recomputes the offset.
    return dt + timedelta(days=days)


def next_review_at(interval: int, now: datetime) -> datetime:
    """
    Compute when a card becomes due again.

    interval == 0 -> exactly RELEARN_DELAY_MINUTES after `now`.
    interval > 0  -> start of the local day `interval` days after `now`.
    """
    try:
        if interval == 0:
            return now + timedelta(minutes=RELEARN_DELAY_MINUTES)
        return start_of_day(add_days(now, interval))
    except OverflowError as e:
        raise InvalidInput(f"Next review for a {interval}-day interval is past year 9999") from e


def is_due(next_review: datetime, now: datetime) -> bool:
    return next_review <= now


def local_date_string(dt: datetime) -> str:
    """YYYY-MM-DD of `dt` in its own zone."""
    return dt.date().isoformat()
