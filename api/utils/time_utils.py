"""Time utilities."""
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def parse_iso_timestamp(value: object) -> datetime | None:
    """Parse ISO timestamp string to datetime."""
    if not isinstance(value, str):
        return None
    raw = value.strip()
    if not raw:
        return None
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        return None


def parse_ymd(value: object) -> date | None:
    """Parse a YYYY-MM-DD calendar date."""
    if not isinstance(value, str):
        return None
    raw = value.strip()
    if len(raw) != 10:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        return None


def resolve_timezone(name: str) -> ZoneInfo:
    """Look up an IANA timezone. Raises ValueError for unknown names."""
    if not isinstance(name, str) or not name.strip():
        raise ValueError("Time zone is required")
    try:
        return ZoneInfo(name.strip())
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown time zone: {name}") from e


def to_local(moment: datetime, time_zone: str) -> datetime:
    """Convert an instant to wall-clock time in time_zone. Naive input is UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(resolve_timezone(time_zone))


def local_hour(moment: datetime, time_zone: str) -> int:
    """Hour of day (0-23) of an instant in time_zone."""
    return to_local(moment, time_zone).hour


def local_date(moment: datetime, time_zone: str) -> date:
    """Calendar date of an instant in time_zone."""
    return to_local(moment, time_zone).date()
