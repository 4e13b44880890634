"""Utility modules."""
from api.utils.time_utils import (
    local_date,
    local_hour,
    parse_iso_timestamp,
    parse_ymd,
    resolve_timezone,
    to_local,
)
from api.utils.validation import validate_id, validate_time_zone, validate_ymd

__all__ = [
    "local_date",
    "local_hour",
    "parse_iso_timestamp",
    "parse_ymd",
    "resolve_timezone",
    "to_local",
    "validate_id",
    "validate_time_zone",
    "validate_ymd",
]
