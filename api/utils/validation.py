"""Validation utilities."""
from datetime import date

from fastapi import HTTPException

from api.utils.time_utils import parse_ymd, resolve_timezone


def validate_id(name: str, value: str) -> str:
    """Validate ID string."""
    if not isinstance(value, str):
        raise HTTPException(status_code=400, detail=f"{name} is required")
    cleaned = value.strip()
    if not cleaned:
        raise HTTPException(status_code=400, detail=f"{name} is required")
    if "/" in cleaned or "\\" in cleaned or len(cleaned) > 64:
        raise HTTPException(status_code=400, detail=f"Invalid {name}")
    return cleaned


def validate_ymd(name: str, value: str) -> date:
    """Validate a YYYY-MM-DD date string."""
    parsed = parse_ymd(value)
    if parsed is None:
        raise HTTPException(status_code=400, detail=f"Invalid {name} format")
    return parsed


def validate_time_zone(value: str) -> str:
    """Validate an IANA time zone name."""
    try:
        resolve_timezone(value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return value.strip()
