"""Application configuration and constants."""
import os
from pathlib import Path


def _parse_int_env(name: str, default: int) -> int:
    """Parse integer from environment variable."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _parse_bool_env(name: str, default: bool) -> bool:
    """Parse boolean flag from environment variable."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _parse_int_list_env(name: str, default: tuple[int, ...]) -> tuple[int, ...]:
    """Parse comma separated integers from environment variable."""
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return tuple(int(part) for part in raw.split(",") if part.strip())
    except ValueError:
        return default


# Database
DB_DIR = Path(os.environ.get("DB_DIR", Path.cwd() / "data"))
DATABASE_URL = os.environ.get("DATABASE_URL", f"sqlite:///{DB_DIR / 'examprep.db'}")
if DATABASE_URL.startswith("sqlite:///") and "DATABASE_URL" not in os.environ:
    DB_DIR.mkdir(parents=True, exist_ok=True)

# Authentication
SECRET_KEY = os.environ.get(
    "SECRET_KEY",
    "CHANGE_ME_IN_PRODUCTION_USE_openssl_rand_hex_32"
)
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = _parse_int_env("ACCESS_TOKEN_EXPIRE_MINUTES", 60)

# Cron trigger
CRON_SECRET = os.environ.get("CRON_SECRET") or None

# Daily report
DEFAULT_SEND_HOUR = _parse_int_env("DEFAULT_SEND_HOUR", 20)
DEFAULT_TIMEZONE = os.environ.get("DEFAULT_TIMEZONE", "Europe/Kyiv")
DIGEST_DISPATCH_TIMEOUT_SECONDS = _parse_int_env("DIGEST_DISPATCH_TIMEOUT_SECONDS", 30)
DAILY_REPORT_LOG_LIMIT = _parse_int_env("DAILY_REPORT_LOG_LIMIT", 10)
RESULTS_METRICS_WINDOW = _parse_int_env("RESULTS_METRICS_WINDOW", 300)

# SMTP transport
SMTP_HOST = os.environ.get("SMTP_HOST")
SMTP_PORT = _parse_int_env("SMTP_PORT", 587)
SMTP_USER = os.environ.get("SMTP_USER")
SMTP_PASS = os.environ.get("SMTP_PASS")
SMTP_SECURE = _parse_bool_env("SMTP_SECURE", False)
SMTP_FROM = os.environ.get("SMTP_FROM") or SMTP_USER

# Mistakes
MISTAKES_SCAN_LIMIT = _parse_int_env("MISTAKES_SCAN_LIMIT", 1000)

# Review checkpoints (days after the studied date)
REVIEW_INTERVALS = _parse_int_list_env("REVIEW_INTERVALS", (0, 3, 7, 14, 30, 60))

# Scoring
PARTIAL_CREDIT_ENABLED = _parse_bool_env("PARTIAL_CREDIT_ENABLED", True)
SCALED_SCORE_MAX = _parse_int_env("SCALED_SCORE_MAX", 200)
