import argparse
import json
import logging
from datetime import datetime, timezone

from api.database import SessionLocal, get_session_factory, init_db
from api.dependencies.digest import build_scheduler, get_notification_sender
from api.utils import parse_iso_timestamp
from core.logging_setup import setup_console_logging

setup_console_logging()

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Exam prep maintenance commands")
    sub = parser.add_subparsers(dest="command", required=True)

    tick = sub.add_parser("digest-tick", help="Run one daily report scheduler pass")
    tick.add_argument(
        "--now",
        type=str,
        default=None,
        help="ISO timestamp to evaluate instead of the current time",
    )

    sub.add_parser("init-db", help="Create database tables")
    return parser.parse_args(argv)


def run_digest_tick(now: datetime | None = None) -> dict[str, int]:
    db = SessionLocal()
    try:
        scheduler = build_scheduler(db, get_session_factory(), get_notification_sender())
        return scheduler.run_tick(now).to_dict()
    finally:
        db.close()


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)

    if args.command == "init-db":
        init_db()
        print("Database initialized")
        return

    init_db()
    now = None
    if args.now:
        now = parse_iso_timestamp(args.now)
        if now is None:
            raise SystemExit(f"Invalid --now timestamp: {args.now}")
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
    totals = run_digest_tick(now)
    print(json.dumps(totals, indent=2))


if __name__ == "__main__":
    main()
