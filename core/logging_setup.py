from __future__ import annotations
import logging
import os


def setup_console_logging(level: int | str | None = None) -> None:
    """
    Call once at app start. Prints logs to console.
    Level defaults to the LOG_LEVEL environment variable, then INFO.
    """
    if level is None:
        level = os.environ.get("LOG_LEVEL", "INFO").upper()

    root = logging.getLogger()
    if root.handlers:
        # already configured (avoid duplicates)
        root.setLevel(level)
        return

    root.setLevel(level)
    h = logging.StreamHandler()
    fmt = logging.Formatter(
        "[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    h.setFormatter(fmt)
    root.addHandler(h)
