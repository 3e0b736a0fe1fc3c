"""Logging configuration for the service."""

import logging
import sys

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = "INFO") -> None:
    """Attach a stdout handler to the ``photo_upload`` logger tree."""
    root = logging.getLogger("photo_upload")
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    if not any(getattr(h, "_photo_upload", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        handler._photo_upload = True  # type: ignore[attr-defined]
        root.addHandler(handler)
