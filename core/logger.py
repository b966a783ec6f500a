from __future__ import annotations

import logging
import os
import sys

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


class _CategoryFilter(logging.Filter):
    def __init__(self, allowed: set[str]) -> None:
        super().__init__()
        self._allowed = allowed

    def filter(self, record: logging.LogRecord) -> bool:
        # record.name like: imagestudio.pipeline, imagestudio.history
        parts = (record.name or "").split(".")
        suffix = parts[-1] if parts else record.name
        return suffix in self._allowed


def setup_logger(level: int = logging.INFO, name: str = "imagestudio") -> logging.Logger:
    """Create or update the project logger.

    - IMAGESTUDIO_LOG_LEVEL overrides the level on every call.
    - IMAGESTUDIO_LOG_CATS (comma separated module suffixes) restricts output.
    - Exactly one stderr StreamHandler is kept on the base logger.
    """
    logger = logging.getLogger(name)

    env_level = (os.getenv("IMAGESTUDIO_LOG_LEVEL") or "").strip().lower()
    if env_level:
        level = _LEVELS.get(env_level, level)
    logger.setLevel(level)

    stream_handler: logging.StreamHandler | None = None
    for h in logger.handlers:
        if isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stderr:
            stream_handler = h
            break

    if stream_handler is None:
        stream_handler = logging.StreamHandler(stream=sys.stderr)
        logger.addHandler(stream_handler)

    stream_handler.setFormatter(
        logging.Formatter(fmt="[%(asctime)s] %(levelname)s: %(message)s", datefmt="%H:%M:%S")
    )

    stream_handler.filters.clear()
    cats = (os.getenv("IMAGESTUDIO_LOG_CATS") or "").strip()
    if cats:
        allowed = {c.strip() for c in cats.split(",") if c.strip()}
        stream_handler.addFilter(_CategoryFilter(allowed))

    logger.propagate = False
    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    base = setup_logger()
    return base if not name else base.getChild(name)
