"""
JSON logging for the ``sanctuary`` logger tree.

One record per line, written to ``Settings.log_file``; WARNING and above are
echoed to stderr. Context travels in ``extra``::

    logger = get_logger("sanctuary.workflow")
    logger.info("advance blocked", extra={"event_type": "advance", "metadata": {"step": 1}})

    StoryAdapter(logger, story_id).info("story locked")   # stamps story_id
"""
from __future__ import annotations

import json
import logging
import logging.config
from datetime import datetime, timezone
from typing import Any, MutableMapping

ROOT = "sanctuary"

# Attributes copied from ``extra`` into the JSON line when present
CONTEXT_FIELDS = (
    "story_id",
    "event_type",
    "task",
    "status_code",
    "duration_ms",
    "attempt",
    "metadata",
)


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: dict[str, Any] = {
            "ts": created.isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            (field, getattr(record, field))
            for field in CONTEXT_FIELDS
            if getattr(record, field, None) is not None
        )
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class StoryAdapter(logging.LoggerAdapter):
    """Adds ``story_id`` to every record; explicit ``extra`` keys still win."""

    def __init__(self, logger: logging.Logger, story_id: str | None):
        super().__init__(logger, {"story_id": story_id})

    def process(self, msg: str, kwargs: MutableMapping[str, Any]) -> tuple[str, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


_configured = False


def setup_logging(log_file: str | None = None, level: str | None = None) -> None:
    """Install the JSON handlers once per process."""
    global _configured
    if _configured:
        return
    _configured = True

    from sanctuary.config import get_settings
    settings = get_settings()

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"json": {"()": JSONFormatter}},
        "handlers": {
            "file": {
                "class": "logging.FileHandler",
                "filename": log_file or settings.log_file,
                "encoding": "utf-8",
                "formatter": "json",
            },
            "stderr": {
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stderr",
                "level": "WARNING",
                "formatter": "json",
            },
        },
        "loggers": {
            ROOT: {
                "handlers": ["file", "stderr"],
                "level": level or settings.log_level,
                "propagate": False,
            },
        },
    })


def get_logger(name: str = ROOT) -> logging.Logger:
    setup_logging()
    if name == ROOT or name.startswith(ROOT + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT}.{name}")
