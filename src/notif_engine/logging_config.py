"""Logging configuration for the engine's data-quality log (daily rotating JSON)."""

import logging
import logging.handlers
import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

DATA_QUALITY_LOGGER = "notif_engine.data_quality"


class JSONFormatter(logging.Formatter):
    """Custom formatter that outputs structured JSON logs."""

    def format(self, record):
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "stage": getattr(record, "stage", None),
            "event_uri": getattr(record, "event_uri", None),
            "reason": getattr(record, "reason", None),
            "detail": getattr(record, "detail", None),
            "message": record.getMessage(),
        }

        # Remove None values to keep logs clean
        log_data = {k: v for k, v in log_data.items() if v is not None}

        return json.dumps(log_data, ensure_ascii=False)


def get_data_quality_logger() -> logging.Logger:
    return logging.getLogger(DATA_QUALITY_LOGGER)


def setup_engine_logging(log_dir: Optional[Union[str, Path]] = None) -> logging.Logger:
    """
    Set up daily rotating JSON logging for malformed-input records.

    Records still propagate to the root logger so they show up on the console too.
    Calling this twice for the same file does not add a second handler.
    """
    log_dir = Path(log_dir) if log_dir else Path(__file__).resolve().parents[2] / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "data_quality.log"

    logger = get_data_quality_logger()
    logger.setLevel(logging.INFO)

    for existing in logger.handlers:
        if getattr(existing, "baseFilename", None) == os.path.abspath(log_file):
            return logger

    handler = logging.handlers.TimedRotatingFileHandler(
        filename=str(log_file),
        when="midnight",
        interval=1,
        backupCount=30,  # Keep 30 days of logs
        encoding="utf-8",
        utc=True,
    )
    handler.suffix = "%Y-%m-%d"
    handler.setFormatter(JSONFormatter())
    logger.addHandler(handler)

    return logger
