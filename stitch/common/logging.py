"""JSON-line logging with a fixed field set."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any

from stitch.common.constants import JSON_LOG_FIELDS
from stitch.common.fs import ensure_dir
from stitch.common.time_utils import utc_timestamp_iso

LOGGER_NAME = "geocoder_stitch"


class JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {"timestamp": utc_timestamp_iso(), "level": record.levelname}
        for field in JSON_LOG_FIELDS:
            if field not in payload:
                payload[field] = getattr(record, field, None)
        payload["message"] = record.getMessage()
        return json.dumps(payload, ensure_ascii=False, default=str)


def build_logger(request_id: str, level: str = "INFO", log_path: Path | None = None) -> logging.Logger:
    logger = logging.getLogger(f"{LOGGER_NAME}.{request_id}")
    logger.setLevel(level.upper())
    logger.handlers.clear()

    # stdout is reserved for the merged response.
    stream = logging.StreamHandler(sys.stderr)
    stream.setFormatter(JsonLineFormatter())
    logger.addHandler(stream)

    if log_path is not None:
        ensure_dir(log_path.parent)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(JsonLineFormatter())
        logger.addHandler(file_handler)

    return logger


def default_logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAME)


def log_event(logger: logging.Logger, message: str, *, level: int = logging.INFO, **event_fields: Any) -> None:
    logger.log(level, message, extra=event_fields)
