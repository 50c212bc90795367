# logs.py
from __future__ import annotations
import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path

from rich.logging import RichHandler

from .config import LOG_FILE, LOGGER_NAME


def setup_logging(verbose: bool = False) -> logging.Logger:
    """
    Консоль через RichHandler: по умолчанию только WARNING+ (битые записи),
    с verbose всё, включая найденные rwp и несовпадения защитных слов.
    """
    logger = logging.getLogger(LOGGER_NAME)
    level = logging.DEBUG if verbose else logging.WARNING
    logger.setLevel(level)
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        ch = RichHandler(show_time=False, show_path=False, markup=False, rich_tracebacks=True)
        logger.addHandler(ch)
    for h in logger.handlers:
        h.setLevel(level)
    return logger


# Один запуск CLI = одна сессия; по session можно склеить события в логе.
SESSION_ID = uuid.uuid4().hex[:8]


def _jsonable(value):
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return value.hex()
    raise TypeError(f"{type(value).__name__} is not JSON serializable")


def log_event(kind: str, payload: dict) -> None:
    """Событие сессии одной строкой JSONL: ts, session, kind, payload."""
    line = json.dumps(
        {"ts": datetime.now(timezone.utc).isoformat(timespec="seconds"),
         "session": SESSION_ID, "kind": kind, "payload": payload},
        ensure_ascii=False, default=_jsonable,
    )
    LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
    with LOG_FILE.open("a", encoding="utf-8") as fh:
        fh.write(line + "\n")
