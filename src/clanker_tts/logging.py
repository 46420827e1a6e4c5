"""JSON-lines logging for clanker-tts.

Speech happens on hook threads nobody is watching, so the log file is
where failures show up.  Each record is one JSON object per line:
``timestamp``, ``level``, ``logger``, ``message``, plus ``context``
(text preview, voice, timings) and ``exception`` when present.
``clanker-tts logs`` reads the tail back and renders it.

Files rotate at 5 MB, keeping 3 backups.
"""

from __future__ import annotations

import collections
import json
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Any, Optional

PLUGIN_LOG = "/tmp/clanker-tts.log"
TOOL_ERROR_LOG = "/tmp/clanker-tts-tool-error.log"

MAX_BYTES = 5 * 1024 * 1024
BACKUP_COUNT = 3

# "<logger name>:<file>" pairs that already have a handler attached.
_configured: set[str] = set()


class JsonLineFormatter(logging.Formatter):
    """Render a record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        stamp = self.formatTime(record, "%Y-%m-%dT%H:%M:%S")
        entry: dict[str, Any] = {
            "timestamp": f"{stamp}.{int(record.msecs):03d}",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = getattr(record, "context", None)
        if context:
            entry["context"] = context
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def get_logger(name: str, log_file: str = PLUGIN_LOG) -> logging.Logger:
    """Logger *name* writing JSON lines to *log_file* (handler added once)."""
    logger = logging.getLogger(name)
    key = f"{name}:{log_file}"
    if key in _configured:
        return logger
    os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
    handler = RotatingFileHandler(log_file, maxBytes=MAX_BYTES,
                                  backupCount=BACKUP_COUNT, encoding="utf-8")
    handler.setFormatter(JsonLineFormatter())
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    _configured.add(key)
    return logger


def log_context(*, text_preview: str = "", voice_id: str = "", model_id: str = "",
                duration_ms: Optional[float] = None, **extra: Any) -> dict[str, Any]:
    """Context dict for ``extra={"context": ...}``; empty fields are dropped."""
    ctx: dict[str, Any] = {}
    if text_preview:
        ctx["text_preview"] = text_preview[:80]
    if voice_id:
        ctx["voice_id"] = voice_id
    if model_id:
        ctx["model_id"] = model_id
    if duration_ms is not None:
        ctx["duration_ms"] = round(duration_ms, 1)
    ctx.update(extra)
    return ctx


def parse_log_line(line: str) -> Optional[dict[str, Any]]:
    """The JSON object on *line*, or None for blank and non-JSON lines."""
    line = line.strip()
    if not line.startswith("{"):
        return None
    try:
        entry = json.loads(line)
    except ValueError:
        return None
    return entry if isinstance(entry, dict) else None


def read_log_tail(path: str, lines: int = 50) -> list[str]:
    """Last *lines* non-empty lines of *path*; [] if it can't be read."""
    try:
        with open(path, encoding="utf-8", errors="replace") as f:
            tail = collections.deque((ln.rstrip("\n") for ln in f if ln.strip()), maxlen=lines)
    except OSError:
        return []
    return list(tail)


def format_log_entry(line: str) -> str:
    """Render one log line for humans (JSON entries become one-liners)."""
    entry = parse_log_line(line)
    if entry is None:
        return line.rstrip()
    text = f"{entry.get('timestamp', '?')} {entry.get('level', '?'):<7} {entry.get('message', '')}"
    ctx = entry.get("context")
    if ctx:
        text += "  " + " ".join(f"{k}={v}" for k, v in ctx.items())
    return text
