"""Structured Logging — one root handler, JSON lines or plain text.

Invariants:
    - Each line carries the record's own creation time, level, logger name and message
    - Known extras (session_id, phase, error_code, ...) are copied through when set
    - Verification codes are never passed as log extras
    - setup_logging replaces the handler it installed earlier; calling it twice does not
      duplicate output
    - HTTP client libraries log at WARNING and above only (their request lines would
      repeat every oracle and location call)

Design Decisions:
    - log_format "json" for deployed containers, anything else for a readable dev format
"""

import logging
import json
from datetime import datetime, timezone

_EXTRA_FIELDS = (
    "session_id", "phase", "action", "error_code", "path", "attempt",
    "input_tokens", "output_tokens", "total_messages",
)

_QUIET_LOGGERS = ("httpx", "httpcore", "anthropic")

_HANDLER_MARK = "_engcoach_handler"


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_FIELDS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", fmt: str = "json") -> logging.Handler:
    """Install the app's root handler, replacing a previous one. Returns the handler."""
    root = logging.getLogger()
    for old in [h for h in root.handlers if getattr(h, _HANDLER_MARK, False)]:
        root.removeHandler(old)

    handler = logging.StreamHandler()
    setattr(handler, _HANDLER_MARK, True)
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
        ))
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return handler
