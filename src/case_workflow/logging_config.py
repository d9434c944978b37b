"""Structured logging setup: no secrets, case free text redacted, ids only."""

from __future__ import annotations

import logging
import re
import sys
from typing import Any

REDACT_FIELDS = frozenset({"password", "secret", "token", "api_key", "authorization"})
# Free text about a matter may be privileged: log ids and status codes only.
CONTENT_REDACT_KEYS = frozenset(
    {
        "note",
        "title",
        "description",
        "client_name",
        "party_name",
        "content",
    }
)
CONTENT_KEY_PATTERN = re.compile(
    r"(\b" + "|".join(re.escape(k) for k in CONTENT_REDACT_KEYS) + r")[\s=:]+[^\s,\)\]]+",
    re.IGNORECASE,
)
SECRET_KEY_PATTERN = re.compile(
    r"(\b" + "|".join(re.escape(k) for k in REDACT_FIELDS) + r")[\s=:]+[^\s,\)\]]+",
    re.IGNORECASE,
)


def _sanitize_extra(extra: dict[str, Any] | None) -> dict[str, Any]:
    if not extra:
        return {}
    out: dict[str, Any] = {}
    for k, v in extra.items():
        key_lower = k.lower()
        if any(r in key_lower for r in REDACT_FIELDS):
            out[k] = "***"
        elif any(p in key_lower for p in CONTENT_REDACT_KEYS):
            out[k] = "[REDACTED]"
        else:
            out[k] = v
    return out


def _redact_message(msg: Any) -> str:
    """Replace secret and case-content key=value pairs in a message."""
    if not isinstance(msg, str):
        msg = str(msg)
    msg = SECRET_KEY_PATTERN.sub(r"\1=***", msg)
    return CONTENT_KEY_PATTERN.sub(r"\1=[REDACTED]", msg)


class RedactionFilter(logging.Filter):
    """Redact secrets and case free text from log records (message and args)."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = _redact_message(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(
                _redact_message(a) if isinstance(a, str) else a for a in record.args
            )
        elif isinstance(record.args, dict):
            record.args = _sanitize_extra(record.args)
        return True


def setup_logging(log_level: str = "INFO") -> None:
    """Configure root logger: stdout, redaction filter, quiet third-party loggers."""
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
        stream=sys.stdout,
        force=True,
    )
    for handler in logging.getLogger().handlers:
        handler.addFilter(RedactionFilter())
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Return a logger for module `name` (redaction applied at the root handlers)."""
    return logging.getLogger(name)
