import json
import logging
import re
import sys
import time
from typing import Any, Dict, Optional

from .config import Settings, get_settings


class JsonFormatter(logging.Formatter):
    """JSON formatter with redaction of broker and provider credentials."""

    def __init__(self):
        super().__init__()
        self.redaction_patterns = [
            # Authorization header values (Basic and Bearer)
            (re.compile(r'(?i)\b(authorization["\']?\s*[:=]\s*["\']?)(?:basic|bearer)\s+[^"\'\s,}]+'), r'\1[REDACTED]'),
            # Credentials embedded in URLs
            (re.compile(r'(?i)\b([a-z][a-z0-9+.-]*://[^/\s:@]+:)[^@\s/]+@'), r'\1[REDACTED]@'),
            # password=..., token=...
            (re.compile(r'(?i)(password|token)(["\']?\s*[=:]\s*["\']?)[^"\'\s,}&]+'), r'\1\2[REDACTED]'),
        ]

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": self._redact(record.getMessage()),
        }

        error = getattr(record, "error", None)
        if isinstance(error, dict):
            payload["error"] = {
                key: self._redact(value) if isinstance(value, str) else value
                for key, value in error.items()
            }

        if record.exc_info:
            payload["exc_info"] = self._redact(self.formatException(record.exc_info))

        return json.dumps(payload, ensure_ascii=False)

    def _redact(self, text: str) -> str:
        for pattern, replacement in self.redaction_patterns:
            text = pattern.sub(replacement, text)
        return text


def setup_logging(settings: Optional[Settings] = None) -> None:
    settings = settings or get_settings()
    handler = logging.StreamHandler(sys.stdout)
    if settings.LOG_FORMAT == "json":
        handler.setFormatter(JsonFormatter())
    else:
        # the verification report is line oriented
        handler.setFormatter(logging.Formatter("%(message)s"))
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    # keep request logging out of the report
    logging.getLogger("httpx").setLevel(logging.WARNING)
