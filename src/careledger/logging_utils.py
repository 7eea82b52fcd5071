"""Logging setup for careledger.

Log lines can carry API keys (OCR and mileage functions), bearer tokens and
whole receipt captures. ``Redactor`` scrubs all of these before a record
reaches a handler.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from typing import Iterable, List, Pattern, Tuple

REDACTED = "[redacted]"
PAYLOAD_ELIDED = "[base64 elided]"

# Attributes passed through ``extra=`` that the JSON formatter promotes to top-level keys.
CONTEXT_FIELDS = ("request_id", "user_id", "error_kind")

_CREDENTIAL_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"(Bearer\s+)[A-Za-z0-9\-._~+/=]+", re.IGNORECASE),
    re.compile(r"(api_token=)[^&\s]+", re.IGNORECASE),
    re.compile(r"(apikey[=:]\s*)[^&\s,]+", re.IGNORECASE),
    re.compile(r"(X-API-Key[=:]\s*)[^&\s,]+", re.IGNORECASE),
)
_CAPTURE_PATTERN = re.compile(r"(?:data:[\w/+.-]+;base64,)?[A-Za-z0-9+/]{256,}={0,2}")

_THIRD_PARTY_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "httpx")


class Redactor:
    """Replace credentials, configured secrets and base64 captures in text."""

    def __init__(self, secrets: Iterable[str] = ()) -> None:
        cleaned = {secret.strip() for secret in secrets if secret and secret.strip()}
        # Longest first so a secret containing another is replaced whole.
        self.secrets: List[str] = sorted(cleaned, key=len, reverse=True)

    def redact(self, text: str) -> str:
        text = _CAPTURE_PATTERN.sub(PAYLOAD_ELIDED, text)
        for pattern in _CREDENTIAL_PATTERNS:
            text = pattern.sub(r"\1" + REDACTED, text)
        for secret in self.secrets:
            text = text.replace(secret, REDACTED)
        return text


class SensitiveDataFilter(logging.Filter):
    """Logging filter applying a ``Redactor`` to the message and string extras."""

    def __init__(self, secrets: Iterable[str]):
        super().__init__()
        self.redactor = Redactor(secrets)

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401 - standard interface
        message = record.getMessage()
        redacted = self.redactor.redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = ()

        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if isinstance(value, str):
                setattr(record, key, self.redactor.redact(value))
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line, with request context when present."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - override
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(
            {
                key: getattr(record, key)
                for key in CONTEXT_FIELDS
                if getattr(record, key, None) is not None
            }
        )
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True)


def _plain_formatter() -> logging.Formatter:
    return logging.Formatter(
        "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )


def configure_logging(level_name: str, fmt: str, secrets: Iterable[str]) -> None:
    """Install a single redacting stream handler on the root logger.

    ``fmt`` is ``plain`` or ``json``. uvicorn and httpx loggers are routed
    through the root handler so their lines are redacted too.
    """

    level = getattr(logging, (level_name or "INFO").upper(), logging.INFO)
    redaction = SensitiveDataFilter(secrets)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter() if (fmt or "").lower() == "json" else _plain_formatter())
    handler.addFilter(redaction)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)
    logging.captureWarnings(True)

    for name in _THIRD_PARTY_LOGGERS:
        third_party = logging.getLogger(name)
        third_party.handlers = []
        third_party.setLevel(level)
        third_party.propagate = True


__all__ = [
    "REDACTED",
    "PAYLOAD_ELIDED",
    "Redactor",
    "SensitiveDataFilter",
    "JsonFormatter",
    "configure_logging",
]
