"""
Logging utilities.

TradeCopilot handles three kinds of credentials that can end up in a log
line: the LLM provider key (`sk-...`), Supabase keys and user access
tokens (JWTs, usually sent as `Authorization: Bearer ...`), and the
occasional `apikey=` query parameter from Supabase REST URLs. The filter
here masks them before any handler formats the record.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable

_FILTER_NAME = "tradecopilot_redact_secrets"

# Libraries that log every request line (including Supabase REST URLs) at INFO
_NOISY_LOGGERS = ("httpx", "httpcore", "openai", "hpack")

# (pattern, replacement) pairs, applied in order
_REDACTIONS: tuple[tuple[re.Pattern, str], ...] = (
    # Supabase REST query strings: ?apikey=...&token=...
    (re.compile(r"(?i)\b(apikey|api_key|token|key|secret|password)=([^&\s]+)"), r"\1=REDACTED"),
    # JSON bodies and reprs: "access_token": "..."
    (
        re.compile(
            r"(?i)(\"?(?:apikey|api_key|access_token|refresh_token|secret|password)\"?\s*[:=]\s*)(\"?)[^\"\s,}]+(\2)"
        ),
        r"\1\2REDACTED\3",
    ),
    # Authorization headers
    (re.compile(r"(?i)\bBearer\s+[A-Za-z0-9._\-]+"), "Bearer REDACTED"),
    # Supabase anon/service keys and user access tokens
    (re.compile(r"\beyJ[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]+\b"), "JWT-REDACTED"),
    # LLM provider keys
    (re.compile(r"\bsk-[A-Za-z0-9_\-]{10,}\b"), "sk-REDACTED"),
)


def redact(text: str) -> str:
    """Mask provider keys, Supabase tokens and credential query params in `text`."""
    for pattern, replacement in _REDACTIONS:
        text = pattern.sub(replacement, text)
    return text


class RedactSecretsFilter(logging.Filter):
    """Logging filter that rewrites a record's message through `redact`."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        try:
            message = record.getMessage()
        except Exception:
            # Broken format args; leave the record for the handler to report.
            return True

        cleaned = redact(message)
        if cleaned != message:
            record.msg = cleaned
            record.args = ()
        return True


def _attach(filters_owner: logging.Filterer, redact_filter: logging.Filter) -> None:
    if not _has_filter(filters_owner.filters, _FILTER_NAME):
        filters_owner.addFilter(redact_filter)


def _has_filter(filters: Iterable, name: str) -> bool:
    return any(getattr(f, "name", None) == name for f in filters)


def install_log_safety() -> None:
    """
    Quiet request-line loggers and attach the redaction filter to the root
    logger and every handler that exists so far (uvicorn's included).

    Safe to call more than once.
    """
    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    redact_filter = RedactSecretsFilter(_FILTER_NAME)

    root = logging.getLogger()
    _attach(root, redact_filter)
    for handler in root.handlers:
        _attach(handler, redact_filter)

    for logger in logging.Logger.manager.loggerDict.values():
        if isinstance(logger, logging.Logger):
            for handler in logger.handlers:
                _attach(handler, redact_filter)
