"""Logging setup: stdout handler, timestamped format, bot token redaction."""

import logging
import re
import sys

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"

_TELEGRAM_BOT_TOKEN_IN_URL_RE = re.compile(r"(https?://api\.telegram\.org/(?:file/)?bot)([^/\s]+)")
_TELEGRAM_BOT_TOKEN_RAW_RE = re.compile(r"\b\d{6,}:[A-Za-z0-9_-]{20,}\b")


def preview(text: str, limit: int = 30) -> str:
    """Shorten message text for log lines."""
    return text if len(text) <= limit else f"{text[:limit]}..."


def redact_sensitive_text(text: str) -> str:
    """Redact Telegram bot tokens from log text."""
    redacted = _TELEGRAM_BOT_TOKEN_IN_URL_RE.sub(r"\1<redacted>", text)
    return _TELEGRAM_BOT_TOKEN_RAW_RE.sub("<redacted_token>", redacted)


class SensitiveLogFilter(logging.Filter):
    """Filter log records to avoid leaking secrets."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_sensitive_text(message)
        if redacted != message:
            # Keep a pre-formatted safe message to avoid re-inserting args.
            record.msg = redacted
            record.args = ()
        return True


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging to stdout.

    Args:
        level: Level name, e.g. "INFO" or "DEBUG"
    """
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        stream=sys.stdout,
        force=True,
    )
    sensitive_filter = SensitiveLogFilter()
    for handler in logging.getLogger().handlers:
        handler.addFilter(sensitive_filter)
