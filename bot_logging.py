"""Logging setup: plain or JSON output, with bot tokens scrubbed from every record."""

from __future__ import annotations

import json
import logging
import re
from typing import Sequence

REDACTED = "[REDACTED]"


def redact_string(text: str, patterns: Sequence[str]) -> str:
    """Replace all matches of the given regex patterns with [REDACTED]."""
    for pattern in patterns:
        try:
            text = re.sub(pattern, REDACTED, text)
        except re.error:
            pass
    return text


class RedactingFilter(logging.Filter):
    """Logging filter that redacts sensitive patterns from log records."""

    def __init__(self, patterns: Sequence[str], name: str = "") -> None:
        super().__init__(name)
        self._patterns = list(patterns)

    def filter(self, record: logging.LogRecord) -> bool:
        if self._patterns:
            record.msg = redact_string(str(record.msg), self._patterns)
            if record.args:
                record.args = tuple(
                    redact_string(a, self._patterns) if isinstance(a, str) else a
                    for a in record.args
                )
        return True


class JsonFormatter(logging.Formatter):
    """Structured JSON log formatter for machine-readable output."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "message": record.getMessage(),
            "module": record.module,
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def setup_logging(
    verbose: bool = False,
    json_log: bool = False,
    redact_patterns: Sequence[str] = (),
) -> None:
    """Configure the root logger once for a CLI or bot process."""
    log_level = logging.DEBUG if verbose else logging.INFO
    if json_log:
        handler = logging.StreamHandler()
        handler.setFormatter(JsonFormatter(datefmt="%Y-%m-%d %H:%M:%S"))
        logging.root.addHandler(handler)
        logging.root.setLevel(log_level)
    else:
        logging.basicConfig(
            level=log_level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    if redact_patterns:
        for handler in logging.root.handlers:
            handler.addFilter(RedactingFilter(redact_patterns))

    # Playwright's asyncio debug chatter drowns out the bot's own lines
    logging.getLogger("asyncio").setLevel(logging.WARNING)
