"""Structured Logging - JSON formatter and setup for production observability.

Invariants:
    - All logs include timestamp, level, logger name, and message
    - Extra fields (path, page, company_slug, auth_phase, ...) surfaced when present
    - Tokens, passwords and codes are never passed as extras
    - JSON format in production, human-readable in development

Design Decisions:
    - JSONFormatter over third-party libs: zero dependencies, full control
    - setup_logging runs on every lifespan start and replaces its own handler,
      so repeated app startups (tests, reloads) never duplicate log lines
"""

import json
import logging
from datetime import datetime, timezone

STRUCTURED_FIELDS = (
    "path", "page", "company_slug", "auth_phase", "subscription_id",
    "attempt", "error_code", "source", "reason", "status_code", "endpoint",
)


class JSONFormatter(logging.Formatter):
    """Format logs as JSON for structured logging in production."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in STRUCTURED_FIELDS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", fmt: str = "json"):
    """Configure logging for the application. Safe to call more than once."""
    for existing in list(logging.root.handlers):
        if getattr(existing, "_tenantgate", False):
            logging.root.removeHandler(existing)
    handler = logging.StreamHandler()
    handler._tenantgate = True
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s - %(message)s",
        ))
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level.upper(), logging.INFO))
