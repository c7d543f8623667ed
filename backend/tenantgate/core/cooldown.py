"""Cooldown - fixed-window resend throttling keyed by a subject (username or e-mail).

Invariants:
    - remaining_seconds is in [0, window]; 0 means a send is allowed now
    - A record for a different subject never blocks the current one
    - Records are plain dicts ({"subject", "started_at"}) so they persist as JSON
"""

import math

DEFAULT_WINDOW_SECONDS = 60


def start_record(subject: str, now: float) -> dict:
    return {"subject": subject, "started_at": now}


def remaining_seconds(
    record: dict | None, subject: str, now: float,
    window: int = DEFAULT_WINDOW_SECONDS,
) -> int:
    """Whole seconds left before subject may send again."""
    if not isinstance(record, dict) or record.get("subject") != subject:
        return 0
    started = record.get("started_at")
    if not isinstance(started, (int, float)):
        return 0
    elapsed = now - started
    if elapsed < 0:
        # Clock moved backwards: treat as a fresh window
        elapsed = 0
    left = window - elapsed
    if left <= 0:
        return 0
    return min(window, math.ceil(left))


def is_expired(record: dict | None, now: float, window: int = DEFAULT_WINDOW_SECONDS) -> bool:
    """True when the record no longer blocks anyone and can be dropped."""
    if not isinstance(record, dict):
        return True
    started = record.get("started_at")
    if not isinstance(started, (int, float)):
        return True
    return now - started >= window
