"""Cooldown Store - persisted resend cooldowns (2FA codes, e-mail verification codes).

Invariants:
    - One record per storage key; starting a cooldown for a new subject replaces it
    - Records live in durable storage so a reload keeps the window
    - Expired or unreadable records are removed on read
"""

import json
import logging
import time
from collections.abc import Callable

from tenantgate.core.boundary_protocols import KeyValueStorage
from tenantgate.core.cooldown import is_expired, remaining_seconds, start_record

logger = logging.getLogger(__name__)

OTP_COOLDOWN_KEY = "2faResendCooldown"
EMAIL_COOLDOWN_KEY = "emailVerificationCooldown"


class CooldownStore:
    def __init__(
        self,
        storage: KeyValueStorage,
        key: str,
        window_seconds: int = 60,
        clock: Callable[[], float] = time.time,
    ):
        self.storage = storage
        self.key = key
        self.window_seconds = window_seconds
        self.clock = clock

    def _record(self) -> dict | None:
        raw = self.storage.get(self.key)
        if raw is None:
            return None
        try:
            record = json.loads(raw)
        except json.JSONDecodeError:
            self.storage.remove(self.key)
            return None
        if is_expired(record, self.clock(), self.window_seconds):
            self.storage.remove(self.key)
            return None
        return record

    def remaining(self, subject: str) -> int:
        return remaining_seconds(self._record(), subject, self.clock(), self.window_seconds)

    def start(self, subject: str) -> None:
        self.storage.set(self.key, json.dumps(start_record(subject, self.clock())))
        logger.debug("Cooldown started", extra={"reason": self.key})

    def reset(self) -> None:
        self.storage.remove(self.key)
