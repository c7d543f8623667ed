"""Payment Status - parse the gateway return URL and classify status-endpoint results.

Invariants:
    - classify_payment_status is total: anything unrecognised is PENDING
    - COMPLETED wins over FAILED when a result carries both signals
    - parse_payment_return never raises; a non-numeric subscription id becomes None
"""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

APPROVED_GATEWAY_STATUSES = frozenset({"A", "Approved"})
PENDING_GATEWAY_STATUS = "pending"


class PaymentOutcome(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    PENDING = "pending"


class GateStatus(str, Enum):
    """Lifecycle of one post-payment gate run."""
    IDLE = "idle"
    CHECKING = "checking"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    PENDING = "pending"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (
            GateStatus.COMPLETED, GateStatus.FAILED,
            GateStatus.PENDING, GateStatus.CANCELLED,
        )


@dataclass(frozen=True)
class PaymentReturn:
    """Hints the gateway (via the backend) leaves on the return URL."""
    subscription_id: int | None
    status: str | None = None
    tran_ref: str | None = None
    message: str | None = None

    @property
    def asserts_success(self) -> bool:
        return self.status == "success" and bool(self.tran_ref)

    @property
    def asserts_failure(self) -> bool:
        return self.status == "failed"


def _parse_int(raw: Any) -> int | None:
    try:
        return int(str(raw).strip())
    except (TypeError, ValueError):
        return None


def parse_payment_return(query: Mapping[str, str]) -> PaymentReturn:
    raw_id = query.get("subscription_id")
    return PaymentReturn(
        subscription_id=_parse_int(raw_id) if raw_id else None,
        status=query.get("status") or None,
        tran_ref=query.get("tranRef") or query.get("tran_ref") or None,
        message=query.get("message") or None,
    )


def _truthy(value: Any) -> bool:
    if value is True:
        return True
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value == 1
    return str(value).strip().lower() == "true"


def classify_payment_status(result: Mapping[str, Any] | None) -> PaymentOutcome:
    """completed / failed / pending for one check-payment-status response."""
    if not result:
        return PaymentOutcome.PENDING
    gateway_status = result.get("paytabs_status")
    if (
        _truthy(result.get("subscription_active"))
        or result.get("payment_status") == "completed"
        or gateway_status in APPROVED_GATEWAY_STATUSES
    ):
        return PaymentOutcome.COMPLETED
    if result.get("payment_status") == "failed":
        return PaymentOutcome.FAILED
    if gateway_status and gateway_status != PENDING_GATEWAY_STATUS:
        return PaymentOutcome.FAILED
    return PaymentOutcome.PENDING


# ─── Time-boxed payment success message ──────────────────────────

def success_message_record(message: str, now: float) -> dict:
    return {"message": message, "timestamp": now}


def active_success_message(record: Any, now: float, ttl_seconds: int) -> str | None:
    """Message text while the record is younger than ttl_seconds, else None."""
    if not isinstance(record, dict):
        return None
    stamp = record.get("timestamp")
    message = record.get("message")
    if not isinstance(stamp, (int, float)) or not isinstance(message, str):
        return None
    if now - stamp > ttl_seconds:
        return None
    return message
