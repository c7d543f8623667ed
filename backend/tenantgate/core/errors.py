"""Error Hierarchy - typed, categorized exceptions for every routing and login failure mode.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Each error carries a message_key for the UI layer; message is the English default
    - Routing/handoff errors are recovered locally; auth/payment errors reach the user
    - No secrets (passwords, tokens, codes) ever appear in messages or context

Design Decisions:
    - Single hierarchy rooted at TenantGateError: the FastAPI global handler catches all
    - ErrorContext as dataclass: observability fields without coupling to logging
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    BUSINESS_RULE = "business_rule"
    ROUTING = "routing"
    EXTERNAL_API = "external_api"
    RATE_LIMIT = "rate_limit"
    INTERNAL = "internal"
    TIMEOUT = "timeout"


@dataclass
class ErrorContext:
    """Context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    path: str | None = None
    username: str | None = None
    subscription_id: int | None = None
    endpoint: str | None = None
    debug_info: dict[str, Any] | None = None
    retry_after_ms: int | None = None


class TenantGateError(Exception):
    """Base exception for all tenantgate errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
        message_key: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status
        self.message_key = message_key or code.lower()

    @property
    def recoverable(self) -> bool:
        return self.severity in (ErrorSeverity.INFO, ErrorSeverity.WARNING)

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "message_key": self.message_key,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "path": self.context.path,
                    "subscription_id": self.context.subscription_id,
                    "retry_after_ms": self.context.retry_after_ms,
                },
            }
        }


# ─── Authentication Errors (user-facing) ─────────────────────────

class CredentialError(TenantGateError):
    """Bad username/password, unknown or inactive account."""
    def __init__(
        self, message: str, kind: str = "invalid_credentials",
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, "CREDENTIAL_ERROR", ErrorCategory.AUTHENTICATION,
            ErrorSeverity.ERROR, context, 401, message_key=f"login_error_{kind}",
        )
        self.kind = kind


class OtpError(TenantGateError):
    """Expired, invalid or rejected second-factor code. Retryable."""
    def __init__(
        self, message: str, kind: str = "invalid", context: ErrorContext | None = None,
    ):
        super().__init__(
            message, "OTP_ERROR", ErrorCategory.AUTHENTICATION,
            ErrorSeverity.WARNING, context, 401, message_key=f"otp_{kind}",
        )
        self.kind = kind


class OtpCooldownError(TenantGateError):
    """A code was requested again before the resend cooldown elapsed."""
    def __init__(self, remaining_seconds: int, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.retry_after_ms = remaining_seconds * 1000
        super().__init__(
            f"Please wait {remaining_seconds} seconds before resending",
            "OTP_COOLDOWN", ErrorCategory.RATE_LIMIT,
            ErrorSeverity.WARNING, ctx, 429, message_key="resend_cooldown",
        )
        self.remaining_seconds = remaining_seconds


class SubscriptionInactiveError(TenantGateError):
    """Company subscription is not active. A gate, not a login failure."""
    def __init__(
        self, subscription_id: int | None = None, context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.subscription_id = subscription_id
        super().__init__(
            "No active subscription for this company",
            "SUBSCRIPTION_INACTIVE", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.WARNING, ctx, 403, message_key="subscription_inactive",
        )
        self.subscription_id = subscription_id


class InvalidAuthTransitionError(TenantGateError):
    """Auth state machine asked to take a transition it does not allow."""
    def __init__(self, source: str, target: str, context: ErrorContext | None = None):
        super().__init__(
            f"Cannot move login flow from {source} to {target}",
            "INVALID_AUTH_TRANSITION", ErrorCategory.INTERNAL,
            ErrorSeverity.ERROR, context, 409,
        )
        self.source = source
        self.target = target


# ─── Routing / Handoff Errors (recovered locally) ────────────────

class HandoffDecodeError(TenantGateError):
    """Handoff bundle is truncated, not base64, not JSON, or missing fields."""
    def __init__(self, reason: str, context: ErrorContext | None = None):
        super().__init__(
            f"Malformed handoff bundle: {reason}",
            "HANDOFF_DECODE_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.WARNING, context, 400,
        )
        self.reason = reason


MalformedHandoffError = HandoffDecodeError


class RouteResolutionMiss(TenantGateError):
    """Page slug not present in the page table."""
    def __init__(self, slug: str, context: ErrorContext | None = None):
        super().__init__(
            f"Unknown page slug '{slug}'",
            "ROUTE_RESOLUTION_MISS", ErrorCategory.ROUTING,
            ErrorSeverity.INFO, context, 404,
        )
        self.slug = slug


# ─── Payment Errors ──────────────────────────────────────────────

class PaymentFailedError(TenantGateError):
    """Gateway or backend reported the payment as failed."""
    def __init__(self, message: str = "Payment failed. Please try again.",
                 context: ErrorContext | None = None):
        super().__init__(
            message, "PAYMENT_FAILED", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, context, 402, message_key="payment_failed",
        )


class PollingExhaustedError(TenantGateError):
    """Payment status still undetermined after the attempt ceiling."""
    def __init__(self, attempts: int, context: ErrorContext | None = None):
        super().__init__(
            "Payment is still being processed. Please wait a moment and refresh.",
            "PAYMENT_PENDING", ErrorCategory.TIMEOUT,
            ErrorSeverity.WARNING, context, 202, message_key="payment_pending",
        )
        self.attempts = attempts


# ─── Infrastructure Errors ───────────────────────────────────────

class BackendAPIError(TenantGateError):
    """Backend call failed for a reason not covered by a domain error."""
    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        endpoint: str | None = None,
        backend_code: str | None = None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.endpoint = endpoint
        super().__init__(
            message, "BACKEND_API_ERROR", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.ERROR if status_code and status_code < 500 else ErrorSeverity.CRITICAL,
            ctx, 502,
        )
        self.status_code = status_code
        self.endpoint = endpoint
        self.backend_code = backend_code

    @property
    def not_found(self) -> bool:
        return self.status_code == 404
