"""Auth State Machine - login phases and the transitions allowed between them.

Invariants:
    - Happy path: UNAUTHENTICATED -> CREDENTIALS_SUBMITTED -> OTP_REQUESTED ->
      OTP_VERIFIED -> SUBSCRIPTION_CHECKED -> AUTHENTICATED
    - GATED carries a reason; it follows OTP_VERIFIED or SUBSCRIPTION_CHECKED, or
      UNAUTHENTICATED for a registration that still awaits payment
    - FAILED is reachable from every phase and carries the error
    - transition() never mutates; it returns a new AuthState or raises
      InvalidAuthTransitionError

Design Decisions:
    - Transition table as data (ALLOWED_TRANSITIONS): mirrors the phase table style
      used across the core, one place to audit every edge
    - Registration and impersonation reuse the same phases: registration ends GATED
      until payment, impersonation jumps OTP_VERIFIED -> SUBSCRIPTION_CHECKED
"""

from dataclasses import dataclass, replace
from enum import Enum

from tenantgate.core.errors import InvalidAuthTransitionError, TenantGateError


class AuthPhase(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    CREDENTIALS_SUBMITTED = "credentials_submitted"
    OTP_REQUESTED = "otp_requested"
    OTP_VERIFIED = "otp_verified"
    SUBSCRIPTION_CHECKED = "subscription_checked"
    AUTHENTICATED = "authenticated"
    GATED = "gated"
    FAILED = "failed"


GATE_SUBSCRIPTION_INACTIVE = "subscription_inactive"

_P = AuthPhase

ALLOWED_TRANSITIONS: dict[AuthPhase, frozenset[AuthPhase]] = {
    _P.UNAUTHENTICATED: frozenset({
        _P.CREDENTIALS_SUBMITTED, _P.OTP_REQUESTED, _P.OTP_VERIFIED, _P.GATED,
    }),
    _P.CREDENTIALS_SUBMITTED: frozenset({_P.OTP_REQUESTED}),
    _P.OTP_REQUESTED: frozenset({_P.CREDENTIALS_SUBMITTED, _P.OTP_REQUESTED, _P.OTP_VERIFIED}),
    _P.OTP_VERIFIED: frozenset({_P.SUBSCRIPTION_CHECKED, _P.GATED}),
    _P.SUBSCRIPTION_CHECKED: frozenset({_P.AUTHENTICATED, _P.GATED}),
    _P.AUTHENTICATED: frozenset({_P.UNAUTHENTICATED, _P.CREDENTIALS_SUBMITTED}),
    _P.GATED: frozenset({_P.UNAUTHENTICATED, _P.CREDENTIALS_SUBMITTED, _P.SUBSCRIPTION_CHECKED}),
    _P.FAILED: frozenset({
        _P.UNAUTHENTICATED, _P.CREDENTIALS_SUBMITTED, _P.OTP_REQUESTED, _P.OTP_VERIFIED,
    }),
}


@dataclass(frozen=True)
class AuthState:
    phase: AuthPhase = AuthPhase.UNAUTHENTICATED
    username: str | None = None
    gate_reason: str | None = None
    subscription_id: int | None = None
    error: TenantGateError | None = None

    @property
    def is_terminal(self) -> bool:
        return self.phase in (AuthPhase.AUTHENTICATED, AuthPhase.GATED)

    @property
    def retryable(self) -> bool:
        return self.phase == AuthPhase.FAILED and bool(self.error and self.error.recoverable)


def can_transition(source: AuthPhase, target: AuthPhase) -> bool:
    if target == AuthPhase.FAILED:
        return True
    return target in ALLOWED_TRANSITIONS[source]


def transition(state: AuthState, target: AuthPhase, **changes) -> AuthState:
    """Move to target, clearing gate/error details that belong to the old phase."""
    if not can_transition(state.phase, target):
        raise InvalidAuthTransitionError(state.phase.value, target.value)
    base = replace(state, phase=target, error=None, gate_reason=None)
    return replace(base, **changes)


def gate(state: AuthState, reason: str, subscription_id: int | None = None) -> AuthState:
    return transition(
        state, AuthPhase.GATED, gate_reason=reason, subscription_id=subscription_id,
    )


def fail(state: AuthState, error: TenantGateError) -> AuthState:
    return transition(state, AuthPhase.FAILED, error=error)


def reset() -> AuthState:
    return AuthState()
