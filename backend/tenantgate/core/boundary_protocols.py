"""Boundary Protocols - contracts between core and shell.

Invariants:
    - Core NEVER imports from shell; dependency arrows point inward only
    - Browser storage, browser location and the backend are reached through these types
    - Implementations provided by shell via dependency injection

Design Decisions:
    - Protocol over ABC: structural subtyping, test fakes need no base class
    - Storage and location are sync (the browser APIs they model are sync);
      the backend is async because every call is network IO
"""

from collections.abc import Iterable, Mapping
from typing import Any, Protocol

from tenantgate.core.domain_types import (
    CheckoutSession,
    OtpChallenge,
    RegistrationResult,
    Session,
    TokenPair,
    User,
)


class KeyValueStorage(Protocol):
    """String key/value partition (durable per origin, or tab-scoped)."""
    def get(self, key: str) -> str | None: ...
    def set(self, key: str, value: str) -> None: ...
    def remove(self, key: str) -> None: ...
    def keys(self) -> Iterable[str]: ...


class BrowserLocation(Protocol):
    """Visible URL plus the three ways of changing it."""
    @property
    def scheme(self) -> str: ...
    @property
    def hostname(self) -> str: ...
    @property
    def port(self) -> int | None: ...
    @property
    def pathname(self) -> str: ...
    @property
    def query(self) -> Mapping[str, str]: ...
    @property
    def has_opener(self) -> bool: ...

    def replace_state(self, url: str) -> None: ...
    def push_state(self, url: str) -> None: ...
    def assign(self, url: str) -> None: ...


class BackendAPI(Protocol):
    """Backend endpoints consumed by the login, payment and verification flows."""
    async def request_two_factor(self, username: str, language: str = "en") -> OtpChallenge: ...
    async def verify_two_factor(
        self, username: str, password: str, code: str, token: str,
    ) -> TokenPair: ...
    async def refresh_access_token(self, refresh_token: str) -> str: ...
    async def get_current_user(self, access_token: str) -> User: ...
    async def register(self, payload: Mapping[str, Any], language: str = "en") -> RegistrationResult: ...
    async def create_payment_session(
        self,
        subscription_id: int,
        gateway_id: str,
        plan_id: int | None = None,
        billing_cycle: str | None = None,
        access_token: str | None = None,
    ) -> CheckoutSession: ...
    async def check_payment_status(self, subscription_id: int) -> dict: ...
    async def exchange_impersonation(self, code: str) -> Session: ...
    async def resend_verification(self, email: str, access_token: str | None = None) -> dict: ...
    async def verify_email(
        self, email: str, code: str | None = None, token: str | None = None,
    ) -> dict: ...
