"""Flow Markers - small one-shot records that survive between steps of a login or payment.

Invariants:
    - Pending login credentials and pending tokens live in tab-scoped storage only
    - Pending subscription id and the payment success message live in durable storage
    - Readers never raise on malformed values; they return None and drop the record
"""

import json
import time
from collections.abc import Callable
from dataclasses import dataclass

from tenantgate.core.boundary_protocols import KeyValueStorage
from tenantgate.core.domain_types import TokenPair
from tenantgate.core.payment_status import active_success_message, success_message_record

PENDING_SUBSCRIPTION_KEY = "pendingSubscriptionId"
PAYMENT_SUCCESS_KEY = "paymentSuccessMessage"

LOGIN_USERNAME_KEY = "2fa_username"
LOGIN_PASSWORD_KEY = "2fa_password"
LOGIN_TOKEN_KEY = "2fa_token"
PENDING_ACCESS_KEY = "pendingAccessToken"
PENDING_REFRESH_KEY = "pendingRefreshToken"


@dataclass(frozen=True)
class PendingLogin:
    """Credentials held between the password and the code step."""
    username: str
    password: str
    otp_token: str

    def __repr__(self) -> str:
        return f"PendingLogin(username={self.username!r})"


class FlowMarkers:
    def __init__(
        self,
        durable: KeyValueStorage,
        tab: KeyValueStorage,
        clock: Callable[[], float] = time.time,
    ):
        self.durable = durable
        self.tab = tab
        self.clock = clock

    # ─── Pending subscription (durable) ──────────────────────────

    def set_pending_subscription(self, subscription_id: int | None) -> None:
        if subscription_id is None:
            return
        self.durable.set(PENDING_SUBSCRIPTION_KEY, str(subscription_id))

    def pending_subscription(self) -> int | None:
        raw = self.durable.get(PENDING_SUBSCRIPTION_KEY)
        if raw is None:
            return None
        try:
            return int(raw)
        except ValueError:
            self.durable.remove(PENDING_SUBSCRIPTION_KEY)
            return None

    def clear_pending_subscription(self) -> None:
        self.durable.remove(PENDING_SUBSCRIPTION_KEY)

    # ─── Payment success message (durable, time-boxed) ───────────

    def set_payment_success(self, message: str) -> None:
        record = success_message_record(message, self.clock())
        self.durable.set(PAYMENT_SUCCESS_KEY, json.dumps(record))

    def take_payment_success(self, ttl_seconds: int) -> str | None:
        """Read once: the record is removed whether or not it is still fresh."""
        raw = self.durable.get(PAYMENT_SUCCESS_KEY)
        if raw is None:
            return None
        self.durable.remove(PAYMENT_SUCCESS_KEY)
        try:
            record = json.loads(raw)
        except json.JSONDecodeError:
            return None
        return active_success_message(record, self.clock(), ttl_seconds)

    # ─── Pending login (tab) ─────────────────────────────────────

    def set_pending_login(self, pending: PendingLogin) -> None:
        self.tab.set(LOGIN_USERNAME_KEY, pending.username)
        self.tab.set(LOGIN_PASSWORD_KEY, pending.password)
        self.tab.set(LOGIN_TOKEN_KEY, pending.otp_token)

    def pending_login(self) -> PendingLogin | None:
        username = self.tab.get(LOGIN_USERNAME_KEY)
        password = self.tab.get(LOGIN_PASSWORD_KEY)
        token = self.tab.get(LOGIN_TOKEN_KEY)
        if not username or password is None or not token:
            return None
        return PendingLogin(username=username, password=password, otp_token=token)

    def update_otp_token(self, token: str) -> None:
        self.tab.set(LOGIN_TOKEN_KEY, token)

    def clear_pending_login(self) -> None:
        for key in (LOGIN_USERNAME_KEY, LOGIN_PASSWORD_KEY, LOGIN_TOKEN_KEY):
            self.tab.remove(key)

    # ─── Pending tokens (tab) ────────────────────────────────────

    def set_pending_tokens(self, tokens: TokenPair) -> None:
        self.tab.set(PENDING_ACCESS_KEY, tokens.access)
        self.tab.set(PENDING_REFRESH_KEY, tokens.refresh)

    def pending_tokens(self) -> TokenPair | None:
        access = self.tab.get(PENDING_ACCESS_KEY)
        refresh = self.tab.get(PENDING_REFRESH_KEY)
        if not access or not refresh:
            return None
        return TokenPair(access=access, refresh=refresh)

    def clear_pending_tokens(self) -> None:
        self.tab.remove(PENDING_ACCESS_KEY)
        self.tab.remove(PENDING_REFRESH_KEY)
