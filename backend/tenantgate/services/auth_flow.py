"""Auth Flow - credentials, second factor and the subscription gate, driven through AuthState.

Invariants:
    - Every phase change goes through core.auth_machine.transition
    - Tokens from verify-2FA reach the Session Store only after the user fetch
      confirms an active subscription; a gated login leaves the store cleared
    - Pending credentials live in tab-scoped storage and are dropped once the
      login ends (authenticated or gated)
    - Typed errors are recorded on the state (FAILED) and re-raised to the caller;
      the subscription gate is a resting state, not an error

Design Decisions:
    - The current user is fetched with the new access token passed explicitly, so
      nothing is persisted while the gate is still open
    - Registration with an unpaid subscription keeps its tokens tab-scoped for the
      checkout and the post-payment user fetch
"""

import logging

from tenantgate.core.auth_machine import (
    GATE_SUBSCRIPTION_INACTIVE,
    AuthPhase,
    AuthState,
    fail,
    gate,
    reset,
    transition,
)
from tenantgate.core.auth_messages import (
    classify_credential_error,
    classify_otp_error,
    credential_error,
    otp_error,
)
from tenantgate.core.boundary_protocols import BackendAPI
from tenantgate.core.domain_types import Page, Session
from tenantgate.core.errors import (
    BackendAPIError,
    CredentialError,
    OtpCooldownError,
    SubscriptionInactiveError,
    TenantGateError,
)
from tenantgate.core.path_codec import relative_url
from tenantgate.core.page_table import PUBLIC_PAGE_PATHS
from tenantgate.services.cooldown_store import CooldownStore
from tenantgate.services.handoff import HandoffService
from tenantgate.services.markers import FlowMarkers, PendingLogin
from tenantgate.services.navigation import PageRouter
from tenantgate.services.session_store import SessionStore

logger = logging.getLogger(__name__)

GATE_PAYMENT_REQUIRED = "payment_required"


def _is_client_error(e: BackendAPIError) -> bool:
    return e.status_code is not None and 400 <= e.status_code < 500


class AuthFlow:
    def __init__(
        self,
        backend: BackendAPI,
        sessions: SessionStore,
        markers: FlowMarkers,
        otp_cooldown: CooldownStore,
        handoff: HandoffService,
        router: PageRouter,
        otp_length: int = 6,
    ):
        self.backend = backend
        self.sessions = sessions
        self.markers = markers
        self.otp_cooldown = otp_cooldown
        self.handoff = handoff
        self.router = router
        self.otp_length = otp_length
        self.state = AuthState()

    # ─── State helpers ───────────────────────────────────────────

    def _move(self, target: AuthPhase, **changes) -> None:
        self.state = transition(self.state, target, **changes)
        logger.info("Auth phase changed", extra={"auth_phase": target.value})

    def _fail(self, error: TenantGateError) -> TenantGateError:
        self.state = fail(self.state, error)
        logger.warning(
            f"Auth step failed: {error.message}",
            extra={"auth_phase": AuthPhase.FAILED.value, "error_code": error.code},
        )
        return error

    def _gate(self, reason: str, subscription_id: int | None) -> AuthState:
        self.sessions.clear()
        self.markers.clear_pending_login()
        if subscription_id is None:
            subscription_id = self.markers.pending_subscription()
        self.markers.set_pending_subscription(subscription_id)
        self.state = gate(self.state, reason, subscription_id)
        logger.info(
            "Login gated",
            extra={
                "auth_phase": AuthPhase.GATED.value,
                "reason": reason,
                "subscription_id": subscription_id,
            },
        )
        return self.state

    def _land(self, session: Session, page: Page = Page.DASHBOARD) -> None:
        """Hand off to the company origin, or navigate in place."""
        if self.handoff.redirect_if_needed(session, page) is None:
            self.router.navigate(page)

    @property
    def pending_subscription_id(self) -> int | None:
        if self.state.subscription_id is not None:
            return self.state.subscription_id
        return self.markers.pending_subscription()

    # ─── Credentials ─────────────────────────────────────────────

    async def submit_credentials(
        self, username: str, password: str, language: str = "en",
    ) -> AuthState:
        """Request a code for username; the password is checked at the code step."""
        username = (username or "").strip()
        if not username or not (password or "").strip():
            raise self._fail(credential_error("missing_credentials"))

        self._move(AuthPhase.CREDENTIALS_SUBMITTED, username=username, subscription_id=None)
        try:
            challenge = await self.backend.request_two_factor(username, language)
        except (CredentialError, SubscriptionInactiveError) as e:
            if isinstance(e, SubscriptionInactiveError):
                self.markers.set_pending_subscription(e.subscription_id)
            raise self._fail(e)
        except BackendAPIError as e:
            if not _is_client_error(e):
                raise self._fail(e)
            kind = classify_credential_error(e.message, e.backend_code)
            raise self._fail(credential_error(kind)) from e

        self.markers.set_pending_login(PendingLogin(username, password, challenge.token))
        self.otp_cooldown.start(username)
        self._move(AuthPhase.OTP_REQUESTED)
        self.router.navigate(Page.TWO_FACTOR_AUTH)
        return self.state

    # ─── Second factor ───────────────────────────────────────────

    def _pending_login(self) -> PendingLogin:
        pending = self.markers.pending_login()
        if pending is None:
            raise self._fail(otp_error("session_lost"))
        return pending

    def resend_remaining(self) -> int:
        pending = self.markers.pending_login()
        if pending is None:
            return 0
        return self.otp_cooldown.remaining(pending.username)

    async def resend_otp(self, language: str = "en") -> int:
        """Request a fresh code. Returns the cooldown that now applies, in seconds."""
        pending = self._pending_login()
        remaining = self.otp_cooldown.remaining(pending.username)
        if remaining > 0:
            raise OtpCooldownError(remaining)

        try:
            challenge = await self.backend.request_two_factor(pending.username, language)
        except CredentialError as e:
            raise self._fail(e)
        except BackendAPIError as e:
            if not _is_client_error(e):
                raise self._fail(e)
            raise self._fail(otp_error("failed")) from e

        self.markers.update_otp_token(challenge.token)
        self.otp_cooldown.start(pending.username)
        self._move(AuthPhase.OTP_REQUESTED, username=pending.username)
        return self.otp_cooldown.window_seconds

    async def verify_otp(self, code: str) -> AuthState:
        """Verify the code, then admit the user only with an active subscription."""
        pending = self._pending_login()
        code = (code or "").strip()
        if len(code) != self.otp_length or not code.isdigit():
            raise self._fail(otp_error("malformed"))

        try:
            tokens = await self.backend.verify_two_factor(
                pending.username, pending.password, code, pending.otp_token,
            )
        except SubscriptionInactiveError as e:
            self._move(AuthPhase.OTP_VERIFIED, username=pending.username)
            return self._gate(GATE_SUBSCRIPTION_INACTIVE, e.subscription_id)
        except CredentialError as e:
            raise self._fail(e)
        except BackendAPIError as e:
            if not _is_client_error(e):
                raise self._fail(e)
            raise self._fail(otp_error(classify_otp_error(e.message))) from e

        self._move(AuthPhase.OTP_VERIFIED, username=pending.username)
        try:
            user = await self.backend.get_current_user(tokens.access)
        except TenantGateError as e:
            self.sessions.clear()
            raise self._fail(e)

        if not user.subscription_active:
            return self._gate(GATE_SUBSCRIPTION_INACTIVE, user.subscription_id)

        self._move(AuthPhase.SUBSCRIPTION_CHECKED, subscription_id=user.subscription_id)
        session = Session(tokens.access, tokens.refresh, user)
        self.sessions.set(session)
        self.markers.clear_pending_login()
        self.markers.clear_pending_subscription()
        self.otp_cooldown.reset()
        self._move(AuthPhase.AUTHENTICATED)
        self._land(session)
        return self.state

    # ─── Registration / impersonation / logout ───────────────────

    async def register(self, payload: dict, language: str = "en") -> AuthState:
        """Create company and owner. Unpaid plans end GATED on the payment page."""
        self.state = reset()
        self.sessions.clear()
        try:
            result = await self.backend.register(payload, language)
        except TenantGateError as e:
            raise self._fail(e)

        if result.requires_payment and result.subscription_id is not None:
            self.markers.set_pending_tokens(result.tokens)
            self._gate(GATE_PAYMENT_REQUIRED, result.subscription_id)
            self.router.browser.push_state(relative_url(
                PUBLIC_PAGE_PATHS[Page.PAYMENT], {"subscription_id": str(result.subscription_id)},
            ))
            self.router.handle_location_change("navigate")
            return self.state

        session = Session(result.tokens.access, result.tokens.refresh, result.user)
        self._move(AuthPhase.OTP_VERIFIED, username=result.user.username)
        self._move(AuthPhase.SUBSCRIPTION_CHECKED, subscription_id=result.subscription_id)
        self.sessions.set(session)
        self._move(AuthPhase.AUTHENTICATED)
        self._land(session)
        return self.state

    async def exchange_impersonation(self, code: str | None) -> AuthState:
        """Trade a one-time support code for a session and open its dashboard."""
        self.state = reset()
        code = (code or "").strip()
        if not code:
            raise self._fail(credential_error("impersonation_code"))
        try:
            session = await self.backend.exchange_impersonation(code)
        except BackendAPIError as e:
            if not _is_client_error(e):
                raise self._fail(e)
            raise self._fail(credential_error("impersonation_code")) from e
        except TenantGateError as e:
            raise self._fail(e)

        self._move(AuthPhase.OTP_VERIFIED, username=session.user.username)
        self._move(AuthPhase.SUBSCRIPTION_CHECKED, subscription_id=session.user.subscription_id)
        self.sessions.set(session)
        self._move(AuthPhase.AUTHENTICATED)
        self._land(session)
        return self.state

    def logout(self) -> None:
        self.sessions.clear()
        self.markers.clear_pending_login()
        self.markers.clear_pending_tokens()
        self.state = reset()
        logger.info("Logged out", extra={"auth_phase": AuthPhase.UNAUTHENTICATED.value})
        self.router.navigate(Page.LOGIN)
