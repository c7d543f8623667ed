"""App Shell - wires the stores and flows for one origin and runs the startup sequence.

Invariants:
    - bootstrap() order: hydrate -> consume handoff -> origin check -> user
      refresh -> first router resolution
    - On the main domain a stored session whose company has its own origin is
      dropped; on the wrong company origin it is handed over instead
    - A user whose subscription went inactive is signed out with the pending
      subscription id kept for the payment page
    - A backend outage during the refresh keeps the cached session; any other
      rejection of the stored session (4xx, typed credential error) signs out

Design Decisions:
    - One 401 triggers one token refresh and one retry; a second failure signs out
    - Subscription gates are created per payment page visit (new_subscription_gate)
      so a finished run never blocks the next checkout
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import replace

from tenantgate.config import Settings
from tenantgate.core.boundary_protocols import BackendAPI, BrowserLocation, KeyValueStorage
from tenantgate.core.domain_types import Page, SubscriptionStatus, User
from tenantgate.core.errors import BackendAPIError, SubscriptionInactiveError, TenantGateError
from tenantgate.core.page_router import LOGIN_PATH
from tenantgate.core.path_codec import current_subdomain, is_ip_literal, main_origin
from tenantgate.services.auth_flow import AuthFlow
from tenantgate.services.cooldown_store import EMAIL_COOLDOWN_KEY, OTP_COOLDOWN_KEY, CooldownStore
from tenantgate.services.email_verification import EmailVerificationPrompt
from tenantgate.services.handoff import HandoffService, HandoffStatus
from tenantgate.services.markers import FlowMarkers
from tenantgate.services.navigation import NavigationState, PageRouter
from tenantgate.services.session_store import SessionStore
from tenantgate.services.subscription_gate import Sleep, SubscriptionGate

logger = logging.getLogger(__name__)


class AppShell:
    def __init__(
        self,
        settings: Settings,
        backend: BackendAPI,
        durable: KeyValueStorage,
        tab: KeyValueStorage,
        browser: BrowserLocation,
        clock: Callable[[], float] = time.time,
        sleep: Sleep = asyncio.sleep,
    ):
        self.settings = settings
        self.backend = backend
        self.browser = browser
        self._sleep = sleep

        self.sessions = SessionStore(durable)
        self.markers = FlowMarkers(durable, tab, clock)
        self.otp_cooldown = CooldownStore(
            durable, OTP_COOLDOWN_KEY, settings.otp_resend_cooldown_seconds, clock,
        )
        self.email_cooldown = CooldownStore(
            durable, EMAIL_COOLDOWN_KEY, settings.email_verification_cooldown_seconds, clock,
        )
        self.handoff = HandoffService(
            self.sessions, browser, tab,
            base_domain=settings.base_domain,
            enabled=settings.subdomain_handoff_enabled,
        )
        self.router = PageRouter(
            self.sessions, browser, max_redirects=settings.router_max_redirects,
        )
        self.auth = AuthFlow(
            backend, self.sessions, self.markers, self.otp_cooldown,
            self.handoff, self.router, otp_length=settings.otp_length,
        )
        self.email_verification = EmailVerificationPrompt(
            backend, self.sessions, self.email_cooldown, code_length=settings.otp_length,
        )

    def new_subscription_gate(self) -> SubscriptionGate:
        s = self.settings
        return SubscriptionGate(
            self.backend, self.sessions, self.markers, self.handoff, self.router, self.browser,
            poll_interval_seconds=s.payment_poll_interval_seconds,
            max_poll_attempts=s.payment_max_poll_attempts,
            confirmed_max_poll_attempts=s.payment_confirmed_max_poll_attempts,
            max_poll_errors=s.payment_max_poll_errors,
            sleep=self._sleep,
        )

    def login_notice(self) -> str | None:
        """Payment success message left for the login page, read once."""
        return self.markers.take_payment_success(self.settings.payment_success_message_ttl_seconds)

    # ─── Startup ─────────────────────────────────────────────────

    async def bootstrap(self) -> NavigationState | None:
        """Startup sequence. Returns None when the page is being left for another origin."""
        self.sessions.hydrate()
        outcome = self.handoff.consume()

        session = self.sessions.get()
        if session is not None and outcome.status == HandoffStatus.ABSENT:
            if self._on_main_domain() and self.handoff.needs_handoff(session):
                logger.info("Company session found on the main domain, signing out here")
                self.sessions.clear()
            elif self.handoff.redirect_if_needed(session, Page.DASHBOARD):
                return None

        if self.sessions.get() is not None:
            user = await self._refresh_user()
            if user is not None and not user.subscription_active:
                if self._sign_out_inactive(user.subscription_id):
                    return None

        return self.router.handle_location_change("initial")

    def _on_main_domain(self) -> bool:
        host = self.browser.hostname
        if is_ip_literal(host):
            return False
        return current_subdomain(host, self.settings.base_domain) is None

    async def _refresh_user(self) -> User | None:
        """Fresh user, or None when the session was dropped or the backend is unreachable."""
        session = self.sessions.get()
        try:
            user = await self.backend.get_current_user(session.access_token)
        except SubscriptionInactiveError as e:
            subscription_id = e.subscription_id or session.user.subscription_id
            return replace(session.user, subscription=SubscriptionStatus(subscription_id, False))
        except BackendAPIError as e:
            if e.status_code == 401:
                return await self._refresh_token_and_retry()
            if e.status_code is not None and 400 <= e.status_code < 500:
                logger.warning("Stored session rejected, signing out", extra={"status_code": e.status_code})
                self.sessions.clear()
                return None
            logger.warning(
                f"User refresh failed, keeping cached session: {e.message}",
                extra={"status_code": e.status_code, "endpoint": e.endpoint},
            )
            return None
        except TenantGateError as e:
            # Typed rejections (e.g. a temporarily inactive account) end the session
            logger.warning(f"Stored session rejected, signing out: {e.message}", extra={"error_code": e.code})
            self.sessions.clear()
            return None
        self.sessions.replace_user(user)
        return user

    async def _refresh_token_and_retry(self) -> User | None:
        session = self.sessions.get()
        try:
            access = await self.backend.refresh_access_token(session.refresh_token)
            self.sessions.replace_access_token(access)
            user = await self.backend.get_current_user(access)
        except TenantGateError as e:
            logger.warning(f"Token refresh failed, signing out: {e.message}", extra={"error_code": e.code})
            self.sessions.clear()
            return None
        self.sessions.replace_user(user)
        return user

    def _sign_out_inactive(self, subscription_id: int | None) -> bool:
        """Clear the session; True when the browser was sent to the main-domain login."""
        self.markers.set_pending_subscription(subscription_id)
        self.sessions.clear()
        logger.info(
            "Subscription inactive, session cleared",
            extra={"subscription_id": subscription_id},
        )
        if self._on_main_domain() or is_ip_literal(self.browser.hostname):
            return False
        origin = main_origin(
            self.browser.hostname, scheme=self.browser.scheme,
            port=self.browser.port, configured=self.settings.base_domain,
        )
        self.browser.assign(origin + LOGIN_PATH)
        return True
