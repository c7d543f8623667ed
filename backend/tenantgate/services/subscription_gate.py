"""Subscription Gate - checkout redirect and post-payment status polling.

Invariants:
    - One run per gate instance: run() hands every caller the same task
    - Every run ends in a terminal GateStatus; polling is bounded by the attempt
      ceiling and the error budget, and stops issuing requests once terminal
    - A return URL asserting success (status=success + tranRef) costs one status
      check; polling only follows when that check is inconclusive or errors
    - A 404 from the status endpoint ends the run immediately, as does any typed
      domain error (inactive subscription or account) from a status check
    - Exhaustion is PENDING with PollingExhaustedError recorded, never raised

Design Decisions:
    - Polling is an asyncio.Task with explicit cancel(), not a timer id
    - sleep is injected so tests drive the poll interval without waiting
    - On completion the user is re-fetched with whichever token exists (live
      session or pending registration tokens); with none, a time-boxed success
      message is stored and the flow lands on /login
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from tenantgate.core.boundary_protocols import BackendAPI, BrowserLocation
from tenantgate.core.domain_types import CheckoutSession, Page, Session
from tenantgate.core.errors import (
    BackendAPIError,
    PaymentFailedError,
    PollingExhaustedError,
    TenantGateError,
)
from tenantgate.core.payment_status import (
    GateStatus,
    PaymentOutcome,
    classify_payment_status,
    parse_payment_return,
)
from tenantgate.services.handoff import HandoffService
from tenantgate.services.markers import FlowMarkers
from tenantgate.services.navigation import PageRouter
from tenantgate.services.session_store import SessionStore

logger = logging.getLogger(__name__)

PAYMENT_SUCCESS_MESSAGE = "Payment successful! Your subscription is now active."

Sleep = Callable[[float], Awaitable[None]]


@dataclass
class GateResult:
    status: GateStatus
    subscription_id: int | None = None
    attempts: int = 0
    error: TenantGateError | None = None
    redirect_url: str | None = None


class SubscriptionGate:
    def __init__(
        self,
        backend: BackendAPI,
        sessions: SessionStore,
        markers: FlowMarkers,
        handoff: HandoffService,
        router: PageRouter,
        browser: BrowserLocation,
        poll_interval_seconds: float = 2.0,
        max_poll_attempts: int = 10,
        confirmed_max_poll_attempts: int = 5,
        max_poll_errors: int = 3,
        sleep: Sleep = asyncio.sleep,
    ):
        self.backend = backend
        self.sessions = sessions
        self.markers = markers
        self.handoff = handoff
        self.router = router
        self.browser = browser
        self.poll_interval_seconds = poll_interval_seconds
        self.max_poll_attempts = max_poll_attempts
        self.confirmed_max_poll_attempts = confirmed_max_poll_attempts
        self.max_poll_errors = max_poll_errors
        self._sleep = sleep
        self._task: asyncio.Task | None = None
        self.status = GateStatus.IDLE
        self.result: GateResult | None = None

    # ─── Checkout ────────────────────────────────────────────────

    def _access_token(self) -> str | None:
        session = self.sessions.get()
        if session is not None:
            return session.access_token
        pending = self.markers.pending_tokens()
        return pending.access if pending else None

    async def start_checkout(
        self,
        subscription_id: int,
        gateway_id: str,
        plan_id: int | None = None,
        billing_cycle: str | None = None,
    ) -> CheckoutSession:
        """Create a gateway session; redirect-style gateways leave the page."""
        checkout = await self.backend.create_payment_session(
            subscription_id, gateway_id,
            plan_id=plan_id, billing_cycle=billing_cycle,
            access_token=self._access_token(),
        )
        self.markers.set_pending_subscription(subscription_id)
        if checkout.is_redirect:
            logger.info(
                "Redirecting to payment gateway",
                extra={"subscription_id": subscription_id, "source": gateway_id},
            )
            self.browser.assign(checkout.redirect_url)
        return checkout

    # ─── Post-payment run ────────────────────────────────────────

    def run(self) -> "asyncio.Task[GateResult]":
        """Start the post-payment check, or join the one already running."""
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._run())
        return self._task

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        if not self.status.is_terminal:
            self.status = GateStatus.CANCELLED
            logger.info("Payment polling cancelled")

    async def _run(self) -> GateResult:
        try:
            return await self._check_and_poll()
        except asyncio.CancelledError:
            self.status = GateStatus.CANCELLED
            raise

    async def _check_and_poll(self) -> GateResult:
        returned = parse_payment_return(self.browser.query)
        subscription_id = returned.subscription_id or self.markers.pending_subscription()
        if subscription_id is None:
            return self._finish(
                GateStatus.FAILED, None, 0,
                PaymentFailedError("Subscription ID not found. Please contact support."),
            )
        if returned.asserts_failure:
            return self._finish(
                GateStatus.FAILED, subscription_id, 0,
                PaymentFailedError(returned.message or "Payment failed. Please try again."),
            )

        attempts = 0
        ceiling = self.max_poll_attempts
        if returned.asserts_success:
            self.status = GateStatus.CHECKING
            attempts += 1
            try:
                result = await self.backend.check_payment_status(subscription_id)
            except BackendAPIError as e:
                logger.warning(
                    f"Confirmation check failed, falling back to polling: {e.message}",
                    extra={"subscription_id": subscription_id, "status_code": e.status_code},
                )
            except TenantGateError as e:
                return self._finish(GateStatus.FAILED, subscription_id, attempts, e)
            else:
                outcome = classify_payment_status(result)
                if outcome == PaymentOutcome.COMPLETED:
                    return await self._complete(subscription_id, attempts)
                if outcome == PaymentOutcome.FAILED:
                    return self._finish(
                        GateStatus.FAILED, subscription_id, attempts, PaymentFailedError(),
                    )
                ceiling = self.confirmed_max_poll_attempts

        return await self._poll(subscription_id, ceiling, attempts)

    async def _poll(self, subscription_id: int, ceiling: int, attempts: int) -> GateResult:
        self.status = GateStatus.POLLING
        polls = 0
        errors = 0
        while polls < ceiling:
            if attempts:
                await self._sleep(self.poll_interval_seconds)
            polls += 1
            attempts += 1
            try:
                result = await self.backend.check_payment_status(subscription_id)
            except BackendAPIError as e:
                if e.not_found:
                    return self._finish(GateStatus.FAILED, subscription_id, attempts, e)
                errors += 1
                logger.warning(
                    f"Payment status poll failed: {e.message}",
                    extra={"subscription_id": subscription_id, "attempt": attempts},
                )
                if errors >= self.max_poll_errors:
                    break
                continue
            except TenantGateError as e:
                # Typed 403s (inactive account or subscription) will not change on retry
                return self._finish(GateStatus.FAILED, subscription_id, attempts, e)

            outcome = classify_payment_status(result)
            logger.debug(
                f"Payment status: {outcome.value}",
                extra={"subscription_id": subscription_id, "attempt": attempts},
            )
            if outcome == PaymentOutcome.COMPLETED:
                return await self._complete(subscription_id, attempts)
            if outcome == PaymentOutcome.FAILED:
                return self._finish(
                    GateStatus.FAILED, subscription_id, attempts, PaymentFailedError(),
                )

        return self._finish(
            GateStatus.PENDING, subscription_id, attempts, PollingExhaustedError(polls),
        )

    # ─── Terminal states ─────────────────────────────────────────

    def _finish(
        self,
        status: GateStatus,
        subscription_id: int | None,
        attempts: int,
        error: TenantGateError | None = None,
        redirect_url: str | None = None,
    ) -> GateResult:
        self.status = status
        self.result = GateResult(status, subscription_id, attempts, error, redirect_url)
        log = logger.info if status == GateStatus.COMPLETED else logger.warning
        log(
            f"Payment gate finished: {status.value}",
            extra={
                "subscription_id": subscription_id,
                "attempt": attempts,
                "error_code": error.code if error else None,
            },
        )
        return self.result

    async def _complete(self, subscription_id: int, attempts: int) -> GateResult:
        self.markers.clear_pending_subscription()
        session = self.sessions.get()
        pending = self.markers.pending_tokens()
        token = session.access_token if session else (pending.access if pending else None)
        if token is None:
            return self._land_on_login(subscription_id, attempts)

        try:
            user = await self.backend.get_current_user(token)
        except TenantGateError as e:
            logger.warning(
                f"User refresh after payment failed: {e.message}",
                extra={"subscription_id": subscription_id, "error_code": e.code},
            )
            return self._land_on_login(subscription_id, attempts)

        if session is not None:
            session = self.sessions.replace_user(user)
        else:
            session = Session(pending.access, pending.refresh, user)
            self.sessions.set(session)
        self.markers.clear_pending_tokens()

        redirect_url = self.handoff.redirect_if_needed(session)
        if redirect_url is None:
            self.router.navigate(Page.DASHBOARD)
        return self._finish(
            GateStatus.COMPLETED, subscription_id, attempts, redirect_url=redirect_url,
        )

    def _land_on_login(self, subscription_id: int, attempts: int) -> GateResult:
        self.markers.set_payment_success(PAYMENT_SUCCESS_MESSAGE)
        self.sessions.clear()
        self.markers.clear_pending_tokens()
        self.router.navigate(Page.LOGIN)
        return self._finish(GateStatus.COMPLETED, subscription_id, attempts)
