"""Subscription Gate - tests for checkout redirect and post-payment status polling.

Tests cover:
    - Exhaustion ends PENDING after the attempt ceiling, no further requests
    - A success return (status=success + tranRef) costs one check when conclusive
    - An inconclusive confirmation polls with the shorter ceiling
    - Failed return, 404, typed 403 errors and the error budget are terminal
    - Completion with a live session, with pending registration tokens, and with
      no token at all (success message for the login page)
    - run() is shared between callers; cancel() stops the poll loop
    - start_checkout leaves the page for redirect gateways only
"""

import asyncio

import pytest

from tenantgate.core.domain_types import CheckoutSession, TokenPair
from tenantgate.core.errors import (
    BackendAPIError,
    CredentialError,
    PaymentFailedError,
    PollingExhaustedError,
    SubscriptionInactiveError,
)
from tenantgate.core.payment_status import GateStatus
from tenantgate.services.subscription_gate import PAYMENT_SUCCESS_MESSAGE, SubscriptionGate

from tests.builders import make_session, make_user

PAYMENT_URL = "https://acme.example.com/payment?subscription_id=7"
SUCCESS_RETURN = "https://acme.example.com/payment/success?subscription_id=7&status=success&tranRef=TST1"
COMPLETED = {"payment_status": "completed", "subscription_active": True}


def _signed_in_shell(make_shell, backend, url):
    shell = make_shell(url)
    shell.sessions.set(make_session(make_user(active=False)))
    backend.users["access-1"] = make_user()
    return shell


# ─── Polling ─────────────────────────────────────────────────────

async def test_exhaustion_is_pending_and_stops(make_shell, backend, sleep):
    gate = make_shell(PAYMENT_URL).new_subscription_gate()

    result = await gate.run()

    assert result.status == GateStatus.PENDING
    assert isinstance(result.error, PollingExhaustedError)
    assert result.attempts == 10
    assert backend.count("check_payment_status") == 10
    assert sleep.delays == [2.0] * 9

    gate.cancel()
    assert gate.status == GateStatus.PENDING
    await asyncio.sleep(0)
    assert backend.count("check_payment_status") == 10


async def test_success_return_needs_one_check(make_shell, backend, sleep):
    backend.payment_statuses = [COMPLETED]
    shell = _signed_in_shell(make_shell, backend, SUCCESS_RETURN)
    shell.markers.set_pending_subscription(7)

    result = await shell.new_subscription_gate().run()

    assert result.status == GateStatus.COMPLETED
    assert result.attempts == 1
    assert sleep.delays == []
    assert shell.sessions.get().user.subscription_active
    assert shell.markers.pending_subscription() is None
    assert shell.browser.pathname == "/acme/dashboard"


async def test_inconclusive_confirmation_uses_short_ceiling(make_shell, backend):
    gate = make_shell(SUCCESS_RETURN).new_subscription_gate()

    result = await gate.run()

    assert result.status == GateStatus.PENDING
    assert backend.count("check_payment_status") == 6


async def test_confirmation_error_falls_back_to_full_polling(make_shell, backend):
    backend.payment_statuses = [BackendAPIError("down", status_code=502), {"payment_status": "pending"}]
    gate = make_shell(SUCCESS_RETURN).new_subscription_gate()

    result = await gate.run()

    assert result.status == GateStatus.PENDING
    assert backend.count("check_payment_status") == 11


async def test_completed_on_later_poll(make_shell, backend, sleep):
    backend.payment_statuses = [{"payment_status": "pending"}, {"paytabs_status": "A"}]
    shell = _signed_in_shell(make_shell, backend, PAYMENT_URL)

    result = await shell.new_subscription_gate().run()

    assert result.status == GateStatus.COMPLETED
    assert result.attempts == 2
    assert sleep.delays == [2.0]


# ─── Terminal failures ───────────────────────────────────────────

async def test_failed_return_fails_without_polling(make_shell, backend):
    url = "https://acme.example.com/payment?subscription_id=7&status=failed&message=Card+declined"
    result = await make_shell(url).new_subscription_gate().run()

    assert result.status == GateStatus.FAILED
    assert result.error.message == "Card declined"
    assert backend.count("check_payment_status") == 0


async def test_backend_failed_status(make_shell, backend):
    backend.payment_statuses = [{"payment_status": "failed"}]
    result = await make_shell(PAYMENT_URL).new_subscription_gate().run()
    assert result.status == GateStatus.FAILED
    assert isinstance(result.error, PaymentFailedError)


async def test_not_found_is_terminal(make_shell, backend):
    backend.payment_statuses = [BackendAPIError("Not found", status_code=404)]
    result = await make_shell(PAYMENT_URL).new_subscription_gate().run()

    assert result.status == GateStatus.FAILED
    assert result.error.not_found
    assert backend.count("check_payment_status") == 1


async def test_error_budget_ends_polling(make_shell, backend):
    backend.payment_statuses = [BackendAPIError("boom", status_code=500)]
    result = await make_shell(PAYMENT_URL).new_subscription_gate().run()

    assert result.status == GateStatus.PENDING
    assert backend.count("check_payment_status") == 3


@pytest.mark.parametrize("error", [
    SubscriptionInactiveError(7),
    CredentialError("Paused", kind="account_temporarily_inactive"),
])
async def test_typed_status_error_is_terminal(make_shell, backend, error):
    backend.payment_statuses = [{"payment_status": "pending"}, error]
    gate = make_shell(PAYMENT_URL).new_subscription_gate()

    result = await gate.run()

    assert result.status == GateStatus.FAILED
    assert result.error is error
    assert gate.status.is_terminal
    assert gate.result is result
    assert backend.count("check_payment_status") == 2


async def test_typed_error_on_confirmation_check_is_terminal(make_shell, backend):
    backend.payment_statuses = [SubscriptionInactiveError(7)]
    gate = make_shell(SUCCESS_RETURN).new_subscription_gate()

    result = await gate.run()

    assert result.status == GateStatus.FAILED
    assert isinstance(result.error, SubscriptionInactiveError)
    assert backend.count("check_payment_status") == 1


async def test_missing_subscription_id_fails(make_shell, backend):
    result = await make_shell("https://example.com/payment").new_subscription_gate().run()

    assert result.status == GateStatus.FAILED
    assert result.subscription_id is None
    assert backend.count("check_payment_status") == 0


# ─── Completion paths ────────────────────────────────────────────

async def test_pending_tokens_become_a_session_and_hand_off(make_shell, backend):
    backend.payment_statuses = [COMPLETED]
    backend.users["reg-access"] = make_user()
    shell = make_shell("https://example.com/payment")
    shell.markers.set_pending_subscription(31)
    shell.markers.set_pending_tokens(TokenPair("reg-access", "reg-refresh"))

    result = await shell.new_subscription_gate().run()

    assert result.status == GateStatus.COMPLETED
    assert result.subscription_id == 31
    assert shell.sessions.get().access_token == "reg-access"
    assert shell.markers.pending_tokens() is None
    assert result.redirect_url == shell.browser.last_navigation
    assert result.redirect_url.startswith("https://acme.example.com/acme/dashboard?auth=")


async def test_no_token_lands_on_login_with_notice(make_shell, backend):
    backend.payment_statuses = [COMPLETED]
    shell = make_shell("https://example.com/payment?subscription_id=7")

    result = await shell.new_subscription_gate().run()

    assert result.status == GateStatus.COMPLETED
    assert shell.browser.pathname == "/login"
    assert shell.login_notice() == PAYMENT_SUCCESS_MESSAGE
    assert shell.login_notice() is None
    assert backend.count("get_current_user") == 0


async def test_user_fetch_failure_after_payment_lands_on_login(make_shell, backend):
    backend.payment_statuses = [COMPLETED]
    shell = make_shell(PAYMENT_URL)
    shell.markers.set_pending_tokens(TokenPair("unknown", "r"))

    result = await shell.new_subscription_gate().run()

    assert result.status == GateStatus.COMPLETED
    assert shell.sessions.get() is None
    assert shell.browser.pathname == "/login"
    assert shell.login_notice() == PAYMENT_SUCCESS_MESSAGE


# ─── Run lifecycle ───────────────────────────────────────────────

async def test_run_is_shared_between_callers(make_shell, backend):
    gate = make_shell(PAYMENT_URL).new_subscription_gate()
    first, second = gate.run(), gate.run()

    assert first is second
    results = await asyncio.gather(first, second)
    assert results[0] is results[1]
    assert backend.count("check_payment_status") == 10


async def test_cancel_stops_poll_loop(make_shell, backend):
    async def never_wakes(_seconds):
        await asyncio.Event().wait()

    shell = make_shell(PAYMENT_URL)
    gate = SubscriptionGate(
        backend, shell.sessions, shell.markers, shell.handoff, shell.router, shell.browser,
        sleep=never_wakes,
    )
    task = gate.run()
    for _ in range(5):
        await asyncio.sleep(0)

    gate.cancel()

    assert gate.status == GateStatus.CANCELLED
    with pytest.raises(asyncio.CancelledError):
        await task
    assert backend.count("check_payment_status") == 1


# ─── Checkout ────────────────────────────────────────────────────

async def test_redirect_checkout_leaves_page(make_shell, backend, session):
    shell = make_shell("https://acme.example.com/payment?subscription_id=7")
    shell.sessions.set(session)

    checkout = await shell.new_subscription_gate().start_checkout(7, "paytabs", plan_id=2)

    assert shell.browser.navigations == [checkout.redirect_url]
    assert shell.markers.pending_subscription() == 7
    assert backend.args_of("create_payment_session") == [(7, "paytabs", "access-1")]


async def test_in_place_checkout_uses_pending_tokens(make_shell, backend):
    backend.checkout = CheckoutSession(payment_id="p-1", qr_code="data:image/png;base64,AAA")
    shell = make_shell("https://example.com/payment?subscription_id=8")
    shell.markers.set_pending_tokens(TokenPair("reg-access", "reg-refresh"))

    checkout = await shell.new_subscription_gate().start_checkout(8, "instapay")

    assert not checkout.is_redirect
    assert shell.browser.navigations == []
    assert backend.args_of("create_payment_session") == [(8, "instapay", "reg-access")]
