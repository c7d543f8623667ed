"""App Shell - tests for the startup sequence of one origin.

Tests cover:
    - Fresh visitor on the main domain lands on /login without backend calls
    - A handoff bundle is consumed before the first route resolution
    - Main domain drops a company session; a wrong company origin hands it over
    - User refresh: 401 -> one token refresh, other 4xx or a typed credential
      error signs out, 5xx keeps the cache
    - Inactive subscription signs out and sends company origins to the main login
"""

from tenantgate.core.domain_types import Page
from tenantgate.core.errors import BackendAPIError, CredentialError, SubscriptionInactiveError
from tenantgate.core.handoff_codec import HANDOFF_PARAM, encode
from tenantgate.services.navigation import RouterPhase
from tenantgate.services.session_store import SessionStore

from tests.builders import make_user


def _stored(durable, session):
    SessionStore(durable).set(session)


# ─── Entry points ────────────────────────────────────────────────

async def test_fresh_visit_lands_on_login(make_shell, backend):
    shell = make_shell("https://example.com/")
    state = await shell.bootstrap()

    assert state.phase == RouterPhase.SETTLED
    assert state.page == Page.LOGIN
    assert backend.calls == []


async def test_handoff_bundle_is_consumed_then_routed(make_shell, backend, session):
    backend.users["access-1"] = make_user()
    shell = make_shell(f"https://acme.example.com/acme/dashboard?{HANDOFF_PARAM}={encode(session)}")

    state = await shell.bootstrap()

    assert state.page == Page.DASHBOARD
    assert shell.sessions.get().access_token == "access-1"
    assert HANDOFF_PARAM not in shell.browser.query
    assert backend.args_of("get_current_user") == [("access-1",)]


# ─── Origin checks ───────────────────────────────────────────────

async def test_main_domain_drops_company_session(make_shell, backend, durable, session):
    _stored(durable, session)
    shell = make_shell("https://example.com/acme/leads")

    state = await shell.bootstrap()

    assert shell.sessions.get() is None
    assert state.page == Page.LOGIN
    assert shell.browser.pathname == "/login"
    assert backend.calls == []


async def test_wrong_company_origin_hands_session_over(make_shell, backend, durable, session):
    _stored(durable, session)
    shell = make_shell("https://globex.example.com/globex/leads")

    assert await shell.bootstrap() is None
    assert shell.browser.last_navigation.startswith(
        f"https://acme.example.com/acme/dashboard?{HANDOFF_PARAM}="
    )
    assert backend.calls == []


async def test_handoff_disabled_keeps_session_on_main_domain(make_shell, backend, durable, session):
    _stored(durable, session)
    backend.users["access-1"] = make_user()
    shell = make_shell("https://example.com/acme/leads", subdomain_handoff_enabled=False)

    state = await shell.bootstrap()

    assert state.page == Page.LEADS
    assert shell.browser.navigations == []


# ─── User refresh ────────────────────────────────────────────────

async def test_expired_access_token_is_refreshed_once(make_shell, backend, durable, session):
    _stored(durable, session)
    backend.users["access-2"] = make_user()
    shell = make_shell("https://acme.example.com/acme/leads")

    state = await shell.bootstrap()

    assert state.page == Page.LEADS
    assert shell.sessions.get().access_token == "access-2"
    assert backend.args_of("refresh_access_token") == [("refresh-1",)]
    assert backend.args_of("get_current_user") == [("access-1",), ("access-2",)]


async def test_failed_token_refresh_signs_out(make_shell, backend, durable, session):
    _stored(durable, session)
    backend.fail("refresh_access_token", BackendAPIError("Token is invalid", status_code=401))
    shell = make_shell("https://acme.example.com/acme/leads")

    state = await shell.bootstrap()

    assert shell.sessions.get() is None
    assert state.page == Page.LOGIN


async def test_forbidden_user_fetch_signs_out(make_shell, backend, durable, session):
    _stored(durable, session)
    backend.fail("get_current_user", BackendAPIError("Forbidden", status_code=403))
    shell = make_shell("https://acme.example.com/acme/leads")

    await shell.bootstrap()

    assert shell.sessions.get() is None
    assert backend.count("refresh_access_token") == 0


async def test_inactive_account_on_user_fetch_signs_out(make_shell, backend, durable, session):
    _stored(durable, session)
    backend.fail(
        "get_current_user",
        CredentialError("Account temporarily inactive", kind="account_temporarily_inactive"),
    )
    shell = make_shell("https://acme.example.com/acme/leads")

    state = await shell.bootstrap()

    assert shell.sessions.get() is None
    assert state.phase == RouterPhase.SETTLED
    assert state.page == Page.LOGIN
    assert backend.count("refresh_access_token") == 0
    assert SessionStore(durable).hydrate() is None


async def test_backend_outage_keeps_cached_session(make_shell, backend, durable, session):
    _stored(durable, session)
    backend.fail("get_current_user", BackendAPIError("Service unavailable", status_code=503))
    shell = make_shell("https://acme.example.com/acme/leads")

    state = await shell.bootstrap()

    assert shell.sessions.get() == session
    assert state.page == Page.LEADS


# ─── Inactive subscription ───────────────────────────────────────

async def test_inactive_company_user_is_sent_to_main_login(make_shell, backend, durable, session):
    _stored(durable, session)
    backend.users["access-1"] = make_user(active=False, subscription_id=42)
    shell = make_shell("https://acme.example.com/acme/leads")

    assert await shell.bootstrap() is None
    assert shell.sessions.get() is None
    assert shell.markers.pending_subscription() == 42
    assert shell.browser.navigations == ["https://example.com/login"]


async def test_inactive_on_ip_host_routes_locally(make_shell, backend, durable, session):
    _stored(durable, session)
    backend.fail("get_current_user", SubscriptionInactiveError(99))
    shell = make_shell("http://10.0.0.5:3000/acme/leads")

    state = await shell.bootstrap()

    assert state.page == Page.LOGIN
    assert shell.browser.navigations == []
    assert shell.markers.pending_subscription() == 99
