"""Page Router Reducer - tests for resolve_navigation and path_for_page.

Tests cover:
    - Special routes settle regardless of login state
    - Unauthenticated users are rewritten to /login except on auth/payment routes
    - Company-segment, bare-company and unknown-page corrections
    - view-lead parsing and role restrictions
    - Canonical paths are fixed points of the reducer
"""

import pytest

from tenantgate.core.domain_types import Page, Role
from tenantgate.core.page_router import (
    RewriteTo,
    SetPage,
    Settle,
    match_payment_route,
    match_public_route,
    path_for_page,
    resolve_navigation,
)

from tests.builders import make_user

OWNER = make_user()
SUPERVISOR = make_user(username="sam", role=Role.SUPERVISOR)
NO_COMPANY = make_user(username="solo", company=None)


# ─── Special routes ──────────────────────────────────────────────

@pytest.mark.parametrize("path, page", [
    ("/terms", Page.TERMS),
    ("/privacy-policy", Page.PRIVACY),
    ("/data-deletion", Page.DATA_DELETION),
    ("/integrations/oauth-callback", Page.OAUTH_CALLBACK),
    ("/impersonate", Page.IMPERSONATE),
    ("/verify-email", Page.VERIFY_EMAIL),
    ("/change-plan", Page.CHANGE_PLAN),
])
def test_special_routes_ignore_login_state(path, page):
    assert resolve_navigation(path, {}, None) == SetPage(page)
    assert resolve_navigation(path, {}, OWNER) == SetPage(page)


def test_verification_query_params_open_verify_email():
    query = {"token": "t0k", "email": "a@example.com"}
    assert match_public_route("/", query) == Page.VERIFY_EMAIL
    assert match_public_route("/reset-password", query) is None


def test_payment_routes():
    assert match_payment_route("/payment") == Page.PAYMENT
    assert match_payment_route("/payment/success") == Page.PAYMENT_SUCCESS
    assert match_payment_route("/payment/return/abc") == Page.PAYMENT_SUCCESS
    assert match_payment_route("/payment-success") == Page.PAYMENT_SUCCESS
    assert match_payment_route("/payments") is None


# ─── Unauthenticated ─────────────────────────────────────────────

@pytest.mark.parametrize("path, page", [
    ("/", Page.LOGIN),
    ("/login", Page.LOGIN),
    ("/register", Page.REGISTER),
    ("/2fa", Page.TWO_FACTOR_AUTH),
    ("/payment", Page.PAYMENT),
    ("/payment/success", Page.PAYMENT_SUCCESS),
])
def test_unauthenticated_auth_routes_settle(path, page):
    assert resolve_navigation(path, {}, None, current_page=page) == Settle(page)


def test_unauthenticated_tenant_path_rewrites_to_login():
    action = resolve_navigation("/acme/leads", {}, None)
    assert action == RewriteTo("/login", Page.LOGIN, reason="login_required")


# ─── Authenticated ───────────────────────────────────────────────

def test_auth_route_redirects_signed_in_user_to_dashboard():
    action = resolve_navigation("/login", {}, OWNER)
    assert action == RewriteTo("/acme/dashboard", Page.DASHBOARD, reason="already_authenticated")


def test_root_redirects_signed_in_user_to_dashboard():
    action = resolve_navigation("/", {}, OWNER)
    assert isinstance(action, RewriteTo)
    assert action.path == "/acme/dashboard"


def test_canonical_path_sets_page_then_settles():
    assert resolve_navigation("/acme/deals", {}, OWNER) == SetPage(Page.DEALS)
    assert resolve_navigation("/acme/deals", {}, OWNER, current_page=Page.DEALS) == Settle(Page.DEALS)


def test_wrong_company_segment_is_corrected_keeping_page():
    action = resolve_navigation("/globex/leads", {}, OWNER)
    assert action == RewriteTo("/acme/leads", Page.LEADS, reason="company_segment")


def test_missing_company_segment_is_added():
    action = resolve_navigation("/leads", {}, OWNER)
    assert action == RewriteTo("/acme/leads", Page.LEADS, reason="company_segment")


def test_bare_company_path_goes_to_dashboard():
    action = resolve_navigation("/acme", {}, OWNER)
    assert action == RewriteTo("/acme/dashboard", Page.DASHBOARD, reason="canonical")


def test_unknown_page_falls_back_to_dashboard():
    action = resolve_navigation("/acme/no-such-page", {}, OWNER)
    assert action == RewriteTo("/acme/dashboard", Page.DASHBOARD, reason="unknown_page")


def test_view_lead_with_numeric_id():
    assert resolve_navigation("/acme/view-lead/17", {}, OWNER) == SetPage(Page.VIEW_LEAD, 17)


def test_view_lead_with_bad_id_goes_to_leads():
    action = resolve_navigation("/acme/view-lead/abc", {}, OWNER)
    assert action == RewriteTo("/acme/leads", Page.LEADS, reason="invalid_lead_id")


def test_restricted_page_redirects_supervisor_to_dashboard():
    action = resolve_navigation("/acme/settings", {}, SUPERVISOR)
    assert action == RewriteTo("/acme/dashboard", Page.DASHBOARD, reason="restricted")
    assert resolve_navigation("/acme/settings", {}, OWNER) == SetPage(Page.SETTINGS)


def test_custom_access_predicate():
    action = resolve_navigation(
        "/acme/reports", {}, OWNER, can_access=lambda role, page: page != Page.REPORTS,
    )
    assert action.page == Page.DASHBOARD


def test_user_without_company_uses_unprefixed_paths():
    assert resolve_navigation("/leads", {}, NO_COMPANY) == SetPage(Page.LEADS)


def test_signed_in_user_on_payment_route_settles():
    assert resolve_navigation("/payment/success", {"subscription_id": "3"}, OWNER) == SetPage(
        Page.PAYMENT_SUCCESS,
    )


# ─── Fixed point ─────────────────────────────────────────────────

@pytest.mark.parametrize("user", [None, OWNER, SUPERVISOR, NO_COMPANY])
@pytest.mark.parametrize("path", [
    "/", "/login", "/acme", "/ACME/leads", "/globex/view-lead/3", "/acme/view-lead/x",
    "/acme/settings", "/nope/nope/nope", "/leads", "/dashboard", "/acme/all%20leads",
])
def test_rewrite_target_is_a_fixed_point(user, path):
    action = resolve_navigation(path, {}, user)
    if isinstance(action, RewriteTo):
        again = resolve_navigation(action.path, {}, user, action.page, action.lead_id)
        assert again == Settle(action.page, action.lead_id)


# ─── path_for_page ───────────────────────────────────────────────

def test_path_for_page():
    assert path_for_page(Page.TWO_FACTOR_AUTH, None) == "/2fa"
    assert path_for_page(Page.LEADS, None) == "/login"
    assert path_for_page(Page.VIEW_LEAD, OWNER, 8) == "/acme/view-lead/8"
