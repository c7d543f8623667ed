"""Page Router Reducer - (path, query, user, current page) -> exactly one navigation action.

Invariants:
    - Pure and total: every input yields one of Settle / SetPage / RewriteTo
    - Special routes (legal, OAuth callback, impersonation, e-mail verification,
      change-plan) are matched by literal path before any login check
    - Canonical paths are fixed points: resolving RewriteTo.path with the page it
      carries yields Settle, never another RewriteTo
    - Restricted pages never settle for a role that cannot access them

Design Decisions:
    - The URL page slug decides the page; the company segment is rewritten to
      match the user's company. A bare /acme or "/" lands on the dashboard
    - Access predicate is injected so callers can swap the visibility policy
    - RewriteTo carries a reason string so the dispatcher can log why it redirected
"""

from collections.abc import Mapping
from dataclasses import dataclass

from tenantgate.core.domain_types import Page, User
from tenantgate.core.page_table import (
    AUTH_ROUTES,
    LEGAL_ROUTES,
    PAYMENT_RETURN_PREFIXES,
    PUBLIC_PAGE_PATHS,
    PageAccessPredicate,
    can_access_page,
)
from tenantgate.core.path_codec import (
    InvalidLeadId,
    PageMatch,
    build_company_path,
    extract_company_slug,
    extract_page_slug,
    normalize_path,
    resolve_page_slug,
    slug_from_company,
)

LOGIN_PATH = "/login"


# ─── Actions ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class Settle:
    """URL is canonical and the current page already matches it."""
    page: Page
    lead_id: int | None = None


@dataclass(frozen=True)
class SetPage:
    """URL is canonical; only the in-memory page must change."""
    page: Page
    lead_id: int | None = None


@dataclass(frozen=True)
class RewriteTo:
    """Replace the visible URL with a canonical path and show its page."""
    path: str
    page: Page
    lead_id: int | None = None
    reason: str = "canonical"


NavigationAction = Settle | SetPage | RewriteTo


# ─── Route tables ────────────────────────────────────────────────

def match_public_route(path: str, query: Mapping[str, str] | None = None) -> Page | None:
    """Routes served regardless of login state."""
    query = query or {}
    if path in LEGAL_ROUTES:
        return LEGAL_ROUTES[path]
    if "oauth-callback" in path:
        return Page.OAUTH_CALLBACK
    if path == "/impersonate":
        return Page.IMPERSONATE
    if path == "/verify-email":
        return Page.VERIFY_EMAIL
    if query.get("token") and query.get("email") and path != "/reset-password":
        return Page.VERIFY_EMAIL
    if path == "/change-plan":
        return Page.CHANGE_PLAN
    return None


def match_payment_route(path: str) -> Page | None:
    if path == "/payment":
        return Page.PAYMENT
    if any(path == prefix or path.startswith(prefix + "/") for prefix in PAYMENT_RETURN_PREFIXES):
        return Page.PAYMENT_SUCCESS
    if path == "/payment-success":
        return Page.PAYMENT_SUCCESS
    return None


def landing_path(user: User) -> str:
    """Canonical dashboard path for a signed-in user."""
    return build_company_path(user.company, Page.DASHBOARD)


# ─── Reducer ─────────────────────────────────────────────────────

def _settle_or_set(
    page: Page, lead_id: int | None,
    current_page: Page | None, current_lead_id: int | None,
) -> NavigationAction:
    if page == current_page and lead_id == current_lead_id:
        return Settle(page, lead_id)
    return SetPage(page, lead_id)


def _resolve_tenant_page(
    user: User, path: str, can_access: PageAccessPredicate,
) -> tuple[Page, int | None, str | None]:
    """Page for a signed-in user's path plus the correction reason, if any."""
    resolution = resolve_page_slug(extract_page_slug(path))
    if isinstance(resolution, PageMatch):
        if not can_access(user.role, resolution.page):
            return Page.DASHBOARD, None, "restricted"
        return resolution.page, resolution.lead_id, None
    if isinstance(resolution, InvalidLeadId):
        return Page.LEADS, None, "invalid_lead_id"
    return Page.DASHBOARD, None, "unknown_page"


def resolve_navigation(
    path: str,
    query: Mapping[str, str] | None = None,
    user: User | None = None,
    current_page: Page | None = None,
    current_lead_id: int | None = None,
    can_access: PageAccessPredicate = can_access_page,
) -> NavigationAction:
    """Single reducer behind every navigation listener."""
    path = normalize_path(path)

    public = match_public_route(path, query)
    if public is not None:
        return _settle_or_set(public, None, current_page, current_lead_id)

    if user is None:
        page = AUTH_ROUTES.get(path) or match_payment_route(path)
        if page is not None:
            return _settle_or_set(page, None, current_page, current_lead_id)
        return RewriteTo(LOGIN_PATH, Page.LOGIN, reason="login_required")

    if path in AUTH_ROUTES:
        return RewriteTo(landing_path(user), Page.DASHBOARD, reason="already_authenticated")

    payment = match_payment_route(path)
    if payment is not None:
        return _settle_or_set(payment, None, current_page, current_lead_id)

    page, lead_id, reason = _resolve_tenant_page(user, path, can_access)
    canonical = build_company_path(user.company, page, lead_id)
    if path != canonical:
        if reason is None:
            expected = slug_from_company(user.company) or None
            reason = "company_segment" if extract_company_slug(path) != expected else "canonical"
        return RewriteTo(canonical, page, lead_id, reason=reason)
    return _settle_or_set(page, lead_id, current_page, current_lead_id)


def path_for_page(page: Page, user: User | None, lead_id: int | None = None) -> str:
    """Path a programmatic navigate(page) should push."""
    if page in PUBLIC_PAGE_PATHS:
        return PUBLIC_PAGE_PATHS[page]
    if user is None:
        return LOGIN_PATH
    return build_company_path(user.company, page, lead_id)
