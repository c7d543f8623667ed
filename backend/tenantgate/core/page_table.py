"""Page Table - fixed slug <-> Page mapping, reserved path keywords, page visibility by role.

Invariants:
    - PAGE_SLUGS is a bijection between tenant pages and their canonical slugs
    - Every canonical slug and alias is lowercase and hyphenated
    - RESERVED_SEGMENTS contains every canonical slug's first segment plus auth/legal routes
    - can_access_page is total over (Role, Page)

Design Decisions:
    - Aliases kept separate from canonical slugs so build -> extract -> build is stable
"""

from collections.abc import Callable

from tenantgate.core.domain_types import Page, Role

PageAccessPredicate = Callable[[Role, Page], bool]

VIEW_LEAD_PREFIX = "view-lead"


# ─── Canonical slugs (tenant-scoped pages) ───────────────────────

PAGE_SLUGS: dict[Page, str] = {
    Page.DASHBOARD: "dashboard",
    Page.LEADS: "leads",
    Page.ALL_LEADS: "all-leads",
    Page.FRESH_LEADS: "fresh-leads",
    Page.COLD_LEADS: "cold-leads",
    Page.MY_LEADS: "my-leads",
    Page.ROTATED_LEADS: "rotated-leads",
    Page.VIEW_LEAD: VIEW_LEAD_PREFIX,
    Page.CREATE_LEAD: "create-lead",
    Page.EDIT_LEAD: "edit-lead",
    Page.ACTIVITIES: "activities",
    Page.INVENTORY: "inventory",
    Page.PROPERTIES: "properties",
    Page.OWNERS: "owners",
    Page.SERVICES: "services",
    Page.SERVICE_PACKAGES: "service-packages",
    Page.SERVICE_PROVIDERS: "service-providers",
    Page.PRODUCTS: "products",
    Page.PRODUCT_CATEGORIES: "product-categories",
    Page.SUPPLIERS: "suppliers",
    Page.DEALS: "deals",
    Page.CREATE_DEAL: "create-deal",
    Page.USERS: "users",
    Page.EMPLOYEES: "employees",
    Page.MARKETING: "marketing",
    Page.CAMPAIGNS: "campaigns",
    Page.TODOS: "todos",
    Page.REPORTS: "reports",
    Page.TEAMS_REPORT: "teams-report",
    Page.EMPLOYEES_REPORT: "employees-report",
    Page.MARKETING_REPORT: "marketing-report",
    Page.INTEGRATIONS: "integrations",
    Page.META: "meta",
    Page.TIKTOK: "tiktok",
    Page.WHATSAPP: "whatsapp",
    Page.SETTINGS: "settings",
    Page.PROFILE: "profile",
    Page.BILLING: "billing",
}

# Old or alternative spellings still reachable from bookmarks
SLUG_ALIASES: dict[str, Page] = {
    "viewlead": Page.VIEW_LEAD,
    "createlead": Page.CREATE_LEAD,
    "createdeal": Page.CREATE_DEAL,
    "subscription": Page.BILLING,
    "twilio": Page.INTEGRATIONS,
}

SLUG_TO_PAGE: dict[str, Page] = {
    **{slug: page for page, slug in PAGE_SLUGS.items()},
    **SLUG_ALIASES,
}


# ─── Public / auth routes ────────────────────────────────────────

LEGAL_ROUTES: dict[str, Page] = {
    "/terms": Page.TERMS,
    "/terms-of-service": Page.TERMS,
    "/privacy": Page.PRIVACY,
    "/privacy-policy": Page.PRIVACY,
    "/data-deletion": Page.DATA_DELETION,
    "/data-deletion-policy": Page.DATA_DELETION,
}

AUTH_ROUTES: dict[str, Page] = {
    "/": Page.LOGIN,
    "/login": Page.LOGIN,
    "/register": Page.REGISTER,
    "/forgot-password": Page.FORGOT_PASSWORD,
    "/reset-password": Page.RESET_PASSWORD,
    "/2fa": Page.TWO_FACTOR_AUTH,
}

PAYMENT_RETURN_PREFIXES: tuple[str, ...] = ("/payment/success", "/payment/return")

# First-segment keywords that can never be a company slug
RESERVED_SEGMENTS: frozenset[str] = frozenset({
    *(slug.split("/")[0] for slug in PAGE_SLUGS.values()),
    *SLUG_ALIASES,
    "login", "register", "forgot-password", "reset-password", "verify-email",
    "2fa", "payment", "payment-success", "change-plan", "impersonate",
    "terms", "terms-of-service", "privacy", "privacy-policy",
    "data-deletion", "data-deletion-policy", "oauth-callback",
})


# ─── Visibility ──────────────────────────────────────────────────

RESTRICTED_PAGES: dict[Role, frozenset[Page]] = {
    Role.SUPERVISOR: frozenset({
        Page.SETTINGS,
        Page.BILLING,
        Page.USERS,
        Page.EMPLOYEES,
        Page.INTEGRATIONS,
        Page.META,
        Page.TIKTOK,
        Page.WHATSAPP,
        Page.MARKETING,
        Page.CAMPAIGNS,
        Page.MARKETING_REPORT,
    }),
}


def can_access_page(role: Role, page: Page) -> bool:
    """Default visibility predicate; roles without restrictions see every page."""
    return page not in RESTRICTED_PAGES.get(role, frozenset())


# ─── Public page paths (programmatic navigation) ─────────────────

PUBLIC_PAGE_PATHS: dict[Page, str] = {
    Page.LOGIN: "/login",
    Page.REGISTER: "/register",
    Page.FORGOT_PASSWORD: "/forgot-password",
    Page.RESET_PASSWORD: "/reset-password",
    Page.TWO_FACTOR_AUTH: "/2fa",
    Page.PAYMENT: "/payment",
    Page.PAYMENT_SUCCESS: "/payment/success",
    Page.CHANGE_PLAN: "/change-plan",
    Page.VERIFY_EMAIL: "/verify-email",
    Page.TERMS: "/terms",
    Page.PRIVACY: "/privacy",
    Page.DATA_DELETION: "/data-deletion",
    Page.IMPERSONATE: "/impersonate",
    Page.OAUTH_CALLBACK: "/oauth-callback",
}
