"""Domain Types - companies, users, sessions and the closed set of logical pages.

Invariants:
    - Session cannot be built with an empty access or refresh token
    - User is immutable; a refresh replaces it wholesale
    - Page is a closed enumeration; every view the router can settle on is listed here
    - Role values are normalised (owner / employee / supervisor)

Design Decisions:
    - Frozen dataclasses over Pydantic in core: no validation cost on every copy,
      Pydantic stays at the wire boundary (schemas/)
    - str Enums: serialize to JSON without custom encoders
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


# ─── Enums ───────────────────────────────────────────────────────

class Role(str, Enum):
    OWNER = "owner"
    EMPLOYEE = "employee"
    SUPERVISOR = "supervisor"


class Page(str, Enum):
    """Logical views. Values match the labels the UI layer renders."""
    DASHBOARD = "Dashboard"
    LEADS = "Leads"
    ALL_LEADS = "All Leads"
    FRESH_LEADS = "Fresh Leads"
    COLD_LEADS = "Cold Leads"
    MY_LEADS = "My Leads"
    ROTATED_LEADS = "Rotated Leads"
    VIEW_LEAD = "ViewLead"
    CREATE_LEAD = "CreateLead"
    EDIT_LEAD = "EditLead"
    ACTIVITIES = "Activities"
    INVENTORY = "Inventory"
    PROPERTIES = "Properties"
    OWNERS = "Owners"
    SERVICES = "Services"
    SERVICE_PACKAGES = "Service Packages"
    SERVICE_PROVIDERS = "Service Providers"
    PRODUCTS = "Products"
    PRODUCT_CATEGORIES = "Product Categories"
    SUPPLIERS = "Suppliers"
    DEALS = "Deals"
    CREATE_DEAL = "CreateDeal"
    USERS = "Users"
    EMPLOYEES = "Employees"
    MARKETING = "Marketing"
    CAMPAIGNS = "Campaigns"
    TODOS = "Todos"
    REPORTS = "Reports"
    TEAMS_REPORT = "Teams Report"
    EMPLOYEES_REPORT = "Employees Report"
    MARKETING_REPORT = "Marketing Report"
    INTEGRATIONS = "Integrations"
    META = "Meta"
    TIKTOK = "TikTok"
    WHATSAPP = "WhatsApp"
    SETTINGS = "Settings"
    PROFILE = "Profile"
    BILLING = "Billing"
    # Public / auth views (resolved before tenant routing)
    LOGIN = "Login"
    REGISTER = "Register"
    FORGOT_PASSWORD = "ForgotPassword"
    RESET_PASSWORD = "ResetPassword"
    TWO_FACTOR_AUTH = "TwoFactorAuth"
    PAYMENT = "Payment"
    PAYMENT_SUCCESS = "PaymentSuccess"
    CHANGE_PLAN = "ChangePlan"
    VERIFY_EMAIL = "VerifyEmail"
    TERMS = "Terms"
    PRIVACY = "Privacy"
    DATA_DELETION = "DataDeletion"
    OAUTH_CALLBACK = "OAuthCallback"
    IMPERSONATE = "Impersonate"


# ─── Records ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class SubscriptionStatus:
    """Read-only subscription snapshot polled from the backend."""
    id: int | None
    is_active: bool
    plan_id: int | None = None
    end_date: str | None = None


@dataclass(frozen=True)
class Company:
    id: int
    name: str
    domain: str | None = None


@dataclass(frozen=True)
class User:
    id: int
    username: str
    email: str = ""
    email_verified: bool = False
    role: Role = Role.EMPLOYEE
    company: Company | None = None
    subscription: SubscriptionStatus | None = None

    @property
    def subscription_active(self) -> bool:
        return bool(self.subscription and self.subscription.is_active)

    @property
    def subscription_id(self) -> int | None:
        return self.subscription.id if self.subscription else None


@dataclass(frozen=True)
class Session:
    """Live authentication state for one storage partition (origin)."""
    access_token: str
    refresh_token: str
    user: User

    def __post_init__(self) -> None:
        if not self.access_token or not self.refresh_token:
            raise ValueError("Session requires both access and refresh tokens")


@dataclass(frozen=True)
class PathState:
    company_slug: str | None
    page_slug: str


# ─── Role normalisation ──────────────────────────────────────────

def normalize_role(raw: Any) -> Role:
    """Map backend role strings onto the three roles the router knows."""
    if not isinstance(raw, str) or not raw:
        return Role.EMPLOYEE
    lowered = raw.strip().lower()
    if lowered in ("admin", "owner"):
        return Role.OWNER
    if lowered == "supervisor":
        return Role.SUPERVISOR
    return Role.EMPLOYEE


# ─── Serialization (storage + handoff payloads) ──────────────────

def user_to_dict(user: User) -> dict:
    """JSON-safe dict for storage and handoff bundles."""
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "email_verified": user.email_verified,
        "role": user.role.value,
        "company": (
            {
                "id": user.company.id,
                "name": user.company.name,
                "domain": user.company.domain,
            }
            if user.company else None
        ),
        "subscription": (
            {
                "id": user.subscription.id,
                "is_active": user.subscription.is_active,
                "plan_id": user.subscription.plan_id,
                "end_date": user.subscription.end_date,
            }
            if user.subscription else None
        ),
    }


def _optional_str(data: dict, key: str) -> str | None:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise TypeError(f"{key} must be a string")
    return value or None


def _optional_int(data: dict, key: str) -> int | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{key} must be an integer")
    return value


def _flag(data: dict, key: str) -> bool:
    value = data.get(key, False)
    if not isinstance(value, bool):
        raise TypeError(f"{key} must be a boolean")
    return value


def user_from_dict(data: dict) -> User:
    """Inverse of user_to_dict. Raises KeyError/TypeError/ValueError on bad shape.

    Field types are checked, not coerced: a stored or handed-off user that
    would break slug building later is rejected here.
    """
    if not isinstance(data, dict):
        raise TypeError("user payload must be an object")
    company_data = data.get("company")
    company = None
    if company_data is not None:
        if not isinstance(company_data, dict):
            raise TypeError("company must be an object")
        company = Company(
            id=int(company_data["id"]),
            name=_optional_str(company_data, "name") or "",
            domain=_optional_str(company_data, "domain"),
        )
    sub_data = data.get("subscription")
    subscription = None
    if sub_data is not None:
        if not isinstance(sub_data, dict):
            raise TypeError("subscription must be an object")
        subscription = SubscriptionStatus(
            id=_optional_int(sub_data, "id"),
            is_active=_flag(sub_data, "is_active"),
            plan_id=_optional_int(sub_data, "plan_id"),
            end_date=_optional_str(sub_data, "end_date"),
        )
    username = data["username"]
    if not isinstance(username, str) or not username:
        raise ValueError("username must be a non-empty string")
    return User(
        id=int(data["id"]),
        username=username,
        email=_optional_str(data, "email") or "",
        email_verified=_flag(data, "email_verified"),
        role=normalize_role(data.get("role")),
        company=company,
        subscription=subscription,
    )


# ─── Backend results (shape only) ────────────────────────────────

@dataclass(frozen=True)
class TokenPair:
    access: str
    refresh: str


@dataclass(frozen=True)
class OtpChallenge:
    token: str
    sent: bool = True


@dataclass(frozen=True)
class RegistrationResult:
    """Tokens and user issued by registration; subscription id when payment is due."""
    tokens: TokenPair
    user: User
    subscription_id: int | None = None
    requires_payment: bool = False


@dataclass(frozen=True)
class CheckoutSession:
    """Either a gateway redirect or a QR-style payment the UI renders in place."""
    redirect_url: str | None = None
    payment_id: str | None = None
    qr_code: str | None = None
    extra: dict | None = None

    @property
    def is_redirect(self) -> bool:
        return bool(self.redirect_url)
