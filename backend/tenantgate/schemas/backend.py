"""Backend Schemas - Pydantic models for backend response shapes, converted to core types.

Invariants:
    - Unknown fields are ignored; the backend adds fields freely
    - Every model has a to_domain() that returns a frozen core type
    - The company may arrive as an object or a bare id with company_name/company_domain
      siblings; both shapes produce the same Company

Design Decisions:
    - Validation at the wire boundary only; core types stay plain dataclasses
"""

from dataclasses import replace
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from tenantgate.core.domain_types import (
    CheckoutSession,
    Company,
    OtpChallenge,
    RegistrationResult,
    Session,
    SubscriptionStatus,
    TokenPair,
    User,
    normalize_role,
)


class _WireModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class SubscriptionPayload(_WireModel):
    id: int | None = None
    is_active: bool = False
    plan_id: int | None = Field(None, validation_alias=AliasChoices("plan_id", "plan"))
    end_date: str | None = None

    @field_validator("plan_id", mode="before")
    @classmethod
    def plan_id_from_object(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return v.get("id")
        return v

    @field_validator("is_active", mode="before")
    @classmethod
    def none_is_inactive(cls, v: Any) -> Any:
        return False if v is None else v

    def to_domain(self) -> SubscriptionStatus:
        return SubscriptionStatus(
            id=self.id, is_active=self.is_active,
            plan_id=self.plan_id, end_date=self.end_date,
        )


class CompanyPayload(_WireModel):
    id: int
    name: str = ""
    domain: str | None = None
    subscription: SubscriptionPayload | None = None


class CurrentUserPayload(_WireModel):
    """GET /users/me/ and the user object embedded in token responses."""
    id: int
    username: str
    email: str | None = ""
    email_verified: bool = Field(
        False, validation_alias=AliasChoices("email_verified", "is_email_verified"),
    )
    role: str | None = None
    company: CompanyPayload | int | None = None
    company_name: str | None = None
    company_domain: str | None = None

    @field_validator("email_verified", mode="before")
    @classmethod
    def none_is_unverified(cls, v: Any) -> Any:
        return False if v is None else v

    def _company(self) -> Company | None:
        if self.company is None:
            return None
        if isinstance(self.company, CompanyPayload):
            return Company(
                id=self.company.id,
                name=self.company_name or self.company.name,
                domain=self.company_domain or self.company.domain or None,
            )
        return Company(
            id=self.company,
            name=self.company_name or "",
            domain=self.company_domain or None,
        )

    def _subscription(self) -> SubscriptionStatus | None:
        if isinstance(self.company, CompanyPayload) and self.company.subscription:
            return self.company.subscription.to_domain()
        return None

    def to_domain(self) -> User:
        return User(
            id=self.id,
            username=self.username,
            email=self.email or "",
            email_verified=self.email_verified,
            role=normalize_role(self.role),
            company=self._company(),
            subscription=self._subscription(),
        )


class TwoFactorChallengePayload(_WireModel):
    token: str
    sent: bool = True
    message: str | None = None

    def to_domain(self) -> OtpChallenge:
        return OtpChallenge(token=self.token, sent=self.sent)


class TokenPairPayload(_WireModel):
    access: str = Field(min_length=1)
    refresh: str = Field(min_length=1)

    def to_domain(self) -> TokenPair:
        return TokenPair(access=self.access, refresh=self.refresh)


class RefreshPayload(_WireModel):
    access: str = Field(min_length=1)


class SessionPayload(TokenPairPayload):
    """Tokens plus user, as returned by impersonation exchange."""
    user: CurrentUserPayload

    def to_session(self) -> Session:
        return Session(
            access_token=self.access,
            refresh_token=self.refresh,
            user=self.user.to_domain(),
        )


class RegistrationPayload(TokenPairPayload):
    user: CurrentUserPayload
    company: CompanyPayload | None = None
    subscription: SubscriptionPayload | None = None

    def to_domain(self) -> RegistrationResult:
        user = self.user.to_domain()
        if user.company is None and self.company is not None:
            user = replace(
                user,
                company=Company(self.company.id, self.company.name, self.company.domain),
            )
        subscription = self.subscription or (self.company.subscription if self.company else None)
        requires_payment = subscription is not None and not subscription.is_active
        return RegistrationResult(
            tokens=TokenPair(access=self.access, refresh=self.refresh),
            user=user,
            subscription_id=subscription.id if subscription else None,
            requires_payment=requires_payment,
        )


class PaymentSessionPayload(_WireModel):
    """Gateway redirect, or a QR payment (FIB style) rendered in place."""
    model_config = ConfigDict(extra="allow")

    redirect_url: str | None = None
    payment_id: str | int | None = None
    qr_code: str | None = None

    def to_domain(self) -> CheckoutSession:
        extra = dict(self.model_extra or {})
        return CheckoutSession(
            redirect_url=self.redirect_url or None,
            payment_id=str(self.payment_id) if self.payment_id is not None else None,
            qr_code=self.qr_code,
            extra=extra or None,
        )


class BackendErrorPayload(_WireModel):
    """Error body: DRF style detail/message/error plus an optional machine code."""
    detail: Any = None
    message: Any = None
    error: Any = None
    username: Any = None
    code: str | None = None
    subscription_id: int | None = Field(
        None, validation_alias=AliasChoices("subscriptionId", "subscription_id"),
    )

    @property
    def text(self) -> str:
        for value in (self.username, self.detail, self.error, self.message):
            if isinstance(value, str) and value:
                return value
            if isinstance(value, list) and value and isinstance(value[0], str):
                return value[0]
        return ""
