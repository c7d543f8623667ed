"""Navigation Schemas - Pydantic models for the routing and handoff endpoints.

Invariants:
    - NavigationRequest.path is stored normalised (leading slash, no trailing slash)
    - UserInput mirrors the stored currentUser record; unknown roles become employee
    - Responses carry plain strings, never enum objects

Design Decisions:
    - Literal action names over an enum: the JSON contract reads the same in any client
"""

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from tenantgate.core.domain_types import Company, Page, User, normalize_role
from tenantgate.core.path_codec import normalize_path


class CompanyInput(BaseModel):
    id: int
    name: str = ""
    domain: str | None = None


class UserInput(BaseModel):
    """Signed-in user as the router sees it."""
    id: int
    username: str = Field(min_length=1)
    email: str = ""
    email_verified: bool = False
    role: str = "employee"
    company: CompanyInput | None = None

    def to_domain(self) -> User:
        company = None
        if self.company is not None:
            company = Company(
                id=self.company.id, name=self.company.name,
                domain=self.company.domain or None,
            )
        return User(
            id=self.id,
            username=self.username,
            email=self.email,
            email_verified=self.email_verified,
            role=normalize_role(self.role),
            company=company,
        )


class NavigationRequest(BaseModel):
    path: str = Field(min_length=1, max_length=2_048)
    query: dict[str, str] = Field(default_factory=dict)
    current_page: Page | None = None
    current_lead_id: int | None = Field(None, ge=1)
    user: UserInput | None = None

    @field_validator("path")
    @classmethod
    def normalise(cls, v: str) -> str:
        return normalize_path(v)


class NavigationResponse(BaseModel):
    action: Literal["settle", "set_page", "rewrite"]
    page: str
    lead_id: int | None = None
    path: str
    reason: str | None = None


class HandoffDecodeRequest(BaseModel):
    token: str = Field(min_length=1, max_length=16_384)


class HandoffUserSummary(BaseModel):
    id: int
    username: str
    role: str
    company_slug: str | None = None
    subscription_active: bool


class HandoffDecodeResponse(BaseModel):
    fingerprint: str
    user: HandoffUserSummary
