"""Navigation Routes - page-router reducer and handoff decoding over HTTP.

Invariants:
    - Both endpoints are pure: no storage, no backend calls
    - A malformed handoff token answers 400 through the global TenantGateError handler

Design Decisions:
    - Exposes the reducer so non-browser clients (SSR, native shells) resolve URLs
      with the same rules as the in-app router
"""

import logging

from fastapi import APIRouter

from tenantgate.core.handoff_codec import decode, fingerprint
from tenantgate.core.page_router import RewriteTo, SetPage, resolve_navigation
from tenantgate.core.path_codec import slug_from_company
from tenantgate.schemas.navigation import (
    HandoffDecodeRequest,
    HandoffDecodeResponse,
    HandoffUserSummary,
    NavigationRequest,
    NavigationResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/navigation", tags=["navigation"])


@router.post("/resolve", response_model=NavigationResponse)
async def resolve(body: NavigationRequest):
    """Resolve one location change into settle / set_page / rewrite."""
    action = resolve_navigation(
        body.path,
        body.query,
        body.user.to_domain() if body.user else None,
        body.current_page,
        body.current_lead_id,
    )
    if isinstance(action, RewriteTo):
        logger.debug(
            "Navigation rewrite",
            extra={"path": body.path, "page": action.page.value, "reason": action.reason},
        )
        return NavigationResponse(
            action="rewrite", page=action.page.value, lead_id=action.lead_id,
            path=action.path, reason=action.reason,
        )
    return NavigationResponse(
        action="set_page" if isinstance(action, SetPage) else "settle",
        page=action.page.value, lead_id=action.lead_id, path=body.path,
    )


@router.post("/handoff/decode", response_model=HandoffDecodeResponse)
async def decode_handoff(body: HandoffDecodeRequest):
    """Validate a handoff bundle and summarise the user it carries."""
    session = decode(body.token)
    user = session.user
    return HandoffDecodeResponse(
        fingerprint=fingerprint(body.token),
        user=HandoffUserSummary(
            id=user.id,
            username=user.username,
            role=user.role.value,
            company_slug=slug_from_company(user.company) or None,
            subscription_active=user.subscription_active,
        ),
    )
