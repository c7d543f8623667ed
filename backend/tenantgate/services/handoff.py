"""Handoff Service - carry a session to the company origin and consume it there exactly once.

Invariants:
    - consume() decodes a given bundle at most once per tab (fingerprint marker in
      tab-scoped storage, written before decoding)
    - After consume() the auth parameter is gone from the visible URL, whatever the outcome
    - A malformed bundle leaves the Session Store untouched and lands on /login
    - OAuth popup parameters (connected, account_id, error) ride along only when the
      window has an opener

Design Decisions:
    - Marker stores the bundle fingerprint, not a boolean: a later, different bundle
      in the same tab is still accepted
    - Full-page assign for the redirect: the target origin cannot read this origin's storage
"""

import logging
from dataclasses import dataclass
from enum import Enum

from tenantgate.core.boundary_protocols import BrowserLocation, KeyValueStorage
from tenantgate.core.domain_types import Page, Session
from tenantgate.core.errors import HandoffDecodeError
from tenantgate.core.handoff_codec import HANDOFF_PARAM, decode, encode, fingerprint
from tenantgate.core.page_router import LOGIN_PATH
from tenantgate.core.path_codec import (
    build_company_path,
    company_origin,
    is_ip_literal,
    relative_url,
    requires_origin_switch,
    slug_from_company,
)
from tenantgate.services.session_store import SessionStore

logger = logging.getLogger(__name__)

HANDOFF_MARKER_KEY = "handoffConsumed"
POPUP_PARAMS = ("connected", "account_id", "error")


class HandoffStatus(str, Enum):
    ABSENT = "absent"
    CONSUMED = "consumed"
    ALREADY_CONSUMED = "already_consumed"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class HandoffOutcome:
    status: HandoffStatus
    session: Session | None = None
    error: HandoffDecodeError | None = None


class HandoffService:
    def __init__(
        self,
        sessions: SessionStore,
        browser: BrowserLocation,
        tab: KeyValueStorage,
        base_domain: str | None = None,
        enabled: bool = True,
    ):
        self.sessions = sessions
        self.browser = browser
        self.tab = tab
        self.base_domain = base_domain
        self.enabled = enabled

    # ─── Receiving side ──────────────────────────────────────────

    def consume(self) -> HandoffOutcome:
        token = self.browser.query.get(HANDOFF_PARAM)
        if not token:
            return HandoffOutcome(HandoffStatus.ABSENT)

        marker = fingerprint(token)
        if self.tab.get(HANDOFF_MARKER_KEY) == marker:
            self._strip_param()
            return HandoffOutcome(HandoffStatus.ALREADY_CONSUMED, self.sessions.get())
        self.tab.set(HANDOFF_MARKER_KEY, marker)

        try:
            session = decode(token)
        except HandoffDecodeError as e:
            logger.warning(
                "Discarding malformed handoff bundle",
                extra={"path": self.browser.pathname, "error_code": e.code, "reason": e.reason},
            )
            self.browser.replace_state(LOGIN_PATH)
            return HandoffOutcome(HandoffStatus.MALFORMED, error=e)

        self.sessions.set(session)
        self._strip_param()
        logger.info(
            "Handoff consumed",
            extra={"path": self.browser.pathname, "company_slug": slug_from_company(session.user.company)},
        )
        return HandoffOutcome(HandoffStatus.CONSUMED, session)

    def _strip_param(self) -> None:
        query = {k: v for k, v in self.browser.query.items() if k != HANDOFF_PARAM}
        self.browser.replace_state(relative_url(self.browser.pathname, query))

    # ─── Sending side ────────────────────────────────────────────

    def needs_handoff(self, session: Session) -> bool:
        """True when the session's company lives on another origin than this one."""
        if not self.enabled or is_ip_literal(self.browser.hostname):
            return False
        slug = slug_from_company(session.user.company)
        return requires_origin_switch(self.browser.hostname, slug, self.base_domain)

    def handoff_url(
        self, session: Session, page: Page = Page.DASHBOARD, lead_id: int | None = None,
    ) -> str:
        slug = slug_from_company(session.user.company)
        origin = company_origin(
            slug, self.browser.hostname,
            scheme=self.browser.scheme, port=self.browser.port,
            configured=self.base_domain,
        )
        params = {HANDOFF_PARAM: encode(session)}
        if self.browser.has_opener:
            current = self.browser.query
            for key in POPUP_PARAMS:
                if key in current:
                    params[key] = current[key]
        return origin + relative_url(build_company_path(session.user.company, page, lead_id), params)

    def redirect_if_needed(
        self, session: Session, page: Page = Page.DASHBOARD,
    ) -> str | None:
        """Full-page redirect to the company origin; None when already there."""
        if not self.needs_handoff(session):
            return None
        url = self.handoff_url(session, page)
        logger.info(
            "Handing session to company origin",
            extra={"company_slug": slug_from_company(session.user.company), "page": page.value},
        )
        self.browser.assign(url)
        return url
