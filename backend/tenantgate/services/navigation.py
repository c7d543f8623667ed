"""Page Router Dispatcher - drives every navigation listener through one reducer.

Invariants:
    - Phases: IDLE -> RESOLVING -> (REDIRECTING -> RESOLVING)* -> SETTLED
    - A call arriving while another is resolving is ignored (re-entrancy guard)
    - At most max_redirects URL rewrites per event; a canonical URL needs none
    - Settling on the page already shown is a no-op: no URL write, no page callback
    - URL corrections use replace_state, programmatic navigation uses push_state

Design Decisions:
    - Initial load, popstate, timers, reactive effects and navigate() all call
      handle_location_change(source); none of them carries routing logic
    - Query string survives company/page corrections so OAuth and payment hints
      are not lost; login and post-login redirects drop it
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from tenantgate.core.boundary_protocols import BrowserLocation
from tenantgate.core.domain_types import Page
from tenantgate.core.errors import RouteResolutionMiss
from tenantgate.core.page_router import (
    RewriteTo,
    SetPage,
    path_for_page,
    resolve_navigation,
)
from tenantgate.core.page_table import PageAccessPredicate, can_access_page
from tenantgate.core.path_codec import extract_page_slug, normalize_path, relative_url
from tenantgate.services.session_store import SessionStore

logger = logging.getLogger(__name__)

PageListener = Callable[[Page, int | None], None]

_DROP_QUERY_REASONS = frozenset({"login_required", "already_authenticated"})


class RouterPhase(str, Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    REDIRECTING = "redirecting"
    SETTLED = "settled"


@dataclass
class NavigationState:
    phase: RouterPhase = RouterPhase.IDLE
    page: Page | None = None
    lead_id: int | None = None
    redirects: int = 0
    last_source: str | None = None


class PageRouter:
    def __init__(
        self,
        sessions: SessionStore,
        browser: BrowserLocation,
        can_access: PageAccessPredicate = can_access_page,
        max_redirects: int = 3,
    ):
        self.sessions = sessions
        self.browser = browser
        self.can_access = can_access
        self.max_redirects = max_redirects
        self.state = NavigationState()
        self._listeners: list[PageListener] = []

    def subscribe(self, listener: PageListener) -> None:
        self._listeners.append(listener)

    @property
    def current_page(self) -> Page | None:
        return self.state.page

    def handle_location_change(self, source: str = "initial") -> NavigationState:
        """Reconcile the visible URL, the session and the current page."""
        if self.state.phase in (RouterPhase.RESOLVING, RouterPhase.REDIRECTING):
            logger.debug("Navigation already resolving, ignored", extra={"source": source})
            return self.state

        self.state.phase = RouterPhase.RESOLVING
        self.state.redirects = 0
        self.state.last_source = source
        try:
            self._resolve_until_settled()
        except Exception:
            self.state.phase = RouterPhase.IDLE
            raise
        return self.state

    def _resolve_until_settled(self) -> None:
        while True:
            session = self.sessions.get()
            action = resolve_navigation(
                self.browser.pathname,
                self.browser.query,
                session.user if session else None,
                self.state.page,
                self.state.lead_id,
                self.can_access,
            )
            if not isinstance(action, RewriteTo):
                if isinstance(action, SetPage):
                    self._show(action.page, action.lead_id)
                self.state.phase = RouterPhase.SETTLED
                return

            if self.state.redirects >= self.max_redirects:
                logger.error(
                    "Redirect budget exhausted, settling without rewrite",
                    extra={"path": self.browser.pathname, "reason": action.reason},
                )
                self._show(action.page, action.lead_id)
                self.state.phase = RouterPhase.SETTLED
                return

            self._rewrite(action)

    def _rewrite(self, action: RewriteTo) -> None:
        self.state.phase = RouterPhase.REDIRECTING
        self.state.redirects += 1
        source_path = normalize_path(self.browser.pathname)
        if action.reason == "unknown_page":
            miss = RouteResolutionMiss(extract_page_slug(source_path))
            logger.debug(miss.message, extra={"error_code": miss.code, "path": source_path})
        logger.info(
            "Correcting URL",
            extra={"path": action.path, "page": action.page.value, "reason": action.reason},
        )
        query = {} if action.reason in _DROP_QUERY_REASONS else self.browser.query
        self.browser.replace_state(relative_url(action.path, query))
        self._show(action.page, action.lead_id)
        self.state.phase = RouterPhase.RESOLVING

    def _show(self, page: Page, lead_id: int | None) -> None:
        if (page, lead_id) == (self.state.page, self.state.lead_id):
            return
        self.state.page = page
        self.state.lead_id = lead_id
        for listener in self._listeners:
            listener(page, lead_id)

    def navigate(self, page: Page, lead_id: int | None = None) -> NavigationState:
        """Programmatic page change: push the page's path, then reconcile."""
        session = self.sessions.get()
        path = path_for_page(page, session.user if session else None, lead_id)
        if normalize_path(self.browser.pathname) != path:
            self.browser.push_state(path)
        return self.handle_location_change("navigate")
