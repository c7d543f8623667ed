"""In-Memory Browser - BrowserLocation implementation with a history stack and navigation log.

Invariants:
    - replace_state / push_state never change origin (same rule as the History API)
    - assign is the only way to move to another origin; it is logged, never followed
      into another browser instance
    - query reflects the current URL only; the last value wins for repeated keys

Design Decisions:
    - One class for production shell and tests: the router, handoff and gate flows
      only ever need the URL and the three mutation verbs
"""

import logging
from urllib.parse import parse_qsl, urljoin, urlsplit

logger = logging.getLogger(__name__)

_DEFAULT_PORTS = {"http": 80, "https": 443}


class InMemoryBrowser:
    """Current URL, history entries and the list of full-page navigations."""

    def __init__(self, url: str, has_opener: bool = False):
        self._entries: list[str] = [url]
        self._index = 0
        self._has_opener = has_opener
        self.navigations: list[str] = []
        self.replace_count = 0

    # ─── Current URL ─────────────────────────────────────────────

    @property
    def href(self) -> str:
        return self._entries[self._index]

    @property
    def _parts(self):
        return urlsplit(self.href)

    @property
    def scheme(self) -> str:
        return self._parts.scheme

    @property
    def hostname(self) -> str:
        return self._parts.hostname or ""

    @property
    def port(self) -> int | None:
        port = self._parts.port
        if port is None or _DEFAULT_PORTS.get(self.scheme) == port:
            return None
        return port

    @property
    def origin(self) -> str:
        port = f":{self.port}" if self.port else ""
        return f"{self.scheme}://{self.hostname}{port}"

    @property
    def pathname(self) -> str:
        return self._parts.path or "/"

    @property
    def query(self) -> dict[str, str]:
        return dict(parse_qsl(self._parts.query, keep_blank_values=True))

    @property
    def has_opener(self) -> bool:
        return self._has_opener

    # ─── Mutations ───────────────────────────────────────────────

    def _absolute(self, url: str) -> str:
        return urljoin(self.href, url)

    def _same_origin(self, url: str) -> str:
        target = self._absolute(url)
        parts = urlsplit(target)
        if (parts.scheme, parts.hostname) != (self.scheme, self.hostname) or (
            (parts.port or _DEFAULT_PORTS.get(parts.scheme)) !=
            (self._parts.port or _DEFAULT_PORTS.get(self.scheme))
        ):
            raise ValueError(f"History update must stay on {self.origin}")
        return target

    def replace_state(self, url: str) -> None:
        self._entries[self._index] = self._same_origin(url)
        self.replace_count += 1

    def push_state(self, url: str) -> None:
        target = self._same_origin(url)
        del self._entries[self._index + 1:]
        self._entries.append(target)
        self._index += 1

    def assign(self, url: str) -> None:
        """Full-page navigation; the document is unloaded, so only the log remains."""
        target = self._absolute(url)
        logger.info("Full-page navigation", extra={"path": urlsplit(target).path})
        self.navigations.append(target)

    def back(self) -> bool:
        """History back (a popstate source). False when already at the first entry."""
        if self._index == 0:
            return False
        self._index -= 1
        return True

    @property
    def last_navigation(self) -> str | None:
        return self.navigations[-1] if self.navigations else None
