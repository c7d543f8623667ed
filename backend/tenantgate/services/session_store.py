"""Session Store - single owner of tokens and the current user in durable storage.

Invariants:
    - Four keys move together: accessToken, refreshToken, currentUser, isLoggedIn
    - After any call the stored record is either complete or absent
    - hydrate() of a partial or corrupt record clears every key
    - Only auth flows, handoff consumption and logout call set()/clear()

Design Decisions:
    - Cached in-memory Session plus write-through storage: reads never re-parse JSON
    - replace_user keeps tokens and swaps the user wholesale (refresh after
      e-mail verification or payment)
"""

import json
import logging
from dataclasses import replace

from tenantgate.core.boundary_protocols import KeyValueStorage
from tenantgate.core.domain_types import Session, User, user_from_dict, user_to_dict

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "accessToken"
REFRESH_TOKEN_KEY = "refreshToken"
CURRENT_USER_KEY = "currentUser"
LOGGED_IN_KEY = "isLoggedIn"

SESSION_KEYS = (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, CURRENT_USER_KEY, LOGGED_IN_KEY)


class SessionStore:
    def __init__(self, storage: KeyValueStorage):
        self.storage = storage
        self._session: Session | None = None

    def hydrate(self) -> Session | None:
        """Read the persisted session at startup."""
        present = [key for key in SESSION_KEYS if self.storage.get(key) is not None]
        if not present:
            self._session = None
            return None
        try:
            user_data = json.loads(self.storage.get(CURRENT_USER_KEY) or "")
            self._session = Session(
                access_token=self.storage.get(ACCESS_TOKEN_KEY) or "",
                refresh_token=self.storage.get(REFRESH_TOKEN_KEY) or "",
                user=user_from_dict(user_data),
            )
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Discarding partial stored session: {e}")
            self.clear()
            return None
        if self.storage.get(LOGGED_IN_KEY) != "true":
            self.storage.set(LOGGED_IN_KEY, "true")
        return self._session

    def get(self) -> Session | None:
        return self._session

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    def set(self, session: Session) -> None:
        self.storage.set(ACCESS_TOKEN_KEY, session.access_token)
        self.storage.set(REFRESH_TOKEN_KEY, session.refresh_token)
        self.storage.set(CURRENT_USER_KEY, json.dumps(user_to_dict(session.user)))
        self.storage.set(LOGGED_IN_KEY, "true")
        self._session = session
        logger.info("Session stored", extra={"company_slug": _company_label(session.user)})

    def replace_user(self, user: User) -> Session:
        """Swap the user of the live session. Raises LookupError without one."""
        if self._session is None:
            raise LookupError("No live session to update")
        session = replace(self._session, user=user)
        self.set(session)
        return session

    def replace_access_token(self, access_token: str) -> Session:
        if self._session is None:
            raise LookupError("No live session to update")
        session = replace(self._session, access_token=access_token)
        self.set(session)
        return session

    def clear(self) -> None:
        for key in SESSION_KEYS:
            self.storage.remove(key)
        if self._session is not None:
            logger.info("Session cleared")
        self._session = None


def _company_label(user: User) -> str | None:
    if user.company is None:
        return None
    return user.company.domain or user.company.name
