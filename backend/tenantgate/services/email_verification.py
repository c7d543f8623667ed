"""E-mail Verification Prompt - send, resend and verify address confirmation codes.

Invariants:
    - open(email) sends automatically at most once per distinct address per prompt
    - Sends honour the persisted cooldown (keyed by address) across reloads
    - A successful verification refreshes the session user; without a live
      session only the backend call is made
"""

import logging
from dataclasses import replace

from tenantgate.core.auth_messages import classify_otp_error, otp_error
from tenantgate.core.boundary_protocols import BackendAPI
from tenantgate.core.errors import BackendAPIError, OtpCooldownError, TenantGateError
from tenantgate.services.cooldown_store import CooldownStore
from tenantgate.services.session_store import SessionStore

logger = logging.getLogger(__name__)


class EmailVerificationPrompt:
    def __init__(
        self,
        backend: BackendAPI,
        sessions: SessionStore,
        cooldown: CooldownStore,
        code_length: int = 6,
    ):
        self.backend = backend
        self.sessions = sessions
        self.cooldown = cooldown
        self.code_length = code_length
        self.email: str | None = None
        self._auto_sent: set[str] = set()

    def _access_token(self) -> str | None:
        session = self.sessions.get()
        return session.access_token if session else None

    @property
    def remaining(self) -> int:
        if not self.email:
            return 0
        return self.cooldown.remaining(self.email)

    async def open(self, email: str) -> bool:
        """Show the prompt for email. Returns True when a code was sent now."""
        email = email.strip().lower()
        self.email = email
        if email in self._auto_sent:
            return False
        self._auto_sent.add(email)
        if self.cooldown.remaining(email) > 0:
            logger.debug("Verification code still cooling down, not re-sent")
            return False
        await self._send(email)
        return True

    async def resend(self) -> int:
        """Send another code. Returns the cooldown now in force, in seconds."""
        if not self.email:
            raise otp_error("session_lost")
        remaining = self.cooldown.remaining(self.email)
        if remaining > 0:
            raise OtpCooldownError(remaining)
        await self._send(self.email)
        return self.cooldown.window_seconds

    async def _send(self, email: str) -> None:
        await self.backend.resend_verification(email, self._access_token())
        self.cooldown.start(email)
        logger.info("Verification code sent")

    async def verify(self, code: str) -> bool:
        if not self.email:
            raise otp_error("session_lost")
        code = (code or "").strip()
        if len(code) != self.code_length or not code.isdigit():
            raise otp_error("malformed")
        try:
            await self.backend.verify_email(self.email, code=code)
        except BackendAPIError as e:
            if e.status_code is None or e.status_code >= 500:
                raise
            raise otp_error(classify_otp_error(e.message)) from e
        self.cooldown.reset()
        await self._mark_verified()
        return True

    async def verify_link(self, token: str, email: str) -> bool:
        """Confirm an address from the e-mailed link (token + email query)."""
        if not token or not email:
            raise otp_error("malformed")
        await self.backend.verify_email(email.strip().lower(), token=token)
        await self._mark_verified()
        return True

    async def _mark_verified(self) -> None:
        session = self.sessions.get()
        if session is None:
            return
        try:
            user = await self.backend.get_current_user(session.access_token)
        except TenantGateError as e:
            logger.warning(
                f"User refresh after verification failed: {e.message}",
                extra={"error_code": e.code},
            )
            user = session.user
        if not user.email_verified:
            user = replace(user, email_verified=True)
        self.sessions.replace_user(user)
        logger.info("E-mail verified")
