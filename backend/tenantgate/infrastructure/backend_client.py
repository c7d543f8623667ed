"""Resilient Backend Client - httpx.AsyncClient with retry, backoff, and error mapping.

Invariants:
    - Transient errors (5xx, connection, timeout): max_retries retries with exponential backoff
    - Client errors (4xx): immediate failure, no retry
    - 403 with SUBSCRIPTION_INACTIVE -> SubscriptionInactiveError (except on /users/me/)
    - 403 with ACCOUNT_TEMPORARILY_INACTIVE -> CredentialError
    - Every other failure maps to BackendAPIError (core/errors.py)
    - Tokens are sent as headers only and never logged

Design Decisions:
    - Wrapper over raw client: retry policy lives in one place, flows stay linear
    - ±25% jitter on backoff: spreads retries from many tabs hitting one backend
    - Transport injectable: tests pass httpx.MockTransport, no network
"""

import asyncio
import logging
import random
from collections.abc import Mapping
from typing import Any

import httpx
from pydantic import BaseModel, ValidationError

from tenantgate.config import Settings
from tenantgate.core.auth_messages import ACCOUNT_TEMPORARILY_INACTIVE, SUBSCRIPTION_INACTIVE
from tenantgate.core.domain_types import (
    CheckoutSession,
    OtpChallenge,
    RegistrationResult,
    Session,
    TokenPair,
    User,
)
from tenantgate.core.errors import (
    BackendAPIError,
    CredentialError,
    ErrorContext,
    SubscriptionInactiveError,
    TenantGateError,
)
from tenantgate.schemas.backend import (
    BackendErrorPayload,
    CurrentUserPayload,
    PaymentSessionPayload,
    RefreshPayload,
    RegistrationPayload,
    SessionPayload,
    TokenPairPayload,
    TwoFactorChallengePayload,
)

logger = logging.getLogger(__name__)

CURRENT_USER_ENDPOINT = "/users/me/"


class ResilientBackendClient:
    """Implements the BackendAPI protocol over HTTP."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout_seconds: float = 15.0,
        max_retries: int = 3,
        base_delay_ms: int = 500,
        max_delay_ms: int = 8_000,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["X-API-Key"] = api_key
        self.client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout_seconds,
            transport=transport,
        )
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None,
    ) -> "ResilientBackendClient":
        return cls(
            settings.backend_api_url,
            api_key=settings.backend_api_key,
            timeout_seconds=settings.backend_timeout_seconds,
            max_retries=settings.backend_max_retries,
            base_delay_ms=settings.backend_base_delay_ms,
            max_delay_ms=settings.backend_max_delay_ms,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "ResilientBackendClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ─── Endpoints ───────────────────────────────────────────────

    async def request_two_factor(self, username: str, language: str = "en") -> OtpChallenge:
        data = await self._request(
            "POST", "/auth/request-2fa/", json={"username": username}, language=language,
        )
        return self._parse(TwoFactorChallengePayload, data, "/auth/request-2fa/").to_domain()

    async def verify_two_factor(
        self, username: str, password: str, code: str, token: str,
    ) -> TokenPair:
        data = await self._request(
            "POST", "/auth/verify-2fa/",
            json={"username": username, "password": password, "code": code, "token": token},
        )
        return self._parse(TokenPairPayload, data, "/auth/verify-2fa/").to_domain()

    async def refresh_access_token(self, refresh_token: str) -> str:
        data = await self._request("POST", "/auth/refresh/", json={"refresh": refresh_token})
        return self._parse(RefreshPayload, data, "/auth/refresh/").access

    async def get_current_user(self, access_token: str) -> User:
        data = await self._request("GET", CURRENT_USER_ENDPOINT, access_token=access_token)
        return self._parse(CurrentUserPayload, data, CURRENT_USER_ENDPOINT).to_domain()

    async def register(
        self, payload: Mapping[str, Any], language: str = "en",
    ) -> RegistrationResult:
        data = await self._request(
            "POST", "/auth/register/", json=dict(payload), language=language,
        )
        return self._parse(RegistrationPayload, data, "/auth/register/").to_domain()

    async def create_payment_session(
        self,
        subscription_id: int,
        gateway_id: str,
        plan_id: int | None = None,
        billing_cycle: str | None = None,
        access_token: str | None = None,
    ) -> CheckoutSession:
        body: dict[str, Any] = {"subscription_id": subscription_id, "gateway_id": gateway_id}
        if plan_id:
            body["plan_id"] = plan_id
        if billing_cycle:
            body["billing_cycle"] = billing_cycle
        data = await self._request(
            "POST", "/payments/create-session/", json=body, access_token=access_token,
        )
        return self._parse(PaymentSessionPayload, data, "/payments/create-session/").to_domain()

    async def check_payment_status(self, subscription_id: int) -> dict:
        endpoint = f"/payment-status/{subscription_id}/"
        data = await self._request("GET", endpoint)
        return data if isinstance(data, dict) else {}

    async def exchange_impersonation(self, code: str) -> Session:
        endpoint = "/auth/impersonate-exchange/"
        data = await self._request("GET", endpoint, params={"code": code})
        payload = self._parse(SessionPayload, data, endpoint)
        try:
            return payload.to_session()
        except ValueError as e:
            raise BackendAPIError(
                "Impersonation exchange returned an incomplete session", endpoint=endpoint,
            ) from e

    async def resend_verification(self, email: str, access_token: str | None = None) -> dict:
        data = await self._request(
            "POST", "/auth/resend-verification/", json={"email": email}, access_token=access_token,
        )
        return data if isinstance(data, dict) else {}

    async def verify_email(
        self, email: str, code: str | None = None, token: str | None = None,
    ) -> dict:
        body: dict[str, Any] = {"email": email}
        if code:
            body["code"] = code
        if token:
            body["token"] = token
        data = await self._request("POST", "/auth/verify-email/", json=body)
        return data if isinstance(data, dict) else {}

    async def health_check(self) -> bool:
        """One unretried request to the API root; any HTTP answer below 500 counts."""
        try:
            response = await self.client.get("/")
        except (httpx.TimeoutException, httpx.TransportError):
            return False
        return response.status_code < 500

    # ─── Transport ───────────────────────────────────────────────

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        json: Any = None,
        params: Mapping[str, str] | None = None,
        access_token: str | None = None,
        language: str | None = None,
    ) -> Any:
        """Send with retry on transient failures; map 4xx to typed errors."""
        headers: dict[str, str] = {}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        if language:
            headers["Accept-Language"] = language

        for attempt in range(self.max_retries + 1):
            try:
                response = await self.client.request(
                    method, endpoint, json=json, params=params, headers=headers,
                )
            except (httpx.TimeoutException, httpx.TransportError) as e:
                await self._handle_transient_error(e, attempt, endpoint)
                continue

            if response.status_code >= 500:
                await self._handle_transient_error(
                    BackendAPIError(
                        f"Backend returned {response.status_code}",
                        status_code=response.status_code, endpoint=endpoint,
                    ),
                    attempt, endpoint,
                )
                continue
            if response.status_code >= 400:
                raise self._map_client_error(response, endpoint)

            logger.debug(
                "Backend call ok",
                extra={"endpoint": endpoint, "attempt": attempt + 1},
            )
            return self._json(response)

        # Unreachable: _handle_transient_error raises on the last attempt
        raise BackendAPIError("Retries exhausted", endpoint=endpoint)

    async def _handle_transient_error(
        self, e: Exception, attempt: int, endpoint: str,
    ) -> None:
        """Sleep and let the caller retry, or raise once retries are spent."""
        status_code = e.status_code if isinstance(e, BackendAPIError) else None
        if attempt >= self.max_retries:
            raise BackendAPIError(
                f"Transient failure after {self.max_retries} retries: {e}",
                status_code=status_code, endpoint=endpoint,
            )
        delay = self._backoff(attempt)
        logger.warning(
            f"Transient backend error, retry after {delay}ms: {e}",
            extra={"endpoint": endpoint, "attempt": attempt + 1},
        )
        await asyncio.sleep(delay / 1000)

    def _backoff(self, attempt: int) -> int:
        """Exponential backoff with ±25% jitter."""
        delay = min(self.max_delay_ms, (2 ** attempt) * self.base_delay_ms)
        return int(delay * random.uniform(0.75, 1.25))  # nosec B311

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None

    def _map_client_error(self, response: httpx.Response, endpoint: str) -> TenantGateError:
        body = self._json(response)
        try:
            payload = BackendErrorPayload.model_validate(body if isinstance(body, dict) else {})
        except ValidationError:
            payload = BackendErrorPayload()
        message = payload.text or f"Backend returned {response.status_code}"
        status_code = response.status_code

        logger.info(
            "Backend rejected request",
            extra={"endpoint": endpoint, "status_code": status_code, "error_code": payload.code},
        )
        if status_code == 403 and payload.code == ACCOUNT_TEMPORARILY_INACTIVE:
            return CredentialError(message, kind="account_temporarily_inactive")
        if status_code == 403 and endpoint != CURRENT_USER_ENDPOINT and (
            payload.code == SUBSCRIPTION_INACTIVE or "subscription" in message.lower()
        ):
            return SubscriptionInactiveError(
                payload.subscription_id, context=ErrorContext(endpoint=endpoint),
            )
        return BackendAPIError(
            message, status_code=status_code, endpoint=endpoint, backend_code=payload.code,
        )

    @staticmethod
    def _parse(model: type[BaseModel], data: Any, endpoint: str):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise BackendAPIError(
                f"Unexpected response shape from {endpoint}", endpoint=endpoint,
            ) from e
