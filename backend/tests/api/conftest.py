"""API test fixtures - FastAPI test client with a mocked backend.

Invariants:
    - ASGITransport does not run the lifespan, so app.state.backend is set here
    - The backend answers from an httpx.MockTransport; no network
"""

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from tenantgate.infrastructure.backend_client import ResilientBackendClient
from tenantgate.main import app


@pytest.fixture
def backend_status():
    """Status code the mocked backend root answers with; tests may change it."""
    return {"code": 200}


@pytest.fixture
async def client(backend_status):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(backend_status["code"], json={})

    backend = ResilientBackendClient(
        "http://backend.test/api", max_retries=0, transport=httpx.MockTransport(handler),
    )
    app.state.backend = backend
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c
    await backend.aclose()
    del app.state.backend
