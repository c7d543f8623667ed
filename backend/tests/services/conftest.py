"""Service test fixtures - fake backend, storages, clock and an AppShell factory.

Invariants:
    - durable / tab storages are plain MemoryStorage; a "reload" reuses them with
      a fresh AppShell and a fresh browser
    - Settings never read a .env file in tests
"""

import pytest

from tenantgate.config import Settings
from tenantgate.infrastructure.browser import InMemoryBrowser
from tenantgate.infrastructure.storage import MemoryStorage
from tenantgate.services.app_shell import AppShell

from tests.services.fakes import FakeBackend, FakeClock, RecordingSleep


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def durable():
    return MemoryStorage()


@pytest.fixture
def tab():
    return MemoryStorage()


@pytest.fixture
def settings():
    return Settings(_env_file=None, base_domain="example.com")


@pytest.fixture
def make_shell(settings, backend, durable, tab, clock, sleep):
    """AppShell at url; pass storages explicitly to simulate another origin or tab."""
    def _make(url, durable_storage=None, tab_storage=None, has_opener=False, **overrides):
        shell_settings = settings.model_copy(update=overrides) if overrides else settings
        browser = InMemoryBrowser(url, has_opener=has_opener)
        return AppShell(
            shell_settings, backend,
            durable if durable_storage is None else durable_storage,
            tab if tab_storage is None else tab_storage,
            browser, clock=clock, sleep=sleep,
        )
    return _make
