"""Root conftest - shared test configuration."""

import os

import pytest

from tests.builders import make_session, make_user

# Tests never talk to a real backend
os.environ.setdefault("BACKEND_API_URL", "http://backend.test/api")
os.environ.setdefault("BASE_DOMAIN", "example.com")


@pytest.fixture
def user():
    return make_user()


@pytest.fixture
def session(user):
    return make_session(user)
