"""E-mail Verification Prompt - tests for send, resend cooldown and verification.

Tests cover:
    - open() sends once per address per prompt, and not while cooling down
    - resend() honours the cooldown across a reload
    - verify() rejects malformed codes locally and classifies backend rejections
    - A verified address is reflected on the stored session user
"""

import pytest

from tenantgate.core.errors import BackendAPIError, OtpCooldownError, OtpError
from tenantgate.services.session_store import CURRENT_USER_KEY

from tests.builders import make_user

VERIFY_URL = "https://acme.example.com/acme/dashboard"


async def test_open_sends_once_per_address(make_shell, backend):
    prompt = make_shell(VERIFY_URL).email_verification

    assert await prompt.open("Alice@Example.com")
    assert not await prompt.open("alice@example.com")
    assert backend.args_of("resend_verification") == [("alice@example.com",)]
    assert prompt.remaining == 60


async def test_open_after_reload_respects_cooldown(make_shell, backend, clock):
    await make_shell(VERIFY_URL).email_verification.open("alice@example.com")
    clock.advance(10)

    reloaded = make_shell(VERIFY_URL).email_verification
    assert not await reloaded.open("alice@example.com")
    assert reloaded.remaining == 50
    assert backend.count("resend_verification") == 1


async def test_resend_waits_for_cooldown(make_shell, backend, clock):
    prompt = make_shell(VERIFY_URL).email_verification
    await prompt.open("alice@example.com")

    with pytest.raises(OtpCooldownError):
        await prompt.resend()

    clock.advance(60)
    assert await prompt.resend() == 60
    assert backend.count("resend_verification") == 2


async def test_resend_without_address(make_shell):
    with pytest.raises(OtpError) as exc_info:
        await make_shell(VERIFY_URL).email_verification.resend()
    assert exc_info.value.kind == "session_lost"


async def test_verify_marks_session_user(make_shell, backend, durable, session):
    shell = make_shell(VERIFY_URL)
    shell.sessions.set(session)
    backend.users["access-1"] = make_user()
    prompt = shell.email_verification
    await prompt.open("alice@example.com")

    assert await prompt.verify("123456")

    assert shell.sessions.get().user.email_verified
    assert '"email_verified": true' in durable.get(CURRENT_USER_KEY)
    assert prompt.remaining == 0


async def test_verify_keeps_cached_user_when_refresh_fails(make_shell, backend, session):
    shell = make_shell(VERIFY_URL)
    shell.sessions.set(session)
    prompt = shell.email_verification
    await prompt.open("alice@example.com")

    await prompt.verify("123456")

    assert shell.sessions.get().user.username == session.user.username
    assert shell.sessions.get().user.email_verified


@pytest.mark.parametrize("code", ["123", "abcdef"])
async def test_verify_rejects_malformed_code(make_shell, backend, code):
    prompt = make_shell(VERIFY_URL).email_verification
    await prompt.open("alice@example.com")
    with pytest.raises(OtpError) as exc_info:
        await prompt.verify(code)
    assert exc_info.value.kind == "malformed"
    assert backend.count("verify_email") == 0


async def test_verify_classifies_rejection_and_reraises_outage(make_shell, backend):
    backend.fail(
        "verify_email",
        BackendAPIError("Verification code has expired", status_code=400),
        BackendAPIError("Service unavailable", status_code=503),
    )
    prompt = make_shell(VERIFY_URL).email_verification
    await prompt.open("alice@example.com")

    with pytest.raises(OtpError) as exc_info:
        await prompt.verify("123456")
    assert exc_info.value.kind == "expired"

    with pytest.raises(BackendAPIError):
        await prompt.verify("123456")


async def test_verify_link_without_session(make_shell, backend):
    prompt = make_shell("https://example.com/verify-email?token=t1&email=Alice@Example.com").email_verification

    assert await prompt.verify_link("t1", "Alice@Example.com")
    assert backend.args_of("verify_email") == [("alice@example.com", None, "t1")]
    assert backend.count("get_current_user") == 0
