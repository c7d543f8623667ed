"""Auth Messages - tests for backend error classification.

Tests cover:
    - Credential errors map to distinct kinds, temporary inactivity by code
    - OTP errors map to expired / invalid / failed
    - Built errors carry kind and message key
"""

import pytest

from tenantgate.core.auth_messages import (
    ACCOUNT_TEMPORARILY_INACTIVE,
    CREDENTIAL_MESSAGES,
    classify_credential_error,
    classify_otp_error,
    credential_error,
    otp_error,
)


@pytest.mark.parametrize("message, code, kind", [
    ("No active account found with the given credentials", None, "no_such_account"),
    ("Unable to log in with provided credentials.", None, "invalid_credentials"),
    ("User account is inactive", None, "account_inactive"),
    ("Forbidden", ACCOUNT_TEMPORARILY_INACTIVE, "account_temporarily_inactive"),
    (ACCOUNT_TEMPORARILY_INACTIVE, None, "account_temporarily_inactive"),
    ("something else", None, "invalid_credentials"),
    (None, None, "invalid_credentials"),
])
def test_classify_credential_error(message, code, kind):
    assert classify_credential_error(message, code) == kind


@pytest.mark.parametrize("message, kind", [
    ("Two-factor authentication code has EXPIRED", "expired"),
    ("Invalid two-factor authentication code", "invalid"),
    ("boom", "failed"),
    (None, "failed"),
])
def test_classify_otp_error(message, kind):
    assert classify_otp_error(message) == kind


def test_every_credential_kind_builds_an_error():
    for kind, message in CREDENTIAL_MESSAGES.items():
        error = credential_error(kind)
        assert error.kind == kind
        assert error.message == message
        assert error.message_key == f"login_error_{kind}"


def test_otp_error_message_key():
    assert otp_error("expired").message_key == "otp_expired"
