"""Auth Messages - classify backend login/2FA failures into user-facing kinds.

Invariants:
    - Classification is total: unknown messages fall back to the generic kind
    - Matching is case-insensitive substring matching, most specific rule first
    - Every kind has an English default; the UI layer looks up message keys
"""

from tenantgate.core.errors import CredentialError, OtpError

CREDENTIAL_MESSAGES: dict[str, str] = {
    "missing_credentials": "Please enter username and password",
    "no_such_account": "No active account found with the given credentials",
    "account_inactive": "Account is inactive",
    "account_temporarily_inactive": "Your account is temporarily inactive",
    "invalid_credentials": "Invalid username or password",
    "impersonation_code": "Invalid or expired code.",
}

OTP_MESSAGES: dict[str, str] = {
    "expired": "Two-factor authentication code has expired. Please request a new one",
    "invalid": "Invalid two-factor authentication code",
    "failed": "Failed to verify two-factor authentication code",
    "malformed": "Please enter the complete verification code",
    "session_lost": "Your login session expired. Please sign in again",
}

ACCOUNT_TEMPORARILY_INACTIVE = "ACCOUNT_TEMPORARILY_INACTIVE"
SUBSCRIPTION_INACTIVE = "SUBSCRIPTION_INACTIVE"


def classify_credential_error(message: str | None, code: str | None = None) -> str:
    if code == ACCOUNT_TEMPORARILY_INACTIVE or message == ACCOUNT_TEMPORARILY_INACTIVE:
        return "account_temporarily_inactive"
    lowered = (message or "").lower()
    if "active account" in lowered:
        return "no_such_account"
    if "unable to log in" in lowered or "unable to login" in lowered:
        return "invalid_credentials"
    if "inactive" in lowered:
        return "account_inactive"
    return "invalid_credentials"


def classify_otp_error(message: str | None) -> str:
    lowered = (message or "").lower()
    if "expired" in lowered:
        return "expired"
    if "invalid" in lowered:
        return "invalid"
    return "failed"


def credential_error(kind: str) -> CredentialError:
    return CredentialError(CREDENTIAL_MESSAGES[kind], kind=kind)


def otp_error(kind: str) -> OtpError:
    return OtpError(OTP_MESSAGES[kind], kind=kind)
