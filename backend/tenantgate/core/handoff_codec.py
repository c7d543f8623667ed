"""Handoff Codec - session <-> opaque URL-safe string for cross-origin transfer.

Invariants:
    - decode(encode(session)) == session for every well-formed Session
    - decode raises HandoffDecodeError and nothing else, whatever the input
    - Payload shape is {"access", "refresh", "user"}; all three are required

Design Decisions:
    - Not encrypted and not signed: both origins belong to the same deployment and
      the bundle only travels over HTTPS. It is opaque, not secret
    - URL-safe alphabet without padding on encode; decode also accepts the standard
      alphabet and padded input so hand-built links keep working
"""

import base64
import binascii
import hashlib
import json

from tenantgate.core.domain_types import Session, user_from_dict, user_to_dict
from tenantgate.core.errors import HandoffDecodeError

HANDOFF_PARAM = "auth"


def encode(session: Session) -> str:
    payload = {
        "access": session.access_token,
        "refresh": session.refresh_token,
        "user": user_to_dict(session.user),
    }
    raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64_bytes(token: str) -> bytes:
    cleaned = token.strip().replace("+", "-").replace("/", "_").rstrip("=")
    if len(cleaned) % 4 == 1:
        raise HandoffDecodeError("truncated base64")
    padded = cleaned + "=" * (-len(cleaned) % 4)
    try:
        return base64.b64decode(padded, altchars=b"-_", validate=True)
    except (binascii.Error, ValueError) as e:
        raise HandoffDecodeError("not base64") from e


def decode(token: str | None) -> Session:
    """Inverse of encode. Any failure surfaces as HandoffDecodeError."""
    if not token or not isinstance(token, str):
        raise HandoffDecodeError("empty bundle")
    raw = _b64_bytes(token)
    try:
        payload = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError, RecursionError) as e:
        raise HandoffDecodeError("not JSON") from e
    if not isinstance(payload, dict):
        raise HandoffDecodeError("payload is not an object")
    access = payload.get("access")
    refresh = payload.get("refresh")
    if not isinstance(access, str) or not isinstance(refresh, str):
        raise HandoffDecodeError("missing tokens")
    try:
        user = user_from_dict(payload.get("user"))
        return Session(access_token=access, refresh_token=refresh, user=user)
    except (KeyError, TypeError, ValueError, OverflowError) as e:
        raise HandoffDecodeError("invalid user or tokens") from e


def fingerprint(token: str) -> str:
    """Stable short digest used as the one-shot consumed marker."""
    return hashlib.sha256(token.strip().encode("utf-8")).hexdigest()[:32]
