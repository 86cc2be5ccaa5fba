"""
Session token signing and verification.

The identity provider hands the client a bearer token of the form
``<payload>.<signature>``. The payload is URL-safe base64 JSON carrying the
subject (``sub``), optional profile fields and an expiry (``exp``). The
signature is HMAC-SHA256 over the encoded payload, keyed with
``SESSION_SECRET``. The server only trusts identities it can verify this way.
"""

import base64
import hashlib
import hmac
import json
import logging
import time
from dataclasses import dataclass
from typing import Optional

from .config import get_settings

logger = logging.getLogger(__name__)


class InvalidSessionToken(Exception):
    """Token is malformed, tampered with, or expired."""


@dataclass(frozen=True)
class SessionClaims:
    subject: str
    name: Optional[str] = None
    email: Optional[str] = None
    image_url: Optional[str] = None
    expires_at: Optional[int] = None


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(value: str) -> bytes:
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(value + padding)


def _sign(payload: str, secret: Optional[str] = None) -> str:
    key = (secret or get_settings().session_secret).encode()
    return hmac.new(key, payload.encode("ascii"), hashlib.sha256).hexdigest()


def issue_session_token(
    subject: str,
    name: Optional[str] = None,
    email: Optional[str] = None,
    image_url: Optional[str] = None,
    max_age: Optional[int] = None,
    secret: Optional[str] = None,
) -> str:
    """Sign a session token for *subject*.

    Args:
        subject: Identity-provider user id. Must be non-empty.
        max_age: Lifetime in seconds (defaults to ``session_max_age_seconds``).
        secret: Signing key override, mainly for tests.
    """
    if not subject:
        raise ValueError("subject must be a non-empty string")

    lifetime = max_age if max_age is not None else get_settings().session_max_age_seconds
    claims = {
        "sub": subject,
        "name": name,
        "email": email,
        "image_url": image_url,
        "exp": int(time.time()) + lifetime,
    }
    payload = _b64encode(json.dumps(claims, separators=(",", ":")).encode())
    return f"{payload}.{_sign(payload, secret)}"


def verify_session_token(token: str, secret: Optional[str] = None) -> SessionClaims:
    """Verify a bearer token and return its claims.

    Raises:
        InvalidSessionToken: On a bad format, bad signature or expiry.
    """
    try:
        payload, signature = token.rsplit(".", 1)
    except (AttributeError, ValueError):
        raise InvalidSessionToken("Malformed session token") from None

    if not hmac.compare_digest(_sign(payload, secret), signature):
        raise InvalidSessionToken("Session token signature mismatch")

    try:
        claims = json.loads(_b64decode(payload))
    except ValueError:
        raise InvalidSessionToken("Session token payload is not valid JSON") from None
    if not isinstance(claims, dict):
        raise InvalidSessionToken("Session token payload is not an object")

    expires_at = claims.get("exp")
    if expires_at is not None and int(expires_at) < int(time.time()):
        raise InvalidSessionToken("Session token expired")

    subject = claims.get("sub")
    if not subject:
        raise InvalidSessionToken("Session token has no subject")

    return SessionClaims(
        subject=str(subject),
        name=claims.get("name"),
        email=claims.get("email"),
        image_url=claims.get("image_url"),
        expires_at=expires_at,
    )
