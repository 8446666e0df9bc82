"""
Caller identity: HMAC-signed bearer tokens.

A token is ``<payload>.<signature>`` where the payload is base64url JSON
``{"sub": uid, "exp": unix_seconds}`` signed with ``AUTH_SECRET``.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
import time

from fastapi import Header

from .config import SETTINGS
from .errors import Unauthenticated


def _b64(b: bytes) -> str:
    return base64.urlsafe_b64encode(b).decode().rstrip("=")


def _ub64(s: str) -> bytes:
    pad = "=" * ((4 - (len(s) % 4)) % 4)
    return base64.urlsafe_b64decode((s + pad).encode())


def _secret(secret: str | None) -> bytes:
    value = secret if secret is not None else SETTINGS.AUTH_SECRET
    if not value:
        logging.error("AUTH_SECRET is not configured; all callers are rejected")
        raise Unauthenticated("Authentication is not configured.")
    return value.encode()


def _sign(key: bytes, payload: str) -> str:
    return _b64(hmac.new(key, payload.encode(), hashlib.sha256).digest())


def issue_token(uid: str, ttl_s: int | None = None, *, secret: str | None = None) -> str:
    """Issue a signed token for ``uid``."""
    ttl = ttl_s if ttl_s is not None else SETTINGS.AUTH_TOKEN_TTL_SECONDS
    body = {"sub": uid, "exp": int(time.time()) + ttl}
    payload = _b64(json.dumps(body, separators=(",", ":")).encode())
    return f"{payload}.{_sign(_secret(secret), payload)}"


def verify_token(token: str, *, secret: str | None = None) -> str:
    """Return the uid carried by a valid token or raise ``Unauthenticated``."""
    key = _secret(secret)
    try:
        payload, sig = token.split(".")
        if not hmac.compare_digest(_sign(key, payload), sig):
            raise Unauthenticated("Invalid token signature.")
        body = json.loads(_ub64(payload).decode())
        uid = body["sub"]
        exp = int(body["exp"])
    except Unauthenticated:
        raise
    except (ValueError, KeyError, TypeError) as e:
        raise Unauthenticated("Malformed token.") from e
    if exp < time.time():
        raise Unauthenticated("Token expired.")
    if not isinstance(uid, str) or not uid:
        raise Unauthenticated("Token has no subject.")
    return uid


async def current_uid(authorization: str | None = Header(None)) -> str:
    """FastAPI dependency resolving the caller's uid from ``Authorization: Bearer``."""
    if not authorization:
        raise Unauthenticated("User must be signed in.")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthenticated("User must be signed in.")
    return verify_token(token.strip())
