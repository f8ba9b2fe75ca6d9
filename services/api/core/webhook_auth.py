# services/api/core/webhook_auth.py
"""
Shared-secret signatures between this backend and the document server.

The document server signs callbacks (and expects signed configs / conversion
requests) with HS256 JWTs when its JWT option is on. The secret is always
passed in explicitly so these helpers stay pure.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import jwt

from core.errors import Unauthorized

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


def sign_payload(payload: Dict[str, Any], secret: str) -> str:
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def extract_bearer(header_value: Optional[str]) -> Optional[str]:
    """`Bearer <token>` -> `<token>`; bare tokens are accepted too."""
    if not header_value:
        return None
    value = header_value.strip()
    scheme, _, rest = value.partition(" ")
    if scheme.lower() == "bearer":
        value = rest.strip()
    return value or None


def verify_callback_token(
    body: Dict[str, Any],
    auth_header: Optional[str],
    secret: Optional[str],
) -> Dict[str, Any]:
    """
    Authenticate a callback and return the payload to act on.

    - No secret configured -> caller is trusted, body returned as-is.
    - Secret configured -> a token must be present, either in the auth
      header or in the body's "token" field, and must verify. When the
      token carries a "payload" claim (header mode), that claim is the
      authoritative payload; otherwise the decoded claims are.

    Raises:
        Unauthorized: missing or invalid credential.
    """
    if not secret:
        return body

    token = extract_bearer(auth_header) or body.get("token")
    if not token:
        raise Unauthorized("callback has no token but a JWT secret is configured")

    try:
        claims = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except jwt.PyJWTError as exc:
        logger.warning("Rejected callback token: %s", exc)
        raise Unauthorized(f"invalid callback token: {exc}") from exc

    payload = claims.get("payload")
    if isinstance(payload, dict):
        return payload
    return claims
