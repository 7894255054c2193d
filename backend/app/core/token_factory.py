"""Issue and verify HS256 bearer tokens carrying a user id.

Plain functions over the standard library. The API only verifies tokens;
``issue_token`` exists for the login collaborator and for tests.
"""

import base64
import hashlib
import hmac
import json
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

ISSUER = "planreview"
_HEADER = {"alg": "HS256", "typ": "JWT"}


@dataclass(frozen=True)
class TokenPayload:
    """Verified token claims."""
    sub: str
    role: str
    exp: datetime


def issue_token(
    user_id: str,
    secret: str,
    role: str = "user",
    expires_hours: float = 24,
    now: Optional[float] = None,
) -> str:
    """Sign a token for *user_id* valid for *expires_hours*."""
    issued = time.time() if now is None else now
    claims = {
        "sub": user_id,
        "role": role,
        "iat": int(issued),
        "exp": int(issued + expires_hours * 3600),
        "iss": ISSUER,
    }
    head = _encode_segment(_HEADER)
    body = _encode_segment(claims)
    return f"{head}.{body}.{_sign(f'{head}.{body}', secret)}"


def decode_token(token: str, secret: str, algorithm: str = "HS256") -> Optional[TokenPayload]:
    """Verify signature, algorithm, issuer and expiry.

    Returns ``None`` on any failure rather than raising; the auth
    dependency decides how to respond.
    """
    if algorithm != "HS256":
        return None
    try:
        head, body, signature = token.split(".")
    except ValueError:
        return None

    if not hmac.compare_digest(_sign(f"{head}.{body}", secret), signature):
        return None

    try:
        header = json.loads(_b64decode(head))
        claims = json.loads(_b64decode(body))
    except (ValueError, TypeError):
        return None

    if header.get("alg") != "HS256" or claims.get("iss") != ISSUER:
        return None

    exp = claims.get("exp")
    if not isinstance(exp, (int, float)) or time.time() > exp:
        return None

    return TokenPayload(
        sub=str(claims.get("sub", "")),
        role=str(claims.get("role", "user")),
        exp=datetime.fromtimestamp(exp, tz=timezone.utc),
    )


def _sign(signing_input: str, secret: str) -> str:
    digest = hmac.new(secret.encode(), signing_input.encode(), hashlib.sha256).digest()
    return _b64encode(digest)


def _encode_segment(data: dict) -> str:
    return _b64encode(json.dumps(data, separators=(",", ":")).encode())


def _b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


def _b64decode(segment: str) -> bytes:
    return base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))
