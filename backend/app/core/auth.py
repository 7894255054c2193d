"""Authentication dependency exposing the current user to endpoints.

Public interface:
    ``require_auth`` returns AuthContext or raises 401.

Identity comes from a signed bearer token whose subject is the user id.
Ownership is decided per document by the services, not here.

When ``settings.auth_enabled`` is False every request runs as
``settings.dev_user_id`` so the development workflow is unbroken.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import settings
from .token_factory import decode_token
from ..exceptions import AuthenticationError

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthContext:
    """Resolved authentication context available to every endpoint."""

    user_id: str
    role: str = "user"


def require_auth(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> AuthContext:
    """Require a valid token and return the caller's AuthContext.

    When ``AUTH_ENABLED=false`` returns the development user.
    """
    if not settings.auth_enabled:
        return AuthContext(user_id=settings.dev_user_id)

    if credentials is None:
        raise AuthenticationError("Missing authentication token")

    payload = decode_token(
        credentials.credentials, settings.jwt_secret_key, settings.jwt_algorithm
    )
    if payload is None:
        raise AuthenticationError("Invalid or expired token")
    if not payload.sub:
        raise AuthenticationError("Token has no subject")

    return AuthContext(user_id=payload.sub, role=payload.role or "user")
