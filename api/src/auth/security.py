"""Viewer access tokens.

The platform's account service signs the tokens; this API only verifies
them. ``issue_viewer_token`` mints the same shape for tests and local tooling:

    {"sub": "<viewer uuid>", "role": "creator", "target_ids": ["v1"],
     "type": "access", "iat": ..., "exp": ...}
"""

from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from jose import JWTError, jwt

from src.auth.permissions import ViewerRole
from src.config.settings import get_settings


ACCESS_TOKEN_TYPE = "access"


def issue_viewer_token(
    viewer_id: UUID | str,
    role: ViewerRole | str = ViewerRole.VIEWER,
    target_ids: Iterable[str] = (),
    expires_delta: timedelta | None = None,
    **claims: Any,
) -> str:
    """Sign an access token for ``viewer_id``.

    ``target_ids`` lists the content items a creator may moderate; it is
    left out of the token when empty.
    """
    settings = get_settings()
    issued_at = datetime.now(UTC)
    lifetime = expires_delta or timedelta(
        minutes=settings.auth_access_token_expire_minutes
    )

    payload: dict[str, Any] = {
        **claims,
        "sub": str(viewer_id),
        "role": ViewerRole(role).value,
        "type": ACCESS_TOKEN_TYPE,
        "iat": issued_at,
        "exp": issued_at + lifetime,
    }
    targets = list(target_ids)
    if targets:
        payload["target_ids"] = targets

    return jwt.encode(payload, settings.auth_secret_key, algorithm=settings.auth_algorithm)


def decode_access_token(token: str) -> dict[str, Any]:
    """Verify signature and expiry, then check the token is an access token.

    Raises:
        JWTError: bad signature, expired, wrong type or no ``sub`` claim
    """
    settings = get_settings()
    payload = jwt.decode(token, settings.auth_secret_key, algorithms=[settings.auth_algorithm])

    if payload.get("type") != ACCESS_TOKEN_TYPE:
        msg = f"Invalid token type: expected '{ACCESS_TOKEN_TYPE}'"
        raise JWTError(msg)
    if not payload.get("sub"):
        msg = "Access token missing sub claim"
        raise JWTError(msg)

    return payload
