"""FastAPI dependencies for authentication.

Provides dependency injection for:
- Current viewer extraction from JWT
- Optional viewer for anonymous read access
- Role-based access control
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError

from src.auth.permissions import ViewerRole, has_permission
from src.auth.schemas import Viewer
from src.auth.security import decode_access_token
from src.core.context import set_viewer_id


def get_token_from_header(request: Request) -> str | None:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    expected_parts = 2
    parts = auth_header.split()
    if len(parts) != expected_parts or parts[0].lower() != "bearer":
        return None

    return parts[1]


def _viewer_from_token(token: str) -> Viewer:
    payload = decode_access_token(token)
    viewer = Viewer.from_claims(payload)

    # Set viewer_id in context for logging
    set_viewer_id(viewer.id)
    return viewer


async def get_current_viewer(
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> Viewer:
    """Get current authenticated viewer from JWT token.

    Raises:
        HTTPException(401): If token is missing, invalid, or expired
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Sign in required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return _viewer_from_token(token)
    except (JWTError, ValueError) as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


async def get_current_viewer_optional(
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> Viewer | None:
    """Get current viewer if authenticated, None otherwise.

    Use this for endpoints that work for both authenticated and anonymous viewers.
    """
    if not token:
        return None

    try:
        return _viewer_from_token(token)
    except (JWTError, ValueError):
        return None


def require_permission(required_role: ViewerRole):
    """Create dependency requiring at least a permission level.

    Uses hierarchical comparison: ADMIN >= MODERATOR >= CREATOR >= VIEWER

    Example:
        @router.get("/moderation")
        async def moderation_endpoint(
            viewer: Annotated[Viewer, Depends(require_permission(ViewerRole.MODERATOR))]
        ):
            ...
    """

    async def permission_checker(
        viewer: Annotated[Viewer, Depends(get_current_viewer)],
    ) -> Viewer:
        if not has_permission(viewer.role, required_role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )

        return viewer

    return permission_checker


# ==============================================================================
# Type Aliases for Cleaner Code
# ==============================================================================

# Basic authenticated viewer
CurrentViewer = Annotated[Viewer, Depends(get_current_viewer)]

# Optional viewer (for endpoints that work both ways)
OptionalViewer = Annotated[Viewer | None, Depends(get_current_viewer_optional)]

# Creators moderate their own content items; moderators and admins see everything
CreatorViewer = Annotated[Viewer, Depends(require_permission(ViewerRole.CREATOR))]
