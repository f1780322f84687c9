"""FastAPI dependencies for comment system.

Provides dependency injection for:
- Comment service
- Moderation service
- Moderation scope (which content items a viewer may moderate)
- Error handlers
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from src.auth.permissions import is_moderator
from src.auth.schemas import Viewer

from .exceptions import CommentError
from .moderation import ModerationService
from .service import CommentService


async def get_comment_service(request: Request) -> CommentService:
    """Get comment service from app state."""
    app_state = request.app.state
    if not getattr(app_state, "comment_service", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Comments are temporarily unavailable",
        )
    return app_state.comment_service


async def get_moderation_service(request: Request) -> ModerationService:
    """Get moderation service from app state."""
    app_state = request.app.state
    if not getattr(app_state, "moderation_service", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Moderation is temporarily unavailable",
        )
    return app_state.moderation_service


# Type aliases for dependency injection
CommentServiceDep = Annotated[CommentService, Depends(get_comment_service)]
ModerationServiceDep = Annotated[ModerationService, Depends(get_moderation_service)]


def moderation_scope(
    viewer: Viewer, requested: list[str] | None = None
) -> list[str] | None:
    """Content items a viewer may moderate.

    Moderators and admins see everything (optionally narrowed by
    ``requested``). Creators are limited to their own content items.

    Returns:
        None for no restriction, otherwise the allowed target IDs
    """
    if is_moderator(viewer.role):
        return requested or None

    owned = set(viewer.target_ids)
    if requested:
        return [t for t in requested if t in owned]
    return sorted(owned)


def handle_comment_error(error: CommentError) -> HTTPException:
    """Convert comment errors to HTTP exceptions."""
    status_map = {
        "comment_not_found": status.HTTP_404_NOT_FOUND,
        "invalid_comment": status.HTTP_422_UNPROCESSABLE_ENTITY,
        "nesting_too_deep": status.HTTP_422_UNPROCESSABLE_ENTITY,
        "permission_denied": status.HTTP_403_FORBIDDEN,
        "vote_conflict": status.HTTP_409_CONFLICT,
        "thread_load_failed": status.HTTP_503_SERVICE_UNAVAILABLE,
        "comments_unavailable": status.HTTP_503_SERVICE_UNAVAILABLE,
    }

    status_code = status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return HTTPException(
        status_code=status_code,
        detail=error.message,
    )
