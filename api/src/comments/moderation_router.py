"""Moderation API routes for comments.

Endpoints for (CREATOR, MODERATOR, ADMIN):
- GET /v1/moderation/comments - Flattened list with search
- GET /v1/moderation/comments/stats - Dashboard card figures
- DELETE /v1/moderation/comments/{comment_id} - Delete regardless of author

Creators only see and delete comments on their own content items.
"""

from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from src.auth.dependencies import CreatorViewer

from .dependencies import ModerationServiceDep, handle_comment_error, moderation_scope
from .exceptions import CommentError
from .schemas import (
    ModerationCommentResponse,
    ModerationListResponse,
    ModerationStatsResponse,
    decode_cursor,
    encode_cursor,
)


router = APIRouter(
    prefix="/v1/moderation/comments",
    tags=["moderation"],
)


@router.get(
    "",
    response_model=ModerationListResponse,
    summary="List comments for moderation",
)
async def list_comments(
    service: ModerationServiceDep,
    viewer: CreatorViewer,
    search: str | None = Query(None, max_length=200),
    target_id: list[str] | None = Query(None, description="Restrict to content items"),
    limit: int = Query(default=50, le=200, ge=1),
    cursor: str | None = None,
) -> ModerationListResponse:
    """List comments across content items, newest first."""
    after = None
    if cursor:
        try:
            after = decode_cursor(cursor)
        except ValueError as e:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid cursor",
            ) from e

    scope = moderation_scope(viewer, target_id)
    if scope == []:
        return ModerationListResponse(items=[], has_more=False)

    page = await service.list_comments(
        search=search, target_ids=scope, limit=limit, cursor=after
    )

    next_cursor = None
    if page.has_more and page.last:
        next_cursor = encode_cursor(page.last.created_at, page.last.comment_id)

    return ModerationListResponse(
        items=[ModerationCommentResponse.from_comment(c) for c in page.items],
        has_more=page.has_more,
        next_cursor=next_cursor,
    )


@router.get(
    "/stats",
    response_model=ModerationStatsResponse,
    summary="Comment statistics",
)
async def get_stats(
    service: ModerationServiceDep,
    viewer: CreatorViewer,
    target_id: list[str] | None = Query(None, description="Restrict to content items"),
) -> ModerationStatsResponse:
    """Total comments, comments posted today and total likes."""
    scope = moderation_scope(viewer, target_id)
    if scope == []:
        return ModerationStatsResponse()

    stats = await service.stats(scope)
    return ModerationStatsResponse(
        total=stats.total, today=stats.today, total_likes=stats.total_likes
    )


@router.delete(
    "/{comment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete comment as moderator",
)
async def delete_comment(
    comment_id: UUID,
    service: ModerationServiceDep,
    viewer: CreatorViewer,
) -> None:
    """Delete a comment regardless of its author."""
    try:
        await service.delete_comment(comment_id, moderation_scope(viewer))
    except CommentError as e:
        raise handle_comment_error(e) from e
