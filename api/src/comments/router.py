"""Comment system API endpoints.

Provides routes for:
- Thread reads (anonymous or signed in)
- Comment and reply creation
- Author-scoped deletes
- Like/dislike votes with authoritative results for reconciliation
"""

from uuid import UUID

import structlog
from fastapi import APIRouter, status

from src.auth.dependencies import CurrentViewer, OptionalViewer

from .dependencies import CommentServiceDep, handle_comment_error
from .exceptions import CommentError
from .schemas import (
    CommentResponse,
    CreateCommentRequest,
    ThreadResponse,
    VoteRequest,
    VoteResultResponse,
)


logger = structlog.get_logger(__name__)


router = APIRouter(prefix="/v1/comments", tags=["comments"])


@router.get(
    "/target/{target_id}",
    response_model=ThreadResponse,
    summary="Load comment thread",
)
async def get_thread(
    target_id: str,
    comment_service: CommentServiceDep,
    viewer: OptionalViewer,
) -> ThreadResponse:
    """Get the first page of a content item's thread.

    Top-level comments come newest first with their replies oldest first.
    Anonymous viewers get every vote state as ``none``.
    """
    try:
        comments = await comment_service.load_thread(
            target_id, viewer.id if viewer else None
        )
    except CommentError as e:
        raise handle_comment_error(e) from e

    return ThreadResponse(
        target_id=target_id,
        items=[CommentResponse.from_comment(c) for c in comments],
        total=len(comments),
    )


@router.post(
    "",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create comment",
)
async def create_comment(
    data: CreateCommentRequest,
    comment_service: CommentServiceDep,
    viewer: CurrentViewer,
) -> CommentResponse:
    """Create a top-level comment, or a reply when ``parent_id`` is set.

    Replies can only target top-level comments.
    """
    try:
        comment = await comment_service.create_comment(
            target_id=data.target_id,
            author_id=viewer.id,
            body=data.body,
            parent_id=data.parent_id,
        )
    except CommentError as e:
        raise handle_comment_error(e) from e

    return CommentResponse.from_comment(comment)


@router.delete(
    "/{comment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete comment",
)
async def delete_comment(
    comment_id: UUID,
    comment_service: CommentServiceDep,
    viewer: CurrentViewer,
) -> None:
    """Delete one of the viewer's own comments.

    Deleting a top-level comment removes its replies. Deleting a comment
    that is missing or owned by someone else changes nothing.
    """
    try:
        await comment_service.delete_comment(comment_id, viewer.id)
    except CommentError as e:
        raise handle_comment_error(e) from e


@router.post(
    "/{comment_id}/votes",
    response_model=VoteResultResponse,
    summary="Like or dislike comment",
)
async def vote_comment(
    comment_id: UUID,
    data: VoteRequest,
    comment_service: CommentServiceDep,
    viewer: CurrentViewer,
) -> VoteResultResponse:
    """Cast a like or dislike.

    Repeating the current vote withdraws it. The response carries the
    authoritative like count and vote state.
    """
    try:
        result = await comment_service.vote(comment_id, viewer.id, data.liking)
    except CommentError as e:
        raise handle_comment_error(e) from e

    return VoteResultResponse.from_result(result)
