"""Pydantic schemas for comment system.

Request/Response models with validation for:
- Thread reads and comment creation
- Votes
- Moderation listing with cursor pagination
"""

import base64
import json
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.config.settings import get_settings

# ==============================================================================
# Enums (re-exported for convenience)
# ==============================================================================
from .models import ViewerVoteState


# ==============================================================================
# Request Schemas
# ==============================================================================


class CreateCommentRequest(BaseModel):
    """Request to create a top-level comment or a reply."""

    target_id: str = Field(..., min_length=1, max_length=200)
    parent_id: UUID | None = None
    body: str = Field(..., min_length=1)

    @field_validator("body")
    @classmethod
    def validate_body(cls, v: str) -> str:
        """Strip whitespace and validate body."""
        v = v.strip()
        if not v:
            msg = "Comment cannot be empty"
            raise ValueError(msg)
        max_length = get_settings().comment_max_length
        if len(v) > max_length:
            msg = f"Comment cannot be longer than {max_length} characters"
            raise ValueError(msg)
        return v


class VoteRequest(BaseModel):
    """Like (``liking=true``) or dislike (``liking=false``) a comment."""

    liking: bool


# ==============================================================================
# Response Schemas
# ==============================================================================


class AuthorProfileResponse(BaseModel):
    """Author display data in comment response."""

    user_id: UUID
    username: str | None = None
    display_name: str | None = None
    avatar_url: str | None = None
    label: str

    @classmethod
    def from_profile(cls, profile: Any) -> "AuthorProfileResponse":
        return cls(
            user_id=profile.user_id,
            username=profile.username,
            display_name=profile.display_name,
            avatar_url=profile.avatar_url,
            label=profile.label,
        )


class CommentResponse(BaseModel):
    """Response for a single comment."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    target_id: str
    parent_id: UUID | None = None
    author_id: UUID
    author_profile: AuthorProfileResponse | None = None
    body: str
    like_count: int = 0
    viewer_vote: ViewerVoteState = ViewerVoteState.NONE
    created_at: datetime
    updated_at: datetime
    replies: list["CommentResponse"] = Field(default_factory=list)

    @classmethod
    def from_comment(cls, comment: Any) -> "CommentResponse":
        """Create response from Comment entity, replies included."""
        profile = comment.author_profile
        return cls(
            id=comment.comment_id,
            target_id=comment.target_id,
            parent_id=comment.parent_id,
            author_id=comment.author_id,
            author_profile=AuthorProfileResponse.from_profile(profile) if profile else None,
            body=comment.body,
            like_count=comment.like_count,
            viewer_vote=comment.viewer_vote,
            created_at=comment.created_at,
            updated_at=comment.updated_at,
            replies=[cls.from_comment(reply) for reply in comment.replies],
        )


class ThreadResponse(BaseModel):
    """Two-level comment thread of a content item."""

    target_id: str
    items: list[CommentResponse]
    total: int


class VoteResultResponse(BaseModel):
    """Authoritative vote outcome for client reconciliation."""

    comment_id: UUID
    viewer_vote: ViewerVoteState
    like_count: int
    degraded: bool = False

    @classmethod
    def from_result(cls, result: Any) -> "VoteResultResponse":
        return cls(
            comment_id=result.comment_id,
            viewer_vote=result.viewer_vote,
            like_count=result.like_count,
            degraded=result.degraded,
        )


class ModerationCommentResponse(BaseModel):
    """Flattened comment row of the moderation list."""

    id: UUID
    target_id: str
    parent_id: UUID | None = None
    author_id: UUID
    author_profile: AuthorProfileResponse | None = None
    body: str
    like_count: int = 0
    created_at: datetime

    @classmethod
    def from_comment(cls, comment: Any) -> "ModerationCommentResponse":
        profile = comment.author_profile
        return cls(
            id=comment.comment_id,
            target_id=comment.target_id,
            parent_id=comment.parent_id,
            author_id=comment.author_id,
            author_profile=AuthorProfileResponse.from_profile(profile) if profile else None,
            body=comment.body,
            like_count=comment.like_count,
            created_at=comment.created_at,
        )


class ModerationListResponse(BaseModel):
    """Paginated moderation list."""

    items: list[ModerationCommentResponse]
    has_more: bool
    next_cursor: str | None = None


class ModerationStatsResponse(BaseModel):
    """Dashboard card figures."""

    total: int = 0
    today: int = 0
    total_likes: int = 0


# ==============================================================================
# Cursor Helpers
# ==============================================================================


def encode_cursor(created_at: datetime, comment_id: UUID) -> str:
    """Encode pagination cursor."""
    data = {
        "created_at": created_at.isoformat(),
        "comment_id": str(comment_id),
    }
    json_str = json.dumps(data)
    return base64.urlsafe_b64encode(json_str.encode()).decode()


def decode_cursor(cursor: str) -> tuple[datetime, UUID]:
    """Decode pagination cursor.

    Raises:
        ValueError: malformed cursor
    """
    try:
        json_str = base64.urlsafe_b64decode(cursor.encode()).decode()
        data = json.loads(json_str)
        return (
            datetime.fromisoformat(data["created_at"]),
            UUID(data["comment_id"]),
        )
    except (KeyError, TypeError, UnicodeDecodeError, json.JSONDecodeError) as e:
        msg = "Invalid cursor"
        raise ValueError(msg) from e
