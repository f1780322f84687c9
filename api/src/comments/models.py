"""Database models for the two-level comment thread system.

Cassandra table definitions for:
- Comments: one row per comment in an O(1) lookup table, plus ordering
  tables for top-level comments (newest first) and replies (oldest first)
- Moderation feed: every comment bucketed by month for cross-target listing
- Vote ledger: at most one like/dislike record per (viewer, comment)
- Like counters: denormalized COUNTER kept in step with the ledger
- Author profiles: read-only display data owned by the profile surface

Threads are at most two levels deep: a comment with parent_id NULL is
top-level, a comment with a parent is a reply, and replies never have
replies of their own.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


class VoteValue(str, Enum):
    """Value stored in the vote ledger."""

    LIKE = "like"
    DISLIKE = "dislike"

    @classmethod
    def from_liking(cls, liking: bool) -> "VoteValue":
        return cls.LIKE if liking else cls.DISLIKE


class ViewerVoteState(str, Enum):
    """The current viewer's vote on a comment, derived from the ledger."""

    LIKED = "liked"
    DISLIKED = "disliked"
    NONE = "none"

    @classmethod
    def from_vote(cls, value: VoteValue | str | None) -> "ViewerVoteState":
        if value is None:
            return cls.NONE
        return cls.LIKED if VoteValue(value) is VoteValue.LIKE else cls.DISLIKED


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# Comments by ID - O(1) lookup table and source of truth for ownership
COMMENTS_BY_ID_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comments_by_id (
    comment_id UUID PRIMARY KEY,
    target_id TEXT,
    parent_id UUID,
    author_id UUID,
    body TEXT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

# Top-level comments per content item, newest first
COMMENTS_BY_TARGET_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comments_by_target (
    target_id TEXT,
    created_at TIMESTAMP,
    comment_id UUID,
    author_id UUID,
    body TEXT,
    updated_at TIMESTAMP,
    PRIMARY KEY ((target_id), created_at, comment_id)
) WITH CLUSTERING ORDER BY (created_at DESC, comment_id ASC)
"""

# Replies per top-level comment, oldest first
COMMENTS_BY_PARENT_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comments_by_parent (
    parent_id UUID,
    created_at TIMESTAMP,
    comment_id UUID,
    target_id TEXT,
    author_id UUID,
    body TEXT,
    updated_at TIMESTAMP,
    PRIMARY KEY ((parent_id), created_at, comment_id)
) WITH CLUSTERING ORDER BY (created_at ASC, comment_id ASC)
"""

# Cross-target moderation feed, one partition per calendar month
COMMENTS_BY_MONTH_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comments_by_month (
    month TEXT,
    created_at TIMESTAMP,
    comment_id UUID,
    target_id TEXT,
    parent_id UUID,
    author_id UUID,
    body TEXT,
    PRIMARY KEY ((month), created_at, comment_id)
) WITH CLUSTERING ORDER BY (created_at DESC, comment_id ASC)
"""

# Vote ledger - the primary key enforces one record per (comment, viewer)
COMMENT_VOTES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comment_votes (
    comment_id UUID,
    viewer_id UUID,
    value TEXT,
    voted_at TIMESTAMP,
    PRIMARY KEY ((comment_id), viewer_id)
)
"""

# Like counters - number of "like" records per comment
COMMENT_LIKE_COUNTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comment_like_counts (
    comment_id UUID PRIMARY KEY,
    like_count COUNTER
)
"""

# Author display data (read-only here, written by the profile surface)
AUTHOR_PROFILES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.author_profiles (
    user_id UUID PRIMARY KEY,
    username TEXT,
    display_name TEXT,
    avatar_url TEXT
)
"""

COMMENTS_TABLES_CQL = [
    COMMENTS_BY_ID_TABLE_CQL,
    COMMENTS_BY_TARGET_TABLE_CQL,
    COMMENTS_BY_PARENT_TABLE_CQL,
    COMMENTS_BY_MONTH_TABLE_CQL,
    COMMENT_VOTES_TABLE_CQL,
    COMMENT_LIKE_COUNTS_TABLE_CQL,
    AUTHOR_PROFILES_TABLE_CQL,
]


def month_bucket(moment: datetime) -> str:
    """Partition key of the moderation feed for a timestamp."""
    return moment.strftime("%Y-%m")


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass
class AuthorProfile:
    """Denormalized display snapshot of a comment author."""

    user_id: UUID
    username: str | None = None
    display_name: str | None = None
    avatar_url: str | None = None

    @property
    def label(self) -> str:
        """Name shown next to a comment."""
        return self.display_name or self.username or "Anonymous"

    @classmethod
    def from_row(cls, row: Any) -> "AuthorProfile":
        """Create AuthorProfile from Cassandra row."""
        return cls(
            user_id=row.user_id,
            username=row.username,
            display_name=row.display_name,
            avatar_url=row.avatar_url,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": str(self.user_id),
            "username": self.username,
            "display_name": self.display_name,
            "avatar_url": self.avatar_url,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AuthorProfile":
        return cls(
            user_id=UUID(data["user_id"]),
            username=data.get("username"),
            display_name=data.get("display_name"),
            avatar_url=data.get("avatar_url"),
        )


@dataclass
class Comment:
    """Comment entity, hydrated with viewer-specific data on thread loads."""

    comment_id: UUID
    target_id: str
    parent_id: UUID | None
    author_id: UUID
    body: str
    created_at: datetime
    updated_at: datetime
    like_count: int = 0
    author_profile: AuthorProfile | None = None
    viewer_vote: ViewerVoteState = ViewerVoteState.NONE
    replies: list["Comment"] = field(default_factory=list)

    @property
    def is_reply(self) -> bool:
        return self.parent_id is not None

    @classmethod
    def from_row(cls, row: Any, parent_id: UUID | None = None) -> "Comment":
        """Create Comment from a row of any of the comment tables.

        ``comments_by_target`` rows have no parent_id column since they are
        top-level by construction.
        """
        return cls(
            comment_id=row.comment_id,
            target_id=row.target_id,
            parent_id=getattr(row, "parent_id", None) or parent_id,
            author_id=row.author_id,
            body=row.body,
            created_at=row.created_at,
            updated_at=getattr(row, "updated_at", None) or row.created_at,
        )


@dataclass
class VoteResult:
    """Authoritative outcome of a vote, used by clients to reconcile."""

    comment_id: UUID
    viewer_vote: ViewerVoteState
    like_count: int
    degraded: bool = False


# ==============================================================================
# Factory Functions
# ==============================================================================


def create_comment(
    target_id: str,
    author_id: UUID,
    body: str,
    parent_id: UUID | None = None,
) -> Comment:
    """Create a new comment with default values."""
    now = datetime.now(UTC)
    return Comment(
        comment_id=uuid4(),
        target_id=target_id,
        parent_id=parent_id,
        author_id=author_id,
        body=body,
        created_at=now,
        updated_at=now,
    )
