"""Comment store: persistence and thread assembly.

A thread is read in one pass: the first page of top-level comments, then for
every top-level comment (concurrently) its replies, like counts, author
profiles and the viewer's vote. Nothing is returned until every branch has
settled, so callers never see a half-hydrated tree.

Author profiles and viewer votes are auxiliary: when one of those lookups
fails the comment is still returned with ``author_profile=None`` and
``ViewerVoteState.NONE``. Failures of the comment rows themselves (or their
like counts) fail the whole load.
"""

import asyncio
import json
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog
from redis.exceptions import RedisError

from src.core.redis import profile_cache_key

from .exceptions import ThreadLoadError
from .ledger import VoteLedger
from .models import AuthorProfile, Comment, ViewerVoteState, month_bucket


if TYPE_CHECKING:
    from cassandra.cluster import Session
    from redis.asyncio import Redis


logger = structlog.get_logger(__name__)


class CommentStore:
    """Cassandra-backed comment persistence."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        ledger: VoteLedger,
        redis: "Redis | None" = None,
        page_size: int = 50,
        reply_limit: int = 200,
        profile_cache_ttl: int = 300,
    ):
        """Initialize with Cassandra session, vote ledger and optional Redis."""
        self.session = session
        self.keyspace = keyspace
        self.ledger = ledger
        self.redis = redis
        self.page_size = page_size
        self.reply_limit = reply_limit
        self.profile_cache_ttl = profile_cache_ttl
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient queries."""
        self._insert_by_id = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.comments_by_id
            (comment_id, target_id, parent_id, author_id, body, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """)

        self._insert_by_target = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.comments_by_target
            (target_id, created_at, comment_id, author_id, body, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
        """)

        self._insert_by_parent = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.comments_by_parent
            (parent_id, created_at, comment_id, target_id, author_id, body, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """)

        self._insert_by_month = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.comments_by_month
            (month, created_at, comment_id, target_id, parent_id, author_id, body)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """)

        self._get_by_id = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.comments_by_id
            WHERE comment_id = ?
        """)

        self._get_top_level = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.comments_by_target
            WHERE target_id = ?
            ORDER BY created_at DESC
            LIMIT ?
        """)

        self._get_replies = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.comments_by_parent
            WHERE parent_id = ?
            ORDER BY created_at ASC
            LIMIT ?
        """)

        self._get_all_replies = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.comments_by_parent
            WHERE parent_id = ?
        """)

        self._get_month = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.comments_by_month
            WHERE month = ?
            LIMIT ?
        """)

        self._get_month_before = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.comments_by_month
            WHERE month = ? AND created_at < ?
            LIMIT ?
        """)

        self._get_month_tied = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.comments_by_month
            WHERE month = ? AND created_at = ? AND comment_id > ?
            LIMIT ?
        """)

        self._delete_by_id = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.comments_by_id
            WHERE comment_id = ?
        """)

        self._delete_by_target = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.comments_by_target
            WHERE target_id = ? AND created_at = ? AND comment_id = ?
        """)

        self._delete_by_parent = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.comments_by_parent
            WHERE parent_id = ? AND created_at = ? AND comment_id = ?
        """)

        self._delete_by_month = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.comments_by_month
            WHERE month = ? AND created_at = ? AND comment_id = ?
        """)

        self._get_profile = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.author_profiles
            WHERE user_id = ?
        """)

    # ==========================================================================
    # Thread assembly
    # ==========================================================================

    async def load_thread(
        self, target_id: str, viewer_id: UUID | None = None
    ) -> list[Comment]:
        """Load the first page of a thread, fully hydrated.

        Top-level comments come newest first, each one's replies oldest first.

        Raises:
            ThreadLoadError: the comment rows or like counts could not be read
        """
        try:
            rows = await self.session.aexecute(
                self._get_top_level, [target_id, self.page_size]
            )
            top_level = [Comment.from_row(row) for row in rows]

            await asyncio.gather(
                *(self._load_branch(comment, viewer_id) for comment in top_level)
            )
        except ThreadLoadError:
            raise
        except Exception as e:
            logger.error("thread_load_failed", target_id=target_id, error=str(e))
            raise ThreadLoadError from e

        logger.debug(
            "thread_loaded",
            target_id=target_id,
            top_level=len(top_level),
            replies=sum(len(c.replies) for c in top_level),
        )
        return top_level

    async def _load_branch(self, comment: Comment, viewer_id: UUID | None) -> None:
        rows = await self.session.aexecute(
            self._get_replies, [comment.comment_id, self.reply_limit]
        )
        comment.replies = [
            Comment.from_row(row, parent_id=comment.comment_id) for row in rows
        ]

        await asyncio.gather(
            self.hydrate(comment, viewer_id),
            *(self.hydrate(reply, viewer_id) for reply in comment.replies),
        )

    async def hydrate(self, comment: Comment, viewer_id: UUID | None) -> Comment:
        """Attach like count, author profile and viewer vote to a comment."""
        like_count, profile, vote = await asyncio.gather(
            self.ledger.get_like_count(comment.comment_id),
            self.get_profile(comment.author_id),
            self._viewer_vote(comment.comment_id, viewer_id),
            return_exceptions=True,
        )

        if isinstance(like_count, BaseException):
            raise like_count
        comment.like_count = like_count

        if isinstance(profile, BaseException):
            logger.warning(
                "author_profile_lookup_failed",
                comment_id=str(comment.comment_id),
                error=str(profile),
            )
            profile = None
        comment.author_profile = profile

        if isinstance(vote, BaseException):
            logger.warning(
                "viewer_vote_lookup_failed",
                comment_id=str(comment.comment_id),
                error=str(vote),
            )
            vote = ViewerVoteState.NONE
        comment.viewer_vote = vote

        return comment

    async def _viewer_vote(
        self, comment_id: UUID, viewer_id: UUID | None
    ) -> ViewerVoteState:
        if viewer_id is None:
            return ViewerVoteState.NONE
        return ViewerVoteState.from_vote(
            await self.ledger.get_vote(comment_id, viewer_id)
        )

    # ==========================================================================
    # Single comments
    # ==========================================================================

    async def get_comment(self, comment_id: UUID) -> Comment | None:
        """O(1) lookup by ID."""
        result = await self.session.aexecute(self._get_by_id, [comment_id])
        row = result.one()
        return Comment.from_row(row) if row else None

    async def insert_comment(self, comment: Comment) -> None:
        """Write a comment to the lookup, ordering and moderation tables."""
        await self.session.aexecute(
            self._insert_by_id,
            [
                comment.comment_id,
                comment.target_id,
                comment.parent_id,
                comment.author_id,
                comment.body,
                comment.created_at,
                comment.updated_at,
            ],
        )

        if comment.parent_id is None:
            await self.session.aexecute(
                self._insert_by_target,
                [
                    comment.target_id,
                    comment.created_at,
                    comment.comment_id,
                    comment.author_id,
                    comment.body,
                    comment.updated_at,
                ],
            )
        else:
            await self.session.aexecute(
                self._insert_by_parent,
                [
                    comment.parent_id,
                    comment.created_at,
                    comment.comment_id,
                    comment.target_id,
                    comment.author_id,
                    comment.body,
                    comment.updated_at,
                ],
            )

        await self.session.aexecute(
            self._insert_by_month,
            [
                month_bucket(comment.created_at),
                comment.created_at,
                comment.comment_id,
                comment.target_id,
                comment.parent_id,
                comment.author_id,
                comment.body,
            ],
        )

    async def delete_comment(self, comment_id: UUID, author_id: UUID | None) -> int:
        """Delete a comment, scoped to its author when ``author_id`` is given.

        A top-level comment takes all of its replies with it. Unknown IDs and
        author mismatches affect nothing, so repeated deletes are no-ops.

        Returns:
            Number of comments removed
        """
        comment = await self.get_comment(comment_id)
        if comment is None:
            return 0

        if author_id is not None and comment.author_id != author_id:
            logger.info(
                "comment_delete_scope_mismatch",
                comment_id=str(comment_id),
                requested_by=str(author_id),
            )
            return 0

        removed = [comment]
        if comment.parent_id is None:
            rows = await self.session.aexecute(self._get_all_replies, [comment_id])
            removed.extend(Comment.from_row(row, parent_id=comment_id) for row in rows)

        for node in removed:
            await self._remove_rows(node)

        logger.info(
            "comment_deleted",
            comment_id=str(comment_id),
            target_id=comment.target_id,
            removed=len(removed),
        )
        return len(removed)

    async def _remove_rows(self, comment: Comment) -> None:
        if comment.parent_id is None:
            await self.session.aexecute(
                self._delete_by_target,
                [comment.target_id, comment.created_at, comment.comment_id],
            )
        else:
            await self.session.aexecute(
                self._delete_by_parent,
                [comment.parent_id, comment.created_at, comment.comment_id],
            )

        await self.session.aexecute(
            self._delete_by_month,
            [month_bucket(comment.created_at), comment.created_at, comment.comment_id],
        )
        await self.session.aexecute(self._delete_by_id, [comment.comment_id])
        await self.ledger.forget_comment(comment.comment_id)

    # ==========================================================================
    # Moderation feed
    # ==========================================================================

    async def list_month(
        self, month: str, limit: int, after: tuple[datetime, UUID] | None = None
    ) -> list[Comment]:
        """Comments of one month bucket in clustering order (not hydrated).

        ``after`` is the ``(created_at, comment_id)`` of the last row already
        seen; rows sharing its timestamp but sorting after it are kept.
        """
        if after is None:
            rows = await self.session.aexecute(self._get_month, [month, limit])
            return [Comment.from_row(row) for row in rows]

        created_at, comment_id = after
        rows = await self.session.aexecute(
            self._get_month_tied, [month, created_at, comment_id, limit]
        )
        comments = [Comment.from_row(row) for row in rows]
        if len(comments) < limit:
            rows = await self.session.aexecute(
                self._get_month_before, [month, created_at, limit - len(comments)]
            )
            comments.extend(Comment.from_row(row) for row in rows)
        return comments

    # ==========================================================================
    # Author profiles
    # ==========================================================================

    async def get_profile(self, user_id: UUID) -> AuthorProfile | None:
        """Author display data, read through the Redis cache when enabled."""
        cached = await self._get_cached_profile(user_id)
        if cached is not None:
            return cached

        result = await self.session.aexecute(self._get_profile, [user_id])
        row = result.one()
        if row is None:
            return None

        profile = AuthorProfile.from_row(row)
        await self._cache_profile(profile)
        return profile

    async def _get_cached_profile(self, user_id: UUID) -> AuthorProfile | None:
        if not self.redis or self.profile_cache_ttl <= 0:
            return None

        try:
            cached = await self.redis.get(profile_cache_key(str(user_id)))
        except RedisError as e:
            logger.warning("profile_cache_read_failed", error=str(e))
            return None

        if cached:
            return AuthorProfile.from_dict(json.loads(cached))
        return None

    async def _cache_profile(self, profile: AuthorProfile) -> None:
        if not self.redis or self.profile_cache_ttl <= 0:
            return

        try:
            await self.redis.setex(
                profile_cache_key(str(profile.user_id)),
                self.profile_cache_ttl,
                json.dumps(profile.to_dict()),
            )
        except RedisError as e:
            logger.warning("profile_cache_write_failed", error=str(e))
