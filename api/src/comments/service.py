"""Comment service layer.

Business logic for:
- Thread reads with viewer-specific hydration
- Comment creation with two-level nesting
- Author-scoped deletes
- Votes with a degraded path when the ledger cannot run CAS
"""

from uuid import UUID

import structlog

from .counter import direct_counter_delta, floor_count, optimistic_vote_state
from .exceptions import (
    CommentNotFoundError,
    CommentsUnavailableError,
    InvalidCommentError,
    LedgerUnavailableError,
    NestingTooDeepError,
)
from .ledger import LEDGER_UNAVAILABLE_ERRORS, VoteLedger
from .models import Comment, ViewerVoteState, VoteResult, VoteValue, create_comment
from .store import CommentStore


logger = structlog.get_logger(__name__)


class CommentService:
    """Service for comment threads and votes."""

    def __init__(self, store: CommentStore, ledger: VoteLedger, max_length: int = 10000):
        self.store = store
        self.ledger = ledger
        self.max_length = max_length

    # ==========================================================================
    # Reads
    # ==========================================================================

    async def load_thread(
        self, target_id: str, viewer_id: UUID | None = None
    ) -> list[Comment]:
        """Top-level comments newest first, each with its replies oldest first."""
        return await self.store.load_thread(target_id, viewer_id)

    async def get_comment(self, comment_id: UUID) -> Comment:
        comment = await self.store.get_comment(comment_id)
        if comment is None:
            raise CommentNotFoundError
        return comment

    # ==========================================================================
    # Writes
    # ==========================================================================

    def validate_body(self, body: str) -> str:
        """Trim a comment body and reject empty or oversized text."""
        text = (body or "").strip()
        if not text:
            raise InvalidCommentError
        if len(text) > self.max_length:
            raise InvalidCommentError(
                f"Comment cannot be longer than {self.max_length} characters"
            )
        return text

    async def create_comment(
        self,
        target_id: str,
        author_id: UUID,
        body: str,
        parent_id: UUID | None = None,
    ) -> Comment:
        """Create a top-level comment or a reply.

        Replies attach only to top-level comments of the same content item.

        Raises:
            InvalidCommentError: empty or oversized body, or target mismatch
            CommentNotFoundError: parent does not exist
            NestingTooDeepError: parent is itself a reply
        """
        text = self.validate_body(body)

        if parent_id is not None:
            parent = await self.store.get_comment(parent_id)
            if parent is None:
                raise CommentNotFoundError("Parent comment not found")
            if parent.is_reply:
                raise NestingTooDeepError
            if parent.target_id != target_id:
                raise InvalidCommentError("Reply must belong to the same content item")

        comment = create_comment(target_id, author_id, text, parent_id)

        try:
            await self.store.insert_comment(comment)
        except LEDGER_UNAVAILABLE_ERRORS as e:
            logger.error(
                "comment_insert_failed", target_id=target_id, error=str(e)
            )
            raise CommentsUnavailableError from e

        logger.info(
            "comment_created",
            comment_id=str(comment.comment_id),
            target_id=target_id,
            is_reply=comment.is_reply,
        )
        return await self.store.hydrate(comment, author_id)

    async def delete_comment(
        self, comment_id: UUID, author_id: UUID | None
    ) -> int:
        """Delete a comment.

        With ``author_id`` the delete only affects the author's own comment;
        ``None`` is the unscoped moderation delete. Always idempotent.
        """
        return await self.store.delete_comment(comment_id, author_id)

    # ==========================================================================
    # Votes
    # ==========================================================================

    async def vote(self, comment_id: UUID, viewer_id: UUID, liking: bool) -> VoteResult:
        """Cast a like or dislike.

        Repeating the viewer's current vote withdraws it. When the ledger is
        unavailable the counter is moved directly and the result is flagged
        ``degraded``.
        """
        await self.get_comment(comment_id)
        value = VoteValue.from_liking(liking)

        try:
            after = await self.ledger.cast(comment_id, viewer_id, value)
        except LedgerUnavailableError as e:
            logger.warning(
                "vote_ledger_degraded",
                comment_id=str(comment_id),
                liking=liking,
                error=str(e),
            )
            return await self._degraded_vote(comment_id, liking)

        return VoteResult(
            comment_id=comment_id,
            viewer_vote=ViewerVoteState.from_vote(after),
            like_count=await self.ledger.get_like_count(comment_id),
        )

    async def _degraded_vote(self, comment_id: UUID, liking: bool) -> VoteResult:
        try:
            current = await self.ledger.get_like_count(comment_id)
            delta = direct_counter_delta(liking)
            # Counter columns cannot be floored by the database
            if current + delta < 0:
                delta = 0
            if delta:
                await self.ledger.adjust_like_count(comment_id, delta)
        except LEDGER_UNAVAILABLE_ERRORS as e:
            logger.error("vote_failed", comment_id=str(comment_id), error=str(e))
            raise CommentsUnavailableError from e

        return VoteResult(
            comment_id=comment_id,
            viewer_vote=optimistic_vote_state(liking),
            like_count=floor_count(current + delta),
            degraded=True,
        )
