"""Tests for the comment service."""

from uuid import uuid4

import pytest
from cassandra import Unavailable, WriteTimeout
from cassandra.policies import WriteType

from src.comments.exceptions import (
    CommentNotFoundError,
    CommentsUnavailableError,
    InvalidCommentError,
    NestingTooDeepError,
    VoteConflictError,
)
from src.comments.models import ViewerVoteState, VoteValue
from src.comments.service import CommentService


class TestValidateBody:
    """Tests for comment body validation."""

    def test_strips_whitespace(self, comment_service: CommentService):
        assert comment_service.validate_body("  hi there \n") == "hi there"

    @pytest.mark.parametrize("body", ["", "   ", "\n\t"])
    def test_rejects_blank(self, comment_service: CommentService, body: str):
        with pytest.raises(InvalidCommentError) as exc:
            comment_service.validate_body(body)
        assert exc.value.message == "Comment cannot be empty"

    def test_rejects_oversized(self, comment_service: CommentService):
        with pytest.raises(InvalidCommentError) as exc:
            comment_service.validate_body("x" * 501)
        assert "500" in exc.value.message

    def test_length_checked_after_strip(self, comment_service: CommentService):
        assert comment_service.validate_body(" " + "x" * 500 + " ") == "x" * 500


class TestCreateComment:
    """Tests for creating comments and replies."""

    @pytest.mark.asyncio
    async def test_create_top_level(self, comment_service: CommentService, cassandra):
        """A new comment is persisted and returned hydrated."""
        author = uuid4()
        cassandra.add_profile(author, username="ana")

        comment = await comment_service.create_comment("v1", author, "  first!  ")

        assert comment.body == "first!"
        assert comment.parent_id is None
        assert comment.like_count == 0
        assert comment.viewer_vote is ViewerVoteState.NONE
        assert comment.author_profile.username == "ana"
        assert comment.comment_id in cassandra.comments

    @pytest.mark.asyncio
    async def test_create_reply(self, comment_service: CommentService):
        parent = await comment_service.create_comment("v1", uuid4(), "parent")

        reply = await comment_service.create_comment(
            "v1", uuid4(), "child", parent_id=parent.comment_id
        )

        thread = await comment_service.load_thread("v1")
        assert reply.parent_id == parent.comment_id
        assert [r.comment_id for r in thread[0].replies] == [reply.comment_id]

    @pytest.mark.asyncio
    async def test_empty_body_writes_nothing(
        self, comment_service: CommentService, cassandra
    ):
        with pytest.raises(InvalidCommentError):
            await comment_service.create_comment("v1", uuid4(), "   ")

        assert cassandra.executed == []

    @pytest.mark.asyncio
    async def test_missing_parent(self, comment_service: CommentService):
        with pytest.raises(CommentNotFoundError) as exc:
            await comment_service.create_comment(
                "v1", uuid4(), "hello", parent_id=uuid4()
            )
        assert exc.value.message == "Parent comment not found"

    @pytest.mark.asyncio
    async def test_reply_to_reply_rejected(self, comment_service: CommentService):
        """Threads stay two levels deep."""
        parent = await comment_service.create_comment("v1", uuid4(), "parent")
        reply = await comment_service.create_comment(
            "v1", uuid4(), "reply", parent_id=parent.comment_id
        )

        with pytest.raises(NestingTooDeepError):
            await comment_service.create_comment(
                "v1", uuid4(), "too deep", parent_id=reply.comment_id
            )

    @pytest.mark.asyncio
    async def test_reply_must_match_target(self, comment_service: CommentService):
        parent = await comment_service.create_comment("v1", uuid4(), "parent")

        with pytest.raises(InvalidCommentError):
            await comment_service.create_comment(
                "v2", uuid4(), "wrong item", parent_id=parent.comment_id
            )

    @pytest.mark.asyncio
    async def test_insert_failure_is_unavailable(
        self, comment_service: CommentService, cassandra
    ):
        cassandra.fail(
            "INSERT INTO test_keyspace.comments_by_id",
            WriteTimeout("t", write_type=WriteType.SIMPLE),
        )

        with pytest.raises(CommentsUnavailableError):
            await comment_service.create_comment("v1", uuid4(), "hello")


class TestDeleteComment:
    """Tests for author-scoped deletes."""

    @pytest.mark.asyncio
    async def test_author_deletes_own(self, comment_service: CommentService):
        author = uuid4()
        comment = await comment_service.create_comment("v1", author, "mine")

        assert await comment_service.delete_comment(comment.comment_id, author) == 1
        assert await comment_service.load_thread("v1") == []

    @pytest.mark.asyncio
    async def test_other_author_cannot_delete(self, comment_service: CommentService):
        comment = await comment_service.create_comment("v1", uuid4(), "theirs")

        assert await comment_service.delete_comment(comment.comment_id, uuid4()) == 0
        assert len(await comment_service.load_thread("v1")) == 1


class TestVote:
    """Tests for votes through the ledger."""

    @pytest.mark.asyncio
    async def test_unknown_comment(self, comment_service: CommentService):
        with pytest.raises(CommentNotFoundError):
            await comment_service.vote(uuid4(), uuid4(), liking=True)

    @pytest.mark.asyncio
    async def test_like_then_switch_to_dislike(self, comment_service: CommentService):
        """Liking then disliking leaves one dislike and no likes."""
        comment = await comment_service.create_comment("v1", uuid4(), "hello")
        viewer = uuid4()

        liked = await comment_service.vote(comment.comment_id, viewer, liking=True)
        disliked = await comment_service.vote(comment.comment_id, viewer, liking=False)

        assert liked.viewer_vote is ViewerVoteState.LIKED
        assert liked.like_count == 1
        assert disliked.viewer_vote is ViewerVoteState.DISLIKED
        assert disliked.like_count == 0
        assert disliked.degraded is False

    @pytest.mark.asyncio
    async def test_repeat_like_withdraws(self, comment_service: CommentService):
        comment = await comment_service.create_comment("v1", uuid4(), "hello")
        viewer = uuid4()
        await comment_service.vote(comment.comment_id, uuid4(), liking=True)

        await comment_service.vote(comment.comment_id, viewer, liking=True)
        result = await comment_service.vote(comment.comment_id, viewer, liking=True)

        assert result.viewer_vote is ViewerVoteState.NONE
        assert result.like_count == 1

    @pytest.mark.asyncio
    async def test_vote_visible_on_reload(self, comment_service: CommentService):
        comment = await comment_service.create_comment("v1", uuid4(), "hello")
        viewer = uuid4()

        await comment_service.vote(comment.comment_id, viewer, liking=False)

        thread = await comment_service.load_thread("v1", viewer)
        assert thread[0].viewer_vote is ViewerVoteState.DISLIKED
        assert thread[0].like_count == 0

    @pytest.mark.asyncio
    async def test_conflict_propagates(self, comment_service: CommentService, cassandra):
        comment = await comment_service.create_comment("v1", uuid4(), "hello")
        cassandra.lose_cas = 10

        with pytest.raises(VoteConflictError):
            await comment_service.vote(comment.comment_id, uuid4(), liking=True)


class TestDegradedVote:
    """Tests for votes while the ledger cannot run CAS."""

    @pytest.mark.asyncio
    async def test_like_moves_counter_directly(
        self, comment_service: CommentService, cassandra
    ):
        comment = await comment_service.create_comment("v1", uuid4(), "hello")
        cassandra.fail("comment_votes", Unavailable("no quorum"))

        result = await comment_service.vote(comment.comment_id, uuid4(), liking=True)

        assert result.degraded is True
        assert result.viewer_vote is ViewerVoteState.LIKED
        assert result.like_count == 1
        assert cassandra.like_counts[comment.comment_id] == 1

    @pytest.mark.asyncio
    async def test_dislike_at_zero_stays_zero(
        self, comment_service: CommentService, cassandra
    ):
        """The counter is never pushed below zero."""
        comment = await comment_service.create_comment("v1", uuid4(), "hello")
        cassandra.fail("comment_votes", Unavailable("no quorum"))

        result = await comment_service.vote(comment.comment_id, uuid4(), liking=False)

        assert result.degraded is True
        assert result.viewer_vote is ViewerVoteState.DISLIKED
        assert result.like_count == 0
        assert cassandra.count("SET like_count") == 0

    @pytest.mark.asyncio
    async def test_dislike_decrements(
        self, comment_service: CommentService, ledger, cassandra
    ):
        comment = await comment_service.create_comment("v1", uuid4(), "hello")
        await ledger.cast(comment.comment_id, uuid4(), VoteValue.LIKE)
        await ledger.cast(comment.comment_id, uuid4(), VoteValue.LIKE)
        cassandra.fail("comment_votes", Unavailable("no quorum"))

        result = await comment_service.vote(comment.comment_id, uuid4(), liking=False)

        assert result.like_count == 1

    @pytest.mark.asyncio
    async def test_counter_failure_is_unavailable(
        self, comment_service: CommentService, cassandra
    ):
        comment = await comment_service.create_comment("v1", uuid4(), "hello")
        cassandra.fail("comment_votes", Unavailable("no quorum"))
        cassandra.fail("comment_like_counts", Unavailable("no quorum"))

        with pytest.raises(CommentsUnavailableError):
            await comment_service.vote(comment.comment_id, uuid4(), liking=True)

    @pytest.mark.asyncio
    async def test_counter_write_failure_leaves_no_vote(
        self, comment_service: CommentService, cassandra
    ):
        """A vote whose counter write fails is withdrawn, not half-recorded."""
        comment = await comment_service.create_comment("v1", uuid4(), "hello")
        viewer_id = uuid4()
        cassandra.fail(
            "SET like_count = like_count", WriteTimeout("t", write_type=WriteType.COUNTER)
        )

        with pytest.raises(CommentsUnavailableError):
            await comment_service.vote(comment.comment_id, viewer_id, liking=True)

        assert (comment.comment_id, viewer_id) not in cassandra.votes
        assert cassandra.like_counts[comment.comment_id] == 0
