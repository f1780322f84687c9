"""Optimistic thread engine.

Every write runs in two phases: the in-memory thread is transformed right
away (between two awaits, so never half-applied), then the remote call is
made and its outcome either confirms the change, is reconciled over it, or
rolls it back.

- Top-level comments are not spliced locally; a successful create reloads.
- Replies appear immediately under a temporary ID. Success patches the
  server's record over the temporary node; failure removes the node by the
  ID captured when it was created.
- Deletes remove the node (and its replies) at once. A failed delete marks
  the thread dirty and reloads, letting server state restore it.
- Votes move the like count per the transition table and show the clicked
  state; the server's vote result then overwrites both, followed by a
  reload.

Loads carry a generation number. A response that arrives after a newer load
has started is dropped.
"""

from datetime import UTC, datetime
from typing import Any

import structlog

from src.comments.models import AuthorProfile, ViewerVoteState

from .backend import BackendError, CommentBackend
from .notices import Notice, NoticeKey, Notifier
from .tree import (
    Thread,
    ThreadNode,
    append_reply,
    apply_optimistic_vote,
    find_node,
    new_temp_id,
    ordered,
    reconcile_vote,
    remove_node,
    replace_node,
)


logger = structlog.get_logger(__name__)

EMPTY_MESSAGE = "No comments yet."

# Failures turning a server payload into nodes
PAYLOAD_ERRORS = (KeyError, TypeError, ValueError)


class ThreadEngine:
    """Client-side state of one content item's comment thread."""

    def __init__(
        self,
        backend: CommentBackend,
        notifier: Notifier,
        target_id: str,
        viewer_id: str | None = None,
        viewer_profile: AuthorProfile | None = None,
        max_length: int = 10000,
    ):
        """Initialize engine.

        Args:
            backend: Remote comment operations
            notifier: Sink for user-facing notices
            target_id: Content item whose thread is shown
            viewer_id: Signed-in viewer, None for anonymous read-only access
            viewer_profile: Viewer's own profile, shown on optimistic replies
            max_length: Maximum body length accepted before any remote call
        """
        self.backend = backend
        self.notifier = notifier
        self.target_id = target_id
        self.viewer_id = viewer_id
        self.viewer_profile = viewer_profile
        self.max_length = max_length

        self._comments: list[ThreadNode] = []
        self._generation = 0
        self._loading = False
        self._error: NoticeKey | None = None
        self._dirty = False

    # ==========================================================================
    # State
    # ==========================================================================

    @property
    def thread(self) -> Thread:
        return Thread(target_id=self.target_id, comments=list(self._comments))

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> NoticeKey | None:
        return self._error

    @property
    def dirty(self) -> bool:
        """Local thread may differ from the server until the next load."""
        return self._dirty

    @property
    def empty_message(self) -> str | None:
        if self._loading or self._error or self._comments:
            return None
        return EMPTY_MESSAGE

    def can_delete(self, comment_id: str) -> bool:
        """Whether the viewer is offered the delete action for a comment."""
        if self.viewer_id is None:
            return False
        node = find_node(self._comments, comment_id)
        return node is not None and not node.is_pending and node.author_id == self.viewer_id

    def _notify(self, key: NoticeKey) -> None:
        self.notifier.notify(Notice.of(key))

    def _validate_body(self, body: str) -> str | None:
        text = (body or "").strip()
        if not text:
            self._notify(NoticeKey.COMMENT_EMPTY)
            return None
        if len(text) > self.max_length:
            self._notify(NoticeKey.COMMENT_TOO_LONG)
            return None
        return text

    # ==========================================================================
    # Loads
    # ==========================================================================

    async def load(self, target_id: str | None = None) -> Thread | None:
        """Load a thread, replacing the local one.

        Returns:
            The new thread, or None when the load failed or was superseded
        """
        if target_id is not None and target_id != self.target_id:
            self.target_id = target_id
            self._comments = []

        self._generation += 1
        generation = self._generation
        self._loading = True
        target = self.target_id

        try:
            payload = await self.backend.load_thread(target)
            comments = ordered([ThreadNode.from_payload(item) for item in payload])
        except (BackendError, *PAYLOAD_ERRORS) as e:
            if generation != self._generation:
                logger.debug("stale_load_discarded", target_id=target, generation=generation)
                return None
            logger.error("thread_load_failed", target_id=target, error=str(e))
            self._error = NoticeKey.LOAD_FAILED
            self._comments = []
            self._notify(NoticeKey.LOAD_FAILED)
            return None
        finally:
            if generation == self._generation:
                self._loading = False

        if generation != self._generation:
            logger.debug("stale_load_discarded", target_id=target, generation=generation)
            return None

        self._comments = comments
        self._error = None
        self._dirty = False
        logger.debug("thread_loaded", target_id=target, total=len(comments))
        return self.thread

    async def reload(self) -> Thread | None:
        return await self.load()

    # ==========================================================================
    # Writes
    # ==========================================================================

    async def create_top_level(self, target_id: str, body: str) -> bool:
        """Post a top-level comment and reload the thread on success."""
        if self.viewer_id is None:
            self._notify(NoticeKey.SIGN_IN_TO_COMMENT)
            return False

        text = self._validate_body(body)
        if text is None:
            return False

        try:
            await self.backend.create_comment(target_id, text)
        except BackendError as e:
            logger.warning("comment_create_failed", target_id=target_id, error=e.message)
            self._notify(NoticeKey.COMMENT_FAILED)
            return False

        self._notify(NoticeKey.COMMENT_ADDED)
        await self.load(target_id)
        return True

    async def create_reply(self, parent_id: str, body: str) -> ThreadNode | None:
        """Post a reply under a top-level comment.

        Returns:
            The confirmed reply, or None when rejected or failed
        """
        if self.viewer_id is None:
            self._notify(NoticeKey.SIGN_IN_TO_REPLY)
            return None

        text = self._validate_body(body)
        if text is None:
            return None

        parent = find_node(self._comments, parent_id)
        if parent is None:
            self._notify(NoticeKey.PARENT_NOT_FOUND)
            return None
        if parent.is_reply:
            self._notify(NoticeKey.REPLY_TO_REPLY)
            return None

        temp_id = new_temp_id()
        now = datetime.now(UTC)
        pending = ThreadNode(
            id=temp_id,
            target_id=parent.target_id,
            parent_id=parent.id,
            author_id=self.viewer_id,
            body=text,
            created_at=now,
            updated_at=now,
            author_profile=self.viewer_profile,
        )
        self._comments = append_reply(self._comments, parent.id, pending)

        try:
            payload = await self.backend.create_comment(parent.target_id, text, parent.id)
        except BackendError as e:
            self._comments, removed = remove_node(self._comments, temp_id)
            logger.warning(
                "reply_rollback", temp_id=temp_id, removed=removed, error=e.message
            )
            self._notify(NoticeKey.REPLY_FAILED)
            return None

        self._notify(NoticeKey.REPLY_ADDED)
        return await self._confirm_reply(temp_id, payload)

    async def _confirm_reply(
        self, temp_id: str, payload: dict[str, Any]
    ) -> ThreadNode | None:
        try:
            reply = ThreadNode.from_payload(payload)
        except PAYLOAD_ERRORS as e:
            logger.warning("reply_payload_invalid", temp_id=temp_id, error=str(e))
            self._dirty = True
            await self.reload()
            return None

        if find_node(self._comments, temp_id) is not None:
            self._comments = replace_node(self._comments, temp_id, reply)
            return reply

        # A reload replaced the thread while the reply was in flight
        parent = find_node(self._comments, reply.parent_id or "")
        if (
            parent is not None
            and not parent.is_reply
            and find_node(self._comments, reply.id) is None
        ):
            self._comments = append_reply(self._comments, parent.id, reply)
            logger.debug("reply_inserted_after_reload", reply_id=reply.id)
        return reply

    async def delete_comment(self, comment_id: str) -> bool:
        """Delete one of the viewer's comments, cascading to its replies."""
        node = find_node(self._comments, comment_id)
        if node is None:
            return False
        if not self.can_delete(comment_id):
            self._notify(NoticeKey.NOT_OWNER)
            return False

        self._comments, removed = remove_node(self._comments, comment_id)

        try:
            await self.backend.delete_comment(comment_id)
        except BackendError as e:
            logger.warning(
                "comment_delete_failed", comment_id=comment_id, removed=removed, error=e.message
            )
            self._dirty = True
            self._notify(NoticeKey.DELETE_FAILED)
            await self.reload()
            return False

        self._notify(NoticeKey.COMMENT_DELETED)
        return True

    async def vote(self, comment_id: str, liking: bool) -> ViewerVoteState | None:
        """Like or dislike a comment.

        Returns:
            The server's vote state for the viewer, or None when rejected or failed
        """
        if self.viewer_id is None:
            self._notify(NoticeKey.SIGN_IN_TO_VOTE)
            return None

        node = find_node(self._comments, comment_id)
        if node is None or node.is_pending:
            return None

        self._comments = apply_optimistic_vote(self._comments, comment_id, liking)

        try:
            result = await self.backend.vote(comment_id, liking)
            viewer_vote = ViewerVoteState(result["viewer_vote"])
            like_count = int(result["like_count"])
        except (BackendError, *PAYLOAD_ERRORS) as e:
            logger.warning("vote_failed", comment_id=comment_id, error=str(e))
            self._dirty = True
            self._notify(NoticeKey.VOTE_FAILED)
            await self.reload()
            return None

        if result.get("degraded"):
            logger.info("vote_degraded", comment_id=comment_id)

        self._comments = reconcile_vote(self._comments, comment_id, viewer_vote, like_count)
        await self.reload()
        return viewer_vote
