"""User-facing notices raised by the thread engine.

Every failure the engine surfaces is one of these keys with a fixed,
user-readable message. Backend error text is logged, never shown.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Protocol

import structlog


logger = structlog.get_logger(__name__)


class NoticeKey(str, Enum):
    """Notice identifiers."""

    SIGN_IN_TO_COMMENT = "sign_in_to_comment"
    SIGN_IN_TO_REPLY = "sign_in_to_reply"
    SIGN_IN_TO_VOTE = "sign_in_to_vote"
    COMMENT_EMPTY = "comment_empty"
    COMMENT_TOO_LONG = "comment_too_long"
    PARENT_NOT_FOUND = "parent_not_found"
    REPLY_TO_REPLY = "reply_to_reply"
    NOT_OWNER = "not_owner"
    LOAD_FAILED = "load_failed"
    COMMENT_FAILED = "comment_failed"
    REPLY_FAILED = "reply_failed"
    DELETE_FAILED = "delete_failed"
    VOTE_FAILED = "vote_failed"
    COMMENT_ADDED = "comment_added"
    REPLY_ADDED = "reply_added"
    COMMENT_DELETED = "comment_deleted"

    @property
    def message(self) -> str:
        return NOTICE_MESSAGES[self]

    @property
    def is_error(self) -> bool:
        return self not in SUCCESS_NOTICES


NOTICE_MESSAGES: dict[NoticeKey, str] = {
    NoticeKey.SIGN_IN_TO_COMMENT: "Please sign in to comment",
    NoticeKey.SIGN_IN_TO_REPLY: "Please sign in to reply",
    NoticeKey.SIGN_IN_TO_VOTE: "Please sign in to like",
    NoticeKey.COMMENT_EMPTY: "Comment cannot be empty",
    NoticeKey.COMMENT_TOO_LONG: "Comment is too long",
    NoticeKey.PARENT_NOT_FOUND: "The comment you are replying to no longer exists",
    NoticeKey.REPLY_TO_REPLY: "You can only reply to top-level comments",
    NoticeKey.NOT_OWNER: "You can only delete your own comments",
    NoticeKey.LOAD_FAILED: "Failed to load comments",
    NoticeKey.COMMENT_FAILED: "Failed to post comment",
    NoticeKey.REPLY_FAILED: "Failed to post reply",
    NoticeKey.DELETE_FAILED: "Failed to delete comment",
    NoticeKey.VOTE_FAILED: "Failed to save your vote",
    NoticeKey.COMMENT_ADDED: "Comment added!",
    NoticeKey.REPLY_ADDED: "Reply added!",
    NoticeKey.COMMENT_DELETED: "Comment deleted",
}

SUCCESS_NOTICES = frozenset(
    {NoticeKey.COMMENT_ADDED, NoticeKey.REPLY_ADDED, NoticeKey.COMMENT_DELETED}
)


@dataclass(frozen=True)
class Notice:
    key: NoticeKey
    message: str
    is_error: bool

    @classmethod
    def of(cls, key: NoticeKey) -> "Notice":
        return cls(key=key, message=key.message, is_error=key.is_error)


class Notifier(Protocol):
    """Sink for user-facing notices (toast, status line, ...)."""

    def notify(self, notice: Notice) -> None: ...


class LoggingNotifier:
    """Notifier that logs notices and keeps them for later display."""

    def __init__(self) -> None:
        self.notices: list[Notice] = []

    def notify(self, notice: Notice) -> None:
        self.notices.append(notice)
        log = logger.warning if notice.is_error else logger.info
        log("notice", key=notice.key.value, message=notice.message)
