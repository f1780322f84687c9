"""Comment system errors.

Every error carries a user-readable message and a stable code; the HTTP
layer maps codes to status codes and never shows backend details.
"""


class CommentError(Exception):
    """Base comment error."""

    def __init__(self, message: str, code: str = "comment_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class CommentNotFoundError(CommentError):
    """Comment not found."""

    def __init__(self, message: str = "Comment not found"):
        super().__init__(message, "comment_not_found")


class InvalidCommentError(CommentError):
    """Comment body failed validation."""

    def __init__(self, message: str = "Comment cannot be empty"):
        super().__init__(message, "invalid_comment")


class NestingTooDeepError(CommentError):
    """Reply to a reply."""

    def __init__(self, message: str = "Replies cannot be nested more than one level"):
        super().__init__(message, "nesting_too_deep")


class PermissionDeniedError(CommentError):
    """Permission denied for operation."""

    def __init__(self, message: str = "Permission denied"):
        super().__init__(message, "permission_denied")


class VoteConflictError(CommentError):
    """Vote compare-and-swap kept losing to concurrent writers."""

    def __init__(self, message: str = "Your vote could not be saved, please retry"):
        super().__init__(message, "vote_conflict")


class ThreadLoadError(CommentError):
    """The thread could not be read consistently."""

    def __init__(self, message: str = "Failed to load comments"):
        super().__init__(message, "thread_load_failed")


class CommentsUnavailableError(CommentError):
    """Backing store unreachable for a write."""

    def __init__(self, message: str = "Comments are temporarily unavailable"):
        super().__init__(message, "comments_unavailable")


class LedgerUnavailableError(Exception):
    """The vote ledger cannot run compare-and-swap right now.

    Internal signal, handled by the comment service's degraded vote path.
    """
