"""Client-side comment threads.

Keeps an optimistic, renderable copy of one content item's thread and
converges it with the comments API.
"""

from .backend import BackendError, CommentBackend, HttpCommentBackend
from .engine import ThreadEngine
from .notices import LoggingNotifier, Notice, NoticeKey, Notifier
from .tree import Thread, ThreadNode


__all__ = [
    "BackendError",
    "CommentBackend",
    "HttpCommentBackend",
    "LoggingNotifier",
    "Notice",
    "NoticeKey",
    "Notifier",
    "Thread",
    "ThreadEngine",
    "ThreadNode",
]
