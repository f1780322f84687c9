"""Comment system module.

Provides the two-level comment thread system with:
- Top-level comments and single-level replies per content item
- Like/dislike votes through a compare-and-swap ledger
- Cross-target moderation listing

Note: Routers are not exported here to avoid circular imports.
Import directly from src.comments.router when needed.
"""

from .ledger import VoteLedger
from .models import (
    COMMENTS_TABLES_CQL,
    AuthorProfile,
    Comment,
    ViewerVoteState,
    VoteResult,
    VoteValue,
)
from .moderation import ModerationService
from .service import CommentService
from .store import CommentStore


__all__ = [
    "COMMENTS_TABLES_CQL",
    "AuthorProfile",
    "Comment",
    "CommentService",
    "CommentStore",
    "ModerationService",
    "ViewerVoteState",
    "VoteLedger",
    "VoteResult",
    "VoteValue",
]
