"""Like-count arithmetic shared by the client engine and the vote ledger.

A comment carries a single counter. "Like" and "dislike" both move that
counter; there is no separate dislike tally. Every decrement is floored at 0.
"""

from enum import Enum

from .models import ViewerVoteState, VoteValue


class LedgerAction(str, Enum):
    """Compare-and-swap decision for a (viewer, comment) ledger record."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


def floor_count(count: int) -> int:
    return max(0, count)


def next_like_count(prior: ViewerVoteState, liking: bool, count: int) -> int:
    """Optimistic like count after the viewer clicks like (or dislike).

    | prior    | like      | dislike             |
    |----------|-----------|---------------------|
    | LIKED    | count - 1 | count + 1           |
    | DISLIKED | count + 1 | count - 1           |
    | NONE     | count + 1 | count - 1 (floor 0) |
    """
    if prior is ViewerVoteState.LIKED:
        delta = -1 if liking else 1
    else:
        delta = 1 if liking else -1
    return floor_count(count + delta)


def optimistic_vote_state(liking: bool) -> ViewerVoteState:
    """State shown immediately after a click.

    Always LIKED or DISLIKED, even when the click is a toggle-off; only a
    reconciliation with the ledger can produce NONE.
    """
    return ViewerVoteState.LIKED if liking else ViewerVoteState.DISLIKED


def ledger_action(existing: VoteValue | None, requested: VoteValue) -> LedgerAction:
    """Decide what a vote does to the existing ledger record."""
    if existing is None:
        return LedgerAction.INSERT
    if existing is requested:
        return LedgerAction.DELETE
    return LedgerAction.UPDATE


def resulting_vote(existing: VoteValue | None, requested: VoteValue) -> VoteValue | None:
    """Ledger value once ``ledger_action`` has been applied."""
    if ledger_action(existing, requested) is LedgerAction.DELETE:
        return None
    return requested


def like_delta(before: VoteValue | None, after: VoteValue | None) -> int:
    """Change in the number of "like" records between two ledger states."""
    return int(after is VoteValue.LIKE) - int(before is VoteValue.LIKE)


def direct_counter_delta(liking: bool) -> int:
    """Counter change applied when the ledger cannot be consulted."""
    return 1 if liking else -1
