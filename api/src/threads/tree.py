"""In-memory comment thread and its transforms.

A thread is a list of top-level nodes, newest first, each holding its
replies oldest first. Every transform returns a new list and leaves its
input untouched, so a renderer holding the previous snapshot never sees a
half-applied change.

Node IDs are strings: authoritative IDs are UUID strings from the API,
optimistic replies carry ``temp-<hex>`` IDs until the server answers.
"""

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from src.comments.counter import next_like_count, optimistic_vote_state
from src.comments.models import AuthorProfile, ViewerVoteState


TEMP_ID_PREFIX = "temp-"


def new_temp_id() -> str:
    return f"{TEMP_ID_PREFIX}{uuid4().hex}"


def is_temp_id(node_id: str) -> bool:
    return node_id.startswith(TEMP_ID_PREFIX)


@dataclass(frozen=True)
class ThreadNode:
    """A comment as the client renders it."""

    id: str
    target_id: str
    parent_id: str | None
    author_id: str
    body: str
    created_at: datetime
    updated_at: datetime
    like_count: int = 0
    author_profile: AuthorProfile | None = None
    viewer_vote: ViewerVoteState = ViewerVoteState.NONE
    replies: list["ThreadNode"] = field(default_factory=list)

    @property
    def is_reply(self) -> bool:
        return self.parent_id is not None

    @property
    def is_pending(self) -> bool:
        """Optimistic node the server has not confirmed yet."""
        return is_temp_id(self.id)

    @property
    def author_label(self) -> str:
        return self.author_profile.label if self.author_profile else "Anonymous"

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "ThreadNode":
        """Create node from a comment JSON object of the comments API."""
        profile = data.get("author_profile")
        parent_id = data.get("parent_id")
        return cls(
            id=str(data["id"]),
            target_id=data["target_id"],
            parent_id=str(parent_id) if parent_id else None,
            author_id=str(data["author_id"]),
            body=data["body"],
            created_at=_parse_datetime(data["created_at"]),
            updated_at=_parse_datetime(data.get("updated_at") or data["created_at"]),
            like_count=max(0, int(data.get("like_count") or 0)),
            author_profile=AuthorProfile.from_dict(profile) if profile else None,
            viewer_vote=ViewerVoteState(data.get("viewer_vote") or "none"),
            replies=[cls.from_payload(r) for r in data.get("replies") or []],
        )


def _parse_datetime(value: datetime | str) -> datetime:
    moment = value if isinstance(value, datetime) else datetime.fromisoformat(value)
    # Cassandra timestamps come back naive; they are UTC
    return moment if moment.tzinfo else moment.replace(tzinfo=UTC)


# ==============================================================================
# Transforms
# ==============================================================================


def ordered(comments: list[ThreadNode]) -> list[ThreadNode]:
    """Top-level newest first, replies oldest first."""
    return [
        replace(c, replies=sorted(c.replies, key=lambda r: r.created_at))
        for c in sorted(comments, key=lambda c: c.created_at, reverse=True)
    ]


def find_node(comments: list[ThreadNode], node_id: str) -> ThreadNode | None:
    for comment in comments:
        if comment.id == node_id:
            return comment
        for reply in comment.replies:
            if reply.id == node_id:
                return reply
    return None


def count_nodes(comments: list[ThreadNode]) -> int:
    return sum(1 + len(c.replies) for c in comments)


def remove_node(
    comments: list[ThreadNode], node_id: str
) -> tuple[list[ThreadNode], int]:
    """Remove a node, cascading to the replies of a top-level node.

    Returns:
        The new thread and the number of nodes removed
    """
    removed = 0
    result = []
    for comment in comments:
        if comment.id == node_id:
            removed += 1 + len(comment.replies)
            continue

        replies = [r for r in comment.replies if r.id != node_id]
        if len(replies) != len(comment.replies):
            removed += len(comment.replies) - len(replies)
            comment = replace(comment, replies=replies)
        result.append(comment)

    return result, removed


def append_reply(
    comments: list[ThreadNode], parent_id: str, reply: ThreadNode
) -> list[ThreadNode]:
    """Add a reply under a top-level node, keeping replies oldest first."""
    return [
        replace(c, replies=sorted([*c.replies, reply], key=lambda r: r.created_at))
        if c.id == parent_id
        else c
        for c in comments
    ]


def update_node(
    comments: list[ThreadNode],
    node_id: str,
    change: Callable[[ThreadNode], ThreadNode],
) -> list[ThreadNode]:
    """Apply ``change`` to the node with ``node_id``, wherever it sits."""
    result = []
    for comment in comments:
        if comment.id == node_id:
            comment = change(comment)
        elif any(r.id == node_id for r in comment.replies):
            comment = replace(
                comment,
                replies=[change(r) if r.id == node_id else r for r in comment.replies],
            )
        result.append(comment)
    return result


def replace_node(
    comments: list[ThreadNode], node_id: str, node: ThreadNode
) -> list[ThreadNode]:
    return update_node(comments, node_id, lambda _: node)


def apply_optimistic_vote(
    comments: list[ThreadNode], node_id: str, liking: bool
) -> list[ThreadNode]:
    """Move the like count per the transition table and show the clicked state."""
    return update_node(
        comments,
        node_id,
        lambda n: replace(
            n,
            like_count=next_like_count(n.viewer_vote, liking, n.like_count),
            viewer_vote=optimistic_vote_state(liking),
        ),
    )


def reconcile_vote(
    comments: list[ThreadNode],
    node_id: str,
    viewer_vote: ViewerVoteState,
    like_count: int,
) -> list[ThreadNode]:
    """Overwrite a node's vote data with the server's values."""
    return update_node(
        comments,
        node_id,
        lambda n: replace(n, viewer_vote=viewer_vote, like_count=max(0, like_count)),
    )


@dataclass
class Thread:
    """Snapshot of one content item's comments."""

    target_id: str
    comments: list[ThreadNode] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.comments

    @property
    def total(self) -> int:
        return count_nodes(self.comments)

    def find(self, node_id: str) -> ThreadNode | None:
        return find_node(self.comments, node_id)
