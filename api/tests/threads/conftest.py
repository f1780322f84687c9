"""Fixtures for the client-side thread engine.

``FakeBackend`` plays the comments API: it keeps a small server-side thread,
applies the vote ledger rules and records every call. Tests can hold a call
in flight with an ``asyncio.Event`` gate to observe optimistic state.
"""

import asyncio
import copy
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import uuid4

import pytest

from src.comments.counter import like_delta, resulting_vote
from src.comments.models import ViewerVoteState, VoteValue
from src.threads.backend import BackendError
from src.threads.engine import ThreadEngine
from src.threads.notices import Notice, NoticeKey


VIEWER_ID = "11111111-1111-1111-1111-111111111111"
OTHER_ID = "22222222-2222-2222-2222-222222222222"

BASE_TIME = datetime(2026, 5, 10, 12, 0, tzinfo=UTC)


def payload(
    body: str = "hello",
    minutes: int = 0,
    author_id: str = OTHER_ID,
    parent_id: str | None = None,
    target_id: str = "v1",
    like_count: int = 0,
    replies: list[dict[str, Any]] | None = None,
    comment_id: str | None = None,
) -> dict[str, Any]:
    """Comment JSON as the comments API returns it."""
    created = (BASE_TIME + timedelta(minutes=minutes)).isoformat()
    return {
        "id": comment_id or str(uuid4()),
        "target_id": target_id,
        "parent_id": parent_id,
        "author_id": author_id,
        "author_profile": None,
        "body": body,
        "like_count": like_count,
        "viewer_vote": "none",
        "created_at": created,
        "updated_at": created,
        "replies": replies or [],
    }


class FakeBackend:
    """In-memory comments API for one signed-in viewer."""

    def __init__(self, viewer_id: str = VIEWER_ID) -> None:
        self.viewer_id = viewer_id
        self.items: list[dict[str, Any]] = []
        self.ledger: dict[str, VoteValue] = {}
        self.calls: list[tuple[str, ...]] = []
        self.failures: dict[str, Exception] = {}
        self.fail_bodies: set[str] = set()
        self.gates: dict[str, list[asyncio.Event]] = {}

    # -- test helpers ---------------------------------------------------------

    def add(self, item: dict[str, Any]) -> dict[str, Any]:
        self.items.append(item)
        return item

    def gate(self, op: str) -> asyncio.Event:
        """Hold the next ``op`` call until the returned event is set."""
        event = asyncio.Event()
        self.gates.setdefault(op, []).append(event)
        return event

    def ops(self) -> list[str]:
        return [call[0] for call in self.calls]

    def find(self, comment_id: str) -> dict[str, Any] | None:
        for item in self.items:
            if item["id"] == comment_id:
                return item
            for reply in item["replies"]:
                if reply["id"] == comment_id:
                    return reply
        return None

    async def _enter(self, op: str, *args: str) -> None:
        self.calls.append((op, *args))
        pending = self.gates.get(op)
        if pending:
            await pending.pop(0).wait()
        if op in self.failures:
            raise self.failures[op]

    # -- CommentBackend -------------------------------------------------------

    async def load_thread(self, target_id: str) -> list[dict[str, Any]]:
        # Snapshot before any gate so a held load answers with old data
        snapshot = copy.deepcopy([i for i in self.items if i["target_id"] == target_id])
        await self._enter("load_thread", target_id)
        for item in snapshot:
            for node in [item, *item["replies"]]:
                vote = self.ledger.get(node["id"])
                node["viewer_vote"] = ViewerVoteState.from_vote(vote).value
        return snapshot

    async def create_comment(
        self, target_id: str, body: str, parent_id: str | None = None
    ) -> dict[str, Any]:
        await self._enter("create_comment", target_id, body)
        if body in self.fail_bodies:
            raise BackendError("Comments API error: 503", status_code=503)

        created = datetime.now(UTC).isoformat()
        item = payload(body=body, author_id=self.viewer_id, parent_id=parent_id, target_id=target_id)
        item["created_at"] = item["updated_at"] = created
        if parent_id is None:
            self.items.append(item)
        else:
            self.find(parent_id)["replies"].append(item)
        return copy.deepcopy(item)

    async def delete_comment(self, comment_id: str) -> None:
        await self._enter("delete_comment", comment_id)
        node = self.find(comment_id)
        if node is None or node["author_id"] != self.viewer_id:
            return
        self.items = [i for i in self.items if i["id"] != comment_id]
        for item in self.items:
            item["replies"] = [r for r in item["replies"] if r["id"] != comment_id]

    async def vote(self, comment_id: str, liking: bool) -> dict[str, Any]:
        await self._enter("vote", comment_id)
        node = self.find(comment_id)
        before = self.ledger.get(comment_id)
        after = resulting_vote(before, VoteValue.from_liking(liking))
        if after is None:
            self.ledger.pop(comment_id, None)
        else:
            self.ledger[comment_id] = after
        node["like_count"] = max(0, node["like_count"] + like_delta(before, after))
        return {
            "comment_id": comment_id,
            "viewer_vote": ViewerVoteState.from_vote(after).value,
            "like_count": node["like_count"],
            "degraded": False,
        }


class RecordingNotifier:
    def __init__(self) -> None:
        self.notices: list[Notice] = []

    def notify(self, notice: Notice) -> None:
        self.notices.append(notice)

    @property
    def keys(self) -> list[NoticeKey]:
        return [n.key for n in self.notices]


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def make_payload():
    """Factory for comment JSON objects."""
    return payload


@pytest.fixture
def engine(backend: FakeBackend, notifier: RecordingNotifier) -> ThreadEngine:
    """Engine for a signed-in viewer on content item ``v1``."""
    return ThreadEngine(backend, notifier, "v1", viewer_id=VIEWER_ID, max_length=100)


@pytest.fixture
def anonymous_engine(backend: FakeBackend, notifier: RecordingNotifier) -> ThreadEngine:
    return ThreadEngine(backend, notifier, "v1")
