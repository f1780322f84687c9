"""Shared test fixtures.

``FakeCassandra`` stands in for a cassandra-asyncio session: it keeps the
comment, vote and counter tables in memory and answers the prepared
statements the comment store and vote ledger issue, including the
lightweight-transaction conditions.
"""

import os


# Settings are cached on first use, so the environment goes first
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from collections import defaultdict  # noqa: E402
from types import SimpleNamespace  # noqa: E402
from typing import Any  # noqa: E402
from uuid import UUID  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from src.comments.ledger import VoteLedger  # noqa: E402
from src.comments.models import AuthorProfile  # noqa: E402
from src.comments.moderation import ModerationService  # noqa: E402
from src.comments.service import CommentService  # noqa: E402
from src.comments.store import CommentStore  # noqa: E402


KEYSPACE = "test_keyspace"


class Statement:
    """Prepared statement stand-in carrying its normalized CQL text."""

    def __init__(self, query: str):
        self.query = " ".join(query.split())
        self.consistency_level = None


class Result(list):
    """Result set stand-in with ``one()`` and ``was_applied``."""

    def __init__(self, rows: Any = (), was_applied: bool = True):
        super().__init__(rows)
        self.was_applied = was_applied

    def one(self) -> Any:
        return self[0] if self else None


class FakeCassandra:
    """In-memory session answering the comment and vote statements."""

    def __init__(self) -> None:
        self.comments: dict[UUID, SimpleNamespace] = {}
        self.votes: dict[tuple[UUID, UUID], str] = {}
        self.like_counts: dict[UUID, int] = defaultdict(int)
        self.profiles: dict[UUID, SimpleNamespace] = {}
        self.month_rows: dict[str, list[SimpleNamespace]] = defaultdict(list)
        self.failures: dict[str, BaseException] = {}
        self.executed: list[str] = []
        # Conditional writes to report as not applied, one per entry
        self.lose_cas: int = 0

    # -- test helpers ---------------------------------------------------------

    def fail(self, fragment: str, error: BaseException) -> None:
        """Raise ``error`` for every statement containing ``fragment``."""
        self.failures[fragment] = error

    def add_profile(self, user_id: UUID, username: str | None = None, display_name: str | None = None) -> AuthorProfile:
        row = SimpleNamespace(
            user_id=user_id, username=username, display_name=display_name, avatar_url=None
        )
        self.profiles[user_id] = row
        return AuthorProfile.from_row(row)

    def count(self, fragment: str) -> int:
        return sum(1 for q in self.executed if fragment in q)

    # -- session API ----------------------------------------------------------

    def prepare(self, query: str) -> Statement:
        return Statement(query)

    async def aexecute(self, statement: Statement, params: list[Any] | None = None) -> Result:
        query = statement.query
        params = list(params or [])
        self.executed.append(query)

        for fragment, error in self.failures.items():
            if fragment in query:
                raise error

        if "comment_votes" in query:
            return self._votes(query, params)
        if "comment_like_counts" in query:
            return self._like_counts(query, params)
        if "author_profiles" in query:
            row = self.profiles.get(params[0])
            return Result([row] if row else [])
        if "comments_by_month" in query:
            return self._month(query, params)
        if "comments_" in query:
            return self._comments(query, params)
        return Result()

    def _cas(self) -> bool:
        if self.lose_cas > 0:
            self.lose_cas -= 1
            return False
        return True

    def _votes(self, query: str, params: list[Any]) -> Result:
        if query.startswith("SELECT"):
            value = self.votes.get((params[0], params[1]))
            return Result([SimpleNamespace(value=value)] if value else [])

        if query.startswith("INSERT"):
            key = (params[0], params[1])
            if key in self.votes or not self._cas():
                return Result(was_applied=False)
            self.votes[key] = params[2]
            return Result()

        if query.startswith("UPDATE"):
            key = (params[2], params[3])
            if self.votes.get(key) != params[4] or not self._cas():
                return Result(was_applied=False)
            self.votes[key] = params[0]
            return Result()

        if "viewer_id" in query:
            key = (params[0], params[1])
            if self.votes.get(key) != params[2] or not self._cas():
                return Result(was_applied=False)
            del self.votes[key]
            return Result()

        for key in [k for k in self.votes if k[0] == params[0]]:
            del self.votes[key]
        return Result()

    def _like_counts(self, query: str, params: list[Any]) -> Result:
        if query.startswith("SELECT"):
            if params[0] not in self.like_counts:
                return Result()
            return Result([SimpleNamespace(like_count=self.like_counts[params[0]])])
        if query.startswith("UPDATE"):
            self.like_counts[params[1]] += params[0]
            return Result()
        self.like_counts.pop(params[0], None)
        return Result()

    def _comments(self, query: str, params: list[Any]) -> Result:
        if query.startswith("INSERT INTO test_keyspace.comments_by_id"):
            comment_id, target_id, parent_id, author_id, body, created_at, updated_at = params
            self.comments[comment_id] = SimpleNamespace(
                comment_id=comment_id,
                target_id=target_id,
                parent_id=parent_id,
                author_id=author_id,
                body=body,
                created_at=created_at,
                updated_at=updated_at,
            )
            return Result()

        if query.startswith("INSERT"):
            # Ordering tables are derived from comments_by_id
            return Result()

        if query.startswith("DELETE FROM test_keyspace.comments_by_id"):
            self.comments.pop(params[0], None)
            return Result()

        if query.startswith("DELETE"):
            return Result()

        if "comments_by_id" in query:
            row = self.comments.get(params[0])
            return Result([row] if row else [])

        if "comments_by_target" in query:
            rows = sorted(
                (c for c in self.comments.values() if c.parent_id is None and c.target_id == params[0]),
                key=lambda c: c.created_at,
                reverse=True,
            )
            return Result(rows[: params[1]])

        if "comments_by_parent" in query:
            rows = sorted(
                (c for c in self.comments.values() if c.parent_id == params[0]),
                key=lambda c: c.created_at,
            )
            return Result(rows[: params[1]] if len(params) > 1 else rows)

        return Result()

    def _month(self, query: str, params: list[Any]) -> Result:
        if query.startswith("INSERT"):
            month, created_at, comment_id, target_id, parent_id, author_id, body = params
            self.month_rows[month].append(
                SimpleNamespace(
                    comment_id=comment_id,
                    target_id=target_id,
                    parent_id=parent_id,
                    author_id=author_id,
                    body=body,
                    created_at=created_at,
                )
            )
            return Result()

        if query.startswith("DELETE"):
            month, _, comment_id = params
            self.month_rows[month] = [
                r for r in self.month_rows[month] if r.comment_id != comment_id
            ]
            return Result()

        # Clustering order: created_at DESC, comment_id ASC
        rows = sorted(self.month_rows.get(params[0], []), key=lambda r: r.comment_id)
        rows.sort(key=lambda r: r.created_at, reverse=True)
        if "created_at < ?" in query:
            rows = [r for r in rows if r.created_at < params[1]]
        elif "created_at = ?" in query:
            rows = [r for r in rows if r.created_at == params[1] and r.comment_id > params[2]]
        return Result(rows[: params[-1]])


@pytest.fixture
def cassandra() -> FakeCassandra:
    """In-memory Cassandra session."""
    return FakeCassandra()


@pytest.fixture
def ledger(cassandra: FakeCassandra) -> VoteLedger:
    return VoteLedger(session=cassandra, keyspace=KEYSPACE, max_attempts=3)


@pytest.fixture
def store(cassandra: FakeCassandra, ledger: VoteLedger) -> CommentStore:
    return CommentStore(session=cassandra, keyspace=KEYSPACE, ledger=ledger)


@pytest.fixture
def comment_service(store: CommentStore, ledger: VoteLedger) -> CommentService:
    return CommentService(store=store, ledger=ledger, max_length=500)


@pytest.fixture
def moderation_service(store: CommentStore) -> ModerationService:
    return ModerationService(store=store, page_size=10, lookback_months=3)


@pytest.fixture
def app(comment_service: CommentService, moderation_service: ModerationService):
    """Application with services wired to the in-memory session."""
    from src.main import create_app  # noqa: PLC0415

    application = create_app()
    application.state.comment_service = comment_service
    application.state.moderation_service = moderation_service
    return application


@pytest.fixture
def client(app) -> TestClient:
    """Test client that skips the lifespan (no real Cassandra or Redis)."""
    return TestClient(app)
