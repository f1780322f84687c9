"""Vote ledger backed by Cassandra lightweight transactions.

The ledger holds at most one record per (viewer, comment). A vote is a
compare-and-swap against the current record:

- no record            -> insert the requested value
- opposite value       -> update to the requested value
- same value           -> delete the record (toggle-off)

Each applied swap moves the comment's like counter by the change in the
number of "like" records, so the counter converges no matter how many
clients vote concurrently.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog
from cassandra import ConsistencyLevel, ReadTimeout, Unavailable, WriteTimeout
from cassandra.cluster import NoHostAvailable

from .counter import (
    LedgerAction,
    floor_count,
    ledger_action,
    like_delta,
    resulting_vote,
)
from .exceptions import LedgerUnavailableError, VoteConflictError
from .models import VoteValue


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = structlog.get_logger(__name__)

# Failures that mean "the Paxos round cannot run", not "the request is bad"
LEDGER_UNAVAILABLE_ERRORS = (Unavailable, NoHostAvailable, WriteTimeout, ReadTimeout)


class VoteLedger:
    """Authoritative per-(viewer, comment) vote store."""

    def __init__(self, session: "Session", keyspace: str, max_attempts: int = 5):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self.max_attempts = max_attempts
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient queries."""
        self._select_vote = self.session.prepare(f"""
            SELECT value FROM {self.keyspace}.comment_votes
            WHERE comment_id = ? AND viewer_id = ?
        """)
        self._select_vote.consistency_level = ConsistencyLevel.SERIAL

        self._insert_vote = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.comment_votes
            (comment_id, viewer_id, value, voted_at)
            VALUES (?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._update_vote = self.session.prepare(f"""
            UPDATE {self.keyspace}.comment_votes
            SET value = ?, voted_at = ?
            WHERE comment_id = ? AND viewer_id = ?
            IF value = ?
        """)

        self._delete_vote = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.comment_votes
            WHERE comment_id = ? AND viewer_id = ?
            IF value = ?
        """)

        self._delete_votes_for_comment = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.comment_votes
            WHERE comment_id = ?
        """)

        self._select_like_count = self.session.prepare(f"""
            SELECT like_count FROM {self.keyspace}.comment_like_counts
            WHERE comment_id = ?
        """)

        self._adjust_like_count = self.session.prepare(f"""
            UPDATE {self.keyspace}.comment_like_counts
            SET like_count = like_count + ?
            WHERE comment_id = ?
        """)

        self._delete_like_count = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.comment_like_counts
            WHERE comment_id = ?
        """)

    # ==========================================================================
    # Reads
    # ==========================================================================

    async def get_vote(self, comment_id: UUID, viewer_id: UUID) -> VoteValue | None:
        """Current ledger value for a (viewer, comment) pair."""
        result = await self.session.aexecute(self._select_vote, [comment_id, viewer_id])
        row = result.one()
        return VoteValue(row.value) if row else None

    async def get_like_count(self, comment_id: UUID) -> int:
        """Like count for a comment, never negative."""
        result = await self.session.aexecute(self._select_like_count, [comment_id])
        row = result.one()
        return floor_count(row.like_count or 0) if row else 0

    # ==========================================================================
    # Writes
    # ==========================================================================

    async def cast(
        self, comment_id: UUID, viewer_id: UUID, value: VoteValue
    ) -> VoteValue | None:
        """Apply a vote and return the resulting ledger value.

        Retries when a concurrent writer changed the record between the read
        and the conditional write.

        Raises:
            LedgerUnavailableError: the cluster cannot run the transaction
            VoteConflictError: every attempt lost the race
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                existing = await self.get_vote(comment_id, viewer_id)
                action = ledger_action(existing, value)
                applied = await self._apply(
                    action, comment_id, viewer_id, existing, value
                )
            except LEDGER_UNAVAILABLE_ERRORS as e:
                raise LedgerUnavailableError(str(e)) from e

            if applied:
                after = resulting_vote(existing, value)
                await self._move_counter(comment_id, viewer_id, existing, after)
                logger.debug(
                    "vote_applied",
                    comment_id=str(comment_id),
                    action=action.value,
                    attempt=attempt,
                )
                return after

            logger.info(
                "vote_cas_retry",
                comment_id=str(comment_id),
                action=action.value,
                attempt=attempt,
            )

        raise VoteConflictError

    async def _move_counter(
        self,
        comment_id: UUID,
        viewer_id: UUID,
        before: VoteValue | None,
        after: VoteValue | None,
    ) -> None:
        """Keep the counter in step with an applied swap.

        When the counter cannot be written the record is swapped back, so
        the number of like records and the counter still agree.

        Raises:
            LedgerUnavailableError: the counter write failed
        """
        delta = like_delta(before, after)
        if not delta:
            return

        try:
            await self.adjust_like_count(comment_id, delta)
        except LEDGER_UNAVAILABLE_ERRORS as e:
            restored = await self._restore(comment_id, viewer_id, before, after)
            log = logger.warning if restored else logger.error
            log(
                "vote_counter_write_failed",
                comment_id=str(comment_id),
                delta=delta,
                vote_restored=restored,
                error=str(e),
            )
            raise LedgerUnavailableError(str(e)) from e

    async def _restore(
        self,
        comment_id: UUID,
        viewer_id: UUID,
        before: VoteValue | None,
        after: VoteValue | None,
    ) -> bool:
        """Swap the record from ``after`` back to ``before``."""
        if before is None:
            action, expected, target = LedgerAction.DELETE, after, after
        else:
            action, expected, target = ledger_action(after, before), after, before

        try:
            return await self._apply(action, comment_id, viewer_id, expected, target)
        except LEDGER_UNAVAILABLE_ERRORS:
            return False

    async def _apply(
        self,
        action: LedgerAction,
        comment_id: UUID,
        viewer_id: UUID,
        existing: VoteValue | None,
        value: VoteValue,
    ) -> bool:
        now = datetime.now(UTC)

        if action is LedgerAction.INSERT:
            result = await self.session.aexecute(
                self._insert_vote, [comment_id, viewer_id, value.value, now]
            )
        elif action is LedgerAction.UPDATE:
            result = await self.session.aexecute(
                self._update_vote,
                [value.value, now, comment_id, viewer_id, existing.value],
            )
        else:
            result = await self.session.aexecute(
                self._delete_vote, [comment_id, viewer_id, existing.value]
            )

        return bool(result.was_applied)

    async def adjust_like_count(self, comment_id: UUID, delta: int) -> None:
        """Move the like counter by ``delta``."""
        await self.session.aexecute(self._adjust_like_count, [delta, comment_id])

    async def forget_comment(self, comment_id: UUID) -> None:
        """Drop every vote and the counter of a deleted comment."""
        await self.session.aexecute(self._delete_votes_for_comment, [comment_id])
        await self.session.aexecute(self._delete_like_count, [comment_id])
