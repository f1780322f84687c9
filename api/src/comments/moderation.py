"""Moderation view over every comment in the system.

Reads the month-bucketed feed newest first, walking back one calendar month
at a time, and flattens replies and top-level comments into one list. Search
is a case-insensitive substring match over the body and the author's
username and display name.
"""

import asyncio
from collections.abc import Collection
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID

import structlog

from .exceptions import PermissionDeniedError
from .models import Comment, month_bucket
from .store import CommentStore


logger = structlog.get_logger(__name__)

# Number of most recent comments summarized by the dashboard cards
STATS_WINDOW = 200

# Rows read from one month partition per query
SCAN_BATCH = 100


def previous_month(month: str) -> str:
    """``"2026-01"`` -> ``"2025-12"``."""
    year, mon = (int(part) for part in month.split("-"))
    if mon == 1:
        return f"{year - 1}-12"
    return f"{year}-{mon - 1:02d}"


def matches_search(comment: Comment, search: str | None) -> bool:
    if not search:
        return True

    needle = search.strip().lower()
    if not needle:
        return True

    haystacks = [comment.body]
    if comment.author_profile:
        haystacks.append(comment.author_profile.username or "")
        haystacks.append(comment.author_profile.display_name or "")
    return any(needle in text.lower() for text in haystacks)


@dataclass
class ModerationPage:
    """One page of the flattened moderation list."""

    items: list[Comment] = field(default_factory=list)
    has_more: bool = False

    @property
    def last(self) -> Comment | None:
        return self.items[-1] if self.items else None


@dataclass
class ModerationStats:
    """Dashboard card figures."""

    total: int = 0
    today: int = 0
    total_likes: int = 0


class ModerationService:
    """Cross-target comment listing and unscoped deletes."""

    def __init__(
        self,
        store: CommentStore,
        page_size: int = 50,
        lookback_months: int = 12,
    ):
        self.store = store
        self.page_size = page_size
        self.lookback_months = lookback_months

    async def list_comments(
        self,
        search: str | None = None,
        target_ids: Collection[str] | None = None,
        limit: int | None = None,
        cursor: tuple[datetime, UUID] | None = None,
    ) -> ModerationPage:
        """List comments newest first.

        Args:
            search: Substring matched against body and author names
            target_ids: Restrict to these content items (creator view)
            limit: Page size, defaults to the configured moderation page size
            cursor: ``(created_at, comment_id)`` of the last comment of the
                previous page; listing resumes right after it
        """
        limit = limit or self.page_size
        items = await self._scan(search, target_ids, limit + 1, cursor)

        logger.debug(
            "moderation_listed",
            search=bool(search),
            targets=len(target_ids) if target_ids is not None else None,
            returned=min(len(items), limit),
        )
        return ModerationPage(items=items[:limit], has_more=len(items) > limit)

    async def stats(self, target_ids: Collection[str] | None = None) -> ModerationStats:
        """Totals over the most recent comments."""
        items = await self._scan(None, target_ids, STATS_WINDOW, None)
        today = datetime.now(UTC).date()

        return ModerationStats(
            total=len(items),
            today=sum(1 for c in items if _as_utc(c.created_at).date() == today),
            total_likes=sum(c.like_count for c in items),
        )

    async def delete_comment(
        self, comment_id: UUID, target_ids: Collection[str] | None = None
    ) -> int:
        """Delete any comment regardless of its author.

        With ``target_ids`` the comment must belong to one of those content
        items. Deleting a comment that is already gone is a no-op.
        """
        if target_ids is not None:
            comment = await self.store.get_comment(comment_id)
            if comment is None:
                return 0
            if comment.target_id not in target_ids:
                raise PermissionDeniedError(
                    "You can only moderate comments on your own content"
                )

        removed = await self.store.delete_comment(comment_id, None)
        logger.info(
            "comment_moderated", comment_id=str(comment_id), removed=removed
        )
        return removed

    async def _scan(
        self,
        search: str | None,
        target_ids: Collection[str] | None,
        wanted: int,
        after: tuple[datetime, UUID] | None,
    ) -> list[Comment]:
        found: list[Comment] = []
        month = month_bucket(_as_utc(after[0]) if after else datetime.now(UTC))

        for _ in range(self.lookback_months):
            cursor = after
            while len(found) < wanted:
                batch = await self.store.list_month(month, SCAN_BATCH, cursor)
                if not batch:
                    break

                candidates = [
                    c for c in batch if target_ids is None or c.target_id in target_ids
                ]
                await asyncio.gather(*(self.store.hydrate(c, None) for c in candidates))
                found.extend(c for c in candidates if matches_search(c, search))

                if len(batch) < SCAN_BATCH:
                    break
                cursor = (batch[-1].created_at, batch[-1].comment_id)

            if len(found) >= wanted:
                break
            month = previous_month(month)
            after = None

        return found[:wanted]


def _as_utc(moment: datetime) -> datetime:
    # Cassandra returns naive UTC timestamps
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)
