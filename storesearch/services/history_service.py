"""Search history: per-visitor term counters."""

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storesearch.core.config import settings
from storesearch.models.search_history import SearchHistory
from storesearch.search.tokenizer import normalize_query

logger = logging.getLogger(__name__)


class SearchHistoryService:
    """Record and read the search terms of a user or anonymous session."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    def _insert(self):  # type: ignore[no-untyped-def]
        if self.db.get_bind().dialect.name == "postgresql":
            return pg_insert(SearchHistory)
        return sqlite_insert(SearchHistory)

    async def record_search(
        self,
        keyword: str,
        *,
        user_id: str | None = None,
        session_id: str | None = None,
    ) -> bool:
        """Insert the term or increment its counter in one statement.

        The authenticated user wins over the session id. Terms shorter than
        the configured minimum, and callers with no identity, are skipped.
        Database errors are logged and discarded.

        Returns:
            True if a row was written
        """
        term = normalize_query(keyword).text
        if len(term) < settings.search_history_min_length:
            return False
        if not user_id and not session_id:
            return False

        if user_id:
            identity = {"user_id": user_id, "session_id": None}
            conflict_target = ["user_id", "keyword"]
        else:
            identity = {"user_id": None, "session_id": session_id}
            conflict_target = ["session_id", "keyword"]

        now = datetime.now(UTC)
        stmt = self._insert().values(
            **identity,
            keyword=term,
            search_count=1,
            last_searched=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=conflict_target,
            set_={
                "search_count": SearchHistory.search_count + 1,
                "last_searched": now,
                "updated_at": now,
            },
        )

        try:
            await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError:
            logger.exception("Failed to record search history", extra={"keyword": term})
            await self.db.rollback()
            return False
        return True

    async def get_recent(
        self,
        *,
        user_id: str | None = None,
        session_id: str | None = None,
        limit: int = 3,
    ) -> list[SearchHistory]:
        """Most recently searched terms, newest first."""
        if user_id:
            owner = SearchHistory.user_id == user_id
        elif session_id:
            owner = SearchHistory.session_id == session_id
        else:
            return []

        stmt = (
            select(SearchHistory)
            .where(owner)
            .order_by(SearchHistory.last_searched.desc(), SearchHistory.id.desc())
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())


async def record_search_history(
    session_factory: Callable[[], AsyncSession],
    keyword: str,
    *,
    user_id: str | None = None,
    session_id: str | None = None,
) -> None:
    """Background-task entry point; uses its own session."""
    async with session_factory() as session:
        await SearchHistoryService(session).record_search(
            keyword, user_id=user_id, session_id=session_id
        )
