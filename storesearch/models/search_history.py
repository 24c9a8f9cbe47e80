"""Per-visitor search history used for recent-search suggestions and analytics."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from storesearch.models.base import Base


class SearchHistory(Base):
    """Search term counter keyed by user or anonymous session.

    Exactly one of ``user_id`` / ``session_id`` is set. The unique constraints
    are the conflict targets of the insert-or-increment upsert.
    """

    __tablename__ = "search_history"

    user_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    session_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    keyword: Mapped[str] = mapped_column(String(500), nullable=False)
    search_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    last_searched: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("user_id", "keyword"),
        UniqueConstraint("session_id", "keyword"),
    )

    def __repr__(self) -> str:
        owner = self.user_id or self.session_id
        return f"<SearchHistory {owner}:{self.keyword} x{self.search_count}>"
