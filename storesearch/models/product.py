"""Product model (read side of the catalog, owned by the admin CRUD screens)."""

from decimal import Decimal

from sqlalchemy import JSON, Boolean, Index, Numeric, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from storesearch.models.base import Base

# JSONB on PostgreSQL, plain JSON text elsewhere (SQLite in tests)
GenreList = JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")


class Product(Base):
    """A sellable catalog entry.

    The search core only reads these rows; the search index is a derived
    projection of them (see ``storesearch.search.documents``).
    """

    __tablename__ = "products"

    name: Mapped[str] = mapped_column(String(500), nullable=False)
    slug: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    platform: Mapped[str] = mapped_column(String(100), nullable=False, default="")

    # Pricing
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)
    sale_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    final_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)

    genres: Mapped[list[str] | None] = mapped_column(GenreList, nullable=True, default=list)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Display-only media
    images_cover_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    images_cover_thumbnail: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    age_rating: Mapped[str | None] = mapped_column(String(50), nullable=True)
    release_date: Mapped[str | None] = mapped_column(String(50), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        Index("ix_products_active_created", "is_active", "created_at"),
    )
    # Load server-set timestamps on flush so index snapshots never lazy-load
    __mapper_args__ = {"eager_defaults": True}

    def __repr__(self) -> str:
        return f"<Product {self.name} ({self.id})>"
