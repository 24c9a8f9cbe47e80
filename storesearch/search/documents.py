"""Mapping from catalog product rows to index documents."""

from collections.abc import Mapping
from datetime import UTC, date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from storesearch.schemas.search import SearchableDocument

_PRODUCT_FIELDS = (
    "id",
    "name",
    "slug",
    "platform",
    "price",
    "sale_price",
    "final_price",
    "genres",
    "images_cover_url",
    "images_cover_thumbnail",
    "description",
    "type",
    "age_rating",
    "release_date",
    "created_at",
)


def _price(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(round(Decimal(str(value)), 2))
    except (InvalidOperation, ValueError):
        return None


def _genres(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [str(genre) for genre in value if genre]


def _epoch_seconds(value: Any) -> int:
    # Rows without a timestamp map to 0 so that re-indexing stays deterministic
    if value is None:
        return 0
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return int(value.timestamp())
    if isinstance(value, int | float):
        return int(value)
    return 0


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def product_to_document(product: Any) -> SearchableDocument:
    """Project a product (ORM row or mapping) onto a ``SearchableDocument``.

    ``final_price`` falls back to the sale price, then the list price. The
    mapping is pure: the same row always yields an identical document.
    """
    row: Mapping[str, Any] = (
        product
        if isinstance(product, Mapping)
        else {field: getattr(product, field, None) for field in _PRODUCT_FIELDS}
    )

    price = _price(row.get("price")) or 0.0
    sale_price = _price(row.get("sale_price"))
    final_price = _price(row.get("final_price"))
    if final_price is None:
        final_price = sale_price if sale_price is not None else price

    return SearchableDocument(
        id=str(row["id"]),
        name=_text(row.get("name")),
        slug=_text(row.get("slug")),
        platform=_text(row.get("platform")),
        price=price,
        sale_price=sale_price,
        final_price=final_price,
        genres=_genres(row.get("genres")),
        images_cover_url=_text(row.get("images_cover_url")),
        images_cover_thumbnail=_text(row.get("images_cover_thumbnail")),
        description=_text(row.get("description")),
        type=_text(row.get("type")),
        age_rating=_text(row.get("age_rating")),
        release_date=_text(row.get("release_date")),
        created_at=_epoch_seconds(row.get("created_at")),
    )
