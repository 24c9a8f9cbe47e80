"""Lenient parsing of storefront query-string parameters.

Malformed values fall back to defaults instead of failing the request.
"""

import math


def parse_int(value: str | int | None, default: int) -> int:
    if value is None:
        return default
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def parse_price(value: str | float | None) -> float | None:
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number) or number < 0:
        return None
    return number


def parse_csv(value: str | None) -> list[str] | None:
    """Split a comma-separated list, dropping blanks. Empty → None."""
    if not value:
        return None
    items = [item.strip() for item in value.split(",") if item.strip()]
    return items or None


def clamp(value: int, lower: int, upper: int) -> int:
    return max(lower, min(value, upper))


def normalize_paging(page: int, per_page: int, max_per_page: int) -> tuple[int, int]:
    """Clamp to ``page >= 1`` and ``1 <= per_page <= max_per_page``."""
    return max(page, 1), clamp(per_page, 1, max_per_page)
