"""Filter predicates and sort orders understood by every index client."""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)

# Fields that may appear in a filter clause
FILTERABLE_FIELDS = frozenset(
    {"platform", "genres", "type", "age_rating", "price", "final_price", "created_at"}
)
NUMERIC_FIELDS = frozenset({"price", "final_price", "created_at"})


class FilterOp(StrEnum):
    """Comparison operators."""

    EQ = "="
    GTE = ">="
    LTE = "<="
    IN = "in"


class SortOrder(StrEnum):
    """Result orderings a caller may request."""

    RELEVANCE = "relevance"
    NEWEST = "newest"
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"

    @classmethod
    def parse(cls, value: str | None) -> "SortOrder":
        """Parse a sort name, falling back to relevance for unknown values."""
        if not value:
            return cls.RELEVANCE
        try:
            return cls(value.strip().lower())
        except ValueError:
            logger.debug("Unknown sort %r, using relevance", value)
            return cls.RELEVANCE


def _as_float(value: Any) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _values(document: Mapping[str, Any], field: str) -> list[Any]:
    value = document.get(field)
    if value is None:
        return []
    if isinstance(value, list | tuple):
        return list(value)
    return [value]


def _quote(value: Any) -> str:
    # Backticks let Typesense accept values with commas, spaces and colons
    return f"`{str(value).replace('`', '')}`"


def _number(value: Any) -> str:
    number = float(value)
    return str(int(number)) if number.is_integer() else repr(number)


@dataclass(frozen=True)
class FilterClause:
    """A single ``field op value`` predicate. Clauses are joined with AND."""

    field: str
    op: FilterOp
    value: Any

    def __post_init__(self) -> None:
        if self.field not in FILTERABLE_FIELDS:
            raise ValueError(f"Field {self.field!r} is not filterable")
        if self.op is FilterOp.IN and not isinstance(self.value, tuple):
            object.__setattr__(self, "value", tuple(self.value))

    def matches(self, document: Mapping[str, Any]) -> bool:
        """Evaluate the clause against an index document.

        Multi-valued fields (``genres``) match when any of their values does.
        """
        values = _values(document, self.field)

        if self.op is FilterOp.EQ:
            return self.value in values
        if self.op is FilterOp.IN:
            return any(v in self.value for v in values)

        bound = _as_float(self.value)
        if bound is None:
            return False
        numbers = [n for n in (_as_float(v) for v in values) if n is not None]
        if self.op is FilterOp.GTE:
            return any(n >= bound for n in numbers)
        return any(n <= bound for n in numbers)

    def render(self) -> str:
        """Render in Typesense ``filter_by`` syntax."""
        if self.op is FilterOp.IN:
            return f"{self.field}:=[{','.join(_quote(v) for v in self.value)}]"
        if self.op is FilterOp.EQ:
            if self.field in NUMERIC_FIELDS:
                return f"{self.field}:={_number(self.value)}"
            return f"{self.field}:={_quote(self.value)}"
        return f"{self.field}:{self.op.value}{_number(self.value)}"


def render_filter_by(clauses: Sequence[FilterClause]) -> str | None:
    """Join clauses into a Typesense ``filter_by`` expression."""
    if not clauses:
        return None
    return " && ".join(clause.render() for clause in clauses)


def matches_all(document: Mapping[str, Any], clauses: Sequence[FilterClause]) -> bool:
    """True if ``document`` satisfies every clause."""
    return all(clause.matches(document) for clause in clauses)
