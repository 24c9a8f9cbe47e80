"""Facet counting over a matched document set."""

from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from storesearch.schemas.search import FacetCount, FacetResult
from storesearch.search.filters import FilterClause, matches_all

FACET_FIELDS: tuple[str, ...] = ("platform", "genres", "type", "age_rating")


def _facet_values(document: Mapping[str, Any], field: str) -> Iterable[str]:
    value = document.get(field)
    if isinstance(value, list | tuple):
        return {str(v) for v in value if v}
    if value:
        return (str(value),)
    return ()


def compute_facets(
    documents: Sequence[Mapping[str, Any]],
    clauses: Sequence[FilterClause] = (),
    fields: Sequence[str] = FACET_FIELDS,
    max_values: int = 20,
) -> list[FacetResult]:
    """Count facet values over ``documents``.

    ``documents`` is the query-matched set *before* filtering. Each field's
    counts honor every clause except those on the field itself, so a UI can
    show how many results picking another value of the same facet would give.
    """
    facets: list[FacetResult] = []

    for field in fields:
        others = [clause for clause in clauses if clause.field != field]
        counter: Counter[str] = Counter()
        for document in documents:
            if matches_all(document, others):
                counter.update(_facet_values(document, field))

        ranked = sorted(counter.items(), key=lambda item: (-item[1], item[0]))[:max_values]
        facets.append(
            FacetResult(
                field_name=field,
                counts=[FacetCount(value=value, count=count) for value, count in ranked],
            )
        )

    return facets
