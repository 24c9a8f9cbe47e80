"""Relevance scoring shared by the in-process index and the SQL fallback.

Scores are additive integers. Full-query checks and per-term checks are all
summed; a document scoring 0 does not match. The relational fallback
(``storesearch.services.relational_search``) expresses the same weights as SQL
``CASE`` terms, minus the fuzzy bonuses which only the in-process path computes.
"""

import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from storesearch.search.fuzzy import fuzzy_match


@dataclass(frozen=True)
class ScoringWeights:
    """Field weights, name > description > platform > genre."""

    # Full query
    name_exact: int = 100
    name_prefix: int = 90
    name_contains: int = 80
    platform_exact: int = 75
    description_contains: int = 60
    genre_contains: int = 50

    # Per term
    term_name: int = 15
    term_description: int = 10
    term_platform: int = 8
    term_genre: int = 5

    # Per term, only when the exact substring is absent
    fuzzy_name: int = 2
    fuzzy_description: int = 1


DEFAULT_WEIGHTS = ScoringWeights()


def _text(document: Mapping[str, Any], field: str) -> str:
    value = document.get(field)
    return value.lower() if isinstance(value, str) else ""


def _genres(document: Mapping[str, Any]) -> list[str]:
    value = document.get("genres")
    if isinstance(value, str):
        return [value.lower()]
    if isinstance(value, Iterable):
        return [g.lower() for g in value if isinstance(g, str)]
    return []


def score_document(
    document: Mapping[str, Any],
    full_query: str,
    terms: Sequence[str],
    *,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
    fuzzy: bool = True,
) -> int:
    """Score ``document`` against a normalized query.

    Args:
        document: Index payload with ``name``, ``description``, ``platform``
            and ``genres`` keys (missing keys count as empty)
        full_query: The lowercased query string
        terms: The query's lowercased terms
        weights: Coefficients to apply
        fuzzy: Whether to add typo-tolerance bonuses

    Returns:
        Non-negative relevance score, 0 meaning no match
    """
    if not full_query:
        return 0

    name = _text(document, "name")
    description = _text(document, "description")
    platform = _text(document, "platform")
    genres = _genres(document)

    score = 0

    if name == full_query:
        score += weights.name_exact
    if name.startswith(full_query):
        score += weights.name_prefix
    if full_query in name:
        score += weights.name_contains
    if platform == full_query:
        score += weights.platform_exact
    if full_query in description:
        score += weights.description_contains
    if any(full_query in genre for genre in genres):
        score += weights.genre_contains

    for term in terms:
        in_name = term in name
        in_description = term in description

        if in_name:
            score += weights.term_name
        if in_description:
            score += weights.term_description
        if term in platform:
            score += weights.term_platform
        if any(term in genre for genre in genres):
            score += weights.term_genre

        if fuzzy:
            if not in_name and fuzzy_match(term, name):
                score += weights.fuzzy_name
            if not in_description and fuzzy_match(term, description):
                score += weights.fuzzy_description

    return score


def id_sort_key(document_id: str) -> tuple[int, int | str]:
    """Tie-break key: numeric ids compare numerically, larger ids are newer."""
    if document_id.isdigit():
        return (1, int(document_id))
    return (0, document_id)


def highlight(text: str | None, query: str) -> str:
    """Wrap case-insensitive occurrences of ``query`` in ``<mark>`` tags."""
    if not text or not query:
        return text or ""
    pattern = re.compile(f"({re.escape(query)})", re.IGNORECASE)
    return pattern.sub(r"<mark>\1</mark>", text)
