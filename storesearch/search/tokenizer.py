"""Query normalization and tokenization."""

from dataclasses import dataclass

WILDCARD = "*"


@dataclass(frozen=True)
class NormalizedQuery:
    """A lowercased query and its whitespace-delimited terms.

    An empty term list means "match everything" (same as the ``*`` wildcard).
    """

    raw: str
    text: str
    terms: tuple[str, ...]

    @property
    def match_all(self) -> bool:
        return not self.terms


def normalize_query(raw: str | None) -> NormalizedQuery:
    """Lowercase ``raw`` and split it into non-empty terms.

    Runs of whitespace collapse to a single space so that ``text`` is the
    exact string the scorer compares against names.
    """
    original = raw or ""
    terms = tuple(original.lower().split())
    if terms == (WILDCARD,):
        terms = ()
    return NormalizedQuery(raw=original.strip(), text=" ".join(terms), terms=terms)


def tokenize(raw: str | None) -> list[str]:
    """Return the normalized search terms of ``raw``."""
    return list(normalize_query(raw).terms)
