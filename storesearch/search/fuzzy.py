"""Typo-tolerant substring matching based on Levenshtein distance."""


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance between ``a`` and ``b`` (insert, delete, substitute)."""
    rows = len(b) + 1
    cols = len(a) + 1
    matrix = [[0] * cols for _ in range(rows)]

    for i in range(rows):
        matrix[i][0] = i
    for j in range(cols):
        matrix[0][j] = j

    for i in range(1, rows):
        for j in range(1, cols):
            if b[i - 1] == a[j - 1]:
                matrix[i][j] = matrix[i - 1][j - 1]
            else:
                matrix[i][j] = 1 + min(
                    matrix[i - 1][j - 1],  # substitution
                    matrix[i][j - 1],  # insertion
                    matrix[i - 1][j],  # deletion
                )

    return matrix[rows - 1][cols - 1]


def max_edit_distance(term: str) -> int:
    """Allowed typos for ``term``: one edit per three characters."""
    return len(term) // 3


def fuzzy_match(term: str, text: str) -> bool:
    """True if some window of ``text`` is within the edit budget of ``term``.

    Windows are ``len(term) + max_distance`` characters wide (shorter at the
    end of ``text``), so a term that appears verbatim always matches. Terms
    shorter than three characters get no tolerance at all.
    """
    if not term or not text:
        return False

    max_distance = max_edit_distance(term)
    window = len(term) + max_distance

    for start in range(len(text) - len(term) + max_distance + 1):
        if levenshtein_distance(term, text[start : start + window]) <= max_distance:
            return True

    return False
