"""Fuzzy string comparison used by entity matching.

Similarity is normalized Levenshtein distance:
https://en.wikipedia.org/wiki/Levenshtein_distance
"""

import re

_NON_DIGITS = re.compile(r"\D")


def levenshtein_distance(a: str, b: str) -> int:
    """Compute edit distance with unit cost insertion, deletion and substitution.

    Args:
        a: First string
        b: Second string

    Returns:
        Minimum number of single-character edits turning ``a`` into ``b``
    """
    # Full (len(a)+1) x (len(b)+1) table
    matrix = [[0] * (len(b) + 1) for _ in range(len(a) + 1)]
    for i in range(len(a) + 1):
        matrix[i][0] = i
    for j in range(len(b) + 1):
        matrix[0][j] = j

    for i in range(1, len(a) + 1):
        for j in range(1, len(b) + 1):
            cost = 0 if a[i - 1] == b[j - 1] else 1
            matrix[i][j] = min(
                matrix[i - 1][j] + 1,  # deletion
                matrix[i][j - 1] + 1,  # insertion
                matrix[i - 1][j - 1] + cost,  # substitution
            )

    return matrix[len(a)][len(b)]


def similarity(a: str, b: str) -> float:
    """Similarity between two strings in [0, 1].

    Both strings are lowercased and trimmed first. Empty input scores 0,
    identical input scores 1.

    Args:
        a: First string
        b: Second string

    Returns:
        ``1 - distance / max(len(a), len(b))``
    """
    a = a.lower().strip()
    b = b.lower().strip()

    if not a or not b:
        return 0.0
    if a == b:
        return 1.0

    distance = levenshtein_distance(a, b)
    return 1 - distance / max(len(a), len(b))


def normalize_phone(phone: str) -> str:
    """Strip every non-digit character so phone numbers compare exactly."""
    return _NON_DIGITS.sub("", phone)
