"""
Edit-distance based string similarity.
Shared by duplicate detection and merchant comparison.
"""


def levenshtein_distance(first: str, second: str) -> int:
    """
    Classic Levenshtein distance with unit costs.

    Iterative dynamic programming keeping two rows of the
    ``(len(second) + 1) x (len(first) + 1)`` table.

    Args:
        first: First string
        second: Second string

    Returns:
        Minimum number of insertions, deletions and substitutions
    """
    if first == second:
        return 0
    if not first:
        return len(second)
    if not second:
        return len(first)

    previous = list(range(len(first) + 1))
    for i, second_char in enumerate(second, start=1):
        current = [i] + [0] * len(first)
        for j, first_char in enumerate(first, start=1):
            if first_char == second_char:
                current[j] = previous[j - 1]
            else:
                current[j] = min(
                    previous[j - 1] + 1,  # substitution
                    current[j - 1] + 1,  # insertion
                    previous[j] + 1,  # deletion
                )
        previous = current

    return previous[len(first)]


def similarity(first: str, second: str) -> float:
    """
    Normalized similarity in [0, 1].

    Comparison is case sensitive and does no whitespace or punctuation
    cleanup; callers lower-case beforehand.

    Args:
        first: First string
        second: Second string

    Returns:
        ``(len(longer) - distance) / len(longer)``, 1.0 for two empty strings
    """
    longer, shorter = (first, second) if len(first) > len(second) else (second, first)

    if len(longer) == 0:
        return 1.0

    distance = levenshtein_distance(longer, shorter)
    return (len(longer) - distance) / len(longer)
