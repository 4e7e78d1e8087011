"""Fuzzy lookup of tasks by partial description."""

from typing import List, Optional, Tuple

from fuzzywuzzy import fuzz

from .todo import Task


def score(candidate: str, query: str) -> Optional[int]:
    """Score how well ``query`` matches ``candidate`` (0-100, higher is better).

    Returns None when nothing matches at all.
    """
    value = fuzz.partial_ratio(query.lower(), candidate.lower())
    return value or None


def find_best_match(
    tasks: List[Task],
    query: str,
    include_completed: bool = False,
    threshold: int = 0,
) -> Optional[Tuple[int, int]]:
    """Find the task whose description best matches ``query``.

    Ties go to the earliest task in the list.

    Returns:
        ``(index, score)`` of the best match at or above ``threshold``, or None
    """
    best: Optional[Tuple[int, int]] = None
    for index, task in enumerate(tasks):
        if task.completed and not include_completed:
            continue
        value = score(task.description, query)
        if value is None:
            continue
        if best is None or value > best[1]:
            best = (index, value)

    if best is None or best[1] < threshold:
        return None
    return best
