"""Longest run of consecutive qualifying items in an ordered series."""

from typing import Callable, Iterable, Optional, Sequence, Tuple, TypeVar

T = TypeVar("T")


def longest_streak(items: Iterable[T], predicate: Callable[[T], bool]) -> int:
    """
    Length of the longest contiguous run where ``predicate`` holds.

    Any failing item resets the running count; the maximum seen is kept.
    """
    best = current = 0
    for item in items:
        if predicate(item):
            current += 1
            best = max(best, current)
        else:
            current = 0
    return best


def longest_run(
    items: Sequence[T], predicate: Callable[[T], bool]
) -> Optional[Tuple[int, int]]:
    """
    Inclusive (start, end) indices of the first longest qualifying run.

    :return: Index bounds, or None when no item qualifies
    """
    best = None
    best_len = 0
    start = None
    for i, item in enumerate(items):
        if predicate(item):
            if start is None:
                start = i
            if i - start + 1 > best_len:
                best_len = i - start + 1
                best = (start, i)
        else:
            start = None
    return best
