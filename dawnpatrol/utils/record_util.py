"""
Helpers for reading loosely typed raw records (parsed JSON dicts).
"""

from typing import Any, Iterable, Mapping, Optional

import numpy as np


def is_missing(value: Any) -> bool:
    """True for None, NaN and blank strings."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, float):
        return bool(np.isnan(value))
    return False


def first_present(record: Mapping, aliases: Iterable[str]) -> Optional[Any]:
    """
    Return the first non-missing value among alias keys.

    :param record: Raw record
    :param aliases: Candidate keys in priority order
    :return: The value, or None when no alias holds data
    """
    for key in aliases:
        value = record.get(key)
        if not is_missing(value):
            return value
    return None
