"""Parsing helpers for loosely-typed upstream payload fields."""
import re
from datetime import date, datetime
from typing import Any, Optional, Tuple

import numpy as np

_YEAR_PREFIX = re.compile(r"^\s*(\d{4})")

# Years outside this window are treated as unparseable
MIN_PLAUSIBLE_YEAR = 1800
MAX_PLAUSIBLE_YEAR = 2200


def parse_coordinates(value: Any) -> Optional[Tuple[float, float]]:
    """
    Extract a finite (x, y) pair from a coordinates field.

    Args:
        value: Sequence of at least two numbers, e.g. [x, y] or (x, y, ...)

    Returns:
        (x, y) as floats, or None if the field is absent, too short,
        non-numeric or contains NaN/inf
    """
    if value is None or isinstance(value, (str, bytes, dict)):
        return None
    try:
        if len(value) < 2:
            return None
        pair = np.asarray([value[0], value[1]], dtype=float)
    except (TypeError, ValueError):
        return None
    if not np.all(np.isfinite(pair)):
        return None
    return float(pair[0]), float(pair[1])


def is_finite_number(value: Any) -> bool:
    """Return True if value is a real, finite number (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float, np.number)):
        return False
    return bool(np.isfinite(value))


def parse_year(value: Any) -> Optional[int]:
    """
    Extract a calendar year from a date-like field.

    Accepts integers (2019), ISO dates ("2019-05-01"), datetimes and strings
    starting with a four-digit year ("2019", "2019/05").

    Args:
        value: Raw first_date / first_year field

    Returns:
        Year as int, or None when no plausible year can be parsed
    """
    year: Optional[int] = None
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (datetime, date)):
        year = value.year
    elif isinstance(value, (int, np.integer)):
        year = int(value)
    elif isinstance(value, float):
        year = int(value) if np.isfinite(value) and value == int(value) else None
    elif isinstance(value, str):
        try:
            year = date.fromisoformat(value.strip()[:10]).year
        except ValueError:
            match = _YEAR_PREFIX.match(value)
            year = int(match.group(1)) if match else None

    if year is None or not (MIN_PLAUSIBLE_YEAR <= year <= MAX_PLAUSIBLE_YEAR):
        return None
    return year


def parse_accession(value: Any) -> Optional[str]:
    """
    Normalise an accession field to a non-empty string.

    Integers are converted to their text form ("12345"); other non-string
    values (floats, lists, dicts, bools) and blank strings yield None.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, np.integer)):
        return str(int(value))
    if isinstance(value, str):
        return value.strip() or None
    return None
