"""Fast-fail checks run before diskutil is spawned.

diskutil performs the real validation; these checks only reject input that
is obviously malformed so no process is launched for it.
"""

import re

from .exceptions import InvalidSizeError


SIZE_SUFFIXES = ("b", "kb", "mb", "gb", "tb", "k", "m", "g", "t")

_DIGITS = re.compile(r"[0-9]+")


def is_valid_size(size: str) -> bool:
    """Return True if ``size`` looks like a diskutil size argument.

    Accepts a unit suffix (case-insensitive) or a plain byte count. No range
    or overflow checking is done.
    """
    if not isinstance(size, str) or not size:
        return False
    if size.lower().endswith(SIZE_SUFFIXES):
        return True
    return _DIGITS.fullmatch(size) is not None


def validate_size(size: str) -> None:
    """Raise InvalidSizeError if ``size`` fails is_valid_size()."""
    if not is_valid_size(size):
        raise InvalidSizeError(size)
