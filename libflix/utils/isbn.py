"""ISBN cleanup and 10/13 conversion.

Everything here returns ``None`` for malformed input instead of raising, so
callers can simply skip identifier-based cover generation.
"""

from __future__ import annotations

import re
from typing import Optional, Tuple

_NON_ALNUM_RE = re.compile(r'[^0-9A-Za-z]')


def _isbn13_check_digit(first12: str) -> str:
    total = sum(int(c) * (1 if i % 2 == 0 else 3) for i, c in enumerate(first12))
    return str((10 - total % 10) % 10)


def _isbn10_check_digit(first9: str) -> str:
    total = sum(int(c) * (10 - i) for i, c in enumerate(first9))
    check = (11 - total % 11) % 11
    return 'X' if check == 10 else str(check)


def clean_isbn(raw) -> str:
    if not isinstance(raw, str):
        return ''
    return _NON_ALNUM_RE.sub('', raw).upper()


def validate_isbn13(s: str) -> bool:
    if len(s) != 13 or not s.isdigit():
        return False
    return _isbn13_check_digit(s[:12]) == s[12]


def validate_isbn10(s: str) -> bool:
    if len(s) != 10 or not s[:9].isdigit():
        return False
    if not (s[9].isdigit() or s[9] == 'X'):
        return False
    return _isbn10_check_digit(s[:9]) == s[9]


def normalize_isbn(raw) -> Optional[str]:
    """Return a clean 10 or 13 character ISBN, or None when invalid.

    Hyphens, spaces and other punctuation are stripped and a trailing ``x`` is
    uppercased. The check digit must match.
    """
    s = clean_isbn(raw)
    if len(s) == 13 and validate_isbn13(s):
        return s
    if len(s) == 10 and validate_isbn10(s):
        return s
    return None


def to_isbn13(isbn10) -> Optional[str]:
    """Convert an ISBN-10 to its 978-prefixed ISBN-13 form."""
    s = clean_isbn(isbn10)
    if len(s) == 13:
        return s if validate_isbn13(s) else None
    if len(s) != 10 or not s[:9].isdigit():
        return None
    core = '978' + s[:9]
    return core + _isbn13_check_digit(core)


def to_isbn10(isbn13) -> Optional[str]:
    """Convert a 978-prefixed ISBN-13 to ISBN-10. 979 numbers have no ISBN-10."""
    s = clean_isbn(isbn13)
    if len(s) == 10:
        return s if validate_isbn10(s) else None
    if len(s) != 13 or not s.isdigit() or not s.startswith('978'):
        return None
    core = s[3:12]
    return core + _isbn10_check_digit(core)


def isbn_variants(raw) -> Tuple[Optional[str], Optional[str]]:
    """Return ``(isbn10, isbn13)`` derivable from a raw value."""
    isbn = normalize_isbn(raw)
    if not isbn:
        return None, None
    if len(isbn) == 13:
        return to_isbn10(isbn), isbn
    return isbn, to_isbn13(isbn)
