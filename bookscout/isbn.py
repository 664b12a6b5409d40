"""ISBN / ASIN helpers and Amazon product URLs."""
from __future__ import annotations

import re
from typing import Optional

AMAZON_DP_BASE = "https://www.amazon.co.jp/dp/"

_ISBN_RE = re.compile(r'^(?:97[89]\d{10}|\d{9}[\dX])$')
_ASIN_RE = re.compile(r'^[A-Z0-9]{10}$')


def clean_isbn(isbn: Optional[str]) -> Optional[str]:
    """Clean and validate ISBN (10 or 13 digits, hyphens and spaces removed)."""
    if not isbn:
        return None
    isbn = re.sub(r'[-\s]', '', str(isbn)).upper()
    if _ISBN_RE.match(isbn):
        return isbn
    return None


def clean_isbn13(isbn: Optional[str]) -> Optional[str]:
    """Return the cleaned value only if it is a 13-digit ISBN."""
    cleaned = clean_isbn(isbn)
    if cleaned and len(cleaned) == 13:
        return cleaned
    return None


def clean_asin(asin: Optional[str]) -> Optional[str]:
    if not asin:
        return None
    asin = str(asin).strip().upper()
    return asin if _ASIN_RE.match(asin) else None


def isbn13_to_isbn10(isbn13: Optional[str]) -> Optional[str]:
    """
    Convert a 978-prefixed ISBN-13 to ISBN-10.

    979-prefixed numbers have no ISBN-10 form; None is returned for them
    and for anything that is not a 13-digit ISBN.
    """
    isbn13 = clean_isbn13(isbn13)
    if not isbn13 or not isbn13.startswith('978'):
        return None
    core = isbn13[3:12]
    total = sum(int(d) * (10 - i) for i, d in enumerate(core))
    check = (11 - total % 11) % 11
    return core + ('X' if check == 10 else str(check))


def isbn10_to_isbn13(isbn10: Optional[str]) -> Optional[str]:
    isbn10 = clean_isbn(isbn10)
    if not isbn10 or len(isbn10) != 10:
        return None
    core = '978' + isbn10[:9]
    total = sum(int(d) * (1 if i % 2 == 0 else 3) for i, d in enumerate(core))
    return core + str((10 - total % 10) % 10)


def dp_url(
    asin: Optional[str] = None,
    isbn10: Optional[str] = None,
    isbn13: Optional[str] = None
) -> Optional[str]:
    """
    Amazon product URL for a volume.

    Preference: ASIN, then ISBN-10, then ISBN-13 (converted to ISBN-10 when
    it has a 978 prefix, otherwise used as-is).
    """
    asin = clean_asin(asin)
    if asin:
        return AMAZON_DP_BASE + asin
    isbn10 = clean_isbn(isbn10)
    if isbn10 and len(isbn10) == 10:
        return AMAZON_DP_BASE + isbn10
    isbn13 = clean_isbn13(isbn13)
    if isbn13:
        return AMAZON_DP_BASE + (isbn13_to_isbn10(isbn13) or isbn13)
    return None
