"""Title normalization and volume-1 marker detection for Japanese book titles."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, List, Iterable, Tuple

from bs4 import BeautifulSoup

# Full-width ASCII block (！ .. ～) maps onto ASCII by a fixed offset
FULLWIDTH_START = 0xFF01
FULLWIDTH_END = 0xFF5E
FULLWIDTH_OFFSET = 0xFEE0
IDEOGRAPHIC_SPACE = '　'

_WS_RE = re.compile(r'\s+')

# Unambiguous markers, in priority order for equal start offsets
STRONG_MARKERS: List[Tuple[str, re.Pattern]] = [
    ('paren', re.compile(r'\(\s*1\s*\)')),
    ('dai_kan', re.compile(r'第\s*1\s*巻')),
    ('kan', re.compile(r'(?<![0-9])1\s*巻')),
]

# Any "1" that is not part of a longer number. Known to accept false
# positives such as "1話" or "1st".
BARE_MARKER = ('bare', re.compile(r'(?<![0-9])1(?![0-9])'))

# A "1" standing alone between whitespace or string ends
STANDALONE_MARKER = ('standalone', re.compile(r'(?:(?<=\s)|^)1(?=\s|$)'))


@dataclass
class VolumeMarker:
    """A volume-1 marker found in a title (offsets into the title string)."""
    kind: str
    start: int
    end: int
    text: str


def norm(value) -> str:
    return str(value if value is not None else '').strip()


def normalize_whitespace(text: str) -> str:
    """Collapse whitespace runs to a single space and strip the ends."""
    return _WS_RE.sub(' ', norm(text)).strip()


def to_half_width(text: str) -> str:
    """
    Convert full-width ASCII characters and the ideographic space to their
    half-width forms. Every character maps to exactly one character, so
    offsets in the result line up with the input.
    """
    result = []
    for char in text or '':
        code = ord(char)
        if FULLWIDTH_START <= code <= FULLWIDTH_END:
            result.append(chr(code - FULLWIDTH_OFFSET))
        elif char == IDEOGRAPHIC_SPACE:
            result.append(' ')
        else:
            result.append(char)
    return ''.join(result)


def loose(text: str) -> str:
    """Half-width, lower-cased, all whitespace removed. Used for containment tests."""
    return _WS_RE.sub('', to_half_width(norm(text))).lower()


def uniq(values: Optional[Iterable]) -> List[str]:
    """Stripped, non-empty, de-duplicated strings in first-seen order."""
    out: List[str] = []
    seen = set()
    for value in values or []:
        s = norm(value)
        if not s or s in seen:
            continue
        seen.add(s)
        out.append(s)
    return out


def strip_html(text: Optional[str]) -> str:
    """Plain text of an HTML fragment with whitespace collapsed."""
    if not text:
        return ''
    plain = BeautifulSoup(text, 'html.parser').get_text(' ')
    return normalize_whitespace(plain)


def _earliest(text: str, markers) -> Optional[VolumeMarker]:
    best: Optional[VolumeMarker] = None
    for kind, pattern in markers:
        m = pattern.search(text)
        if m and (best is None or m.start() < best.start):
            best = VolumeMarker(kind, m.start(), m.end(), m.group(0))
    return best


def extract_volume_marker(title: str, permissive: bool = True) -> Optional[VolumeMarker]:
    """
    Find the earliest volume-1 marker in a title.

    Unambiguous markers ("(1)", "第1巻", "1巻", full or half width) win over
    a bare digit. With permissive=True a bare "1" that is not part of a
    longer number counts as a marker; otherwise only a "1" standing alone
    between whitespace does.
    """
    text = to_half_width(title or '')
    marker = _earliest(text, STRONG_MARKERS)
    if marker:
        return marker
    return _earliest(text, [BARE_MARKER if permissive else STANDALONE_MARKER])


def earliest_volume_marker(title: str) -> Optional[VolumeMarker]:
    """The first unambiguous or standalone "1" marker by position, whichever comes first."""
    return _earliest(to_half_width(title or ''), STRONG_MARKERS + [STANDALONE_MARKER])


def has_volume_one_marker(title: str) -> bool:
    return extract_volume_marker(title) is not None


def series_name_occurs_in(title: str, series_key: str) -> bool:
    """Case-insensitive containment after half-width conversion and whitespace removal."""
    key = loose(series_key)
    if not key:
        return False
    return key in loose(title)


def find_series_key_end(title: str, series_key: str) -> Optional[int]:
    """
    Offset just past the series key inside the title, or None.

    Tries a case-insensitive match of the half-width key first, then falls
    back to matching with all whitespace ignored.
    """
    text = to_half_width(title or '').lower()
    key = to_half_width(norm(series_key)).lower()
    if not key:
        return None
    idx = text.find(key)
    if idx >= 0:
        return idx + len(key)

    compact_key = _WS_RE.sub('', key)
    if not compact_key:
        return None
    positions = [i for i, ch in enumerate(text) if not ch.isspace()]
    compact = ''.join(text[i] for i in positions)
    idx = compact.find(compact_key)
    if idx < 0:
        return None
    return positions[idx + len(compact_key) - 1] + 1
