"""Detect titles that put a subtitle or extra wording between the series name and the volume number."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from bookscout.processors.title_normalizer import (
    earliest_volume_marker,
    find_series_key_end,
    to_half_width,
)

TILDES = '~〜'
COLONS = ':'
QUOTES = '"\'「」『』【】[]()<>《》〈〉'
DASHES = '-‐‑–—―−'
SEPARATORS = '・･·、,。.' + TILDES + COLONS + QUOTES + DASHES

_SEPARATOR_RE = re.compile(r'[\s' + re.escape(SEPARATORS) + r']+')

# Residual text of this length reads as a subtitle even without punctuation
LONG_RESIDUAL = 8

HIGH_RISK_KEYWORDS = [
    'アンソロジー', 'anthology', '記念', '限定', '特装', 'キャラクターブック',
    'ガイドブック', '公式ガイド', 'ファンブック', '画集', 'イラスト集',
    '設定資料', 'ノベライズ', 'box',
]


@dataclass
class SuspicionResult:
    suspicious: bool
    reason: Optional[str] = None
    residual: str = ''


def _residual(text: str) -> str:
    return _SEPARATOR_RE.sub('', text)


def _subtitle_reason(pre: str, residual: str) -> str:
    if any(c in pre for c in TILDES):
        return 'subtitle_tilde'
    if any(c in pre for c in COLONS):
        return 'subtitle_colon'
    if any(c in pre for c in QUOTES):
        return 'subtitle_quote'
    if any(c in pre for c in DASHES):
        return 'subtitle_dash'
    if len(residual) >= LONG_RESIDUAL:
        return 'subtitle_long_text'
    return 'text_before_volume'


def detect(title: str, series_key: str) -> SuspicionResult:
    """
    Check whether anything but separators sits between the series name and
    the volume-1 marker, or whether high-risk wording follows the marker.

    The earliest marker after the series name decides the split. Only
    unambiguous markers and a standalone "1" count here; a digit glued to
    other text (for example "1話") is treated as residual text.
    """
    end = find_series_key_end(title, series_key)
    if end is None:
        return SuspicionResult(False)

    after = to_half_width(title)[end:]
    marker = earliest_volume_marker(after)
    if marker is None:
        return SuspicionResult(False)

    pre = after[:marker.start]
    residual = _residual(pre)
    if residual:
        return SuspicionResult(True, _subtitle_reason(pre, residual), residual)

    post = after[marker.end:].lower()
    for keyword in HIGH_RISK_KEYWORDS:
        if keyword in post:
            return SuspicionResult(True, 'suspicious_keyword', keyword)
    return SuspicionResult(False)


def is_suspicious(title: str, series_key: str) -> bool:
    return detect(title, series_key).suspicious
