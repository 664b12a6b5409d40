"""
Edition classification for candidate titles.

Decides whether a title looks like volume 1, whether it is a derived
edition (bundle, fan-book, spin-off, novelisation, re-edition, single
chapter sale, art collection), and whether it is the mainline volume 1
of a given series.
"""
from __future__ import annotations

import re
from typing import Dict, List

from bookscout.processors.title_normalizer import (
    extract_volume_marker,
    series_name_occurs_in,
    to_half_width,
)


def _ascii_word(word: str) -> str:
    return rf'(?<![a-z]){word}(?![a-z])'


# Patterns are matched against the half-width, lower-cased title
DERIVED_FAMILIES: Dict[str, List[str]] = {
    'set': [
        r'セット', r'全巻', r'ボックス', r'まとめ',
        _ascii_word('box'),
        # volume ranges: "1-10", "1~3巻"
        r'(?<![0-9])\d{1,3}\s*[-~〜]\s*\d{1,3}(?![0-9])',
    ],
    'guide': [
        r'ファンブック', _ascii_word('fan ?book'), r'ガイド', _ascii_word('guide'),
        r'設定資料', r'公式', r'キャラクター', r'ムック', r'データブック',
    ],
    'art': [
        r'画集', r'イラスト集', r'イラストブック', r'原画集', r'複製原画',
        r'ポスター', r'アートブック', _ascii_word('art ?book'), _ascii_word('artworks?'),
    ],
    'spinoff': [
        r'外伝', r'スピンオフ', _ascii_word('spin-?off'), r'番外編',
        r'エピソード', _ascii_word('episode'), r'アンソロジー', _ascii_word('anthology'),
        r'総集編',
    ],
    'novelization': [
        r'ノベライズ', r'小説版', _ascii_word('novelization'),
    ],
    'reedition': [
        r'カラー版', r'フルカラー', r'傑作選', r'選集', r'セレクション',
        r'バイリンガル', _ascii_word('bilingual'), r'英語版', r'英訳', r'対訳',
        r'愛蔵版', r'豪華版', r'完全版', r'デラックス', _ascii_word('deluxe'),
    ],
    'single_chapter': [
        r'単話', r'分冊版', r'連載版', r'話売り', r'(?<![0-9])\d+\s*話',
    ],
}

_FAMILY_RES: Dict[str, re.Pattern] = {
    name: re.compile('|'.join(f'(?:{p})' for p in patterns))
    for name, patterns in DERIVED_FAMILIES.items()
}

# Order used when naming the type of a title
SERIES_TYPE_ORDER = ['set', 'art', 'guide', 'spinoff', 'novelization', 'reedition', 'single_chapter']

_DASHES = '-‐‑–—―−'


def _prepared(title: str) -> str:
    return to_half_width(title or '').lower()


def looks_like_volume_one(title: str) -> bool:
    """True if any volume-1 marker (including a bare "1") is present."""
    return extract_volume_marker(title) is not None


def derived_families(title: str) -> List[str]:
    """Names of every derived-edition family the title matches."""
    text = _prepared(title)
    return [name for name in SERIES_TYPE_ORDER if _FAMILY_RES[name].search(text)]


def is_derived_edition(title: str) -> bool:
    text = _prepared(title)
    return any(pattern.search(text) for pattern in _FAMILY_RES.values())


def classify_series_type(title: str) -> str:
    """'set', 'art', 'guide', 'spinoff', ... or 'main' for ordinary titles."""
    families = derived_families(title)
    return families[0] if families else 'main'


def _has_episode_suffix(title: str, series_key: str) -> bool:
    key = to_half_width(series_key or '').strip()
    if not key:
        return False
    pattern = re.compile(
        re.escape(key) + rf'\s*[{_DASHES}]?\s*(?:episode|外伝)',
        re.IGNORECASE,
    )
    return pattern.search(to_half_width(title or '')) is not None


def is_mainline_volume_one(title: str, series_key: str) -> bool:
    """
    The title names the series, carries a volume-1 marker, is not a derived
    edition and does not continue the series name with an episode or
    side-story marker.
    """
    if not title:
        return False
    return (
        series_name_occurs_in(title, series_key)
        and looks_like_volume_one(title)
        and not is_derived_edition(title)
        and not _has_episode_suffix(title, series_key)
    )
