#!/usr/bin/env python3
"""
Flatten enriched series into works.json for the front end.

Only series that are currently confirmed are emitted, one flat record
each, sorted by the Japanese reading of the series key.

Usage:
    python -m bookscout.processors.format_works
    python -m bookscout.processors.format_works --no-validate
"""
from __future__ import annotations

import argparse
import functools
import logging
import re
from datetime import date
from pathlib import Path
from typing import Optional, List, Dict, Any, Iterable

import pykakasi

from bookscout.config import Settings
from bookscout.isbn import clean_asin, clean_isbn13, dp_url
from bookscout.jsonio import document_items, items_document, load_json, save_json
from bookscout.processors.enrich_series import ENRICHED_FILE
from bookscout.processors.series_state import StateStore
from bookscout.processors.title_normalizer import norm, uniq
from bookscout.processors.validate import document_errors
from bookscout.processors.wikidata_ids import WIKIDATA_FILE

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

WORKS_FILE = 'works.json'
MAX_TAGS = 12

_DATE_PATTERNS = [
    re.compile(r'^(\d{4})-(\d{1,2})-(\d{1,2})'),        # 2020-01-04, 2020-01-04T00:00:00Z
    re.compile(r'^(\d{4})(\d{2})(\d{2})$'),              # 20200104
    re.compile(r'^(\d{4})年\s*(\d{1,2})月\s*(\d{1,2})日'),  # 2020年01月04日
    re.compile(r'^(\d{4})/(\d{1,2})/(\d{1,2})'),         # 2020/1/4
]


def normalize_release_date(raw: Optional[str]) -> Optional[str]:
    """YYYY-MM-DD from the date formats the vendors use; None for partial or unparseable dates."""
    text = norm(raw)
    for pattern in _DATE_PATTERNS:
        m = pattern.match(text)
        if not m:
            continue
        try:
            return date(int(m.group(1)), int(m.group(2)), int(m.group(3))).isoformat()
        except ValueError:
            return None
    return None


@functools.lru_cache(maxsize=1)
def _get_kakasi():
    return pykakasi.kakasi()


def reading_key(text: str) -> str:
    """Hiragana reading of a title (kanji and katakana converted)."""
    converted = _get_kakasi().convert(text or '')
    return ''.join(item['hira'] for item in converted)


def sort_by_reading(keys: Iterable[str]) -> List[str]:
    return sorted(keys, key=lambda k: (reading_key(k), k))


def _str_or_none(value: Any) -> Optional[str]:
    return norm(value) or None


def format_record(entry: Dict[str, Any], wikidata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """One flat works record from an enriched entry."""
    v = entry.get('vol1') or {}
    series_key = norm(entry.get('seriesKey'))
    isbn13 = clean_isbn13(v.get('isbn13'))
    asin = clean_asin(v.get('asin'))
    ids = {}
    if isbn13 and wikidata:
        ids = wikidata.get(isbn13) or {}

    return {
        'seriesKey': series_key,
        'author': _str_or_none(entry.get('author')),
        'title': _str_or_none(v.get('title')) or series_key,
        'asin': asin,
        'isbn13': isbn13,
        'amazonDp': _str_or_none(v.get('amazonDp')) or dp_url(asin, None, isbn13),
        'image': _str_or_none(v.get('image')),
        'publisher': _str_or_none(v.get('publisher')),
        'contributors': uniq(v.get('contributors')),
        'releaseDate': normalize_release_date(v.get('releaseDate')),
        'description': _str_or_none(v.get('description')),
        'magazine': _str_or_none(v.get('magazine')),
        'genres': uniq(v.get('genres')),
        'tags': uniq(v.get('tags'))[:MAX_TAGS],
        'meta': {
            'titleLane2': _str_or_none(v.get('titleLane2')),
            'source': _str_or_none(v.get('source')),
            'wikidataQid': _str_or_none(ids.get('qid')),
        },
    }


def format_works(
    entries: Iterable[Dict[str, Any]],
    confirmed_keys: Iterable[str],
    wikidata: Optional[Dict[str, Any]] = None
) -> List[Dict[str, Any]]:
    """Records for confirmed series only, in reading order of the series key."""
    by_key = {}
    confirmed = set(confirmed_keys)
    for entry in entries:
        key = norm(entry.get('seriesKey'))
        if key and key in confirmed and key not in by_key:
            by_key[key] = format_record(entry, wikidata)
    return [by_key[key] for key in sort_by_reading(by_key)]


def run_format(settings: Settings, validate: bool = True) -> Dict[str, Any]:
    data_dir = settings.data_dir
    state = StateStore(data_dir).load()
    entries = [e for e in document_items(load_json(data_dir / ENRICHED_FILE, fallback={'items': []}))
               if isinstance(e, dict)]
    wikidata = load_json(data_dir / WIKIDATA_FILE, fallback={}) or {}

    items = format_works(entries, state.confirmed.keys(), wikidata)
    doc = items_document(items)
    if validate:
        errors = document_errors(doc)
        if errors:
            for location, msg in errors[:20]:
                logger.error(f"{location}: {msg}")
            raise SystemExit(f"works.json failed validation with {len(errors)} error(s)")

    save_json(data_dir / WORKS_FILE, doc)
    logger.info(f"Formatted {len(items)} works -> {data_dir / WORKS_FILE}")
    return doc


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(description='Write works.json from enriched series')
    parser.add_argument('--data-dir', type=Path, help='State directory (default: LANE2_DATA_DIR or data/lane2)')
    parser.add_argument('--no-validate', action='store_true', help='Skip JSON Schema validation')
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    if args.data_dir:
        settings.data_dir = args.data_dir
    run_format(settings, validate=not args.no_validate)


if __name__ == '__main__':
    main()
