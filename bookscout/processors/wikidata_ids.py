#!/usr/bin/env python3
"""
Look up Wikidata identifiers for confirmed volume 1 ISBNs.

Results are cached in wikidata_by_isbn.json ({isbn13: {qid, anilist, mal,
kitsu}}); ISBNs already in the cache are not queried again.

Usage:
    python -m bookscout.processors.wikidata_ids
    python -m bookscout.processors.wikidata_ids --max-records 50
"""
from __future__ import annotations

import argparse
import logging
import time
from pathlib import Path
from typing import Optional, List, Dict, Any, Iterable, Callable

from bookscout.collectors.base_client import CollectorError
from bookscout.collectors.wikidata_client import WikidataClient
from bookscout.config import Settings
from bookscout.jsonio import load_json, save_json
from bookscout.processors.series_state import StateStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

WIKIDATA_FILE = 'wikidata_by_isbn.json'
BATCH_PAUSE_EVERY = 10
BATCH_PAUSE = 0.3


def fetch_missing_ids(
    isbns: Iterable[str],
    cache: Dict[str, Any],
    client: WikidataClient,
    max_records: Optional[int] = None,
    sleep: Callable[[float], None] = time.sleep
) -> Dict[str, int]:
    """Query every ISBN not yet cached; updates cache in place and returns counts."""
    stats = {'cached': 0, 'fetched': 0, 'found': 0, 'failed': 0}
    for isbn in isbns:
        if isbn in cache:
            stats['cached'] += 1
            continue
        if max_records is not None and stats['fetched'] + stats['failed'] >= max_records:
            break
        try:
            ids = client.ids_by_isbn(isbn)
        except CollectorError as e:
            logger.warning(f"Wikidata lookup failed for {isbn}: {e}")
            stats['failed'] += 1
            continue
        cache[isbn] = ids
        stats['fetched'] += 1
        if ids.get('qid'):
            stats['found'] += 1
        if stats['fetched'] % BATCH_PAUSE_EVERY == 0:
            sleep(BATCH_PAUSE)
    return stats


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(description='Fetch Wikidata IDs for confirmed volume 1 ISBNs')
    parser.add_argument('--data-dir', type=Path, help='State directory (default: LANE2_DATA_DIR or data/lane2)')
    parser.add_argument('--max-records', type=int, help='Maximum number of ISBNs to query')
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    if args.data_dir:
        settings.data_dir = args.data_dir

    state = StateStore(settings.data_dir).load()
    isbns = []
    for outcome in state.confirmed.values():
        if outcome.vol1 and outcome.vol1.isbn13 and outcome.vol1.isbn13 not in isbns:
            isbns.append(outcome.vol1.isbn13)

    path = settings.path(WIKIDATA_FILE)
    cache = load_json(path, fallback={}) or {}
    stats = fetch_missing_ids(isbns, cache, WikidataClient(), args.max_records)
    save_json(path, cache)
    logger.info(
        f"Wikidata IDs: isbns={len(isbns)} cache_hit={stats['cached']} "
        f"fetched={stats['fetched']} found={stats['found']} failed={stats['failed']}"
    )


if __name__ == '__main__':
    main()
