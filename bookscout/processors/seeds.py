#!/usr/bin/env python3
"""
Seed list maintenance.

Seeds are the series keys the build step works through. They are grown
from AniList's popularity ranking and pruned of series that already have
an outcome.

Usage:
    # Add up to LANE2_SEED_ADD new series from AniList
    python -m bookscout.processors.seeds --generate

    # Drop seeds that are already confirmed / review / todo, and duplicates
    python -m bookscout.processors.seeds --prune
"""
from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Optional, List, Iterable, Tuple, Callable, Awaitable

from bookscout.collectors.anilist_client import AniListClient, seed_from_media
from bookscout.config import Settings
from bookscout.jsonio import document_items, items_document, load_json, save_json
from bookscout.models import Seed
from bookscout.processors.series_state import AccumulatedState, StateStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

SEEDS_FILE = 'seeds.json'
PAGE_DELAY = 0.25


def load_seeds(path: Path) -> List[Seed]:
    """Seeds from seeds.json; entries without a series key are dropped."""
    seeds = []
    for raw in document_items(load_json(path, fallback={'items': []})):
        if isinstance(raw, dict):
            seed = Seed.from_dict(raw)
            if seed:
                seeds.append(seed)
    return seeds


def save_seeds(path: Path, seeds: List[Seed], **extra) -> None:
    save_json(path, items_document([s.to_dict() for s in seeds], **extra))


def prune_seeds(seeds: Iterable[Seed], state: AccumulatedState) -> List[Seed]:
    """Seeds whose key is unknown to the state, first occurrence only."""
    kept = []
    seen = set()
    for seed in seeds:
        key = seed.series_key
        if not key or key in seen or state.is_known(key):
            continue
        seen.add(key)
        kept.append(seed)
    return kept


async def generate_seeds(
    client: AniListClient,
    existing: List[Seed],
    add_limit: int,
    max_pages: int,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
) -> Tuple[List[Seed], int]:
    """
    Append up to add_limit new series from AniList's popularity pages.

    Existing seeds are kept as they are (first occurrence of each key).
    Returns the new seed list and the number added.
    """
    seeds: List[Seed] = []
    seen = set()
    for seed in existing:
        if seed.series_key in seen:
            continue
        seen.add(seed.series_key)
        seeds.append(seed)

    added = 0
    add_limit = max(1, add_limit)
    for page in range(1, max_pages + 1):
        media_list = await client.popular_page(page)
        if not media_list:
            break
        for media in media_list:
            raw = seed_from_media(media) if isinstance(media, dict) else None
            if not raw or raw['seriesKey'] in seen:
                continue
            seen.add(raw['seriesKey'])
            seeds.append(Seed.from_dict(raw))
            added += 1
            if added >= add_limit:
                return seeds, added
        await sleep(PAGE_DELAY)
    return seeds, added


async def _generate(settings: Settings, seeds_path: Path) -> None:
    existing = load_seeds(seeds_path)
    client = AniListClient()
    try:
        seeds, added = await generate_seeds(
            client, existing, settings.seed_add_limit, settings.seed_max_pages
        )
    finally:
        await client.close()
    save_seeds(seeds_path, seeds, addedThisRun=added)
    logger.info(f"Added {added}/{settings.seed_add_limit} seeds (total {len(seeds)}) -> {seeds_path}")


def _prune(settings: Settings, seeds_path: Path) -> None:
    seeds = load_seeds(seeds_path)
    state = StateStore(settings.data_dir).load()
    kept = prune_seeds(seeds, state)
    removed = len(seeds) - len(kept)
    save_seeds(seeds_path, kept, removedThisRun=removed)
    logger.info(f"Seeds: {len(seeds)} -> {len(kept)} (removed {removed})")


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(description='Generate or prune the seed list')
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument('--generate', action='store_true', help='Add new series from AniList popularity')
    group.add_argument('--prune', action='store_true', help='Remove seeds that already have an outcome')
    parser.add_argument('--data-dir', type=Path, help='State directory (default: LANE2_DATA_DIR or data/lane2)')
    parser.add_argument('--add', type=int, help='Maximum number of seeds to add')
    parser.add_argument('--max-pages', type=int, help='Maximum AniList pages to scan')
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    if args.data_dir:
        settings.data_dir = args.data_dir
    if args.add is not None:
        settings.seed_add_limit = args.add
    if args.max_pages is not None:
        settings.seed_max_pages = args.max_pages
    seeds_path = settings.path(SEEDS_FILE)

    if args.generate:
        asyncio.run(_generate(settings, seeds_path))
    else:
        _prune(settings, seeds_path)


if __name__ == '__main__':
    main()
