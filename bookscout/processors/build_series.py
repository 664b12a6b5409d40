#!/usr/bin/env python3
"""
Resolve volume 1 for pending seeds and merge the outcomes into the state files.

Series already present in confirmed.json, review.json or todo.json are
skipped; at most --limit new series are attempted per run.

Usage:
    python -m bookscout.processors.build_series
    python -m bookscout.processors.build_series --limit 5 --backend rakuten
    python -m bookscout.processors.build_series --dry-run
"""
from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Optional, List, Tuple

from bookscout.collectors.base_client import VolumeLookup
from bookscout.collectors.paapi_client import PaapiClient
from bookscout.collectors.rakuten_client import RakutenBooksClient
from bookscout.config import Settings
from bookscout.models import Seed, SeriesOutcome
from bookscout.processors.seeds import SEEDS_FILE, load_seeds
from bookscout.processors.series_state import (
    AccumulatedState,
    MergeReport,
    StateStore,
    merge_outcomes,
    select_pending,
)
from bookscout.processors.vol1_resolver import Vol1Resolver

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

BACKENDS = ('paapi', 'rakuten')


def make_lookup(backend: str, settings: Settings) -> VolumeLookup:
    if backend == 'paapi':
        return PaapiClient(settings)
    if backend == 'rakuten':
        return RakutenBooksClient(settings)
    raise ValueError(f"Unknown backend: {backend}")


async def build(
    seeds: List[Seed],
    state: AccumulatedState,
    resolver: Vol1Resolver,
    max_per_run: int,
    store: Optional[StateStore] = None,
    flush_each: bool = False
) -> Tuple[AccumulatedState, MergeReport, List[SeriesOutcome]]:
    """
    Resolve pending seeds one at a time and merge the outcomes.

    With flush_each the state is written after every series; otherwise the
    caller persists the returned state.
    """
    pending = select_pending(seeds, state, max_per_run)
    logger.info(f"Pending: {len(pending)} (known: {len(state.known_keys())}, limit: {max_per_run})")

    outcomes: List[SeriesOutcome] = []
    report = MergeReport()
    for i, seed in enumerate(pending, 1):
        outcome = await resolver.resolve(seed)
        outcomes.append(outcome)
        suffix = f" ({outcome.reason})" if outcome.reason else ""
        logger.info(f"Resolved [{i}/{len(pending)}]: {seed.series_key} -> {outcome.kind.value}{suffix}")

        state, step_report = merge_outcomes(state, [outcome])
        for kind, keys in step_report.added.items():
            report.added[kind].extend(keys)
        report.skipped.extend(step_report.skipped)
        if flush_each and store is not None:
            store.save(state)
    return state, report, outcomes


async def run_build(
    settings: Settings,
    backend: str = 'paapi',
    flush_each: bool = False,
    dry_run: bool = False,
    lookup: Optional[VolumeLookup] = None
) -> MergeReport:
    store = StateStore(settings.data_dir)
    state = store.load()
    seeds = load_seeds(settings.path(SEEDS_FILE))
    logger.info(f"Loaded {len(seeds)} seeds; state {state.counts()}")

    if dry_run:
        for seed in select_pending(seeds, state, settings.max_per_run):
            print(f"  would resolve: {seed.series_key}")
        return MergeReport()

    lookup = lookup or make_lookup(backend, settings)
    resolver = Vol1Resolver(lookup, settings)
    try:
        state, report, _ = await build(
            seeds, state, resolver, settings.max_per_run,
            store=store if flush_each else None, flush_each=flush_each
        )
    finally:
        await lookup.close()

    store.save(state)
    store.save_debug(
        [trace.to_dict() for trace in resolver.traces.values()],
        stats=resolver.stats.to_dict(),
    )
    return report


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(description='Resolve volume 1 for pending seeds')
    parser.add_argument('--data-dir', type=Path, help='State directory (default: LANE2_DATA_DIR or data/lane2)')
    parser.add_argument('--limit', type=int, help='Maximum new series per run (default: LANE2_BUILD_LIMIT or 20)')
    parser.add_argument('--backend', choices=BACKENDS, default='paapi', help='Catalog backend (default: paapi)')
    parser.add_argument('--delay', type=float, help='Seconds to wait after each vendor call')
    parser.add_argument('--flush-each', action='store_true', help='Write state files after every series')
    parser.add_argument('--dry-run', action='store_true', help='List pending series without calling any API')
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    if args.data_dir:
        settings.data_dir = args.data_dir
    if args.limit is not None:
        settings.max_per_run = args.limit
    if args.delay is not None:
        settings.request_delay = args.delay

    report = asyncio.run(run_build(
        settings, backend=args.backend, flush_each=args.flush_each, dry_run=args.dry_run
    ))

    print(f"\n{'=' * 60}")
    print("Build Summary")
    print(f"{'=' * 60}")
    for kind, keys in report.added.items():
        print(f"  {kind}: +{len(keys)}")
    if report.skipped:
        print(f"  skipped (already known): {len(report.skipped)}")


if __name__ == '__main__':
    main()
