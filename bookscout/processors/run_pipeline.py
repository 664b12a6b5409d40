#!/usr/bin/env python3
"""
Run the whole pipeline: build -> enrich -> format.

Usage:
    python -m bookscout.processors.run_pipeline
    python -m bookscout.processors.run_pipeline --skip-build
"""
from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Optional, List

from bookscout.config import Settings
from bookscout.processors.build_series import BACKENDS, run_build
from bookscout.processors.enrich_series import run_enrich
from bookscout.processors.format_works import run_format

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


async def run_all(settings: Settings, backend: str = 'paapi', skip_build: bool = False) -> None:
    if not skip_build:
        report = await run_build(settings, backend=backend)
        logger.info(f"Build: +{report.total_added} series")
    await run_enrich(settings)
    run_format(settings)


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(description='Build, enrich and format the catalog')
    parser.add_argument('--data-dir', type=Path, help='State directory (default: LANE2_DATA_DIR or data/lane2)')
    parser.add_argument('--backend', choices=BACKENDS, default='paapi', help='Catalog backend for the build step')
    parser.add_argument('--skip-build', action='store_true', help='Only enrich and format')
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    if args.data_dir:
        settings.data_dir = args.data_dir
    asyncio.run(run_all(settings, backend=args.backend, skip_build=args.skip_build))


if __name__ == '__main__':
    main()
