"""
Tests for seed list maintenance.

Tests cover:
- load_seeds / save_seeds persistence including hints
- prune_seeds against accumulated state
- generate_seeds from AniList popularity pages
"""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from bookscout.models import Seed, SeedHint, SeriesOutcome
from bookscout.processors.seeds import generate_seeds, load_seeds, prune_seeds, save_seeds
from bookscout.processors.series_state import AccumulatedState

from .conftest import RecordingSleep


# =============================================================================
# Fixtures
# =============================================================================


def media(native, country="JP", fmt="MANGA", author=None):
    entry = {"id": 1, "title": {"native": native, "romaji": "x"}, "countryOfOrigin": country, "format": fmt}
    if author:
        entry["staff"] = {"nodes": [{"name": {"native": author, "full": "Someone"}}]}
    return entry


@pytest.fixture
def anilist():
    client = MagicMock()
    client.popular_page = AsyncMock(side_effect=[
        [
            media("ワンピース", author="尾田栄一郎"),
            media("Solo Leveling", country="KR"),
            media("読切作品", fmt="ONE_SHOT"),
            media("Berserk"),
            media("キングダム"),
        ],
        [media("ブリーチ"), media("ナルト")],
        [],
    ])
    return client


# =============================================================================
# Persistence
# =============================================================================


class TestSeedFile:
    """Test seeds.json reading and writing."""

    def test_round_trip(self, tmp_path):
        """Test that hints and authors survive a save and load."""
        path = tmp_path / "seeds.json"
        seeds = [
            Seed("サンプル作品", author="作者", hint=SeedHint(asin="B000000001")),
            Seed("キングダム"),
        ]
        save_seeds(path, seeds)

        loaded = load_seeds(path)

        assert loaded == seeds

    def test_missing_file(self, tmp_path):
        """Test that a missing seed file is an empty list."""
        assert load_seeds(tmp_path / "seeds.json") == []

    def test_entries_without_key_dropped(self, tmp_path):
        """Test that malformed entries are skipped."""
        path = tmp_path / "seeds.json"
        path.write_text('{"items": [{"author": "x"}, {"seriesKey": "  "}, {"seriesKey": "キングダム"}]}',
                        encoding="utf-8")
        assert [s.series_key for s in load_seeds(path)] == ["キングダム"]


class TestPruneSeeds:
    """Test prune_seeds."""

    def test_removes_known_and_duplicates(self):
        """Test that known keys and repeated keys are removed."""
        state = AccumulatedState(todo={"ナルト": SeriesOutcome.todo(Seed("ナルト"), "no_candidate", [])})
        seeds = [Seed("キングダム"), Seed("ナルト"), Seed("キングダム", author="late"), Seed("ブリーチ")]

        kept = prune_seeds(seeds, state)

        assert [s.series_key for s in kept] == ["キングダム", "ブリーチ"]
        assert kept[0].author is None


# =============================================================================
# generate_seeds
# =============================================================================


class TestGenerateSeeds:
    """Test generate_seeds with a fake AniList client."""

    @pytest.mark.asyncio
    async def test_filters_and_appends(self, anilist):
        """Test that only Japanese, non-one-shot series are appended."""
        existing = [Seed("キングダム", author="原泰久")]
        sleep = RecordingSleep()

        seeds, added = await generate_seeds(anilist, existing, add_limit=10, max_pages=5, sleep=sleep)

        assert [s.series_key for s in seeds] == ["キングダム", "ワンピース", "ブリーチ", "ナルト"]
        assert added == 3
        assert seeds[0].author == "原泰久"
        assert seeds[1].author == "尾田栄一郎"
        assert anilist.popular_page.await_count == 3
        assert sleep.calls == [0.25, 0.25]

    @pytest.mark.asyncio
    async def test_add_limit(self, anilist):
        """Test that generation stops once the limit is reached."""
        seeds, added = await generate_seeds(anilist, [], add_limit=2, max_pages=5, sleep=RecordingSleep())

        assert added == 2
        assert [s.series_key for s in seeds] == ["ワンピース", "キングダム"]
        assert anilist.popular_page.await_count == 1

    @pytest.mark.asyncio
    async def test_max_pages(self, anilist):
        """Test that no more than max_pages pages are fetched."""
        seeds, added = await generate_seeds(anilist, [], add_limit=10, max_pages=1, sleep=RecordingSleep())

        assert added == 2
        anilist.popular_page.assert_awaited_once_with(1)
