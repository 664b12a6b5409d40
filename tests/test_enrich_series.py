"""
Tests for series enrichment.

Tests cover:
- Fill-only-empty behaviour for magazine, genres, tags and bibliographic fields
- Manual magazine overrides
- The description fallback chain
- TagDictionary translation, hiding and to-do collection
- enrich_all selection and carry-over
"""
from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from bookscout.models import Seed, SeriesOutcome, VolumeRecord
from bookscout.processors.enrich_series import (
    SeriesEnricher,
    TagDictionary,
    enrich_all,
    fill,
    is_empty,
    load_magazine_overrides,
)

from .conftest import RecordingSleep


# =============================================================================
# Fixtures
# =============================================================================


def outcome_for(key: str, author: str = None) -> SeriesOutcome:
    vol1 = VolumeRecord(
        f"{key} 1", isbn13="9784088771342", asin="4088771346",
        amazon_dp="https://www.amazon.co.jp/dp/4088771346", source="fake(search)",
    )
    return SeriesOutcome.confirmed(Seed(key, author=author), vol1, ["search"])


@pytest.fixture
def clients():
    anilist = MagicMock()
    anilist.media_by_series_key = AsyncMock(return_value={
        "id": 42,
        "genres": ["Action"],
        "tags": [
            {"name": "Historical", "rank": 80},
            {"name": "War", "rank": 90},
            {"name": "Twist", "rank": 99, "isGeneralSpoiler": True},
        ],
    })
    anilist.description = AsyncMock(return_value="<p>AniList の紹介</p>")

    wikipedia = MagicMock()
    wikipedia.magazine_by_series_key = AsyncMock(return_value={
        "pageid": 1, "title": "キングダム (漫画)", "magazine": "週刊ヤングジャンプ",
    })
    wikipedia.summary = AsyncMock(return_value=None)

    openbd = MagicMock()
    openbd.lookup = AsyncMock(return_value={
        "publisher": "集英社",
        "releaseDate": "2006-05-19",
        "contributors": ["原泰久"],
        "image": "https://cover.openbd.jp/9784088771342.jpg",
        "description": "openBD の紹介",
    })

    google_books = MagicMock()
    google_books.lookup = AsyncMock(return_value={})
    return anilist, wikipedia, openbd, google_books


@pytest.fixture
def enricher(clients):
    anilist, wikipedia, openbd, google_books = clients
    return SeriesEnricher(
        anilist, wikipedia, openbd, google_books,
        tag_dictionary=TagDictionary(mapping={"War": "戦争"}),
    )


# =============================================================================
# Helpers
# =============================================================================


class TestFill:
    """Test is_empty and fill."""

    @pytest.mark.parametrize("value", [None, "", "  ", [], {}])
    def test_empty_values(self, value):
        """Test values treated as empty."""
        assert is_empty(value)

    def test_fill_only_empty(self):
        """Test that fill never overwrites a value."""
        target = {"a": "kept", "b": ""}
        assert not fill(target, "a", "new")
        assert fill(target, "b", "new")
        assert not fill(target, "c", None)
        assert target == {"a": "kept", "b": "new"}


# =============================================================================
# SeriesEnricher
# =============================================================================


class TestSeriesEnricher:
    """Test SeriesEnricher.enrich."""

    @pytest.mark.asyncio
    async def test_fills_empty_entry(self, enricher, clients):
        """Test a first enrichment pulling from every source."""
        _, _, _, google_books = clients

        entry = await enricher.enrich(outcome_for("キングダム", author="原泰久"))

        v = entry["vol1"]
        assert entry["author"] == "原泰久"
        assert v["title"] == "キングダム 1"
        assert v["titleLane2"] == "キングダム 1"
        assert v["amazonDp"] == "https://www.amazon.co.jp/dp/4088771346"
        assert v["magazine"] == "週刊ヤングジャンプ"
        assert v["magazineSource"] == "wikipedia"
        assert v["wikiTitle"] == "キングダム (漫画)"
        assert v["anilistId"] == 42
        assert v["genres"] == ["Action"]
        assert v["tagsEn"] == ["War", "Historical"]
        assert v["tags"] == ["戦争"]
        assert v["tagsMissingEn"] == ["Historical"]
        assert v["publisher"] == "集英社"
        assert v["releaseDate"] == "2006-05-19"
        assert v["description"] == "openBD の紹介"
        assert v["descriptionSource"] == "openbd"
        google_books.lookup.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_existing_values_kept(self, enricher, clients):
        """Test that a previous entry's values are never overwritten."""
        anilist, wikipedia, _, _ = clients
        existing = {
            "seriesKey": "キングダム",
            "vol1": {
                "magazine": "手入力の誌名",
                "description": "既存の紹介",
                "genres": ["Drama"],
                "tagsEn": ["War"],
            },
        }

        entry = await enricher.enrich(outcome_for("キングダム"), existing)

        v = entry["vol1"]
        assert v["magazine"] == "手入力の誌名"
        assert v["description"] == "既存の紹介"
        assert v["genres"] == ["Drama"]
        assert v["tags"] == ["戦争"]
        wikipedia.magazine_by_series_key.assert_not_awaited()
        anilist.media_by_series_key.assert_not_awaited()
        assert existing["vol1"].get("publisher") is None

    @pytest.mark.asyncio
    async def test_magazine_override_always_applies(self, clients):
        """Test that a manual override replaces an existing magazine."""
        anilist, wikipedia, openbd, google_books = clients
        enricher = SeriesEnricher(
            anilist, wikipedia, openbd, google_books,
            magazine_overrides={"キングダム": "別冊の誌名"},
        )
        existing = {"seriesKey": "キングダム", "vol1": {"magazine": "手入力の誌名"}}

        entry = await enricher.enrich(outcome_for("キングダム"), existing)

        assert entry["vol1"]["magazine"] == "別冊の誌名"
        assert entry["vol1"]["magazineSource"] == "manual_override"

    @pytest.mark.asyncio
    async def test_description_falls_back_to_anilist(self, enricher, clients):
        """Test the end of the description chain."""
        _, _, openbd, google_books = clients
        openbd.lookup.return_value = {"publisher": "集英社"}

        entry = await enricher.enrich(outcome_for("キングダム"))

        assert entry["vol1"]["description"] == "AniList の紹介"
        assert entry["vol1"]["descriptionSource"] == "anilist"
        google_books.lookup.assert_awaited_once_with("9784088771342")

    @pytest.mark.asyncio
    async def test_rakuten_caption_before_google_books(self, clients):
        """Test that the Rakuten caption is used when openBD has no description."""
        anilist, wikipedia, openbd, google_books = clients
        openbd.lookup.return_value = {}
        rakuten = MagicMock()
        rakuten.caption_by_isbn = AsyncMock(return_value="楽天の紹介")
        enricher = SeriesEnricher(anilist, wikipedia, openbd, google_books, rakuten)

        entry = await enricher.enrich(outcome_for("キングダム"))

        assert entry["vol1"]["description"] == "楽天の紹介"
        assert entry["vol1"]["descriptionSource"] == "rakuten"

    @pytest.mark.asyncio
    async def test_anilist_lookup_cached(self, enricher, clients):
        """Test that AniList is queried once per series key."""
        anilist, _, _, _ = clients
        await enricher.enrich(outcome_for("キングダム"))
        await enricher.enrich(outcome_for("キングダム"))
        assert anilist.media_by_series_key.await_count == 1


# =============================================================================
# TagDictionary and overrides
# =============================================================================


class TestTagDictionary:
    """Test TagDictionary."""

    def test_apply(self):
        """Test translation, hiding and missing tags."""
        tags = TagDictionary(mapping={"War": "戦争", "Gore": "グロ"}, hide={"Nudity"})
        ja, missing = tags.apply(["War", "Nudity", "Politics", "War"])
        assert ja == ["戦争"]
        assert missing == ["Politics"]
        assert tags.todo == {"Politics"}

    def test_load_and_save_todo(self, tmp_path):
        """Test reading the dictionary files and writing the to-do list."""
        (tmp_path / "tag_ja_map.json").write_text(json.dumps({"map": {"War": "戦争"}}), encoding="utf-8")
        (tmp_path / "tag_hide.json").write_text(json.dumps({"hide": ["Nudity"]}), encoding="utf-8")

        tags = TagDictionary.load(tmp_path)
        tags.apply(["Politics"])
        tags.save_todo(tmp_path)

        assert tags.mapping == {"War": "戦争"}
        assert tags.hide == {"Nudity"}
        saved = json.loads((tmp_path / "tags_todo.json").read_text(encoding="utf-8"))
        assert saved["tags"] == ["Politics"]


def test_load_magazine_overrides(tmp_path):
    path = tmp_path / "magazine_overrides.json"
    path.write_text(json.dumps({"items": {
        "キングダム": {"magazine": "週刊ヤングジャンプ"},
        "ナルト": "週刊少年ジャンプ",
        "ブリーチ": {"magazine": ""},
    }}), encoding="utf-8")

    assert load_magazine_overrides(path) == {
        "キングダム": "週刊ヤングジャンプ",
        "ナルト": "週刊少年ジャンプ",
    }


# =============================================================================
# enrich_all
# =============================================================================


class TestEnrichAll:
    """Test enrich_all."""

    @pytest.mark.asyncio
    async def test_selected_keys_only(self, enricher, clients):
        """Test that unselected series are carried over unchanged."""
        _, wikipedia, _, _ = clients
        wikipedia.magazine_by_series_key.return_value = None
        previous = {"seriesKey": "ナルト", "vol1": {"magazine": "週刊少年ジャンプ"}}
        sleep = RecordingSleep()

        entries, missing = await enrich_all(
            [outcome_for("キングダム"), outcome_for("ナルト")],
            enricher,
            existing={"ナルト": previous},
            series_keys=["キングダム"],
            sleep=sleep,
        )

        assert [e["seriesKey"] for e in entries] == ["キングダム", "ナルト"]
        assert entries[1] is previous
        assert missing == {"キングダム"}
        assert len(sleep.calls) == 1
