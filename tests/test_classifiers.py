"""
Tests for the edition classifier and the subtitle detector.

Tests cover:
- Derived edition families (sets, fan-books, spin-offs, chapter sales)
- Mainline volume-1 acceptance and its implied properties
- Subtitle suspicion reasons and high-risk keywords
"""
from __future__ import annotations

import pytest

from bookscout.classifiers.edition_classifier import (
    classify_series_type,
    derived_families,
    is_derived_edition,
    is_mainline_volume_one,
    looks_like_volume_one,
)
from bookscout.classifiers.subtitle_detector import detect, is_suspicious
from bookscout.processors.title_normalizer import series_name_occurs_in


# =============================================================================
# Edition classifier
# =============================================================================


class TestDerivedEdition:
    """Test is_derived_edition and classify_series_type."""

    @pytest.mark.parametrize("title", [
        "ワンピース 全巻セット",
        "ワンピース 1-10巻",
        "ワンピース BOX 1",
        "ワンピース ファンブック",
        "ワンピース 外伝 1",
        "ワンピース 画集",
        "ワンピース カラー版 1",
        "ワンピース 1話",
        "ワンピース 分冊版 (1)",
    ])
    def test_derived_titles(self, title):
        """Test that bundles, guides, spin-offs and chapter sales are derived."""
        assert is_derived_edition(title)

    @pytest.mark.parametrize("title", [
        "ワンピース 1 (ジャンプコミックス)",
        "進撃の巨人（１）",
        "キングダム 1 (ヤングジャンプコミックス)",
    ])
    def test_plain_volumes_are_not_derived(self, title):
        """Test that ordinary volume titles are not flagged."""
        assert not is_derived_edition(title)

    @pytest.mark.parametrize("title,expected", [
        ("ワンピース 全巻セット", "set"),
        ("ワンピース 画集", "art"),
        ("ワンピース 公式ガイド", "guide"),
        ("ワンピース 外伝", "spinoff"),
        ("ワンピース 1", "main"),
    ])
    def test_classify_series_type(self, title, expected):
        """Test the family name reported for a title."""
        assert classify_series_type(title) == expected

    def test_multiple_families(self):
        """Test that every matching family is listed."""
        assert derived_families("ワンピース 公式 画集") == ["art", "guide"]


class TestMainlineVolumeOne:
    """Test is_mainline_volume_one."""

    def test_accepts_plain_volume_one(self):
        """Test acceptance of the ordinary first volume."""
        assert is_mainline_volume_one("ワンピース 1 (ジャンプコミックス)", "ワンピース")

    def test_accepts_fullwidth_paren_marker(self):
        """Test acceptance with a full-width "（１）" marker."""
        assert is_mainline_volume_one("進撃の巨人（１）", "進撃の巨人")

    @pytest.mark.parametrize("title", [
        "ワンピース 全巻セット 1-100",
        "ワンピース ファンブック 1",
        "ワンピース 外伝 1",
        "ワンピース 10",
        "ワンピース",
        "ナルト 1",
        "",
    ])
    def test_rejections(self, title):
        """Test rejection of derived editions, other volumes and other series."""
        assert not is_mainline_volume_one(title, "ワンピース")

    @pytest.mark.parametrize("title", [
        "ワンピース 1 (ジャンプコミックス)",
        "ワンピース 全巻セット",
        "ワンピース 外伝 1",
        "ワンピース 1話",
        "ワンピース（1）",
        "ナルト 1",
        "ワンピース 第1巻",
    ])
    def test_mainline_implies_component_properties(self, title):
        """Test that mainline implies volume-1 marker, not derived and name present."""
        if is_mainline_volume_one(title, "ワンピース"):
            assert looks_like_volume_one(title)
            assert not is_derived_edition(title)
            assert series_name_occurs_in(title, "ワンピース")


# =============================================================================
# Subtitle detector
# =============================================================================


class TestDetect:
    """Test detect reasons."""

    def test_chapter_text_before_volume(self):
        """Test that a chapter number followed by a dash is a dash subtitle."""
        result = detect("ホムンクルスの詩 1話-（1）", "ホムンクルスの詩")
        assert result.suspicious
        assert result.reason == "subtitle_dash"
        assert result.residual == "1話"

    def test_label_after_volume_is_fine(self):
        """Test that a label after the volume marker is not suspicious."""
        assert not is_suspicious("極主夫道 1巻: バンチコミックス", "極主夫道")

    def test_plain_volume_is_fine(self):
        """Test a title with nothing between name and marker."""
        assert not is_suspicious("キングダム 1 (ヤングジャンプコミックス)", "キングダム")

    def test_earliest_marker_splits(self):
        """Test that a standalone 1 before a later (1) marker leaves nothing in between."""
        result = detect("キングダム 1 (1)", "キングダム")
        assert not result.suspicious
        assert result.residual == ""

    @pytest.mark.parametrize("title,key,reason", [
        ("転生したらスライムだった件 ～魔国暮らしのトリニティ～ (1)", "転生したらスライムだった件", "subtitle_tilde"),
        ("ダンジョン飯: 迷宮編 1", "ダンジョン飯", "subtitle_colon"),
        ("キングダム「始まり」 1", "キングダム", "subtitle_quote"),
        ("キングダム 始まりの物語の序章 1", "キングダム", "subtitle_long_text"),
        ("キングダム 新 1", "キングダム", "text_before_volume"),
        ("キングダム 1 限定版", "キングダム", "suspicious_keyword"),
    ])
    def test_reasons(self, title, key, reason):
        """Test the reason reported for each kind of subtitle."""
        result = detect(title, key)
        assert result.suspicious
        assert result.reason == reason

    def test_series_name_absent(self):
        """Test that a title without the series name is not suspicious."""
        assert not is_suspicious("ナルト 外伝 1", "ワンピース")

    def test_no_marker(self):
        """Test that a title without a volume marker is not suspicious."""
        assert not is_suspicious("キングダム 完結編", "キングダム")
