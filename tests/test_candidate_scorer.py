"""Tests for candidate scoring and best-candidate selection."""
from __future__ import annotations

from bookscout.models import Candidate
from bookscout.processors.candidate_scorer import (
    ASIN_BONUS,
    pick_best,
    rank_candidates,
    score_candidate,
)


class TestScoreCandidate:
    """Test score_candidate."""

    def test_mainline_with_identifiers(self):
        """Test every bonus applied to a clean volume 1."""
        candidate = Candidate("ワンピース 1 (ジャンプコミックス)", isbn13="9784088725093", asin="4088725093")
        assert score_candidate(candidate, "ワンピース", asin_bonus=ASIN_BONUS) == 80 + 40 + 25 + 500 + 5

    def test_asin_bonus_defaults_to_zero(self):
        """Test that the ASIN bonus only applies when requested."""
        candidate = Candidate("ワンピース 1", asin="4088725093")
        assert score_candidate(candidate, "ワンピース") == 40 + 25 + 500

    def test_derived_edition_penalty(self):
        """Test the derived-edition penalty on a bundle."""
        candidate = Candidate("ワンピース 全巻セット 1-100")
        assert score_candidate(candidate, "ワンピース") == 40 + 25 - 1000

    def test_unrelated_title(self):
        """Test that an unrelated title without identifiers scores zero."""
        assert score_candidate(Candidate("ナルト"), "ワンピース") == 0


class TestPickBest:
    """Test pick_best and rank_candidates."""

    def test_empty(self):
        """Test that no candidates yields None."""
        assert pick_best([], "キングダム") is None

    def test_highest_score_wins(self):
        """Test ordering by stored score."""
        low = Candidate("キングダム 1", score=100)
        high = Candidate("キングダム 公式ガイドブック", score=200)
        assert pick_best([low, high], "キングダム") is high

    def test_mainline_breaks_score_tie(self):
        """Test that a mainline title beats a non-mainline one at equal score."""
        other = Candidate("キングダム 画集", score=100)
        mainline = Candidate("キングダム 1 (ヤングジャンプコミックス)", score=100)
        assert pick_best([other, mainline], "キングダム") is mainline

    def test_shorter_title_breaks_tie(self):
        """Test that the shorter title wins between equal mainline candidates."""
        long_title = Candidate("キングダム 1 (ヤングジャンプコミックス)", score=100)
        short_title = Candidate("キングダム 1", score=100)
        assert pick_best([long_title, short_title], "キングダム") is short_title

    def test_input_order_breaks_remaining_tie(self):
        """Test that the earlier candidate wins a complete tie."""
        first = Candidate("キングダム 1", score=100, asin="AAAAAAAAAA")
        second = Candidate("キングダム 1", score=100, asin="BBBBBBBBBB")
        assert pick_best([first, second], "キングダム") is first
        assert rank_candidates([first, second], "キングダム") == [first, second]
