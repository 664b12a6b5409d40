"""Score candidates against a series and pick the most plausible volume 1."""
from __future__ import annotations

from typing import Optional, List, Sequence, Tuple

from bookscout.classifiers.edition_classifier import (
    is_derived_edition,
    is_mainline_volume_one,
)
from bookscout.models import Candidate
from bookscout.processors.title_normalizer import (
    extract_volume_marker,
    series_name_occurs_in,
)

ISBN13_BONUS = 80
SERIES_NAME_BONUS = 40
VOLUME_MARKER_BONUS = 25
DERIVED_PENALTY = -1000
MAINLINE_BONUS = 500
ASIN_BONUS = 5


def score_candidate(candidate: Candidate, series_key: str, asin_bonus: int = 0) -> int:
    """
    Additive plausibility score.

    asin_bonus is added when the candidate has an ASIN; search call sites
    pass ASIN_BONUS.
    """
    title = candidate.title or ''
    score = 0
    if candidate.isbn13:
        score += ISBN13_BONUS
    if series_name_occurs_in(title, series_key):
        score += SERIES_NAME_BONUS
    if extract_volume_marker(title) is not None:
        score += VOLUME_MARKER_BONUS
    if is_derived_edition(title):
        score += DERIVED_PENALTY
    if is_mainline_volume_one(title, series_key):
        score += MAINLINE_BONUS
    if candidate.asin:
        score += asin_bonus
    return score


def _sort_key(item: Tuple[int, Candidate], series_key: str):
    index, candidate = item
    return (
        -candidate.score,
        not is_mainline_volume_one(candidate.title, series_key),
        len(candidate.title or ''),
        index,
    )


def rank_candidates(candidates: Sequence[Candidate], series_key: str) -> List[Candidate]:
    """
    Candidates ordered best first: higher score, then mainline, then shorter
    title, then original position. Uses each candidate's stored score.
    """
    ordered = sorted(enumerate(candidates), key=lambda item: _sort_key(item, series_key))
    return [candidate for _, candidate in ordered]


def pick_best(candidates: Sequence[Candidate], series_key: str) -> Optional[Candidate]:
    if not candidates:
        return None
    return rank_candidates(candidates, series_key)[0]
