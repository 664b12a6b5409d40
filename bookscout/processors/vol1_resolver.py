"""
Resolve the canonical mainline volume 1 of a series.

Each series ends in exactly one of three states:

    confirmed  volume 1 identified and passed every guard
    review     a plausible volume 1 whose title looks like it carries a
               subtitle; kept aside for a human
    todo       nothing trustworthy found (reason recorded)

Seeds with identifier hints are tried first (ASIN, ISBN-10, ISBN-13), then
a fixed list of keyword queries. Every vendor call goes through _call,
which waits request_delay after each call and retries throttled calls with
exponential backoff.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Callable, Awaitable

from bookscout.classifiers.edition_classifier import classify_series_type, is_mainline_volume_one
from bookscout.classifiers.subtitle_detector import detect
from bookscout.collectors.base_client import LookupResult, LookupStatus, VolumeLookup
from bookscout.config import Settings
from bookscout.models import Candidate, Seed, SeriesOutcome, VolumeRecord
from bookscout.processors.candidate_scorer import ASIN_BONUS, pick_best, score_candidate
from bookscout.processors.title_normalizer import series_name_occurs_in

logger = logging.getLogger(__name__)

MAX_REJECTS = 5
MAX_BACKOFF = 60.0

# Todo reasons
NO_CANDIDATE = "no_candidate"
LOOKUP_UNAVAILABLE = "lookup_unavailable"
LOOKUP_ERROR = "lookup_error"
NO_ISBN13 = "no_isbn13"
FINAL_GUARD_FAILED = "final_guard_failed"

SEARCH_UNVERIFIED = "search(unverified)"


def keyword_queries(series_key: str) -> List[str]:
    return [
        series_key,
        f"{series_key} (1)",
        f"{series_key} 1",
        f"{series_key} 1 コミックス",
        f"{series_key} 1 (コミックス)",
    ]


@dataclass
class ResolverStats:
    calls: int = 0
    throttled: int = 0
    exhausted: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {'calls': self.calls, 'throttled': self.throttled, 'exhausted': self.exhausted}


@dataclass
class ResolutionTrace:
    """Diagnostics for one series, written to the debug document."""
    series_key: str
    steps: List[Dict[str, Any]] = field(default_factory=list)
    rejects: List[Dict[str, Any]] = field(default_factory=list)
    decision: Optional[str] = None

    def step(self, kind: str, value: str, result: LookupResult, **extra):
        entry = {
            'step': kind,
            'value': value,
            'status': result.status.value,
            'count': len(result.candidates),
        }
        if result.message:
            entry['message'] = result.message
        entry.update(extra)
        self.steps.append(entry)

    def add_reject(self, entry: Dict[str, Any]):
        if len(self.rejects) < MAX_REJECTS:
            self.rejects.append(entry)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'seriesKey': self.series_key,
            'steps': self.steps,
            'rejects': self.rejects,
            'decision': self.decision,
        }


class Vol1Resolver:
    """Drives a VolumeLookup through the hint, search and confirmation steps."""

    def __init__(
        self,
        lookup: VolumeLookup,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.lookup = lookup
        self.settings = settings or Settings()
        self.sleep = sleep
        self.stats = ResolverStats()
        self.traces: Dict[str, ResolutionTrace] = {}

    async def _call(self, fn: Callable[[str], Awaitable[LookupResult]], arg: str) -> LookupResult:
        """Call the lookup with rate limiting and bounded retries on throttling."""
        attempt = 0
        while True:
            attempt += 1
            self.stats.calls += 1
            result = await fn(arg)
            await self.sleep(self.settings.request_delay)
            if result.status is not LookupStatus.THROTTLED:
                return result

            self.stats.throttled += 1
            if attempt >= self.settings.max_attempts:
                self.stats.exhausted += 1
                logger.warning(f"Giving up on {arg!r} after {attempt} throttled attempts")
                return LookupResult.error(f"throttled after {attempt} attempts: {result.message}")

            wait = min(MAX_BACKOFF, self.settings.backoff_base * 2 ** (attempt - 1))
            logger.warning(f"Throttled on {arg!r}, retrying in {wait:.1f}s (attempt {attempt})")
            await self.sleep(wait)

    def _source(self, step: str) -> str:
        return f"{self.lookup.name}({step})"

    async def resolve(self, seed: Seed) -> SeriesOutcome:
        trace = ResolutionTrace(seed.series_key)
        self.traces[seed.series_key] = trace
        path: List[str] = []

        outcome = await self._resolve_from_hint(seed, path, trace)
        if outcome is None:
            outcome = await self._resolve_from_search(seed, path, trace)

        trace.decision = outcome.kind.value if not outcome.reason else f"{outcome.kind.value}:{outcome.reason}"
        logger.debug(f"{seed.series_key}: {trace.decision} via {' > '.join(path)}")
        return outcome

    async def _resolve_from_hint(
        self, seed: Seed, path: List[str], trace: ResolutionTrace
    ) -> Optional[SeriesOutcome]:
        hint = seed.hint
        if hint is None or hint.is_empty():
            return None

        key = seed.series_key
        for kind, identifier in (('asin', hint.asin), ('isbn10', hint.isbn10), ('isbn13', hint.isbn13)):
            if not identifier:
                continue
            step = f"hint:{kind}"
            path.append(step)
            result = await self._call(self.lookup.lookup_by_identifier, identifier)
            trace.step(step, identifier, result)

            if result.status is LookupStatus.UNAVAILABLE:
                return SeriesOutcome.todo(seed, LOOKUP_UNAVAILABLE, path)
            candidate = result.first
            if not result.ok or candidate is None:
                continue
            if not candidate.isbn13 or not is_mainline_volume_one(candidate.title, key):
                trace.add_reject(self._reject(candidate, key, step))
                continue

            if not candidate.asin and hint.asin:
                candidate.asin = hint.asin
            vol1 = VolumeRecord.from_candidate(candidate, self._source(step), isbn10=hint.isbn10)
            suspicion = detect(candidate.title, key)
            if suspicion.suspicious:
                return SeriesOutcome.review(seed, vol1, suspicion.reason, path)
            return SeriesOutcome.confirmed(seed, vol1, path)
        return None

    async def _resolve_from_search(
        self, seed: Seed, path: List[str], trace: ResolutionTrace
    ) -> SeriesOutcome:
        key = seed.series_key
        bests: List[Candidate] = []
        unavailable = False

        path.append("search")
        for query in keyword_queries(key):
            result = await self._call(self.lookup.search_by_keywords, query)
            if result.status is LookupStatus.UNAVAILABLE:
                trace.step("search", query, result)
                unavailable = True
                break
            if not result.ok:
                trace.step("search", query, result)
                continue

            candidates = [c for c in result.candidates if series_name_occurs_in(c.title, key)]
            for candidate in candidates:
                candidate.query = query
                candidate.score = score_candidate(candidate, key, asin_bonus=ASIN_BONUS)
                if not is_mainline_volume_one(candidate.title, key):
                    trace.add_reject(self._reject(candidate, key, "search"))

            best = pick_best(candidates, key)
            trace.step("search", query, result, best=best.to_dict() if best else None)
            if best:
                bests.append(best)

        best = pick_best(bests, key)
        if best is None or not (best.asin or best.isbn13):
            return SeriesOutcome.todo(seed, LOOKUP_UNAVAILABLE if unavailable else NO_CANDIDATE, path)

        suspicion = detect(best.title, key)
        if suspicion.suspicious:
            vol1 = VolumeRecord.from_candidate(best, SEARCH_UNVERIFIED)
            return SeriesOutcome.review(seed, vol1, suspicion.reason, path)

        if best.isbn13 and is_mainline_volume_one(best.title, key):
            return SeriesOutcome.confirmed(seed, VolumeRecord.from_candidate(best, self._source("search")), path)

        return await self._confirm(seed, best, path, trace)

    async def _confirm(
        self, seed: Seed, best: Candidate, path: List[str], trace: ResolutionTrace
    ) -> SeriesOutcome:
        """Fetch the best search hit by identifier and re-check it."""
        key = seed.series_key
        identifier = best.asin or best.isbn13
        path.append("confirm")
        result = await self._call(self.lookup.lookup_by_identifier, identifier)
        trace.step("confirm", identifier, result)

        fetched = result.first
        if not result.ok or fetched is None:
            reason = LOOKUP_UNAVAILABLE if result.status is LookupStatus.UNAVAILABLE else LOOKUP_ERROR
            return SeriesOutcome.todo(seed, reason, path)

        merged = Candidate(
            title=fetched.title or best.title,
            isbn13=fetched.isbn13 or best.isbn13,
            asin=fetched.asin or best.asin,
            image=fetched.image or best.image,
            contributors=fetched.contributors or best.contributors,
            publisher=fetched.publisher or best.publisher,
            release_date=fetched.release_date or best.release_date,
            source=fetched.source,
            query=best.query,
        )

        suspicion = detect(merged.title, key)
        if suspicion.suspicious:
            vol1 = VolumeRecord.from_candidate(merged, self._source("confirm"))
            return SeriesOutcome.review(seed, vol1, suspicion.reason, path)
        if not merged.isbn13:
            return SeriesOutcome.todo(seed, NO_ISBN13, path)
        if not is_mainline_volume_one(merged.title, key):
            trace.add_reject(self._reject(merged, key, "confirm"))
            return SeriesOutcome.todo(seed, FINAL_GUARD_FAILED, path)
        return SeriesOutcome.confirmed(seed, VolumeRecord.from_candidate(merged, self._source("confirm")), path)

    @staticmethod
    def _reject(candidate: Candidate, series_key: str, step: str) -> Dict[str, Any]:
        return {
            'step': step,
            'title': candidate.title,
            'isbn13': candidate.isbn13,
            'asin': candidate.asin,
            'score': candidate.score,
            'type': classify_series_type(candidate.title),
            'query': candidate.query,
        }
