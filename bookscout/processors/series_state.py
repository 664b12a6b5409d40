"""
Accumulated series state and the incremental merge.

The state is three disjoint maps (confirmed, review, todo) keyed by series
key. A key that appears in any of them is known and is never attempted
again; merging is first-write-wins, so repeated runs can only add keys.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, List, Dict, Any, Iterable, Tuple

from bookscout.jsonio import document_items, items_document, load_json, save_json
from bookscout.models import OutcomeKind, Seed, SeriesOutcome

logger = logging.getLogger(__name__)

STATE_FILES = {
    OutcomeKind.CONFIRMED: 'confirmed.json',
    OutcomeKind.REVIEW: 'review.json',
    OutcomeKind.TODO: 'todo.json',
}
DEBUG_FILE = 'debug.json'

# On load, a key found in several files is kept in the first of these
LOAD_PRECEDENCE = [OutcomeKind.CONFIRMED, OutcomeKind.REVIEW, OutcomeKind.TODO]


class StateFileError(ValueError):
    """A state file exists but cannot be read as an outcome document."""


@dataclass
class AccumulatedState:
    confirmed: Dict[str, SeriesOutcome] = field(default_factory=dict)
    review: Dict[str, SeriesOutcome] = field(default_factory=dict)
    todo: Dict[str, SeriesOutcome] = field(default_factory=dict)

    def mapping(self, kind: OutcomeKind) -> Dict[str, SeriesOutcome]:
        if kind is OutcomeKind.CONFIRMED:
            return self.confirmed
        if kind is OutcomeKind.REVIEW:
            return self.review
        return self.todo

    def kind_of(self, series_key: str) -> Optional[OutcomeKind]:
        for kind in LOAD_PRECEDENCE:
            if series_key in self.mapping(kind):
                return kind
        return None

    def is_known(self, series_key: str) -> bool:
        return self.kind_of(series_key) is not None

    def known_keys(self) -> set:
        return set(self.confirmed) | set(self.review) | set(self.todo)

    def copy(self) -> 'AccumulatedState':
        return AccumulatedState(dict(self.confirmed), dict(self.review), dict(self.todo))

    def counts(self) -> Dict[str, int]:
        return {kind.value: len(self.mapping(kind)) for kind in LOAD_PRECEDENCE}


@dataclass
class MergeReport:
    added: Dict[str, List[str]] = field(
        default_factory=lambda: {kind.value: [] for kind in LOAD_PRECEDENCE}
    )
    skipped: List[str] = field(default_factory=list)

    @property
    def total_added(self) -> int:
        return sum(len(keys) for keys in self.added.values())


def merge_outcomes(
    state: AccumulatedState,
    outcomes: Iterable[SeriesOutcome]
) -> Tuple[AccumulatedState, MergeReport]:
    """
    Add outcomes for unknown keys; outcomes for known keys (including keys
    added earlier in the same batch) are skipped. The input state is not
    modified.
    """
    merged = state.copy()
    report = MergeReport()
    for outcome in outcomes:
        if merged.is_known(outcome.series_key):
            report.skipped.append(outcome.series_key)
            continue
        merged.mapping(outcome.kind)[outcome.series_key] = outcome
        report.added[outcome.kind.value].append(outcome.series_key)
    return merged, report


def select_pending(seeds: Iterable[Seed], state: AccumulatedState, max_per_run: int) -> List[Seed]:
    """Unknown seeds in input order, de-duplicated, at most max_per_run."""
    pending: List[Seed] = []
    seen = set()
    if max_per_run <= 0:
        return pending
    for seed in seeds:
        key = seed.series_key
        if not key or key in seen or state.is_known(key):
            continue
        seen.add(key)
        pending.append(seed)
        if len(pending) >= max_per_run:
            break
    return pending


class StateStore:
    """confirmed.json / review.json / todo.json / debug.json inside a data directory."""

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    def path(self, kind: OutcomeKind) -> Path:
        return self.data_dir / STATE_FILES[kind]

    def _read(self, kind: OutcomeKind) -> List[SeriesOutcome]:
        path = self.path(kind)
        try:
            doc = load_json(path, fallback={'items': []})
        except ValueError as e:
            raise StateFileError(f"{path}: {e}") from e
        if not isinstance(doc, (dict, list)):
            raise StateFileError(f"{path}: expected an items document")
        outcomes = []
        for raw in document_items(doc):
            if not isinstance(raw, dict) or not raw.get('seriesKey'):
                raise StateFileError(f"{path}: item without seriesKey: {raw!r}")
            status = raw.get('status')
            if status and status != kind.value:
                logger.warning(f"{path}: {raw['seriesKey']} has status {status}; treating as {kind.value}")
            try:
                outcome = SeriesOutcome.from_dict(raw, kind=kind)
            except (KeyError, ValueError) as e:
                raise StateFileError(f"{path}: {e}") from e
            outcomes.append(outcome)
        return outcomes

    def load(self) -> AccumulatedState:
        state = AccumulatedState()
        for kind in LOAD_PRECEDENCE:
            for outcome in self._read(kind):
                existing = state.kind_of(outcome.series_key)
                if existing is not None:
                    logger.warning(
                        f"{outcome.series_key} is in both {existing.value} and {kind.value}; "
                        f"keeping {existing.value}"
                    )
                    continue
                state.mapping(kind)[outcome.series_key] = outcome
        return state

    def save(self, state: AccumulatedState) -> None:
        for kind in LOAD_PRECEDENCE:
            items = [outcome.to_dict() for outcome in state.mapping(kind).values()]
            save_json(self.path(kind), items_document(items))

    def save_debug(self, traces: List[Dict[str, Any]], stats: Optional[Dict[str, Any]] = None) -> None:
        save_json(self.data_dir / DEBUG_FILE, items_document(traces, stats=stats or {}))
