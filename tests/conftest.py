"""Shared fixtures: an in-memory VolumeLookup and a recording sleep."""
from __future__ import annotations

from typing import Dict, List, Union

import pytest

from bookscout.collectors.base_client import LookupResult, VolumeLookup
from bookscout.config import Settings
from bookscout.models import Candidate

Response = Union[LookupResult, List[LookupResult]]


class FakeLookup(VolumeLookup):
    """
    Answers from fixed tables. A list value is consumed one result per call,
    the last one repeating. Unknown identifiers and queries are NOT_FOUND.
    """

    name = "fake"

    def __init__(self, by_id: Dict[str, Response] = None, by_query: Dict[str, Response] = None):
        self.by_id = by_id or {}
        self.by_query = by_query or {}
        self.calls: List[tuple] = []

    @staticmethod
    def _next(table: Dict[str, Response], key: str) -> LookupResult:
        value = table.get(key)
        if value is None:
            return LookupResult.not_found()
        if isinstance(value, list):
            return value.pop(0) if len(value) > 1 else value[0]
        return value

    async def lookup_by_identifier(self, identifier: str) -> LookupResult:
        self.calls.append(('id', identifier))
        return self._next(self.by_id, identifier)

    async def search_by_keywords(self, query: str) -> LookupResult:
        self.calls.append(('search', query))
        return self._next(self.by_query, query)


class RecordingSleep:
    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def found(*candidates: Candidate) -> LookupResult:
    return LookupResult.found(list(candidates))


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        data_dir=tmp_path,
        request_delay=0.5,
        max_attempts=3,
        backoff_base=2.0,
    )
