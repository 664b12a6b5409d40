"""Shared record types: seeds, candidates, volume records and series outcomes."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict, Any

from bookscout.isbn import clean_asin, clean_isbn, clean_isbn13, dp_url


def _str_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


@dataclass
class SeedHint:
    """Known identifiers for volume 1, supplied by whoever wrote the seed."""
    asin: Optional[str] = None
    isbn10: Optional[str] = None
    isbn13: Optional[str] = None

    def is_empty(self) -> bool:
        return not (self.asin or self.isbn10 or self.isbn13)

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in (
            ('asin', self.asin), ('isbn10', self.isbn10), ('isbn13', self.isbn13)
        ) if v}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['SeedHint']:
        if not isinstance(data, dict):
            return None
        isbn10 = clean_isbn(data.get('isbn10'))
        hint = cls(
            asin=clean_asin(data.get('asin')),
            isbn10=isbn10 if isbn10 and len(isbn10) == 10 else None,
            isbn13=clean_isbn13(data.get('isbn13')),
        )
        return None if hint.is_empty() else hint


@dataclass
class Seed:
    """A series to resolve."""
    series_key: str
    author: Optional[str] = None
    hint: Optional[SeedHint] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {'seriesKey': self.series_key}
        if self.author:
            out['author'] = self.author
        if self.hint and not self.hint.is_empty():
            out['vol1Hint'] = self.hint.to_dict()
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional['Seed']:
        key = _str_or_none(data.get('seriesKey'))
        if not key:
            return None
        return cls(
            series_key=key,
            author=_str_or_none(data.get('author')),
            hint=SeedHint.from_dict(data.get('vol1Hint') or data.get('hint')),
        )


@dataclass
class Candidate:
    """A vendor search or lookup result, normalized to vendor-neutral fields."""
    title: str
    isbn13: Optional[str] = None
    asin: Optional[str] = None
    image: Optional[str] = None
    contributors: List[str] = field(default_factory=list)
    publisher: Optional[str] = None
    release_date: Optional[str] = None
    score: int = 0
    source: str = ""
    query: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'title': self.title,
            'isbn13': self.isbn13,
            'asin': self.asin,
            'image': self.image,
            'contributors': list(self.contributors),
            'publisher': self.publisher,
            'releaseDate': self.release_date,
            'score': self.score,
            'source': self.source,
            'query': self.query,
        }


@dataclass
class VolumeRecord:
    """The accepted volume 1 of a series."""
    title: str
    isbn13: Optional[str] = None
    asin: Optional[str] = None
    image: Optional[str] = None
    amazon_dp: Optional[str] = None
    source: str = ""
    publisher: Optional[str] = None
    contributors: List[str] = field(default_factory=list)
    release_date: Optional[str] = None

    @classmethod
    def from_candidate(
        cls,
        candidate: Candidate,
        source: str,
        isbn10: Optional[str] = None
    ) -> 'VolumeRecord':
        return cls(
            title=candidate.title,
            isbn13=candidate.isbn13,
            asin=candidate.asin,
            image=candidate.image,
            amazon_dp=dp_url(candidate.asin, isbn10, candidate.isbn13),
            source=source,
            publisher=candidate.publisher,
            contributors=list(candidate.contributors),
            release_date=candidate.release_date,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'title': self.title,
            'isbn13': self.isbn13,
            'asin': self.asin,
            'image': self.image,
            'amazonDp': self.amazon_dp,
            'source': self.source,
            'publisher': self.publisher,
            'contributors': list(self.contributors),
            'releaseDate': self.release_date,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'VolumeRecord':
        return cls(
            title=str(data.get('title') or ''),
            isbn13=data.get('isbn13'),
            asin=data.get('asin'),
            image=data.get('image'),
            amazon_dp=data.get('amazonDp'),
            source=str(data.get('source') or ''),
            publisher=data.get('publisher'),
            contributors=list(data.get('contributors') or []),
            release_date=data.get('releaseDate'),
        )


class OutcomeKind(Enum):
    """Terminal state of one series resolution."""
    CONFIRMED = "confirmed"
    REVIEW = "review"
    TODO = "todo"


@dataclass
class SeriesOutcome:
    """
    Result of resolving one series.

    CONFIRMED and REVIEW carry a volume record; REVIEW and TODO carry a
    reason. source_path lists the resolution steps taken, in order.
    """
    series_key: str
    kind: OutcomeKind
    author: Optional[str] = None
    vol1: Optional[VolumeRecord] = None
    reason: Optional[str] = None
    source_path: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.kind in (OutcomeKind.CONFIRMED, OutcomeKind.REVIEW) and self.vol1 is None:
            raise ValueError(f"{self.kind.value} outcome for {self.series_key!r} needs vol1")
        if self.kind is OutcomeKind.TODO and self.vol1 is not None:
            raise ValueError(f"todo outcome for {self.series_key!r} must not carry vol1")

    @classmethod
    def confirmed(cls, seed: Seed, vol1: VolumeRecord, path: List[str]) -> 'SeriesOutcome':
        return cls(seed.series_key, OutcomeKind.CONFIRMED, seed.author, vol1, None, list(path))

    @classmethod
    def review(cls, seed: Seed, vol1: VolumeRecord, reason: str, path: List[str]) -> 'SeriesOutcome':
        return cls(seed.series_key, OutcomeKind.REVIEW, seed.author, vol1, reason, list(path))

    @classmethod
    def todo(cls, seed: Seed, reason: str, path: List[str]) -> 'SeriesOutcome':
        return cls(seed.series_key, OutcomeKind.TODO, seed.author, None, reason, list(path))

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            'seriesKey': self.series_key,
            'author': self.author,
            'status': self.kind.value,
            'vol1': self.vol1.to_dict() if self.vol1 else None,
            'sourcePath': list(self.source_path),
        }
        if self.reason:
            out['reason'] = self.reason
        return out

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        kind: Optional[OutcomeKind] = None
    ) -> 'SeriesOutcome':
        """Build from a dict; an explicit kind wins over the stored status."""
        status = data.get('status')
        if kind is None and status:
            kind = OutcomeKind(status)
        if kind is None:
            raise ValueError(f"outcome without status: {data.get('seriesKey')!r}")
        vol1 = data.get('vol1')
        return cls(
            series_key=str(data['seriesKey']),
            kind=kind,
            author=data.get('author'),
            vol1=VolumeRecord.from_dict(vol1) if vol1 and kind is not OutcomeKind.TODO else None,
            reason=data.get('reason'),
            source_path=list(data.get('sourcePath') or []),
        )
