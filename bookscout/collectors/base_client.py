"""
Base classes for catalog and metadata collectors.

Every vendor failure is reported to callers as a LookupResult variant.
CollectorError is raised inside collectors only and is converted at the
collector boundary.
"""
from __future__ import annotations

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict, Any

import aiohttp

from bookscout.models import Candidate

logger = logging.getLogger(__name__)

USER_AGENT = 'Mozilla/5.0 (compatible; BookScout/1.0; lane2)'
MAX_SEARCH_RESULTS = 10


class CollectorError(Exception):
    """HTTP or network failure inside a collector."""
    def __init__(self, message: str, is_retryable: bool = False, status: Optional[int] = None):
        super().__init__(message)
        self.is_retryable = is_retryable
        self.status = status


class CredentialsMissing(CollectorError):
    """Raised when a collector is used without the credentials it needs."""


class LookupStatus(Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"
    THROTTLED = "throttled"
    ERROR = "error"


@dataclass
class LookupResult:
    """Outcome of one lookup or search call."""
    status: LookupStatus
    candidates: List[Candidate] = field(default_factory=list)
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is LookupStatus.OK and bool(self.candidates)

    @property
    def first(self) -> Optional[Candidate]:
        return self.candidates[0] if self.candidates else None

    @classmethod
    def found(cls, candidates: List[Candidate]) -> 'LookupResult':
        if not candidates:
            return cls(LookupStatus.NOT_FOUND)
        return cls(LookupStatus.OK, list(candidates[:MAX_SEARCH_RESULTS]))

    @classmethod
    def not_found(cls, message: Optional[str] = None) -> 'LookupResult':
        return cls(LookupStatus.NOT_FOUND, message=message)

    @classmethod
    def unavailable(cls, message: Optional[str] = None) -> 'LookupResult':
        return cls(LookupStatus.UNAVAILABLE, message=message)

    @classmethod
    def throttled(cls, message: Optional[str] = None) -> 'LookupResult':
        return cls(LookupStatus.THROTTLED, message=message)

    @classmethod
    def error(cls, message: Optional[str] = None) -> 'LookupResult':
        return cls(LookupStatus.ERROR, message=message)

    @classmethod
    def from_exception(cls, exc: Exception) -> 'LookupResult':
        """Map a collector-side exception onto a result variant."""
        if isinstance(exc, CredentialsMissing):
            return cls.unavailable(str(exc))
        if isinstance(exc, CollectorError):
            return cls.throttled(str(exc)) if exc.is_retryable else cls.error(str(exc))
        if isinstance(exc, ValueError):
            # unparseable body
            return cls.not_found(f"unparseable response: {exc}")
        return cls.error(str(exc))


class VolumeLookup(ABC):
    """A catalog that can resolve identifiers and keyword queries to candidates."""

    name = "lookup"

    @abstractmethod
    async def lookup_by_identifier(self, identifier: str) -> LookupResult:
        """Look up one volume by ASIN, ISBN-10 or ISBN-13."""

    @abstractmethod
    async def search_by_keywords(self, query: str) -> LookupResult:
        """Keyword search; at most MAX_SEARCH_RESULTS candidates."""

    async def close(self) -> None:
        pass


class HttpClient:
    """
    Shared aiohttp session handling and rate limiting for collectors.

    Subclasses call _request_json / _request_text; HTTP 429, 5xx, timeouts
    and connection errors raise a retryable CollectorError, other non-2xx
    statuses a non-retryable one. A 404 returns None.
    """

    def __init__(
        self,
        request_delay: float = 0.0,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 15.0
    ):
        self.request_delay = request_delay
        self.last_request_time = 0.0
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

    async def _wait(self):
        """Rate limiting."""
        elapsed = time.monotonic() - self.last_request_time
        if elapsed < self.request_delay:
            await asyncio.sleep(self.request_delay - elapsed)
        self.last_request_time = time.monotonic()

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            self._session = aiohttp.ClientSession(
                headers={'User-Agent': USER_AGENT},
                timeout=timeout
            )
            self._owns_session = True
        return self._session

    async def close(self):
        """Close the session."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def _request_text(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        data: Optional[Any] = None
    ) -> Optional[str]:
        await self._wait()
        try:
            session = await self._get_session()
            async with session.request(
                method, url, params=params, headers=headers, data=data
            ) as response:
                text = await response.text()
                if response.status == 404:
                    return None
                if response.status == 429 or response.status >= 500:
                    raise CollectorError(
                        f"HTTP {response.status} from {url}", is_retryable=True, status=response.status
                    )
                if response.status >= 400:
                    raise CollectorError(
                        f"HTTP {response.status} from {url}: {text[:300]}", status=response.status
                    )
                return text
        except asyncio.TimeoutError as e:
            raise CollectorError(f"Timeout: {url}", is_retryable=True) from e
        except aiohttp.ClientError as e:
            raise CollectorError(f"Network error for {url}: {e}", is_retryable=True) from e

    async def _request_json(self, method: str, url: str, **kwargs) -> Optional[Any]:
        """Like _request_text but decodes JSON; raises ValueError on a malformed body."""
        text = await self._request_text(method, url, **kwargs)
        if text is None:
            return None
        return json.loads(text)

    async def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Optional[Any]:
        return await self._request_json('GET', url, params=params)
