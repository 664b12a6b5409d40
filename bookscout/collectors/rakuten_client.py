"""Rakuten Books (BooksBook/Search 2017-04-04) client."""
from __future__ import annotations

import logging
from typing import Optional, List, Dict, Any

from bookscout.collectors.base_client import (
    CollectorError,
    CredentialsMissing,
    HttpClient,
    LookupResult,
    MAX_SEARCH_RESULTS,
    VolumeLookup,
)
from bookscout.config import Settings
from bookscout.isbn import clean_isbn, clean_isbn13, isbn10_to_isbn13
from bookscout.models import Candidate

logger = logging.getLogger(__name__)

RAKUTEN_BOOKS_URL = "https://app.rakuten.co.jp/services/api/BooksBook/Search/20170404"


def parse_item(item: Dict[str, Any], query: Optional[str] = None) -> Optional[Candidate]:
    """Normalize one formatVersion=2 Rakuten item."""
    title = (item.get('title') or '').strip()
    if not title:
        return None
    authors = [a.strip() for a in (item.get('author') or '').split('/') if a.strip()]
    return Candidate(
        title=title,
        isbn13=clean_isbn13(item.get('isbn')),
        image=item.get('largeImageUrl') or item.get('mediumImageUrl') or None,
        contributors=authors,
        publisher=item.get('publisherName') or None,
        release_date=item.get('salesDate') or None,
        source='rakuten',
        query=query,
    )


class RakutenBooksClient(HttpClient, VolumeLookup):
    """VolumeLookup backed by Rakuten Books. Has no ASINs; identifiers must be ISBNs."""

    name = "rakuten"

    def __init__(self, settings: Settings, **kwargs):
        super().__init__(**kwargs)
        self.app_id = settings.rakuten_app_id

    async def _search(self, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        if not self.app_id:
            raise CredentialsMissing("RAKUTEN_APP_ID is missing")
        query = {
            'format': 'json',
            'formatVersion': 2,
            'applicationId': self.app_id,
            'hits': MAX_SEARCH_RESULTS,
        }
        query.update(params)
        data = await self._get_json(RAKUTEN_BOOKS_URL, params=query)
        if not isinstance(data, dict):
            return []
        return [item for item in data.get('Items') or [] if isinstance(item, dict)]

    async def lookup_by_identifier(self, identifier: str) -> LookupResult:
        isbn = clean_isbn(identifier)
        isbn13 = clean_isbn13(isbn) or isbn10_to_isbn13(isbn)
        if not isbn13:
            return LookupResult.not_found(f"Rakuten needs an ISBN, got {identifier!r}")
        try:
            items = await self._search({'isbn': isbn13})
        except (CollectorError, ValueError) as e:
            logger.warning(f"Rakuten lookup failed for {identifier}: {e}")
            return LookupResult.from_exception(e)
        candidates = [c for c in (parse_item(i, isbn13) for i in items) if c]
        return LookupResult.found(candidates[:1])

    async def search_by_keywords(self, query: str) -> LookupResult:
        try:
            items = await self._search({'title': query, 'sort': 'standard'})
        except (CollectorError, ValueError) as e:
            logger.warning(f"Rakuten search failed for {query!r}: {e}")
            return LookupResult.from_exception(e)
        return LookupResult.found([c for c in (parse_item(i, query) for i in items) if c])

    async def caption_by_isbn(self, isbn13: str) -> Optional[str]:
        """Item caption (publisher blurb) for enrichment; None when unavailable."""
        if not self.app_id:
            return None
        try:
            items = await self._search({'isbn': isbn13})
        except (CollectorError, ValueError) as e:
            logger.warning(f"Rakuten caption lookup failed for {isbn13}: {e}")
            return None
        for item in items:
            caption = (item.get('itemCaption') or '').strip()
            if caption:
                return caption
        return None
