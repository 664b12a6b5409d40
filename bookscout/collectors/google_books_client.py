"""Google Books client, used as a fallback for description and bibliographic fields."""
from __future__ import annotations

import logging
from typing import Optional, Dict, Any

from bookscout.collectors.base_client import CollectorError, HttpClient
from bookscout.isbn import clean_isbn13
from bookscout.processors.title_normalizer import strip_html

logger = logging.getLogger(__name__)

GOOGLE_BOOKS_URL = "https://www.googleapis.com/books/v1/volumes"


def parse_google_books_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """Parse Google Books response into enrichment data."""
    result: Dict[str, Any] = {}
    volume_info = data.get('volumeInfo') or {}

    for identifier in volume_info.get('industryIdentifiers') or []:
        if identifier.get('type') == 'ISBN_13':
            result['isbn13'] = clean_isbn13(identifier.get('identifier'))
            break

    if volume_info.get('description'):
        result['description'] = strip_html(volume_info['description'])
    if volume_info.get('publisher'):
        result['publisher'] = volume_info['publisher']
    if volume_info.get('publishedDate'):
        result['releaseDate'] = volume_info['publishedDate']
    if volume_info.get('title'):
        result['title'] = volume_info['title']
    if volume_info.get('authors'):
        result['contributors'] = list(volume_info['authors'])
    thumbnail = (volume_info.get('imageLinks') or {}).get('thumbnail')
    if thumbnail:
        result['image'] = thumbnail
    return result


class GoogleBooksClient(HttpClient):

    def __init__(self, api_key: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key

    async def search_isbn(self, isbn13: str) -> Optional[Dict[str, Any]]:
        params = {'q': f"isbn:{isbn13}", 'maxResults': 3}
        if self.api_key:
            params['key'] = self.api_key
        try:
            data = await self._get_json(GOOGLE_BOOKS_URL, params=params)
        except (CollectorError, ValueError) as e:
            logger.warning(f"Google Books API error for {isbn13}: {e}")
            return None
        if isinstance(data, dict) and data.get('totalItems', 0) > 0 and data.get('items'):
            return data['items'][0]
        return None

    async def lookup(self, isbn13: str) -> Dict[str, Any]:
        data = await self.search_isbn(isbn13)
        return parse_google_books_data(data) if data else {}
