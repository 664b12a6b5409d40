"""openBD client (Japanese bibliographic data by ISBN)."""
from __future__ import annotations

import logging
from typing import Optional, List, Dict, Any

from bookscout.collectors.base_client import CollectorError, HttpClient
from bookscout.isbn import clean_isbn13
from bookscout.processors.title_normalizer import strip_html

logger = logging.getLogger(__name__)

OPENBD_URL = "https://api.openbd.jp/v1/get"


def _text_value(text: Any) -> Optional[str]:
    if isinstance(text, str):
        return text
    if isinstance(text, list) and text and isinstance(text[0], str):
        return text[0]
    if isinstance(text, dict):
        for key in ('content', 'text'):
            if isinstance(text.get(key), str):
                return text[key]
    return None


def _description(data: Dict[str, Any]) -> Optional[str]:
    collateral = (data.get('onix') or {}).get('CollateralDetail') or {}
    # TextContent first, then OtherText (older ONIX), then summary
    for key in ('TextContent', 'OtherText'):
        entries = collateral.get(key)
        if not isinstance(entries, list):
            continue
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            text = strip_html(_text_value(entry.get('Text')))
            if text:
                return text
    return strip_html((data.get('summary') or {}).get('description')) or None


def _contributors(author: Optional[str]) -> List[str]:
    """openBD summary.author looks like "尾田栄一郎／著 ..." ; keep the names."""
    out = []
    for part in (author or '').split():
        name = part.split('／')[0].split('/')[0].strip()
        if name:
            out.append(name)
    return out


def parse_openbd_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """Parse OpenBD response into enrichment data."""
    result: Dict[str, Any] = {}
    summary = data.get('summary') or {}

    if summary.get('isbn'):
        result['isbn13'] = clean_isbn13(summary['isbn'])
    if summary.get('title'):
        result['title'] = summary['title']
    if summary.get('publisher'):
        result['publisher'] = summary['publisher']
    if summary.get('pubdate'):
        result['releaseDate'] = summary['pubdate']
    if summary.get('cover'):
        result['image'] = summary['cover']
    contributors = _contributors(summary.get('author'))
    if contributors:
        result['contributors'] = contributors

    description = _description(data)
    if description:
        result['description'] = description
    return result


class OpenBDClient(HttpClient):

    async def get(self, isbn13: str) -> Optional[Dict[str, Any]]:
        """Raw openBD record for an ISBN, or None."""
        try:
            data = await self._get_json(OPENBD_URL, params={'isbn': isbn13})
        except (CollectorError, ValueError) as e:
            logger.warning(f"OpenBD API error for {isbn13}: {e}")
            return None
        if isinstance(data, list) and data and isinstance(data[0], dict):
            return data[0]
        return None

    async def lookup(self, isbn13: str) -> Dict[str, Any]:
        """Parsed enrichment fields for an ISBN; empty when openBD has nothing."""
        data = await self.get(isbn13)
        return parse_openbd_data(data) if data else {}
