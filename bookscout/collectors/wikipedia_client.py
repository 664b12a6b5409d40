"""Japanese Wikipedia client: serialization magazine from infoboxes and page summaries."""
from __future__ import annotations

import logging
from typing import Optional, List, Dict, Any
from urllib.parse import quote

from bs4 import BeautifulSoup

from bookscout.collectors.base_client import CollectorError, HttpClient
from bookscout.processors.title_normalizer import loose, normalize_whitespace, strip_html

logger = logging.getLogger(__name__)

WIKI_API_URL = "https://ja.wikipedia.org/w/api.php"
WIKI_SUMMARY_URL = "https://ja.wikipedia.org/api/rest_v1/page/summary/"

MAGAZINE_HEADERS = ('掲載誌', '連載誌')


def wiki_title_looks_ok(wiki_title: Optional[str], series_key: Optional[str]) -> bool:
    """Page title and series key contain one another (whitespace-insensitive)."""
    t = loose(wiki_title or '')
    k = loose(series_key or '')
    if not t or not k:
        return False
    return t == k or k in t or t in k


def extract_magazine(html: Optional[str]) -> Optional[str]:
    """Text of the first 掲載誌 / 連載誌 infobox row."""
    if not html:
        return None
    soup = BeautifulSoup(html, 'html.parser')
    for header in MAGAZINE_HEADERS:
        for th in soup.find_all('th'):
            if normalize_whitespace(th.get_text()) != header:
                continue
            td = th.find_next_sibling('td')
            if td is None:
                continue
            text = normalize_whitespace(td.get_text(' '))
            if text:
                return text
    return None


class WikipediaClient(HttpClient):

    async def _api(self, **params) -> Optional[Dict[str, Any]]:
        query = {'format': 'json', 'origin': '*'}
        query.update({k: str(v) for k, v in params.items()})
        return await self._get_json(WIKI_API_URL, params=query)

    async def search(self, text: str, limit: int = 5) -> List[Dict[str, Any]]:
        data = await self._api(action='query', list='search', srsearch=text, srlimit=limit, srprop='snippet')
        return ((data or {}).get('query') or {}).get('search') or []

    async def magazine_by_series_key(self, series_key: str) -> Optional[Dict[str, Any]]:
        """
        {'pageid', 'title', 'magazine'} for the best matching page, or None
        when no page title matches the series key. Raises CollectorError on
        search failure so the caller can avoid caching the miss.
        """
        hits = await self.search(series_key)
        best = next((h for h in hits if wiki_title_looks_ok(h.get('title'), series_key)), None)
        if not best or not best.get('pageid'):
            return None

        html = None
        try:
            page = await self._api(action='parse', pageid=best['pageid'], prop='text', redirects=1)
            html = (((page or {}).get('parse') or {}).get('text') or {}).get('*')
        except (CollectorError, ValueError) as e:
            logger.warning(f"Wikipedia parse failed for {best.get('title')}: {e}")

        return {
            'pageid': best['pageid'],
            'title': best.get('title'),
            'magazine': extract_magazine(html),
        }

    async def summary(self, title: str) -> Optional[str]:
        """Plain-text extract of a page, trying the title directly then the top search hit."""
        try:
            data = await self._get_json(WIKI_SUMMARY_URL + quote(title.replace(' ', '_')))
            extract = strip_html((data or {}).get('extract'))
            if extract:
                return extract
            hits = await self.search(title, limit=1)
            if not hits:
                return None
            data = await self._get_json(WIKI_SUMMARY_URL + quote(str(hits[0]['title']).replace(' ', '_')))
        except (CollectorError, ValueError) as e:
            logger.warning(f"Wikipedia summary failed for {title}: {e}")
            return None
        return strip_html((data or {}).get('extract')) or None
