"""AniList GraphQL client: seed pages, series media matching and descriptions."""
from __future__ import annotations

import json
import logging
import re
from typing import Optional, List, Dict, Any

from bookscout.collectors.base_client import CollectorError, HttpClient
from bookscout.processors.title_normalizer import loose, norm

logger = logging.getLogger(__name__)

ANILIST_URL = "https://graphql.anilist.co"

SEED_PAGE_QUERY = """
query ($page: Int, $perPage: Int) {
  Page(page: $page, perPage: $perPage) {
    media(type: MANGA, sort: POPULARITY_DESC) {
      id
      title { native romaji }
      countryOfOrigin
      format
      staff(perPage: 1, sort: RELEVANCE) { nodes { name { native full } } }
    }
  }
}
"""

MEDIA_SEARCH_QUERY = """
query ($search: String) {
  Page(perPage: 10) {
    media(search: $search, type: MANGA) {
      id
      title { romaji english native }
      synonyms
      format
      genres
      tags { name rank isGeneralSpoiler }
    }
  }
}
"""

DESCRIPTION_QUERY = """
query ($id: Int) {
  Media(id: $id, type: MANGA) {
    description(asHtml: true)
  }
}
"""

MAX_TAGS = 30

_JAPANESE_RE = re.compile(r'[ぁ-んァ-ヶ一-龠]')


def looks_japanese(text: Optional[str]) -> bool:
    return bool(_JAPANESE_RE.search(text or ''))


def score_media(media: Dict[str, Any], series_key: str) -> int:
    """How well an AniList media entry matches a series key."""
    key = loose(series_key)
    title = media.get('title') or {}
    titles = [
        loose(t) for t in
        [title.get('native'), title.get('romaji'), title.get('english')] + list(media.get('synonyms') or [])
        if t
    ]
    score = 0
    if key and any(t == key for t in titles):
        score += 1000
    if key and any(key in t for t in titles):
        score += 300
    fmt = str(media.get('format') or '')
    if fmt == 'MANGA':
        score += 40
    if fmt == 'ONE_SHOT':
        score -= 9999
    if media.get('genres'):
        score += 10
    if media.get('tags'):
        score += 10
    return score


def best_media(media_list: List[Dict[str, Any]], series_key: str) -> Optional[Dict[str, Any]]:
    if not media_list:
        return None
    # stable: earlier entries win ties
    return max(media_list, key=lambda m: score_media(m, series_key))


def extract_genres_tags(media: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """AniList id, genres and the top ranked non-spoiler tag names."""
    if not media:
        return {'id': None, 'genres': [], 'tags': []}
    genres = [g for g in media.get('genres') or [] if g]
    tags = [
        t for t in media.get('tags') or []
        if isinstance(t, dict) and t.get('name') and not t.get('isGeneralSpoiler')
    ]
    tags.sort(key=lambda t: t.get('rank') or 0, reverse=True)
    return {
        'id': media.get('id'),
        'genres': genres,
        'tags': [t['name'] for t in tags[:MAX_TAGS]],
    }


def seed_from_media(media: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Seed dict for a popularity-list entry, or None when it should be skipped
    (non-JP origin, one-shot, or no Japanese native title).
    """
    if media.get('countryOfOrigin') != 'JP':
        return None
    if str(media.get('format') or '').upper() == 'ONE_SHOT':
        return None
    native = norm((media.get('title') or {}).get('native'))
    if not looks_japanese(native):
        return None
    seed: Dict[str, Any] = {'seriesKey': native}
    nodes = ((media.get('staff') or {}).get('nodes')) or []
    if nodes and isinstance(nodes[0], dict):
        name = nodes[0].get('name') or {}
        author = norm(name.get('native') or name.get('full'))
        if author:
            seed['author'] = author
    return seed


class AniListClient(HttpClient):

    async def _query(self, query: str, variables: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        data = await self._request_json(
            'POST', ANILIST_URL,
            headers={'content-type': 'application/json', 'accept': 'application/json'},
            data=json.dumps({'query': query, 'variables': variables}, ensure_ascii=False),
        )
        return data.get('data') if isinstance(data, dict) else None

    async def popular_page(self, page: int, per_page: int = 50) -> List[Dict[str, Any]]:
        """One page of manga by popularity. Errors propagate to the caller."""
        data = await self._query(SEED_PAGE_QUERY, {'page': page, 'perPage': per_page})
        return ((data or {}).get('Page') or {}).get('media') or []

    async def media_by_series_key(self, series_key: str) -> Optional[Dict[str, Any]]:
        """Best matching media entry for a series key; None when nothing matches or on error."""
        try:
            data = await self._query(MEDIA_SEARCH_QUERY, {'search': series_key})
        except (CollectorError, ValueError) as e:
            logger.warning(f"AniList search failed for {series_key}: {e}")
            return None
        media = ((data or {}).get('Page') or {}).get('media') or []
        return best_media([m for m in media if isinstance(m, dict)], series_key)

    async def description(self, anilist_id: int) -> Optional[str]:
        try:
            data = await self._query(DESCRIPTION_QUERY, {'id': int(anilist_id)})
        except (CollectorError, ValueError) as e:
            logger.warning(f"AniList description failed for {anilist_id}: {e}")
            return None
        return ((data or {}).get('Media') or {}).get('description')
