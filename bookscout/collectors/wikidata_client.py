"""Wikidata SPARQL lookups of work identifiers (QID, AniList, MyAnimeList, Kitsu) by ISBN."""
from __future__ import annotations

import logging
import time
from typing import Optional, Dict, Any, Callable

import requests

from bookscout.collectors.base_client import CollectorError, USER_AGENT
from bookscout.isbn import isbn13_to_isbn10

logger = logging.getLogger(__name__)

SPARQL_ENDPOINT = "https://query.wikidata.org/sparql"
MAX_TRIES = 5


def build_query(isbn13: str) -> str:
    isbn10 = isbn13_to_isbn10(isbn13) or isbn13[-10:]
    return f"""
SELECT ?item ?anilist ?mal ?kitsu WHERE {{
  {{ ?item wdt:P212 "{isbn13}" }} UNION {{ ?item wdt:P957 "{isbn10}" }} .
  OPTIONAL {{ ?item wdt:P8731 ?anilist . }}
  OPTIONAL {{ ?item wdt:P4087 ?mal . }}
  OPTIONAL {{ ?item wdt:P11494 ?kitsu . }}
}} LIMIT 1
""".strip()


def _int_or_none(binding: Dict[str, Any], name: str) -> Optional[int]:
    value = (binding.get(name) or {}).get('value')
    try:
        return int(value) if value else None
    except (TypeError, ValueError):
        return None


def parse_bindings(data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    bindings = (((data or {}).get('results') or {}).get('bindings')) or []
    b = bindings[0] if bindings else {}
    item = (b.get('item') or {}).get('value')
    return {
        'qid': item.rsplit('/', 1)[-1] if item else None,
        'anilist': _int_or_none(b, 'anilist'),
        'mal': _int_or_none(b, 'mal'),
        'kitsu': _int_or_none(b, 'kitsu'),
    }


class WikidataClient:
    """Synchronous SPARQL client; 429 and 5xx responses are retried with a growing pause."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        timeout: float = 30.0
    ):
        self.session = session or requests.Session()
        self.session.headers.update({'User-Agent': USER_AGENT, 'Accept': 'application/sparql-results+json'})
        self.sleep = sleep
        self.timeout = timeout

    def ids_by_isbn(self, isbn13: str) -> Dict[str, Any]:
        query = build_query(isbn13)
        for attempt in range(MAX_TRIES):
            try:
                response = self.session.get(
                    SPARQL_ENDPOINT,
                    params={'format': 'json', 'query': query},
                    timeout=self.timeout,
                )
            except requests.RequestException as e:
                logger.warning(f"Wikidata request failed for {isbn13}: {e}")
                self.sleep(0.5 * (attempt + 1))
                continue
            if response.status_code == 429 or 500 <= response.status_code <= 599:
                logger.debug(f"Wikidata HTTP {response.status_code} for {isbn13}, retrying")
                self.sleep(0.5 * (attempt + 1))
                continue
            if response.status_code != 200:
                raise CollectorError(f"Wikidata HTTP {response.status_code}: {response.text[:200]}")
            return parse_bindings(response.json())
        raise CollectorError(f"Wikidata retries exceeded for {isbn13}", is_retryable=True)
