#!/usr/bin/env python3
"""
Enrich confirmed series with display metadata.

For every series in confirmed.json an entry in enriched.json is filled in:

  magazine     magazine_overrides.json, else the Wikipedia infobox (掲載誌 / 連載誌)
  genres/tags  AniList, English tags translated through tag_ja_map.json
               (tag_hide.json drops tags; untranslated ones go to tags_todo.json)
  description  openBD, Rakuten caption, Google Books, Wikipedia summary, AniList
  publisher, releaseDate, contributors, image
               from the confirmed record, then openBD, then Google Books

Only empty fields are filled; an entry that already has a value keeps it.
Manual magazine overrides are the exception and always apply. Series that
end up without a magazine are listed in magazine_todo.json.

Usage:
    python -m bookscout.processors.enrich_series
    python -m bookscout.processors.enrich_series --series-keys ワンピース
"""
from __future__ import annotations

import argparse
import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, List, Dict, Any, Set, Tuple, Callable, Awaitable

from bookscout.collectors.anilist_client import AniListClient, extract_genres_tags
from bookscout.collectors.base_client import CollectorError
from bookscout.collectors.google_books_client import GoogleBooksClient
from bookscout.collectors.openbd_client import OpenBDClient
from bookscout.collectors.rakuten_client import RakutenBooksClient
from bookscout.collectors.wikipedia_client import WikipediaClient, wiki_title_looks_ok
from bookscout.config import Settings
from bookscout.jsonio import document_items, items_document, load_json, now_iso, save_json
from bookscout.models import SeriesOutcome
from bookscout.processors.series_state import StateStore
from bookscout.processors.title_normalizer import norm, strip_html, uniq

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

ENRICHED_FILE = 'enriched.json'
MAGAZINE_OVERRIDES_FILE = 'magazine_overrides.json'
MAGAZINE_TODO_FILE = 'magazine_todo.json'
TAG_JA_MAP_FILE = 'tag_ja_map.json'
TAG_HIDE_FILE = 'tag_hide.json'
TAGS_TODO_FILE = 'tags_todo.json'
ANILIST_CACHE_FILE = 'cache/anilist.json'
WIKI_CACHE_FILE = 'cache/wiki.json'

SERIES_DELAY = 0.25
ENRICH_SOURCE = "enrich(wiki(mag)+anilist+tagdict+openbd+googlebooks)"

# Fields copied from the confirmed volume record when empty
BASE_FIELDS = [
    ('title', 'title'), ('isbn13', 'isbn13'), ('asin', 'asin'), ('amazonDp', 'amazonDp'),
    ('image', 'image'), ('publisher', 'publisher'), ('contributors', 'contributors'),
    ('releaseDate', 'releaseDate'),
]
# Fields filled from openBD / Google Books when still empty
BIBLIO_FIELDS = ['publisher', 'releaseDate', 'contributors', 'image']


def is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip()) or value == [] or value == {}


def fill(target: Dict[str, Any], key: str, value: Any) -> bool:
    """Set target[key] only when it is empty and value is not. Returns True if set."""
    if is_empty(target.get(key)) and not is_empty(value):
        target[key] = value
        return True
    return False


@dataclass
class TagDictionary:
    """English AniList tag -> Japanese label, with a hide list and a to-do list of unknown tags."""
    mapping: Dict[str, str] = field(default_factory=dict)
    hide: Set[str] = field(default_factory=set)
    todo: Set[str] = field(default_factory=set)

    @classmethod
    def load(cls, data_dir: Path) -> 'TagDictionary':
        map_doc = load_json(data_dir / TAG_JA_MAP_FILE, fallback={}) or {}
        raw_map = map_doc.get('map') if isinstance(map_doc.get('map'), dict) else {}
        mapping = {norm(k): norm(v) for k, v in raw_map.items() if norm(k) and norm(v)}
        hide_doc = load_json(data_dir / TAG_HIDE_FILE, fallback={}) or {}
        todo_doc = load_json(data_dir / TAGS_TODO_FILE, fallback={}) or {}
        return cls(
            mapping=mapping,
            hide=set(uniq(hide_doc.get('hide') or [])),
            todo=set(uniq(todo_doc.get('tags') or [])),
        )

    def apply(self, tags_en: List[str]) -> Tuple[List[str], List[str]]:
        """(Japanese tags, English tags with no translation yet)."""
        out, missing = [], []
        for tag in uniq(tags_en):
            if tag in self.hide:
                continue
            ja = self.mapping.get(tag)
            if ja:
                out.append(ja)
            else:
                missing.append(tag)
                self.todo.add(tag)
        return uniq(out), missing

    def save_todo(self, data_dir: Path) -> None:
        save_json(data_dir / TAGS_TODO_FILE, {
            'version': 1,
            'updatedAt': now_iso(),
            'tags': sorted(self.todo),
        })


def load_magazine_overrides(path: Path) -> Dict[str, str]:
    doc = load_json(path, fallback={}) or {}
    items = doc.get('items') if isinstance(doc.get('items'), dict) else {}
    out = {}
    for key, value in items.items():
        magazine = norm(value.get('magazine') if isinstance(value, dict) else value)
        if norm(key) and magazine:
            out[norm(key)] = magazine
    return out


class SeriesEnricher:
    """Fills enrichment fields for one series at a time, caching AniList and Wikipedia lookups."""

    def __init__(
        self,
        anilist: AniListClient,
        wikipedia: WikipediaClient,
        openbd: OpenBDClient,
        google_books: GoogleBooksClient,
        rakuten: Optional[RakutenBooksClient] = None,
        tag_dictionary: Optional[TagDictionary] = None,
        magazine_overrides: Optional[Dict[str, str]] = None,
        anilist_cache: Optional[Dict[str, Any]] = None,
        wiki_cache: Optional[Dict[str, Any]] = None
    ):
        self.anilist = anilist
        self.wikipedia = wikipedia
        self.openbd = openbd
        self.google_books = google_books
        self.rakuten = rakuten
        self.tags = tag_dictionary or TagDictionary()
        self.magazine_overrides = magazine_overrides or {}
        self.anilist_cache = anilist_cache if anilist_cache is not None else {}
        self.wiki_cache = wiki_cache if wiki_cache is not None else {}

    async def _anilist_media(self, series_key: str) -> Optional[Dict[str, Any]]:
        if series_key in self.anilist_cache:
            return self.anilist_cache[series_key]
        media = await self.anilist.media_by_series_key(series_key)
        self.anilist_cache[series_key] = media
        return media

    async def _wiki_page(self, series_key: str) -> Optional[Dict[str, Any]]:
        cached = self.wiki_cache.get(series_key)
        if cached and wiki_title_looks_ok(cached.get('title'), series_key):
            return cached
        try:
            page = await self.wikipedia.magazine_by_series_key(series_key)
        except (CollectorError, ValueError) as e:
            # not cached, so the next run retries
            logger.warning(f"Wikipedia search failed for {series_key}: {e}")
            return None
        self.wiki_cache[series_key] = page
        return page

    async def _fill_magazine(self, key: str, v: Dict[str, Any]) -> None:
        override = self.magazine_overrides.get(key)
        if override:
            v['magazine'] = override
            v['magazineSource'] = 'manual_override'
            return
        if not is_empty(v.get('magazine')):
            return
        page = await self._wiki_page(key)
        if page:
            fill(v, 'wikiTitle', page.get('title'))
            if fill(v, 'magazine', page.get('magazine')):
                v['magazineSource'] = 'wikipedia'

    async def _fill_genres_tags(self, key: str, v: Dict[str, Any]) -> None:
        if is_empty(v.get('genres')) or is_empty(v.get('tagsEn')):
            media = await self._anilist_media(key)
            extracted = extract_genres_tags(media)
            fill(v, 'anilistId', extracted['id'])
            fill(v, 'genres', uniq(extracted['genres']))
            fill(v, 'tagsEn', uniq(extracted['tags']))
        # derived from tagsEn and the current dictionary
        tags, missing = self.tags.apply(v.get('tagsEn') or [])
        v['tags'] = tags
        v['tagsMissingEn'] = missing

    async def _fill_bibliographic(self, v: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
        isbn13 = v.get('isbn13')
        fetched: Dict[str, Dict[str, Any]] = {}
        if not isbn13:
            return fetched
        if not any(is_empty(v.get(f)) for f in BIBLIO_FIELDS + ['description']):
            return fetched
        fetched['openbd'] = await self.openbd.lookup(isbn13)
        for f in BIBLIO_FIELDS:
            fill(v, f, fetched['openbd'].get(f))
        if any(is_empty(v.get(f)) for f in BIBLIO_FIELDS) or (
            is_empty(v.get('description')) and not fetched['openbd'].get('description')
        ):
            fetched['googlebooks'] = await self.google_books.lookup(isbn13)
            for f in BIBLIO_FIELDS:
                fill(v, f, fetched['googlebooks'].get(f))
        return fetched

    async def _fill_description(self, key: str, v: Dict[str, Any], fetched: Dict[str, Dict[str, Any]]) -> None:
        if not is_empty(v.get('description')):
            return

        async def rakuten_caption():
            if self.rakuten and v.get('isbn13'):
                return strip_html(await self.rakuten.caption_by_isbn(v['isbn13']))
            return None

        async def google_books():
            data = fetched.get('googlebooks')
            if data is None and v.get('isbn13'):
                data = fetched['googlebooks'] = await self.google_books.lookup(v['isbn13'])
            return (data or {}).get('description')

        async def wikipedia():
            return await self.wikipedia.summary(v.get('wikiTitle') or key)

        async def anilist():
            if v.get('anilistId'):
                return strip_html(await self.anilist.description(v['anilistId']))
            return None

        async def openbd():
            return (fetched.get('openbd') or {}).get('description')

        chain: List[Tuple[str, Callable[[], Awaitable[Optional[str]]]]] = [
            ('openbd', openbd),
            ('rakuten', rakuten_caption),
            ('googlebooks', google_books),
            ('wikipedia', wikipedia),
            ('anilist', anilist),
        ]
        for source, fetch in chain:
            text = await fetch()
            if fill(v, 'description', text):
                v['descriptionSource'] = source
                return

    async def enrich(self, outcome: SeriesOutcome, existing: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Enriched entry for a confirmed series, starting from its previous entry if any."""
        key = outcome.series_key
        entry = dict(existing or {})
        entry['seriesKey'] = key
        fill(entry, 'author', outcome.author)
        v = dict(entry.get('vol1') or {})

        base = outcome.vol1.to_dict() if outcome.vol1 else {}
        for target, source in BASE_FIELDS:
            fill(v, target, base.get(source))
        fill(v, 'titleLane2', base.get('title'))
        fill(v, 'source', base.get('source'))

        await self._fill_magazine(key, v)
        await self._fill_genres_tags(key, v)
        fetched = await self._fill_bibliographic(v)
        await self._fill_description(key, v, fetched)
        v['enrichSource'] = ENRICH_SOURCE

        entry['vol1'] = v
        return entry


async def enrich_all(
    outcomes: List[SeriesOutcome],
    enricher: SeriesEnricher,
    existing: Dict[str, Dict[str, Any]],
    series_keys: Optional[List[str]] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    delay: float = SERIES_DELAY
) -> Tuple[List[Dict[str, Any]], Set[str]]:
    """
    Enrich every confirmed outcome (or only series_keys) and return the
    entries plus the keys still lacking a magazine. Entries for series not
    selected are carried over unchanged.
    """
    entries = []
    missing_magazine: Set[str] = set()
    for i, outcome in enumerate(outcomes, 1):
        key = outcome.series_key
        if series_keys and key not in series_keys:
            if key in existing:
                entries.append(existing[key])
            continue
        entry = await enricher.enrich(outcome, existing.get(key))
        entries.append(entry)
        if is_empty(entry['vol1'].get('magazine')):
            missing_magazine.add(key)
        logger.info(f"Enriched [{i}/{len(outcomes)}]: {key}")
        await sleep(delay)
    return entries, missing_magazine


async def run_enrich(settings: Settings, series_keys: Optional[List[str]] = None) -> List[Dict[str, Any]]:
    data_dir = settings.data_dir
    state = StateStore(data_dir).load()
    outcomes = list(state.confirmed.values())

    enriched_path = data_dir / ENRICHED_FILE
    existing = {
        item['seriesKey']: item
        for item in document_items(load_json(enriched_path, fallback={'items': []}))
        if isinstance(item, dict) and item.get('seriesKey')
    }
    anilist_cache = load_json(data_dir / ANILIST_CACHE_FILE, fallback={}) or {}
    wiki_cache = load_json(data_dir / WIKI_CACHE_FILE, fallback={}) or {}
    tag_dictionary = TagDictionary.load(data_dir)

    anilist = AniListClient(request_delay=SERIES_DELAY)
    wikipedia = WikipediaClient(request_delay=SERIES_DELAY)
    openbd = OpenBDClient()
    google_books = GoogleBooksClient(settings.google_books_api_key)
    rakuten = RakutenBooksClient(settings, request_delay=1.0) if settings.rakuten_app_id else None
    enricher = SeriesEnricher(
        anilist, wikipedia, openbd, google_books, rakuten,
        tag_dictionary=tag_dictionary,
        magazine_overrides=load_magazine_overrides(data_dir / MAGAZINE_OVERRIDES_FILE),
        anilist_cache=anilist_cache,
        wiki_cache=wiki_cache,
    )
    try:
        entries, missing_magazine = await enrich_all(outcomes, enricher, existing, series_keys)
    finally:
        for client in (anilist, wikipedia, openbd, google_books, rakuten):
            if client is not None:
                await client.close()

    # magazine_todo accumulates; series that gained a magazine drop out
    todo_doc = load_json(data_dir / MAGAZINE_TODO_FILE, fallback={}) or {}
    magazine_todo = set(uniq(todo_doc.get('items') or []))
    for entry in entries:
        if entry['seriesKey'] not in missing_magazine:
            magazine_todo.discard(entry['seriesKey'])
    magazine_todo |= missing_magazine

    save_json(enriched_path, items_document(entries))
    save_json(data_dir / MAGAZINE_TODO_FILE, items_document(sorted(magazine_todo), version=1))
    tag_dictionary.save_todo(data_dir)
    save_json(data_dir / ANILIST_CACHE_FILE, anilist_cache)
    save_json(data_dir / WIKI_CACHE_FILE, wiki_cache)
    logger.info(f"Enriched {len(entries)} series -> {enriched_path}")
    return entries


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(description='Enrich confirmed series with display metadata')
    parser.add_argument('--data-dir', type=Path, help='State directory (default: LANE2_DATA_DIR or data/lane2)')
    parser.add_argument('--series-keys', nargs='+', help='Only enrich these series')
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    if args.data_dir:
        settings.data_dir = args.data_dir
    entries = asyncio.run(run_enrich(settings, args.series_keys))

    print(f"\n{'=' * 60}")
    print("Enrichment Summary")
    print(f"{'=' * 60}")
    print(f"  Series: {len(entries)}")
    print(f"  With magazine: {sum(1 for e in entries if e['vol1'].get('magazine'))}")
    print(f"  With description: {sum(1 for e in entries if e['vol1'].get('description'))}")


if __name__ == '__main__':
    main()
