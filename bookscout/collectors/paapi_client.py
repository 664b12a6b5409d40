"""
Amazon Product Advertising API 5.0 client (amazon.co.jp marketplace).

Requests are signed with AWS Signature Version 4. GetItems resolves ASINs
and ISBN-10s (which double as ASINs for printed books); SearchItems serves
ISBN-13 lookups and keyword searches.
"""
from __future__ import annotations

import hashlib
import hmac
import json
import logging
from datetime import datetime, timezone
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
from bookscout.isbn import clean_asin, clean_isbn, clean_isbn13, isbn10_to_isbn13
from bookscout.models import Candidate

logger = logging.getLogger(__name__)

HOST = "webservices.amazon.co.jp"
REGION = "us-west-2"
MARKETPLACE = "www.amazon.co.jp"
SERVICE = "ProductAdvertisingAPI"
ALGORITHM = "AWS4-HMAC-SHA256"
TARGET_PREFIX = "com.amazon.paapi5.v1.ProductAdvertisingAPIv1."
CONTENT_TYPE = "application/json; charset=utf-8"
SIGNED_HEADERS = "content-encoding;content-type;host;x-amz-date;x-amz-target"

RESOURCES = [
    "ItemInfo.Title",
    "ItemInfo.ByLineInfo",
    "ItemInfo.ExternalIds",
    "ItemInfo.ContentInfo",
    "ItemInfo.ProductInfo",
    "Images.Primary.Large",
]


def _hmac(key: bytes, data: str) -> bytes:
    return hmac.new(key, data.encode('utf-8'), hashlib.sha256).digest()


def _sha256_hex(data: str) -> str:
    return hashlib.sha256(data.encode('utf-8')).hexdigest()


def amz_date(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.strftime('%Y%m%dT%H%M%SZ')


def signing_key(secret_key: str, datestamp: str, region: str = REGION, service: str = SERVICE) -> bytes:
    k_date = _hmac(('AWS4' + secret_key).encode('utf-8'), datestamp)
    k_region = _hmac(k_date, region)
    k_service = _hmac(k_region, service)
    return _hmac(k_service, 'aws4_request')


def sign_request(
    operation: str,
    body: str,
    access_key: str,
    secret_key: str,
    now: Optional[datetime] = None,
    host: str = HOST,
    region: str = REGION
) -> Dict[str, str]:
    """
    Headers for a signed PA-API POST.

    Returns the full header set including Authorization.
    """
    date = amz_date(now)
    datestamp = date[:8]
    target = TARGET_PREFIX + operation
    path = f"/paapi5/{operation.lower()}"

    canonical_headers = (
        f"content-encoding:amz-1.0\n"
        f"content-type:{CONTENT_TYPE}\n"
        f"host:{host}\n"
        f"x-amz-date:{date}\n"
        f"x-amz-target:{target}\n"
    )
    canonical_request = "\n".join([
        "POST", path, "", canonical_headers, SIGNED_HEADERS, _sha256_hex(body)
    ])
    credential_scope = f"{datestamp}/{region}/{SERVICE}/aws4_request"
    string_to_sign = "\n".join([
        ALGORITHM, date, credential_scope, _sha256_hex(canonical_request)
    ])
    signature = hmac.new(
        signing_key(secret_key, datestamp, region), string_to_sign.encode('utf-8'), hashlib.sha256
    ).hexdigest()

    return {
        'content-encoding': 'amz-1.0',
        'content-type': CONTENT_TYPE,
        'host': host,
        'x-amz-date': date,
        'x-amz-target': target,
        'Authorization': (
            f"{ALGORITHM} Credential={access_key}/{credential_scope}, "
            f"SignedHeaders={SIGNED_HEADERS}, Signature={signature}"
        ),
    }


def _display(obj: Optional[Dict[str, Any]], *path: str) -> Optional[Any]:
    for key in path:
        if not isinstance(obj, dict):
            return None
        obj = obj.get(key)
    return obj


def parse_item(item: Dict[str, Any], query: Optional[str] = None) -> Optional[Candidate]:
    """Normalize one PA-API Item into a Candidate."""
    info = item.get('ItemInfo') or {}
    title = _display(info, 'Title', 'DisplayValue')
    if not title:
        return None

    isbn13 = None
    external = info.get('ExternalIds') or {}
    for key in ('EANs', 'ISBNs'):
        for value in _display(external, key, 'DisplayValues') or []:
            isbn13 = clean_isbn13(value) or (isbn10_to_isbn13(value) if clean_isbn(value) else None)
            if isbn13:
                break
        if isbn13:
            break

    contributors = [
        c.get('Name') for c in (_display(info, 'ByLineInfo', 'Contributors') or [])
        if isinstance(c, dict) and c.get('Name')
    ]
    publisher = (
        _display(info, 'ByLineInfo', 'Manufacturer', 'DisplayValue')
        or _display(info, 'ByLineInfo', 'Brand', 'DisplayValue')
    )
    release = (
        _display(info, 'ContentInfo', 'PublicationDate', 'DisplayValue')
        or _display(info, 'ProductInfo', 'ReleaseDate', 'DisplayValue')
    )

    return Candidate(
        title=str(title).strip(),
        isbn13=isbn13,
        asin=clean_asin(item.get('ASIN')),
        image=_display(item, 'Images', 'Primary', 'Large', 'URL'),
        contributors=contributors,
        publisher=publisher,
        release_date=release,
        source='paapi',
        query=query,
    )


def parse_items(payload: Optional[Dict[str, Any]], query: Optional[str] = None) -> List[Candidate]:
    """Candidates from a SearchItems or GetItems response body."""
    if not isinstance(payload, dict):
        return []
    items = (
        _display(payload, 'SearchResult', 'Items')
        or _display(payload, 'ItemsResult', 'Items')
        or []
    )
    out = []
    for item in items:
        if isinstance(item, dict):
            candidate = parse_item(item, query)
            if candidate:
                out.append(candidate)
    return out


class PaapiClient(HttpClient, VolumeLookup):
    """VolumeLookup backed by the Product Advertising API."""

    name = "paapi"

    def __init__(self, settings: Settings, **kwargs):
        super().__init__(**kwargs)
        self.access_key = settings.amazon_access_key
        self.secret_key = settings.amazon_secret_key
        self.partner_tag = settings.amazon_partner_tag

    def _check_credentials(self):
        if not (self.access_key and self.secret_key and self.partner_tag):
            raise CredentialsMissing("Missing AMZ credentials (access/secret/partnerTag)")

    async def _call(self, operation: str, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        self._check_credentials()
        payload = dict(payload)
        payload.update({
            'PartnerTag': self.partner_tag,
            'PartnerType': 'Associates',
            'Marketplace': MARKETPLACE,
            'Resources': RESOURCES,
        })
        body = json.dumps(payload, ensure_ascii=False)
        headers = sign_request(operation, body, self.access_key, self.secret_key)
        headers.pop('host')
        return await self._request_json(
            'POST', f"https://{HOST}/paapi5/{operation.lower()}",
            headers=headers, data=body.encode('utf-8')
        )

    async def get_items(self, item_ids: List[str]) -> List[Candidate]:
        data = await self._call('GetItems', {'ItemIds': item_ids, 'ItemIdType': 'ASIN'})
        return parse_items(data, ','.join(item_ids))

    async def search_items(self, keywords: str) -> List[Candidate]:
        data = await self._call('SearchItems', {
            'Keywords': keywords,
            'SearchIndex': 'Books',
            'ItemCount': MAX_SEARCH_RESULTS,
        })
        return parse_items(data, keywords)

    async def lookup_by_identifier(self, identifier: str) -> LookupResult:
        try:
            isbn13 = clean_isbn13(identifier)
            if isbn13:
                candidates = [
                    c for c in await self.search_items(isbn13)
                    if c.isbn13 in (None, isbn13)
                ]
            else:
                asin = clean_asin(identifier)
                if not asin:
                    return LookupResult.not_found(f"not an identifier: {identifier!r}")
                candidates = await self.get_items([asin])
        except (CollectorError, ValueError) as e:
            logger.warning(f"PA-API lookup failed for {identifier}: {e}")
            return LookupResult.from_exception(e)
        return LookupResult.found(candidates[:1])

    async def search_by_keywords(self, query: str) -> LookupResult:
        try:
            candidates = await self.search_items(query)
        except (CollectorError, ValueError) as e:
            logger.warning(f"PA-API search failed for {query!r}: {e}")
            return LookupResult.from_exception(e)
        return LookupResult.found(candidates)
