"""Catalog and metadata collectors."""
from .base_client import (
    CollectorError,
    CredentialsMissing,
    HttpClient,
    LookupResult,
    LookupStatus,
    VolumeLookup,
)
from .paapi_client import PaapiClient
from .rakuten_client import RakutenBooksClient

__all__ = [
    "CollectorError",
    "CredentialsMissing",
    "HttpClient",
    "LookupResult",
    "LookupStatus",
    "VolumeLookup",
    "PaapiClient",
    "RakutenBooksClient",
]
