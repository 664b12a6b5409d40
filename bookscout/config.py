"""Run settings and API credentials."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Dict, Mapping

logger = logging.getLogger(__name__)

DEFAULT_SECRETS_FILE = Path("secrets.json")
DEFAULT_DATA_DIR = Path("data/lane2")


def load_secrets(path: Optional[Path] = None) -> Dict[str, str]:
    """Load API keys from secrets.json file."""
    path = path or DEFAULT_SECRETS_FILE
    if path.exists():
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Failed to load secrets from {path}: {e}")
    return {}


def get_api_key(
    key_name: str,
    secrets_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None
) -> Optional[str]:
    """Get API key from environment or secrets file."""
    environ = os.environ if environ is None else environ
    # First check environment
    value = environ.get(key_name)
    if value:
        return value
    # Then check secrets file
    secrets = load_secrets(secrets_path)
    return secrets.get(key_name) or None


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer {name}={raw!r}")
        return default


def _env_float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring non-numeric {name}={raw!r}")
        return default


@dataclass
class Settings:
    """
    Settings for one pipeline run.

    Built once (usually via from_env) and handed to the resolver and the
    collectors at construction time.
    """
    data_dir: Path = DEFAULT_DATA_DIR
    max_per_run: int = 20
    request_delay: float = 1.2
    max_attempts: int = 4
    backoff_base: float = 2.0
    seed_add_limit: int = 100
    seed_max_pages: int = 20

    amazon_access_key: Optional[str] = None
    amazon_secret_key: Optional[str] = None
    amazon_partner_tag: Optional[str] = None
    rakuten_app_id: Optional[str] = None
    google_books_api_key: Optional[str] = None

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        secrets_path: Optional[Path] = None
    ) -> 'Settings':
        environ = os.environ if environ is None else environ
        secrets = load_secrets(secrets_path)

        def key(name: str) -> Optional[str]:
            return environ.get(name) or secrets.get(name) or None

        return cls(
            data_dir=Path(environ.get("LANE2_DATA_DIR") or DEFAULT_DATA_DIR),
            max_per_run=_env_int(environ, "LANE2_BUILD_LIMIT", 20),
            request_delay=_env_float(environ, "LANE2_REQUEST_DELAY", 1.2),
            max_attempts=max(1, _env_int(environ, "LANE2_MAX_ATTEMPTS", 4)),
            backoff_base=_env_float(environ, "LANE2_BACKOFF_BASE", 2.0),
            seed_add_limit=_env_int(
                environ, "LANE2_SEED_ADD", _env_int(environ, "LANE2_SEED_LIMIT", 100)
            ),
            seed_max_pages=_env_int(environ, "LANE2_SEED_MAX_PAGES", 20),
            amazon_access_key=key("AMZ_ACCESS_KEY"),
            amazon_secret_key=key("AMZ_SECRET_KEY"),
            amazon_partner_tag=key("AMZ_PARTNER_TAG"),
            rakuten_app_id=key("RAKUTEN_APP_ID"),
            google_books_api_key=key("GOOGLE_BOOKS_API_KEY"),
        )

    @property
    def has_amazon_credentials(self) -> bool:
        return bool(self.amazon_access_key and self.amazon_secret_key and self.amazon_partner_tag)

    def path(self, name: str) -> Path:
        """Path of a state / output file inside the data directory."""
        return self.data_dir / name
