"""
Credentials resolution for the classifier and the sheet sink.

Values stored through the admin panel (api_keys table) win over environment
variables. Lookups are cached for a few minutes so each tick does not hit the
database, and a failed database lookup falls back to the environment.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy.engine import Engine

from sync_leads import config
from sync_leads.cache import TTLCache
from sync_leads.db.readers.api_keys import get_latest_api_keys
from sync_leads.errors import ConfigurationError

logger = structlog.get_logger(__name__)

_CACHE_KEY = "api_keys"


@dataclass(frozen=True)
class Credentials:
    openai_key: Optional[str] = None
    google_client_email: Optional[str] = None
    google_private_key: Optional[str] = None
    google_sheet_id: Optional[str] = None
    google_service_account_json_path: Optional[str] = None

    def require_openai_key(self) -> str:
        if not self.openai_key:
            raise ConfigurationError("OpenAI API key is not configured")
        return self.openai_key

    def require_sheet_id(self) -> str:
        if not self.google_sheet_id:
            raise ConfigurationError("Google Sheet ID is not configured")
        return self.google_sheet_id


def _unescape_private_key(value: Optional[str]) -> Optional[str]:
    return value.replace("\\n", "\n") if value else value


class CredentialsProvider:
    """Resolve credentials from the api_keys table with environment fallbacks."""

    def __init__(
        self,
        engine: Optional[Engine] = None,
        ttl_seconds: float = config.CREDENTIALS_CACHE_TTL_SECONDS,
    ):
        self.engine = engine
        self._cache: TTLCache[Credentials] = TTLCache(ttl_seconds=ttl_seconds)

    def get(self) -> Credentials:
        cached = self._cache.get(_CACHE_KEY)
        if cached is not None:
            return cached

        stored: dict = {}
        if self.engine is not None:
            try:
                with self.engine.connect() as conn:
                    stored = get_latest_api_keys(conn) or {}
            except Exception as e:
                logger.warning("api_keys_lookup_failed", error=str(e))

        credentials = Credentials(
            openai_key=stored.get("openai_key") or config.OPENAI_API_KEY,
            google_client_email=stored.get("google_client_email") or config.GOOGLE_CLIENT_EMAIL,
            google_private_key=_unescape_private_key(
                stored.get("google_private_key") or config.GOOGLE_PRIVATE_KEY
            ),
            google_sheet_id=stored.get("google_sheet_id") or config.GOOGLE_SHEET_ID,
            google_service_account_json_path=config.GOOGLE_SERVICE_ACCOUNT_JSON_PATH,
        )
        self._cache.set(_CACHE_KEY, credentials)
        return credentials

    def openai_key(self) -> Optional[str]:
        return self.get().openai_key

    def invalidate(self) -> None:
        """Drop the cached credentials so the next call re-reads them."""
        self._cache.clear()
