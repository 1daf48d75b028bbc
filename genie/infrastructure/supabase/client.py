from __future__ import annotations
import logging
from typing import Optional

from supabase import Client, create_client

from genie.domain.errors import PersistError
from genie.infrastructure.config.settings import Settings, get_settings

_client: Client | None = None
logger = logging.getLogger(__name__)


def get_supabase(settings: Optional[Settings] = None) -> Client:
    """Process-wide Supabase client used as the share record store."""
    global _client
    if _client is None:
        settings = settings or get_settings()
        if not settings.supabase_url or not settings.supabase_key:
            raise PersistError("Share storage is not configured (SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY)")
        logger.debug("Creating Supabase client url=%s", settings.supabase_url)
        _client = create_client(settings.supabase_url, settings.supabase_key)
    return _client


def reset_supabase() -> None:
    global _client
    _client = None
