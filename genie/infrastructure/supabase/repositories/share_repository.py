"""
共有レコード用 Supabase リポジトリ

Rows of ``shared_images`` map an opaque, database-assigned id to a stored
image URL. ``id`` and ``created_at`` come from column defaults
(``gen_random_uuid()`` / ``now()``), never from the client.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from supabase import Client

from genie.domain.entities.image_asset import ShareRecord
from genie.domain.errors import PersistError
from genie.infrastructure.supabase.client import get_supabase

logger = logging.getLogger(__name__)

SHARES_TABLE = "shared_images"


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime) or value is None:
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def row_to_record(row: Dict[str, Any]) -> ShareRecord:
    return ShareRecord(
        id=str(row["id"]),
        image_url=row.get("image_url", ""),
        display_name=row.get("display_name", ""),
        attribution_id=row.get("attribution_id"),
        created_at=_parse_timestamp(row.get("created_at")),
        access_count=int(row.get("access_count") or 0),
    )


class ShareRepository:
    """共有レコードリポジトリ"""

    def __init__(self, client_factory: Callable[[], Client] = get_supabase):
        self._client_factory = client_factory

    def create_share(
        self,
        image_url: str,
        display_name: str,
        attribution_id: Optional[str] = None,
    ) -> ShareRecord:
        """Insert a new row; every call creates a distinct record."""
        payload = {
            "image_url": image_url,
            "display_name": display_name,
            "attribution_id": attribution_id,
        }
        try:
            sb = self._client_factory()
            res = sb.table(SHARES_TABLE).insert(payload).execute()
        except PersistError:
            raise
        except Exception as e:
            logger.error("Error creating share for %s: %s", image_url, e)
            raise PersistError(f"Failed to create share: {e}") from e

        data = res.data
        if not (isinstance(data, list) and data and data[0].get("id")):
            logger.error("Share insert returned no id: %r", data)
            raise PersistError("Failed to create share: no id returned")
        return row_to_record(data[0])

    def get_share(self, share_id: str) -> Optional[ShareRecord]:
        """``None`` when no row matches; ids that are not UUIDs never match."""
        try:
            uuid.UUID(share_id)
        except (TypeError, ValueError):
            logger.info("Rejected malformed share id %r", share_id)
            return None
        try:
            sb = self._client_factory()
            res = sb.table(SHARES_TABLE).select("*").eq("id", share_id).limit(1).execute()
        except PersistError:
            raise
        except Exception as e:
            logger.error("Error reading share %s: %s", share_id, e)
            raise PersistError(f"Failed to get shared image: {e}") from e
        data = res.data
        if isinstance(data, list) and data:
            return row_to_record(data[0])
        return None

    def increment_access_count(self, record: ShareRecord) -> ShareRecord:
        """Best-effort view counter; read-modify-write, so concurrent views may undercount."""
        new_count = record.access_count + 1
        try:
            sb = self._client_factory()
            sb.table(SHARES_TABLE).update({"access_count": new_count}).eq("id", record.id).execute()
        except Exception as e:
            logger.warning("Failed to update access count for share %s: %s", record.id, e)
            return record
        record.access_count = new_count
        return record
