"""Share link publishing."""
from __future__ import annotations

import logging
from typing import Optional, Protocol

from genie.domain.entities.image_asset import ShareLink, ShareRecord
from genie.domain.errors import ShareNotFoundError

logger = logging.getLogger(__name__)

LOCALHOST_ORIGIN = "http://localhost:3000"


class ShareStore(Protocol):
    def create_share(self, image_url: str, display_name: str, attribution_id: Optional[str] = None) -> ShareRecord: ...

    def get_share(self, share_id: str) -> Optional[ShareRecord]: ...

    def increment_access_count(self, record: ShareRecord) -> ShareRecord: ...


def resolve_share_origin(
    request_origin: Optional[str] = None,
    request_host: Optional[str] = None,
    app_url: Optional[str] = None,
) -> str:
    """Request origin, then https://{host}, then the configured app URL, then localhost."""
    if request_origin:
        return request_origin.rstrip("/")
    if request_host:
        return f"https://{request_host.rstrip('/')}"
    if app_url:
        return app_url.rstrip("/")
    return LOCALHOST_ORIGIN


def build_share_url(origin: str, share_id: str) -> str:
    return f"{origin}/shared?id={share_id}"


class SharePublisher:
    """Creates share records and their public links.

    Not idempotent: identical inputs produce distinct records.
    """

    def __init__(self, store: ShareStore, app_url: Optional[str] = None):
        self.store = store
        self.app_url = app_url

    def publish(
        self,
        stored_object_url: str,
        display_name: str,
        attribution_id: Optional[str] = None,
        *,
        request_origin: Optional[str] = None,
        request_host: Optional[str] = None,
    ) -> ShareLink:
        """
        Raises:
            ValueError: missing image url or display name
            PersistError: the record could not be written
        """
        if not stored_object_url or not display_name:
            raise ValueError("Missing required fields")

        record = self.store.create_share(stored_object_url, display_name, attribution_id)
        origin = resolve_share_origin(request_origin, request_host, self.app_url)
        link = ShareLink(id=record.id, share_url=build_share_url(origin, record.id))
        logger.info("Created share %s for %s", record.id, stored_object_url)
        return link

    def get_share(self, share_id: str) -> ShareRecord:
        record = self.store.get_share(share_id)
        if record is None:
            raise ShareNotFoundError()
        return self.store.increment_access_count(record)
