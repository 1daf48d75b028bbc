"""
S3 互換オブジェクトストレージ（Cloudflare R2）への書き込み

Keys are ``{folder_prefix}/{unix_millis}-{random_token}.{ext}``. No existence
check is made before writing; the millisecond timestamp plus the random
token make collisions negligible, so concurrent writers to the same prefix
need no coordination. Objects are never rewritten under an issued key.
"""
from __future__ import annotations

import logging
import re
import secrets
import string
import time
from typing import Any, Optional
from urllib.parse import urlparse

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from genie.domain.entities.image_asset import PresignedUpload, StoredObject
from genie.domain.errors import MissingPublicBaseURLError, StorageWriteError
from genie.domain.services.image_normalizer import decode_base64
from genie.infrastructure.config.settings import StorageConfig

logger = logging.getLogger(__name__)

TOKEN_ALPHABET = string.ascii_lowercase + string.digits
TOKEN_LENGTH = 11
PRESIGN_EXPIRES_SECONDS = 300
DEFAULT_UPLOAD_FOLDER = "temp"

_FOLDER_SEGMENT_RE = re.compile(r"^[A-Za-z0-9_-]+$")
_UNSAFE_FOLDER_CHARS_RE = re.compile(r"[^A-Za-z0-9_-]")

_EXTENSION_OVERRIDES = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/svg+xml": "svg",
    "video/quicktime": "mov",
}


def extension_from_media_type(media_type: str) -> str:
    mime = (media_type or "").split(";", 1)[0].strip().lower()
    if mime in _EXTENSION_OVERRIDES:
        return _EXTENSION_OVERRIDES[mime]
    _, _, subtype = mime.partition("/")
    return subtype or "bin"


def generate_filename(extension: str = "png") -> str:
    timestamp = int(time.time() * 1000)
    token = "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(TOKEN_LENGTH))
    return f"{timestamp}-{token}.{extension}"


def clean_folder_prefix(folder_prefix: str) -> str:
    """
    Validate a folder prefix: one or more `[A-Za-z0-9_-]` segments joined by
    "/". Surrounding slashes are dropped.

    Raises:
        ValueError: empty prefix, empty segment, or any other character
    """
    prefix = (folder_prefix or "").strip().strip("/")
    if not prefix or not all(_FOLDER_SEGMENT_RE.match(s) for s in prefix.split("/")):
        raise ValueError(f"Invalid folder prefix: {folder_prefix!r}")
    return prefix


def sanitize_folder(folder: Optional[str]) -> str:
    """Strip every character outside `[A-Za-z0-9_-]`; empty falls back to "temp"."""
    return _UNSAFE_FOLDER_CHARS_RE.sub("", folder or "") or DEFAULT_UPLOAD_FOLDER


def build_key(folder_prefix: str, filename: str) -> str:
    return f"{clean_folder_prefix(folder_prefix)}/{filename}"


def endpoint_host(endpoint: str) -> str:
    parsed = urlparse(endpoint if "://" in endpoint else f"https://{endpoint}")
    return (parsed.netloc + parsed.path).rstrip("/")


class ObjectStoreWriter:
    """Writes artifacts to the configured bucket and returns public URLs"""

    def __init__(self, config: StorageConfig, client: Optional[Any] = None):
        self.config = config
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = boto3.client(
                "s3",
                region_name=self.config.region or "auto",
                endpoint_url=self.config.endpoint or None,
                aws_access_key_id=self.config.access_key_id,
                aws_secret_access_key=self.config.secret_access_key,
                config=BotoConfig(s3={"addressing_style": "path"}),
            )
        return self._client

    def public_url_for(self, key: str, require_public_base: bool = False) -> str:
        """
        Resolve the externally reachable URL of ``key``.

        1. ``{public_base_url}/{key}`` when a public base URL is configured
        2. ``https://{endpoint_host}/{bucket}/{key}`` otherwise, unless the
           call site requires the public base URL
        """
        public_base = self.config.public_base_url
        if public_base:
            return f"{public_base.rstrip('/')}/{key}"
        if require_public_base:
            logger.error("R2_PUBLIC_BASE_URL is not set; refusing to hand out an endpoint URL")
            raise MissingPublicBaseURLError()
        host = endpoint_host(self.config.endpoint)
        if not host:
            raise MissingPublicBaseURLError(
                "Neither R2_PUBLIC_BASE_URL nor R2_ENDPOINT is configured"
            )
        return f"https://{host}/{self.config.bucket}/{key}"

    def store(
        self,
        data: bytes,
        media_type: str,
        folder_prefix: str,
        *,
        require_public_base: bool = False,
    ) -> StoredObject:
        """
        Write ``data`` under a freshly generated key.

        Raises:
            ValueError: invalid folder prefix
            MissingPublicBaseURLError: ``require_public_base`` and no base URL
                configured (checked before anything is written)
            StorageWriteError: transport/auth failure from the store
        """
        key = build_key(folder_prefix, generate_filename(extension_from_media_type(media_type)))
        # resolve first so a strict call site never leaves an orphaned object
        public_url = self.public_url_for(key, require_public_base=require_public_base)

        try:
            self.client.put_object(
                Bucket=self.config.bucket,
                Key=key,
                Body=data,
                ContentType=media_type,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("Error uploading %s to bucket %s: %s", key, self.config.bucket, e)
            raise StorageWriteError(f"Failed to save image: {e}") from e

        logger.info("Stored %s (%d bytes) -> %s", key, len(data), public_url)
        return StoredObject(
            key=key,
            bucket=self.config.bucket,
            media_type=media_type,
            public_url=public_url,
            size_bytes=len(data),
        )

    def store_base64(
        self,
        b64: str,
        media_type: str,
        folder_prefix: str,
        *,
        require_public_base: bool = False,
    ) -> StoredObject:
        return self.store(
            decode_base64(b64),
            media_type,
            folder_prefix,
            require_public_base=require_public_base,
        )

    def presign_upload(
        self,
        content_type: str,
        folder_prefix: str = DEFAULT_UPLOAD_FOLDER,
        expires_in: int = PRESIGN_EXPIRES_SECONDS,
    ) -> PresignedUpload:
        """
        Hand out a presigned PUT URL so large inputs go straight to the bucket.

        The returned ``file_url`` is where the object will be readable once
        the client has uploaded it, so a public base URL is required.

        Raises:
            ValueError: missing content type or invalid folder prefix
            MissingPublicBaseURLError: no public base URL configured
            StorageWriteError: the URL could not be signed
        """
        if not content_type:
            raise ValueError("Missing contentType")
        key = build_key(folder_prefix, generate_filename(extension_from_media_type(content_type)))
        file_url = self.public_url_for(key, require_public_base=True)

        try:
            upload_url = self.client.generate_presigned_url(
                "put_object",
                Params={"Bucket": self.config.bucket, "Key": key, "ContentType": content_type},
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("Error signing upload for %s: %s", key, e)
            raise StorageWriteError(f"Failed to generate upload URL: {e}") from e

        logger.info("Signed upload for %s (expires in %ds)", key, expires_in)
        return PresignedUpload(key=key, upload_url=upload_url, file_url=file_url, expires_in=expires_in)

    def delete(self, key: str) -> None:
        try:
            self.client.delete_object(Bucket=self.config.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            logger.error("Error deleting %s from bucket %s: %s", key, self.config.bucket, e)
            raise StorageWriteError(f"Failed to delete image: {e}") from e
        logger.info("Deleted %s", key)
