"""
画像パイプライン ユースケース

正規化 → リクエスト構築 → 画像生成 → ストレージ保存 → 共有リンク発行 を統合する。

Storage and share steps are independent: nothing spans both, and a failed
share after a successful store is reported with the stored URL so that
only the share step needs retrying.
"""
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence, Tuple

from genie.domain.entities.image_asset import (
    FilePart,
    GenerationOutcome,
    ImageAsset,
    ImageOrigin,
    PresignedUpload,
    ShareLink,
    ShareRecord,
    StoredObject,
)
from genie.domain.errors import (
    MissingImageDataError,
    NoImageReturnedError,
    PipelineError,
    ShareAfterStoreError,
)
from genie.domain.services import request_builder
from genie.domain.services.generation_output import collect_text, extract_first_image
from genie.domain.services.image_generation_port import ImageGenerationPort
from genie.domain.services.image_normalizer import normalize_many, parse_data_url
from genie.domain.services.share_publisher import SharePublisher
from genie.infrastructure.config.settings import (
    gateway_config_from_settings,
    get_settings,
    storage_config_from_settings,
)
from genie.infrastructure.gemini.image_generator import GeminiImageGenerator
from genie.infrastructure.storage.object_store import (
    DEFAULT_UPLOAD_FOLDER,
    ObjectStoreWriter,
    clean_folder_prefix,
    sanitize_folder,
)
from genie.infrastructure.supabase.repositories.share_repository import ShareRepository

logger = logging.getLogger(__name__)

TEMPLATES_FOLDER = "templates"
SAVE_DESTINATIONS = frozenset({"saved", "filters", "outfits"})
TEMPLATE_PREVIEW_INSTRUCTION = (
    "Generate a thumbnail preview image for a template with the following description: '{description}'"
)


def _get_writer() -> ObjectStoreWriter:
    return ObjectStoreWriter(storage_config_from_settings(get_settings()))


def _get_generator() -> ImageGenerationPort:
    return GeminiImageGenerator(gateway_config_from_settings(get_settings()))


def _get_publisher() -> SharePublisher:
    return SharePublisher(ShareRepository(), app_url=get_settings().app_url)


# ── Preparation ──


async def prepare_images(images: Sequence[ImageAsset]) -> List[ImageAsset]:
    """Normalize every image concurrently; the output keeps the input order."""
    for index, image in enumerate(images):
        if not image.has_inline_data and not image.url:
            raise MissingImageDataError(f"Image {index + 1} must have either data or url")
    if not images:
        return []

    settings = get_settings()
    normalized = await normalize_many(
        [image.data or image.url for image in images],
        max_dimension=settings.normalize_max_dimension,
        format=settings.normalize_format,
        quality=settings.normalize_quality,
    )
    return [
        ImageAsset(
            media_type=result.media_type,
            origin=image.origin,
            data=result.b64,
            width=result.width,
            height=result.height,
        )
        for image, result in zip(images, normalized)
    ]


# ── Generation ──


async def generate_image(
    text_prompt: str,
    images: Sequence[ImageAsset],
    *,
    addendum: Optional[str] = None,
    expected_count: Optional[int] = None,
) -> FilePart:
    """Run one generation and return the first image it produced."""
    # validate shape before spending time on normalization
    request_builder.build(text_prompt, images, addendum=addendum, expected_count=expected_count)
    prepared = await prepare_images(images)
    request = request_builder.build(text_prompt, prepared, addendum=addendum, expected_count=expected_count)

    settings = get_settings()
    generator = _get_generator()
    response = await generator.generate(request, settings.image_model, ("TEXT", "IMAGE"))
    try:
        return extract_first_image(response)
    except NoImageReturnedError:
        logger.warning("Model answered without an image: %s", collect_text(response))
        raise


async def _store_part(
    part: FilePart,
    folder_prefix: str,
    *,
    require_public_base: bool,
) -> StoredObject:
    writer = _get_writer()
    return await asyncio.to_thread(
        writer.store_base64,
        part.base64,
        part.media_type,
        folder_prefix,
        require_public_base=require_public_base,
    )


async def generate_and_store(
    text_prompt: str,
    images: Sequence[ImageAsset],
    folder_prefix: Optional[str] = None,
    *,
    addendum: Optional[str] = None,
    expected_count: Optional[int] = None,
) -> GenerationOutcome:
    """
    Generate an image and, when ``folder_prefix`` is given, persist it.

    Persisting here hands the URL straight to the UI, so a public base URL
    is required; without a folder the base64 payload is returned inline.
    """
    if folder_prefix:
        # reject a bad folder before spending a generation on it
        folder_prefix = clean_folder_prefix(folder_prefix)
    generated = await generate_image(
        text_prompt, images, addendum=addendum, expected_count=expected_count
    )
    if not folder_prefix:
        return GenerationOutcome(media_type=generated.media_type, image_base64=generated.base64)

    stored = await _store_part(generated, folder_prefix, require_public_base=True)
    logger.info("Successfully uploaded generated image to: %s", stored.public_url)
    return GenerationOutcome(media_type=generated.media_type, image_url=stored.public_url, stored=stored)


async def apply_template(
    image: ImageAsset,
    template_prompt: str,
    *,
    addendum: Optional[str] = None,
    folder_prefix: Optional[str] = None,
) -> GenerationOutcome:
    return await generate_and_store(
        template_prompt, [image], folder_prefix, addendum=addendum, expected_count=1
    )


async def apply_outfit(
    image: ImageAsset,
    outfit_image: ImageAsset,
    outfit_prompt: str,
    *,
    folder_prefix: Optional[str] = None,
) -> GenerationOutcome:
    """Subject first, garment second."""
    return await generate_and_store(
        outfit_prompt, [image, outfit_image], folder_prefix, expected_count=2
    )


async def generate_template_preview(
    description: str,
    folder_prefix: str = TEMPLATES_FOLDER,
) -> StoredObject:
    """Preview thumbnails may fall back to the endpoint-derived URL."""
    if not description or not description.strip():
        raise ValueError("description is required")
    generated = await generate_image(TEMPLATE_PREVIEW_INSTRUCTION.format(description=description), [])
    return await _store_part(generated, folder_prefix, require_public_base=False)


# ── Storage ──


def _decode_image_data_url(image: str) -> Tuple[str, str]:
    if not image or not image.startswith("data:image"):
        raise ValueError("Invalid image data")
    parsed = parse_data_url(image)
    if parsed is None:
        raise ValueError("Invalid image data")
    return parsed


async def _store_data_url(image: str, folder_prefix: str) -> StoredObject:
    folder_prefix = clean_folder_prefix(folder_prefix)
    media_type, b64 = _decode_image_data_url(image)
    return await _store_part(
        FilePart(media_type=media_type, base64=b64), folder_prefix, require_public_base=True
    )


async def save_image(image: str, destination: str) -> StoredObject:
    """Store an already generated data URL image under one of SAVE_DESTINATIONS."""
    if destination not in SAVE_DESTINATIONS:
        raise ValueError("Invalid destination.")
    return await _store_data_url(image, destination)


async def create_upload_url(
    content_type: str,
    folder: Optional[str] = DEFAULT_UPLOAD_FOLDER,
) -> PresignedUpload:
    """Presigned PUT for direct uploads; the folder is reduced to `[A-Za-z0-9_-]`."""
    if not content_type:
        raise ValueError("Missing contentType")
    writer = _get_writer()
    return await asyncio.to_thread(writer.presign_upload, content_type, sanitize_folder(folder))


# ── Sharing ──


async def share_image(
    image_url: str,
    display_name: str,
    attribution_id: Optional[str] = None,
    *,
    request_origin: Optional[str] = None,
    request_host: Optional[str] = None,
) -> ShareLink:
    publisher = _get_publisher()
    return await asyncio.to_thread(
        publisher.publish,
        image_url,
        display_name,
        attribution_id,
        request_origin=request_origin,
        request_host=request_host,
    )


async def store_and_share(
    image: str,
    folder_prefix: str,
    display_name: str,
    attribution_id: Optional[str] = None,
    *,
    request_origin: Optional[str] = None,
    request_host: Optional[str] = None,
) -> Tuple[StoredObject, ShareLink]:
    """
    Two independent steps. A share failure after a successful store raises
    ShareAfterStoreError carrying the stored object, so the caller can retry
    ``share_image`` with its URL instead of uploading again.
    """
    if not display_name:
        raise ValueError("Missing required fields")
    stored = await _store_data_url(image, folder_prefix)
    try:
        link = await share_image(
            stored.public_url,
            display_name,
            attribution_id,
            request_origin=request_origin,
            request_host=request_host,
        )
    except PipelineError as e:
        logger.error("Stored %s but sharing failed: %s", stored.key, e.message)
        raise ShareAfterStoreError(stored, e) from e
    return stored, link


async def get_shared_image(share_id: str) -> ShareRecord:
    publisher = _get_publisher()
    return await asyncio.to_thread(publisher.get_share, share_id)


def image_from_payload(
    media_type: Optional[str],
    data: Optional[str] = None,
    url: Optional[str] = None,
) -> ImageAsset:
    """Build an ImageAsset from request fields; data URLs are split."""
    if data and data.startswith("data:"):
        parsed = parse_data_url(data)
        if parsed is not None:
            media_type, data = media_type or parsed[0], parsed[1]
    origin = ImageOrigin.UPLOAD if data else ImageOrigin.REMOTE
    return ImageAsset(media_type=media_type or "image/png", origin=origin, data=data, url=url)
