"""
Generation request assembly.

One text part first, then one file part per image in input order.
Order is significant: the first image is the subject, the second the
reference (e.g. the outfit to put on the subject).
"""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from genie.domain.entities.image_asset import (
    ContentPart,
    FilePart,
    GenerationRequest,
    ImageAsset,
    TextPart,
)
from genie.domain.errors import MissingImageDataError

logger = logging.getLogger(__name__)

# Reference image limit of the image model
MAX_REFERENCE_IMAGES = 14


def combine_instruction(base: str, addendum: Optional[str] = None) -> str:
    """Append a personalization addendum after the base instruction."""
    if not addendum:
        return base
    return base + "\n" + addendum


def _file_part(index: int, image: ImageAsset) -> FilePart:
    if image.data:
        return FilePart(media_type=image.media_type, base64=image.data)
    if image.url:
        return FilePart(media_type=image.media_type, url=image.url)
    raise MissingImageDataError(f"Image {index + 1} must have either data or url")


def build(
    instruction_text: str,
    images: Sequence[ImageAsset],
    *,
    addendum: Optional[str] = None,
    expected_count: Optional[int] = None,
) -> GenerationRequest:
    """
    Build a GenerationRequest.

    Args:
        instruction_text: base instruction (required, non-empty)
        images: ordered images; inline data is preferred over url
        addendum: optional personalization appended after the base
        expected_count: exact image count required by the calling flow

    Raises:
        ValueError: empty instruction or wrong image count
        MissingImageDataError: an image has neither data nor url
    """
    if not instruction_text or not instruction_text.strip():
        raise ValueError("textPrompt required")
    if expected_count is not None and len(images) != expected_count:
        raise ValueError(f"Expected exactly {expected_count} image(s), got {len(images)}")
    if len(images) > MAX_REFERENCE_IMAGES:
        raise ValueError(f"Maximum {MAX_REFERENCE_IMAGES} images allowed per request")

    instruction = combine_instruction(instruction_text, addendum)
    parts: List[ContentPart] = [TextPart(text=instruction)]
    parts.extend(_file_part(i, image) for i, image in enumerate(images))

    logger.debug("Built generation request: images=%d", len(images))
    return GenerationRequest(instruction=instruction, parts=tuple(parts))
