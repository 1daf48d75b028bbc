"""Typed view over generation responses and first-image extraction."""
from __future__ import annotations

import logging
from typing import Any, List, Mapping

from genie.domain.entities.image_asset import (
    ContentPart,
    FilePart,
    GenerationResponse,
    GenerationStep,
    TextPart,
)
from genie.domain.errors import NoImageReturnedError

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_MEDIA_TYPE = "image/png"


def _parse_part(item: Mapping[str, Any]) -> ContentPart | None:
    kind = item.get("type")
    if kind == "text":
        return TextPart(text=item.get("text") or "")
    if kind == "file":
        # the payload is either nested under "file" or flattened on the item
        payload: Mapping[str, Any] = item.get("file") or item
        return FilePart(
            media_type=payload.get("mediaType") or DEFAULT_IMAGE_MEDIA_TYPE,
            base64=payload.get("base64Data") or payload.get("base64"),
            url=payload.get("url"),
        )
    return None


def parse_response(raw: Mapping[str, Any]) -> GenerationResponse:
    """Convert ``{"steps": [{"content": [...]}]}`` into a GenerationResponse.

    Unknown content types are dropped.
    """
    steps: List[GenerationStep] = []
    for step in raw.get("steps") or []:
        content = [p for p in (_parse_part(c) for c in step.get("content") or [] if c) if p is not None]
        steps.append(GenerationStep(content=tuple(content)))
    return GenerationResponse(steps=tuple(steps))


def extract_first_image(response: GenerationResponse) -> FilePart:
    """Return the first inline image of the first step.

    Raises:
        NoImageReturnedError: the first step has no file part with data
    """
    if response.steps:
        for part in response.steps[0].content:
            if isinstance(part, FilePart) and part.base64:
                return part
    logger.error("No file returned from generation: steps=%d", len(response.steps))
    raise NoImageReturnedError()


def collect_text(response: GenerationResponse) -> str | None:
    texts = [p.text for step in response.steps for p in step.content if isinstance(p, TextPart) and p.text]
    return "".join(texts) if texts else None
