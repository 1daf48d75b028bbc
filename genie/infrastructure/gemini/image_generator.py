"""
Gemini 画像生成クライアント

GenerationRequest の parts をそのままの順序で Gemini に渡し、
レスポンスの各 candidate を 1 ステップとして返す。
"""
from __future__ import annotations

import base64
import logging
from time import perf_counter
from typing import Any, List, Optional, Sequence

from google import genai
from google.genai import types

from genie.domain.entities.image_asset import (
    ContentPart,
    FilePart,
    GenerationRequest,
    GenerationResponse,
    GenerationStep,
    TextPart,
)
from genie.domain.services.image_normalizer import decode_base64
from genie.infrastructure.config.settings import GatewayConfig

logger = logging.getLogger(__name__)


def to_gemini_part(part: ContentPart) -> types.Part:
    if isinstance(part, TextPart):
        return types.Part.from_text(text=part.text)
    if part.base64:
        return types.Part.from_bytes(data=decode_base64(part.base64), mime_type=part.media_type)
    return types.Part.from_uri(file_uri=part.url, mime_type=part.media_type)


def candidate_to_step(candidate: Any) -> GenerationStep:
    content: List[ContentPart] = []
    parts = candidate.content.parts if getattr(candidate, "content", None) else None
    for part in parts or []:
        if getattr(part, "thought", None):
            continue
        if getattr(part, "text", None):
            content.append(TextPart(text=part.text))
        elif getattr(part, "inline_data", None) and part.inline_data.data:
            content.append(
                FilePart(
                    media_type=part.inline_data.mime_type or "image/png",
                    base64=base64.b64encode(part.inline_data.data).decode("ascii"),
                )
            )
    return GenerationStep(content=tuple(content))


class GeminiImageGenerator:
    """Gemini image model behind the ImageGenerationPort"""

    def __init__(self, config: GatewayConfig, client: Optional[genai.Client] = None):
        if client is None:
            if not config.api_key:
                raise ValueError(
                    "Gemini API key is required. Set AI_GATEWAY_API_KEY, GEMINI_API_KEY or GOOGLE_API_KEY."
                )
            client = genai.Client(api_key=config.api_key)
        self.client = client
        self.config = config

    async def generate(
        self,
        request: GenerationRequest,
        model_id: Optional[str] = None,
        response_modalities: Optional[Sequence[str]] = None,
    ) -> GenerationResponse:
        model = model_id or self.config.model_id
        modalities = list(response_modalities or self.config.response_modalities)
        t0 = perf_counter()

        contents = [types.Content(role="user", parts=[to_gemini_part(p) for p in request.parts])]

        logger.info(
            "Generating image: model=%s, refs=%d, modalities=%s",
            model,
            len(request.image_parts),
            modalities,
        )

        response = await self.client.aio.models.generate_content(
            model=model,
            contents=contents,
            config=types.GenerateContentConfig(response_modalities=modalities),
        )

        latency_ms = int((perf_counter() - t0) * 1000)
        steps = tuple(candidate_to_step(c) for c in (getattr(response, "candidates", None) or []))

        logger.info(
            "Image generated: latency=%dms, steps=%d, files=%d",
            latency_ms,
            len(steps),
            sum(1 for s in steps for p in s.content if isinstance(p, FilePart)),
        )
        return GenerationResponse(steps=steps, latency_ms=latency_ms)
