from __future__ import annotations
from typing import Protocol, Sequence

from genie.domain.entities.image_asset import GenerationRequest, GenerationResponse


class ImageGenerationPort(Protocol):
    """Port for the external image generation capability.

    Implementations turn a request (one instruction plus ordered images) into
    steps of text/file content parts. They do not interpret the output;
    callers use ``extract_first_image`` for that.
    """

    async def generate(
        self,
        request: GenerationRequest,
        model_id: str,
        response_modalities: Sequence[str],
    ) -> GenerationResponse:
        ...
