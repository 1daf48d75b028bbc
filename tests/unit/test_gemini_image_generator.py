"""
Unit tests for the Gemini image generator
"""
import base64
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest

from genie.domain.entities.image_asset import FilePart, ImageAsset, TextPart
from genie.domain.services.request_builder import build
from genie.infrastructure.config.settings import GatewayConfig
from genie.infrastructure.gemini.image_generator import (
    GeminiImageGenerator,
    candidate_to_step,
    to_gemini_part,
)


def _candidate(*parts):
    return SimpleNamespace(content=SimpleNamespace(parts=list(parts)))


def _text(text, thought=None):
    return SimpleNamespace(text=text, thought=thought, inline_data=None)


def _image(data, mime_type="image/png"):
    return SimpleNamespace(text=None, thought=None, inline_data=SimpleNamespace(data=data, mime_type=mime_type))


@pytest.fixture
def gateway_config():
    return GatewayConfig(api_key="test-key", model_id="gemini-2.5-flash-image")


@pytest.fixture
def mock_genai_client():
    client = Mock()
    client.aio.models.generate_content = AsyncMock()
    return client


class TestPartConversion:
    def test_text_part(self):
        assert to_gemini_part(TextPart(text="hello")).text == "hello"

    def test_inline_part(self):
        part = to_gemini_part(FilePart(media_type="image/png", base64=base64.b64encode(b"abc").decode()))
        assert part.inline_data.data == b"abc"
        assert part.inline_data.mime_type == "image/png"

    def test_url_part(self):
        part = to_gemini_part(FilePart(media_type="image/png", url="https://cdn.example.com/a.png"))
        assert part.file_data.file_uri == "https://cdn.example.com/a.png"

    def test_candidate_skips_thoughts(self):
        step = candidate_to_step(_candidate(_text("plan", thought=True), _text("done"), _image(b"png-bytes")))
        assert step.content == (
            TextPart(text="done"),
            FilePart(media_type="image/png", base64=base64.b64encode(b"png-bytes").decode()),
        )

    def test_candidate_without_content(self):
        assert candidate_to_step(SimpleNamespace(content=None)).content == ()


class TestGeminiImageGenerator:
    def test_requires_api_key(self):
        with pytest.raises(ValueError, match="API key"):
            GeminiImageGenerator(GatewayConfig(api_key=None, model_id="m"))

    @pytest.mark.asyncio
    async def test_generate_passes_parts_in_order(self, gateway_config, mock_genai_client):
        mock_genai_client.aio.models.generate_content.return_value = SimpleNamespace(
            candidates=[_candidate(_image(b"result", "image/webp"))]
        )
        generator = GeminiImageGenerator(gateway_config, client=mock_genai_client)
        request = build(
            "Put the outfit on the person",
            [
                ImageAsset(data=base64.b64encode(b"subject").decode()),
                ImageAsset(url="https://cdn.example.com/garment.png"),
            ],
        )

        response = await generator.generate(request, "custom-model", ["TEXT", "IMAGE"])

        kwargs = mock_genai_client.aio.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "custom-model"
        assert kwargs["config"].response_modalities == ["TEXT", "IMAGE"]
        parts = kwargs["contents"][0].parts
        assert parts[0].text == "Put the outfit on the person"
        assert parts[1].inline_data.data == b"subject"
        assert parts[2].file_data.file_uri == "https://cdn.example.com/garment.png"

        assert len(response.steps) == 1
        assert response.steps[0].content[0].media_type == "image/webp"
        assert response.latency_ms is not None

    @pytest.mark.asyncio
    async def test_defaults_from_config(self, gateway_config, mock_genai_client):
        mock_genai_client.aio.models.generate_content.return_value = SimpleNamespace(candidates=None)
        generator = GeminiImageGenerator(gateway_config, client=mock_genai_client)

        response = await generator.generate(build("prompt", []))

        kwargs = mock_genai_client.aio.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-2.5-flash-image"
        assert response.steps == ()
