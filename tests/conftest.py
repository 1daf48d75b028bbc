"""
Pytest configuration and shared fixtures for the image pipeline tests
"""
import base64
from io import BytesIO
from unittest.mock import Mock

import pytest
from PIL import Image

from genie.domain.entities.image_asset import (
    FilePart,
    GenerationResponse,
    GenerationStep,
    StoredObject,
    TextPart,
)
from genie.infrastructure.config.settings import StorageConfig


def make_image_bytes(width: int, height: int, fmt: str = "PNG", color=(200, 40, 90)) -> bytes:
    mode = "RGBA" if fmt == "PNG" else "RGB"
    fill = color + (255,) if mode == "RGBA" else color
    buf = BytesIO()
    Image.new(mode, (width, height), fill).save(buf, format=fmt)
    return buf.getvalue()


def decode_size(b64: str) -> tuple:
    with Image.open(BytesIO(base64.b64decode(b64))) as img:
        return img.size


@pytest.fixture
def png_bytes():
    return make_image_bytes(200, 100)


@pytest.fixture
def png_b64(png_bytes):
    return base64.b64encode(png_bytes).decode("ascii")


@pytest.fixture
def png_data_url(png_b64):
    return f"data:image/png;base64,{png_b64}"


@pytest.fixture
def mock_settings():
    """Mock settings for testing"""
    settings = Mock()
    settings.normalize_max_dimension = 1024
    settings.normalize_format = "png"
    settings.normalize_quality = 0.8
    settings.image_model = "gemini-2.5-flash-image"
    settings.app_url = None
    settings.execution_context = "browser"
    settings.api_base_url = None
    settings.deployment_host = None
    return settings


@pytest.fixture
def storage_config():
    return StorageConfig(
        bucket="genie-bucket",
        endpoint="https://account123.r2.cloudflarestorage.com",
        region="auto",
        access_key_id="key",
        secret_access_key="secret",
        public_base_url="https://cdn.example.com",
    )


@pytest.fixture
def mock_s3_client():
    client = Mock()
    client.put_object.return_value = {"ETag": '"abc"'}
    return client


@pytest.fixture
def generated_response(png_b64):
    """A generation response with a text part followed by an image part"""
    return GenerationResponse(
        steps=(
            GenerationStep(
                content=(
                    TextPart(text="Here is your image"),
                    FilePart(media_type="image/png", base64=png_b64),
                )
            ),
        )
    )


@pytest.fixture
def stored_object():
    return StoredObject(
        key="filtered/1700000000000-abcdefghijk.png",
        bucket="genie-bucket",
        media_type="image/png",
        public_url="https://cdn.example.com/filtered/1700000000000-abcdefghijk.png",
        size_bytes=1234,
    )


@pytest.fixture
def image_factory():
    return make_image_bytes


@pytest.fixture
def size_of():
    return decode_size
