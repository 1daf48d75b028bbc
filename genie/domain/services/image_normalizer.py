"""
Image normalization: load, downscale and re-encode images before they are
sent to generation or storage.

Accepted sources:
- raw file content (bytes, a binary file object, or a local Path)
- an inline data URL (``data:image/png;base64,...``) or a bare base64 payload
- an http(s) URL, fetched with httpx

The output is the base64 payload only (no data URL header).
"""
from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import math
import re
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import BinaryIO, List, Optional, Sequence, Tuple, Union

import httpx
from PIL import Image, ImageOps, UnidentifiedImageError, features

from genie.domain.errors import DecodeError, FetchError, UnsupportedFormatError

logger = logging.getLogger(__name__)

ImageSource = Union[bytes, bytearray, BinaryIO, Path, str]

SUPPORTED_FORMATS = {
    "png": ("PNG", "image/png"),
    "webp": ("WEBP", "image/webp"),
}

DEFAULT_MAX_DIMENSION = 1024
DEFAULT_QUALITY = 0.8
FETCH_TIMEOUT_SECONDS = 30.0

_DATA_URL_RE = re.compile(r"^data:([^;,]+)?(?:;[^,]*)?;base64,(.*)$", re.DOTALL)


@dataclass(frozen=True)
class NormalizedImage:
    """Normalized image with the metrics callers log or persist"""
    b64: str
    media_type: str
    width: int
    height: int
    bytes_len: int

    @property
    def size_px(self) -> Tuple[int, int]:
        return self.width, self.height

    def to_data_url(self) -> str:
        return to_data_url(self.media_type, self.b64)


# ── Data URL helpers ──


def parse_data_url(value: str) -> Optional[Tuple[str, str]]:
    """Split ``data:<mime>;base64,<payload>`` into (mime, payload)."""
    match = _DATA_URL_RE.match(value.strip())
    if not match:
        return None
    return match.group(1) or "application/octet-stream", match.group(2)


def extract_base64(value: str) -> str:
    """Return the payload of a data URL, or the value unchanged."""
    comma = value.find(",")
    return value[comma + 1:] if value.startswith("data:") and comma >= 0 else value


def to_data_url(media_type: str, b64: str) -> str:
    return f"data:{media_type};base64,{b64}"


def decode_base64(payload: str) -> bytes:
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Invalid base64 image data: {e}") from e


# ── Loading ──


def fetch_image_bytes(
    url: str,
    http_client: Optional[httpx.Client] = None,
    timeout: float = FETCH_TIMEOUT_SECONDS,
) -> bytes:
    """Fetch a remote image; any transport error or non-2xx is a FetchError."""
    try:
        if http_client is not None:
            response = http_client.get(url)
        else:
            with httpx.Client(timeout=timeout, follow_redirects=True) as client:
                response = client.get(url)
    except httpx.HTTPError as e:
        logger.error("Failed to fetch image from %s: %s", url, e)
        raise FetchError(f"Failed to fetch image: {e}") from e

    if not response.is_success:
        logger.error("Failed to fetch image from %s: HTTP %d", url, response.status_code)
        raise FetchError(
            f"Failed to fetch image: {response.status_code} {response.reason_phrase}",
            status_code=response.status_code,
        )
    return response.content


def load_source_bytes(source: ImageSource, http_client: Optional[httpx.Client] = None) -> bytes:
    """Read the raw encoded bytes of a source without touching the caller's object."""
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    if isinstance(source, Path):
        try:
            return source.read_bytes()
        except OSError as e:
            raise DecodeError(f"Cannot read image file {source}: {e}") from e
    if isinstance(source, str):
        if source.startswith(("http://", "https://")):
            return fetch_image_bytes(source, http_client=http_client)
        if source.startswith("data:"):
            parsed = parse_data_url(source)
            if parsed is None:
                raise DecodeError("Invalid data URL: expected data:<mime>;base64,<payload>")
            return decode_base64(parsed[1])
        return decode_base64(source)
    if hasattr(source, "read"):
        position = source.tell() if source.seekable() else None
        data = source.read()
        if position is not None:
            source.seek(position)
        if not isinstance(data, (bytes, bytearray)):
            raise DecodeError("Image file objects must be opened in binary mode")
        return bytes(data)
    raise DecodeError(f"Unsupported input type for normalize(): {type(source).__name__}")


# ── Geometry ──


def compute_target_size(width: int, height: int, max_dimension: int) -> Tuple[int, int]:
    """Scale so the larger side fits ``max_dimension``; never upscale."""
    scale = min(max_dimension / width, max_dimension / height, 1.0)
    if scale >= 1.0:
        return width, height
    target_w = max(1, int(math.floor(width * scale + 0.5)))
    target_h = max(1, int(math.floor(height * scale + 0.5)))
    return target_w, target_h


def _check_format(fmt: str) -> Tuple[str, str]:
    key = (fmt or "").lower()
    if key not in SUPPORTED_FORMATS:
        raise UnsupportedFormatError(f"Unsupported output format: {fmt!r} (expected png or webp)")
    if key == "webp" and not features.check("webp"):
        raise UnsupportedFormatError("WebP encoding is not available in this runtime")
    return SUPPORTED_FORMATS[key]


def _prepare_mode(img: Image.Image, pil_format: str) -> Image.Image:
    has_alpha = img.mode in ("RGBA", "LA", "PA") or (img.mode == "P" and "transparency" in img.info)
    if pil_format == "WEBP":
        if img.mode in ("RGB", "RGBA"):
            return img
        return img.convert("RGBA" if has_alpha else "RGB")
    if img.mode in ("RGB", "RGBA", "L", "LA", "P", "1", "I", "I;16"):
        return img
    return img.convert("RGBA" if has_alpha else "RGB")


# ── Normalization ──


def normalize_image(
    source: ImageSource,
    max_dimension: int = DEFAULT_MAX_DIMENSION,
    format: str = "png",
    quality: float = DEFAULT_QUALITY,
    http_client: Optional[httpx.Client] = None,
) -> NormalizedImage:
    """
    Decode ``source``, downscale it to fit ``max_dimension`` and re-encode it.

    Args:
        source: file content, data URL / base64 string, or http(s) URL
        max_dimension: bound for the larger of width/height
        format: "png" or "webp"
        quality: 0..1, used for webp only

    Raises:
        DecodeError: the source is not a decodable image
        FetchError: the remote URL is unreachable or returned non-2xx
        UnsupportedFormatError: the runtime cannot encode ``format``
    """
    if max_dimension < 1:
        raise ValueError("max_dimension must be a positive integer")
    if not 0.0 <= quality <= 1.0:
        raise ValueError("quality must be within [0, 1]")
    pil_format, media_type = _check_format(format)

    raw = load_source_bytes(source, http_client=http_client)

    try:
        with Image.open(BytesIO(raw)) as loaded:
            loaded.load()
            img = ImageOps.exif_transpose(loaded)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError, EOFError) as e:
        raise DecodeError(f"Failed to decode image: {e}") from e

    src_w, src_h = img.size
    target = compute_target_size(src_w, src_h, max_dimension)
    if target != img.size:
        img = img.resize(target, Image.Resampling.LANCZOS)
    img = _prepare_mode(img, pil_format)

    save_kwargs = {"format": pil_format}
    if pil_format == "WEBP":
        save_kwargs["quality"] = int(round(quality * 100))
        save_kwargs["method"] = 4
    else:
        save_kwargs["optimize"] = True

    buf = BytesIO()
    try:
        img.save(buf, **save_kwargs)
    except (KeyError, OSError) as e:
        raise UnsupportedFormatError(f"Cannot encode image as {format}: {e}") from e

    encoded = buf.getvalue()
    logger.debug(
        "normalized image: src=%dB src_dims=%dx%d out_dims=%dx%d format=%s out=%dB",
        len(raw), src_w, src_h, target[0], target[1], format, len(encoded),
    )
    return NormalizedImage(
        b64=base64.b64encode(encoded).decode("ascii"),
        media_type=media_type,
        width=target[0],
        height=target[1],
        bytes_len=len(encoded),
    )


def normalize(
    source: ImageSource,
    max_dimension: int = DEFAULT_MAX_DIMENSION,
    format: str = "png",
    quality: float = DEFAULT_QUALITY,
    http_client: Optional[httpx.Client] = None,
) -> str:
    """Normalize ``source`` and return only the base64 payload."""
    return normalize_image(source, max_dimension, format, quality, http_client=http_client).b64


def normalize_with_fallback(
    source: ImageSource,
    max_dimension: int = DEFAULT_MAX_DIMENSION,
    format: str = "webp",
    quality: float = DEFAULT_QUALITY,
    http_client: Optional[httpx.Client] = None,
) -> NormalizedImage:
    """Normalize in ``format``, retrying as PNG when the runtime cannot encode it.

    The source is loaded once and shared by both attempts.
    """
    raw = load_source_bytes(source, http_client=http_client)
    try:
        return normalize_image(raw, max_dimension, format, quality)
    except UnsupportedFormatError as e:
        if format.lower() == "png":
            raise
        logger.warning("%s; falling back to png", e.message)
        return normalize_image(raw, max_dimension, "png", quality)


async def normalize_many(
    sources: Sequence[ImageSource],
    max_dimension: int = DEFAULT_MAX_DIMENSION,
    format: str = "webp",
    quality: float = DEFAULT_QUALITY,
) -> List[NormalizedImage]:
    """Normalize several images concurrently; results keep the input order."""
    tasks = [
        asyncio.to_thread(normalize_with_fallback, source, max_dimension, format, quality)
        for source in sources
    ]
    return list(await asyncio.gather(*tasks))
