from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Literal, Optional, Tuple, Union


class ImageOrigin(str, Enum):
    UPLOAD = "upload"
    REMOTE = "remote"
    GENERATED = "generated"


@dataclass
class ImageAsset:
    media_type: str = "image/png"
    origin: ImageOrigin = ImageOrigin.UPLOAD
    data: Optional[str] = None  # base64 payload without data URL header
    url: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None

    @property
    def has_inline_data(self) -> bool:
        return bool(self.data)


@dataclass(frozen=True)
class TextPart:
    text: str
    kind: Literal["text"] = "text"


@dataclass(frozen=True)
class FilePart:
    media_type: str
    base64: Optional[str] = None
    url: Optional[str] = None
    kind: Literal["file"] = "file"


ContentPart = Union[TextPart, FilePart]


@dataclass(frozen=True)
class GenerationRequest:
    instruction: str
    parts: Tuple[ContentPart, ...]

    @property
    def image_parts(self) -> Tuple[FilePart, ...]:
        return tuple(p for p in self.parts if isinstance(p, FilePart))


@dataclass(frozen=True)
class GenerationStep:
    content: Tuple[ContentPart, ...] = ()


@dataclass(frozen=True)
class GenerationResponse:
    steps: Tuple[GenerationStep, ...] = ()
    latency_ms: Optional[int] = None


@dataclass(frozen=True)
class StoredObject:
    key: str
    bucket: str
    media_type: str
    public_url: str
    size_bytes: int

    @property
    def filename(self) -> str:
        return self.key.rsplit("/", 1)[-1]

    @property
    def folder_prefix(self) -> str:
        return self.key.rsplit("/", 1)[0]


@dataclass
class ShareRecord:
    id: str
    image_url: str
    display_name: str
    attribution_id: Optional[str] = None
    created_at: Optional[datetime] = None
    access_count: int = 0


@dataclass(frozen=True)
class ShareLink:
    id: str
    share_url: str


@dataclass(frozen=True)
class GenerationOutcome:
    """Result of one generate flow: either stored or inline."""
    media_type: str
    image_url: Optional[str] = None
    image_base64: Optional[str] = None
    stored: Optional[StoredObject] = field(default=None, compare=False)


@dataclass(frozen=True)
class PresignedUpload:
    """Direct-to-bucket upload target and the URL the object will have."""
    key: str
    upload_url: str
    file_url: str
    expires_in: int
