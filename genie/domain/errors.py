"""
Pipeline error taxonomy.

Every error carries a message that can be shown to the user as is.
Nothing in the pipeline retries; the caller decides.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from genie.domain.entities.image_asset import StoredObject


class PipelineError(Exception):
    """Base class for image pipeline failures."""

    default_message = "Image pipeline failure"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class DecodeError(PipelineError):
    default_message = "The image could not be decoded"


class FetchError(PipelineError):
    default_message = "The remote image could not be fetched"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class UnsupportedFormatError(PipelineError):
    default_message = "The requested image format is not supported"


class MissingImageDataError(PipelineError):
    default_message = "Image must have either data or url"


class StorageWriteError(PipelineError):
    default_message = "Failed to save image"


class MissingPublicBaseURLError(PipelineError):
    default_message = "R2_PUBLIC_BASE_URL environment variable is required for public image URLs"


class NoImageReturnedError(PipelineError):
    default_message = "No image returned from the generation model"


class PersistError(PipelineError):
    default_message = "Failed to create share"


class ShareNotFoundError(PipelineError):
    default_message = "Shared image not found"


class ShareAfterStoreError(PipelineError):
    """The object was stored but the share record was not written.

    ``stored`` is kept so the share step can be retried on its own.
    """

    default_message = "Image uploaded but sharing failed. Please try sharing again."

    def __init__(self, stored: "StoredObject", cause: PipelineError):
        super().__init__()
        self.stored = stored
        self.cause = cause
