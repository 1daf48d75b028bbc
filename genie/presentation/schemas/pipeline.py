from __future__ import annotations
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ImageInput(CamelModel):
    """入力画像（インラインデータまたはURL）"""
    media_type: str = Field(default="image/png", alias="mediaType")
    data: Optional[str] = Field(default=None, description="base64 payload or data URL")
    url: Optional[str] = None


class GenerateAndStoreIn(CamelModel):
    text_prompt: str = Field(..., alias="textPrompt")
    images: List[ImageInput] = Field(default_factory=list)
    folder_prefix: Optional[str] = Field(default=None, alias="folderPrefix", description="保存先フォルダ。未指定ならbase64で返す")
    personalization: Optional[str] = Field(default=None, description="ベース指示の後ろに追記される個別指示")


class ApplyTemplateIn(CamelModel):
    image: ImageInput
    template_prompt: str = Field(..., alias="templatePrompt")
    personalization: Optional[str] = None
    folder_prefix: Optional[str] = Field(default=None, alias="folderPrefix")


class ApplyOutfitIn(CamelModel):
    image: ImageInput
    outfit_image: ImageInput = Field(..., alias="outfitImage")
    outfit_prompt: str = Field(..., alias="outfitPrompt")
    folder_prefix: Optional[str] = Field(default=None, alias="folderPrefix")


class GenerationOut(CamelModel):
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    image_base64: Optional[str] = Field(default=None, alias="imageBase64")
    mime_type: str = Field(..., alias="mimeType")


class SaveImageIn(CamelModel):
    image: str = Field(..., description="data:image/...;base64,...")
    destination: str


class SaveImageOut(CamelModel):
    url: str


class TemplatePreviewIn(CamelModel):
    description: str


class ShareIn(CamelModel):
    image_url: str = Field(..., alias="imageUrl")
    display_name: str = Field(..., alias="displayName")
    attribution_id: Optional[str] = Field(default=None, alias="attributionId")


class ShareOut(CamelModel):
    id: str
    share_url: str = Field(..., alias="shareUrl")


class StoreAndShareIn(CamelModel):
    image: str
    folder_prefix: str = Field(..., alias="folderPrefix")
    display_name: str = Field(..., alias="displayName")
    attribution_id: Optional[str] = Field(default=None, alias="attributionId")


class StoreAndShareOut(ShareOut):
    image_url: str = Field(..., alias="imageUrl")


class SharedImageOut(CamelModel):
    id: str
    image_url: str = Field(..., alias="imageUrl")
    display_name: str = Field(..., alias="displayName")
    attribution_id: Optional[str] = Field(default=None, alias="attributionId")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    access_count: int = Field(default=0, alias="accessCount")


class UploadUrlIn(CamelModel):
    content_type: str = Field(..., alias="contentType")
    folder: Optional[str] = Field(default="temp", description="英数字・-・_ 以外は除去される")


class UploadUrlOut(CamelModel):
    upload_url: str = Field(..., alias="uploadUrl")
    file_url: str = Field(..., alias="fileUrl")
