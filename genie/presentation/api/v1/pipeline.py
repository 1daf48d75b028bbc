"""
画像パイプライン API ルーター

生成・保存・共有のエンドポイント。エラーはすべて表示可能なメッセージ付きで返す。
"""
from __future__ import annotations

import logging
from typing import NoReturn

from fastapi import APIRouter, HTTPException, Request, status

from genie.application.use_cases import image_pipeline as use_cases
from genie.domain.entities.image_asset import GenerationOutcome
from genie.domain.errors import (
    DecodeError,
    FetchError,
    MissingImageDataError,
    MissingPublicBaseURLError,
    NoImageReturnedError,
    PersistError,
    PipelineError,
    ShareAfterStoreError,
    ShareNotFoundError,
    StorageWriteError,
    UnsupportedFormatError,
)
from genie.presentation.schemas.pipeline import (
    ApplyOutfitIn,
    ApplyTemplateIn,
    GenerateAndStoreIn,
    GenerationOut,
    ImageInput,
    SaveImageIn,
    SaveImageOut,
    ShareIn,
    SharedImageOut,
    ShareOut,
    StoreAndShareIn,
    StoreAndShareOut,
    TemplatePreviewIn,
    UploadUrlIn,
    UploadUrlOut,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["pipeline"])

_STATUS_BY_ERROR = (
    ((MissingImageDataError, DecodeError, UnsupportedFormatError), status.HTTP_400_BAD_REQUEST),
    ((ShareNotFoundError,), status.HTTP_404_NOT_FOUND),
    ((FetchError, NoImageReturnedError, StorageWriteError, PersistError), status.HTTP_502_BAD_GATEWAY),
    ((MissingPublicBaseURLError,), status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def _raise_http(e: Exception, action: str) -> NoReturn:
    if isinstance(e, ShareAfterStoreError):
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": e.message, "imageUrl": e.stored.public_url},
        )
    if isinstance(e, PipelineError):
        for error_types, code in _STATUS_BY_ERROR:
            if isinstance(e, error_types):
                logger.warning("%s failed: %s", action, e.message)
                raise HTTPException(status_code=code, detail=e.message)
        logger.error("%s failed: %s", action, e.message)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=e.message)
    if isinstance(e, ValueError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    logger.error("%s failed: %s", action, e, exc_info=True)
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"{action} failed. Please try again.",
    )


def _asset(image: ImageInput):
    return use_cases.image_from_payload(image.media_type, image.data, image.url)


def _generation_out(outcome: GenerationOutcome) -> GenerationOut:
    return GenerationOut(
        image_url=outcome.image_url,
        image_base64=outcome.image_base64,
        mime_type=outcome.media_type,
    )


# ── Generation ──


@router.post("/generate-and-store", response_model=GenerationOut, response_model_exclude_none=True)
async def generate_and_store(body: GenerateAndStoreIn) -> GenerationOut:
    try:
        outcome = await use_cases.generate_and_store(
            body.text_prompt,
            [_asset(img) for img in body.images],
            body.folder_prefix,
            addendum=body.personalization,
        )
    except Exception as e:
        _raise_http(e, "Image generation")
    return _generation_out(outcome)


@router.post("/apply-template", response_model=GenerationOut, response_model_exclude_none=True)
async def apply_template(body: ApplyTemplateIn) -> GenerationOut:
    try:
        outcome = await use_cases.apply_template(
            _asset(body.image),
            body.template_prompt,
            addendum=body.personalization,
            folder_prefix=body.folder_prefix,
        )
    except Exception as e:
        _raise_http(e, "Applying template")
    return _generation_out(outcome)


@router.post("/apply-outfit", response_model=GenerationOut, response_model_exclude_none=True)
async def apply_outfit(body: ApplyOutfitIn) -> GenerationOut:
    try:
        outcome = await use_cases.apply_outfit(
            _asset(body.image),
            _asset(body.outfit_image),
            body.outfit_prompt,
            folder_prefix=body.folder_prefix,
        )
    except Exception as e:
        _raise_http(e, "Applying outfit")
    return _generation_out(outcome)


@router.post("/templates/preview", response_model=GenerationOut, response_model_exclude_none=True)
async def template_preview(body: TemplatePreviewIn) -> GenerationOut:
    try:
        stored = await use_cases.generate_template_preview(body.description)
    except Exception as e:
        _raise_http(e, "Template preview")
    return GenerationOut(image_url=stored.public_url, mime_type=stored.media_type)


# ── Storage ──


@router.post("/save-image", response_model=SaveImageOut)
async def save_image(body: SaveImageIn) -> SaveImageOut:
    try:
        stored = await use_cases.save_image(body.image, body.destination)
    except Exception as e:
        _raise_http(e, "Saving image")
    return SaveImageOut(url=stored.public_url)


@router.post("/upload-url", response_model=UploadUrlOut)
async def upload_url(body: UploadUrlIn) -> UploadUrlOut:
    try:
        upload = await use_cases.create_upload_url(body.content_type, body.folder)
    except Exception as e:
        _raise_http(e, "Creating upload URL")
    return UploadUrlOut(upload_url=upload.upload_url, file_url=upload.file_url)


# ── Sharing ──


@router.post("/share", response_model=ShareOut, status_code=status.HTTP_201_CREATED)
async def share(body: ShareIn, request: Request) -> ShareOut:
    try:
        link = await use_cases.share_image(
            body.image_url,
            body.display_name,
            body.attribution_id,
            request_origin=request.headers.get("origin"),
            request_host=request.headers.get("host"),
        )
    except Exception as e:
        _raise_http(e, "Creating share")
    return ShareOut(id=link.id, share_url=link.share_url)


@router.post("/store-and-share", response_model=StoreAndShareOut, status_code=status.HTTP_201_CREATED)
async def store_and_share(body: StoreAndShareIn, request: Request) -> StoreAndShareOut:
    try:
        stored, link = await use_cases.store_and_share(
            body.image,
            body.folder_prefix,
            body.display_name,
            body.attribution_id,
            request_origin=request.headers.get("origin"),
            request_host=request.headers.get("host"),
        )
    except Exception as e:
        _raise_http(e, "Uploading and sharing")
    return StoreAndShareOut(id=link.id, share_url=link.share_url, image_url=stored.public_url)


@router.get("/share/{share_id}", response_model=SharedImageOut)
async def get_share(share_id: str) -> SharedImageOut:
    try:
        record = await use_cases.get_shared_image(share_id)
    except Exception as e:
        _raise_http(e, "Loading shared image")
    return SharedImageOut(
        id=record.id,
        image_url=record.image_url,
        display_name=record.display_name,
        attribution_id=record.attribution_id,
        created_at=record.created_at,
        access_count=record.access_count,
    )
