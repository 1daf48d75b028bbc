"""
Integration tests for the pipeline API endpoints
"""
from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock, patch

import pytest
from fastapi.testclient import TestClient

from genie.domain.entities.image_asset import (
    GenerationOutcome,
    PresignedUpload,
    ShareLink,
    ShareRecord,
)
from genie.domain.errors import (
    DecodeError,
    FetchError,
    MissingImageDataError,
    MissingPublicBaseURLError,
    NoImageReturnedError,
    PersistError,
    ShareAfterStoreError,
    ShareNotFoundError,
)
from genie.domain.services.share_publisher import SharePublisher
from genie.infrastructure.supabase.repositories.share_repository import ShareRepository
from genie.main import app

USE_CASES = "genie.application.use_cases.image_pipeline"


@pytest.fixture
def client():
    return TestClient(app)


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestGenerationEndpoints:
    def test_generate_and_store_returns_url(self, client, stored_object):
        outcome = GenerationOutcome(media_type="image/png", image_url=stored_object.public_url, stored=stored_object)
        with patch(f"{USE_CASES}.generate_and_store", new=AsyncMock(return_value=outcome)) as use_case:
            response = client.post(
                "/api/v1/generate-and-store",
                json={
                    "textPrompt": "Turn the background black and white",
                    "images": [{"mediaType": "image/png", "data": "data:image/png;base64,QUJD"}],
                    "folderPrefix": "filtered",
                    "personalization": "Keep the smile",
                },
            )

        assert response.status_code == 200
        assert response.json() == {"imageUrl": stored_object.public_url, "mimeType": "image/png"}
        prompt, images, folder = use_case.call_args.args
        assert prompt == "Turn the background black and white"
        assert images[0].data == "QUJD"
        assert folder == "filtered"
        assert use_case.call_args.kwargs == {"addendum": "Keep the smile"}

    def test_generate_without_folder_returns_base64(self, client):
        outcome = GenerationOutcome(media_type="image/png", image_base64="QUJD")
        with patch(f"{USE_CASES}.generate_and_store", new=AsyncMock(return_value=outcome)):
            response = client.post("/api/v1/generate-and-store", json={"textPrompt": "p", "images": []})

        assert response.status_code == 200
        assert response.json() == {"imageBase64": "QUJD", "mimeType": "image/png"}

    def test_missing_text_prompt_is_validation_error(self, client):
        response = client.post("/api/v1/generate-and-store", json={"images": []})
        assert response.status_code == 422

    @pytest.mark.parametrize(
        "error, status_code",
        [
            (MissingImageDataError("Image 1 must have either data or url"), 400),
            (DecodeError(), 400),
            (ValueError("textPrompt required"), 400),
            (FetchError("Failed to fetch image: 404 Not Found", status_code=404), 502),
            (NoImageReturnedError(), 502),
            (MissingPublicBaseURLError(), 500),
        ],
    )
    def test_error_mapping(self, client, error, status_code):
        with patch(f"{USE_CASES}.generate_and_store", new=AsyncMock(side_effect=error)):
            response = client.post("/api/v1/generate-and-store", json={"textPrompt": "p", "images": []})

        assert response.status_code == status_code
        assert response.json()["detail"] == (error.message if hasattr(error, "message") else str(error))

    def test_unexpected_error_is_generic(self, client):
        with patch(f"{USE_CASES}.generate_and_store", new=AsyncMock(side_effect=RuntimeError("boom"))):
            response = client.post("/api/v1/generate-and-store", json={"textPrompt": "p", "images": []})

        assert response.status_code == 500
        assert response.json()["detail"] == "Image generation failed. Please try again."

    def test_apply_outfit_passes_subject_first(self, client):
        outcome = GenerationOutcome(media_type="image/png", image_base64="QUJD")
        with patch(f"{USE_CASES}.apply_outfit", new=AsyncMock(return_value=outcome)) as use_case:
            response = client.post(
                "/api/v1/apply-outfit",
                json={
                    "image": {"data": "U1VCSkVDVA=="},
                    "outfitImage": {"url": "https://cdn.example.com/garment.png"},
                    "outfitPrompt": "Dress the person",
                },
            )

        assert response.status_code == 200
        subject, garment, prompt = use_case.call_args.args
        assert subject.data == "U1VCSkVDVA=="
        assert garment.url == "https://cdn.example.com/garment.png"
        assert prompt == "Dress the person"

    def test_apply_template(self, client):
        outcome = GenerationOutcome(media_type="image/webp", image_base64="QUJD")
        with patch(f"{USE_CASES}.apply_template", new=AsyncMock(return_value=outcome)):
            response = client.post(
                "/api/v1/apply-template",
                json={"image": {"data": "QUJD"}, "templatePrompt": "Make it vintage"},
            )
        assert response.status_code == 200
        assert response.json()["mimeType"] == "image/webp"

    def test_template_preview(self, client, stored_object):
        with patch(f"{USE_CASES}.generate_template_preview", new=AsyncMock(return_value=stored_object)):
            response = client.post("/api/v1/templates/preview", json={"description": "Neon city"})
        assert response.status_code == 200
        assert response.json()["imageUrl"] == stored_object.public_url


class TestStorageAndSharing:
    def test_save_image(self, client, stored_object):
        with patch(f"{USE_CASES}.save_image", new=AsyncMock(return_value=stored_object)):
            response = client.post(
                "/api/v1/save-image",
                json={"image": "data:image/png;base64,QUJD", "destination": "saved"},
            )
        assert response.status_code == 200
        assert response.json() == {"url": stored_object.public_url}

    def test_save_image_unknown_destination(self, client, stored_object):
        with patch(
            f"{USE_CASES}.save_image", new=AsyncMock(side_effect=ValueError("Invalid destination."))
        ):
            response = client.post(
                "/api/v1/save-image",
                json={"image": "data:image/png;base64,QUJD", "destination": "../../templates/evil"},
            )
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid destination."

    def test_upload_url(self, client):
        upload = PresignedUpload(
            key="video_inputs/1700000000000-abcdefghijk.mp4",
            upload_url="https://signed.example.com/put",
            file_url="https://cdn.example.com/video_inputs/1700000000000-abcdefghijk.mp4",
            expires_in=300,
        )
        with patch(f"{USE_CASES}.create_upload_url", new=AsyncMock(return_value=upload)) as use_case:
            response = client.post(
                "/api/v1/upload-url", json={"contentType": "video/mp4", "folder": "video_inputs"}
            )

        assert response.status_code == 200
        assert response.json() == {"uploadUrl": upload.upload_url, "fileUrl": upload.file_url}
        use_case.assert_awaited_once_with("video/mp4", "video_inputs")

    def test_upload_url_without_public_base(self, client):
        with patch(
            f"{USE_CASES}.create_upload_url", new=AsyncMock(side_effect=MissingPublicBaseURLError())
        ):
            response = client.post("/api/v1/upload-url", json={"contentType": "image/png"})
        assert response.status_code == 500

    def test_share_uses_request_headers(self, client):
        link = ShareLink(id="abc", share_url="https://app.example.com/shared?id=abc")
        with patch(f"{USE_CASES}.share_image", new=AsyncMock(return_value=link)) as use_case:
            response = client.post(
                "/api/v1/share",
                json={"imageUrl": "https://cdn.example.com/a.png", "displayName": "Mika"},
                headers={"Origin": "https://app.example.com"},
            )

        assert response.status_code == 201
        assert response.json() == {"id": "abc", "shareUrl": "https://app.example.com/shared?id=abc"}
        assert use_case.call_args.kwargs == {
            "request_origin": "https://app.example.com",
            "request_host": "testserver",
        }

    def test_share_persist_failure(self, client):
        with patch(f"{USE_CASES}.share_image", new=AsyncMock(side_effect=PersistError())):
            response = client.post(
                "/api/v1/share",
                json={"imageUrl": "https://cdn.example.com/a.png", "displayName": "Mika"},
            )
        assert response.status_code == 502
        assert response.json()["detail"] == "Failed to create share"

    def test_store_and_share(self, client, stored_object):
        link = ShareLink(id="abc", share_url="https://testserver/shared?id=abc")
        with patch(f"{USE_CASES}.store_and_share", new=AsyncMock(return_value=(stored_object, link))):
            response = client.post(
                "/api/v1/store-and-share",
                json={"image": "data:image/png;base64,QUJD", "folderPrefix": "shared", "displayName": "Mika"},
            )

        assert response.status_code == 201
        assert response.json() == {
            "id": "abc",
            "shareUrl": "https://testserver/shared?id=abc",
            "imageUrl": stored_object.public_url,
        }

    def test_store_and_share_partial_failure_reports_url(self, client, stored_object):
        error = ShareAfterStoreError(stored_object, PersistError())
        with patch(f"{USE_CASES}.store_and_share", new=AsyncMock(side_effect=error)):
            response = client.post(
                "/api/v1/store-and-share",
                json={"image": "data:image/png;base64,QUJD", "folderPrefix": "shared", "displayName": "Mika"},
            )

        assert response.status_code == 502
        detail = response.json()["detail"]
        assert detail["imageUrl"] == stored_object.public_url
        assert detail["error"] == ShareAfterStoreError.default_message

    def test_get_share(self, client):
        record = ShareRecord(
            id="abc",
            image_url="https://cdn.example.com/a.png",
            display_name="Mika",
            created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
            access_count=4,
        )
        with patch(f"{USE_CASES}.get_shared_image", new=AsyncMock(return_value=record)):
            response = client.get("/api/v1/share/abc")

        assert response.status_code == 200
        body = response.json()
        assert body["imageUrl"] == "https://cdn.example.com/a.png"
        assert body["accessCount"] == 4

    def test_get_missing_share(self, client):
        with patch(f"{USE_CASES}.get_shared_image", new=AsyncMock(side_effect=ShareNotFoundError())):
            response = client.get("/api/v1/share/missing")
        assert response.status_code == 404

    def test_malformed_share_id_is_not_found(self, client):
        supabase = Mock()
        publisher = SharePublisher(ShareRepository(lambda: supabase))
        with patch(f"{USE_CASES}._get_publisher", return_value=publisher):
            response = client.get("/api/v1/share/not-a-uuid")
        assert response.status_code == 404
        supabase.table.assert_not_called()
