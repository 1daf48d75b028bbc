"""
Pipeline API client.

Every request URL is built from ``resolve_base_url`` for the execution
context the client was created with. An empty base means same-origin
relative paths, which httpx resolves against ``origin``.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from genie.client.dispatch import ExecutionContext, resolve_base_url
from genie.infrastructure.config.settings import Settings

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
DEFAULT_TIMEOUT_SECONDS = 60.0


class ApiRequestError(Exception):
    """Non-2xx response from the pipeline API; ``message`` is display-ready."""

    def __init__(self, message: str, status_code: int, payload: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload


class GenieApiClient:
    def __init__(
        self,
        context: ExecutionContext,
        *,
        api_base_url: Optional[str] = None,
        deployment_host: Optional[str] = None,
        origin: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.context = context
        self.base_url = resolve_base_url(
            context, api_base_url=api_base_url, deployment_host=deployment_host
        )
        self._http = httpx.AsyncClient(
            base_url=origin or "",
            transport=transport,
            timeout=timeout,
        )

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "GenieApiClient":
        return cls(
            ExecutionContext.from_value(settings.execution_context),
            api_base_url=settings.api_base_url,
            deployment_host=settings.deployment_host,
            **kwargs,
        )

    def url_for(self, path: str) -> str:
        return f"{self.base_url}{API_PREFIX}{path}"

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = self.url_for(path)
        try:
            response = await self._http.post(url, json=payload)
        except httpx.HTTPError as e:
            logger.error("Request to %s failed: %s", url, e)
            raise ApiRequestError(f"Network error: {e}", status_code=0) from e

        try:
            data = response.json() if response.content else {}
        except ValueError as e:
            # gateway error pages are HTML or plain text
            logger.warning("Non-JSON response from %s: HTTP %d", url, response.status_code)
            raise ApiRequestError(
                f"Request failed with status {response.status_code}",
                status_code=response.status_code,
                payload=response.text,
            ) from e
        if not response.is_success:
            detail = data.get("detail") if isinstance(data, dict) else None
            if isinstance(detail, dict):
                message = detail.get("error") or "Request failed"
            else:
                message = detail or f"Request failed with status {response.status_code}"
            raise ApiRequestError(message, status_code=response.status_code, payload=detail)
        return data

    async def generate_and_store(
        self,
        text_prompt: str,
        images: List[Dict[str, Any]],
        folder_prefix: Optional[str] = None,
        personalization: Optional[str] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"textPrompt": text_prompt, "images": images}
        if folder_prefix:
            payload["folderPrefix"] = folder_prefix
        if personalization:
            payload["personalization"] = personalization
        return await self._post("/generate-and-store", payload)

    async def apply_template(
        self,
        image: Dict[str, Any],
        template_prompt: str,
        folder_prefix: Optional[str] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"image": image, "templatePrompt": template_prompt}
        if folder_prefix:
            payload["folderPrefix"] = folder_prefix
        return await self._post("/apply-template", payload)

    async def apply_outfit(
        self,
        image: Dict[str, Any],
        outfit_image: Dict[str, Any],
        outfit_prompt: str,
        folder_prefix: Optional[str] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "image": image,
            "outfitImage": outfit_image,
            "outfitPrompt": outfit_prompt,
        }
        if folder_prefix:
            payload["folderPrefix"] = folder_prefix
        return await self._post("/apply-outfit", payload)

    async def save_image(self, image_data_url: str, destination: str) -> str:
        data = await self._post("/save-image", {"image": image_data_url, "destination": destination})
        return data["url"]

    async def upload_url(self, content_type: str, folder: Optional[str] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"contentType": content_type}
        if folder:
            payload["folder"] = folder
        return await self._post("/upload-url", payload)

    async def share(
        self,
        image_url: str,
        display_name: str,
        attribution_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"imageUrl": image_url, "displayName": display_name}
        if attribution_id:
            payload["attributionId"] = attribution_id
        return await self._post("/share", payload)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "GenieApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
