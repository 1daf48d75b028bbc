"""
API base URL resolution per execution context.

The context is resolved once at startup and passed to every caller; no
caller hardcodes an endpoint.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional

DEFAULT_PRODUCTION_URL = "https://project-genie-sigma.vercel.app"


class ExecutionContext(str, Enum):
    NATIVE_APP = "native"
    BROWSER = "browser"
    SERVER_RENDER = "server"

    @classmethod
    def from_value(cls, value: Optional[str]) -> "ExecutionContext":
        normalized = (value or "").strip().lower()
        aliases = {
            "native": cls.NATIVE_APP,
            "native-app": cls.NATIVE_APP,
            "capacitor": cls.NATIVE_APP,
            "browser": cls.BROWSER,
            "web": cls.BROWSER,
            "server": cls.SERVER_RENDER,
            "ssr": cls.SERVER_RENDER,
        }
        if normalized not in aliases:
            raise ValueError(f"Unknown execution context: {value!r}")
        return aliases[normalized]


def resolve_base_url(
    context: ExecutionContext,
    *,
    api_base_url: Optional[str] = None,
    deployment_host: Optional[str] = None,
) -> str:
    """
    Native shells have no same-origin semantics, so they always get an
    absolute URL. Browsers use relative paths (""). Server-side rendering
    uses the configured URL when present.
    """
    if context is ExecutionContext.NATIVE_APP:
        if api_base_url:
            return api_base_url.rstrip("/")
        if deployment_host:
            return f"https://{deployment_host.rstrip('/')}"
        return DEFAULT_PRODUCTION_URL
    if context is ExecutionContext.BROWSER:
        return ""
    return api_base_url.rstrip("/") if api_base_url else ""
