from __future__ import annotations
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional
import dotenv

# Load environment from .env if present (local dev)
dotenv.load_dotenv()


def _optional_env(*names: str) -> Optional[str]:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return None


class Settings:
    # Runtime
    environment: str = os.getenv("ENV", os.getenv("ENVIRONMENT", "local"))
    # native | browser | server
    execution_context: str = os.getenv("GENIE_EXECUTION_CONTEXT", "browser")

    # Cloudflare R2 (S3 compatible)
    r2_region: str = os.getenv("R2_REGION", "auto")
    r2_endpoint: str = os.getenv("R2_ENDPOINT", "")
    r2_access_key_id: str | None = os.getenv("R2_ACCESS_KEY_ID") or None
    r2_secret_access_key: str | None = os.getenv("R2_SECRET_ACCESS_KEY") or None
    r2_bucket_name: str = os.getenv("R2_BUCKET_NAME", "genie-bucket")
    # Required by call sites that hand out public links
    r2_public_base_url: str | None = os.getenv("R2_PUBLIC_BASE_URL") or None

    # Gemini
    gemini_api_key: str | None = _optional_env("AI_GATEWAY_API_KEY", "GEMINI_API_KEY", "GOOGLE_API_KEY")
    image_model: str = os.getenv("IMAGE_MODEL", "gemini-2.5-flash-image")

    # Supabase (share records)
    supabase_url: str = os.getenv("SUPABASE_URL", "")
    supabase_key: str = os.getenv("SUPABASE_SERVICE_ROLE_KEY", os.getenv("SUPABASE_ANON_KEY", ""))

    # Share links / client dispatch
    app_url: str | None = _optional_env("NEXT_PUBLIC_APP_URL", "APP_URL")
    api_base_url: str | None = os.getenv("NEXT_PUBLIC_API_BASE_URL") or None
    deployment_host: str | None = _optional_env("NEXT_PUBLIC_VERCEL_URL", "VERCEL_URL")

    # Normalization defaults
    normalize_max_dimension: int = int(os.getenv("NORMALIZE_MAX_DIMENSION", "1024"))
    normalize_format: str = os.getenv("NORMALIZE_FORMAT", "webp")
    normalize_quality: float = float(os.getenv("NORMALIZE_QUALITY", "0.8"))


@dataclass(frozen=True)
class StorageConfig:
    """Object store connection passed explicitly to the writer."""
    bucket: str
    endpoint: str = ""
    region: str = "auto"
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    public_base_url: Optional[str] = None


@dataclass(frozen=True)
class GatewayConfig:
    """Generation gateway credentials and model selection."""
    api_key: Optional[str]
    model_id: str
    response_modalities: tuple[str, ...] = ("TEXT", "IMAGE")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def storage_config_from_settings(settings: Settings) -> StorageConfig:
    return StorageConfig(
        bucket=settings.r2_bucket_name,
        endpoint=settings.r2_endpoint,
        region=settings.r2_region,
        access_key_id=settings.r2_access_key_id,
        secret_access_key=settings.r2_secret_access_key,
        public_base_url=settings.r2_public_base_url,
    )


def gateway_config_from_settings(settings: Settings) -> GatewayConfig:
    return GatewayConfig(api_key=settings.gemini_api_key, model_id=settings.image_model)
