from __future__ import annotations
import os
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from genie.presentation.api.v1 import router as api_v1_router

# Configure logging level from env (default INFO)
_log_level = os.getenv("LOG_LEVEL", "INFO").upper()

logging.basicConfig(
    level=_log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()]
)
logging.getLogger("genie").setLevel(_log_level)

for _name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
    logging.getLogger(_name).setLevel(_log_level)

# httpx / botocore のリクエストログを抑制
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("botocore").setLevel(logging.WARNING)

app = FastAPI(title="Genie Image Pipeline API")

logger = logging.getLogger("genie.main")
logger.info("Genie Image Pipeline API starting (log level %s)", _log_level)


@app.get("/health")
def health():
    return {"status": "ok"}


_cors_origins_env = os.getenv("CORS_ALLOW_ORIGINS", "")
_cors_origins = [o.strip() for o in _cors_origins_env.split(",") if o.strip()]

# デフォルトはローカル開発用のみ
if not _cors_origins and os.getenv("ENV", "local") == "local":
    _cors_origins = ["http://localhost:3000"]

if _cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Requested-With"],
    )

app.include_router(api_v1_router, prefix="/api/v1")
