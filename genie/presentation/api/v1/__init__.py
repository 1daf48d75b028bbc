from fastapi import APIRouter

from .pipeline import router as pipeline_router

router = APIRouter()
router.include_router(pipeline_router)
