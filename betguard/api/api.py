from fastapi import APIRouter, FastAPI
import logging

from betguard.api.routers import compliance, health
from betguard.core.config import settings

logger = logging.getLogger(__name__)

# API 라우터 초기화
api_router = APIRouter()

# 각 라우터 등록
api_router.include_router(compliance.router, prefix="/compliance", tags=["Compliance"])
api_router.include_router(health.router, prefix="/health", tags=["Health"])


def setup_api(app: FastAPI) -> None:
    """API 라우터 등록"""
    app.include_router(api_router, prefix=settings.API_V1_PREFIX)
    logger.info(f"API routes registered under '{settings.API_V1_PREFIX}'")
