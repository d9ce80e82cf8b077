"""
헬스 체크 API
"""
import logging
from typing import Dict

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from betguard.core.config import settings
from betguard.core.exceptions import DependencyError
from betguard.db.database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("", summary="기본 시스템 상태 확인", response_model=Dict[str, str])
async def basic_health_check(db: AsyncSession = Depends(get_db)) -> Dict[str, str]:
    """DB 연결까지 확인하는 헬스 체크"""
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database health check failed: {e}", exc_info=True)
        raise DependencyError("database", "Database is not reachable") from e
    return {
        "status": "ok",
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT,
    }
