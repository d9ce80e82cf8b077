import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from betguard.api.dependencies import build_services
from betguard.core.config import settings
from betguard.db.database import Base, dispose_engine, get_engine, get_session_factory
from betguard.workers.assessment_sweeper import AssessmentSweeper
from betguard.workers.task_processor import shutdown_task_processor, startup_task_processor
import betguard.models  # noqa: F401  테이블 메타데이터 등록

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager."""
    logger.info("Lifespan: Startup")
    if settings.CREATE_TABLES_ON_STARTUP:
        async with get_engine().begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ensured.")

    processor = await startup_task_processor()
    services = build_services(get_session_factory(), settings, task_processor=processor)
    app.state.services = services

    sweeper = None
    if settings.ASSESSMENT_SWEEP_ENABLED:
        sweeper = AssessmentSweeper(services.scoring)
        await sweeper.start()

    yield

    logger.info("Lifespan: Shutdown")
    if sweeper is not None:
        await sweeper.stop()
    await shutdown_task_processor()
    try:
        await dispose_engine()
        logger.info("Database connections closed successfully.")
    except Exception as e:
        logger.error(f"Error closing database connections: {e}", exc_info=True)
