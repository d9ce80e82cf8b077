"""
데이터베이스 연결 및 세션 관리
"""
import logging
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from betguard.core.config import settings

logger = logging.getLogger(__name__)

# SQLAlchemy 기본 모델
Base = declarative_base()

# 엔진은 첫 사용 시점에 생성 (임포트만으로 DB 드라이버가 필요하지 않도록)
_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker] = None


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        url = str(settings.SQLALCHEMY_DATABASE_URI)
        engine_kwargs = {"echo": settings.DB_ECHO}
        if not url.startswith("sqlite"):
            engine_kwargs.update(pool_pre_ping=True, pool_timeout=30, pool_recycle=1800)
        _engine = create_async_engine(url, **engine_kwargs)
        logger.info(f"Database engine created for dialect '{_engine.dialect.name}'")
    return _engine


def get_session_factory() -> async_sessionmaker:
    """애플리케이션 전역 세션 팩토리"""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(get_engine(), expire_on_commit=False, class_=AsyncSession)
    return _session_factory


async def dispose_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        logger.info("Database engine disposed")
    _engine = None
    _session_factory = None


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """요청 단위 DB 세션 제공 (정상 종료 시 커밋, 오류 시 롤백)"""
    session = get_session_factory()()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()

