# tests/conftest.py
import uuid
from datetime import timedelta
from typing import AsyncGenerator, Callable, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import betguard.models  # noqa: F401  테이블 등록
from betguard.api.dependencies import ComplianceServices
from betguard.app.exceptions import register_exception_handlers
from betguard.core.concurrency import KeyedLock
from betguard.core.datetime_utils import utcnow
from betguard.db.database import Base, get_db
from betguard.models.domain.player import Player
from betguard.services.compliance.gateway import ComplianceGateway
from betguard.services.compliance.triage_service import ComplianceTriageService
from betguard.services.fraud.thresholds import DetectorThresholds
from betguard.services.risk.policy import RiskPolicy
from betguard.services.risk.scoring_service import RiskScoringService

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

DEFAULT_WEIGHTS = {
    "account_age": 0.15,
    "kyc_status": 0.20,
    "login_patterns": 0.10,
    "transaction_patterns": 0.15,
    "betting_patterns": 0.15,
    "geolocation": 0.10,
    "device_fingerprint": 0.10,
    "social_signals": 0.05,
}


@pytest.fixture
async def engine():
    """테스트마다 새 인메모리 SQLite 엔진 (단일 연결 공유)"""
    test_engine = create_async_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
def default_weights() -> dict:
    return dict(DEFAULT_WEIGHTS)


@pytest.fixture
def policy(default_weights) -> RiskPolicy:
    return RiskPolicy(weights=default_weights)


@pytest.fixture
def thresholds() -> DetectorThresholds:
    return DetectorThresholds()


@pytest.fixture
def scoring_service(session_factory, policy) -> RiskScoringService:
    return RiskScoringService(session_factory, policy, locks=KeyedLock())


@pytest.fixture
def triage_service(session_factory, policy) -> ComplianceTriageService:
    return ComplianceTriageService(session_factory, high_risk_threshold=policy.high_threshold, locks=KeyedLock())


@pytest.fixture
def gateway(session_factory, scoring_service, triage_service, thresholds) -> ComplianceGateway:
    # 워커 풀 없이 동기 실행 (재채점 결과 알림도 반환됨)
    return ComplianceGateway(
        session_factory,
        scoring=scoring_service,
        triage=triage_service,
        thresholds=thresholds,
        locks=KeyedLock(),
    )


@pytest.fixture
def create_player(session_factory) -> Callable:
    """플레이어 생성 팩토리"""

    async def _create(
        email: Optional[str] = None,
        kyc_status: str = "pending",
        age: timedelta = timedelta(days=2),
        **fields,
    ) -> Player:
        player = Player(
            id=fields.pop("id", uuid.uuid4()),
            email=email or f"player-{uuid.uuid4().hex[:8]}@example.org",
            kyc_status=kyc_status,
            created_at=utcnow() - age,
            **fields,
        )
        async with session_factory.begin() as session:
            session.add(player)
        return player

    return _create


@pytest.fixture
def app(session_factory, scoring_service, triage_service, gateway):
    """라이프스팬 없이 서비스만 주입한 테스트 앱"""
    from fastapi import FastAPI

    from betguard.api.api import setup_api

    test_app = FastAPI()
    register_exception_handlers(test_app)
    setup_api(test_app)
    test_app.state.services = ComplianceServices(scoring=scoring_service, triage=triage_service, gateway=gateway)

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    test_app.dependency_overrides[get_db] = override_get_db
    return test_app


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
