"""
API 의존성

서비스 묶음은 애플리케이션 수명 동안 하나만 만들어 app.state 에 둔다.
게이트웨이의 최근 활동 이력이 프로세스 메모리에 있으므로 요청마다 새로 만들면 안 된다.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import async_sessionmaker

from betguard.core.config import Settings, settings as default_settings
from betguard.services.compliance.gateway import ComplianceGateway
from betguard.services.compliance.triage_service import ComplianceTriageService
from betguard.services.fraud.thresholds import DetectorThresholds
from betguard.services.risk.policy import RiskPolicy
from betguard.services.risk.scoring_service import RiskScoringService
from betguard.workers.task_processor import TaskProcessor

logger = logging.getLogger(__name__)


@dataclass
class ComplianceServices:
    scoring: RiskScoringService
    triage: ComplianceTriageService
    gateway: ComplianceGateway


def build_services(
    session_factory: async_sessionmaker,
    app_settings: Optional[Settings] = None,
    task_processor: Optional[TaskProcessor] = None,
) -> ComplianceServices:
    """설정으로부터 정책/임계값을 만들고 서비스를 조립"""
    app_settings = app_settings or default_settings
    policy = RiskPolicy.from_settings(app_settings)
    thresholds = DetectorThresholds.from_settings(app_settings)

    scoring = RiskScoringService(session_factory, policy)
    triage = ComplianceTriageService(session_factory, high_risk_threshold=policy.high_threshold)
    gateway = ComplianceGateway(
        session_factory,
        scoring=scoring,
        triage=triage,
        thresholds=thresholds,
        task_processor=task_processor,
    )
    logger.info("Compliance services assembled")
    return ComplianceServices(scoring=scoring, triage=triage, gateway=gateway)


def get_services(request: Request) -> ComplianceServices:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise RuntimeError("Compliance services are not initialized")
    return services


def get_scoring_service(request: Request) -> RiskScoringService:
    return get_services(request).scoring


def get_triage_service(request: Request) -> ComplianceTriageService:
    return get_services(request).triage


def get_compliance_gateway(request: Request) -> ComplianceGateway:
    return get_services(request).gateway
