"""
컴플라이언스 API
위험 프로필 조회/운영자 조치, 알림 트리아지, 대시보드/보고서, 이벤트 수신
"""
import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Path, Query, status

from betguard.api.dependencies import get_compliance_gateway, get_scoring_service, get_triage_service
from betguard.core.config import settings
from betguard.core.schemas import ErrorResponse, StandardResponse
from betguard.models.enums import AlertSeverity, AlertType
from betguard.schemas.alert import (
    AlertFilter,
    AlertResponse,
    AssignAlertRequest,
    EscalateAlertRequest,
    UpdateAlertStatusRequest,
)
from betguard.schemas.events import BetPlacedEvent, LoginEvent, ProfileUpdateEvent, TransactionEvent
from betguard.schemas.report import ComplianceDashboard, ComplianceReport
from betguard.schemas.risk import (
    BlacklistRequest,
    ManualReviewRequest,
    RecalculateRequest,
    RiskFlagsRequest,
    RiskProfileResponse,
    RiskProfileSummary,
)
from betguard.services.compliance.gateway import ComplianceGateway
from betguard.services.compliance.triage_service import ComplianceTriageService
from betguard.services.risk.scoring_service import RiskScoringService
from betguard.utils.response import success_response

logger = logging.getLogger(__name__)

router = APIRouter()  # Prefix will be handled in api.py

NOT_FOUND = {status.HTTP_404_NOT_FOUND: {"model": ErrorResponse, "description": "대상을 찾을 수 없음"}}
CONFLICT = {status.HTTP_409_CONFLICT: {"model": ErrorResponse, "description": "이미 종결된 알림"}}
BAD_REQUEST = {status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse, "description": "잘못된 요청 값"}}


# --- 위험 프로필 ---

@router.get(
    "/profiles/high-risk",
    response_model=StandardResponse[List[RiskProfileSummary]],
    summary="고위험 사용자 목록",
    responses=BAD_REQUEST,
)
async def list_high_risk_users(
    limit: int = Query(settings.HIGH_RISK_USER_LIMIT, ge=1, le=500),
    scoring: RiskScoringService = Depends(get_scoring_service),
):
    profiles = await scoring.get_high_risk_users(limit)
    return success_response(data=[RiskProfileSummary.model_validate(p) for p in profiles])


@router.get(
    "/profiles/review",
    response_model=StandardResponse[List[RiskProfileSummary]],
    summary="수동 검토가 필요한 사용자 목록",
)
async def list_users_requiring_review(scoring: RiskScoringService = Depends(get_scoring_service)):
    profiles = await scoring.get_users_requiring_review()
    return success_response(data=[RiskProfileSummary.model_validate(p) for p in profiles])


@router.get(
    "/profiles/{user_id}",
    response_model=StandardResponse[RiskProfileResponse],
    summary="사용자 위험 프로필 조회",
    responses=NOT_FOUND,
)
async def get_risk_profile(
    user_id: UUID = Path(..., description="조회할 사용자 ID"),
    scoring: RiskScoringService = Depends(get_scoring_service),
):
    profile = await scoring.get_risk_profile(user_id)
    return success_response(data=RiskProfileResponse.model_validate(profile))


@router.post(
    "/profiles/{user_id}/recalculate",
    response_model=StandardResponse[RiskProfileResponse],
    summary="위험 점수 즉시 재계산",
)
async def recalculate_risk_score(
    user_id: UUID,
    request: Optional[RecalculateRequest] = Body(None),
    scoring: RiskScoringService = Depends(get_scoring_service),
):
    request = request or RecalculateRequest()
    profile = await scoring.recalculate_risk_score(user_id, reason=request.reason, triggered_by=request.triggered_by)
    return success_response(data=RiskProfileResponse.model_validate(profile), message="Risk score recalculated.")


@router.put(
    "/profiles/{user_id}/blacklist",
    response_model=StandardResponse[RiskProfileResponse],
    summary="블랙리스트 설정/해제",
)
async def set_blacklist_status(
    user_id: UUID,
    request: BlacklistRequest,
    scoring: RiskScoringService = Depends(get_scoring_service),
):
    profile = await scoring.set_blacklist_status(user_id, request.is_blacklisted, request.reason)
    return success_response(data=RiskProfileResponse.model_validate(profile), message="Blacklist status updated.")


@router.put(
    "/profiles/{user_id}/manual-review",
    response_model=StandardResponse[RiskProfileResponse],
    summary="수동 검토 필요 여부 설정",
    responses=BAD_REQUEST,
)
async def require_manual_review(
    user_id: UUID,
    request: ManualReviewRequest,
    scoring: RiskScoringService = Depends(get_scoring_service),
):
    profile = await scoring.require_manual_review(user_id, request.reason, required=request.required)
    return success_response(data=RiskProfileResponse.model_validate(profile), message="Manual review requirement updated.")


@router.post(
    "/profiles/{user_id}/flags",
    response_model=StandardResponse[RiskProfileResponse],
    summary="위험 플래그 추가",
    responses=BAD_REQUEST,
)
async def add_risk_flags(
    user_id: UUID,
    request: RiskFlagsRequest,
    scoring: RiskScoringService = Depends(get_scoring_service),
):
    profile = await scoring.add_risk_flags(user_id, request.flags)
    return success_response(data=RiskProfileResponse.model_validate(profile), message="Risk flags added.")


@router.delete(
    "/profiles/{user_id}/flags/{flag}",
    response_model=StandardResponse[RiskProfileResponse],
    summary="위험 플래그 제거",
    responses=NOT_FOUND,
)
async def remove_risk_flag(
    user_id: UUID,
    flag: str = Path(..., min_length=1),
    scoring: RiskScoringService = Depends(get_scoring_service),
):
    profile = await scoring.remove_risk_flag(user_id, flag)
    return success_response(data=RiskProfileResponse.model_validate(profile), message="Risk flag removed.")


# --- 알림 트리아지 ---

@router.get(
    "/alerts/active",
    response_model=StandardResponse[List[AlertResponse]],
    summary="활성(open, investigating) 알림 목록",
)
async def list_active_alerts(
    user_id: Optional[UUID] = Query(None),
    severity: Optional[AlertSeverity] = Query(None),
    alert_type: Optional[AlertType] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    triage: ComplianceTriageService = Depends(get_triage_service),
):
    alert_filter = AlertFilter(user_id=user_id, severity=severity, alert_type=alert_type, limit=limit)
    alerts = await triage.get_active_alerts(alert_filter)
    return success_response(data=[AlertResponse.model_validate(a) for a in alerts])


@router.get(
    "/alerts/{alert_id}",
    response_model=StandardResponse[AlertResponse],
    summary="알림 상세 조회",
    responses=NOT_FOUND,
)
async def get_alert(alert_id: UUID, triage: ComplianceTriageService = Depends(get_triage_service)):
    alert = await triage.get_alert(alert_id)
    return success_response(data=AlertResponse.model_validate(alert))


@router.post(
    "/alerts/{alert_id}/assign",
    response_model=StandardResponse[AlertResponse],
    summary="알림 담당자 배정",
    responses={**NOT_FOUND, **CONFLICT},
)
async def assign_alert(
    alert_id: UUID,
    request: AssignAlertRequest,
    triage: ComplianceTriageService = Depends(get_triage_service),
):
    alert = await triage.assign(alert_id, request.reviewer, actor=request.reviewer)
    return success_response(data=AlertResponse.model_validate(alert), message="Alert assigned.")


@router.post(
    "/alerts/{alert_id}/status",
    response_model=StandardResponse[AlertResponse],
    summary="알림 종결 (resolved / false_positive)",
    responses={**NOT_FOUND, **CONFLICT, **BAD_REQUEST},
)
async def update_alert_status(
    alert_id: UUID,
    request: UpdateAlertStatusRequest,
    triage: ComplianceTriageService = Depends(get_triage_service),
):
    alert = await triage.update_status(
        alert_id,
        request.status,
        request.notes,
        resolution=request.resolution,
        actor=request.actor,
    )
    return success_response(data=AlertResponse.model_validate(alert), message="Alert status updated.")


@router.post(
    "/alerts/{alert_id}/escalate",
    response_model=StandardResponse[AlertResponse],
    summary="알림 심각도 상향",
    responses={**NOT_FOUND, **CONFLICT},
)
async def escalate_alert(
    alert_id: UUID,
    request: EscalateAlertRequest,
    triage: ComplianceTriageService = Depends(get_triage_service),
):
    alert = await triage.escalate(
        alert_id,
        request.reason,
        senior_reviewer=request.senior_reviewer,
        actor=request.actor,
    )
    return success_response(data=AlertResponse.model_validate(alert), message="Alert escalated.")


# --- 대시보드 / 보고서 ---

@router.get(
    "/dashboard",
    response_model=StandardResponse[ComplianceDashboard],
    summary="컴플라이언스 대시보드",
)
async def get_dashboard(triage: ComplianceTriageService = Depends(get_triage_service)):
    dashboard = await triage.get_compliance_dashboard()
    return success_response(data=dashboard)


@router.get(
    "/reports",
    response_model=StandardResponse[ComplianceReport],
    summary="기간별 컴플라이언스 보고서",
    responses=BAD_REQUEST,
)
async def get_compliance_report(
    start: datetime = Query(..., description="기간 시작 (UTC)"),
    end: datetime = Query(..., description="기간 종료 (UTC)"),
    triage: ComplianceTriageService = Depends(get_triage_service),
):
    report = await triage.generate_compliance_report(start, end)
    return success_response(data=report)


# --- 이벤트 수신 ---
# 탐지/채점 실패는 게이트웨이에서 기록만 하므로 입력이 유효하면 항상 200

@router.post(
    "/events/login",
    response_model=StandardResponse[List[AlertResponse]],
    summary="로그인 이벤트 수신",
)
async def ingest_login_event(
    event: LoginEvent,
    gateway: ComplianceGateway = Depends(get_compliance_gateway),
):
    alerts = await gateway.on_login_event(
        event.user_id,
        event.ip_address,
        user_agent=event.user_agent,
        resolved_location=event.location,
        occurred_at=event.occurred_at,
    )
    return _alerts_response(alerts)


@router.post(
    "/events/bet",
    response_model=StandardResponse[List[AlertResponse]],
    summary="베팅 이벤트 수신",
)
async def ingest_bet_event(
    event: BetPlacedEvent,
    gateway: ComplianceGateway = Depends(get_compliance_gateway),
):
    alerts = await gateway.on_bet_placed(
        event.user_id,
        event.stake_amount,
        event.bet_type,
        event.odds,
        occurred_at=event.occurred_at,
    )
    return _alerts_response(alerts)


@router.post(
    "/events/transaction",
    response_model=StandardResponse[List[AlertResponse]],
    summary="입출금 이벤트 수신",
)
async def ingest_transaction_event(
    event: TransactionEvent,
    gateway: ComplianceGateway = Depends(get_compliance_gateway),
):
    alerts = await gateway.on_transaction(
        event.user_id,
        event.transaction_type,
        event.amount,
        event.payment_method,
        event.currency,
        occurred_at=event.occurred_at,
    )
    return _alerts_response(alerts)


@router.post(
    "/events/profile",
    response_model=StandardResponse[List[AlertResponse]],
    summary="프로필/신원 변경 이벤트 수신",
)
async def ingest_profile_event(
    event: ProfileUpdateEvent,
    gateway: ComplianceGateway = Depends(get_compliance_gateway),
):
    alerts = await gateway.on_profile_or_identity_update(
        event.user_id,
        verified_fields=event.verified_fields,
        profile_fields=event.profile_fields,
        occurred_at=event.occurred_at,
    )
    return _alerts_response(alerts)


def _alerts_response(alerts) -> StandardResponse[List[AlertResponse]]:
    data = [AlertResponse.model_validate(a) for a in alerts]
    return success_response(data=data, message=f"{len(data)} alert(s) raised.")
