"""
컴플라이언스 알림 트리아지 서비스
알림 생성/배정/종결/상향 등 생명주기 관리와 대시보드, 기간 보고서 집계 담당
"""
from collections import Counter
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import async_sessionmaker

from betguard.core.concurrency import KeyedLock
from betguard.core.datetime_utils import start_of_utc_day, to_naive_utc, utcnow
from betguard.core.exceptions import AlertNotFoundError, AlertStateConflictError, InvalidInputError
from betguard.core.logging import StructuredLogger
from betguard.models.alert import ComplianceAlert
from betguard.models.enums import AlertSeverity, AlertStatus, AlertType, RiskLevel
from betguard.repositories.alert_repository import AlertRepository
from betguard.repositories.risk_profile_repository import RiskProfileRepository
from betguard.schemas.alert import AlertDraft, AlertFilter, AlertResponse
from betguard.schemas.report import (
    ComplianceDashboard,
    ComplianceReport,
    DashboardStats,
    ReportPeriod,
    ReportSummary,
)

SYSTEM_ACTOR = "system"
RECENT_ALERTS_LIMIT = 50
HIGH_RISK_SHARE_RECOMMENDATION = 0.1
CRITICAL_ALERTS_RECOMMENDATION = 10

TERMINAL_TARGETS = (AlertStatus.RESOLVED, AlertStatus.FALSE_POSITIVE)

# 사용자별 알림 순번 발급 직렬화
_sequence_locks = KeyedLock()


def _audit(event: str, actor: Optional[str], at: datetime, **details) -> dict:
    return {"event": event, "actor": actor or SYSTEM_ACTOR, "at": at.isoformat(), "details": details}


class ComplianceTriageService:
    """컴플라이언스 알림 트리아지 서비스"""

    service_name = "compliance_triage"

    def __init__(self, session_factory: async_sessionmaker, high_risk_threshold: float = 60.0, locks: Optional[KeyedLock] = None):
        self.session_factory = session_factory
        self.high_risk_threshold = high_risk_threshold
        self.locks = locks or _sequence_locks
        self.logger = StructuredLogger(__name__, service=self.service_name)

    # --- 생성 ---

    async def create_alerts(self, user_id: UUID, drafts: Sequence[AlertDraft]) -> List[ComplianceAlert]:
        """탐지기 결과를 open 상태 알림으로 저장 (같은 사용자 내 생성 순서 보존)"""
        if not drafts:
            return []
        async with self.locks.hold(user_id):
            async with self.session_factory.begin() as session:
                alerts = AlertRepository(session)
                sequence = await alerts.next_sequence(user_id)
                now = utcnow()
                created = []
                for offset, draft in enumerate(drafts):
                    alert = ComplianceAlert(
                        user_id=user_id,
                        alert_type=draft.alert_type,
                        severity=draft.severity,
                        status=AlertStatus.OPEN,
                        description=draft.description,
                        alert_metadata=dict(draft.metadata),
                        triggered_at=now,
                        sequence=sequence + offset,
                        audit_trail=[_audit("created", SYSTEM_ACTOR, now, severity=draft.severity.value)],
                    )
                    created.append(await alerts.add(alert))

        for alert in created:
            self.logger.info(
                "Compliance alert created",
                operation="create_alert",
                alert_id=str(alert.id),
                user_id=str(user_id),
                alert_type=alert.alert_type.value,
                severity=alert.severity.value,
            )
        return created

    async def last_alert_times(self, user_id: UUID, alert_types: Iterable[AlertType], since: datetime) -> Dict[AlertType, datetime]:
        async with self.session_factory() as session:
            return await AlertRepository(session).last_triggered_by_type(user_id, alert_types, since)

    # --- 생명주기 ---

    async def get_alert(self, alert_id: UUID) -> ComplianceAlert:
        async with self.session_factory() as session:
            alert = await AlertRepository(session).get_by_id(alert_id)
        if alert is None:
            raise AlertNotFoundError(alert_id)
        return alert

    async def assign(self, alert_id: UUID, reviewer: str, actor: Optional[str] = None) -> ComplianceAlert:
        """담당자 배정, open 이면 investigating 으로 전환"""
        reviewer = (reviewer or "").strip()
        if not reviewer:
            raise InvalidInputError("Reviewer is required to assign an alert")

        async with self.session_factory.begin() as session:
            alert = await self._load_for_update(session, alert_id)
            if alert.status.is_terminal:
                raise AlertStateConflictError(alert_id, alert.status.value, "assign")
            now = utcnow()
            previous_status = alert.status
            alert.assigned_to = reviewer
            if alert.status == AlertStatus.OPEN:
                alert.status = AlertStatus.INVESTIGATING
            alert.audit_trail = list(alert.audit_trail or []) + [
                _audit(
                    "assigned", actor or reviewer, now,
                    assigned_to=reviewer,
                    from_status=previous_status.value,
                    to_status=alert.status.value,
                )
            ]

        self.logger.info(
            "Compliance alert assigned",
            operation="assign_alert",
            alert_id=str(alert_id),
            assigned_to=reviewer,
            status=alert.status.value,
        )
        return alert

    async def update_status(
        self,
        alert_id: UUID,
        status: AlertStatus,
        notes: str,
        resolution: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> ComplianceAlert:
        """알림 종결 (resolved 또는 false_positive). 감사 목적상 notes 는 필수"""
        try:
            status = AlertStatus(status)
        except ValueError:
            raise InvalidInputError(f"Unknown alert status '{status}'") from None
        if status not in TERMINAL_TARGETS:
            raise InvalidInputError(
                f"Status must be one of {[s.value for s in TERMINAL_TARGETS]}, got '{status.value}'"
            )
        if not notes or not notes.strip():
            raise InvalidInputError("Investigation notes are required to close an alert")

        async with self.session_factory.begin() as session:
            alert = await self._load_for_update(session, alert_id)
            if alert.status.is_terminal:
                raise AlertStateConflictError(alert_id, alert.status.value, "update status of")
            now = utcnow()
            previous_status = alert.status
            alert.status = status
            alert.investigation_notes = notes
            if resolution:
                alert.resolution = resolution
            alert.resolved_at = now
            alert.audit_trail = list(alert.audit_trail or []) + [
                _audit(
                    "status_changed", actor or alert.assigned_to, now,
                    from_status=previous_status.value,
                    to_status=status.value,
                )
            ]

        self.logger.info(
            "Compliance alert closed",
            operation="update_alert_status",
            alert_id=str(alert_id),
            status=status.value,
        )
        return alert

    async def escalate(
        self,
        alert_id: UUID,
        reason: str,
        senior_reviewer: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> ComplianceAlert:
        """심각도 한 단계 상향(critical 상한), 선택적으로 상급 검토자 재배정. 상태는 바꾸지 않음"""
        reason = (reason or "").strip()
        if not reason:
            raise InvalidInputError("A reason is required to escalate an alert")
        if senior_reviewer is not None:
            senior_reviewer = senior_reviewer.strip()
            if not senior_reviewer:
                raise InvalidInputError("Senior reviewer must not be blank")

        async with self.session_factory.begin() as session:
            alert = await self._load_for_update(session, alert_id)
            if alert.status.is_terminal:
                raise AlertStateConflictError(alert_id, alert.status.value, "escalate")
            now = utcnow()
            previous_severity = alert.severity
            previous_assignee = alert.assigned_to
            alert.severity = alert.severity.escalated()
            if senior_reviewer:
                alert.assigned_to = senior_reviewer
            escalation_note = f"Escalated: {reason}"
            alert.investigation_notes = (
                f"{alert.investigation_notes}\n\n{escalation_note}" if alert.investigation_notes else escalation_note
            )
            alert.audit_trail = list(alert.audit_trail or []) + [
                _audit(
                    "escalated", actor, now,
                    reason=reason,
                    from_severity=previous_severity.value,
                    to_severity=alert.severity.value,
                    from_assignee=previous_assignee,
                    to_assignee=alert.assigned_to,
                )
            ]

        self.logger.warning(
            "Compliance alert escalated",
            operation="escalate_alert",
            alert_id=str(alert_id),
            severity=alert.severity.value,
            assigned_to=alert.assigned_to,
        )
        return alert

    async def _load_for_update(self, session, alert_id: UUID) -> ComplianceAlert:
        alert = await AlertRepository(session).get_by_id(alert_id, for_update=True)
        if alert is None:
            raise AlertNotFoundError(alert_id)
        return alert

    # --- 조회 / 집계 ---

    async def get_active_alerts(self, alert_filter: Optional[AlertFilter] = None) -> List[ComplianceAlert]:
        alert_filter = alert_filter or AlertFilter()
        async with self.session_factory() as session:
            return await AlertRepository(session).list_active(
                user_id=alert_filter.user_id,
                severity=alert_filter.severity,
                alert_type=alert_filter.alert_type,
                limit=alert_filter.limit,
            )

    async def get_compliance_dashboard(self, recent_limit: int = RECENT_ALERTS_LIMIT) -> ComplianceDashboard:
        async with self.session_factory() as session:
            alerts = AlertRepository(session)
            profiles = RiskProfileRepository(session)

            by_status = await alerts.count_by_status()
            by_severity = await alerts.count_by_severity()
            active_by_type = await alerts.count_active_by_type()
            critical_active = await alerts.count_active_with_severity(AlertSeverity.CRITICAL)
            total_alerts = await alerts.count_all()
            resolved_today = await alerts.count_resolved_since(start_of_utc_day())
            recent = await alerts.list_recent(recent_limit)

            high_risk_users = await profiles.count_by_min_score(self.high_risk_threshold)
            risk_distribution = await profiles.risk_distribution()

        active_alerts = by_status[AlertStatus.OPEN.value] + by_status[AlertStatus.INVESTIGATING.value]
        return ComplianceDashboard(
            active_alerts=active_alerts,
            critical_alerts=critical_active,
            high_risk_users=high_risk_users,
            stats=DashboardStats(
                total_alerts=total_alerts,
                active_alerts=active_alerts,
                resolved_today=resolved_today,
            ),
            alerts_by_status=by_status,
            alerts_by_severity=by_severity,
            alerts_by_type=active_by_type,
            risk_distribution=risk_distribution,
            recent_alerts=[AlertResponse.model_validate(alert) for alert in recent],
        )

    async def generate_compliance_report(self, start: datetime, end: datetime) -> ComplianceReport:
        """기간 내 발생 알림 기준 컴플라이언스 보고서"""
        start = to_naive_utc(start)
        end = to_naive_utc(end)
        if start is None or end is None:
            raise InvalidInputError("Both start and end dates are required")
        if start > end:
            raise InvalidInputError("Report start date must not be after end date")

        async with self.session_factory() as session:
            alerts = await AlertRepository(session).list_triggered_between(start, end)
            profiles = RiskProfileRepository(session)
            risk_distribution = await profiles.risk_distribution()
            total_profiles = await profiles.count_all()

        by_type = Counter(alert.alert_type.value for alert in alerts)
        by_severity = Counter(alert.severity.value for alert in alerts)
        critical_alerts = by_severity.get(AlertSeverity.CRITICAL.value, 0)
        resolved = sum(1 for alert in alerts if alert.status == AlertStatus.RESOLVED)
        false_positives = sum(1 for alert in alerts if alert.status == AlertStatus.FALSE_POSITIVE)
        high_risk_users = risk_distribution[RiskLevel.CRITICAL.value] + risk_distribution[RiskLevel.HIGH.value]

        resolution_hours = [
            (alert.resolved_at - alert.triggered_at).total_seconds() / 3600
            for alert in alerts
            if alert.resolved_at is not None
        ]
        average_hours = sum(resolution_hours) / len(resolution_hours) if resolution_hours else 0.0

        recommendations = []
        if total_profiles and high_risk_users > total_profiles * HIGH_RISK_SHARE_RECOMMENDATION:
            recommendations.append(
                "High number of high-risk users detected. Consider tightening KYC requirements."
            )
        if critical_alerts > CRITICAL_ALERTS_RECOMMENDATION:
            recommendations.append(
                "Multiple critical alerts detected. Review fraud detection thresholds."
            )

        self.logger.info(
            "Compliance report generated",
            operation="generate_compliance_report",
            start=start,
            end=end,
            total_alerts=len(alerts),
        )
        return ComplianceReport(
            period=ReportPeriod(start=start, end=end),
            generated_at=utcnow(),
            summary=ReportSummary(
                total_alerts=len(alerts),
                critical_alerts=critical_alerts,
                high_risk_users=high_risk_users,
                resolved_alerts=resolved,
                false_positive_alerts=false_positives,
                average_resolution_time_hours=round(average_hours, 2),
            ),
            alerts_by_type=dict(by_type),
            alerts_by_severity={severity.value: by_severity.get(severity.value, 0) for severity in AlertSeverity},
            risk_distribution=risk_distribution,
            recommendations=recommendations,
        )
