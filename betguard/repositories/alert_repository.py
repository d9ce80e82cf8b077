"""
컴플라이언스 알림 데이터 접근 로직 (Repository)
"""
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from betguard.models.alert import ComplianceAlert
from betguard.models.enums import AlertSeverity, AlertStatus, AlertType

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (AlertStatus.OPEN, AlertStatus.INVESTIGATING)


class AlertRepository:
    """컴플라이언스 알림 관련 데이터베이스 작업을 처리합니다."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, alert_id: UUID, for_update: bool = False) -> Optional[ComplianceAlert]:
        stmt = select(ComplianceAlert).where(ComplianceAlert.id == alert_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def add(self, alert: ComplianceAlert) -> ComplianceAlert:
        self.session.add(alert)
        await self.session.flush()
        return alert

    async def next_sequence(self, user_id: UUID) -> int:
        """사용자별 알림 순번 (1부터 시작)"""
        stmt = select(func.max(ComplianceAlert.sequence)).where(ComplianceAlert.user_id == user_id)
        result = await self.session.execute(stmt)
        current = result.scalar_one_or_none()
        return (current or 0) + 1

    async def last_triggered_by_type(
        self, user_id: UUID, alert_types: Iterable[AlertType], since: datetime
    ) -> Dict[AlertType, datetime]:
        """유형별 가장 최근 알림 시각 (since 이후만)"""
        alert_types = list(alert_types)
        if not alert_types:
            return {}
        stmt = (
            select(ComplianceAlert.alert_type, func.max(ComplianceAlert.triggered_at))
            .where(
                ComplianceAlert.user_id == user_id,
                ComplianceAlert.alert_type.in_(alert_types),
                ComplianceAlert.triggered_at >= since,
            )
            .group_by(ComplianceAlert.alert_type)
        )
        result = await self.session.execute(stmt)
        return {AlertType(alert_type): triggered_at for alert_type, triggered_at in result.all()}

    async def list_active(
        self,
        user_id: Optional[UUID] = None,
        severity: Optional[AlertSeverity] = None,
        alert_type: Optional[AlertType] = None,
        limit: Optional[int] = None,
    ) -> List[ComplianceAlert]:
        """진행 중(open, investigating) 알림, 최신순"""
        stmt = select(ComplianceAlert).where(ComplianceAlert.status.in_(ACTIVE_STATUSES))
        if user_id is not None:
            stmt = stmt.where(ComplianceAlert.user_id == user_id)
        if severity is not None:
            stmt = stmt.where(ComplianceAlert.severity == severity)
        if alert_type is not None:
            stmt = stmt.where(ComplianceAlert.alert_type == alert_type)
        stmt = stmt.order_by(ComplianceAlert.triggered_at.desc(), ComplianceAlert.sequence.desc())
        if limit:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_recent(self, limit: int) -> List[ComplianceAlert]:
        stmt = (
            select(ComplianceAlert)
            .order_by(ComplianceAlert.triggered_at.desc(), ComplianceAlert.sequence.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_triggered_between(self, start: datetime, end: datetime) -> List[ComplianceAlert]:
        stmt = (
            select(ComplianceAlert)
            .where(ComplianceAlert.triggered_at >= start, ComplianceAlert.triggered_at <= end)
            .order_by(ComplianceAlert.triggered_at.asc(), ComplianceAlert.sequence.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_all(self) -> int:
        result = await self.session.execute(select(func.count(ComplianceAlert.id)))
        return result.scalar_one() or 0

    async def count_by_status(self) -> Dict[str, int]:
        stmt = select(ComplianceAlert.status, func.count(ComplianceAlert.id)).group_by(ComplianceAlert.status)
        result = await self.session.execute(stmt)
        counts = {status.value: 0 for status in AlertStatus}
        for status, count in result.all():
            counts[AlertStatus(status).value] = count
        return counts

    async def count_by_severity(self) -> Dict[str, int]:
        stmt = select(ComplianceAlert.severity, func.count(ComplianceAlert.id)).group_by(ComplianceAlert.severity)
        result = await self.session.execute(stmt)
        counts = {severity.value: 0 for severity in AlertSeverity}
        for severity, count in result.all():
            counts[AlertSeverity(severity).value] = count
        return counts

    async def count_active_by_type(self) -> Dict[str, int]:
        stmt = (
            select(ComplianceAlert.alert_type, func.count(ComplianceAlert.id))
            .where(ComplianceAlert.status.in_(ACTIVE_STATUSES))
            .group_by(ComplianceAlert.alert_type)
        )
        result = await self.session.execute(stmt)
        return {AlertType(alert_type).value: count for alert_type, count in result.all()}

    async def count_active_with_severity(self, severity: AlertSeverity) -> int:
        stmt = select(func.count(ComplianceAlert.id)).where(
            ComplianceAlert.status.in_(ACTIVE_STATUSES),
            ComplianceAlert.severity == severity,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one() or 0

    async def count_resolved_since(self, since: datetime) -> int:
        stmt = select(func.count(ComplianceAlert.id)).where(
            ComplianceAlert.status == AlertStatus.RESOLVED,
            ComplianceAlert.resolved_at >= since,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one() or 0
