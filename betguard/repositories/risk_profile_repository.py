"""
위험 프로필 데이터 접근 로직 (Repository)
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from betguard.models.enums import RiskLevel
from betguard.models.risk import RiskProfile

logger = logging.getLogger(__name__)


class RiskProfileRepository:
    """위험 프로필 관련 데이터베이스 작업을 처리합니다."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_user_id(self, user_id: UUID, for_update: bool = False) -> Optional[RiskProfile]:
        """사용자 ID로 위험 프로필을 조회합니다.

        Args:
            user_id: 사용자 ID
            for_update: SELECT ... FOR UPDATE 잠금을 사용할지 여부
        """
        stmt = select(RiskProfile).where(RiskProfile.user_id == user_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def add(self, profile: RiskProfile) -> RiskProfile:
        self.session.add(profile)
        await self.session.flush()
        logger.debug(f"Risk profile created for user {profile.user_id}")
        return profile

    async def list_by_min_score(self, min_score: float, limit: int) -> List[RiskProfile]:
        """점수 내림차순으로 기준 점수 이상 프로필 조회"""
        stmt = (
            select(RiskProfile)
            .where(RiskProfile.overall_risk_score >= min_score)
            .order_by(RiskProfile.overall_risk_score.desc(), RiskProfile.user_id)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_requiring_review(self) -> List[RiskProfile]:
        stmt = (
            select(RiskProfile)
            .where(RiskProfile.requires_manual_review.is_(True))
            .order_by(RiskProfile.overall_risk_score.desc(), RiskProfile.user_id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_due_user_ids(self, now: datetime, limit: int) -> List[UUID]:
        """재평가 예정일이 지난 사용자 ID (오래된 순)"""
        stmt = (
            select(RiskProfile.user_id)
            .where(RiskProfile.next_assessment <= now)
            .order_by(RiskProfile.next_assessment.asc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_all(self) -> int:
        result = await self.session.execute(select(func.count(RiskProfile.id)))
        return result.scalar_one() or 0

    async def count_by_min_score(self, min_score: float) -> int:
        stmt = select(func.count(RiskProfile.id)).where(RiskProfile.overall_risk_score >= min_score)
        result = await self.session.execute(stmt)
        return result.scalar_one() or 0

    async def risk_distribution(self) -> Dict[str, int]:
        """위험 등급별 프로필 수 (모든 등급 키 포함)"""
        stmt = select(RiskProfile.risk_level, func.count(RiskProfile.id)).group_by(RiskProfile.risk_level)
        result = await self.session.execute(stmt)
        distribution = {level.value: 0 for level in RiskLevel}
        for level, count in result.all():
            distribution[RiskLevel(level).value] = count
        return distribution
