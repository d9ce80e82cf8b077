"""
위험 프로필 데이터 모델
"""
import uuid

from sqlalchemy import Column, Integer, DateTime, Enum as SQLEnum, Text, Float, Boolean

from betguard.core.datetime_utils import utcnow
from betguard.db.database import Base
from betguard.db.types import GUID, JSONType
from betguard.models.enums import RiskLevel, enum_values


class RiskProfile(Base):
    """플레이어 위험 프로필 (사용자당 1건, 삭제하지 않음)"""
    __tablename__ = "risk_profiles"

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    user_id = Column(GUID, nullable=False, unique=True, index=True)

    # 점수는 채점 실행에서만 변경
    overall_risk_score = Column(Float, default=50.0, nullable=False)
    risk_level = Column(
        SQLEnum(RiskLevel, name="risk_level", native_enum=False, values_callable=enum_values),
        default=RiskLevel.MEDIUM,
        nullable=False,
        index=True,
    )
    risk_factors = Column(JSONType, nullable=False, default=dict)
    behavior_metrics = Column(JSONType, nullable=False, default=dict)
    risk_flags = Column(JSONType, nullable=False, default=list)
    # {date, score, level, reason, triggered_by} 항목의 append-only 목록
    risk_history = Column(JSONType, nullable=False, default=list)

    last_assessment = Column(DateTime, nullable=False, default=utcnow)
    next_assessment = Column(DateTime, nullable=False, index=True)

    # 운영자 플래그
    is_blacklisted = Column(Boolean, default=False, nullable=False)
    requires_manual_review = Column(Boolean, default=False, nullable=False)
    notes = Column(Text, nullable=True)

    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<RiskProfile user_id={self.user_id} score={self.overall_risk_score} level={self.risk_level}>"
