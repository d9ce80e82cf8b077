"""
컴플라이언스 알림 데이터 모델
"""
import uuid

from sqlalchemy import Column, String, Integer, DateTime, Enum as SQLEnum, Text, Index, UniqueConstraint

from betguard.core.datetime_utils import utcnow
from betguard.db.database import Base
from betguard.db.types import GUID, JSONType
from betguard.models.enums import AlertType, AlertSeverity, AlertStatus, enum_values


class ComplianceAlert(Base):
    """컴플라이언스 알림

    resolved_at 은 종결 상태(resolved, false_positive)에서만 설정되며
    종결 후에는 상태와 종결 필드를 다시 쓰지 않는다.
    """
    __tablename__ = "compliance_alerts"

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    user_id = Column(GUID, nullable=False, index=True)
    alert_type = Column(
        SQLEnum(AlertType, name="alert_type", native_enum=False, values_callable=enum_values),
        nullable=False,
    )
    severity = Column(
        SQLEnum(AlertSeverity, name="alert_severity", native_enum=False, values_callable=enum_values),
        nullable=False,
    )
    status = Column(
        SQLEnum(AlertStatus, name="alert_status", native_enum=False, values_callable=enum_values),
        default=AlertStatus.OPEN,
        nullable=False,
        index=True,
    )
    description = Column(Text, nullable=False)
    alert_metadata = Column("metadata", JSONType, nullable=False, default=dict)

    assigned_to = Column(String(100), nullable=True)
    investigation_notes = Column(Text, nullable=True)
    resolution = Column(Text, nullable=True)

    triggered_at = Column(DateTime, nullable=False, default=utcnow)
    resolved_at = Column(DateTime, nullable=True)
    # 같은 사용자의 동일 시각 알림 순서 보장용
    sequence = Column(Integer, nullable=False)
    audit_trail = Column(JSONType, nullable=False, default=list)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "sequence", name="uq_compliance_alert_user_sequence"),
        Index("ix_compliance_alerts_user_triggered", "user_id", "triggered_at", "sequence"),
    )

    def __repr__(self):
        return f"<ComplianceAlert id={self.id} type={self.alert_type} severity={self.severity} status={self.status}>"
