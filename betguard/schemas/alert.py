"""
컴플라이언스 알림 Pydantic 스키마 정의
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from betguard.models.enums import AlertSeverity, AlertStatus, AlertType


class AlertDraft(BaseModel):
    """탐지기가 반환하는 저장 전 알림"""
    model_config = ConfigDict(frozen=True)

    alert_type: AlertType
    severity: AlertSeverity
    description: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class AuditEntry(BaseModel):
    event: str  # created, assigned, escalated, status_changed
    actor: Optional[str] = None
    at: datetime
    details: Dict[str, Any] = Field(default_factory=dict)


class AlertResponse(BaseModel):
    """ 알림 응답 스키마 """
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    user_id: UUID
    alert_type: AlertType
    severity: AlertSeverity
    status: AlertStatus
    description: str
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("alert_metadata", "metadata"),
    )
    assigned_to: Optional[str] = None
    investigation_notes: Optional[str] = None
    resolution: Optional[str] = None
    triggered_at: datetime
    resolved_at: Optional[datetime] = None
    sequence: int
    audit_trail: List[AuditEntry] = Field(default_factory=list)


class AlertFilter(BaseModel):
    user_id: Optional[UUID] = None
    severity: Optional[AlertSeverity] = None
    alert_type: Optional[AlertType] = None
    limit: int = Field(100, ge=1, le=500)


class AssignAlertRequest(BaseModel):
    reviewer: str = Field(..., min_length=1, max_length=100)


class UpdateAlertStatusRequest(BaseModel):
    """ 알림 종결 요청 (resolved 또는 false_positive) """
    status: AlertStatus
    notes: str = Field(..., min_length=1)
    resolution: Optional[str] = None
    actor: Optional[str] = Field(None, max_length=100)


class EscalateAlertRequest(BaseModel):
    reason: str = Field(..., min_length=1)
    senior_reviewer: Optional[str] = Field(None, min_length=1, max_length=100)
    actor: Optional[str] = Field(None, max_length=100)
