"""
위험 프로필 Pydantic 스키마 정의
"""
from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from betguard.models.enums import RiskLevel


class RiskHistoryEntry(BaseModel):
    date: datetime
    score: float
    level: RiskLevel
    reason: str
    triggered_by: str


class RiskProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    overall_risk_score: float
    risk_level: RiskLevel
    risk_factors: Dict[str, float] = Field(default_factory=dict)
    behavior_metrics: Dict[str, float] = Field(default_factory=dict)
    risk_flags: List[str] = Field(default_factory=list)
    risk_history: List[RiskHistoryEntry] = Field(default_factory=list)
    last_assessment: datetime
    next_assessment: datetime
    is_blacklisted: bool
    requires_manual_review: bool
    notes: Optional[str] = None


class RiskProfileSummary(BaseModel):
    """목록 조회용 요약"""
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    overall_risk_score: float
    risk_level: RiskLevel
    risk_flags: List[str] = Field(default_factory=list)
    is_blacklisted: bool
    requires_manual_review: bool
    next_assessment: datetime


class RecalculateRequest(BaseModel):
    reason: str = Field("manual_recalculation", min_length=1)
    triggered_by: str = Field("operator", min_length=1)


class BlacklistRequest(BaseModel):
    is_blacklisted: bool
    reason: str = Field(..., min_length=1)


class ManualReviewRequest(BaseModel):
    required: bool = True
    reason: str = Field(..., min_length=1)


class RiskFlagsRequest(BaseModel):
    flags: List[str] = Field(..., min_length=1)
