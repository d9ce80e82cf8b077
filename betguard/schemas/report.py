"""
대시보드 / 컴플라이언스 보고서 스키마
"""
from datetime import datetime
from typing import Dict, List

from pydantic import BaseModel, Field

from betguard.schemas.alert import AlertResponse


class DashboardStats(BaseModel):
    total_alerts: int
    active_alerts: int
    resolved_today: int


class ComplianceDashboard(BaseModel):
    active_alerts: int
    critical_alerts: int
    high_risk_users: int
    stats: DashboardStats
    alerts_by_status: Dict[str, int] = Field(default_factory=dict)
    alerts_by_severity: Dict[str, int] = Field(default_factory=dict)
    # 활성(open, investigating) 알림 기준
    alerts_by_type: Dict[str, int] = Field(default_factory=dict)
    risk_distribution: Dict[str, int] = Field(default_factory=dict)
    recent_alerts: List[AlertResponse] = Field(default_factory=list)


class ReportPeriod(BaseModel):
    start: datetime
    end: datetime


class ReportSummary(BaseModel):
    total_alerts: int
    critical_alerts: int
    high_risk_users: int
    resolved_alerts: int
    false_positive_alerts: int
    average_resolution_time_hours: float


class ComplianceReport(BaseModel):
    period: ReportPeriod
    generated_at: datetime
    summary: ReportSummary
    alerts_by_type: Dict[str, int] = Field(default_factory=dict)
    alerts_by_severity: Dict[str, int] = Field(default_factory=dict)
    risk_distribution: Dict[str, int] = Field(default_factory=dict)
    recommendations: List[str] = Field(default_factory=list)
