"""
ORM 모델 패키지

Base.metadata.create_all 이 모든 테이블을 인식하도록 여기서 전부 임포트한다.
"""
from betguard.models.alert import ComplianceAlert
from betguard.models.domain.player import Player
from betguard.models.risk import RiskProfile

__all__ = [
    "ComplianceAlert",
    "Player",
    "RiskProfile",
]
