"""
교체 가능한 위험 요인 전략

로그인/거래/베팅/위치/기기 요인과 행동 지표는 외부 분석 시스템에서 올 수 있으므로
인터페이스로 분리한다. 기본 구현은 고정 중간값(50)과 0 지표를 반환한다.
"""
from typing import Dict, Mapping, Protocol, runtime_checkable
from uuid import UUID

from betguard.services.risk.policy import BEHAVIOR_METRIC_NAMES

PLACEHOLDER_FACTORS = (
    "login_patterns",
    "transaction_patterns",
    "betting_patterns",
    "geolocation",
    "device_fingerprint",
)


@runtime_checkable
class FactorStrategy(Protocol):
    """단일 위험 요인 점수 (0~100). 조회 실패 시 DependencyError 를 발생시킨다."""

    async def score(self, user_id: UUID) -> float:
        ...


class FixedScore:
    def __init__(self, value: float = 50.0):
        self.value = float(value)

    async def score(self, user_id: UUID) -> float:
        return self.value

    def __repr__(self):
        return f"FixedScore({self.value})"


@runtime_checkable
class BehaviorMetricsProvider(Protocol):
    async def metrics(self, user_id: UUID) -> Mapping[str, float]:
        ...


class ZeroBehaviorMetrics:
    """행동 지표 수집 시스템이 연결되지 않았을 때의 기본값"""

    async def metrics(self, user_id: UUID) -> Dict[str, float]:
        return empty_metrics()


def empty_metrics() -> Dict[str, float]:
    return {name: 0.0 for name in BEHAVIOR_METRIC_NAMES}


def default_strategies(placeholder_score: float = 50.0) -> Dict[str, FactorStrategy]:
    return {name: FixedScore(placeholder_score) for name in PLACEHOLDER_FACTORS}
