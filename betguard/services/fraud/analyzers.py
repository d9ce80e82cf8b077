"""
베팅 패턴 분석기

외부 분석 시스템이 0~100 패턴 점수를 제공한다. 연결되지 않은 경우 고정 중간값을 사용한다.
"""
from typing import Protocol
from uuid import UUID


class BettingPatternAnalyzer(Protocol):
    async def pattern_score(self, user_id: UUID) -> float: ...


class FixedPatternAnalyzer:
    def __init__(self, value: float = 50.0):
        self.value = float(value)

    async def pattern_score(self, user_id: UUID) -> float:
        return self.value
