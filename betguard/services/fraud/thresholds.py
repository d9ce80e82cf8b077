"""
사기 탐지 임계값 및 KYC 상태별 한도
"""
from dataclasses import dataclass, field
from datetime import timedelta
from types import MappingProxyType
from typing import Mapping

from betguard.core.config import Settings
from betguard.models.enums import KycStatus


@dataclass(frozen=True)
class KycLimits:
    single_transaction: float
    daily_transactions: float
    max_bet: float


DEFAULT_KYC_LIMITS = {
    KycStatus.PENDING.value: KycLimits(1000.0, 2000.0, 500.0),
    KycStatus.VERIFIED.value: KycLimits(50000.0, 100000.0, 25000.0),
    KycStatus.REJECTED.value: KycLimits(100.0, 200.0, 50.0),
}


@dataclass(frozen=True)
class DetectorThresholds:
    login_window: timedelta = timedelta(hours=24)
    login_max_distinct_ips: int = 5
    login_high_risk_score: float = 80.0
    large_stake: float = 10000.0
    velocity_window: timedelta = timedelta(minutes=60)
    velocity_max_bets: int = 50
    pattern_score_threshold: float = 80.0
    large_deposit: float = 50000.0
    deposit_window: timedelta = timedelta(hours=24)
    deposit_window_max_total: float = 25000.0
    history_retention: timedelta = timedelta(days=30)
    kyc_limits: Mapping[str, KycLimits] = field(default_factory=lambda: MappingProxyType(dict(DEFAULT_KYC_LIMITS)))

    def __post_init__(self):
        object.__setattr__(self, "kyc_limits", MappingProxyType(dict(self.kyc_limits)))

    @classmethod
    def from_settings(cls, settings: Settings) -> "DetectorThresholds":
        kyc_limits = {}
        for status, limits in settings.KYC_TRANSACTION_LIMITS.items():
            kyc_limits[status] = KycLimits(
                single_transaction=limits["single"],
                daily_transactions=limits["daily"],
                max_bet=settings.KYC_BETTING_LIMITS.get(status, DEFAULT_KYC_LIMITS[KycStatus.PENDING.value].max_bet),
            )
        return cls(
            login_window=timedelta(hours=settings.LOGIN_WINDOW_HOURS),
            login_max_distinct_ips=settings.LOGIN_MAX_DISTINCT_IPS,
            login_high_risk_score=settings.LOGIN_HIGH_RISK_SCORE,
            large_stake=settings.BET_LARGE_STAKE,
            velocity_window=timedelta(minutes=settings.BET_VELOCITY_WINDOW_MINUTES),
            velocity_max_bets=settings.BET_VELOCITY_MAX_COUNT,
            pattern_score_threshold=settings.BET_PATTERN_SCORE_THRESHOLD,
            large_deposit=settings.DEPOSIT_LARGE_AMOUNT,
            deposit_window=timedelta(hours=settings.DEPOSIT_WINDOW_HOURS),
            deposit_window_max_total=settings.DEPOSIT_WINDOW_MAX_TOTAL,
            history_retention=timedelta(days=settings.HISTORY_RETENTION_DAYS),
            kyc_limits=kyc_limits,
        )

    def limits_for(self, kyc_status: str) -> KycLimits:
        """알 수 없는 상태(not_started 등)는 pending 한도 적용"""
        return self.kyc_limits.get(kyc_status) or self.kyc_limits[KycStatus.PENDING.value]
