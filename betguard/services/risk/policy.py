"""
위험 점수 정책

가중치, 가산점, 등급 경계, 재평가 주기, 이메일 도메인 목록을 하나의 불변 객체로 묶는다.
설정에서 한 번 만들어 채점 엔진에 주입한다.
"""
import math
from dataclasses import dataclass, field
from datetime import timedelta
from types import MappingProxyType
from typing import Mapping, Tuple

from betguard.core.config import Settings
from betguard.models.enums import KycStatus, RiskLevel

FACTOR_NAMES: Tuple[str, ...] = (
    "account_age",
    "kyc_status",
    "login_patterns",
    "transaction_patterns",
    "betting_patterns",
    "geolocation",
    "device_fingerprint",
    "social_signals",
)

BEHAVIOR_METRIC_NAMES: Tuple[str, ...] = (
    "avg_session_duration",
    "login_frequency",
    "unique_devices",
    "unique_ips",
    "avg_bet_amount",
    "betting_frequency",
    "win_loss_ratio",
    "deposit_frequency",
    "withdrawal_frequency",
    "avg_transaction_amount",
)

# (최대 계정 나이(일, 미만), 점수)
DEFAULT_ACCOUNT_AGE_STEPS: Tuple[Tuple[float, float], ...] = (
    (1, 80.0),
    (7, 60.0),
    (30, 40.0),
    (90, 20.0),
)
DEFAULT_ACCOUNT_AGE_FLOOR = 10.0

DEFAULT_KYC_SCORES = {
    KycStatus.VERIFIED.value: 10.0,
    KycStatus.PENDING.value: 40.0,
    KycStatus.REJECTED.value: 80.0,
}
DEFAULT_KYC_UNKNOWN_SCORE = 60.0


@dataclass(frozen=True)
class BehaviorBonus:
    metric: str
    threshold: float
    points: float


@dataclass(frozen=True)
class RiskPolicy:
    weights: Mapping[str, float]
    critical_threshold: float = 80.0
    high_threshold: float = 60.0
    medium_threshold: float = 40.0
    assessment_interval_days: Mapping[str, int] = field(
        default_factory=lambda: MappingProxyType({"critical": 1, "high": 3, "medium": 7, "low": 30})
    )
    trusted_email_domains: frozenset = frozenset({"gmail.com", "yahoo.com", "outlook.com", "hotmail.com"})
    social_signals_base: float = 50.0
    social_signals_trusted_discount: float = 10.0
    placeholder_score: float = 50.0
    account_age_steps: Tuple[Tuple[float, float], ...] = DEFAULT_ACCOUNT_AGE_STEPS
    account_age_floor: float = DEFAULT_ACCOUNT_AGE_FLOOR
    kyc_scores: Mapping[str, float] = field(default_factory=lambda: MappingProxyType(dict(DEFAULT_KYC_SCORES)))
    kyc_unknown_score: float = DEFAULT_KYC_UNKNOWN_SCORE
    bonuses: Tuple[BehaviorBonus, ...] = (
        BehaviorBonus("unique_ips", 10, 10.0),
        BehaviorBonus("unique_devices", 5, 5.0),
        BehaviorBonus("avg_bet_amount", 1000, 5.0),
        BehaviorBonus("win_loss_ratio", 0.8, 10.0),
    )
    initial_score: float = 50.0
    initial_level: RiskLevel = RiskLevel.MEDIUM

    def __post_init__(self):
        missing = set(FACTOR_NAMES) - set(self.weights)
        unknown = set(self.weights) - set(FACTOR_NAMES)
        if missing or unknown:
            raise ValueError(f"Risk weights must cover exactly {FACTOR_NAMES}; missing={sorted(missing)} unknown={sorted(unknown)}")
        total = sum(self.weights.values())
        if not math.isclose(total, 1.0, abs_tol=1e-9):
            raise ValueError(f"Risk weights must sum to 1.0, got {total}")
        if not (self.medium_threshold < self.high_threshold < self.critical_threshold):
            raise ValueError("Risk level thresholds must be strictly increasing (medium < high < critical)")
        for level in RiskLevel:
            days = self.assessment_interval_days.get(level.value)
            if days is None or days <= 0:
                raise ValueError(f"Assessment interval for '{level.value}' must be a positive number of days")
        # dict 로 넘어온 값도 읽기 전용으로 고정
        object.__setattr__(self, "weights", MappingProxyType(dict(self.weights)))
        object.__setattr__(self, "assessment_interval_days", MappingProxyType(dict(self.assessment_interval_days)))
        object.__setattr__(self, "kyc_scores", MappingProxyType(dict(self.kyc_scores)))
        object.__setattr__(self, "trusted_email_domains", frozenset(d.lower() for d in self.trusted_email_domains))

    @classmethod
    def from_settings(cls, settings: Settings) -> "RiskPolicy":
        return cls(
            weights=dict(settings.RISK_FACTOR_WEIGHTS),
            critical_threshold=settings.RISK_LEVEL_CRITICAL_THRESHOLD,
            high_threshold=settings.RISK_LEVEL_HIGH_THRESHOLD,
            medium_threshold=settings.RISK_LEVEL_MEDIUM_THRESHOLD,
            assessment_interval_days=dict(settings.ASSESSMENT_INTERVAL_DAYS),
            trusted_email_domains=frozenset(settings.TRUSTED_EMAIL_DOMAINS),
            placeholder_score=settings.PLACEHOLDER_FACTOR_SCORE,
            bonuses=(
                BehaviorBonus("unique_ips", settings.BONUS_UNIQUE_IPS_THRESHOLD, settings.BONUS_UNIQUE_IPS_POINTS),
                BehaviorBonus("unique_devices", settings.BONUS_UNIQUE_DEVICES_THRESHOLD, settings.BONUS_UNIQUE_DEVICES_POINTS),
                BehaviorBonus("avg_bet_amount", settings.BONUS_AVG_BET_THRESHOLD, settings.BONUS_AVG_BET_POINTS),
                BehaviorBonus("win_loss_ratio", settings.BONUS_WIN_LOSS_RATIO_THRESHOLD, settings.BONUS_WIN_LOSS_RATIO_POINTS),
            ),
        )

    def level_for(self, score: float) -> RiskLevel:
        if score >= self.critical_threshold:
            return RiskLevel.CRITICAL
        if score >= self.high_threshold:
            return RiskLevel.HIGH
        if score >= self.medium_threshold:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW

    def interval_for(self, level: RiskLevel) -> timedelta:
        return timedelta(days=self.assessment_interval_days[RiskLevel(level).value])

    def account_age_score(self, age_days: float) -> float:
        for upper_bound, score in self.account_age_steps:
            if age_days < upper_bound:
                return score
        return self.account_age_floor

    def kyc_score(self, kyc_status) -> float:
        value = kyc_status.value if isinstance(kyc_status, KycStatus) else kyc_status
        return self.kyc_scores.get(value, self.kyc_unknown_score)

    def social_signals_score(self, email_domain: str) -> float:
        score = self.social_signals_base
        if email_domain and email_domain.lower() in self.trusted_email_domains:
            score -= self.social_signals_trusted_discount
        return max(0.0, score)

    def behavior_bonus(self, metrics: Mapping[str, float]) -> float:
        total = 0.0
        for bonus in self.bonuses:
            if float(metrics.get(bonus.metric, 0) or 0) > bonus.threshold:
                total += bonus.points
        return total

    def weighted_sum(self, factors: Mapping[str, float]) -> float:
        return sum(float(factors[name]) * self.weights[name] for name in FACTOR_NAMES)

    @staticmethod
    def clamp(score: float) -> float:
        return max(0.0, min(100.0, score))
