# tests/risk/test_policy.py
import pytest

from betguard.core.config import Settings
from betguard.models.enums import RiskLevel
from betguard.services.risk.policy import FACTOR_NAMES, RiskPolicy


def test_weights_must_sum_to_one(default_weights):
    weights = dict(default_weights, social_signals=0.10)
    with pytest.raises(ValueError, match="sum to 1.0"):
        RiskPolicy(weights=weights)


def test_weights_must_cover_every_factor(default_weights):
    weights = dict(default_weights)
    weights.pop("geolocation")
    weights["account_age"] += 0.10
    with pytest.raises(ValueError, match="missing"):
        RiskPolicy(weights=weights)


def test_thresholds_must_increase(default_weights):
    with pytest.raises(ValueError, match="strictly increasing"):
        RiskPolicy(weights=dict(default_weights), high_threshold=85.0)


def test_policy_mappings_are_read_only(policy):
    with pytest.raises(TypeError):
        policy.weights["account_age"] = 1.0


@pytest.mark.parametrize(
    "score, expected",
    [
        (0.0, RiskLevel.LOW),
        (39.99, RiskLevel.LOW),
        (40.0, RiskLevel.MEDIUM),
        (59.99, RiskLevel.MEDIUM),
        (60.0, RiskLevel.HIGH),
        (80.0, RiskLevel.CRITICAL),
        (100.0, RiskLevel.CRITICAL),
    ],
)
def test_level_boundaries_are_inclusive(policy, score, expected):
    assert policy.level_for(score) == expected


@pytest.mark.parametrize(
    "age_days, expected",
    [(0.5, 80.0), (1.0, 60.0), (6.9, 60.0), (7.0, 40.0), (29.0, 40.0), (30.0, 20.0), (89.0, 20.0), (90.0, 10.0), (400.0, 10.0)],
)
def test_account_age_steps(policy, age_days, expected):
    assert policy.account_age_score(age_days) == expected


def test_kyc_scores(policy):
    assert policy.kyc_score("verified") == 10.0
    assert policy.kyc_score("pending") == 40.0
    assert policy.kyc_score("rejected") == 80.0
    # 알 수 없는 상태
    assert policy.kyc_score("not_started") == 60.0


def test_social_signals_trusted_domain_discount(policy):
    assert policy.social_signals_score("gmail.com") == 40.0
    assert policy.social_signals_score("GMAIL.COM") == 40.0
    assert policy.social_signals_score("example.org") == 50.0
    assert policy.social_signals_score("") == 50.0


def test_behavior_bonus_requires_strictly_greater(policy):
    assert policy.behavior_bonus({"unique_ips": 10}) == 0.0
    assert policy.behavior_bonus({"unique_ips": 11}) == 10.0
    metrics = {"unique_ips": 11, "unique_devices": 6, "avg_bet_amount": 1000.01, "win_loss_ratio": 0.9}
    assert policy.behavior_bonus(metrics) == 30.0


def test_weighted_sum_of_midpoints_is_fifty(policy):
    assert policy.weighted_sum({name: 50.0 for name in FACTOR_NAMES}) == pytest.approx(50.0)


def test_clamp():
    assert RiskPolicy.clamp(-5) == 0.0
    assert RiskPolicy.clamp(130) == 100.0
    assert RiskPolicy.clamp(42.5) == 42.5


def test_interval_per_level(policy):
    assert policy.interval_for(RiskLevel.CRITICAL).days == 1
    assert policy.interval_for(RiskLevel.HIGH).days == 3
    assert policy.interval_for(RiskLevel.MEDIUM).days == 7
    assert policy.interval_for(RiskLevel.LOW).days == 30


def test_from_settings_uses_configured_values():
    settings = Settings(RISK_LEVEL_HIGH_THRESHOLD=65.0, BONUS_UNIQUE_IPS_POINTS=12.0)
    policy = RiskPolicy.from_settings(settings)
    assert policy.high_threshold == 65.0
    assert policy.behavior_bonus({"unique_ips": 20}) == 12.0
