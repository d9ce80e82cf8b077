# tests/risk/test_scoring_service.py
import asyncio
from datetime import timedelta
from uuid import uuid4

import pytest

from betguard.core.concurrency import KeyedLock
from betguard.core.datetime_utils import utcnow
from betguard.core.exceptions import DependencyError, InvalidInputError, RiskProfileNotFoundError
from betguard.models.enums import RiskLevel
from betguard.services.risk.factors import FixedScore
from betguard.services.risk.scoring_service import USER_NOT_FOUND_FLAG, RiskScoringService


class FailingFactor:
    async def score(self, user_id):
        raise DependencyError("login analytics")


class SequenceFactor:
    """호출마다 다음 값을 반환, 값이 없으면 DependencyError"""

    def __init__(self, *values):
        self.values = list(values)

    async def score(self, user_id):
        if not self.values:
            raise DependencyError("transaction analytics")
        return self.values.pop(0)


class StaticMetrics:
    def __init__(self, metrics):
        self._metrics = metrics

    async def metrics(self, user_id):
        return self._metrics


class FailingMetrics:
    async def metrics(self, user_id):
        raise DependencyError("behavior metrics")


@pytest.mark.asyncio
async def test_pending_new_account_scores_medium(scoring_service, create_player):
    player = await create_player(kyc_status="pending", age=timedelta(days=2))

    score = await scoring_service.calculate_risk_score(player.id)

    # 0.15*60 + 0.20*40 + 0.60*50 + 0.05*50
    assert score == pytest.approx(49.5)
    profile = await scoring_service.get_risk_profile(player.id)
    assert profile.risk_level == RiskLevel.MEDIUM
    assert profile.overall_risk_score == pytest.approx(49.5)
    assert profile.next_assessment - profile.last_assessment == timedelta(days=7)
    assert profile.risk_factors["account_age"] == 60.0
    assert profile.risk_factors["kyc_status"] == 40.0
    assert len(profile.risk_history) == 1
    assert profile.risk_history[0]["reason"] == "scheduled_assessment"


@pytest.mark.asyncio
async def test_trusted_email_domain_lowers_social_signal(scoring_service, create_player):
    player = await create_player(email="someone@gmail.com", kyc_status="pending", age=timedelta(days=2))

    score = await scoring_service.calculate_risk_score(player.id)

    assert score == pytest.approx(49.0)


@pytest.mark.asyncio
async def test_verified_old_account_scores_low(scoring_service, create_player):
    player = await create_player(kyc_status="verified", age=timedelta(days=200))

    score = await scoring_service.calculate_risk_score(player.id)

    assert score == pytest.approx(36.0)
    profile = await scoring_service.get_risk_profile(player.id)
    assert profile.risk_level == RiskLevel.LOW
    assert profile.next_assessment - profile.last_assessment == timedelta(days=30)


@pytest.mark.asyncio
async def test_rejected_brand_new_account_scores_high(scoring_service, create_player):
    player = await create_player(kyc_status="rejected", age=timedelta(hours=3))

    score = await scoring_service.calculate_risk_score(player.id)

    assert score == pytest.approx(60.5)
    profile = await scoring_service.get_risk_profile(player.id)
    assert profile.risk_level == RiskLevel.HIGH
    assert profile.next_assessment - profile.last_assessment == timedelta(days=3)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kyc_status, expected",
    [
        ("pending", 52.5),  # 0.15*80 + 0.20*40 + 0.60*50 + 0.05*50
        ("not_started", 56.5),  # 0.15*80 + 0.20*60 + 0.60*50 + 0.05*50
    ],
)
async def test_unverified_brand_new_account_stays_medium(scoring_service, create_player, kyc_status, expected):
    # 기본 고정값(50) 요인만으로는 rejected 가 아니면 high 에 닿지 않는다
    player = await create_player(kyc_status=kyc_status, age=timedelta(hours=3))

    score = await scoring_service.calculate_risk_score(player.id)

    assert score == pytest.approx(expected)
    profile = await scoring_service.get_risk_profile(player.id)
    assert profile.risk_level == RiskLevel.MEDIUM
    assert profile.risk_factors["account_age"] == 80.0


@pytest.mark.asyncio
async def test_behavior_bonus_is_added_and_clamped(session_factory, policy, create_player):
    metrics = StaticMetrics({"unique_ips": 50, "unique_devices": 9, "avg_bet_amount": 5000, "win_loss_ratio": 0.95})
    service = RiskScoringService(
        session_factory,
        policy,
        factor_strategies={"login_patterns": FixedScore(100), "geolocation": FixedScore(100)},
        metrics_provider=metrics,
        locks=KeyedLock(),
    )
    player = await create_player(kyc_status="rejected", age=timedelta(hours=1))

    score = await service.calculate_risk_score(player.id)

    # 70.5 + 30 가산점 -> 100 상한
    assert score == 100.0
    profile = await service.get_risk_profile(player.id)
    assert profile.risk_level == RiskLevel.CRITICAL
    assert profile.behavior_metrics["unique_ips"] == 50.0


@pytest.mark.asyncio
async def test_missing_user_gets_maximum_score(scoring_service):
    user_id = uuid4()

    score = await scoring_service.calculate_risk_score(user_id)

    assert score == 100.0
    profile = await scoring_service.get_risk_profile(user_id)
    assert profile.risk_level == RiskLevel.CRITICAL
    assert USER_NOT_FOUND_FLAG in profile.risk_flags
    assert profile.risk_history[-1]["reason"] == USER_NOT_FOUND_FLAG
    assert profile.next_assessment - profile.last_assessment == timedelta(days=1)

    # 반복해도 플래그는 한 번만
    await scoring_service.calculate_risk_score(user_id)
    profile = await scoring_service.get_risk_profile(user_id)
    assert profile.risk_flags.count(USER_NOT_FOUND_FLAG) == 1
    assert len(profile.risk_history) == 2


@pytest.mark.asyncio
async def test_unavailable_factor_falls_back_to_placeholder(session_factory, policy, create_player):
    service = RiskScoringService(
        session_factory, policy, factor_strategies={"login_patterns": FailingFactor()}, locks=KeyedLock()
    )
    player = await create_player(kyc_status="pending", age=timedelta(days=2))

    score = await service.calculate_risk_score(player.id)

    assert score == pytest.approx(49.5)
    profile = await service.get_risk_profile(player.id)
    assert profile.risk_factors["login_patterns"] == 50.0


@pytest.mark.asyncio
async def test_unavailable_factor_reuses_previous_value(session_factory, policy, create_player):
    service = RiskScoringService(
        session_factory,
        policy,
        factor_strategies={"transaction_patterns": SequenceFactor(90.0)},
        locks=KeyedLock(),
    )
    player = await create_player(kyc_status="pending", age=timedelta(days=2))

    first = await service.calculate_risk_score(player.id)
    second = await service.calculate_risk_score(player.id)

    assert first == pytest.approx(49.5 + 0.15 * 40)
    assert second == pytest.approx(first)
    profile = await service.get_risk_profile(player.id)
    assert profile.risk_factors["transaction_patterns"] == 90.0


@pytest.mark.asyncio
async def test_unavailable_metrics_keep_previous_values(session_factory, policy, create_player):
    player = await create_player(kyc_status="pending", age=timedelta(days=2))
    with_metrics = RiskScoringService(
        session_factory, policy, metrics_provider=StaticMetrics({"unique_ips": 12}), locks=KeyedLock()
    )
    await with_metrics.calculate_risk_score(player.id)

    without_metrics = RiskScoringService(session_factory, policy, metrics_provider=FailingMetrics(), locks=KeyedLock())
    score = await without_metrics.calculate_risk_score(player.id)

    assert score == pytest.approx(59.5)
    profile = await without_metrics.get_risk_profile(player.id)
    assert profile.behavior_metrics["unique_ips"] == 12.0


@pytest.mark.asyncio
async def test_unknown_factor_strategy_is_rejected(session_factory, policy):
    with pytest.raises(ValueError, match="Unknown factor strategies"):
        RiskScoringService(session_factory, policy, factor_strategies={"astrology": FixedScore(10)})


@pytest.mark.asyncio
async def test_repeated_scoring_is_stable(scoring_service, create_player):
    player = await create_player(kyc_status="verified", age=timedelta(days=45))

    scores = [await scoring_service.calculate_risk_score(player.id) for _ in range(3)]

    assert scores[0] == pytest.approx(scores[1]) == pytest.approx(scores[2])
    profile = await scoring_service.get_risk_profile(player.id)
    assert len(profile.risk_history) == 3
    assert profile.version >= 3


@pytest.mark.asyncio
async def test_concurrent_scoring_keeps_every_history_entry(scoring_service, create_player):
    player = await create_player(kyc_status="pending", age=timedelta(days=2))

    await asyncio.gather(*(scoring_service.calculate_risk_score(player.id) for _ in range(5)))

    profile = await scoring_service.get_risk_profile(player.id)
    assert len(profile.risk_history) == 5


@pytest.mark.asyncio
async def test_recalculate_returns_profile_with_reason(scoring_service, create_player):
    player = await create_player()

    profile = await scoring_service.recalculate_risk_score(player.id, reason="chargeback", triggered_by="analyst")

    assert profile.user_id == player.id
    assert profile.risk_history[-1]["reason"] == "chargeback"
    assert profile.risk_history[-1]["triggered_by"] == "analyst"


@pytest.mark.asyncio
async def test_get_risk_profile_not_found(scoring_service):
    with pytest.raises(RiskProfileNotFoundError):
        await scoring_service.get_risk_profile(uuid4())


@pytest.mark.asyncio
async def test_high_risk_users_sorted_and_limited(scoring_service, create_player):
    low = await create_player(kyc_status="verified", age=timedelta(days=200))
    high = await create_player(kyc_status="rejected", age=timedelta(hours=2))
    missing = uuid4()
    for user_id in (low.id, high.id, missing):
        await scoring_service.calculate_risk_score(user_id)

    profiles = await scoring_service.get_high_risk_users()
    assert [p.user_id for p in profiles] == [missing, high.id]

    limited = await scoring_service.get_high_risk_users(limit=1)
    assert [p.user_id for p in limited] == [missing]

    with pytest.raises(InvalidInputError):
        await scoring_service.get_high_risk_users(limit=0)


@pytest.mark.asyncio
async def test_due_user_ids(scoring_service, create_player):
    player = await create_player()
    await scoring_service.calculate_risk_score(player.id)

    assert await scoring_service.due_user_ids(10) == []
    due = await scoring_service.due_user_ids(10, now=utcnow() + timedelta(days=8))
    assert due == [player.id]


@pytest.mark.asyncio
async def test_operator_actions_do_not_change_score(scoring_service, create_player):
    player = await create_player()
    score = await scoring_service.calculate_risk_score(player.id)
    before = await scoring_service.get_risk_profile(player.id)

    await scoring_service.set_blacklist_status(player.id, True, reason="chargeback fraud")
    await scoring_service.require_manual_review(player.id, reason="document review")
    await scoring_service.add_risk_flags(player.id, ["pep", " pep ", "sanctions"])
    profile = await scoring_service.remove_risk_flag(player.id, "sanctions")

    assert profile.overall_risk_score == pytest.approx(score)
    assert profile.last_assessment == before.last_assessment
    assert len(profile.risk_history) == 1
    assert profile.is_blacklisted is True
    assert profile.requires_manual_review is True
    assert profile.notes == "document review"
    assert profile.risk_flags == ["pep"]

    review = await scoring_service.get_users_requiring_review()
    assert [p.user_id for p in review] == [player.id]


@pytest.mark.asyncio
async def test_operator_action_creates_missing_profile(scoring_service):
    user_id = uuid4()

    profile = await scoring_service.set_blacklist_status(user_id, True)

    assert profile.is_blacklisted is True
    assert profile.overall_risk_score == 50.0
    assert profile.risk_level == RiskLevel.MEDIUM
    assert profile.risk_history == []


@pytest.mark.asyncio
async def test_operator_action_validation(scoring_service):
    user_id = uuid4()
    with pytest.raises(InvalidInputError):
        await scoring_service.require_manual_review(user_id, reason="  ")
    with pytest.raises(InvalidInputError):
        await scoring_service.add_risk_flags(user_id, ["", "   "])
    with pytest.raises(RiskProfileNotFoundError):
        await scoring_service.remove_risk_flag(user_id, "pep")
