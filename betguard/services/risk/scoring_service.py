"""
위험 점수 산정 서비스
사용자별 위험 프로필 유지, 8개 가중 요인 + 행동 가산점 채점, 운영자 플래그 관리
"""
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from betguard.core.concurrency import KeyedLock
from betguard.core.datetime_utils import utcnow
from betguard.core.exceptions import DependencyError, InvalidInputError, RiskProfileNotFoundError
from betguard.core.logging import StructuredLogger
from betguard.models.domain.player import Player
from betguard.models.enums import RiskLevel
from betguard.models.risk import RiskProfile
from betguard.repositories.player_repository import PlayerRepository
from betguard.repositories.risk_profile_repository import RiskProfileRepository
from betguard.services.risk.factors import (
    BehaviorMetricsProvider,
    FactorStrategy,
    ZeroBehaviorMetrics,
    default_strategies,
    empty_metrics,
)
from betguard.services.risk.policy import BEHAVIOR_METRIC_NAMES, FACTOR_NAMES, RiskPolicy

USER_NOT_FOUND_FLAG = "user_not_found"
MISSING_USER_SCORE = 100.0

# 같은 프로세스의 모든 채점 서비스 인스턴스가 공유
_profile_locks = KeyedLock()


class RiskScoringService:
    """위험 점수 산정 서비스

    세션 팩토리를 받아 작업 단위마다 자체 트랜잭션을 연다. 프로필 쓰기는
    사용자별 asyncio 잠금과 SELECT ... FOR UPDATE, 버전 컬럼으로 직렬화한다.
    """

    service_name = "risk_scoring"

    def __init__(
        self,
        session_factory: async_sessionmaker,
        policy: RiskPolicy,
        factor_strategies: Optional[Mapping[str, FactorStrategy]] = None,
        metrics_provider: Optional[BehaviorMetricsProvider] = None,
        locks: Optional[KeyedLock] = None,
    ):
        self.session_factory = session_factory
        self.policy = policy
        strategies = default_strategies(policy.placeholder_score)
        if factor_strategies:
            unknown = set(factor_strategies) - set(strategies)
            if unknown:
                raise ValueError(f"Unknown factor strategies: {sorted(unknown)}")
            strategies.update(factor_strategies)
        self.factor_strategies = strategies
        self.metrics_provider = metrics_provider or ZeroBehaviorMetrics()
        self.locks = locks or _profile_locks
        self.logger = StructuredLogger(__name__, service=self.service_name)

    # --- 채점 ---

    async def calculate_risk_score(
        self,
        user_id: UUID,
        reason: str = "scheduled_assessment",
        triggered_by: str = "system",
    ) -> float:
        """사용자 위험 점수를 다시 계산하고 프로필에 기록한 뒤 점수를 반환"""
        async with self.locks.hold(user_id):
            try:
                return await self._score_once(user_id, reason, triggered_by)
            except (StaleDataError, IntegrityError) as e:
                # 다른 프로세스가 먼저 쓴 경우 한 번만 재시도
                self.logger.warning(
                    "Concurrent risk profile write detected, retrying once",
                    operation="calculate_risk_score",
                    user_id=str(user_id),
                    error=type(e).__name__,
                )
                return await self._score_once(user_id, reason, triggered_by)

    async def recalculate_risk_score(
        self,
        user_id: UUID,
        reason: str = "manual_recalculation",
        triggered_by: str = "operator",
    ) -> RiskProfile:
        await self.calculate_risk_score(user_id, reason=reason, triggered_by=triggered_by)
        return await self.get_risk_profile(user_id)

    async def _score_once(self, user_id: UUID, reason: str, triggered_by: str) -> float:
        async with self.session_factory.begin() as session:
            profiles = RiskProfileRepository(session)
            now = utcnow()
            profile = await self._load_or_create(profiles, user_id, now)
            player = await PlayerRepository(session).get_by_id(user_id)

            if player is None:
                self.logger.warning(
                    "Risk scoring for unknown user, assigning maximum risk",
                    operation="calculate_risk_score",
                    user_id=str(user_id),
                )
                score = MISSING_USER_SCORE
                factors = dict(profile.risk_factors or {})
                metrics = dict(profile.behavior_metrics or {})
                reason = USER_NOT_FOUND_FLAG
                if USER_NOT_FOUND_FLAG not in (profile.risk_flags or []):
                    profile.risk_flags = list(profile.risk_flags or []) + [USER_NOT_FOUND_FLAG]
            else:
                factors = await self._compute_factors(player, profile, now)
                metrics = await self._load_metrics(user_id, profile)
                raw = self.policy.weighted_sum(factors) + self.policy.behavior_bonus(metrics)
                score = self.policy.clamp(raw)

            level = self.policy.level_for(score)
            self._apply_assessment(profile, score, level, factors, metrics, reason, triggered_by, now)

        self.logger.info(
            "Risk score calculated",
            operation="calculate_risk_score",
            user_id=str(user_id),
            score=round(score, 2),
            level=level.value,
            reason=reason,
            triggered_by=triggered_by,
        )
        return score

    async def _load_or_create(self, profiles: RiskProfileRepository, user_id: UUID, now: datetime) -> RiskProfile:
        profile = await profiles.get_by_user_id(user_id, for_update=True)
        if profile is None:
            profile = await profiles.add(self._new_profile(user_id, now))
        return profile

    def _new_profile(self, user_id: UUID, now: datetime) -> RiskProfile:
        level = self.policy.initial_level
        return RiskProfile(
            user_id=user_id,
            overall_risk_score=self.policy.initial_score,
            risk_level=level,
            risk_factors={},
            behavior_metrics=empty_metrics(),
            risk_flags=[],
            risk_history=[],
            last_assessment=now,
            # 신규 프로필은 medium 주기(7일)
            next_assessment=now + self.policy.interval_for(RiskLevel.MEDIUM),
            is_blacklisted=False,
            requires_manual_review=False,
        )

    async def _compute_factors(self, player: Player, profile: RiskProfile, now: datetime) -> Dict[str, float]:
        previous = profile.risk_factors or {}
        age_days = max(0.0, (now - player.created_at).total_seconds() / 86400)
        factors = {
            "account_age": self.policy.account_age_score(age_days),
            "kyc_status": self.policy.kyc_score(player.kyc_status),
            "social_signals": self.policy.social_signals_score(player.email_domain),
        }
        for name, strategy in self.factor_strategies.items():
            try:
                value = float(await strategy.score(player.id))
            except DependencyError as e:
                value = float(previous.get(name, self.policy.placeholder_score))
                self.logger.warning(
                    "Risk factor unavailable, using previous value",
                    operation="calculate_risk_score",
                    user_id=str(player.id),
                    factor=name,
                    fallback=value,
                    error=e.message,
                )
            factors[name] = self.policy.clamp(value)
        return {name: factors[name] for name in FACTOR_NAMES}

    async def _load_metrics(self, user_id: UUID, profile: RiskProfile) -> Dict[str, float]:
        try:
            fetched = await self.metrics_provider.metrics(user_id)
        except DependencyError as e:
            previous = profile.behavior_metrics or {}
            self.logger.warning(
                "Behavior metrics unavailable, using previous values",
                operation="calculate_risk_score",
                user_id=str(user_id),
                error=e.message,
            )
            return {name: float(previous.get(name, 0.0)) for name in BEHAVIOR_METRIC_NAMES}
        return {name: float(fetched.get(name, 0.0) or 0.0) for name in BEHAVIOR_METRIC_NAMES}

    def _apply_assessment(
        self,
        profile: RiskProfile,
        score: float,
        level: RiskLevel,
        factors: Dict[str, float],
        metrics: Dict[str, float],
        reason: str,
        triggered_by: str,
        now: datetime,
    ) -> None:
        # JSON 컬럼은 변경 추적이 없으므로 항상 새 객체를 할당
        profile.overall_risk_score = score
        profile.risk_level = level
        profile.risk_factors = dict(factors)
        profile.behavior_metrics = dict(metrics)
        profile.risk_history = list(profile.risk_history or []) + [
            {
                "date": now.isoformat(),
                "score": score,
                "level": level.value,
                "reason": reason,
                "triggered_by": triggered_by,
            }
        ]
        profile.last_assessment = now
        profile.next_assessment = now + self.policy.interval_for(level)

    # --- 조회 ---

    async def get_risk_profile(self, user_id: UUID) -> RiskProfile:
        async with self.session_factory() as session:
            profile = await RiskProfileRepository(session).get_by_user_id(user_id)
        if profile is None:
            raise RiskProfileNotFoundError(user_id)
        return profile

    async def get_high_risk_users(self, limit: int = 50) -> List[RiskProfile]:
        """high 등급 경계 이상 사용자, 점수 내림차순"""
        if limit <= 0:
            raise InvalidInputError("limit must be a positive integer")
        async with self.session_factory() as session:
            return await RiskProfileRepository(session).list_by_min_score(self.policy.high_threshold, limit)

    async def get_users_requiring_review(self) -> List[RiskProfile]:
        async with self.session_factory() as session:
            return await RiskProfileRepository(session).list_requiring_review()

    async def due_user_ids(self, limit: int, now: Optional[datetime] = None) -> List[UUID]:
        """재평가 예정일이 지난 사용자 목록"""
        async with self.session_factory() as session:
            return await RiskProfileRepository(session).list_due_user_ids(now or utcnow(), limit)

    # --- 운영자 조치 (점수는 변경하지 않음) ---

    async def set_blacklist_status(self, user_id: UUID, is_blacklisted: bool, reason: Optional[str] = None) -> RiskProfile:
        def apply(profile: RiskProfile) -> None:
            profile.is_blacklisted = is_blacklisted
            if reason:
                profile.notes = reason

        profile = await self._mutate_profile(user_id, apply, create_missing=True)
        self.logger.info(
            "Blacklist status updated",
            operation="set_blacklist_status",
            user_id=str(user_id),
            is_blacklisted=is_blacklisted,
        )
        return profile

    async def require_manual_review(self, user_id: UUID, reason: str, required: bool = True) -> RiskProfile:
        if not reason or not reason.strip():
            raise InvalidInputError("A reason is required for manual review changes")

        def apply(profile: RiskProfile) -> None:
            profile.requires_manual_review = required
            profile.notes = reason

        profile = await self._mutate_profile(user_id, apply, create_missing=True)
        self.logger.info(
            "Manual review requirement updated",
            operation="require_manual_review",
            user_id=str(user_id),
            required=required,
        )
        return profile

    async def add_risk_flags(self, user_id: UUID, flags: Iterable[str]) -> RiskProfile:
        new_flags = _normalize_flags(flags)
        if not new_flags:
            raise InvalidInputError("At least one non-empty risk flag is required")

        def apply(profile: RiskProfile) -> None:
            current = list(profile.risk_flags or [])
            profile.risk_flags = current + [flag for flag in new_flags if flag not in current]

        profile = await self._mutate_profile(user_id, apply, create_missing=True)
        self.logger.info("Risk flags added", operation="add_risk_flags", user_id=str(user_id), flags=new_flags)
        return profile

    async def remove_risk_flag(self, user_id: UUID, flag: str) -> RiskProfile:
        def apply(profile: RiskProfile) -> None:
            profile.risk_flags = [existing for existing in (profile.risk_flags or []) if existing != flag]

        profile = await self._mutate_profile(user_id, apply, create_missing=False)
        self.logger.info("Risk flag removed", operation="remove_risk_flag", user_id=str(user_id), flag=flag)
        return profile

    async def _mutate_profile(self, user_id: UUID, apply, create_missing: bool) -> RiskProfile:
        async with self.locks.hold(user_id):
            try:
                return await self._mutate_once(user_id, apply, create_missing)
            except (StaleDataError, IntegrityError):
                self.logger.warning(
                    "Concurrent risk profile write detected, retrying once",
                    operation="mutate_profile",
                    user_id=str(user_id),
                )
                return await self._mutate_once(user_id, apply, create_missing)

    async def _mutate_once(self, user_id: UUID, apply, create_missing: bool) -> RiskProfile:
        async with self.session_factory.begin() as session:
            profiles = RiskProfileRepository(session)
            profile = await profiles.get_by_user_id(user_id, for_update=True)
            if profile is None:
                if not create_missing:
                    raise RiskProfileNotFoundError(user_id)
                profile = await profiles.add(self._new_profile(user_id, utcnow()))
            apply(profile)
        return profile


def _normalize_flags(flags: Iterable[str]) -> Tuple[str, ...]:
    seen = []
    for flag in flags or ():
        cleaned = (flag or "").strip()
        if cleaned and cleaned not in seen:
            seen.append(cleaned)
    return tuple(seen)
