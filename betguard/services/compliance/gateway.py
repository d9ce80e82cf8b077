"""
컴플라이언스 이벤트 게이트웨이

로그인/베팅/입출금/프로필 변경 이벤트를 받아 입력을 검증하고, 최근 이력을 기록한 뒤
탐지기를 실행해 알림을 생성한다. 필요하면 위험 재채점을 예약한다.

입력 검증 실패만 호출자에게 InvalidInputError 로 전달한다. 검증 이후 탐지/채점
단계의 오류는 기록만 하고 삼키므로 원래 동작(로그인, 베팅, 거래)을 막지 않는다.
"""
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Type, TypeVar
from uuid import UUID

from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import async_sessionmaker

from betguard.core.concurrency import KeyedLock
from betguard.core.exceptions import DependencyError, InvalidInputError
from betguard.core.logging import StructuredLogger
from betguard.models.alert import ComplianceAlert
from betguard.models.enums import AlertType, EventKind, TransactionType
from betguard.repositories.player_repository import DUPLICATE_CHECK_FIELDS, PlayerRepository
from betguard.schemas.alert import AlertDraft
from betguard.schemas.events import (
    BetPlacedEvent,
    LoginEvent,
    ProfileUpdateEvent,
    TransactionEvent,
)
from betguard.services.compliance.triage_service import ComplianceTriageService
from betguard.services.fraud.analyzers import BettingPatternAnalyzer, FixedPatternAnalyzer
from betguard.services.fraud.detectors import (
    DetectionContext,
    dedup_window,
    detect_high_risk_login,
    profile_value,
    run_detectors,
    windowed_types_for,
)
from betguard.services.fraud.history import (
    ActivityHistory,
    BetRecord,
    InMemoryActivityHistory,
    LoginRecord,
    TransactionRecord,
)
from betguard.services.fraud.thresholds import DetectorThresholds
from betguard.services.risk.scoring_service import RiskScoringService
from betguard.workers.task_processor import TaskProcessor

E = TypeVar("E", bound=BaseModel)

# 같은 사용자의 이벤트 처리 직렬화 (기록 → 중복 조회 → 알림 생성)
_event_locks = KeyedLock()


class ComplianceGateway:
    """인바운드 이벤트 진입점"""

    service_name = "compliance_gateway"

    def __init__(
        self,
        session_factory: async_sessionmaker,
        scoring: RiskScoringService,
        triage: ComplianceTriageService,
        thresholds: DetectorThresholds,
        history: Optional[ActivityHistory] = None,
        pattern_analyzer: Optional[BettingPatternAnalyzer] = None,
        task_processor: Optional[TaskProcessor] = None,
        locks: Optional[KeyedLock] = None,
    ):
        self.session_factory = session_factory
        self.scoring = scoring
        self.triage = triage
        self.thresholds = thresholds
        self.history = history or InMemoryActivityHistory(retention=thresholds.history_retention)
        self.pattern_analyzer = pattern_analyzer or FixedPatternAnalyzer()
        self.task_processor = task_processor
        self.locks = locks or _event_locks
        self.logger = StructuredLogger(__name__, service=self.service_name)
        self._handlers: Mapping[EventKind, Callable[[Any], Awaitable[List[ComplianceAlert]]]] = {
            EventKind.LOGIN: self._handle_login,
            EventKind.BET_PLACED: self._handle_bet,
            EventKind.TRANSACTION: self._handle_transaction,
            EventKind.PROFILE_UPDATE: self._handle_profile_update,
        }

    # --- 공개 진입점 ---

    async def on_login_event(
        self,
        user_id: UUID,
        ip_address: str,
        user_agent: str = "",
        resolved_location: Optional[str] = None,
        occurred_at: Optional[datetime] = None,
    ) -> List[ComplianceAlert]:
        event = self._validate(
            LoginEvent,
            user_id=user_id,
            ip_address=ip_address,
            user_agent=user_agent,
            location=resolved_location,
            occurred_at=occurred_at,
        )
        return await self.handle_event(event)

    async def on_bet_placed(
        self,
        user_id: UUID,
        stake_amount: float,
        bet_type: str,
        odds: float,
        occurred_at: Optional[datetime] = None,
    ) -> List[ComplianceAlert]:
        event = self._validate(
            BetPlacedEvent,
            user_id=user_id,
            stake_amount=stake_amount,
            bet_type=bet_type,
            odds=odds,
            occurred_at=occurred_at,
        )
        return await self.handle_event(event)

    async def on_transaction(
        self,
        user_id: UUID,
        transaction_type: TransactionType,
        amount: float,
        payment_method: str,
        currency: str,
        occurred_at: Optional[datetime] = None,
    ) -> List[ComplianceAlert]:
        event = self._validate(
            TransactionEvent,
            user_id=user_id,
            transaction_type=transaction_type,
            amount=amount,
            payment_method=payment_method,
            currency=currency,
            occurred_at=occurred_at,
        )
        return await self.handle_event(event)

    async def on_profile_or_identity_update(
        self,
        user_id: UUID,
        verified_fields: Optional[Mapping[str, Any]] = None,
        profile_fields: Optional[Mapping[str, Any]] = None,
        occurred_at: Optional[datetime] = None,
    ) -> List[ComplianceAlert]:
        event = self._validate(
            ProfileUpdateEvent,
            user_id=user_id,
            verified_fields=verified_fields,
            profile_fields=profile_fields or {},
            occurred_at=occurred_at,
        )
        return await self.handle_event(event)

    async def handle_event(self, event) -> List[ComplianceAlert]:
        """검증된 이벤트 처리. 하위 단계 오류는 로그만 남기고 빈 목록을 반환"""
        try:
            return await self._handlers[event.event_kind](event)
        except Exception as e:
            self.logger.error(
                "Compliance processing failed for event",
                operation="handle_event",
                user_id=str(event.user_id),
                event_kind=event.event_kind.value,
                exception=e,
            )
            return []

    @staticmethod
    def _validate(model: Type[E], **fields) -> E:
        payload = {key: value for key, value in fields.items() if value is not None}
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in e.errors()
            )
            raise InvalidInputError(f"Invalid {model.__name__}: {problems}") from e

    # --- 이벤트별 처리 ---

    async def _handle_login(self, event: LoginEvent) -> List[ComplianceAlert]:
        async with self.locks.hold(event.user_id):
            previous = await self.history.logins(event.user_id)
            await self.history.record_login(
                event.user_id,
                LoginRecord(at=event.occurred_at, ip_address=event.ip_address, location=event.location, user_agent=event.user_agent),
            )
            context = DetectionContext(
                now=event.occurred_at,
                previous_logins=tuple(previous),
                last_alert_at=await self._last_windowed_alerts(event),
            )
            alerts = await self._detect_and_create(event, context)
        alerts.extend(await self._schedule(self._score_after_login, event))
        return alerts

    async def _handle_bet(self, event: BetPlacedEvent) -> List[ComplianceAlert]:
        async with self.locks.hold(event.user_id):
            await self.history.record_bet(
                event.user_id,
                BetRecord(at=event.occurred_at, stake_amount=event.stake_amount, bet_type=event.bet_type, odds=event.odds),
            )
            recent_bets = await self.history.bets(event.user_id, since=event.occurred_at - self.thresholds.velocity_window)
            player = await self._load_player(event.user_id)
            context = DetectionContext(
                now=event.occurred_at,
                recent_bets=tuple(recent_bets),
                pattern_score=await self._pattern_score(event.user_id),
                kyc_status=player.kyc_status if player else None,
                last_alert_at=await self._last_windowed_alerts(event),
            )
            return await self._detect_and_create(event, context)

    async def _handle_transaction(self, event: TransactionEvent) -> List[ComplianceAlert]:
        async with self.locks.hold(event.user_id):
            await self.history.record_transaction(
                event.user_id,
                TransactionRecord(
                    at=event.occurred_at,
                    transaction_type=event.transaction_type,
                    amount=event.amount,
                    currency=event.currency,
                ),
            )
            recent = await self.history.transactions(event.user_id, since=event.occurred_at - self.thresholds.deposit_window)
            player = await self._load_player(event.user_id)
            context = DetectionContext(
                now=event.occurred_at,
                recent_transactions=tuple(recent),
                kyc_status=player.kyc_status if player else None,
                last_alert_at=await self._last_windowed_alerts(event),
            )
            alerts = await self._detect_and_create(event, context)
        # 알림을 발생시킨 거래만 재채점 대상
        if alerts:
            await self._schedule(self._score_after_transaction, event)
        return alerts

    async def _handle_profile_update(self, event: ProfileUpdateEvent) -> List[ComplianceAlert]:
        async with self.session_factory() as session:
            players = PlayerRepository(session)
            player = await players.get_by_id(event.user_id)
            stored = _stored_profile(player)
            duplicate_counts: Dict[str, int] = {}
            lookup = DetectionContext(now=event.occurred_at, stored_profile=stored)
            for field_name in DUPLICATE_CHECK_FIELDS:
                value = profile_value(event, lookup, field_name)
                if value:
                    duplicate_counts[field_name] = await players.count_duplicates(field_name, value, event.user_id)

        context = DetectionContext(
            now=event.occurred_at,
            duplicate_counts=duplicate_counts,
            stored_profile=stored,
        )
        return await self._detect_and_create(event, context)

    # --- 공통 ---

    async def _detect_and_create(self, event, context: DetectionContext) -> List[ComplianceAlert]:
        drafts = run_detectors(event, context, self.thresholds)
        return await self._create(event.user_id, drafts)

    async def _create(self, user_id: UUID, drafts: List[AlertDraft]) -> List[ComplianceAlert]:
        if not drafts:
            return []
        return await self.triage.create_alerts(user_id, drafts)

    async def _last_windowed_alerts(self, event) -> Dict[AlertType, Any]:
        alert_types = windowed_types_for(event.event_kind)
        if not alert_types:
            return {}
        longest = max(dedup_window(alert_type, self.thresholds) for alert_type in alert_types)
        return await self.triage.last_alert_times(event.user_id, alert_types, since=event.occurred_at - longest)

    async def _load_player(self, user_id: UUID):
        async with self.session_factory() as session:
            return await PlayerRepository(session).get_by_id(user_id)

    async def _pattern_score(self, user_id: UUID) -> Optional[float]:
        try:
            return float(await self.pattern_analyzer.pattern_score(user_id))
        except DependencyError as e:
            self.logger.warning(
                "Betting pattern score unavailable, skipping pattern check",
                operation="pattern_score",
                user_id=str(user_id),
                error=e.message,
            )
            return None

    async def _schedule(self, func: Callable[..., Awaitable[List[ComplianceAlert]]], *args) -> List[ComplianceAlert]:
        """워커 풀이 돌고 있으면 넘기고, 아니면 바로 실행 (실패는 기록만)"""
        if self.task_processor is not None and self.task_processor.running:
            await self.task_processor.add_task(self._guarded, func, *args)
            return []
        return await self._guarded(func, *args)

    async def _guarded(self, func: Callable[..., Awaitable[List[ComplianceAlert]]], *args) -> List[ComplianceAlert]:
        try:
            return await func(*args)
        except Exception as e:
            self.logger.error(
                "Background risk scoring failed",
                operation=func.__name__.lstrip("_"),
                exception=e,
            )
            return []

    async def _score_after_login(self, event: LoginEvent) -> List[ComplianceAlert]:
        score = await self.scoring.calculate_risk_score(event.user_id, reason="login", triggered_by="login_event")
        drafts = detect_high_risk_login(event, score, self.thresholds)
        return await self._create(event.user_id, drafts)

    async def _score_after_transaction(self, event: TransactionEvent) -> List[ComplianceAlert]:
        await self.scoring.calculate_risk_score(
            event.user_id,
            reason=f"{event.transaction_type.value}_alert",
            triggered_by="transaction_event",
        )
        return []


def _stored_profile(player) -> Dict[str, Any]:
    if player is None:
        return {}
    return {
        "first_name": player.first_name,
        "last_name": player.last_name,
        "date_of_birth": player.date_of_birth,
        "phone_number": player.phone_number,
        "address": player.address,
        "bank_account": player.bank_account,
    }
