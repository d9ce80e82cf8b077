"""
사기 탐지기

각 탐지기는 (이벤트, 최근 이력 스냅샷, 임계값)만 보고 AlertDraft 목록을 반환하는 순수 함수다.
상태를 바꾸지 않으며 알림 저장은 트리아지 서비스가 담당한다.
이벤트 종류별 탐지기 집합은 DETECTORS 에 고정되어 있다.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from types import MappingProxyType
from typing import Any, Callable, List, Mapping, Optional, Tuple

from betguard.models.enums import AlertSeverity, AlertType, EventKind, TransactionType
from betguard.repositories.player_repository import DUPLICATE_CHECK_FIELDS
from betguard.schemas.alert import AlertDraft
from betguard.schemas.events import (
    UNKNOWN_LOCATION,
    BetPlacedEvent,
    LoginEvent,
    ProfileUpdateEvent,
    TransactionEvent,
)
from betguard.services.fraud.history import BetRecord, LoginRecord, TransactionRecord
from betguard.services.fraud.thresholds import DetectorThresholds


@dataclass(frozen=True)
class DetectionContext:
    """탐지 시점의 사용자별 이력 스냅샷

    previous_logins 는 현재 로그인을 제외한 보관 이력 전체,
    recent_bets / recent_transactions 는 현재 이벤트를 포함한 각 윈도우 내 기록이다.
    """
    now: datetime
    previous_logins: Tuple[LoginRecord, ...] = ()
    recent_bets: Tuple[BetRecord, ...] = ()
    recent_transactions: Tuple[TransactionRecord, ...] = ()
    pattern_score: Optional[float] = None
    kyc_status: Optional[str] = None
    # 필드명 -> 같은 값을 가진 다른 사용자 수
    duplicate_counts: Mapping[str, int] = field(default_factory=dict)
    # 저장된 프로필 값 (이벤트에 없는 필드 보완용)
    stored_profile: Mapping[str, Any] = field(default_factory=dict)
    # 알림 유형 -> 해당 사용자의 최근 발생 시각
    last_alert_at: Mapping[AlertType, datetime] = field(default_factory=dict)


Detector = Callable[[Any, DetectionContext, DetectorThresholds], List[AlertDraft]]


def _draft(alert_type: AlertType, severity: AlertSeverity, description: str, **metadata) -> AlertDraft:
    return AlertDraft(alert_type=alert_type, severity=severity, description=description, metadata=metadata)


# --- 로그인 ---

def detect_suspicious_login(event: LoginEvent, context: DetectionContext, thresholds: DetectorThresholds) -> List[AlertDraft]:
    drafts = []
    window_start = event.occurred_at - thresholds.login_window
    window_logins = [login for login in context.previous_logins if login.at >= window_start]

    unique_ips = {login.ip_address for login in window_logins} | {event.ip_address}
    if len(unique_ips) > thresholds.login_max_distinct_ips:
        drafts.append(_draft(
            AlertType.SUSPICIOUS_LOGIN,
            AlertSeverity.HIGH,
            f"Multiple IP addresses used within {_format_window(thresholds.login_window)}",
            ip_address=event.ip_address,
            user_agent=event.user_agent,
            location=event.location,
            unique_ips=len(unique_ips),
            time_window=_format_window(thresholds.login_window),
        ))

    if event.has_known_location:
        known_locations = {login.location for login in context.previous_logins if login.location}
        if event.location not in known_locations:
            recent_locations = sorted({
                login.location for login in window_logins
                if login.location and login.location != UNKNOWN_LOCATION
            })
            drafts.append(_draft(
                AlertType.GEO_LOCATION_RISK,
                AlertSeverity.MEDIUM,
                "Login from new geographical location",
                ip_address=event.ip_address,
                location=event.location,
                previous_locations=recent_locations,
            ))
    return drafts


def detect_high_risk_login(event: LoginEvent, risk_score: float, thresholds: DetectorThresholds) -> List[AlertDraft]:
    """로그인 직후 채점 결과가 임계값을 넘으면 위치 위험 알림"""
    if risk_score > thresholds.login_high_risk_score:
        return [_draft(
            AlertType.GEO_LOCATION_RISK,
            AlertSeverity.HIGH,
            "High risk score detected during login",
            ip_address=event.ip_address,
            location=event.location,
            risk_score=round(risk_score, 2),
        )]
    return []


# --- 베팅 ---

def detect_unusual_betting(event: BetPlacedEvent, context: DetectionContext, thresholds: DetectorThresholds) -> List[AlertDraft]:
    drafts = []
    if event.stake_amount > thresholds.large_stake:
        drafts.append(_draft(
            AlertType.UNUSUAL_BETTING_PATTERN,
            AlertSeverity.HIGH,
            "Unusually large bet amount",
            bet_amount=event.stake_amount,
            bet_type=event.bet_type,
            odds=event.odds,
        ))

    window_start = event.occurred_at - thresholds.velocity_window
    window_bets = [bet for bet in context.recent_bets if bet.at >= window_start]
    if len(window_bets) > thresholds.velocity_max_bets:
        drafts.append(_draft(
            AlertType.VELOCITY_CHECK,
            AlertSeverity.MEDIUM,
            "High frequency betting detected",
            bet_count=len(window_bets),
            time_window=_format_window(thresholds.velocity_window),
            total_amount=round(sum(bet.stake_amount for bet in window_bets), 2),
        ))

    if context.pattern_score is not None and context.pattern_score > thresholds.pattern_score_threshold:
        drafts.append(_draft(
            AlertType.UNUSUAL_BETTING_PATTERN,
            AlertSeverity.MEDIUM,
            "Suspicious betting pattern detected",
            pattern_score=context.pattern_score,
        ))
    return drafts


def detect_bet_limit_breach(event: BetPlacedEvent, context: DetectionContext, thresholds: DetectorThresholds) -> List[AlertDraft]:
    if context.kyc_status is None:
        return []
    limits = thresholds.limits_for(context.kyc_status)
    if event.stake_amount > limits.max_bet:
        return [_draft(
            AlertType.UNUSUAL_BETTING_PATTERN,
            AlertSeverity.MEDIUM,
            f"Bet exceeds maximum stake for KYC status '{context.kyc_status}'",
            bet_amount=event.stake_amount,
            max_bet=limits.max_bet,
            kyc_status=context.kyc_status,
        )]
    return []


# --- 입출금 ---

def detect_large_transaction(event: TransactionEvent, context: DetectionContext, thresholds: DetectorThresholds) -> List[AlertDraft]:
    drafts = []
    if event.transaction_type != TransactionType.DEPOSIT:
        return drafts

    if event.amount > thresholds.large_deposit:
        drafts.append(_draft(
            AlertType.LARGE_TRANSACTION,
            AlertSeverity.HIGH,
            "Large deposit transaction",
            transaction_amount=event.amount,
            payment_method=event.payment_method,
            currency=event.currency,
        ))

    window_start = event.occurred_at - thresholds.deposit_window
    window_deposits = [
        tx for tx in context.recent_transactions
        if tx.at >= window_start and tx.transaction_type == TransactionType.DEPOSIT
    ]
    total = sum(tx.amount for tx in window_deposits)
    if total > thresholds.deposit_window_max_total:
        drafts.append(_draft(
            AlertType.RAPID_DEPOSITS,
            AlertSeverity.MEDIUM,
            "Multiple large deposits in short timeframe",
            total_amount=round(total, 2),
            transaction_count=len(window_deposits),
            time_window=_format_window(thresholds.deposit_window),
        ))
    return drafts


def detect_transaction_limit_breach(event: TransactionEvent, context: DetectionContext, thresholds: DetectorThresholds) -> List[AlertDraft]:
    """KYC 상태별 단건/일일 한도 초과 (거래를 막지 않고 알림만 생성)"""
    if context.kyc_status is None:
        return []
    limits = thresholds.limits_for(context.kyc_status)
    drafts = []
    if event.amount > limits.single_transaction:
        drafts.append(_draft(
            AlertType.LARGE_TRANSACTION,
            AlertSeverity.MEDIUM,
            f"Transaction exceeds single limit for KYC status '{context.kyc_status}'",
            transaction_amount=event.amount,
            transaction_type=event.transaction_type.value,
            limit=limits.single_transaction,
            kyc_status=context.kyc_status,
        ))
    window_start = event.occurred_at - thresholds.deposit_window
    daily_total = sum(
        tx.amount for tx in context.recent_transactions
        if tx.at >= window_start and tx.transaction_type == event.transaction_type
    )
    if daily_total > limits.daily_transactions:
        drafts.append(_draft(
            AlertType.RAPID_DEPOSITS,
            AlertSeverity.MEDIUM,
            "Daily transaction limit exceeded",
            daily_total=round(daily_total, 2),
            transaction_amount=event.amount,
            transaction_type=event.transaction_type.value,
            limit=limits.daily_transactions,
            kyc_status=context.kyc_status,
            time_window=_format_window(thresholds.deposit_window),
        ))
    return drafts


# --- 프로필 / 신원 ---


def profile_value(event: ProfileUpdateEvent, context: DetectionContext, field_name: str):
    value = getattr(event.profile_fields, field_name)
    if value is None:
        value = context.stored_profile.get(field_name)
    return value


def detect_multiple_accounts(event: ProfileUpdateEvent, context: DetectionContext, thresholds: DetectorThresholds) -> List[AlertDraft]:
    drafts = []
    for field_name in DUPLICATE_CHECK_FIELDS:
        value = profile_value(event, context, field_name)
        if not value:
            continue
        duplicate_count = context.duplicate_counts.get(field_name, 0)
        if duplicate_count > 0:
            drafts.append(_draft(
                AlertType.MULTIPLE_ACCOUNTS,
                AlertSeverity.HIGH,
                f"Duplicate {field_name} detected",
                field=field_name,
                value=value,
                duplicate_count=duplicate_count,
            ))
    return drafts


def detect_identity_mismatch(event: ProfileUpdateEvent, context: DetectionContext, thresholds: DetectorThresholds) -> List[AlertDraft]:
    verified = event.verified_fields
    if verified is None:
        return []
    drafts = []
    first_name = profile_value(event, context, "first_name")
    last_name = profile_value(event, context, "last_name")
    if first_name is not None and last_name is not None:
        if (first_name.lower() != verified.first_name.lower()
                or last_name.lower() != verified.last_name.lower()):
            drafts.append(_draft(
                AlertType.KYC_MISMATCH,
                AlertSeverity.HIGH,
                "Name mismatch between KYC document and profile",
                profile_name=f"{first_name} {last_name}",
                kyc_name=f"{verified.first_name} {verified.last_name}",
            ))

    date_of_birth = profile_value(event, context, "date_of_birth")
    if date_of_birth is not None and date_of_birth != verified.date_of_birth:
        drafts.append(_draft(
            AlertType.KYC_MISMATCH,
            AlertSeverity.MEDIUM,
            "Date of birth mismatch",
            profile_dob=date_of_birth.isoformat(),
            kyc_dob=verified.date_of_birth.isoformat(),
        ))
    return drafts


DETECTORS: Mapping[EventKind, Tuple[Detector, ...]] = MappingProxyType({
    EventKind.LOGIN: (detect_suspicious_login,),
    EventKind.BET_PLACED: (detect_unusual_betting, detect_bet_limit_breach),
    EventKind.TRANSACTION: (detect_large_transaction, detect_transaction_limit_breach),
    EventKind.PROFILE_UPDATE: (detect_multiple_accounts, detect_identity_mismatch),
})


def dedup_window(alert_type: AlertType, thresholds: DetectorThresholds) -> Optional[timedelta]:
    """윈도우 기반 알림 유형의 중복 억제 기간"""
    return {
        AlertType.SUSPICIOUS_LOGIN: thresholds.login_window,
        AlertType.VELOCITY_CHECK: thresholds.velocity_window,
        AlertType.RAPID_DEPOSITS: thresholds.deposit_window,
    }.get(alert_type)


def suppress_windowed_duplicates(
    drafts: List[AlertDraft],
    context: DetectionContext,
    thresholds: DetectorThresholds,
) -> List[AlertDraft]:
    """같은 윈도우 안에서 이미 발생한 윈도우 유형 알림은 다시 만들지 않는다"""
    kept = []
    raised_now = set()
    for draft in drafts:
        window = dedup_window(draft.alert_type, thresholds)
        if window is not None:
            last_at = context.last_alert_at.get(draft.alert_type)
            if draft.alert_type in raised_now or (last_at is not None and last_at > context.now - window):
                continue
            raised_now.add(draft.alert_type)
        kept.append(draft)
    return kept


def run_detectors(event, context: DetectionContext, thresholds: DetectorThresholds) -> List[AlertDraft]:
    """이벤트 종류에 맞는 탐지기를 순서대로 실행"""
    drafts: List[AlertDraft] = []
    for detector in DETECTORS[event.event_kind]:
        drafts.extend(detector(event, context, thresholds))
    return suppress_windowed_duplicates(drafts, context, thresholds)


def windowed_types_for(kind: EventKind) -> Tuple[AlertType, ...]:
    return {
        EventKind.LOGIN: (AlertType.SUSPICIOUS_LOGIN,),
        EventKind.BET_PLACED: (AlertType.VELOCITY_CHECK,),
        EventKind.TRANSACTION: (AlertType.RAPID_DEPOSITS,),
    }.get(kind, ())


def _format_window(window: timedelta) -> str:
    seconds = int(window.total_seconds())
    if seconds % 3600 == 0:
        return f"{seconds // 3600}h"
    return f"{seconds // 60}m"
