import enum


class RiskLevel(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class KycStatus(str, enum.Enum):
    """신원 확인 상태 (외부 KYC 서비스에서 관리)"""
    VERIFIED = "verified"
    PENDING = "pending"
    REJECTED = "rejected"
    NOT_STARTED = "not_started"


class AlertType(str, enum.Enum):
    SUSPICIOUS_LOGIN = "suspicious_login"
    UNUSUAL_BETTING_PATTERN = "unusual_betting_pattern"
    LARGE_TRANSACTION = "large_transaction"
    VELOCITY_CHECK = "velocity_check"
    MULTIPLE_ACCOUNTS = "multiple_accounts"
    KYC_MISMATCH = "kyc_mismatch"
    GEO_LOCATION_RISK = "geo_location_risk"
    RAPID_DEPOSITS = "rapid_deposits"
    DEVICE_FINGERPRINT_RISK = "device_fingerprint_risk"


class AlertSeverity(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    def escalated(self) -> "AlertSeverity":
        """한 단계 상향 (critical에서 멈춤)"""
        order = list(AlertSeverity)
        index = order.index(self)
        return order[min(index + 1, len(order) - 1)]


class AlertStatus(str, enum.Enum):
    OPEN = "open"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"
    FALSE_POSITIVE = "false_positive"

    @property
    def is_terminal(self) -> bool:
        return self in (AlertStatus.RESOLVED, AlertStatus.FALSE_POSITIVE)


class TransactionType(str, enum.Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"


class EventKind(str, enum.Enum):
    """탐지기 디스패치 키"""
    LOGIN = "login"
    BET_PLACED = "bet_placed"
    TRANSACTION = "transaction"
    PROFILE_UPDATE = "profile_update"


def enum_values(enum_cls):
    """SQLEnum values_callable: DB에는 멤버 이름이 아닌 값 저장"""
    return [member.value for member in enum_cls]
