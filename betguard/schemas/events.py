"""
인바운드 이벤트 스키마

이벤트 종류(kind)가 탐지기 디스패치 키가 된다.
"""
from datetime import date, datetime
from typing import Annotated, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from betguard.core.datetime_utils import to_naive_utc, utcnow
from betguard.models.enums import EventKind, TransactionType

UNKNOWN_LOCATION = "Unknown Location"


class _EventBase(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    user_id: UUID
    occurred_at: datetime = Field(default_factory=utcnow)

    @field_validator("occurred_at", mode="after")
    @classmethod
    def _normalize_occurred_at(cls, v: datetime) -> datetime:
        return to_naive_utc(v)

    @property
    def event_kind(self) -> EventKind:
        return EventKind(self.kind)


class LoginEvent(_EventBase):
    kind: Literal["login"] = "login"
    ip_address: str = Field(..., min_length=1, max_length=45)
    user_agent: str = Field("", max_length=512)
    location: Optional[str] = Field(None, max_length=255, description="IP 기반으로 해석된 위치")

    @property
    def has_known_location(self) -> bool:
        return bool(self.location) and self.location != UNKNOWN_LOCATION


class BetPlacedEvent(_EventBase):
    kind: Literal["bet_placed"] = "bet_placed"
    stake_amount: float = Field(..., gt=0)
    bet_type: str = Field(..., min_length=1, max_length=50)
    odds: float = Field(..., gt=0)


class TransactionEvent(_EventBase):
    kind: Literal["transaction"] = "transaction"
    transaction_type: TransactionType
    amount: float = Field(..., gt=0)
    payment_method: str = Field(..., min_length=1, max_length=50)
    currency: str = Field(..., pattern=r"^[A-Z]{3}$")


class VerifiedIdentity(BaseModel):
    """KYC 문서에서 확인된 신원 정보"""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    date_of_birth: date


class ProfileFields(BaseModel):
    """사용자가 프로필에 입력한 값 (누락된 값은 저장된 플레이어 정보로 보완)"""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    date_of_birth: Optional[date] = None
    phone_number: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=500)
    bank_account: Optional[str] = Field(None, max_length=100)


class ProfileUpdateEvent(_EventBase):
    kind: Literal["profile_update"] = "profile_update"
    verified_fields: Optional[VerifiedIdentity] = None
    profile_fields: ProfileFields = Field(default_factory=ProfileFields)


InboundEvent = Annotated[
    Union[LoginEvent, BetPlacedEvent, TransactionEvent, ProfileUpdateEvent],
    Field(discriminator="kind"),
]
