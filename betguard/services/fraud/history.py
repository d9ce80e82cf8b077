"""
탐지기용 최근 활동 이력

로그인/베팅/거래 이력은 외부 서비스가 소유한다. 탐지기는 사용자별로 제한된
최근 이력만 필요하므로 ActivityHistory 인터페이스 뒤에 둔다.
기본 구현은 프로세스 메모리의 사용자별 고정 길이 deque 이다.
"""
from collections import defaultdict, deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Deque, Dict, List, Optional, Protocol
from uuid import UUID

from betguard.models.enums import TransactionType


@dataclass(frozen=True)
class LoginRecord:
    at: datetime
    ip_address: str
    location: Optional[str] = None
    user_agent: str = ""


@dataclass(frozen=True)
class BetRecord:
    at: datetime
    stake_amount: float
    bet_type: str
    odds: float


@dataclass(frozen=True)
class TransactionRecord:
    at: datetime
    transaction_type: TransactionType
    amount: float
    currency: str


class ActivityHistory(Protocol):
    async def record_login(self, user_id: UUID, record: LoginRecord) -> None: ...

    async def logins(self, user_id: UUID, since: Optional[datetime] = None) -> List[LoginRecord]: ...

    async def record_bet(self, user_id: UUID, record: BetRecord) -> None: ...

    async def bets(self, user_id: UUID, since: Optional[datetime] = None) -> List[BetRecord]: ...

    async def record_transaction(self, user_id: UUID, record: TransactionRecord) -> None: ...

    async def transactions(
        self,
        user_id: UUID,
        since: Optional[datetime] = None,
        transaction_type: Optional[TransactionType] = None,
    ) -> List[TransactionRecord]: ...


class InMemoryActivityHistory:
    """사용자별 최대 max_records 건, retention 기간만 보관"""

    def __init__(self, retention: timedelta = timedelta(days=30), max_records: int = 1000):
        if max_records <= 0:
            raise ValueError("max_records must be positive")
        self.retention = retention
        self.max_records = max_records
        self._logins: Dict[UUID, Deque[LoginRecord]] = defaultdict(self._new_deque)
        self._bets: Dict[UUID, Deque[BetRecord]] = defaultdict(self._new_deque)
        self._transactions: Dict[UUID, Deque[TransactionRecord]] = defaultdict(self._new_deque)

    def _new_deque(self) -> deque:
        return deque(maxlen=self.max_records)

    def _append(self, store: Dict[UUID, deque], user_id: UUID, record) -> None:
        records = store[user_id]
        records.append(record)
        cutoff = record.at - self.retention
        while records and records[0].at < cutoff:
            records.popleft()

    @staticmethod
    def _since(store: Dict[UUID, deque], user_id: UUID, since: Optional[datetime]) -> list:
        records = store.get(user_id)
        if not records:
            return []
        if since is None:
            return list(records)
        return [record for record in records if record.at >= since]

    async def record_login(self, user_id: UUID, record: LoginRecord) -> None:
        self._append(self._logins, user_id, record)

    async def logins(self, user_id: UUID, since: Optional[datetime] = None) -> List[LoginRecord]:
        return self._since(self._logins, user_id, since)

    async def record_bet(self, user_id: UUID, record: BetRecord) -> None:
        self._append(self._bets, user_id, record)

    async def bets(self, user_id: UUID, since: Optional[datetime] = None) -> List[BetRecord]:
        return self._since(self._bets, user_id, since)

    async def record_transaction(self, user_id: UUID, record: TransactionRecord) -> None:
        self._append(self._transactions, user_id, record)

    async def transactions(
        self,
        user_id: UUID,
        since: Optional[datetime] = None,
        transaction_type: Optional[TransactionType] = None,
    ) -> List[TransactionRecord]:
        records = self._since(self._transactions, user_id, since)
        if transaction_type is not None:
            records = [record for record in records if record.transaction_type == transaction_type]
        return records
