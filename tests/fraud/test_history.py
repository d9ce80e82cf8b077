# tests/fraud/test_history.py
from datetime import timedelta
from uuid import uuid4

import pytest

from betguard.core.datetime_utils import utcnow
from betguard.models.enums import TransactionType
from betguard.services.fraud.history import (
    BetRecord,
    InMemoryActivityHistory,
    LoginRecord,
    TransactionRecord,
)


@pytest.mark.asyncio
async def test_records_older_than_retention_are_dropped():
    history = InMemoryActivityHistory(retention=timedelta(days=1))
    user_id = uuid4()
    now = utcnow()

    await history.record_login(user_id, LoginRecord(at=now - timedelta(days=3), ip_address="10.0.0.1"))
    await history.record_login(user_id, LoginRecord(at=now, ip_address="10.0.0.2"))

    logins = await history.logins(user_id)
    assert [login.ip_address for login in logins] == ["10.0.0.2"]


@pytest.mark.asyncio
async def test_max_records_keeps_newest():
    history = InMemoryActivityHistory(max_records=3)
    user_id = uuid4()
    now = utcnow()

    for i in range(5):
        await history.record_bet(user_id, BetRecord(at=now + timedelta(seconds=i), stake_amount=float(i), bet_type="single", odds=2.0))

    bets = await history.bets(user_id)
    assert [bet.stake_amount for bet in bets] == [2.0, 3.0, 4.0]


@pytest.mark.asyncio
async def test_since_filter_and_unknown_user():
    history = InMemoryActivityHistory()
    user_id = uuid4()
    now = utcnow()
    await history.record_bet(user_id, BetRecord(at=now - timedelta(hours=2), stake_amount=5.0, bet_type="single", odds=1.5))
    await history.record_bet(user_id, BetRecord(at=now, stake_amount=7.0, bet_type="accumulator", odds=4.0))

    recent = await history.bets(user_id, since=now - timedelta(hours=1))

    assert [bet.stake_amount for bet in recent] == [7.0]
    assert await history.bets(uuid4()) == []


@pytest.mark.asyncio
async def test_transactions_filter_by_type():
    history = InMemoryActivityHistory()
    user_id = uuid4()
    now = utcnow()
    await history.record_transaction(user_id, TransactionRecord(at=now, transaction_type=TransactionType.DEPOSIT, amount=100.0, currency="EUR"))
    await history.record_transaction(user_id, TransactionRecord(at=now, transaction_type=TransactionType.WITHDRAWAL, amount=40.0, currency="EUR"))

    deposits = await history.transactions(user_id, transaction_type=TransactionType.DEPOSIT)
    everything = await history.transactions(user_id)

    assert [tx.amount for tx in deposits] == [100.0]
    assert len(everything) == 2


def test_max_records_must_be_positive():
    with pytest.raises(ValueError):
        InMemoryActivityHistory(max_records=0)
