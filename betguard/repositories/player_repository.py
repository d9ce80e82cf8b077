"""
플레이어 읽기 전용 Repository
"""
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from betguard.models.domain.player import Player

logger = logging.getLogger(__name__)

# 중복 계정 탐지에 사용하는 개인정보 컬럼
DUPLICATE_CHECK_FIELDS = ("phone_number", "address", "bank_account")


class PlayerRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, player_id: UUID) -> Optional[Player]:
        result = await self.session.execute(select(Player).where(Player.id == player_id))
        return result.scalar_one_or_none()

    async def count_duplicates(self, field: str, value: str, exclude_player_id: UUID) -> int:
        """동일한 값을 가진 다른 플레이어 수"""
        if field not in DUPLICATE_CHECK_FIELDS:
            raise ValueError(f"Duplicate check not supported for field '{field}'")
        column = getattr(Player, field)
        stmt = select(func.count(Player.id)).where(column == value, Player.id != exclude_player_id)
        result = await self.session.execute(stmt)
        return result.scalar_one() or 0
