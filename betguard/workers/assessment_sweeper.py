"""
정기 위험 재평가 스케줄러

next_assessment 가 지난 프로필을 주기적으로 골라 재채점한다.
"""
import asyncio
import logging
from typing import Optional

from betguard.core.config import settings
from betguard.services.risk.scoring_service import RiskScoringService

logger = logging.getLogger(__name__)

SWEEP_REASON = "scheduled_assessment"
SWEEP_ACTOR = "assessment_sweep"


class AssessmentSweeper:
    """재평가 기한이 지난 사용자를 배치 단위로 재채점"""

    def __init__(
        self,
        scoring: RiskScoringService,
        interval_seconds: Optional[float] = None,
        batch_size: Optional[int] = None,
    ):
        self.scoring = scoring
        self.interval_seconds = interval_seconds or settings.ASSESSMENT_SWEEP_INTERVAL_SECONDS
        self.batch_size = batch_size or settings.ASSESSMENT_SWEEP_BATCH_SIZE
        if self.batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self._task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self):
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._sweep_loop())
        logger.info(f"Assessment sweeper started with interval {self.interval_seconds}s, batch {self.batch_size}")

    async def stop(self):
        if not self._running or not self._task:
            return
        self._running = False
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            logger.info("Assessment sweeper task cancelled.")
        except Exception as e:
            logger.error(f"Error during assessment sweeper shutdown: {e}", exc_info=True)
        finally:
            self._task = None
        logger.info("Assessment sweeper stopped")

    async def run_once(self) -> int:
        """기한이 지난 사용자 한 배치를 재채점하고 성공 건수를 반환"""
        user_ids = await self.scoring.due_user_ids(self.batch_size)
        assessed = 0
        for user_id in user_ids:
            try:
                await self.scoring.calculate_risk_score(user_id, reason=SWEEP_REASON, triggered_by=SWEEP_ACTOR)
                assessed += 1
            except Exception as e:
                # 한 사용자의 실패가 배치 전체를 멈추지 않도록 기록만 함
                logger.error(f"Scheduled assessment failed for user {user_id}: {e}", exc_info=True)
        if user_ids:
            logger.info(f"Assessment sweep finished: {assessed}/{len(user_ids)} profile(s) reassessed")
        return assessed

    async def _sweep_loop(self):
        while self._running:
            try:
                await self.run_once()
                await asyncio.sleep(self.interval_seconds)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in assessment sweep: {e}", exc_info=True)
                await asyncio.sleep(min(self.interval_seconds, 15))
