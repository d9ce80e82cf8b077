"""
비동기 작업 처리기
이벤트 처리 후 위험 재채점 등 호출자를 기다리게 하지 않을 작업을 워커 풀에서 실행
"""
import asyncio
import logging
from typing import Any, Callable, List, Optional

from betguard.core.config import settings

logger = logging.getLogger(__name__)


class TaskProcessor:
    """작업 큐와 비동기 워커 관리"""

    def __init__(self, worker_count: int = 5):
        if worker_count <= 0:
            raise ValueError("worker_count must be positive")
        self.queue: asyncio.Queue = asyncio.Queue()
        self.worker_count = worker_count
        self.workers: List[asyncio.Task] = []
        self.running = False

    async def start(self):
        """워커 시작"""
        if self.running:
            return
        self.running = True
        for i in range(self.worker_count):
            self.workers.append(asyncio.create_task(self._worker_loop(i)))
        logger.info(f"Started {self.worker_count} task workers")

    async def stop(self, drain: bool = True, timeout: Optional[float] = 10.0):
        """워커 중지 (drain=True 이면 남은 작업을 먼저 처리)"""
        if not self.running:
            return
        if drain:
            try:
                await asyncio.wait_for(self.queue.join(), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Task queue not drained within {timeout}s, {self.queue.qsize()} task(s) dropped")
        self.running = False
        for worker in self.workers:
            worker.cancel()
        await asyncio.gather(*self.workers, return_exceptions=True)
        self.workers = []
        logger.info("Task workers stopped")

    async def add_task(self, func: Callable, *args: Any, **kwargs: Any):
        """작업 추가"""
        if not self.running:
            raise RuntimeError("TaskProcessor is not running")
        await self.queue.put((func, args, kwargs))

    async def _worker_loop(self, worker_id: int):
        logger.debug(f"Worker {worker_id} started")
        while self.running:
            try:
                func, args, kwargs = await self.queue.get()
            except asyncio.CancelledError:
                logger.debug(f"Worker {worker_id} received cancellation signal.")
                break
            try:
                if asyncio.iscoroutinefunction(func):
                    await func(*args, **kwargs)
                else:
                    # 동기 함수는 별도 스레드에서 실행
                    await asyncio.to_thread(func, *args, **kwargs)
            except asyncio.CancelledError:
                self.queue.task_done()
                break
            except Exception as e:
                logger.error(f"Error processing task in worker {worker_id}: {e}", exc_info=True)
                self.queue.task_done()
            else:
                self.queue.task_done()
        logger.debug(f"Worker {worker_id} stopped")


# 싱글톤 인스턴스
_task_processor: Optional[TaskProcessor] = None


def get_task_processor() -> TaskProcessor:
    """작업 처리기 싱글톤 인스턴스 반환"""
    global _task_processor
    if _task_processor is None:
        _task_processor = TaskProcessor(worker_count=settings.TASK_WORKER_COUNT)
    return _task_processor


async def startup_task_processor() -> TaskProcessor:
    """애플리케이션 시작 시 작업 처리기 시작"""
    processor = get_task_processor()
    await processor.start()
    return processor


async def shutdown_task_processor():
    """애플리케이션 종료 시 작업 처리기 중지"""
    global _task_processor
    if _task_processor is not None:
        await _task_processor.stop()
        _task_processor = None
