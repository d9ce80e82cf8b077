# tests/workers/test_task_processor.py
import asyncio

import pytest

from betguard.workers.task_processor import TaskProcessor


@pytest.mark.asyncio
async def test_tasks_run_and_drain_on_stop():
    processor = TaskProcessor(worker_count=2)
    results = []

    async def record(value):
        await asyncio.sleep(0)
        results.append(value)

    def record_sync(value):
        results.append(value)

    await processor.start()
    for i in range(5):
        await processor.add_task(record, i)
    await processor.add_task(record_sync, "sync")
    await processor.stop(drain=True)

    assert sorted(results, key=str) == sorted([0, 1, 2, 3, 4, "sync"], key=str)
    assert processor.running is False
    assert processor.workers == []


@pytest.mark.asyncio
async def test_failing_task_does_not_kill_worker():
    processor = TaskProcessor(worker_count=1)
    done = []

    async def explode():
        raise RuntimeError("boom")

    async def finish():
        done.append(True)

    await processor.start()
    await processor.add_task(explode)
    await processor.add_task(finish)
    await processor.stop(drain=True)

    assert done == [True]


@pytest.mark.asyncio
async def test_add_task_requires_running_processor():
    processor = TaskProcessor(worker_count=1)

    async def noop():
        return None

    with pytest.raises(RuntimeError):
        await processor.add_task(noop)


def test_worker_count_must_be_positive():
    with pytest.raises(ValueError):
        TaskProcessor(worker_count=0)
