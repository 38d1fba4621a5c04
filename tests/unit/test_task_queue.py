"""Tests for RetryPolicy and the in-memory task queue."""
import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from leadsync.exceptions import JobNotFoundError, SourceFetchError
from leadsync.queue.base import QueuedTask, RetryPolicy
from leadsync.queue.memory import InMemoryTaskQueue


class TestRetryPolicy:
    def test_defaults(self):
        policy = RetryPolicy()
        assert policy.max_attempts == 3
        assert policy.base_delay == 2.0

    def test_exponential_delay(self):
        policy = RetryPolicy(base_delay=2.0)
        assert [policy.delay_for(n) for n in (1, 2, 3)] == [2.0, 4.0, 8.0]

    def test_retries_until_max_attempts(self):
        policy = RetryPolicy(max_attempts=3)
        exc = SourceFetchError("down")
        assert policy.should_retry(1, exc)
        assert policy.should_retry(2, exc)
        assert not policy.should_retry(3, exc)

    def test_give_up_on_listed_exception(self):
        policy = RetryPolicy(give_up_on=(JobNotFoundError,))
        assert not policy.should_retry(1, JobNotFoundError("missing"))


class TestQueuedTask:
    def test_first_delivery_is_not_redelivery(self):
        assert not QueuedTask("t1").is_redelivery

    def test_later_attempt_is_redelivery(self):
        assert QueuedTask("t1", attempt=2).is_redelivery


def _queue(**policy) -> InMemoryTaskQueue:
    return InMemoryTaskQueue(retry_policy=RetryPolicy(base_delay=0.0, **policy), concurrency=2)


class TestInMemoryTaskQueue:
    @pytest.mark.asyncio
    async def test_delivers_payload_to_handler(self):
        queue = _queue()
        handler = queue.on_task(AsyncMock())
        await queue.start()
        try:
            assert await queue.enqueue("job-1", {"batch_size": 5})
            await queue.join()
        finally:
            await queue.stop()

        task = handler.await_args.args[0]
        assert task.task_id == "job-1"
        assert task.payload == {"batch_size": 5}
        assert task.attempt == 1
        assert queue.outcomes["job-1"] is True

    @pytest.mark.asyncio
    async def test_duplicate_enqueue_ignored(self):
        queue = _queue()
        assert await queue.enqueue("job-1", {})
        assert not await queue.enqueue("job-1", {})
        assert queue.pending == 1

    @pytest.mark.asyncio
    async def test_retries_with_increasing_attempt(self):
        queue = _queue(max_attempts=3)
        attempts = []

        async def flaky(task):
            attempts.append(task.attempt)
            if task.attempt < 3:
                raise SourceFetchError("down")

        queue.on_task(flaky)
        await queue.start()
        try:
            await queue.enqueue("job-1", {})
            await queue.join()
        finally:
            await queue.stop()

        assert attempts == [1, 2, 3]
        assert queue.outcomes["job-1"] is True

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        queue = _queue(max_attempts=3)
        handler = queue.on_task(AsyncMock(side_effect=SourceFetchError("down")))
        await queue.start()
        try:
            await queue.enqueue("job-1", {})
            await queue.join()
        finally:
            await queue.stop()

        assert handler.await_count == 3
        assert queue.outcomes["job-1"] is False

    @pytest.mark.asyncio
    async def test_give_up_exception_not_retried(self):
        queue = _queue(max_attempts=3, give_up_on=(JobNotFoundError,))
        handler = queue.on_task(AsyncMock(side_effect=JobNotFoundError("job-1")))
        await queue.start()
        try:
            await queue.enqueue("job-1", {})
            await queue.join()
        finally:
            await queue.stop()

        assert handler.await_count == 1
        assert queue.outcomes["job-1"] is False

    @pytest.mark.asyncio
    async def test_backoff_sleeps_between_attempts(self):
        queue = InMemoryTaskQueue(retry_policy=RetryPolicy(max_attempts=3, base_delay=2.0))
        queue.on_task(AsyncMock(side_effect=SourceFetchError("down")))

        with patch("leadsync.queue.base.asyncio.sleep", new=AsyncMock()) as sleep:
            delivered = await queue._deliver(QueuedTask("job-1"))

        assert delivered is False
        assert [c.args[0] for c in sleep.await_args_list] == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_deliver_without_handler_raises(self):
        with pytest.raises(RuntimeError, match="on_task"):
            await _queue()._deliver(QueuedTask("job-1"))

    @pytest.mark.asyncio
    async def test_concurrency_bounds_parallel_tasks(self):
        queue = InMemoryTaskQueue(retry_policy=RetryPolicy(base_delay=0.0), concurrency=2)
        running = 0
        peak = 0

        async def slow(task):
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1

        queue.on_task(slow)
        await queue.start()
        try:
            for i in range(5):
                await queue.enqueue(f"job-{i}", {})
            await queue.join()
        finally:
            await queue.stop()

        assert peak == 2
        assert all(queue.outcomes[f"job-{i}"] for i in range(5))
