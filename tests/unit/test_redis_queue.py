"""Tests for the Redis Streams task queue against a mocked redis.asyncio client."""
import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError, ResponseError

from leadsync.exceptions import SourceFetchError
from leadsync.queue.base import RetryPolicy
from leadsync.queue.redis_stream import RedisStreamTaskQueue

STREAM = "leadsync:test-stream"
GROUP = "leadsync-test"


@pytest.fixture
def redis():
    client = MagicMock()
    client.set = AsyncMock(return_value=True)
    client.xadd = AsyncMock(return_value="1-0")
    client.delete = AsyncMock()
    client.xgroup_create = AsyncMock()
    client.xreadgroup = AsyncMock(return_value=[])
    client.xautoclaim = AsyncMock(return_value=["0-0", [], []])
    client.xack = AsyncMock()
    client.xpending_range = AsyncMock(return_value=[])
    return client


@pytest.fixture
def queue(redis):
    q = RedisStreamTaskQueue(
        redis,
        stream=STREAM,
        group=GROUP,
        consumer_name="worker-test",
        retry_policy=RetryPolicy(max_attempts=2, base_delay=0.0),
        concurrency=2,
    )
    q._slots = asyncio.Semaphore(2)
    return q


async def _drain(queue):
    await asyncio.gather(*list(queue._inflight))


class TestEnqueue:
    @pytest.mark.asyncio
    async def test_sets_dedupe_key_then_appends(self, queue, redis):
        assert await queue.enqueue("job-1", {"batch_size": 5})
        redis.set.assert_awaited_once_with(f"{STREAM}:task:job-1", "1", nx=True, ex=86_400)
        redis.xadd.assert_awaited_once_with(
            STREAM, {"task_id": "job-1", "payload": json.dumps({"batch_size": 5})}
        )

    @pytest.mark.asyncio
    async def test_duplicate_task_id_not_appended(self, queue, redis):
        redis.set.return_value = None
        assert not await queue.enqueue("job-1", {})
        redis.xadd.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_append_releases_dedupe_key(self, queue, redis):
        redis.xadd.side_effect = ConnectionError("down")
        with pytest.raises(ConnectionError):
            await queue.enqueue("job-1", {})
        redis.delete.assert_awaited_once_with(f"{STREAM}:task:job-1")


class TestEnsureGroup:
    @pytest.mark.asyncio
    async def test_existing_group_tolerated(self, queue, redis):
        redis.xgroup_create.side_effect = ResponseError("BUSYGROUP Consumer Group name already exists")
        await queue.ensure_group()

    @pytest.mark.asyncio
    async def test_other_errors_propagate(self, queue, redis):
        redis.xgroup_create.side_effect = ResponseError("WRONGTYPE")
        with pytest.raises(ResponseError):
            await queue.ensure_group()


class TestConsume:
    @pytest.mark.asyncio
    async def test_new_entry_delivered_then_acked(self, queue, redis):
        redis.xreadgroup.return_value = [
            (STREAM, [("1-0", {"task_id": "job-1", "payload": '{"batch_size": 3}'})])
        ]
        handler = queue.on_task(AsyncMock())

        await queue.poll_once()
        await _drain(queue)

        task = handler.await_args.args[0]
        assert task.task_id == "job-1"
        assert task.payload == {"batch_size": 3}
        assert task.attempt == 1
        redis.xack.assert_awaited_once_with(STREAM, GROUP, "1-0")

    @pytest.mark.asyncio
    async def test_given_up_entry_still_acked(self, queue, redis):
        redis.xreadgroup.return_value = [(STREAM, [("1-0", {"task_id": "job-1", "payload": "{}"})])]
        handler = queue.on_task(AsyncMock(side_effect=SourceFetchError("down")))

        await queue.poll_once()
        await _drain(queue)

        assert handler.await_count == 2
        redis.xack.assert_awaited_once_with(STREAM, GROUP, "1-0")

    @pytest.mark.asyncio
    async def test_reclaimed_entry_is_redelivery(self, queue, redis):
        redis.xautoclaim.return_value = [
            "0-0",
            [("0-5", {"task_id": "job-9", "payload": "{}"})],
            [],
        ]
        handler = queue.on_task(AsyncMock())

        await queue.poll_once()
        await _drain(queue)

        task = handler.await_args.args[0]
        assert task.task_id == "job-9"
        assert task.is_redelivery
        redis.xack.assert_awaited_once_with(STREAM, GROUP, "0-5")

    @pytest.mark.asyncio
    async def test_reclaimed_entry_attempt_from_delivery_count(self, queue, redis):
        redis.xautoclaim.return_value = ["0-0", [("0-5", {"task_id": "job-9", "payload": "{}"})], []]
        redis.xpending_range.return_value = [
            {"message_id": "0-5", "consumer": "worker-test", "time_since_delivered": 0, "times_delivered": 2}
        ]
        handler = queue.on_task(AsyncMock(side_effect=SourceFetchError("down")))

        await queue.poll_once()
        await _drain(queue)

        redis.xpending_range.assert_awaited_once_with(
            name=STREAM, groupname=GROUP, min="0-5", max="0-5", count=1
        )
        assert [c.args[0].attempt for c in handler.await_args_list] == [2]
        redis.xack.assert_awaited_once_with(STREAM, GROUP, "0-5")

    @pytest.mark.asyncio
    async def test_entry_past_max_deliveries_acked_without_running(self, queue, redis):
        redis.xautoclaim.return_value = ["0-0", [("0-5", {"task_id": "job-9", "payload": "{}"})], []]
        redis.xpending_range.return_value = [
            {"message_id": "0-5", "consumer": "worker-test", "time_since_delivered": 0, "times_delivered": 3}
        ]
        handler = queue.on_task(AsyncMock())

        await queue.poll_once()
        await _drain(queue)

        handler.assert_not_awaited()
        redis.xack.assert_awaited_once_with(STREAM, GROUP, "0-5")

    @pytest.mark.asyncio
    async def test_unknown_delivery_count_treated_as_second_attempt(self, queue, redis):
        redis.xautoclaim.return_value = ["0-0", [("0-5", {"task_id": "job-9", "payload": "{}"})], []]
        redis.xpending_range.side_effect = ResponseError("NOGROUP")
        handler = queue.on_task(AsyncMock())

        await queue.poll_once()
        await _drain(queue)

        assert handler.await_args.args[0].attempt == 2

    @pytest.mark.asyncio
    async def test_malformed_entry_dropped_and_acked(self, queue, redis):
        redis.xreadgroup.return_value = [(STREAM, [("1-0", {"payload": "{}"})])]
        handler = queue.on_task(AsyncMock())

        await queue.poll_once()
        await _drain(queue)

        handler.assert_not_awaited()
        redis.xack.assert_awaited_once_with(STREAM, GROUP, "1-0")

    @pytest.mark.asyncio
    async def test_start_creates_group_and_stop_cancels_reader(self, redis):
        async def blocking_read(**kwargs):
            await asyncio.sleep(0.01)
            return []

        redis.xreadgroup = AsyncMock(side_effect=blocking_read)
        queue = RedisStreamTaskQueue(redis, stream=STREAM, group=GROUP, block_ms=10)
        queue.on_task(AsyncMock())
        await queue.start()
        await asyncio.sleep(0)
        await queue.stop()

        redis.xgroup_create.assert_awaited_once_with(
            name=STREAM, groupname=GROUP, id="0", mkstream=True
        )
        assert queue._reader is None
