"""
Redis Streams task queue.

  - enqueue: ``SET <stream>:task:<id> NX`` guards against a second enqueue of
    the same task id, then ``XADD`` appends {task_id, payload} to the stream.
  - consume: one reader loop per process does ``XREADGROUP`` on the consumer
    group and fans entries out to at most ``concurrency`` handler coroutines.
  - ack: an entry is ``XACK``-ed only after its final outcome (success or
    given up). Entries left pending by a crashed consumer are reclaimed with
    ``XAUTOCLAIM`` once idle for ``claim_idle_ms`` and delivered again as
    redeliveries, which gives at-least-once delivery. The attempt number of a
    reclaimed entry is its group delivery count from ``XPENDING``; an entry
    delivered more than ``max_attempts`` times is acked without running.

claim_idle_ms must exceed the longest retry window of one task, otherwise a
healthy consumer's in-flight task could be claimed by another.
"""
import asyncio
import json
import logging
import socket
from typing import Any, Dict, Optional, Set

from redis.asyncio import Redis
from redis.exceptions import ResponseError

from leadsync.queue.base import QueuedTask, RetryPolicy, TaskQueue

logger = logging.getLogger(__name__)


class RedisStreamTaskQueue(TaskQueue):
    def __init__(
        self,
        redis: Redis,
        stream: str,
        group: str,
        consumer_name: Optional[str] = None,
        retry_policy: Optional[RetryPolicy] = None,
        concurrency: int = 1,
        block_ms: int = 5000,
        claim_idle_ms: int = 600_000,
        dedupe_ttl_seconds: int = 86_400,
    ):
        """
        Args:
            redis: redis.asyncio client created with ``decode_responses=True``.
            stream: Stream key.
            group: Consumer group name (created on start if missing).
            consumer_name: This consumer's name; defaults to hostname.
        """
        super().__init__(retry_policy=retry_policy, concurrency=concurrency)
        self.redis = redis
        self.stream = stream
        self.group = group
        self.consumer_name = consumer_name or f"worker-{socket.gethostname()}"
        self.block_ms = block_ms
        self.claim_idle_ms = claim_idle_ms
        self.dedupe_ttl_seconds = dedupe_ttl_seconds
        self._reader: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()
        self._slots: Optional[asyncio.Semaphore] = None

    def _dedupe_key(self, task_id: str) -> str:
        return f"{self.stream}:task:{task_id}"

    async def enqueue(self, task_id: str, payload: Dict[str, Any]) -> bool:
        key = self._dedupe_key(task_id)
        if not await self.redis.set(key, "1", nx=True, ex=self.dedupe_ttl_seconds):
            logger.info("task=%s already enqueued, ignoring", task_id)
            return False
        try:
            await self.redis.xadd(
                self.stream, {"task_id": task_id, "payload": json.dumps(payload)}
            )
        except Exception:
            await self.redis.delete(key)
            raise
        return True

    async def ensure_group(self) -> None:
        try:
            await self.redis.xgroup_create(
                name=self.stream, groupname=self.group, id="0", mkstream=True
            )
            logger.info("Created consumer group %s on %s", self.group, self.stream)
        except ResponseError as exc:
            if "BUSYGROUP" not in str(exc):
                raise

    async def start(self) -> None:
        if self._reader is not None:
            return
        await self.ensure_group()
        self._slots = asyncio.Semaphore(self.concurrency)
        self._reader = asyncio.create_task(self._read_loop(), name="leadsync-stream-reader")
        logger.info(
            "Redis queue consumer %s started on %s/%s (concurrency=%d)",
            self.consumer_name, self.stream, self.group, self.concurrency,
        )

    async def stop(self) -> None:
        if self._reader is not None:
            self._reader.cancel()
            await asyncio.gather(self._reader, return_exceptions=True)
            self._reader = None
        for task in list(self._inflight):
            task.cancel()
        await asyncio.gather(*self._inflight, return_exceptions=True)

    # ─── Consumer side ────────────────────────────────────────────────────────

    async def _read_loop(self) -> None:
        while True:
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Queue reader error, retrying in 5s")
                await asyncio.sleep(5)

    async def poll_once(self) -> None:
        """Reclaim stale entries, then read and dispatch new ones."""
        await self._reclaim_stale()
        entries = await self.redis.xreadgroup(
            groupname=self.group,
            consumername=self.consumer_name,
            streams={self.stream: ">"},
            count=self.concurrency,
            block=self.block_ms,
        )
        for _stream, messages in entries or []:
            for message_id, fields in messages:
                await self._dispatch(message_id, fields, attempt=1)

    async def _reclaim_stale(self) -> None:
        try:
            claimed = await self.redis.xautoclaim(
                name=self.stream,
                groupname=self.group,
                consumername=self.consumer_name,
                min_idle_time=self.claim_idle_ms,
                start_id="0-0",
                count=self.concurrency,
            )
        except ResponseError as exc:
            logger.warning("XAUTOCLAIM failed: %s", exc)
            return
        messages = claimed[1] if claimed else []
        for message_id, fields in messages:
            if not fields:
                continue
            attempt = await self._delivery_count(message_id)
            if attempt > self.retry_policy.max_attempts:
                logger.error(
                    "Giving up on stale entry %s after %d deliveries", message_id, attempt - 1
                )
                await self.redis.xack(self.stream, self.group, message_id)
                continue
            logger.info("Reclaimed stale entry %s as attempt %d", message_id, attempt)
            await self._dispatch(message_id, fields, attempt=attempt)

    async def _delivery_count(self, message_id: str) -> int:
        """Times the group has delivered ``message_id``, counting the current claim."""
        try:
            pending = await self.redis.xpending_range(
                name=self.stream, groupname=self.group, min=message_id, max=message_id, count=1
            )
        except ResponseError as exc:
            logger.warning("XPENDING failed for %s: %s", message_id, exc)
            pending = []
        if not pending:
            return 2
        return max(2, int(pending[0]["times_delivered"]))

    async def _dispatch(self, message_id: str, fields: Dict[str, str], *, attempt: int) -> None:
        await self._slots.acquire()
        task = asyncio.create_task(self._handle(message_id, fields, attempt))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _handle(self, message_id: str, fields: Dict[str, str], attempt: int) -> None:
        try:
            try:
                task = QueuedTask(
                    task_id=fields["task_id"],
                    payload=json.loads(fields.get("payload") or "{}"),
                    attempt=attempt,
                )
            except (KeyError, ValueError) as exc:
                logger.error("Dropping malformed entry %s: %s", message_id, exc)
            else:
                await self._deliver(task)
            await self.redis.xack(self.stream, self.group, message_id)
        finally:
            self._slots.release()
