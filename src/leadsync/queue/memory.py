"""In-process task queue: asyncio.Queue plus a fixed pool of consumer tasks.

Not durable across restarts; suited to single-process deployments and tests.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional, Set

from leadsync.queue.base import QueuedTask, RetryPolicy, TaskQueue

logger = logging.getLogger(__name__)


class InMemoryTaskQueue(TaskQueue):
    def __init__(self, retry_policy: Optional[RetryPolicy] = None, concurrency: int = 1):
        super().__init__(retry_policy=retry_policy, concurrency=concurrency)
        self._queue: "asyncio.Queue[QueuedTask]" = asyncio.Queue()
        self._seen: Set[str] = set()
        self._workers: List[asyncio.Task] = []
        # task_id -> True (succeeded) / False (given up)
        self.outcomes: Dict[str, bool] = {}

    async def enqueue(self, task_id: str, payload: Dict[str, Any]) -> bool:
        if task_id in self._seen:
            logger.info("task=%s already enqueued, ignoring", task_id)
            return False
        self._seen.add(task_id)
        await self._queue.put(QueuedTask(task_id=task_id, payload=dict(payload)))
        return True

    async def start(self) -> None:
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._consume(), name=f"leadsync-worker-{i}")
            for i in range(self.concurrency)
        ]
        logger.info("In-memory queue started with %d worker(s)", self.concurrency)

    async def stop(self) -> None:
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []

    async def join(self) -> None:
        """Wait until every enqueued task has succeeded or been given up."""
        await self._queue.join()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def _consume(self) -> None:
        while True:
            task = await self._queue.get()
            try:
                self.outcomes[task.task_id] = await self._deliver(task)
            except Exception:
                logger.exception("task=%s could not be delivered", task.task_id)
                self.outcomes[task.task_id] = False
            finally:
                self._queue.task_done()
