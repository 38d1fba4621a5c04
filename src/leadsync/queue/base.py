"""
Task queue abstraction.

A task is keyed by its id (the SyncJob id). Backends de-duplicate on that id
at enqueue time and deliver each task to the registered handler with the
shared retry policy: attempt n failing waits ``base_delay * 2**(n-1)``
seconds before attempt n+1, up to ``max_attempts`` deliveries.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Type

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueuedTask:
    task_id: str
    payload: Dict[str, Any] = field(default_factory=dict)
    attempt: int = 1

    @property
    def is_redelivery(self) -> bool:
        return self.attempt > 1


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 2.0
    # Exceptions that end the task on the spot, whatever the attempt count
    give_up_on: Tuple[Type[BaseException], ...] = ()

    def delay_for(self, attempt: int) -> float:
        """Backoff before the delivery that follows failed ``attempt``."""
        return self.base_delay * (2 ** (attempt - 1))

    def should_retry(self, attempt: int, exc: BaseException) -> bool:
        if isinstance(exc, self.give_up_on):
            return False
        return attempt < self.max_attempts


TaskHandler = Callable[[QueuedTask], Awaitable[Any]]


class TaskQueue(ABC):
    """Durable-ish at-least-once queue of keyed tasks."""

    def __init__(self, retry_policy: Optional[RetryPolicy] = None, concurrency: int = 1):
        self.retry_policy = retry_policy or RetryPolicy()
        self.concurrency = max(1, concurrency)
        self._handler: Optional[TaskHandler] = None

    def on_task(self, handler: TaskHandler) -> TaskHandler:
        """Register the coroutine that processes each delivered task."""
        self._handler = handler
        return handler

    @abstractmethod
    async def enqueue(self, task_id: str, payload: Dict[str, Any]) -> bool:
        """Queue a task. Returns False if ``task_id`` was already enqueued."""

    @abstractmethod
    async def start(self) -> None:
        """Start consuming tasks."""

    @abstractmethod
    async def stop(self) -> None:
        """Stop consuming and wait for in-flight consumers to exit."""

    async def _deliver(self, task: QueuedTask) -> bool:
        """
        Hand ``task`` to the handler, retrying per the policy.

        Returns:
            True if some attempt succeeded, False once the task is given up.
        """
        if self._handler is None:
            raise RuntimeError("No task handler registered; call on_task() first")

        while True:
            try:
                await self._handler(task)
                return True
            except Exception as exc:
                if not self.retry_policy.should_retry(task.attempt, exc):
                    logger.error(
                        "task=%s given up after attempt %d/%d: %s",
                        task.task_id, task.attempt, self.retry_policy.max_attempts, exc,
                    )
                    return False
                delay = self.retry_policy.delay_for(task.attempt)
                logger.warning(
                    "task=%s attempt %d/%d failed: %s; redelivering in %.1fs",
                    task.task_id, task.attempt, self.retry_policy.max_attempts, exc, delay,
                )
                await asyncio.sleep(delay)
                task = replace(task, attempt=task.attempt + 1)
