"""
Bounded-concurrency Task Engine.

Runs named units of work with a worker cap, per-attempt timeout and retry.
Every submitted task produces exactly one SpawnResult; failures never raise
past the engine boundary.

Usage:
    engine = TaskEngine(TaskEngineConfig(max_workers=4, timeout_ms=10_000))
    results = await engine.spawn_batch(
        [Task(name=f"fetch:{city}", handler=fetch_city, payload=city) for city in cities]
    )

Lifecycle notifications (task:queued, worker:start, worker:retry,
worker:complete, worker:error) are delivered to the optional ``on_event``
callback and are not part of the result contract.
"""

import asyncio
import inspect
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional

from src.ingestion.errors import (
    ConfigurationError,
    ErrorKind,
    TaskTimeoutError,
    classify_error,
)

TaskHandler = Callable[[Any], Any]
EngineEventCallback = Callable[[str, Dict[str, Any]], None]


class EngineStatus(str, Enum):
    """Lifecycle state of the engine."""

    IDLE = "idle"
    PROCESSING = "processing"
    STOPPING = "stopping"
    STOPPED = "stopped"


@dataclass
class TaskEngineConfig:
    """Configuration for a TaskEngine instance."""

    max_workers: int = 5
    timeout_ms: int = 30_000
    retry_attempts: int = 3
    retry_delay_ms: int = 1_000

    def validate(self) -> None:
        """Raise ConfigurationError on nonsensical limits."""
        if self.max_workers < 1:
            raise ConfigurationError("max_workers must be at least 1")
        if self.timeout_ms <= 0:
            raise ConfigurationError("timeout_ms must be positive")
        if self.retry_attempts < 1:
            raise ConfigurationError("retry_attempts must be at least 1")
        if self.retry_delay_ms < 0:
            raise ConfigurationError("retry_delay_ms cannot be negative")


@dataclass
class Task:
    """Opaque unit of work. ``handler`` receives ``payload``."""

    name: str
    handler: TaskHandler
    payload: Any = None


@dataclass
class SpawnResult:
    """Outcome of one task, always produced."""

    task_name: str
    success: bool
    data: Any = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    duration_ms: float = 0.0
    attempts: int = 0

    @property
    def timed_out(self) -> bool:
        """Whether the final attempt was abandoned on timeout."""
        return self.error_kind == ErrorKind.TIMEOUT


@dataclass
class EngineMetrics:
    """Lifetime counters of an engine, until reset."""

    total_tasks: int = 0
    completed_tasks: int = 0
    failed_tasks: int = 0
    total_duration_ms: float = 0.0
    peak_concurrency: int = 0
    started_at: float = field(default_factory=time.time)

    @property
    def average_duration_ms(self) -> float:
        finished = self.completed_tasks + self.failed_tasks
        if finished == 0:
            return 0.0
        return self.total_duration_ms / finished

    def record(self, duration_ms: float, success: bool) -> None:
        """Accumulate one finished task."""
        if success:
            self.completed_tasks += 1
        else:
            self.failed_tasks += 1
        self.total_duration_ms += duration_ms

    def as_dict(self) -> Dict[str, Any]:
        return {
            "total_tasks": self.total_tasks,
            "completed_tasks": self.completed_tasks,
            "failed_tasks": self.failed_tasks,
            "average_duration_ms": round(self.average_duration_ms, 2),
            "peak_concurrency": self.peak_concurrency,
            "started_at": self.started_at,
        }


class TaskEngine:
    """
    Generic bounded-concurrency executor.

    Guarantees:
    - at most ``max_workers`` handlers run at the same time
    - excess tasks wait in FIFO order and start as slots free
    - a raising task runs at most ``retry_attempts`` times in total
    - an attempt exceeding ``timeout_ms`` is cancelled and counts as a failure
    - ``spawn_batch`` returns results in input order
    """

    def __init__(
        self,
        config: Optional[TaskEngineConfig] = None,
        on_event: Optional[EngineEventCallback] = None,
    ):
        self.config = config or TaskEngineConfig()
        self.config.validate()
        self.logger = logging.getLogger("task_engine")
        self._on_event = on_event
        self._metrics = EngineMetrics()
        self._status = EngineStatus.IDLE
        self._running = 0
        self._waiters: Deque[asyncio.Future] = deque()
        self._active_batches = 0

    # ========================================================================
    # PUBLIC API
    # ========================================================================

    async def spawn(self, task: Task) -> SpawnResult:
        """
        Run a single task under the engine's limits.

        Args:
            task: Task to execute

        Returns:
            SpawnResult describing success or failure
        """
        self._metrics.total_tasks += 1

        if self._status in (EngineStatus.STOPPING, EngineStatus.STOPPED):
            self._metrics.record(0.0, success=False)
            return SpawnResult(
                task_name=task.name,
                success=False,
                error="Task engine is shut down",
                error_kind=ErrorKind.CONFIGURATION,
            )

        await self._acquire_slot(task)
        try:
            return await self._run_with_retry(task)
        finally:
            self._release_slot()

    async def spawn_batch(self, tasks: List[Task]) -> List[SpawnResult]:
        """
        Run many tasks; one result per task, in input order.

        Individual failures never abort the batch.
        """
        self._active_batches += 1
        if self._status == EngineStatus.IDLE:
            self._status = EngineStatus.PROCESSING
        try:
            results = await asyncio.gather(*(self.spawn(task) for task in tasks))
            return list(results)
        finally:
            self._active_batches -= 1
            if self._active_batches == 0 and self._status == EngineStatus.PROCESSING:
                self._status = EngineStatus.IDLE

    def get_status(self) -> Dict[str, Any]:
        """Current engine status with a metrics snapshot."""
        return {
            "status": self._status.value,
            "workers": self._running,
            "queued": len(self._waiters),
            "max_workers": self.config.max_workers,
            "metrics": self._metrics.as_dict(),
        }

    @property
    def metrics(self) -> EngineMetrics:
        return self._metrics

    def reset_metrics(self) -> None:
        """Start a fresh metrics window."""
        self._metrics = EngineMetrics()

    async def shutdown(self, grace_seconds: Optional[float] = None) -> None:
        """
        Stop accepting new work and wait for running and queued tasks.

        Args:
            grace_seconds: Maximum wait; defaults to twice the task timeout
        """
        self._status = EngineStatus.STOPPING
        grace = grace_seconds
        if grace is None:
            grace = 2 * self.config.timeout_ms / 1000
        deadline = time.monotonic() + grace

        while (self._running or self._waiters) and time.monotonic() < deadline:
            await asyncio.sleep(0.05)

        if self._running or self._waiters:
            self.logger.warning(
                f"Forced shutdown with {self._running} running and "
                f"{len(self._waiters)} queued tasks"
            )
            self._emit(
                "shutdown:forced",
                running=self._running,
                queued=len(self._waiters),
            )

        self._status = EngineStatus.STOPPED
        self._emit("shutdown:complete")

    # ========================================================================
    # SLOT MANAGEMENT
    # ========================================================================

    async def _acquire_slot(self, task: Task) -> None:
        if self._running < self.config.max_workers and not self._waiters:
            self._take_slot()
            return

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        self._emit("task:queued", task=task.name, queue_length=len(self._waiters))
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # Slot was handed over just before cancellation.
                self._release_slot()
            else:
                try:
                    self._waiters.remove(waiter)
                except ValueError:
                    pass
            raise

    def _take_slot(self) -> None:
        self._running += 1
        if self._running > self._metrics.peak_concurrency:
            self._metrics.peak_concurrency = self._running

    def _release_slot(self) -> None:
        # Hand the slot directly to the oldest waiter; the running count is unchanged.
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return
        self._running -= 1

    # ========================================================================
    # EXECUTION
    # ========================================================================

    async def _run_with_retry(self, task: Task) -> SpawnResult:
        started = time.perf_counter()
        attempts = 0
        last_error: Optional[BaseException] = None
        last_kind = ErrorKind.UNKNOWN

        while attempts < self.config.retry_attempts:
            attempts += 1
            self._emit("worker:start", task=task.name, attempt=attempts)
            try:
                data = await self._execute_with_timeout(task)
            except Exception as e:
                last_error = e
                last_kind, retryable = classify_error(e)
                if retryable and attempts < self.config.retry_attempts:
                    self._emit(
                        "worker:retry",
                        task=task.name,
                        attempt=attempts,
                        error=str(e),
                    )
                    self.logger.warning(
                        f"Task {task.name} failed (attempt {attempts}/"
                        f"{self.config.retry_attempts}), retrying: {e}"
                    )
                    await asyncio.sleep(self.config.retry_delay_ms * attempts / 1000)
                    continue
                break
            else:
                duration_ms = (time.perf_counter() - started) * 1000
                self._metrics.record(duration_ms, success=True)
                self._emit(
                    "worker:complete",
                    task=task.name,
                    duration_ms=duration_ms,
                    attempts=attempts,
                )
                return SpawnResult(
                    task_name=task.name,
                    success=True,
                    data=data,
                    duration_ms=duration_ms,
                    attempts=attempts,
                )

        duration_ms = (time.perf_counter() - started) * 1000
        self._metrics.record(duration_ms, success=False)
        message = str(last_error) or type(last_error).__name__
        self._emit(
            "worker:error",
            task=task.name,
            error=message,
            duration_ms=duration_ms,
            attempts=attempts,
        )
        self.logger.error(f"Task {task.name} failed after {attempts} attempt(s): {message}")
        return SpawnResult(
            task_name=task.name,
            success=False,
            error=message,
            error_kind=last_kind,
            duration_ms=duration_ms,
            attempts=attempts,
        )

    async def _execute_with_timeout(self, task: Task) -> Any:
        timeout_s = self.config.timeout_ms / 1000
        try:
            return await asyncio.wait_for(self._invoke(task), timeout=timeout_s)
        except asyncio.TimeoutError:
            raise TaskTimeoutError(task.name, self.config.timeout_ms) from None

    @staticmethod
    async def _invoke(task: Task) -> Any:
        if inspect.iscoroutinefunction(task.handler):
            return await task.handler(task.payload)
        # Plain callables run in a worker thread so they cannot block the loop.
        result = await asyncio.to_thread(task.handler, task.payload)
        if inspect.isawaitable(result):
            return await result
        return result

    def _emit(self, event: str, **details: Any) -> None:
        if self._on_event is None:
            return
        try:
            self._on_event(event, details)
        except Exception:
            self.logger.warning(f"Engine event callback failed for {event}", exc_info=True)
