"""
Bounded-concurrency batch orchestrator.

Design:
- asyncio.Queue holds every unit up front; N workers pop until empty
  (each unit popped exactly once), then the gather acts as join barrier
- a unit's failure is caught at the unit boundary and never aborts siblings
- failures go to a capped list; overflow is counted, not stored
- optional per-batch deadline: units still queued or in flight when it
  expires are cancelled and recorded as "deadline_exceeded"
- results echo each unit's key so callers never rely on completion order
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, Iterable, Optional, TypeVar

from matchfacts.telemetry import record_batch_unit

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

DEADLINE_EXCEEDED = "deadline_exceeded"
MAX_ERROR_LENGTH = 200


@dataclass
class UnitResult(Generic[R]):
    key: str
    value: R


@dataclass
class BatchFailure:
    key: str
    error: str

    def to_dict(self) -> dict[str, str]:
        return {"key": self.key, "error": self.error}


@dataclass
class BatchResult(Generic[R]):
    name: str
    failure_cap: int
    results: list[UnitResult[R]] = field(default_factory=list)
    failures: list[BatchFailure] = field(default_factory=list)
    dropped_failures: int = 0

    def add_failure(self, key: str, error: str) -> None:
        if len(self.failures) < self.failure_cap:
            self.failures.append(BatchFailure(key, error[:MAX_ERROR_LENGTH]))
        else:
            self.dropped_failures += 1

    @property
    def failure_count(self) -> int:
        return len(self.failures) + self.dropped_failures

    def values(self) -> list[R]:
        return [unit.value for unit in self.results]


class BatchOrchestrator:
    """
    Runs independent async units with a fixed worker count.

    Args:
        concurrency: number of workers (small, 2-3 in practice).
        failure_cap: max failures kept in the result.
        deadline_seconds: optional wall-clock bound for the whole batch.
        name: low-cardinality batch kind for metrics/logs.
        unit_delay: politeness sleep between units on the same worker.
    """

    def __init__(
        self,
        concurrency: int = 2,
        failure_cap: int = 6,
        deadline_seconds: Optional[float] = None,
        name: str = "batch",
        unit_delay: float = 0.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.concurrency = concurrency
        self.failure_cap = max(0, failure_cap)
        self.deadline_seconds = deadline_seconds
        self.name = name
        self.unit_delay = unit_delay
        self._sleep = sleep

    async def run(
        self,
        items: Iterable[T],
        handler: Callable[[T], Awaitable[R]],
        key: Callable[[T], str] = str,
    ) -> BatchResult[R]:
        """
        Run `handler` once per item.

        Raises:
            ValueError: the input set is empty (nothing to do is a client error).
        """
        units = [(index, key(item), item) for index, item in enumerate(items)]
        if not units:
            raise ValueError("batch input is empty")

        queue: asyncio.Queue = asyncio.Queue()
        for unit in units:
            queue.put_nowait(unit)

        outcome: BatchResult[R] = BatchResult(name=self.name, failure_cap=self.failure_cap)
        completed: dict[int, UnitResult[R]] = {}
        finished: set[int] = set()

        async def worker() -> None:
            while True:
                try:
                    index, unit_key, item = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                try:
                    value = await handler(item)
                except Exception as e:
                    logger.warning("[BATCH] %s unit %s failed: %s", self.name, unit_key, e)
                    outcome.add_failure(unit_key, str(e) or type(e).__name__)
                    record_batch_unit(self.name, "error")
                else:
                    completed[index] = UnitResult(unit_key, value)
                    record_batch_unit(self.name, "ok")
                finished.add(index)
                queue.task_done()
                if self.unit_delay > 0 and not queue.empty():
                    await self._sleep(self.unit_delay)

        workers = [
            asyncio.create_task(worker())
            for _ in range(min(self.concurrency, len(units)))
        ]
        done, pending = await asyncio.wait(workers, timeout=self.deadline_seconds)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            task.result()

        for index, unit_key, _ in units:
            if index not in finished:
                outcome.add_failure(unit_key, DEADLINE_EXCEEDED)
                record_batch_unit(self.name, "deadline")

        # Input order, so repeated runs over the same input are identical
        outcome.results = [completed[index] for index in sorted(completed)]

        logger.info(
            "[BATCH] %s done: %d ok, %d failed (%d dropped past cap)",
            self.name, len(outcome.results), outcome.failure_count, outcome.dropped_failures,
        )
        return outcome
