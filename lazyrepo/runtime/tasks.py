"""Background task handles, cancellation tokens, and the result channel."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from queue import Empty, Queue


class CancellationToken:
    """Thread-safe flag; calling the token reports whether it was cancelled."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def __call__(self) -> bool:
        return self._event.is_set()


class TaskKind(Enum):
    MUTATION = "mutation"
    QUERY = "query"
    INTERACTIVE = "interactive"


@dataclass
class TaskHandle:
    task_id: int
    owner: int
    kind: TaskKind
    label: str
    network: bool = False
    token: CancellationToken = field(default_factory=CancellationToken)
    started: bool = False
    finished: bool = False

    def cancel(self) -> None:
        self.token.cancel()

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled


@dataclass(frozen=True)
class TaskResult:
    task_id: int
    owner: int
    kind: TaskKind
    label: str
    value: object = None
    error: Exception | None = None
    refresh: bool = False
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.cancelled


class ResultChannel:
    """Single ordered channel from worker threads to the control loop."""

    def __init__(self) -> None:
        self._queue: Queue[TaskResult] = Queue()

    def put(self, result: TaskResult) -> None:
        self._queue.put(result)

    def drain(self) -> list[TaskResult]:
        """Drain all completed results without blocking."""
        results: list[TaskResult] = []
        while True:
            try:
                results.append(self._queue.get_nowait())
            except Empty:
                return results

    def get(self, timeout: float | None = None) -> TaskResult | None:
        try:
            return self._queue.get(timeout=timeout)
        except Empty:
            return None


__all__ = [
    "CancellationToken",
    "ResultChannel",
    "TaskHandle",
    "TaskKind",
    "TaskResult",
]
