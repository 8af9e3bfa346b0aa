"""Git operation executor.

Mutating commands go through one FIFO writer thread, so at most one of them
touches the repository at a time. Read-only queries run on their own daemon
threads. Both report through one ``ResultChannel`` drained by the loop.
"""

from __future__ import annotations

import logging
import subprocess
import threading
from collections import deque
from collections.abc import Callable, Sequence
from contextlib import AbstractContextManager
from dataclasses import dataclass

from ..commands.actions import GitCommand
from ..errors import ApplyPatchFailed, Cancelled, CommandFailed, LazyRepoError, ToolUnavailable
from ..git.process import ProcessResult, ProcessRunner, run_process
from ..git.repo import RepoContext, git_argv
from .tasks import ResultChannel, TaskHandle, TaskKind, TaskResult

logger = logging.getLogger(__name__)

QueryFn = Callable[[Callable[[], bool]], object]


@dataclass
class _MutationRequest:
    handle: TaskHandle
    commands: tuple[GitCommand, ...]


class GitOperationExecutor:
    """Serialized writer plus concurrent cancellable readers for one repository."""

    def __init__(
        self,
        ctx: RepoContext,
        channel: ResultChannel | None = None,
        runner: ProcessRunner = run_process,
    ) -> None:
        self.ctx = ctx
        self.channel = channel if channel is not None else ResultChannel()
        self._runner = runner
        self._cond = threading.Condition()
        self._mutations: deque[_MutationRequest] = deque()
        self._in_flight: TaskHandle | None = None
        self._queries: dict[int, TaskHandle] = {}
        self._closed_owners: set[int] = set()
        self._next_id = 1
        self._writer: threading.Thread | None = None
        self._stopping = False

    # Submission

    def _new_handle(self, owner: int, kind: TaskKind, label: str, network: bool = False) -> TaskHandle:
        handle = TaskHandle(task_id=self._next_id, owner=owner, kind=kind, label=label, network=network)
        self._next_id += 1
        return handle

    def submit_mutation(self, commands: Sequence[GitCommand], owner: int, label: str = "") -> TaskHandle:
        """Queue ``commands`` to run in order on the writer thread."""
        commands = tuple(commands)
        if not commands:
            raise ValueError("mutation without commands")
        if any(command.interactive for command in commands):
            raise ValueError("interactive commands must go through run_interactive")
        with self._cond:
            handle = self._new_handle(
                owner,
                TaskKind.MUTATION,
                label or commands[0].describe(),
                network=any(command.network for command in commands),
            )
            self._mutations.append(_MutationRequest(handle, commands))
            if self._writer is None or not self._writer.is_alive():
                self._writer = threading.Thread(target=self._writer_loop, name="lazyrepo-writer", daemon=True)
                self._writer.start()
            self._cond.notify_all()
        logger.debug("queued mutation #%d: %s", handle.task_id, handle.label)
        return handle

    def submit_query(self, fn: QueryFn, owner: int, label: str = "query") -> TaskHandle:
        """Run ``fn(should_cancel)`` on its own thread; its return value is the result."""
        with self._cond:
            handle = self._new_handle(owner, TaskKind.QUERY, label)
            self._queries[handle.task_id] = handle
        worker = threading.Thread(
            target=self._run_query,
            args=(handle, fn),
            name=f"lazyrepo-query-{handle.task_id}",
            daemon=True,
        )
        worker.start()
        return handle

    # Workers

    def _writer_loop(self) -> None:
        while True:
            with self._cond:
                while not self._mutations and not self._stopping:
                    self._cond.wait()
                if self._stopping:
                    return
                request = self._mutations.popleft()
                handle = request.handle
                if handle.cancelled:
                    self._finish(handle, TaskResult(handle.task_id, handle.owner, handle.kind, handle.label, cancelled=True))
                    continue
                handle.started = True
                self._in_flight = handle
            try:
                result = self._run_mutation(request)
            except Exception as exc:
                logger.exception("mutation #%d crashed", handle.task_id)
                result = TaskResult(handle.task_id, handle.owner, handle.kind, handle.label, error=exc)
            with self._cond:
                self._in_flight = None
                self._finish(handle, result)

    def _finish(self, handle: TaskHandle, result: TaskResult) -> None:
        """Publish ``result``; caller holds ``self._cond``."""
        handle.finished = True
        self.channel.put(result)
        self._cond.notify_all()

    def _run_mutation(self, request: _MutationRequest) -> TaskResult:
        handle = request.handle
        outputs: list[ProcessResult] = []
        for command in request.commands:
            result = self.ctx.git(
                command.args,
                stdin=command.stdin,
                read_only=False,
                should_cancel=handle.token if command.network else None,
                runner=self._runner,
            )
            outputs.append(result)
            if result.cancelled:
                logger.debug("mutation #%d cancelled during %s", handle.task_id, command.describe())
                return TaskResult(
                    handle.task_id,
                    handle.owner,
                    handle.kind,
                    handle.label,
                    value=tuple(outputs),
                    error=Cancelled(command.describe()),
                    cancelled=True,
                    refresh=True,
                )
            if result.returncode != 0:
                if command.is_apply:
                    error: CommandFailed = ApplyPatchFailed(result.argv, result.returncode, result.stderr, command.stdin or "")
                else:
                    error = CommandFailed(result.argv, result.returncode, result.stderr)
                logger.info("mutation #%d failed: %s", handle.task_id, error.summary())
                # Earlier steps may already have changed the repository.
                return TaskResult(
                    handle.task_id,
                    handle.owner,
                    handle.kind,
                    handle.label,
                    value=tuple(outputs),
                    error=error,
                    refresh=len(outputs) > 1,
                )
        logger.debug("mutation #%d done: %s", handle.task_id, handle.label)
        return TaskResult(handle.task_id, handle.owner, handle.kind, handle.label, value=tuple(outputs), refresh=True)

    def _run_query(self, handle: TaskHandle, fn: QueryFn) -> None:
        handle.started = True
        try:
            value = fn(handle.token)
            result = TaskResult(handle.task_id, handle.owner, handle.kind, handle.label, value=value)
        except Cancelled:
            result = TaskResult(handle.task_id, handle.owner, handle.kind, handle.label, cancelled=True)
        except LazyRepoError as exc:
            result = TaskResult(handle.task_id, handle.owner, handle.kind, handle.label, error=exc)
        except Exception as exc:
            logger.exception("query #%d (%s) crashed", handle.task_id, handle.label)
            result = TaskResult(handle.task_id, handle.owner, handle.kind, handle.label, error=exc)
        with self._cond:
            self._queries.pop(handle.task_id, None)
            if handle.cancelled and not result.cancelled:
                result = TaskResult(handle.task_id, handle.owner, handle.kind, handle.label, cancelled=True)
            self._finish(handle, result)

    # Interactive commands

    def run_interactive(
        self,
        command: GitCommand,
        owner: int,
        release_terminal: Callable[[], AbstractContextManager],
        wait_timeout: float | None = None,
    ) -> TaskResult:
        """Run ``command`` on the calling thread with the terminal released.

        Waits for queued mutations to finish first so the writer discipline
        holds.
        """
        self.wait_idle(wait_timeout, include_queries=False)
        with self._cond:
            handle = self._new_handle(owner, TaskKind.INTERACTIVE, command.describe())
        argv = git_argv(self.ctx.root, command.args)
        logger.debug("interactive: %s", " ".join(argv))
        with release_terminal():
            try:
                proc = subprocess.run(argv, cwd=str(self.ctx.root), check=False)
            except OSError as exc:
                error = ToolUnavailable(f"failed to launch git: {exc}")
                return TaskResult(handle.task_id, owner, handle.kind, handle.label, error=error)
        if proc.returncode != 0:
            error = CommandFailed(tuple(argv), proc.returncode, "")
            return TaskResult(handle.task_id, owner, handle.kind, handle.label, error=error, refresh=True)
        return TaskResult(handle.task_id, owner, handle.kind, handle.label, refresh=True)

    # Cancellation and state

    def cancel_owner(self, owner: int) -> None:
        """Cancel read tasks of a popped screen and drop their future results."""
        with self._cond:
            self._closed_owners.add(owner)
            for handle in self._queries.values():
                if handle.owner == owner:
                    handle.cancel()

    def cancel_busy(self) -> bool:
        """Cancel the in-flight network command and every not-yet-started mutation."""
        cancelled = False
        with self._cond:
            for request in self._mutations:
                request.handle.cancel()
                cancelled = True
            if self._in_flight is not None and self._in_flight.network:
                self._in_flight.cancel()
                cancelled = True
        return cancelled

    @property
    def busy(self) -> bool:
        with self._cond:
            return self._in_flight is not None or bool(self._mutations)

    @property
    def network_busy(self) -> bool:
        with self._cond:
            if self._in_flight is not None and self._in_flight.network:
                return True
            return any(request.handle.network for request in self._mutations)

    def busy_label(self) -> str:
        with self._cond:
            if self._in_flight is not None:
                return self._in_flight.label
            if self._mutations:
                return self._mutations[0].handle.label
        return ""

    def wait_idle(self, timeout: float | None = None, include_queries: bool = True) -> bool:
        """Block until no mutation (and optionally no query) is pending."""

        def idle() -> bool:
            if self._in_flight is not None or self._mutations:
                return False
            return not (include_queries and self._queries)

        with self._cond:
            return self._cond.wait_for(idle, timeout=timeout)

    def drain(self) -> list[TaskResult]:
        """Completed results in delivery order, minus ones nobody should see."""
        delivered: list[TaskResult] = []
        for result in self.channel.drain():
            if result.kind is TaskKind.QUERY and (result.cancelled or result.owner in self._closed_owners):
                logger.debug("dropping query #%d (%s)", result.task_id, result.label)
                continue
            delivered.append(result)
        return delivered

    def shutdown(self) -> None:
        with self._cond:
            self._stopping = True
            for request in self._mutations:
                request.handle.cancel()
            for handle in self._queries.values():
                handle.cancel()
            self._cond.notify_all()


__all__ = [
    "GitOperationExecutor",
    "QueryFn",
]
