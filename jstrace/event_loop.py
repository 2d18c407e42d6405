"""Event-loop scheduler — microtask / macrotask queues and the drain loop."""

from __future__ import annotations

import logging
from typing import Any, Callable

from .state_types import ExecutionState, Task, TaskKind
from . import constants

logger = logging.getLogger(__name__)


class EventLoopScheduler:
    """Single-threaded cooperative scheduler over ``state.event_loop``.

    ``drain`` runs after the top-level program finishes. Each pass fully
    drains the microtask queue, then runs at most one macrotask followed by
    another microtask drain. The number of passes is capped by
    ``max_iterations``; hitting the cap stops the drain without failing the
    run.
    """

    def __init__(
        self,
        state: ExecutionState,
        max_iterations: int = constants.DEFAULT_EVENT_LOOP_ITERATIONS,
    ):
        self._state = state
        self._max_iterations = max_iterations
        self._order = 0
        self.tasks_executed = 0
        self.truncated = False

    def _enqueue(self, kind: TaskKind, description: str, body: Any, line: int) -> Task:
        self._order += 1
        task = Task(
            id=self._state.fresh_id(),
            kind=kind,
            description=description,
            body=body,
            created_at=self._order,
            line=line,
        )
        loop = self._state.event_loop
        queue = loop.microtask_queue if kind is TaskKind.MICRO else loop.macrotask_queue
        queue.append(task)
        logger.debug("Enqueued %s task #%d: %s", kind.value, task.id, description)
        return task

    def enqueue_microtask(self, description: str, body: Any, line: int = 0) -> Task:
        return self._enqueue(TaskKind.MICRO, description, body, line)

    def enqueue_macrotask(self, description: str, body: Any, line: int = 0) -> Task:
        return self._enqueue(TaskKind.MACRO, description, body, line)

    def _run(self, task: Task, execute: Callable[[Task], None]) -> None:
        loop = self._state.event_loop
        loop.currently_executing = task
        try:
            execute(task)
        finally:
            loop.currently_executing = None
        self.tasks_executed += 1

    def _drain_microtasks(self, execute: Callable[[Task], None]) -> bool:
        """Run queued microtasks; return False if the cap left some behind."""
        queue = self._state.event_loop.microtask_queue
        budget = self._max_iterations
        while queue and budget > 0:
            budget -= 1
            self._run(queue.popleft(), execute)
        return not queue

    def drain(self, execute: Callable[[Task], None]) -> bool:
        """Drain both queues through *execute*; return True if the cap was hit.

        A macrotask is never dequeued while microtasks are pending: a
        microtask drain that exhausts its cap ends the whole drain.
        """
        loop = self._state.event_loop
        remaining = self._max_iterations
        while not loop.is_idle() and remaining > 0:
            remaining -= 1
            if not self._drain_microtasks(execute):
                break
            if loop.macrotask_queue:
                self._run(loop.macrotask_queue.popleft(), execute)
                if not self._drain_microtasks(execute):
                    break

        self.truncated = not loop.is_idle()
        if self.truncated:
            logger.warning(
                "Event loop stopped after %d iterations with %d micro / %d macro "
                "tasks pending",
                self._max_iterations,
                len(loop.microtask_queue),
                len(loop.macrotask_queue),
            )
        return self.truncated
