"""Trace data types for step-by-step execution replay."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

from pydantic import BaseModel

from .parser import NO_SOURCE_LOCATION, SourceLocation
from .run_types import ExecutionStats
from .state_types import ConsoleMessage, ExecutionState


class Diagnostic(BaseModel):
    """A non-fatal problem noticed during evaluation (e.g. unsupported syntax)."""

    message: str
    location: SourceLocation = NO_SOURCE_LOCATION

    def __str__(self) -> str:
        return f"{self.message} at {self.location}"


@dataclass(frozen=True)
class ExecutionStep:
    """A single step in the execution trace.

    ``snapshot`` is an independent deep copy of the ExecutionState at the
    moment the step was recorded; mutating it affects no other step.
    """

    step: int
    line: int
    snapshot: ExecutionState
    description: str
    column: int = 0

    def to_dict(self) -> dict:
        return {
            "step": self.step,
            "line": self.line,
            "column": self.column,
            "description": self.description,
            "snapshot": self.snapshot.to_dict(),
        }


@dataclass(frozen=True)
class ExecutionTrace:
    """Complete, immutable trace of a run.

    Supports ``len()``, iteration and O(1) indexing. ``error`` holds the
    console error entry of a run that aborted; the steps captured before the
    fault are kept. ``final_state`` is a snapshot of the state when the run
    ended, which includes console output written after the last step.
    """

    steps: tuple[ExecutionStep, ...] = ()
    stats: ExecutionStats = field(default_factory=ExecutionStats)
    diagnostics: tuple[Diagnostic, ...] = ()
    error: Optional[ConsoleMessage] = None
    final_state: Optional[ExecutionState] = None

    def __len__(self) -> int:
        return len(self.steps)

    def __getitem__(self, index: int) -> ExecutionStep:
        return self.steps[index]

    def __iter__(self) -> Iterator[ExecutionStep]:
        return iter(self.steps)

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def console_output(self) -> tuple[ConsoleMessage, ...]:
        if self.final_state is None:
            return (self.error,) if self.error is not None else ()
        return tuple(self.final_state.console_output)

    def to_dict(self) -> dict[str, Any]:
        return {
            "steps": [s.to_dict() for s in self.steps],
            "stats": {
                "steps": self.stats.steps,
                "tasks_executed": self.stats.tasks_executed,
                "console_messages": self.stats.console_messages,
                "heap_objects": self.stats.heap_objects,
                "promises": self.stats.promises,
                "closures_captured": self.stats.closures_captured,
                "truncated": self.stats.truncated,
            },
            "diagnostics": [str(d) for d in self.diagnostics],
            "final_state": self.final_state.to_dict() if self.final_state else None,
            "error": (
                {"type": self.error.type, "content": list(self.error.content)}
                if self.error
                else None
            ),
        }


class TraceCursor:
    """Linear and random-access navigation over an ExecutionTrace.

    The cursor starts before the first step (``index == -1``).
    """

    def __init__(self, trace: ExecutionTrace):
        self._trace = trace
        self.index = -1

    @property
    def current(self) -> Optional[ExecutionStep]:
        if 0 <= self.index < len(self._trace):
            return self._trace[self.index]
        return None

    @property
    def at_end(self) -> bool:
        return self.index >= len(self._trace) - 1

    def next(self) -> Optional[ExecutionStep]:
        if not self.at_end:
            self.index += 1
        return self.current

    def previous(self) -> Optional[ExecutionStep]:
        if self.index > 0:
            self.index -= 1
        return self.current

    def jump(self, index: int) -> Optional[ExecutionStep]:
        if 0 <= index < len(self._trace):
            self.index = index
        return self.current

    def first(self) -> Optional[ExecutionStep]:
        return self.jump(0)

    def last(self) -> Optional[ExecutionStep]:
        return self.jump(len(self._trace) - 1)

    def reset(self) -> None:
        self.index = -1
