"""Step recorder — freezes the run state into ExecutionSteps."""

from __future__ import annotations

import copy
from typing import Any

from .state_types import ExecutionState
from .trace_types import ExecutionStep


def clone_state(state: ExecutionState) -> ExecutionState:
    """Return an independent deep copy of *state*.

    ``copy.deepcopy`` keeps an identity-keyed memo for the duration of one
    call, so an object reached twice (or through a cycle) maps to the same
    clone inside this snapshot. A fresh memo per call keeps snapshots from
    sharing structure with each other. Function values are immutable and
    copy to themselves.
    """
    memo: dict[int, Any] = {}
    return copy.deepcopy(state, memo)


class StepRecorder:
    """Observes an ExecutionState and appends a snapshot step on demand."""

    def __init__(self, state: ExecutionState):
        self._state = state
        self._steps: list[ExecutionStep] = []

    def __len__(self) -> int:
        return len(self._steps)

    def record(self, line: int, description: str, column: int = 0) -> ExecutionStep:
        ordinal = len(self._steps) + 1
        snapshot = clone_state(self._state)
        snapshot.execution_step = ordinal
        step = ExecutionStep(
            step=ordinal,
            line=line,
            snapshot=snapshot,
            description=description,
            column=column,
        )
        self._steps.append(step)
        return step

    @property
    def steps(self) -> tuple[ExecutionStep, ...]:
        return tuple(self._steps)
