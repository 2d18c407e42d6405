"""Execution state — data types (pure data, no business logic)."""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict

from .values import UNDEFINED, FunctionValue, ObjectRef, PromiseRef, type_of
from . import constants


class ScopeKind(str, Enum):
    GLOBAL = "global"
    FUNCTION = "function"
    BLOCK = "block"
    MODULE = "module"


class TaskKind(str, Enum):
    MICRO = "micro"
    MACRO = "macro"


class PromiseState(str, Enum):
    PENDING = "pending"
    FULFILLED = "fulfilled"


# ── Records (display / wire) ─────────────────────────────────────


class ConsoleMessage(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: int
    type: Literal["log", "error", "warn", "info"] = "log"
    content: list[Any] = []
    timestamp: float = 0.0


class VariableRecord(BaseModel):
    """Display-only record of a declaration; never consulted for lookup."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    value: Any = None
    type: str = "undefined"
    scope_id: int
    is_const: bool = False
    is_let: bool = False


# ── Deferred task bodies ─────────────────────────────────────────


@dataclass(frozen=True)
class ThenReaction:
    handler: Optional[FunctionValue]
    derived: PromiseRef


@dataclass(frozen=True)
class AllReaction:
    aggregate: PromiseRef
    index: int


@dataclass(frozen=True)
class RaceReaction:
    aggregate: PromiseRef


@dataclass(frozen=True)
class AdoptReaction:
    """Settles *target* with the value of a promise returned by a handler."""

    target: PromiseRef


@dataclass(frozen=True)
class InvokeCallback:
    function: FunctionValue
    arguments: tuple[Any, ...] = ()


@dataclass(frozen=True)
class FetchCompletion:
    promise: PromiseRef
    url: str


@dataclass(frozen=True)
class RunReaction:
    reaction: Any  # ThenReaction | AllReaction | RaceReaction | AdoptReaction
    value: Any


@dataclass
class Task:
    id: int
    kind: TaskKind
    description: str
    body: Any  # InvokeCallback | FetchCompletion | RunReaction
    created_at: int
    line: int = 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.kind.value,
            "description": self.description,
            "created_at": self.created_at,
            "line": self.line,
        }


# ── Mutable run state ────────────────────────────────────────────


@dataclass
class HeapObject:
    addr: str
    type_hint: str = "Object"
    fields: dict[str, Any] = field(default_factory=dict)
    elements: list[Any] = field(default_factory=list)
    references: int = 0

    @property
    def is_array(self) -> bool:
        return self.type_hint == "Array"

    def to_dict(self) -> dict:
        d: dict[str, Any] = {
            "id": self.addr,
            "type": self.type_hint,
            "references": self.references,
        }
        if self.is_array:
            d["value"] = [serialize_value(v) for v in self.elements]
        else:
            d["value"] = {k: serialize_value(v) for k, v in self.fields.items()}
        return d


@dataclass
class PromiseRecord:
    addr: str
    state: PromiseState = PromiseState.PENDING
    value: Any = UNDEFINED
    reactions: list[Any] = field(default_factory=list)
    slots: list[Any] = field(default_factory=list)
    remaining: int = 0

    @property
    def is_settled(self) -> bool:
        return self.state is not PromiseState.PENDING

    def to_dict(self) -> dict:
        return {
            "id": self.addr,
            "state": self.state.value,
            "value": serialize_value(self.value),
            "reactions": len(self.reactions),
        }


@dataclass
class Scope:
    id: int
    kind: ScopeKind
    name: str = ""
    variables: dict[str, Any] = field(default_factory=dict)
    parent_id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.kind.value,
            "name": self.name,
            "variables": {k: serialize_value(v) for k, v in self.variables.items()},
            "parent_id": self.parent_id,
        }


@dataclass
class CallFrame:
    id: int
    function_name: str
    line: int = 0
    arguments: list[Any] = field(default_factory=list)
    local_variables: dict[str, Any] = field(default_factory=dict)
    scope_id: Optional[int] = None
    scope_depth: int = 0  # scope-chain length when the frame was entered
    closure: tuple[int, ...] = ()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "function_name": self.function_name,
            "line": self.line,
            "arguments": [serialize_value(v) for v in self.arguments],
            "local_variables": {
                k: serialize_value(v) for k, v in self.local_variables.items()
            },
            "scope_id": self.scope_id,
        }


@dataclass
class EventLoopState:
    microtask_queue: deque[Task] = field(default_factory=deque)
    macrotask_queue: deque[Task] = field(default_factory=deque)
    currently_executing: Optional[Task] = None

    def is_idle(self) -> bool:
        return not self.microtask_queue and not self.macrotask_queue

    def to_dict(self) -> dict:
        return {
            "microtask_queue": [t.to_dict() for t in self.microtask_queue],
            "callback_queue": [t.to_dict() for t in self.macrotask_queue],
            "currently_executing": (
                self.currently_executing.to_dict()
                if self.currently_executing
                else None
            ),
        }


def serialize_value(v: Any) -> Any:
    if v is UNDEFINED:
        return {"__undefined__": True}
    if isinstance(v, FunctionValue):
        return {"__function__": v.name, "params": list(v.params), "line": v.line}
    if isinstance(v, ObjectRef):
        return {"__ref__": v.addr}
    if isinstance(v, PromiseRef):
        return {"__promise__": v.addr}
    if isinstance(v, float) and (v != v or v in (float("inf"), float("-inf"))):
        return repr(v)
    return v


@dataclass
class ExecutionState:
    call_stack: list[CallFrame] = field(default_factory=list)
    scope_chain: list[Scope] = field(default_factory=list)  # index 0 = innermost
    heap: dict[str, HeapObject] = field(default_factory=dict)
    promises: dict[str, PromiseRecord] = field(default_factory=dict)
    closures: dict[int, Scope] = field(default_factory=dict)
    variables: list[VariableRecord] = field(default_factory=list)
    event_loop: EventLoopState = field(default_factory=EventLoopState)
    console_output: list[ConsoleMessage] = field(default_factory=list)
    execution_step: int = 0
    id_counter: int = 0

    def fresh_id(self) -> int:
        self.id_counter += 1
        return self.id_counter

    @property
    def current_frame(self) -> Optional[CallFrame]:
        return self.call_stack[-1] if self.call_stack else None

    @property
    def head_scope(self) -> Scope:
        return self.scope_chain[0]

    @property
    def global_scope(self) -> Scope:
        return self.scope_chain[-1]

    # ── heap helpers ─────────────────────────────────────────────

    def new_array(self, elements: list[Any]) -> ObjectRef:
        addr = f"{constants.ARR_ADDR_PREFIX}{self.fresh_id()}"
        self.heap[addr] = HeapObject(addr=addr, type_hint="Array")
        for el in elements:
            self.retain(el)
        self.heap[addr].elements = list(elements)
        return ObjectRef(addr)

    def new_object(self, fields: dict[str, Any]) -> ObjectRef:
        addr = f"{constants.OBJ_ADDR_PREFIX}{self.fresh_id()}"
        self.heap[addr] = HeapObject(addr=addr, type_hint="Object")
        for v in fields.values():
            self.retain(v)
        self.heap[addr].fields = dict(fields)
        return ObjectRef(addr)

    def retain(self, value: Any) -> None:
        if isinstance(value, ObjectRef) and value.addr in self.heap:
            self.heap[value.addr].references += 1

    def release(self, value: Any) -> None:
        if isinstance(value, ObjectRef) and value.addr in self.heap:
            obj = self.heap[value.addr]
            obj.references = max(0, obj.references - 1)

    def add_console_message(self, kind: str, content: list[Any]) -> ConsoleMessage:
        message = ConsoleMessage(
            id=self.fresh_id(),
            type=kind,
            content=list(content),
            timestamp=time.time(),
        )
        self.console_output.append(message)
        return message

    def record_variable(self, name: str, value: Any, kind: str, scope_id: int) -> None:
        self.variables.append(
            VariableRecord(
                name=name,
                value=value,
                type=type_of(value),
                scope_id=scope_id,
                is_const=kind == "const",
                is_let=kind == "let",
            )
        )

    def to_dict(self) -> dict:
        return {
            "execution_step": self.execution_step,
            "call_stack": [f.to_dict() for f in self.call_stack],
            "scope_chain": [s.to_dict() for s in self.scope_chain],
            "memory_heap": [o.to_dict() for o in self.heap.values()],
            "promises": [p.to_dict() for p in self.promises.values()],
            "closures": {str(k): s.to_dict() for k, s in self.closures.items()},
            "variables": [
                {
                    "name": v.name,
                    "value": serialize_value(v.value),
                    "type": v.type,
                    "scope_id": v.scope_id,
                    "is_const": v.is_const,
                    "is_let": v.is_let,
                }
                for v in self.variables
            ],
            "event_loop": self.event_loop.to_dict(),
            "console_output": [
                {
                    "id": m.id,
                    "type": m.type,
                    "content": [serialize_value(c) for c in m.content],
                    "timestamp": m.timestamp,
                }
                for m in self.console_output
            ],
        }
