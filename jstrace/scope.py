"""Scope & variable resolver over the run's scope chain."""

from __future__ import annotations

import logging
from typing import Any, Iterator, Optional

from .errors import NameResolutionError
from .state_types import (
    ExecutionState,
    InvokeCallback,
    RunReaction,
    Scope,
    ScopeKind,
    ThenReaction,
)
from .values import FunctionValue
from . import constants

logger = logging.getLogger(__name__)


class ScopeResolver:
    """Declares, resolves and assigns names against an ExecutionState.

    The chain in ``state.scope_chain`` is the activation stack (head first).
    Inside a call, lookup sees the scopes pushed since the frame was entered
    and then the callee's captured closure scopes; at top level it sees the
    whole chain.
    """

    def __init__(self, state: ExecutionState):
        self._state = state

    # ── scope lifetime ───────────────────────────────────────────

    def push_scope(
        self, kind: ScopeKind, name: str = "", parent_id: Optional[int] = None
    ) -> Scope:
        chain = self._state.scope_chain
        if parent_id is None and chain:
            parent_id = chain[0].id
        scope = Scope(
            id=self._state.fresh_id(), kind=kind, name=name, parent_id=parent_id
        )
        chain.insert(0, scope)
        return scope

    def pop_scope(self) -> Scope:
        chain = self._state.scope_chain
        if len(chain) <= 1:
            raise RuntimeError("Cannot pop the global scope")
        return chain.pop(0)

    def renew_head(self) -> Scope:
        """Replace the head scope with a fresh scope holding the same bindings.

        Used between iterations of a ``for (let ...)`` loop: closures created
        in one iteration keep the old scope, the next iteration writes to the
        new one.
        """
        old = self.pop_scope()
        scope = self.push_scope(old.kind, old.name, parent_id=old.parent_id)
        scope.variables.update(old.variables)
        return scope

    def ensure_global(self) -> Scope:
        if not self._state.scope_chain:
            return self.push_scope(ScopeKind.GLOBAL, constants.GLOBAL_SCOPE_NAME)
        return self._state.global_scope

    # ── lookup ───────────────────────────────────────────────────

    def _scope_by_id(self, scope_id: int) -> Optional[Scope]:
        if scope_id == self._state.global_scope.id:
            return self._state.global_scope
        return self._state.closures.get(scope_id)

    def visible_scopes(self) -> Iterator[Scope]:
        """Yield the scopes consulted for name lookup, innermost first."""
        chain = self._state.scope_chain
        frame = self._state.current_frame
        if frame is None:
            yield from chain
            return
        yield from chain[: len(chain) - frame.scope_depth]
        for scope_id in frame.closure:
            scope = self._scope_by_id(scope_id)
            if scope is not None:
                yield scope

    def _find(self, name: str) -> Optional[Scope]:
        return next(
            (scope for scope in self.visible_scopes() if name in scope.variables),
            None,
        )

    def is_declared(self, name: str) -> bool:
        return self._find(name) is not None

    def resolve(self, name: str) -> Any:
        scope = self._find(name)
        if scope is None:
            raise NameResolutionError(name)
        return scope.variables[name]

    # ── mutation ─────────────────────────────────────────────────

    def function_scope(self) -> Scope:
        """Nearest visible function (or global) scope; the target of `var`."""
        return next(
            scope
            for scope in self.visible_scopes()
            if scope.kind in (ScopeKind.FUNCTION, ScopeKind.GLOBAL)
        )

    def declare(
        self, name: str, value: Any, kind: str = "let", scope: Optional[Scope] = None
    ) -> None:
        scope = scope or self._state.head_scope
        if name in scope.variables:
            self._state.release(scope.variables[name])
        scope.variables[name] = value
        self._state.retain(value)
        self._state.record_variable(name, value, kind, scope.id)

    def assign(self, name: str, value: Any) -> None:
        scope = self._find(name)
        if scope is None:
            logger.debug(
                "Assignment to undeclared '%s' declares it in scope %d",
                name,
                self._state.head_scope.id,
            )
            self.declare(name, value, "let")
            return
        self._state.release(scope.variables[name])
        scope.variables[name] = value
        self._state.retain(value)

    def capture(self) -> tuple[int, ...]:
        """Return the ids of the visible scopes and retain them as closures."""
        global_id = self._state.global_scope.id
        ids: list[int] = []
        for scope in self.visible_scopes():
            ids.append(scope.id)
            if scope.id != global_id:
                self._state.closures[scope.id] = scope
        return tuple(ids)

    def _root_values(self) -> Iterator[Any]:
        state = self._state
        for scope in state.scope_chain:
            yield from scope.variables.values()
        for frame in state.call_stack:
            yield from frame.arguments
            yield from frame.local_variables.values()
        for obj in state.heap.values():
            yield from obj.fields.values()
            yield from obj.elements
        for record in state.promises.values():
            yield record.value
            yield from record.slots
            for reaction in record.reactions:
                if isinstance(reaction, ThenReaction):
                    yield reaction.handler
        loop = state.event_loop
        tasks = [*loop.microtask_queue, *loop.macrotask_queue]
        if loop.currently_executing is not None:
            tasks.append(loop.currently_executing)
        for task in tasks:
            body = task.body
            if isinstance(body, InvokeCallback):
                yield body.function
                yield from body.arguments
            elif isinstance(body, RunReaction):
                yield body.value
                if isinstance(body.reaction, ThenReaction):
                    yield body.reaction.handler

    def prune_closures(self) -> int:
        """Drop closure scopes that no reachable function still captures.

        Only values held by the state count as reachable, so this must run
        when no evaluation is in progress (empty call stack). Returns the
        number of scopes dropped.
        """
        state = self._state
        live = {scope.id for scope in state.scope_chain}
        for frame in state.call_stack:
            live.update(frame.closure)
        pending = list(self._root_values())
        for frame in state.call_stack:
            for scope_id in frame.closure:
                if scope_id in state.closures:
                    pending.extend(state.closures[scope_id].variables.values())
        while pending:
            value = pending.pop()
            if not isinstance(value, FunctionValue):
                continue
            for scope_id in value.closure:
                if scope_id in live:
                    continue
                live.add(scope_id)
                scope = state.closures.get(scope_id)
                if scope is not None:
                    pending.extend(scope.variables.values())
        dead = [scope_id for scope_id in state.closures if scope_id not in live]
        for scope_id in dead:
            del state.closures[scope_id]
        if dead:
            logger.debug("Pruned %d unreachable closure scopes", len(dead))
        return len(dead)
