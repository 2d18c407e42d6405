"""Promise engine — pending/fulfilled state machine with reaction queues.

Only fulfilment is modelled. Settling a promise turns each registered
reaction into one microtask; the evaluator runs those microtasks and calls
back into :meth:`PromiseEngine.run_reaction`.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from .event_loop import EventLoopScheduler
from .state_types import (
    AdoptReaction,
    AllReaction,
    ExecutionState,
    FetchCompletion,
    PromiseRecord,
    PromiseState,
    RaceReaction,
    RunReaction,
    ThenReaction,
)
from .values import FunctionValue, ObjectRef, PromiseRef
from . import constants

logger = logging.getLogger(__name__)

Invoker = Callable[[FunctionValue, list[Any]], Any]

_REACTION_DESCRIPTIONS: dict[type, str] = {
    ThenReaction: constants.TASK_THEN,
    AllReaction: constants.TASK_ALL,
    RaceReaction: constants.TASK_RACE,
    AdoptReaction: constants.TASK_ADOPT,
}


class PromiseEngine:
    def __init__(self, state: ExecutionState, scheduler: EventLoopScheduler):
        self._state = state
        self._scheduler = scheduler

    # ── core state machine ───────────────────────────────────────

    def create(self) -> PromiseRef:
        addr = f"{constants.PROMISE_ADDR_PREFIX}{self._state.fresh_id()}"
        self._state.promises[addr] = PromiseRecord(addr=addr)
        return PromiseRef(addr)

    def record(self, promise: PromiseRef) -> PromiseRecord:
        return self._state.promises[promise.addr]

    def resolve(self, promise: PromiseRef, value: Any) -> None:
        """Fulfil *promise* once; later calls are no-ops."""
        rec = self.record(promise)
        if rec.is_settled:
            return
        rec.state = PromiseState.FULFILLED
        rec.value = value
        self._state.retain(value)
        reactions, rec.reactions = rec.reactions, []
        for reaction in reactions:
            self._schedule(reaction, value)

    def _schedule(self, reaction: Any, value: Any) -> None:
        self._scheduler.enqueue_microtask(
            _REACTION_DESCRIPTIONS[type(reaction)], RunReaction(reaction, value)
        )

    def _subscribe(self, promise: PromiseRef, reaction: Any) -> None:
        rec = self.record(promise)
        if rec.is_settled:
            self._schedule(reaction, rec.value)
        else:
            rec.reactions.append(reaction)

    def then(
        self, promise: PromiseRef, handler: Optional[FunctionValue]
    ) -> PromiseRef:
        derived = self.create()
        self._subscribe(promise, ThenReaction(handler=handler, derived=derived))
        return derived

    # ── combinators ──────────────────────────────────────────────

    def all(self, values: list[Any]) -> PromiseRef:
        aggregate = self.create()
        rec = self.record(aggregate)
        rec.slots = [None] * len(values)
        rec.remaining = len(values)
        for index, value in enumerate(values):
            if isinstance(value, PromiseRef):
                member = self.record(value)
                if member.is_settled:
                    rec.slots[index] = member.value
                    rec.remaining -= 1
                else:
                    member.reactions.append(AllReaction(aggregate, index))
            else:
                rec.slots[index] = value
                rec.remaining -= 1
        if rec.remaining == 0:
            self.resolve(aggregate, self._state.new_array(rec.slots))
        return aggregate

    def race(self, values: list[Any]) -> PromiseRef:
        aggregate = self.create()
        for value in values:
            if isinstance(value, PromiseRef):
                member = self.record(value)
                if member.is_settled:
                    self.resolve(aggregate, member.value)
                else:
                    member.reactions.append(RaceReaction(aggregate))
            else:
                self.resolve(aggregate, value)
        return aggregate

    def fetch(self, url: str, line: int = 0) -> PromiseRef:
        promise = self.create()
        self._scheduler.enqueue_macrotask(
            constants.TASK_FETCH.format(url=url), FetchCompletion(promise, url), line
        )
        return promise

    # ── task bodies ──────────────────────────────────────────────

    def complete_fetch(self, completion: FetchCompletion) -> None:
        response: ObjectRef = self._state.new_object(
            {"status": constants.FETCH_STATUS_OK, "url": completion.url}
        )
        self.resolve(completion.promise, response)

    def run_reaction(self, reaction: Any, value: Any, invoke: Invoker) -> None:
        if isinstance(reaction, ThenReaction):
            result = value
            if reaction.handler is not None:
                result = invoke(reaction.handler, [value])
            if isinstance(result, PromiseRef):
                self._subscribe(result, AdoptReaction(reaction.derived))
            else:
                self.resolve(reaction.derived, result)
        elif isinstance(reaction, AllReaction):
            rec = self.record(reaction.aggregate)
            rec.slots[reaction.index] = value
            rec.remaining -= 1
            if rec.remaining == 0:
                self.resolve(reaction.aggregate, self._state.new_array(rec.slots))
        elif isinstance(reaction, (RaceReaction, AdoptReaction)):
            target = (
                reaction.aggregate
                if isinstance(reaction, RaceReaction)
                else reaction.target
            )
            self.resolve(target, value)
        else:
            raise TypeError(f"Unknown promise reaction: {reaction!r}")
