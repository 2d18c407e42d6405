"""Tests for the scope resolver — declaration, lookup and closure capture."""

import pytest

from jstrace.errors import NameResolutionError
from jstrace.event_loop import EventLoopScheduler
from jstrace.scope import ScopeResolver
from jstrace.state_types import CallFrame, ExecutionState, InvokeCallback, ScopeKind
from jstrace.values import FunctionValue


def _resolver() -> tuple[ExecutionState, ScopeResolver]:
    state = ExecutionState()
    resolver = ScopeResolver(state)
    resolver.ensure_global()
    return state, resolver


class TestScopeLifetime:
    def test_single_global_scope(self):
        state, resolver = _resolver()
        assert len(state.scope_chain) == 1
        assert state.global_scope.kind == ScopeKind.GLOBAL
        assert resolver.ensure_global() is state.global_scope

    def test_push_links_parent_and_becomes_head(self):
        state, resolver = _resolver()
        block = resolver.push_scope(ScopeKind.BLOCK, "block")
        assert state.head_scope is block
        assert block.parent_id == state.global_scope.id

    def test_pop_is_lifo(self):
        state, resolver = _resolver()
        first = resolver.push_scope(ScopeKind.BLOCK)
        second = resolver.push_scope(ScopeKind.BLOCK)
        assert resolver.pop_scope() is second
        assert resolver.pop_scope() is first

    def test_cannot_pop_global(self):
        _, resolver = _resolver()
        with pytest.raises(RuntimeError):
            resolver.pop_scope()


class TestResolution:
    def test_inner_shadows_outer(self):
        _, resolver = _resolver()
        resolver.declare("x", 1)
        resolver.push_scope(ScopeKind.BLOCK)
        resolver.declare("x", 2)
        assert resolver.resolve("x") == 2
        resolver.pop_scope()
        assert resolver.resolve("x") == 1

    def test_undeclared_read_raises(self):
        _, resolver = _resolver()
        with pytest.raises(NameResolutionError) as exc_info:
            resolver.resolve("missing")
        assert exc_info.value.name == "missing"
        assert "missing is not defined" in str(exc_info.value)

    def test_assign_updates_first_match(self):
        state, resolver = _resolver()
        resolver.declare("x", 1)
        resolver.push_scope(ScopeKind.BLOCK)
        resolver.assign("x", 5)
        assert state.global_scope.variables["x"] == 5
        assert "x" not in state.head_scope.variables

    def test_assign_undeclared_declares_in_head(self):
        state, resolver = _resolver()
        block = resolver.push_scope(ScopeKind.BLOCK)
        resolver.assign("fresh", 7)
        assert block.variables["fresh"] == 7
        assert state.variables[-1].is_let

    def test_declare_records_variable(self):
        state, resolver = _resolver()
        resolver.declare("c", "v", "const")
        record = state.variables[-1]
        assert record.name == "c"
        assert record.is_const
        assert record.type == "string"
        assert record.scope_id == state.global_scope.id


class TestFrameVisibility:
    def test_frame_sees_own_scopes_then_closure(self):
        state, resolver = _resolver()
        resolver.declare("g", "global")
        defining = resolver.push_scope(ScopeKind.FUNCTION, "outer")
        resolver.declare("captured", 1)
        closure = resolver.capture()
        resolver.pop_scope()

        # An unrelated scope sits between the caller and the callee.
        resolver.push_scope(ScopeKind.BLOCK)
        resolver.declare("hidden", True)
        state.call_stack.append(
            CallFrame(
                id=99,
                function_name="inner",
                scope_depth=len(state.scope_chain),
                closure=closure,
            )
        )
        resolver.push_scope(ScopeKind.FUNCTION, "inner", parent_id=closure[0])

        assert resolver.resolve("captured") == 1
        assert resolver.resolve("g") == "global"
        assert not resolver.is_declared("hidden")
        assert defining.id in state.closures

    def test_capture_skips_global_registration(self):
        state, resolver = _resolver()
        ids = resolver.capture()
        assert ids == (state.global_scope.id,)
        assert state.closures == {}

    def test_function_scope_skips_blocks(self):
        state, resolver = _resolver()
        fn = resolver.push_scope(ScopeKind.FUNCTION, "f")
        resolver.push_scope(ScopeKind.BLOCK)
        assert resolver.function_scope() is fn


class TestRenewHead:
    def test_renewed_scope_copies_bindings_and_leaves_old_intact(self):
        state, resolver = _resolver()
        old = resolver.push_scope(ScopeKind.BLOCK, "for")
        resolver.declare("i", 0)

        fresh = resolver.renew_head()
        resolver.assign("i", 1)

        assert state.head_scope is fresh
        assert fresh.id != old.id
        assert fresh.name == "for"
        assert old.variables["i"] == 0
        assert fresh.variables["i"] == 1
        assert len(state.scope_chain) == 2


class TestPruneClosures:
    def _capture_in_function(self, resolver: ScopeResolver) -> tuple[int, ...]:
        resolver.push_scope(ScopeKind.FUNCTION, "make")
        resolver.declare("local", 1)
        closure = resolver.capture()
        resolver.pop_scope()
        return closure

    def test_unreferenced_capture_is_dropped(self):
        state, resolver = _resolver()
        self._capture_in_function(resolver)
        assert len(state.closures) == 1

        assert resolver.prune_closures() == 1
        assert state.closures == {}

    def test_function_bound_in_scope_keeps_its_closure(self):
        state, resolver = _resolver()
        closure = self._capture_in_function(resolver)
        resolver.declare(
            "f", FunctionValue(name="f", params=(), body=None, closure=closure)
        )

        assert resolver.prune_closures() == 0
        assert closure[0] in state.closures

    def test_function_reachable_through_closure_chain_is_kept(self):
        state, resolver = _resolver()
        inner_closure = self._capture_in_function(resolver)
        holder = resolver.push_scope(ScopeKind.FUNCTION, "holder")
        resolver.declare(
            "g", FunctionValue(name="g", params=(), body=None, closure=inner_closure)
        )
        outer_closure = resolver.capture()
        resolver.pop_scope()
        resolver.declare(
            "h", FunctionValue(name="h", params=(), body=None, closure=outer_closure)
        )

        resolver.prune_closures()

        assert set(state.closures) == {inner_closure[0], holder.id}

    def test_queued_callback_keeps_its_closure(self):
        state, resolver = _resolver()
        closure = self._capture_in_function(resolver)
        scheduler = EventLoopScheduler(state)
        callback = FunctionValue(name="cb", params=(), body=None, closure=closure)
        scheduler.enqueue_macrotask("cb", InvokeCallback(callback))

        assert resolver.prune_closures() == 0


class TestReferenceCounts:
    def test_binding_retains_and_rebinding_releases(self):
        state, resolver = _resolver()
        ref = state.new_array([])
        resolver.declare("a", ref)
        assert state.heap[ref.addr].references == 1
        resolver.assign("a", 0)
        assert state.heap[ref.addr].references == 0
