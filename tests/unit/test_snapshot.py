"""Tests for the step recorder — deep, cycle-safe, independent snapshots."""

from jstrace.snapshot import StepRecorder, clone_state
from jstrace.state_types import ExecutionState, HeapObject, ScopeKind, Scope
from jstrace.values import FunctionValue


class TestCloneState:
    def test_clone_is_independent(self):
        state = ExecutionState()
        state.scope_chain.append(Scope(id=1, kind=ScopeKind.GLOBAL, name="Global"))
        state.scope_chain[0].variables["x"] = 1

        clone = clone_state(state)
        clone.scope_chain[0].variables["x"] = 99

        assert state.scope_chain[0].variables["x"] == 1

    def test_self_referential_state_terminates_and_keeps_cycle(self):
        state = ExecutionState()
        obj = HeapObject(addr="obj_1")
        obj.fields["self"] = obj
        state.heap["obj_1"] = obj

        clone = clone_state(state)

        cloned = clone.heap["obj_1"]
        assert cloned is not obj
        assert cloned.fields["self"] is cloned

    def test_shared_structure_stays_shared_within_one_snapshot(self):
        state = ExecutionState()
        scope = Scope(id=2, kind=ScopeKind.FUNCTION, name="outer")
        state.scope_chain.append(scope)
        state.closures[2] = scope

        clone = clone_state(state)

        assert clone.closures[2] is clone.scope_chain[0]
        assert clone.closures[2] is not scope

    def test_snapshots_share_no_structure(self):
        state = ExecutionState()
        state.heap["arr_1"] = HeapObject(addr="arr_1", type_hint="Array")
        first, second = clone_state(state), clone_state(state)
        assert first.heap["arr_1"] is not second.heap["arr_1"]

    def test_function_values_are_copied_by_reference(self):
        state = ExecutionState()
        fn = FunctionValue(name="f", params=(), body=object())
        state.scope_chain.append(Scope(id=1, kind=ScopeKind.GLOBAL))
        state.scope_chain[0].variables["f"] = fn

        clone = clone_state(state)

        assert clone.scope_chain[0].variables["f"] is fn


class TestStepRecorder:
    def test_ordinals_start_at_one(self):
        recorder = StepRecorder(ExecutionState())
        first = recorder.record(1, "a")
        second = recorder.record(2, "b", column=4)
        assert (first.step, second.step) == (1, 2)
        assert second.column == 4
        assert len(recorder) == 2

    def test_snapshot_carries_ordinal_without_touching_live_state(self):
        state = ExecutionState()
        recorder = StepRecorder(state)
        step = recorder.record(3, "x")
        assert step.snapshot.execution_step == 1
        assert state.execution_step == 0

    def test_later_mutation_does_not_leak_into_recorded_step(self):
        state = ExecutionState()
        recorder = StepRecorder(state)
        recorder.record(1, "before")
        state.add_console_message("log", ["hello"])
        recorder.record(2, "after")

        steps = recorder.steps
        assert steps[0].snapshot.console_output == []
        assert steps[1].snapshot.console_output[0].content == ["hello"]

    def test_steps_is_an_immutable_tuple(self):
        recorder = StepRecorder(ExecutionState())
        recorder.record(1, "a")
        assert isinstance(recorder.steps, tuple)
