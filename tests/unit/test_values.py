"""Tests for value coercion and operator evaluation."""

import math

from jstrace.state_types import ExecutionState
from jstrace.values import (
    UNDEFINED,
    FunctionValue,
    Operators,
    Undefined,
    format_number,
    loose_equals,
    strict_equals,
    to_js_string,
    to_number,
    truthy,
    type_of,
)


class TestUndefined:
    def test_singleton(self):
        assert Undefined() is UNDEFINED

    def test_falsy(self):
        assert not UNDEFINED

    def test_survives_deepcopy(self):
        import copy

        assert copy.deepcopy([UNDEFINED])[0] is UNDEFINED


class TestTypeOf:
    def test_primitives(self):
        assert type_of(1) == "number"
        assert type_of(1.5) == "number"
        assert type_of("a") == "string"
        assert type_of(True) == "boolean"
        assert type_of(UNDEFINED) == "undefined"
        assert type_of(None) == "object"

    def test_function(self):
        fn = FunctionValue(name="f", params=(), body=None)
        assert type_of(fn) == "function"


class TestCoercion:
    def test_truthiness(self):
        assert not truthy(0)
        assert not truthy("")
        assert not truthy(None)
        assert not truthy(math.nan)
        assert truthy("0")
        assert truthy(-1)

    def test_to_number(self):
        assert to_number("42") == 42
        assert to_number(" 2.5 ") == 2.5
        assert to_number("") == 0
        assert math.isnan(to_number("abc"))
        assert math.isnan(to_number(UNDEFINED))
        assert to_number(None) == 0
        assert to_number(True) == 1

    def test_format_number_drops_integral_fraction(self):
        assert format_number(3.0) == "3"
        assert format_number(2.5) == "2.5"
        assert format_number(math.inf) == "Infinity"
        assert format_number(math.nan) == "NaN"

    def test_array_to_string_joins_elements(self):
        state = ExecutionState()
        ref = state.new_array([1, "b", None])
        assert to_js_string(ref, state.heap) == "1,b,"


class TestEquality:
    def test_strict_distinguishes_types(self):
        assert not strict_equals("5", 5)
        assert strict_equals(5, 5.0)
        assert not strict_equals(None, UNDEFINED)

    def test_loose_coerces(self):
        assert loose_equals("5", 5)
        assert loose_equals(None, UNDEFINED)
        assert loose_equals(True, 1)
        assert not loose_equals(None, 0)


class TestOperators:
    def test_string_concatenation(self):
        assert Operators.eval_binop("+", "1", 2) == "12"
        assert Operators.eval_binop("+", 1, 2) == 3

    def test_arithmetic_coerces_strings(self):
        assert Operators.eval_binop("-", "10", 4) == 6
        assert Operators.eval_binop("*", "3", "4") == 12

    def test_division_by_zero(self):
        assert Operators.eval_binop("/", 1, 0) == math.inf
        assert Operators.eval_binop("/", -1, 0) == -math.inf
        assert math.isnan(Operators.eval_binop("/", 0, 0))

    def test_remainder(self):
        assert Operators.eval_binop("%", 10, 3) == 1
        assert math.isnan(Operators.eval_binop("%", 1, 0))

    def test_comparisons(self):
        assert Operators.eval_binop("<", 1, 2) is True
        assert Operators.eval_binop(">=", "b", "a") is True
        assert Operators.eval_binop("<", UNDEFINED, 1) is False

    def test_unsupported_operator(self):
        assert Operators.eval_binop("**", 2, 3) is Operators.UNSUPPORTED
        assert Operators.eval_unop("delete", 1) is Operators.UNSUPPORTED

    def test_unary(self):
        assert Operators.eval_unop("!", 0) is True
        assert Operators.eval_unop("-", "3") == -3
        assert Operators.eval_unop("typeof", "x") == "string"
        assert Operators.eval_unop("void", 1) is UNDEFINED
