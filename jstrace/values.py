"""Dynamic values of the traced language and their coercion rules.

Values form a closed union:

    Number     int | float (never bool)
    String     str
    Boolean    bool
    Null       None
    Undefined  UNDEFINED
    Function   FunctionValue
    ObjectRef  ObjectRef  -> ExecutionState.heap
    PromiseRef PromiseRef -> ExecutionState.promises
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Union


class Undefined:
    """Singleton for the language's ``undefined``."""

    _instance: Undefined | None = None

    def __new__(cls) -> Undefined:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "undefined"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> Undefined:
        return self

    def __deepcopy__(self, memo) -> Undefined:
        return self


UNDEFINED = Undefined()


@dataclass(frozen=True, eq=False)
class FunctionValue:
    """A first-class function: syntax-tree body plus captured scope ids.

    ``closure`` lists the ids of the scopes visible at the definition site,
    innermost first. Instances are immutable and hold tree-sitter nodes, so
    deep copies return the same object.
    """

    name: str
    params: tuple[str, ...]
    body: Any
    closure: tuple[int, ...] = ()
    line: int = 0
    is_arrow: bool = False

    def __deepcopy__(self, memo) -> FunctionValue:
        return self

    def __repr__(self) -> str:
        return f"<function {self.name}({', '.join(self.params)})>"


@dataclass(frozen=True)
class ObjectRef:
    addr: str


@dataclass(frozen=True)
class PromiseRef:
    addr: str


JSValue = Union[int, float, str, bool, None, Undefined, FunctionValue, ObjectRef, PromiseRef]


# ── type tests ───────────────────────────────────────────────────


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_nullish(value: Any) -> bool:
    return value is None or value is UNDEFINED


def type_of(value: Any) -> str:
    """Return the ``typeof`` string for *value*."""
    if value is UNDEFINED:
        return "undefined"
    if isinstance(value, bool):
        return "boolean"
    if is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, FunctionValue):
        return "function"
    return "object"


def truthy(value: Any) -> bool:
    if is_nullish(value):
        return False
    if isinstance(value, bool):
        return value
    if is_number(value):
        return not (value == 0 or math.isnan(value))
    if isinstance(value, str):
        return value != ""
    return True


# ── conversions ──────────────────────────────────────────────────


def format_number(value: int | float) -> str:
    if isinstance(value, int):
        return str(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


def to_js_string(value: Any, heap: dict | None = None) -> str:
    """String conversion as performed by ``+`` concatenation and ``String()``."""
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if is_number(value):
        return format_number(value)
    if isinstance(value, str):
        return value
    if isinstance(value, FunctionValue):
        return f"function {value.name}() {{ [code] }}"
    if isinstance(value, PromiseRef):
        return "[object Promise]"
    if isinstance(value, ObjectRef):
        obj = (heap or {}).get(value.addr)
        if obj is not None and obj.is_array:
            return ",".join(
                "" if is_nullish(el) else to_js_string(el, heap) for el in obj.elements
            )
        return "[object Object]"
    return str(value)


def to_number(value: Any, heap: dict | None = None) -> int | float:
    if value is UNDEFINED:
        return math.nan
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if is_number(value):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            return math.nan
    if isinstance(value, ObjectRef):
        return to_number(to_js_string(value, heap))
    return math.nan


def to_property_key(value: Any) -> str:
    if is_number(value):
        return format_number(value)
    return to_js_string(value)


# ── equality ─────────────────────────────────────────────────────


def strict_equals(a: Any, b: Any) -> bool:
    if is_nullish(a) or is_nullish(b):
        return a is b
    if type_of(a) != type_of(b):
        return False
    if isinstance(a, FunctionValue):
        return a is b
    return a == b


def loose_equals(a: Any, b: Any, heap: dict | None = None) -> bool:
    if is_nullish(a) and is_nullish(b):
        return True
    if is_nullish(a) or is_nullish(b):
        return False
    if type_of(a) == type_of(b):
        return strict_equals(a, b)
    if isinstance(a, bool) or isinstance(b, bool):
        return loose_equals(to_number(a), to_number(b), heap)
    if is_number(a) and isinstance(b, str):
        return a == to_number(b)
    if isinstance(a, str) and is_number(b):
        return to_number(a) == b
    if isinstance(a, (ObjectRef, PromiseRef, FunctionValue)):
        return loose_equals(to_js_string(a, heap), b, heap)
    if isinstance(b, (ObjectRef, PromiseRef, FunctionValue)):
        return loose_equals(a, to_js_string(b, heap), heap)
    return False


# ── operators ────────────────────────────────────────────────────


def _divide(a: float, b: float) -> float:
    if b == 0:
        if a == 0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1, b)
    return a / b


def _remainder(a: float, b: float) -> float:
    if b == 0 or math.isinf(a) or math.isnan(a) or math.isnan(b):
        return math.nan
    return math.fmod(a, b)


def _compare(op: str, a: Any, b: Any, heap: dict | None) -> bool:
    if isinstance(a, str) and isinstance(b, str):
        x, y = a, b
    else:
        x, y = to_number(a, heap), to_number(b, heap)
        if math.isnan(x) or math.isnan(y):
            return False
    return Operators.COMPARISONS[op](x, y)


def _add(a: Any, b: Any, heap: dict | None) -> Any:
    if isinstance(a, (ObjectRef, PromiseRef, FunctionValue)):
        a = to_js_string(a, heap)
    if isinstance(b, (ObjectRef, PromiseRef, FunctionValue)):
        b = to_js_string(b, heap)
    if isinstance(a, str) or isinstance(b, str):
        return to_js_string(a, heap) + to_js_string(b, heap)
    return to_number(a) + to_number(b)


class Operators:
    """Binary and unary operator evaluation with dynamic coercion."""

    class _Unsupported:
        """Sentinel returned for operators outside the supported set."""

        def __repr__(self) -> str:
            return "UNSUPPORTED"

    UNSUPPORTED = _Unsupported()

    COMPARISONS: dict[str, Any] = {
        "<": lambda x, y: x < y,
        "<=": lambda x, y: x <= y,
        ">": lambda x, y: x > y,
        ">=": lambda x, y: x >= y,
    }

    BINOP_TABLE: dict[str, Any] = {
        "+": _add,
        "-": lambda a, b, h: to_number(a, h) - to_number(b, h),
        "*": lambda a, b, h: to_number(a, h) * to_number(b, h),
        "/": lambda a, b, h: _divide(to_number(a, h), to_number(b, h)),
        "%": lambda a, b, h: _remainder(to_number(a, h), to_number(b, h)),
        "==": lambda a, b, h: loose_equals(a, b, h),
        "!=": lambda a, b, h: not loose_equals(a, b, h),
        "===": lambda a, b, h: strict_equals(a, b),
        "!==": lambda a, b, h: not strict_equals(a, b),
        "<": lambda a, b, h: _compare("<", a, b, h),
        "<=": lambda a, b, h: _compare("<=", a, b, h),
        ">": lambda a, b, h: _compare(">", a, b, h),
        ">=": lambda a, b, h: _compare(">=", a, b, h),
    }

    @classmethod
    def eval_binop(cls, op: str, lhs: Any, rhs: Any, heap: dict | None = None) -> Any:
        fn = cls.BINOP_TABLE.get(op)
        if fn is None:
            return cls.UNSUPPORTED
        return fn(lhs, rhs, heap)

    @classmethod
    def eval_unop(cls, op: str, operand: Any, heap: dict | None = None) -> Any:
        if op == "!":
            return not truthy(operand)
        if op == "-":
            return -to_number(operand, heap)
        if op == "+":
            return to_number(operand, heap)
        if op == "typeof":
            return type_of(operand)
        if op == "void":
            return UNDEFINED
        return cls.UNSUPPORTED
