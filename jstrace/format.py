"""Display formatting for runtime values and console entries."""

from __future__ import annotations

import json
import math
from typing import Any, Optional

from .state_types import ConsoleMessage, HeapObject
from .values import (
    UNDEFINED,
    FunctionValue,
    ObjectRef,
    PromiseRef,
    format_number,
    is_number,
)


class _CircularReference(ValueError):
    pass


def _jsonable(value: Any, heap: dict[str, HeapObject], seen: frozenset[str]) -> Any:
    if isinstance(value, ObjectRef):
        if value.addr in seen:
            raise _CircularReference(value.addr)
        obj = heap.get(value.addr)
        if obj is None:
            return None
        inner = seen | {value.addr}
        if obj.is_array:
            return [_jsonable(el, heap, inner) for el in obj.elements]
        return {
            key: _jsonable(v, heap, inner)
            for key, v in obj.fields.items()
            if v is not UNDEFINED and not isinstance(v, FunctionValue)
        }
    if value is UNDEFINED or isinstance(value, (FunctionValue, PromiseRef)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _to_json(ref: ObjectRef, heap: dict[str, HeapObject]) -> str:
    try:
        return json.dumps(
            _jsonable(ref, heap, frozenset()),
            separators=(",", ":"),
            ensure_ascii=False,
        )
    except _CircularReference:
        return "[Circular Object]"


def format_value(value: Any, heap: Optional[dict[str, HeapObject]] = None) -> str:
    """Render *value* for a state panel.

    Strings are quoted, functions show as ``[Function: name]``, arrays as
    ``[Array(n)]`` and plain objects as compact JSON (``[Circular Object]``
    when they reach themselves).
    """
    heap = heap or {}
    if value is None:
        return "null"
    if value is UNDEFINED:
        return "undefined"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return f'"{value}"'
    if is_number(value):
        return format_number(value)
    if isinstance(value, FunctionValue):
        return f"[Function: {value.name}]"
    if isinstance(value, PromiseRef):
        return "[Promise]"
    if isinstance(value, ObjectRef):
        obj = heap.get(value.addr)
        if obj is not None and obj.is_array:
            return f"[Array({len(obj.elements)})]"
        return _to_json(value, heap)
    return str(value)


def _console_part(value: Any, heap: dict[str, HeapObject]) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, ObjectRef):
        return _to_json(value, heap)
    return format_value(value, heap)


def format_console_message(
    message: ConsoleMessage, heap: Optional[dict[str, HeapObject]] = None
) -> str:
    """Render a console entry the way a browser console prints it.

    Arguments are space-separated, strings unquoted; non-``log`` entries are
    prefixed with their level.
    """
    heap = heap or {}
    text = " ".join(_console_part(part, heap) for part in message.content)
    if message.type == "log":
        return text
    return f"[{message.type}] {text}"
