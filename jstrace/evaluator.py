"""Evaluator — tree-walking execution of a JavaScript subset with step recording.

The evaluator walks a tree-sitter JavaScript tree directly. Statements and
expressions are dispatched through ``_STMT_DISPATCH`` / ``_EXPR_DISPATCH``;
anything outside those tables is reported as ``unsupported:<type>`` and
evaluates to ``undefined``. Deferred work (timers, fetches, promise
reactions) is queued on the scheduler as plain data and re-enters the
evaluator through :meth:`Evaluator._execute_task`.
"""

from __future__ import annotations

import dataclasses
import logging
import math
from typing import Any, Callable, Iterator, Optional

from .errors import EvaluationError, JsTraceError
from .event_loop import EventLoopScheduler
from .parser import node_line, source_location
from .promises import PromiseEngine
from .run_types import EvaluatorConfig, ExecutionStats
from .scope import ScopeResolver
from .snapshot import StepRecorder, clone_state
from .state_types import (
    CallFrame,
    ExecutionState,
    FetchCompletion,
    InvokeCallback,
    RunReaction,
    ScopeKind,
    Task,
)
from .trace_types import Diagnostic, ExecutionTrace
from .values import (
    UNDEFINED,
    FunctionValue,
    ObjectRef,
    Operators,
    PromiseRef,
    is_nullish,
    to_js_string,
    to_number,
    to_property_key,
    truthy,
)
from . import constants

logger = logging.getLogger(__name__)

COMMENT_TYPES = frozenset({"comment", "html_comment"})

FUNCTION_NODE_TYPES = frozenset(
    {
        "function_declaration",
        "function_expression",
        "function",
        "arrow_function",
        "generator_function",
        "generator_function_declaration",
        "class_declaration",
        "method_definition",
    }
)

DECLARATION_NODE_TYPES = frozenset({"lexical_declaration", "variable_declaration"})

GLOBAL_CONSTANTS: dict[str, Any] = {
    "undefined": UNDEFINED,
    "NaN": math.nan,
    "Infinity": math.inf,
}

_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "0": "\0",
}


def _decode_escape(text: str) -> str:
    body = text[1:]
    if body in _ESCAPES:
        return _ESCAPES[body]
    if body.startswith("u{"):
        return chr(int(body[2:-1], 16))
    if body[:1] in ("u", "x") and len(body) > 1:
        return chr(int(body[1:], 16))
    if body[:1] in ("\n", "\r"):
        return ""
    return body


def _array_index(key: str) -> Optional[int]:
    return int(key) if key.isdigit() else None


class _ReturnSignal(Exception):
    """Unwinds a function body on ``return``."""

    def __init__(self, value: Any):
        super().__init__()
        self.value = value


class Evaluator:
    """Executes one program and records its ExecutionSteps.

    An Evaluator is single-use: it owns the run's ExecutionState, and the
    scope resolver, scheduler, promise engine and step recorder all operate
    on that one state.
    """

    def __init__(self, source: bytes, config: EvaluatorConfig = EvaluatorConfig()):
        self._source = source
        self._config = config
        self.state = ExecutionState()
        self.scopes = ScopeResolver(self.state)
        self.scheduler = EventLoopScheduler(
            self.state, config.max_event_loop_iterations
        )
        self.promises = PromiseEngine(self.state, self.scheduler)
        self.recorder = StepRecorder(self.state)
        self.diagnostics: list[Diagnostic] = []
        self.scopes.ensure_global()

        self._STMT_DISPATCH: dict[str, Callable] = {
            "expression_statement": self._exec_expression_statement,
            "lexical_declaration": self._exec_declaration,
            "variable_declaration": self._exec_declaration,
            "function_declaration": self._exec_function_declaration,
            "return_statement": self._exec_return,
            "if_statement": self._exec_if,
            "for_statement": self._exec_for,
            "statement_block": self._exec_block,
            "empty_statement": lambda _: None,
        }
        self._EXPR_DISPATCH: dict[str, Callable] = {
            "identifier": self._eval_identifier,
            "number": self._eval_number,
            "string": self._eval_string,
            "template_string": self._eval_string,
            "true": lambda _: True,
            "false": lambda _: False,
            "null": lambda _: None,
            "undefined": lambda _: UNDEFINED,
            "binary_expression": self._eval_binary,
            "unary_expression": self._eval_unary,
            "update_expression": self._eval_update,
            "assignment_expression": self._eval_assignment,
            "ternary_expression": self._eval_ternary,
            "parenthesized_expression": self._eval_paren,
            "call_expression": self._eval_call,
            "member_expression": self._eval_member,
            "subscript_expression": self._eval_subscript,
            "array": self._eval_array,
            "object": self._eval_object,
            "arrow_function": self._eval_function,
            "function_expression": self._eval_function,
            "function": self._eval_function,
        }
        self._BUILTIN_FUNCTIONS: dict[str, Callable] = {
            "setTimeout": self._call_set_timeout,
            "fetch": self._call_fetch,
        }

    # ── entry point ──────────────────────────────────────────────

    def run(self, tree) -> ExecutionTrace:
        """Evaluate *tree*, drain the event loop and return the trace.

        Faults never propagate: they become one ``error`` console entry and
        the steps recorded so far are returned.
        """
        error = None
        try:
            self._exec_program(tree.root_node)
            self.scheduler.drain(self._execute_task)
            self.scopes.prune_closures()
        except Exception as exc:
            message = (
                str(exc)
                if isinstance(exc, JsTraceError)
                else f"{type(exc).__name__}: {exc}"
            )
            logger.exception("Run aborted: %s", message)
            error = self.state.add_console_message("error", [message])

        return ExecutionTrace(
            steps=self.recorder.steps,
            stats=self.stats(),
            diagnostics=tuple(self.diagnostics),
            error=error,
            final_state=clone_state(self.state),
        )

    def stats(self) -> ExecutionStats:
        return ExecutionStats(
            steps=len(self.recorder),
            tasks_executed=self.scheduler.tasks_executed,
            console_messages=len(self.state.console_output),
            heap_objects=len(self.state.heap),
            promises=len(self.state.promises),
            closures_captured=len(self.state.closures),
            truncated=self.scheduler.truncated,
        )

    # ── helpers ──────────────────────────────────────────────────

    def _text(self, node) -> str:
        return self._source[node.start_byte : node.end_byte].decode("utf-8")

    def _named(self, node) -> list:
        return [c for c in node.named_children if c.type not in COMMENT_TYPES]

    def _first_named(self, node):
        return next(iter(self._named(node)), None)

    def _snapshot(self, node, description: str) -> None:
        self.recorder.record(node_line(node), description, node.start_point[1])

    def _unsupported(self, node, what: str = "") -> Any:
        kind = what or node.type
        location = source_location(node)
        logger.warning("Unsupported syntax '%s' at %s", kind, location)
        self.diagnostics.append(
            Diagnostic(
                message=f"{constants.UNSUPPORTED_PREFIX}{kind}", location=location
            )
        )
        return UNDEFINED

    def _array_elements(self, value: Any) -> Optional[list[Any]]:
        if isinstance(value, ObjectRef):
            obj = self.state.heap.get(value.addr)
            if obj is not None and obj.is_array:
                return list(obj.elements)
        return None

    # ── statements ───────────────────────────────────────────────

    def _exec_program(self, node) -> None:
        self._hoist_vars(node)
        try:
            self._exec_statements(node)
        except _ReturnSignal:
            logger.debug("Top-level return ends the program")

    def _exec_statements(self, node) -> None:
        for child in self._named(node):
            self._exec_stmt(child)

    def _exec_stmt(self, node) -> None:
        if node.type in COMMENT_TYPES:
            return
        if not self.state.call_stack:
            self.scopes.prune_closures()
        handler = self._STMT_DISPATCH.get(node.type)
        if handler:
            handler(node)
            return
        self._unsupported(node)

    def _exec_expression_statement(self, node) -> None:
        self._snapshot(node, constants.STEP_EXPRESSION)
        expr = self._first_named(node)
        if expr is not None:
            self._eval(expr)

    def _exec_block(self, node) -> None:
        self.scopes.push_scope(ScopeKind.BLOCK, "block")
        try:
            self._exec_statements(node)
        finally:
            self.scopes.pop_scope()

    def _exec_declaration(self, node) -> None:
        self._snapshot(node, constants.STEP_DECLARE_VARIABLE)
        kind = self._text(node.children[0])
        for declarator in self._named(node):
            if declarator.type != "variable_declarator":
                continue
            name_node = declarator.child_by_field_name("name")
            value_node = declarator.child_by_field_name("value")
            value = self._eval(value_node) if value_node is not None else UNDEFINED
            if name_node.type == "identifier":
                name = self._text(name_node)
                if (
                    isinstance(value, FunctionValue)
                    and value.name == constants.ANONYMOUS_FUNCTION_NAME
                ):
                    value = dataclasses.replace(value, name=name)
                self._declare(name, value, kind)
            elif name_node.type == "array_pattern":
                self._bind_array_pattern(
                    name_node,
                    self._array_elements(value) or [],
                    lambda target, item: self._declare(self._text(target), item, kind),
                )
            else:
                self._unsupported(name_node)

    def _declare(self, name: str, value: Any, kind: str) -> None:
        scope = self.scopes.function_scope() if kind == "var" else None
        self.scopes.declare(name, value, kind, scope=scope)

    def _exec_function_declaration(self, node) -> None:
        name = self._text(node.child_by_field_name("name"))
        self._snapshot(node, constants.STEP_DECLARE_FUNCTION.format(name=name))
        self.scopes.declare(name, self._make_function(node, name), "var")

    def _exec_return(self, node) -> None:
        self._snapshot(node, constants.STEP_RETURN)
        expr = self._first_named(node)
        raise _ReturnSignal(self._eval(expr) if expr is not None else UNDEFINED)

    def _exec_if(self, node) -> None:
        condition = self._eval(node.child_by_field_name("condition"))
        if truthy(condition):
            self._snapshot(node, constants.STEP_IF_TRUE)
            self._exec_stmt(node.child_by_field_name("consequence"))
            return
        alternative = node.child_by_field_name("alternative")
        if alternative is None:
            return
        self._snapshot(node, constants.STEP_IF_FALSE)
        if alternative.type == "else_clause":
            alternative = self._first_named(alternative)
        if alternative is not None:
            self._exec_stmt(alternative)

    def _for_clause(self, node):
        """Unwrap a for-header clause into its expression (None when empty)."""
        if node is None or node.type in ("empty_statement", ";"):
            return None
        if node.type == "expression_statement":
            return self._first_named(node)
        return node

    def _exec_for(self, node) -> None:
        init_node = node.child_by_field_name("initializer")
        cond_node = self._for_clause(node.child_by_field_name("condition"))
        update_node = node.child_by_field_name(
            "increment"
        ) or node.child_by_field_name("update")
        body_node = node.child_by_field_name("body")
        # `let`/`const` loop variables get a fresh binding per iteration.
        per_iteration = (
            init_node is not None and init_node.type == "lexical_declaration"
        )

        if per_iteration:
            self.scopes.push_scope(ScopeKind.BLOCK, "for")
        try:
            if init_node is not None and init_node.type in DECLARATION_NODE_TYPES:
                self._exec_stmt(init_node)
            elif (init_expr := self._for_clause(init_node)) is not None:
                self._eval(init_expr)

            while cond_node is None or truthy(self._eval(cond_node)):
                self._exec_stmt(body_node)
                if per_iteration:
                    self.scopes.renew_head()
                if update_node is not None:
                    self._eval(update_node)
        finally:
            if per_iteration:
                self.scopes.pop_scope()

    # ── hoisting ─────────────────────────────────────────────────

    def _pattern_names(self, node) -> Iterator[str]:
        if node.type == "identifier":
            yield self._text(node)
        elif node.type == "array_pattern":
            for child in self._named(node):
                yield from self._pattern_names(child)

    def _var_names(self, node) -> Iterator[str]:
        for child in self._named(node):
            if child.type in FUNCTION_NODE_TYPES:
                continue
            if child.type == "variable_declaration":
                for declarator in self._named(child):
                    name_node = declarator.child_by_field_name("name")
                    if name_node is not None:
                        yield from self._pattern_names(name_node)
            else:
                yield from self._var_names(child)

    def _hoist_vars(self, body) -> None:
        """Pre-declare every `var` of *body* (outside nested functions)."""
        scope = self.state.head_scope
        for name in self._var_names(body):
            if name not in scope.variables:
                self.scopes.declare(name, UNDEFINED, "var")

    # ── expressions ──────────────────────────────────────────────

    def _eval(self, node) -> Any:
        handler = self._EXPR_DISPATCH.get(node.type)
        if handler:
            return handler(node)
        return self._unsupported(node)

    def _eval_identifier(self, node) -> Any:
        name = self._text(node)
        if name in GLOBAL_CONSTANTS and not self.scopes.is_declared(name):
            return GLOBAL_CONSTANTS[name]
        return self.scopes.resolve(name)

    def _eval_number(self, node) -> int | float:
        text = self._text(node).replace("_", "")
        try:
            return int(text, 0)
        except ValueError:
            return float(text)

    def _eval_string(self, node) -> str:
        """Decode a string or template literal.

        Text between the delimiters that no child node covers is literal;
        escape sequences are decoded and template substitutions evaluated in
        order.
        """
        start, end = node.start_byte + 1, node.end_byte - 1
        cursor = start
        parts: list[str] = []
        for child in node.children:
            if child.start_byte < start or child.end_byte > end:
                continue
            if child.start_byte > cursor:
                parts.append(self._source[cursor : child.start_byte].decode("utf-8"))
            if child.type == "escape_sequence":
                parts.append(_decode_escape(self._text(child)))
            elif child.type == "template_substitution":
                inner = self._first_named(child)
                value = self._eval(inner) if inner is not None else UNDEFINED
                parts.append(to_js_string(value, self.state.heap))
            elif child.type not in COMMENT_TYPES:
                parts.append(self._text(child))
            cursor = child.end_byte
        if end > cursor:
            parts.append(self._source[cursor:end].decode("utf-8"))
        return "".join(parts)

    def _eval_paren(self, node) -> Any:
        inner = self._first_named(node)
        return self._eval(inner) if inner is not None else UNDEFINED

    def _eval_binary(self, node) -> Any:
        op = self._text(node.child_by_field_name("operator"))
        left = self._eval(node.child_by_field_name("left"))
        right_node = node.child_by_field_name("right")
        if op == "&&":
            return self._eval(right_node) if truthy(left) else left
        if op == "||":
            return left if truthy(left) else self._eval(right_node)
        if op == "??":
            return self._eval(right_node) if is_nullish(left) else left
        right = self._eval(right_node)
        result = Operators.eval_binop(op, left, right, self.state.heap)
        if result is Operators.UNSUPPORTED:
            return self._unsupported(node, f"operator {op}")
        return result

    def _eval_unary(self, node) -> Any:
        op = self._text(node.child_by_field_name("operator"))
        argument = node.child_by_field_name("argument")
        if (
            op == "typeof"
            and argument.type == "identifier"
            and not self.scopes.is_declared(self._text(argument))
            and self._text(argument) not in GLOBAL_CONSTANTS
        ):
            return "undefined"
        result = Operators.eval_unop(op, self._eval(argument), self.state.heap)
        if result is Operators.UNSUPPORTED:
            return self._unsupported(node, f"operator {op}")
        return result

    def _eval_update(self, node) -> int | float:
        argument = node.child_by_field_name("argument")
        op = self._text(node.child_by_field_name("operator"))
        prefix = node.children[0].type in ("++", "--")
        while argument.type == "parenthesized_expression":
            argument = self._first_named(argument)
        if argument.type in ("member_expression", "subscript_expression"):
            obj, key = self._property_target(argument)
            old = to_number(self._get_property(obj, key), self.state.heap)
            new = old + 1 if op == "++" else old - 1
            self._set_property(obj, key, new)
        else:
            old = to_number(self._eval(argument), self.state.heap)
            new = old + 1 if op == "++" else old - 1
            self._assign_target(argument, new)
        return new if prefix else old

    def _eval_ternary(self, node) -> Any:
        condition = self._eval(node.child_by_field_name("condition"))
        branch = "consequence" if truthy(condition) else "alternative"
        return self._eval(node.child_by_field_name(branch))

    def _eval_assignment(self, node) -> Any:
        left = node.child_by_field_name("left")
        value = self._eval(node.child_by_field_name("right"))
        if left.type == "array_pattern":
            elements = self._array_elements(value)
            if elements is None:
                return UNDEFINED
            self._bind_array_pattern(left, elements, self._assign_target)
            return value
        self._assign_target(left, value)
        return value

    def _assign_target(self, target, value: Any) -> None:
        ttype = target.type
        if ttype == "identifier":
            self.scopes.assign(self._text(target), value)
        elif ttype in ("member_expression", "subscript_expression"):
            self._set_property(*self._property_target(target), value)
        elif ttype == "parenthesized_expression":
            self._assign_target(self._first_named(target), value)
        else:
            self._unsupported(target)

    def _bind_array_pattern(
        self, pattern, elements: list[Any], bind: Callable[[Any, Any], None]
    ) -> None:
        """Bind each pattern slot to its element; commas mark holes."""
        index = 0
        for child in pattern.children:
            if child.type == ",":
                index += 1
                continue
            if not child.is_named or child.type in COMMENT_TYPES:
                continue
            item = elements[index] if index < len(elements) else UNDEFINED
            if child.type in ("identifier", "member_expression", "subscript_expression"):
                bind(child, item)
            else:
                self._unsupported(child)

    # ── properties ───────────────────────────────────────────────

    def _property_target(self, node) -> tuple[Any, str]:
        """Evaluate the object and key of a member/subscript node, once each."""
        obj = self._eval(node.child_by_field_name("object"))
        if node.type == "member_expression":
            return obj, self._text(node.child_by_field_name("property"))
        return obj, to_property_key(self._eval(node.child_by_field_name("index")))

    def _eval_member(self, node) -> Any:
        return self._get_property(*self._property_target(node))

    def _eval_subscript(self, node) -> Any:
        return self._get_property(*self._property_target(node))

    def _get_property(self, obj: Any, key: str) -> Any:
        if is_nullish(obj):
            raise EvaluationError(
                f"TypeError: Cannot read properties of {to_js_string(obj)}"
                f" (reading '{key}')"
            )
        if isinstance(obj, str):
            if key == "length":
                return len(obj)
            index = _array_index(key)
            return obj[index] if index is not None and index < len(obj) else UNDEFINED
        if not isinstance(obj, ObjectRef) or obj.addr not in self.state.heap:
            return UNDEFINED
        target = self.state.heap[obj.addr]
        if target.is_array:
            if key == "length":
                return len(target.elements)
            index = _array_index(key)
            if index is not None:
                return (
                    target.elements[index]
                    if index < len(target.elements)
                    else UNDEFINED
                )
        return target.fields.get(key, UNDEFINED)

    def _set_property(self, obj: Any, key: str, value: Any) -> None:
        if is_nullish(obj):
            raise EvaluationError(
                f"TypeError: Cannot set properties of {to_js_string(obj)}"
                f" (setting '{key}')"
            )
        if not isinstance(obj, ObjectRef) or obj.addr not in self.state.heap:
            logger.debug("Ignoring property write '%s' on %r", key, obj)
            return
        target = self.state.heap[obj.addr]
        index = _array_index(key) if target.is_array else None
        if index is not None:
            target.elements.extend([UNDEFINED] * (index + 1 - len(target.elements)))
            self.state.release(target.elements[index])
            target.elements[index] = value
        else:
            self.state.release(target.fields.get(key))
            target.fields[key] = value
        self.state.retain(value)

    # ── literals ─────────────────────────────────────────────────

    def _eval_array(self, node) -> ObjectRef:
        return self.state.new_array([self._eval(c) for c in self._named(node)])

    def _eval_object(self, node) -> ObjectRef:
        fields: dict[str, Any] = {}
        for child in self._named(node):
            if child.type == "pair":
                key_node = child.child_by_field_name("key")
                if key_node.type == "string":
                    key = self._eval_string(key_node)
                elif key_node.type == "computed_property_name":
                    key = to_property_key(self._eval(self._first_named(key_node)))
                else:
                    key = self._text(key_node)
                fields[key] = self._eval(child.child_by_field_name("value"))
            elif child.type == "shorthand_property_identifier":
                name = self._text(child)
                fields[name] = self.scopes.resolve(name)
            else:
                self._unsupported(child)
        return self.state.new_object(fields)

    # ── functions ────────────────────────────────────────────────

    def _param_names(self, params_node) -> tuple[str, ...]:
        if params_node is None:
            return ()
        if params_node.type == "identifier":
            return (self._text(params_node),)
        names: list[str] = []
        for child in self._named(params_node):
            if child.type == "identifier":
                names.append(self._text(child))
            elif child.type == "assignment_pattern":
                names.append(self._text(child.child_by_field_name("left")))
            else:
                self._unsupported(child)
        return tuple(names)

    def _make_function(self, node, name: str) -> FunctionValue:
        params_node = node.child_by_field_name(
            "parameters"
        ) or node.child_by_field_name("parameter")
        return FunctionValue(
            name=name,
            params=self._param_names(params_node),
            body=node.child_by_field_name("body"),
            closure=self.scopes.capture(),
            line=node_line(node),
            is_arrow=node.type == "arrow_function",
        )

    def _eval_function(self, node) -> FunctionValue:
        name_node = node.child_by_field_name("name")
        name = (
            self._text(name_node)
            if name_node is not None
            else constants.ANONYMOUS_FUNCTION_NAME
        )
        return self._make_function(node, name)

    def _invoke(
        self, func: FunctionValue, args: list[Any], line: int = 0, name: str = ""
    ) -> Any:
        """Run *func* through the call protocol and return its result."""
        if func.name != constants.ANONYMOUS_FUNCTION_NAME or not name:
            name = func.name
        chain = self.state.scope_chain
        frame = CallFrame(
            id=self.state.fresh_id(),
            function_name=name,
            line=line,
            arguments=list(args),
            scope_depth=len(chain),
            closure=func.closure,
        )
        self.state.call_stack.append(frame)
        parent_id = func.closure[0] if func.closure else None
        scope = self.scopes.push_scope(ScopeKind.FUNCTION, name, parent_id=parent_id)
        frame.scope_id = scope.id
        logger.debug("Call %s(%d args) at line %d", name, len(args), line)
        try:
            for index, param in enumerate(func.params):
                self.scopes.declare(
                    param, args[index] if index < len(args) else UNDEFINED, "let"
                )
            frame.local_variables = dict(scope.variables)
            body = func.body
            if body.type != "statement_block":
                return self._eval(body)
            self._hoist_vars(body)
            self._exec_statements(body)
            return UNDEFINED
        except _ReturnSignal as ret:
            return ret.value
        finally:
            self.scopes.pop_scope()
            self.state.call_stack.pop()

    # ── calls ────────────────────────────────────────────────────

    def _eval_args(self, args_node) -> list[Any]:
        if args_node is None:
            return []
        return [self._eval(c) for c in self._named(args_node)]

    def _builtin_for(self, callee) -> Optional[Callable]:
        if callee.type == "identifier":
            return self._BUILTIN_FUNCTIONS.get(self._text(callee))
        if callee.type != "member_expression":
            return None
        owner_node = callee.child_by_field_name("object")
        prop = self._text(callee.child_by_field_name("property"))
        owner = self._text(owner_node) if owner_node.type == "identifier" else ""
        if owner == "console" and prop in constants.CONSOLE_METHODS:
            return self._call_console
        if owner == "Promise" and prop in ("all", "race"):
            return self._call_promise_combinator
        if prop == "then":
            return self._call_then
        return None

    def _eval_call(self, node) -> Any:
        self._snapshot(node, constants.STEP_FUNCTION_CALL)
        callee = node.child_by_field_name("function")
        args_node = node.child_by_field_name("arguments")

        builtin = self._builtin_for(callee)
        if builtin is not None:
            return builtin(node, callee, args_node)

        if callee.type == "identifier":
            name = self._text(callee)
            func = self.scopes.resolve(name)
        else:
            func = self._eval(callee)
            name = constants.ANONYMOUS_FUNCTION_NAME
        if not isinstance(func, FunctionValue):
            logger.debug(
                "Call of non-function %r at line %d ignored", func, node_line(node)
            )
            return UNDEFINED
        args = self._eval_args(args_node)
        return self._invoke(func, args, node_line(node), name)

    def _call_console(self, node, callee, args_node) -> Any:
        method = self._text(callee.child_by_field_name("property"))
        self.state.add_console_message(method, self._eval_args(args_node))
        return UNDEFINED

    def _call_promise_combinator(self, node, callee, args_node) -> PromiseRef:
        method = self._text(callee.child_by_field_name("property"))
        args = self._eval_args(args_node)
        values = self._array_elements(args[0]) if args else None
        combine = self.promises.all if method == "all" else self.promises.race
        return combine(values or [])

    def _call_then(self, node, callee, args_node) -> Any:
        target = self._eval(callee.child_by_field_name("object"))
        if not isinstance(target, PromiseRef):
            logger.debug(
                ".then on non-promise %r at line %d ignored", target, node_line(node)
            )
            return UNDEFINED
        args = self._eval_args(args_node)
        handler = args[0] if args and isinstance(args[0], FunctionValue) else None
        return self.promises.then(target, handler)

    def _call_set_timeout(self, node, callee, args_node) -> Any:
        args = self._eval_args(args_node)
        callback = args[0] if args else UNDEFINED
        if isinstance(callback, FunctionValue):
            self.scheduler.enqueue_macrotask(
                constants.TASK_TIMEOUT,
                InvokeCallback(callback, tuple(args[2:])),
                callback.line,
            )
        else:
            logger.debug("setTimeout without a callback at line %d", node_line(node))
        self._snapshot(node, constants.STEP_SCHEDULED_TIMEOUT)
        return UNDEFINED

    def _call_fetch(self, node, callee, args_node) -> PromiseRef:
        args = self._eval_args(args_node)
        url = to_js_string(args[0], self.state.heap) if args else "undefined"
        return self.promises.fetch(url, node_line(node))

    # ── event-loop tasks ─────────────────────────────────────────

    def _execute_task(self, task: Task) -> None:
        self.recorder.record(
            task.line,
            constants.STEP_EXECUTE_TASK.format(
                kind=task.kind.value, description=task.description
            ),
        )
        body = task.body
        if isinstance(body, InvokeCallback):
            self._invoke(body.function, list(body.arguments), task.line)
        elif isinstance(body, FetchCompletion):
            self.promises.complete_fetch(body)
        elif isinstance(body, RunReaction):
            self.promises.run_reaction(body.reaction, body.value, self._invoke)
        else:
            raise TypeError(f"Unknown task body: {body!r}")
        self.scopes.prune_closures()
