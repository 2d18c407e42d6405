"""Named constants — eliminates magic strings across the codebase."""

from __future__ import annotations

LANGUAGE = "javascript"

OBJ_ADDR_PREFIX = "obj_"
ARR_ADDR_PREFIX = "arr_"
PROMISE_ADDR_PREFIX = "promise_"

GLOBAL_SCOPE_NAME = "Global"
ANONYMOUS_FUNCTION_NAME = "anonymous"

DEFAULT_EVENT_LOOP_ITERATIONS = 100

UNSUPPORTED_PREFIX = "unsupported:"

FETCH_STATUS_OK = 200

# ── step descriptions ────────────────────────────────────────────

STEP_EXPRESSION = "Executing expression"
STEP_DECLARE_VARIABLE = "Declaring variable"
STEP_RETURN = "Returning value"
STEP_DECLARE_FUNCTION = "Declaring function {name}"
STEP_IF_TRUE = "If condition true"
STEP_IF_FALSE = "If condition false"
STEP_FUNCTION_CALL = "Function call"
STEP_SCHEDULED_TIMEOUT = "Scheduled setTimeout"
STEP_EXECUTE_TASK = "Executing {kind} task: {description}"

# ── task descriptions ────────────────────────────────────────────

TASK_TIMEOUT = "setTimeout callback"
TASK_FETCH = "Fetch response from {url}"
TASK_THEN = "Promise.then callback"
TASK_ALL = "Promise.all element"
TASK_RACE = "Promise.race element"
TASK_ADOPT = "Promise adoption"

CONSOLE_METHODS: frozenset[str] = frozenset({"log", "info", "warn", "error"})
