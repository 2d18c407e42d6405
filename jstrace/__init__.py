"""Step-recording evaluator for a JavaScript subset."""

from .run import run, execute_traced  # noqa: F401
from .run_types import EvaluatorConfig  # noqa: F401
from .trace_types import ExecutionStep, ExecutionTrace, TraceCursor  # noqa: F401
from .api import (  # noqa: F401
    parse_source,
    dump_ast,
    describe_steps,
    console_lines,
    extract_function_source,
)
