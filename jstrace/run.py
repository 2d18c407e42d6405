"""Orchestrator — execute_traced() and run() entry points."""

from __future__ import annotations

import logging
import time
from typing import Optional

from .errors import ParseError
from .evaluator import Evaluator
from .format import format_console_message
from .parser import Parser, ParserFactory, TreeSitterParserFactory
from .run_types import EvaluatorConfig, ExecutionStats, PipelineStats
from .state_types import ConsoleMessage
from .trace_types import ExecutionTrace
from . import constants

logger = logging.getLogger(__name__)


def _parse_failure(exc: ParseError) -> ExecutionTrace:
    """An empty trace carrying the parse error as its console entry."""
    error = ConsoleMessage(
        id=1, type="error", content=[str(exc)], timestamp=time.time()
    )
    return ExecutionTrace(steps=(), stats=ExecutionStats(), error=error)


def execute_traced(
    source: str,
    config: EvaluatorConfig = EvaluatorConfig(),
    parser_factory: Optional[ParserFactory] = None,
) -> ExecutionTrace:
    """Parse and evaluate *source*, recording every step.

    Never raises for bad input: a parse failure yields an empty trace and an
    evaluation fault yields the steps recorded up to the fault, both with
    ``trace.error`` set.

    Args:
        source: JavaScript source text.
        config: Evaluator settings (event-loop ceiling, verbosity).
        parser_factory: Parser factory override, mainly for tests.

    Returns:
        The ExecutionTrace of the run.
    """
    logger.info(
        "execute_traced: %d bytes, max_event_loop_iterations=%d",
        len(source),
        config.max_event_loop_iterations,
    )
    parser = Parser(parser_factory or TreeSitterParserFactory())
    try:
        tree = parser.parse(source)
    except ParseError as exc:
        logger.error("Parse failed: %s", exc)
        return _parse_failure(exc)
    return Evaluator(source.encode("utf-8"), config).run(tree)


def run(
    source: str,
    max_event_loop_iterations: int = constants.DEFAULT_EVENT_LOOP_ITERATIONS,
    verbose: bool = False,
) -> ExecutionTrace:
    """End-to-end: parse → evaluate → drain event loop.

    Args:
        source: JavaScript source text.
        max_event_loop_iterations: Ceiling on event-loop passes.
        verbose: Print each step, the console output and pipeline statistics.
    """
    pipeline_start = time.perf_counter()
    stats = PipelineStats(
        source_bytes=len(source.encode("utf-8")),
        source_lines=source.count("\n")
        + (1 if source and not source.endswith("\n") else 0),
    )
    config = EvaluatorConfig(
        max_event_loop_iterations=max_event_loop_iterations, verbose=verbose
    )

    # 1. Parse
    t0 = time.perf_counter()
    try:
        tree = Parser(TreeSitterParserFactory()).parse(source)
    except ParseError as exc:
        logger.error("Parse failed: %s", exc)
        stats.failed = True
        trace = _parse_failure(exc)
        if verbose:
            print(format_console_message(trace.error))
        return trace
    stats.parse_time = time.perf_counter() - t0

    # 2. Evaluate
    exec_start = time.perf_counter()
    evaluator = Evaluator(source.encode("utf-8"), config)
    trace = evaluator.run(tree)
    stats.execution_time = time.perf_counter() - exec_start
    logger.info(
        "Evaluated %d steps in %.1fms", len(trace), stats.execution_time * 1000
    )

    stats.execution_steps = trace.stats.steps
    stats.tasks_executed = trace.stats.tasks_executed
    stats.console_messages = trace.stats.console_messages
    stats.heap_objects = trace.stats.heap_objects
    stats.closures_captured = trace.stats.closures_captured
    stats.truncated = trace.stats.truncated
    stats.failed = trace.failed
    stats.total_time = time.perf_counter() - pipeline_start

    if verbose:
        print("═══ Steps ═══")
        for step in trace:
            print(f"  [{step.step:>3}] line {step.line:>3}  {step.description}")
        print()
        print("═══ Console ═══")
        for message in evaluator.state.console_output:
            print(f"  {format_console_message(message, evaluator.state.heap)}")
        for diagnostic in trace.diagnostics:
            print(f"  ! {diagnostic}")
        print()
        print(stats.report())

    return trace
