"""Command-line entry point: trace a JavaScript file or a gallery example."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Optional

from .api import console_lines, describe_steps
from .examples import EXAMPLES, get_example
from .run import execute_traced, run
from .run_types import EvaluatorConfig
from . import constants

logger = logging.getLogger(__name__)


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jstrace",
        description="Step-by-step tracer for a JavaScript subset",
    )
    parser.add_argument("file", nargs="?", help="JavaScript source file to trace")
    parser.add_argument(
        "--example", "-x", default=None, help="Trace a gallery example by id"
    )
    parser.add_argument(
        "--list-examples", action="store_true", help="List gallery examples and exit"
    )
    parser.add_argument(
        "--max-iterations",
        "-n",
        type=int,
        default=constants.DEFAULT_EVENT_LOOP_ITERATIONS,
        help="Event-loop iteration ceiling (default: %(default)s)",
    )
    parser.add_argument(
        "--step", type=int, default=None, help="Print the state at step N (1-based)"
    )
    parser.add_argument(
        "--json", action="store_true", help="Print the full trace as JSON"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Debug logging plus step-by-step pipeline output",
    )
    return parser


def _load_source(args: argparse.Namespace) -> str:
    if args.example:
        return get_example(args.example).code
    if args.file:
        with open(args.file, encoding="utf-8") as f:
            return f.read()
    source = get_example("closure").code
    print("No file provided. Using built-in demo:\n")
    print(source)
    print()
    return source


def main(argv: Optional[list[str]] = None) -> int:
    args = _build_arg_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.list_examples:
        for example in EXAMPLES:
            print(f"{example.id:<14} {example.title} — {example.description}")
        return 0

    try:
        source = _load_source(args)
    except KeyError as exc:
        print(exc.args[0], file=sys.stderr)
        return 2

    if args.verbose:
        trace = run(source, args.max_iterations, verbose=True)
    else:
        trace = execute_traced(
            source, EvaluatorConfig(max_event_loop_iterations=args.max_iterations)
        )

    if args.json:
        print(json.dumps(trace.to_dict(), indent=2, default=str))
    elif args.step is not None:
        if not 1 <= args.step <= len(trace):
            print(f"Step {args.step} out of range (1-{len(trace)})", file=sys.stderr)
            return 2
        step = trace[args.step - 1]
        print(f"Step {step.step} (line {step.line}): {step.description}")
        print(json.dumps(step.snapshot.to_dict(), indent=2, default=str))
    elif not args.verbose:
        print("═══ Steps ═══")
        for line in describe_steps(trace):
            print(f"  {line}")
        print()
        print("═══ Console ═══")
        for line in console_lines(trace):
            print(f"  {line}")

    return 1 if trace.failed else 0


if __name__ == "__main__":
    sys.exit(main())
