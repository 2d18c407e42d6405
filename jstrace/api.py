"""Composable API functions for the tracing pipeline.

Each function corresponds to a CLI workflow (--ast, --json, --step) but is
callable programmatically without argparse.
"""

from __future__ import annotations

import logging
from typing import Optional

from tree_sitter import Node, Tree

from .format import format_console_message
from .parser import Parser, TreeSitterParserFactory, source_location
from .trace_types import ExecutionTrace

logger = logging.getLogger(__name__)

_FUNCTION_NODE_TYPES: frozenset[str] = frozenset(
    {
        "function_declaration",
        "function_expression",
        "function",
        "generator_function_declaration",
    }
)


def parse_source(source: str) -> Tree:
    """Parse JavaScript source into a tree-sitter tree.

    Raises:
        ParseError: If the source contains a syntax error.
    """
    logger.info("Parsing %d bytes of source", len(source))
    return Parser(TreeSitterParserFactory()).parse(source)


def _dump_node(node: Node, depth: int, lines: list[str]) -> None:
    lines.append(f"{'  ' * depth}{node.type} [{source_location(node)}]")
    for child in node.named_children:
        _dump_node(child, depth + 1, lines)


def dump_ast(source: str) -> str:
    """Parse source and return an indented outline of its named nodes."""
    tree = parse_source(source)
    lines: list[str] = []
    _dump_node(tree.root_node, 0, lines)
    return "\n".join(lines)


def describe_steps(trace: ExecutionTrace) -> list[str]:
    """One ``"[n] line L: description"`` line per step."""
    return [f"[{s.step}] line {s.line}: {s.description}" for s in trace]


def console_lines(trace: ExecutionTrace) -> list[str]:
    """Console output of the run as printed text, error entry included."""
    heap = trace.final_state.heap if trace.final_state is not None else {}
    return [format_console_message(m, heap) for m in trace.console_output]


def _find_function_node(node: Node, name: str) -> Optional[Node]:
    """Recursively walk the AST to find a function node matching *name*."""
    if node.type in _FUNCTION_NODE_TYPES:
        name_node = node.child_by_field_name("name")
        if name_node is not None and name_node.text.decode("utf-8") == name:
            return node

    return next(
        (
            found
            for child in node.children
            if (found := _find_function_node(child, name)) is not None
        ),
        None,
    )


def extract_function_source(source: str, function_name: str) -> str:
    """Extract the raw source text of a named function from source code.

    Args:
        source: The source code text.
        function_name: The name of the function to extract.

    Returns:
        The source text of the matched function.

    Raises:
        ValueError: If no function with the given name is found.
    """
    logger.info("Extracting function source for '%s'", function_name)
    tree = parse_source(source)
    source_bytes = source.encode("utf-8")
    match = _find_function_node(tree.root_node, function_name)
    if match is None:
        raise ValueError(f"Function '{function_name}' not found in source")
    return source_bytes[match.start_byte : match.end_byte].decode("utf-8")
