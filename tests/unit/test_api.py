"""Tests for the composable API functions in jstrace.api."""

import pytest

from jstrace.api import (
    console_lines,
    describe_steps,
    dump_ast,
    extract_function_source,
    parse_source,
)
from jstrace.errors import ParseError
from jstrace.run import execute_traced

SIMPLE_SOURCE = "let x = 42;\n"

FUNCTION_SOURCE = """\
function greet(name) {
  return name;
}

greet('world');
"""


class TestParseSource:
    def test_returns_program_tree(self):
        tree = parse_source(SIMPLE_SOURCE)
        assert tree.root_node.type == "program"
        assert not tree.root_node.has_error

    def test_raises_on_syntax_error(self):
        with pytest.raises(ParseError) as exc_info:
            parse_source("let = = ;\n")
        assert exc_info.value.line == 1


class TestDumpAst:
    def test_returns_string(self):
        assert isinstance(dump_ast(SIMPLE_SOURCE), str)

    def test_outline_contains_node_types_and_locations(self):
        result = dump_ast(SIMPLE_SOURCE)
        lines = result.splitlines()
        assert lines[0].startswith("program [1:0-")
        assert any("lexical_declaration" in line for line in lines)
        assert any(line.startswith("    ") for line in lines)


class TestDescribeSteps:
    def test_one_line_per_step(self):
        trace = execute_traced(FUNCTION_SOURCE)
        lines = describe_steps(trace)
        assert len(lines) == len(trace)
        assert lines[0] == "[1] line 1: Declaring function greet"

    def test_empty_trace(self):
        assert describe_steps(execute_traced("")) == []


class TestConsoleLines:
    def test_formats_values_like_a_console(self):
        trace = execute_traced("console.log('n', 1, [1, 2], { a: true });\n")
        assert console_lines(trace) == ['n 1 [1,2] {"a":true}']

    def test_includes_output_after_last_step(self):
        trace = execute_traced("setTimeout(() => console.log('late'), 0);\n")
        assert console_lines(trace) == ["late"]

    def test_error_entry_is_prefixed(self):
        trace = execute_traced("console.log(missing);\n")
        assert console_lines(trace) == [
            "[error] ReferenceError: missing is not defined"
        ]

    def test_parse_failure(self):
        (line,) = console_lines(execute_traced("let x = ;\n"))
        assert line.startswith("[error] SyntaxError")


class TestExtractFunctionSource:
    def test_extracts_function(self):
        result = extract_function_source(FUNCTION_SOURCE, "greet")
        assert result.startswith("function greet(name)")
        assert result.endswith("}")

    def test_finds_nested_function(self):
        source = "function outer() {\n  function inner() {}\n}\n"
        assert extract_function_source(source, "inner") == "function inner() {}"

    def test_not_found_raises_value_error(self):
        with pytest.raises(ValueError, match="nonexistent"):
            extract_function_source(FUNCTION_SOURCE, "nonexistent")
