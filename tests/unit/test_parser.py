"""Tests for the parser wrapper and injected parser factories."""

import pytest

from jstrace.errors import ParseError
from jstrace.parser import (
    NO_SOURCE_LOCATION,
    Parser,
    ParserFactory,
    TreeSitterParserFactory,
    source_location,
)
from jstrace.run import execute_traced


class _FakeNode:
    def __init__(
        self,
        type="program",
        children=(),
        start=(0, 0),
        end=(0, 0),
        is_missing=False,
    ):
        self.type = type
        self.children = list(children)
        self.named_children = list(children)
        self.start_point = start
        self.end_point = end
        self.is_missing = is_missing
        self.has_error = type == "ERROR" or is_missing or any(
            c.has_error for c in self.children
        )


class _FakeTree:
    def __init__(self, root):
        self.root_node = root


class _FakeParser:
    def __init__(self, root):
        self._root = root
        self.seen: list[bytes] = []

    def parse(self, source: bytes):
        self.seen.append(source)
        return _FakeTree(self._root)


class _FakeFactory(ParserFactory):
    def __init__(self, root):
        self.parser = _FakeParser(root)
        self.languages: list[str] = []

    def get_parser(self, language: str):
        self.languages.append(language)
        return self.parser


class TestParserWithFakeFactory:
    def test_asks_factory_for_javascript(self):
        factory = _FakeFactory(_FakeNode())
        Parser(factory).parse("x")
        assert factory.languages == ["javascript"]
        assert factory.parser.seen == [b"x"]

    def test_clean_tree_is_returned(self):
        root = _FakeNode()
        tree = Parser(_FakeFactory(root)).parse("")
        assert tree.root_node is root

    def test_error_node_location_is_reported(self):
        bad = _FakeNode(type="ERROR", start=(2, 4), end=(2, 6))
        root = _FakeNode(children=[_FakeNode(type="expression_statement"), bad])
        with pytest.raises(ParseError) as exc_info:
            Parser(_FakeFactory(root)).parse("...")
        assert exc_info.value.line == 3
        assert exc_info.value.column == 4
        assert str(exc_info.value) == "SyntaxError: unexpected token at line 3:4"

    def test_missing_node_is_named(self):
        missing = _FakeNode(type=";", start=(0, 5), end=(0, 5), is_missing=True)
        root = _FakeNode(children=[missing])
        with pytest.raises(ParseError, match="missing ';'"):
            Parser(_FakeFactory(root)).parse("x = 1")

    def test_execute_traced_uses_injected_factory(self):
        bad = _FakeNode(type="ERROR", start=(0, 0), end=(0, 1))
        trace = execute_traced(
            "anything", parser_factory=_FakeFactory(_FakeNode(children=[bad]))
        )
        assert trace.failed
        assert trace.error.content == ["SyntaxError: unexpected token at line 1:0"]


class TestTreeSitterParser:
    def test_parses_javascript(self):
        tree = Parser(TreeSitterParserFactory()).parse("let a = 1;\n")
        assert tree.root_node.type == "program"

    def test_source_location_is_one_based(self):
        tree = Parser(TreeSitterParserFactory()).parse("\nlet a = 1;\n")
        declaration = tree.root_node.named_children[0]
        loc = source_location(declaration)
        assert (loc.start_line, loc.start_col) == (2, 0)
        assert str(loc) == "2:0-2:10"

    def test_unknown_location_string(self):
        assert str(NO_SOURCE_LOCATION) == "<unknown>"
        assert NO_SOURCE_LOCATION.is_unknown()
