"""Tree-Sitter Parsing Layer."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from pydantic import BaseModel

from .errors import ParseError
from . import constants


class SourceLocation(BaseModel):
    """Structured source span from tree-sitter AST nodes (1-based lines)."""

    start_line: int
    start_col: int
    end_line: int
    end_col: int

    def is_unknown(self) -> bool:
        return self.start_line == 0 and self.end_line == 0

    def __str__(self) -> str:
        if self.is_unknown():
            return "<unknown>"
        return f"{self.start_line}:{self.start_col}-{self.end_line}:{self.end_col}"


NO_SOURCE_LOCATION = SourceLocation(start_line=0, start_col=0, end_line=0, end_col=0)


def source_location(node) -> SourceLocation:
    s, e = node.start_point, node.end_point
    return SourceLocation(
        start_line=s[0] + 1,
        start_col=s[1],
        end_line=e[0] + 1,
        end_col=e[1],
    )


def node_line(node) -> int:
    return node.start_point[0] + 1


class ParserFactory(ABC):
    """Abstract factory for obtaining a language parser."""

    @abstractmethod
    def get_parser(self, language: str): ...


class TreeSitterParserFactory(ParserFactory):
    """Concrete factory that delegates to tree-sitter-language-pack."""

    def get_parser(self, language: str):
        import tree_sitter_language_pack as tslp

        return tslp.get_parser(language)


def _first_error_node(node) -> Optional[object]:
    if node.type == "ERROR" or node.is_missing:
        return node
    if not node.has_error:
        return None
    return next(
        (
            found
            for child in node.children
            if (found := _first_error_node(child)) is not None
        ),
        None,
    )


class Parser:
    """Thin wrapper around a parser factory that rejects malformed input."""

    def __init__(self, parser_factory: ParserFactory):
        self._factory = parser_factory

    def parse(self, source: str, language: str = constants.LANGUAGE):
        parser = self._factory.get_parser(language)
        tree = parser.parse(source.encode("utf-8"))
        if tree.root_node.has_error:
            bad = _first_error_node(tree.root_node) or tree.root_node
            loc = source_location(bad)
            what = f"missing '{bad.type}'" if bad.is_missing else "unexpected token"
            raise ParseError(
                f"SyntaxError: {what} at line {loc.start_line}:{loc.start_col}",
                line=loc.start_line,
                column=loc.start_col,
            )
        return tree
