"""Exception hierarchy for parse and evaluation faults."""

from __future__ import annotations


class JsTraceError(Exception):
    """Base class for every fault that aborts a traced run."""


class ParseError(JsTraceError):
    """Raised when the parser reports malformed source."""

    def __init__(self, message: str, line: int = 0, column: int = 0):
        super().__init__(message)
        self.line = line
        self.column = column


class NameResolutionError(JsTraceError):
    """Raised when reading an identifier that no visible scope declares."""

    def __init__(self, name: str):
        super().__init__(f"ReferenceError: {name} is not defined")
        self.name = name


class EvaluationError(JsTraceError):
    """Raised for runtime faults such as reading a property of undefined."""
