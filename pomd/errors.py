"""
User-facing errors of the renderer.

All expected failures (malformed templates, bad expressions, broken
includes, invalid configuration) inherit from PomdError and are reported
by the CLI as clean diagnostics without tracebacks.

Programming errors and bugs should NOT inherit from PomdError,
they propagate with full tracebacks.
"""

from __future__ import annotations

import enum
from typing import Optional, Sequence, Tuple


class PomdError(Exception):
    """
    Base class for all user-facing errors.

    Attributes:
        message: Human readable reason
        line: 1-based line in the source document (0 when unknown)
        column: 1-based column in the source document (0 when unknown)
        source: Document the error was raised in ("<string>" for in-memory text)
        include_chain: Documents being included when the error surfaced
    """

    def __init__(self, message: str, line: int = 0, column: int = 0, source: Optional[str] = None):
        self.message = message
        self.line = line
        self.column = column
        self.source = source
        self.include_chain: Tuple[str, ...] = ()
        super().__init__(message)

    def annotate(self, source: Optional[str] = None, include_chain: Sequence[str] = ()) -> PomdError:
        """
        Attaches location info without overwriting what is already known.

        The innermost frame wins: an error raised deep inside an include
        keeps the document and chain it was first annotated with.
        """
        if self.source is None and source is not None:
            self.source = source
        if not self.include_chain and include_chain:
            self.include_chain = tuple(include_chain)
        return self

    def location(self) -> str:
        src = self.source or "<string>"
        if self.line:
            return f"{src}:{self.line}:{self.column}"
        return src

    def __str__(self) -> str:
        text = f"{self.location()}: {self.message}"
        if self.include_chain:
            text += f" (include chain: {' -> '.join(self.include_chain)})"
        return text


class LexError(PomdError):
    """Malformed token: unterminated tag/string/interpolation, invalid character."""
    pass


class ParseError(PomdError):
    """Malformed markup or expression grammar."""
    pass


class EvalErrorKind(enum.Enum):
    UNDEFINED_VARIABLE = "UndefinedVariable"
    MISSING_FIELD = "MissingField"
    INDEX_OUT_OF_BOUNDS = "IndexOutOfBounds"
    TYPE_MISMATCH = "TypeMismatch"
    DIVISION_BY_ZERO = "DivisionByZero"
    NOT_ITERABLE = "NotIterable"
    DEPTH_EXCEEDED = "DepthExceeded"
    INVALID_ATTRIBUTE = "InvalidAttribute"


class EvalError(PomdError):
    """Failure while evaluating an expression or a directive."""

    def __init__(self, kind: EvalErrorKind, message: str, line: int = 0, column: int = 0,
                 source: Optional[str] = None):
        self.kind = kind
        super().__init__(f"{kind.value}: {message}", line, column, source)


class IncludeErrorKind(enum.Enum):
    NOT_FOUND = "NotFound"
    CYCLE = "Cycle"
    DEPTH_EXCEEDED = "DepthExceeded"


class IncludeError(PomdError):
    """Failure to locate or enter an included document."""

    def __init__(self, kind: IncludeErrorKind, message: str, line: int = 0, column: int = 0,
                 source: Optional[str] = None):
        self.kind = kind
        super().__init__(f"{kind.value}: {message}", line, column, source)


class ConfigError(PomdError):
    """Invalid renderer configuration file."""
    pass


class ContextLoadError(PomdError):
    """Context data file cannot be read or converted into values."""
    pass


__all__ = [
    "PomdError",
    "LexError",
    "ParseError",
    "EvalError",
    "EvalErrorKind",
    "IncludeError",
    "IncludeErrorKind",
    "ConfigError",
    "ContextLoadError",
]
