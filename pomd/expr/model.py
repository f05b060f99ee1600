"""
Expression AST.

Nodes are immutable. Each node remembers where it started in the source
document so evaluation errors can point at it; the position takes no part
in equality.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Tuple, Union

from ..types import NO_POS, SourcePos
from ..values import Value, display


class ExprType(Enum):
    """Kinds of expression nodes."""
    LITERAL = "literal"
    IDENTIFIER = "identifier"
    MEMBER = "member"
    INDEX = "index"
    UNARY = "unary"
    BINARY = "binary"
    ARRAY = "array"
    OBJECT = "object"


@dataclass(frozen=True)
class Expression(ABC):
    """Base class for all expression nodes."""

    @abstractmethod
    def get_type(self) -> ExprType:
        pass

    def __str__(self) -> str:
        return self._to_string()

    @abstractmethod
    def _to_string(self) -> str:
        pass


@dataclass(frozen=True)
class Literal(Expression):
    """Constant value: 42, "text", true, null."""
    value: Value
    pos: SourcePos = field(default=NO_POS, compare=False)

    def get_type(self) -> ExprType:
        return ExprType.LITERAL

    def _to_string(self) -> str:
        return display(self.value)


@dataclass(frozen=True)
class Identifier(Expression):
    """Variable reference resolved through the scope chain."""
    name: str
    pos: SourcePos = field(default=NO_POS, compare=False)

    def get_type(self) -> ExprType:
        return ExprType.IDENTIFIER

    def _to_string(self) -> str:
        return self.name


@dataclass(frozen=True)
class MemberAccess(Expression):
    """Field access: base.field"""
    base: Expression
    name: str
    pos: SourcePos = field(default=NO_POS, compare=False)

    def get_type(self) -> ExprType:
        return ExprType.MEMBER

    def _to_string(self) -> str:
        return f"{self.base}.{self.name}"


@dataclass(frozen=True)
class IndexAccess(Expression):
    """Subscript: base[index]"""
    base: Expression
    index: Expression
    pos: SourcePos = field(default=NO_POS, compare=False)

    def get_type(self) -> ExprType:
        return ExprType.INDEX

    def _to_string(self) -> str:
        return f"{self.base}[{self.index}]"


@dataclass(frozen=True)
class UnaryOp(Expression):
    """Prefix operator: `!` or `-`."""
    op: str
    operand: Expression
    pos: SourcePos = field(default=NO_POS, compare=False)

    def get_type(self) -> ExprType:
        return ExprType.UNARY

    def _to_string(self) -> str:
        return f"{self.op}{self.operand}"


@dataclass(frozen=True)
class BinaryOp(Expression):
    """
    Infix operator: left op right

    Supported operators: * / % + - < <= > >= == != === !== && ||
    """
    op: str
    left: Expression
    right: Expression
    pos: SourcePos = field(default=NO_POS, compare=False)

    def get_type(self) -> ExprType:
        return ExprType.BINARY

    def _to_string(self) -> str:
        return f"({self.left} {self.op} {self.right})"


@dataclass(frozen=True)
class ArrayLiteral(Expression):
    """Array constructor: [a, b, c]"""
    items: Tuple[Expression, ...]
    pos: SourcePos = field(default=NO_POS, compare=False)

    def get_type(self) -> ExprType:
        return ExprType.ARRAY

    def _to_string(self) -> str:
        return "[" + ", ".join(str(item) for item in self.items) + "]"


@dataclass(frozen=True)
class ObjectLiteral(Expression):
    """Object constructor: {"key": value, other: value}"""
    entries: Tuple[Tuple[str, Expression], ...]
    pos: SourcePos = field(default=NO_POS, compare=False)

    def get_type(self) -> ExprType:
        return ExprType.OBJECT

    def _to_string(self) -> str:
        return "{" + ", ".join(f"{key!r}: {value}" for key, value in self.entries) + "}"


AnyExpression = Union[
    Literal,
    Identifier,
    MemberAccess,
    IndexAccess,
    UnaryOp,
    BinaryOp,
    ArrayLiteral,
    ObjectLiteral,
]

__all__ = [
    "Expression",
    "ExprType",
    "Literal",
    "Identifier",
    "MemberAccess",
    "IndexAccess",
    "UnaryOp",
    "BinaryOp",
    "ArrayLiteral",
    "ObjectLiteral",
    "AnyExpression",
]
