"""
Document AST nodes.

Immutable node classes describing a parsed template: elements with their
attributes and directives, text with interpolations, and raw code blocks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple, Union

from ..expr.model import Expression
from ..types import NO_POS, SourcePos


# ---- Attribute values ----

@dataclass(frozen=True)
class LiteralAttr:
    """Plain attribute value without interpolations (escapes already decoded)."""
    text: str
    pos: SourcePos = field(default=NO_POS, compare=False)


@dataclass(frozen=True)
class TemplateAttr:
    """Attribute value mixing literal text and `{{ }}` interpolations."""
    parts: Tuple[Union[str, Expression], ...]
    pos: SourcePos = field(default=NO_POS, compare=False)


@dataclass(frozen=True)
class ExpressionAttr:
    """Attribute value that is a bare expression (`if`, `value`)."""
    expression: Expression
    pos: SourcePos = field(default=NO_POS, compare=False)


AttributeValue = Union[LiteralAttr, TemplateAttr, ExpressionAttr]


@dataclass(frozen=True)
class ForClause:
    """Parsed `for` attribute: `item in expr` or `key, item in expr`."""
    item: str
    iterable: Expression
    key: Optional[str] = None


# ---- Nodes ----

@dataclass(frozen=True)
class TemplateNode:
    """Base class for all document nodes."""
    pass


@dataclass(frozen=True)
class TextNode(TemplateNode):
    """
    Text content with optional interpolations.

    `parts` holds literal strings and expressions in document order;
    `text` is the original source slice.
    """
    text: str
    parts: Tuple[Union[str, Expression], ...] = ()
    pos: SourcePos = field(default=NO_POS, compare=False)

    def is_blank(self) -> bool:
        return all(isinstance(part, str) and not part.strip() for part in self.parts)


@dataclass(frozen=True)
class CodeNode(TemplateNode):
    """Raw body of a <code> element. Never interpolated."""
    content: str
    language: Optional[str] = None
    inline: bool = False
    pos: SourcePos = field(default=NO_POS, compare=False)


@dataclass(frozen=True)
class Element(TemplateNode):
    """
    Markup element.

    Directive attributes are lifted out of `attributes`: `if` becomes
    `condition` and `for` becomes `loop`.
    """
    tag: str
    attributes: Tuple[Tuple[str, AttributeValue], ...] = ()
    children: Tuple[TemplateNode, ...] = ()
    condition: Optional[Expression] = None
    loop: Optional[ForClause] = None
    pos: SourcePos = field(default=NO_POS, compare=False)

    def attribute(self, name: str) -> Optional[AttributeValue]:
        for attr_name, value in self.attributes:
            if attr_name == name:
                return value
        return None


@dataclass(frozen=True)
class Document:
    """Root of a parsed template."""
    nodes: Tuple[TemplateNode, ...]
    source: str


__all__ = [
    "LiteralAttr",
    "TemplateAttr",
    "ExpressionAttr",
    "AttributeValue",
    "ForClause",
    "TemplateNode",
    "TextNode",
    "CodeNode",
    "Element",
    "Document",
]
