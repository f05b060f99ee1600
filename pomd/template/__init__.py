"""
Markup side of the renderer: lexer, document AST and parser.
"""

from __future__ import annotations

from .lexer import TemplateLexer, TokenType, tokenize_template
from .nodes import (
    CodeNode,
    Document,
    Element,
    ExpressionAttr,
    ForClause,
    LiteralAttr,
    TemplateAttr,
    TemplateNode,
    TextNode,
)
from .parser import KNOWN_TAGS, DocumentParser, decode_escapes, parse_document

__all__ = [
    "TemplateLexer",
    "TokenType",
    "tokenize_template",
    "CodeNode",
    "Document",
    "Element",
    "ExpressionAttr",
    "ForClause",
    "LiteralAttr",
    "TemplateAttr",
    "TemplateNode",
    "TextNode",
    "KNOWN_TAGS",
    "DocumentParser",
    "decode_escapes",
    "parse_document",
]
