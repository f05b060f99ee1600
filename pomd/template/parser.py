"""
Document parser.

Turns the markup token stream into an immutable Document AST. Attribute
values and `{{ }}` interpolations are parsed into expression ASTs here, so
every syntax error surfaces before rendering starts.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field as dc_field
from typing import Iterator, List, Optional, Sequence, Tuple, Union

from .lexer import AnyToken, TemplateLexer, Token, TokenType, tokenize_attribute
from .nodes import (
    AttributeValue,
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
from ..errors import ParseError, PomdError
from ..expr.lexer import Token as ExprToken
from ..expr.model import Expression
from ..expr.parser import ExpressionParser
from ..types import STRING_SOURCE, RenderOptions, SourcePos

logger = logging.getLogger(__name__)

# Tags the Markdown renderer knows plus the directive tags
KNOWN_TAGS = frozenset({
    "poml", "p", "b", "i", "h", "section", "cp",
    "role", "task", "output-format", "stepwise-instructions",
    "list", "item", "code", "meta",
    "let", "include",
})

# Attributes that must be present on a tag
REQUIRED_ATTRIBUTES = {
    "cp": ("caption",),
    "include": ("src",),
}

# Attributes holding a bare expression rather than a string template
EXPRESSION_ATTRIBUTES = {
    "let": ("value",),
}

_ESCAPES = {
    "quot": '"',
    "apos": "'",
    "amp": "&",
    "lt": "<",
    "gt": ">",
    "hash": "#",
    "lbrace": "{",
    "rbrace": "}",
}
_ESCAPE_RE = re.compile(r'#(' + '|'.join(_ESCAPES) + r');')
_IDENTIFIER_RE = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')
_FALSE_LITERALS = {"", "0", "false", "no", "off"}

Part = Union[str, Expression]


def decode_escapes(text: str) -> str:
    """Decodes `#name;` escapes (`#lt;` → `<` and so on)."""
    return _ESCAPE_RE.sub(lambda m: _ESCAPES[m.group(1)], text)


@dataclass
class _OpenElement:
    """Element under construction while its children are being parsed."""
    tag: str
    token: Token
    attributes: List[Tuple[str, AttributeValue]] = dc_field(default_factory=list)
    children: List[TemplateNode] = dc_field(default_factory=list)
    condition: Optional[Expression] = None
    loop: Optional[ForClause] = None


class DocumentParser:
    """
    Builds a Document AST from template source.

    Nesting is tracked with an explicit stack of open elements, so deep
    markup never recurses in the parser itself.
    """

    def __init__(self, options: Optional[RenderOptions] = None):
        self.options = options or RenderOptions()
        self.expr_parser = ExpressionParser(self.options.max_expression_depth)
        self._text = ""
        self._tokens: Iterator[AnyToken] = iter(())

    def parse(self, text: str, source: str = STRING_SOURCE) -> Document:
        """
        Parses a whole document.

        Args:
            text: Template source
            source: Path (or "<string>") used in diagnostics

        Returns:
            Immutable Document AST

        Raises:
            LexError: On lexical errors
            ParseError: On malformed markup or expressions
        """
        try:
            nodes = self._parse(text)
        except PomdError as e:
            raise e.annotate(source)
        logger.debug("Parsed %s: %d top-level nodes", source, len(nodes))
        return Document(nodes=tuple(nodes), source=source)

    def _parse(self, text: str) -> List[TemplateNode]:
        self._text = text
        self._tokens = iter(TemplateLexer(text))

        root: List[TemplateNode] = []
        stack: List[_OpenElement] = []
        pending: List[Part] = []
        pending_start: Optional[AnyToken] = None

        def container() -> List[TemplateNode]:
            return stack[-1].children if stack else root

        def flush(end: int) -> None:
            nonlocal pending_start
            if pending_start is None:
                return
            container().append(TextNode(
                text=text[pending_start.position:end],
                parts=tuple(_merge_parts(pending)),
                pos=SourcePos(pending_start.line, pending_start.column),
            ))
            pending.clear()
            pending_start = None

        for token in self._tokens:
            token_type = token.type

            if token_type == TokenType.TEXT:
                if pending_start is None:
                    pending_start = token
                pending.append(decode_escapes(token.value))

            elif token_type == TokenType.EXPR_START:
                if pending_start is None:
                    pending_start = token
                pending.append(self._parse_interpolation(self._tokens))

            elif token_type == TokenType.TAG_OPEN:
                flush(token.position)
                element, self_closing = self._parse_open_tag(token)
                if self_closing:
                    container().append(self._finish(element))
                elif element.tag == "code":
                    container().append(self._parse_code(element))
                else:
                    stack.append(element)

            elif token_type == TokenType.TAG_CLOSE:
                flush(token.position)
                if not stack:
                    raise ParseError(f"Unexpected closing tag </{token.value}>", token.line, token.column)
                element = stack.pop()
                if element.tag != token.value:
                    raise ParseError(
                        f"Closing tag </{token.value}> does not match <{element.tag}> "
                        f"opened at {element.token.line}:{element.token.column}",
                        token.line, token.column,
                    )
                container().append(self._finish(element))

            elif token_type == TokenType.EOF:
                flush(token.position)
                if stack:
                    unclosed = stack[-1]
                    raise ParseError(f"Unclosed tag <{unclosed.tag}>", unclosed.token.line, unclosed.token.column)

            else:
                raise ParseError(f"Unexpected token {token_type.name}", token.line, token.column)

        return _prune_layout(root)

    # ---- Elements ----

    def _parse_open_tag(self, open_token: Token) -> Tuple[_OpenElement, bool]:
        tag = open_token.value
        if tag not in KNOWN_TAGS and self.options.unknown_tags == "error":
            raise ParseError(f"Unknown tag <{tag}>", open_token.line, open_token.column)

        element = _OpenElement(tag=tag, token=open_token)
        seen = set()

        for token in self._tokens:
            if token.type == TokenType.TAG_END:
                return element, False
            if token.type == TokenType.TAG_SELF_CLOSE:
                return element, True

            # The lexer always emits ATTR_NAME followed by ATTR_VALUE
            name_token = token
            value_token = next(self._tokens)
            name = name_token.value
            if name in seen:
                raise ParseError(f"Duplicate attribute '{name}' on <{tag}>", name_token.line, name_token.column)
            seen.add(name)
            self._apply_attribute(element, name, value_token)

        raise ParseError(f"Unterminated tag <{tag}>", open_token.line, open_token.column)

    def _apply_attribute(self, element: _OpenElement, name: str, value_token: Token) -> None:
        raw = value_token.value
        line, column = value_token.line, value_token.column
        pos = SourcePos(line, column)

        if name == "if":
            element.condition = self._expression_attr(name, raw, line, column)
            return

        if name == "for":
            key, item, iterable = self.expr_parser.parse_loop(raw, line, column)
            element.loop = ForClause(item=item, iterable=iterable, key=key)
            return

        if name in EXPRESSION_ATTRIBUTES.get(element.tag, ()):
            value: AttributeValue = ExpressionAttr(self._expression_attr(name, raw, line, column), pos=pos)
        else:
            parts = self._template_parts(raw, line, column)
            if all(isinstance(part, str) for part in parts):
                value = LiteralAttr("".join(parts), pos=pos)
            else:
                value = TemplateAttr(tuple(parts), pos=pos)

        if element.tag == "let" and name == "name":
            if not isinstance(value, LiteralAttr) or not _IDENTIFIER_RE.match(value.text):
                raise ParseError(f"Invalid variable name {raw!r} in <let>", line, column)

        element.attributes.append((name, value))

    def _parse_code(self, element: _OpenElement) -> Element:
        """Consumes the raw body and the closing tag of a <code> element."""
        body = next(self._tokens)
        next(self._tokens)  # TAG_CLOSE emitted by the lexer right after the body

        language: Optional[str] = None
        inline = False
        for name, value in element.attributes:
            if name not in ("lang", "inline"):
                continue
            if not isinstance(value, LiteralAttr):
                raise ParseError(f"Attribute '{name}' of <code> must be a literal",
                                 value.pos.line, value.pos.column)
            if name == "lang":
                language = value.text.strip() or None
            else:
                inline = value.text.strip().lower() not in _FALSE_LITERALS

        element.children.append(CodeNode(
            content=body.value,
            language=language,
            inline=inline,
            pos=SourcePos(body.line, body.column),
        ))
        return self._finish(element)

    def _finish(self, element: _OpenElement) -> Element:
        token = element.token
        present = {name for name, _ in element.attributes}
        for required in REQUIRED_ATTRIBUTES.get(element.tag, ()):
            if required not in present:
                raise ParseError(f"<{element.tag}> requires attribute '{required}'", token.line, token.column)

        return Element(
            tag=element.tag,
            attributes=tuple(element.attributes),
            children=tuple(_prune_layout(element.children)),
            condition=element.condition,
            loop=element.loop,
            pos=SourcePos(token.line, token.column),
        )

    # ---- Expressions inside markup ----

    def _parse_interpolation(self, tokens: Iterator[AnyToken]) -> Expression:
        """Collects expression tokens up to EXPR_END and parses them."""
        expr_tokens: List[ExprToken] = []
        for token in tokens:
            if token.type == TokenType.EXPR_END:
                return self.expr_parser.parse_tokens(expr_tokens)
            expr_tokens.append(token)
        raise ParseError("Unterminated interpolation")

    def _template_parts(self, raw: str, line: int, column: int) -> List[Part]:
        parts: List[Part] = []
        tokens = iter(tokenize_attribute(raw, line, column))
        for token in tokens:
            if token.type == TokenType.TEXT:
                parts.append(decode_escapes(token.value))
            elif token.type == TokenType.EXPR_START:
                parts.append(self._parse_interpolation(tokens))
        return _merge_parts(parts)

    def _expression_attr(self, name: str, raw: str, line: int, column: int) -> Expression:
        """
        Parses an attribute holding a bare expression.

        `if="x > 1"` and `if="{{ x > 1 }}"` are equivalent; text mixed with
        an interpolation is rejected.
        """
        parts = self._template_parts(raw, line, column)
        expressions = [part for part in parts if not isinstance(part, str)]
        if not expressions:
            return self.expr_parser.parse(raw, line, column)

        leftover = "".join(part for part in parts if isinstance(part, str))
        if len(expressions) > 1 or leftover.strip():
            raise ParseError(f"Attribute '{name}' must be a single expression", line, column)
        return expressions[0]


def _merge_parts(parts: Sequence[Part]) -> List[Part]:
    """Joins adjacent literal strings and drops empty ones."""
    merged: List[Part] = []
    for part in parts:
        if isinstance(part, str):
            if not part:
                continue
            if merged and isinstance(merged[-1], str):
                merged[-1] = merged[-1] + part
                continue
        merged.append(part)
    return merged


def _prune_layout(children: List[TemplateNode]) -> List[TemplateNode]:
    """
    Drops layout whitespace between elements.

    A container with only text keeps it verbatim.
    """
    if all(isinstance(child, TextNode) for child in children):
        return children
    return [
        child for child in children
        if not (isinstance(child, TextNode) and child.is_blank() and "\n" in child.text)
    ]


def parse_document(text: str, source: str = STRING_SOURCE, options: Optional[RenderOptions] = None) -> Document:
    """
    Convenience function for parsing template source.

    Raises:
        LexError: On lexical errors
        ParseError: On malformed markup or expressions
    """
    return DocumentParser(options).parse(text, source)


__all__ = ["DocumentParser", "parse_document", "decode_escapes", "KNOWN_TAGS"]
