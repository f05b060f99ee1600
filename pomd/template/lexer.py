"""
Lexical analyzer for markup templates.

Splits the template source into a token stream, switching between contexts:
- plain text
- inside a tag <name attr="value" ...>
- inside an interpolation {{ ... }} (delegated to the expression lexer)
- inside a <code> block (raw text up to </code>)
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Iterator, List, Union

from ..errors import LexError
from ..expr.lexer import ExpressionLexer, Token as ExprToken, _advance


class TokenType(enum.Enum):
    """Markup token types."""

    # Text content
    TEXT = "TEXT"

    # Tags
    TAG_OPEN = "TAG_OPEN"                # <name
    TAG_END = "TAG_END"                  # >
    TAG_SELF_CLOSE = "TAG_SELF_CLOSE"    # />
    TAG_CLOSE = "TAG_CLOSE"              # </name>

    # Attributes
    ATTR_NAME = "ATTR_NAME"
    ATTR_VALUE = "ATTR_VALUE"            # contents between the quotes

    # Raw body of <code>
    CODE = "CODE"

    # Interpolation delimiters, expression tokens come in between
    EXPR_START = "EXPR_START"            # {{
    EXPR_END = "EXPR_END"                # }}

    EOF = "EOF"


@dataclass(frozen=True)
class Token:
    """
    Token with position info for precise diagnostics.
    """
    type: TokenType
    value: str
    position: int        # Offset in the source text
    line: int            # Line number (1-based)
    column: int          # Column number (1-based)

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, {self.line}:{self.column})"


AnyToken = Union[Token, ExprToken]

RAW_TEXT_TAGS = {"code"}


class _Cursor:
    """Read position in the source with line/column tracking."""

    def __init__(self, text: str):
        self.text = text
        self.position = 0
        self.line = 1
        self.column = 1
        self.length = len(text)

    def at_end(self) -> bool:
        return self.position >= self.length

    def peek(self, offset: int = 0) -> str:
        index = self.position + offset
        return self.text[index] if index < self.length else ""

    def startswith(self, prefix: str) -> bool:
        return self.text.startswith(prefix, self.position)

    def advance(self, count: int) -> str:
        """Moves forward, updating line and column numbers."""
        consumed = self.text[self.position:self.position + count]
        for char in consumed:
            if char == '\n':
                self.line += 1
                self.column = 1
            else:
                self.column += 1
        self.position += len(consumed)
        return consumed

    def jump(self, position: int, line: int, column: int) -> None:
        self.position = position
        self.line = line
        self.column = column

    def token(self, token_type: TokenType, value: str) -> Token:
        return Token(token_type, value, self.position, self.line, self.column)


class TemplateLexer:
    """
    Template tokenizer.

    The lexer is lazy and restartable: every iteration starts from the
    beginning of the source and yields tokens on demand.
    """

    _NAME = re.compile(r'[A-Za-z][A-Za-z0-9_\-]*')
    _WHITESPACE = re.compile(r'\s+')

    def __init__(self, text: str):
        self.text = text
        self.expr_lexer = ExpressionLexer()

    def __iter__(self) -> Iterator[AnyToken]:
        return self._generate()

    def tokenize(self) -> List[AnyToken]:
        """
        Tokenizes the whole source and returns the token list.

        Raises:
            LexError: On lexical errors
        """
        return list(self)

    def _generate(self) -> Iterator[AnyToken]:
        cursor = _Cursor(self.text)

        while not cursor.at_end():
            if cursor.startswith("{{"):
                yield from self._lex_interpolation(cursor)
            elif self._at_tag(cursor):
                yield from self._lex_tag(cursor)
            else:
                yield self._lex_text(cursor)

        yield cursor.token(TokenType.EOF, "")

    def _at_tag(self, cursor: _Cursor) -> bool:
        return self._tag_starts_at(cursor.position)

    def _tag_starts_at(self, pos: int) -> bool:
        """`<` starts a tag only when followed by a name or `/name`."""
        text = self.text
        if not text.startswith('<', pos) or pos + 1 >= len(text):
            return False
        if text[pos + 1] == '/':
            return pos + 2 < len(text) and text[pos + 2].isalpha()
        return text[pos + 1].isalpha()

    def _lex_text(self, cursor: _Cursor) -> Token:
        start = cursor.token(TokenType.TEXT, "")
        pos = cursor.position
        while pos < cursor.length:
            if self.text.startswith("{{", pos) or self._tag_starts_at(pos):
                break
            pos += 1
        value = cursor.advance(pos - cursor.position)
        return Token(TokenType.TEXT, value, start.position, start.line, start.column)

    def _lex_interpolation(self, cursor: _Cursor) -> Iterator[AnyToken]:
        yield cursor.token(TokenType.EXPR_START, "{{")
        cursor.advance(2)

        tokens, end = self.expr_lexer.tokenize_embedded(self.text, cursor.position, cursor.line, cursor.column)
        yield from tokens

        eof = tokens[-1]
        cursor.jump(end, eof.line, eof.column)
        yield cursor.token(TokenType.EXPR_END, "}}")
        cursor.advance(2)

    def _lex_tag(self, cursor: _Cursor) -> Iterator[AnyToken]:
        if cursor.peek(1) == '/':
            yield self._lex_close_tag(cursor)
            return

        open_token = cursor.token(TokenType.TAG_OPEN, "")
        cursor.advance(1)
        name = self._read_name(cursor)
        yield Token(TokenType.TAG_OPEN, name, open_token.position, open_token.line, open_token.column)

        while True:
            self._skip_whitespace(cursor)
            if cursor.at_end():
                raise LexError(f"Unterminated tag <{name}>", open_token.line, open_token.column)

            if cursor.startswith("/>"):
                yield cursor.token(TokenType.TAG_SELF_CLOSE, "/>")
                cursor.advance(2)
                return

            if cursor.peek() == '>':
                yield cursor.token(TokenType.TAG_END, ">")
                cursor.advance(1)
                if name in RAW_TEXT_TAGS:
                    yield from self._lex_raw_body(cursor, name, open_token)
                return

            if cursor.peek().isalpha():
                yield from self._lex_attribute(cursor, name)
                continue

            raise LexError(f"Invalid character {cursor.peek()!r} in tag <{name}>", cursor.line, cursor.column)

    def _lex_attribute(self, cursor: _Cursor, tag_name: str) -> Iterator[AnyToken]:
        name_token = cursor.token(TokenType.ATTR_NAME, "")
        attr_name = self._read_name(cursor)
        yield Token(TokenType.ATTR_NAME, attr_name, name_token.position, name_token.line, name_token.column)

        self._skip_whitespace(cursor)
        if cursor.peek() != '=':
            raise LexError(f"Expected '=' after attribute '{attr_name}' in <{tag_name}>", cursor.line, cursor.column)
        cursor.advance(1)
        self._skip_whitespace(cursor)

        quote = cursor.peek()
        if quote not in ('"', "'"):
            raise LexError(f"Expected quoted value for attribute '{attr_name}'", cursor.line, cursor.column)
        quote_line, quote_column = cursor.line, cursor.column
        cursor.advance(1)

        value_token = cursor.token(TokenType.ATTR_VALUE, "")
        chars: List[str] = []
        while True:
            if cursor.at_end():
                raise LexError(f"Unterminated value of attribute '{attr_name}'", quote_line, quote_column)
            char = cursor.peek()
            if char == '\\' and cursor.peek(1) == quote:
                chars.append(quote)
                cursor.advance(2)
                continue
            if char == quote:
                cursor.advance(1)
                break
            chars.append(char)
            cursor.advance(1)

        yield Token(TokenType.ATTR_VALUE, ''.join(chars), value_token.position, value_token.line, value_token.column)

    def _lex_close_tag(self, cursor: _Cursor) -> Token:
        start = cursor.token(TokenType.TAG_CLOSE, "")
        cursor.advance(2)
        name = self._read_name(cursor)
        self._skip_whitespace(cursor)
        if cursor.peek() != '>':
            if cursor.at_end():
                raise LexError(f"Unterminated closing tag </{name}>", start.line, start.column)
            raise LexError(f"Invalid character {cursor.peek()!r} in closing tag </{name}>", cursor.line, cursor.column)
        cursor.advance(1)
        return Token(TokenType.TAG_CLOSE, name, start.position, start.line, start.column)

    def _lex_raw_body(self, cursor: _Cursor, name: str, open_token: Token) -> Iterator[AnyToken]:
        """Emits the body of a raw-text tag as one CODE token, then its closing tag."""
        closer = re.compile(rf'</{re.escape(name)}\s*>')
        match = closer.search(self.text, cursor.position)
        if match is None:
            raise LexError(f"Unterminated <{name}> block", open_token.line, open_token.column)

        body_token = cursor.token(TokenType.CODE, "")
        body = cursor.advance(match.start() - cursor.position)
        yield Token(TokenType.CODE, body, body_token.position, body_token.line, body_token.column)

        close_token = cursor.token(TokenType.TAG_CLOSE, name)
        cursor.advance(match.end() - match.start())
        yield close_token

    def _read_name(self, cursor: _Cursor) -> str:
        match = self._NAME.match(self.text, cursor.position)
        if match is None:
            raise LexError(f"Invalid character {cursor.peek()!r} in name", cursor.line, cursor.column)
        return cursor.advance(len(match.group(0)))

    def _skip_whitespace(self, cursor: _Cursor) -> None:
        match = self._WHITESPACE.match(self.text, cursor.position)
        if match:
            cursor.advance(len(match.group(0)))


def tokenize_template(text: str) -> List[AnyToken]:
    """
    Convenience function for tokenizing a template.

    Args:
        text: Template source

    Returns:
        Token list

    Raises:
        LexError: On lexical errors
    """
    return TemplateLexer(text).tokenize()


def tokenize_attribute(text: str, line: int, column: int) -> List[AnyToken]:
    """
    Tokenizes an attribute value as text with interpolations.

    Tags are not recognised inside attribute values.
    """
    lexer = ExpressionLexer()
    tokens: List[AnyToken] = []
    pos = 0
    text_line, text_column = line, column
    while pos < len(text):
        start = text.find("{{", pos)
        if start < 0:
            tokens.append(Token(TokenType.TEXT, text[pos:], pos, text_line, text_column))
            break
        if start > pos:
            tokens.append(Token(TokenType.TEXT, text[pos:start], pos, text_line, text_column))
            text_line, text_column = _advance(text[pos:start], text_line, text_column)
        tokens.append(Token(TokenType.EXPR_START, "{{", start, text_line, text_column))
        expr_tokens, end = lexer.tokenize_embedded(text, start + 2, text_line, text_column + 2)
        tokens.extend(expr_tokens)
        eof = expr_tokens[-1]
        tokens.append(Token(TokenType.EXPR_END, "}}", end, eof.line, eof.column))
        text_line, text_column = eof.line, eof.column + 2
        pos = end + 2
    return tokens


__all__ = ["TokenType", "Token", "AnyToken", "TemplateLexer", "tokenize_template", "tokenize_attribute"]
