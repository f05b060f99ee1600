"""
Lexer for template expressions.

Splits expression text into tokens:
- Literals (numbers, quoted strings)
- Keywords (true, false, null, in)
- Identifiers (variable and field names)
- Operators and punctuation
- Whitespace (ignored)

Inside a `{{ ... }}` interpolation the lexer runs in embedded mode and stops
at the closing `}}` found outside of object-literal braces.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Tuple

from ..errors import LexError


@dataclass(frozen=True)
class Token:
    """
    Expression token with position info for diagnostics.

    Attributes:
        type: IDENTIFIER, KEYWORD, NUMBER, STRING, OPERATOR, PUNCT or EOF
        value: Token text (decoded contents for STRING)
        position: Offset in the scanned text
        line: 1-based line
        column: 1-based column
    """
    type: str
    value: str
    position: int
    line: int
    column: int

    def __repr__(self) -> str:
        return f"Token({self.type}, {self.value!r}, {self.line}:{self.column})"


_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "\\": "\\",
    "\"": "\"",
    "'": "'",
    "/": "/",
}


class ExpressionLexer:
    """
    Expression tokenizer.

    Supported tokens:
    - NUMBER: 42, 3.14, 1e3
    - STRING: "text" or 'text' with backslash escapes
    - KEYWORD: true, false, null, in
    - IDENTIFIER: names of variables and fields
    - OPERATOR: arithmetic, comparison and logical operators
    - PUNCT: ( ) [ ] { } . , :
    - EOF: end of expression
    """

    # Token specs: (regex_pattern, token_type, ignore_flag)
    TOKEN_SPECS = [
        (r'[ \t\r\n]+', 'WHITESPACE', True),
        (r'\d+(?:\.\d+)?(?:[eE][+-]?\d+)?', 'NUMBER', False),
        (r'["\']', 'QUOTE', False),
        (r'[A-Za-z_][A-Za-z0-9_]*', 'IDENTIFIER', False),
        # Longest operators first
        (r'===|!==|==|!=|<=|>=|&&|\|\||[-+*/%<>!]', 'OPERATOR', False),
        (r'[()\[\]{}.,:]', 'PUNCT', False),
        (r'.', 'UNKNOWN', False),
    ]

    KEYWORDS = {'true', 'false', 'null', 'in'}

    def __init__(self):
        self._compiled_patterns = [
            (re.compile(pattern, re.DOTALL), token_type, ignore)
            for pattern, token_type, ignore in self.TOKEN_SPECS
        ]

    def tokenize(self, text: str, line: int = 1, column: int = 1) -> List[Token]:
        """
        Splits a standalone expression into tokens.

        Args:
            text: Expression source
            line: Line of the first character in the enclosing document
            column: Column of the first character in the enclosing document

        Returns:
            Token list terminated by EOF

        Raises:
            LexError: On unknown characters or unterminated strings
        """
        tokens, _ = self._scan(text, 0, line, column, embedded=False)
        return tokens

    def tokenize_embedded(self, text: str, start: int, line: int, column: int) -> Tuple[List[Token], int]:
        """
        Tokenizes an interpolation body up to its closing `}}`.

        Args:
            text: Whole document text
            start: Offset just after the opening `{{`
            line: Line of the offset
            column: Column of the offset

        Returns:
            (tokens terminated by EOF, offset of the closing `}}`)

        Raises:
            LexError: When the interpolation is never closed
        """
        return self._scan(text, start, line, column, embedded=True)

    def _scan(self, text: str, start: int, line: int, column: int, embedded: bool) -> Tuple[List[Token], int]:
        tokens: List[Token] = []
        position = start
        brace_depth = 0

        while position < len(text):
            if embedded and brace_depth == 0 and text.startswith("}}", position):
                tokens.append(Token('EOF', '', position, line, column))
                return tokens, position

            for pattern, token_type, ignore in self._compiled_patterns:
                match = pattern.match(text, position)
                if not match:
                    continue
                value = match.group(0)

                if token_type == 'QUOTE':
                    end, decoded = self._scan_string(text, position, line, column)
                    tokens.append(Token('STRING', decoded, position, line, column))
                    value = text[position:end]
                elif token_type == 'UNKNOWN':
                    raise LexError(f"Unexpected character {value!r} in expression", line, column)
                elif not ignore:
                    final_type = token_type
                    if token_type == 'IDENTIFIER' and value in self.KEYWORDS:
                        final_type = 'KEYWORD'
                    if token_type == 'PUNCT':
                        if value == '{':
                            brace_depth += 1
                        elif value == '}':
                            brace_depth -= 1
                    tokens.append(Token(final_type, value, position, line, column))

                line, column = _advance(value, line, column)
                position += len(value)
                break

        if embedded:
            raise LexError("Unterminated interpolation: expected '}}'", line, column)

        tokens.append(Token('EOF', '', position, line, column))
        return tokens, position

    @staticmethod
    def _scan_string(text: str, start: int, line: int, column: int) -> Tuple[int, str]:
        """
        Reads a quoted string literal starting at `start`.

        Returns:
            (offset after the closing quote, decoded contents)
        """
        quote = text[start]
        chars: List[str] = []
        pos = start + 1
        while pos < len(text):
            char = text[pos]
            if char == '\\':
                if pos + 1 >= len(text):
                    break
                escaped = text[pos + 1]
                chars.append(_ESCAPES.get(escaped, escaped))
                pos += 2
                continue
            if char == quote:
                return pos + 1, ''.join(chars)
            if char == '\n':
                break
            chars.append(char)
            pos += 1
        raise LexError("Unterminated string literal", line, column)


def _advance(consumed: str, line: int, column: int) -> Tuple[int, int]:
    """Moves a line/column pair over consumed text."""
    newlines = consumed.count('\n')
    if newlines:
        return line + newlines, len(consumed) - consumed.rfind('\n')
    return line, column + len(consumed)


def tokenize_expression(text: str) -> List[Token]:
    """
    Convenience wrapper for tokenizing a standalone expression.

    Raises:
        LexError: On lexical errors
    """
    return ExpressionLexer().tokenize(text)


__all__ = ["Token", "ExpressionLexer", "tokenize_expression"]
