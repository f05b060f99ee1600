"""
Recursive descent parser for template expressions.

Builds an Expression AST from the token sequence, honouring operator
precedence and grouping.

Grammar:
expression     → or_expr
or_expr        → and_expr ("||" and_expr)*
and_expr       → equality ("&&" equality)*
equality       → relational (("==" | "!=" | "===" | "!==") relational)*
relational     → additive (("<" | "<=" | ">" | ">=") additive)*
additive       → multiplicative (("+" | "-") multiplicative)*
multiplicative → unary (("*" | "/" | "%") unary)*
unary          → ("!" | "-") unary | postfix
postfix        → primary ("." IDENTIFIER | "[" expression "]")*
primary        → NUMBER | STRING | "true" | "false" | "null" | IDENTIFIER
               | "(" expression ")" | array | object
array          → "[" (expression ("," expression)* ","?)? "]"
object         → "{" (key ":" expression ("," key ":" expression)* ","?)? "}"
key            → STRING | IDENTIFIER

Loop clause (the `for` attribute):
loop           → IDENTIFIER ("," IDENTIFIER)? "in" expression
"""

from __future__ import annotations

from typing import List, Optional, Tuple

from .lexer import ExpressionLexer, Token
from .model import (
    ArrayLiteral,
    BinaryOp,
    Expression,
    Identifier,
    IndexAccess,
    Literal,
    MemberAccess,
    ObjectLiteral,
    UnaryOp,
)
from ..errors import ParseError
from ..types import SourcePos
from ..values import FALSE, NULL, TRUE, NumberValue, StringValue

# Binary precedence levels, lowest first
_BINARY_LEVELS: List[Tuple[str, ...]] = [
    ("||",),
    ("&&",),
    ("==", "!=", "===", "!=="),
    ("<", "<=", ">", ">="),
    ("+", "-"),
    ("*", "/", "%"),
]

DEFAULT_MAX_DEPTH = 32


class ExpressionParser:
    """
    Recursive descent expression parser.

    Turns a token list into an AST while respecting operator precedence
    and associativity. Nesting deeper than `max_depth` is reported as a
    ParseError instead of exhausting the interpreter stack.
    """

    def __init__(self, max_depth: int = DEFAULT_MAX_DEPTH):
        self.lexer = ExpressionLexer()
        self.max_depth = max_depth
        self._tokens: List[Token] = []
        self._position = 0
        self._depth = 0

    def parse(self, text: str, line: int = 1, column: int = 1) -> Expression:
        """
        Parses expression text into an AST.

        Args:
            text: Expression source
            line: Line of the first character in the enclosing document
            column: Column of the first character in the enclosing document

        Returns:
            Root expression node

        Raises:
            LexError: On tokenization errors
            ParseError: On syntax errors
        """
        tokens = self.lexer.tokenize(text, line, column)
        return self.parse_tokens(tokens)

    def parse_tokens(self, tokens: List[Token]) -> Expression:
        """Parses an EOF-terminated token list into an AST."""
        self._reset(tokens)

        if self._is_at_end():
            current = self._current_token()
            raise ParseError("Empty expression", current.line, current.column)

        result = self._parse_expression()
        self._expect_end()
        return result

    def parse_loop(self, text: str, line: int = 1, column: int = 1) -> Tuple[Optional[str], str, Expression]:
        """
        Parses a `for` clause: `item in expr` or `key, item in expr`.

        Returns:
            (key name or None, item name, iterable expression)

        Raises:
            ParseError: When the clause does not follow the loop grammar
        """
        self._reset(self.lexer.tokenize(text, line, column))

        first = self._consume_identifier("Expected loop variable name in 'for'")
        key_name: Optional[str] = None
        item_name = first.value
        if self._match_punct(","):
            key_name = first.value
            item_name = self._consume_identifier("Expected item variable name after ',' in 'for'").value

        if not self._match_keyword("in"):
            current = self._current_token()
            raise ParseError("Expected 'in' in 'for' clause", current.line, current.column)

        if self._is_at_end():
            current = self._current_token()
            raise ParseError("Missing iterable expression after 'in'", current.line, current.column)

        iterable = self._parse_expression()
        self._expect_end()
        return key_name, item_name, iterable

    def _reset(self, tokens: List[Token]) -> None:
        self._tokens = tokens
        self._position = 0
        self._depth = 0

    def _expect_end(self) -> None:
        if not self._is_at_end():
            current = self._current_token()
            raise ParseError(f"Unexpected token '{current.value}'", current.line, current.column)

    def _parse_expression(self) -> Expression:
        return self._parse_binary(0)

    def _parse_binary(self, level: int) -> Expression:
        """Parses one precedence level of left-associative binary operators."""
        if level == len(_BINARY_LEVELS):
            return self._parse_unary()

        operators = _BINARY_LEVELS[level]
        left = self._parse_binary(level + 1)

        # Every operator in a chain nests the tree one level deeper
        entered = 0
        try:
            while True:
                op_token = self._match_operator(*operators)
                if op_token is None:
                    return left
                if self._is_at_end():
                    raise ParseError(f"Missing operand after '{op_token.value}'", op_token.line, op_token.column)
                self._enter(op_token)
                entered += 1
                right = self._parse_binary(level + 1)
                left = BinaryOp(op=op_token.value, left=left, right=right, pos=_pos(op_token))
        finally:
            self._depth -= entered

    def _parse_unary(self) -> Expression:
        """Parses prefix operators (right associative)."""
        op_token = self._match_operator("!", "-")
        if op_token is None:
            return self._parse_postfix()

        if self._is_at_end():
            raise ParseError(f"Missing operand after '{op_token.value}'", op_token.line, op_token.column)
        self._enter(op_token)
        try:
            operand = self._parse_unary()
        finally:
            self._depth -= 1
        return UnaryOp(op=op_token.value, operand=operand, pos=_pos(op_token))

    def _parse_postfix(self) -> Expression:
        """Parses member and index access chains."""
        expr = self._parse_primary()

        while True:
            current = self._current_token()
            if self._match_punct("."):
                name_token = self._consume_identifier("Expected field name after '.'")
                expr = MemberAccess(base=expr, name=name_token.value, pos=_pos(current))
            elif self._match_punct("["):
                self._enter(current)
                try:
                    index = self._parse_expression()
                finally:
                    self._depth -= 1
                self._consume_punct("]", "Expected ']' after index", current)
                expr = IndexAccess(base=expr, index=index, pos=_pos(current))
            else:
                return expr

    def _parse_primary(self) -> Expression:
        """Parses literals, names, groups and container literals."""
        current = self._current_token()

        if current.type == 'NUMBER':
            self._advance()
            return Literal(NumberValue(float(current.value)), pos=_pos(current))

        if current.type == 'STRING':
            self._advance()
            return Literal(StringValue(current.value), pos=_pos(current))

        if current.type == 'KEYWORD':
            if current.value == 'true':
                self._advance()
                return Literal(TRUE, pos=_pos(current))
            if current.value == 'false':
                self._advance()
                return Literal(FALSE, pos=_pos(current))
            if current.value == 'null':
                self._advance()
                return Literal(NULL, pos=_pos(current))

        if current.type == 'IDENTIFIER':
            self._advance()
            return Identifier(current.value, pos=_pos(current))

        if self._match_punct("("):
            self._enter(current)
            try:
                expr = self._parse_expression()
            finally:
                self._depth -= 1
            self._consume_punct(")", "Expected ')' after grouped expression", current)
            return expr

        if self._match_punct("["):
            return self._parse_array(current)

        if self._match_punct("{"):
            return self._parse_object(current)

        if current.type == 'EOF':
            raise ParseError("Unexpected end of expression", current.line, current.column)
        raise ParseError(f"Unexpected token '{current.value}'", current.line, current.column)

    def _parse_array(self, opener: Token) -> ArrayLiteral:
        items: List[Expression] = []
        self._enter(opener)
        try:
            while not self._check_punct("]"):
                items.append(self._parse_expression())
                if not self._match_punct(","):
                    break
        finally:
            self._depth -= 1
        self._consume_punct("]", "Expected ']' to close array literal", opener)
        return ArrayLiteral(items=tuple(items), pos=_pos(opener))

    def _parse_object(self, opener: Token) -> ObjectLiteral:
        entries: List[Tuple[str, Expression]] = []
        self._enter(opener)
        try:
            while not self._check_punct("}"):
                key_token = self._current_token()
                if key_token.type not in ('STRING', 'IDENTIFIER', 'KEYWORD'):
                    raise ParseError("Expected object key", key_token.line, key_token.column)
                self._advance()
                self._consume_punct(":", f"Expected ':' after object key '{key_token.value}'", key_token)
                entries.append((key_token.value, self._parse_expression()))
                if not self._match_punct(","):
                    break
        finally:
            self._depth -= 1
        self._consume_punct("}", "Expected '}' to close object literal", opener)
        return ObjectLiteral(entries=tuple(entries), pos=_pos(opener))

    # Token helpers

    def _enter(self, token: Token) -> None:
        self._depth += 1
        if self._depth > self.max_depth:
            raise ParseError(f"Expression nesting exceeds {self.max_depth} levels", token.line, token.column)

    def _current_token(self) -> Token:
        if self._position >= len(self._tokens):
            last = self._tokens[-1] if self._tokens else None
            if last is None:
                return Token('EOF', '', 0, 1, 1)
            return Token('EOF', '', last.position, last.line, last.column)
        return self._tokens[self._position]

    def _is_at_end(self) -> bool:
        return self._current_token().type == 'EOF'

    def _advance(self) -> Token:
        token = self._current_token()
        if not self._is_at_end():
            self._position += 1
        return token

    def _match_operator(self, *operators: str) -> Optional[Token]:
        current = self._current_token()
        if current.type == 'OPERATOR' and current.value in operators:
            return self._advance()
        return None

    def _match_keyword(self, keyword: str) -> bool:
        current = self._current_token()
        if current.type == 'KEYWORD' and current.value == keyword:
            self._advance()
            return True
        return False

    def _check_punct(self, symbol: str) -> bool:
        current = self._current_token()
        return current.type == 'PUNCT' and current.value == symbol

    def _match_punct(self, symbol: str) -> bool:
        if self._check_punct(symbol):
            self._advance()
            return True
        return False

    def _consume_punct(self, symbol: str, error_message: str, opener: Token) -> Token:
        if self._check_punct(symbol):
            return self._advance()
        current = self._current_token()
        if current.type == 'EOF':
            raise ParseError(f"{error_message} (opened at {opener.line}:{opener.column})",
                             current.line, current.column)
        raise ParseError(f"{error_message}, got '{current.value}'", current.line, current.column)

    def _consume_identifier(self, error_message: str) -> Token:
        current = self._current_token()
        if current.type == 'IDENTIFIER':
            return self._advance()
        raise ParseError(error_message, current.line, current.column)


def _pos(token: Token) -> SourcePos:
    return SourcePos(token.line, token.column)


def parse_expression(text: str, max_depth: int = DEFAULT_MAX_DEPTH) -> Expression:
    """
    Convenience function for parsing a standalone expression.

    Raises:
        LexError: On tokenization errors
        ParseError: On syntax errors
    """
    return ExpressionParser(max_depth).parse(text)


__all__ = ["ExpressionParser", "parse_expression", "DEFAULT_MAX_DEPTH"]
