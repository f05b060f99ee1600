"""
Expression evaluator.

Walks an expression AST and computes its value against a scope chain.
Every operator checks the types of its operands explicitly; there is no
implicit conversion besides the truthiness rule used by `!`, `&&` and `||`.
"""

from __future__ import annotations

from typing import Dict, cast

from .model import (
    ArrayLiteral,
    BinaryOp,
    Expression,
    ExprType,
    Identifier,
    IndexAccess,
    Literal,
    MemberAccess,
    ObjectLiteral,
    UnaryOp,
)
from ..errors import EvalError, EvalErrorKind
from ..scope import Scope
from ..types import SourcePos
from ..values import (
    ArrayValue,
    NumberValue,
    ObjectValue,
    StringValue,
    Value,
    bool_value,
    is_truthy,
)


class ExpressionEvaluator:
    """
    Evaluates expression ASTs in a scope.

    Evaluation never changes the scope; bindings are only introduced by
    the `<let>` directive and loop iterations.
    """

    def __init__(self, scope: Scope):
        self.scope = scope

    def evaluate(self, expr: Expression) -> Value:
        """
        Computes the value of an expression.

        Raises:
            EvalError: On undefined names, type mismatches, bad indexes
                or division by zero
        """
        expr_type = expr.get_type()

        if expr_type == ExprType.LITERAL:
            return cast(Literal, expr).value
        elif expr_type == ExprType.IDENTIFIER:
            return self._evaluate_identifier(cast(Identifier, expr))
        elif expr_type == ExprType.MEMBER:
            return self._evaluate_member(cast(MemberAccess, expr))
        elif expr_type == ExprType.INDEX:
            return self._evaluate_index(cast(IndexAccess, expr))
        elif expr_type == ExprType.UNARY:
            return self._evaluate_unary(cast(UnaryOp, expr))
        elif expr_type == ExprType.BINARY:
            return self._evaluate_binary(cast(BinaryOp, expr))
        elif expr_type == ExprType.ARRAY:
            return ArrayValue(tuple(self.evaluate(item) for item in cast(ArrayLiteral, expr).items))
        elif expr_type == ExprType.OBJECT:
            fields: Dict[str, Value] = {}
            for key, value_expr in cast(ObjectLiteral, expr).entries:
                fields[key] = self.evaluate(value_expr)
            return ObjectValue(fields)
        else:
            raise TypeError(f"Unknown expression type: {expr_type}")

    def evaluate_bool(self, expr: Expression) -> bool:
        """Evaluates an expression and applies the truthiness rule."""
        return is_truthy(self.evaluate(expr))

    def _evaluate_identifier(self, expr: Identifier) -> Value:
        value = self.scope.lookup(expr.name)
        if value is None:
            raise _error(EvalErrorKind.UNDEFINED_VARIABLE, f"Variable '{expr.name}' is not defined", expr.pos)
        return value

    def _evaluate_member(self, expr: MemberAccess) -> Value:
        base = self.evaluate(expr.base)
        if not isinstance(base, ObjectValue):
            raise _error(
                EvalErrorKind.TYPE_MISMATCH,
                f"Cannot access field '{expr.name}' of {base.type_name()} '{expr.base}'",
                expr.pos,
            )
        return self._get_field(base, expr.name, expr.pos)

    def _evaluate_index(self, expr: IndexAccess) -> Value:
        base = self.evaluate(expr.base)
        index = self.evaluate(expr.index)

        # Objects accept string keys, same as member access
        if isinstance(base, ObjectValue) and isinstance(index, StringValue):
            return self._get_field(base, index.value, expr.pos)

        if not isinstance(base, ArrayValue):
            raise _error(
                EvalErrorKind.TYPE_MISMATCH,
                f"Cannot index {base.type_name()} '{expr.base}' with {index.type_name()}",
                expr.pos,
            )
        if not isinstance(index, NumberValue) or not index.is_integral():
            raise _error(
                EvalErrorKind.TYPE_MISMATCH,
                f"Array index must be an integral number, got {index.type_name()} '{expr.index}'",
                expr.pos,
            )

        position = int(index.value)
        if position < 0 or position >= len(base.items):
            raise _error(
                EvalErrorKind.INDEX_OUT_OF_BOUNDS,
                f"Index {position} is out of range for array of length {len(base.items)}",
                expr.pos,
            )
        return base.items[position]

    @staticmethod
    def _get_field(base: ObjectValue, name: str, pos: SourcePos) -> Value:
        if name not in base.fields:
            raise _error(EvalErrorKind.MISSING_FIELD, f"Object has no field '{name}'", pos)
        return base.fields[name]

    def _evaluate_unary(self, expr: UnaryOp) -> Value:
        operand = self.evaluate(expr.operand)
        if expr.op == "!":
            return bool_value(not is_truthy(operand))

        if not isinstance(operand, NumberValue):
            raise _error(
                EvalErrorKind.TYPE_MISMATCH,
                f"Unary '-' expects a number, got {operand.type_name()}",
                expr.pos,
            )
        return NumberValue(-operand.value)

    def _evaluate_binary(self, expr: BinaryOp) -> Value:
        op = expr.op

        # Short-circuit: the right operand is evaluated only when needed
        if op == "&&":
            if not self.evaluate_bool(expr.left):
                return bool_value(False)
            return bool_value(self.evaluate_bool(expr.right))
        if op == "||":
            if self.evaluate_bool(expr.left):
                return bool_value(True)
            return bool_value(self.evaluate_bool(expr.right))

        left = self.evaluate(expr.left)
        right = self.evaluate(expr.right)

        if op in ("==", "==="):
            return bool_value(left == right)
        if op in ("!=", "!=="):
            return bool_value(left != right)
        if op in ("<", "<=", ">", ">="):
            return self._compare(expr, left, right)
        return self._arithmetic(expr, left, right)

    @staticmethod
    def _compare(expr: BinaryOp, left: Value, right: Value) -> Value:
        both_numbers = isinstance(left, NumberValue) and isinstance(right, NumberValue)
        both_strings = isinstance(left, StringValue) and isinstance(right, StringValue)
        if not (both_numbers or both_strings):
            raise _error(
                EvalErrorKind.TYPE_MISMATCH,
                f"Operator '{expr.op}' expects two numbers or two strings, "
                f"got {left.type_name()} and {right.type_name()}",
                expr.pos,
            )

        a = cast(NumberValue, left).value if both_numbers else cast(StringValue, left).value
        b = cast(NumberValue, right).value if both_numbers else cast(StringValue, right).value
        if expr.op == "<":
            return bool_value(a < b)
        if expr.op == "<=":
            return bool_value(a <= b)
        if expr.op == ">":
            return bool_value(a > b)
        return bool_value(a >= b)

    @staticmethod
    def _arithmetic(expr: BinaryOp, left: Value, right: Value) -> Value:
        if not isinstance(left, NumberValue) or not isinstance(right, NumberValue):
            raise _error(
                EvalErrorKind.TYPE_MISMATCH,
                f"Operator '{expr.op}' expects numbers, got {left.type_name()} and {right.type_name()}",
                expr.pos,
            )

        a, b = left.value, right.value
        if expr.op == "+":
            return NumberValue(a + b)
        if expr.op == "-":
            return NumberValue(a - b)
        if expr.op == "*":
            return NumberValue(a * b)
        if b == 0:
            raise _error(EvalErrorKind.DIVISION_BY_ZERO, f"Division by zero in '{expr}'", expr.pos)
        if expr.op == "/":
            return NumberValue(a / b)
        if expr.op == "%":
            return NumberValue(a % b)
        raise TypeError(f"Unknown binary operator: {expr.op}")


def _error(kind: EvalErrorKind, message: str, pos: SourcePos) -> EvalError:
    return EvalError(kind, message, pos.line, pos.column)


def evaluate_expression(text: str, scope: Scope) -> Value:
    """
    Convenience function: parse and evaluate an expression string.

    Raises:
        LexError: On tokenization errors
        ParseError: On syntax errors
        EvalError: On evaluation errors
    """
    from .parser import ExpressionParser

    ast = ExpressionParser().parse(text)
    return ExpressionEvaluator(scope).evaluate(ast)


__all__ = ["ExpressionEvaluator", "evaluate_expression"]
