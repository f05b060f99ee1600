"""
Expression engine: lexer, recursive descent parser and evaluator.
"""

from __future__ import annotations

from .evaluator import ExpressionEvaluator, evaluate_expression
from .parser import ExpressionParser, parse_expression

__all__ = [
    "ExpressionEvaluator",
    "ExpressionParser",
    "evaluate_expression",
    "parse_expression",
]
