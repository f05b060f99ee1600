"""
pomd: renders POML-style markup templates to Markdown.

Typical use:

    from pomd import render_string
    render_string('<p>Hello, {{ name }}!</p>', {"name": "world"})
"""

from __future__ import annotations

from .errors import (
    ConfigError,
    ContextLoadError,
    EvalError,
    EvalErrorKind,
    IncludeError,
    IncludeErrorKind,
    LexError,
    ParseError,
    PomdError,
)
from .expr import evaluate_expression, parse_expression
from .render import DocumentCache, Renderer, render_file, render_string
from .scope import Scope
from .template import parse_document
from .types import RenderOptions

__all__ = [
    "render_string",
    "render_file",
    "Renderer",
    "RenderOptions",
    "DocumentCache",
    "Scope",
    "parse_document",
    "parse_expression",
    "evaluate_expression",
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
