"""
Rendering of Document ASTs to Markdown.
"""

from __future__ import annotations

from .engine import Renderer, RenderSession, make_scope, render_file, render_string
from .includes import DocumentCache, IncludeResolver
from .markdown import TAG_HANDLERS

__all__ = [
    "Renderer",
    "RenderSession",
    "make_scope",
    "render_file",
    "render_string",
    "DocumentCache",
    "IncludeResolver",
    "TAG_HANDLERS",
]
