from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

# ---- Aliases for clarity ----
UnknownTagPolicy = Literal["error", "passthrough"]
STRING_SOURCE = "<string>"


@dataclass(frozen=True)
class SourcePos:
    """Position in a source document, 1-based."""
    line: int = 0
    column: int = 0

    def __str__(self) -> str:
        return f"{self.line}:{self.column}"


NO_POS = SourcePos()


# -----------------------------
@dataclass(frozen=True)
class RenderOptions:
    # Guards against runaway recursion
    max_include_depth: int = 16
    max_nesting_depth: int = 64
    max_expression_depth: int = 32
    # What to do with tags missing from the Markdown tag table
    unknown_tags: UnknownTagPolicy = "error"
    # Parsed documents are reused by resolved path within a renderer
    cache_documents: bool = True


__all__ = ["SourcePos", "NO_POS", "RenderOptions", "UnknownTagPolicy", "STRING_SOURCE"]
