"""
Tag-to-Markdown table.

Every handler receives the render session, the element and the scope of
the current iteration, and returns the Markdown produced by the element.
Directives (`let`, `include`) and the `if`/`for` attributes are handled by
the session before a handler is called.
"""

from __future__ import annotations

import textwrap
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

from ..errors import EvalError, EvalErrorKind
from ..scope import Scope
from ..template.nodes import CodeNode, Element

if TYPE_CHECKING:
    from .engine import RenderSession

TagHandler = Callable[["RenderSession", Element, Scope], str]

LIST_MARKERS = {
    "dash": "-",
    "star": "*",
    "plus": "+",
    "decimal": None,  # numbered
}

SECTION_TITLES = {
    "role": "Role",
    "task": "Task",
    "output-format": "Output Format",
    "stepwise-instructions": "Stepwise Instructions",
}


@dataclass
class ListState:
    """Open <list> whose items are being rendered."""
    style: str
    counter: int = 0

    def next_marker(self) -> str:
        self.counter += 1
        marker = LIST_MARKERS[self.style]
        return f"{self.counter}." if marker is None else marker


def heading(level: int, title: str) -> str:
    return f"{'#' * level} {title}\n\n"


def indent_continuation(marker: str, content: str) -> str:
    """Formats one list item: marker on the first line, two-space indent after."""
    lines = content.split("\n")
    out = [f"{marker} {lines[0]}"]
    out.extend(f"  {line}" if line.strip() else "" for line in lines[1:])
    return "\n".join(out) + "\n"


# ---- Handlers ----

def render_passthrough(session: RenderSession, element: Element, scope: Scope) -> str:
    return session.render_children(element, scope)


def render_paragraph(session: RenderSession, element: Element, scope: Scope) -> str:
    return session.render_children(element, scope).strip() + "\n\n"


def render_bold(session: RenderSession, element: Element, scope: Scope) -> str:
    return f"**{session.render_children(element, scope)}**"


def render_italic(session: RenderSession, element: Element, scope: Scope) -> str:
    return f"*{session.render_children(element, scope)}*"


def render_heading(session: RenderSession, element: Element, scope: Scope) -> str:
    return heading(session.heading_level, session.render_children(element, scope).strip())


def render_section(session: RenderSession, element: Element, scope: Scope) -> str:
    with session.heading_section():
        return session.render_children(element, scope)


def render_captioned(session: RenderSession, element: Element, scope: Scope) -> str:
    """<cp caption="..."> and the fixed-title sections (role, task, ...)."""
    title = SECTION_TITLES.get(element.tag)
    if title is None:
        title = session.attribute_text(element, "caption", scope) or ""

    out = heading(session.heading_level, title.strip())
    with session.heading_section():
        return out + session.render_children(element, scope)


def render_list(session: RenderSession, element: Element, scope: Scope) -> str:
    style = (session.attribute_text(element, "listStyle", scope) or "dash").strip()
    if style not in LIST_MARKERS:
        raise EvalError(
            EvalErrorKind.INVALID_ATTRIBUTE,
            f"Unknown listStyle '{style}', expected one of: {', '.join(LIST_MARKERS)}",
            element.pos.line, element.pos.column,
        )

    parts: List[str] = []
    with session.open_list(ListState(style)):
        for child in element.children:
            if not isinstance(child, Element):
                continue
            output = session.render(child, scope)
            # Only items, direct or included, produce output; other elements still run (e.g. <let>)
            if child.tag in ("item", "include"):
                parts.append(output)
    return "".join(parts) + "\n"


def render_item(session: RenderSession, element: Element, scope: Scope) -> str:
    state = session.current_list()
    marker = state.next_marker() if state is not None else "-"
    with session.open_list(None):
        content = session.render_children(element, scope).strip()
    return indent_continuation(marker, content)


def render_code(session: RenderSession, element: Element, scope: Scope) -> str:
    for child in element.children:
        if isinstance(child, CodeNode):
            return format_code(child)
    return ""


def render_nothing(session: RenderSession, element: Element, scope: Scope) -> str:
    return ""


def format_code(node: CodeNode) -> str:
    if node.inline:
        return f"`{node.content.strip()}`"

    body = textwrap.dedent(node.content.strip("\n")).rstrip()
    lang = node.language or ""
    return f"```{lang}\n{body}\n```\n\n"


TAG_HANDLERS: Dict[str, TagHandler] = {
    "poml": render_passthrough,
    "p": render_paragraph,
    "b": render_bold,
    "i": render_italic,
    "h": render_heading,
    "section": render_section,
    "cp": render_captioned,
    "role": render_captioned,
    "task": render_captioned,
    "output-format": render_captioned,
    "stepwise-instructions": render_captioned,
    "list": render_list,
    "item": render_item,
    "code": render_code,
    "meta": render_nothing,
}


def handler_for(tag: str) -> Optional[TagHandler]:
    return TAG_HANDLERS.get(tag)


__all__ = ["TAG_HANDLERS", "LIST_MARKERS", "ListState", "handler_for", "format_code", "heading"]
