"""
Template renderer.

Walks a Document AST against a scope chain and produces Markdown. The
Renderer is the reusable public entry point (options, base directory and
document cache); each render call runs in its own RenderSession holding
the mutable per-render state: include chain, nesting depth, heading level
and open lists.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Mapping, Optional, Union, cast

from .includes import DocumentCache, IncludeResolver, display_path
from .markdown import ListState, format_code, handler_for
from ..errors import EvalError, EvalErrorKind, IncludeError, IncludeErrorKind, LexError, ParseError, PomdError
from ..expr.evaluator import ExpressionEvaluator
from ..expr.model import Expression
from ..scope import Scope
from ..template.nodes import (
    CodeNode,
    Document,
    Element,
    ExpressionAttr,
    LiteralAttr,
    TemplateNode,
    TextNode,
)
from ..template.parser import DocumentParser
from ..types import STRING_SOURCE, RenderOptions
from ..values import (
    ArrayValue,
    NumberValue,
    ObjectValue,
    StringValue,
    Value,
    bool_value,
    convert,
    display,
    from_python,
    parse_json,
)

logger = logging.getLogger(__name__)

Context = Union[Scope, Mapping[str, Any], None]
PathLike = Union[str, Path]


class RenderSession:
    """
    State of one render call.

    Not thread-safe; a session is created per call and discarded after it.
    """

    def __init__(self, options: RenderOptions, parser: DocumentParser, cache: Optional[DocumentCache]):
        self.options = options
        self.includes = IncludeResolver(options.max_include_depth, parser.parse, cache)
        self.heading_level = 1
        self._depth = 0
        self._dirs: List[Path] = []
        self._lists: List[Optional[ListState]] = []

    # ---- Documents ----

    def render_document(self, document: Document, scope: Scope, directory: Path) -> str:
        """Renders a parsed document with includes resolved relative to directory."""
        self._dirs.append(directory)
        try:
            return self.render_nodes(document.nodes, scope)
        finally:
            self._dirs.pop()

    def render_nodes(self, nodes, scope: Scope) -> str:
        return "".join(self.render(node, scope) for node in nodes)

    def render_children(self, element: Element, scope: Scope) -> str:
        return self.render_nodes(element.children, scope)

    # ---- Nodes ----

    def render(self, node: TemplateNode, scope: Scope) -> str:
        """
        Renders one node.

        Raises:
            EvalError: On evaluation failures and nesting overflow
            IncludeError: On include failures
        """
        if isinstance(node, TextNode):
            return self._render_text(node, scope)
        if isinstance(node, CodeNode):
            return format_code(node)
        if isinstance(node, Element):
            return self._render_element(node, scope)
        raise TypeError(f"Unknown node type: {type(node).__name__}")

    def _render_text(self, node: TextNode, scope: Scope) -> str:
        if not node.parts:
            return node.text
        evaluator = ExpressionEvaluator(scope)
        return "".join(
            part if isinstance(part, str) else display(evaluator.evaluate(part))
            for part in node.parts
        )

    def _render_element(self, element: Element, scope: Scope) -> str:
        self._depth += 1
        try:
            if self._depth > self.options.max_nesting_depth:
                raise EvalError(
                    EvalErrorKind.DEPTH_EXCEEDED,
                    f"Element nesting exceeds {self.options.max_nesting_depth} levels",
                    element.pos.line, element.pos.column,
                )
            return "".join(self._render_tag(element, block) for block in self._iterations(element, scope))
        finally:
            self._depth -= 1

    def _iterations(self, element: Element, scope: Scope) -> Iterator[Scope]:
        """
        Applies `if` and `for`.

        Yields nothing when the condition is false, the outer scope once
        when there is no loop, and a fresh child scope per loop iteration.
        """
        evaluator = ExpressionEvaluator(scope)
        if element.condition is not None and not evaluator.evaluate_bool(element.condition):
            return

        loop = element.loop
        if loop is None:
            yield scope
            return

        collection = evaluator.evaluate(loop.iterable)
        if isinstance(collection, ArrayValue):
            entries = [(NumberValue(float(i)), item) for i, item in enumerate(collection.items)]
        elif isinstance(collection, ObjectValue):
            entries = [(StringValue(key), item) for key, item in collection.fields.items()]
        else:
            raise EvalError(
                EvalErrorKind.NOT_ITERABLE,
                f"Cannot iterate over {collection.type_name()} '{loop.iterable}'",
                element.pos.line, element.pos.column,
            )

        length = len(entries)
        for index, (key, item) in enumerate(entries):
            iteration = scope.child()
            iteration.set("loop", ObjectValue({
                "index": NumberValue(float(index)),
                "length": NumberValue(float(length)),
                "first": bool_value(index == 0),
                "last": bool_value(index == length - 1),
            }))
            if loop.key is not None:
                iteration.set(loop.key, key)
            iteration.set(loop.item, item)
            yield iteration

    def _render_tag(self, element: Element, scope: Scope) -> str:
        if element.tag == "let":
            self._bind(element, scope)
            return ""
        if element.tag == "include":
            return self._include(element, scope)

        handler = handler_for(element.tag)
        if handler is None:
            # Only reachable with unknown_tags="passthrough"
            return self.render_children(element, scope)
        return handler(self, element, scope)

    # ---- Directives ----

    def _bind(self, element: Element, scope: Scope) -> None:
        pos = element.pos
        value = self._let_value(element, scope)

        type_name = self.attribute_text(element, "type", scope)
        if type_name is not None:
            try:
                value = convert(value, type_name.strip())
            except ValueError as e:
                raise EvalError(EvalErrorKind.INVALID_ATTRIBUTE, f"<let> {e}", pos.line, pos.column) from e
            except TypeError as e:
                raise EvalError(EvalErrorKind.TYPE_MISMATCH, f"<let> {e}", pos.line, pos.column) from e

        name_attr = element.attribute("name")
        if name_attr is not None:
            scope.set(cast(LiteralAttr, name_attr).text, value)
            return

        if not isinstance(value, ObjectValue):
            raise EvalError(EvalErrorKind.TYPE_MISMATCH,
                            f"<let> without 'name' expects an object value, got {value.type_name()}",
                            pos.line, pos.column)
        for key, item in value.fields.items():
            scope.set(key, item)

    def _let_value(self, element: Element, scope: Scope) -> Value:
        """Value of a <let> from exactly one of: `value`, `src` or the body."""
        sources = [name for name in ("value", "src") if element.attribute(name) is not None]
        if any(not (isinstance(child, TextNode) and child.is_blank()) for child in element.children):
            sources.append("body")

        pos = element.pos
        if len(sources) > 1:
            raise EvalError(EvalErrorKind.INVALID_ATTRIBUTE,
                            f"<let> takes one of 'value', 'src' or a body, got {' and '.join(sources)}",
                            pos.line, pos.column)
        if not sources:
            raise EvalError(EvalErrorKind.INVALID_ATTRIBUTE,
                            "<let> requires a 'value' attribute, a 'src' attribute or a body",
                            pos.line, pos.column)

        if sources[0] == "value":
            value_attr = cast(ExpressionAttr, element.attribute("value"))
            return ExpressionEvaluator(scope).evaluate(value_attr.expression)
        if sources[0] == "src":
            return self._read_let_source(element, scope)
        return StringValue(self.render_children(element, scope))

    def _read_let_source(self, element: Element, scope: Scope) -> Value:
        """File content for `<let src>`: decoded JSON for .json files, text otherwise."""
        src = self.attribute_text(element, "src", scope) or ""
        path = self.includes.resolve(src, self._dirs[-1], element.pos)
        text = self.includes.read(path, element.pos)
        logger.debug("Read <let> source %s", display_path(path))

        if path.suffix.lower() != ".json":
            return StringValue(text)
        try:
            return parse_json(text)
        except TypeError as e:
            raise EvalError(EvalErrorKind.TYPE_MISMATCH, f"{display_path(path)}: {e}",
                            element.pos.line, element.pos.column) from e

    def _include(self, element: Element, scope: Scope) -> str:
        src = self.attribute_text(element, "src", scope) or ""
        try:
            path = self.includes.resolve(src, self._dirs[-1], element.pos)
            with self.includes.enter(path, element.pos):
                try:
                    document = self.includes.load(path, element.pos)
                except (LexError, ParseError) as e:
                    raise e.annotate(display_path(path), self.includes.chain())

                logger.debug("Rendering include %s", display_path(path))
                try:
                    return self.render_document(document, scope.child(), path.parent)
                except PomdError as e:
                    raise e.annotate(display_path(path), self.includes.chain())
        except IncludeError as e:
            # Unresolvable targets are reported at the <include> of the including document
            raise e.annotate(include_chain=self.includes.chain())

    # ---- Helpers for tag handlers ----

    def attribute_text(self, element: Element, name: str, scope: Scope) -> Optional[str]:
        """Evaluates an attribute as a string; None when it is absent."""
        value = element.attribute(name)
        if value is None:
            return None
        if isinstance(value, LiteralAttr):
            return value.text
        evaluator = ExpressionEvaluator(scope)
        if isinstance(value, ExpressionAttr):
            return display(evaluator.evaluate(value.expression))
        return "".join(
            part if isinstance(part, str) else display(evaluator.evaluate(cast(Expression, part)))
            for part in value.parts
        )

    @contextmanager
    def heading_section(self) -> Iterator[None]:
        self.heading_level += 1
        try:
            yield
        finally:
            self.heading_level -= 1

    @contextmanager
    def open_list(self, state: Optional[ListState]) -> Iterator[None]:
        self._lists.append(state)
        try:
            yield
        finally:
            self._lists.pop()

    def current_list(self) -> Optional[ListState]:
        return self._lists[-1] if self._lists else None


class Renderer:
    """
    Renders templates to Markdown.

    A Renderer can be reused for many renders, also from several threads at
    once; parsed include targets are cached by resolved path (see
    RenderOptions.cache_documents). Parsers keep per-document state, so
    every parse and every session gets its own.
    """

    def __init__(self, options: Optional[RenderOptions] = None, base_dir: Optional[PathLike] = None,
                 cache: Optional[DocumentCache] = None):
        self.options = options or RenderOptions()
        self.base_dir = Path(base_dir) if base_dir is not None else Path.cwd()
        if cache is None and self.options.cache_documents:
            cache = DocumentCache()
        self.cache = cache

    def parse(self, text: str, source: str = STRING_SOURCE) -> Document:
        return DocumentParser(self.options).parse(text, source)

    def render_string(self, text: str, context: Context = None) -> str:
        """
        Renders template text; includes resolve relative to base_dir.

        Raises:
            PomdError: On any template, evaluation or include failure
        """
        document = self.parse(text)
        return self.render_document(document, context, self.base_dir)

    def render_file(self, path: PathLike, context: Context = None) -> str:
        """
        Renders a template file; includes resolve relative to its directory.

        Raises:
            IncludeError: NOT_FOUND when the file cannot be read
            PomdError: On any template, evaluation or include failure
        """
        resolved = Path(path).resolve()
        if not resolved.is_file():
            raise IncludeError(IncludeErrorKind.NOT_FOUND, f"Template file not found: {display_path(resolved)}")

        session = self._session()
        session.includes.start(resolved)

        document = session.includes.load(resolved)
        return self._run(session, document, context, resolved.parent)

    def render_document(self, document: Document, context: Context = None,
                        directory: Optional[PathLike] = None) -> str:
        """Renders an already parsed document."""
        session = self._session()
        return self._run(session, document, context, Path(directory) if directory else self.base_dir)

    def _session(self) -> RenderSession:
        return RenderSession(self.options, DocumentParser(self.options), self.cache)

    def _run(self, session: RenderSession, document: Document, context: Context, directory: Path) -> str:
        scope = make_scope(context)
        try:
            output = session.render_document(document, scope, directory)
        except PomdError as e:
            raise e.annotate(document.source)
        logger.debug("Rendered %s: %d chars", document.source, len(output))
        return output


def make_scope(context: Context) -> Scope:
    """
    Builds the root scope from a Scope, a mapping of Values or plain Python data.

    Raises:
        TypeError: When plain data contains unsupported types
    """
    if isinstance(context, Scope):
        return context
    if context is None:
        return Scope()
    return Scope({
        name: value if isinstance(value, Value) else from_python(value)
        for name, value in context.items()
    })


def render_string(text: str, context: Context = None, options: Optional[RenderOptions] = None,
                  base_dir: Optional[PathLike] = None) -> str:
    """Renders template text to Markdown."""
    return Renderer(options, base_dir).render_string(text, context)


def render_file(path: PathLike, context: Context = None, options: Optional[RenderOptions] = None) -> str:
    """Renders a template file to Markdown."""
    return Renderer(options).render_file(path, context)


__all__ = ["Renderer", "RenderSession", "make_scope", "render_string", "render_file"]
