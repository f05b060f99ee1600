"""
Include resolution.

Locates documents referenced by `<include src="...">`, parses them through
a shared DocumentCache and keeps the ordered chain of documents currently
being rendered so that cycles and runaway nesting are reported instead of
recursing forever.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from ..errors import IncludeError, IncludeErrorKind
from ..template.nodes import Document
from ..types import NO_POS, SourcePos

logger = logging.getLogger(__name__)


class DocumentCache:
    """
    Parsed documents keyed by resolved path.

    Safe to share between renders running in different threads. Parsing
    happens outside the lock; when two threads race on the same path the
    first stored document wins.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._documents: Dict[Path, Document] = {}

    def get(self, path: Path) -> Optional[Document]:
        with self._lock:
            return self._documents.get(path)

    def put(self, path: Path, document: Document) -> Document:
        with self._lock:
            return self._documents.setdefault(path, document)

    def get_or_load(self, path: Path, loader: Callable[[Path], Document]) -> Document:
        document = self.get(path)
        if document is not None:
            logger.debug("Document cache hit: %s", path)
            return document

        logger.debug("Document cache miss: %s", path)
        return self.put(path, loader(path))

    def __len__(self) -> int:
        with self._lock:
            return len(self._documents)

    def __contains__(self, path: Path) -> bool:
        with self._lock:
            return path in self._documents


def display_path(path: Path) -> str:
    """Path as shown in diagnostics: relative to the working directory when possible."""
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


class IncludeResolver:
    """
    Tracks the documents being rendered during one render call.

    The chain starts with the root document when it comes from a file;
    every include pushes the resolved target for the duration of its
    render and pops it afterwards.
    """

    def __init__(self, max_depth: int, parse: Callable[[str, str], Document],
                 cache: Optional[DocumentCache] = None):
        """
        Args:
            max_depth: Maximum number of nested includes
            parse: Callback turning (text, source label) into a Document
            cache: Shared cache, None disables caching
        """
        self.max_depth = max_depth
        self._parse = parse
        self.cache = cache
        self._chain: List[Path] = []
        self._root_count = 0

    # ---- Chain ----

    def start(self, root: Path) -> None:
        """Registers the root document of a file render."""
        self._chain = [root]
        self._root_count = 1

    @property
    def depth(self) -> int:
        """Number of includes currently open."""
        return len(self._chain) - self._root_count

    def chain(self) -> Tuple[str, ...]:
        return tuple(display_path(path) for path in self._chain)

    @contextmanager
    def enter(self, path: Path, pos: SourcePos = NO_POS) -> Iterator[None]:
        """
        Pushes an include target onto the chain for the duration of the block.

        Raises:
            IncludeError: CYCLE when the target is already being rendered,
                DEPTH_EXCEEDED when the include limit is reached
        """
        if path in self._chain:
            cycle = " -> ".join(display_path(p) for p in self._chain + [path])
            raise IncludeError(IncludeErrorKind.CYCLE, f"Circular include detected: {cycle}",
                               pos.line, pos.column)

        if self.depth >= self.max_depth:
            raise IncludeError(IncludeErrorKind.DEPTH_EXCEEDED,
                               f"Include depth exceeds {self.max_depth} while including {display_path(path)}",
                               pos.line, pos.column)

        self._chain.append(path)
        logger.debug("Entering include %s (depth %d)", display_path(path), self.depth)
        try:
            yield
        finally:
            self._chain.pop()

    # ---- Lookup & loading ----

    @staticmethod
    def resolve(src: str, base_dir: Path, pos: SourcePos = NO_POS) -> Path:
        """
        Resolves an include reference relative to the including document.

        Used for `<include src>` and `<let src>` alike.

        Raises:
            IncludeError: NOT_FOUND for an empty reference
        """
        if not src.strip():
            raise IncludeError(IncludeErrorKind.NOT_FOUND, "Empty include path", pos.line, pos.column)
        return (base_dir / src.strip()).resolve()

    @staticmethod
    def read(path: Path, pos: SourcePos = NO_POS) -> str:
        """
        Reads a referenced file as UTF-8 text.

        Raises:
            IncludeError: NOT_FOUND when the file is missing or unreadable
        """
        if not path.is_file():
            raise IncludeError(IncludeErrorKind.NOT_FOUND, f"File not found: {display_path(path)}",
                               pos.line, pos.column)
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise IncludeError(IncludeErrorKind.NOT_FOUND, f"Cannot read {display_path(path)}: {e}",
                               pos.line, pos.column) from e

    def load(self, path: Path, pos: SourcePos = NO_POS) -> Document:
        """
        Returns the parsed document at path, from the cache when possible.

        Raises:
            IncludeError: NOT_FOUND when the file cannot be read
            LexError, ParseError: When the target is malformed
        """
        if not path.is_file():
            raise IncludeError(IncludeErrorKind.NOT_FOUND, f"Included file not found: {display_path(path)}",
                               pos.line, pos.column)

        def read_and_parse(target: Path) -> Document:
            return self._parse(self.read(target, pos), display_path(target))

        if self.cache is None:
            return read_and_parse(path)
        return self.cache.get_or_load(path, read_and_parse)


__all__ = ["DocumentCache", "IncludeResolver", "display_path"]
