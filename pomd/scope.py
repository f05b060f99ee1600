"""
Variable scopes for template evaluation.

A Scope owns its own bindings and points at an optional parent. Lookups
walk the parent chain; bindings always go into the scope they are set on,
so dropping a child scope drops everything bound in it.
"""

from __future__ import annotations

from typing import Dict, Iterator, Mapping, Optional

from .values import Value


class Scope:
    """
    One level of variable bindings.

    Created for the document root, for every `for` iteration and for every
    included document.
    """

    def __init__(self, bindings: Optional[Mapping[str, Value]] = None, parent: Optional[Scope] = None):
        self._vars: Dict[str, Value] = dict(bindings or {})
        self._parent = parent

    @property
    def parent(self) -> Optional[Scope]:
        return self._parent

    def child(self, bindings: Optional[Mapping[str, Value]] = None) -> Scope:
        """Creates a nested scope whose lookups fall back to this one."""
        return Scope(bindings, parent=self)

    def lookup(self, name: str) -> Optional[Value]:
        """
        Finds the nearest binding of a name.

        Returns:
            Bound value or None when no scope in the chain defines it
        """
        scope: Optional[Scope] = self
        while scope is not None:
            if name in scope._vars:
                return scope._vars[name]
            scope = scope._parent
        return None

    def is_defined(self, name: str) -> bool:
        return self.lookup(name) is not None

    def set(self, name: str, value: Value) -> None:
        """Binds or rebinds a name in this scope only."""
        self._vars[name] = value

    def local_names(self) -> Iterator[str]:
        return iter(self._vars)

    def depth(self) -> int:
        level = 0
        scope = self._parent
        while scope is not None:
            level += 1
            scope = scope._parent
        return level

    def __repr__(self) -> str:
        return f"Scope({sorted(self._vars)}, depth={self.depth()})"


__all__ = ["Scope"]
