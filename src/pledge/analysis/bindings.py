"""Binding identity for identifier occurrences.

A ``SymbolTable`` is built once per source unit while ingest lowers the tree.
Every declaration gets a stable integer index; every identifier occurrence is
resolved through the lexical scope chain to one of those indices. Two
occurrences denote the same variable iff their indices are equal.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from pledge.analysis.syntax import Identifier, Node, Span


@dataclass(frozen=True)
class Binding:
    index: int
    name: str
    kind: str
    span: Span | None


@dataclass
class SymbolTable:
    bindings: list[Binding] = field(default_factory=list)

    def declare(self, name: str, *, kind: str, span: Span | None) -> int:
        index = len(self.bindings)
        self.bindings.append(Binding(index=index, name=name, kind=kind, span=span))
        return index

    def binding(self, index: int) -> Binding:
        return self.bindings[index]

    def __len__(self) -> int:
        return len(self.bindings)


@dataclass
class LexicalScope:
    """One link of the scope chain.

    ``function`` scopes receive hoisted ``var`` declarations; ``block`` scopes
    only hold lexical declarations. The ``program`` scope also collects
    implicit globals for names that resolve nowhere else.
    """

    kind: str
    table: SymbolTable
    parent: LexicalScope | None = None
    names: dict[str, int] = field(default_factory=dict)

    @property
    def is_function(self) -> bool:
        return self.kind in {"function", "program"}

    def child(self, kind: str) -> LexicalScope:
        return LexicalScope(kind=kind, table=self.table, parent=self)

    def declare(self, name: str, *, kind: str, span: Span | None = None) -> int:
        existing = self.names.get(name)
        if existing is not None:
            # redeclaration in the same scope refers to the same variable
            return existing
        index = self.table.declare(name, kind=kind, span=span)
        self.names[name] = index
        return index

    def hoisting_target(self) -> LexicalScope:
        scope = self
        while not scope.is_function and scope.parent is not None:
            scope = scope.parent
        return scope

    def lookup(self, name: str) -> int | None:
        scope: LexicalScope | None = self
        while scope is not None:
            index = scope.names.get(name)
            if index is not None:
                return index
            scope = scope.parent
        return None

    def root(self) -> LexicalScope:
        scope = self
        while scope.parent is not None:
            scope = scope.parent
        return scope

    def resolve(self, name: str) -> int:
        index = self.lookup(name)
        if index is not None:
            return index
        return self.root().declare(name, kind="implicit-global")


def same_binding(a: Node | None, b: Node | None) -> bool:
    """True iff both nodes are identifiers resolved to the same declaration."""
    if not isinstance(a, Identifier) or not isinstance(b, Identifier):
        return False
    if a.binding is None or b.binding is None:
        return False
    return a.binding == b.binding
