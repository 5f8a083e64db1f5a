"""Closed node model consumed by the completion analysis.

Ingest lowers a concrete tree-sitter tree into these nodes. Only the kinds the
analysis special-cases get their own class; everything else is an ``Other``
carrying its grammar kind and its named children in source order.

Nodes compare by identity (``eq=False``) so they can key parent maps.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, TypeAlias


@dataclass(frozen=True)
class Span:
    """Byte range of a node inside its source unit."""

    start: int
    end: int

    @property
    def width(self) -> int:
        return self.end - self.start


@dataclass(frozen=True, eq=False)
class Identifier:
    name: str
    span: Span
    binding: int | None = None


@dataclass(frozen=True, eq=False)
class PropertyAccess:
    target: Node
    name: str
    span: Span


@dataclass(frozen=True, eq=False)
class Call:
    callee: Node
    arguments: tuple[Node, ...]
    span: Span


@dataclass(frozen=True, eq=False)
class New:
    callee: Node
    arguments: tuple[Node, ...]
    span: Span


@dataclass(frozen=True, eq=False)
class If:
    condition: Node
    then: Node
    otherwise: Node | None
    span: Span


@dataclass(frozen=True, eq=False)
class Parameter:
    pattern: Node
    default: Node | None
    span: Span
    rest: bool = False

    @property
    def is_simple(self) -> bool:
        return isinstance(self.pattern, Identifier) and self.default is None and not self.rest

    def declared_names(self) -> tuple[str, ...]:
        return tuple(ident.name for ident in pattern_identifiers(self.pattern))


@dataclass(frozen=True, eq=False)
class FunctionLiteral:
    parameters: tuple[Parameter, ...]
    body: Node
    span: Span
    arrow: bool = False
    name: Identifier | None = None

    def declared_names(self) -> frozenset[str]:
        names: set[str] = set()
        for param in self.parameters:
            names.update(param.declared_names())
        return frozenset(names)


@dataclass(frozen=True, eq=False)
class Assignment:
    operator: str
    target: Node
    value: Node
    span: Span


@dataclass(frozen=True, eq=False)
class VariableDeclarator:
    name: Node
    initializer: Node | None
    span: Span
    kind: str = "var"


@dataclass(frozen=True, eq=False)
class Block:
    statements: tuple[Node, ...]
    span: Span
    kind: str = "statement_block"


@dataclass(frozen=True, eq=False)
class Other:
    kind: str
    children: tuple[Node, ...]
    span: Span


Node: TypeAlias = (
    Identifier
    | PropertyAccess
    | Call
    | New
    | If
    | Parameter
    | FunctionLiteral
    | Assignment
    | VariableDeclarator
    | Block
    | Other
)


def child_nodes(node: Node) -> tuple[Node, ...]:
    """Children of ``node`` in source order."""
    match node:
        case Identifier():
            return ()
        case PropertyAccess(target=target):
            return (target,)
        case Call(callee=callee, arguments=arguments) | New(callee=callee, arguments=arguments):
            return (callee, *arguments)
        case If(condition=condition, then=then, otherwise=otherwise):
            if otherwise is None:
                return (condition, then)
            return (condition, then, otherwise)
        case Parameter(pattern=pattern, default=default):
            if default is None:
                return (pattern,)
            return (pattern, default)
        case FunctionLiteral(name=name, parameters=parameters, body=body):
            head: tuple[Node, ...] = (name,) if name is not None else ()
            return (*head, *parameters, body)
        case Assignment(target=target, value=value):
            return (target, value)
        case VariableDeclarator(name=name, initializer=initializer):
            if initializer is None:
                return (name,)
            return (name, initializer)
        case Block(statements=statements):
            return statements
        case Other(children=children):
            return children
    return ()


def pattern_identifiers(pattern: Node) -> Iterator[Identifier]:
    """Identifiers bound by a declaration pattern (destructuring included)."""
    match pattern:
        case Identifier():
            yield pattern
        case Parameter(pattern=inner):
            yield from pattern_identifiers(inner)
        case Other(kind="pair_pattern", children=children) if children:
            # key: value -- only the value side binds
            yield from pattern_identifiers(children[-1])
        case Other(kind="assignment_pattern" | "object_assignment_pattern", children=children) if children:
            yield from pattern_identifiers(children[0])
        case Other(kind="object_pattern" | "array_pattern" | "rest_pattern", children=children):
            for child in children:
                yield from pattern_identifiers(child)
        case _:
            return


def node_text(source: bytes, node: Node) -> str:
    return source[node.span.start : node.span.end].decode("utf-8", errors="replace")
