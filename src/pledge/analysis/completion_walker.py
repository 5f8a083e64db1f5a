"""Branch-sensitive completion walker.

Decides whether every path through a scope is guaranteed to invoke one of a
set of completion handles. Only ``if``/``else`` has branch semantics. A
completion call or a handle escape found anywhere inside loops, ``switch`` or
``try`` satisfies the enclosing scope unconditionally.

Each walk is a pure function of its inputs: ``_walk`` threads a frozen
``BranchRecord`` through the scope and nested scopes get their own walk.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Iterable

from pledge.analysis.bindings import same_binding
from pledge.analysis.syntax import (
    Call,
    FunctionLiteral,
    Identifier,
    If,
    Node,
    child_nodes,
)


class ShadowPolicy(str, Enum):
    # drop redeclared handles and walk the literal body on its own
    FILTER = "filter"
    # a literal that redeclares the handle is a failed branch
    SEVER = "sever"


@dataclass(frozen=True)
class HandleSet:
    handles: tuple[Identifier, ...] = ()

    @classmethod
    def of(cls, handles: Iterable[Identifier]) -> HandleSet:
        return cls(tuple(handles))

    def __iter__(self):
        return iter(self.handles)

    def __len__(self) -> int:
        return len(self.handles)

    def contains(self, node: Node) -> bool:
        return any(same_binding(node, handle) for handle in self.handles)

    def names(self) -> frozenset[str]:
        return frozenset(handle.name for handle in self.handles)

    def without_names(self, names: frozenset[str]) -> HandleSet:
        return HandleSet(tuple(handle for handle in self.handles if handle.name not in names))

    def is_shadowed_by(self, literal: FunctionLiteral) -> bool:
        return bool(self.names() & literal.declared_names())


CompletionPredicate = Callable[[Call, HandleSet], bool]


@dataclass(frozen=True)
class BranchRecord:
    was_completed: bool = False
    has_branches: bool = False
    # no branches seen yet, so trivially all of them completed
    all_branches_completed: bool = True

    def is_always_completed(self) -> bool:
        if self.was_completed:
            return True
        if not self.has_branches:
            return False
        return self.all_branches_completed


@dataclass(frozen=True)
class _WalkContext:
    handles: HandleSet
    is_completion: CompletionPredicate
    shadow_policy: ShadowPolicy

    def with_handles(self, handles: HandleSet) -> _WalkContext:
        return replace(self, handles=handles)


def analyze(
    scope: Node,
    handles: HandleSet,
    is_completion: CompletionPredicate,
    shadow_policy: ShadowPolicy,
) -> bool:
    """Return True when every path through ``scope`` always completes."""
    context = _WalkContext(handles=handles, is_completion=is_completion, shadow_policy=shadow_policy)
    return _walk_scope(scope, context).is_always_completed()


def branch_record(
    scope: Node,
    handles: HandleSet,
    is_completion: CompletionPredicate,
    shadow_policy: ShadowPolicy,
) -> BranchRecord:
    context = _WalkContext(handles=handles, is_completion=is_completion, shadow_policy=shadow_policy)
    return _walk_scope(scope, context)


def _walk_scope(scope: Node, context: _WalkContext) -> BranchRecord:
    return _walk(scope, BranchRecord(), context)


def _escapes(call: Call, handles: HandleSet) -> bool:
    return any(handles.contains(argument) for argument in call.arguments)


def _walk(node: Node, record: BranchRecord, context: _WalkContext) -> BranchRecord:
    match node:
        case If():
            return _walk_if(node, record, context)
        case Call() if context.is_completion(node, context.handles):
            return replace(record, was_completed=True)
        case Call() if _escapes(node, context.handles):
            # handing the handle to another call counts as delegation
            return replace(record, was_completed=True)
        case FunctionLiteral():
            return _walk_function_literal(node, record, context)
        case _:
            return _walk_children(child_nodes(node), record, context)


def _walk_children(
    children: Iterable[Node],
    record: BranchRecord,
    context: _WalkContext,
) -> BranchRecord:
    for child in children:
        if record.was_completed:
            break
        record = _walk(child, record, context)
    return record


def _walk_if(node: If, record: BranchRecord, context: _WalkContext) -> BranchRecord:
    record = replace(record, has_branches=True)
    if not _walk_scope(node.then, context).is_always_completed():
        return replace(record, all_branches_completed=False)
    if node.otherwise is None:
        # a missing else arm never completes
        return replace(record, all_branches_completed=False)
    if not _walk_scope(node.otherwise, context).is_always_completed():
        return replace(record, all_branches_completed=False)
    return record


def _walk_function_literal(
    node: FunctionLiteral,
    record: BranchRecord,
    context: _WalkContext,
) -> BranchRecord:
    match context.shadow_policy:
        case ShadowPolicy.FILTER:
            visible = context.handles.without_names(node.declared_names())
            nested = _walk_scope(node.body, context.with_handles(visible))
            if nested.is_always_completed():
                return replace(record, was_completed=True)
            return record
        case ShadowPolicy.SEVER:
            if context.handles.is_shadowed_by(node):
                return replace(record, has_branches=True, all_branches_completed=False)
            return _walk_children(child_nodes(node), record, context)
    return record
