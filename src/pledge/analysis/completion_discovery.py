"""Recognition of the two completion-producing constructs.

Each front-end turns one syntactic construct into a ``Recognition``: the node
to anchor a diagnostic on, the scope to walk, the live handles, the
completion predicate and the shadow policy handed to the walker.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Mapping

from pledge.analysis.completion_walker import CompletionPredicate, HandleSet, ShadowPolicy
from pledge.analysis.diagnostics import SourceText, deferred_message, promise_message
from pledge.analysis.syntax import (
    Assignment,
    Block,
    Call,
    FunctionLiteral,
    Identifier,
    New,
    Node,
    PropertyAccess,
    VariableDeclarator,
)
from pledge.config import DEFERRED_RULE, PROMISE_RULE, DeferredRuleConfig, ExecutorRuleConfig
from pledge.invariants import never

MessageBuilder = Callable[[SourceText, Node], str]


@dataclass(frozen=True)
class Recognition:
    rule: str
    anchor: Node
    scope: Node
    handles: HandleSet
    is_completion: CompletionPredicate
    shadow_policy: ShadowPolicy
    message: MessageBuilder


def executor_handles(literal: FunctionLiteral) -> HandleSet:
    """First one or two parameters, keeping only plain identifiers."""
    handles: list[Identifier] = []
    for param in literal.parameters[:2]:
        if param.is_simple and isinstance(param.pattern, Identifier):
            handles.append(param.pattern)
    return HandleSet.of(handles)


def is_executor_completion(call: Call, handles: HandleSet) -> bool:
    return isinstance(call.callee, Identifier) and handles.contains(call.callee)


def is_executor_instantiation(node: New, config: ExecutorRuleConfig) -> bool:
    match node:
        case New(callee=Identifier(name=name), arguments=(FunctionLiteral(), *_)):
            return name in config.constructors
        case _:
            return False


def recognize_executor(node: New, config: ExecutorRuleConfig) -> Recognition | None:
    if not is_executor_instantiation(node, config):
        return None
    literal = node.arguments[0]
    if not isinstance(literal, FunctionLiteral):
        never("executor argument is not a function literal", kind=type(literal).__name__)
    return Recognition(
        rule=PROMISE_RULE,
        anchor=node,
        scope=literal.body,
        handles=executor_handles(literal),
        is_completion=is_executor_completion,
        shadow_policy=ShadowPolicy.FILTER,
        message=promise_message,
    )


def function_name(call: Call) -> str | None:
    match call.callee:
        case Identifier(name=name):
            return name
        case PropertyAccess(name=name):
            return name
        case _:
            return None


def function_target(call: Call, source: SourceText) -> str | None:
    match call.callee:
        case PropertyAccess(target=target):
            return source.text_of(target)
        case _:
            return None


def is_deferred_instantiation(
    expression: Node | None,
    config: DeferredRuleConfig,
    source: SourceText,
) -> bool:
    if not isinstance(expression, Call):
        return False
    name = function_name(expression)
    if name is None or name not in config.factories:
        return False
    return config.is_alias(function_target(expression, source))


def deferred_completion_predicate(config: DeferredRuleConfig) -> CompletionPredicate:
    def _is_completion(call: Call, handles: HandleSet) -> bool:
        match call.callee:
            case PropertyAccess(target=target, name=name) if handles.contains(target):
                return config.is_completion_operation(name)
            case _:
                return False

    return _is_completion


def nearest_block(node: Node, parents: Mapping[Node, Node]) -> Block:
    current = parents.get(node)
    while current is not None:
        if isinstance(current, Block):
            return current
        current = parents.get(current)
    never("deferred construct has no enclosing block", kind=type(node).__name__)


def _deferred_recognition(
    anchor: Node,
    handle: Identifier,
    parents: Mapping[Node, Node],
    config: DeferredRuleConfig,
) -> Recognition:
    return Recognition(
        rule=DEFERRED_RULE,
        anchor=anchor,
        scope=nearest_block(anchor, parents),
        handles=HandleSet.of([handle]),
        is_completion=deferred_completion_predicate(config),
        shadow_policy=ShadowPolicy.SEVER,
        message=deferred_message,
    )


def recognize_deferred(
    node: Assignment | VariableDeclarator,
    parents: Mapping[Node, Node],
    config: DeferredRuleConfig,
    source: SourceText,
) -> Recognition | None:
    match node:
        case Assignment(operator="=", target=Identifier() as target, value=value):
            if is_deferred_instantiation(value, config, source):
                return _deferred_recognition(node, target, parents, config)
        case VariableDeclarator(name=Identifier() as name, initializer=initializer):
            if is_deferred_instantiation(initializer, config, source):
                return _deferred_recognition(node, name, parents, config)
        case _:
            pass
    return None
