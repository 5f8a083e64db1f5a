"""Lowering of tree-sitter JavaScript/TypeScript trees into the analysis model.

Identifiers are resolved to bindings while lowering. Each scope-creating node
first declares what it owns (hoisted ``var`` for functions, ``let``/``const``,
classes and function declarations for blocks) and only then lowers its
children, so uses that precede a declaration still find it.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable, Iterable, Iterator

from pledge.analysis.bindings import LexicalScope, SymbolTable
from pledge.analysis.syntax import (
    Assignment,
    Block,
    Call,
    FunctionLiteral,
    Identifier,
    If,
    New,
    Node,
    Other,
    Parameter,
    PropertyAccess,
    Span,
    VariableDeclarator,
)

logger = logging.getLogger(__name__)

FUNCTION_LITERAL_TYPES = frozenset(
    {"arrow_function", "function_expression", "function", "generator_function"}
)
FUNCTION_DECLARATION_TYPES = frozenset(
    {"function_declaration", "generator_function_declaration", "method_definition"}
)
_FUNCTION_TYPES = FUNCTION_LITERAL_TYPES | FUNCTION_DECLARATION_TYPES
_IDENTIFIER_TYPES = frozenset(
    {"identifier", "shorthand_property_identifier", "shorthand_property_identifier_pattern"}
)
_SKIPPED_TYPES = frozenset(
    {
        "comment",
        "html_comment",
        "type_annotation",
        "type_arguments",
        "type_parameters",
        "optional_chain",
    }
)
_LEXICAL_DECLARATION_TYPES = frozenset({"class_declaration", "abstract_class_declaration"})


def _field(node, name: str):
    return node.child_by_field_name(name)


def _named(node) -> list:
    return [child for child in node.named_children if child.type not in _SKIPPED_TYPES]


def ts_pattern_names(node) -> Iterator:
    """Identifier nodes bound by a (possibly destructuring) tree-sitter pattern."""
    if node is None:
        return
    kind = node.type
    if kind in {"identifier", "shorthand_property_identifier_pattern"}:
        yield node
    elif kind in {"required_parameter", "optional_parameter"}:
        yield from ts_pattern_names(_field(node, "pattern"))
    elif kind == "pair_pattern":
        yield from ts_pattern_names(_field(node, "value"))
    elif kind in {"assignment_pattern", "object_assignment_pattern"}:
        yield from ts_pattern_names(_field(node, "left"))
    elif kind in {"object_pattern", "array_pattern", "rest_pattern"}:
        for child in _named(node):
            yield from ts_pattern_names(child)


class TreeLowerer:
    def __init__(self, source: bytes) -> None:
        self.source = source
        self.symbols = SymbolTable()
        self._dispatch: dict[str, Callable[[object, LexicalScope], Node]] = {
            "statement_block": self._lower_block,
            "switch_body": self._lower_switch_body,
            "if_statement": self._lower_if,
            "call_expression": self._lower_call,
            "new_expression": self._lower_new,
            "member_expression": self._lower_member,
            "assignment_expression": self._lower_assignment,
            "variable_declaration": self._lower_declaration,
            "lexical_declaration": self._lower_declaration,
            "catch_clause": self._lower_catch,
            "for_statement": self._lower_for,
            "for_in_statement": self._lower_for_in,
        }
        for kind in _IDENTIFIER_TYPES:
            self._dispatch[kind] = self._lower_identifier
        for kind in _FUNCTION_TYPES:
            self._dispatch[kind] = self._lower_function

    def _span(self, node) -> Span:
        return Span(node.start_byte, node.end_byte)

    def _text(self, node) -> str:
        return self.source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")

    def _declare_pattern(self, pattern, scope: LexicalScope, *, kind: str) -> None:
        for ident in ts_pattern_names(pattern):
            scope.declare(self._text(ident), kind=kind, span=self._span(ident))

    def _declare_var(self, node, scope: LexicalScope) -> None:
        """Hoist ``var`` declarations below ``node`` into ``scope``."""
        target = scope.hoisting_target()
        stack = [node]
        while stack:
            current = stack.pop()
            kind = current.type
            if kind in _FUNCTION_TYPES:
                continue
            if kind == "variable_declaration":
                for declarator in _named(current):
                    if declarator.type == "variable_declarator":
                        self._declare_pattern(_field(declarator, "name"), target, kind="var")
            elif kind == "for_in_statement":
                head = _field(current, "kind")
                if head is not None and head.type == "var":
                    self._declare_pattern(_field(current, "left"), target, kind="var")
            stack.extend(reversed(current.named_children))

    def _declare_lexical(self, statements: Iterable, scope: LexicalScope) -> None:
        for statement in statements:
            if statement.type == "export_statement":
                declaration = _field(statement, "declaration")
                if declaration is None:
                    continue
                statement = declaration
            kind = statement.type
            if kind == "lexical_declaration":
                head = _field(statement, "kind")
                binding_kind = head.type if head is not None else "let"
                for declarator in _named(statement):
                    if declarator.type == "variable_declarator":
                        self._declare_pattern(_field(declarator, "name"), scope, kind=binding_kind)
            elif kind in _LEXICAL_DECLARATION_TYPES or kind in FUNCTION_DECLARATION_TYPES:
                name = _field(statement, "name")
                if name is not None and name.type in {"identifier", "type_identifier"}:
                    binding_kind = "class" if kind in _LEXICAL_DECLARATION_TYPES else "function"
                    scope.declare(self._text(name), kind=binding_kind, span=self._span(name))

    def lower_program(self, root) -> Block:
        scope = LexicalScope(kind="program", table=self.symbols)
        self._declare_lexical(_named(root), scope)
        self._declare_var(root, scope)
        return Block(
            statements=self._lower_children(root, scope),
            span=self._span(root),
            kind="program",
        )

    def lower(self, node, scope: LexicalScope) -> Node:
        handler = self._dispatch.get(node.type)
        if handler is not None:
            return handler(node, scope)
        return self._lower_generic(node, scope)

    def _lower_optional(self, node, scope: LexicalScope) -> Node | None:
        if node is None or node.type in _SKIPPED_TYPES:
            return None
        return self.lower(node, scope)

    def _lower_required(self, node, scope: LexicalScope, owner) -> Node:
        lowered = self._lower_optional(node, scope)
        if lowered is None:
            # error recovery can drop a required child
            return Other(kind="MISSING", children=(), span=Span(owner.end_byte, owner.end_byte))
        return lowered

    def _lower_children(self, node, scope: LexicalScope) -> tuple[Node, ...]:
        return tuple(self.lower(child, scope) for child in _named(node))

    def _lower_generic(self, node, scope: LexicalScope) -> Node:
        return Other(kind=node.type, children=self._lower_children(node, scope), span=self._span(node))

    def _lower_identifier(self, node, scope: LexicalScope) -> Node:
        name = self._text(node)
        return Identifier(name=name, span=self._span(node), binding=scope.resolve(name))

    def _lower_block(self, node, scope: LexicalScope) -> Node:
        block_scope = scope.child("block")
        self._declare_lexical(_named(node), block_scope)
        return Block(
            statements=self._lower_children(node, block_scope),
            span=self._span(node),
        )

    def _lower_switch_body(self, node, scope: LexicalScope) -> Node:
        body_scope = scope.child("block")
        for case in _named(node):
            self._declare_lexical(_named(case), body_scope)
        return self._lower_generic(node, body_scope)

    def _lower_if(self, node, scope: LexicalScope) -> Node:
        alternative = _field(node, "alternative")
        otherwise: Node | None = None
        if alternative is not None:
            arms = _named(alternative)
            if arms:
                otherwise = self.lower(arms[0], scope)
        return If(
            condition=self._lower_required(_field(node, "condition"), scope, node),
            then=self._lower_required(_field(node, "consequence"), scope, node),
            otherwise=otherwise,
            span=self._span(node),
        )

    def _lower_arguments(self, node, scope: LexicalScope) -> tuple[Node, ...]:
        if node is None:
            return ()
        if node.type == "arguments":
            return self._lower_children(node, scope)
        # tagged template: the template itself is the only argument
        return (self.lower(node, scope),)

    def _lower_call(self, node, scope: LexicalScope) -> Node:
        return Call(
            callee=self._lower_required(_field(node, "function"), scope, node),
            arguments=self._lower_arguments(_field(node, "arguments"), scope),
            span=self._span(node),
        )

    def _lower_new(self, node, scope: LexicalScope) -> Node:
        return New(
            callee=self._lower_required(_field(node, "constructor"), scope, node),
            arguments=self._lower_arguments(_field(node, "arguments"), scope),
            span=self._span(node),
        )

    def _lower_member(self, node, scope: LexicalScope) -> Node:
        prop = _field(node, "property")
        return PropertyAccess(
            target=self._lower_required(_field(node, "object"), scope, node),
            name=self._text(prop) if prop is not None else "",
            span=self._span(node),
        )

    def _lower_assignment(self, node, scope: LexicalScope) -> Node:
        return Assignment(
            operator="=",
            target=self._lower_required(_field(node, "left"), scope, node),
            value=self._lower_required(_field(node, "right"), scope, node),
            span=self._span(node),
        )

    def _lower_declaration(self, node, scope: LexicalScope) -> Node:
        if node.type == "variable_declaration":
            kind = "var"
        else:
            head = _field(node, "kind")
            kind = head.type if head is not None else "let"
        children: list[Node] = []
        for child in _named(node):
            if child.type != "variable_declarator":
                children.append(self.lower(child, scope))
                continue
            children.append(
                VariableDeclarator(
                    name=self._lower_required(_field(child, "name"), scope, child),
                    initializer=self._lower_optional(_field(child, "value"), scope),
                    span=self._span(child),
                    kind=kind,
                )
            )
        return Other(kind=node.type, children=tuple(children), span=self._span(node))

    def _lower_catch(self, node, scope: LexicalScope) -> Node:
        catch_scope = scope.child("block")
        self._declare_pattern(_field(node, "parameter"), catch_scope, kind="catch")
        return self._lower_generic(node, catch_scope)

    def _lower_for(self, node, scope: LexicalScope) -> Node:
        loop_scope = scope.child("block")
        self._declare_lexical(_named(node), loop_scope)
        return self._lower_generic(node, loop_scope)

    def _lower_for_in(self, node, scope: LexicalScope) -> Node:
        loop_scope = scope.child("block")
        head = _field(node, "kind")
        if head is not None and head.type in {"let", "const"}:
            self._declare_pattern(_field(node, "left"), loop_scope, kind=head.type)
        return self._lower_generic(node, loop_scope)

    def _lower_parameter(self, node, scope: LexicalScope) -> Parameter:
        kind = node.type
        span = self._span(node)
        if kind in {"required_parameter", "optional_parameter"}:
            pattern = _field(node, "pattern")
            value = _field(node, "value")
            if pattern is not None and pattern.type == "rest_pattern":
                inner = _named(pattern)
                return Parameter(
                    pattern=self._lower_required(inner[0] if inner else None, scope, node),
                    default=None,
                    span=span,
                    rest=True,
                )
            return Parameter(
                pattern=self._lower_required(pattern, scope, node),
                default=self._lower_optional(value, scope),
                span=span,
            )
        if kind == "assignment_pattern":
            return Parameter(
                pattern=self._lower_required(_field(node, "left"), scope, node),
                default=self._lower_required(_field(node, "right"), scope, node),
                span=span,
            )
        if kind == "rest_pattern":
            inner = _named(node)
            return Parameter(
                pattern=self._lower_required(inner[0] if inner else None, scope, node),
                default=None,
                span=span,
                rest=True,
            )
        return Parameter(pattern=self.lower(node, scope), default=None, span=span)

    def _parameter_nodes(self, node) -> list:
        single = _field(node, "parameter")
        if single is not None:
            return [single]
        params = _field(node, "parameters")
        if params is None:
            return []
        return _named(params)

    def _lower_function(self, node, scope: LexicalScope) -> Node:
        kind = node.type
        is_literal = kind in FUNCTION_LITERAL_TYPES
        name_node = _field(node, "name")
        outer = scope
        if is_literal and name_node is not None and name_node.type == "identifier":
            # a named function expression sees its own name, below its parameters
            outer = scope.child("block")
            outer.declare(self._text(name_node), kind="function", span=self._span(name_node))
        function_scope = outer.child("function")
        param_nodes = self._parameter_nodes(node)
        for param in param_nodes:
            self._declare_pattern(param, function_scope, kind="param")
        body_node = _field(node, "body")
        if body_node is not None:
            self._declare_var(body_node, function_scope)
        name: Node | None = None
        if name_node is not None:
            name = self.lower(name_node, outer) if name_node.type == "identifier" else self._lower_generic(name_node, outer)
        parameters = tuple(self._lower_parameter(param, function_scope) for param in param_nodes)
        body = self._lower_required(body_node, function_scope, node)
        if is_literal:
            return FunctionLiteral(
                parameters=parameters,
                body=body,
                span=self._span(node),
                arrow=kind == "arrow_function",
                name=name if isinstance(name, Identifier) else None,
            )
        head: tuple[Node, ...] = (name,) if name is not None else ()
        return Other(kind=kind, children=(*head, *parameters, body), span=self._span(node))


def lower_tree(root, source: bytes) -> tuple[Block, SymbolTable]:
    lowerer = TreeLowerer(source)
    program = lowerer.lower_program(root)
    return program, lowerer.symbols


def iter_source_paths(
    paths: Iterable[str | Path],
    *,
    config,
    extensions: Iterable[str],
) -> list[Path]:
    """Expand input paths to source files, pruning ignored directories early."""
    suffixes = {extension.lower() for extension in extensions}
    out: list[Path] = []
    for p in paths:
        path = Path(p)
        if path.is_dir():
            for root, dirnames, filenames in os.walk(path, topdown=True):
                if config.exclude_dirs:
                    dirnames[:] = [d for d in dirnames if d not in config.exclude_dirs]
                dirnames.sort()
                for filename in sorted(filenames):
                    candidate = Path(root) / filename
                    if candidate.suffix.lower() not in suffixes:
                        continue
                    if config.is_ignored_path(candidate):
                        continue
                    out.append(candidate)
        else:
            if config.is_ignored_path(path):
                logger.debug("skipping excluded path %s", path)
                continue
            out.append(path)
    return out
