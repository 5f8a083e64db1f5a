"""Rule entry points and the audit driver.

The outer traversal visits every node of a unit once. ``new`` expressions go
to the promise rule, assignments and variable declarators to the deferred
rule. Each recognized construct is checked behind ``run_guarded`` so a fault
while analysing one construct becomes a diagnostic for that construct and
the traversal carries on with its siblings.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable

from pledge.analysis.completion_discovery import Recognition, recognize_deferred, recognize_executor
from pledge.analysis.completion_walker import analyze
from pledge.analysis.diagnostics import (
    FAULT_RULE,
    Diagnostic,
    SourceText,
    emit,
    fault_message,
)
from pledge.analysis.syntax import Assignment, New, Node, VariableDeclarator
from pledge.analysis.visitors import ParentAnnotator, iter_nodes
from pledge.config import DEFERRED_RULE, PROMISE_RULE, LintConfig
from pledge.ingest import ParsedFileUnit, ParseFailureWitness, iter_source_paths, resolve_adapter
from pledge.ingest.registry import adapter_for_extension, supported_extensions

logger = logging.getLogger(__name__)


@dataclass
class AuditContext:
    source: SourceText
    config: LintConfig
    annotator: ParentAnnotator = field(default_factory=ParentAnnotator)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def parents(self) -> dict[Node, Node]:
        return self.annotator.parents


def run_guarded(
    context: AuditContext,
    node: Node,
    walker: str,
    check: Callable[[], Diagnostic | None],
) -> Diagnostic | None:
    try:
        diagnostic = check()
    except Exception as exc:
        logger.warning(
            "%s: %s failed at byte %d: %s",
            context.source.display_path,
            walker,
            node.span.start,
            exc,
        )
        diagnostic = emit(
            context.source,
            node,
            rule=FAULT_RULE,
            message=fault_message(context.source, node, walker, exc),
        )
    if diagnostic is not None:
        context.diagnostics.append(diagnostic)
    return diagnostic


def check_recognition(recognition: Recognition | None, source: SourceText) -> Diagnostic | None:
    if recognition is None:
        return None
    verdict = analyze(
        recognition.scope,
        recognition.handles,
        recognition.is_completion,
        recognition.shadow_policy,
    )
    logger.debug(
        "%s: %s construct at byte %d always completes: %s",
        source.display_path,
        recognition.rule,
        recognition.anchor.span.start,
        verdict,
    )
    if verdict:
        return None
    return emit(
        source,
        recognition.anchor,
        rule=recognition.rule,
        message=recognition.message(source, recognition.anchor),
    )


def visit_new_expression(node: New, context: AuditContext) -> Diagnostic | None:
    settings = context.config.executor
    if not settings.enabled:
        return None
    return run_guarded(
        context,
        node,
        PROMISE_RULE,
        lambda: check_recognition(recognize_executor(node, settings), context.source),
    )


def _visit_deferred_candidate(node: Assignment | VariableDeclarator, context: AuditContext) -> Diagnostic | None:
    settings = context.config.deferred
    if not settings.enabled:
        return None
    return run_guarded(
        context,
        node,
        DEFERRED_RULE,
        lambda: check_recognition(
            recognize_deferred(node, context.parents, settings, context.source),
            context.source,
        ),
    )


def visit_assignment(node: Assignment, context: AuditContext) -> Diagnostic | None:
    return _visit_deferred_candidate(node, context)


def visit_variable_declarator(node: VariableDeclarator, context: AuditContext) -> Diagnostic | None:
    return _visit_deferred_candidate(node, context)


def audit_tree(tree: Node, source: SourceText, config: LintConfig) -> list[Diagnostic]:
    context = AuditContext(source=source, config=config)
    for node, parent in iter_nodes(tree):
        # ancestors precede descendants in pre-order, so the map is complete
        # for everything above ``node`` when its callback runs
        context.annotator.record(node, parent)
        match node:
            case New():
                visit_new_expression(node, context)
            case Assignment():
                visit_assignment(node, context)
            case VariableDeclarator():
                visit_variable_declarator(node, context)
            case _:
                pass
    return context.diagnostics


def audit_unit(unit: ParsedFileUnit, config: LintConfig) -> list[Diagnostic]:
    return audit_tree(unit.tree, SourceText(unit.source, unit.path), config)


def audit_source(
    source: str | bytes,
    *,
    language_id: str | None = None,
    path: Path | None = None,
    config: LintConfig | None = None,
) -> list[Diagnostic]:
    """Parse and audit one unit of source text."""
    data = source.encode("utf-8") if isinstance(source, str) else source
    config = config if config is not None else LintConfig()
    adapter = resolve_adapter(path=path, language_id=language_id)
    try:
        unit = adapter.parse_source(data, path=path)
    except RecursionError as exc:
        text = SourceText(data, path)
        logger.warning("%s: nesting too deep to analyse", text.display_path)
        return [
            emit(text, None, rule=FAULT_RULE, message=fault_message(text, None, adapter.language_id, exc))
        ]
    return audit_unit(unit, config)


@dataclass
class AuditResult:
    files: list[Path] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    parse_failures: list[ParseFailureWitness] = field(default_factory=list)

    @property
    def violation_count(self) -> int:
        return len(self.diagnostics)

    def counts_by_rule(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for diagnostic in self.diagnostics:
            counts[diagnostic.rule] = counts.get(diagnostic.rule, 0) + 1
        return dict(sorted(counts.items()))


def audit_paths(paths: Iterable[str | Path], config: LintConfig) -> AuditResult:
    result = AuditResult()
    for path in iter_source_paths(paths, config=config, extensions=supported_extensions()):
        adapter = adapter_for_extension(path.suffix)
        if adapter is None:
            logger.warning("skipping %s: unsupported file type", path)
            result.parse_failures.append(
                ParseFailureWitness(path=path, stage="language", error=f"unsupported extension {path.suffix!r}")
            )
            continue
        try:
            data = path.read_bytes()
        except OSError as exc:
            logger.warning("skipping %s: %s", path, exc)
            result.parse_failures.append(ParseFailureWitness(path=path, stage="read", error=str(exc)))
            continue
        logger.debug("auditing %s as %s", path, adapter.language_id)
        result.files.append(path)
        result.diagnostics.extend(
            audit_source(data, language_id=adapter.language_id, path=path, config=config)
        )
    return result
