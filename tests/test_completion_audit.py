from __future__ import annotations

from pathlib import Path

import pytest

from pledge.analysis import completion_audit
from pledge.analysis.completion_audit import audit_paths, audit_source
from pledge.analysis.diagnostics import (
    DEFERRED_FAILURE_STRING,
    FAULT_RULE,
    PROMISE_FAILURE_STRING,
)
from pledge.config import (
    DEFERRED_RULE,
    PROMISE_RULE,
    DeferredRuleConfig,
    ExecutorRuleConfig,
    LintConfig,
)
from pledge.ingest.javascript_adapter import TreeSitterAdapter

from tests.js_helpers import executor


def _rules(diagnostics) -> list[str]:
    return [diagnostic.rule for diagnostic in diagnostics]


def test_if_else_covering_both_arms_is_clean() -> None:
    source = executor("if (c) { resolve(1); } else { reject(e); }")
    assert audit_source(source) == []


def test_if_without_else_reports_at_instantiation() -> None:
    source = "var p = " + executor("if (c) { resolve(1); }")
    diagnostics = audit_source(source)
    assert len(diagnostics) == 1
    diagnostic = diagnostics[0]
    assert diagnostic.rule == PROMISE_RULE
    assert diagnostic.message == PROMISE_FAILURE_STRING
    assert diagnostic.offset == source.index("new Promise")
    assert diagnostic.width == len(source.rstrip().rstrip(";")) - diagnostic.offset
    assert (diagnostic.line, diagnostic.column) == (1, 9)


def test_handle_passed_as_argument_is_delegation() -> None:
    assert audit_source(executor("doSomethingAsync(resolve);")) == []


def test_escape_through_local_helper_is_delegation() -> None:
    source = executor("var f = function (cb) { cb(); };\nf(resolve);")
    assert audit_source(source) == []


def test_executor_without_completion_is_reported() -> None:
    diagnostics = audit_source(executor("console.log('waiting');"))
    assert _rules(diagnostics) == [PROMISE_RULE]


def test_arrow_executor_with_expression_body() -> None:
    assert audit_source("new Promise((resolve) => resolve(1));\n") == []
    assert _rules(audit_source("new Promise((resolve) => log(1));\n")) == [PROMISE_RULE]


def test_shadowed_executor_handle_is_not_completion() -> None:
    source = executor("setTimeout(function (resolve) { resolve(); });")
    assert _rules(audit_source(source)) == [PROMISE_RULE]


def test_closure_completion_counts_for_executor() -> None:
    source = executor("setTimeout(function () { resolve(); }, 10);")
    assert audit_source(source) == []


def test_completion_inside_unmodeled_control_flow_is_accepted() -> None:
    assert audit_source(executor("for (var i = 0; i < 3; i++) { resolve(i); }")) == []
    assert audit_source(executor("switch (k) { case 1: resolve(); break; }")) == []
    assert audit_source(executor("try { work(); } catch (e) { reject(e); }")) == []


def test_if_inside_loop_keeps_branch_semantics() -> None:
    source = executor("for (var i = 0; i < 3; i++) { if (i === 2) { resolve(i); } }")
    assert _rules(audit_source(source)) == [PROMISE_RULE]


def test_destructured_and_defaulted_parameters_are_not_handles() -> None:
    assert _rules(audit_source("new Promise(function ({ resolve }) { resolve(); });\n")) == [PROMISE_RULE]
    assert _rules(audit_source("new Promise(function (resolve = noop) { resolve(); });\n")) == [PROMISE_RULE]
    assert audit_source("new Promise(function (resolve = noop, reject) { reject(); });\n") == []


def test_only_configured_constructors_are_checked() -> None:
    source = "new Deferral(function (resolve) {});\nnew Promise(executorFn);\n"
    assert audit_source(source) == []
    config = LintConfig(executor=ExecutorRuleConfig(constructors=("Deferral",)))
    assert _rules(audit_source(source, config=config)) == [PROMISE_RULE]


def test_sibling_constructs_are_reported_independently() -> None:
    source = executor("if (a) { resolve(); }") + executor("log();") + executor("resolve();")
    diagnostics = audit_source(source)
    assert _rules(diagnostics) == [PROMISE_RULE, PROMISE_RULE]
    assert diagnostics[0].offset < diagnostics[1].offset


def test_nested_promise_is_checked_on_its_own() -> None:
    inner = "new Promise(function (inner) { if (x) { inner(); } });"
    source = executor(inner + "\nresolve();", params="resolve")
    diagnostics = audit_source(source)
    assert _rules(diagnostics) == [PROMISE_RULE]
    assert diagnostics[0].offset == source.index("new Promise(function (inner)")


def test_deferred_if_else_is_clean() -> None:
    source = "var d = Factory.Deferred();\nif (x) { d.resolve(); } else { d.reject(); }\n"
    config = LintConfig(deferred=DeferredRuleConfig(aliases=("Factory",)))
    assert audit_source(source, config=config) == []


def test_deferred_shadowed_by_callback_parameter() -> None:
    source = "var d = Factory.Deferred();\nitems.forEach(function (d) { d.resolve(); });\n"
    config = LintConfig(deferred=DeferredRuleConfig(aliases=("Factory",)))
    diagnostics = audit_source(source, config=config)
    assert len(diagnostics) == 1
    diagnostic = diagnostics[0]
    assert diagnostic.rule == DEFERRED_RULE
    assert diagnostic.message == DEFERRED_FAILURE_STRING + "'d = Factory.Deferred()'"
    assert diagnostic.offset == source.index("d = Factory")


def test_deferred_default_aliases() -> None:
    source = "function load() {\n  var d = $.Deferred();\n  return d.promise();\n}\n"
    diagnostics = audit_source(source)
    assert _rules(diagnostics) == [DEFERRED_RULE]
    assert (diagnostics[0].line, diagnostics[0].column) == (2, 7)


def test_deferred_alias_matching_ignores_case() -> None:
    assert _rules(audit_source("var d = jQuery.Deferred();\n")) == [DEFERRED_RULE]
    assert audit_source("var d = other.Deferred();\n") == []
    assert audit_source("var d = Deferred();\n") == []


def test_deferred_assignment_form() -> None:
    source = "var d;\nd = $.Deferred();\n"
    diagnostics = audit_source(source)
    assert [diagnostic.message for diagnostic in diagnostics] == [DEFERRED_FAILURE_STRING + "'d = $.Deferred()'"]


def test_deferred_completed_from_unshadowed_callback() -> None:
    source = "var d = $.Deferred();\nsetTimeout(function () { d.resolve(); });\n"
    assert audit_source(source) == []


def test_deferred_passed_to_helper_is_delegation() -> None:
    assert audit_source("var d = $.Deferred();\nfinish(d);\n") == []


def test_deferred_custom_completion_pattern() -> None:
    source = "var d = $.Deferred();\nd.resolveWith(this, []);\n"
    assert _rules(audit_source(source)) == [DEFERRED_RULE]
    config = LintConfig(deferred=DeferredRuleConfig(completion_pattern=r"(resolve|reject)(With)?"))
    assert audit_source(source, config=config) == []


def test_other_deferred_with_same_name_does_not_complete() -> None:
    source = (
        "function a() { var d = $.Deferred(); log(); }\n"
        "function b() { var d = $.Deferred(); d.resolve(); }\n"
    )
    diagnostics = audit_source(source)
    assert _rules(diagnostics) == [DEFERRED_RULE]
    assert diagnostics[0].line == 1


def test_disabled_rules_are_skipped() -> None:
    source = executor("log();") + "var d = $.Deferred();\n"
    assert _rules(audit_source(source)) == [PROMISE_RULE, DEFERRED_RULE]
    only_deferred = LintConfig(executor=ExecutorRuleConfig(enabled=False))
    assert _rules(audit_source(source, config=only_deferred)) == [DEFERRED_RULE]
    only_promise = LintConfig(deferred=DeferredRuleConfig(enabled=False))
    assert _rules(audit_source(source, config=only_promise)) == [PROMISE_RULE]


def test_typescript_and_tsx_sources() -> None:
    ts_source = "const p = new Promise<number>((resolve, reject): void => { if (ok) { resolve(1); } });\n"
    assert _rules(audit_source(ts_source, language_id="typescript")) == [PROMISE_RULE]
    tsx_source = "const view = <div />;\nnew Promise((resolve) => { resolve(view); });\n"
    assert audit_source(tsx_source, language_id="tsx") == []


def test_fault_in_one_construct_does_not_stop_siblings(monkeypatch) -> None:
    real_analyze = completion_audit.analyze
    calls = {"count": 0}

    def _flaky(*args, **kwargs):
        calls["count"] += 1
        if calls["count"] == 1:
            raise ValueError("boom")
        return real_analyze(*args, **kwargs)

    monkeypatch.setattr(completion_audit, "analyze", _flaky)
    source = executor("resolve();") + executor("log();")
    diagnostics = audit_source(source)
    assert _rules(diagnostics) == [FAULT_RULE, PROMISE_RULE]
    fault = diagnostics[0]
    assert fault.offset == 0
    assert fault.message.startswith(
        "An error occurred visiting a node.\nWalker: promise-must-complete\nNode: new Promise"
    )
    assert fault.message.endswith("\nboom")


def test_recursion_limit_becomes_single_fault(monkeypatch) -> None:
    def _too_deep(self, source, *, path=None):
        raise RecursionError("maximum recursion depth exceeded")

    monkeypatch.setattr(TreeSitterAdapter, "parse_source", _too_deep)
    diagnostics = audit_source("new Promise(function (resolve) {});\n")
    assert _rules(diagnostics) == [FAULT_RULE]
    assert "Walker: javascript" in diagnostics[0].message
    assert diagnostics[0].offset == 0


def test_audit_paths_scans_directories(write_source) -> None:
    bad = write_source("app/bad.js", executor("log();"))
    good = write_source("app/good.ts", executor("resolve();"))
    write_source("app/node_modules/dep/index.js", executor("log();"))
    root = bad.parents[1]
    result = audit_paths([root], LintConfig())
    assert result.files == [bad, good]
    assert result.violation_count == 1
    assert result.diagnostics[0].path == str(bad)
    assert result.counts_by_rule() == {PROMISE_RULE: 1}
    assert result.parse_failures == []


def test_audit_paths_records_unreadable_and_unsupported(tmp_path: Path) -> None:
    missing = tmp_path / "missing.js"
    notes = tmp_path / "notes.txt"
    notes.write_text("text\n", encoding="utf-8")
    result = audit_paths([missing, notes], LintConfig())
    assert result.files == []
    stages = sorted((failure.path.name, failure.stage) for failure in result.parse_failures)
    assert stages == [("missing.js", "read"), ("notes.txt", "language")]


@pytest.mark.parametrize(
    "extension",
    [".js", ".jsx", ".mjs", ".cjs", ".ts", ".mts", ".cts", ".tsx"],
)
def test_audit_paths_accepts_supported_extensions(write_source, extension: str) -> None:
    path = write_source(f"pkg/module{extension}", executor("log();"))
    result = audit_paths([path], LintConfig())
    assert result.files == [path]
    assert result.violation_count == 1
