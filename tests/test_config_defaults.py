from __future__ import annotations

from pathlib import Path
import textwrap

import pytest

from pledge.config import (
    DEFAULT_ALIASES,
    DEFAULT_CONSTRUCTORS,
    DEFERRED_RULE,
    PROMISE_RULE,
    DeferredRuleConfig,
    LintConfig,
    lint_config_from_table,
    load_config,
    merge_payload,
    resolve_lint_config,
    rule_defaults,
)
from pledge.exceptions import ConfigurationError


def _write_config(root: Path, body: str) -> Path:
    path = root / "pledge.toml"
    path.write_text(textwrap.dedent(body).strip() + "\n", encoding="utf-8")
    return path


def test_rule_defaults_reads_toml(tmp_path: Path) -> None:
    _write_config(
        tmp_path,
        """
        [rules.promise-must-complete]
        constructors = ["Promise", "Q"]

        [rules.jquery-deferred-must-complete]
        enabled = false
        aliases = "$, jq"
        """,
    )
    assert rule_defaults(PROMISE_RULE, root=tmp_path) == {"constructors": ["Promise", "Q"]}
    assert rule_defaults(DEFERRED_RULE, root=tmp_path)["enabled"] is False
    assert rule_defaults("unknown", root=tmp_path) == {}


def test_missing_or_broken_config_yields_defaults(tmp_path: Path) -> None:
    assert load_config(root=tmp_path) == {}
    broken = tmp_path / "broken.toml"
    broken.write_text("[rules\n", encoding="utf-8")
    assert load_config(config_path=broken) == {}
    config = resolve_lint_config(root=tmp_path)
    assert config.executor.constructors == DEFAULT_CONSTRUCTORS
    assert config.deferred.aliases == DEFAULT_ALIASES
    assert config.exclude_dirs == frozenset({"node_modules"})
    assert config.enabled_rules() == (PROMISE_RULE, DEFERRED_RULE)


def test_lint_config_from_table_normalizes_lists() -> None:
    config = lint_config_from_table(
        {
            "lint": {"exclude": "dist, build"},
            "rules": {
                PROMISE_RULE: {"constructors": ["Promise", "Bluebird"], "enabled": "yes"},
                DEFERRED_RULE: {"aliases": "$, jq", "factories": ["Deferred"], "enabled": 0},
            },
        },
        project_root=Path("/repo"),
    )
    assert config.exclude_dirs == frozenset({"dist", "build"})
    assert config.executor.constructors == ("Promise", "Bluebird")
    assert config.executor.enabled is True
    assert config.deferred.aliases == ("$", "jq")
    assert config.deferred.enabled is False
    assert config.enabled_rules() == (PROMISE_RULE,)
    assert config.project_root == Path("/repo")


def test_merge_payload_prefers_explicit_values() -> None:
    defaults = {"exclude": ["node_modules"], "other": 1}
    assert merge_payload({"exclude": None}, defaults) == defaults
    assert merge_payload({"exclude": ["dist"]}, defaults) == {"exclude": ["dist"], "other": 1}


def test_resolve_lint_config_applies_cli_overrides(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path,
        """
        [lint]
        exclude = ["vendor"]
        """,
    )
    from_file = resolve_lint_config(root=tmp_path, config_path=config_path)
    assert from_file.exclude_dirs == frozenset({"vendor"})
    overridden = resolve_lint_config(
        root=tmp_path,
        config_path=config_path,
        exclude=["dist"],
        disabled_rules=[PROMISE_RULE],
    )
    assert overridden.exclude_dirs == frozenset({"dist"})
    assert overridden.executor.enabled is False
    assert overridden.deferred.enabled is True


def test_resolve_lint_config_rejects_unknown_rules(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="no-such-rule"):
        resolve_lint_config(root=tmp_path, disabled_rules=["no-such-rule"])


def test_invalid_completion_pattern_is_configuration_error(tmp_path: Path) -> None:
    _write_config(
        tmp_path,
        """
        [rules.jquery-deferred-must-complete]
        completion_pattern = "(resolve"
        """,
    )
    with pytest.raises(ConfigurationError, match="completion_pattern"):
        resolve_lint_config(root=tmp_path)


def test_deferred_config_matching() -> None:
    config = DeferredRuleConfig()
    assert config.is_alias("jQuery")
    assert config.is_alias("$")
    assert not config.is_alias(None)
    assert not config.is_alias("window.$")
    assert config.is_completion_operation("resolve")
    assert config.is_completion_operation("reject")
    assert not config.is_completion_operation("resolved")
    unanchored = DeferredRuleConfig(completion_pattern="resolve|reject")
    assert not unanchored.is_completion_operation("resolveWith")


def test_ignored_paths() -> None:
    config = LintConfig(exclude_dirs=frozenset({"dist"}))
    assert config.is_ignored_path(Path("app/dist/main.js"))
    assert not config.is_ignored_path(Path("app/src/main.js"))
