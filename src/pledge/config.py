from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time
from pathlib import Path
from typing import TypeAlias
import tomllib

from pledge.exceptions import ConfigurationError

DEFAULT_CONFIG_NAME = "pledge.toml"

PROMISE_RULE = "promise-must-complete"
DEFERRED_RULE = "jquery-deferred-must-complete"

DEFAULT_CONSTRUCTORS = ("Promise",)
DEFAULT_FACTORIES = ("Deferred",)
DEFAULT_ALIASES = ("$", "jquery")
DEFAULT_COMPLETION_PATTERN = r"^(resolve|reject)$"
DEFAULT_EXCLUDE_DIRS = ("node_modules",)

TomlScalar: TypeAlias = str | int | float | bool | None | date | datetime | time
TomlValue: TypeAlias = TomlScalar | list["TomlValue"] | dict[str, "TomlValue"]
TomlTable: TypeAlias = dict[str, TomlValue]


def _load_toml(path: Path) -> TomlTable:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError:
        return {}
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def load_config(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    if config_path is None:
        base = root if root is not None else Path.cwd()
        config_path = base / DEFAULT_CONFIG_NAME
    return _load_toml(config_path)


def rule_defaults(
    rule: str,
    root: Path | None = None,
    config_path: Path | None = None,
    *,
    data: TomlTable | None = None,
) -> TomlTable:
    if data is None:
        data = load_config(root=root, config_path=config_path)
    rules = data.get("rules", {})
    if not isinstance(rules, dict):
        return {}
    section = rules.get(rule, {})
    return section if isinstance(section, dict) else {}


def _normalize_name_list(value: TomlValue) -> list[str]:
    items: list[str] = []
    if value is None:
        return items
    if isinstance(value, str):
        items = [part.strip() for part in value.split(",") if part.strip()]
    elif isinstance(value, (list, tuple, set)):
        for item in value:
            if isinstance(item, str):
                items.extend([part.strip() for part in item.split(",") if part.strip()])
    return [item for item in items if item]


def _as_bool(value: TomlValue, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return default


def merge_payload(payload: TomlTable, defaults: TomlTable) -> TomlTable:
    merged = dict(defaults)
    for key, value in payload.items():
        if value is None:
            continue
        merged[key] = value
    return merged


@dataclass(frozen=True)
class ExecutorRuleConfig:
    enabled: bool = True
    constructors: tuple[str, ...] = DEFAULT_CONSTRUCTORS


@dataclass(frozen=True)
class DeferredRuleConfig:
    enabled: bool = True
    factories: tuple[str, ...] = DEFAULT_FACTORIES
    aliases: tuple[str, ...] = DEFAULT_ALIASES
    completion_pattern: str = DEFAULT_COMPLETION_PATTERN

    def __post_init__(self) -> None:
        try:
            re.compile(self.completion_pattern)
        except re.error as exc:
            raise ConfigurationError(
                f"invalid completion_pattern {self.completion_pattern!r}: {exc}"
            ) from exc

    def is_alias(self, target: str | None) -> bool:
        if target is None:
            return False
        folded = target.casefold()
        return any(folded == alias.casefold() for alias in self.aliases)

    def is_completion_operation(self, name: str) -> bool:
        return re.fullmatch(self.completion_pattern, name) is not None


@dataclass(frozen=True)
class LintConfig:
    executor: ExecutorRuleConfig = field(default_factory=ExecutorRuleConfig)
    deferred: DeferredRuleConfig = field(default_factory=DeferredRuleConfig)
    exclude_dirs: frozenset[str] = frozenset(DEFAULT_EXCLUDE_DIRS)
    project_root: Path | None = None

    def is_ignored_path(self, path: Path) -> bool:
        parts = set(path.parts)
        return bool(self.exclude_dirs & parts)

    def enabled_rules(self) -> tuple[str, ...]:
        rules: list[str] = []
        if self.executor.enabled:
            rules.append(PROMISE_RULE)
        if self.deferred.enabled:
            rules.append(DEFERRED_RULE)
        return tuple(rules)


def executor_config(section: TomlTable | None) -> ExecutorRuleConfig:
    if not isinstance(section, dict):
        return ExecutorRuleConfig()
    constructors = _normalize_name_list(section.get("constructors"))
    return ExecutorRuleConfig(
        enabled=_as_bool(section.get("enabled"), default=True),
        constructors=tuple(constructors) or DEFAULT_CONSTRUCTORS,
    )


def deferred_config(section: TomlTable | None) -> DeferredRuleConfig:
    if not isinstance(section, dict):
        return DeferredRuleConfig()
    factories = _normalize_name_list(section.get("factories"))
    aliases = _normalize_name_list(section.get("aliases"))
    pattern = section.get("completion_pattern")
    return DeferredRuleConfig(
        enabled=_as_bool(section.get("enabled"), default=True),
        factories=tuple(factories) or DEFAULT_FACTORIES,
        aliases=tuple(aliases) or DEFAULT_ALIASES,
        completion_pattern=pattern if isinstance(pattern, str) and pattern else DEFAULT_COMPLETION_PATTERN,
    )


def lint_config_from_table(data: TomlTable, *, project_root: Path | None = None) -> LintConfig:
    lint_section = data.get("lint", {})
    if not isinstance(lint_section, dict):
        lint_section = {}
    exclude = lint_section.get("exclude")
    exclude_dirs = (
        frozenset(_normalize_name_list(exclude)) if exclude is not None else frozenset(DEFAULT_EXCLUDE_DIRS)
    )
    return LintConfig(
        executor=executor_config(rule_defaults(PROMISE_RULE, data=data)),
        deferred=deferred_config(rule_defaults(DEFERRED_RULE, data=data)),
        exclude_dirs=exclude_dirs,
        project_root=project_root,
    )


def resolve_lint_config(
    root: Path | None = None,
    config_path: Path | None = None,
    *,
    exclude: list[str] | None = None,
    disabled_rules: list[str] | None = None,
) -> LintConfig:
    """Load ``pledge.toml`` and apply command-line overrides on top of it."""
    data = load_config(root=root, config_path=config_path)
    lint_section = data.get("lint", {})
    lint_payload = merge_payload(
        {"exclude": exclude or None},
        lint_section if isinstance(lint_section, dict) else {},
    )
    merged: TomlTable = dict(data)
    merged["lint"] = lint_payload
    config = lint_config_from_table(merged, project_root=root)
    disabled = set(_normalize_name_list(list(disabled_rules or [])))
    unknown = disabled - {PROMISE_RULE, DEFERRED_RULE}
    if unknown:
        raise ConfigurationError(f"unknown rule(s): {', '.join(sorted(unknown))}")
    if PROMISE_RULE in disabled:
        config = replace(config, executor=replace(config.executor, enabled=False))
    if DEFERRED_RULE in disabled:
        config = replace(config, deferred=replace(config.deferred, enabled=False))
    return config
