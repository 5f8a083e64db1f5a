from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import typer

from pledge.analysis.completion_audit import AuditResult, audit_paths
from pledge.analysis.diagnostics import RULE_MESSAGES
from pledge.config import LintConfig, resolve_lint_config
from pledge.exceptions import ConfigurationError
from pledge.schema import audit_response

app = typer.Typer(add_completion=False)

_OUTPUT_FORMATS = ("text", "json")


def _configure_logging(verbosity: int) -> None:
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logger = logging.getLogger("pledge")
    logger.setLevel(level)
    # one handler, bound to the stderr of the current invocation
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    logger.addHandler(handler)


def _exit_code(result: AuditResult, *, fail_on_violations: bool) -> int:
    if fail_on_violations and result.violation_count:
        return 1
    return 0


def _emit_text(result: AuditResult) -> None:
    for diagnostic in result.diagnostics:
        typer.echo(diagnostic.render())
    for failure in result.parse_failures:
        typer.echo(f"{failure.path}: skipped ({failure.stage}): {failure.error}", err=True)
    if result.violation_count:
        counts = ", ".join(f"{rule}={count}" for rule, count in result.counts_by_rule().items())
        typer.echo(f"{result.violation_count} finding(s) in {len(result.files)} file(s): {counts}")
    else:
        typer.echo(f"No findings in {len(result.files)} file(s).")


def _resolve_config(
    root: Path,
    config: Optional[Path],
    exclude: Optional[List[str]],
    disable: Optional[List[str]],
) -> LintConfig:
    try:
        return resolve_lint_config(
            root=root,
            config_path=config,
            exclude=exclude or None,
            disabled_rules=disable or None,
        )
    except ConfigurationError as exc:
        typer.echo(f"Configuration error: {exc}", err=True)
        raise typer.Exit(code=2) from exc


@app.command()
def check(
    paths: List[Path] = typer.Argument(None),
    root: Path = typer.Option(Path("."), "--root"),
    config: Optional[Path] = typer.Option(None, "--config"),
    exclude: Optional[List[str]] = typer.Option(None, "--exclude"),
    output_format: str = typer.Option("text", "--format"),
    fail_on_violations: bool = typer.Option(True, "--fail-on-violations/--no-fail-on-violations"),
    disable: Optional[List[str]] = typer.Option(None, "--disable"),
    verbose: int = typer.Option(0, "--verbose", "-v", count=True),
) -> None:
    """Check JavaScript and TypeScript sources for uncompleted promises."""
    _configure_logging(verbose)
    if output_format not in _OUTPUT_FORMATS:
        choices = ", ".join(_OUTPUT_FORMATS)
        typer.echo(f"Unknown output format {output_format!r}; expected one of {choices}", err=True)
        raise typer.Exit(code=2)
    lint_config = _resolve_config(root, config, exclude, disable)
    targets = list(paths) if paths else [root]
    result = audit_paths(targets, lint_config)
    exit_code = _exit_code(result, fail_on_violations=fail_on_violations)
    if output_format == "json":
        typer.echo(json.dumps(audit_response(result, exit_code=exit_code), indent=2))
    else:
        _emit_text(result)
    raise typer.Exit(code=exit_code)


@app.command()
def rules(
    root: Path = typer.Option(Path("."), "--root"),
    config: Optional[Path] = typer.Option(None, "--config"),
) -> None:
    """List the rules and whether the project configuration enables them."""
    lint_config = _resolve_config(root, config, None, None)
    enabled = set(lint_config.enabled_rules())
    for rule, message in RULE_MESSAGES.items():
        state = "enabled" if rule in enabled else "disabled"
        typer.echo(f"{rule} [{state}]: {message}")


@app.command()
def lsp() -> None:
    """Serve diagnostics over the language server protocol on stdio."""
    from pledge.server import start

    start()
