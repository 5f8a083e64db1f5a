from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable
from urllib.parse import unquote, urlparse

from lsprotocol.types import (
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_OPEN,
    TEXT_DOCUMENT_DID_SAVE,
    Diagnostic,
    DiagnosticSeverity,
    Position,
    PublishDiagnosticsParams,
    Range,
)
from pygls.lsp.server import LanguageServer
from pydantic import ValidationError

from pledge import __version__
from pledge.analysis import diagnostics as pledge_diagnostics
from pledge.analysis.completion_audit import audit_paths, audit_source
from pledge.config import LintConfig, resolve_lint_config
from pledge.exceptions import ConfigurationError
from pledge.ingest.registry import adapter_for_extension
from pledge.invariants import never
from pledge.json_types import JSONObject
from pledge.schema import AuditRequest, AuditResponseDTO, audit_response

logger = logging.getLogger(__name__)

server = LanguageServer("pledge", __version__)
AUDIT_COMMAND = "pledge.audit"

_SEVERITIES = {
    pledge_diagnostics.Severity.ERROR: DiagnosticSeverity.Error,
    pledge_diagnostics.Severity.WARNING: DiagnosticSeverity.Warning,
}


def _require_payload(payload: object, *, command: str) -> dict[str, object]:
    if payload is None:
        never("missing command payload", command=command)
    if not isinstance(payload, dict):
        never(
            "invalid command payload type",
            command=command,
            payload_type=type(payload).__name__,
        )
    return payload


def _uri_to_path(uri: str) -> Path:
    parsed = urlparse(uri)
    if parsed.scheme == "file":
        return Path(unquote(parsed.path))
    return Path(uri)


def _workspace_root(ls: LanguageServer) -> Path | None:
    root_path = getattr(ls.workspace, "root_path", None)
    return Path(root_path) if root_path else None


def _position_at(text: str, offset: int) -> Position:
    prefix = text[:offset]
    line = prefix.count("\n")
    character = offset - (prefix.rfind("\n") + 1)
    return Position(line=line, character=character)


def _to_lsp(diagnostic: pledge_diagnostics.Diagnostic, text: str) -> Diagnostic:
    start = Position(line=diagnostic.line - 1, character=diagnostic.column - 1)
    end = _position_at(text, diagnostic.offset + diagnostic.width)
    return Diagnostic(
        range=Range(start=start, end=end),
        message=diagnostic.message,
        severity=_SEVERITIES[diagnostic.severity],
        code=diagnostic.rule,
        source="pledge",
    )


def _diagnostics_for_source(text: str, path: Path, config: LintConfig) -> list[Diagnostic]:
    adapter = adapter_for_extension(path.suffix)
    if adapter is None:
        return []
    found = audit_source(text, language_id=adapter.language_id, path=path, config=config)
    return [_to_lsp(diagnostic, text) for diagnostic in found]


def _publish(ls: LanguageServer, uri: str) -> None:
    document = ls.workspace.get_text_document(uri)
    root = _workspace_root(ls)
    try:
        config = resolve_lint_config(root=root)
    except ConfigurationError as exc:
        logger.warning("configuration error: %s", exc)
        config = LintConfig(project_root=root)
    diagnostics = _diagnostics_for_source(document.source, _uri_to_path(uri), config)
    ls.text_document_publish_diagnostics(
        PublishDiagnosticsParams(uri=uri, diagnostics=diagnostics)
    )


@server.command(AUDIT_COMMAND)
def execute_audit(ls: LanguageServer, payload: dict | None = None) -> JSONObject:
    payload = _require_payload(payload, command=AUDIT_COMMAND)
    try:
        request = AuditRequest.model_validate(payload)
    except ValidationError as exc:
        return AuditResponseDTO(diagnostics=[], exit_code=2, errors=[str(exc)]).model_dump()
    root = Path(request.root) if request.root else _workspace_root(ls)
    try:
        config = resolve_lint_config(
            root=root,
            config_path=Path(request.config) if request.config else None,
            exclude=request.exclude or None,
            disabled_rules=request.disable or None,
        )
    except ConfigurationError as exc:
        return AuditResponseDTO(diagnostics=[], exit_code=2, errors=[str(exc)]).model_dump()
    paths = [Path(entry) for entry in request.paths] or [root or Path(".")]
    result = audit_paths(paths, config)
    return audit_response(result, exit_code=1 if result.violation_count else 0)


@server.feature(TEXT_DOCUMENT_DID_OPEN)
def did_open(ls: LanguageServer, params) -> None:
    _publish(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_DID_CHANGE)
def did_change(ls: LanguageServer, params) -> None:
    _publish(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_DID_SAVE)
def did_save(ls: LanguageServer, params) -> None:
    _publish(ls, params.text_document.uri)


def start(start_fn: Callable[[], None] | None = None) -> None:
    """Start the language server on stdio."""
    (start_fn or server.start_io)()


if __name__ == "__main__":  # pragma: no cover
    start()  # pragma: no cover
