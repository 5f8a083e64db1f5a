from __future__ import annotations

from typing import TYPE_CHECKING, Dict, List, Optional

from pydantic import BaseModel

from pledge.json_types import JSONObject

if TYPE_CHECKING:
    from pledge.analysis.completion_audit import AuditResult


class DiagnosticDTO(BaseModel):
    rule: str
    message: str
    path: str
    offset: int
    width: int
    line: int
    column: int
    severity: str = "error"


class ParseFailureDTO(BaseModel):
    path: str
    stage: str
    error: str


class AuditRequest(BaseModel):
    paths: List[str] = []
    root: Optional[str] = None
    config: Optional[str] = None
    exclude: List[str] = []
    disable: List[str] = []


class AuditResponseDTO(BaseModel):
    diagnostics: List[DiagnosticDTO]
    files: List[str] = []
    parse_failures: List[ParseFailureDTO] = []
    counts: Dict[str, int] = {}
    exit_code: int = 0
    errors: List[str] = []


def audit_response(result: AuditResult, *, exit_code: int) -> JSONObject:
    payload = {
        "diagnostics": [diagnostic.to_payload() for diagnostic in result.diagnostics],
        "files": [str(path) for path in result.files],
        "parse_failures": [
            {"path": str(failure.path), "stage": failure.stage, "error": failure.error}
            for failure in result.parse_failures
        ],
        "counts": result.counts_by_rule(),
        "exit_code": exit_code,
    }
    return AuditResponseDTO.model_validate(payload).model_dump()
