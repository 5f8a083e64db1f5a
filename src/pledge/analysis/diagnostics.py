"""Diagnostic model and emission for completion rules."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from pledge.analysis.syntax import Node, node_text
from pledge.config import DEFERRED_RULE, PROMISE_RULE
from pledge.json_types import JSONObject

FAULT_RULE = "analysis-fault"

PROMISE_FAILURE_STRING = (
    "A Promise was found that appears to not have resolve or reject invoked on all code paths"
)
DEFERRED_FAILURE_STRING = (
    "A JQuery deferred was found that appears to not have resolve or reject invoked on all code paths: "
)

RULE_MESSAGES: dict[str, str] = {
    PROMISE_RULE: PROMISE_FAILURE_STRING,
    DEFERRED_RULE: DEFERRED_FAILURE_STRING + "'<construct>'",
}


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class Diagnostic:
    rule: str
    message: str
    offset: int
    width: int
    line: int
    column: int
    path: str = "<memory>"
    severity: Severity = Severity.ERROR

    def render(self) -> str:
        return f"{self.path}:{self.line}:{self.column}: {self.rule}: {self.message}"

    def to_payload(self) -> JSONObject:
        return {
            "rule": self.rule,
            "message": self.message,
            "path": self.path,
            "offset": self.offset,
            "width": self.width,
            "line": self.line,
            "column": self.column,
            "severity": self.severity.value,
        }


@dataclass(frozen=True)
class SourceText:
    """Maps byte offsets produced by the parser onto character positions."""

    source: bytes
    path: Path | None = None

    @property
    def display_path(self) -> str:
        return str(self.path) if self.path is not None else "<memory>"

    def char_offset(self, byte_offset: int) -> int:
        prefix = self.source[:byte_offset]
        if prefix.isascii():
            return byte_offset
        return len(prefix.decode("utf-8", errors="replace"))

    def line_column(self, byte_offset: int) -> tuple[int, int]:
        prefix = self.source[:byte_offset]
        line_start = prefix.rfind(b"\n") + 1
        line = prefix.count(b"\n") + 1
        column = len(prefix[line_start:].decode("utf-8", errors="replace")) + 1
        return line, column

    def text_of(self, node: Node) -> str:
        return node_text(self.source, node)


def promise_message(source: SourceText, anchor: Node) -> str:
    return PROMISE_FAILURE_STRING


def deferred_message(source: SourceText, anchor: Node) -> str:
    return DEFERRED_FAILURE_STRING + "'" + source.text_of(anchor) + "'"


def fault_message(source: SourceText, node: Node | None, walker: str, error: BaseException) -> str:
    text = source.text_of(node) if node is not None else "<unknown>"
    return f"An error occurred visiting a node.\nWalker: {walker}\nNode: {text}\n{error}"


def emit(
    source: SourceText,
    anchor: Node | None,
    *,
    rule: str,
    message: str,
    severity: Severity = Severity.ERROR,
) -> Diagnostic:
    """Build the diagnostic covering ``anchor`` (the whole unit start when None)."""
    start = anchor.span.start if anchor is not None else 0
    end = anchor.span.end if anchor is not None else 0
    offset = source.char_offset(start)
    width = source.char_offset(end) - offset
    line, column = source.line_column(start)
    return Diagnostic(
        rule=rule,
        message=message,
        offset=offset,
        width=width,
        line=line,
        column=column,
        path=source.display_path,
        severity=severity,
    )
