from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from pledge.analysis.bindings import SymbolTable
from pledge.analysis.syntax import Block


@dataclass(frozen=True)
class ParsedFileUnit:
    path: Path | None
    language_id: str
    source: bytes
    tree: Block
    symbols: SymbolTable


@dataclass(frozen=True)
class ParseFailureWitness:
    path: Path
    stage: str
    error: str


@runtime_checkable
class LanguageAdapter(Protocol):
    language_id: str
    file_extensions: tuple[str, ...]

    def parse_source(self, source: bytes, *, path: Path | None = None) -> ParsedFileUnit: ...

    def parse_file(self, path: Path) -> ParsedFileUnit: ...
