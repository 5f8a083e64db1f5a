from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from tree_sitter import Parser
from tree_sitter_language_pack import get_parser

from pledge.ingest.adapter_contract import LanguageAdapter, ParsedFileUnit
from pledge.ingest.javascript_ingest import lower_tree

logger = logging.getLogger(__name__)


@lru_cache(maxsize=None)
def _parser(grammar: str) -> Parser:
    return get_parser(grammar)


class TreeSitterAdapter(LanguageAdapter):
    """Parses one tree-sitter grammar of the JavaScript family."""

    def __init__(self, language_id: str, grammar: str, file_extensions: tuple[str, ...]) -> None:
        self.language_id = language_id
        self.grammar = grammar
        self.file_extensions = file_extensions

    def parse_source(self, source: bytes, *, path: Path | None = None) -> ParsedFileUnit:
        tree = _parser(self.grammar).parse(source)
        if tree.root_node.has_error:
            logger.debug("%s: %s parse recovered from syntax errors", path or "<memory>", self.grammar)
        program, symbols = lower_tree(tree.root_node, source)
        return ParsedFileUnit(
            path=path,
            language_id=self.language_id,
            source=source,
            tree=program,
            symbols=symbols,
        )

    def parse_file(self, path: Path) -> ParsedFileUnit:
        return self.parse_source(path.read_bytes(), path=path)


class JavaScriptAdapter(TreeSitterAdapter):
    def __init__(self) -> None:
        super().__init__("javascript", "javascript", (".js", ".jsx", ".mjs", ".cjs"))


class TypeScriptAdapter(TreeSitterAdapter):
    def __init__(self) -> None:
        super().__init__("typescript", "typescript", (".ts", ".mts", ".cts"))


class TsxAdapter(TreeSitterAdapter):
    def __init__(self) -> None:
        super().__init__("tsx", "tsx", (".tsx",))
