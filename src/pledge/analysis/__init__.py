"""Static analysis subpackage for pledge.

``pledge.analysis.completion_audit`` imports ``pledge.ingest`` and is imported
directly rather than re-exported here.
"""

from .bindings import SymbolTable, same_binding
from .completion_discovery import Recognition, recognize_deferred, recognize_executor
from .completion_walker import BranchRecord, HandleSet, ShadowPolicy, analyze
from .diagnostics import Diagnostic, SourceText

__all__ = [
    "BranchRecord",
    "Diagnostic",
    "HandleSet",
    "Recognition",
    "ShadowPolicy",
    "SourceText",
    "SymbolTable",
    "analyze",
    "recognize_deferred",
    "recognize_executor",
    "same_binding",
]
