from pledge.ingest.adapter_contract import LanguageAdapter, ParsedFileUnit, ParseFailureWitness
from .javascript_ingest import iter_source_paths, lower_tree


def resolve_adapter(*, path=None, language_id=None, default_language_id="javascript"):
    from pledge.ingest.registry import resolve_adapter as _resolve_adapter

    return _resolve_adapter(
        path=path,
        language_id=language_id,
        default_language_id=default_language_id,
    )


__all__ = [
    "LanguageAdapter",
    "ParsedFileUnit",
    "ParseFailureWitness",
    "iter_source_paths",
    "lower_tree",
    "resolve_adapter",
]
