"""Invariant markers."""

from __future__ import annotations

from typing import NoReturn

from pledge.exceptions import NeverThrown


def never(reason: str = "", **env: object) -> NoReturn:
    """Mark a code path as intentionally unreachable."""
    raise NeverThrown(reason or "never() marker reached", env=env)
