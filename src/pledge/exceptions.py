"""Exception types raised by pledge."""

from __future__ import annotations


class NeverThrown(RuntimeError):
    """Raised when a code path that should be unreachable is reached.

    The analysis converts it, like any other fault raised while a construct is
    being checked, into an ``analysis-fault`` diagnostic for that construct.
    """

    def __init__(self, message: str, *, env: dict[str, object] | None = None):
        super().__init__(message)
        self.reason = message
        self.env = dict(env or {})

    def __str__(self) -> str:
        if not self.env:
            return self.reason
        details = ", ".join(f"{key}={value!r}" for key, value in sorted(self.env.items()))
        return f"{self.reason} ({details})"


class ConfigurationError(ValueError):
    """A configuration value cannot be used."""
