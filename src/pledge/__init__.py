"""pledge package root."""

from pledge.exceptions import ConfigurationError, NeverThrown
from pledge.invariants import never

__all__ = ["__version__", "ConfigurationError", "NeverThrown", "never"]

__version__ = "0.1.0"
