from .base import SourceAdapter, SourceOutcome
from .builtins import builtin_adapters
from .registry import Registry

__all__ = ["Registry", "SourceAdapter", "SourceOutcome", "builtin_adapters"]
