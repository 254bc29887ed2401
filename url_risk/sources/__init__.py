from .base import CheckFn, SourceContext

__all__ = ["CheckFn", "SourceContext"]
