"""Adapter registry + selection helpers."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from ..models import FAST_SOURCES, SLOW_SOURCES, SourceId
from .base import SourceAdapter


@dataclass
class Registry:
    adapters: dict[SourceId, SourceAdapter]

    def get(self, source: SourceId) -> SourceAdapter:
        return self.adapters[source]

    def list_names(self) -> list[str]:
        # canonical order, not alphabetical
        return [s.value for s in SourceId if s in self.adapters]

    def select(
        self,
        sources: Iterable[SourceId] | None = None,
        *,
        only_available: bool = False,
    ) -> list[SourceAdapter]:
        if sources is None:
            sources = list(SourceId)

        selected: list[SourceAdapter] = []
        for source in sources:
            if source not in self.adapters:
                continue
            a = self.adapters[source]
            if only_available and not a.is_available():
                continue
            selected.append(a)
        return selected

    def fast(self) -> list[SourceAdapter]:
        return self.select(FAST_SOURCES)

    def slow(self) -> list[SourceAdapter]:
        return self.select(SLOW_SOURCES)
