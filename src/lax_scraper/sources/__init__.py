"""Upstream lacrosse data sources."""

from dataclasses import dataclass, field
from typing import Awaitable, Callable, Tuple

from ..extractor import FanOutSpec, Spec


@dataclass(frozen=True)
class SourceDefinition:
    """Everything the extractor needs to know about one source."""

    name: str
    seasons: Tuple[str, ...]
    entities: Tuple[Spec, ...]
    closers: Tuple[Callable[[], Awaitable[None]], ...] = field(default=())

    @property
    def entity_names(self) -> Tuple[str, ...]:
        return tuple(spec.name for spec in self.entities)

    def without_details(self) -> "SourceDefinition":
        """Same source with every fan-out entity removed."""
        entities = tuple(s for s in self.entities if not isinstance(s, FanOutSpec))
        return SourceDefinition(self.name, self.seasons, entities, self.closers)


__all__ = ["SourceDefinition"]
