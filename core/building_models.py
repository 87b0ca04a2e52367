"""Data models for the building catalog."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from .resources import Resource


@dataclass(frozen=True, slots=True)
class BuildingType:
    """Catalogue entry describing a building type.

    Entries are shared by every instance of the type. ``costs[0]`` is the
    price of placing the building; ``costs[level]`` is the price of going from
    ``level`` to ``level + 1``.
    """

    id: str
    name: str
    category: str
    resource_type: Optional[Resource]
    costs: Tuple[Mapping[Resource, int], ...]
    generation_rates: Tuple[int, ...] = ()
    model_paths: Tuple[str, ...] = ()
    scale: float = 0.5
    y_offset: float = 0.5
    icon: str = "🏗️"
    description: str = ""

    @property
    def max_level(self) -> int:
        return len(self.costs)

    @property
    def build_cost(self) -> Mapping[Resource, int]:
        return self.costs[0]

    @property
    def produces(self) -> bool:
        return self.resource_type is not None

    def upgrade_cost(self, level: int) -> Optional[Mapping[Resource, int]]:
        """Cost of raising a building from ``level``; ``None`` at the cap."""

        if level < 1 or level >= self.max_level:
            return None
        return self.costs[level]

    def rate_at(self, level: int) -> int:
        if not self.produces or level < 1 or level > len(self.generation_rates):
            return 0
        return int(self.generation_rates[level - 1])

    def model_for(self, level: int) -> Optional[str]:
        if not self.model_paths:
            return None
        index = min(max(level, 1), len(self.model_paths)) - 1
        return self.model_paths[index]
