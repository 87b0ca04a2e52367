"""Building instances and their level state machine."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Mapping, Optional, Tuple

from .building_models import BuildingType
from .errors import InsufficientResourcesError, MaxLevelReachedError
from .resource_ledger import ResourceLedger
from .resources import Resource, bundle_to_payload
from .tiles import Tile


class DowngradeOutcome(str, Enum):
    """Result of a single downgrade transition."""

    DOWNGRADED = "downgraded"
    DESTROYED = "destroyed"
    AT_FLOOR = "at_floor"


@dataclass(eq=False)
class Building:
    """A placed building.

    Static rules (costs, rates, assets) live on :attr:`building_type`; the
    instance only carries what changes during play.
    """

    id: str
    building_type: BuildingType
    tile: Tile
    level: int = 1
    is_main: bool = False
    visual: Optional[object] = field(default=None, repr=False)

    # ------------------------------------------------------------------
    @property
    def type_id(self) -> str:
        return self.building_type.id

    @property
    def max_level(self) -> int:
        return self.building_type.max_level

    @property
    def floor_level(self) -> int:
        """Lowest level the building survives at; ``0`` means it gets removed."""

        return 1 if self.is_main else 0

    @property
    def at_max_level(self) -> bool:
        return self.level >= self.max_level

    @property
    def resource_type(self) -> Optional[Resource]:
        return self.building_type.resource_type

    @property
    def production_rate(self) -> int:
        return self.building_type.rate_at(self.level)

    @property
    def next_upgrade_cost(self) -> Optional[Mapping[Resource, int]]:
        return self.building_type.upgrade_cost(self.level)

    @property
    def asset_ref(self) -> Optional[str]:
        return self.building_type.model_for(self.level)

    @property
    def anchor(self) -> Tuple[float, float, float]:
        x, y, z = self.tile.position
        return (x, y + self.building_type.y_offset, z)

    # ------------------------------------------------------------------
    def upgrade(self, ledger: ResourceLedger) -> int:
        """Pay for and apply one level up, returning the new level."""

        cost = self.next_upgrade_cost
        if cost is None:
            raise MaxLevelReachedError(f"{self.type_id} is already at max level")
        missing = ledger.missing(cost)
        if missing is not None:
            raise InsufficientResourcesError(cost, missing)
        ledger.debit(cost)
        self.level += 1
        return self.level

    def downgrade(self) -> DowngradeOutcome:
        """Drop one level; ordinary buildings at level 1 are destroyed instead."""

        if self.level - 1 >= max(self.floor_level, 1):
            self.level -= 1
            return DowngradeOutcome.DOWNGRADED
        if self.is_main:
            return DowngradeOutcome.AT_FLOOR
        return DowngradeOutcome.DESTROYED

    def produce(self, ledger: ResourceLedger) -> int:
        """Credit this tick's output to ``ledger`` and return the amount."""

        if self.resource_type is None:
            return 0
        rate = self.production_rate
        if rate:
            ledger.credit(self.resource_type, rate)
        return rate

    # ------------------------------------------------------------------
    def to_snapshot(self) -> Dict[str, object]:
        next_cost = self.next_upgrade_cost
        return {
            "id": self.id,
            "type": self.type_id,
            "name": self.building_type.name,
            "category": self.building_type.category,
            "icon": self.building_type.icon,
            "level": self.level,
            "max_level": self.max_level,
            "is_main": self.is_main,
            "tile": self.tile.index,
            "resource_type": self.resource_type.value if self.resource_type else None,
            "production_rate": self.production_rate,
            "upgrade_cost": bundle_to_payload(next_cost) if next_cost is not None else None,
        }
