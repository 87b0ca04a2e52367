"""Centralised configuration for the colony simulation."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Mapping, Optional, Tuple

from .resources import Resource

# ---------------------------------------------------------------------------
# Building identifiers

LUMBERYARD = "Lumberyard"
QUARRY = "Quarry"
IRON_MINE = "IronMine"
HOUSE = "House"
PADDY = "Paddy"
NUCLEAR_PLANT = "NuclearPlant"
MAIN_BUILDING = "MainBuilding"

# ---------------------------------------------------------------------------
# World layout

GRID_SIZE = 10
TILE_SIZE = 2.0
TILE_HEIGHT = 0.5

# Bottom-left, bottom-right, top-left, top-right and centre islands.
ISLAND_ORIGINS: Tuple[Tuple[float, float], ...] = (
    (-25.0, -25.0),
    (25.0, -25.0),
    (-25.0, 25.0),
    (25.0, 25.0),
    (0.0, 0.0),
)

# (island, row, col) of the tile hosting the main building: world (10, 10).
MAIN_BUILDING_TILE: Tuple[int, int, int] = (4, 5, 5)

VISUAL_SCALE = 0.5

# ---------------------------------------------------------------------------
# Economy

STARTING_RESOURCES: Dict[Resource, int] = {
    Resource.WOOD: 50,
    Resource.STONE: 30,
    Resource.IRON: 20,
    Resource.HUMANS: 10,
    Resource.FOOD: 40,
    Resource.NUCLEAR: 0,
}

PRODUCTION_INTERVAL = 1.0

# ---------------------------------------------------------------------------
# Disasters

METEORITE = "meteorite"
THUNDER = "thunder"
TORNADO = "tornado"
EARTHQUAKE = "earthquake"

DISASTER_INTERVAL = 10.0
DISASTER_PROBABILITY = 0.5
DISASTER_KINDS: Tuple[str, ...] = (METEORITE, THUNDER, TORNADO)
ANIMATION_FRAME = 1.0 / 30.0


@dataclass(frozen=True)
class DisasterSettings:
    """Tunables for a single disaster kind."""

    duration: float = 0.0
    max_targets: Optional[int] = 1
    include_main: bool = True
    eligible_categories: Optional[FrozenSet[str]] = None
    effect_asset: Optional[str] = None
    effect_duration: float = 0.0


DISASTERS: Dict[str, DisasterSettings] = {
    METEORITE: DisasterSettings(
        duration=1.0,
        max_targets=1,
        include_main=False,
        effect_asset="model/Demon.gltf",
    ),
    THUNDER: DisasterSettings(
        duration=0.0,
        max_targets=1,
        effect_asset="vfx/lightning",
        effect_duration=0.5,
    ),
    TORNADO: DisasterSettings(
        duration=2.0,
        max_targets=3,
        effect_asset="model/Tornado.gltf",
    ),
    EARTHQUAKE: DisasterSettings(
        duration=0.0,
        max_targets=None,
    ),
}

# ---------------------------------------------------------------------------
# Audio

SOUND_BUILD = "build"
SOUND_UPGRADE = "upgrade"
SOUND_DOWNGRADE = "downgrade"
SOUND_DESTROYED = "destroyed"
SOUND_GAME_END = "victory"

NOTIFICATION_QUEUE_LIMIT = 50


@dataclass(frozen=True)
class SessionSettings:
    """Everything a session needs to know, gathered from the module defaults."""

    grid_size: int = GRID_SIZE
    tile_size: float = TILE_SIZE
    tile_height: float = TILE_HEIGHT
    island_origins: Tuple[Tuple[float, float], ...] = ISLAND_ORIGINS
    main_building_tile: Tuple[int, int, int] = MAIN_BUILDING_TILE
    starting_resources: Mapping[Resource, int] = field(
        default_factory=lambda: dict(STARTING_RESOURCES)
    )
    production_interval: float = PRODUCTION_INTERVAL
    disaster_interval: float = DISASTER_INTERVAL
    disaster_probability: float = DISASTER_PROBABILITY
    disaster_kinds: Tuple[str, ...] = DISASTER_KINDS
    disasters: Mapping[str, DisasterSettings] = field(default_factory=lambda: dict(DISASTERS))
    animation_frame: float = ANIMATION_FRAME
    notification_limit: int = NOTIFICATION_QUEUE_LIMIT


DEFAULT_SETTINGS = SessionSettings()
