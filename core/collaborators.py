"""Interfaces to the rendering, asset and audio collaborators.

The simulation never depends on a concrete renderer. The headless classes
below keep just enough bookkeeping for the server and the tests: visual
handles, nearest-anchor picking and a log of the sounds that were requested.
"""

from __future__ import annotations

import itertools
import logging
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

from .errors import AssetLoadFailure

logger = logging.getLogger(__name__)

Position = Tuple[float, float, float]

TILE_LAYER = "tiles"
BUILDING_LAYER = "buildings"


class Renderer(Protocol):
    def place_visual(
        self, entity_id: str, asset_ref: Optional[str], position: Position, scale: float
    ) -> object: ...

    def remove_visual(self, handle: object) -> None: ...

    def pick_at(self, pointer: Tuple[float, float], layer: str) -> Optional[object]: ...

    def register_pickable(self, layer: str, entity: object, position: Position) -> None: ...

    def unregister_pickable(self, layer: str, entity: object) -> None: ...


class AssetLoader(Protocol):
    async def load_model(self, path: str) -> object: ...


class AudioPlayer(Protocol):
    def play_sound(self, effect_key: str) -> None: ...


@dataclass
class Visual:
    handle: int
    entity_id: str
    asset_ref: Optional[str]
    position: Position
    scale: float


class HeadlessRenderer:
    """In-memory scene used when no 3D front-end is attached."""

    def __init__(self, pick_radius: float = 1.0, missing_assets: Iterable[str] = ()) -> None:
        self.pick_radius = float(pick_radius)
        self.missing_assets = set(missing_assets)
        self.visuals: Dict[int, Visual] = {}
        self._handles = itertools.count(1)
        self._pickables: Dict[str, Dict[object, Tuple[float, float]]] = {
            TILE_LAYER: {},
            BUILDING_LAYER: {},
        }

    # ------------------------------------------------------------------
    def place_visual(
        self, entity_id: str, asset_ref: Optional[str], position: Position, scale: float
    ) -> int:
        if asset_ref is not None and asset_ref in self.missing_assets:
            raise AssetLoadFailure(f"Asset {asset_ref} could not be loaded")
        handle = next(self._handles)
        self.visuals[handle] = Visual(handle, entity_id, asset_ref, position, scale)
        return handle

    def remove_visual(self, handle: object) -> None:
        self.visuals.pop(handle, None)

    def visuals_for(self, entity_id: str) -> List[Visual]:
        return [visual for visual in self.visuals.values() if visual.entity_id == entity_id]

    # ------------------------------------------------------------------
    def register_pickable(self, layer: str, entity: object, position: Position) -> None:
        self._pickables[layer][entity] = (position[0], position[2])

    def unregister_pickable(self, layer: str, entity: object) -> None:
        self._pickables[layer].pop(entity, None)

    def pick_at(self, pointer: Tuple[float, float], layer: str) -> Optional[object]:
        """Return the entity of ``layer`` nearest to ``pointer`` within the pick radius.

        Tiles are hit anywhere inside their square footprint; buildings only
        within a circle around their anchor.
        """

        x, z = float(pointer[0]), float(pointer[1])
        square = layer == TILE_LAYER
        best: Optional[object] = None
        best_distance = math.inf
        for entity, (ex, ez) in self._pickables.get(layer, {}).items():
            dx, dz = abs(ex - x), abs(ez - z)
            if square:
                inside = dx <= self.pick_radius and dz <= self.pick_radius
            else:
                inside = math.hypot(dx, dz) <= self.pick_radius
            distance = math.hypot(dx, dz)
            if inside and distance < best_distance:
                best, best_distance = entity, distance
        return best


class HeadlessAssetLoader:
    """Resolves every asset immediately unless it is listed as missing."""

    def __init__(self, missing_assets: Iterable[str] = ()) -> None:
        self.missing_assets = set(missing_assets)
        self.loaded: Dict[str, object] = {}

    async def load_model(self, path: str) -> object:
        if path in self.missing_assets:
            raise AssetLoadFailure(f"Model {path} could not be loaded")
        self.loaded[path] = path
        return path


class LoggingAudioPlayer:
    """Audio stand-in that records and logs every requested effect."""

    def __init__(self) -> None:
        self.played: List[str] = []

    def play_sound(self, effect_key: str) -> None:
        self.played.append(effect_key)
        logger.debug("Sound requested: %s", effect_key)
