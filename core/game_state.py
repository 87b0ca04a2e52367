"""Session object holding all mutable state of one colony game."""

from __future__ import annotations

import asyncio
import itertools
import logging
import random
import uuid
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Deque, Dict, List, Mapping, Optional

from . import config
from .building_catalog import load_default_catalog, resolve_building_type
from .building_models import BuildingType
from .buildings import Building, DowngradeOutcome
from .collaborators import (
    BUILDING_LAYER,
    TILE_LAYER,
    AssetLoader,
    AudioPlayer,
    HeadlessAssetLoader,
    HeadlessRenderer,
    LoggingAudioPlayer,
    Renderer,
)
from .commands import CommandLayer
from .disasters import DisasterEngine
from .economy import EconomyScheduler
from .errors import (
    GameOverError,
    MainBuildingProtectedError,
    TileOccupiedError,
    UnknownBuildingError,
)
from .resource_ledger import ResourceLedger
from .resources import bundle_to_payload
from .tiles import Tile, TileGrid


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TerminalGameEnd:
    """Emitted once, when the main building reaches its top level."""

    building_id: str
    level: int
    production_ticks: int
    reached_at: str


GameEndListener = Callable[[TerminalGameEnd], None]


class GameSession:
    """World context passed to every component of the simulation.

    The ledger and the active building set are the only shared mutable
    resources. Every method that checks and then mutates them runs without
    awaiting, so callers on the event loop see each transition as one step.
    """

    def __init__(
        self,
        settings: config.SessionSettings = config.DEFAULT_SETTINGS,
        catalog: Mapping[str, BuildingType] | None = None,
        rng: random.Random | None = None,
        renderer: Renderer | None = None,
        audio: AudioPlayer | None = None,
        asset_loader: AssetLoader | None = None,
    ) -> None:
        self.settings = settings
        self.catalog: Dict[str, BuildingType] = dict(catalog or load_default_catalog())
        if config.MAIN_BUILDING not in self.catalog:
            raise ValueError("Catalogue must define the main building")
        self.rng = rng or random.Random()
        self.renderer = renderer or HeadlessRenderer(pick_radius=settings.tile_size / 2)
        self.audio = audio or LoggingAudioPlayer()
        self.asset_loader = asset_loader or HeadlessAssetLoader()
        self.notifications: Deque[str] = deque(maxlen=settings.notification_limit)
        self._game_end_listeners: List[GameEndListener] = []
        self._initialise_state()

    # ------------------------------------------------------------------
    def reset(self) -> None:
        """Tear the world down and start a fresh game with the same collaborators."""

        for building in list(self.buildings.values()):
            self._detach_visual(building)
        for tile in self.grid.all_tiles():
            self.renderer.unregister_pickable(TILE_LAYER, tile)
        self._initialise_state()

    def _initialise_state(self) -> None:
        settings = self.settings
        self.notifications.clear()
        self.ledger = ResourceLedger(settings.starting_resources)
        self.grid = TileGrid(
            settings.grid_size,
            settings.tile_size,
            settings.tile_height,
            settings.island_origins,
        )
        for tile in self.grid.all_tiles():
            self.renderer.register_pickable(TILE_LAYER, tile, tile.position)
        self.buildings: Dict[str, Building] = {}
        self._building_ids = itertools.count(1)
        self._state_version = 0
        self.game_end: Optional[TerminalGameEnd] = None
        self.commands = CommandLayer(self)
        self.economy = EconomyScheduler(self)
        self.disasters = DisasterEngine(self)
        self.main_building = self._place_main_building()

    def _place_main_building(self) -> Building:
        tile = self.grid.find(*self.settings.main_building_tile)
        building = Building(
            id="main",
            building_type=self.catalog[config.MAIN_BUILDING],
            tile=tile,
            is_main=True,
        )
        self.grid.assign(tile, building)
        self.buildings[building.id] = building
        self._attach_visual(building)
        logger.info("Main building placed on tile %s", tile.index)
        return building

    # ------------------------------------------------------------------
    @property
    def game_over(self) -> bool:
        return self.game_end is not None

    @property
    def version(self) -> int:
        return self._state_version

    def on_game_end(self, listener: GameEndListener) -> None:
        self._game_end_listeners.append(listener)

    def add_notification(self, message: str) -> None:
        self.notifications.append(message)

    def list_notifications(self) -> List[str]:
        return list(self.notifications)

    # ------------------------------------------------------------------
    def active_buildings(self) -> List[Building]:
        """Stable snapshot of the active building set."""

        return list(self.buildings.values())

    def is_active(self, building: Building) -> bool:
        return self.buildings.get(building.id) is building

    def get_building(self, building_id: str) -> Building:
        building = self.buildings.get(str(building_id))
        if building is None:
            raise UnknownBuildingError(f"Building {building_id} does not exist")
        return building

    def get_building_type(self, type_id: str) -> BuildingType:
        return resolve_building_type(self.catalog, type_id)

    def _require_active(self, building: Building) -> None:
        if not self.is_active(building):
            raise UnknownBuildingError(f"Building {building.id} is no longer standing")

    def _ensure_running(self) -> None:
        if self.game_over:
            raise GameOverError("The game is over")

    # ------------------------------------------------------------------
    def build_building(self, tile: Tile, type_id: str) -> Building:
        """Place a new level-1 building of ``type_id`` on ``tile``."""

        self._ensure_running()
        if self.grid.is_occupied(tile):
            raise TileOccupiedError(f"Tile {tile.index} already has a building")
        building_type = self.get_building_type(type_id)
        if building_type.id == config.MAIN_BUILDING:
            raise MainBuildingProtectedError("Only one main building can exist")

        self.ledger.debit(building_type.build_cost)
        building = Building(
            id=f"{building_type.id.lower()}-{next(self._building_ids)}",
            building_type=building_type,
            tile=tile,
        )
        self.grid.assign(tile, building)
        self.buildings[building.id] = building
        self._state_version += 1

        self._attach_visual(building)
        self.play_sound(config.SOUND_BUILD)
        self.add_notification(f"{building_type.name} built on tile {tile.index}")
        logger.info(
            "%s built on tile %s at (%.1f, %.1f)",
            building_type.id,
            tile.index,
            tile.position[0],
            tile.position[2],
        )
        return building

    def upgrade_building(self, building: Building) -> int:
        """Raise ``building`` one level, ending the game if it is the main building."""

        self._ensure_running()
        self._require_active(building)
        level = building.upgrade(self.ledger)
        self._state_version += 1

        self._refresh_visual(building)
        self.play_sound(config.SOUND_UPGRADE)
        self.add_notification(f"{building.building_type.name} upgraded to level {level}")
        logger.info("%s upgraded to level %s", building.id, level)

        if building.is_main and building.at_max_level:
            self._end_game(building)
        return level

    def downgrade_building(self, building: Building, cause: str = "") -> DowngradeOutcome:
        """Apply one downgrade transition; ordinary buildings at level 1 are destroyed."""

        self._require_active(building)
        outcome = building.downgrade()
        if outcome is DowngradeOutcome.DOWNGRADED:
            self._state_version += 1
            self._refresh_visual(building)
            self.play_sound(config.SOUND_DOWNGRADE)
            self.add_notification(
                f"{building.building_type.name} downgraded to level {building.level} by {cause or 'damage'}"
            )
            logger.info("%s downgraded to level %s (%s)", building.id, building.level, cause)
        elif outcome is DowngradeOutcome.DESTROYED:
            self._remove_building(building, cause)
        else:
            logger.info("%s cannot be downgraded below level 1 (%s)", building.id, cause)
        return outcome

    def destroy_building(self, building: Building, cause: str = "") -> None:
        """Remove ``building`` regardless of its level."""

        if building.is_main:
            raise MainBuildingProtectedError("The main building cannot be destroyed")
        self._require_active(building)
        self._remove_building(building, cause)

    def _remove_building(self, building: Building, cause: str) -> None:
        self.grid.clear(building.tile)
        del self.buildings[building.id]
        self._state_version += 1
        self._detach_visual(building)
        self.play_sound(config.SOUND_DESTROYED)
        self.add_notification(
            f"{building.building_type.name} destroyed by {cause or 'damage'}"
        )
        logger.info("%s destroyed on tile %s (%s)", building.id, building.tile.index, cause)

    def _end_game(self, building: Building) -> None:
        if self.game_end is not None:
            return
        event = TerminalGameEnd(
            building_id=building.id,
            level=building.level,
            production_ticks=self.economy.tick_count,
            reached_at=datetime.now(timezone.utc).isoformat(),
        )
        self.game_end = event
        self.play_sound(config.SOUND_GAME_END)
        self.add_notification("The main building reached its final level. You win!")
        logger.info("Game over: %s reached level %s", building.id, building.level)
        for listener in list(self._game_end_listeners):
            listener(event)

    # ------------------------------------------------------------------
    # Collaborator plumbing. Failures here never interrupt gameplay.

    def play_sound(self, effect_key: str) -> None:
        try:
            self.audio.play_sound(effect_key)
        except Exception:
            logger.exception("Could not play sound %s", effect_key)

    def place_effect(self, effect_id: str, asset_ref: Optional[str], position) -> Optional[object]:
        return self._safe_place(effect_id, asset_ref, position, config.VISUAL_SCALE)

    def remove_effect(self, handle: Optional[object]) -> None:
        self._safe_remove(handle)

    def _safe_place(self, entity_id: str, asset_ref: Optional[str], position, scale: float) -> Optional[object]:
        try:
            return self.renderer.place_visual(entity_id, asset_ref, position, scale)
        except Exception:
            logger.exception("Could not place visual %s for %s", asset_ref, entity_id)
            return None

    def _safe_remove(self, handle: Optional[object]) -> None:
        if handle is None:
            return
        try:
            self.renderer.remove_visual(handle)
        except Exception:
            logger.exception("Could not remove visual %s", handle)

    def _attach_visual(self, building: Building) -> None:
        building.visual = self._safe_place(
            building.id, building.asset_ref, building.anchor, building.building_type.scale
        )
        self.renderer.register_pickable(BUILDING_LAYER, building, building.anchor)

    def _refresh_visual(self, building: Building) -> None:
        handle = self._safe_place(
            building.id, building.asset_ref, building.anchor, building.building_type.scale
        )
        if handle is None:
            return
        self._safe_remove(building.visual)
        building.visual = handle

    def _detach_visual(self, building: Building) -> None:
        self._safe_remove(building.visual)
        building.visual = None
        self.renderer.unregister_pickable(BUILDING_LAYER, building)

    async def preload_assets(self) -> Dict[str, bool]:
        """Warm the asset loader with every model the catalogue and disasters use."""

        paths = sorted(
            {path for building_type in self.catalog.values() for path in building_type.model_paths}
            | {
                disaster.effect_asset
                for disaster in self.settings.disasters.values()
                if disaster.effect_asset
            }
        )
        results = await asyncio.gather(
            *(self.asset_loader.load_model(path) for path in paths),
            return_exceptions=True,
        )
        loaded: Dict[str, bool] = {}
        for path, result in zip(paths, results):
            loaded[path] = not isinstance(result, BaseException)
            if isinstance(result, BaseException):
                logger.warning("Asset %s failed to load: %s", path, result)
        return loaded

    # ------------------------------------------------------------------
    def snapshot_catalog(self) -> List[Dict[str, object]]:
        return [
            {
                "id": building_type.id,
                "name": building_type.name,
                "category": building_type.category,
                "icon": building_type.icon,
                "resource_type": building_type.resource_type.value
                if building_type.resource_type
                else None,
                "max_level": building_type.max_level,
                "build_cost": bundle_to_payload(building_type.build_cost),
                "generation_rates": list(building_type.generation_rates),
                "buildable": building_type.id != config.MAIN_BUILDING,
            }
            for building_type in self.catalog.values()
        ]

    def snapshot_buildings(self) -> List[Dict[str, object]]:
        return [building.to_snapshot() for building in self.buildings.values()]

    def snapshot_state(self) -> Dict[str, object]:
        return {
            "resources": self.ledger.snapshot(),
            "buildings": self.snapshot_buildings(),
            "main_building": self.main_building.to_snapshot(),
            "tiles": {
                "total": len(self.grid),
                "occupied": [tile.index for tile in self.grid.occupied_tiles()],
            },
            "commands": self.commands.snapshot(),
            "production": {
                "ticks": self.economy.tick_count,
                "last_tick": bundle_to_payload(self.economy.last_report),
            },
            "disasters": self.disasters.history_snapshot(),
            "notifications": self.list_notifications(),
            "game_over": self.game_over,
            "version": self.version,
        }

    def response_metadata(self, version: Optional[int] = None) -> Dict[str, object]:
        version_value = self.version if version is None else int(version)
        timestamp = (
            datetime.now(timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z")
        )
        return {
            "request_id": uuid.uuid4().hex,
            "server_time": timestamp,
            "version": version_value,
        }
