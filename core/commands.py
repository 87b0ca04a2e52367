"""Build/upgrade command resolution driven by pointer input."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Dict, Mapping, Optional, Tuple

from .collaborators import BUILDING_LAYER, TILE_LAYER
from .errors import InvalidModeError, PreconditionViolation
from .resources import Resource, bundle_to_payload

if TYPE_CHECKING:
    from .buildings import Building
    from .building_models import BuildingType
    from .game_state import GameSession
    from .tiles import Tile


logger = logging.getLogger(__name__)


class CommandMode(str, Enum):
    BUILD = "build"
    UPGRADE = "upgrade"


@dataclass
class CommandResult:
    """Outcome of a build or upgrade command.

    Rejections are ordinary results: ``error`` holds the violated
    precondition and the session state is untouched.
    """

    ok: bool
    action: str
    building: Optional["Building"] = None
    error: Optional[PreconditionViolation] = None

    @property
    def error_code(self) -> Optional[str]:
        return self.error.code if self.error is not None else None

    @property
    def message(self) -> str:
        if self.error is not None:
            return self.error.message
        if self.building is not None:
            return f"{self.action} {self.building.type_id} (level {self.building.level})"
        return self.action

    def to_payload(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "ok": self.ok,
            "action": self.action,
            "building": self.building.to_snapshot() if self.building is not None else None,
        }
        if self.error is not None:
            payload["error_code"] = self.error.code
            payload["error_message"] = self.error.message
        return payload


class CommandLayer:
    """Holds the player's interaction mode and resolves picks into commands."""

    def __init__(self, session: "GameSession") -> None:
        self.session = session
        self.mode = CommandMode.BUILD
        self.selected_type: Optional[str] = None
        self.selected_building: Optional["Building"] = None

    # ------------------------------------------------------------------
    def set_mode(self, mode: CommandMode | str) -> CommandMode:
        try:
            new_mode = CommandMode(str(getattr(mode, "value", mode)).strip().lower())
        except ValueError as exc:
            raise InvalidModeError(f"Unknown mode: {mode}") from exc
        self.mode = new_mode
        self.selected_type = None
        self.selected_building = None
        logger.info("Mode set to %s", new_mode.value)
        return new_mode

    def select_building_type(self, type_id: str) -> "BuildingType":
        building_type = self.session.get_building_type(type_id)
        if self.mode is not CommandMode.BUILD:
            self.set_mode(CommandMode.BUILD)
        self.selected_type = building_type.id
        logger.info("Selected building type %s", building_type.id)
        return building_type

    def enter_upgrade_mode(self) -> None:
        self.set_mode(CommandMode.UPGRADE)

    # ------------------------------------------------------------------
    def resolve_build_command(self, tile: "Tile", type_id: str) -> CommandResult:
        try:
            building = self.session.build_building(tile, type_id)
        except PreconditionViolation as exc:
            return self._rejected("build", exc)
        return CommandResult(ok=True, action="build", building=building)

    def resolve_upgrade_command(self, building: "Building") -> CommandResult:
        try:
            self.session.upgrade_building(building)
        except PreconditionViolation as exc:
            return self._rejected("upgrade", exc, building)
        return CommandResult(ok=True, action="upgrade", building=building)

    def handle_pointer(self, pointer: Tuple[float, float]) -> Optional[CommandResult]:
        """Resolve a click at ``pointer`` according to the current mode.

        Returns ``None`` when nothing was picked or no command applies.
        """

        renderer = self.session.renderer
        if self.mode is CommandMode.BUILD:
            if self.selected_type is None:
                return None
            tile = renderer.pick_at(pointer, TILE_LAYER)
            if tile is None:
                return None
            return self.resolve_build_command(tile, self.selected_type)

        building = renderer.pick_at(pointer, BUILDING_LAYER)
        if building is None:
            return None
        self.selected_building = building
        return self.resolve_upgrade_command(building)

    # ------------------------------------------------------------------
    def requirements(self) -> Optional[Mapping[Resource, int]]:
        """Cost of the action the current selection would trigger."""

        if self.mode is CommandMode.BUILD and self.selected_type is not None:
            return self.session.catalog[self.selected_type].build_cost
        if self.mode is CommandMode.UPGRADE and self.selected_building is not None:
            return self.selected_building.next_upgrade_cost
        return None

    def snapshot(self) -> Dict[str, object]:
        requirements = self.requirements()
        return {
            "mode": self.mode.value,
            "selected_type": self.selected_type,
            "selected_building": self.selected_building.id if self.selected_building else None,
            "requirements": bundle_to_payload(requirements) if requirements is not None else None,
        }

    def _rejected(
        self,
        action: str,
        exc: PreconditionViolation,
        building: Optional["Building"] = None,
    ) -> CommandResult:
        logger.warning("%s rejected (%s): %s", action, exc.code, exc.message)
        self.session.add_notification(exc.message)
        return CommandResult(ok=False, action=action, building=building, error=exc)
