"""Error taxonomy shared by the simulation core."""
from __future__ import annotations

from typing import Dict, Mapping, Optional


class ConfigurationError(Exception):
    """Raised when static configuration (catalog, resource schema) is malformed."""


class AssetLoadFailure(Exception):
    """Raised by rendering/audio collaborators when an asset cannot be fetched."""


class PreconditionViolation(Exception):
    """Base class for rejected gameplay actions.

    These are never fatal: the action leaves state untouched and the caller
    reports ``code`` and the message back to the player.
    """

    code = "precondition_violation"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class TileOccupiedError(PreconditionViolation):
    code = "tile_occupied"


class TileVacantError(PreconditionViolation):
    code = "tile_vacant"


class UnknownTileError(PreconditionViolation):
    code = "tile_not_found"


class UnknownBuildingTypeError(PreconditionViolation):
    code = "invalid_building_type"


class UnknownBuildingError(PreconditionViolation):
    code = "building_not_found"


class MaxLevelReachedError(PreconditionViolation):
    code = "max_level"


class MainBuildingProtectedError(PreconditionViolation):
    code = "main_building_protected"


class InvalidModeError(PreconditionViolation):
    code = "invalid_mode"


class GameOverError(PreconditionViolation):
    code = "game_over"


class InsufficientResourcesError(PreconditionViolation):
    """Raised when a cost bundle cannot be covered by the ledger."""

    code = "insufficient_resources"

    def __init__(self, requirements: Mapping[object, int], missing: Optional[object] = None) -> None:
        self.requirements: Dict[object, int] = dict(requirements)
        self.missing = missing
        label = getattr(missing, "value", missing)
        if label is None:
            message = "Insufficient resources"
        else:
            message = f"Insufficient resources: not enough {label}"
        super().__init__(message)


class UnknownDisasterError(PreconditionViolation):
    code = "invalid_disaster"
