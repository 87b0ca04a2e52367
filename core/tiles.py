"""Fixed grid of land tiles spread across the islands."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Sequence, Tuple

from .errors import TileOccupiedError, TileVacantError, UnknownTileError

if TYPE_CHECKING:
    from .buildings import Building


@dataclass(eq=False)
class Tile:
    """Addressable land cell. Hosts at most one building."""

    index: int
    island: int
    row: int
    col: int
    origin: Tuple[float, float]
    position: Tuple[float, float, float]
    building: Optional["Building"] = field(default=None, repr=False)

    @property
    def key(self) -> Tuple[int, int, int]:
        return (self.island, self.row, self.col)

    def to_snapshot(self) -> Dict[str, object]:
        return {
            "index": self.index,
            "island": self.island,
            "row": self.row,
            "col": self.col,
            "position": list(self.position),
            "building": self.building.id if self.building is not None else None,
        }


class TileGrid:
    """All tiles of the world, created once at world build.

    Islands only offset the tiles in world space; gameplay treats every tile
    the same.
    """

    def __init__(
        self,
        grid_size: int,
        tile_size: float,
        tile_height: float,
        island_origins: Sequence[Tuple[float, float]],
    ) -> None:
        self.grid_size = int(grid_size)
        self.tile_size = float(tile_size)
        self.tile_height = float(tile_height)
        self._tiles: List[Tile] = []
        self._by_key: Dict[Tuple[int, int, int], Tile] = {}
        for island, origin in enumerate(island_origins):
            self._create_island(island, (float(origin[0]), float(origin[1])))

    def _create_island(self, island: int, origin: Tuple[float, float]) -> None:
        for row in range(self.grid_size):
            for col in range(self.grid_size):
                tile = Tile(
                    index=len(self._tiles),
                    island=island,
                    row=row,
                    col=col,
                    origin=origin,
                    position=(
                        origin[0] + col * self.tile_size,
                        self.tile_height / 2,
                        origin[1] + row * self.tile_size,
                    ),
                )
                self._tiles.append(tile)
                self._by_key[tile.key] = tile

    # ------------------------------------------------------------------
    def __len__(self) -> int:
        return len(self._tiles)

    def all_tiles(self) -> Sequence[Tile]:
        return tuple(self._tiles)

    def get(self, index: int) -> Tile:
        try:
            index = int(index)
        except (TypeError, ValueError) as exc:
            raise UnknownTileError(f"Invalid tile index: {index}") from exc
        if index < 0 or index >= len(self._tiles):
            raise UnknownTileError(f"Tile {index} does not exist")
        return self._tiles[index]

    def find(self, island: int, row: int, col: int) -> Tile:
        tile = self._by_key.get((int(island), int(row), int(col)))
        if tile is None:
            raise UnknownTileError(f"No tile at island={island} row={row} col={col}")
        return tile

    # ------------------------------------------------------------------
    def is_occupied(self, tile: Tile) -> bool:
        return tile.building is not None

    def assign(self, tile: Tile, building: "Building") -> None:
        if tile.building is not None:
            raise TileOccupiedError(
                f"Tile {tile.index} already hosts {tile.building.type_id}"
            )
        tile.building = building

    def clear(self, tile: Tile) -> "Building":
        building = tile.building
        if building is None:
            raise TileVacantError(f"Tile {tile.index} is not occupied")
        tile.building = None
        return building

    def occupied_tiles(self) -> Iterable[Tile]:
        return [tile for tile in self._tiles if tile.building is not None]
