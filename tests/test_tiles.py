import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core import config
from core.collaborators import BUILDING_LAYER, TILE_LAYER
from core.errors import TileOccupiedError, TileVacantError, UnknownTileError
from core.game_state import GameSession
from core.tiles import TileGrid


def _grid() -> TileGrid:
    return TileGrid(config.GRID_SIZE, config.TILE_SIZE, config.TILE_HEIGHT, config.ISLAND_ORIGINS)


def test_grid_creates_every_island_once():
    grid = _grid()
    tiles = grid.all_tiles()
    assert len(tiles) == len(config.ISLAND_ORIGINS) * config.GRID_SIZE ** 2
    assert [tile.index for tile in tiles] == list(range(len(tiles)))
    assert len({tile.key for tile in tiles}) == len(tiles)


def test_tile_anchor_follows_island_origin():
    grid = _grid()
    tile = grid.find(1, 2, 3)
    assert tile.origin == (25.0, -25.0)
    assert tile.position == pytest.approx((25.0 + 3 * 2.0, 0.25, -25.0 + 2 * 2.0))


def test_tile_pick_covers_the_whole_square_footprint():
    session = GameSession()
    grid = session.grid
    centre = grid.find(4, 5, 5)
    x, z = centre.position[0], centre.position[2]

    assert session.renderer.pick_at((x + 0.95, z - 0.95), TILE_LAYER) is centre
    assert session.renderer.pick_at((x + 1.2, z), TILE_LAYER) is grid.find(4, 5, 6)
    assert session.renderer.pick_at((100.0, 100.0), TILE_LAYER) is None
    # Buildings keep the round hit area around their anchor.
    assert session.renderer.pick_at((x + 0.95, z - 0.95), BUILDING_LAYER) is None
    assert session.renderer.pick_at((x + 0.5, z), BUILDING_LAYER) is session.main_building


def test_tile_snapshot_reports_occupant():
    session = GameSession()
    snapshot = session.grid.find(4, 5, 5).to_snapshot()
    assert snapshot["index"] == 455
    assert snapshot["building"] == "main"
    assert session.grid.get(0).to_snapshot()["building"] is None


def test_unknown_tile_lookups_raise():
    grid = _grid()
    with pytest.raises(UnknownTileError):
        grid.get(len(grid))
    with pytest.raises(UnknownTileError):
        grid.find(9, 0, 0)


def test_assign_and_clear_enforce_single_occupant():
    session = GameSession()
    grid = session.grid
    tile = grid.get(0)
    building = session.build_building(tile, config.LUMBERYARD)

    assert grid.is_occupied(tile)
    with pytest.raises(TileOccupiedError):
        grid.assign(tile, building)

    assert grid.clear(tile) is building
    assert not grid.is_occupied(tile)
    with pytest.raises(TileVacantError):
        grid.clear(tile)


def test_occupancy_matches_building_ownership():
    session = GameSession()
    session.ledger.set_amount("wood", 500)
    session.ledger.set_amount("stone", 500)
    for index in (0, 1, 150):
        session.build_building(session.grid.get(index), config.QUARRY)

    for tile in session.grid.all_tiles():
        owners = [b for b in session.active_buildings() if b.tile is tile]
        assert session.grid.is_occupied(tile) == (len(owners) == 1)
        assert len(owners) <= 1
