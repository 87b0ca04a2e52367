import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core import config
from core.building_catalog import (
    DEFAULT_BUILDING_DATA,
    load_catalog,
    load_default_catalog,
    resolve_building_type,
)
from core.buildings import Building, DowngradeOutcome
from core.collaborators import HeadlessRenderer
from core.errors import (
    ConfigurationError,
    InsufficientResourcesError,
    MainBuildingProtectedError,
    MaxLevelReachedError,
    UnknownBuildingError,
    UnknownBuildingTypeError,
)
from core.game_state import GameSession
from core.resource_ledger import ResourceLedger
from core.resources import Resource


def _rich_session(**kwargs) -> GameSession:
    session = GameSession(**kwargs)
    for resource in Resource:
        session.ledger.set_amount(resource, 1000)
    return session


def test_catalog_levels_line_up_with_costs():
    catalog = load_default_catalog()
    lumberyard = catalog[config.LUMBERYARD]
    assert lumberyard.max_level == 3
    assert lumberyard.build_cost == {Resource.WOOD: 10, Resource.STONE: 5, Resource.HUMANS: 1}
    assert lumberyard.upgrade_cost(1) == {Resource.WOOD: 20, Resource.STONE: 10}
    assert lumberyard.upgrade_cost(3) is None
    assert [lumberyard.rate_at(level) for level in (1, 2, 3)] == [1, 2, 4]

    main = catalog[config.MAIN_BUILDING]
    assert main.resource_type is None
    assert main.rate_at(1) == 0
    assert catalog[config.NUCLEAR_PLANT].max_level == 2


def test_catalog_rejects_mismatched_rates():
    data = {
        "building_types": [
            dict(DEFAULT_BUILDING_DATA["building_types"][-1]),
            {
                "id": "Broken",
                "resource_type": "wood",
                "costs": [{"wood": 1}, {"wood": 2}],
                "generation_rates": [1],
            },
        ]
    }
    with pytest.raises(ConfigurationError):
        load_catalog(data)


def test_resolve_building_type_is_forgiving_about_case():
    catalog = load_default_catalog()
    assert resolve_building_type(catalog, "iron_mine").id == config.IRON_MINE
    assert resolve_building_type(catalog, "lumberyard").id == config.LUMBERYARD
    with pytest.raises(UnknownBuildingTypeError):
        resolve_building_type(catalog, "Castle")


def test_upgrade_debits_next_level_cost():
    session = GameSession()
    building = session.build_building(session.grid.get(0), config.LUMBERYARD)

    session.upgrade_building(building)

    assert building.level == 2
    assert session.ledger.get(Resource.WOOD) == 50 - 10 - 20
    assert session.ledger.get(Resource.STONE) == 30 - 5 - 10


def test_upgrade_without_resources_leaves_state_unchanged():
    session = GameSession()
    building = session.build_building(session.grid.get(0), config.IRON_MINE)
    before = session.ledger.snapshot()

    with pytest.raises(InsufficientResourcesError) as excinfo:
        session.upgrade_building(building)

    assert excinfo.value.missing is Resource.STONE
    assert building.level == 1
    assert session.ledger.snapshot() == before


def test_upgrade_past_max_level_is_rejected():
    session = _rich_session()
    building = session.build_building(session.grid.get(0), config.NUCLEAR_PLANT)
    session.upgrade_building(building)
    before = session.ledger.snapshot()

    with pytest.raises(MaxLevelReachedError):
        session.upgrade_building(building)

    assert building.level == 2
    assert session.ledger.snapshot() == before


def test_downgrade_then_destroy_ordinary_building():
    session = _rich_session()
    tile = session.grid.get(3)
    building = session.build_building(tile, config.PADDY)
    session.upgrade_building(building)

    assert session.downgrade_building(building, "test") is DowngradeOutcome.DOWNGRADED
    assert building.level == 1
    assert session.downgrade_building(building, "test") is DowngradeOutcome.DESTROYED
    assert not session.grid.is_occupied(tile)
    assert building.id not in session.buildings
    with pytest.raises(UnknownBuildingError):
        session.downgrade_building(building, "test")


def test_main_building_is_never_destroyed():
    session = GameSession()
    main = session.main_building

    assert main.is_main and main.floor_level == 1
    assert session.downgrade_building(main, "thunder") is DowngradeOutcome.AT_FLOOR
    assert main.level == 1
    assert session.is_active(main)
    with pytest.raises(MainBuildingProtectedError):
        session.destroy_building(main, "meteorite")


def test_main_building_cannot_be_built_twice():
    session = _rich_session()
    with pytest.raises(MainBuildingProtectedError):
        session.build_building(session.grid.get(0), config.MAIN_BUILDING)


def test_produce_credits_rate_for_current_level():
    session = _rich_session()
    ledger = ResourceLedger()
    building = session.build_building(session.grid.get(0), config.HOUSE)
    assert building.produce(ledger) == 1
    session.upgrade_building(building)
    session.upgrade_building(building)
    assert building.produce(ledger) == 4
    assert ledger.get(Resource.HUMANS) == 5
    assert session.main_building.produce(ledger) == 0


def test_level_change_reacquires_visual():
    renderer = HeadlessRenderer(pick_radius=1.0)
    session = _rich_session(renderer=renderer)
    building = session.build_building(session.grid.get(0), config.LUMBERYARD)
    first = building.visual

    session.upgrade_building(building)

    assert building.visual != first
    visuals = renderer.visuals_for(building.id)
    assert len(visuals) == 1
    assert visuals[0].asset_ref == "public/model/Ghost.gltf"


def test_missing_asset_keeps_previous_visual():
    renderer = HeadlessRenderer(pick_radius=1.0, missing_assets={"public/model/Ghost.gltf"})
    session = _rich_session(renderer=renderer)
    building = session.build_building(session.grid.get(0), config.LUMBERYARD)
    first = building.visual

    session.upgrade_building(building)

    assert building.level == 2
    assert building.visual == first


def test_building_snapshot_exposes_next_cost():
    session = GameSession()
    snapshot = session.main_building.to_snapshot()
    assert snapshot["type"] == config.MAIN_BUILDING
    assert snapshot["level"] == 1
    assert snapshot["upgrade_cost"] == {"wood": 100, "stone": 100}
    assert snapshot["tile"] == 455


def test_building_is_tied_to_its_type_entry():
    catalog = load_default_catalog()
    session = GameSession(catalog=catalog)
    building = session.build_building(session.grid.get(0), config.LUMBERYARD)
    assert isinstance(building, Building)
    assert building.building_type is session.catalog[config.LUMBERYARD]
