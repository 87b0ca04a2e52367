"""Catalogue helpers for the colony building types."""

from __future__ import annotations

from typing import Dict, Mapping

from . import config
from .building_models import BuildingType
from .errors import ConfigurationError, UnknownBuildingTypeError
from .resources import normalise_mapping, normalise_resource


DEFAULT_BUILDING_DATA = {
    "building_types": [
        {
            "id": config.LUMBERYARD,
            "category": "Wood",
            "icon": "🪓",
            "resource_type": "wood",
            "costs": [
                {"wood": 10, "stone": 5, "humans": 1},
                {"wood": 20, "stone": 10},
                {"wood": 40, "stone": 20},
            ],
            "generation_rates": [1, 2, 4],
            "model_paths": [
                "public/model/Dragon_Evolved.gltf",
                "public/model/Ghost.gltf",
                "public/model/Demon.gltf",
            ],
        },
        {
            "id": config.QUARRY,
            "category": "Stone",
            "icon": "⛏️",
            "resource_type": "stone",
            "costs": [
                {"wood": 5, "stone": 10, "humans": 1},
                {"wood": 10, "stone": 20},
                {"wood": 20, "stone": 40},
            ],
            "generation_rates": [1, 2, 3],
            "model_paths": [
                "public/model/Ghost.gltf",
                "public/model/Dragon_Evolved.gltf",
                "public/model/Demon.gltf",
            ],
        },
        {
            "id": config.IRON_MINE,
            "category": "Metal",
            "icon": "⚒️",
            "resource_type": "iron",
            "costs": [
                {"wood": 10, "stone": 15, "humans": 1},
                {"wood": 20, "stone": 30},
                {"wood": 40, "stone": 60},
            ],
            "generation_rates": [1, 2, 3],
            "model_paths": [
                "public/model/Demon.gltf",
                "models/IronMine_Level2.gltf",
                "models/IronMine_Level3.gltf",
            ],
        },
        {
            "id": config.HOUSE,
            "category": "Housing",
            "icon": "🏠",
            "resource_type": "humans",
            "costs": [
                {"wood": 10, "stone": 5},
                {"wood": 20, "stone": 10},
                {"wood": 40, "stone": 20},
            ],
            "generation_rates": [1, 2, 4],
            "model_paths": [
                "public/model/Dragon_Evolved.gltf",
                "models/House_Level2.gltf",
                "models/House_Level3.gltf",
            ],
        },
        {
            "id": config.PADDY,
            "category": "Food",
            "icon": "🌾",
            "resource_type": "food",
            "costs": [
                {"wood": 5, "stone": 5, "humans": 1},
                {"wood": 10, "stone": 10},
                {"wood": 20, "stone": 20},
            ],
            "generation_rates": [1, 2, 3],
            "model_paths": [
                "public/model/Dragon_Evolved.gltf",
                "models/Paddy_Level2.gltf",
                "models/Paddy_Level3.gltf",
            ],
        },
        {
            "id": config.NUCLEAR_PLANT,
            "category": "Energy",
            "icon": "☢️",
            "resource_type": "nuclear",
            "costs": [
                {"wood": 20, "stone": 50, "iron": 30, "humans": 2},
                {"wood": 40, "stone": 100, "iron": 60},
            ],
            "generation_rates": [1, 2],
            "model_paths": [
                "public/model/Dragon_Evolved.gltf",
                "models/NuclearPlant_Level2.gltf",
            ],
        },
        {
            "id": config.MAIN_BUILDING,
            "category": "Civic",
            "icon": "🏰",
            "resource_type": None,
            "costs": [
                {"wood": 50, "stone": 50},
                {"wood": 100, "stone": 100},
                {"wood": 200, "stone": 200},
            ],
            "generation_rates": [],
            "model_paths": [
                "model/Glub.gltf",
                "model/Dragon_Evolved.gltf",
                "model/Demon.gltf",
            ],
        },
    ]
}


def _building_type(entry: Mapping[str, object]) -> BuildingType:
    type_id = str(entry["id"])
    raw_costs = entry.get("costs") or []
    if not raw_costs:
        raise ConfigurationError(f"{type_id} declares no cost levels")
    costs = tuple(normalise_mapping(cost) for cost in raw_costs)
    for bundle in costs:
        if any(amount < 0 for amount in bundle.values()):
            raise ConfigurationError(f"{type_id} declares a negative cost")

    raw_resource = entry.get("resource_type")
    resource_type = None if raw_resource is None else normalise_resource(raw_resource)
    rates = tuple(int(rate) for rate in entry.get("generation_rates") or [])
    if resource_type is not None and len(rates) != len(costs):
        raise ConfigurationError(
            f"{type_id} has {len(rates)} generation rates for {len(costs)} levels"
        )

    return BuildingType(
        id=type_id,
        name=str(entry.get("name", type_id)),
        category=str(entry.get("category", "Other")),
        resource_type=resource_type,
        costs=costs,
        generation_rates=rates,
        model_paths=tuple(entry.get("model_paths") or ()),
        scale=float(entry.get("scale", config.VISUAL_SCALE)),
        y_offset=float(entry.get("y_offset", config.TILE_HEIGHT)),
        icon=str(entry.get("icon", "🏗️")),
        description=str(entry.get("description", "")),
    )


def load_catalog(data: Mapping[str, object]) -> Dict[str, BuildingType]:
    """Build a catalogue from raw ``data`` shaped like :data:`DEFAULT_BUILDING_DATA`."""

    catalogue: Dict[str, BuildingType] = {}
    for entry in data["building_types"]:
        building_type = _building_type(entry)
        if building_type.id in catalogue:
            raise ConfigurationError(f"Duplicate building type {building_type.id}")
        catalogue[building_type.id] = building_type
    if config.MAIN_BUILDING not in catalogue:
        raise ConfigurationError("Catalogue has no main building entry")
    return catalogue


def load_default_catalog() -> Dict[str, BuildingType]:
    """Return the default catalogue."""

    return load_catalog(DEFAULT_BUILDING_DATA)


def resolve_building_type(catalogue: Mapping[str, BuildingType], value: str) -> BuildingType:
    """Look up ``value`` case-insensitively, ignoring dashes and underscores."""

    if not isinstance(value, str) or not value.strip():
        raise UnknownBuildingTypeError("Building type must be a non-empty string")
    wanted = value.strip().lower().replace("-", "").replace("_", "")
    for type_id, building_type in catalogue.items():
        if type_id.lower() == wanted:
            return building_type
    raise UnknownBuildingTypeError(f"Unknown building type: {value}")
