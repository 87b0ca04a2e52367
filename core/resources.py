"""Resource definitions for the colony simulation."""
from __future__ import annotations

from enum import Enum
from typing import Dict, List, Mapping

from .errors import ConfigurationError


class Resource(str, Enum):
    """Enumeration of all resource keys used in the game."""

    WOOD = "wood"
    STONE = "stone"
    IRON = "iron"
    HUMANS = "humans"
    FOOD = "food"
    NUCLEAR = "nuclear"


ALL_RESOURCES: List[Resource] = [
    Resource.WOOD,
    Resource.STONE,
    Resource.IRON,
    Resource.HUMANS,
    Resource.FOOD,
    Resource.NUCLEAR,
]


_RESOURCE_LOOKUP: Dict[str, Resource] = {}
for _resource in ALL_RESOURCES:
    _RESOURCE_LOOKUP[_resource.value] = _resource
    _RESOURCE_LOOKUP[_resource.name.lower()] = _resource


def resource_from_id(identifier: str) -> Resource:
    """Return the resource associated with ``identifier``.

    The lookup is case-insensitive. Unknown identifiers are a configuration
    problem rather than a gameplay one, so :class:`ConfigurationError` is raised.
    """

    resource = _RESOURCE_LOOKUP.get(str(identifier).strip().lower())
    if resource is None:
        raise ConfigurationError(f"Unknown resource kind: {identifier}")
    return resource


def normalise_resource(value: Resource | str) -> Resource:
    """Coerce ``value`` into a :class:`Resource` instance."""

    if isinstance(value, Resource):
        return value
    return resource_from_id(value)


def normalise_mapping(mapping: Mapping[Resource | str, int]) -> Dict[Resource, int]:
    """Return a new mapping with canonical resource keys and integer amounts."""

    return {normalise_resource(key): int(amount) for key, amount in mapping.items()}


def bundle_to_payload(bundle: Mapping[Resource, int]) -> Dict[str, int]:
    """Serialise a cost bundle using the lowercase identifiers the GUI binds to."""

    return {resource.value: int(amount) for resource, amount in bundle.items()}


__all__ = [
    "ALL_RESOURCES",
    "Resource",
    "bundle_to_payload",
    "normalise_mapping",
    "normalise_resource",
    "resource_from_id",
]
