"""Integer resource ledger backing the colony economy."""

from __future__ import annotations

from typing import Dict, Iterable, Mapping, Optional

from .errors import ConfigurationError, InsufficientResourcesError
from .resources import ALL_RESOURCES, Resource, normalise_resource


class ResourceLedger:
    """Non-negative integer stock per resource kind.

    The set of kinds is fixed when the ledger is created; touching a kind
    outside that schema is a configuration error, not a gameplay one.
    """

    def __init__(
        self,
        initial: Mapping[Resource | str, int] | None = None,
        schema: Iterable[Resource] = ALL_RESOURCES,
    ) -> None:
        self._amounts: Dict[Resource, int] = {resource: 0 for resource in schema}
        if initial:
            for resource, amount in initial.items():
                self.set_amount(resource, amount)

    # ------------------------------------------------------------------
    def _kind(self, resource: Resource | str) -> Resource:
        kind = normalise_resource(resource)
        if kind not in self._amounts:
            raise ConfigurationError(f"Resource {kind.value} is not part of the ledger schema")
        return kind

    def snapshot(self) -> Dict[str, int]:
        return {resource.value: amount for resource, amount in self._amounts.items()}

    def get(self, resource: Resource | str) -> int:
        return self._amounts[self._kind(resource)]

    def set_amount(self, resource: Resource | str, amount: int) -> None:
        self._amounts[self._kind(resource)] = max(0, int(amount))

    # ------------------------------------------------------------------
    def missing(self, bundle: Mapping[Resource | str, int]) -> Optional[Resource]:
        """Return the first kind in ``bundle`` the ledger cannot cover."""

        for resource, amount in bundle.items():
            kind = self._kind(resource)
            if self._amounts[kind] < int(amount):
                return kind
        return None

    def can_afford(self, bundle: Mapping[Resource | str, int]) -> bool:
        return self.missing(bundle) is None

    def debit(self, bundle: Mapping[Resource | str, int]) -> None:
        """Subtract every entry of ``bundle`` or nothing at all."""

        short = self.missing(bundle)
        if short is not None:
            raise InsufficientResourcesError(bundle, short)
        for resource, amount in bundle.items():
            kind = self._kind(resource)
            self._amounts[kind] -= int(amount)

    def credit(self, resource: Resource | str, amount: int) -> None:
        kind = self._kind(resource)
        self._amounts[kind] = max(0, self._amounts[kind] + int(amount))
