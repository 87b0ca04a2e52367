"""Fixed-interval production tick."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict

from .resources import Resource

if TYPE_CHECKING:
    from .game_state import GameSession


logger = logging.getLogger(__name__)


class EconomyScheduler:
    """Credits the ledger from every active building once per firing."""

    def __init__(self, session: "GameSession") -> None:
        self.session = session
        self.tick_count = 0
        self.last_report: Dict[Resource, int] = {}

    def fire(self) -> Dict[Resource, int]:
        """Run one production tick and return what each resource gained."""

        session = self.session
        if session.game_over:
            logger.debug("Production tick skipped: game over")
            return {}

        produced: Dict[Resource, int] = {}
        for building in session.active_buildings():
            if not session.is_active(building):
                continue
            amount = building.produce(session.ledger)
            if amount and building.resource_type is not None:
                produced[building.resource_type] = produced.get(building.resource_type, 0) + amount

        self.tick_count += 1
        self.last_report = produced
        if self.tick_count % 5 == 0:
            logger.debug(
                "Tick %s summary: buildings=%s resources=%s",
                self.tick_count,
                len(session.buildings),
                session.ledger.snapshot(),
            )
        return produced
