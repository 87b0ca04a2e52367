"""Randomised disasters that downgrade or destroy buildings."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, Deque, Dict, List, Optional, Set

from . import config
from .buildings import DowngradeOutcome
from .errors import GameOverError, UnknownDisasterError

if TYPE_CHECKING:
    from .buildings import Building
    from .game_state import GameSession


logger = logging.getLogger(__name__)


class TaskState(str, Enum):
    PENDING = "pending"
    ANIMATING = "animating"
    COMMITTED = "committed"
    ABORTED = "aborted"


class DisasterEffect(str, Enum):
    DESTROY = "destroy"
    DOWNGRADE = "downgrade"
    # Earthquakes knock levels off but never flatten a building.
    SHAKE = "shake"


DISASTER_EFFECTS: Dict[str, DisasterEffect] = {
    config.METEORITE: DisasterEffect.DESTROY,
    config.THUNDER: DisasterEffect.DOWNGRADE,
    config.TORNADO: DisasterEffect.DOWNGRADE,
    config.EARTHQUAKE: DisasterEffect.SHAKE,
}


@dataclass(eq=False)
class DisasterTask:
    """One disaster hitting one building.

    The visual phase only advances :attr:`progress`; the building is touched
    once, in the commit step, after checking it is still standing.
    """

    kind: str
    target: "Building"
    effect: DisasterEffect
    duration: float
    state: TaskState = TaskState.PENDING
    progress: float = 0.0
    outcome: Optional[str] = None
    abort_reason: Optional[str] = None

    @property
    def finished(self) -> bool:
        return self.state in (TaskState.COMMITTED, TaskState.ABORTED)

    def to_snapshot(self) -> Dict[str, object]:
        return {
            "kind": self.kind,
            "target": self.target.id,
            "effect": self.effect.value,
            "state": self.state.value,
            "progress": round(self.progress, 3),
            "outcome": self.outcome,
            "abort_reason": self.abort_reason,
        }


class DisasterEngine:
    """Rolls for disasters and runs their two-stage tasks."""

    def __init__(
        self,
        session: "GameSession",
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.session = session
        self.clock = clock
        self.sleep = sleep
        self.history: Deque[Dict[str, object]] = deque(maxlen=20)
        self._running: Set[asyncio.Future] = set()

    # ------------------------------------------------------------------
    def settings_for(self, kind: str) -> config.DisasterSettings:
        try:
            return self.session.settings.disasters[kind]
        except KeyError as exc:
            raise UnknownDisasterError(f"Unknown disaster: {kind}") from exc

    def roll(self) -> Optional[str]:
        """Bernoulli trial, then a uniform pick among the registered kinds."""

        settings = self.session.settings
        rng = self.session.rng
        if not settings.disaster_kinds:
            return None
        if rng.random() >= settings.disaster_probability:
            return None
        return rng.choice(list(settings.disaster_kinds))

    def eligible(self, kind: str) -> List["Building"]:
        disaster = self.settings_for(kind)
        candidates = self.session.active_buildings()
        if not disaster.include_main:
            candidates = [building for building in candidates if not building.is_main]
        if disaster.eligible_categories is not None:
            candidates = [
                building
                for building in candidates
                if building.building_type.category in disaster.eligible_categories
            ]
        return candidates

    def select_targets(self, kind: str) -> List["Building"]:
        """Draw distinct targets uniformly without replacement."""

        candidates = self.eligible(kind)
        if not candidates:
            return []
        max_targets = self.settings_for(kind).max_targets
        if max_targets is None:
            return candidates
        return self.session.rng.sample(candidates, min(max_targets, len(candidates)))

    def plan(self, kind: str) -> List[DisasterTask]:
        if self.session.game_over:
            raise GameOverError("The game is over")
        disaster = self.settings_for(kind)
        effect = DISASTER_EFFECTS.get(kind, DisasterEffect.DOWNGRADE)
        targets = self.select_targets(kind)
        if not targets:
            logger.info("%s struck but found no buildings", kind)
            self.session.add_notification(f"A {kind} passed without hitting anything")
            return []
        logger.info("%s targets %s", kind, ", ".join(building.id for building in targets))
        return [
            DisasterTask(kind=kind, target=target, effect=effect, duration=disaster.duration)
            for target in targets
        ]

    # ------------------------------------------------------------------
    async def run_task(self, task: DisasterTask) -> DisasterTask:
        disaster = self.settings_for(task.kind)
        task.state = TaskState.ANIMATING
        handle = None
        if disaster.effect_asset and task.duration > 0:
            handle = self.session.place_effect(task.kind, disaster.effect_asset, task.target.anchor)
        try:
            started = self.clock()
            while True:
                reason = self._abort_reason(task)
                if reason is not None:
                    return self._abort(task, reason)
                if task.duration <= 0:
                    task.progress = 1.0
                else:
                    task.progress = min((self.clock() - started) / task.duration, 1.0)
                if task.progress >= 1.0:
                    break
                await self.sleep(self.session.settings.animation_frame)
        finally:
            self.session.remove_effect(handle)

        reason = self._abort_reason(task)
        if reason is not None:
            return self._abort(task, reason)
        task.outcome = self._commit(task)
        task.state = TaskState.COMMITTED
        return task

    def _abort_reason(self, task: DisasterTask) -> Optional[str]:
        if self.session.game_over:
            return "game_over"
        if not self.session.is_active(task.target):
            return "target_gone"
        return None

    def _abort(self, task: DisasterTask, reason: str) -> DisasterTask:
        task.state = TaskState.ABORTED
        task.abort_reason = reason
        logger.info("%s on %s aborted: %s", task.kind, task.target.id, reason)
        return task

    def _commit(self, task: DisasterTask) -> str:
        session = self.session
        target = task.target
        if task.effect is DisasterEffect.DESTROY and not target.is_main:
            session.destroy_building(target, cause=task.kind)
            return DowngradeOutcome.DESTROYED.value
        if task.effect is DisasterEffect.SHAKE and target.level <= 1:
            return DowngradeOutcome.AT_FLOOR.value
        return session.downgrade_building(target, cause=task.kind).value

    async def _flash(self, kind: str, building: "Building", asset: str, duration: float) -> None:
        handle = self.session.place_effect(kind, asset, building.anchor)
        try:
            await self.sleep(duration)
        finally:
            self.session.remove_effect(handle)

    # ------------------------------------------------------------------
    async def run_tasks(self, kind: str, tasks: List[DisasterTask]) -> List[DisasterTask]:
        disaster = self.settings_for(kind)
        if tasks:
            self.session.play_sound(kind)
        flashes = []
        if disaster.effect_asset and disaster.effect_duration > 0:
            flashes = [
                self._flash(kind, task.target, disaster.effect_asset, disaster.effect_duration)
                for task in tasks
            ]
        await asyncio.gather(*(self.run_task(task) for task in tasks), *flashes)
        self.history.append(
            {"kind": kind, "tasks": [task.to_snapshot() for task in tasks]}
        )
        return tasks

    def trigger(self, kind: str) -> List[DisasterTask]:
        """Start ``kind`` now and return its tasks.

        On a running event loop the visual phase continues in the background;
        without one, the disaster is played out before returning.
        """

        tasks = self.plan(kind)
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self.run_tasks(kind, tasks))
        else:
            self.spawn(self.run_tasks(kind, tasks))
        return tasks

    def spawn(self, coroutine: Awaitable) -> asyncio.Future:
        future = asyncio.ensure_future(coroutine)
        self._running.add(future)
        future.add_done_callback(self._on_done)
        return future

    def _on_done(self, future: asyncio.Future) -> None:
        self._running.discard(future)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error("Disaster task failed", exc_info=exc)

    @property
    def in_flight(self) -> int:
        return len(self._running)

    def history_snapshot(self) -> List[Dict[str, object]]:
        return list(self.history)
