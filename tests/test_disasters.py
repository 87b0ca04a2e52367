import asyncio
import random
import sys
from dataclasses import replace
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core import config
from core.collaborators import HeadlessAssetLoader, HeadlessRenderer
from core.disasters import DisasterEffect, DisasterTask, TaskState
from core.errors import GameOverError, UnknownDisasterError
from core.game_state import GameSession
from core.resources import Resource


class FakeClock:
    """Deterministic clock whose sleep advances time instead of waiting."""

    def __init__(self, on_sleep=None):
        self.now = 0.0
        self.calls = 0
        self.on_sleep = on_sleep

    def __call__(self):
        return self.now

    async def sleep(self, delay):
        self.calls += 1
        self.now += delay
        if self.on_sleep is not None:
            self.on_sleep(self.calls)
        await asyncio.sleep(0)


def _session(seed: int = 7, on_sleep=None, **settings) -> GameSession:
    session = GameSession(
        settings=replace(config.DEFAULT_SETTINGS, **settings),
        rng=random.Random(seed),
    )
    for resource in Resource:
        session.ledger.set_amount(resource, 1000)
    clock = FakeClock(on_sleep)
    session.disasters.clock = clock
    session.disasters.sleep = clock.sleep
    return session


def _with_disaster(kind: str, **overrides) -> dict:
    disasters = dict(config.DISASTERS)
    disasters[kind] = replace(disasters[kind], **overrides)
    return disasters


def test_roll_respects_probability():
    never = _session(disaster_probability=0.0)
    always = _session(disaster_probability=1.0)

    assert all(never.disasters.roll() is None for _ in range(50))
    kinds = {always.disasters.roll() for _ in range(200)}
    assert kinds == set(config.DISASTER_KINDS)
    assert config.EARTHQUAKE not in kinds


def test_meteorite_never_targets_main_building():
    session = _session()
    lumberyard = session.build_building(session.grid.get(0), config.LUMBERYARD)

    for _ in range(25):
        assert session.disasters.select_targets(config.METEORITE) == [lumberyard]


def test_meteorite_without_targets_is_a_noop():
    session = _session()
    before = session.ledger.snapshot()

    assert session.disasters.plan(config.METEORITE) == []
    assert session.disasters.trigger(config.METEORITE) == []
    assert session.main_building.level == 1
    assert session.ledger.snapshot() == before


def test_meteorite_destroys_target_after_animation():
    session = _session()
    tile = session.grid.get(0)
    building = session.build_building(tile, config.LUMBERYARD)
    session.upgrade_building(building)
    renderer = session.renderer

    async def scenario():
        tasks = session.disasters.plan(config.METEORITE)
        assert tasks[0].state is TaskState.PENDING
        return await session.disasters.run_tasks(config.METEORITE, tasks)

    tasks = asyncio.run(scenario())

    task = tasks[0]
    assert task.state is TaskState.COMMITTED
    assert task.outcome == "destroyed"
    assert task.progress == 1.0
    assert not session.grid.is_occupied(tile)
    assert not session.is_active(building)
    assert renderer.visuals_for(config.METEORITE) == []
    assert config.METEORITE in session.audio.played
    assert session.disasters.history_snapshot()[-1]["kind"] == config.METEORITE


def test_effect_visual_lives_for_animation_only():
    seen = []
    session = _session(on_sleep=lambda calls: seen.append(len(renderer.visuals_for(config.TORNADO))))
    renderer = session.renderer
    building = session.build_building(session.grid.get(0), config.PADDY)
    task = DisasterTask(
        kind=config.TORNADO,
        target=building,
        effect=DisasterEffect.DOWNGRADE,
        duration=2.0,
    )

    asyncio.run(session.disasters.run_task(task))

    assert seen and all(count == 1 for count in seen)
    assert renderer.visuals_for(config.TORNADO) == []
    assert task.state is TaskState.COMMITTED


def test_thunder_destroys_level_one_building_and_downgrades_others():
    session = _session(disasters=_with_disaster(config.THUNDER, include_main=False))
    weak_tile = session.grid.get(0)
    weak = session.build_building(weak_tile, config.QUARRY)

    tasks = session.disasters.trigger(config.THUNDER)

    assert tasks[0].target is weak
    assert tasks[0].outcome == "destroyed"
    assert not session.grid.is_occupied(weak_tile)

    strong = session.build_building(session.grid.get(1), config.QUARRY)
    session.upgrade_building(strong)
    tasks = session.disasters.trigger(config.THUNDER)

    assert tasks[0].outcome == "downgraded"
    assert strong.level == 1
    assert session.renderer.visuals_for(config.THUNDER) == []


def test_thunder_on_main_building_stops_at_level_one():
    session = _session()

    tasks = session.disasters.trigger(config.THUNDER)

    assert tasks[0].target is session.main_building
    assert tasks[0].outcome == "at_floor"
    assert session.main_building.level == 1
    assert session.is_active(session.main_building)


def test_tornado_hits_distinct_targets():
    session = _session(seed=3)
    for index in range(5):
        session.build_building(session.grid.get(index), config.HOUSE)

    tasks = session.disasters.plan(config.TORNADO)

    targets = [task.target.id for task in tasks]
    assert len(targets) == 3
    assert len(set(targets)) == 3


def test_tornado_with_few_buildings_hits_all_of_them():
    session = _session()
    house = session.build_building(session.grid.get(0), config.HOUSE)

    tasks = session.disasters.plan(config.TORNADO)

    assert {task.target.id for task in tasks} == {house.id, session.main_building.id}


def test_category_filter_without_matches_is_a_noop():
    session = _session(
        disasters=_with_disaster(config.TORNADO, eligible_categories=frozenset({"Food"}))
    )
    session.build_building(session.grid.get(0), config.LUMBERYARD)
    buildings_before = {b.id: b.level for b in session.active_buildings()}

    assert session.disasters.trigger(config.TORNADO) == []
    assert {b.id: b.level for b in session.active_buildings()} == buildings_before


def test_earthquake_shakes_every_building_without_destroying():
    session = _session()
    flat = session.build_building(session.grid.get(0), config.HOUSE)
    tall = session.build_building(session.grid.get(1), config.HOUSE)
    session.upgrade_building(tall)

    tasks = session.disasters.trigger(config.EARTHQUAKE)

    outcomes = {task.target.id: task.outcome for task in tasks}
    assert outcomes[flat.id] == "at_floor"
    assert outcomes[tall.id] == "downgraded"
    assert outcomes[session.main_building.id] == "at_floor"
    assert session.is_active(flat)
    assert tall.level == 1


def test_task_aborts_when_target_destroyed_mid_animation():
    holder = {}

    def destroy_on_first_frame(calls):
        if calls == 1:
            holder["session"].destroy_building(holder["target"], "test")

    session = _session(on_sleep=destroy_on_first_frame)
    holder["session"] = session
    target = session.build_building(session.grid.get(0), config.IRON_MINE)
    holder["target"] = target
    task = DisasterTask(
        kind=config.TORNADO,
        target=target,
        effect=DisasterEffect.DOWNGRADE,
        duration=2.0,
    )
    before = session.ledger.snapshot()

    asyncio.run(session.disasters.run_task(task))

    assert task.state is TaskState.ABORTED
    assert task.abort_reason == "target_gone"
    assert task.outcome is None
    assert session.ledger.snapshot() == before
    assert session.renderer.visuals_for(config.TORNADO) == []


def test_overlapping_disasters_on_one_building():
    session = _session()
    target = session.build_building(session.grid.get(0), config.LUMBERYARD)
    session.upgrade_building(target)
    meteorite = DisasterTask(
        kind=config.METEORITE,
        target=target,
        effect=DisasterEffect.DESTROY,
        duration=1.0,
    )
    tornado = DisasterTask(
        kind=config.TORNADO,
        target=target,
        effect=DisasterEffect.DOWNGRADE,
        duration=2.0,
    )

    async def scenario():
        await asyncio.gather(
            session.disasters.run_task(meteorite),
            session.disasters.run_task(tornado),
        )

    asyncio.run(scenario())

    assert meteorite.state is TaskState.COMMITTED
    assert tornado.state is TaskState.ABORTED
    assert tornado.abort_reason == "target_gone"
    assert not session.grid.is_occupied(session.grid.get(0))


def test_game_end_aborts_in_flight_tasks():
    holder = {}

    def finish_game(calls):
        if calls == 1:
            session = holder["session"]
            session.upgrade_building(session.main_building)
            session.upgrade_building(session.main_building)

    session = _session(on_sleep=finish_game)
    holder["session"] = session
    target = session.build_building(session.grid.get(0), config.HOUSE)
    task = DisasterTask(
        kind=config.METEORITE,
        target=target,
        effect=DisasterEffect.DESTROY,
        duration=1.0,
    )

    asyncio.run(session.disasters.run_task(task))

    assert session.game_over
    assert task.state is TaskState.ABORTED
    assert task.abort_reason == "game_over"
    assert session.is_active(target)
    with pytest.raises(GameOverError):
        session.disasters.trigger(config.TORNADO)


def test_trigger_on_running_loop_finishes_in_background():
    session = _session()
    session.build_building(session.grid.get(0), config.HOUSE)

    async def scenario():
        tasks = session.disasters.trigger(config.METEORITE)
        assert session.disasters.in_flight == 1
        while session.disasters.in_flight:
            await asyncio.sleep(0)
        return tasks

    tasks = asyncio.run(scenario())

    assert tasks[0].state is TaskState.COMMITTED


def test_unknown_disaster_is_rejected():
    session = _session()
    with pytest.raises(UnknownDisasterError):
        session.disasters.trigger("volcano")


def test_preload_reports_missing_assets():
    loader = HeadlessAssetLoader(missing_assets={"model/Tornado.gltf"})
    session = GameSession(asset_loader=loader, renderer=HeadlessRenderer())

    loaded = asyncio.run(session.preload_assets())

    assert loaded["model/Tornado.gltf"] is False
    assert loaded["public/model/Ghost.gltf"] is True
    assert loaded["vfx/lightning"] is True
    assert "model/Tornado.gltf" not in loader.loaded
