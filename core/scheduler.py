"""Background event loop driving the production and disaster ticks."""
from __future__ import annotations

import asyncio
import logging
import threading
from typing import Callable, List, Optional, TypeVar

from .game_state import GameSession


logger = logging.getLogger(__name__)

T = TypeVar("T")


class SimulationLoop:
    """Runs both tick sources and player commands on a single event loop.

    The tick coroutines end when the game does; the loop itself keeps
    serving commands until :meth:`stop`. Once it has shut down, commands run
    on the caller's thread under the same lock that guards submission.
    """

    def __init__(self, session: GameSession) -> None:
        self.session = session
        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread_id: Optional[int] = None
        self._lock = threading.RLock()
        self._stop_event: Optional[asyncio.Event] = None
        self._tick_tasks: List[asyncio.Task] = []
        self._pending = 0
        self._stopping = False
        self._closed = False

    # ------------------------------------------------------------------
    def _should_tick(self) -> bool:
        return not self._stopping and not self.session.game_over

    async def _production_loop(self) -> None:
        interval = self.session.settings.production_interval
        while self._should_tick():
            await asyncio.sleep(interval)
            if not self._should_tick():
                break
            try:
                self.session.economy.fire()
            except Exception:
                logger.exception("Production tick failed")

    async def _disaster_loop(self) -> None:
        interval = self.session.settings.disaster_interval
        while self._should_tick():
            await asyncio.sleep(interval)
            if not self._should_tick():
                break
            try:
                kind = self.session.disasters.roll()
                if kind is not None:
                    engine = self.session.disasters
                    engine.spawn(engine.run_tasks(kind, engine.plan(kind)))
            except Exception:
                logger.exception("Disaster tick failed")

    def resume_ticks(self) -> None:
        """Start the tick coroutines unless they are already running.

        Must be called on the loop thread, e.g. through :meth:`call` after a
        reset brought a finished game back to life.
        """

        loop = self.loop
        if loop is None or self._closed or self._stopping:
            return
        if any(not task.done() for task in self._tick_tasks):
            return
        self._tick_tasks = [
            loop.create_task(self._production_loop()),
            loop.create_task(self._disaster_loop()),
        ]

    async def run(self) -> None:
        loop = asyncio.get_running_loop()
        with self._lock:
            self.loop = loop
            self._thread_id = threading.get_ident()
            self._stop_event = asyncio.Event()
            self._closed = False
            if self._stopping:
                self._stop_event.set()
        await self.session.preload_assets()
        logger.info("Simulation loop started")
        self.resume_ticks()
        await self._stop_event.wait()

        with self._lock:
            self._closed = True
        for task in self._tick_tasks:
            task.cancel()
        await asyncio.gather(*self._tick_tasks, return_exceptions=True)
        # Commands submitted before closing still get their turn.
        while self._pending:
            await asyncio.sleep(0)
        logger.info("Simulation loop stopped (game over=%s)", self.session.game_over)

    def stop(self) -> None:
        with self._lock:
            self._stopping = True
            if self.loop is not None and not self._closed and self._stop_event is not None:
                self.loop.call_soon_threadsafe(self._stop_event.set)

    @property
    def stopped(self) -> bool:
        return self._stopping

    @property
    def running(self) -> bool:
        return self.loop is not None and not self._closed and self.loop.is_running()

    @property
    def ticking(self) -> bool:
        return any(not task.done() for task in self._tick_tasks)

    # ------------------------------------------------------------------
    def call(self, func: Callable[..., T], *args, **kwargs) -> T:
        """Run ``func`` on the loop thread and return its result.

        Commands from request threads are queued behind whatever tick is
        currently executing, so they never interleave with a transition.
        """

        with self._lock:
            loop = self.loop
            on_loop_thread = threading.get_ident() == self._thread_id
            if loop is None or self._closed or on_loop_thread:
                return func(*args, **kwargs)
            self._pending += 1
            future = asyncio.run_coroutine_threadsafe(self._invoke(func, args, kwargs), loop)
        return future.result()

    async def _invoke(self, func: Callable[..., T], args, kwargs) -> T:
        try:
            with self._lock:
                return func(*args, **kwargs)
        finally:
            with self._lock:
                self._pending -= 1


_loop_thread: Optional[threading.Thread] = None
_loop_lock = threading.Lock()
_simulation: Optional[SimulationLoop] = None


def ensure_tick_loop(session: GameSession) -> SimulationLoop:
    """Start the asynchronous tick loop for ``session`` if it is not already running."""

    global _loop_thread, _simulation
    with _loop_lock:
        if (
            _loop_thread
            and _loop_thread.is_alive()
            and _simulation is not None
            and _simulation.session is session
            and not _simulation.stopped
        ):
            _simulation.call(_simulation.resume_ticks)
            return _simulation

        if _simulation is not None:
            _simulation.stop()

        simulation = SimulationLoop(session)

        def runner() -> None:
            asyncio.run(simulation.run())

        thread = threading.Thread(target=runner, name="game-tick-loop", daemon=True)
        thread.start()
        _loop_thread = thread
        _simulation = simulation
        return simulation
