from __future__ import annotations

import asyncio
import logging
from typing import Callable

from .simulation import Simulation, dispose, step


log = logging.getLogger(__name__)

PositionsCallback = Callable[[dict[str, tuple[float, float]]], None]


class SimulationRunner:
    """Drive at most one simulation from the running asyncio loop.

    Each tick is followed by a sleep, which hands control back to the loop so
    rendering and input handlers can run. Once alpha falls below the
    threshold the loop idles until the simulation is reheated.
    """

    def __init__(self, *, on_tick: PositionsCallback | None = None, interval: float | None = None):
        self.on_tick = on_tick
        self.interval = interval
        self._sim: Simulation | None = None
        self._task: asyncio.Task | None = None
        self._wake = asyncio.Event()
        self._settled = asyncio.Event()

    @property
    def simulation(self) -> Simulation | None:
        return self._sim

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self, sim: Simulation) -> None:
        # The previous stepper must be gone before the new one touches positions.
        await self.stop()
        self._sim = sim
        self._wake = asyncio.Event()
        self._settled = asyncio.Event()
        sim.add_wake_listener(self._on_wake)
        self._task = asyncio.create_task(self._loop(sim))

    def _on_wake(self) -> None:
        self._settled.clear()
        self._wake.set()

    def wake(self) -> None:
        self._on_wake()

    async def wait_settled(self, timeout: float | None = None) -> None:
        await asyncio.wait_for(self._settled.wait(), timeout)

    async def _loop(self, sim: Simulation) -> None:
        interval = self.interval if self.interval is not None else sim.config.tick_interval
        while not sim.disposed:
            if sim.converged:
                self._settled.set()
                self._wake.clear()
                await self._wake.wait()
                continue
            self._settled.clear()
            positions = step(sim)
            if self.on_tick is not None:
                self.on_tick(positions)
            await asyncio.sleep(interval)

    async def stop(self) -> None:
        task, sim = self._task, self._sim
        self._task = None
        self._sim = None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        elif task is not None and not task.cancelled() and task.exception() is not None:
            log.error("Layout loop failed: %s", task.exception())
        if sim is not None:
            dispose(sim)

    async def __aenter__(self) -> SimulationRunner:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.stop()
