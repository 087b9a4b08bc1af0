"""One viewer's live layout: the tick loop plus its gesture state.

A front end feeds pointer events to ``handle`` and draws whatever
``next_frame`` returns. Frames are coalesced, so a slow consumer only ever
sees the latest positions.
"""

from __future__ import annotations

import asyncio
from dataclasses import asdict
from typing import Any, Mapping

from ..layout.simulation import Simulation
from ..layout.ticker import SimulationRunner
from .interaction import DragController, HoverState, Viewport
from .render import layout_payload


def _point(event: Mapping[str, Any], xk: str = "x", yk: str = "y") -> tuple[float, float]:
    try:
        return (float(event[xk]), float(event[yk]))
    except (KeyError, TypeError, ValueError):
        raise ValueError(f"event needs numeric {xk!r} and {yk!r}: {dict(event)!r}") from None


def _node_id(event: Mapping[str, Any]) -> str:
    node_id = event.get("id")
    if not isinstance(node_id, str):
        raise ValueError(f"event needs a node 'id': {dict(event)!r}")
    return node_id


class LayoutSession:
    def __init__(self, sim: Simulation, *, viewport: Viewport | None = None, interval: float | None = None):
        self.sim = sim
        self.hover = HoverState()
        self.drag = DragController(sim)
        self.viewport = viewport or Viewport()
        self.runner = SimulationRunner(on_tick=self._on_tick, interval=interval)
        self._dirty = asyncio.Event()

    async def start(self) -> None:
        await self.runner.start(self.sim)
        self._dirty.set()

    async def stop(self) -> None:
        await self.runner.stop()

    async def __aenter__(self) -> LayoutSession:
        await self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.stop()

    def _on_tick(self, positions: dict[str, tuple[float, float]]) -> None:
        self._dirty.set()

    def handle(self, event: Mapping[str, Any]) -> None:
        """Apply one pointer event.

        Drag coordinates arrive in screen space and are mapped back through
        the current zoom. Raises ``ValueError`` for unknown or incomplete
        events and ``KeyError`` for unknown nodes.
        """
        kind = event.get("type")
        if kind == "hover":
            self.hover.enter(_node_id(event))
        elif kind == "leave":
            self.hover.leave()
        elif kind == "drag_start":
            self.drag.start(_node_id(event))
        elif kind == "drag_move":
            x, y = self.viewport.current().invert(_point(event))
            self.drag.move(_node_id(event), x, y)
        elif kind == "drag_end":
            self.drag.end(_node_id(event))
        elif kind == "zoom":
            try:
                factor = float(event["factor"])
            except (KeyError, TypeError, ValueError):
                raise ValueError(f"zoom needs a numeric 'factor': {dict(event)!r}") from None
            self.viewport.zoom(factor, _point(event) if "x" in event else (0.0, 0.0))
        elif kind == "pan":
            self.viewport.pan(*_point(event, "dx", "dy"))
        elif kind == "reset":
            self.viewport.reset()
        else:
            raise ValueError(f"Unknown event type: {kind!r}")
        self._dirty.set()

    def frame(self) -> dict[str, Any]:
        payload = layout_payload(self.sim)
        for node, out in zip(self.sim.nodes, payload["nodes"]):
            out["style"] = asdict(self.hover.node_style(node))
        for link, out in zip(self.sim.links, payload["links"]):
            out["style"] = asdict(self.hover.link_style(link))
            out["label_style"] = asdict(self.hover.label_style(link))
        t = self.viewport.current()
        payload["transform"] = {"k": t.k, "x": t.x, "y": t.y}
        payload["hovered"] = self.hover.hovered
        payload["settled"] = self.sim.converged
        return payload

    async def next_frame(self) -> dict[str, Any]:
        """Wait for something to change, then snapshot it."""
        if self.viewport.animating:
            # The reset animation advances on the clock, not on ticks.
            try:
                await asyncio.wait_for(self._dirty.wait(), self.sim.config.tick_interval)
            except asyncio.TimeoutError:
                pass
        else:
            await self._dirty.wait()
        self._dirty.clear()
        return self.frame()
