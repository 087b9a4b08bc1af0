"""Pointer gestures over a laid-out graph: hover, drag-to-pin, pan/zoom.

Everything here is display state. Hover and zoom never touch the simulation;
dragging only writes a node's ``fx``/``fy`` pin and the simulation's alpha.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

from ..layout.simulation import LayoutLink, LayoutNode, Simulation


@dataclass(frozen=True)
class LinkStyle:
    stroke: str
    width: float
    opacity: float


@dataclass(frozen=True)
class NodeStyle:
    stroke: str
    width: float


@dataclass(frozen=True)
class LabelStyle:
    fill: str
    size: str
    weight: str


NEUTRAL_LINK = LinkStyle("#999", 2.0, 0.6)
EMPHASIS_LINK = LinkStyle("#ff6600", 3.0, 1.0)
DIMMED_LINK = LinkStyle("#999", 1.5, 0.3)

NEUTRAL_NODE = NodeStyle("#fff", 1.5)
EMPHASIS_NODE = NodeStyle("#ff6600", 3.0)

NEUTRAL_LABEL = LabelStyle("#666", "8px", "normal")
EMPHASIS_LABEL = LabelStyle("#ff6600", "10px", "bold")


class HoverState:
    def __init__(self) -> None:
        self.hovered: str | None = None

    def enter(self, node_id: str) -> None:
        self.hovered = node_id

    def leave(self) -> None:
        self.hovered = None

    def touches(self, link: LayoutLink) -> bool:
        return self.hovered is not None and (link.source.id == self.hovered or link.target.id == self.hovered)

    def link_style(self, link: LayoutLink) -> LinkStyle:
        if self.hovered is None:
            return NEUTRAL_LINK
        return EMPHASIS_LINK if self.touches(link) else DIMMED_LINK

    def label_style(self, link: LayoutLink) -> LabelStyle:
        return EMPHASIS_LABEL if self.touches(link) else NEUTRAL_LABEL

    def node_style(self, node: LayoutNode) -> NodeStyle:
        return EMPHASIS_NODE if node.id == self.hovered else NEUTRAL_NODE


class DragController:
    """Pin a node under the pointer and keep the layout warm while dragging."""

    def __init__(self, sim: Simulation):
        self.sim = sim
        self._active = 0

    def _node(self, node: LayoutNode | str) -> LayoutNode:
        return self.sim.node(node) if isinstance(node, str) else node

    def start(self, node: LayoutNode | str) -> LayoutNode:
        n = self._node(node)
        if self._active == 0:
            self.sim.set_alpha_target(self.sim.config.reheat_alpha_target)
        self._active += 1
        n.fx = n.x
        n.fy = n.y
        return n

    def move(self, node: LayoutNode | str, x: float, y: float) -> None:
        n = self._node(node)
        n.fx = float(x)
        n.fy = float(y)

    def end(self, node: LayoutNode | str) -> None:
        n = self._node(node)
        self._active = max(0, self._active - 1)
        n.fx = None
        n.fy = None
        if self._active == 0:
            self.sim.set_alpha_target(self.sim.config.alpha_target)
        # Let the graph visibly resettle around the released node.
        self.sim.reheat(self.sim.config.reheat_alpha_target)


@dataclass(frozen=True)
class ZoomTransform:
    k: float = 1.0
    x: float = 0.0
    y: float = 0.0

    def apply(self, point: tuple[float, float]) -> tuple[float, float]:
        return (point[0] * self.k + self.x, point[1] * self.k + self.y)

    def invert(self, point: tuple[float, float]) -> tuple[float, float]:
        return ((point[0] - self.x) / self.k, (point[1] - self.y) / self.k)

    def svg(self) -> str:
        return f"translate({self.x:.3f},{self.y:.3f}) scale({self.k:.5f})"


IDENTITY = ZoomTransform()


def ease_cubic_in_out(t: float) -> float:
    t *= 2.0
    if t <= 1.0:
        return t * t * t / 2.0
    t -= 2.0
    return (t * t * t + 2.0) / 2.0


class Viewport:
    """Pan/zoom state with a bounded scale and an animated reset."""

    def __init__(
        self,
        *,
        scale_extent: tuple[float, float] = (0.5, 5.0),
        reset_duration: float = 0.75,
        clock: Callable[[], float] = time.monotonic,
    ):
        lo, hi = scale_extent
        if lo <= 0 or hi < lo:
            raise ValueError(f"invalid scale extent: {scale_extent!r}")
        self.scale_extent = (float(lo), float(hi))
        self.reset_duration = float(reset_duration)
        self.clock = clock
        self._transform = IDENTITY
        self._anim: tuple[ZoomTransform, float, float] | None = None

    def _clamp(self, k: float) -> float:
        lo, hi = self.scale_extent
        return min(hi, max(lo, k))

    def current(self, now: float | None = None) -> ZoomTransform:
        if self._anim is None:
            return self._transform
        start, t0, duration = self._anim
        now = self.clock() if now is None else now
        t = 1.0 if duration <= 0 else (now - t0) / duration
        if t >= 1.0:
            self._anim = None
            self._transform = IDENTITY
            return IDENTITY
        e = ease_cubic_in_out(max(0.0, t))
        return ZoomTransform(
            k=start.k + (1.0 - start.k) * e,
            x=start.x * (1.0 - e),
            y=start.y * (1.0 - e),
        )

    @property
    def animating(self) -> bool:
        return self._anim is not None

    def _settle(self) -> ZoomTransform:
        # A new gesture interrupts a running reset where it currently is.
        cur = self.current()
        self._anim = None
        self._transform = cur
        return cur

    def zoom(self, factor: float, center: tuple[float, float] = (0.0, 0.0)) -> ZoomTransform:
        cur = self._settle()
        k = self._clamp(cur.k * float(factor))
        px, py = cur.invert(center)
        self._transform = ZoomTransform(k=k, x=center[0] - px * k, y=center[1] - py * k)
        return self._transform

    def pan(self, dx: float, dy: float) -> ZoomTransform:
        cur = self._settle()
        self._transform = ZoomTransform(k=cur.k, x=cur.x + float(dx), y=cur.y + float(dy))
        return self._transform

    def reset(self, duration: float | None = None) -> None:
        start = self._settle()
        self._anim = (start, self.clock(), self.reset_duration if duration is None else float(duration))
