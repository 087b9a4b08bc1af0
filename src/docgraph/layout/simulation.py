from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Callable

import numpy as np

from .forces import Bodies, CenterForce, CollideForce, LinkForce, ManyBodyForce, PositionSpring


log = logging.getLogger(__name__)

_INITIAL_RADIUS = 10.0
_INITIAL_ANGLE = math.pi * (3.0 - math.sqrt(5.0))


class LayoutError(RuntimeError):
    pass


class UnresolvedLinkError(LayoutError):
    pass


class DataShapeError(LayoutError):
    pass


class SimulationDisposedError(LayoutError):
    pass


@dataclass(frozen=True)
class LayoutConfig:
    width: int = 800
    height: int = 600
    link_distance: float = 150.0
    charge_strength: float = -400.0
    # Collision radius is node radius plus this padding.
    collide_padding: float = 20.0
    center_strength: float = 0.1
    node_radius: float = 10.0
    anchor_radius: float = 15.0
    anchors: tuple[str, ...] = ("Bitcoin", "Proof-of-Work", "Blockchain")
    alpha_min: float = 0.001
    alpha_decay: float = 1.0 - 0.001 ** (1.0 / 300.0)
    alpha_target: float = 0.0
    velocity_decay: float = 0.4
    reheat_alpha_target: float = 0.3
    tick_interval: float = 1.0 / 60.0
    seed: int | None = None


@dataclass(eq=False)
class LayoutNode:
    id: str
    type: str
    radius: float
    index: int = 0
    x: float = math.nan
    y: float = math.nan
    vx: float = 0.0
    vy: float = 0.0
    # Non-None pins the node on that axis.
    fx: float | None = None
    fy: float | None = None


@dataclass(eq=False)
class LayoutLink:
    source: LayoutNode
    target: LayoutNode
    type: str
    index: int = 0


@dataclass(frozen=True)
class RenderInput:
    entities: list[tuple[str, str]] = field(default_factory=list)
    relationships: list[tuple[str, str, str]] = field(default_factory=list)


def _field(item: Any, name: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def coerce_render_input(data: Any) -> RenderInput:
    """Accept a CombinedGraph or a ``{entities, relationships}`` mapping."""
    entities = _field(data, "entities")
    relationships = _field(data, "relationships")
    if entities is None or relationships is None:
        raise DataShapeError("render input must provide 'entities' and 'relationships'")
    if isinstance(entities, (str, bytes)) or not isinstance(entities, Iterable):
        raise DataShapeError(f"'entities' is not iterable: {type(entities).__name__}")
    if isinstance(relationships, (str, bytes)) or not isinstance(relationships, Iterable):
        raise DataShapeError(f"'relationships' is not iterable: {type(relationships).__name__}")

    ents: list[tuple[str, str]] = []
    for e in entities:
        name = _field(e, "name")
        if not isinstance(name, str):
            raise DataShapeError(f"entity without a string name: {e!r}")
        ents.append((name, str(_field(e, "type") or "")))

    rels: list[tuple[str, str, str]] = []
    for r in relationships:
        s, t = _field(r, "source"), _field(r, "target")
        if not isinstance(s, str) or not isinstance(t, str):
            raise DataShapeError(f"relationship without string endpoints: {r!r}")
        rels.append((s, t, str(_field(r, "type") or "")))
    return RenderInput(entities=ents, relationships=rels)


def build_nodes(entities: Iterable[tuple[str, str]], config: LayoutConfig) -> list[LayoutNode]:
    anchors = set(config.anchors)
    nodes: list[LayoutNode] = []
    seen: set[str] = set()
    for name, etype in entities:
        if name in seen:
            continue
        seen.add(name)
        radius = config.anchor_radius if name in anchors else config.node_radius
        nodes.append(LayoutNode(id=name, type=etype, radius=radius, index=len(nodes)))
    return nodes


def build_links(relationships: Iterable[tuple[str, str, str]], nodes: list[LayoutNode]) -> list[LayoutLink]:
    by_id = {n.id: n for n in nodes}
    links: list[LayoutLink] = []
    for source, target, rtype in relationships:
        s = by_id.get(source)
        t = by_id.get(target)
        if s is None or t is None:
            missing = source if s is None else target
            raise UnresolvedLinkError(f"link {source!r} -[{rtype}]-> {target!r}: unknown node {missing!r}")
        links.append(LayoutLink(source=s, target=t, type=rtype, index=len(links)))
    return links


class Simulation:
    """One force-directed layout run over an owned node set.

    ``tick`` advances one step. The caller (or ``SimulationRunner``) decides
    when to tick; the simulation itself never schedules anything.
    """

    def __init__(self, nodes: list[LayoutNode], links: list[LayoutLink], config: LayoutConfig | None = None):
        self.config = config or LayoutConfig()
        self.nodes = nodes
        self.links = links
        self.alpha = 1.0
        self.alpha_target = self.config.alpha_target
        self.ticks = 0
        self._disposed = False
        self._wake_listeners: list[Callable[[], None]] = []
        self._by_id = {n.id: n for n in nodes}

        for i, n in enumerate(nodes):
            n.index = i
        for link in links:
            if self._by_id.get(link.source.id) is not link.source or self._by_id.get(link.target.id) is not link.target:
                raise UnresolvedLinkError(f"link {link.source.id!r} -> {link.target.id!r} references a foreign node")

        self._rng = np.random.default_rng(self.config.seed)
        self._place_initial()

        cfg = self.config
        self._radius = np.array([n.radius + cfg.collide_padding for n in nodes], dtype=np.float64)
        self.forces: dict[str, Any] = {
            "link": LinkForce(
                np.array([lk.source.index for lk in links], dtype=np.int64),
                np.array([lk.target.index for lk in links], dtype=np.int64),
                distance=cfg.link_distance,
            ),
            "charge": ManyBodyForce(strength=cfg.charge_strength),
            "center": CenterForce(cfg.width / 2, cfg.height / 2),
            "collide": CollideForce(),
            "x": PositionSpring("x", cfg.width / 2, strength=cfg.center_strength),
            "y": PositionSpring("y", cfg.height / 2, strength=cfg.center_strength),
        }
        bodies = self._gather()
        for force in self.forces.values():
            force.initialize(bodies)

    def _place_initial(self) -> None:
        cx, cy = self.config.width / 2, self.config.height / 2
        for i, n in enumerate(self.nodes):
            if n.fx is not None:
                n.x = n.fx
            if n.fy is not None:
                n.y = n.fy
            if math.isnan(n.x) or math.isnan(n.y):
                # Phyllotaxis spiral: even spread, no two nodes coincide.
                r = _INITIAL_RADIUS * math.sqrt(0.5 + i)
                a = i * _INITIAL_ANGLE
                n.x = cx + r * math.cos(a)
                n.y = cy + r * math.sin(a)

    def _gather(self) -> Bodies:
        return Bodies(
            x=np.array([n.x for n in self.nodes], dtype=np.float64),
            y=np.array([n.y for n in self.nodes], dtype=np.float64),
            vx=np.array([n.vx for n in self.nodes], dtype=np.float64),
            vy=np.array([n.vy for n in self.nodes], dtype=np.float64),
            radius=self._radius,
            rng=self._rng,
        )

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def converged(self) -> bool:
        # A raised target (e.g. during a drag) keeps the layout live.
        return self.alpha < self.config.alpha_min and self.alpha_target < self.config.alpha_min

    def node(self, node_id: str) -> LayoutNode:
        try:
            return self._by_id[node_id]
        except KeyError:
            raise KeyError(f"Unknown node: {node_id!r}") from None

    def tick(self) -> None:
        if self._disposed:
            raise SimulationDisposedError("simulation has been disposed")

        self.alpha += (self.alpha_target - self.alpha) * self.config.alpha_decay
        bodies = self._gather()
        for force in self.forces.values():
            force(bodies, self.alpha)

        keep = 1.0 - self.config.velocity_decay
        for i, n in enumerate(self.nodes):
            if n.fx is None:
                n.vx = float(bodies.vx[i]) * keep
                n.x = float(bodies.x[i]) + n.vx
            else:
                n.x = n.fx
                n.vx = 0.0
            if n.fy is None:
                n.vy = float(bodies.vy[i]) * keep
                n.y = float(bodies.y[i]) + n.vy
            else:
                n.y = n.fy
                n.vy = 0.0

        self.ticks += 1
        if self.converged:
            log.debug("Layout settled after %d ticks (alpha=%.5f)", self.ticks, self.alpha)

    def positions(self) -> dict[str, tuple[float, float]]:
        return {n.id: (n.x, n.y) for n in self.nodes}

    def run(self, max_ticks: int | None = None) -> dict[str, tuple[float, float]]:
        """Tick until settled (or ``max_ticks``) and return positions."""
        if max_ticks is None:
            cfg = self.config
            gap = self.alpha - self.alpha_target
            floor = cfg.alpha_min - self.alpha_target
            if gap <= 0 or floor <= 0:
                max_ticks = 300
            else:
                max_ticks = math.ceil(math.log(floor / gap) / math.log(1.0 - cfg.alpha_decay)) + 1
        for _ in range(max(0, int(max_ticks))):
            if self.converged:
                break
            self.tick()
        return self.positions()

    def add_wake_listener(self, fn: Callable[[], None]) -> None:
        self._wake_listeners.append(fn)

    def _wake(self) -> None:
        for fn in list(self._wake_listeners):
            fn()

    def set_alpha_target(self, target: float) -> None:
        self.alpha_target = float(target)
        self._wake()

    def restart(self) -> None:
        """Ask whoever drives the ticks to resume, without touching alpha."""
        self._wake()

    def reheat(self, alpha: float = 1.0) -> None:
        self.alpha = max(self.alpha, float(alpha))
        self._wake()

    def dispose(self) -> None:
        self._disposed = True
        self._wake_listeners.clear()


def create(nodes: list[LayoutNode], links: list[LayoutLink], config: LayoutConfig | None = None) -> Simulation:
    return Simulation(nodes, links, config)


def step(sim: Simulation) -> dict[str, tuple[float, float]]:
    sim.tick()
    return sim.positions()


def dispose(sim: Simulation) -> None:
    sim.dispose()


def layout_graph(data: Any, config: LayoutConfig | None = None) -> Simulation:
    """Build nodes and links from render input and return a fresh simulation."""
    cfg = config or LayoutConfig()
    view = coerce_render_input(data)
    nodes = build_nodes(view.entities, cfg)
    links = build_links(view.relationships, nodes)
    return create(nodes, links, cfg)
