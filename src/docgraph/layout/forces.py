"""Velocity-perturbing forces for the layout simulation.

All forces work on a shared ``Bodies`` block of numpy arrays. The simulation
gathers node state into it before each tick and writes it back afterwards.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np


@dataclass
class Bodies:
    x: np.ndarray
    y: np.ndarray
    vx: np.ndarray
    vy: np.ndarray
    radius: np.ndarray  # collision radius
    rng: np.random.Generator

    @property
    def n(self) -> int:
        return int(self.x.shape[0])

    def jiggle(self, size: int | None = None):
        # Tiny random offset to separate exactly coincident points.
        if size is None:
            return (float(self.rng.random()) - 0.5) * 1e-6
        return (self.rng.random(size) - 0.5) * 1e-6


class LinkForce:
    """Pull linked pairs toward ``distance``.

    Strength per link is 1/min(degree) and the correction is split by relative
    degree, so hubs move less than leaves.
    """

    def __init__(self, sources: np.ndarray, targets: np.ndarray, *, distance: float = 150.0, iterations: int = 1):
        self.sources = np.asarray(sources, dtype=np.int64)
        self.targets = np.asarray(targets, dtype=np.int64)
        self.distance = float(distance)
        self.iterations = int(iterations)
        self.strength = np.zeros(0)
        self.bias = np.zeros(0)

    def initialize(self, bodies: Bodies) -> None:
        count = np.bincount(np.concatenate([self.sources, self.targets]), minlength=bodies.n).astype(np.float64)
        cs = count[self.sources]
        ct = count[self.targets]
        self.strength = 1.0 / np.maximum(np.minimum(cs, ct), 1.0)
        self.bias = cs / np.maximum(cs + ct, 1.0)

    def __call__(self, bodies: Bodies, alpha: float) -> None:
        x, y, vx, vy = bodies.x, bodies.y, bodies.vx, bodies.vy
        for _ in range(self.iterations):
            # Sequential on purpose: each link sees the velocities the previous one set.
            for i in range(self.sources.shape[0]):
                s = self.sources[i]
                t = self.targets[i]
                dx = (x[t] + vx[t] - x[s] - vx[s]) or bodies.jiggle()
                dy = (y[t] + vy[t] - y[s] - vy[s]) or bodies.jiggle()
                length = math.sqrt(dx * dx + dy * dy)
                k = (length - self.distance) / length * alpha * self.strength[i]
                dx *= k
                dy *= k
                b = self.bias[i]
                vx[t] -= dx * b
                vy[t] -= dy * b
                vx[s] += dx * (1.0 - b)
                vy[s] += dy * (1.0 - b)


class ManyBodyForce:
    """Pairwise charge; negative strength repels. Exact O(n^2), no approximation."""

    def __init__(self, *, strength: float = -400.0, distance_min: float = 1.0, distance_max: float = math.inf):
        self.strength = float(strength)
        self.distance_min2 = float(distance_min) ** 2
        self.distance_max2 = float(distance_max) ** 2

    def initialize(self, bodies: Bodies) -> None:
        pass

    def __call__(self, bodies: Bodies, alpha: float) -> None:
        n = bodies.n
        if n < 2:
            return
        dx = bodies.x[None, :] - bodies.x[:, None]
        dy = bodies.y[None, :] - bodies.y[:, None]
        off = ~np.eye(n, dtype=bool)

        zx = (dx == 0) & off
        if zx.any():
            dx[zx] = bodies.jiggle(int(zx.sum()))
        zy = (dy == 0) & off
        if zy.any():
            dy[zy] = bodies.jiggle(int(zy.sum()))

        l2 = dx * dx + dy * dy
        near = l2 < self.distance_min2
        l2 = np.where(near, np.sqrt(self.distance_min2 * l2), l2)
        active = off & (l2 < self.distance_max2)
        w = np.where(active, self.strength * alpha / np.where(active, l2, 1.0), 0.0)

        bodies.vx += (dx * w).sum(axis=1)
        bodies.vy += (dy * w).sum(axis=1)


class CenterForce:
    """Translate every node so the mean position sits on (cx, cy)."""

    def __init__(self, cx: float, cy: float, *, strength: float = 1.0):
        self.cx = float(cx)
        self.cy = float(cy)
        self.strength = float(strength)

    def initialize(self, bodies: Bodies) -> None:
        pass

    def __call__(self, bodies: Bodies, alpha: float) -> None:
        if bodies.n == 0:
            return
        bodies.x -= (float(bodies.x.mean()) - self.cx) * self.strength
        bodies.y -= (float(bodies.y.mean()) - self.cy) * self.strength


class CollideForce:
    """Push apart nodes whose predicted positions are closer than ri + rj."""

    def __init__(self, *, strength: float = 1.0):
        self.strength = float(strength)

    def initialize(self, bodies: Bodies) -> None:
        pass

    def __call__(self, bodies: Bodies, alpha: float) -> None:
        n = bodies.n
        if n < 2:
            return
        r = bodies.radius
        px = bodies.x + bodies.vx
        py = bodies.y + bodies.vy
        dx = px[:, None] - px[None, :]
        dy = py[:, None] - py[None, :]
        rr = r[:, None] + r[None, :]
        l2 = dx * dx + dy * dy

        overlap = np.triu(l2 < rr * rr, k=1)
        if not overlap.any():
            return
        ii, jj = np.nonzero(overlap)
        ox = dx[ii, jj]
        oy = dy[ii, jj]
        zx = ox == 0
        if zx.any():
            ox[zx] = bodies.jiggle(int(zx.sum()))
        zy = oy == 0
        if zy.any():
            oy[zy] = bodies.jiggle(int(zy.sum()))

        dist = np.sqrt(ox * ox + oy * oy)
        k = (rr[ii, jj] - dist) / dist * self.strength
        ox *= k
        oy *= k

        ri2 = r[ii] ** 2
        rj2 = r[jj] ** 2
        share = rj2 / (ri2 + rj2)
        np.add.at(bodies.vx, ii, ox * share)
        np.add.at(bodies.vy, ii, oy * share)
        np.add.at(bodies.vx, jj, -ox * (1.0 - share))
        np.add.at(bodies.vy, jj, -oy * (1.0 - share))


class PositionSpring:
    """Weak spring toward a fixed coordinate on one axis."""

    def __init__(self, axis: str, target: float, *, strength: float = 0.1):
        if axis not in ("x", "y"):
            raise ValueError(f"axis must be 'x' or 'y', got {axis!r}")
        self.axis = axis
        self.target = float(target)
        self.strength = float(strength)

    def initialize(self, bodies: Bodies) -> None:
        pass

    def __call__(self, bodies: Bodies, alpha: float) -> None:
        if self.axis == "x":
            bodies.vx += (self.target - bodies.x) * self.strength * alpha
        else:
            bodies.vy += (self.target - bodies.y) * self.strength * alpha
