"""Force-directed layout of a completed entity/relationship graph."""

from .simulation import (
    DataShapeError,
    LayoutConfig,
    LayoutError,
    LayoutLink,
    LayoutNode,
    Simulation,
    SimulationDisposedError,
    UnresolvedLinkError,
    create,
    dispose,
    layout_graph,
    step,
)

__all__ = [
    "DataShapeError",
    "LayoutConfig",
    "LayoutError",
    "LayoutLink",
    "LayoutNode",
    "Simulation",
    "SimulationDisposedError",
    "UnresolvedLinkError",
    "create",
    "dispose",
    "layout_graph",
    "step",
]
