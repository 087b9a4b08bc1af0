from __future__ import annotations

from html import escape
from typing import Any, Iterable

from ..layout.simulation import Simulation
from .interaction import HoverState, ZoomTransform


CATEGORY10 = [
    "#1f77b4",
    "#ff7f0e",
    "#2ca02c",
    "#d62728",
    "#9467bd",
    "#8c564b",
    "#e377c2",
    "#7f7f7f",
    "#bcbd22",
    "#17becf",
]


def color_scale(types: Iterable[str]) -> dict[str, str]:
    """Assign palette colours to types in order of first appearance."""
    out: dict[str, str] = {}
    for t in types:
        if t not in out:
            out[t] = CATEGORY10[len(out) % len(CATEGORY10)]
    return out


def _f(v: float) -> str:
    return f"{v:.2f}"


def render_svg(
    sim: Simulation,
    *,
    hover: HoverState | None = None,
    transform: ZoomTransform | None = None,
    background: str = "#f8f9fa",
) -> str:
    """Render the simulation's current positions as a standalone SVG document."""
    cfg = sim.config
    w, h = cfg.width, cfg.height
    hover = hover or HoverState()
    colors = color_scale(n.type for n in sim.nodes)

    parts: list[str] = [
        f'<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 {w} {h}" width="100%" height="100%" font-family="sans-serif">',
        f'<rect width="{w}" height="{h}" fill="{background}"/>',
    ]
    g_attr = f' transform="{transform.svg()}"' if transform is not None else ""
    parts.append(f'<g class="graph"{g_attr}>')

    parts.append('<g class="links">')
    for link in sim.links:
        st = hover.link_style(link)
        parts.append(
            f'<line x1="{_f(link.source.x)}" y1="{_f(link.source.y)}" '
            f'x2="{_f(link.target.x)}" y2="{_f(link.target.y)}" '
            f'stroke="{st.stroke}" stroke-width="{st.width}" stroke-opacity="{st.opacity}"/>'
        )
    parts.append("</g>")

    parts.append('<g class="nodes">')
    for n in sim.nodes:
        st = hover.node_style(n)
        big = n.radius > cfg.node_radius
        name = escape(n.id)
        parts.append(
            f'<g class="node" data-id="{name}" transform="translate({_f(n.x)},{_f(n.y)})">'
            f'<circle r="{n.radius}" fill="{colors[n.type]}" stroke="{st.stroke}" stroke-width="{st.width}"/>'
            f'<text dy="4" dx="{n.radius + 5}" font-size="{"12px" if big else "10px"}" '
            f'font-weight="{"bold" if big else "normal"}">{name}</text>'
            f"<title>{name} ({escape(n.type)})</title>"
            "</g>"
        )
    parts.append("</g>")

    parts.append('<g class="link-labels">')
    for link in sim.links:
        st = hover.label_style(link)
        mx = (link.source.x + link.target.x) / 2
        my = (link.source.y + link.target.y) / 2
        parts.append(
            f'<text x="{_f(mx)}" y="{_f(my)}" text-anchor="middle" font-size="{st.size}" '
            f'font-weight="{st.weight}" fill="{st.fill}">{escape(link.type)}</text>'
        )
    parts.append("</g>")
    parts.append("</g>")

    parts.append('<g class="legend" transform="translate(20,20)">')
    for i, (t, c) in enumerate(colors.items()):
        parts.append(
            f'<g transform="translate(0,{i * 20})">'
            f'<rect width="10" height="10" fill="{c}"/>'
            f'<text x="15" y="10" font-size="10px">{escape(t)}</text>'
            "</g>"
        )
    parts.append("</g>")

    parts.append("</svg>")
    return "\n".join(parts)


def layout_payload(sim: Simulation) -> dict[str, Any]:
    """JSON-safe snapshot of node and link positions."""
    colors = color_scale(n.type for n in sim.nodes)
    return {
        "width": sim.config.width,
        "height": sim.config.height,
        "alpha": sim.alpha,
        "ticks": sim.ticks,
        "legend": [{"type": t, "color": c} for t, c in colors.items()],
        "nodes": [
            {"id": n.id, "type": n.type, "radius": n.radius, "x": n.x, "y": n.y, "color": colors[n.type]}
            for n in sim.nodes
        ],
        "links": [
            {
                "source": lk.source.id,
                "target": lk.target.id,
                "type": lk.type,
                "x1": lk.source.x,
                "y1": lk.source.y,
                "x2": lk.target.x,
                "y2": lk.target.y,
            }
            for lk in sim.links
        ],
    }
