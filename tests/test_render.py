import json
import unittest

from docgraph.layout.simulation import LayoutConfig, layout_graph
from docgraph.view.interaction import HoverState, ZoomTransform
from docgraph.view.render import CATEGORY10, color_scale, layout_payload, render_svg


def small_graph():
    return {
        "entities": [
            {"name": "Bitcoin", "type": "Technology"},
            {"name": "Alice <admin>", "type": "Person"},
            {"name": "Ledger", "type": "Technology"},
        ],
        "relationships": [
            {"source": "Alice <admin>", "target": "Bitcoin", "type": "uses & likes"},
            {"source": "Bitcoin", "target": "Ledger", "type": "records"},
        ],
    }


class TestColorScale(unittest.TestCase):
    def test_first_appearance_order_and_wrap(self):
        types = [f"t{i}" for i in range(12)] + ["t0"]
        colors = color_scale(types)
        self.assertEqual(list(colors), [f"t{i}" for i in range(12)])
        self.assertEqual(colors["t0"], CATEGORY10[0])
        self.assertEqual(colors["t10"], CATEGORY10[0])
        self.assertEqual(colors["t11"], CATEGORY10[1])


class TestRenderSvg(unittest.TestCase):
    def setUp(self):
        self.sim = layout_graph(small_graph(), LayoutConfig(seed=1))
        self.sim.run()

    def tearDown(self):
        self.sim.dispose()

    def test_document_structure(self):
        svg = render_svg(self.sim)
        self.assertTrue(svg.startswith("<svg"))
        self.assertTrue(svg.endswith("</svg>"))
        self.assertEqual(svg.count('class="node"'), 3)
        self.assertEqual(svg.count("<line "), 2)
        self.assertIn('class="legend"', svg)
        self.assertIn(">Technology</text>", svg)
        self.assertIn(">Person</text>", svg)

    def test_labels_are_escaped(self):
        svg = render_svg(self.sim)
        self.assertIn("Alice &lt;admin&gt;", svg)
        self.assertIn("uses &amp; likes", svg)
        self.assertNotIn("<admin>", svg)

    def test_anchor_drawn_larger(self):
        svg = render_svg(self.sim)
        self.assertIn(f'<circle r="{self.sim.config.anchor_radius}"', svg)
        self.assertIn('font-weight="bold">Bitcoin</text>', svg)

    def test_hover_styles_applied(self):
        hover = HoverState()
        hover.enter("Ledger")
        svg = render_svg(self.sim, hover=hover)
        self.assertEqual(svg.count('stroke="#ff6600" stroke-width="3.0" stroke-opacity="1.0"'), 1)
        self.assertEqual(svg.count('stroke-opacity="0.3"'), 1)

    def test_transform(self):
        svg = render_svg(self.sim, transform=ZoomTransform(k=2, x=10, y=5))
        self.assertIn('transform="translate(10.000,5.000) scale(2.00000)"', svg)


class TestLayoutPayload(unittest.TestCase):
    def test_payload_is_json_safe(self):
        sim = layout_graph(small_graph())
        sim.run()
        payload = json.loads(json.dumps(layout_payload(sim)))
        self.assertEqual([n["id"] for n in payload["nodes"]], ["Bitcoin", "Alice <admin>", "Ledger"])
        self.assertEqual(payload["legend"][0], {"type": "Technology", "color": CATEGORY10[0]})
        link = payload["links"][1]
        self.assertEqual((link["source"], link["target"]), ("Bitcoin", "Ledger"))
        bitcoin = payload["nodes"][0]
        self.assertEqual((link["x1"], link["y1"]), (bitcoin["x"], bitcoin["y"]))
        self.assertEqual(payload["ticks"], sim.ticks)


if __name__ == "__main__":
    unittest.main()
