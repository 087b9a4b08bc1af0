import json
import tempfile
import unittest
from pathlib import Path

from typer.testing import CliRunner

from docgraph.cli import app


DOC_A = {
    "topics": ["Mining"],
    "entities": [{"name": "Miner", "type": "Role", "definition": "Block producer", "contexts": [{"sentence": "Miners extend the chain.", "section": "Mining"}]}],
    "relationships": [{"source": "Miner", "target": "Blockchain", "type": "extends"}],
}
DOC_B = {
    "topics": ["Wallets"],
    "entities": [
        {"name": "Wallet", "type": "Tool", "definition": "", "contexts": []},
        {"name": "Miner", "type": "Role", "definition": "Later definition", "contexts": []},
    ],
    "relationships": [{"source": "Wallet", "target": "Miner", "type": "pays"}],
}


class TestCli(unittest.TestCase):
    def setUp(self):
        self.runner = CliRunner()
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        (self.tmp / "a.json").write_text(json.dumps(DOC_A), encoding="utf-8")
        (self.tmp / "b.json").write_text(json.dumps(DOC_B), encoding="utf-8")

    def tearDown(self):
        self._tmp.cleanup()

    def _combined(self) -> Path:
        out = self.tmp / "graph.json"
        result = self.runner.invoke(
            app, ["combine", str(self.tmp / "a.json"), str(self.tmp / "b.json"), "--out", str(out)]
        )
        self.assertEqual(result.exit_code, 0, result.output)
        return out

    def test_combine_to_stdout(self):
        result = self.runner.invoke(app, ["combine", str(self.tmp / "a.json"), str(self.tmp / "b.json")])
        self.assertEqual(result.exit_code, 0, result.output)
        graph = json.loads(result.stdout)
        self.assertEqual(graph["documents"], ["a.json", "b.json"])
        names = [e["name"] for e in graph["entities"]]
        self.assertEqual(names, ["Miner", "Wallet", "Blockchain"])
        self.assertEqual(graph["entities"][0]["files"], [0, 1])

    def test_combine_list_file(self):
        both = self.tmp / "both.json"
        both.write_text(json.dumps([DOC_A, DOC_B]), encoding="utf-8")
        result = self.runner.invoke(app, ["combine", str(both)])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(json.loads(result.stdout)["documents"], ["both.json[0]", "both.json[1]"])

    def test_layout_json_stdout(self):
        graph = self._combined()
        result = self.runner.invoke(app, ["layout", str(graph), "--seed", "3"])
        self.assertEqual(result.exit_code, 0, result.output)
        payload = json.loads(result.stdout)
        self.assertEqual({n["id"] for n in payload["nodes"]}, {"Miner", "Wallet", "Blockchain"})
        self.assertEqual(len(payload["links"]), 2)

    def test_layout_filtered_svg(self):
        graph = self._combined()
        svg = self.tmp / "out" / "g.svg"
        result = self.runner.invoke(app, ["layout", str(graph), "--filter", "unique:1", "--svg", str(svg)])
        self.assertEqual(result.exit_code, 0, result.output)
        text = svg.read_text(encoding="utf-8")
        # Wallet is only in document 1; its link to the shared Miner is dropped.
        self.assertIn(">Wallet</text>", text)
        self.assertNotIn(">Miner</text>", text)
        self.assertNotIn("<line ", text)
        self.assertNotIn(">Blockchain</text>", text)

    def test_bad_filter(self):
        graph = self._combined()
        result = self.runner.invoke(app, ["layout", str(graph), "--filter", "nope"])
        self.assertEqual(result.exit_code, 2)

    def test_invalid_json(self):
        bad = self.tmp / "bad.json"
        bad.write_text("{", encoding="utf-8")
        result = self.runner.invoke(app, ["show", str(bad)])
        self.assertEqual(result.exit_code, 2)

    def test_show(self):
        graph = self._combined()
        result = self.runner.invoke(app, ["show", str(graph), "--filter", "shared"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Miner", result.output)
        self.assertIn("a.json", result.output)

    def test_graph_with_bad_records(self):
        bad = self.tmp / "bad_graph.json"
        bad.write_text(json.dumps({"entities": ["Miner"], "relationships": []}), encoding="utf-8")
        result = self.runner.invoke(app, ["layout", str(bad)])
        self.assertEqual(result.exit_code, 2)
        self.assertNotIsInstance(result.exception, AttributeError)

    def test_entity_details(self):
        graph = self._combined()
        result = self.runner.invoke(app, ["entity", str(graph), "Miner"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Block producer", result.output)
        self.assertIn("a.json", result.output)
        self.assertIn("Wallet -[pays]-> Miner", result.output)

    def test_entity_synthetic_and_unknown(self):
        graph = self._combined()
        result = self.runner.invoke(app, ["entity", str(graph), "Blockchain"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Inferred from a relationship", result.output)
        result = self.runner.invoke(app, ["entity", str(graph), "Nobody"])
        self.assertEqual(result.exit_code, 1)

    def test_analyze_requires_input(self):
        result = self.runner.invoke(app, ["analyze"])
        self.assertEqual(result.exit_code, 2)


if __name__ == "__main__":
    unittest.main()
