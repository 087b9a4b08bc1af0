import unittest

from docgraph.graph.filters import All, CategoryMatch, Shared, UniqueTo, apply_filter, build_view, parse_filter
from docgraph.graph.models import CombinedGraph, Context, Entity, IndexSet, Relationship, Topic


def sample():
    return CombinedGraph(
        topics=[Topic("t0", IndexSet([0])), Topic("t01", IndexSet([0, 1]))],
        entities=[
            Entity(
                name="OnlyA",
                type="Person",
                definition="First user",
                contexts=[Context("OnlyA logs in.", "Intro")],
                files=IndexSet([0]),
            ),
            Entity(name="OnlyB", type="Org", files=IndexSet([1])),
            Entity(name="Both", type="Network Security", files=IndexSet([0, 1])),
            Entity(name="AlsoA", type="Person", files=IndexSet([0])),
            Entity(name="Both2", type="Protocol", files=IndexSet([1, 0])),
        ],
        relationships=[
            Relationship("OnlyA", "AlsoA", "knows", IndexSet([0])),
            Relationship("OnlyA", "Both", "uses", IndexSet([0])),
            Relationship("Both", "Both2", "secures", IndexSet([0, 1])),
            Relationship("OnlyB", "Both2", "runs", IndexSet([1])),
        ],
        documents=["a", "b"],
    )


class TestFilters(unittest.TestCase):
    def test_unique_to_document_zero(self):
        g = CombinedGraph(
            entities=[
                Entity(name="a", type="T", files=IndexSet([0])),
                Entity(name="b", type="T", files=IndexSet([1])),
                Entity(name="c", type="T", files=IndexSet([0, 1])),
            ]
        )
        self.assertEqual([e.name for e in apply_filter(g, UniqueTo(0)).entities], ["a"])

    def test_unique_relationships_need_both_endpoints(self):
        view = apply_filter(sample(), UniqueTo(0))
        self.assertEqual([e.name for e in view.entities], ["OnlyA", "AlsoA"])
        self.assertEqual([r.type for r in view.relationships], ["knows"])
        self.assertEqual([t.name for t in view.topics], ["t0"])

    def test_shared(self):
        view = apply_filter(sample(), Shared())
        self.assertEqual([e.name for e in view.entities], ["Both", "Both2"])
        self.assertEqual([r.type for r in view.relationships], ["secures"])

    def test_category_match_is_case_insensitive_on_name_or_type(self):
        view = apply_filter(sample(), CategoryMatch("SECURITY"))
        self.assertEqual([e.name for e in view.entities], ["Both"])
        self.assertEqual([r.type for r in view.relationships], ["uses", "secures"])

    def test_all_is_a_copy(self):
        g = sample()
        view = apply_filter(g, All())
        self.assertEqual(view.to_dict(), g.to_dict())
        view.entities.pop()
        self.assertEqual(len(g.entities), 5)

    def test_filter_does_not_mutate_source(self):
        g = sample()
        before = g.to_dict()
        apply_filter(g, CategoryMatch("person"))
        build_view(g, CategoryMatch("person"))
        self.assertEqual(g.to_dict(), before)

    def test_build_view_resolves_category_endpoints(self):
        view = build_view(sample(), CategoryMatch("security"))
        names = [e.name for e in view.entities]
        self.assertEqual(names, ["Both", "OnlyA", "Both2"])
        # Endpoints pulled back in keep their full record and provenance.
        only_a = view.get_entity("OnlyA")
        self.assertEqual(only_a.type, "Person")
        self.assertEqual(only_a.definition, "First user")
        self.assertEqual([c.sentence for c in only_a.contexts], ["OnlyA logs in."])
        self.assertEqual(only_a.files.to_list(), [0])
        self.assertFalse(only_a.synthetic)

    def test_build_view_synthesises_only_unknown_endpoints(self):
        g = sample()
        g.relationships.append(Relationship("Both", "Blockchain", "anchors", IndexSet([1])))
        view = build_view(g, CategoryMatch("security"))
        chain = view.get_entity("Blockchain")
        self.assertTrue(chain.synthetic)
        self.assertEqual(chain.type, "data structure")
        self.assertEqual(len(chain.files), 0)
        self.assertFalse(view.get_entity("Both2").synthetic)

    def test_parse_filter(self):
        self.assertEqual(parse_filter(None), All())
        self.assertEqual(parse_filter("all"), All())
        self.assertEqual(parse_filter("Shared"), Shared())
        self.assertEqual(parse_filter("unique:1"), UniqueTo(1))
        self.assertEqual(parse_filter("category: Security "), CategoryMatch("Security"))
        for bad in ("unique:x", "unique:-1", "category:", "bogus"):
            with self.assertRaises(ValueError):
                parse_filter(bad)


if __name__ == "__main__":
    unittest.main()
