from __future__ import annotations

from typing import Mapping, Protocol

from .models import CombinedGraph, Entity


FALLBACK_CATEGORY = "concept"

# Categories for names that commonly show up only as relationship endpoints.
DEFAULT_CATEGORIES: dict[str, str] = {
    "Blockchain": "data structure",
    "Network": "infrastructure",
    "Consensus": "protocol mechanism",
    "Incentive (block reward)": "protocol mechanism",
    "Disk pruning": "technique",
    "Simplified Payment Verification": "technique",
    "Block headers": "data structure",
    "Privacy": "concept",
    "Public keys": "cryptographic primitive",
}


class Classifier(Protocol):
    def classify(self, name: str) -> str: ...


class TableClassifier:
    """Exact-name lookup with a fallback category."""

    def __init__(self, table: Mapping[str, str] | None = None, *, fallback: str = FALLBACK_CATEGORY):
        self.table = dict(DEFAULT_CATEGORIES if table is None else table)
        self.fallback = fallback

    def classify(self, name: str) -> str:
        return self.table.get(name, self.fallback)

    def extended(self, extra: Mapping[str, str]) -> TableClassifier:
        merged = dict(self.table)
        merged.update(extra)
        return TableClassifier(merged, fallback=self.fallback)


def missing_entity_names(graph: CombinedGraph) -> list[str]:
    """Relationship endpoints with no entity, in first-encounter order."""
    known = graph.entity_names()
    out: list[str] = []
    seen: set[str] = set()
    for r in graph.relationships:
        for name in (r.source, r.target):
            if name in known or name in seen:
                continue
            seen.add(name)
            out.append(name)
    return out


def complete_graph(graph: CombinedGraph, classifier: Classifier | None = None) -> CombinedGraph:
    """Return a copy of ``graph`` where every relationship endpoint is an entity.

    Missing endpoints become synthetic entities with no provenance, typed by
    ``classifier``. Running this on its own output adds nothing.
    """
    clf = classifier or TableClassifier()
    out = graph.copy()
    for name in missing_entity_names(graph):
        out.entities.append(Entity(name=name, type=clf.classify(name), synthetic=True))
    return out
