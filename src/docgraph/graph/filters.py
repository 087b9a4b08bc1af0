"""Display filters over a combined graph.

Filters never mutate the graph they are given; they build a new view that is
then completed and laid out.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Union

from .complete import Classifier, complete_graph, missing_entity_names
from .models import CombinedGraph, Entity


@dataclass(frozen=True)
class All:
    pass


@dataclass(frozen=True)
class UniqueTo:
    index: int


@dataclass(frozen=True)
class Shared:
    pass


@dataclass(frozen=True)
class CategoryMatch:
    substring: str


GraphFilter = Union[All, UniqueTo, Shared, CategoryMatch]


def parse_filter(text: str | None) -> GraphFilter:
    """Parse ``all``, ``shared``, ``unique:K`` or ``category:TEXT``."""
    raw = (text or "all").strip()
    kind, _, arg = raw.partition(":")
    kind = kind.strip().lower()
    if kind == "all":
        return All()
    if kind == "shared":
        return Shared()
    if kind == "unique":
        try:
            index = int(arg)
        except ValueError:
            raise ValueError(f"unique filter needs a document index, got {arg!r}") from None
        if index < 0:
            raise ValueError("document index must be >= 0")
        return UniqueTo(index)
    if kind == "category":
        if not arg.strip():
            raise ValueError("category filter needs a search term")
        return CategoryMatch(arg.strip())
    raise ValueError(f"Unknown filter: {raw!r}")


def entity_predicate(f: GraphFilter) -> Callable[[Entity], bool]:
    if isinstance(f, All):
        return lambda e: True
    if isinstance(f, UniqueTo):
        return lambda e: len(e.files) == 1 and f.index in e.files
    if isinstance(f, Shared):
        return lambda e: len(e.files) > 1
    if isinstance(f, CategoryMatch):
        needle = f.substring.lower()
        return lambda e: needle in e.name.lower() or needle in e.type.lower()
    raise TypeError(f"Unsupported filter: {f!r}")


def apply_filter(graph: CombinedGraph, f: GraphFilter) -> CombinedGraph:
    if isinstance(f, All):
        return graph.copy()

    pred = entity_predicate(f)
    src = graph.copy()
    entities = [e for e in src.entities if pred(e)]
    kept = {e.name for e in entities}

    if isinstance(f, CategoryMatch):
        # Either endpoint matching is enough; the other end is re-synthesised.
        relationships = [r for r in src.relationships if r.source in kept or r.target in kept]
        topics = src.topics
    else:
        relationships = [r for r in src.relationships if r.source in kept and r.target in kept]
        if isinstance(f, UniqueTo):
            topics = [t for t in src.topics if len(t.files) == 1 and f.index in t.files]
        else:
            topics = [t for t in src.topics if len(t.files) > 1]

    return CombinedGraph(
        topics=topics,
        entities=entities,
        relationships=relationships,
        documents=src.documents,
    )


def build_view(graph: CombinedGraph, f: GraphFilter | None = None, classifier: Classifier | None = None) -> CombinedGraph:
    """Filter then complete, giving a render input whose links all resolve.

    An endpoint the filter dropped comes back as its full-graph record, with
    provenance intact. Only names the full graph never had are synthesised.
    """
    view = apply_filter(graph, f or All())
    dropped = {e.name: e for e in graph.copy().entities}
    for name in missing_entity_names(view):
        e = dropped.get(name)
        if e is not None:
            view.entities.append(e)
    return complete_graph(view, classifier)
