"""Combined knowledge graph: merge per-document analyses, complete, filter.

Every topic, entity and relationship carries the provenance indices of the
documents that contributed it. Relationship endpoints that no document listed
as an entity are synthesised so the graph can always be laid out.
"""

from .aggregate import AnalysisCollector, MalformedInputError, aggregate
from .complete import FALLBACK_CATEGORY, TableClassifier, complete_graph
from .filters import All, CategoryMatch, Shared, UniqueTo, build_view, parse_filter
from .models import CombinedGraph, Context, Entity, IndexSet, Relationship, Topic

__all__ = [
    "All",
    "AnalysisCollector",
    "CategoryMatch",
    "CombinedGraph",
    "Context",
    "Entity",
    "FALLBACK_CATEGORY",
    "IndexSet",
    "MalformedInputError",
    "Relationship",
    "Shared",
    "TableClassifier",
    "Topic",
    "UniqueTo",
    "aggregate",
    "build_view",
    "complete_graph",
    "parse_filter",
]
