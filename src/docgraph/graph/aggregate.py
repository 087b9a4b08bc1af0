"""Merge independent per-document analyses into one provenance-tagged graph.

Each raw analysis is the ``{topics, entities, relationships}`` object returned
by the extraction model for a single document. Documents are numbered by their
position among the analyses that actually reach the merge; that number is the
provenance index recorded in every ``files`` set.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from .models import CombinedGraph, Context, Entity, Relationship, Topic


log = logging.getLogger(__name__)

REQUIRED_ARRAYS = ("topics", "entities", "relationships")


class MalformedInputError(ValueError):
    pass


def validate_analysis(doc: Any) -> Mapping[str, Any]:
    """Check the document-level shape; entries are checked during the merge."""
    if not isinstance(doc, Mapping):
        raise MalformedInputError(f"analysis must be an object, got {type(doc).__name__}")
    for key in REQUIRED_ARRAYS:
        if key not in doc:
            raise MalformedInputError(f"analysis is missing '{key}'")
        if not isinstance(doc[key], list):
            raise MalformedInputError(f"'{key}' must be a list, got {type(doc[key]).__name__}")
    return doc


def _contexts(raw: Any) -> list[Context]:
    if not isinstance(raw, list):
        return []
    out: list[Context] = []
    for c in raw:
        if not isinstance(c, Mapping) or not isinstance(c.get("sentence"), str):
            continue
        section = c.get("section")
        out.append(Context(sentence=c["sentence"], section=section if isinstance(section, str) else None))
    return out


def _str_fields(entry: Any, names: tuple[str, ...]) -> bool:
    return isinstance(entry, Mapping) and all(isinstance(entry.get(n), str) for n in names)


class Aggregator:
    """Insert-or-fetch maps for one merge run."""

    def __init__(self) -> None:
        self._topics: dict[str, Topic] = {}
        self._entities: dict[str, Entity] = {}
        self._relationships: dict[tuple[str, str, str], Relationship] = {}
        self._labels: list[str] = []

    @property
    def document_count(self) -> int:
        return len(self._labels)

    def add(self, doc: Any, *, label: str | None = None) -> int | None:
        """Merge one analysis. Returns its provenance index, or None if skipped."""
        try:
            validate_analysis(doc)
        except MalformedInputError as e:
            log.warning("Skipping document %s: %s", label or f"#{len(self._labels)}", e)
            return None

        idx = len(self._labels)
        self._labels.append(label if label is not None else f"document {idx}")
        self._merge(idx, doc)
        return idx

    def _merge(self, idx: int, doc: Mapping[str, Any]) -> None:
        for name in doc["topics"]:
            if not isinstance(name, str):
                log.warning("Document %d: skipping non-string topic %r", idx, name)
                continue
            topic = self._topics.get(name)
            if topic is None:
                topic = self._topics[name] = Topic(name=name)
            topic.files.add(idx)

        for e in doc["entities"]:
            if not _str_fields(e, ("name", "type")):
                log.warning("Document %d: skipping entity without name/type: %r", idx, e)
                continue
            ent = self._entities.get(e["name"])
            if ent is None:
                definition = e.get("definition")
                ent = self._entities[e["name"]] = Entity(
                    name=e["name"],
                    type=e["type"],
                    definition=definition if isinstance(definition, str) else None,
                )
            elif ent.type != e["type"]:
                log.debug("Entity %r: keeping type %r, ignoring %r from document %d", ent.name, ent.type, e["type"], idx)
            ent.contexts.extend(_contexts(e.get("contexts")))
            ent.files.add(idx)

        for r in doc["relationships"]:
            if not _str_fields(r, ("source", "target", "type")):
                log.warning("Document %d: skipping relationship without source/target/type: %r", idx, r)
                continue
            key = (r["source"], r["target"], r["type"])
            rel = self._relationships.get(key)
            if rel is None:
                rel = self._relationships[key] = Relationship(source=key[0], target=key[1], type=key[2])
            rel.files.add(idx)

    def result(self) -> CombinedGraph:
        # Dicts keep insertion order, so output order is first occurrence.
        return CombinedGraph(
            topics=list(self._topics.values()),
            entities=list(self._entities.values()),
            relationships=list(self._relationships.values()),
            documents=list(self._labels),
        )


def aggregate(analyses: Iterable[Any], *, labels: Iterable[str] | None = None) -> CombinedGraph:
    """Merge analyses in order; see module docstring for provenance rules."""
    agg = Aggregator()
    label_list = list(labels) if labels is not None else []
    for i, doc in enumerate(analyses):
        agg.add(doc, label=label_list[i] if i < len(label_list) else None)
    return agg.result()


class AnalysisCollector:
    """Ordered holder for raw analyses awaiting aggregation."""

    def __init__(self) -> None:
        self._items: list[tuple[Any, str | None]] = []

    def add(self, analysis: Any, label: str | None = None) -> int:
        self._items.append((analysis, label))
        return len(self._items) - 1

    def extend(self, analyses: Iterable[Any]) -> None:
        for a in analyses:
            self.add(a)

    def __len__(self) -> int:
        return len(self._items)

    def aggregate(self) -> CombinedGraph:
        agg = Aggregator()
        for analysis, label in self._items:
            agg.add(analysis, label=label)
        return agg.result()
