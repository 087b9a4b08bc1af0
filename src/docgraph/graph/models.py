from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Mapping

from ..layout.simulation import DataShapeError


class IndexSet:
    """Ordered set of provenance indices.

    Iteration follows first insertion, so ``files`` serialises in ascending
    first-occurrence order rather than whatever a hash set happens to yield.
    """

    __slots__ = ("_order", "_seen")

    def __init__(self, items: Iterable[int] = ()):
        self._order: list[int] = []
        self._seen: set[int] = set()
        for i in items:
            self.add(i)

    def add(self, index: int) -> None:
        index = int(index)
        if index in self._seen:
            return
        self._seen.add(index)
        self._order.append(index)

    def __contains__(self, index: object) -> bool:
        return index in self._seen

    def __iter__(self) -> Iterator[int]:
        return iter(self._order)

    def __len__(self) -> int:
        return len(self._order)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, IndexSet):
            return self._order == other._order
        if isinstance(other, (list, tuple)):
            return self._order == list(other)
        if isinstance(other, (set, frozenset)):
            return self._seen == other
        return NotImplemented

    def __repr__(self) -> str:
        return f"IndexSet({self._order!r})"

    def to_list(self) -> list[int]:
        return list(self._order)

    def copy(self) -> IndexSet:
        return IndexSet(self._order)


@dataclass
class Context:
    sentence: str
    section: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"sentence": self.sentence}
        if self.section is not None:
            d["section"] = self.section
        return d


@dataclass
class Topic:
    name: str
    files: IndexSet = field(default_factory=IndexSet)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "files": self.files.to_list()}


@dataclass
class Entity:
    name: str
    type: str
    definition: str | None = None
    contexts: list[Context] = field(default_factory=list)
    files: IndexSet = field(default_factory=IndexSet)
    # Inferred from a relationship endpoint, never extracted from a document.
    synthetic: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "definition": self.definition,
            "contexts": [c.to_dict() for c in self.contexts],
            "files": self.files.to_list(),
        }


@dataclass
class Relationship:
    source: str
    target: str
    type: str
    files: IndexSet = field(default_factory=IndexSet)

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.source, self.target, self.type)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "target": self.target,
            "type": self.type,
            "files": self.files.to_list(),
        }


@dataclass
class CombinedGraph:
    topics: list[Topic] = field(default_factory=list)
    entities: list[Entity] = field(default_factory=list)
    relationships: list[Relationship] = field(default_factory=list)
    # Source labels (file names / URLs), indexed by provenance index.
    documents: list[str] = field(default_factory=list)

    def entity_names(self) -> set[str]:
        return {e.name for e in self.entities}

    def get_entity(self, name: str) -> Entity | None:
        for e in self.entities:
            if e.name == name:
                return e
        return None

    def document_label(self, index: int) -> str:
        if 0 <= index < len(self.documents):
            return self.documents[index]
        return f"document {index}"

    def entity_details(self, name: str) -> dict[str, Any] | None:
        """One entity with its contexts, source documents and adjacent relationships."""
        e = self.get_entity(name)
        if e is None:
            return None
        out = e.to_dict()
        out["synthetic"] = e.synthetic
        out["documents"] = [self.document_label(i) for i in e.files]
        out["outgoing"] = [r.to_dict() for r in self.relationships if r.source == name]
        out["incoming"] = [r.to_dict() for r in self.relationships if r.target == name]
        return out

    def to_dict(self) -> dict[str, Any]:
        return {
            "documents": list(self.documents),
            "topics": [t.to_dict() for t in self.topics],
            "entities": [e.to_dict() for e in self.entities],
            "relationships": [r.to_dict() for r in self.relationships],
        }

    @classmethod
    def from_dict(cls, data: Any) -> CombinedGraph:
        """Load a graph previously produced by ``to_dict`` (or the web API).

        Raises ``DataShapeError`` when a record does not have that shape. An
        entity with no provenance is the synthetic kind.
        """
        if not isinstance(data, Mapping):
            raise DataShapeError(f"graph must be an object, got {type(data).__name__}")

        topics = [Topic(name=_text(t, "name", "topic"), files=_files(t, "topic")) for t in _records(data, "topics")]
        entities = []
        for e in _records(data, "entities"):
            definition = e.get("definition")
            if definition is not None and not isinstance(definition, str):
                raise DataShapeError(f"entity 'definition' must be a string or null: {e!r}")
            files = _files(e, "entity")
            entities.append(
                Entity(
                    name=_text(e, "name", "entity"),
                    type=_text(e, "type", "entity", default=""),
                    definition=definition,
                    contexts=_contexts(e),
                    files=files,
                    synthetic=not files,
                )
            )
        relationships = [
            Relationship(
                source=_text(r, "source", "relationship"),
                target=_text(r, "target", "relationship"),
                type=_text(r, "type", "relationship", default=""),
                files=_files(r, "relationship"),
            )
            for r in _records(data, "relationships")
        ]

        documents = data.get("documents") or []
        if not isinstance(documents, list):
            raise DataShapeError(f"'documents' must be a list, got {type(documents).__name__}")
        return cls(
            topics=topics,
            entities=entities,
            relationships=relationships,
            documents=[str(d) for d in documents],
        )

    def copy(self) -> CombinedGraph:
        """New records and provenance sets; strings and contexts are shared."""
        return CombinedGraph(
            topics=[Topic(name=t.name, files=t.files.copy()) for t in self.topics],
            entities=[
                Entity(
                    name=e.name,
                    type=e.type,
                    definition=e.definition,
                    contexts=list(e.contexts),
                    files=e.files.copy(),
                    synthetic=e.synthetic,
                )
                for e in self.entities
            ],
            relationships=[
                Relationship(source=r.source, target=r.target, type=r.type, files=r.files.copy())
                for r in self.relationships
            ],
            documents=list(self.documents),
        )


def _records(data: Mapping[str, Any], key: str) -> list[Mapping[str, Any]]:
    raw = data.get(key)
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise DataShapeError(f"'{key}' must be a list, got {type(raw).__name__}")
    for item in raw:
        if not isinstance(item, Mapping):
            raise DataShapeError(f"'{key}' entries must be objects, got {item!r}")
    return raw


def _text(record: Mapping[str, Any], key: str, kind: str, *, default: str | None = None) -> str:
    value = record.get(key)
    if value is None:
        value = default
    if not isinstance(value, str):
        raise DataShapeError(f"{kind} {key!r} must be a string: {record!r}")
    return value


def _files(record: Mapping[str, Any], kind: str) -> IndexSet:
    raw = record.get("files")
    if raw is None:
        return IndexSet()
    if not isinstance(raw, list) or not all(isinstance(i, int) and not isinstance(i, bool) and i >= 0 for i in raw):
        raise DataShapeError(f"{kind} 'files' must be a list of document indices: {record!r}")
    return IndexSet(raw)


def _contexts(record: Mapping[str, Any]) -> list[Context]:
    raw = record.get("contexts")
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise DataShapeError(f"entity 'contexts' must be a list: {record!r}")
    out: list[Context] = []
    for c in raw:
        if not isinstance(c, Mapping) or not isinstance(c.get("sentence"), str):
            raise DataShapeError(f"context needs a string 'sentence': {c!r}")
        section = c.get("section")
        if section is not None and not isinstance(section, str):
            raise DataShapeError(f"context 'section' must be a string: {c!r}")
        out.append(Context(sentence=c["sentence"], section=section))
    return out
