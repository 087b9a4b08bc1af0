from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

from .chat.llm import OpenRouterClient, analyze_document
from .graph.aggregate import AnalysisCollector, aggregate
from .graph.complete import Classifier, complete_graph
from .graph.models import CombinedGraph
from .ingest.fetch import fetch_sources
from .ingest.parse import parse_document


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Source:
    label: str
    text: str


def source_from_bytes(label: str, content_type: str | None, data: bytes) -> Source:
    ctype = content_type or mimetypes.guess_type(label)[0] or "text/plain"
    return Source(label=label, text=parse_document(ctype, data, name=label))


def load_files(paths: Iterable[Path]) -> list[Source]:
    return [source_from_bytes(p.name, None, p.read_bytes()) for p in paths]


async def load_urls(urls: list[str], *, timeout: float = 30.0) -> list[Source]:
    fetched = await fetch_sources(urls, timeout=timeout)
    out: list[Source] = []
    for f in fetched:
        # Failed fetches are dropped; survivors keep request order.
        if f is None:
            continue
        out.append(Source(label=f.url, text=f.text()))
    return out


def combine_analyses(
    analyses: Iterable[Any],
    *,
    labels: Iterable[str] | None = None,
    classifier: Classifier | None = None,
) -> CombinedGraph:
    return complete_graph(aggregate(analyses, labels=labels), classifier)


def analyze_sources(
    sources: list[Source],
    *,
    client: OpenRouterClient,
    classifier: Classifier | None = None,
) -> CombinedGraph:
    """Extract each source with the model, then merge and complete.

    Model and transport errors propagate; nothing is merged if one fails.
    """
    collector = AnalysisCollector()
    for src in sources:
        log.info("Analyzing %s (%d chars)", src.label, len(src.text))
        collector.add(analyze_document(client, src.text), label=src.label)
    return complete_graph(collector.aggregate(), classifier)
