from __future__ import annotations

import asyncio
import json
from pathlib import Path

import httpx
import typer
from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .chat.llm import LLMError, OpenRouterClient, answer_question
from .config import Settings
from .graph.filters import build_view, parse_filter
from .graph.models import CombinedGraph
from .layout.simulation import DataShapeError, LayoutError, layout_graph
from .logging_setup import setup_logging
from .pipeline import analyze_sources, combine_analyses, load_files, load_urls
from .view.render import layout_payload, render_svg


app = typer.Typer(add_completion=False, help="Combine document analyses into one knowledge graph and lay it out.")
console = Console()


@app.callback()
def main(
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level (default from DOCGRAPH_LOG_LEVEL)"),
):
    setup_logging(log_level or Settings().log_level)


def _load_json(path: Path):
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise typer.BadParameter(f"{path} is not valid JSON: {e}")


def _load_graph(path: Path) -> CombinedGraph:
    data = _load_json(path)
    if not isinstance(data, dict):
        raise typer.BadParameter(f"{path} does not contain a graph object")
    try:
        return CombinedGraph.from_dict(data)
    except DataShapeError as e:
        raise typer.BadParameter(f"{path} is not a combined graph: {e}")


def _write_json(data, out: Path | None) -> None:
    text = json.dumps(data, ensure_ascii=False, indent=2)
    if out is None:
        typer.echo(text)
        return
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(text + "\n", encoding="utf-8")
    console.print(f"Wrote {out}")


def _filter_option(text: str):
    try:
        return parse_filter(text)
    except ValueError as e:
        raise typer.BadParameter(str(e))


def _client(settings: Settings, model: str | None) -> OpenRouterClient:
    try:
        return OpenRouterClient(
            api_key=settings.openrouter_api_key,
            base_url=settings.openrouter_base_url,
            model=model or settings.model,
            temperature=settings.temperature,
        )
    except LLMError as e:
        console.print(str(e), style="red")
        raise typer.Exit(code=2)


@app.command()
def combine(
    analyses: list[Path] = typer.Argument(..., exists=True, dir_okay=False, help="Raw per-document analysis JSON files"),
    out: Path | None = typer.Option(None, "--out", help="Write the combined graph here instead of stdout"),
):
    """Merge raw analysis files (in the given order) into one completed graph."""
    docs = []
    labels = []
    for p in analyses:
        data = _load_json(p)
        # A file may hold one analysis or a list of them.
        items = data if isinstance(data, list) else [data]
        for i, item in enumerate(items):
            docs.append(item)
            labels.append(p.name if len(items) == 1 else f"{p.name}[{i}]")

    graph = combine_analyses(docs, labels=labels)
    _write_json(graph.to_dict(), out)


@app.command()
def analyze(
    file: list[Path] = typer.Option([], "--file", exists=True, dir_okay=False, help="PDF or text file (repeatable)"),
    url: list[str] = typer.Option([], "--url", help="PDF or HTML URL (repeatable)"),
    model: str | None = typer.Option(None, "--model", help="OpenRouter model id"),
    out: Path | None = typer.Option(None, "--out", help="Write the combined graph here instead of stdout"),
):
    """Extract each document with the model and combine the results."""
    if not file and not url:
        raise typer.BadParameter("Provide at least one --file or --url")

    settings = Settings()
    client = _client(settings, model)

    sources = load_files(file)
    if url:
        sources.extend(asyncio.run(load_urls(list(url), timeout=settings.fetch_timeout)))
    if not sources:
        console.print("No documents could be loaded.", style="red")
        raise typer.Exit(code=2)

    try:
        graph = analyze_sources(sources, client=client)
    except LLMError as e:
        console.print(str(e), style="red")
        raise typer.Exit(code=2)

    _write_json(graph.to_dict(), out)


@app.command()
def layout(
    graph_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Combined graph JSON"),
    filter: str = typer.Option("all", "--filter", help="all | shared | unique:K | category:TEXT"),
    svg: Path | None = typer.Option(None, "--svg", help="Write an SVG rendering"),
    json_out: Path | None = typer.Option(None, "--json", help="Write node/link positions as JSON"),
    max_ticks: int | None = typer.Option(None, "--max-ticks", help="Stop before convergence"),
    seed: int | None = typer.Option(None, "--seed", help="Random seed for tie-breaking jiggle"),
):
    """Run the force layout to convergence and export it."""
    settings = Settings()
    to_stdout = svg is None and json_out is None
    view = build_view(_load_graph(graph_path), _filter_option(filter))

    try:
        sim = layout_graph(view, settings.layout_config(seed=seed))
    except LayoutError as e:
        console.print(f"Layout failed: {e}", style="red")
        raise typer.Exit(code=2)

    try:
        sim.run(max_ticks)
        if svg is not None:
            svg.parent.mkdir(parents=True, exist_ok=True)
            svg.write_text(render_svg(sim), encoding="utf-8")
            console.print(f"Wrote {svg}")
        if json_out is not None or to_stdout:
            _write_json(layout_payload(sim), json_out)
    finally:
        sim.dispose()

    if not to_stdout:
        console.print(f"nodes={len(sim.nodes)} links={len(sim.links)} ticks={sim.ticks} alpha={sim.alpha:.4f}")


@app.command()
def show(
    graph_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Combined graph JSON"),
    filter: str = typer.Option("all", "--filter", help="all | shared | unique:K | category:TEXT"),
):
    """Print entities and relationships with their provenance."""
    graph = _load_graph(graph_path)
    view = build_view(graph, _filter_option(filter))

    if graph.documents:
        docs = Table(title="Documents")
        docs.add_column("#", justify="right", width=4)
        docs.add_column("source")
        for i, label in enumerate(graph.documents):
            docs.add_row(str(i), Text(label))
        console.print(docs)

    ents = Table(title=f"Entities ({len(view.entities)})")
    ents.add_column("name")
    ents.add_column("type")
    ents.add_column("files")
    ents.add_column("contexts", justify="right")
    for e in view.entities:
        files = ",".join(str(i) for i in e.files) if e.files else ("(synthetic)" if e.synthetic else "-")
        ents.add_row(Text(e.name), Text(e.type), Text(files), Text(str(len(e.contexts))))
    console.print(ents)

    rels = Table(title=f"Relationships ({len(view.relationships)})")
    rels.add_column("source")
    rels.add_column("type")
    rels.add_column("target")
    rels.add_column("files")
    for r in view.relationships:
        rels.add_row(Text(r.source), Text(r.type), Text(r.target), Text(",".join(str(i) for i in r.files)))
    console.print(rels)


@app.command()
def entity(
    graph_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Combined graph JSON"),
    name: str = typer.Argument(..., help="Entity name (exact)"),
):
    """Show one entity: definition, contexts, source documents and relationships."""
    details = _load_graph(graph_path).entity_details(name)
    if details is None:
        console.print(f"Unknown entity: {name}", style="red")
        raise typer.Exit(code=1)

    body: list = [Text(details["definition"] or "(no definition)")]
    if details["synthetic"]:
        body.append(Text("Inferred from a relationship endpoint; no document lists it.", style="yellow"))
    else:
        body.append(Text("Documents: " + ", ".join(details["documents"]), style="dim"))
    if details["contexts"]:
        body.append(Text("\nContexts:", style="bold"))
        for c in details["contexts"]:
            line = Text("- " + c["sentence"])
            if c.get("section"):
                line.append(f" [{c['section']}]", style="cyan")
            body.append(line)
    rels = [f"{r['source']} -[{r['type']}]-> {r['target']}" for r in details["outgoing"] + details["incoming"]]
    if rels:
        body.append(Text("\nRelationships:", style="bold"))
        body.extend(Text("- " + r) for r in rels)

    console.print(Panel(Group(*body), title=Text(f"{details['name']} ({details['type']})")))


@app.command()
def ask(
    graph_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Combined graph JSON"),
    question: str = typer.Argument(...),
    model: str | None = typer.Option(None, "--model", help="OpenRouter model id"),
):
    """Ask a question about a combined graph."""
    settings = Settings()
    client = _client(settings, model or settings.chat_model)
    try:
        ans = answer_question(client, _load_graph(graph_path).to_dict(), question)
    except LLMError as e:
        console.print(str(e), style="red")
        raise typer.Exit(code=2)
    console.print(ans, markup=False)


@app.command()
def doctor():
    """Check configuration and OpenRouter reachability."""
    settings = Settings()
    ok = True

    console.print("OpenRouter:")
    if not settings.openrouter_api_key:
        console.print("- OPENROUTER_API_KEY is not set.", style="red")
        console.print("  Fix: export OPENROUTER_API_KEY=... (or add it to .env)", style="yellow")
        ok = False
    else:
        console.print("- API key configured.", style="green")

    url = settings.openrouter_base_url.rstrip("/")
    try:
        r = httpx.get(f"{url}/api/v1/models", timeout=5.0)
        r.raise_for_status()
        models = [m.get("id") for m in (r.json().get("data") or []) if isinstance(m, dict)]
        console.print(f"- Reachable at {url} ({len(models)} model(s) listed).", style="green")
        if models and settings.model not in models:
            console.print(f"- Unknown model: {settings.model}", style="yellow")
            ok = False
    except httpx.HTTPError as e:
        console.print(f"- Not reachable at {url}: {e}", style="red")
        ok = False

    console.print(f"\nCanvas: {settings.canvas_width}x{settings.canvas_height}, anchors: {', '.join(settings.anchors) or '(none)'}")

    if not ok:
        raise typer.Exit(code=1)


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on code changes (dev only)"),
):
    """Run the web UI (FastAPI)."""
    try:
        import uvicorn
    except ImportError:
        console.print("Missing web dependencies. Install: `pip install -e '.[web]'`", style="red")
        raise typer.Exit(code=2)

    if reload:
        uvicorn.run("docgraph.web.server:create_app", factory=True, host=host, port=int(port), reload=True)
    else:
        from .web.server import create_app

        uvicorn.run(create_app(), host=host, port=int(port))


if __name__ == "__main__":
    app()
