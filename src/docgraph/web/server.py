import asyncio
import logging
from pathlib import Path
from typing import Any


log = logging.getLogger(__name__)


def _max_ticks(raw: Any) -> int | None:
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, int) or raw < 0:
        raise ValueError("max_ticks must be a non-negative integer")
    return raw


def create_app():
    # Lazy import so core CLI works without web deps.
    from fastapi import FastAPI, File, Form, Request, UploadFile, WebSocket, WebSocketDisconnect
    from fastapi.concurrency import run_in_threadpool
    from fastapi.responses import HTMLResponse, JSONResponse
    from fastapi.templating import Jinja2Templates

    from ..chat.llm import LLMError, OpenRouterClient, answer_question
    from ..config import Settings
    from ..graph.filters import build_view, parse_filter
    from ..graph.models import CombinedGraph
    from ..layout.simulation import DataShapeError, LayoutError, layout_graph
    from ..pipeline import analyze_sources, combine_analyses, load_urls, source_from_bytes
    from ..view.render import layout_payload, render_svg
    from ..view.session import LayoutSession

    settings = Settings()

    base = Path(__file__).resolve().parent
    templates = Jinja2Templates(directory=str(base / "templates"))

    app = FastAPI(title="docgraph", version="0.2.0")

    def _client(model: str | None) -> OpenRouterClient:
        return OpenRouterClient(
            api_key=settings.openrouter_api_key,
            base_url=settings.openrouter_base_url,
            model=model or settings.model,
            temperature=settings.temperature,
        )

    def _error(message: str, status: int) -> JSONResponse:
        return JSONResponse({"ok": False, "error": message}, status_code=status)

    @app.get("/", response_class=HTMLResponse)
    def home(request: Request):
        return templates.TemplateResponse(
            request,
            "index.html",
            {
                "model": settings.model,
                "width": settings.canvas_width,
                "height": settings.canvas_height,
            },
        )

    @app.post("/api/analyze")
    async def analyze(
        model: str = Form(""),
        urls: list[str] = Form(default=[]),
        files: list[UploadFile] = File(default=[]),
    ):
        if not files and not any(u.strip() for u in urls):
            return _error("No files uploaded", 400)

        sources = []
        for f in files:
            data = await f.read()
            name = Path(f.filename or "upload.bin").name
            # PDF parsing and the model calls block; keep them off the event loop.
            sources.append(await run_in_threadpool(source_from_bytes, name, f.content_type, data))
        wanted = [u.strip() for u in urls if u.strip()]
        if wanted:
            sources.extend(await load_urls(wanted, timeout=settings.fetch_timeout))
        if not sources:
            return _error("No documents could be loaded", 400)

        try:
            client = _client(model.strip() or None)
            graph = await run_in_threadpool(analyze_sources, sources, client=client)
        except LLMError as e:
            return _error(str(e), 502)
        return {"ok": True, "graph": graph.to_dict()}

    @app.post("/api/combine")
    def combine(payload: dict[str, Any]):
        analyses = payload.get("analyses")
        if not isinstance(analyses, list):
            return _error("analyses must be a list", 400)
        labels = payload.get("labels")
        graph = combine_analyses(analyses, labels=labels if isinstance(labels, list) else None)
        return {"ok": True, "graph": graph.to_dict()}

    @app.post("/api/layout")
    def layout(payload: dict[str, Any]):
        try:
            f = parse_filter(payload.get("filter"))
        except ValueError as e:
            return _error(str(e), 400)

        try:
            max_ticks = _max_ticks(payload.get("max_ticks"))
            view = build_view(CombinedGraph.from_dict(payload.get("graph")), f)
            sim = layout_graph(view, settings.layout_config())
        except (DataShapeError, ValueError) as e:
            return _error(str(e), 422)
        except LayoutError as e:
            return _error(str(e), 500)

        try:
            sim.run(max_ticks)
            return {"ok": True, "layout": layout_payload(sim), "svg": render_svg(sim)}
        finally:
            sim.dispose()

    @app.post("/api/entity")
    def entity(payload: dict[str, Any]):
        name = payload.get("name")
        if not isinstance(name, str) or not name:
            return _error("Missing entity name", 400)
        try:
            graph = CombinedGraph.from_dict(payload.get("graph"))
        except DataShapeError as e:
            return _error(str(e), 422)
        details = graph.entity_details(name)
        if details is None:
            return _error(f"Unknown entity: {name}", 404)
        return {"ok": True, "entity": details}

    @app.post("/api/chat")
    def chat(payload: dict[str, Any]):
        question = str(payload.get("question") or "").strip()
        analysis = payload.get("analysis")
        if not question or not isinstance(analysis, dict):
            return _error("Missing question or analysis", 400)
        try:
            ans = answer_question(_client(settings.chat_model), analysis, question)
        except LLMError as e:
            return _error(str(e), 502)
        return {"ok": True, "answer": ans}

    @app.websocket("/ws/layout")
    async def live_layout(ws: WebSocket):
        """Stream frames of a running layout and apply pointer events.

        The first message is ``{graph, filter}``; every later message is an
        event for ``LayoutSession.handle``.
        """
        await ws.accept()
        init = await ws.receive_json()
        try:
            f = parse_filter(init.get("filter") if isinstance(init, dict) else None)
            graph = CombinedGraph.from_dict(init.get("graph") if isinstance(init, dict) else None)
            sim = layout_graph(build_view(graph, f), settings.layout_config())
        except (LayoutError, ValueError) as e:
            await ws.send_json({"ok": False, "error": str(e)})
            await ws.close(code=1003)
            return

        session = LayoutSession(sim)
        await session.start()

        async def pump():
            while True:
                await ws.send_json({"ok": True, "frame": await session.next_frame()})

        sender = asyncio.create_task(pump())
        try:
            while True:
                event = await ws.receive_json()
                try:
                    session.handle(event if isinstance(event, dict) else {})
                except (KeyError, ValueError) as e:
                    await ws.send_json({"ok": False, "error": str(e)})
        except WebSocketDisconnect:
            log.debug("Layout viewer disconnected")
        finally:
            sender.cancel()
            for res in await asyncio.gather(sender, return_exceptions=True):
                if isinstance(res, Exception):
                    log.debug("Frame sender stopped: %s", res)
            await session.stop()

    return app
