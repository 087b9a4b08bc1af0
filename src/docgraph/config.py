from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv


load_dotenv()


def _split_names(raw: str) -> tuple[str, ...]:
    return tuple(n.strip() for n in raw.split(",") if n.strip())


@dataclass(frozen=True)
class Settings:
    # OpenRouter (extraction + chat)
    openrouter_api_key: str = os.getenv("OPENROUTER_API_KEY", "")
    openrouter_base_url: str = os.getenv("OPENROUTER_API_BASE_URL", "https://openrouter.ai")
    model: str = os.getenv("DOCGRAPH_MODEL", "openai/o4-mini")
    chat_model: str = os.getenv("DOCGRAPH_CHAT_MODEL", "openai/o4-mini")
    temperature: float = float(os.getenv("DOCGRAPH_TEMPERATURE", "0"))

    # Remote documents
    fetch_timeout: float = float(os.getenv("DOCGRAPH_FETCH_TIMEOUT", "30"))

    # Rendering surface
    canvas_width: int = int(os.getenv("DOCGRAPH_CANVAS_WIDTH", "800"))
    canvas_height: int = int(os.getenv("DOCGRAPH_CANVAS_HEIGHT", "600"))
    anchors: tuple[str, ...] = _split_names(os.getenv("DOCGRAPH_ANCHORS", "Bitcoin,Proof-of-Work,Blockchain"))

    log_level: str = os.getenv("DOCGRAPH_LOG_LEVEL", "WARNING")

    def layout_config(self, **overrides):
        from .layout.simulation import LayoutConfig

        kw = {"width": self.canvas_width, "height": self.canvas_height, "anchors": self.anchors}
        kw.update(overrides)
        return LayoutConfig(**kw)
