from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

import httpx

from .parse import is_pdf, parse_document


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchedSource:
    url: str
    content_type: str
    data: bytes

    def text(self) -> str:
        if is_pdf(self.content_type, self.url):
            return parse_document("application/pdf", self.data)
        # Remote non-PDF content is treated as HTML.
        return parse_document("text/html", self.data)


async def _fetch_one(client: httpx.AsyncClient, url: str) -> FetchedSource | None:
    try:
        r = await client.get(url, follow_redirects=True)
        r.raise_for_status()
    except httpx.HTTPError as e:
        log.warning("Failed to fetch %s: %s", url, e)
        return None
    return FetchedSource(url=url, content_type=r.headers.get("content-type", ""), data=r.content)


async def fetch_sources(
    urls: list[str],
    *,
    timeout: float = 30.0,
    client: httpx.AsyncClient | None = None,
) -> list[FetchedSource | None]:
    """Fetch all URLs concurrently.

    The result list lines up with ``urls`` regardless of completion order;
    failed fetches are ``None`` so callers can drop them and keep the order of
    the rest.
    """
    if client is not None:
        return list(await asyncio.gather(*(_fetch_one(client, u) for u in urls)))
    async with httpx.AsyncClient(timeout=timeout) as c:
        return list(await asyncio.gather(*(_fetch_one(c, u) for u in urls)))
