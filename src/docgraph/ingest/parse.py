from __future__ import annotations

import io
from dataclasses import dataclass

from bs4 import BeautifulSoup


@dataclass(frozen=True)
class PdfPage:
    page: int  # 1-based
    text: str


def extract_pdf_pages(data: bytes) -> list[PdfPage]:
    # Prefer PyMuPDF for better extraction.
    try:
        import fitz  # type: ignore

        doc = fitz.open(stream=data, filetype="pdf")
        out: list[PdfPage] = []
        for i in range(doc.page_count):
            page = doc.load_page(i)
            text = page.get_text("text") or ""
            out.append(PdfPage(page=i + 1, text=_clean(text)))
        doc.close()
        return out
    except Exception:
        pass

    # Fallback to pypdf
    from pypdf import PdfReader

    reader = PdfReader(io.BytesIO(data))
    out2: list[PdfPage] = []
    for i, page in enumerate(reader.pages):
        text = page.extract_text() or ""
        out2.append(PdfPage(page=i + 1, text=_clean(text)))
    return out2


def strip_html(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    return soup.get_text(separator="\n")


def is_pdf(content_type: str, name: str | None = None) -> bool:
    if "application/pdf" in (content_type or "").lower():
        return True
    return bool(name) and name.lower().split("?", 1)[0].endswith(".pdf")


def parse_document(content_type: str, data: bytes, *, name: str | None = None) -> str:
    """Extract plain text from raw bytes.

    PDFs (by content type or ``.pdf`` name) go through the PDF extractor, HTML
    is stripped of scripts, styles and tags, anything else is read as UTF-8.
    """
    if is_pdf(content_type, name):
        return "\n".join(p.text for p in extract_pdf_pages(data))

    text = data.decode("utf-8", errors="replace")
    ctype = (content_type or "").lower()
    if "html" in ctype or (name or "").lower().endswith((".html", ".htm")):
        return strip_html(text)
    return text


def _clean(text: str) -> str:
    # Keep it conservative; just normalize line endings and strip trailing spaces.
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    lines = [ln.rstrip() for ln in text.split("\n")]
    return "\n".join(lines).strip()
