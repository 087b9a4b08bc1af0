import unittest

import httpx

from docgraph.ingest.fetch import FetchedSource, fetch_sources
from docgraph.ingest.parse import is_pdf, parse_document, strip_html


class TestParse(unittest.TestCase):
    def test_strip_html(self):
        html = "<html><head><style>p{color:red}</style><script>alert(1)</script></head><body><p>Hello <b>world</b></p></body></html>"
        text = strip_html(html)
        self.assertNotIn("alert", text)
        self.assertNotIn("color", text)
        self.assertEqual(" ".join(text.split()), "Hello world")

    def test_strip_html_decodes_entities(self):
        text = parse_document("text/html", b"<p>Smith &amp; Wesson &lt;3</p>")
        self.assertEqual(text.strip(), "Smith & Wesson <3")

    def test_parse_plain_text(self):
        self.assertEqual(parse_document("text/plain", "Blöcke".encode("utf-8")), "Blöcke")

    def test_parse_html_by_name(self):
        text = parse_document("", b"<p>Hi</p>", name="page.HTML")
        self.assertEqual(text.strip(), "Hi")

    def test_is_pdf(self):
        self.assertTrue(is_pdf("application/pdf; charset=binary"))
        self.assertTrue(is_pdf("application/octet-stream", "paper.PDF"))
        self.assertTrue(is_pdf("", "https://x.test/paper.pdf?download=1"))
        self.assertFalse(is_pdf("text/html", "https://x.test/pdf-guide"))
        self.assertFalse(is_pdf("", None))


def mock_client(routes):
    def handler(request: httpx.Request) -> httpx.Response:
        status, ctype, body = routes[str(request.url)]
        return httpx.Response(status, headers={"content-type": ctype}, content=body)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestFetch(unittest.IsolatedAsyncioTestCase):
    async def test_order_kept_and_failures_none(self):
        routes = {
            "https://a.test/one": (200, "text/html", b"<p>one</p>"),
            "https://a.test/missing": (404, "text/plain", b"nope"),
            "https://a.test/two": (200, "text/html; charset=utf-8", b"<h1>two</h1>"),
        }
        async with mock_client(routes) as client:
            with self.assertLogs("docgraph.ingest.fetch", level="WARNING"):
                out = await fetch_sources(list(routes), client=client)

        self.assertEqual([f.url if f else None for f in out], ["https://a.test/one", None, "https://a.test/two"])
        self.assertEqual(out[0].text().strip(), "one")
        self.assertEqual(out[2].text().strip(), "two")

    def test_remote_non_pdf_is_treated_as_html(self):
        src = FetchedSource(url="https://a.test/x", content_type="text/plain", data=b"<b>bold</b>")
        self.assertEqual(src.text().strip(), "bold")


if __name__ == "__main__":
    unittest.main()
