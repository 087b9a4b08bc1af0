import json
import unittest

import httpx

from docgraph.chat.llm import (
    ChatMessage,
    LLMError,
    OpenRouterClient,
    analyze_document,
    answer_question,
    parse_analysis_json,
)


def reply(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


class Recorder:
    def __init__(self, status=200, body=None):
        self.status = status
        self.body = body if body is not None else reply("ok")
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status, json=self.body)

    @property
    def last_payload(self):
        return json.loads(self.requests[-1].content)


def client_for(handler, **kw):
    return OpenRouterClient(
        api_key="sk-test",
        model="test/model",
        base_url="https://router.test/",
        transport=httpx.MockTransport(handler),
        **kw,
    )


class TestParseAnalysisJson(unittest.TestCase):
    def test_plain(self):
        self.assertEqual(parse_analysis_json('{"topics": ["a"]}'), {"topics": ["a"]})

    def test_fenced_with_chatter(self):
        text = 'Sure, here it is:\n```json\n{"entities": [{"name": "X"}]}\n```\nHope that helps.'
        self.assertEqual(parse_analysis_json(text), {"entities": [{"name": "X"}]})

    def test_garbage(self):
        with self.assertRaises(LLMError):
            parse_analysis_json("no json here")

    def test_not_an_object(self):
        with self.assertRaises(LLMError):
            parse_analysis_json("[1, 2]")


class TestOpenRouterClient(unittest.TestCase):
    def test_missing_key(self):
        with self.assertRaises(LLMError):
            OpenRouterClient(api_key="", model="m")

    def test_request_shape(self):
        rec = Recorder(body=reply("hello"))
        client = client_for(rec, temperature=0.5)
        out = client.chat([ChatMessage("user", "hi")])
        self.assertEqual(out, "hello")

        req = rec.requests[0]
        self.assertEqual(str(req.url), "https://router.test/api/v1/chat/completions")
        self.assertEqual(req.headers["authorization"], "Bearer sk-test")
        self.assertEqual(
            rec.last_payload,
            {"model": "test/model", "messages": [{"role": "user", "content": "hi"}], "temperature": 0.5},
        )

    def test_temperature_omitted_when_unset(self):
        rec = Recorder()
        client_for(rec).chat([ChatMessage("user", "hi")])
        self.assertNotIn("temperature", rec.last_payload)

    def test_http_error_status(self):
        with self.assertRaises(LLMError) as cm:
            client_for(Recorder(status=401, body={"error": "bad key"})).chat([ChatMessage("user", "hi")])
        self.assertIn("401", str(cm.exception))

    def test_no_choices(self):
        with self.assertRaises(LLMError):
            client_for(Recorder(body={"choices": []})).chat([ChatMessage("user", "hi")])

    def test_transport_failure(self):
        def boom(request):
            raise httpx.ConnectError("refused", request=request)

        with self.assertRaises(LLMError):
            client_for(boom).chat([ChatMessage("user", "hi")])


class TestDocumentCalls(unittest.TestCase):
    def test_analyze_document(self):
        analysis = {"topics": ["Mining"], "entities": [], "relationships": []}
        rec = Recorder(body=reply("Here:\n" + json.dumps(analysis)))
        out = analyze_document(client_for(rec), "Miners secure the chain.")
        self.assertEqual(out, analysis)

        payload = rec.last_payload
        self.assertEqual(payload["temperature"], 0.0)
        self.assertEqual(payload["messages"][0]["role"], "system")
        self.assertIn("Miners secure the chain.", payload["messages"][1]["content"])

    def test_answer_question(self):
        rec = Recorder(body=reply("  Satoshi.  "))
        ans = answer_question(client_for(rec), {"entities": [{"name": "Satoshi"}]}, "Who wrote it?")
        self.assertEqual(ans, "Satoshi.")
        user = rec.last_payload["messages"][1]["content"]
        self.assertIn('"Satoshi"', user)
        self.assertIn("Who wrote it?", user)

    def test_answer_requires_question(self):
        with self.assertRaises(ValueError):
            answer_question(client_for(Recorder()), {}, "   ")


if __name__ == "__main__":
    unittest.main()
