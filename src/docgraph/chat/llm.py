from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import httpx


class LLMError(RuntimeError):
    pass


@dataclass(frozen=True)
class ChatMessage:
    role: str
    content: str


class OpenRouterClient:
    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        base_url: str = "https://openrouter.ai",
        timeout_s: float = 120.0,
        temperature: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        if not api_key:
            raise LLMError("Missing OPENROUTER_API_KEY in environment")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout_s = float(timeout_s)
        self.temperature = temperature
        self._transport = transport

    def chat(self, messages: list[ChatMessage], *, temperature: float | None = None) -> str:
        url = f"{self.base_url}/api/v1/chat/completions"
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
        }
        temp = temperature if temperature is not None else self.temperature
        if temp is not None:
            payload["temperature"] = float(temp)

        try:
            with httpx.Client(timeout=self.timeout_s, transport=self._transport) as client:
                r = client.post(url, json=payload, headers={"Authorization": f"Bearer {self.api_key}"})
        except httpx.HTTPError as e:
            raise LLMError(f"Failed to reach OpenRouter at {self.base_url} ({e})") from e

        if r.status_code != 200:
            raise LLMError(f"OpenRouter API error {r.status_code}: {r.text}")

        data = r.json()
        choices = data.get("choices") or []
        if not choices:
            raise LLMError(f"No choices in OpenRouter response: {data}")
        content = (choices[0].get("message") or {}).get("content")
        if not isinstance(content, str):
            raise LLMError(f"Unexpected OpenRouter response: {data}")
        return content


EXTRACTION_PROMPT = """Extract the following from the document and respond with valid JSON only (no explanatory text, markdown, or code fences):
{
  "topics": [ ... ],
  "entities": [
    {
      "name": "...",
      "type": "...",
      "definition": "a concise description",
      "contexts": [
        { "sentence": "...", "section": "Section Title" }
      ]
    }
  ],
  "relationships": [ { "source": "...", "target": "...", "type": "..." } ]
}

Document:
\"\"\"
{text}
\"\"\""""


def parse_analysis_json(content: str) -> dict[str, Any]:
    """Pull the JSON object out of a model reply that may carry extra text."""
    raw = (content or "").strip()
    start = raw.find("{")
    end = raw.rfind("}")
    candidate = raw[start : end + 1] if start != -1 and end > start else raw
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise LLMError(f"Failed to parse JSON from AI response: {e}. Response was: {content[:500]}") from e
    if not isinstance(data, dict):
        raise LLMError(f"Expected a JSON object from AI response, got {type(data).__name__}")
    return data


def analyze_document(client: OpenRouterClient, text: str) -> dict[str, Any]:
    msgs = [
        ChatMessage(role="system", content="You are a helpful assistant."),
        ChatMessage(role="user", content="You are an AI assistant. " + EXTRACTION_PROMPT.replace("{text}", text)),
    ]
    return parse_analysis_json(client.chat(msgs, temperature=0))


def answer_question(client: OpenRouterClient, graph: dict[str, Any], question: str) -> str:
    question = question.strip()
    if not question:
        raise ValueError("question is required")
    msgs = [
        ChatMessage(
            role="system",
            content="You are a helpful assistant. Use the following document analysis JSON to answer the user question concisely.",
        ),
        ChatMessage(role="user", content=f"Analysis:\n{json.dumps(graph, ensure_ascii=False)}\n\nQuestion: {question}"),
    ]
    return client.chat(msgs).strip()
