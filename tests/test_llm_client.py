"""Tests for the Ollama HTTP client and the embedder built on it."""
import json

import httpx
import pytest

from ragdesk.exceptions import EmbeddingError
from ragdesk.llm_client import OllamaClient
from ragdesk.rag.embeddings import OllamaEmbedder


def make_client(handler) -> OllamaClient:
    return OllamaClient(base_url="http://ollama.test", transport=httpx.MockTransport(handler))


async def test_complete_posts_single_user_message():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"message": {"role": "assistant", "content": "Factual"}})

    client = make_client(handler)

    text = await client.complete("classify this", model="tiny", temperature=0.0)

    assert text == "Factual"
    assert seen["path"] == "/api/chat"
    assert seen["body"]["model"] == "tiny"
    assert seen["body"]["stream"] is False
    assert seen["body"]["messages"] == [{"role": "user", "content": "classify this"}]
    assert seen["body"]["options"] == {"temperature": 0.0}


async def test_chat_http_error_propagates():
    client = make_client(lambda request: httpx.Response(500, json={"error": "boom"}))

    with pytest.raises(httpx.HTTPStatusError):
        await client.complete("hello")


async def test_embedder_returns_vector():
    def handler(request):
        assert request.url.path == "/api/embeddings"
        assert json.loads(request.content)["prompt"] == "cocoa"
        return httpx.Response(200, json={"embedding": [0.1, 0.2, 0.3]})

    embedder = OllamaEmbedder(client=make_client(handler), embedding_model="embed")

    assert await embedder.embed("cocoa") == [0.1, 0.2, 0.3]


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, json={"embedding": []}),
        httpx.Response(200, json={}),
        httpx.Response(503, text="unavailable"),
    ],
)
async def test_embedder_failures_become_embedding_errors(response):
    embedder = OllamaEmbedder(client=make_client(lambda request: response))

    with pytest.raises(EmbeddingError):
        await embedder.embed("cocoa")


async def test_list_models():
    client = make_client(
        lambda request: httpx.Response(200, json={"models": [{"name": "a"}, {"name": "b"}]})
    )

    assert await client.list_models() == ["a", "b"]
