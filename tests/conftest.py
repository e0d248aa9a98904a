"""Pytest configuration and fixtures.

Collaborators (chat model, embedding model) are replaced with in-memory
stubs so no Ollama server is needed.
"""
from typing import Callable, Dict, List, Optional, Union

import pytest

from ragdesk.exceptions import EmbeddingError
from ragdesk.rag.models import IndexedRecord
from ragdesk.rag.vector_index import VectorIndex

DIM = 4


class StubLLM:
    """Chat collaborator returning canned responses in order (or via a function)."""

    def __init__(self, responses: Union[List[str], Callable[[str], str], str] = ""):
        self.responses = responses
        self.prompts: List[str] = []

    async def complete(self, prompt: str, model: str = None, temperature: float = None) -> str:
        self.prompts.append(prompt)
        if callable(self.responses):
            return self.responses(prompt)
        if isinstance(self.responses, str):
            return self.responses
        return self.responses.pop(0)


class StubEmbedder:
    """Embedding collaborator with fixed vectors for known texts.

    Unknown texts get a vector derived from their length, so every text
    embeds deterministically. Texts listed in ``fail_on`` raise EmbeddingError.
    """

    def __init__(
        self,
        vectors: Optional[Dict[str, List[float]]] = None,
        dim: int = DIM,
        fail_on: Optional[set] = None,
    ):
        self.vectors = vectors or {}
        self.dim = dim
        self.fail_on = fail_on or set()
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if text in self.fail_on:
            raise EmbeddingError(f"stub failure for {text[:20]!r}")
        if text in self.vectors:
            return list(self.vectors[text])
        seed = len(text) % 7 + 1
        return [float(seed)] + [float((seed * (i + 2)) % 5) for i in range(self.dim - 1)]


def make_record(record_id: str, embedding, content: str = None, source_file: str = "doc.pdf"):
    return IndexedRecord(
        id=record_id,
        content=content or f"content of {record_id}",
        source_file=source_file,
        embedding=tuple(embedding),
    )


@pytest.fixture
def embedder() -> StubEmbedder:
    return StubEmbedder()


@pytest.fixture
async def index() -> VectorIndex:
    """Initialized empty index of dimension DIM."""
    vector_index = VectorIndex()
    await vector_index.ensure_initialized(dimension=DIM)
    return vector_index
