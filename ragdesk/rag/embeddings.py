"""Embedding generation on top of the Ollama client."""
from typing import List, Optional

import httpx
import structlog

from ragdesk import config
from ragdesk.exceptions import EmbeddingError
from ragdesk.llm_client import OllamaClient, ollama_client

logger = structlog.get_logger()


class OllamaEmbedder:
    """Maps text to a fixed-dimension vector using an Ollama embedding model."""

    def __init__(
        self,
        client: Optional[OllamaClient] = None,
        embedding_model: str = None,
    ):
        self.client = client or ollama_client
        self.embedding_model = embedding_model or config.EMBEDDING_MODEL

    async def embed(self, text: str) -> List[float]:
        """Embed one piece of text.

        Args:
            text: Text to embed

        Returns:
            Embedding vector

        Raises:
            EmbeddingError: If the request fails or returns an empty vector
        """
        try:
            response = await self.client.embeddings(
                model=self.embedding_model, prompt=text
            )
        except httpx.HTTPError as e:
            raise EmbeddingError(f"Failed to generate embedding: {e}") from e

        embedding = response.get("embedding", [])
        if not embedding:
            logger.error(
                "empty_embedding_returned",
                model=self.embedding_model,
                text_preview=text[:100],
            )
            raise EmbeddingError("Empty embedding returned from Ollama")

        return [float(x) for x in embedding]
