"""Text chunking strategies for the ingestion pipeline.

Two strategies are available:
- Fixed-window: deterministic character windows with overlap, no I/O.
- Semantic-boundary: an LLM groups whole paragraphs into topical chunks.
"""
from typing import List, Optional
from dataclasses import dataclass
import structlog

from ragdesk import config
from ragdesk.exceptions import ConfigurationError, NoChunksProducedError
from ragdesk.llm_client import OllamaClient, ollama_client
from ragdesk.rag.models import Chunk

logger = structlog.get_logger()

CHUNK_DELIMITER = "---CHUNK---"

SEMANTIC_CHUNKING_PROMPT = """You are an expert at creating semantic chunks for RAG systems.
Your task is to split the following text into coherent chunks that keep related paragraphs and ideas together.

RULES:
1. Keep complete paragraphs together - never break mid-paragraph
2. Group related paragraphs that discuss the same topic or concept
3. Each chunk should be between {min_size} and {max_size} characters
4. Prefer natural topic boundaries where the subject changes
5. Each chunk should make sense on its own

Return the text split into chunks, separated by `{delimiter}` markers.

RESULT:
- Return the chunked text with `{delimiter}` separators
- No additional commentary or explanation

TEXT TO ANALYZE:
{text}
"""


@dataclass
class TextChunk:
    """Represents a chunk of text with position information."""

    content: str
    char_start: int
    char_end: int
    chunk_index: int


class TextChunker:
    """Character-based fixed-window chunker with overlap support."""

    strategy = "fixed"

    def __init__(
        self,
        chunk_size: int = None,
        chunk_overlap: int = None,
    ):
        """Initialize the text chunker.

        Args:
            chunk_size: Size of each window in characters (default from config)
            chunk_overlap: Characters shared by consecutive windows (default from config)

        Raises:
            ConfigurationError: If the step size would not be strictly positive
        """
        self.chunk_size = config.CHUNK_SIZE if chunk_size is None else chunk_size
        self.chunk_overlap = (
            config.CHUNK_OVERLAP if chunk_overlap is None else chunk_overlap
        )

        if self.chunk_size <= 0:
            raise ConfigurationError(
                f"Chunk size must be positive, got {self.chunk_size}"
            )
        if self.chunk_overlap < 0:
            raise ConfigurationError(
                f"Overlap must not be negative, got {self.chunk_overlap}"
            )
        if self.chunk_overlap >= self.chunk_size:
            raise ConfigurationError(
                f"Overlap ({self.chunk_overlap}) must be less than "
                f"chunk size ({self.chunk_size})"
            )

        logger.info(
            "chunker_initialized",
            strategy=self.strategy,
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
        )

    @property
    def step(self) -> int:
        return self.chunk_size - self.chunk_overlap

    def chunk_text(self, text: str) -> List[TextChunk]:
        """Split text into overlapping fixed-size windows.

        Windows that are blank after trimming are dropped, but stepping is
        unaffected by them.

        Args:
            text: Text to chunk

        Returns:
            List of TextChunk objects with trimmed content
        """
        if not text or not text.strip():
            return []

        text_length = len(text)
        chunks = []
        start = 0

        while True:
            end = min(start + self.chunk_size, text_length)
            content = text[start:end].strip()

            if content:
                chunks.append(
                    TextChunk(
                        content=content,
                        char_start=start,
                        char_end=end,
                        chunk_index=len(chunks),
                    )
                )

            if end >= text_length:
                break
            start += self.step

        logger.debug(
            "text_chunked",
            text_length=text_length,
            chunk_count=len(chunks),
            avg_chunk_size=sum(len(c.content) for c in chunks) // len(chunks),
        )

        return chunks

    def chunk_document(self, source_file: str, text: str) -> List[Chunk]:
        """Chunk a document and assign ids derived from its name.

        Args:
            source_file: Name of the source document
            text: Extracted document text

        Returns:
            List of Chunk objects in document order
        """
        return [
            Chunk(
                id=f"{source_file}_chunk_{c.chunk_index}",
                content=c.content,
                source_file=source_file,
                sequence_index=c.chunk_index,
                char_start=c.char_start,
                char_end=c.char_end,
            )
            for c in self.chunk_text(text)
        ]

    def get_chunk_stats(self, chunks: List[TextChunk]) -> dict:
        """Get statistics about a set of chunks.

        Args:
            chunks: List of TextChunk objects

        Returns:
            Dictionary with chunk statistics
        """
        if not chunks:
            return {
                "chunk_count": 0,
                "total_chars": 0,
                "avg_chunk_size": 0,
                "min_chunk_size": 0,
                "max_chunk_size": 0,
                "overlap": self.chunk_overlap,
            }

        chunk_sizes = [len(c.content) for c in chunks]

        return {
            "chunk_count": len(chunks),
            "total_chars": sum(chunk_sizes),
            "avg_chunk_size": sum(chunk_sizes) // len(chunks),
            "min_chunk_size": min(chunk_sizes),
            "max_chunk_size": max(chunk_sizes),
            "overlap": self.chunk_overlap,
        }


class SemanticChunker:
    """LLM-driven chunker that splits only at paragraph/topic boundaries.

    The collaborator is non-deterministic, so two calls on the same text may
    return different boundaries.
    """

    strategy = "semantic"

    def __init__(
        self,
        llm: Optional[OllamaClient] = None,
        min_chunk_size: int = None,
        max_chunk_size: int = None,
        model: str = None,
    ):
        self.llm = llm or ollama_client
        self.model = model
        self.min_chunk_size = (
            config.SEMANTIC_MIN_CHUNK_SIZE if min_chunk_size is None else min_chunk_size
        )
        self.max_chunk_size = (
            config.SEMANTIC_MAX_CHUNK_SIZE if max_chunk_size is None else max_chunk_size
        )

        if self.min_chunk_size <= 0 or self.min_chunk_size > self.max_chunk_size:
            raise ConfigurationError(
                f"Semantic chunk size band is invalid: "
                f"[{self.min_chunk_size}, {self.max_chunk_size}]"
            )

        logger.info(
            "chunker_initialized",
            strategy=self.strategy,
            min_chunk_size=self.min_chunk_size,
            max_chunk_size=self.max_chunk_size,
        )

    def build_prompt(self, text: str) -> str:
        return SEMANTIC_CHUNKING_PROMPT.format(
            min_size=self.min_chunk_size,
            max_size=self.max_chunk_size,
            delimiter=CHUNK_DELIMITER,
            text=text,
        )

    @staticmethod
    def parse_response(response: str) -> List[str]:
        """Split a delimited response into trimmed, non-empty segments."""
        segments = (response or "").split(CHUNK_DELIMITER)
        return [s.strip() for s in segments if s.strip()]

    async def chunk_text(self, text: str, source_file: str = None) -> List[str]:
        """Ask the LLM for topic-coherent segments of the text.

        Args:
            text: Text to chunk
            source_file: Document name, used for error reporting

        Returns:
            List of segment strings

        Raises:
            NoChunksProducedError: If the response holds no usable segment
        """
        if not text or not text.strip():
            return []

        logger.info(
            "semantic_chunking_started",
            source_file=source_file,
            text_length=len(text),
        )

        response = await self.llm.complete(self.build_prompt(text), model=self.model)
        segments = self.parse_response(response)

        if not segments:
            logger.error(
                "semantic_chunking_empty",
                source_file=source_file,
                response_length=len(response or ""),
            )
            raise NoChunksProducedError(source_file)

        logger.info(
            "semantic_chunking_completed",
            source_file=source_file,
            chunk_count=len(segments),
            avg_chunk_size=sum(len(s) for s in segments) // len(segments),
        )

        return segments

    async def chunk_document(self, source_file: str, text: str) -> List[Chunk]:
        """Semantically chunk a document and assign ids derived from its name."""
        segments = await self.chunk_text(text, source_file=source_file)
        return [
            Chunk(
                id=f"{source_file}_semantic_chunk_{i}",
                content=segment,
                source_file=source_file,
                sequence_index=i,
            )
            for i, segment in enumerate(segments)
        ]
