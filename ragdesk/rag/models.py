"""Data types shared by the chunking, indexing and retrieval stages."""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

EmbeddingVector = List[float]


@dataclass(frozen=True)
class Document:
    """Extracted text of one source document."""

    source_file: str
    text: str


@dataclass(frozen=True)
class Chunk:
    """A bounded, retrievable unit of document text."""

    id: str
    content: str
    source_file: str
    sequence_index: int
    char_start: Optional[int] = None
    char_end: Optional[int] = None


@dataclass(frozen=True)
class IndexedRecord:
    """A chunk together with its embedding, as stored in the vector index."""

    id: str
    content: str
    source_file: str
    embedding: tuple

    @classmethod
    def from_chunk(cls, chunk: Chunk, embedding: EmbeddingVector) -> "IndexedRecord":
        return cls(
            id=chunk.id,
            content=chunk.content,
            source_file=chunk.source_file,
            embedding=tuple(embedding),
        )


@dataclass(frozen=True)
class SearchResult:
    """A retrieved record and its cosine similarity (higher = more relevant)."""

    record: IndexedRecord
    score: float


class QueryType(str, Enum):
    FACTUAL = "Factual"
    SMALL_TALK = "SmallTalk"
    AMBIGUOUS = "Ambiguous"

    @classmethod
    def parse(cls, value: str) -> Optional["QueryType"]:
        """Match a label case-insensitively, ignoring spaces, '-' and '_'."""
        normalized = "".join(ch for ch in str(value).lower() if ch.isalnum())
        for member in cls:
            if member.value.lower() == normalized:
                return member
        return None


class QueryAnalysis(BaseModel):
    """Intent classification and retrieval-oriented rewrite of one query."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: QueryType
    rewritten_query: str = Field(alias="rewrittenQuery")
    reasoning: str = ""


@dataclass
class RetrievalOutcome:
    """Everything the query path produced for one request."""

    query: str
    analysis: QueryAnalysis
    rewritten_query: str
    results: List[SearchResult]


@dataclass(frozen=True)
class IngestionFailure:
    """One document or chunk that could not be ingested."""

    source_file: str
    stage: str  # discover | extract | chunk | embed | index
    error_type: str
    message: str
    chunk_id: Optional[str] = None


@dataclass
class IngestionReport:
    """Outcome of one ingestion run."""

    documents_processed: int = 0
    documents_failed: int = 0
    chunks_created: int = 0
    chunks_indexed: int = 0
    chunks_skipped: int = 0
    failures: List[IngestionFailure] = field(default_factory=list)

    @property
    def failed_sources(self) -> List[str]:
        seen = []
        for failure in self.failures:
            if failure.source_file not in seen:
                seen.append(failure.source_file)
        return seen

    @property
    def failed_chunk_ids(self) -> List[str]:
        return [f.chunk_id for f in self.failures if f.chunk_id]

    def as_stats(self) -> dict:
        return {
            "documents_processed": self.documents_processed,
            "documents_failed": self.documents_failed,
            "chunks_created": self.chunks_created,
            "chunks_indexed": self.chunks_indexed,
            "chunks_skipped": self.chunks_skipped,
            "failures": len(self.failures),
        }
