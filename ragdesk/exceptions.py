"""Exception hierarchy for the retrieval pipeline."""
from typing import Optional


class RagDeskError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(RagDeskError):
    """Invalid settings, rejected before any work starts."""


class IngestionError(RagDeskError):
    """A single document could not be ingested."""

    def __init__(self, message: str, source_file: Optional[str] = None):
        super().__init__(message)
        self.source_file = source_file


class NoChunksProducedError(IngestionError):
    """Semantic chunking returned no usable segments for a document."""

    def __init__(self, source_file: Optional[str] = None):
        target = source_file or "<text>"
        super().__init__(
            f"Semantic chunking produced no chunks for {target}",
            source_file=source_file,
        )


class EmbeddingError(RagDeskError):
    """The embedding collaborator failed for one piece of text."""

    def __init__(self, message: str, chunk_id: Optional[str] = None):
        super().__init__(message)
        self.chunk_id = chunk_id


class VectorIndexError(RagDeskError):
    """Misuse of the vector index contract."""


class NotInitializedError(VectorIndexError):
    """Index used before ensure_initialized()."""

    def __init__(self, operation: str):
        super().__init__(
            f"Vector index not initialized. Call ensure_initialized() before {operation}()."
        )
        self.operation = operation


class DimensionMismatchError(VectorIndexError):
    """Vector length differs from the index dimension."""

    def __init__(self, expected: int, actual: int, what: str = "vector"):
        super().__init__(
            f"Embedding dimension mismatch for {what}: expected {expected}, got {actual}"
        )
        self.expected = expected
        self.actual = actual


class QueryAnalysisParseError(RagDeskError):
    """The collaborator's analysis response did not fit the schema."""

    def __init__(self, message: str, raw_response: str = ""):
        super().__init__(message)
        self.raw_response = raw_response
