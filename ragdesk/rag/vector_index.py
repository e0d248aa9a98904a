"""In-memory FAISS vector index with keyed upsert and ranked search.

Handles:
- Embedding dimension declaration or runtime detection
- Insert-or-replace by record id
- Cosine-similarity top-k search with deterministic tie-breaking
"""
import asyncio
from typing import Dict, List, Optional, Tuple, Any
import numpy as np
import faiss
import structlog

from ragdesk import config
from ragdesk.exceptions import (
    ConfigurationError,
    DimensionMismatchError,
    NotInitializedError,
)
from ragdesk.rag.models import IndexedRecord, SearchResult

logger = structlog.get_logger()

# Range-search slack used to pick up every candidate tied with the k-th score
_TIE_EPSILON = 1e-6


def _normalize(vector) -> np.ndarray:
    """Return a (1, dim) float32 row scaled to unit length (zero stays zero)."""
    row = np.asarray(vector, dtype=np.float32).reshape(1, -1)
    norm = float(np.linalg.norm(row))
    if norm > 0:
        row = row / norm
    return row


class VectorIndex:
    """FAISS inner-product index over unit vectors (cosine similarity).

    Records are keyed by their string id. Each id keeps the integer FAISS id
    it was first inserted with, which doubles as its insertion rank for
    tie-breaking.
    """

    metric = "cosine"

    def __init__(self, embedder=None):
        """Initialize an empty, uninitialized index.

        Args:
            embedder: Object with an async ``embed(text)`` method, used only to
                detect the dimension when none is declared
        """
        self.embedder = embedder
        self.index: Optional[faiss.Index] = None
        self.dimension: Optional[int] = None

        self._records: Dict[str, Tuple[int, IndexedRecord]] = {}
        self._ids_by_faiss_id: Dict[int, str] = {}
        self._next_faiss_id = 0
        self._write_lock = asyncio.Lock()
        self._init_lock = asyncio.Lock()

    @property
    def initialized(self) -> bool:
        return self.index is not None

    @property
    def count(self) -> int:
        return len(self._records)

    async def get_embedding_dimension(self) -> int:
        """Detect embedding dimension by embedding a test string."""
        if self.embedder is None:
            raise ConfigurationError(
                "No embedder configured to detect the dimension; pass one or declare it"
            )

        logger.info("detecting_embedding_dimension")
        embedding = await self.embedder.embed("test")
        dimension = len(embedding)
        logger.info("embedding_dimension_detected", dimension=dimension)
        return dimension

    async def ensure_initialized(self, dimension: Optional[int] = None) -> int:
        """Create the index once; later calls are no-ops.

        Args:
            dimension: Vector length (auto-detected through the embedder if not
                provided)

        Returns:
            The index dimension

        Raises:
            DimensionMismatchError: If an explicit dimension conflicts with the
                one the index was created with
            ConfigurationError: If the dimension is not positive, or must be
                detected and no embedder is configured
        """
        async with self._init_lock:
            if self.index is not None:
                if dimension is not None and dimension != self.dimension:
                    raise DimensionMismatchError(
                        self.dimension, dimension, what="index declaration"
                    )
                return self.dimension

            if dimension is None:
                dimension = await self.get_embedding_dimension()
            if dimension <= 0:
                raise ConfigurationError(
                    f"Index dimension must be positive, got {dimension}"
                )

            self.dimension = dimension
            self.index = faiss.IndexIDMap2(faiss.IndexFlatIP(dimension))

            logger.info(
                "vector_index_initialized",
                dimension=dimension,
                index_type="IndexIDMap2(IndexFlatIP)",
                metric=self.metric,
            )
            return dimension

    def _check_ready(self, operation: str) -> None:
        if self.index is None:
            raise NotInitializedError(operation)

    def _check_dimension(self, vector, what: str) -> None:
        if len(vector) != self.dimension:
            raise DimensionMismatchError(self.dimension, len(vector), what=what)

    async def upsert(self, record: IndexedRecord) -> None:
        """Insert a record, or wholly replace the record with the same id.

        Raises:
            NotInitializedError: If ensure_initialized() has not completed
            DimensionMismatchError: If the embedding has the wrong length
        """
        self._check_ready("upsert")
        self._check_dimension(record.embedding, what=f"record {record.id}")

        row = _normalize(record.embedding)

        async with self._write_lock:
            existing = self._records.get(record.id)
            if existing is not None:
                faiss_id = existing[0]
                self.index.remove_ids(np.array([faiss_id], dtype=np.int64))
            else:
                faiss_id = self._next_faiss_id
                self._next_faiss_id += 1

            self.index.add_with_ids(row, np.array([faiss_id], dtype=np.int64))
            self._records[record.id] = (faiss_id, record)
            self._ids_by_faiss_id[faiss_id] = record.id

        logger.debug(
            "vector_upserted",
            record_id=record.id,
            replaced=existing is not None,
            total_vectors=self.index.ntotal,
        )

    async def delete(self, record_id: str) -> bool:
        """Remove a record by id. Returns False if it was not present."""
        self._check_ready("delete")

        async with self._write_lock:
            existing = self._records.pop(record_id, None)
            if existing is None:
                return False
            faiss_id = existing[0]
            self.index.remove_ids(np.array([faiss_id], dtype=np.int64))
            del self._ids_by_faiss_id[faiss_id]

        logger.info("vector_deleted", record_id=record_id)
        return True

    def get(self, record_id: str) -> Optional[IndexedRecord]:
        entry = self._records.get(record_id)
        return entry[1] if entry else None

    async def search(
        self, query_vector: List[float], top_k: int = None
    ) -> List[SearchResult]:
        """Return up to top_k records most similar to the query vector.

        Results are sorted by descending score; equal scores keep insertion
        order (earlier insert first).

        Raises:
            NotInitializedError: If ensure_initialized() has not completed
            DimensionMismatchError: If the query has the wrong length
        """
        self._check_ready("search")
        self._check_dimension(query_vector, what="query")

        if top_k is None:
            top_k = config.RETRIEVAL_TOP_K

        top_k = min(top_k, self.index.ntotal)
        if top_k <= 0:
            return []

        query = _normalize(query_vector)

        distances, indices = self.index.search(query, top_k)
        candidates = {
            int(i): float(d)
            for d, i in zip(distances[0].tolist(), indices[0].tolist())
            if i != -1
        }

        # Pull in anything tied with the k-th score so the cut is deterministic
        kth_score = float(distances[0][top_k - 1])
        _, tie_scores, tie_ids = self.index.range_search(
            query, kth_score - _TIE_EPSILON
        )
        for d, i in zip(tie_scores.tolist(), tie_ids.tolist()):
            candidates.setdefault(int(i), float(d))

        ranked = sorted(candidates.items(), key=lambda item: (-item[1], item[0]))

        results = []
        for faiss_id, score in ranked[:top_k]:
            record_id = self._ids_by_faiss_id.get(faiss_id)
            if record_id is None:
                continue
            results.append(SearchResult(record=self._records[record_id][1], score=score))

        logger.info(
            "vector_search_completed",
            top_k=top_k,
            results_found=len(results),
            top_score=results[0].score if results else None,
        )

        return results

    def get_stats(self) -> Dict[str, Any]:
        """Get statistics about the index."""
        if self.index is None:
            return {
                "initialized": False,
                "vector_count": 0,
                "dimension": None,
            }

        return {
            "initialized": True,
            "vector_count": self.index.ntotal,
            "record_count": len(self._records),
            "dimension": self.dimension,
            "metric": self.metric,
            "sources": sorted({r.source_file for _, r in self._records.values()}),
        }
