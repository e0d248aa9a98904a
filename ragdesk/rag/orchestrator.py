"""Ingestion and retrieval pipelines.

Orchestrates:
- Document chunking (fixed-window or semantic)
- Bounded concurrent embedding and upsert of chunks
- Query analysis, rewrite, embedding and ranked search
"""
import asyncio
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Set

import structlog

from ragdesk import config
from ragdesk.exceptions import ConfigurationError, IngestionError, VectorIndexError
from ragdesk.rag.chunker import SemanticChunker, TextChunker
from ragdesk.rag.embeddings import OllamaEmbedder
from ragdesk.rag.loader import DocumentLoader
from ragdesk.rag.models import (
    Chunk,
    Document,
    IndexedRecord,
    IngestionFailure,
    IngestionReport,
    QueryAnalysis,
    RetrievalOutcome,
    SearchResult,
)
from ragdesk.rag.query_analyzer import QueryAnalyzer
from ragdesk.rag.vector_index import VectorIndex

STRATEGIES = ("fixed", "semantic")

TRUNCATION_MARK = "...\n"
MIN_PARTIAL_BLOCK_CHARS = 200

ProgressCallback = Callable[[int, int, str], None]


class _IngestRun:
    """Mutable bookkeeping for one ingest() call."""

    def __init__(self):
        self.report = IngestionReport()
        self.chunked_sources: Set[str] = set()
        self.failed_sources: Set[str] = set()
        self.fatal: List[VectorIndexError] = []

    def fail(self, source_file: str, stage: str, error: Exception, chunk_id: str = None):
        self.failed_sources.add(source_file)
        self.report.failures.append(
            IngestionFailure(
                source_file=source_file,
                stage=stage,
                error_type=type(error).__name__,
                message=str(error),
                chunk_id=chunk_id,
            )
        )


class RetrievalOrchestrator:
    """Composes chunkers, embedder, vector index and query analyzer."""

    def __init__(
        self,
        vector_index: Optional[VectorIndex] = None,
        embedder=None,
        analyzer: Optional[QueryAnalyzer] = None,
        fixed_chunker: Optional[TextChunker] = None,
        semantic_chunker: Optional[SemanticChunker] = None,
        strategy: str = None,
        concurrency: int = None,
        top_k: int = None,
        logger=None,
    ):
        """Initialize the orchestrator.

        Args:
            vector_index: Index shared by both pipelines
            embedder: Object with an async ``embed(text)`` method
            analyzer: Query analyzer for the retrieval path
            fixed_chunker: Fixed-window chunker (built from config if needed)
            semantic_chunker: Semantic chunker (built from config if needed)
            strategy: Default chunking strategy, "fixed" or "semantic"
            concurrency: Maximum number of in-flight embed-and-upsert jobs
            top_k: Default number of results to return
            logger: structlog logger receiving progress and failure events

        Raises:
            ConfigurationError: On an unknown strategy or a concurrency below 1
        """
        self.embedder = embedder or OllamaEmbedder()
        self.vector_index = vector_index or VectorIndex(embedder=self.embedder)
        self.analyzer = analyzer or QueryAnalyzer()
        self._chunkers: Dict[str, object] = {}
        if fixed_chunker is not None:
            self._chunkers["fixed"] = fixed_chunker
        if semantic_chunker is not None:
            self._chunkers["semantic"] = semantic_chunker

        self.strategy = self._check_strategy(strategy or config.CHUNKING_STRATEGY)
        self.concurrency = config.INGEST_CONCURRENCY if concurrency is None else concurrency
        if self.concurrency < 1:
            raise ConfigurationError(
                f"Ingest concurrency must be at least 1, got {self.concurrency}"
            )
        self.top_k = config.RETRIEVAL_TOP_K if top_k is None else top_k
        self.logger = logger or structlog.get_logger().bind(component="orchestrator")

        self.logger.info(
            "orchestrator_initialized",
            strategy=self.strategy,
            concurrency=self.concurrency,
            top_k=self.top_k,
        )

    @staticmethod
    def _check_strategy(strategy: str) -> str:
        if strategy not in STRATEGIES:
            raise ConfigurationError(
                f"Unknown chunking strategy {strategy!r}; expected one of {STRATEGIES}"
            )
        return strategy

    def get_chunker(self, strategy: str = None):
        """Return the chunker for a strategy, building it from config on first use."""
        strategy = self._check_strategy(strategy or self.strategy)
        if strategy not in self._chunkers:
            if strategy == "fixed":
                self._chunkers[strategy] = TextChunker()
            else:
                self._chunkers[strategy] = SemanticChunker()
        return self._chunkers[strategy]

    async def _chunk(self, chunker, document: Document) -> List[Chunk]:
        if isinstance(chunker, SemanticChunker):
            return await chunker.chunk_document(document.source_file, document.text)
        return chunker.chunk_document(document.source_file, document.text)

    # Ingestion

    async def _index_chunk(self, chunk: Chunk, run: _IngestRun) -> None:
        if chunk.source_file in run.failed_sources:
            run.report.chunks_skipped += 1
            return

        try:
            embedding = await self.embedder.embed(chunk.content)
            await self.vector_index.upsert(IndexedRecord.from_chunk(chunk, embedding))
        except VectorIndexError as e:
            run.fatal.append(e)
            run.fail(chunk.source_file, "index", e, chunk_id=chunk.id)
            return
        except Exception as e:
            self.logger.error(
                "chunk_indexing_failed",
                source_file=chunk.source_file,
                chunk_id=chunk.id,
                error=str(e),
                error_type=type(e).__name__,
            )
            run.fail(chunk.source_file, "embed", e, chunk_id=chunk.id)
            return

        run.report.chunks_indexed += 1

    async def _worker(self, queue: asyncio.Queue, run: _IngestRun) -> None:
        while True:
            chunk = await queue.get()
            try:
                if chunk is None:
                    return
                await self._index_chunk(chunk, run)
            finally:
                queue.task_done()

    async def ingest(
        self,
        documents: Sequence[Document],
        strategy: str = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> IngestionReport:
        """Chunk, embed and index documents.

        Embedding and upsert run on a pool of ``concurrency`` workers fed by a
        bounded queue. A failure affects only its own document: its remaining
        chunks are skipped and other documents carry on.

        Args:
            documents: Documents to ingest
            strategy: Chunking strategy override for this run
            progress_callback: Optional callback(current, total, source_file)

        Returns:
            IngestionReport with counts and per-document/per-chunk failures

        Raises:
            ConfigurationError: If the strategy or chunker settings are invalid
            VectorIndexError: If the index contract is violated
        """
        chunker = self.get_chunker(strategy)
        run = _IngestRun()

        if not documents:
            self.logger.warning("no_documents_to_ingest")
            return run.report

        if not self.vector_index.initialized:
            probe = await self.embedder.embed("test")
            await self.vector_index.ensure_initialized(dimension=len(probe))

        self.logger.info(
            "ingest_started",
            documents=len(documents),
            strategy=chunker.strategy,
            concurrency=self.concurrency,
        )

        queue: asyncio.Queue = asyncio.Queue(maxsize=self.concurrency * 2)
        workers = [
            asyncio.create_task(self._worker(queue, run))
            for _ in range(self.concurrency)
        ]

        try:
            for idx, document in enumerate(documents, 1):
                if run.fatal:
                    break

                if progress_callback:
                    progress_callback(idx, len(documents), document.source_file)

                try:
                    chunks = await self._chunk(chunker, document)
                except Exception as e:
                    self.logger.error(
                        "document_chunking_failed",
                        source_file=document.source_file,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    run.fail(document.source_file, "chunk", e)
                    continue

                run.chunked_sources.add(document.source_file)
                run.report.chunks_created += len(chunks)

                if not chunks:
                    self.logger.warning("no_chunks_created", source_file=document.source_file)
                    continue

                for position, chunk in enumerate(chunks):
                    if document.source_file in run.failed_sources:
                        run.report.chunks_skipped += len(chunks) - position
                        break
                    await queue.put(chunk)

                self.logger.debug(
                    "document_scheduled",
                    source_file=document.source_file,
                    chunks=len(chunks),
                )

            for _ in workers:
                await queue.put(None)
            await asyncio.gather(*workers)
        finally:
            for worker in workers:
                if not worker.done():
                    worker.cancel()

        report = run.report
        report.documents_failed = len(run.failed_sources)
        report.documents_processed = len(run.chunked_sources - run.failed_sources)

        self.logger.info("ingest_completed", **report.as_stats())

        if run.fatal:
            raise run.fatal[0]

        return report

    async def ingest_directory(
        self,
        documents_dir: Path = None,
        strategy: str = None,
        progress_callback: Optional[ProgressCallback] = None,
        loader: Optional[DocumentLoader] = None,
    ) -> IngestionReport:
        """Load every supported document under a directory and ingest it.

        A missing directory or an unreadable file is reported, not raised.
        """
        self.get_chunker(strategy)
        loader = loader or DocumentLoader(documents_dir)

        try:
            documents, errors = loader.load()
        except IngestionError as e:
            self.logger.error(
                "document_discovery_failed",
                documents_dir=str(loader.documents_dir),
                error=str(e),
            )
            report = IngestionReport()
            report.failures.append(
                IngestionFailure(
                    source_file=str(loader.documents_dir),
                    stage="discover",
                    error_type=type(e).__name__,
                    message=str(e),
                )
            )
            return report

        report = await self.ingest(
            documents, strategy=strategy, progress_callback=progress_callback
        )

        if errors:
            report.failures[:0] = [
                IngestionFailure(
                    source_file=e.source_file or "",
                    stage="extract",
                    error_type=type(e).__name__,
                    message=str(e),
                )
                for e in errors
            ]
            report.documents_failed += len(errors)

        return report

    # Retrieval

    async def analyze(self, query: str) -> QueryAnalysis:
        return await self.analyzer.analyze(query)

    async def _search_embedding(self, text: str, top_k: int) -> List[SearchResult]:
        embedding = await self.embedder.embed(text)
        await self.vector_index.ensure_initialized(dimension=len(embedding))
        return await self.vector_index.search(embedding, top_k=top_k)

    async def retrieve_with_analysis(
        self, query: str, top_k: Optional[int] = None
    ) -> RetrievalOutcome:
        """Analyze, rewrite, embed and search; keep every intermediate result.

        Raises:
            QueryAnalysisParseError: If the analysis response is unusable
            EmbeddingError: If the rewritten query cannot be embedded
        """
        top_k = self.top_k if top_k is None else top_k

        analysis = await self.analyzer.analyze(query)
        rewritten = await self.analyzer.rewrite(query, analysis)
        results = await self._search_embedding(rewritten, top_k)

        self.logger.info(
            "retrieval_completed",
            query_type=analysis.type.value,
            query_length=len(query),
            results_returned=len(results),
            top_score=results[0].score if results else None,
        )

        return RetrievalOutcome(
            query=query,
            analysis=analysis,
            rewritten_query=rewritten,
            results=results,
        )

    async def retrieve(self, query: str, top_k: Optional[int] = None) -> List[SearchResult]:
        """Query-aware retrieval: returns SearchResults, best first."""
        if not query or not query.strip():
            self.logger.warning("empty_query_provided")
            return []

        outcome = await self.retrieve_with_analysis(query, top_k=top_k)
        return outcome.results

    async def search_only(self, query: str, top_k: Optional[int] = None) -> List[SearchResult]:
        """Plain similarity lookup on the raw query, no analysis or rewrite."""
        if not query or not query.strip():
            self.logger.warning("empty_query_provided")
            return []

        top_k = self.top_k if top_k is None else top_k
        results = await self._search_embedding(query, top_k)

        self.logger.info(
            "search_completed",
            query_length=len(query),
            results_returned=len(results),
        )
        return results

    @staticmethod
    def format_context(
        results: Sequence[SearchResult], max_chars: int = None
    ) -> str:
        """Format ranked results as a source-tagged context block.

        Args:
            results: Ranked search results
            max_chars: Hard upper bound on the length of the returned string

        Returns:
            Context string ready for an answer-generation prompt
        """
        max_chars = config.MAX_CONTEXT_CHARS if max_chars is None else max_chars
        blocks: List[str] = []
        used = 0

        for rank, result in enumerate(results, 1):
            block = (
                f"[Source {rank}: {result.record.source_file}]\n"
                f"{result.record.content.strip()}\n"
            )
            separator = 1 if blocks else 0
            room = max_chars - used - separator

            if len(block) <= room:
                blocks.append(block)
                used += separator + len(block)
                continue

            # A cut-off block is kept only when a useful amount of it fits
            keep = room - len(TRUNCATION_MARK)
            if keep > MIN_PARTIAL_BLOCK_CHARS:
                blocks.append(block[:keep] + TRUNCATION_MARK)
            break

        return "\n".join(blocks)
