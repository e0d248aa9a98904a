#!/usr/bin/env python
"""Ingest a documents directory and optionally run one query against it.

The index lives in memory, so ingestion and querying happen in one process.

Usage:
    python scripts/ingest.py                                   # Ingest only, print report
    python scripts/ingest.py --strategy semantic               # LLM-driven chunking
    python scripts/ingest.py --query "What is chocolate?"      # Ingest, then retrieve
    python scripts/ingest.py --query "cocoa" --mode search     # Plain similarity lookup
    python scripts/ingest.py --query "huh?" --mode analyze     # Show query analysis only
"""
import argparse
import asyncio
import sys
from datetime import datetime
from pathlib import Path

import structlog

from ragdesk import config
from ragdesk.exceptions import RagDeskError
from ragdesk.logging_setup import configure_logging
from ragdesk.rag.orchestrator import RetrievalOrchestrator

logger = structlog.get_logger()


class ProgressReporter:
    """Simple progress reporter for CLI."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self.start_time = None

    def start(self, message: str):
        """Start progress reporting."""
        self.start_time = datetime.now()
        print(f"\n{'=' * 60}")
        print(f"  {message}")
        print(f"{'=' * 60}\n")

    def update(self, current: int, total: int, source_file: str):
        """Update progress."""
        percentage = (current / total) * 100 if total > 0 else 0
        bar_length = 40
        filled = int(bar_length * current / total) if total > 0 else 0
        bar = "█" * filled + "░" * (bar_length - filled)

        print(
            f"\r  [{bar}] {percentage:5.1f}% ({current}/{total}) {source_file[:30]:<30}",
            end="",
            flush=True,
        )

        if self.verbose:
            print()

    def finish(self, report):
        """Finish progress reporting."""
        print("\n")
        elapsed_seconds = (datetime.now() - self.start_time).total_seconds()

        print(f"{'=' * 60}")
        print("  Ingestion Complete")
        print(f"{'=' * 60}\n")
        print(f"  Documents processed:  {report.documents_processed}")
        print(f"  Documents failed:     {report.documents_failed}")
        print(f"  Chunks created:       {report.chunks_created}")
        print(f"  Chunks indexed:       {report.chunks_indexed}")
        print(f"  Chunks skipped:       {report.chunks_skipped}")
        print(f"  Time elapsed:         {elapsed_seconds:.1f}s")

        if report.chunks_indexed > 0 and elapsed_seconds > 0:
            rate = report.chunks_indexed / elapsed_seconds
            print(f"  Indexing rate:        {rate:.1f} chunks/sec")

        print(f"\n{'=' * 60}\n")

        if report.failures:
            print(f"Warning: {len(report.failures)} failure(s):")
            for failure in report.failures:
                target = failure.chunk_id or failure.source_file
                print(f"   [{failure.stage}] {target}: {failure.message}")
            print()


def print_results(results):
    if not results:
        print("No matching chunks.\n")
        return
    for rank, result in enumerate(results, 1):
        preview = result.record.content.replace("\n", " ")[:160]
        print(f"  {rank}. {result.score:.3f}  {result.record.source_file}  ({result.record.id})")
        print(f"     {preview}")
    print()


async def run_query(orchestrator: RetrievalOrchestrator, query: str, mode: str, top_k: int):
    if mode == "analyze":
        analysis = await orchestrator.analyze(query)
        print(f"Type:       {analysis.type.value}")
        print(f"Rewritten:  {analysis.rewritten_query}")
        print(f"Reasoning:  {analysis.reasoning}\n")
    elif mode == "search":
        print_results(await orchestrator.search_only(query, top_k=top_k))
    else:
        outcome = await orchestrator.retrieve_with_analysis(query, top_k=top_k)
        print(f"Query type: {outcome.analysis.type.value}")
        print(f"Rewritten:  {outcome.rewritten_query}\n")
        print_results(outcome.results)


async def main():
    """Main entry point for the ingest script."""
    parser = argparse.ArgumentParser(
        description="Ingest documents into the in-memory index and query it",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--documents-dir",
        type=Path,
        default=None,
        help=f"Documents directory (default: {config.DOCUMENTS_DIR})",
    )
    parser.add_argument(
        "--strategy",
        choices=["fixed", "semantic"],
        default=None,
        help=f"Chunking strategy (default: {config.CHUNKING_STRATEGY})",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help=f"Concurrent embedding requests (default: {config.INGEST_CONCURRENCY})",
    )
    parser.add_argument("--query", default=None, help="Query to run after ingestion")
    parser.add_argument(
        "--mode",
        choices=["retrieve", "search", "analyze"],
        default="retrieve",
        help="retrieve: analyze+rewrite+search; search: raw similarity; analyze: classification only",
    )
    parser.add_argument("--top-k", type=int, default=config.RETRIEVAL_TOP_K)
    parser.add_argument("--verbose", "-v", action="store_true", help="Show verbose progress output")

    args = parser.parse_args()

    configure_logging(level="DEBUG" if args.verbose else None, json_output=False)
    progress = ProgressReporter(verbose=args.verbose)

    try:
        print("\nConfiguration:")
        print(f"   Documents directory:  {args.documents_dir or config.DOCUMENTS_DIR}")
        print(f"   Embedding model:      {config.EMBEDDING_MODEL}")
        print(f"   Chat model:           {config.CHAT_MODEL}")
        print(f"   Chunking strategy:    {args.strategy or config.CHUNKING_STRATEGY}")
        print(f"   Chunk size/overlap:   {config.CHUNK_SIZE}/{config.CHUNK_OVERLAP} chars")

        orchestrator = RetrievalOrchestrator(
            strategy=args.strategy,
            concurrency=args.concurrency,
            top_k=args.top_k,
        )

        progress.start("Ingesting Documents")
        report = await orchestrator.ingest_directory(
            args.documents_dir,
            progress_callback=progress.update,
        )
        progress.finish(report)

        if args.query:
            await run_query(orchestrator, args.query, args.mode, args.top_k)

        if report.failures:
            sys.exit(1)

    except KeyboardInterrupt:
        print("\n\nCancelled by user.\n")
        sys.exit(1)

    except RagDeskError as e:
        print(f"\nError: {e}\n")
        logger.error("ingest_script_failed", error=str(e), error_type=type(e).__name__)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
