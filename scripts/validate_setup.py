#!/usr/bin/env python
"""Validate setup - check dependencies, configuration and the Ollama service."""
import sys
import asyncio

import httpx

# Color codes for terminal output
GREEN = "\033[92m"
RED = "\033[91m"
YELLOW = "\033[93m"
BLUE = "\033[94m"
RESET = "\033[0m"


def print_success(msg):
    print(f"{GREEN}✓{RESET} {msg}")


def print_error(msg):
    print(f"{RED}✗{RESET} {msg}")


def print_info(msg):
    print(f"{BLUE}ℹ{RESET} {msg}")


def print_warning(msg):
    print(f"{YELLOW}⚠{RESET} {msg}")


def print_section(title):
    print(f"\n{BLUE}{'='*60}{RESET}")
    print(f"{BLUE}{title:^60}{RESET}")
    print(f"{BLUE}{'='*60}{RESET}\n")


async def main():
    print_section("ragdesk - Setup Validation")

    errors = []
    warnings = []

    # 1. Python version check
    print_section("1. Python Environment")
    python_version = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
    print_info(f"Python version: {python_version}")
    if sys.version_info >= (3, 10):
        print_success("Python version >= 3.10")
    else:
        print_error("Python version < 3.10 (required)")
        errors.append("Python version too old")

    # 2. Import core dependencies
    print_section("2. Core Dependencies")

    dependencies = [
        ("httpx", "HTTP client"),
        ("faiss", "FAISS vector index"),
        ("numpy", "Numerical arrays"),
        ("pydantic", "Data validation"),
        ("pypdf", "PDF text extraction"),
        ("structlog", "Structured logging"),
        ("pytest", "Testing framework"),
    ]

    for module_name, description in dependencies:
        try:
            __import__(module_name)
            print_success(f"{description:30} ({module_name})")
        except ImportError as e:
            print_error(f"{description:30} ({module_name}) - {e}")
            errors.append(f"Missing: {module_name}")

    # 3. Configuration
    print_section("3. Configuration")

    from ragdesk import config
    from ragdesk.exceptions import ConfigurationError
    from ragdesk.rag.chunker import SemanticChunker, TextChunker
    from ragdesk.llm_client import OllamaClient

    print_info(f"  Chat model: {config.CHAT_MODEL}")
    print_info(f"  Embedding model: {config.EMBEDDING_MODEL}")
    print_info(f"  Ollama URL: {config.OLLAMA_BASE_URL}")
    print_info(f"  Chunk size/overlap: {config.CHUNK_SIZE}/{config.CHUNK_OVERLAP} chars")
    print_info(f"  Ingest concurrency: {config.INGEST_CONCURRENCY}")

    try:
        TextChunker()
        SemanticChunker()
        print_success("Chunking settings are valid")
    except ConfigurationError as e:
        print_error(f"Invalid chunking settings: {e}")
        errors.append("Invalid chunking settings")

    if config.DOCUMENTS_DIR.is_dir():
        print_success(f"Documents directory exists: {config.DOCUMENTS_DIR}")
    else:
        print_warning(f"Documents directory missing: {config.DOCUMENTS_DIR}")
        warnings.append("Documents directory missing")

    # 4. Ollama service
    print_section("4. Ollama Service")

    client = OllamaClient()
    try:
        models = set(await client.list_models())
        print_success(f"Ollama service running at {config.OLLAMA_BASE_URL}")
        print_info(f"Found {len(models)} models installed")

        for role, name in (("Chat", config.CHAT_MODEL), ("Embedding", config.EMBEDDING_MODEL)):
            if name in models:
                print_success(f"{role} model available: {name}")
            else:
                print_error(f"{role} model missing: {name}")
                print_info(f"  Run: ollama pull {name}")
                errors.append(f"Missing {role.lower()} model: {name}")

    except httpx.ConnectError:
        print_error("Cannot connect to Ollama service")
        print_info("  Make sure Ollama is running: ollama serve")
        errors.append("Ollama not running")
    except httpx.HTTPError as e:
        print_error(f"Ollama check failed: {e}")
        errors.append(f"Ollama error: {e}")

    # 5. API round trips
    print_section("5. Ollama API Test")

    if not errors:
        try:
            response = await client.embeddings(prompt="test")
            dimension = len(response.get("embedding", []))
            if dimension:
                print_success(f"Embedding API working (dimension: {dimension})")
            else:
                print_error("Embedding response missing 'embedding' field")
                errors.append("Embedding API issue")

            reply = await client.complete("Reply with the single word: ready", temperature=0.0)
            print_success(f"Chat API working (reply: {reply.strip()[:40]!r})")
        except httpx.HTTPError as e:
            print_error(f"Ollama API test failed: {e}")
            errors.append(f"API test failed: {e}")
    else:
        print_warning("Skipped because of earlier errors")

    # 6. Summary
    print_section("Summary")

    if not errors:
        print_success("All checks passed!")
    else:
        print_error(f"Found {len(errors)} error(s):")
        for i, error in enumerate(errors, 1):
            print(f"  {i}. {error}")

    if warnings:
        print_warning(f"\nFound {len(warnings)} warning(s):")
        for i, warning in enumerate(warnings, 1):
            print(f"  {i}. {warning}")

    print()
    return errors, warnings


if __name__ == "__main__":
    errors, warnings = asyncio.run(main())
    sys.exit(1 if errors else 0)
