"""RAG (Retrieval-Augmented Generation) pipeline components.

This package contains modules for:
- Document discovery and text extraction
- Fixed-window and semantic chunking
- Embedding generation
- In-memory FAISS vector index
- Query analysis and rewriting
- Ingestion and retrieval orchestration
"""
