"""ragdesk: document ingestion, vector indexing and query-aware retrieval."""

__version__ = "0.1.0"
