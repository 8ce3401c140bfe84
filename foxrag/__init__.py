"""FoxRAG runtime — ingestion, retrieval and query orchestration."""
