"""Manifest (foxrag.yaml) schema — Pydantic models.

Every section has defaults, so an empty manifest runs mistral with
nomic-embed-text on port 8211.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from contracts.api import ChatOptions


# ── Top-level sections ──────────────────────────────────────────────


class AppInfo(BaseModel):
    name: str = "foxrag"
    version: str = "0.1.0"


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8211


# ── Models ───────────────────────────────────────────────────────────


class ModelsConfig(BaseModel):
    backend: str = "ollama"
    base_url: str = "http://localhost:11434"
    default: str = "mistral"
    stream: bool = False
    keep_alive_seconds: float = 3600.0
    preload: bool = True
    options: ChatOptions = Field(default_factory=ChatOptions)


# ── Embedding + Vector DB config ─────────────────────────────────────


class EmbeddingConfig(BaseModel):
    backend: str = "ollama"
    model: str = "nomic-embed-text"


class VectorConfig(BaseModel):
    backend: str = "memory"        # "memory" or "chroma"
    collection: str = "fox"
    persist_path: str | None = None  # chroma only; None keeps it in memory
    retrieval_limit: int | None = Field(default=None, ge=1)  # None = whole collection


# ── Ingestion + query ────────────────────────────────────────────────


class IngestConfig(BaseModel):
    queue_size: int = Field(default=4096, ge=1)
    max_retries: int = Field(default=3, ge=0)
    backoff_seconds: float = Field(default=0.5, ge=0)
    drain_timeout_seconds: float = Field(default=30.0, ge=0)


class QueryConfig(BaseModel):
    timeout_seconds: float | None = Field(default=None, gt=0)


# ── Audit ────────────────────────────────────────────────────────────


class AuditConfig(BaseModel):
    path: str = "foxrag-audit.jsonl"
    redact_prompt: bool = False


# ── Root manifest ────────────────────────────────────────────────────


class Manifest(BaseModel):
    app: AppInfo = AppInfo()
    server: ServerConfig = ServerConfig()
    models: ModelsConfig = ModelsConfig()
    embedding: EmbeddingConfig = EmbeddingConfig()
    vector_db: VectorConfig = VectorConfig()
    ingest: IngestConfig = IngestConfig()
    query: QueryConfig = QueryConfig()
    audit: AuditConfig = AuditConfig()
