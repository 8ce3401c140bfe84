"""Shared contracts — source of truth for all FoxRAG interfaces."""

from contracts.api import ChatOptions, ChatRequest, ChatResult, Message, QueryState, Role
from contracts.manifest import Manifest, ModelsConfig, EmbeddingConfig, VectorConfig, IngestConfig, AuditConfig
from contracts.embedding import EmbeddingAdapter
from contracts.vector_db import Collection, Document, DocumentStore, SearchResult, content_id
from contracts.audit import AuditEntry, AuditEvent, AuditLogger
from contracts.errors import (
    ChannelError,
    EmbeddingError,
    FoxRagError,
    ModelError,
    QueryTimeoutError,
    QueueClosedError,
    StoreError,
    TransportError,
)

__all__ = [
    # api
    "ChatOptions",
    "ChatRequest",
    "ChatResult",
    "Message",
    "QueryState",
    "Role",
    # manifest
    "Manifest",
    "ModelsConfig",
    "EmbeddingConfig",
    "VectorConfig",
    "IngestConfig",
    "AuditConfig",
    # embedding + store
    "EmbeddingAdapter",
    "Collection",
    "Document",
    "DocumentStore",
    "SearchResult",
    "content_id",
    # audit
    "AuditEntry",
    "AuditEvent",
    "AuditLogger",
    # errors
    "ChannelError",
    "EmbeddingError",
    "FoxRagError",
    "ModelError",
    "QueryTimeoutError",
    "QueueClosedError",
    "StoreError",
    "TransportError",
]
