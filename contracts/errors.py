"""Error taxonomy shared by the store, the queue, the model client and the server."""

from __future__ import annotations


class FoxRagError(Exception):
    """Base class for all FoxRAG errors."""


class EmbeddingError(FoxRagError):
    """The embedder is unavailable or rejected the input."""


class ModelError(FoxRagError):
    """The chat backend is unavailable or failed mid-response."""


class StoreError(FoxRagError):
    """A document store operation was invalid (unknown collection, embedder mismatch)."""


class TransportError(FoxRagError):
    """A request body could not be read or decoded."""


class QueueClosedError(FoxRagError):
    """An item or query was offered to a queue that has been closed."""


class QueryTimeoutError(FoxRagError):
    """A query did not complete within the caller's deadline."""


class ChannelError(FoxRagError):
    """A one-shot channel was written or read more than once."""
