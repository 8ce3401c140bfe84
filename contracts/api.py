"""Chat contracts — messages, model requests and query states."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    role: Role
    content: str


class ChatOptions(BaseModel):
    """Decoding parameters sent with every chat request."""

    num_ctx: int = 4096
    temperature: float = 0.2
    seed: int = 8211
    top_k: int = 10
    top_p: float = 0.5


class ChatRequest(BaseModel):
    model: str
    messages: list[Message] = []
    options: ChatOptions = Field(default_factory=ChatOptions)
    stream: bool = False
    keep_alive: float = 3600.0  # seconds the backend keeps the model loaded


class ChatResult(BaseModel):
    """A complete answer, whether delivered at once or as chunks."""

    model: str
    content: str
    chunks: int = 1
    done_reason: str | None = None


class QueryState(str, Enum):
    RECEIVED = "received"
    EMBEDDING_QUERY = "embedding_query"
    RETRIEVING = "retrieving"
    PROMPT_BUILT = "prompt_built"
    MODEL_INVOKED = "model_invoked"
    STREAMING = "streaming"
    COMPLETE = "complete"
    FAILED = "failed"


TERMINAL_STATES = frozenset({QueryState.COMPLETE, QueryState.FAILED})

# Forward transitions; FAILED is reachable from every non-terminal state.
QUERY_TRANSITIONS: dict[QueryState, QueryState] = {
    QueryState.RECEIVED: QueryState.EMBEDDING_QUERY,
    QueryState.EMBEDDING_QUERY: QueryState.RETRIEVING,
    QueryState.RETRIEVING: QueryState.PROMPT_BUILT,
    QueryState.PROMPT_BUILT: QueryState.MODEL_INVOKED,
    QueryState.MODEL_INVOKED: QueryState.STREAMING,
    QueryState.STREAMING: QueryState.COMPLETE,
}
