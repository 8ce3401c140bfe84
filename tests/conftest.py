"""Shared fakes for the embedder and the chat model."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from contracts.api import ChatRequest, ChatResult, Role
from contracts.embedding import EmbeddingAdapter
from contracts.errors import EmbeddingError

KEYWORDS = ["login", "failed", "error", "disk", "network", "user"]


class KeywordEmbedder(EmbeddingAdapter):
    """Bag-of-keywords vectors; good enough to make ranking predictable."""

    def __init__(self, name: str = "keyword-embed", fail_times: int = 0) -> None:
        self._name = name
        self.fail_times = fail_times
        self.calls: list[list[str]] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.fail_times > 0:
            self.fail_times -= 1
            raise EmbeddingError("embedder unavailable")
        vectors = []
        for text in texts:
            lowered = text.lower()
            vec = [float(lowered.count(k)) for k in KEYWORDS]
            vec.append(0.01)  # never a zero vector
            vectors.append(vec)
        return vectors

    def model_name(self) -> str:
        return self._name


class EchoModel:
    """Chat model stand-in that answers with the context it was given."""

    def __init__(self, delay: float = 0.0, fail: Exception | None = None) -> None:
        self.delay = delay
        self.fail = fail
        self.requests: list[ChatRequest] = []
        self.preloads: list[tuple[str, float]] = []

    async def chat(self, request: ChatRequest, on_chunk: Any = None) -> ChatResult:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail is not None:
            raise self.fail
        user = [m for m in request.messages if m.role == Role.USER][-1]
        head, _, context = user.content.partition("This is the context:\n")
        question = head.split("This is the question:\n", 1)[-1].strip()
        answer = f"ECHO {question}\n{context.strip()}".strip()
        if on_chunk is not None:
            await on_chunk(answer)
        return ChatResult(model=request.model, content=answer)

    async def preload(self, model: str, keep_alive: float = 3600.0) -> None:
        self.preloads.append((model, keep_alive))


@pytest.fixture()
def embedder() -> KeywordEmbedder:
    return KeywordEmbedder()


@pytest.fixture()
def echo_model() -> EchoModel:
    return EchoModel()
