"""Ollama model adapter.

Proxies chat requests to a local Ollama instance via httpx. Supports
both single-response and streamed (NDJSON) delivery; either way the
caller gets back one complete answer.
"""

from __future__ import annotations

import json
from typing import Any, Awaitable, Callable

import httpx

from contracts.api import ChatRequest, ChatResult, Message
from contracts.errors import ModelError

ChunkCallback = Callable[[str], Awaitable[None]]


class OllamaAdapter:
    """Async adapter for the Ollama /api/chat endpoint."""

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        timeout: float = 300.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def chat(
        self, request: ChatRequest, on_chunk: ChunkCallback | None = None
    ) -> ChatResult:
        """Send the request to Ollama and return the full assistant answer.

        When ``request.stream`` is set, *on_chunk* is awaited with every
        partial piece of content as it arrives.
        """
        payload = self._build_payload(request)
        try:
            async with self._client() as client:
                if request.stream:
                    return await self._chat_stream(client, payload, on_chunk)
                resp = await client.post(f"{self._base_url}/api/chat", json=payload)
                self._check_status(resp)
                try:
                    data = resp.json()
                except json.JSONDecodeError as exc:
                    raise ModelError(f"Malformed response from Ollama: {resp.text!r}") from exc
                return self._from_ollama_response(data, request.model)
        except httpx.ConnectError as exc:
            raise ModelError(
                f"Cannot connect to Ollama at {self._base_url}: {exc}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ModelError(f"Ollama chat request failed: {exc}") from exc

    async def preload(self, model: str, keep_alive: float = 3600.0) -> None:
        """Load *model* into memory by sending a chat with no messages."""
        await self.chat(ChatRequest(model=model, keep_alive=keep_alive))

    # ── transport helpers ────────────────────────────────────────────

    def _client(self) -> httpx.AsyncClient:
        if self._transport is not None:
            return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)
        return httpx.AsyncClient(timeout=self._timeout)

    async def _chat_stream(
        self,
        client: httpx.AsyncClient,
        payload: dict[str, Any],
        on_chunk: ChunkCallback | None,
    ) -> ChatResult:
        parts: list[str] = []
        model = payload["model"]
        done_reason: str | None = None

        async with client.stream(
            "POST", f"{self._base_url}/api/chat", json=payload
        ) as resp:
            if resp.status_code != 200:
                await resp.aread()
                self._check_status(resp)
            async for line in resp.aiter_lines():
                line = line.strip()
                if not line:
                    continue
                try:
                    data = json.loads(line)
                except json.JSONDecodeError as exc:
                    raise ModelError(f"Malformed stream chunk from Ollama: {line!r}") from exc
                if "error" in data:
                    raise ModelError(f"Ollama stream failed: {data['error']}")
                content = data.get("message", {}).get("content") or ""
                if content:
                    parts.append(content)
                    if on_chunk is not None:
                        await on_chunk(content)
                model = data.get("model", model)
                if data.get("done"):
                    done_reason = data.get("done_reason")
                    break
            else:
                raise ModelError("Ollama stream ended before completion")

        return ChatResult(
            model=model,
            content="".join(parts),
            chunks=len(parts),
            done_reason=done_reason,
        )

    @staticmethod
    def _check_status(resp: httpx.Response) -> None:
        if resp.status_code == 200:
            return
        try:
            detail = resp.json().get("error", resp.text)
        except (json.JSONDecodeError, AttributeError):
            detail = resp.text
        raise ModelError(f"Ollama chat request failed ({resp.status_code}): {detail}")

    # ── format helpers ───────────────────────────────────────────────

    @staticmethod
    def _build_payload(request: ChatRequest) -> dict[str, Any]:
        """Convert a ChatRequest into the Ollama /api/chat body."""
        return {
            "model": request.model,
            "messages": [OllamaAdapter._to_ollama_message(m) for m in request.messages],
            "stream": request.stream,
            "keep_alive": request.keep_alive,
            "options": request.options.model_dump(),
        }

    @staticmethod
    def _to_ollama_message(msg: Message) -> dict[str, Any]:
        return {"role": msg.role.value, "content": msg.content}

    @staticmethod
    def _from_ollama_response(data: dict[str, Any], model: str) -> ChatResult:
        """Convert a single (non-streamed) Ollama chat response."""
        if "error" in data:
            raise ModelError(f"Ollama chat failed: {data['error']}")
        msg_data = data.get("message") or {}
        return ChatResult(
            model=data.get("model", model),
            content=msg_data.get("content") or "",
            chunks=1,
            done_reason=data.get("done_reason"),
        )
