"""Async client for OpenAI-compatible streaming chat completion endpoints."""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass
import json
import logging
from typing import Any

import httpx

from .exceptions import GatewayConnectionError, GatewayError, TermAIError

LOGGER = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"


@dataclass
class ChatChunk:
    """A single unit pulled from a streaming completion response."""

    text: str = ""
    thinking: str = ""
    is_final: bool = False
    error: Exception | None = None


def format_messages(messages: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
    """Convert transcript wire dicts to chat-completions messages.

    Messages carrying images are sent as a list of content parts.
    """
    formatted: list[dict[str, Any]] = []
    for message in messages:
        images = message.get("images") or []
        if not images:
            formatted.append({"role": message["role"], "content": message["content"]})
            continue
        parts: list[dict[str, Any]] = [{"type": "text", "text": message["content"]}]
        for image in images:
            parts.append({"type": "image_url", "image_url": {"url": image}})
        formatted.append({"role": message["role"], "content": parts})
    return formatted


def _text_field(delta: dict[str, Any], key: str) -> str:
    value = delta.get(key)
    return value if isinstance(value, str) else ""


def parse_sse_line(line: str) -> list[ChatChunk]:
    """Decode one server-sent-events line into zero or more chunks."""
    stripped = line.strip()
    if not stripped or not stripped.startswith("data:"):
        return []
    data = stripped[len("data:") :].strip()
    if data == DONE_SENTINEL:
        return [ChatChunk(is_final=True)]

    try:
        payload = json.loads(data)
    except json.JSONDecodeError:
        LOGGER.debug(
            "gateway.stream.bad_json",
            extra={"event": "gateway.stream.bad_json", "data": data[:200]},
        )
        return []
    if not isinstance(payload, dict):
        return []

    error = payload.get("error")
    if error:
        message = error.get("message") if isinstance(error, dict) else None
        return [ChatChunk(error=GatewayError(f"Stream error: {message or error}"))]

    choices = payload.get("choices") or []
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return []
    choice = choices[0]
    delta = choice.get("delta") or {}
    if not isinstance(delta, dict):
        LOGGER.debug(
            "gateway.stream.bad_delta",
            extra={"event": "gateway.stream.bad_delta", "data": data[:200]},
        )
        delta = {}

    chunks: list[ChatChunk] = []
    text = _text_field(delta, "content")
    thinking = _text_field(delta, "thinking") or _text_field(delta, "reasoning_content")
    if text or thinking:
        chunks.append(ChatChunk(text=text, thinking=thinking))
    if choice.get("finish_reason"):
        chunks.append(ChatChunk(is_final=True))
    return chunks


class GatewayStream:
    """An open streaming response; iterate ``chunks()`` and always ``aclose()``."""

    def __init__(self, response: httpx.Response) -> None:
        self._response = response
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def chunks(self) -> AsyncIterator[ChatChunk]:
        """Yield chunks in arrival order until a final marker or end of data."""
        async for line in self._response.aiter_lines():
            for chunk in parse_sse_line(line):
                yield chunk
                if chunk.is_final or chunk.error is not None:
                    return

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._response.aclose()


class CompletionGateway:
    """Open chat-completion streams against one configured profile."""

    def __init__(
        self,
        endpoint: str,
        model: str,
        api_key: str = "",
        *,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        top_p: float = 1.0,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.endpoint = endpoint.rstrip("/")
        self.model = model
        self.api_key = api_key
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.top_p = top_p
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(None, connect=timeout)
        )

    @classmethod
    def from_profile(
        cls, profile: dict[str, Any], *, client: httpx.AsyncClient | None = None
    ) -> CompletionGateway:
        """Build a gateway from a resolved ``[[profiles]]`` entry."""
        return cls(
            endpoint=profile["endpoint"],
            model=profile["model"],
            api_key=profile["api_key"],
            temperature=profile["temperature"],
            max_tokens=profile["max_tokens"],
            top_p=profile["top_p"],
            timeout=profile["timeout"],
            client=client,
        )

    @property
    def url(self) -> str:
        return f"{self.endpoint}/chat/completions"

    def build_payload(self, messages: Sequence[dict[str, Any]]) -> dict[str, Any]:
        """Return the JSON request body for ``messages``."""
        return {
            "model": self.model,
            "messages": format_messages(messages),
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "top_p": self.top_p,
            "stream": True,
        }

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "text/event-stream"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def open_stream(self, messages: Sequence[dict[str, Any]]) -> GatewayStream:
        """Send the request and return the open stream once headers arrive."""
        request = self._client.build_request(
            "POST", self.url, json=self.build_payload(messages), headers=self._headers()
        )
        LOGGER.info(
            "gateway.request.start",
            extra={
                "event": "gateway.request.start",
                "model": self.model,
                "messages": len(messages),
            },
        )
        try:
            response = await self._client.send(request, stream=True)
        except httpx.HTTPError as exc:
            raise self._map_exception(exc) from exc

        if not response.is_success:
            try:
                body = (await response.aread()).decode("utf-8", errors="replace")
            finally:
                await response.aclose()
            LOGGER.warning(
                "gateway.request.rejected",
                extra={
                    "event": "gateway.request.rejected",
                    "status_code": response.status_code,
                },
            )
            raise GatewayError(
                f"API error (status {response.status_code}): {body}",
                status_code=response.status_code,
                body=body,
            )
        return GatewayStream(response)

    def _map_exception(self, exc: Exception) -> TermAIError:
        if isinstance(exc, TermAIError):
            return exc
        if isinstance(
            exc,
            (
                httpx.ConnectError,
                httpx.ConnectTimeout,
                httpx.NetworkError,
            ),
        ):
            return GatewayConnectionError(f"Unable to connect to {self.endpoint}: {exc}")
        if isinstance(exc, httpx.TimeoutException):
            return GatewayConnectionError(f"Request to {self.endpoint} timed out.")
        return GatewayError(f"Failed to stream response from {self.endpoint}: {exc}")

    async def aclose(self) -> None:
        await self._client.aclose()
