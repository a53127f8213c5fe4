"""OpenAI-compatible chat model client."""

from __future__ import annotations

import asyncio
import json
from typing import Any
from urllib.parse import urlparse, urlunparse

import httpx

from toolvote.core.sampling import SamplingParams
from toolvote.errors import GenerationError
from toolvote.models.base import BaseChatModel, ModelResponse, ToolCall
from toolvote.util.logging import get_logger

logger = get_logger(__name__)


class OpenAICompatError(GenerationError):
    """Raised when the OpenAI-compatible backend returns an error."""


class OpenAICompatChatModel(BaseChatModel):
    """Async HTTP client for OpenAI-compatible chat/completions."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str,
        timeout_seconds: int = 30,
        max_response_bytes: int = 2_000_000,
        extra_headers: dict[str, str] | None = None,
        force_chatcompletions_path: str | None = None,
        send_top_k: bool = True,
        max_retries: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        normalized = base_url.strip()
        if not normalized.startswith(("http://", "https://")):
            normalized = f"http://{normalized}"
        self.base_url = normalized.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.max_response_bytes = max_response_bytes
        self.extra_headers = extra_headers or {}
        self.force_chatcompletions_path = force_chatcompletions_path
        self.send_top_k = send_top_k
        self.max_retries = max(1, max_retries)
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds), transport=transport
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def _request_payload(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None,
        sampling: SamplingParams | None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"model": self.model, "messages": messages}
        if tools:
            payload["tools"] = tools
            payload["tool_choice"] = "auto"
        if sampling is not None:
            options = sampling.as_options()
            if not self.send_top_k:
                options.pop("top_k")
            payload.update(options)
        return payload

    def _build_url(self) -> str:
        parsed = urlparse(self.base_url)
        if self.force_chatcompletions_path:
            forced_path = self.force_chatcompletions_path
            if not forced_path.startswith("/"):
                forced_path = f"/{forced_path}"
            return urlunparse(parsed._replace(path=forced_path, params="", query="", fragment=""))
        path = parsed.path or ""
        if path in {"", "/"}:
            base_path = "/v1"
        else:
            base_path = path.rstrip("/")
            segments = [segment for segment in base_path.split("/") if segment]
            if "v1" not in segments:
                base_path = f"{base_path}/v1"
        if base_path.endswith("/chat/completions"):
            final_path = base_path
        else:
            final_path = f"{base_path}/chat/completions"
        return urlunparse(parsed._replace(path=final_path, params="", query="", fragment=""))

    async def generate(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        sampling: SamplingParams | None = None,
    ) -> ModelResponse:
        url = self._build_url()
        headers = {"Authorization": f"Bearer {self.api_key}", **self.extra_headers}
        payload = self._request_payload(messages, tools, sampling)

        last_error: Exception | None = None
        for attempt in range(self.max_retries):
            try:
                response = await self._client.post(url, headers=headers, json=payload)
                if response.status_code in {429} or response.status_code >= 500:
                    raise OpenAICompatError(
                        f"Retryable error {response.status_code}: {response.text[:200]}"
                    )
                response.raise_for_status()
                if len(response.content) > self.max_response_bytes:
                    raise OpenAICompatError("Response too large")
                try:
                    data = response.json()
                except json.JSONDecodeError as exc:
                    raise OpenAICompatError("Malformed JSON response") from exc
                return _parse_response(data, tools)
            except (httpx.HTTPError, OpenAICompatError) as exc:
                last_error = exc
                if attempt == self.max_retries - 1:
                    break
                delay = min(2**attempt, 10)
                logger.warning(
                    "Chat request failed, retrying in %ss (%s/%s): %s",
                    delay,
                    attempt + 1,
                    self.max_retries,
                    exc,
                )
                await asyncio.sleep(delay)
        raise OpenAICompatError(f"OpenAI-compatible request failed: {last_error}")


def _parse_response(data: dict[str, Any], tools: list[dict[str, Any]] | None) -> ModelResponse:
    choices = data.get("choices") or [{}]
    message = choices[0].get("message") or {}
    content = message.get("content")
    if isinstance(content, list):
        content = "\n".join(
            str(part.get("text")) for part in content if isinstance(part, dict) and part.get("text")
        )
    text = content if isinstance(content, str) else ""
    calls: list[ToolCall] = []
    for raw_call in message.get("tool_calls") or []:
        function = raw_call.get("function") or {}
        name = function.get("name")
        if not name:
            continue
        calls.append(
            ToolCall(
                id=raw_call.get("id"),
                name=name,
                arguments=_parse_arguments(function.get("arguments")),
            )
        )
    if not calls and tools and text:
        fallback = _tool_call_from_content(text, tools)
        if fallback is not None:
            calls.append(fallback)
    return ModelResponse(text=text, tool_calls=calls)


def _parse_arguments(raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str) and raw.strip():
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            return {}
        return parsed if isinstance(parsed, dict) else {}
    return {}


def _tool_call_from_content(text: str, tools: list[dict[str, Any]]) -> ToolCall | None:
    """Recover a tool call that a model wrote into its text content."""
    stripped = text.strip()
    if not stripped.startswith("{"):
        return None
    try:
        data = json.loads(stripped)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None
    name = data.get("name")
    names = {tool.get("function", {}).get("name") for tool in tools}
    if not isinstance(name, str) or name not in names:
        return None
    return ToolCall(name=name, arguments=_parse_arguments(data.get("arguments")))
