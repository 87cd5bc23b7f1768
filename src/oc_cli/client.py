"""Async HTTP client for the opencode server API."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from enum import StrEnum
from types import TracebackType
from typing import Any

import httpx

from oc_cli.errors import ApiConnectionError, ApiError, NotFoundError

logger = logging.getLogger(__name__)

DIRECTORY_HEADER = "x-opencode-directory"
DEFAULT_TIMEOUT = 30.0


class PermissionReply(StrEnum):
    """Accepted replies to a permission request."""

    ONCE = "once"
    ALWAYS = "always"
    REJECT = "reject"


def _error_message(response: httpx.Response) -> str:
    """Pull the most useful message out of an error response body."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        data = body.get("data")
        if isinstance(data, dict) and data.get("message"):
            return str(data["message"])
        for key in ("message", "error"):
            if body.get(key):
                return str(body[key])
    text = response.text.strip()
    return text or f"HTTP {response.status_code}"


def _raise_for_status(response: httpx.Response) -> None:
    if response.status_code < 400:
        return
    message = _error_message(response)
    if response.status_code == 404:
        raise NotFoundError(message, status_code=404)
    raise ApiError(message, status_code=response.status_code)


async def iter_sse_events(lines: AsyncIterator[str]) -> AsyncIterator[dict[str, Any]]:
    """Decode Server-Sent Event frames into JSON payloads.

    ``data:`` lines are accumulated until a blank line ends the frame.
    Comment lines (``:`` prefix) and other fields are ignored. Frames whose
    data is not a JSON object are dropped.

    Args:
        lines: Decoded response lines without line terminators.

    Yields:
        One decoded mapping per frame.
    """
    data_lines: list[str] = []

    def flush() -> dict[str, Any] | None:
        if not data_lines:
            return None
        raw = "\n".join(data_lines)
        data_lines.clear()
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            logger.debug("Dropping undecodable SSE frame: %r", raw[:200])
            return None
        if not isinstance(payload, dict):
            logger.debug("Dropping non-object SSE frame: %r", raw[:200])
            return None
        return payload

    async for line in lines:
        if not line:
            payload = flush()
            if payload is not None:
                yield payload
            continue
        if line.startswith(":"):
            continue
        name, _, value = line.partition(":")
        if name == "data":
            data_lines.append(value[1:] if value.startswith(" ") else value)

    payload = flush()
    if payload is not None:
        yield payload


class OpencodeClient:
    """Thin async wrapper over the opencode server REST and SSE endpoints.

    When ``directory`` is set every request carries the
    ``x-opencode-directory`` header, scoping it to that project.
    """

    def __init__(
        self,
        base_url: str,
        directory: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.directory = directory
        headers = {DIRECTORY_HEADER: directory} if directory else {}
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> OpencodeClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
    ) -> Any:
        logger.debug("%s %s params=%s", method, path, params)
        try:
            response = await self._client.request(method, path, params=params, json=json_body)
        except httpx.TransportError as e:
            raise ApiConnectionError(f"Cannot connect to {self.base_url}: {e}") from e
        _raise_for_status(response)
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def _stream(self, path: str, params: dict[str, Any] | None = None) -> AsyncIterator[dict[str, Any]]:
        logger.debug("GET %s (stream) params=%s", path, params)
        # Event streams stay open indefinitely between events.
        timeout = httpx.Timeout(self._client.timeout.connect, read=None)
        try:
            async with self._client.stream("GET", path, params=params, timeout=timeout) as response:
                if response.status_code >= 400:
                    await response.aread()
                    _raise_for_status(response)
                async for payload in iter_sse_events(response.aiter_lines()):
                    yield payload
        except httpx.TransportError as e:
            raise ApiConnectionError(f"Cannot connect to {self.base_url}: {e}") from e

    # Sessions

    async def list_sessions(self) -> list[dict[str, Any]]:
        return await self._request("GET", "/session") or []

    async def create_session(self, title: str | None = None, directory: str | None = None) -> dict[str, Any]:
        body = {"title": title} if title else {}
        params = {"directory": directory} if directory else None
        return await self._request("POST", "/session", params=params, json_body=body)

    async def get_session(self, session_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/session/{session_id}")

    async def delete_session(self, session_id: str) -> Any:
        return await self._request("DELETE", f"/session/{session_id}")

    async def session_messages(self, session_id: str) -> list[dict[str, Any]]:
        return await self._request("GET", f"/session/{session_id}/message") or []

    async def session_status(self) -> dict[str, Any]:
        """Fetch the sessionID -> status map. Idle sessions are usually absent."""
        return await self._request("GET", "/session/status") or {}

    async def prompt_async(
        self,
        session_id: str,
        parts: list[dict[str, Any]],
        model: dict[str, str] | None = None,
        agent: str | None = None,
        tools: dict[str, bool] | None = None,
    ) -> None:
        """Send a prompt without waiting for the assistant to finish."""
        body: dict[str, Any] = {"parts": parts}
        if model:
            body["model"] = model
        if agent:
            body["agent"] = agent
        if tools is not None:
            body["tools"] = tools
        await self._request("POST", f"/session/{session_id}/prompt_async", json_body=body)

    async def abort_session(self, session_id: str) -> Any:
        return await self._request("POST", f"/session/{session_id}/abort")

    # Permissions and questions

    async def reply_permission(self, request_id: str, reply: PermissionReply | str) -> Any:
        return await self._request("POST", f"/permission/{request_id}/reply", json_body={"reply": str(reply)})

    async def reply_question(self, request_id: str, answers: list[list[str]]) -> Any:
        return await self._request("POST", f"/question/{request_id}/reply", json_body={"answers": answers})

    async def reject_question(self, request_id: str) -> Any:
        return await self._request("POST", f"/question/{request_id}/reject")

    # Providers

    async def list_providers(self) -> dict[str, Any]:
        """All known providers, including unconfigured ones."""
        return await self._request("GET", "/provider") or {}

    async def config_providers(self) -> dict[str, Any]:
        """Providers that are configured and usable."""
        return await self._request("GET", "/config/providers") or {}

    # Events

    def subscribe_events(self, directory: str | None = None) -> AsyncIterator[dict[str, Any]]:
        """Subscribe to the instance-scoped event stream."""
        params = {"directory": directory} if directory else None
        return self._stream("/event", params=params)

    def global_events(self) -> AsyncIterator[dict[str, Any]]:
        """Subscribe to events from every instance; items are ``{directory, payload}``."""
        return self._stream("/global/event")
