"""
Shared HTTP client helpers for provider adapters.

Provides consistent timeouts and error mapping so adapters surface a single
ProviderInvocationError type with a stable subkind. No retries are applied
here; retry policy belongs to callers.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx

from chatrelay.core import InvocationErrorKind, ProviderInvocationError, get_logger, request_id_ctx

logger = get_logger(__name__)

_NETWORK_ERRORS = (
    httpx.ConnectError,
    httpx.ReadTimeout,
    httpx.WriteTimeout,
    httpx.NetworkError,
    httpx.TimeoutException,
    httpx.RemoteProtocolError,
)


def create_http_client(
    base_url: str,
    timeout_seconds: int,
    headers: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """
    Build an AsyncClient with consistent timeout settings.

    Args:
        base_url: Base URL for the provider.
        timeout_seconds: Total timeout for requests.
        headers: Default headers to include.
        transport: Optional transport (used by tests with MockTransport).
    """
    timeout = httpx.Timeout(
        timeout_seconds, connect=timeout_seconds, read=timeout_seconds, write=timeout_seconds
    )
    return httpx.AsyncClient(
        base_url=base_url.rstrip("/"),
        timeout=timeout,
        headers=headers or {},
        transport=transport,
    )


def _with_request_id(kwargs: dict[str, Any]) -> dict[str, Any]:
    headers = kwargs.pop("headers", {}) or {}
    request_id = request_id_ctx.get()
    if request_id and "X-Request-ID" not in headers:
        headers["X-Request-ID"] = request_id
    kwargs["headers"] = headers
    return kwargs


def network_error(exc: Exception) -> ProviderInvocationError:
    return ProviderInvocationError(
        InvocationErrorKind.NETWORK,
        "Provider unreachable",
        details={"reason": str(exc) or exc.__class__.__name__},
    )


def malformed(message: str = "Provider returned invalid response", body: Any = None) -> ProviderInvocationError:
    details = {"body": body if isinstance(body, str) else str(body)[:500]} if body is not None else None
    return ProviderInvocationError(InvocationErrorKind.MALFORMED_RESPONSE, message, details=details)


async def send_request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    **kwargs: Any,
) -> httpx.Response:
    """Execute an HTTP request, mapping transport errors to the network kind."""
    try:
        return await client.request(method, url, **_with_request_id(kwargs))
    except _NETWORK_ERRORS as exc:
        raise network_error(exc) from exc
    except httpx.HTTPError as exc:
        raise network_error(exc) from exc


@asynccontextmanager
async def open_stream(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    **kwargs: Any,
) -> AsyncIterator[httpx.Response]:
    """
    Open a streaming response and guarantee it is closed on every exit path.

    Status errors are raised before the body is consumed.
    """
    request = client.build_request(method, url, **_with_request_id(kwargs))
    try:
        response = await client.send(request, stream=True)
    except httpx.HTTPError as exc:
        raise network_error(exc) from exc
    try:
        if response.status_code >= 400:
            await response.aread()
            raise_for_status(response)
        yield response
    finally:
        await response.aclose()


async def iter_lines(response: httpx.Response) -> AsyncIterator[str]:
    """Iterate response lines, mapping mid-body transport failures."""
    try:
        async for line in response.aiter_lines():
            yield line
    except httpx.HTTPError as exc:
        raise network_error(exc) from exc


def raise_for_status(response: httpx.Response) -> None:
    """Map non-2xx status codes to the upstream-status kind."""
    status = response.status_code
    if status < 400:
        return

    details = _safe_error_details(response)
    logger.warning("Provider HTTP error", data=details)
    raise ProviderInvocationError(
        InvocationErrorKind.UPSTREAM_STATUS,
        f"Provider returned HTTP {status}",
        details=details,
    )


def parse_json(response: httpx.Response) -> Any:
    """Parse JSON with consistent error handling."""
    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        snippet = response.text[:500] if response.text else ""
        raise malformed(body=snippet) from exc


def payload_dict(value: Any, body: Any = None) -> dict[str, Any]:
    """
    Return a JSON object from a provider payload, raising malformed otherwise.

    A missing (null) part is treated as an empty object.
    """
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise malformed(body=body if body is not None else value)
    return value


def payload_list(value: Any, body: Any = None) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise malformed(body=body if body is not None else value)
    return value


def parse_json_line(raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise malformed(body=raw[:500]) from exc


def _safe_error_details(response: httpx.Response) -> dict[str, Any]:
    """Return a small, non-sensitive error payload for debugging."""
    body_snippet = ""
    try:
        if response.text:
            body_snippet = response.text[:300]
    except (httpx.ResponseNotRead, UnicodeDecodeError):
        body_snippet = ""

    return {
        "status": response.status_code,
        "body": body_snippet,
        "url": str(response.url),
    }
