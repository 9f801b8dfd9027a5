from __future__ import annotations

from typing import Any

import httpx

from ..errors import UpstreamError


async def get_json(
    http: httpx.AsyncClient,
    url: str,
    *,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    timeout: float | None = None,
) -> Any:
    response = await _get(http, url, params=params, headers=headers, timeout=timeout)
    try:
        return response.json()
    except ValueError as exc:
        raise UpstreamError(f"Unreadable response from {url}") from exc


async def get_text(
    http: httpx.AsyncClient,
    url: str,
    *,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    timeout: float | None = None,
) -> str:
    response = await _get(http, url, params=params, headers=headers, timeout=timeout)
    return response.text


async def _get(
    http: httpx.AsyncClient,
    url: str,
    *,
    params: dict[str, Any] | None,
    headers: dict[str, str] | None,
    timeout: float | None,
) -> httpx.Response:
    try:
        response = await http.get(url, params=params, headers=headers, timeout=timeout)
    except httpx.HTTPError as exc:
        raise UpstreamError(f"Request to {url} failed: {exc}") from exc

    if response.status_code >= 400:
        raise UpstreamError(f"Request to {url} failed: {response.status_code}")
    return response
