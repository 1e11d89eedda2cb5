"""
HTTP helpers — one configured ``httpx.AsyncClient`` per backend.

Every registry-backed backend goes through ``get_json`` so transport
errors, bad status codes and undecodable bodies all surface as
``NetworkError``.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from zap.core.config import ZapSettings
from zap.core.errors import NetworkError

logger = logging.getLogger(__name__)


def make_client(settings: ZapSettings) -> httpx.AsyncClient:
    """Build a client with the configured user agent and timeout."""
    return httpx.AsyncClient(
        headers={"User-Agent": settings.user_agent},
        timeout=settings.http_timeout,
        follow_redirects=True,
    )


async def get_json(
    client: httpx.AsyncClient,
    url: str,
    params: Any = None,
    *,
    missing_ok: bool = False,
) -> Any:
    """GET ``url`` and decode the JSON body.

    Args:
        client: Client to send the request with.
        url: Absolute URL.
        params: Query parameters (mapping or list of pairs).
        missing_ok: Return ``None`` instead of raising on a 404.

    Raises:
        NetworkError: On transport failure, non-2xx status or invalid JSON.
    """
    try:
        response = await client.get(url, params=params)
    except httpx.HTTPError as e:
        raise NetworkError(f"Request to {url} failed: {e}") from e

    if missing_ok and response.status_code == 404:
        logger.debug("404 from %s", url)
        return None

    try:
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise NetworkError(f"{url} returned HTTP {response.status_code}") from e

    try:
        return response.json()
    except ValueError as e:
        raise NetworkError(f"Invalid JSON from {url}: {e}") from e
