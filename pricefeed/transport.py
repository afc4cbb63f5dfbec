"""Shared HTTP plumbing for the REST price sources.

Every upstream call goes through :func:`get_json` so transport, status and
decoding failures all surface as :mod:`pricefeed.errors` types.
"""

from __future__ import annotations

import math
from typing import Any

import httpx

from .errors import DecodeError, InvalidRequest, NotFound, TransportError


async def get_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    source: str,
    timeout: float,
    params: dict[str, str] | None = None,
) -> Any:
    """GET ``url`` and return the decoded JSON body."""
    try:
        resp = await client.get(url, params=params, timeout=timeout)
    except httpx.InvalidURL as e:
        raise InvalidRequest(f"{source}: cannot build request: {e}") from e
    except httpx.TimeoutException as e:
        raise TransportError(f"{source}: timed out after {timeout:g}s") from e
    except httpx.HTTPError as e:
        raise TransportError(f"{source}: {type(e).__name__}: {e}") from e

    if resp.status_code == 429:
        raise TransportError(f"{source}: rate limited (HTTP 429)")
    if resp.status_code in (400, 404):
        raise NotFound(f"{source}: HTTP {resp.status_code} for {resp.request.url}")
    if resp.status_code >= 400:
        raise TransportError(f"{source}: HTTP {resp.status_code}")

    try:
        return resp.json()
    except ValueError as e:
        raise DecodeError(f"{source}: response is not JSON") from e


def parse_price(value: Any, *, source: str) -> float:
    """Coerce a payload value (number or decimal string) to a usable price."""
    if isinstance(value, bool):
        raise DecodeError(f"{source}: price is a boolean")
    try:
        price = float(value)
    except (TypeError, ValueError, OverflowError):
        raise DecodeError(f"{source}: price {value!r} is not numeric") from None
    if not math.isfinite(price) or price <= 0:
        raise DecodeError(f"{source}: price {value!r} is not a positive number")
    return price
