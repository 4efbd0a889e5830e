from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from rt_rest_client.adapters.http_util import DEFAULT_TIMEOUT_SECONDS, timeouts_for
from rt_rest_client.domain.errors import NetworkRequestFailed
from rt_rest_client.domain.request_spec import FinalizedRequest

log = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class RawResponse:
    status_code: int
    headers: httpx.Headers
    content: bytes
    url: str

    @property
    def etag(self) -> str | None:
        value = self.headers.get("ETag")
        if value is None:
            return None
        return value.replace('"', "")

    def json(self) -> Any:
        return json.loads(self.content)


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 1)


async def execute(
    request: FinalizedRequest,
    transport: httpx.AsyncClient,
    *,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
) -> RawResponse:
    """
    Send `request` once over `transport` and return the response as received.

    Status codes are not interpreted. Every transport failure (DNS, connect, TLS,
    timeout, protocol) is raised as `NetworkRequestFailed` with the httpx error chained.
    """
    outgoing = transport.build_request(
        request.method,
        request.url,
        headers=list(request.headers),
        content=request.content,
        timeout=timeouts_for(timeout_seconds),
    )
    started = time.perf_counter()
    try:
        response = await transport.send(outgoing)
    except httpx.HTTPError as exc:
        log.warning(
            "rt.request.failed",
            method=request.method,
            url=request.url,
            error_type=exc.__class__.__name__,
            elapsed_ms=_elapsed_ms(started),
        )
        raise NetworkRequestFailed(
            f"{request.method} {request.url} failed: {exc.__class__.__name__}",
            method=request.method,
            url=request.url,
        ) from exc

    log.debug(
        "rt.request.sent",
        method=request.method,
        url=request.url,
        status=response.status_code,
        bytes=len(response.content),
        elapsed_ms=_elapsed_ms(started),
    )
    return RawResponse(
        status_code=response.status_code,
        headers=response.headers,
        content=response.content,
        url=str(response.url),
    )
