from __future__ import annotations

import logging

import httpx

from chunkscribe.errors import ProbeError
from chunkscribe.types import ProbeResult

logger = logging.getLogger(__name__)


def parse_content_range_total(header: str | None) -> int:
    """Total size from ``bytes 0-0/12345``; 0 when absent, ``*`` or garbled."""
    if not header:
        return 0
    parts = header.split("/")
    if len(parts) != 2:
        return 0
    try:
        total = int(parts[1].strip())
    except ValueError:
        return 0
    return total if total > 0 else 0


async def _probe_once(client: httpx.AsyncClient, url: str) -> ProbeResult:
    try:
        async with client.stream("GET", url, headers={"Range": "bytes=0-0"}) as response:
            status = response.status_code
            content_range = response.headers.get("content-range")
            content_type = response.headers.get("content-type")
    except httpx.HTTPError as exc:
        raise ProbeError(f"Probe request failed: {exc}") from exc

    logger.info("Probe status: %s Content-Range: %s Content-Type: %s", status, content_range, content_type)
    if not 200 <= status < 300:
        raise ProbeError(f"Probe returned status {status}", status_code=status)

    total = parse_content_range_total(content_range)
    if total == 0:
        raise ProbeError("Probe response carried no usable size", status_code=status)
    return ProbeResult(total_size=total, status_code=status, content_type=content_type)


async def probe_size(client: httpx.AsyncClient, url: str) -> ProbeResult:
    try:
        return await _probe_once(client, url)
    except ProbeError as exc:
        logger.warning("Size probe unusable, treating size as unknown: %s", exc)
        return ProbeResult(total_size=0, status_code=exc.status_code)
