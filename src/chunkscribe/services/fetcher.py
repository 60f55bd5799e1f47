from __future__ import annotations

import logging
import re

import httpx

from chunkscribe.errors import AuthExpiredError, FetchError, ValidationError
from chunkscribe.services.resolver import ResolverClient
from chunkscribe.types import ChunkTask, MediaSource

logger = logging.getLogger(__name__)

AUTH_FAILURE_STATUSES = (401, 403)
SUCCESS_STATUSES = (200, 206)
RANGE_NOT_SATISFIABLE = 416
HEAD_BYTES = 64

NON_MEDIA_HEAD_RE = re.compile(r'<!DOCTYPE|<html|\{"error', re.IGNORECASE)
MEDIA_CONTENT_TYPE_RE = re.compile(r"audio|video", re.IGNORECASE)


def validate_payload(payload: bytes, *, offset: int = 0) -> None:
    """Reject empty bodies and bodies that are really an HTML page or JSON error."""
    if not payload:
        raise ValidationError(f"Origin returned an empty payload at offset={offset}")

    head = payload[:HEAD_BYTES]
    decoded = head.decode("utf-8", errors="replace")
    logger.debug("Chunk head at offset=%s raw=%s decoded=%r", offset, list(head), decoded)
    if NON_MEDIA_HEAD_RE.search(decoded):
        raise ValidationError(f"Origin returned non-audio data at offset={offset}")


def validate_content_type(content_type: str) -> None:
    if not MEDIA_CONTENT_TYPE_RE.search(content_type):
        raise ValidationError(f"Invalid media response (content-type={content_type})")


class ChunkFetcher:
    def __init__(self, resolver: ResolverClient) -> None:
        self.resolver = resolver

    async def fetch_range(self, client: httpx.AsyncClient, source: MediaSource, task: ChunkTask) -> bytes:
        headers = {"Range": f"bytes={task.offset}-{task.end_inclusive}"}
        response = await self._get_with_refresh(client, source, headers)
        self._check_status(response)

        payload = response.content
        logger.info("Fetched chunk offset=%s bytes=%s", task.offset, len(payload))
        validate_payload(payload, offset=task.offset)
        return payload

    async def fetch_whole(self, client: httpx.AsyncClient, source: MediaSource) -> bytes:
        response = await self._get_with_refresh(client, source, {})
        self._check_status(response)

        content_type = response.headers.get("content-type", "")
        payload = response.content
        logger.info("Full fetch content-type: %s bytes=%s", content_type, len(payload))
        validate_content_type(content_type)
        validate_payload(payload)
        return payload

    async def fetch_window(
        self,
        client: httpx.AsyncClient,
        source: MediaSource,
        offset: int,
        end_inclusive: int,
    ) -> bytes:
        """Fetch one range; an empty result means the resource has no bytes left."""
        headers = {"Range": f"bytes={offset}-{end_inclusive}"}
        response = await self._get_with_refresh(client, source, headers)
        if response.status_code == RANGE_NOT_SATISFIABLE:
            return b""
        self._check_status(response)

        payload = response.content
        if not payload:
            return b""
        validate_payload(payload, offset=offset)
        return payload

    async def _get_with_refresh(
        self,
        client: httpx.AsyncClient,
        source: MediaSource,
        headers: dict[str, str],
    ) -> httpx.Response:
        try:
            return await self._get(client, source.resolved_url, headers)
        except AuthExpiredError as exc:
            logger.info("Download URL rejected (%s), re-resolving %s", exc.status_code, source.input_reference)

        source.resolved_url = await self.resolver.resolve(client, source.input_reference)
        try:
            return await self._get(client, source.resolved_url, headers)
        except AuthExpiredError as exc:
            raise FetchError(
                f"URL expired or unauthorized after refresh (status {exc.status_code})",
                status_code=exc.status_code,
            ) from exc

    @staticmethod
    async def _get(client: httpx.AsyncClient, url: str, headers: dict[str, str]) -> httpx.Response:
        try:
            response = await client.get(url, headers=headers)
        except httpx.TimeoutException as exc:
            raise FetchError("Origin too slow or unresponsive") from exc
        except httpx.HTTPError as exc:
            raise FetchError(f"Failed to fetch origin: {exc}") from exc

        if response.status_code in AUTH_FAILURE_STATUSES:
            raise AuthExpiredError("URL expired or unauthorized", status_code=response.status_code)
        return response

    @staticmethod
    def _check_status(response: httpx.Response) -> None:
        status = response.status_code
        if status in SUCCESS_STATUSES:
            return
        if status >= 500:
            raise FetchError(f"Origin error {status}", status_code=status)
        raise FetchError(f"Origin fetch failed: {status}", status_code=status)
