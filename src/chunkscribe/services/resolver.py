from __future__ import annotations

import logging

import httpx

from chunkscribe.errors import ResolutionError
from chunkscribe.utils.url import has_media_extension

logger = logging.getLogger(__name__)


class ResolverClient:
    """Turns a source page reference into a direct, range-capable download URL."""

    def __init__(self, resolver_url: str | None, api_key: str | None = None) -> None:
        self.resolver_url = resolver_url
        self.api_key = api_key

    async def resolve(self, client: httpx.AsyncClient, reference: str) -> str:
        if has_media_extension(reference):
            return reference

        if not self.resolver_url:
            raise ResolutionError(f"No resolver configured for non-media reference: {reference}")

        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        try:
            response = await client.get(self.resolver_url, params={"url": reference}, headers=headers)
        except httpx.HTTPError as exc:
            raise ResolutionError(f"Resolver request failed: {exc}") from exc

        if response.status_code >= 400:
            raise ResolutionError(
                f"Failed to resolve URL (status {response.status_code})",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise ResolutionError("Resolver returned a non-JSON response") from exc

        download_url = payload.get("downloadUrl") if isinstance(payload, dict) else None
        if not isinstance(download_url, str) or not download_url.strip():
            raise ResolutionError("Resolver did not return a valid downloadUrl")

        logger.info("Resolved download URL for %s", reference)
        return download_url.strip()
