from __future__ import annotations

from typing import Any

from fastmcp import FastMCP
from mcp.types import ToolAnnotations

from chunkscribe.assembler import chunk_outcome_to_payload, to_payload
from chunkscribe.errors import PipelineError
from chunkscribe.pipeline import TranscriptionPipeline


class ToolRegistry:
    def __init__(self, pipeline: TranscriptionPipeline) -> None:
        self.pipeline = pipeline

    def register(self, mcp: FastMCP) -> None:
        _ro = ToolAnnotations(readOnlyHint=True, openWorldHint=True)

        @mcp.tool(annotations=_ro)
        async def transcribe(
            url: str,
            chunk_size: int | None = None,
            parallel: int | None = None,
        ) -> dict[str, Any]:
            """Transcribe a whole media resource, fetched in byte-range chunks.

            Args:
                url: Direct media URL or a page URL the resolver can turn into one
                chunk_size: Bytes per chunk for large files (default: picked from file size)
                parallel: Chunks transcribed concurrently per batch (default: picked from file size)

            Returns:
                Merged transcript text, ordered segments with timings, and job metadata.
            """
            try:
                result = await self.pipeline.run(url, chunk_size=chunk_size, parallel=parallel)
            except PipelineError as exc:
                return {"error": exc.kind, "message": str(exc)}
            return to_payload(result)

        @mcp.tool(annotations=_ro)
        async def transcribe_chunk(
            url: str,
            offset: int = 0,
            chunk_size: int | None = None,
        ) -> dict[str, Any]:
            """Transcribe one byte window of a media resource.

            Args:
                url: Direct media URL or a page URL the resolver can turn into one
                offset: First byte of the window (default: 0)
                chunk_size: Window size in bytes (default: 2MB)

            Returns:
                The window's transcript and next_offset, or done=true once no bytes remain.
            """
            if offset < 0:
                return {"error": "invalid_offset", "offset": offset}
            outcome = await self.pipeline.transcribe_chunk(url, offset, chunk_size=chunk_size)
            if outcome.status == "failed":
                return {"error": "chunk_failed", "message": outcome.error, "offset": offset}
            return chunk_outcome_to_payload(outcome)
