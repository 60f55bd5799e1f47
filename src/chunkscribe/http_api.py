from __future__ import annotations

import logging
from typing import Any

from starlette.requests import Request
from starlette.responses import JSONResponse

from chunkscribe.assembler import chunk_outcome_to_payload, to_payload
from chunkscribe.pipeline import TranscriptionPipeline
from chunkscribe.strategy import parse_positive_int

logger = logging.getLogger(__name__)


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _parse_offset(raw: str | None) -> int | None:
    if raw is None or raw == "":
        return 0
    try:
        offset = int(raw)
    except ValueError:
        return None
    return offset if offset >= 0 else None


class TranscribeRoutes:
    """Plain HTTP endpoints in front of the pipeline."""

    def __init__(self, pipeline: TranscriptionPipeline) -> None:
        self.pipeline = pipeline

    def register(self, mcp: Any, path: str) -> None:
        mcp.custom_route(path, methods=["GET"])(self.transcribe)
        mcp.custom_route(f"{path.rstrip('/')}/chunk", methods=["GET"])(self.transcribe_chunk)

    async def transcribe(self, request: Request) -> JSONResponse:
        url = (request.query_params.get("url") or "").strip()
        if not url:
            return _error("Missing ?url", 400)

        chunk_size = parse_positive_int(request.query_params.get("chunk"))
        parallel = parse_positive_int(request.query_params.get("parallel"))
        try:
            result = await self.pipeline.run(url, chunk_size=chunk_size, parallel=parallel)
        except Exception as exc:  # pylint: disable=broad-except
            message = str(exc).strip() or "Unknown pipeline error"
            logger.exception("Transcription of %s failed: %s", url, message)
            return _error(message, 500)

        return JSONResponse(to_payload(result))

    async def transcribe_chunk(self, request: Request) -> JSONResponse:
        url = (request.query_params.get("url") or "").strip()
        if not url:
            return _error("Missing ?url", 400)

        offset = _parse_offset(request.query_params.get("offset"))
        if offset is None:
            return _error("Invalid offset", 400)

        chunk_size = parse_positive_int(request.query_params.get("chunk"))
        try:
            outcome = await self.pipeline.transcribe_chunk(url, offset, chunk_size=chunk_size)
        except Exception as exc:  # pylint: disable=broad-except
            message = str(exc).strip() or "Unknown pipeline error"
            logger.exception("Chunk transcription of %s failed: %s", url, message)
            return _error(message, 500)

        if outcome.status == "failed":
            return _error(outcome.error or "Chunk transcription failed", 500)
        return JSONResponse(chunk_outcome_to_payload(outcome))
