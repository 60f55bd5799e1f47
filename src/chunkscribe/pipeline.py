from __future__ import annotations

import logging

import httpx

from chunkscribe.assembler import build_meta
from chunkscribe.config import ChunkingConfig
from chunkscribe.errors import PipelineError, TranscriptionError
from chunkscribe.merge import merge_chunks
from chunkscribe.scheduler import plan_tasks, run_batches
from chunkscribe.services.fetcher import ChunkFetcher
from chunkscribe.services.prober import probe_size
from chunkscribe.services.resolver import ResolverClient
from chunkscribe.services.transcriber import Transcriber
from chunkscribe.strategy import describe, parse_positive_int, select_strategy
from chunkscribe.types import (
    ChunkOutcome,
    ChunkResult,
    ChunkTask,
    EngineTranscript,
    JobResult,
    MediaSource,
    MediumParallel,
    SafeParallel,
    UnknownSizeFallback,
)

logger = logging.getLogger(__name__)


class TranscriptionPipeline:
    """Resolves, probes, fetches in chunks, transcribes and merges one media resource."""

    def __init__(
        self,
        *,
        resolver: ResolverClient,
        transcriber: Transcriber,
        chunking: ChunkingConfig | None = None,
        fetch_timeout_seconds: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.resolver = resolver
        self.transcriber = transcriber
        self.fetcher = ChunkFetcher(resolver)
        self.chunking = chunking or ChunkingConfig()
        self.fetch_timeout_seconds = fetch_timeout_seconds
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.fetch_timeout_seconds,
            transport=self.transport,
            follow_redirects=True,
        )

    async def run(
        self,
        reference: str,
        *,
        chunk_size: int | None = None,
        parallel: int | None = None,
    ) -> JobResult:
        async with self._client() as client:
            source = MediaSource(
                input_reference=reference,
                resolved_url=await self.resolver.resolve(client, reference),
            )
            probe = await probe_size(client, source.resolved_url)
            source.total_size = probe.total_size

            strategy = select_strategy(
                source.total_size,
                self.chunking,
                chunk_size=chunk_size,
                parallel=parallel,
            )
            logger.info("File size %s bytes, using %s", source.total_size or "unknown", describe(strategy))

            if isinstance(strategy, (MediumParallel, SafeParallel)):
                tasks = plan_tasks(source.total_size, strategy.chunk_size)

                async def worker(task: ChunkTask) -> ChunkResult:
                    return await self._transcribe_range(client, source, task)

                chunks = await run_batches(tasks, strategy.max_parallel, worker)
            else:
                chunk = await self._transcribe_whole(client, source)
                if isinstance(strategy, UnknownSizeFallback):
                    source.total_size = chunk.byte_length
                chunks = [chunk]

        merged = merge_chunks(chunks)
        meta = build_meta(merged, chunks, total_size=source.total_size, strategy=strategy)
        logger.info(
            "Finished %s: %s segments, %s bytes, %.2fs",
            reference,
            meta.segment_count,
            meta.bytes_processed,
            meta.processed_duration,
        )
        return JobResult(merged=merged, meta=meta, strategy=strategy)

    async def transcribe_chunk(
        self,
        reference: str,
        offset: int,
        *,
        chunk_size: int | None = None,
    ) -> ChunkOutcome:
        """Transcribe the single window starting at ``offset``.

        Running past the end of the resource is a normal ``exhausted`` outcome.
        """
        if offset < 0:
            raise ValueError("offset must not be negative")
        window = parse_positive_int(chunk_size) or self.chunking.safe_chunk_size

        try:
            async with self._client() as client:
                source = MediaSource(
                    input_reference=reference,
                    resolved_url=await self.resolver.resolve(client, reference),
                )
                payload = await self.fetcher.fetch_window(client, source, offset, offset + window - 1)
                if not payload:
                    logger.info("No more bytes at offset=%s for %s", offset, reference)
                    return ChunkOutcome(status="exhausted", offset=offset)
                transcript = await self._invoke(payload)
        except PipelineError as exc:
            logger.warning("Chunk at offset=%s failed: %s", offset, exc)
            return ChunkOutcome(status="failed", offset=offset, error=str(exc))

        return ChunkOutcome(
            status="transcribed",
            offset=offset,
            next_offset=offset + len(payload),
            byte_length=len(payload),
            transcript=transcript,
        )

    async def _transcribe_range(
        self,
        client: httpx.AsyncClient,
        source: MediaSource,
        task: ChunkTask,
    ) -> ChunkResult:
        payload = await self.fetcher.fetch_range(client, source, task)
        transcript = await self._invoke(payload)
        return ChunkResult(offset=task.offset, byte_length=len(payload), transcript=transcript)

    async def _transcribe_whole(self, client: httpx.AsyncClient, source: MediaSource) -> ChunkResult:
        payload = await self.fetcher.fetch_whole(client, source)
        transcript = await self._invoke(payload)
        return ChunkResult(offset=0, byte_length=len(payload), transcript=transcript)

    async def _invoke(self, payload: bytes) -> EngineTranscript:
        try:
            return await self.transcriber.transcribe(payload)
        except PipelineError:
            raise
        except Exception as exc:  # pylint: disable=broad-except
            raise TranscriptionError(str(exc).strip() or "Transcription engine failed") from exc
