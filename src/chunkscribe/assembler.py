from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from chunkscribe.types import (
    ChunkOutcome,
    ChunkResult,
    EngineTranscript,
    JobMeta,
    JobResult,
    MediumParallel,
    MergedTranscript,
    RetrievalStrategy,
    SafeParallel,
    Segment,
    Word,
)


def build_meta(
    merged: MergedTranscript,
    chunks: Sequence[ChunkResult],
    *,
    total_size: int,
    strategy: RetrievalStrategy,
) -> JobMeta:
    bytes_processed = sum(chunk.byte_length for chunk in chunks)
    processed_duration = merged.segments[-1].end if merged.segments else 0.0

    if isinstance(strategy, (MediumParallel, SafeParallel)):
        parallelism = strategy.max_parallel
        chunk_size = strategy.chunk_size
    else:
        parallelism = 1
        chunk_size = bytes_processed

    file_size = total_size if total_size > 0 else None
    return JobMeta(
        processed_duration=processed_duration,
        segment_count=len(merged.segments),
        bytes_processed=bytes_processed,
        file_size=file_size,
        is_complete=bytes_processed >= file_size if file_size is not None else None,
        parallelism=parallelism,
        chunk_size=chunk_size,
    )


def word_to_dict(word: Word) -> dict[str, Any]:
    return {"word": word.word, "start": word.start, "end": word.end}


def segment_to_dict(segment: Segment) -> dict[str, Any]:
    item: dict[str, Any] = {"start": segment.start, "end": segment.end, "text": segment.text}
    if segment.words is not None:
        item["words"] = [word_to_dict(word) for word in segment.words]
    return item


def meta_to_dict(meta: JobMeta) -> dict[str, Any]:
    return {
        "processed_duration": meta.processed_duration,
        "segment_count": meta.segment_count,
        "bytes_processed": meta.bytes_processed,
        "file_size": meta.file_size,
        "is_complete": meta.is_complete,
        "parallelism": meta.parallelism,
        "chunk_size": meta.chunk_size,
    }


def to_payload(result: JobResult) -> dict[str, Any]:
    return {
        "text": result.merged.text,
        "segments": [segment_to_dict(segment) for segment in result.merged.segments],
        "words": [word_to_dict(word) for word in result.merged.words],
        "meta": meta_to_dict(result.meta),
    }


def transcript_to_dict(transcript: EngineTranscript) -> dict[str, Any]:
    return {
        "text": transcript.text,
        "segments": [segment_to_dict(segment) for segment in transcript.segments],
        "words": [word_to_dict(word) for word in transcript.words],
        "duration": transcript.duration,
    }


def chunk_outcome_to_payload(outcome: ChunkOutcome) -> dict[str, Any]:
    if outcome.status == "exhausted":
        return {"done": True, "offset": outcome.offset, "message": "No more bytes"}
    if outcome.status == "failed":
        return {"done": False, "offset": outcome.offset, "error": outcome.error}
    return {
        "done": False,
        "offset": outcome.offset,
        "next_offset": outcome.next_offset,
        "chunk_size": outcome.byte_length,
        "result": transcript_to_dict(outcome.transcript) if outcome.transcript is not None else None,
    }
