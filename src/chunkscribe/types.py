from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Union

ChunkStatus = Literal["transcribed", "exhausted", "failed"]


@dataclass(slots=True)
class MediaSource:
    input_reference: str
    resolved_url: str
    total_size: int = 0


@dataclass(frozen=True, slots=True)
class SingleShot:
    pass


@dataclass(frozen=True, slots=True)
class UnknownSizeFallback:
    pass


@dataclass(frozen=True, slots=True)
class MediumParallel:
    chunk_size: int
    max_parallel: int


@dataclass(frozen=True, slots=True)
class SafeParallel:
    chunk_size: int
    max_parallel: int


RetrievalStrategy = Union[SingleShot, UnknownSizeFallback, MediumParallel, SafeParallel]


@dataclass(frozen=True, slots=True)
class ChunkTask:
    offset: int
    end_inclusive: int

    @property
    def length(self) -> int:
        return self.end_inclusive - self.offset + 1


@dataclass(frozen=True, slots=True)
class Word:
    word: str
    start: float
    end: float


@dataclass(frozen=True, slots=True)
class Segment:
    start: float
    end: float
    text: str
    words: tuple[Word, ...] | None = None


@dataclass(frozen=True, slots=True)
class EngineTranscript:
    text: str
    segments: tuple[Segment, ...]
    words: tuple[Word, ...] = ()
    duration: float = 0.0


@dataclass(frozen=True, slots=True)
class ChunkResult:
    offset: int
    byte_length: int
    transcript: EngineTranscript


@dataclass(slots=True)
class MergedTranscript:
    text: str
    segments: list[Segment]
    words: list[Word]


@dataclass(frozen=True, slots=True)
class JobMeta:
    processed_duration: float
    segment_count: int
    bytes_processed: int
    file_size: int | None
    is_complete: bool | None
    parallelism: int
    chunk_size: int


@dataclass(slots=True)
class JobResult:
    merged: MergedTranscript
    meta: JobMeta
    strategy: RetrievalStrategy


@dataclass(frozen=True, slots=True)
class ProbeResult:
    total_size: int
    status_code: int | None = None
    content_type: str | None = None


@dataclass(slots=True)
class ChunkOutcome:
    status: ChunkStatus
    offset: int
    next_offset: int | None = None
    byte_length: int = 0
    transcript: EngineTranscript | None = None
    error: str | None = None
