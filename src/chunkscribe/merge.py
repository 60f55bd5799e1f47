from __future__ import annotations

import re
from collections.abc import Iterable

from chunkscribe.types import ChunkResult, MergedTranscript, Segment, Word

DUPLICATE_OVERLAP_RATIO = 0.5
MIN_SPAN_SECONDS = 1e-3

_WHITESPACE_RE = re.compile(r"\s+")
_PUNCTUATION_RE = re.compile(r"[.,!?]")


def normalize_text(text: str) -> str:
    collapsed = _WHITESPACE_RE.sub(" ", text.lower())
    return _PUNCTUATION_RE.sub("", collapsed).strip()


def is_duplicate(previous: Segment, current: Segment) -> bool:
    overlap = max(0.0, min(previous.end, current.end) - max(previous.start, current.start))
    span = max(previous.end - previous.start, current.end - current.start, MIN_SPAN_SECONDS)
    if overlap / span <= DUPLICATE_OVERLAP_RATIO:
        return False
    return normalize_text(previous.text) == normalize_text(current.text)


def chunk_time_offset(chunk: ChunkResult, last_placed: Segment | None) -> float:
    """Seconds to add to a chunk's local timestamps.

    Estimated from the chunk's byte position and engine-reported duration.
    Without a duration, the end of the last segment placed so far is used,
    which is only an approximation.
    """
    duration = chunk.transcript.duration
    if duration > 0 and chunk.byte_length > 0:
        return (chunk.offset / chunk.byte_length) * duration
    return last_placed.end if last_placed is not None else 0.0


def _shift_word(word: Word, offset: float) -> Word:
    return Word(word=word.word, start=word.start + offset, end=word.end + offset)


def _shift_segment(segment: Segment, offset: float) -> Segment:
    words = tuple(_shift_word(word, offset) for word in segment.words) if segment.words is not None else None
    return Segment(
        start=segment.start + offset,
        end=segment.end + offset,
        text=segment.text,
        words=words,
    )


def dedupe_segments(segments: Iterable[Segment]) -> list[Segment]:
    kept: list[Segment] = []
    for segment in segments:
        if kept and is_duplicate(kept[-1], segment):
            kept[-1] = segment
            # A wider replacement can now duplicate the segment kept before it.
            while len(kept) > 1 and is_duplicate(kept[-2], kept[-1]):
                del kept[-2]
            continue
        kept.append(segment)
    return kept


def join_text(segments: Iterable[Segment]) -> str:
    joined = " ".join(segment.text.strip() for segment in segments)
    return _WHITESPACE_RE.sub(" ", joined).strip()


def merge_chunks(chunks: Iterable[ChunkResult]) -> MergedTranscript:
    global_segments: list[Segment] = []
    global_words: list[Word] = []

    for chunk in sorted(chunks, key=lambda item: item.offset):
        last_placed = global_segments[-1] if global_segments else None
        offset = chunk_time_offset(chunk, last_placed)
        global_segments.extend(_shift_segment(segment, offset) for segment in chunk.transcript.segments)
        global_words.extend(_shift_word(word, offset) for word in chunk.transcript.words)

    global_segments.sort(key=lambda segment: segment.start)
    global_words.sort(key=lambda word: word.start)

    segments = dedupe_segments(global_segments)
    return MergedTranscript(text=join_text(segments), segments=segments, words=global_words)
