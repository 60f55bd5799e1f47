import asyncio

import httpx
import pytest

from chunkscribe.config import MB
from chunkscribe.errors import FetchError, TranscriptionError, ValidationError
from chunkscribe.pipeline import TranscriptionPipeline
from chunkscribe.services.resolver import ResolverClient
from chunkscribe.types import (
    ChunkTask,
    EngineTranscript,
    MediaSource,
    MediumParallel,
    SafeParallel,
    Segment,
    SingleShot,
    UnknownSizeFallback,
)

RESOLVER_URL = "https://resolver.example/getDownloadUrl"
MEDIA_URL = "https://cdn.example/media/talk.mp3"


def _body(start: int, end: int) -> bytes:
    """Range body whose head names its own offset, e.g. ``ID316000000|...``."""
    length = end - start + 1
    marker = b"ID3" + str(start).encode() + b"|"
    if length <= len(marker):
        return marker[:length]
    return marker + b"\x00" * (length - len(marker))


class FakeOrigin:
    def __init__(
        self,
        size: int,
        *,
        supports_range: bool = True,
        content_type: str = "audio/mpeg",
        fail_offsets: tuple[int, ...] = (),
    ) -> None:
        self.size = size
        self.supports_range = supports_range
        self.content_type = content_type
        self.fail_offsets = fail_offsets
        self.requests: list[httpx.Request] = []
        self.resolver_requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "resolver.example":
            self.resolver_requests.append(request)
            return httpx.Response(200, json={"downloadUrl": MEDIA_URL})

        self.requests.append(request)
        headers = {"content-type": self.content_type}
        range_header = request.headers.get("range")
        if range_header is None or not self.supports_range:
            return httpx.Response(200, headers=headers, content=_body(0, self.size - 1))

        start, end = (int(part) for part in range_header.removeprefix("bytes=").split("-"))
        if start in self.fail_offsets and end > 0:
            return httpx.Response(500, text="boom")
        end = min(end, self.size - 1)
        headers["content-range"] = f"bytes {start}-{end}/{self.size}"
        return httpx.Response(206, headers=headers, content=_body(start, end))


class MarkerTranscriber:
    """One segment per chunk, 1 second of audio per million bytes."""

    def __init__(self) -> None:
        self.calls: list[int] = []

    async def transcribe(self, audio: bytes) -> EngineTranscript:
        offset = int(audio[3:audio.index(b"|")])
        self.calls.append(offset)
        text = f"part {offset}"
        return EngineTranscript(
            text=text,
            segments=(Segment(0.0, 1.5, text),),
            duration=len(audio) / 1_000_000,
        )


def _pipeline(origin: FakeOrigin, transcriber: object | None = None) -> TranscriptionPipeline:
    return TranscriptionPipeline(
        resolver=ResolverClient(RESOLVER_URL, "secret"),
        transcriber=transcriber or MarkerTranscriber(),  # type: ignore[arg-type]
        transport=httpx.MockTransport(origin),
    )


def test_small_direct_media_is_single_shot() -> None:
    origin = FakeOrigin(5 * MB)
    transcriber = MarkerTranscriber()
    pipeline = _pipeline(origin, transcriber)

    result = asyncio.run(pipeline.run(MEDIA_URL))

    assert result.strategy == SingleShot()
    assert origin.resolver_requests == []
    assert [request.headers.get("range") for request in origin.requests] == ["bytes=0-0", None]
    assert transcriber.calls == [0]
    assert result.merged.text == "part 0"
    assert result.meta.bytes_processed == 5 * MB
    assert result.meta.file_size == 5 * MB
    assert result.meta.is_complete is True
    assert result.meta.parallelism == 1
    assert result.meta.chunk_size == 5 * MB
    assert result.meta.processed_duration == 1.5


def test_medium_file_is_chunked_and_merged_in_order() -> None:
    origin = FakeOrigin(21_000_000)
    transcriber = MarkerTranscriber()
    pipeline = _pipeline(origin, transcriber)

    result = asyncio.run(pipeline.run("https://video.example/watch?v=1", chunk_size=8_000_000))

    assert len(origin.resolver_requests) == 1
    assert result.strategy == MediumParallel(chunk_size=8_000_000, max_parallel=10)
    assert sorted(transcriber.calls) == [0, 8_000_000, 16_000_000]
    ranges = {request.headers["range"] for request in origin.requests[1:]}
    assert ranges == {"bytes=0-7999999", "bytes=8000000-15999999", "bytes=16000000-20999999"}

    assert result.merged.text == "part 0 part 8000000 part 16000000"
    assert [segment.start for segment in result.merged.segments] == pytest.approx([0.0, 8.0, 16.0])
    assert result.meta.bytes_processed == 21_000_000
    assert result.meta.is_complete is True
    assert result.meta.segment_count == 3
    assert result.meta.processed_duration == pytest.approx(17.5)
    assert result.meta.chunk_size == 8_000_000
    assert result.meta.parallelism == 10


def test_large_file_runs_in_bounded_batches() -> None:
    size = 50 * MB + 1_000
    origin = FakeOrigin(size)
    in_flight = 0
    peak = 0

    class CountingTranscriber(MarkerTranscriber):
        async def transcribe(self, audio: bytes) -> EngineTranscript:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0)
            try:
                return await super().transcribe(audio)
            finally:
                in_flight -= 1

    transcriber = CountingTranscriber()
    result = asyncio.run(_pipeline(origin, transcriber).run(MEDIA_URL, chunk_size=5_000_000))

    offsets = list(range(0, size, 5_000_000))
    assert result.strategy == SafeParallel(chunk_size=5_000_000, max_parallel=3)
    assert len(offsets) == 11
    assert sorted(transcriber.calls) == offsets
    assert 1 <= peak <= 3
    assert result.merged.text == " ".join(f"part {offset}" for offset in offsets)
    assert result.meta.parallelism == 3
    assert result.meta.chunk_size == 5_000_000
    assert result.meta.bytes_processed == size
    assert result.meta.file_size == size
    assert result.meta.is_complete is True
    assert result.meta.segment_count == 11


def test_unknown_size_fetches_whole_file_and_backfills_size() -> None:
    origin = FakeOrigin(3_000, supports_range=False)
    pipeline = _pipeline(origin)

    result = asyncio.run(pipeline.run(MEDIA_URL, chunk_size=100, parallel=2))

    assert result.strategy == UnknownSizeFallback()
    assert result.meta.file_size == 3_000
    assert result.meta.bytes_processed == 3_000
    assert result.meta.is_complete is True
    assert result.meta.parallelism == 1


def test_whole_file_with_html_content_type_fails() -> None:
    origin = FakeOrigin(3_000, supports_range=False, content_type="text/html")
    with pytest.raises(ValidationError):
        asyncio.run(_pipeline(origin).run(MEDIA_URL))


def test_chunk_failure_aborts_the_job() -> None:
    origin = FakeOrigin(21_000_000, fail_offsets=(8_000_000,))
    transcriber = MarkerTranscriber()

    with pytest.raises(FetchError, match="500"):
        asyncio.run(_pipeline(origin, transcriber).run(MEDIA_URL, chunk_size=8_000_000, parallel=2))

    # The failing batch settles, but the third chunk is never dispatched.
    assert 16_000_000 not in transcriber.calls


def test_engine_failure_becomes_transcription_error() -> None:
    class BrokenTranscriber:
        async def transcribe(self, audio: bytes) -> EngineTranscript:
            raise ConnectionResetError("engine overloaded")

    with pytest.raises(TranscriptionError, match="engine overloaded"):
        asyncio.run(_pipeline(FakeOrigin(1_000), BrokenTranscriber()).run(MEDIA_URL))


def test_expired_authorization_yields_identical_chunk_result() -> None:
    resolutions: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "resolver.example":
            resolutions.append(str(request.url))
            return httpx.Response(200, json={"downloadUrl": "https://cdn.example/a.mp4?sig=fresh"})
        if request.url.params.get("sig") == "stale":
            return httpx.Response(403)
        start, end = (int(part) for part in request.headers["range"].removeprefix("bytes=").split("-"))
        return httpx.Response(206, content=_body(start, end))

    pipeline = TranscriptionPipeline(
        resolver=ResolverClient(RESOLVER_URL, "secret"),
        transcriber=MarkerTranscriber(),
        transport=httpx.MockTransport(handler),
    )
    task = ChunkTask(offset=4_000, end_inclusive=5_999)

    async def fetch(resolved_url: str):  # type: ignore[no-untyped-def]
        source = MediaSource(input_reference="https://video.example/watch?v=1", resolved_url=resolved_url)
        async with pipeline._client() as client:
            return await pipeline._transcribe_range(client, source, task)

    expired = asyncio.run(fetch("https://cdn.example/a.mp4?sig=stale"))
    assert len(resolutions) == 1
    fresh = asyncio.run(fetch("https://cdn.example/a.mp4?sig=fresh"))
    assert len(resolutions) == 1

    assert expired == fresh
    assert expired.byte_length == 2_000


def test_transcribe_chunk_reports_next_offset() -> None:
    origin = FakeOrigin(5_000)
    outcome = asyncio.run(_pipeline(origin).transcribe_chunk(MEDIA_URL, 4_000, chunk_size=2_000))

    assert outcome.status == "transcribed"
    assert outcome.offset == 4_000
    assert outcome.next_offset == 5_000
    assert outcome.byte_length == 1_000
    assert outcome.transcript is not None
    assert outcome.transcript.text == "part 4000"


def test_transcribe_chunk_past_end_is_exhausted() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(416, headers={"content-range": "bytes */5000"})

    pipeline = TranscriptionPipeline(
        resolver=ResolverClient(None),
        transcriber=MarkerTranscriber(),
        transport=httpx.MockTransport(handler),
    )
    outcome = asyncio.run(pipeline.transcribe_chunk(MEDIA_URL, 5_000))

    assert outcome.status == "exhausted"
    assert outcome.next_offset is None


def test_transcribe_chunk_failure_is_an_outcome() -> None:
    origin = FakeOrigin(5_000, fail_offsets=(0,))
    outcome = asyncio.run(_pipeline(origin).transcribe_chunk(MEDIA_URL, 0, chunk_size=1_000))

    assert outcome.status == "failed"
    assert outcome.error is not None and "500" in outcome.error


def test_transcribe_chunk_rejects_negative_offset() -> None:
    with pytest.raises(ValueError):
        asyncio.run(_pipeline(FakeOrigin(10)).transcribe_chunk(MEDIA_URL, -1))
