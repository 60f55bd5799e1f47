from __future__ import annotations

import base64
import logging
from typing import Any, Protocol

import httpx

from chunkscribe.errors import TranscriptionError
from chunkscribe.types import EngineTranscript, Segment, Word

logger = logging.getLogger(__name__)


class Transcriber(Protocol):
    async def transcribe(self, audio: bytes) -> EngineTranscript: ...


class WorkersAITranscriber:
    """Runs a Whisper model on Cloudflare Workers AI over its REST API."""

    def __init__(
        self,
        account_id: str,
        api_token: str,
        model: str = "@cf/openai/whisper-large-v3-turbo",
        timeout_seconds: float = 300.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.account_id = account_id
        self.api_token = api_token
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.transport = transport
        self.base_url = "https://api.cloudflare.com/client/v4"

    async def transcribe(self, audio: bytes) -> EngineTranscript:
        run_url = f"{self.base_url}/accounts/{self.account_id}/ai/run/{self.model}"
        headers = {"Authorization": f"Bearer {self.api_token}"}
        request_payload = {"audio": base64.b64encode(audio).decode("ascii")}

        async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport) as client:
            try:
                response = await client.post(run_url, headers=headers, json=request_payload)
            except httpx.HTTPError as exc:
                raise TranscriptionError(f"Workers AI request failed: {exc}") from exc

        if response.status_code >= 400:
            raise TranscriptionError(
                f"Workers AI run failed ({response.status_code}): {response.text[:400]}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise TranscriptionError("Workers AI returned a non-JSON response") from exc

        if not isinstance(payload, dict):
            raise TranscriptionError("Workers AI response is not an object")
        if payload.get("success") is False:
            errors = payload.get("errors") or "Workers AI reported failure"
            raise TranscriptionError(str(errors)[:400])

        result = parse_engine_result(payload.get("result", payload))
        logger.info(
            "Transcribed %s bytes: %s segments, duration=%.2fs",
            len(audio),
            len(result.segments),
            result.duration,
        )
        return result


def parse_engine_result(raw: object) -> EngineTranscript:
    """Validate a Whisper-style result into an EngineTranscript.

    Accepts ``segments`` (each with ``start``, ``end``, ``text`` and optional
    ``words``), optional top-level ``words`` and a duration under
    ``transcription_info.duration`` or ``duration``. When no top-level words
    are given, the segment words are flattened in their place.
    """
    if not isinstance(raw, dict):
        raise TranscriptionError("Transcription result is not an object")

    raw_segments = raw.get("segments") or []
    if not isinstance(raw_segments, list):
        raise TranscriptionError("Transcription result has malformed segments")
    segments = tuple(_parse_segment(item) for item in raw_segments)

    raw_words = raw.get("words")
    if raw_words:
        if not isinstance(raw_words, list):
            raise TranscriptionError("Transcription result has malformed words")
        words = tuple(_parse_word(item) for item in raw_words)
    else:
        words = tuple(word for segment in segments for word in (segment.words or ()))

    text = raw.get("text")
    if not isinstance(text, str) or not text.strip():
        text = " ".join(segment.text.strip() for segment in segments)

    return EngineTranscript(
        text=text.strip(),
        segments=segments,
        words=words,
        duration=_parse_duration(raw),
    )


def _parse_segment(item: object) -> Segment:
    if not isinstance(item, dict):
        raise TranscriptionError("Transcription segment is not an object")
    start = _as_seconds(item.get("start"), "segment start")
    end = max(_as_seconds(item.get("end"), "segment end"), start)

    raw_words = item.get("words")
    words: tuple[Word, ...] | None = None
    if raw_words is not None:
        if not isinstance(raw_words, list):
            raise TranscriptionError("Transcription segment has malformed words")
        words = tuple(_parse_word(word) for word in raw_words)

    return Segment(start=start, end=end, text=str(item.get("text") or ""), words=words)


def _parse_word(item: object) -> Word:
    if not isinstance(item, dict) or not isinstance(item.get("word"), str):
        raise TranscriptionError("Transcription word is malformed")
    start = _as_seconds(item.get("start"), "word start")
    end = max(_as_seconds(item.get("end"), "word end"), start)
    return Word(word=item["word"], start=start, end=end)


def _parse_duration(raw: dict[str, Any]) -> float:
    info = raw.get("transcription_info")
    value = info.get("duration") if isinstance(info, dict) else None
    if value is None:
        value = raw.get("duration")
    if value is None:
        return 0.0
    try:
        return max(float(value), 0.0)
    except (TypeError, ValueError):
        return 0.0


def _as_seconds(value: object, label: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TranscriptionError(f"Transcription {label} is not a number: {value!r}")
    return float(value)
