from __future__ import annotations


class PipelineError(RuntimeError):
    """Base class for failures raised while retrieving or transcribing media."""

    kind = "pipeline_failed"

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ResolutionError(PipelineError):
    kind = "resolution_failed"


class ProbeError(PipelineError):
    """Size probe failed. Never fatal: the job falls back to an unknown size."""

    kind = "probe_failed"


class FetchError(PipelineError):
    kind = "fetch_failed"


class AuthExpiredError(PipelineError):
    kind = "auth_expired"


class ValidationError(PipelineError):
    kind = "invalid_media"


class TranscriptionError(PipelineError):
    kind = "transcription_failed"
