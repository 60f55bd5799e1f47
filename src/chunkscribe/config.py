from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

MB = 1024 * 1024


@dataclass(frozen=True, slots=True)
class ChunkingConfig:
    """Size thresholds and chunk defaults used to pick a retrieval strategy."""

    single_shot_limit: int = 20 * MB
    medium_file_limit: int = 50 * MB
    medium_chunk_size: int = 8 * MB
    medium_large_threshold: int = 40 * MB
    medium_large_chunk_size: int = 4 * MB
    medium_parallel: int = 10
    safe_chunk_size: int = 2 * MB
    safe_parallel: int = 3


@dataclass(slots=True)
class Settings:
    host: str
    port: int
    mcp_path: str
    health_path: str
    transcribe_path: str
    resolver_url: str | None
    resolver_api_key: str | None
    cloudflare_account_id: str
    cloudflare_api_token: str
    whisper_model: str
    fetch_timeout_seconds: float
    transcribe_timeout_seconds: float
    chunking: ChunkingConfig = field(default_factory=ChunkingConfig)


def _as_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    return int(raw)


def _as_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    return float(raw)


def _normalized_path(path: str) -> str:
    if not path.startswith("/"):
        path = f"/{path}"
    return path


def load_settings() -> Settings:
    load_dotenv()

    account_id = os.getenv("CLOUDFLARE_ACCOUNT_ID", "").strip()
    api_token = os.getenv("CLOUDFLARE_API_TOKEN", "").strip()
    if not account_id or not api_token:
        raise RuntimeError("CLOUDFLARE_ACCOUNT_ID and CLOUDFLARE_API_TOKEN are required")

    return Settings(
        host=os.getenv("HOST", "0.0.0.0"),
        port=_as_int("PORT", 3000),
        mcp_path=_normalized_path(os.getenv("MCP_PATH", "/mcp")),
        health_path=_normalized_path(os.getenv("HEALTH_PATH", "/healthz")),
        transcribe_path=_normalized_path(os.getenv("TRANSCRIBE_PATH", "/transcribe")),
        resolver_url=os.getenv("RESOLVER_URL") or None,
        resolver_api_key=os.getenv("RESOLVER_API_KEY") or None,
        cloudflare_account_id=account_id,
        cloudflare_api_token=api_token,
        whisper_model=os.getenv("WHISPER_MODEL", "@cf/openai/whisper-large-v3-turbo"),
        fetch_timeout_seconds=_as_float("FETCH_TIMEOUT_SECONDS", 60.0),
        transcribe_timeout_seconds=_as_float("TRANSCRIBE_TIMEOUT_SECONDS", 300.0),
    )
