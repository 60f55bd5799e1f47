from __future__ import annotations

from chunkscribe.config import ChunkingConfig
from chunkscribe.types import (
    MediumParallel,
    RetrievalStrategy,
    SafeParallel,
    SingleShot,
    UnknownSizeFallback,
)


def parse_positive_int(raw: object) -> int | None:
    """Request override value, or None when missing, non-numeric or not positive."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        return None
    return value if value > 0 else None


def select_strategy(
    total_size: int,
    config: ChunkingConfig | None = None,
    *,
    chunk_size: int | None = None,
    parallel: int | None = None,
) -> RetrievalStrategy:
    config = config or ChunkingConfig()
    chunk_override = parse_positive_int(chunk_size)
    parallel_override = parse_positive_int(parallel)

    if total_size <= 0:
        return UnknownSizeFallback()
    if total_size <= config.single_shot_limit:
        return SingleShot()

    if total_size <= config.medium_file_limit:
        default_chunk = config.medium_chunk_size
        if total_size > config.medium_large_threshold:
            default_chunk = config.medium_large_chunk_size
        return MediumParallel(
            chunk_size=chunk_override or default_chunk,
            max_parallel=parallel_override or config.medium_parallel,
        )

    return SafeParallel(
        chunk_size=chunk_override or config.safe_chunk_size,
        max_parallel=parallel_override or config.safe_parallel,
    )


def describe(strategy: RetrievalStrategy) -> str:
    if isinstance(strategy, (MediumParallel, SafeParallel)):
        return f"{type(strategy).__name__}(chunk_size={strategy.chunk_size}, max_parallel={strategy.max_parallel})"
    return type(strategy).__name__
