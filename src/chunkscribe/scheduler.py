from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterator, Sequence

from chunkscribe.types import ChunkResult, ChunkTask

logger = logging.getLogger(__name__)

ChunkWorker = Callable[[ChunkTask], Awaitable[ChunkResult]]


def plan_tasks(total_size: int, chunk_size: int) -> list[ChunkTask]:
    """Contiguous byte ranges covering ``[0, total_size)``, last one clamped."""
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")

    tasks: list[ChunkTask] = []
    offset = 0
    while offset < total_size:
        end = min(offset + chunk_size - 1, total_size - 1)
        tasks.append(ChunkTask(offset=offset, end_inclusive=end))
        offset += chunk_size
    return tasks


def batched(tasks: Sequence[ChunkTask], size: int) -> Iterator[Sequence[ChunkTask]]:
    if size <= 0:
        raise ValueError("batch size must be positive")
    for start in range(0, len(tasks), size):
        yield tasks[start:start + size]


async def run_batches(
    tasks: Sequence[ChunkTask],
    max_parallel: int,
    worker: ChunkWorker,
) -> list[ChunkResult]:
    """Run tasks in sequential batches; each batch runs concurrently and fully settles.

    The first failure of a batch (in task order) is raised once every task of
    that batch has finished, so no later batch is started.
    """
    results: list[ChunkResult] = []
    for index, batch in enumerate(batched(tasks, max_parallel), start=1):
        logger.info(
            "Dispatching batch %s: %s chunks from offset=%s",
            index,
            len(batch),
            batch[0].offset,
        )
        settled = await asyncio.gather(*(worker(task) for task in batch), return_exceptions=True)
        for outcome in settled:
            if isinstance(outcome, BaseException):
                raise outcome
        results.extend(settled)  # type: ignore[arg-type]
    return results
