"""Pull-based producers of bounded-size batches.

Each producer is an async generator: it builds the next batch only when the
consumer asks for it, so at most one batch is held beyond whatever the
source itself keeps in memory. Batches come out in source order, all but
the last hold exactly ``size`` items, and an empty source yields nothing.
"""

import asyncio
from typing import AsyncIterator, Callable, Iterable, List, TypeVar

from .errors import ConfigurationError

T = TypeVar("T")


def _check_size(size: int) -> None:
    if size < 1:
        raise ConfigurationError(f"Chunk size must be at least 1, got {size}")


async def iter_chunks(items: Iterable[T], size: int) -> AsyncIterator[List[T]]:
    """Group a sequence, or a lazy iterator such as a file reader, into batches."""
    _check_size(size)
    chunk: List[T] = []
    for item in items:
        chunk.append(item)
        if len(chunk) == size:
            yield chunk
            chunk = []
            await asyncio.sleep(0)
    if chunk:
        yield chunk


async def generate_chunks(total: int, size: int, factory: Callable[[int], T]) -> AsyncIterator[List[T]]:
    """Build ``total`` items on demand with ``factory(index)`` and yield them in batches."""
    _check_size(size)
    index = 0
    while index < total:
        length = min(size, total - index)
        yield [factory(i) for i in range(index, index + length)]
        index += length
        await asyncio.sleep(0)
