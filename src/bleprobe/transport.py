"""
Chunked transport driver.

Thermal printers commonly have no flow control, so data goes out in small
slices with a delay after each one, and multi-stage tests finish one stage
completely before starting the next.
"""

import asyncio
import logging
from typing import Callable, Iterator, Optional, Protocol

from .errors import TransportError

logger = logging.getLogger(__name__)

# Pause after a stage when the stage declares none
MIN_STAGE_PAUSE_MS = 10


class Channel(Protocol):
    """A writable (and optionally subscribable) characteristic."""

    uuid: str

    async def write(self, data: bytes, response: bool = True) -> None:
        """Write data; raise TransportError on failure."""

    async def subscribe(self, callback: Callable[[bytes], None]) -> None:
        """Enable notifications; raise TransportError on failure."""

    async def read(self) -> bytes:
        """Read the value; raise TransportError on failure."""


def iter_chunks(data: bytes, chunk_size: int) -> Iterator[bytes]:
    """Yield consecutive slices of at most ``chunk_size`` bytes."""
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    for i in range(0, len(data), chunk_size):
        yield data[i:i + chunk_size]


async def send_chunked(
    channel: Channel,
    data: bytes,
    chunk_size: int,
    delay_ms: float,
    response: bool = True,
) -> int:
    """
    Write data to a channel in chunks.

    Args:
        channel: Target characteristic
        data: Data to write
        chunk_size: Maximum bytes per chunk
        delay_ms: Delay after each successful chunk in milliseconds
        response: Whether to request write-with-response

    Returns:
        Number of chunks written

    Raises:
        TransportError: On the first failed write; later chunks are not sent
    """
    chunks = list(iter_chunks(data, chunk_size))
    total = len(chunks)

    for index, chunk in enumerate(chunks, 1):
        try:
            await channel.write(chunk, response)
        except TransportError as e:
            raise TransportError(f"Write failed at chunk {index}/{total}: {e}") from e

        logger.debug("TX %d/%d: %s", index, total, chunk.hex())
        if delay_ms > 0:
            await asyncio.sleep(delay_ms / 1000.0)

    return total


async def run_stages(
    channel: Channel,
    stages: list,
    on_stage_done: Optional[Callable[[str], None]] = None,
) -> None:
    """
    Run stages in order, each to completion, pausing after each one.

    Raises:
        TransportError: If any stage fails; later stages are not attempted
    """
    for stage in stages:
        try:
            await send_chunked(channel, stage.payload, stage.chunk_size, stage.chunk_delay_ms)
        except TransportError as e:
            raise TransportError(f"Stage '{stage.name}' failed: {e}") from e

        logger.info("  [%s] done", stage.name)
        if on_stage_done:
            on_stage_done(stage.name)

        pause_ms = stage.pause_after_ms or MIN_STAGE_PAUSE_MS
        await asyncio.sleep(pause_ms / 1000.0)
