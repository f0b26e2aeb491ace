"""
Protocol test stages.

A stage is one chunked transmission: a payload, how to slice it, how long
to wait between slices and how long to let the printer settle afterwards.
Each protocol test is an ordered list of stages built fresh per test.
"""

from dataclasses import dataclass

from . import d1, escpos, gt01
from .profiles import Protocol

# Defaults used for characteristics with no profile (safe for MTU 23)
DEFAULT_CHUNK_SIZE = 20
DEFAULT_CHUNK_DELAY_MS = 80


@dataclass(frozen=True)
class Stage:
    """One timed, chunked transmission unit."""

    name: str
    payload: bytes
    chunk_size: int = DEFAULT_CHUNK_SIZE
    chunk_delay_ms: int = DEFAULT_CHUNK_DELAY_MS
    pause_after_ms: int = 0


def escpos_test_stages(
    label: str = escpos.DEFAULT_LABEL,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    chunk_delay_ms: int = DEFAULT_CHUNK_DELAY_MS,
) -> list:
    return [Stage("print", escpos.build_test_print(label), chunk_size, chunk_delay_ms, 0)]


def escpos_capability_stages(test: escpos.CapabilityTest, label: str) -> list:
    return [Stage(test.key, test.build(label), DEFAULT_CHUNK_SIZE, DEFAULT_CHUNK_DELAY_MS, 500)]


def d1_test_stages() -> list:
    """
    D1 probe print: init, wake, border image, feed+stop.

    Chunking differs per stage: command stages go out in small slow
    chunks, bulk data in larger fast ones, and the wake padding needs the
    longest settle time.
    """
    image = d1.border_pattern()
    return [
        Stage("init", d1.INIT, 20, 80, 500),
        Stage("wake", d1.wake_padding(), 200, 30, 1000),
        Stage("image", d1.raster_image(image), 200, 30, 500),
        Stage("feed+stop", d1.feed_and_stop(), 20, 80, 0),
    ]


def gt01_feed_stages() -> list:
    return [Stage("feed", gt01.build_feed_packet(), DEFAULT_CHUNK_SIZE, DEFAULT_CHUNK_DELAY_MS, 0)]


def build_protocol_test(
    protocol: Protocol,
    label: str = escpos.DEFAULT_LABEL,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    chunk_delay_ms: int = DEFAULT_CHUNK_DELAY_MS,
) -> list:
    """
    Build the test stages for a protocol.

    D1 and GT01 tests use fixed per-stage timing. ESC/POS (and profiles of
    unknown protocol) use the given chunking and print ``label``.
    """
    protocol = Protocol(protocol)
    if protocol is Protocol.D1:
        return d1_test_stages()
    if protocol is Protocol.GT01:
        return gt01_feed_stages()
    return escpos_test_stages(label, chunk_size, chunk_delay_ms)
