"""
GT01 packet protocol (cat-printer family).

Packet Structure:
    Sync:      0x51 0x78
    Command:   command byte
    Reserved:  0x00
    Length:    payload length (1 byte)
    Reserved:  0x00
    Payload:   payload bytes
    Check:     checksum byte (see below)
    Tail:      0xFF

The cat-printer family uses CRC-8 (poly 0x07) over the payload, and
build_packet() defaults to it. The GT01 feed packet captured on hardware
carries a check byte that is not that CRC, so the feed builder only emits
the captured packet unless given an explicit check byte.
"""

from enum import IntEnum
from typing import Optional

SYNC = bytes([0x51, 0x78])
TAIL = 0xFF

# Check byte of the feed packet that advanced paper on real GT01 hardware.
# It does not match CRC-8 of the payload; kept as captured.
FEED_ONE_LINE_CHECK = 0xBD


class Command(IntEnum):
    """Known GT01 command bytes."""

    RETRACT_PAPER = 0xA0
    FEED_PAPER_ROWS = 0xA1
    GET_DEVICE_STATE = 0xA3
    SET_QUALITY = 0xA4
    LATTICE = 0xA6
    SET_ENERGY = 0xAF
    FEED_PAPER = 0xBD


CRC8_TABLE = [
    0x00, 0x07, 0x0e, 0x09, 0x1c, 0x1b, 0x12, 0x15,
    0x38, 0x3f, 0x36, 0x31, 0x24, 0x23, 0x2a, 0x2d,
    0x70, 0x77, 0x7e, 0x79, 0x6c, 0x6b, 0x62, 0x65,
    0x48, 0x4f, 0x46, 0x41, 0x54, 0x53, 0x5a, 0x5d,
    0xe0, 0xe7, 0xee, 0xe9, 0xfc, 0xfb, 0xf2, 0xf5,
    0xd8, 0xdf, 0xd6, 0xd1, 0xc4, 0xc3, 0xca, 0xcd,
    0x90, 0x97, 0x9e, 0x99, 0x8c, 0x8b, 0x82, 0x85,
    0xa8, 0xaf, 0xa6, 0xa1, 0xb4, 0xb3, 0xba, 0xbd,
    0xc7, 0xc0, 0xc9, 0xce, 0xdb, 0xdc, 0xd5, 0xd2,
    0xff, 0xf8, 0xf1, 0xf6, 0xe3, 0xe4, 0xed, 0xea,
    0xb7, 0xb0, 0xb9, 0xbe, 0xab, 0xac, 0xa5, 0xa2,
    0x8f, 0x88, 0x81, 0x86, 0x93, 0x94, 0x9d, 0x9a,
    0x27, 0x20, 0x29, 0x2e, 0x3b, 0x3c, 0x35, 0x32,
    0x1f, 0x18, 0x11, 0x16, 0x03, 0x04, 0x0d, 0x0a,
    0x57, 0x50, 0x59, 0x5e, 0x4b, 0x4c, 0x45, 0x42,
    0x6f, 0x68, 0x61, 0x66, 0x73, 0x74, 0x7d, 0x7a,
    0x89, 0x8e, 0x87, 0x80, 0x95, 0x92, 0x9b, 0x9c,
    0xb1, 0xb6, 0xbf, 0xb8, 0xad, 0xaa, 0xa3, 0xa4,
    0xf9, 0xfe, 0xf7, 0xf0, 0xe5, 0xe2, 0xeb, 0xec,
    0xc1, 0xc6, 0xcf, 0xc8, 0xdd, 0xda, 0xd3, 0xd4,
    0x69, 0x6e, 0x67, 0x60, 0x75, 0x72, 0x7b, 0x7c,
    0x51, 0x56, 0x5f, 0x58, 0x4d, 0x4a, 0x43, 0x44,
    0x19, 0x1e, 0x17, 0x10, 0x05, 0x02, 0x0b, 0x0c,
    0x21, 0x26, 0x2f, 0x28, 0x3d, 0x3a, 0x33, 0x34,
    0x4e, 0x49, 0x40, 0x47, 0x52, 0x55, 0x5c, 0x5b,
    0x76, 0x71, 0x78, 0x7f, 0x6a, 0x6d, 0x64, 0x63,
    0x3e, 0x39, 0x30, 0x37, 0x22, 0x25, 0x2c, 0x2b,
    0x06, 0x01, 0x08, 0x0f, 0x1a, 0x1d, 0x14, 0x13,
    0xae, 0xa9, 0xa0, 0xa7, 0xb2, 0xb5, 0xbc, 0xbb,
    0x96, 0x91, 0x98, 0x9f, 0x8a, 0x8d, 0x84, 0x83,
    0xde, 0xd9, 0xd0, 0xd7, 0xc2, 0xc5, 0xcc, 0xcb,
    0xe6, 0xe1, 0xe8, 0xef, 0xfa, 0xfd, 0xf4, 0xf3,
]


def crc8(data: bytes) -> int:
    crc = 0
    for byte in data:
        crc = CRC8_TABLE[(crc ^ byte) & 0xFF]
    return crc


def build_packet(command: int, payload: bytes = b"", check: Optional[int] = None) -> bytes:
    """
    Build a GT01 packet.

    Args:
        command: Command byte
        payload: Payload bytes (at most 255)
        check: Override for the check byte; CRC-8 of the payload by default

    Returns:
        Encoded packet
    """
    if len(payload) > 0xFF:
        raise ValueError(f"Payload too long for GT01 packet: {len(payload)} bytes")
    if check is None:
        check = crc8(payload)
    header = SYNC + bytes([command & 0xFF, 0x00, len(payload), 0x00])
    return header + bytes(payload) + bytes([check & 0xFF, TAIL])


def build_feed_packet(lines: int = 1, check: Optional[int] = None) -> bytes:
    """
    Build the feed-paper packet used to probe GT01 printers.

    lines=1 reproduces the packet verified on hardware
    (51 78 BD 00 01 00 01 BD FF). No check byte is known for other line
    counts, so they require ``check``.

    Raises:
        ValueError: If lines is out of range, or lines != 1 without ``check``
    """
    if not 0 < lines <= 0xFF:
        raise ValueError(f"Feed line count out of range: {lines}")
    if check is None:
        if lines != 1:
            raise ValueError(f"No verified check byte for a {lines}-line feed")
        check = FEED_ONE_LINE_CHECK
    return build_packet(Command.FEED_PAPER, bytes([lines]), check=check)
