"""
Chunk codec — reads and writes one length-prefixed, typed, CRC-checked chunk.

Decoding never raises on attacker bytes: a read past the buffer end returns
None and a bad checksum is recorded on the Chunk (crc_ok=False). Deciding
what a bad checksum means is the validator's job.
"""

from __future__ import annotations

import zlib
from dataclasses import dataclass

from afblueprint._format.spec import CHUNK_CRC, CHUNK_HEADER, CHUNK_OVERHEAD


@dataclass(frozen=True)
class Chunk:
    """A decoded chunk.

    Attributes:
        offset: Byte offset of the length field within the source buffer.
        length: Declared data length.
        type: 4-byte chunk tag.
        data: The chunk's data bytes (``length`` bytes).
        crc: CRC stored in the buffer.
        crc_ok: Whether ``crc`` matches a recomputation over type + data.
    """

    offset: int
    length: int
    type: bytes
    data: bytes
    crc: int
    crc_ok: bool

    @property
    def size(self) -> int:
        """Total encoded size: length + type + data + crc."""
        return CHUNK_OVERHEAD + self.length

    @property
    def end(self) -> int:
        return self.offset + self.size

    @property
    def name(self) -> str:
        return self.type.decode("latin-1")


def chunk_crc(chunk_type: bytes, data: bytes) -> int:
    """CRC-32/IEEE-802.3 over type + data, as an unsigned 32-bit int."""
    return zlib.crc32(data, zlib.crc32(chunk_type)) & 0xFFFFFFFF


def is_ancillary(chunk_type: bytes) -> bool:
    """Lowercase first letter marks a chunk readers may ignore."""
    return len(chunk_type) == 4 and bool(chunk_type[0] & 0x20)


def is_critical(chunk_type: bytes) -> bool:
    return len(chunk_type) == 4 and not chunk_type[0] & 0x20


def _validate_chunk_type(chunk_type: bytes) -> bytes:
    if not isinstance(chunk_type, (bytes, bytearray)):
        raise TypeError("chunk type must be bytes")
    tag = bytes(chunk_type)
    if len(tag) != 4 or not all(65 <= c <= 90 or 97 <= c <= 122 for c in tag):
        raise ValueError(f"chunk type must be 4 ASCII letters, got {tag!r}")
    return tag


def read_chunk_header(buffer: bytes, offset: int) -> tuple[int, bytes] | None:
    """Peek a chunk's (length, type) without reading its data.

    Returns None if fewer than 8 bytes remain at ``offset``.
    """
    if offset < 0 or offset + CHUNK_HEADER.size > len(buffer):
        return None
    return CHUNK_HEADER.unpack_from(buffer, offset)


def decode_chunk(buffer: bytes, offset: int) -> Chunk | None:
    """Decode the chunk starting at ``offset``.

    Returns None when the header, data or CRC would extend past the buffer.
    """
    header = read_chunk_header(buffer, offset)
    if header is None:
        return None
    length, chunk_type = header
    data_start = offset + CHUNK_HEADER.size
    data_end = data_start + length
    if data_end + CHUNK_CRC.size > len(buffer):
        return None
    data = bytes(buffer[data_start:data_end])
    (stored_crc,) = CHUNK_CRC.unpack_from(buffer, data_end)
    return Chunk(
        offset=offset,
        length=length,
        type=chunk_type,
        data=data,
        crc=stored_crc,
        crc_ok=stored_crc == chunk_crc(chunk_type, data),
    )


def encode_chunk(chunk_type: bytes, data: bytes) -> bytes:
    """Serialize a chunk: length + type + data + crc, all big-endian."""
    tag = _validate_chunk_type(chunk_type)
    payload = bytes(data)
    if len(payload) > 0xFFFFFFFF:
        raise ValueError(f"chunk data too large: {len(payload)} bytes")
    return (
        CHUNK_HEADER.pack(len(payload), tag)
        + payload
        + CHUNK_CRC.pack(chunk_crc(tag, payload))
    )
