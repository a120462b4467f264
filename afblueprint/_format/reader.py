"""
Reader — container walker and structural validator.

Speed features:
  - Signature check on the first 8 bytes (instant file identification)
  - Chunk headers are peeked before any data is sliced
  - The walk stops at the first IEND; trailing payload bytes are never parsed

Security features:
  - Chunk count ceiling (MAX_CHUNKS) bounds walk time
  - Per-chunk length ceiling (MAX_CHUNK_LENGTH) rejects crafted lengths
    before allocation
  - Every walked chunk's CRC must match (corrupt or spliced data is rejected)
  - IHDR must come first, exactly once, with a legal depth/color combination

validate() never raises on attacker input: every failure is a ValidationResult
carrying one of the structural error codes from spec.py.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator

from afblueprint._format.chunk import (
    Chunk,
    decode_chunk,
    is_critical,
    read_chunk_header,
)
from afblueprint._format.spec import (
    COLOR_TYPE_BIT_DEPTHS,
    CRC_MISMATCH,
    DUPLICATE_HEADER,
    IDAT,
    IEND,
    IHDR,
    IHDR_LENGTH,
    IHDR_STRUCT,
    INVALID_HEADER,
    INVALID_SIGNATURE,
    KNOWN_CRITICAL,
    MAX_CHUNK_LENGTH,
    MAX_CHUNKS,
    MAX_DIMENSION,
    MIN_CONTAINER_SIZE,
    MISSING_HEADER,
    MISSING_TERMINATOR,
    OVERSIZED_CHUNK,
    PNG_SIGNATURE,
    TOO_MANY_CHUNKS,
    TOO_SMALL,
    TRUNCATED,
)


@dataclass(frozen=True)
class ImageHeader:
    """Decoded IHDR record."""

    width: int
    height: int
    bit_depth: int
    color_type: int
    compression: int
    filter_method: int
    interlace: int

    @classmethod
    def from_bytes(cls, data: bytes) -> ImageHeader:
        return cls(*IHDR_STRUCT.unpack(data))

    def to_bytes(self) -> bytes:
        return IHDR_STRUCT.pack(
            self.width, self.height, self.bit_depth, self.color_type,
            self.compression, self.filter_method, self.interlace,
        )

    @property
    def is_legal(self) -> bool:
        depths = COLOR_TYPE_BIT_DEPTHS.get(self.color_type)
        return depths is not None and self.bit_depth in depths

    def to_dict(self) -> dict[str, int]:
        return {
            "width": self.width,
            "height": self.height,
            "bit_depth": self.bit_depth,
            "color_type": self.color_type,
        }


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a structural walk.

    On success ``terminator_offset`` is the offset of the IEND length field and
    ``terminator_end`` the first byte after the IEND CRC (start of any payload).
    """

    ok: bool
    terminator_offset: int = -1
    terminator_end: int = -1
    header: ImageHeader | None = None
    chunk_count: int = 0
    error_code: str = ""
    message: str = ""
    warnings: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def fail(
        cls,
        code: str,
        message: str,
        *,
        header: ImageHeader | None = None,
        chunk_count: int = 0,
        warnings: list[str] | None = None,
    ) -> ValidationResult:
        return cls(
            ok=False,
            header=header,
            chunk_count=chunk_count,
            error_code=code,
            message=message,
            warnings=tuple(warnings or ()),
        )

    def to_dict(self) -> dict:
        if not self.ok:
            return {"valid": False, "error_code": self.error_code, "message": self.message}
        result = {
            "valid": True,
            "terminator_offset": self.terminator_offset,
            "chunk_count": self.chunk_count,
        }
        if self.header is not None:
            result["header"] = self.header.to_dict()
        if self.warnings:
            result["warnings"] = list(self.warnings)
        return result


def is_png_bytes(data: bytes) -> bool:
    """Fast check if bytes start with the PNG signature."""
    return bytes(data[:len(PNG_SIGNATURE)]) == PNG_SIGNATURE


def iter_chunks(buffer: bytes, offset: int = len(PNG_SIGNATURE)) -> Iterator[Chunk]:
    """Yield decoded chunks from ``offset`` up to and including the first IEND.

    Stops silently at the first chunk that cannot be decoded. Performs no
    checksum or ceiling enforcement; use validate() for untrusted input.
    """
    while True:
        chunk = decode_chunk(buffer, offset)
        if chunk is None:
            return
        yield chunk
        if chunk.type == IEND:
            return
        offset = chunk.end


def validate(
    buffer: bytes,
    *,
    max_chunks: int = MAX_CHUNKS,
    max_chunk_length: int = MAX_CHUNK_LENGTH,
) -> ValidationResult:
    """Walk ``buffer`` as a PNG chunk stream and enforce the container invariants."""
    if len(buffer) < MIN_CONTAINER_SIZE:
        return ValidationResult.fail(
            TOO_SMALL,
            f"Container is {len(buffer)} bytes; at least {MIN_CONTAINER_SIZE} required",
        )

    if not is_png_bytes(buffer):
        return ValidationResult.fail(INVALID_SIGNATURE, "Invalid PNG file signature")

    warnings: list[str] = []

    # --- Mandatory header ---
    offset = len(PNG_SIGNATURE)
    peek = read_chunk_header(buffer, offset)
    if peek is None or peek[1] != IHDR:
        return ValidationResult.fail(MISSING_HEADER, "First chunk is not IHDR")
    if peek[0] != IHDR_LENGTH:
        return ValidationResult.fail(
            INVALID_HEADER, f"IHDR chunk has invalid length {peek[0]} (expected {IHDR_LENGTH})"
        )
    first = decode_chunk(buffer, offset)
    if first is None:
        return ValidationResult.fail(MISSING_HEADER, "IHDR chunk is truncated")
    if not first.crc_ok:
        return ValidationResult.fail(CRC_MISMATCH, "IHDR chunk CRC mismatch")

    header = ImageHeader.from_bytes(first.data)
    if header.color_type not in COLOR_TYPE_BIT_DEPTHS:
        return ValidationResult.fail(
            INVALID_HEADER, f"Invalid PNG color type: {header.color_type}", header=header
        )
    if not header.is_legal:
        return ValidationResult.fail(
            INVALID_HEADER,
            f"Bit depth {header.bit_depth} is not legal for color type {header.color_type}",
            header=header,
        )
    if not (0 < header.width <= MAX_DIMENSION and 0 < header.height <= MAX_DIMENSION):
        warnings.append(f"PNG dimensions are unusual: {header.width}x{header.height}")

    # --- Chunk stream up to the terminator ---
    offset = first.end
    chunk_count = 1
    has_image_data = False

    while offset < len(buffer):
        if chunk_count >= max_chunks:
            return ValidationResult.fail(
                TOO_MANY_CHUNKS,
                f"PNG file has too many chunks (max {max_chunks})",
                header=header, chunk_count=chunk_count, warnings=warnings,
            )

        peek = read_chunk_header(buffer, offset)
        if peek is None:
            break
        length, chunk_type = peek
        if length > max_chunk_length:
            return ValidationResult.fail(
                OVERSIZED_CHUNK,
                f"Chunk with suspiciously large size detected: {length}",
                header=header, chunk_count=chunk_count, warnings=warnings,
            )

        chunk = decode_chunk(buffer, offset)
        if chunk is None:
            return ValidationResult.fail(
                TRUNCATED,
                f"Chunk {chunk_type!r} at offset {offset} runs past end of file",
                header=header, chunk_count=chunk_count, warnings=warnings,
            )
        chunk_count += 1

        if not chunk.crc_ok:
            return ValidationResult.fail(
                CRC_MISMATCH,
                f"Chunk {chunk.name!r} at offset {offset} has a bad CRC",
                header=header, chunk_count=chunk_count, warnings=warnings,
            )

        if chunk.type == IHDR:
            return ValidationResult.fail(
                DUPLICATE_HEADER, "Duplicate IHDR chunk",
                header=header, chunk_count=chunk_count, warnings=warnings,
            )
        if chunk.type == IDAT:
            has_image_data = True
        elif chunk.type == IEND:
            if not has_image_data:
                warnings.append("PNG file has no IDAT chunk")
            return ValidationResult(
                ok=True,
                terminator_offset=chunk.offset,
                terminator_end=chunk.end,
                header=header,
                chunk_count=chunk_count,
                warnings=tuple(warnings),
            )
        elif is_critical(chunk.type) and chunk.type not in KNOWN_CRITICAL:
            warnings.append(f"Unknown critical chunk: {chunk.name}")

        offset = chunk.end

    return ValidationResult.fail(
        MISSING_TERMINATOR, "PNG file missing IEND chunk",
        header=header, chunk_count=chunk_count, warnings=warnings,
    )
