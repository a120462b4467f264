"""
Payload extraction — split a blueprint container into preview and payload.

The uploaded PNG carries the full-resolution screenshot the game wrote
alongside the blueprint. Only the bytes after IEND matter to the game, so the
stored artifact is rebuilt as signature + IEND + payload. That routinely
shrinks uploads by more than 90% while the result keeps its PNG framing and
still loads in the game.

The dropped raster region is returned separately as ``preview`` so callers
can derive a gallery thumbnail from it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from afblueprint._format.reader import validate
from afblueprint._format.spec import (
    BAD_PAYLOAD_SIGNATURE,
    BLUEPRINT_MAGIC,
    MAX_CHUNK_LENGTH,
    MAX_CHUNKS,
    NO_PAYLOAD,
)
from afblueprint._format.writer import build_stripped

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtractResult:
    """Outcome of extract().

    Attributes:
        ok: True if a blueprint payload was found and the container rebuilt.
        stripped_payload: signature + IEND + payload, ready to store.
        original_size: Size of the uploaded container.
        stripped_size: Size of ``stripped_payload``.
        compression_ratio: Percent saved, one decimal place.
        preview: The raster region (signature through IEND), a standalone PNG.
        payload: The trailing blueprint bytes, magic included.
        error_code: Structural or payload error code on failure.
        message: Human-readable failure description.
    """

    ok: bool
    stripped_payload: bytes = b""
    original_size: int = 0
    stripped_size: int = 0
    compression_ratio: float = 0.0
    preview: bytes = b""
    payload: bytes = b""
    error_code: str = ""
    message: str = ""

    def to_dict(self) -> dict:
        if not self.ok:
            return {"valid": False, "error_code": self.error_code, "message": self.message}
        return {
            "valid": True,
            "original_size": self.original_size,
            "stripped_size": self.stripped_size,
            "compression_ratio_percent": self.compression_ratio,
        }


def compression_ratio(original_size: int, stripped_size: int) -> float:
    """Percentage of bytes saved, rounded to one decimal."""
    if original_size <= 0:
        return 0.0
    return round((1 - stripped_size / original_size) * 100, 1)


def has_blueprint_magic(data: bytes) -> bool:
    return bytes(data[:len(BLUEPRINT_MAGIC)]) == BLUEPRINT_MAGIC


def extract(
    buffer: bytes,
    *,
    max_chunks: int = MAX_CHUNKS,
    max_chunk_length: int = MAX_CHUNK_LENGTH,
) -> ExtractResult:
    """Validate ``buffer`` and split it into preview and stripped payload."""
    original_size = len(buffer)
    structure = validate(buffer, max_chunks=max_chunks, max_chunk_length=max_chunk_length)
    if not structure.ok:
        return ExtractResult(
            ok=False,
            original_size=original_size,
            error_code=structure.error_code,
            message=structure.message,
        )

    candidate = bytes(buffer[structure.terminator_end:])
    if not candidate:
        return ExtractResult(
            ok=False,
            original_size=original_size,
            error_code=NO_PAYLOAD,
            message="PNG does not contain blueprint data after IEND",
        )
    if not has_blueprint_magic(candidate):
        return ExtractResult(
            ok=False,
            original_size=original_size,
            error_code=BAD_PAYLOAD_SIGNATURE,
            message="PNG does not contain a valid blueprint signature",
        )

    stripped = build_stripped(candidate)
    ratio = compression_ratio(original_size, len(stripped))
    logger.debug(
        "Extracted blueprint: %d -> %d bytes (%.1f%% saved)",
        original_size, len(stripped), ratio,
    )
    return ExtractResult(
        ok=True,
        stripped_payload=stripped,
        original_size=original_size,
        stripped_size=len(stripped),
        compression_ratio=ratio,
        preview=bytes(buffer[:structure.terminator_end]),
        payload=candidate,
    )
