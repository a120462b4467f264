"""
Writer — assembles containers from chunks.

Every function returns a fresh bytes object; inputs are never mutated.

Stripped layout (what extract() stores):
    PNG signature + IEND chunk + blueprint payload

Full layout (what the game writes):
    PNG signature + IHDR + ... + IDAT + IEND + blueprint payload
"""

from __future__ import annotations

import io
import os
import tempfile
from typing import Iterable

from afblueprint._format.chunk import encode_chunk
from afblueprint._format.reader import ImageHeader, validate
from afblueprint._format.spec import IEND_CHUNK, IHDR, PNG_SIGNATURE


def encode_header(
    width: int,
    height: int,
    bit_depth: int = 8,
    color_type: int = 6,
    interlace: int = 0,
) -> bytes:
    """Encode a complete IHDR chunk."""
    header = ImageHeader(width, height, bit_depth, color_type, 0, 0, interlace)
    return encode_chunk(IHDR, header.to_bytes())


def build_container(chunks: Iterable[tuple[bytes, bytes]], trailer: bytes = b"") -> bytes:
    """Serialize signature + (type, data) chunks + optional trailing bytes.

    The caller supplies IHDR and IEND like any other chunk.
    """
    out = io.BytesIO()
    out.write(PNG_SIGNATURE)
    for chunk_type, data in chunks:
        out.write(encode_chunk(chunk_type, data))
    out.write(trailer)
    return out.getvalue()


def build_stripped(payload: bytes) -> bytes:
    """Minimal container: signature + terminator + payload (no pixel data)."""
    return PNG_SIGNATURE + IEND_CHUNK + bytes(payload)


def build_cover_with_payload(cover: bytes, payload: bytes) -> bytes:
    """Append ``payload`` after the cover's terminator.

    Anything the cover already carries after its IEND is replaced.
    Raises ValueError if ``cover`` is not a structurally valid PNG.
    """
    result = validate(cover)
    if not result.ok:
        raise ValueError(f"Cover is not a valid PNG: {result.message}")
    return bytes(cover[:result.terminator_end]) + bytes(payload)


def write(data: bytes, path: str, mode: int = 0o644) -> int:
    """Write bytes to file atomically. Returns bytes written."""
    dir_name = os.path.dirname(os.path.abspath(path)) or "."
    fd, tmp_path = tempfile.mkstemp(dir=dir_name, suffix=".png.tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except Exception:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
    return len(data)
