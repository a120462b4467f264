"""
Branding — embed a small "Alchemy Factory Blueprint File" PNG as an afBR chunk.

afBR starts with a lowercase letter, so it is ancillary: PNG readers skip it
and the preview renders exactly as before. The chunk goes immediately before
IEND so the trailing blueprint payload is left untouched.

Unlike every other operation in the package, embed_branding() does not
report failures. Branding is an enhancement: on any fault the input is
returned unchanged and a warning is logged.
"""

from __future__ import annotations

import logging
from pathlib import Path

from afblueprint import BRANDING_MAX_BYTES
from afblueprint._format.chunk import decode_chunk, encode_chunk, read_chunk_header
from afblueprint._format.reader import is_png_bytes
from afblueprint._format.spec import (
    BRANDING_TAG,
    CHUNK_OVERHEAD,
    IEND,
    MAX_CHUNKS,
    PNG_SIGNATURE,
)

logger = logging.getLogger(__name__)


def _scan_to_terminator(buffer: bytes) -> tuple[int, int] | None:
    """Walk chunk headers from the signature to IEND.

    Returns (iend_offset, branding_offset) where branding_offset is -1 if no
    afBR chunk precedes IEND. Returns None if a complete IEND chunk cannot be reached.
    """
    offset = len(PNG_SIGNATURE)
    branding_offset = -1
    for _ in range(MAX_CHUNKS):
        header = read_chunk_header(buffer, offset)
        if header is None:
            return None
        length, chunk_type = header
        if chunk_type == IEND:
            if offset + CHUNK_OVERHEAD + length > len(buffer):
                return None
            return offset, branding_offset
        if chunk_type == BRANDING_TAG and branding_offset < 0:
            branding_offset = offset
        offset += CHUNK_OVERHEAD + length
        if offset > len(buffer):
            return None
    return None


def embed_branding(buffer: bytes, branding: bytes) -> bytes:
    """Return ``buffer`` with an afBR chunk carrying ``branding`` before IEND.

    Never raises. Returns the input unchanged if it is not a PNG, has no
    reachable IEND, already carries a branding chunk, or ``branding`` is empty.
    """
    original = bytes(buffer)
    try:
        if not branding:
            logger.warning("Branding image is empty; leaving container unchanged")
            return original
        if not is_png_bytes(original):
            logger.warning("Invalid PNG file: signature missing, branding skipped")
            return original

        located = _scan_to_terminator(original)
        if located is None:
            logger.warning("Invalid PNG file: IEND chunk not found, branding skipped")
            return original
        iend_offset, branding_offset = located
        if branding_offset >= 0:
            logger.info("Container already branded at offset %d; not re-embedding", branding_offset)
            return original

        chunk = encode_chunk(BRANDING_TAG, bytes(branding))
        return original[:iend_offset] + chunk + original[iend_offset:]
    except Exception:
        logger.exception("Error embedding branding image")
        return original


def extract_branding(buffer: bytes) -> bytes | None:
    """Return the embedded branding image, or None if there is none.

    Walks chunks from offset 8 and stops at IEND; never reads the payload.
    """
    if not is_png_bytes(buffer):
        return None
    located = _scan_to_terminator(buffer)
    if located is None:
        return None
    _iend_offset, branding_offset = located
    if branding_offset < 0:
        return None
    chunk = decode_chunk(buffer, branding_offset)
    if chunk is None or not chunk.crc_ok:
        logger.warning("Branding chunk at offset %d is corrupt", branding_offset)
        return None
    return chunk.data


def has_branding(buffer: bytes) -> bool:
    """Check if an afBR chunk precedes IEND, whether or not its CRC is intact.

    This is the rule embed_branding() uses to skip re-branding.
    """
    if not is_png_bytes(buffer):
        return False
    located = _scan_to_terminator(buffer)
    return located is not None and located[1] >= 0


def load_branding_image(path: str | Path | None) -> bytes | None:
    """Read the branding PNG from disk.

    Returns None (and logs why) if the path is unset, missing, not a PNG, or
    larger than BRANDING_MAX_BYTES.
    """
    if not path:
        return None
    path = Path(path).expanduser()
    if not path.is_file():
        logger.warning("Branding image not found: %s", path)
        return None
    try:
        data = path.read_bytes()
    except OSError as e:
        logger.warning("Failed to read branding image %s: %s", path, e)
        return None
    if not is_png_bytes(data):
        logger.warning("Branding image %s is not a PNG", path)
        return None
    if len(data) > BRANDING_MAX_BYTES:
        logger.warning(
            "Branding image %s is %d bytes (max %d)", path, len(data), BRANDING_MAX_BYTES
        )
        return None
    return data
