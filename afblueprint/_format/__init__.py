"""
Internal container format engine — PNG chunk stream with a trailing payload.

The container is a standard PNG (signature, IHDR, pixel chunks, IEND) whose
IEND is followed by the blueprint payload. PNG readers stop at IEND and show
the preview; the game reads past it. This is an internal dependency, not a
public API.

Format: PNG (ISO/IEC 15948) chunk layout, CRC-32/IEEE-802.3 checksums
Payload: 17-byte "UploadedImage" magic followed by opaque blueprint data
"""

from afblueprint._format.spec import PNG_SIGNATURE, BLUEPRINT_MAGIC, IEND_CHUNK
from afblueprint._format.chunk import Chunk, decode_chunk, encode_chunk
from afblueprint._format.reader import ImageHeader, ValidationResult, validate
from afblueprint._format.writer import build_container, build_cover_with_payload
