"""
Blueprint Container Specification.

Layout:
    89 50 4E 47 0D 0A 1A 0A          <- PNG signature (8 bytes)
    [len][IHDR][13 bytes][crc]       <- Mandatory header chunk
    [len][type][data][crc] ...       <- Ancillary / pixel chunks
    [len][afBR][png][crc]            <- Optional branding chunk (inserted once)
    00 00 00 00 IEND AE 42 60 82     <- Terminator (12 bytes)
    0E 00 00 00 "UploadedImage" ...  <- Blueprint payload (opaque)

Chunk Encoding:
    - length: u32 big-endian, counts data bytes only
    - type:   4 ASCII letters; lowercase first letter = ancillary
    - crc:    CRC-32/IEEE-802.3 over type + data, u32 big-endian

Safety Limits:
    - At most MAX_CHUNKS chunks are walked before the terminator
    - A chunk may not declare more than MAX_CHUNK_LENGTH data bytes
    - Both are checked before any slice is taken, so a crafted length
      never turns into an allocation
"""

import struct

# Magic bytes: first 8 bytes of every PNG file
PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

# Chunk tags
IHDR = b"IHDR"
PLTE = b"PLTE"
IDAT = b"IDAT"
IEND = b"IEND"
BRANDING_TAG = b"afBR"  # Alchemy Factory BRanding (ancillary, private)

KNOWN_CRITICAL = frozenset({IHDR, PLTE, IDAT, IEND})

# Fixed-size records
CHUNK_HEADER = struct.Struct(">I4s")  # length, type
CHUNK_CRC = struct.Struct(">I")
CHUNK_OVERHEAD = CHUNK_HEADER.size + CHUNK_CRC.size  # 12
IHDR_STRUCT = struct.Struct(">IIBBBBB")  # width, height, depth, color, comp, filter, interlace
IHDR_LENGTH = IHDR_STRUCT.size  # 13

# The terminator never carries data, so its bytes (and CRC) are constant
IEND_CHUNK = b"\x00\x00\x00\x00IEND\xaeB`\x82"

# Blueprint payload magic: u32 LE string length (14) + "UploadedImage"
BLUEPRINT_MAGIC = b"\x0e\x00\x00\x00UploadedImage"

# Smallest structurally possible container: signature + IHDR + IEND
MIN_CONTAINER_SIZE = len(PNG_SIGNATURE) + CHUNK_OVERHEAD + IHDR_LENGTH + len(IEND_CHUNK)

# Legal bit depths per IHDR color type
COLOR_TYPE_BIT_DEPTHS = {
    0: frozenset({1, 2, 4, 8, 16}),  # greyscale
    2: frozenset({8, 16}),           # truecolor
    3: frozenset({1, 2, 4, 8}),      # indexed
    4: frozenset({8, 16}),           # greyscale + alpha
    6: frozenset({8, 16}),           # truecolor + alpha
}

# Safety limits
MAX_CHUNKS = 1000
MAX_CHUNK_LENGTH = 1_000_000_000
MAX_DIMENSION = 1_000_000

# Error codes: structural
TOO_SMALL = "too_small"
INVALID_SIGNATURE = "invalid_signature"
MISSING_HEADER = "missing_header"
INVALID_HEADER = "invalid_header"
DUPLICATE_HEADER = "duplicate_header"
MISSING_TERMINATOR = "missing_terminator"
OVERSIZED_CHUNK = "oversized_chunk"
TOO_MANY_CHUNKS = "too_many_chunks"
TRUNCATED = "truncated"
CRC_MISMATCH = "crc_mismatch"

# Error codes: payload
NO_PAYLOAD = "no_payload"
BAD_PAYLOAD_SIGNATURE = "bad_payload_signature"

# Error codes: threats (scanner kinds double as rejection codes)
NATIVE_EXECUTABLE = "native_executable"
SCRIPT = "script"
ARCHIVE = "archive"
DOCUMENT = "document"
COMPRESSED_STREAM = "compressed_stream"
SUSPICIOUS_BINARY = "suspicious_binary"
DANGEROUS_CONTENT = "dangerous_content"

# Error codes: upload policy
BAD_EXTENSION = "bad_extension"
DISGUISED_EXTENSION = "disguised_extension"
FILE_TOO_LARGE = "file_too_large"
FILE_TOO_SMALL = "file_too_small"

STRUCTURAL_ERRORS = frozenset({
    TOO_SMALL, INVALID_SIGNATURE, MISSING_HEADER, INVALID_HEADER,
    DUPLICATE_HEADER, MISSING_TERMINATOR,
    OVERSIZED_CHUNK, TOO_MANY_CHUNKS, TRUNCATED, CRC_MISMATCH,
})
PAYLOAD_ERRORS = frozenset({NO_PAYLOAD, BAD_PAYLOAD_SIGNATURE})
THREAT_ERRORS = frozenset({
    NATIVE_EXECUTABLE, SCRIPT, ARCHIVE, DOCUMENT,
    COMPRESSED_STREAM, SUSPICIOUS_BINARY, DANGEROUS_CONTENT,
})
POLICY_ERRORS = frozenset({
    BAD_EXTENSION, DISGUISED_EXTENSION, FILE_TOO_LARGE, FILE_TOO_SMALL,
})


def error_family(code: str) -> str:
    """Return the family name ("structural", "payload", "threat", "policy") of an error code."""
    if code in STRUCTURAL_ERRORS:
        return "structural"
    if code in PAYLOAD_ERRORS:
        return "payload"
    if code in THREAT_ERRORS:
        return "threat"
    if code in POLICY_ERRORS:
        return "policy"
    return "unknown"
