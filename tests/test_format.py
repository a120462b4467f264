"""
Tests for the container format engine — chunk codec, walker, writer.
"""

from __future__ import annotations

import struct

import pytest

from afblueprint._format.chunk import (
    chunk_crc,
    decode_chunk,
    encode_chunk,
    is_ancillary,
    is_critical,
    read_chunk_header,
)
from afblueprint._format.reader import ImageHeader, is_png_bytes, iter_chunks, validate
from afblueprint._format.spec import (
    BLUEPRINT_MAGIC,
    BRANDING_TAG,
    CRC_MISMATCH,
    DUPLICATE_HEADER,
    IDAT,
    IEND,
    IEND_CHUNK,
    IHDR,
    INVALID_HEADER,
    INVALID_SIGNATURE,
    MIN_CONTAINER_SIZE,
    MISSING_HEADER,
    MISSING_TERMINATOR,
    NO_PAYLOAD,
    OVERSIZED_CHUNK,
    PNG_SIGNATURE,
    TOO_MANY_CHUNKS,
    TOO_SMALL,
    TRUNCATED,
    error_family,
)
from afblueprint._format.writer import (
    build_container,
    build_cover_with_payload,
    build_stripped,
    encode_header,
    write,
)

from conftest import header_data, make_payload, make_png


# ---------------------------------------------------------------------------
# Chunk codec
# ---------------------------------------------------------------------------

class TestChunkCodec:

    def test_encode_terminator_matches_constant(self):
        assert encode_chunk(IEND, b"") == IEND_CHUNK
        assert len(IEND_CHUNK) == 12

    def test_encode_layout(self):
        data = b"hello"
        raw = encode_chunk(b"tEXt", data)
        length, tag = struct.unpack(">I4s", raw[:8])
        assert length == 5
        assert tag == b"tEXt"
        assert raw[8:13] == data
        assert struct.unpack(">I", raw[13:])[0] == chunk_crc(b"tEXt", data)

    def test_decode_roundtrip(self):
        raw = b"junk" + encode_chunk(b"tEXt", b"abc")
        chunk = decode_chunk(raw, 4)
        assert chunk is not None
        assert chunk.type == b"tEXt"
        assert chunk.data == b"abc"
        assert chunk.crc_ok
        assert chunk.offset == 4
        assert chunk.end == len(raw)
        assert chunk.name == "tEXt"

    def test_decode_flags_bad_crc(self):
        raw = bytearray(encode_chunk(b"tEXt", b"abc"))
        raw[-1] ^= 0xFF
        chunk = decode_chunk(bytes(raw), 0)
        assert chunk is not None
        assert not chunk.crc_ok

    def test_decode_past_end_returns_none(self):
        raw = encode_chunk(b"tEXt", b"abcdef")
        assert decode_chunk(raw[:-1], 0) is None
        assert decode_chunk(raw, len(raw)) is None
        assert decode_chunk(raw[:5], 0) is None

    def test_read_header_does_not_need_data(self):
        raw = b"\xff\xff\xff\xffIDAT"
        assert read_chunk_header(raw, 0) == (0xFFFFFFFF, IDAT)
        assert decode_chunk(raw, 0) is None

    def test_encode_rejects_bad_tag(self):
        with pytest.raises(ValueError):
            encode_chunk(b"AB", b"")
        with pytest.raises(ValueError):
            encode_chunk(b"AB1D", b"")
        with pytest.raises(TypeError):
            encode_chunk("IHDR", b"")

    def test_case_convention(self):
        assert is_ancillary(BRANDING_TAG)
        assert not is_critical(BRANDING_TAG)
        assert is_critical(IHDR)
        assert not is_ancillary(IEND)


# ---------------------------------------------------------------------------
# Structural validation
# ---------------------------------------------------------------------------

class TestValidate:

    def test_valid_container(self, payload):
        buf = make_png(trailer=payload)
        result = validate(buf)
        assert result.ok
        assert result.error_code == ""
        assert buf[result.terminator_offset:result.terminator_end] == IEND_CHUNK
        assert buf[result.terminator_end:] == payload
        assert result.header == ImageHeader(2, 2, 8, 6, 0, 0, 0)
        assert result.chunk_count == 3

    def test_payload_is_never_parsed(self):
        buf = make_png(trailer=b"\xff\xff\xff\xffIDAT" + b"\x00" * 64)
        assert validate(buf).ok

    def test_too_small(self):
        buf = PNG_SIGNATURE + b"\x00" * (MIN_CONTAINER_SIZE - 9)
        assert validate(buf).error_code == TOO_SMALL

    def test_minimum_size_is_45(self):
        assert MIN_CONTAINER_SIZE == 45

    def test_invalid_signature(self):
        assert validate(b"GIF89a" + b"\x00" * 100).error_code == INVALID_SIGNATURE

    def test_first_chunk_not_header(self):
        buf = build_container([(IDAT, b"x" * 20), (IEND, b"")])
        assert validate(buf).error_code == MISSING_HEADER

    def test_header_wrong_length(self):
        buf = build_container([(IHDR, b"\x00" * 12), (IDAT, b"x"), (IEND, b"")])
        assert validate(buf).error_code == INVALID_HEADER

    def test_invalid_color_type(self):
        buf = build_container([
            (IHDR, header_data(color_type=5)), (IDAT, b"x"), (IEND, b""),
        ])
        result = validate(buf)
        assert result.error_code == INVALID_HEADER
        assert "color type" in result.message

    def test_illegal_bit_depth(self):
        buf = build_container([
            (IHDR, header_data(bit_depth=4, color_type=2)), (IDAT, b"x"), (IEND, b""),
        ])
        assert validate(buf).error_code == INVALID_HEADER

    def test_unusual_dimensions_warn(self):
        buf = build_container([
            (IHDR, header_data(width=0)), (IDAT, b"x"), (IEND, b""),
        ])
        result = validate(buf)
        assert result.ok
        assert any("dimensions" in w for w in result.warnings)

    def test_oversized_chunk_rejected_before_allocation(self):
        buf = PNG_SIGNATURE + encode_header(2, 2) + b"\xff\xff\xff\xffIDAT" + b"\x00" * 16
        assert len(buf) >= MIN_CONTAINER_SIZE
        result = validate(buf)
        assert result.error_code == OVERSIZED_CHUNK

    def test_custom_chunk_length_ceiling(self):
        buf = make_png(extra=[(b"tEXt", b"x" * 64)])
        assert validate(buf, max_chunk_length=32).error_code == OVERSIZED_CHUNK

    def test_truncated_chunk(self):
        buf = PNG_SIGNATURE + encode_header(2, 2) + struct.pack(">I4s", 100, IDAT) + b"\x00" * 20
        assert validate(buf).error_code == TRUNCATED

    def test_too_many_chunks(self):
        extra = [(b"tEXt", b"k\x00v")] * 1000
        buf = make_png(extra=extra)
        assert validate(buf).error_code == TOO_MANY_CHUNKS

    def test_chunk_limit_counts_header(self):
        buf = make_png(extra=[(b"tEXt", b"k\x00v")])
        assert validate(buf, max_chunks=4).ok
        assert validate(buf, max_chunks=3).error_code == TOO_MANY_CHUNKS

    def test_crc_mismatch(self):
        buf = bytearray(make_png())
        idat = next(c for c in iter_chunks(bytes(buf)) if c.type == IDAT)
        buf[idat.offset + 8] ^= 0x01
        assert validate(bytes(buf)).error_code == CRC_MISMATCH

    def test_header_crc_mismatch(self):
        buf = bytearray(make_png())
        buf[16] ^= 0x01  # inside IHDR width
        assert validate(bytes(buf)).error_code == CRC_MISMATCH

    def test_duplicate_header(self):
        buf = build_container([
            (IHDR, header_data()), (IHDR, header_data()), (IDAT, b"x"), (IEND, b""),
        ])
        assert validate(buf).error_code == DUPLICATE_HEADER

    def test_missing_image_data_only_warns(self):
        buf = build_container([(IHDR, header_data()), (IEND, b"")])
        assert len(buf) == MIN_CONTAINER_SIZE
        result = validate(buf)
        assert result.ok
        assert result.warnings == ("PNG file has no IDAT chunk",)

    def test_missing_terminator(self):
        buf = build_container([(IHDR, header_data()), (IDAT, b"x" * 20)])
        assert validate(buf).error_code == MISSING_TERMINATOR

    def test_unknown_critical_chunk_warns(self):
        buf = make_png(extra=[(b"ZZZZ", b"data")])
        result = validate(buf)
        assert result.ok
        assert result.warnings == ("Unknown critical chunk: ZZZZ",)

    def test_never_raises_on_garbage(self):
        for n in (0, 1, 8, 44, 45, 200):
            validate(bytes(range(256))[:n])
            validate(PNG_SIGNATURE + b"\xff" * n)

    def test_to_dict(self, blueprint):
        data = validate(blueprint).to_dict()
        assert data["valid"] is True
        assert data["header"]["width"] == 2
        failed = validate(b"nope" * 20).to_dict()
        assert failed == {
            "valid": False,
            "error_code": INVALID_SIGNATURE,
            "message": "Invalid PNG file signature",
        }


class TestIterChunks:

    def test_stops_at_terminator(self, blueprint):
        types = [c.type for c in iter_chunks(blueprint)]
        assert types == [IHDR, IDAT, IEND]

    def test_is_png_bytes(self, blueprint):
        assert is_png_bytes(blueprint)
        assert not is_png_bytes(b"MZ\x90\x00")


# ---------------------------------------------------------------------------
# Writer
# ---------------------------------------------------------------------------

class TestWriter:

    def test_build_stripped(self, payload):
        stripped = build_stripped(payload)
        assert stripped == PNG_SIGNATURE + IEND_CHUNK + payload
        assert stripped[20:37] == BLUEPRINT_MAGIC

    def test_cover_with_payload(self, cover, payload):
        packed = build_cover_with_payload(cover, payload)
        assert packed == cover + payload
        assert validate(packed).ok

    def test_cover_payload_replaces_trailer(self, payload):
        old = make_png(trailer=make_payload(10))
        packed = build_cover_with_payload(old, payload)
        assert packed.endswith(payload)
        assert len(packed) == len(old) - len(make_payload(10)) + len(payload)

    def test_cover_must_be_valid(self, payload):
        with pytest.raises(ValueError):
            build_cover_with_payload(b"not a png" * 10, payload)

    def test_atomic_write(self, tmp_path, blueprint):
        out = tmp_path / "out.png"
        assert write(blueprint, str(out)) == len(blueprint)
        assert out.read_bytes() == blueprint
        assert list(tmp_path.iterdir()) == [out]


class TestErrorFamilies:

    def test_families(self):
        assert error_family(TOO_SMALL) == "structural"
        assert error_family(NO_PAYLOAD) == "payload"
        assert error_family("native_executable") == "threat"
        assert error_family("file_too_large") == "policy"
        assert error_family("???") == "unknown"
