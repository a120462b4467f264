"""
Shared fixtures — synthetic blueprint containers built in memory.
"""

from __future__ import annotations

import random
import zlib

import pytest

from afblueprint._format.reader import ImageHeader
from afblueprint._format.spec import BLUEPRINT_MAGIC, IDAT, IEND, IHDR
from afblueprint._format.writer import build_container


def header_data(width: int = 2, height: int = 2, bit_depth: int = 8, color_type: int = 6) -> bytes:
    """Raw 13-byte IHDR data."""
    return ImageHeader(width, height, bit_depth, color_type, 0, 0, 0).to_bytes()


def make_png(width: int = 2, height: int = 2, trailer: bytes = b"", extra=()) -> bytes:
    """Build a structurally valid RGBA PNG with optional trailing bytes.

    ``extra`` is a sequence of (type, data) chunks placed between IHDR and IDAT.
    """
    raw = b"".join(b"\x00" + b"\x00\x00\x00\xff" * width for _ in range(height))
    chunks = [
        (IHDR, header_data(width, height)),
        *extra,
        (IDAT, zlib.compress(raw)),
        (IEND, b""),
    ]
    return build_container(chunks, trailer)


def make_noisy_png(min_size: int, trailer: bytes = b"") -> bytes:
    """A PNG whose IDAT holds ``min_size`` bytes of seeded noise."""
    noise = random.Random(1234).randbytes(min_size)
    chunks = [(IHDR, header_data(512, 512)), (IDAT, noise), (IEND, b"")]
    return build_container(chunks, trailer)


def make_payload(size: int = 256) -> bytes:
    """Blueprint payload: magic followed by ``size`` deterministic bytes."""
    return BLUEPRINT_MAGIC + bytes((i * 7) % 251 for i in range(size))


@pytest.fixture
def payload():
    return make_payload()


@pytest.fixture
def cover():
    """Plain PNG without trailing data."""
    return make_png()


@pytest.fixture
def blueprint(payload):
    """Cover PNG carrying a blueprint payload after IEND."""
    return make_png(trailer=payload)


@pytest.fixture
def branding_png():
    """A tiny PNG usable as a branding image."""
    return make_png(1, 1)
