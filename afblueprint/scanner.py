"""
Threat scanner — fast first-line gate against disguised files.

Two independent, stateless scans:

    scan_signature  Compare fixed byte patterns at fixed offsets against an
                    ordered denylist. A match is an authoritative rejection.
    scan_content    Permissive text decode + substring search for command
                    interpreters. Matches only produce Threat records; this
                    tier catches trivial droppers, false negatives are fine.

DENYLIST is built once at import and shared read-only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import NamedTuple

from afblueprint._format.spec import (
    ARCHIVE,
    COMPRESSED_STREAM,
    DANGEROUS_CONTENT,
    DOCUMENT,
    NATIVE_EXECUTABLE,
    SCRIPT,
    SUSPICIOUS_BINARY,
)


class Signature(NamedTuple):
    """A denylisted byte pattern at a fixed offset."""

    offset: int
    magic: bytes
    kind: str
    description: str

    def matches(self, buffer: bytes) -> bool:
        end = self.offset + len(self.magic)
        return len(buffer) >= end and buffer[self.offset:end] == self.magic


# Ordered: first match wins. Executables come first, and within a family
# longer magics precede shorter ones.
DENYLIST: tuple[Signature, ...] = (
    # Native executables
    Signature(0, b"\x7fELF", NATIVE_EXECUTABLE, "ELF executable (Linux/Unix)"),
    Signature(0, b"\xfe\xed\xfa\xce", NATIVE_EXECUTABLE, "Mach-O executable (32-bit)"),
    Signature(0, b"\xfe\xed\xfa\xcf", NATIVE_EXECUTABLE, "Mach-O executable (64-bit)"),
    Signature(0, b"\xce\xfa\xed\xfe", NATIVE_EXECUTABLE, "Mach-O executable (32-bit, LE)"),
    Signature(0, b"\xcf\xfa\xed\xfe", NATIVE_EXECUTABLE, "Mach-O executable (64-bit, LE)"),
    Signature(0, b"\xca\xfe\xba\xbe", NATIVE_EXECUTABLE, "Mach-O universal binary or Java class"),
    Signature(0, b"MZ", NATIVE_EXECUTABLE, "Windows PE executable (.exe, .dll, .scr)"),
    # Scripts
    Signature(0, b"#!", SCRIPT, "Script with shebang line"),
    # Archives
    Signature(0, b"7z\xbc\xaf\x27\x1c", ARCHIVE, "7z archive"),
    Signature(0, b"Rar!\x1a\x07", ARCHIVE, "RAR archive"),
    Signature(0, b"PK\x03\x04", ARCHIVE, "ZIP archive or Office document"),
    Signature(0, b"PK\x05\x06", ARCHIVE, "ZIP archive (empty)"),
    Signature(0, b"PK\x07\x08", ARCHIVE, "ZIP archive (spanned)"),
    Signature(257, b"ustar", ARCHIVE, "tar archive"),
    # Documents
    Signature(0, b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1", DOCUMENT, "OLE compound document (.doc, .xls, .msi)"),
    Signature(0, b"%PDF", DOCUMENT, "PDF document"),
    Signature(0, b"{\\rtf", DOCUMENT, "Rich text document"),
    # Compressed streams
    Signature(0, b"\xfd7zXZ\x00", COMPRESSED_STREAM, "xz stream"),
    Signature(0, b"\x28\xb5\x2f\xfd", COMPRESSED_STREAM, "zstd stream"),
    Signature(0, b"BZh", COMPRESSED_STREAM, "bzip2 stream"),
    Signature(0, b"\x1f\x8b", COMPRESSED_STREAM, "gzip stream"),
    # Heuristics
    Signature(0, b"\x00\x00\x00", SUSPICIOUS_BINARY, "Suspicious binary format (leading NUL bytes)"),
)


class _ContentPattern(NamedTuple):
    name: str
    needle: str
    description: str
    severity: str


_CONTENT_PATTERNS: tuple[_ContentPattern, ...] = (
    _ContentPattern("POWERSHELL", "powershell", "PowerShell command detected", "medium"),
    _ContentPattern("CMD_SHELL", "cmd.exe", "Windows cmd detected", "medium"),
    _ContentPattern("WSCRIPT", "wscript.exe", "Windows Script Host detected", "medium"),
    _ContentPattern("CSCRIPT", "cscript.exe", "Windows console script host detected", "medium"),
    _ContentPattern("MSHTA", "mshta", "HTML application host detected", "medium"),
)


@dataclass(frozen=True)
class Threat:
    """A single scanner finding."""

    type: str
    description: str
    severity: str

    def to_dict(self) -> dict[str, str]:
        return {"type": self.type, "description": self.description, "severity": self.severity}


@dataclass(frozen=True)
class ScanResult:
    """Outcome of a scan. ``kind`` is the threat error code when not clean."""

    clean: bool
    kind: str = ""
    message: str = ""
    threats: tuple[Threat, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        result: dict = {
            "clean": self.clean,
            "threats": [t.to_dict() for t in self.threats],
        }
        if not self.clean:
            result["kind"] = self.kind
            result["message"] = self.message
        return result


def match_signature(buffer: bytes) -> Signature | None:
    """Return the first denylist entry matching ``buffer``, or None."""
    head = bytes(buffer[:512])
    for sig in DENYLIST:
        if sig.matches(head):
            return sig
    return None


def scan_signature(buffer: bytes) -> ScanResult:
    """Reject buffers whose leading bytes identify a foreign or dangerous format."""
    sig = match_signature(buffer)
    if sig is None:
        return ScanResult(clean=True)
    return ScanResult(
        clean=False,
        kind=sig.kind,
        message=f"{sig.description} is not allowed",
        threats=(Threat(sig.kind.upper(), sig.description, "high"),),
    )


def scan_content(buffer: bytes) -> ScanResult:
    """Search a permissive text decoding of ``buffer`` for command interpreters."""
    text = bytes(buffer).decode("utf-8", errors="replace").lower()
    threats = tuple(
        Threat(p.name, p.description, p.severity)
        for p in _CONTENT_PATTERNS
        if p.needle in text
    )
    if not threats:
        return ScanResult(clean=True)
    return ScanResult(
        clean=False,
        kind=DANGEROUS_CONTENT,
        message="; ".join(t.description for t in threats),
        threats=threats,
    )
