"""
Upload validation — the full gate a blueprint upload passes through.

Order (cheapest first, first failure wins):
    1. Filename policy   .png only, no disguised inner extension
    2. Size policy       UPLOAD_MIN_BYTES <= size <= max_size, before parsing
    3. Signature scan    denylist of executable/archive/document magics
    4. Extraction        structural walk + payload magic + stripping
    5. Content scan      command-interpreter strings (threat records)

Each function is a pure function of its arguments: (data, filename, limits)
in, UploadResult out. Nothing is raised for attacker input.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field

from afblueprint import (
    LEGACY_EXTENSION,
    UPLOAD_EXTENSION,
    UPLOAD_MAX_BYTES,
    UPLOAD_MIN_BYTES,
)
from afblueprint._format.spec import (
    BAD_EXTENSION,
    DANGEROUS_CONTENT,
    DISGUISED_EXTENSION,
    FILE_TOO_LARGE,
    FILE_TOO_SMALL,
    MAX_CHUNK_LENGTH,
    MAX_CHUNKS,
)
from afblueprint.extract import ExtractResult, extract
from afblueprint.scanner import Threat, scan_content, scan_signature

logger = logging.getLogger(__name__)

# Extensions that must never hide in front of the real one (name.exe.png)
DANGEROUS_EXTENSIONS = (
    ".exe", ".bat", ".cmd", ".com", ".scr", ".vbs", ".js", ".jse",
    ".vbe", ".wsf", ".wsh", ".ps1", ".psc1", ".msh", ".msh1", ".msh1xml",
    ".mshxml", ".scf", ".pif", ".msi", ".app", ".deb", ".rpm", ".dmg",
    ".sh", ".bash", ".zsh", ".ksh", ".csh", ".run", ".bin",
    ".pdf", ".docx", ".doc", ".xls", ".xlsx", ".ppt", ".pptx", ".zip", ".rar",
    ".7z", ".tar", ".gz", ".jar", ".class", ".pyc", ".pyo",
)


@dataclass(frozen=True)
class PolicyResult:
    ok: bool
    error_code: str = ""
    message: str = ""


@dataclass(frozen=True)
class UploadResult:
    """Verdict for one upload.

    ``extraction`` is set whenever extraction ran, so callers can read the
    stripped payload and preview on success.
    """

    ok: bool
    filename: str
    size: int
    error_code: str = ""
    message: str = ""
    extraction: ExtractResult | None = None
    threats: tuple[Threat, ...] = field(default_factory=tuple)

    @property
    def stripped_payload(self) -> bytes:
        return self.extraction.stripped_payload if self.extraction else b""

    @property
    def preview(self) -> bytes:
        return self.extraction.preview if self.extraction else b""

    def to_dict(self) -> dict:
        threats = [t.to_dict() for t in self.threats]
        if not self.ok:
            return {
                "valid": False,
                "filename": self.filename,
                "error_code": self.error_code,
                "message": self.message,
                "threats": threats,
            }
        ext = self.extraction
        return {
            "valid": True,
            "filename": self.filename,
            "original_size": ext.original_size,
            "stripped_size": ext.stripped_size,
            "compression_ratio_percent": ext.compression_ratio,
            "sha256": hashlib.sha256(ext.stripped_payload).hexdigest(),
            "threats": threats,
        }


def format_bytes(size: int) -> str:
    """Human-readable byte count: 0 Bytes, 1.5 KB, 20 MB."""
    if size <= 0:
        return "0 Bytes"
    units = ("Bytes", "KB", "MB", "GB")
    i = 0
    value = float(size)
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    value = round(value, 2)
    if value == int(value):
        value = int(value)
    return f"{value} {units[i]}"


def check_filename(filename: str) -> PolicyResult:
    """Extension gate: .png only, no compound-extension disguise."""
    name = (filename or "").strip().lower()
    if not name.endswith(UPLOAD_EXTENSION):
        dot = name.rfind(".")
        ext = name[dot:] if dot >= 0 else ""
        if ext == LEGACY_EXTENSION:
            detail = "AF files are no longer supported, resave your blueprint in the new format."
        else:
            detail = f"Invalid file type: {ext or '(none)'}"
        return PolicyResult(False, BAD_EXTENSION, f"Only .png files are supported. {detail}")

    stem = name[:-len(UPLOAD_EXTENSION)]
    for ext in DANGEROUS_EXTENSIONS:
        if stem.endswith(ext):
            return PolicyResult(
                False,
                DISGUISED_EXTENSION,
                f"Files with {ext} extensions disguised as {UPLOAD_EXTENSION} are not allowed",
            )
    return PolicyResult(True)


def check_size(size: int, max_size: int = UPLOAD_MAX_BYTES) -> PolicyResult:
    """Size gate, applied before any parsing."""
    if size > max_size:
        return PolicyResult(
            False, FILE_TOO_LARGE, f"PNG blueprint must be smaller than {format_bytes(max_size)}"
        )
    if size < UPLOAD_MIN_BYTES:
        return PolicyResult(False, FILE_TOO_SMALL, "File is too small to be a valid blueprint")
    return PolicyResult(True)


def validate_upload(
    data: bytes,
    filename: str,
    *,
    max_size: int = UPLOAD_MAX_BYTES,
    reject_content_threats: bool = True,
    max_chunks: int = MAX_CHUNKS,
    max_chunk_length: int = MAX_CHUNK_LENGTH,
) -> UploadResult:
    """Run the full upload gate over ``data`` declared as ``filename``.

    Content threats reject by default, as the upload flow treats
    command-interpreter strings as hard rejections. Pass
    ``reject_content_threats=False`` to only record them in ``threats``.
    """
    size = len(data)

    for policy in (check_filename(filename), check_size(size, max_size)):
        if not policy.ok:
            logger.info("Rejected upload %r: %s", filename, policy.error_code)
            return UploadResult(False, filename, size, policy.error_code, policy.message)

    signature = scan_signature(data)
    if not signature.clean:
        logger.info("Rejected upload %r: %s", filename, signature.kind)
        return UploadResult(
            False, filename, size, signature.kind, signature.message,
            threats=signature.threats,
        )

    extraction = extract(data, max_chunks=max_chunks, max_chunk_length=max_chunk_length)
    if not extraction.ok:
        logger.info("Rejected upload %r: %s", filename, extraction.error_code)
        return UploadResult(
            False, filename, size, extraction.error_code,
            f"PNG validation failed: {extraction.message}",
            extraction=extraction,
        )

    content = scan_content(data)
    if not content.clean and reject_content_threats:
        logger.info("Rejected upload %r: %s", filename, DANGEROUS_CONTENT)
        return UploadResult(
            False, filename, size, DANGEROUS_CONTENT,
            f"Security threat detected: {content.message}",
            extraction=extraction,
            threats=content.threats,
        )
    if not content.clean:
        logger.warning("Upload %r has content threats: %s", filename, content.message)

    logger.info(
        "Accepted upload %r: %d -> %d bytes",
        filename, extraction.original_size, extraction.stripped_size,
    )
    return UploadResult(True, filename, size, extraction=extraction, threats=content.threats)
