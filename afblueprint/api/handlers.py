"""
Request handlers for the validation API.

Each handler is a pure function: (request_data, config) → (status_code, response).
No HTTP plumbing here; that lives in server.py. A response is a dict (sent as
JSON) or bytes (sent as image/png with any extra headers the handler returns).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from afblueprint import __version__
from afblueprint._format.spec import FILE_TOO_LARGE, error_family
from afblueprint.branding import embed_branding, extract_branding
from afblueprint.scanner import scan_content, scan_signature
from afblueprint.upload import format_bytes, validate_upload


def _status_for(code: str) -> int:
    """Map an error code to an HTTP status."""
    if code == FILE_TOO_LARGE:
        return 413
    if error_family(code) == "unknown":
        return 500
    return 400


def _check_body(body: bytes, config: dict[str, Any]) -> tuple[int, dict] | None:
    if not body:
        return 400, {"error": "Empty request body"}
    max_bytes = config["max_upload_bytes"]
    if len(body) > max_bytes:
        return 413, {"error": f"Payload too large (max {format_bytes(max_bytes)})"}
    return None


def _validate(body: bytes, filename: str, config: dict[str, Any]):
    return validate_upload(
        body,
        filename,
        max_size=config["max_upload_bytes"],
        reject_content_threats=config["reject_content_threats"],
        max_chunks=config["max_chunks"],
        max_chunk_length=config["max_chunk_length"],
    )


def handle_validate(
    body: bytes,
    filename: str,
    config: dict[str, Any],
) -> tuple[int, dict]:
    """POST /validate — run the full upload gate, return the verdict.

    Args:
        body: Raw uploaded file bytes
        filename: Declared filename (X-Filename header)
        config: Service configuration
    """
    error = _check_body(body, config)
    if error:
        return error
    result = _validate(body, filename, config)
    if not result.ok:
        return _status_for(result.error_code), result.to_dict()
    return 200, result.to_dict()


def handle_extract(
    body: bytes,
    filename: str,
    config: dict[str, Any],
) -> tuple[int, dict | bytes, dict[str, str]]:
    """POST /extract — validate and return the stripped container bytes.

    Returns (status, bytes, headers) on success, (status, dict, {}) on error.
    """
    error = _check_body(body, config)
    if error:
        return error[0], error[1], {}
    result = _validate(body, filename, config)
    if not result.ok:
        return _status_for(result.error_code), result.to_dict(), {}
    ext = result.extraction
    headers = {
        "X-Original-Size": str(ext.original_size),
        "X-Stripped-Size": str(ext.stripped_size),
        "X-Compression-Ratio": f"{ext.compression_ratio:.1f}",
    }
    return 200, ext.stripped_payload, headers


def handle_brand(
    body: bytes,
    branding: bytes | None,
    config: dict[str, Any],
) -> tuple[int, dict | bytes]:
    """POST /brand — embed the configured branding image.

    Best effort: without a branding image, or on any embedding fault, the
    body comes back unchanged.
    """
    error = _check_body(body, config)
    if error:
        return error
    if not branding:
        return 200, body
    return 200, embed_branding(body, branding)


def handle_branding(body: bytes, config: dict[str, Any]) -> tuple[int, dict | bytes]:
    """POST /branding — return the branding image embedded in the body."""
    error = _check_body(body, config)
    if error:
        return error
    image = extract_branding(body)
    if image is None:
        return 404, {"error": "No branding image embedded"}
    return 200, image


def handle_scan(body: bytes, config: dict[str, Any]) -> tuple[int, dict]:
    """POST /scan — signature and content scan report."""
    error = _check_body(body, config)
    if error:
        return error
    signature = scan_signature(body)
    content = scan_content(body)
    return 200, {
        "clean": signature.clean and content.clean,
        "signature": signature.to_dict(),
        "content": content.to_dict(),
        "scan_time": datetime.now(timezone.utc).isoformat(),
    }


def handle_status(config: dict[str, Any], branding: bytes | None) -> tuple[int, dict]:
    """GET /status — service health check."""
    return 200, {
        "service": "afblueprint-api",
        "version": __version__,
        "healthy": True,
        "branding_loaded": branding is not None,
        "limits": {
            "max_upload_bytes": config["max_upload_bytes"],
            "max_chunks": config["max_chunks"],
            "max_chunk_length": config["max_chunk_length"],
        },
        "reject_content_threats": config["reject_content_threats"],
    }
