"""
afbp CLI — blueprint container tools for Alchemy Factory PNG blueprints.

Commands:
  afbp validate    - Run the upload gate over a .png blueprint
  afbp extract     - Strip the screenshot, keep signature + IEND + payload
  afbp brand       - Embed a branding image (afBR chunk) before IEND
  afbp branding    - Write out the branding image embedded in a container
  afbp scan        - Signature and content scan of any file
  afbp pack        - Append a blueprint payload to a cover PNG
  afbp api start   - Start the validation API HTTP server
  afbp api status  - Show validation API service status
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path


def _read_input(path_str: str) -> bytes:
    path = Path(path_str)
    if not path.is_file():
        print(f"Error: File not found: {path}", file=sys.stderr)
        sys.exit(1)
    return path.read_bytes()


def _check_output(output: str) -> None:
    if ".." in Path(output).parts:
        print("Error: Output path must not contain '..' (path traversal)", file=sys.stderr)
        sys.exit(1)


def cmd_validate(args: argparse.Namespace) -> None:
    """Run the full upload gate and print the verdict."""
    from afblueprint.upload import format_bytes, validate_upload

    data = _read_input(args.path)
    result = validate_upload(
        data,
        Path(args.path).name,
        reject_content_threats=not args.allow_content_threats,
    )

    if not result.ok:
        print(f"FAIL: {args.path} [{result.error_code}]", file=sys.stderr)
        print(f"  {result.message}", file=sys.stderr)
        sys.exit(1)

    ext = result.extraction
    print(f"OK: {args.path} is a valid blueprint")
    print(f"  original: {format_bytes(ext.original_size)}")
    print(f"  stripped: {format_bytes(ext.stripped_size)} ({ext.compression_ratio:.1f}% saved)")
    for threat in result.threats:
        print(f"  warning:  {threat.description} ({threat.severity})")


def cmd_extract(args: argparse.Namespace) -> None:
    """Write the stripped container (and optionally the preview image)."""
    from afblueprint._format.writer import write
    from afblueprint.extract import extract

    data = _read_input(args.path)
    result = extract(data)
    if not result.ok:
        print(f"Error: {result.message} [{result.error_code}]", file=sys.stderr)
        sys.exit(1)

    src = Path(args.path)
    output = args.output or str(src.with_name(f"{src.stem}.stripped.png"))
    _check_output(output)
    nbytes = write(result.stripped_payload, output)
    print(f"Extracted -> {output} ({nbytes} bytes, {result.compression_ratio:.1f}% saved)")

    if args.preview:
        _check_output(args.preview)
        nbytes = write(result.preview, args.preview)
        print(f"Preview   -> {args.preview} ({nbytes} bytes)")


def cmd_brand(args: argparse.Namespace) -> None:
    """Embed a branding image into a container."""
    from afblueprint._format.writer import write
    from afblueprint.branding import (
        embed_branding,
        extract_branding,
        has_branding,
        load_branding_image,
    )

    data = _read_input(args.path)
    branding = load_branding_image(args.branding)
    if branding is None:
        print(f"Error: Unusable branding image: {args.branding}", file=sys.stderr)
        sys.exit(1)

    if has_branding(data):
        if extract_branding(data) is None:
            print(f"Error: {args.path} has a corrupt branding chunk", file=sys.stderr)
            sys.exit(1)
        print(f"{args.path} is already branded; nothing to do.")
        return

    branded = embed_branding(data, branding)
    if branded == data:
        print(f"Error: {args.path} is not a PNG container with an IEND chunk", file=sys.stderr)
        sys.exit(1)

    output = args.output or args.path
    _check_output(output)
    nbytes = write(branded, output)
    print(f"Branded -> {output} ({nbytes} bytes)")


def cmd_branding(args: argparse.Namespace) -> None:
    """Write out the embedded branding image."""
    from afblueprint._format.writer import write
    from afblueprint.branding import extract_branding

    data = _read_input(args.path)
    image = extract_branding(data)
    if image is None:
        print(f"FAIL: {args.path} has no branding image", file=sys.stderr)
        sys.exit(1)

    src = Path(args.path)
    output = args.output or str(src.with_name(f"{src.stem}.branding.png"))
    _check_output(output)
    nbytes = write(image, output)
    print(f"Branding image -> {output} ({nbytes} bytes)")


def cmd_scan(args: argparse.Namespace) -> None:
    """Signature and content scan of any file."""
    from afblueprint.scanner import scan_content, scan_signature

    data = _read_input(args.path)
    signature = scan_signature(data)
    content = scan_content(data)

    if signature.clean and content.clean:
        print(f"OK: {args.path} is clean")
        return

    print(f"Threats in {args.path}:")
    for threat in signature.threats + content.threats:
        print(f"  [{threat.severity}] {threat.type}: {threat.description}")
    if not signature.clean:
        sys.exit(1)


def cmd_pack(args: argparse.Namespace) -> None:
    """Append a blueprint payload to a cover PNG."""
    from afblueprint._format.writer import build_cover_with_payload, write
    from afblueprint.extract import has_blueprint_magic

    cover = _read_input(args.cover)
    payload = _read_input(args.payload)
    if not has_blueprint_magic(payload):
        print("Warning: payload does not start with the blueprint signature", file=sys.stderr)

    try:
        packed = build_cover_with_payload(cover, payload)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    _check_output(args.output)
    nbytes = write(packed, args.output)
    print(f"Packed -> {args.output} ({nbytes} bytes)")


def cmd_api_start(args: argparse.Namespace) -> None:
    """Start the validation API HTTP server."""
    from afblueprint.api import run_api

    run_api(
        host=getattr(args, "host", None),
        port=getattr(args, "port", None),
        config_path=getattr(args, "config", None),
    )


def cmd_api_status(args: argparse.Namespace) -> None:
    """Show validation API service status."""
    import json
    import urllib.error
    import urllib.request

    host = getattr(args, "host", None) or "127.0.0.1"
    port = getattr(args, "port", None) or 8080
    url = f"http://{host}:{port}/status"

    try:
        req = urllib.request.Request(url, method="GET")
        with urllib.request.urlopen(req, timeout=5) as resp:
            data = json.loads(resp.read().decode())
    except urllib.error.URLError as e:
        print(f"Error: Cannot reach API at {url}: {e.reason}", file=sys.stderr)
        sys.exit(1)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"afblueprint API {data.get('version', '?')} — {url}")
    healthy = data.get("healthy", False)
    print(f"  healthy:  {'yes' if healthy else 'NO'}")
    print(f"  branding: {'loaded' if data.get('branding_loaded') else 'none'}")
    limits = data.get("limits", {})
    print(f"  max upload: {limits.get('max_upload_bytes', '?')} bytes")
    print(f"  max chunks: {limits.get('max_chunks', '?')}")


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="afbp",
        description="Validate, strip and brand Alchemy Factory PNG blueprints.",
    )
    from afblueprint import __version__
    parser.add_argument("--version", action="version", version=f"afbp {__version__}")
    sub = parser.add_subparsers(dest="command")

    # validate
    p_val = sub.add_parser("validate", help="Run the upload gate over a blueprint")
    p_val.add_argument("path", help="Path to .png blueprint")
    p_val.add_argument(
        "--allow-content-threats",
        action="store_true",
        help="Report command-interpreter strings as warnings instead of failing",
    )

    # extract
    p_ext = sub.add_parser("extract", help="Strip the screenshot, keep the payload")
    p_ext.add_argument("path", help="Path to .png blueprint")
    p_ext.add_argument("-o", "--output", help="Output file (default: <name>.stripped.png)")
    p_ext.add_argument("--preview", help="Also write the raster region to this file")

    # brand
    p_brand = sub.add_parser("brand", help="Embed a branding image before IEND")
    p_brand.add_argument("path", help="Container to brand")
    p_brand.add_argument("--branding", required=True, help="Branding PNG (max 1 KB)")
    p_brand.add_argument("-o", "--output", help="Output file (default: overwrite input)")

    # branding
    p_bri = sub.add_parser("branding", help="Write out the embedded branding image")
    p_bri.add_argument("path", help="Branded container")
    p_bri.add_argument("-o", "--output", help="Output file (default: <name>.branding.png)")

    # scan
    p_scan = sub.add_parser("scan", help="Signature and content scan of any file")
    p_scan.add_argument("path", help="File to scan")

    # pack
    p_pack = sub.add_parser("pack", help="Append a blueprint payload to a cover PNG")
    p_pack.add_argument("cover", help="Cover PNG")
    p_pack.add_argument("payload", help="Raw blueprint payload")
    p_pack.add_argument("-o", "--output", required=True, help="Output file")

    # api (with subcommands)
    p_api = sub.add_parser("api", help="Validation API HTTP server")
    api_sub = p_api.add_subparsers(dest="api_command")

    p_api_start = api_sub.add_parser("start", help="Start the validation API server")
    p_api_start.add_argument("--port", type=int, help="Listen port (default: config, else 8080)")
    p_api_start.add_argument("--host", help="Bind address (default: config, else 127.0.0.1)")
    p_api_start.add_argument("--config", help="TOML config file (default: ~/.afblueprint/api.toml)")

    p_api_status = api_sub.add_parser("status", help="Show API service status")
    p_api_status.add_argument("--port", type=int, default=8080, help="API port (default: 8080)")
    p_api_status.add_argument("--host", default="127.0.0.1", help="API host (default: 127.0.0.1)")

    args = parser.parse_args()

    if not args.command:
        print("afblueprint — Alchemy Factory PNG blueprint tools")
        print()
        print("Usage:")
        print("  afbp validate blueprint.png")
        print("  afbp extract blueprint.png -o stripped.png [--preview preview.png]")
        print("  afbp brand blueprint.png --branding logo.png")
        print("  afbp branding blueprint.png -o logo.png")
        print("  afbp scan <file>")
        print("  afbp pack cover.png payload.bin -o blueprint.png")
        print("  afbp api start [--port N] [--host ADDR] [--config FILE]")
        print("  afbp api status")
        print()
        print("Run 'afbp <command> --help' for details on any command.")
        sys.exit(0)

    # Handle api subcommands
    if args.command == "api":
        api_commands = {
            "start": cmd_api_start,
            "status": cmd_api_status,
        }
        ac = getattr(args, "api_command", None)
        if not ac:
            print("Usage: afbp api {start|status}")
            sys.exit(0)
        api_commands[ac](args)
        return

    commands = {
        "validate": cmd_validate,
        "extract": cmd_extract,
        "brand": cmd_brand,
        "branding": cmd_branding,
        "scan": cmd_scan,
        "pack": cmd_pack,
    }

    commands[args.command](args)


if __name__ == "__main__":
    main()
