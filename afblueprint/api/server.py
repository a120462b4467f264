"""
HTTP server for the validation API.

Uses stdlib http.server with one thread per request. Handlers are pure
functions of the request bytes and share no mutable state.
Routes requests to handler functions in handlers.py.
"""

from __future__ import annotations

import json
import logging
import os
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any

from afblueprint import API_DEFAULT_HOST, API_DEFAULT_PORT, API_MAX_UPLOAD_BYTES
from afblueprint._format.spec import MAX_CHUNK_LENGTH, MAX_CHUNKS
from afblueprint.api.handlers import (
    handle_brand,
    handle_branding,
    handle_extract,
    handle_scan,
    handle_status,
    handle_validate,
)
from afblueprint.branding import load_branding_image

logger = logging.getLogger(__name__)

# Default config
DEFAULT_CONFIG: dict[str, Any] = {
    "host": API_DEFAULT_HOST,
    "port": API_DEFAULT_PORT,
    "max_upload_bytes": API_MAX_UPLOAD_BYTES,
    "branding_image": "",
    "reject_content_threats": True,
    "max_chunks": MAX_CHUNKS,
    "max_chunk_length": MAX_CHUNK_LENGTH,
}

_DEFAULT_CONFIG_PATH = Path.home() / ".afblueprint" / "api.toml"

# Oversized bodies are drained up to this many bytes past the ceiling so the
# client can read the 413; anything larger just gets the connection closed.
_DRAIN_SLACK = 1024 * 1024


def _load_config(config_path: str | Path | None = None) -> dict[str, Any]:
    """Load API config from TOML file, falling back to defaults.

    Path priority: explicit argument > AFBP_CONFIG env var > ~/.afblueprint/api.toml
    """
    config = dict(DEFAULT_CONFIG)

    env_path = os.environ.get("AFBP_CONFIG", "").strip()
    path = Path(config_path or env_path or _DEFAULT_CONFIG_PATH).expanduser()
    if path.is_file():
        try:
            import tomllib
        except ImportError:
            import tomli as tomllib

        try:
            with open(path, "rb") as f:
                file_config = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.warning("Failed to load config from %s: %s", path, e)
            return config

        unknown = set(file_config) - set(DEFAULT_CONFIG)
        if unknown:
            logger.warning("Ignoring unknown config keys in %s: %s", path, ", ".join(sorted(unknown)))
        for key in DEFAULT_CONFIG:
            if key in file_config:
                config[key] = file_config[key]

    return config


class BlueprintAPIHandler(BaseHTTPRequestHandler):
    """HTTP request handler for the validation API.

    Server-level dependencies (config, branding) are attached to the server
    instance and accessed via self.server.
    """

    # Route access lines through the logging module instead of stderr
    def log_message(self, format: str, *args: Any) -> None:
        logger.debug(format, *args)

    def _send_json(self, status: int, data: dict) -> None:
        body = json.dumps(data, indent=2).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _send_bytes(
        self,
        status: int,
        data: bytes,
        content_type: str,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(data)))
        for key, value in (headers or {}).items():
            self.send_header(key, value)
        self.end_headers()
        self.wfile.write(data)

    def _send_result(self, status: int, result: dict | bytes, headers: dict[str, str] | None = None) -> None:
        if isinstance(result, bytes):
            self._send_bytes(status, result, "image/png", headers)
        else:
            self._send_json(status, result)

    def _read_body(self) -> bytes | None:
        """Read the request body. Returns None if it exceeds the upload ceiling."""
        try:
            length = int(self.headers.get("Content-Length", 0))
        except ValueError:
            length = 0
        max_bytes = self.server.config["max_upload_bytes"]  # type: ignore[attr-defined]
        if length > max_bytes:
            if length <= max_bytes + _DRAIN_SLACK:
                remaining = length
                while remaining > 0:
                    block = self.rfile.read(min(remaining, 65536))
                    if not block:
                        break
                    remaining -= len(block)
            else:
                self.close_connection = True
            return None
        if length <= 0:
            return b""
        return self.rfile.read(length)

    def do_GET(self) -> None:
        path = self.path.split("?")[0]  # strip query string
        server = self.server  # type: ignore[attr-defined]

        # GET /status
        if path == "/status":
            code, data = handle_status(server.config, server.branding)
            self._send_json(code, data)
            return

        self._send_json(404, {"error": "Not found"})

    def do_POST(self) -> None:
        path = self.path.split("?")[0]
        server = self.server  # type: ignore[attr-defined]

        # Always read the body first to avoid connection resets
        body = self._read_body()
        if body is None:
            max_bytes = server.config["max_upload_bytes"]
            self._send_json(413, {"error": f"Payload too large (max {max_bytes} bytes)"})
            return

        filename = self.headers.get("X-Filename", "")

        # POST /validate
        if path == "/validate":
            code, data = handle_validate(body, filename, server.config)
            self._send_json(code, data)
            return

        # POST /extract
        if path == "/extract":
            code, result, headers = handle_extract(body, filename, server.config)
            self._send_result(code, result, headers)
            return

        # POST /brand
        if path == "/brand":
            code, result = handle_brand(body, server.branding, server.config)
            self._send_result(code, result)
            return

        # POST /branding
        if path == "/branding":
            code, result = handle_branding(body, server.config)
            self._send_result(code, result)
            return

        # POST /scan
        if path == "/scan":
            code, data = handle_scan(body, server.config)
            self._send_json(code, data)
            return

        self._send_json(404, {"error": "Not found"})


class BlueprintAPIServer(ThreadingHTTPServer):
    """ThreadingHTTPServer subclass that carries API dependencies."""

    daemon_threads = True

    def __init__(
        self,
        address: tuple[str, int],
        config: dict[str, Any] | None = None,
        branding: bytes | None = None,
    ) -> None:
        super().__init__(address, BlueprintAPIHandler)
        self.config = dict(DEFAULT_CONFIG)
        self.config.update(config or {})
        self.branding = branding


def run_api(
    host: str | None = None,
    port: int | None = None,
    config_path: str | Path | None = None,
) -> None:
    """Start the validation API server (blocking).

    Args:
        host: Bind address (default from config, else 127.0.0.1)
        port: Listen port (default from config, else 8080)
        config_path: TOML config file (default ~/.afblueprint/api.toml)
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )

    config = _load_config(config_path)
    host = host or config["host"]
    port = port or config["port"]

    branding = load_branding_image(config["branding_image"])
    if branding is None:
        logger.warning("No branding image configured; POST /brand returns input unchanged")

    server = BlueprintAPIServer((host, port), config, branding)

    print(f"afblueprint API listening on http://{host}:{port}")
    print(f"  POST /validate   — full upload gate, JSON verdict")
    print(f"  POST /extract    — stripped blueprint container")
    print(f"  POST /brand      — embed branding image")
    print(f"  POST /branding   — read embedded branding image")
    print(f"  POST /scan       — signature + content scan")
    print(f"  GET  /status     — service health")

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        print("\nShutting down...")
    finally:
        server.server_close()
