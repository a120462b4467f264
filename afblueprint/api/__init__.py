"""
afblueprint validation API — blueprint upload checks over HTTP.

Provides a small REST API for validating uploads, stripping blueprint
containers, and embedding or reading the branding chunk.

stdlib http.server; configuration from TOML.
"""

from afblueprint.api.server import run_api

__all__ = ["run_api"]
