"""
afblueprint — blueprint container validation for Alchemy Factory.

Architecture:
    Container:  PNG signature + IHDR + ... + IEND + blueprint payload
    Stripped:   PNG signature + IEND + blueprint payload (pixel data dropped)
    Branding:   ancillary afBR chunk (small PNG) spliced before IEND
    Gate:       denylist signature scan -> structural walk -> payload check
"""

__version__ = "0.1.0"

# Upload policy
UPLOAD_MAX_BYTES = 20 * 1024 * 1024  # 20 MB ceiling for PNG blueprints
UPLOAD_MIN_BYTES = 100
UPLOAD_EXTENSION = ".png"
LEGACY_EXTENSION = ".af"

# Branding image ceiling (the watermark is a tiny secondary PNG)
BRANDING_MAX_BYTES = 1024

# Validation API constants
API_DEFAULT_PORT = 8080
API_DEFAULT_HOST = "127.0.0.1"
API_MAX_UPLOAD_BYTES = UPLOAD_MAX_BYTES
