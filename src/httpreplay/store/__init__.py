"""
Storage module for httpreplay.

This module persists cassettes: ordered episode lists written as one JSON
document per cassette, optionally gzip-framed.

Design principles:
    - Written once: a recording is saved when the session stops
    - Exact: bodies are base64 so any bytes round-trip
    - Stable: fixed key order keeps fixture diffs readable
    - Pluggable: storage is anything with exists/read_bytes/write_bytes
"""

from httpreplay.store.cassette import Cassette, cassette_path, validate_cassette_name
from httpreplay.store.files import CassetteStorage, FileStorage

__all__ = [
    "Cassette",
    "CassetteStorage",
    "FileStorage",
    "cassette_path",
    "validate_cassette_name",
]
