"""
httpreplay - Record and replay HTTP exchanges for deterministic tests.

The first run of a test records every request/response exchange made
through the session into a cassette file. Later runs find the cassette and
answer the same requests from it without touching the network.

It provides:
- A session usable as an httpx transport (sync and async clients)
- Sequential or unordered replay matching with precise mismatch reports
- Body filters that keep secrets out of fixture files
- Optional gzip-framed cassettes

Example usage:
    from httpreplay import VCRConfig, VCRSession

    session = VCRSession(VCRConfig(fixtures_dir="tests/fixtures/vcr"))
    with session.use("search_flow"):
        with httpx.Client(transport=session) as client:
            client.get("https://api.example.com/search?q=abc")
"""

__version__ = "0.1.0"
__author__ = "httpreplay Contributors"

from httpreplay.codec import materialize, modify_request_body
from httpreplay.errors import (
    CassetteParseError,
    MatchError,
    MatchExhaustedError,
    MatchMismatchError,
    StorageError,
    UsageError,
    VCRError,
)
from httpreplay.schema import Episode, SessionMode, VCRConfig, load_config
from httpreplay.session import VCRSession, use_cassette

__all__ = [
    "__version__",
    "__author__",
    "CassetteParseError",
    "Episode",
    "MatchError",
    "MatchExhaustedError",
    "MatchMismatchError",
    "SessionMode",
    "StorageError",
    "UsageError",
    "VCRConfig",
    "VCRError",
    "VCRSession",
    "load_config",
    "materialize",
    "modify_request_body",
    "use_cassette",
]
