"""
Schema definitions for httpreplay.

This module defines the Pydantic models used throughout httpreplay:
- RequestSnapshot/ResponseSnapshot/Episode: One recorded exchange
- CassetteDocument: The persisted cassette file layout
- VCRConfig/FilterRule: Session configuration, loadable from YAML

Design Decisions:
    - Snapshots are frozen: an episode never changes once captured
    - Bodies are bytes in memory and standard base64 text on disk, so
      binary and multi-line content round-trips exactly
    - Request headers are not part of a snapshot; two requests that differ
      only in headers are the same request for recording and matching
    - Field declaration order is the on-disk key order, keeping cassette
      files stable and diff-friendly
"""

import base64
import binascii
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


# =============================================================================
# Enums
# =============================================================================


class SessionMode(str, Enum):
    """Current state of a VCR session."""

    STOPPED = "stopped"
    RECORDING = "recording"
    REPLAYING = "replaying"


class MatcherKind(str, Enum):
    """Strategy used to pair live requests with recorded episodes."""

    SEQUENTIAL = "sequential"
    UNORDERED = "unordered"


# =============================================================================
# Body encoding
# =============================================================================


def encode_body(body: bytes) -> str:
    """Encode body bytes as standard base64 text."""
    return base64.b64encode(body).decode("ascii")


def decode_body(value: Any) -> bytes:
    """
    Decode a body field coming from a cassette document.

    Bytes pass through unchanged; strings are treated as base64.

    Raises:
        ValueError: If a string is not valid base64
    """
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        try:
            return base64.b64decode(value.encode("ascii"), validate=True)
        except (binascii.Error, UnicodeEncodeError) as e:
            msg = f"body is not valid base64: {e}"
            raise ValueError(msg) from e
    if value is None:
        return b""
    msg = f"body must be bytes or base64 text, got {type(value).__name__}"
    raise ValueError(msg)


# =============================================================================
# Episode Models
# =============================================================================


class RequestSnapshot(BaseModel):
    """
    The parts of an outgoing request that identify it.

    Attributes:
        method: HTTP method, as sent
        url: Full target URL string
        body: Request body after filters were applied
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    method: str = Field(..., description="HTTP method")
    url: str = Field(..., description="Target URL")
    body: bytes = Field(default=b"", description="Filtered request body")

    @field_validator("body", mode="before")
    @classmethod
    def _decode_body(cls, v: Any) -> bytes:
        return decode_body(v)

    @field_serializer("body")
    def _encode_body(self, body: bytes) -> str:
        return encode_body(body)


class ResponseSnapshot(BaseModel):
    """
    A response captured in full.

    Protocol version is deliberately not stored: replayed responses always
    report HTTP/1.0.

    Attributes:
        status: Status line text, e.g. "200 OK"
        status_code: Numeric status code
        content_length: Declared Content-Length, None when not declared
        headers: Header multi-map; values keep their order per name
        body: Raw (still content-encoded) body bytes
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    status: str = Field(..., description="Status line text")
    status_code: int = Field(..., description="Numeric status code", ge=100, le=999)
    content_length: int | None = Field(default=None, description="Declared body length")
    headers: dict[str, list[str]] = Field(default_factory=dict, description="Header multi-map")
    body: bytes = Field(default=b"", description="Raw response body")

    @field_validator("body", mode="before")
    @classmethod
    def _decode_body(cls, v: Any) -> bytes:
        return decode_body(v)

    @field_serializer("body")
    def _encode_body(self, body: bytes) -> str:
        return encode_body(body)

    @property
    def reason_phrase(self) -> str:
        """Reason phrase part of the status text ("OK" for "200 OK")."""
        code, _, reason = self.status.partition(" ")
        if code == str(self.status_code):
            return reason
        return self.status


class Episode(BaseModel):
    """One completed request/response exchange."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    request: RequestSnapshot
    response: ResponseSnapshot


class CassetteDocument(BaseModel):
    """
    Persisted cassette layout.

    Attributes:
        name: Cassette name (informational; ignored on reload)
        episodes: Recorded exchanges in the order they happened
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(default="", description="Cassette name")
    episodes: list[Episode] = Field(default_factory=list, description="Recorded episodes")


# =============================================================================
# Configuration Models
# =============================================================================


class FilterRule(BaseModel):
    """
    A plaintext substring to replace in captured request bodies.

    Used to keep secrets out of fixture files.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    plaintext: str = Field(..., min_length=1, description="Text to hide")
    replacement: str = Field(default="", description="Text written in its place")


class VCRConfig(BaseModel):
    """
    Session configuration.

    Attributes:
        fixtures_dir: Directory holding cassette files
        gzip: Whether cassettes are gzip-framed (.json.gz)
        filters: Initial filter rules, applied in order
        matcher: Strategy for pairing requests with episodes
        patch_httpx: Also install the session as httpx's default transport
        assert_all_played: Fail at stop() if replay left episodes unconsumed
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    fixtures_dir: Path = Field(
        default=Path("fixtures/vcr"),
        description="Directory holding cassette files",
    )
    gzip: bool = Field(
        default=False,
        description="Compress cassettes with gzip",
    )
    filters: list[FilterRule] = Field(
        default_factory=list,
        description="Filter rules applied to captured request bodies, in order",
    )
    matcher: MatcherKind = Field(
        default=MatcherKind.SEQUENTIAL,
        description="Episode matching strategy",
    )
    patch_httpx: bool = Field(
        default=False,
        description="Route httpx's default transports through the session while started",
    )
    assert_all_played: bool = Field(
        default=False,
        description="Fail at stop() when replay did not consume every episode",
    )

    @field_validator("filters", mode="before")
    @classmethod
    def _filters_from_mapping(cls, v: Any) -> Any:
        """Accept {plaintext: replacement} as shorthand for a rule list."""
        if isinstance(v, dict):
            return [{"plaintext": k, "replacement": r} for k, r in v.items()]
        return v


# =============================================================================
# YAML Loading Helpers
# =============================================================================


def load_config(path: Path | str) -> VCRConfig:
    """
    Load a session configuration from a YAML file.

    Args:
        path: Path to the YAML file

    Returns:
        Validated VCRConfig object

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValidationError: If the YAML doesn't match the schema
    """
    path = Path(path)
    with path.open() as f:
        data = yaml.safe_load(f)

    return VCRConfig.model_validate(data or {})


def load_config_from_string(content: str) -> VCRConfig:
    """Load a session configuration from a YAML string."""
    data = yaml.safe_load(content)
    return VCRConfig.model_validate(data or {})
