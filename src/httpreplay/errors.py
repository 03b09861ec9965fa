"""
Exception hierarchy for httpreplay.

All httpreplay exceptions inherit from VCRError, allowing callers to catch
every recorder/player failure with a single except clause.

Exception Categories:
    - UsageError: Programmer mistakes (double start, bad cassette name)
    - StorageError: Cassette file could not be read, written or (de)compressed
    - CassetteParseError: Persisted cassette bytes are not a valid document
    - MatchError: Replay diverged from the recording

Errors raised by the real transport while recording (httpx.TransportError
and friends) are NOT wrapped; they reach the caller untouched.

Design Principles:
    - All errors have error codes for programmatic handling
    - All errors include context (cassette, request, field where applicable)
    - All errors are raised, never returned, so a broken replay fails the test
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Usage errors: 1xxx
ERROR_USAGE = 1000
ERROR_SESSION_ALREADY_STARTED = 1001
ERROR_INVALID_CASSETTE_NAME = 1002
ERROR_INVALID_FILTER = 1003
ERROR_SESSION_CANCELLED = 1004
ERROR_SESSION_ABORTED = 1005
ERROR_TRANSPORT_PATCHED = 1006
ERROR_SESSION_STOPPED = 1007

# Storage errors: 2xxx
ERROR_STORAGE = 2000
ERROR_STORAGE_WRITE = 2001
ERROR_STORAGE_READ = 2002
ERROR_STORAGE_COMPRESSION = 2003

# Parse errors: 3xxx
ERROR_CASSETTE_PARSE = 3001

# Match errors: 4xxx
ERROR_MATCH = 4000
ERROR_MATCH_EXHAUSTED = 4001
ERROR_MATCH_MISMATCH = 4002
ERROR_MATCH_NOT_FOUND = 4003
ERROR_MATCH_UNPLAYED = 4004


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class VCRError(Exception):
    """
    Base exception for all httpreplay errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Usage Errors
# =============================================================================


@dataclass
class UsageError(VCRError):
    """
    Raised when the library is driven incorrectly.

    Attributes:
        cassette: Name of the cassette involved, if any
    """

    cassette: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if self.code == 0:
            self.code = ERROR_USAGE
        self.context["cassette"] = self.cassette


@dataclass
class SessionAlreadyStartedError(UsageError):
    """Raised when start() is called on a session that is not stopped."""

    mode: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "session already started"
            if self.mode:
                self.message += f" (currently {self.mode})"
        if self.code == 0:
            self.code = ERROR_SESSION_ALREADY_STARTED
        if not self.suggestion:
            self.suggestion = "Call stop() before starting the session again"
        super().__post_init__()
        self.context["mode"] = self.mode


@dataclass
class InvalidCassetteNameError(UsageError):
    """Raised when a cassette name is empty or escapes the fixtures directory."""

    reason: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid cassette name {self.cassette!r}: {self.reason}"
        if self.code == 0:
            self.code = ERROR_INVALID_CASSETTE_NAME
        super().__post_init__()
        self.context["reason"] = self.reason


@dataclass
class InvalidFilterError(UsageError):
    """Raised when a filter rule has an empty plaintext pattern."""

    plaintext: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "Filter plaintext must not be empty"
        if self.code == 0:
            self.code = ERROR_INVALID_FILTER
        super().__post_init__()
        self.context["plaintext"] = self.plaintext


@dataclass
class SessionCancelledError(UsageError):
    """Raised when a request arrives after the session's cancel signal was set."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Session for cassette {self.cassette!r} was cancelled"
        if self.code == 0:
            self.code = ERROR_SESSION_CANCELLED
        super().__post_init__()


@dataclass
class SessionAbortedError(UsageError):
    """Raised for requests made after a replay failure ended the session."""

    cause: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Session for cassette {self.cassette!r} was aborted: {self.cause}"
        if self.code == 0:
            self.code = ERROR_SESSION_ABORTED
        if not self.suggestion:
            self.suggestion = "Fix the first replay failure; later requests cannot be matched"
        super().__post_init__()
        self.context["cause"] = self.cause


@dataclass
class SessionStoppedError(UsageError):
    """Raised when the session stopped or restarted while a replayed request was in flight."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Session for cassette {self.cassette!r} stopped while the request was in flight"
        if self.code == 0:
            self.code = ERROR_SESSION_STOPPED
        super().__post_init__()


@dataclass
class TransportPatchError(UsageError):
    """Raised when httpx's default transport is already patched by another session."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "httpx default transport is already patched by another session"
        if self.code == 0:
            self.code = ERROR_TRANSPORT_PATCHED
        if not self.suggestion:
            self.suggestion = "Stop the active session, or pass the session to httpx.Client(transport=...)"
        super().__post_init__()


# =============================================================================
# Storage Errors
# =============================================================================


@dataclass
class StorageError(VCRError):
    """
    Base class for cassette storage errors.

    Attributes:
        path: The cassette file path involved
        operation: The operation that failed (e.g., "write", "gunzip")
    """

    path: str = ""
    operation: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if self.code == 0:
            self.code = ERROR_STORAGE
        self.context.update({
            "path": self.path,
            "operation": self.operation,
        })


@dataclass
class StorageWriteError(StorageError):
    """Raised when the cassette file cannot be written."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"cannot write cassette file {self.path}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_STORAGE_WRITE
        if not self.operation:
            self.operation = "write"
        if not self.suggestion:
            self.suggestion = "Check that the fixtures directory is writable and the path is not a directory"
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class StorageReadError(StorageError):
    """Raised when the cassette file cannot be read."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"cannot read cassette file {self.path}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_STORAGE_READ
        if not self.operation:
            self.operation = "read"
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class StorageCompressionError(StorageError):
    """Raised when gzip framing fails on read or write."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"gzip {self.operation or 'framing'} failed for {self.path}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_STORAGE_COMPRESSION
        if not self.suggestion:
            self.suggestion = "Check that the cassette's gzip setting matches how it was recorded"
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


# =============================================================================
# Parse Errors
# =============================================================================


@dataclass
class CassetteParseError(VCRError):
    """Raised when persisted cassette bytes are not a valid cassette document."""

    path: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"cannot parse cassette {self.path}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_CASSETTE_PARSE
        if not self.suggestion:
            self.suggestion = "Delete the cassette file to record it again"
        self.context.update({
            "path": self.path,
            "underlying_error": self.underlying_error,
        })


# =============================================================================
# Match Errors
# =============================================================================


@dataclass
class MatchError(VCRError):
    """
    Base class for replay matching errors.

    These errors mean the code under test no longer issues the requests that
    were recorded, so the rest of the replay cannot be trusted.

    Attributes:
        method: Method of the live request
        url: URL of the live request
    """

    method: str = ""
    url: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if self.code == 0:
            self.code = ERROR_MATCH
        self.context.update({
            "method": self.method,
            "url": self.url,
        })


@dataclass
class MatchExhaustedError(MatchError):
    """Raised when replay is asked for more exchanges than were recorded."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "no more episodes"
            if self.method:
                self.message += f" for {self.method} {self.url}"
        if self.code == 0:
            self.code = ERROR_MATCH_EXHAUSTED
        if not self.suggestion:
            self.suggestion = "Delete the cassette file to record the new requests"
        super().__post_init__()


@dataclass
class MatchMismatchError(MatchError):
    """
    Raised when the live request differs from the next recorded one.

    Attributes:
        field: Which part differs ("Method", "URL" or "Body")
        expected: The recorded value
        actual: The live value
    """

    field: str = ""
    expected: str = ""
    actual: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"problem with episode for {self.method} {self.url}\n"
                f"  episode {self.field} does not match:\n"
                f"  expected: {self.expected}\n"
                f"  but got: {self.actual}"
            )
        if self.code == 0:
            self.code = ERROR_MATCH_MISMATCH
        super().__post_init__()
        self.context.update({
            "field": self.field,
            "expected": self.expected,
            "actual": self.actual,
        })


@dataclass
class EpisodeNotFoundError(MatchError):
    """Raised by unordered matching when no unplayed episode has the request's key."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"no recorded episode for {self.method} {self.url}"
        if self.code == 0:
            self.code = ERROR_MATCH_NOT_FOUND
        super().__post_init__()


@dataclass
class UnplayedEpisodesError(MatchError):
    """Raised at teardown when replay left recorded episodes unconsumed."""

    cassette: str = ""
    remaining: int = 0

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"{self.remaining} episode(s) of cassette {self.cassette!r} were never replayed"
        if self.code == 0:
            self.code = ERROR_MATCH_UNPLAYED
        super().__post_init__()
        self.context.update({
            "cassette": self.cassette,
            "remaining": self.remaining,
        })
