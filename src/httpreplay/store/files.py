"""
Filesystem storage for cassette bytes.

The cassette store only needs three capabilities from storage: check that a
cassette file exists, read its bytes, and write its bytes. FileStorage is the
default implementation; anything with the same three methods can be passed
to a Cassette or VCRSession instead.
"""

from pathlib import Path
from typing import Protocol

from httpreplay.errors import StorageReadError, StorageWriteError


class CassetteStorage(Protocol):
    """Byte storage used by the cassette store."""

    def exists(self, path: Path) -> bool: ...

    def read_bytes(self, path: Path) -> bytes: ...

    def write_bytes(self, path: Path, data: bytes) -> None: ...


class FileStorage:
    """
    Local filesystem storage.

    Only regular files count as existing cassettes: a directory sitting at
    the cassette path is treated as "no cassette" at start and surfaces as a
    write failure when the recording is saved.
    """

    def exists(self, path: Path) -> bool:
        return Path(path).is_file()

    def read_bytes(self, path: Path) -> bytes:
        try:
            return Path(path).read_bytes()
        except OSError as e:
            raise StorageReadError(
                path=str(path),
                underlying_error=str(e),
            ) from e

    def write_bytes(self, path: Path, data: bytes) -> None:
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise StorageWriteError(
                path=str(path),
                underlying_error=str(e),
            ) from e
