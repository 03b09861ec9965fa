"""
Cassette store.

A cassette is the ordered list of episodes recorded for one test session,
persisted as a single JSON document:

    {
      "name": "test_cassette",
      "episodes": [
        {
          "request": {"method": "GET", "url": "...", "body": "<base64>"},
          "response": {
            "status": "200 OK",
            "status_code": 200,
            "content_length": 10,
            "headers": {"Test": ["yes"]},
            "body": "<base64>"
          }
        }
      ]
    }

Files live at <fixtures_dir>/<name>.json, or <name>.json.gz when the
cassette is gzip-framed. Whether to gunzip on load comes from the cassette's
configuration, never from sniffing the file.
"""

import gzip
import logging
import zlib
from pathlib import Path, PurePosixPath

from pydantic import ValidationError

from httpreplay.errors import (
    CassetteParseError,
    InvalidCassetteNameError,
    StorageCompressionError,
)
from httpreplay.schema import CassetteDocument, Episode
from httpreplay.store.files import CassetteStorage, FileStorage

logger = logging.getLogger(__name__)

DEFAULT_FIXTURES_DIR = Path("fixtures/vcr")


def validate_cassette_name(name: str) -> str:
    """
    Check that a cassette name maps to a file inside the fixtures directory.

    Names may use "/" to group cassettes in sub-directories.

    Raises:
        InvalidCassetteNameError: If the name is empty, absolute or contains ".."
    """
    if not name or not name.strip():
        raise InvalidCassetteNameError(cassette=name, reason="name is empty")

    pure = PurePosixPath(name.replace("\\", "/"))
    if pure.is_absolute() or Path(name).is_absolute():
        raise InvalidCassetteNameError(cassette=name, reason="name must be relative")
    if ".." in pure.parts:
        raise InvalidCassetteNameError(cassette=name, reason="name must not contain '..'")
    return name


def cassette_path(fixtures_dir: Path | str, name: str, gzip: bool = False) -> Path:
    """Return the file path for a cassette name."""
    suffix = ".json.gz" if gzip else ".json"
    return Path(fixtures_dir) / f"{validate_cassette_name(name)}{suffix}"


class Cassette:
    """
    An ordered sequence of episodes bound to a name.

    Usage:
        cassette = Cassette("github_search", fixtures_dir="tests/fixtures/vcr")
        if cassette.exists():
            cassette.load()
        ...
        cassette.append(episode)
        cassette.save()

    Attributes:
        name: Cassette name
        fixtures_dir: Directory holding cassette files
        gzip: Whether the file is gzip-framed
        episodes: Recorded episodes, in recording order
    """

    def __init__(
        self,
        name: str,
        fixtures_dir: Path | str = DEFAULT_FIXTURES_DIR,
        gzip: bool = False,
        storage: CassetteStorage | None = None,
    ) -> None:
        self.name = validate_cassette_name(name)
        self.fixtures_dir = Path(fixtures_dir)
        self.gzip = gzip
        self.storage = storage or FileStorage()
        self.episodes: list[Episode] = []

    def __len__(self) -> int:
        return len(self.episodes)

    def __repr__(self) -> str:
        return f"Cassette(name={self.name!r}, episodes={len(self.episodes)}, gzip={self.gzip})"

    @property
    def path(self) -> Path:
        """File path of this cassette."""
        return cassette_path(self.fixtures_dir, self.name, self.gzip)

    def exists(self) -> bool:
        """Whether a persisted cassette file exists."""
        return self.storage.exists(self.path)

    def append(self, episode: Episode) -> None:
        """Add an episode at the end of the cassette."""
        self.episodes.append(episode)

    # -------------------------------------------------------------------------
    # Byte-level encoding
    # -------------------------------------------------------------------------

    def encode(self) -> bytes:
        """
        Encode the cassette to the bytes written to storage.

        Raises:
            StorageCompressionError: If gzip framing fails
        """
        document = CassetteDocument(name=self.name, episodes=self.episodes)
        data = document.model_dump_json(indent=2).encode("utf-8")
        if not self.gzip:
            return data
        try:
            return gzip.compress(data, compresslevel=1)
        except (OSError, zlib.error) as e:
            raise StorageCompressionError(
                path=str(self.path),
                operation="gzip",
                underlying_error=str(e),
            ) from e

    def decode(self, data: bytes) -> list[Episode]:
        """
        Decode stored bytes into episodes and make them this cassette's content.

        Raises:
            StorageCompressionError: If gzip framing is broken
            CassetteParseError: If the document is not a valid cassette
        """
        if self.gzip:
            try:
                data = gzip.decompress(data)
            except (OSError, EOFError, zlib.error) as e:
                raise StorageCompressionError(
                    path=str(self.path),
                    operation="gunzip",
                    underlying_error=str(e),
                ) from e

        try:
            document = CassetteDocument.model_validate_json(data)
        except ValidationError as e:
            raise CassetteParseError(
                path=str(self.path),
                underlying_error=f"{e.error_count()} validation error(s): {e.errors()[0]['msg']}",
            ) from e

        self.episodes = list(document.episodes)
        return self.episodes

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def load(self) -> "Cassette":
        """
        Replace the in-memory episodes with the persisted ones.

        Raises:
            StorageReadError: If the file cannot be read
            StorageCompressionError: If gzip framing is broken
            CassetteParseError: If the document is not a valid cassette
        """
        path = self.path
        self.decode(self.storage.read_bytes(path))
        logger.debug("Loaded %d episode(s) from %s", len(self.episodes), path)
        return self

    def save(self) -> Path:
        """
        Write the cassette to storage, creating the fixtures directory.

        Returns:
            The path written

        Raises:
            StorageWriteError: If the path is not writable
            StorageCompressionError: If gzip framing fails
        """
        path = self.path
        self.storage.write_bytes(path, self.encode())
        logger.info("Saved %d episode(s) to %s", len(self.episodes), path)
        return path
