"""
Unit tests for the CLI.

Tests cover:
- Version output
- Listing cassettes in a fixtures directory
- Showing one cassette, as a table or JSON
"""

import json
from collections.abc import Callable
from pathlib import Path

from typer.testing import CliRunner

from httpreplay import __version__
from httpreplay.cli import app
from httpreplay.schema import Episode
from httpreplay.store import Cassette

runner = CliRunner()


def write_cassette(fixtures_dir: Path, name: str, episodes: list[Episode], gzip: bool = False) -> Path:
    cassette = Cassette(name, fixtures_dir=fixtures_dir, gzip=gzip)
    for episode in episodes:
        cassette.append(episode)
    return cassette.save()


class TestVersion:
    """Tests for --version."""

    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout


class TestListCommand:
    """Tests for `httpreplay list`."""

    def test_missing_directory(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["list", str(tmp_path / "nope")])
        assert result.exit_code == 0
        assert "No fixtures directory" in result.stdout

    def test_empty_directory(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["list", str(tmp_path)])
        assert result.exit_code == 0
        assert "No cassettes found" in result.stdout

    def test_lists_cassettes_as_json(self, tmp_path: Path, make_episode: Callable[..., Episode]) -> None:
        write_cassette(tmp_path, "plain", [make_episode(), make_episode()])
        write_cassette(tmp_path, "api/zipped", [make_episode()], gzip=True)
        (tmp_path / "broken.json").write_text("{")

        result = runner.invoke(app, ["list", str(tmp_path), "--json"])
        assert result.exit_code == 0
        rows = {row["name"]: row for row in json.loads(result.stdout)}
        assert set(rows) == {"plain", "api/zipped", "broken"}
        assert rows["plain"]["episodes"] == 2
        assert rows["plain"]["gzip"] is False
        assert rows["api/zipped"]["episodes"] == 1
        assert rows["api/zipped"]["gzip"] is True
        assert rows["broken"]["episodes"] is None
        assert rows["broken"]["error"]

    def test_lists_cassettes_as_table(self, tmp_path: Path, make_episode: Callable[..., Episode]) -> None:
        write_cassette(tmp_path, "flow", [make_episode()])
        result = runner.invoke(app, ["list", str(tmp_path)])
        assert result.exit_code == 0
        assert "flow" in result.stdout


class TestShowCommand:
    """Tests for `httpreplay show`."""

    def test_show_table(self, tmp_path: Path, make_episode: Callable[..., Episode]) -> None:
        path = write_cassette(tmp_path, "flow", [make_episode(method="POST", url="http://x/a")])
        result = runner.invoke(app, ["show", str(path)])
        assert result.exit_code == 0
        assert "Cassette flow" in result.stdout
        assert "Episodes: 1" in result.stdout
        assert "POST" in result.stdout

    def test_show_empty(self, tmp_path: Path) -> None:
        path = write_cassette(tmp_path, "empty", [])
        result = runner.invoke(app, ["show", str(path)])
        assert result.exit_code == 0
        assert "No episodes recorded" in result.stdout

    def test_show_json(self, tmp_path: Path, make_episode: Callable[..., Episode]) -> None:
        path = write_cassette(tmp_path, "flow", [make_episode(body=b"dummy-key")], gzip=True)
        result = runner.invoke(app, ["show", str(path), "--json"])
        assert result.exit_code == 0
        document = json.loads(result.stdout)
        assert document["name"] == "flow"
        assert document["episodes"][0]["request"]["body"] == "ZHVtbXkta2V5"

    def test_force_gzip(self, tmp_path: Path, make_episode: Callable[..., Episode]) -> None:
        path = write_cassette(tmp_path, "flow", [make_episode()], gzip=True)
        renamed = path.rename(tmp_path / "flow.cassette")
        result = runner.invoke(app, ["show", str(renamed), "--gzip", "--json"])
        assert result.exit_code == 0
        assert len(json.loads(result.stdout)["episodes"]) == 1

    def test_parse_error_exits_1(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.json"
        path.write_text("not json")
        result = runner.invoke(app, ["show", str(path)])
        assert result.exit_code == 1
        assert "Error" in result.stdout

    def test_missing_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["show", str(tmp_path / "missing.json")])
        assert result.exit_code != 0
