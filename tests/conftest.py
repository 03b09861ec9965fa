"""
Pytest configuration and fixtures for httpreplay tests.

This module provides shared fixtures used across unit and integration tests.
The real network is replaced by an httpx.MockTransport wrapping EchoServer,
a handler that answers every request with a counter and an echo of what it
received.
"""

from collections.abc import Callable, Generator
from pathlib import Path

import httpx
import pytest

from httpreplay.schema import Episode, RequestSnapshot, ResponseSnapshot, VCRConfig
from httpreplay.session import VCRSession


class EchoServer:
    """
    Fake upstream: replies "<count>:<METHOD>:<path>:'<body>'".

    Every response carries a "Test: yes" header. count goes up by one per
    request, so a replayed response is distinguishable from a fresh one.
    """

    def __init__(self) -> None:
        self.count = 0
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = request.read().decode("utf-8")
        text = f"{self.count}:{request.method}:{request.url.path}:'{body}'"
        self.count += 1
        self.requests.append(request)
        return httpx.Response(200, headers={"Test": "yes"}, content=text.encode("utf-8"))


@pytest.fixture
def echo_server() -> EchoServer:
    """Return a fresh echo handler."""
    return EchoServer()


@pytest.fixture
def echo_transport(echo_server: EchoServer) -> httpx.MockTransport:
    """Return a mock transport serving the echo handler."""
    return httpx.MockTransport(echo_server)


@pytest.fixture
def fixtures_dir(tmp_path: Path) -> Path:
    """Return a per-test cassette directory (not yet created)."""
    return tmp_path / "fixtures" / "vcr"


@pytest.fixture
def config(fixtures_dir: Path) -> VCRConfig:
    """Return a session configuration writing into fixtures_dir."""
    return VCRConfig(fixtures_dir=fixtures_dir)


@pytest.fixture
def session(config: VCRConfig, echo_transport: httpx.MockTransport) -> Generator[VCRSession, None, None]:
    """Return a stopped session over the echo transport; stopped again on teardown."""
    vcr = VCRSession(config, transport=echo_transport)
    yield vcr
    vcr.stop()


@pytest.fixture
def make_episode() -> Callable[..., Episode]:
    """Return a factory for episodes with sensible defaults."""

    def _make(
        method: str = "GET",
        url: str = "http://testserver/",
        body: bytes = b"",
        status_code: int = 200,
        response_body: bytes = b"ok",
        headers: dict[str, list[str]] | None = None,
    ) -> Episode:
        return Episode(
            request=RequestSnapshot(method=method, url=url, body=body),
            response=ResponseSnapshot(
                status=f"{status_code} OK" if status_code == 200 else str(status_code),
                status_code=status_code,
                content_length=len(response_body),
                headers=headers if headers is not None else {"Content-Length": [str(len(response_body))]},
                body=response_body,
            ),
        )

    return _make
