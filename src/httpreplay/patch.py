"""
Patching httpx's default transports.

Code under test that builds its own httpx clients cannot be handed a
session as transport=. For that case a session can route
httpx.HTTPTransport.handle_request and
httpx.AsyncHTTPTransport.handle_async_request through itself while it is
started, restoring the originals on stop.

Only one patch can be installed per process. The session's own real calls
run inside bypass(), which makes the patched methods fall through to the
originals instead of recursing into the session.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any

import httpx

from httpreplay.errors import TransportPatchError

if TYPE_CHECKING:
    from httpreplay.session import VCRSession

_bypass: ContextVar[bool] = ContextVar("httpreplay_bypass", default=False)
_install_lock = threading.Lock()
_active: "HttpxPatch | None" = None


@contextmanager
def bypass() -> Iterator[None]:
    """Send requests made in this context straight to the real transports."""
    token = _bypass.set(True)
    try:
        yield
    finally:
        _bypass.reset(token)


def active_patch() -> "HttpxPatch | None":
    """The currently installed patch, if any."""
    return _active


class HttpxPatch:
    """
    Routes httpx's default transports through a session.

    Usage:
        patch = HttpxPatch(session)
        patch.install()
        try:
            httpx.get("https://example.com")  # handled by session
        finally:
            patch.uninstall()
    """

    def __init__(self, session: "VCRSession") -> None:
        self.session = session
        self._originals: tuple[Any, Any] | None = None

    @property
    def installed(self) -> bool:
        return self._originals is not None

    def install(self) -> None:
        """
        Replace the default transport methods.

        Raises:
            TransportPatchError: If another patch is already installed
        """
        global _active
        with _install_lock:
            if _active is not None:
                raise TransportPatchError(cassette=self.session.cassette_name)

            original_sync = httpx.HTTPTransport.handle_request
            original_async = httpx.AsyncHTTPTransport.handle_async_request
            session = self.session

            def handle_request(transport: httpx.HTTPTransport, request: httpx.Request) -> httpx.Response:
                if _bypass.get():
                    return original_sync(transport, request)
                return session.intercept(request)

            async def handle_async_request(
                transport: httpx.AsyncHTTPTransport, request: httpx.Request
            ) -> httpx.Response:
                if _bypass.get():
                    return await original_async(transport, request)
                return await session.intercept_async(request)

            httpx.HTTPTransport.handle_request = handle_request  # type: ignore[method-assign]
            httpx.AsyncHTTPTransport.handle_async_request = handle_async_request  # type: ignore[method-assign]
            self._originals = (original_sync, original_async)
            _active = self

    def uninstall(self) -> None:
        """Restore the original transport methods. Safe to call twice."""
        global _active
        with _install_lock:
            if self._originals is None:
                return
            original_sync, original_async = self._originals
            httpx.HTTPTransport.handle_request = original_sync  # type: ignore[method-assign]
            httpx.AsyncHTTPTransport.handle_async_request = original_async  # type: ignore[method-assign]
            self._originals = None
            if _active is self:
                _active = None
