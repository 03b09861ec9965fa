"""
Session controller for httpreplay.

A VCRSession is an httpx transport that sits between the code under test
and the real network. Every outbound request passes through intercept().

Modes:
    - stopped: requests pass straight through to the real transport
    - recording: requests go to the network; each exchange is captured and
      appended to the cassette, which is saved when the session stops
    - replaying: requests are matched against the cassette and answered from
      it without touching the network

start() picks the mode: replay if the cassette file exists, record
otherwise.

Usage:
    session = VCRSession(VCRConfig(fixtures_dir="tests/fixtures/vcr"))
    session.set_filter(API_KEY, "dummy-key")
    with session.use("search_flow"):
        with httpx.Client(transport=session) as client:
            client.get("https://api.example.com/search?q=abc")

Concurrency:
    One lock guards the mode, the cassette's episode list, the matcher and
    the filters. It is never held across the real network call. Replay
    callers racing each other are matched in lock order.
"""

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

import httpx

from httpreplay.codec import (
    acapture_request,
    aread_raw,
    capture_request,
    materialize,
    read_raw,
    rebuild_response,
    snapshot_response,
)
from httpreplay.errors import (
    InvalidFilterError,
    MatchError,
    SessionAbortedError,
    SessionAlreadyStartedError,
    SessionCancelledError,
    SessionStoppedError,
    UnplayedEpisodesError,
)
from httpreplay.patch import HttpxPatch, bypass
from httpreplay.replay import EpisodeMatcher, create_matcher
from httpreplay.schema import Episode, RequestSnapshot, SessionMode, VCRConfig
from httpreplay.store import Cassette, CassetteStorage, FileStorage

logger = logging.getLogger(__name__)

# Called with the session mode and the outgoing request. Returning a request
# replaces the one that is sent and captured; returning None keeps it.
RequestHook = Callable[[SessionMode, httpx.Request], httpx.Request | None]


class VCRSession(httpx.BaseTransport, httpx.AsyncBaseTransport):
    """
    Records and replays HTTP exchanges for one cassette at a time.

    Attributes:
        config: Session configuration
    """

    def __init__(
        self,
        config: VCRConfig | None = None,
        *,
        transport: httpx.BaseTransport | None = None,
        async_transport: httpx.AsyncBaseTransport | None = None,
        storage: CassetteStorage | None = None,
        matcher: EpisodeMatcher | None = None,
    ) -> None:
        """
        Initialize the session.

        Args:
            config: Session configuration (defaults to VCRConfig())
            transport: Real transport for sync clients (default httpx.HTTPTransport,
                created on first use)
            async_transport: Real transport for async clients. Defaults to
                transport when it also supports async (httpx.MockTransport
                does), else httpx.AsyncHTTPTransport created on first use
            storage: Cassette byte storage (default FileStorage)
            matcher: Replay matcher (default from config.matcher)
        """
        self.config = config or VCRConfig()
        if async_transport is None and isinstance(transport, httpx.AsyncBaseTransport):
            async_transport = transport
        # Transports the session creates itself are owned, and closed by
        # close()/aclose(); caller-supplied ones are left to the caller.
        self._transport: httpx.BaseTransport | None = transport
        self._async_transport: httpx.AsyncBaseTransport | None = async_transport
        self._owns_transport = transport is None
        self._owns_async_transport = async_transport is None
        self._storage = storage or FileStorage()
        self._matcher = matcher or create_matcher(self.config.matcher)

        self._lock = threading.RLock()
        self._mode = SessionMode.STOPPED
        self._cassette: Cassette | None = None
        self._filters: dict[str, str] = {}
        self._hook: RequestHook | None = None
        self._cancel: threading.Event | None = None
        self._abort_cause: MatchError | None = None
        self._patch: HttpxPatch | None = None

        for rule in self.config.filters:
            self.set_filter(rule.plaintext, rule.replacement)

    def __repr__(self) -> str:
        return f"VCRSession(mode={self._mode.value!r}, cassette={self.cassette_name!r})"

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    @property
    def mode(self) -> SessionMode:
        """Current session mode."""
        return self._mode

    def current_mode(self) -> SessionMode:
        """Current session mode."""
        return self._mode

    @property
    def cassette(self) -> Cassette | None:
        """The cassette of the current (or last) session."""
        return self._cassette

    @property
    def cassette_name(self) -> str:
        return self._cassette.name if self._cassette is not None else ""

    @property
    def played(self) -> int:
        """Episodes replayed so far in the current replay."""
        return self._matcher.played

    @property
    def remaining(self) -> int:
        """Episodes not yet replayed in the current replay."""
        return self._matcher.remaining

    @property
    def filters(self) -> dict[str, str]:
        """Copy of the filter map, in application order."""
        with self._lock:
            return dict(self._filters)

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    def set_filter(self, plaintext: str, replacement: str) -> None:
        """
        Replace plaintext with replacement in every captured request body.

        Filters apply in the order they were first set; setting an existing
        plaintext again changes its replacement but not its position.

        Raises:
            InvalidFilterError: If plaintext is empty
        """
        if not plaintext:
            raise InvalidFilterError(cassette=self.cassette_name, plaintext=plaintext)
        with self._lock:
            self._filters[plaintext] = replacement

    def set_request_hook(self, hook: RequestHook | None) -> None:
        """Install (or clear with None) the hook run before each recorded or replayed request."""
        with self._lock:
            self._hook = hook

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self, name: str, cancel: threading.Event | None = None) -> "VCRSession":
        """
        Start recording or replaying a cassette.

        Args:
            name: Cassette name (file <fixtures_dir>/<name>.json[.gz])
            cancel: Optional event; once set, requests through this session fail

        Returns:
            self, to pass as transport= to httpx clients

        Raises:
            SessionAlreadyStartedError: If the session is not stopped
            InvalidCassetteNameError: If the name is empty or escapes fixtures_dir
            StorageError: If an existing cassette cannot be read
            CassetteParseError: If an existing cassette is malformed
            TransportPatchError: If patch_httpx is set and another session holds the patch
        """
        with self._lock:
            if self._mode != SessionMode.STOPPED:
                raise SessionAlreadyStartedError(cassette=name, mode=self._mode.value)

            cassette = Cassette(
                name,
                fixtures_dir=self.config.fixtures_dir,
                gzip=self.config.gzip,
                storage=self._storage,
            )
            if cassette.exists():
                cassette.load()
                self._matcher.reset(cassette.episodes)
                mode = SessionMode.REPLAYING
            else:
                self._matcher.reset(())
                mode = SessionMode.RECORDING

            if self.config.patch_httpx:
                patch = HttpxPatch(self)
                patch.install()
                self._patch = patch

            self._cassette = cassette
            self._cancel = cancel
            self._abort_cause = None
            self._mode = mode

        logger.info("Started %s cassette %r (%s)", mode.value, name, cassette.path)
        return self

    def stop(self) -> None:
        """
        Stop the session, saving the cassette if it was recording.

        The session is always back in the stopped state afterwards, even when
        saving fails.

        Raises:
            StorageError: If the recording cannot be written
            UnplayedEpisodesError: If assert_all_played is set and replay left episodes
        """
        with self._lock:
            mode = self._mode
            cassette = self._cassette
            try:
                if mode == SessionMode.RECORDING and cassette is not None:
                    cassette.save()
                elif (
                    mode == SessionMode.REPLAYING
                    and cassette is not None
                    and self.config.assert_all_played
                    and self._abort_cause is None
                    and self._matcher.remaining
                ):
                    raise UnplayedEpisodesError(cassette=cassette.name, remaining=self._matcher.remaining)
            finally:
                if self._patch is not None:
                    self._patch.uninstall()
                    self._patch = None
                self._mode = SessionMode.STOPPED

        if mode != SessionMode.STOPPED:
            logger.info("Stopped %s cassette %r", mode.value, cassette.name if cassette is not None else "")

    @contextmanager
    def use(self, name: str, cancel: threading.Event | None = None) -> Iterator["VCRSession"]:
        """Run a block with the session started on a cassette."""
        self.start(name, cancel)
        try:
            yield self
        finally:
            self.stop()

    # -------------------------------------------------------------------------
    # Interception
    # -------------------------------------------------------------------------

    def _begin(self) -> tuple[SessionMode, Cassette | None, RequestHook | None, dict[str, str]]:
        with self._lock:
            if self._cancel is not None and self._cancel.is_set():
                raise SessionCancelledError(cassette=self.cassette_name)
            if self._abort_cause is not None and self._mode != SessionMode.STOPPED:
                raise SessionAbortedError(cassette=self.cassette_name, cause=self._abort_cause.message)
            return self._mode, self._cassette, self._hook, dict(self._filters)

    @staticmethod
    def _run_hook(hook: RequestHook | None, mode: SessionMode, request: httpx.Request) -> httpx.Request:
        if hook is None:
            return request
        rewritten = hook(mode, request)
        return rewritten if rewritten is not None else request

    def _is_current(self, cassette: Cassette | None, mode: SessionMode) -> bool:
        """True if the session is still in the start() that handed out cassette."""
        return self._mode == mode and cassette is not None and self._cassette is cassette

    def _record(self, cassette: Cassette | None, episode: Episode) -> None:
        with self._lock:
            if not self._is_current(cassette, SessionMode.RECORDING):
                logger.warning(
                    "Dropping episode for %s %s: session stopped while the request was in flight",
                    episode.request.method,
                    episode.request.url,
                )
                return
            cassette.append(episode)
        logger.debug("Recorded %s %s -> %s", episode.request.method, episode.request.url, episode.response.status)

    def _replay(self, cassette: Cassette | None, snapshot: RequestSnapshot) -> Episode:
        with self._lock:
            if not self._is_current(cassette, SessionMode.REPLAYING):
                raise SessionStoppedError(cassette=cassette.name if cassette is not None else "")
            try:
                episode = self._matcher.match(snapshot)
            except MatchError as e:
                self._abort_cause = e
                logger.error("Replay of cassette %r failed: %s", self.cassette_name, e.message)
                raise
        logger.debug("Replayed %s %s -> %s", snapshot.method, snapshot.url, episode.response.status)
        return episode

    def _real_transport(self) -> httpx.BaseTransport:
        with self._lock:
            if self._transport is None:
                self._transport = httpx.HTTPTransport()
            return self._transport

    def _real_async_transport(self) -> httpx.AsyncBaseTransport:
        with self._lock:
            if self._async_transport is None:
                self._async_transport = httpx.AsyncHTTPTransport()
            return self._async_transport

    def intercept(self, request: httpx.Request) -> httpx.Response:
        """
        Handle one outbound request according to the session mode.

        Errors from the real transport propagate unchanged and nothing is
        recorded for them. A recording that finishes after the session was
        stopped (or restarted on another cassette) is dropped.

        Raises:
            MatchError: If replay cannot match the request
            SessionCancelledError: If the cancel event is set
            SessionAbortedError: If an earlier replay failure ended the session
            SessionStoppedError: If the session stopped before a replayed request was matched
        """
        mode, cassette, hook, filters = self._begin()

        if mode == SessionMode.STOPPED:
            logger.debug("Passing through %s %s", request.method, request.url)
            with bypass():
                return self._real_transport().handle_request(request)

        request = self._run_hook(hook, mode, request)
        snapshot = capture_request(request, filters)

        if mode == SessionMode.RECORDING:
            with bypass():
                response = self._real_transport().handle_request(request)
            body = read_raw(response)
            self._record(cassette, Episode(request=snapshot, response=snapshot_response(response, body)))
            return rebuild_response(response, body, request)

        episode = self._replay(cassette, snapshot)
        return materialize(episode.response, request)

    async def intercept_async(self, request: httpx.Request) -> httpx.Response:
        """Async variant of intercept(), used by httpx.AsyncClient."""
        mode, cassette, hook, filters = self._begin()

        if mode == SessionMode.STOPPED:
            logger.debug("Passing through %s %s", request.method, request.url)
            with bypass():
                return await self._real_async_transport().handle_async_request(request)

        request = self._run_hook(hook, mode, request)
        snapshot = await acapture_request(request, filters)

        if mode == SessionMode.RECORDING:
            with bypass():
                response = await self._real_async_transport().handle_async_request(request)
            body = await aread_raw(response)
            self._record(cassette, Episode(request=snapshot, response=snapshot_response(response, body)))
            return rebuild_response(response, body, request)

        episode = self._replay(cassette, snapshot)
        return materialize(episode.response, request)

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        return self.intercept(request)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        return await self.intercept_async(request)

    def close(self) -> None:
        """
        Close the real sync transport if the session created it.

        Called by httpx.Client on exit. The session stays usable: the next
        request creates a fresh transport.
        """
        with self._lock:
            transport = self._transport if self._owns_transport else None
            if transport is not None:
                self._transport = None
        if transport is not None:
            transport.close()

    async def aclose(self) -> None:
        """Close the real async transport if the session created it."""
        with self._lock:
            transport = self._async_transport if self._owns_async_transport else None
            if transport is not None:
                self._async_transport = None
        if transport is not None:
            await transport.aclose()


@contextmanager
def use_cassette(name: str, config: VCRConfig | None = None, **kwargs: Any) -> Iterator[VCRSession]:
    """
    Record or replay a cassette for the duration of a block.

    Keyword arguments are passed to VCRSession (transport, storage, ...).

    Example:
        with use_cassette("users", VCRConfig(patch_httpx=True)):
            assert httpx.get("https://api.example.com/users").status_code == 200
    """
    session = VCRSession(config, **kwargs)
    with session.use(name):
        yield session
