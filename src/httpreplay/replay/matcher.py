"""
Episode matchers.

A matcher pairs each live request with a recorded episode during replay.

SequentialMatcher (the default) is strictly positional: the next live
request must equal the next recorded request field for field. Divergence is
reported at the first differing field, which points straight at the call
that changed.

UnorderedMatcher looks episodes up by method, URL and body hash and
consumes them in recorded order per key. It tolerates reordered calls at
the cost of less precise diagnostics.

Matchers are not thread-safe. The session calls match() inside its lock, so
concurrent callers consume episodes in the order they acquire it, which is
not necessarily the order they issued their requests.
"""

import hashlib
from abc import ABC, abstractmethod
from collections import defaultdict, deque
from collections.abc import Sequence

from httpreplay.errors import EpisodeNotFoundError, MatchExhaustedError, MatchMismatchError
from httpreplay.schema import Episode, MatcherKind, RequestSnapshot


def _show_body(body: bytes) -> str:
    return body.decode("utf-8", errors="replace")


class EpisodeMatcher(ABC):
    """Strategy interface for replay matching."""

    @abstractmethod
    def reset(self, episodes: Sequence[Episode]) -> None:
        """Start matching against a fresh list of recorded episodes."""

    @abstractmethod
    def match(self, request: RequestSnapshot) -> Episode:
        """
        Return the recorded episode for a live request and consume it.

        Raises:
            MatchError: If no episode corresponds to the request
        """

    @property
    @abstractmethod
    def remaining(self) -> int:
        """Number of episodes not yet consumed."""

    @property
    @abstractmethod
    def played(self) -> int:
        """Number of episodes consumed so far."""


class SequentialMatcher(EpisodeMatcher):
    """
    Positional matcher over an immutable episode tuple and a cursor.

    Usage:
        matcher = SequentialMatcher()
        matcher.reset(cassette.episodes)
        episode = matcher.match(snapshot)
    """

    def __init__(self, episodes: Sequence[Episode] = ()) -> None:
        self._episodes: tuple[Episode, ...] = ()
        self._cursor = 0
        self.reset(episodes)

    def reset(self, episodes: Sequence[Episode]) -> None:
        self._episodes = tuple(episodes)
        self._cursor = 0

    @property
    def remaining(self) -> int:
        return len(self._episodes) - self._cursor

    @property
    def played(self) -> int:
        return self._cursor

    def peek(self) -> Episode | None:
        """The next expected episode, without consuming it."""
        if self._cursor >= len(self._episodes):
            return None
        return self._episodes[self._cursor]

    def match(self, request: RequestSnapshot) -> Episode:
        episode = self.peek()
        if episode is None:
            raise MatchExhaustedError(method=request.method, url=request.url)

        expected = episode.request
        if expected.method != request.method:
            raise MatchMismatchError(
                method=request.method,
                url=request.url,
                field="Method",
                expected=expected.method,
                actual=request.method,
            )
        if expected.url != request.url:
            raise MatchMismatchError(
                method=request.method,
                url=request.url,
                field="URL",
                expected=expected.url,
                actual=request.url,
            )
        if expected.body != request.body:
            raise MatchMismatchError(
                method=request.method,
                url=request.url,
                field="Body",
                expected=_show_body(expected.body),
                actual=_show_body(request.body),
            )

        self._cursor += 1
        return episode


def request_key(request: RequestSnapshot) -> tuple[str, str, str]:
    """Lookup key used by UnorderedMatcher."""
    return request.method, request.url, hashlib.sha256(request.body).hexdigest()


class UnorderedMatcher(EpisodeMatcher):
    """
    Keyed matcher: any unplayed episode with the same method, URL and body.

    Episodes sharing a key are served in recorded order.
    """

    def __init__(self, episodes: Sequence[Episode] = ()) -> None:
        self._queues: dict[tuple[str, str, str], deque[Episode]] = defaultdict(deque)
        self._total = 0
        self._played = 0
        self.reset(episodes)

    def reset(self, episodes: Sequence[Episode]) -> None:
        self._queues = defaultdict(deque)
        for episode in episodes:
            self._queues[request_key(episode.request)].append(episode)
        self._total = len(episodes)
        self._played = 0

    @property
    def remaining(self) -> int:
        return self._total - self._played

    @property
    def played(self) -> int:
        return self._played

    def match(self, request: RequestSnapshot) -> Episode:
        if self.remaining == 0:
            raise MatchExhaustedError(method=request.method, url=request.url)

        queue = self._queues.get(request_key(request))
        if not queue:
            raise EpisodeNotFoundError(method=request.method, url=request.url)

        self._played += 1
        return queue.popleft()


def create_matcher(kind: MatcherKind | str = MatcherKind.SEQUENTIAL) -> EpisodeMatcher:
    """Build the matcher for a configured strategy."""
    kind = MatcherKind(kind)
    if kind == MatcherKind.UNORDERED:
        return UnorderedMatcher()
    return SequentialMatcher()
