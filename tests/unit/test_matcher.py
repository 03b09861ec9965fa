"""
Unit tests for episode matchers.

Tests cover:
- Sequential matching order and cursor movement
- Mismatch diagnostics per field
- Exhaustion
- Unordered keyed matching
"""

from collections.abc import Callable

import pytest

from httpreplay.errors import EpisodeNotFoundError, MatchExhaustedError, MatchMismatchError
from httpreplay.replay import SequentialMatcher, UnorderedMatcher, create_matcher, request_key
from httpreplay.schema import Episode, MatcherKind, RequestSnapshot


def snapshot(method: str = "GET", url: str = "http://testserver/", body: bytes = b"") -> RequestSnapshot:
    return RequestSnapshot(method=method, url=url, body=body)


class TestSequentialMatcher:
    """Tests for SequentialMatcher."""

    def test_matches_in_order(self, make_episode: Callable[..., Episode]) -> None:
        first = make_episode(url="http://testserver/a")
        second = make_episode(url="http://testserver/b")
        matcher = SequentialMatcher([first, second])

        assert matcher.match(snapshot(url="http://testserver/a")) is first
        assert matcher.match(snapshot(url="http://testserver/b")) is second
        assert matcher.played == 2
        assert matcher.remaining == 0

    def test_empty_is_exhausted(self) -> None:
        with pytest.raises(MatchExhaustedError, match="no more episodes"):
            SequentialMatcher().match(snapshot())

    def test_exhausted_after_all_played(self, make_episode: Callable[..., Episode]) -> None:
        matcher = SequentialMatcher([make_episode()])
        matcher.match(snapshot())
        with pytest.raises(MatchExhaustedError) as exc_info:
            matcher.match(snapshot())
        assert exc_info.value.method == "GET"
        assert exc_info.value.url == "http://testserver/"

    def test_method_mismatch(self, make_episode: Callable[..., Episode]) -> None:
        matcher = SequentialMatcher([make_episode(method="GET")])
        with pytest.raises(MatchMismatchError) as exc_info:
            matcher.match(snapshot(method="POST"))
        err = exc_info.value
        assert err.field == "Method"
        assert err.expected == "GET"
        assert err.actual == "POST"
        assert err.url == "http://testserver/"

    def test_url_mismatch(self, make_episode: Callable[..., Episode]) -> None:
        matcher = SequentialMatcher([make_episode(url="http://testserver/a")])
        with pytest.raises(MatchMismatchError) as exc_info:
            matcher.match(snapshot(url="http://testserver/b"))
        assert exc_info.value.field == "URL"
        assert exc_info.value.expected == "http://testserver/a"
        assert exc_info.value.actual == "http://testserver/b"

    def test_body_mismatch(self, make_episode: Callable[..., Episode]) -> None:
        matcher = SequentialMatcher([make_episode(method="POST", body=b"Hey Buddy")])
        with pytest.raises(MatchMismatchError) as exc_info:
            matcher.match(snapshot(method="POST", body=b"Hey Pal"))
        assert exc_info.value.field == "Body"
        assert exc_info.value.expected == "Hey Buddy"
        assert exc_info.value.actual == "Hey Pal"

    def test_method_checked_before_url(self, make_episode: Callable[..., Episode]) -> None:
        matcher = SequentialMatcher([make_episode(method="GET", url="http://testserver/a")])
        with pytest.raises(MatchMismatchError) as exc_info:
            matcher.match(snapshot(method="POST", url="http://testserver/b"))
        assert exc_info.value.field == "Method"

    def test_mismatch_does_not_consume(self, make_episode: Callable[..., Episode]) -> None:
        matcher = SequentialMatcher([make_episode()])
        with pytest.raises(MatchMismatchError):
            matcher.match(snapshot(method="DELETE"))
        assert matcher.remaining == 1
        assert matcher.peek() is not None

    def test_reset(self, make_episode: Callable[..., Episode]) -> None:
        matcher = SequentialMatcher([make_episode()])
        matcher.match(snapshot())
        matcher.reset([make_episode(), make_episode()])
        assert matcher.played == 0
        assert matcher.remaining == 2

    def test_source_list_not_consumed(self, make_episode: Callable[..., Episode]) -> None:
        episodes = [make_episode()]
        matcher = SequentialMatcher(episodes)
        matcher.match(snapshot())
        assert len(episodes) == 1


class TestUnorderedMatcher:
    """Tests for UnorderedMatcher."""

    def test_out_of_order(self, make_episode: Callable[..., Episode]) -> None:
        a = make_episode(url="http://testserver/a")
        b = make_episode(url="http://testserver/b")
        matcher = UnorderedMatcher([a, b])
        assert matcher.match(snapshot(url="http://testserver/b")) is b
        assert matcher.match(snapshot(url="http://testserver/a")) is a

    def test_same_key_served_in_recorded_order(self, make_episode: Callable[..., Episode]) -> None:
        first = make_episode(response_body=b"1")
        second = make_episode(response_body=b"2")
        matcher = UnorderedMatcher([first, second])
        assert matcher.match(snapshot()) is first
        assert matcher.match(snapshot()) is second

    def test_body_is_part_of_key(self, make_episode: Callable[..., Episode]) -> None:
        matcher = UnorderedMatcher([make_episode(method="POST", body=b"one")])
        with pytest.raises(EpisodeNotFoundError):
            matcher.match(snapshot(method="POST", body=b"two"))

    def test_exhausted(self, make_episode: Callable[..., Episode]) -> None:
        matcher = UnorderedMatcher([make_episode()])
        matcher.match(snapshot())
        with pytest.raises(MatchExhaustedError):
            matcher.match(snapshot())

    def test_request_key(self) -> None:
        key = request_key(snapshot(method="POST", body=b""))
        assert key == (
            "POST",
            "http://testserver/",
            "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855",
        )


class TestCreateMatcher:
    """Tests for the matcher factory."""

    def test_default_is_sequential(self) -> None:
        assert isinstance(create_matcher(), SequentialMatcher)

    def test_unordered(self) -> None:
        assert isinstance(create_matcher(MatcherKind.UNORDERED), UnorderedMatcher)
        assert isinstance(create_matcher("unordered"), UnorderedMatcher)
