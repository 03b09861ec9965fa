"""
Replay module for httpreplay.

This module pairs live requests with recorded episodes during replay.
Matched episodes are consumed; the response stored with them is served
instead of touching the network.

How it works:
    1. The session loads the cassette and resets the matcher with its episodes
    2. Each live request is captured (with filters applied) into a snapshot
    3. The matcher compares it with the next expected episode
    4. A mismatch or an empty queue raises a MatchError that ends the session

Example:
    from httpreplay.replay import SequentialMatcher

    matcher = SequentialMatcher(cassette.episodes)
    episode = matcher.match(snapshot)
    print(f"{matcher.remaining} episode(s) left")
"""

from httpreplay.replay.matcher import (
    EpisodeMatcher,
    SequentialMatcher,
    UnorderedMatcher,
    create_matcher,
    request_key,
)

__all__ = [
    "EpisodeMatcher",
    "SequentialMatcher",
    "UnorderedMatcher",
    "create_matcher",
    "request_key",
]
