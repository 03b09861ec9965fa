"""
Filter stage for captured request bodies.

Filters rewrite plaintext substrings (API keys, passwords) to replacement
text before a request snapshot is stored, so secrets never reach fixture
files. Because the same filters run on live requests during replay, a
filtered recording still matches the unfiltered live request.

Ordering contract:
    Rules are applied one after another in iteration order. For a dict that
    is insertion order. A replacement produced by an earlier rule can be
    matched by a later rule; callers who care should keep patterns disjoint.
"""

from collections.abc import Iterable, Mapping

from httpreplay.errors import InvalidFilterError
from httpreplay.schema import FilterRule

FilterSpec = Mapping[str, str] | Iterable[tuple[str, str]] | Iterable[FilterRule]


def iter_rules(filters: FilterSpec | None) -> list[tuple[bytes, bytes]]:
    """
    Normalize a filter specification to an ordered list of byte pairs.

    Raises:
        InvalidFilterError: If a plaintext pattern is empty
    """
    if not filters:
        return []

    if isinstance(filters, Mapping):
        items = list(filters.items())
    else:
        items = [
            (f.plaintext, f.replacement) if isinstance(f, FilterRule) else tuple(f)
            for f in filters
        ]

    rules = []
    for plaintext, replacement in items:
        if not plaintext:
            raise InvalidFilterError(plaintext=plaintext)
        rules.append((plaintext.encode("utf-8"), replacement.encode("utf-8")))
    return rules


def apply_filters(body: bytes, filters: FilterSpec | None) -> bytes:
    """
    Replace every occurrence of each plaintext with its replacement.

    Occurrences are replaced left to right without overlap, one rule at a
    time in iteration order.

    Args:
        body: Captured body bytes
        filters: Mapping or ordered pairs of (plaintext, replacement)

    Returns:
        The filtered body (the input is never modified)
    """
    for plaintext, replacement in iter_rules(filters):
        body = body.replace(plaintext, replacement)
    return body
