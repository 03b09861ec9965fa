"""
Episode codec: httpx requests/responses to snapshots and back.

Capturing must not break the live exchange. httpx replaces a consumed
request stream with an in-memory ByteStream on read(), so the real transport
can still send the body after it was captured. Responses are drained from
their raw stream (before content decoding) and handed back to the caller as
a fresh response over the same bytes, so gzip'd bodies are stored exactly as
they came off the wire and decoded normally by the client on replay.
"""

from collections.abc import Callable

import httpx

from httpreplay.filters import FilterSpec, apply_filters
from httpreplay.schema import RequestSnapshot, ResponseSnapshot

# Replayed responses always report this protocol version
REPLAY_HTTP_VERSION = b"HTTP/1.0"


# =============================================================================
# Requests
# =============================================================================


def snapshot_request(request: httpx.Request, body: bytes, filters: FilterSpec | None = None) -> RequestSnapshot:
    """Build a snapshot from a request whose body has already been read."""
    return RequestSnapshot(
        method=request.method,
        url=str(request.url),
        body=apply_filters(body, filters),
    )


def capture_request(request: httpx.Request, filters: FilterSpec | None = None) -> RequestSnapshot:
    """
    Capture a request, leaving it sendable.

    Args:
        request: The outgoing request
        filters: Filter rules applied to the captured body

    Returns:
        RequestSnapshot with method, URL and filtered body
    """
    return snapshot_request(request, request.read(), filters)


async def acapture_request(request: httpx.Request, filters: FilterSpec | None = None) -> RequestSnapshot:
    """Async variant of capture_request() for streamed request bodies."""
    return snapshot_request(request, await request.aread(), filters)


def modify_request_body(request: httpx.Request, fn: Callable[[str], str]) -> httpx.Request:
    """
    Rewrite a request body as text.

    Intended for request hooks. The body is decoded as UTF-8, passed through
    fn, and a new request is returned with a matching Content-Length.
    Requests without a body are returned unchanged and fn is not called.

    Example:
        def hook(mode, request):
            if request.url.path == "/search":
                return modify_request_body(request, lambda b: b.replace("limit=1000", "limit=10"))
            return None
    """
    body = request.read()
    if not body:
        return request

    content = fn(body.decode("utf-8")).encode("utf-8")
    headers = request.headers.copy()
    headers.pop("transfer-encoding", None)
    headers["content-length"] = str(len(content))
    return httpx.Request(
        request.method,
        request.url,
        headers=headers,
        content=content,
        extensions=request.extensions,
    )


# =============================================================================
# Responses
# =============================================================================


def _header_multimap(headers: httpx.Headers) -> dict[str, list[str]]:
    multimap: dict[str, list[str]] = {}
    for key, value in headers.raw:
        multimap.setdefault(key.decode("latin-1"), []).append(value.decode("latin-1"))
    return multimap


def _declared_length(headers: httpx.Headers) -> int | None:
    value = headers.get("content-length")
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def snapshot_response(response: httpx.Response, body: bytes) -> ResponseSnapshot:
    """Build a snapshot from a response and its drained raw body."""
    return ResponseSnapshot(
        status=f"{response.status_code} {response.reason_phrase}".rstrip(),
        status_code=response.status_code,
        content_length=_declared_length(response.headers),
        headers=_header_multimap(response.headers),
        body=body,
    )


def read_raw(response: httpx.Response) -> bytes:
    """Drain and close a response's raw (undecoded) stream."""
    try:
        return b"".join(response.stream)
    finally:
        response.close()


async def aread_raw(response: httpx.Response) -> bytes:
    """Async variant of read_raw()."""
    try:
        return b"".join([chunk async for chunk in response.stream])
    finally:
        await response.aclose()


def capture_response(response: httpx.Response) -> ResponseSnapshot:
    """
    Capture a response in full.

    The response stream is consumed and closed; use rebuild_response() to
    hand an equivalent response back to the caller.
    """
    return snapshot_response(response, read_raw(response))


async def acapture_response(response: httpx.Response) -> ResponseSnapshot:
    """Async variant of capture_response()."""
    return snapshot_response(response, await aread_raw(response))


def rebuild_response(
    response: httpx.Response,
    body: bytes,
    request: httpx.Request | None = None,
) -> httpx.Response:
    """Wrap a drained live response's status, headers and extensions around its body."""
    return httpx.Response(
        status_code=response.status_code,
        headers=response.headers.raw,
        stream=httpx.ByteStream(body),
        extensions=dict(response.extensions),
        request=request,
    )


def materialize(snapshot: ResponseSnapshot, request: httpx.Request | None = None) -> httpx.Response:
    """
    Build a replayable response from a snapshot.

    The body is a fresh in-memory stream (usable from sync and async
    clients), the protocol is fixed to HTTP/1.0, and headers are copied
    verbatim in their recorded order.
    """
    headers = [(name, value) for name, values in snapshot.headers.items() for value in values]
    return httpx.Response(
        status_code=snapshot.status_code,
        headers=headers,
        stream=httpx.ByteStream(snapshot.body),
        extensions={
            "http_version": REPLAY_HTTP_VERSION,
            "reason_phrase": snapshot.reason_phrase.encode("latin-1", errors="replace"),
        },
        request=request,
    )
