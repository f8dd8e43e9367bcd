"""
Stream Proxy: Relay a Direct URL to the Caller

Re-issues a credentialed GET against a direct URL and hands back an
UpstreamStream: the upstream status, the few headers worth mirroring, and an
async iterator over the raw body bytes.

The body is never buffered. Chunks are pulled from the origin only as the
caller consumes them, so a slow client slows the upstream read instead of
filling memory. Bytes are relayed undecoded (no gzip/deflate unwrapping), so
what the caller receives is exactly what the origin sent.
"""

from __future__ import annotations

from typing import AsyncIterator, Dict, Optional
import logging

import httpx

from .http_fetcher import UpstreamError
from .session_context import SessionCredential

logger = logging.getLogger("folder-stream.stream")

DEFAULT_CONTENT_TYPE = "application/octet-stream"
MIRRORED_HEADERS = ("Content-Length", "Content-Disposition")


def mirrored_headers(upstream: httpx.Headers) -> Dict[str, str]:
    """
    Subset of upstream headers forwarded to the caller.

    Content-Type is always present (generic binary when the origin omits it);
    Content-Length and Content-Disposition only when the origin sends them.
    """
    hdrs = {"Content-Type": upstream.get("content-type") or DEFAULT_CONTENT_TYPE}
    for name in MIRRORED_HEADERS:
        value = upstream.get(name)
        if value is not None:
            hdrs[name] = value
    return hdrs


class UpstreamStream:
    """
    An open upstream response ready to be relayed.

    The stream owns the response and, optionally, the client that produced it;
    both are released by aclose(), which runs automatically once iteration ends
    or is interrupted.
    """

    def __init__(self, response: httpx.Response, client: Optional[httpx.AsyncClient] = None):
        self.response = response
        self._client = client
        self._closed = False

    @property
    def status_code(self) -> int:
        return self.response.status_code

    @property
    def headers(self) -> Dict[str, str]:
        return mirrored_headers(self.response.headers)

    async def body(self) -> AsyncIterator[bytes]:
        relayed = 0
        try:
            async for chunk in self.response.aiter_raw():
                relayed += len(chunk)
                yield chunk
        finally:
            logger.info(f"[STREAM] Relayed {relayed} bytes from {self.response.url}")
            await self.aclose()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self.response.aclose()
        if self._client is not None:
            await self._client.aclose()


async def open_stream(
    url: str,
    credential: SessionCredential,
    client: httpx.AsyncClient,
    *,
    owns_client: bool = False,
) -> UpstreamStream:
    """
    Open a GET against a direct URL without reading its body.

    Args:
        url: Direct URL to relay
        credential: Session cookies for the origin
        client: HTTP client to use
        owns_client: Close the client together with the stream

    Returns:
        UpstreamStream for a 2xx response

    Raises:
        UpstreamError: origin returned a non-2xx status (response already closed)
        httpx.HTTPError: transport failure
        httpx.InvalidURL: url cannot be parsed

    The client is closed before any of these propagate when owns_client is set.
    """
    logger.info(f"[STREAM] GET {url}")
    # identity: raw bytes must match the mirrored Content-Length/Type as-is
    try:
        request = client.build_request(
            "GET", url, headers=credential.request_headers({"Accept-Encoding": "identity"})
        )
        response = await client.send(request, stream=True)
    except BaseException:
        if owns_client:
            await client.aclose()
        raise

    stream = UpstreamStream(response, client if owns_client else None)
    if not response.is_success:
        logger.warning(f"[STREAM] Upstream failed: {response.status_code} - {url}")
        await stream.aclose()
        raise UpstreamError(response.status_code, url)

    return stream
