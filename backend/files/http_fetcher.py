"""
HTTP Fetcher: Metadata Probe for Direct URLs

Given a direct URL found by the crawler, learn what it serves (MIME type, size,
filename) with the cheapest request the origin will answer:

1. HEAD with the session cookie, following redirects
2. If the origin rejects HEAD (405 or 403), one GET limited to the first byte
   via "Range: bytes=0-0"

Everything is derived from response headers; no body is read.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from urllib.parse import unquote, urlparse
import logging
import re

import httpx

from settings import ServiceSettings
from .session_context import SessionCredential

logger = logging.getLogger("folder-stream.probe")

HEAD_REJECTED_STATUSES = (405, 403)
DEFAULT_FILENAME = "download"

_DISPOSITION_RE = re.compile(
    r"""filename(?P<star>\*?)\s*=\s*(?:UTF-8'[^']*')?(?P<quote>"?)(?P<value>[^";]+)(?P=quote)""",
    re.IGNORECASE,
)
_CONTENT_RANGE_TOTAL_RE = re.compile(r"/\s*(\d+)\s*$")


class UpstreamError(Exception):
    """
    The origin answered a probe or stream request with a non-success status.

    Attributes:
        status: HTTP status returned by the origin
        url: URL that was requested
    """

    def __init__(self, status: int, url: str = "", message: Optional[str] = None):
        self.status = status
        self.url = url
        super().__init__(message or f"Upstream returned {status}")


@dataclass(frozen=True)
class FileMetadata:
    """
    Metadata of a direct URL, taken from probe response headers.

    Attributes:
        mime: Content-Type if reported
        size: Total size in bytes if reported
        name: Filename from Content-Disposition or the URL path (never empty)
    """
    mime: Optional[str]
    size: Optional[int]
    name: str


def new_client(settings: ServiceSettings, transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """
    Fresh client for one request. Clients are never shared so cookies set by
    the origin cannot leak from one caller to another.
    """
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=settings.http_timeout,
        transport=transport,
    )


def _percent_decode(token: str) -> str:
    # Strict decoding so malformed UTF-8 falls back to the raw token.
    try:
        return unquote(token, errors="strict")
    except UnicodeDecodeError:
        return token


def filename_from_disposition(disposition: Optional[str]) -> Optional[str]:
    """
    Extract a filename from a Content-Disposition header.

    Examples:
        attachment; filename="report.pdf"             -> report.pdf
        attachment; filename*=UTF-8''na%C3%AFve.txt   -> naïve.txt

    "filename*" is preferred over "filename" when both are present.
    """
    if not disposition:
        return None

    matches = list(_DISPOSITION_RE.finditer(disposition))
    if not matches:
        return None

    matches.sort(key=lambda m: 0 if m.group("star") else 1)
    value = matches[0].group("value").strip()
    if not value:
        return None
    return _percent_decode(value) or None


def filename_from_url(url: str) -> str:
    """
    Last path segment of a URL, percent-decoded; "download" when empty or the
    URL cannot be parsed.
    """
    try:
        path = urlparse(url).path
    except ValueError:
        return DEFAULT_FILENAME

    segment = path.rsplit("/", 1)[-1]
    if not segment:
        return DEFAULT_FILENAME
    try:
        return unquote(segment, errors="strict") or DEFAULT_FILENAME
    except UnicodeDecodeError:
        return DEFAULT_FILENAME


def size_from_headers(headers: httpx.Headers, ranged: bool = False) -> Optional[int]:
    """
    Total size from Content-Range (ranged probes) or Content-Length.

    A ranged probe's Content-Length is the length of the returned slice, so the
    "/total" part of Content-Range is used when the origin reports it.
    """
    if ranged:
        content_range = headers.get("content-range")
        if content_range:
            m = _CONTENT_RANGE_TOTAL_RE.search(content_range)
            if m:
                return int(m.group(1))

    length = headers.get("content-length")
    if length is None:
        return None
    try:
        return int(length.strip())
    except ValueError:
        return None


def metadata_from_response(response: httpx.Response, url: str, ranged: bool = False) -> FileMetadata:
    headers = response.headers
    return FileMetadata(
        mime=headers.get("content-type") or None,
        size=size_from_headers(headers, ranged=ranged),
        name=filename_from_disposition(headers.get("content-disposition")) or filename_from_url(url),
    )


async def probe_metadata(
    url: str,
    credential: SessionCredential,
    client: httpx.AsyncClient,
) -> FileMetadata:
    """
    Probe a direct URL for its metadata.

    Args:
        url: Direct URL of the file
        credential: Session cookies for the origin
        client: HTTP client to issue the requests with

    Returns:
        FileMetadata derived from response headers

    Raises:
        UpstreamError: the final probe response was not 2xx
        httpx.HTTPError: transport failure
    """
    headers = credential.request_headers()

    logger.info(f"[PROBE] HEAD {url}")
    response = await client.head(url, headers=headers)

    if response.status_code in HEAD_REJECTED_STATUSES:
        logger.info(f"[PROBE] HEAD rejected ({response.status_code}), retrying with ranged GET")
        # Streamed so an origin that ignores Range does not send us the whole file.
        async with client.stream("GET", url, headers={**headers, "Range": "bytes=0-0"}) as partial:
            return _checked_metadata(partial, url, ranged=True)

    return _checked_metadata(response, url)


def _checked_metadata(response: httpx.Response, url: str, ranged: bool = False) -> FileMetadata:
    if not response.is_success:
        logger.warning(f"[PROBE] Failed: {response.status_code} - {url}")
        raise UpstreamError(response.status_code, url)

    meta = metadata_from_response(response, url, ranged=ranged)
    logger.info(f"[PROBE] Success: name={meta.name!r} size={meta.size} mime={meta.mime}")
    return meta
