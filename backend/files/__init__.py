"""
Files Module: Shared-Folder Discovery, Metadata and Streaming

This module turns a shared-folder link into a list of files and serves any one
of them as a byte stream, using the caller's session cookies.

Components:
- SessionCredential: Cookie string as HTTP header and browser cookie entries
- crawl_folder: Headless-browser crawl that listens to the page's API calls
- FileCollector / EXTRACTION_RULES: Heuristic, deduplicating file extraction
- probe_metadata: HEAD (or ranged GET) probe for MIME, size and filename
- open_stream: Credentialed GET relayed chunk by chunk

Design Philosophy:
1. Browser only for discovery: metadata and bytes use plain HTTP
2. Best effort: an unrecognized response shape is skipped, never fatal
3. No state: every call builds and releases its own browser/client
"""

from .session_context import SessionCredential, guess_domain, parse_cookie_string
from .extraction_rules import (
    EXTRACTION_RULES,
    ExtractionRule,
    FieldAliases,
    FileCollector,
    FileDescriptor,
)
from .folder_crawler import crawl_folder, launch_chromium, observe_response
from .http_fetcher import FileMetadata, UpstreamError, new_client, probe_metadata
from .stream_proxy import UpstreamStream, open_stream

__all__ = [
    "SessionCredential",
    "guess_domain",
    "parse_cookie_string",
    "EXTRACTION_RULES",
    "ExtractionRule",
    "FieldAliases",
    "FileCollector",
    "FileDescriptor",
    "crawl_folder",
    "launch_chromium",
    "observe_response",
    "FileMetadata",
    "UpstreamError",
    "new_client",
    "probe_metadata",
    "UpstreamStream",
    "open_stream",
]
