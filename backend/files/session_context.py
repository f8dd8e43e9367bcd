"""
Session Credential: Cookie String to Browser/HTTP Credentials

The folder page and the direct download hosts both authorize requests with the
same session cookies. Callers hand us those cookies as one opaque string
("name=value; name2=value2"). This module turns that string into:

- a Cookie header for plain HTTP requests (probe, stream)
- Playwright cookie entries for the crawler's browser context

SECURITY NOTES:
- Do NOT persist this; a credential lives for one crawl/probe/stream call
- Never log cookie values, only counts
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse
import logging

from settings import DEFAULT_FALLBACK_DOMAIN

logger = logging.getLogger("folder-stream.session")


def guess_domain(url: str, fallback: str = DEFAULT_FALLBACK_DOMAIN) -> str:
    """
    Hostname of a folder URL, or the fallback origin when there is none.

    Never raises; malformed URLs simply yield the fallback.
    """
    try:
        host = urlparse(url).hostname
    except ValueError:
        host = None
    return host or fallback


def parse_cookie_string(cookie: str) -> List[Tuple[str, str]]:
    """
    Split "a=1; b=2" into [("a", "1"), ("b", "2")].

    Only the first "=" separates name from value, so values may contain "=".
    A piece without "=" becomes a cookie with an empty value.
    """
    pairs: List[Tuple[str, str]] = []
    for piece in (cookie or "").split(";"):
        piece = piece.strip()
        if not piece:
            continue
        name, sep, value = piece.partition("=")
        pairs.append((name.strip(), value.strip() if sep else ""))
    return pairs


@dataclass(frozen=True)
class SessionCredential:
    """
    Short-lived credential for one operation against the storage origin.

    Attributes:
        cookie: Raw cookie string exactly as supplied
        domain: Hostname the cookies are scoped to in the browser
    """
    cookie: str
    domain: str = DEFAULT_FALLBACK_DOMAIN

    @staticmethod
    def for_url(cookie: str, url: str, fallback_domain: str = DEFAULT_FALLBACK_DOMAIN) -> "SessionCredential":
        """Credential scoped to the host of the given folder URL."""
        return SessionCredential(cookie=cookie, domain=guess_domain(url, fallback_domain))

    def cookie_header(self) -> str:
        """The cookie string as sent in a Cookie request header."""
        return self.cookie

    def request_headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        hdrs = dict(extra or {})
        if self.cookie:
            hdrs["Cookie"] = self.cookie_header()
        return hdrs

    def browser_cookies(self) -> List[Dict[str, str]]:
        """
        Playwright cookie entries for the bare host and its wildcard parent.

        The origin may scope its session cookies either way and the browser only
        attaches a cookie on an exact domain match, so every cookie is added
        twice: first all entries for "host", then all for ".host".

        Returns:
            List of {name, value, domain, path} dictionaries
        """
        pairs = parse_cookie_string(self.cookie)
        entries: List[Dict[str, str]] = []
        for domain in (self.domain, "." + self.domain):
            for name, value in pairs:
                entries.append({"name": name, "value": value, "domain": domain, "path": "/"})
        return entries

    def __repr__(self) -> str:
        return (
            f"SessionCredential(domain='{self.domain}', "
            f"cookies={len(parse_cookie_string(self.cookie))})"
        )
