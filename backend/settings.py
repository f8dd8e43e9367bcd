"""
Service Settings

Runtime configuration for the folder streaming service. Values come from the
environment (optionally a .env file loaded by main.py) and are captured once
into an immutable ServiceSettings that is handed to every crawl, probe and
stream call. Nothing here is read again at request time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

DEFAULT_FALLBACK_DOMAIN = "www.1024tera.com"
DEFAULT_BROWSER_ARGS = ("--no-sandbox", "--disable-dev-shm-usage")


def _env_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() not in ("0", "false", "no", "off")


@dataclass(frozen=True)
class ServiceSettings:
    """
    Immutable configuration threaded into crawl/resolve/stream operations.

    Attributes:
        server_cookie: Cookie string used when the caller supplies none
        settle_seconds: How long a crawl keeps the page open after load
        navigation_timeout_ms: Hard limit for the initial page navigation
        max_files: Cap on descriptors returned by one crawl
        headless: Run Chromium without a window
        browser_args: Extra Chromium command line flags
        http_timeout: Timeout (seconds) for probe and stream requests
        fallback_domain: Cookie domain used when the folder URL has no host
    """
    server_cookie: str = ""
    settle_seconds: float = 6.0
    navigation_timeout_ms: int = 60_000
    max_files: int = 200
    headless: bool = True
    browser_args: Tuple[str, ...] = field(default=DEFAULT_BROWSER_ARGS)
    http_timeout: float = 30.0
    fallback_domain: str = DEFAULT_FALLBACK_DOMAIN

    @staticmethod
    def from_env(environ: Optional[Mapping[str, str]] = None) -> "ServiceSettings":
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            ServiceSettings populated from the environment
        """
        env = os.environ if environ is None else environ
        return ServiceSettings(
            server_cookie=env.get("TERABOX_COOKIE", "").strip(),
            settle_seconds=float(env.get("FOLDER_SETTLE_SECONDS", "6")),
            navigation_timeout_ms=int(env.get("FOLDER_NAV_TIMEOUT_MS", "60000")),
            max_files=int(env.get("FOLDER_MAX_FILES", "200")),
            headless=_env_bool(env.get("BROWSER_HEADLESS"), True),
            http_timeout=float(env.get("UPSTREAM_TIMEOUT", "30")),
            fallback_domain=env.get("FALLBACK_DOMAIN") or DEFAULT_FALLBACK_DOMAIN,
        )

    def pick_cookie(self, supplied: Optional[str]) -> Optional[str]:
        """
        Choose the cookie for one request.

        A cookie supplied by the caller wins over the configured one.

        Returns:
            The cookie string, or None when neither is available
        """
        if supplied and supplied.strip():
            return supplied.strip()
        return self.server_cookie or None

    def __repr__(self) -> str:
        return (
            f"ServiceSettings(server_cookie={'set' if self.server_cookie else 'unset'}, "
            f"settle_seconds={self.settle_seconds}, "
            f"navigation_timeout_ms={self.navigation_timeout_ms}, "
            f"max_files={self.max_files}, headless={self.headless})"
        )
