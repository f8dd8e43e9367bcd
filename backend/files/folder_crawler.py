"""
Folder Crawler: Headless Browser Discovery of Shared-Folder Contents

The shared-folder page does not contain its file list in the HTML; client-side
JavaScript fetches it asynchronously. The crawler lets a real Chromium render
the page with the caller's session cookies and listens to every network
response while it does:

    page "response" event -> asyncio.Queue -> consumer task -> FileCollector

Navigation only waits for DOMContentLoaded (the page's own polling/analytics
calls never go idle). After that the session stays open for a fixed settle
window so the listing calls can finish, then the queue is closed, drained and
the browser torn down. The browser is closed exactly once on every path.

Design:
- One browser per crawl; nothing is pooled or reused across requests
- A bad or unrecognized response is skipped, never fatal
- Navigation/session errors abort the crawl and propagate to the caller
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, List, Optional
import asyncio
import contextlib
import logging
import time

from playwright.async_api import async_playwright

from settings import ServiceSettings
from .extraction_rules import FileCollector, FileDescriptor
from .session_context import SessionCredential

logger = logging.getLogger("folder-stream.crawler")

JSON_CONTENT_TYPE = "application/json"

# Callable(settings) -> async context manager yielding a Playwright-like Browser
BrowserLauncher = Callable[[ServiceSettings], Any]


@asynccontextmanager
async def launch_chromium(settings: ServiceSettings) -> AsyncIterator[Any]:
    """Launch headless Chromium via Playwright and close it on exit."""
    async with async_playwright() as pw:
        browser = await pw.chromium.launch(
            headless=settings.headless,
            args=list(settings.browser_args),
        )
        try:
            yield browser
        finally:
            await browser.close()
            logger.debug("[CRAWL] Browser closed")


async def observe_response(response: Any, collector: FileCollector) -> int:
    """
    Feed one intercepted response to the collector.

    Only JSON-typed responses are decoded. Any failure (body unavailable,
    invalid JSON, unexpected shape) is logged and skipped.

    Returns:
        Number of new descriptors this response contributed
    """
    try:
        content_type = (response.headers or {}).get("content-type", "")
        if JSON_CONTENT_TYPE not in content_type:
            return 0
        body = await response.json()
        return collector.add_body(body)
    except Exception as e:
        logger.debug(f"[CRAWL] Skipped response {getattr(response, 'url', '?')}: {e}")
        return 0


async def _consume(queue: "asyncio.Queue[Any]", collector: FileCollector) -> None:
    while True:
        response = await queue.get()
        if response is None:
            return
        await observe_response(response, collector)


async def crawl_folder(
    folder_url: str,
    credential: SessionCredential,
    settings: ServiceSettings,
    *,
    launcher: Optional[BrowserLauncher] = None,
) -> List[FileDescriptor]:
    """
    Open a shared folder in a headless browser and collect its files.

    Args:
        folder_url: Shared-link URL of the folder page
        credential: Session cookies for the origin
        settings: Settle window, navigation timeout and result cap
        launcher: Browser factory (defaults to Playwright Chromium)

    Returns:
        Deduplicated descriptors in first-seen order, at most settings.max_files

    Raises:
        Exception: navigation timeout or browser/session setup failure
    """
    launch = launcher or launch_chromium
    collector = FileCollector()
    started = time.monotonic()

    logger.info(f"[CRAWL] Opening {folder_url} ({credential!r})")

    async with launch(settings) as browser:
        context = await browser.new_context()
        await context.add_cookies(credential.browser_cookies())
        page = await context.new_page()

        queue: "asyncio.Queue[Any]" = asyncio.Queue()

        def on_response(response: Any) -> None:
            queue.put_nowait(response)

        page.on("response", on_response)
        consumer = asyncio.create_task(_consume(queue, collector))

        try:
            await page.goto(
                folder_url,
                wait_until="domcontentloaded",
                timeout=settings.navigation_timeout_ms,
            )
            await asyncio.sleep(settings.settle_seconds)
        except BaseException:
            consumer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await consumer
            raise
        finally:
            page.remove_listener("response", on_response)

        queue.put_nowait(None)
        await consumer

    files = collector.files(limit=settings.max_files)
    elapsed = time.monotonic() - started
    logger.info(
        f"[CRAWL] Done in {elapsed:.1f}s: {len(collector)} unique, returning {len(files)}"
    )
    return files
