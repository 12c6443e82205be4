"""Playwright-backed page-analysis collaborator.

Loads each page in a real Chromium, listens for console errors, uncaught
exceptions and XHR/fetch traffic while it settles, then reads links,
interactive elements and navigation timing from the rendered DOM.
"""

from __future__ import annotations

import base64
import logging
from typing import Any

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from crawlqa.core.gateway import AnalysisError, AnalysisFailure, SetupError
from crawlqa.models.types import WorkItem


logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
VIEWPORT = {"width": 1920, "height": 1080}


_EXTRACT_LINKS_JS = """() => {
    const links = [];
    for (const a of document.querySelectorAll('a[href]')) {
        links.push(a.getAttribute('href'));
    }
    for (const el of document.querySelectorAll('[data-href], [data-url]')) {
        const href = el.getAttribute('data-href') || el.getAttribute('data-url');
        if (href) links.push(href);
    }
    return links;
}"""

_DISCOVER_ELEMENTS_JS = """() => {
    const results = [];
    const els = document.querySelectorAll(
        'a[href], button, form, input:not([type=hidden]), select, textarea, ' +
        '[role="button"], [onclick]'
    );
    for (const el of els) {
        results.push({
            tag: el.tagName,
            type: el.type || '',
            text: (el.textContent || el.getAttribute('aria-label') || '').trim().substring(0, 80),
            onclick: el.hasAttribute('onclick'),
        });
    }
    return results;
}"""

_NAVIGATION_TIMING_JS = """() => {
    const entries = performance.getEntriesByType('navigation');
    if (!entries.length) return null;
    const nav = entries[0];
    return Math.round((nav.loadEventEnd || nav.domContentLoadedEventEnd) - nav.startTime);
}"""


class PlaywrightAnalyzer:
    """Reuses one browser page for every analysis in a run.

    Use as an async context manager; entering launches Chromium and
    raises SetupError if that is impossible.
    """

    def __init__(
        self,
        headless: bool = True,
        navigation_timeout_ms: int = 20000,
        settle_ms: int = 1500,
        capture_screenshots: bool = True,
    ):
        self.headless = headless
        self.navigation_timeout_ms = navigation_timeout_ms
        self.settle_ms = settle_ms
        self.capture_screenshots = capture_screenshots
        self._pw: Playwright | None = None
        self._browser: Browser | None = None
        self._ctx: BrowserContext | None = None
        self._page: Page | None = None

        self._console_errors: list[str] = []
        self._api_calls: list[dict] = []

    async def __aenter__(self) -> PlaywrightAnalyzer:
        await self.start()
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    async def start(self):
        try:
            self._pw = await async_playwright().start()
            self._browser = await self._pw.chromium.launch(headless=self.headless)
            self._ctx = await self._browser.new_context(viewport=VIEWPORT, user_agent=USER_AGENT)
            self._page = await self._ctx.new_page()
        except PlaywrightError as exc:
            await self.close()
            raise SetupError(f"Could not launch browser: {exc}") from exc
        self._attach_listeners(self._page)
        logger.debug("Browser launched (headless=%s)", self.headless)

    async def close(self):
        if self._ctx is not None:
            await self._ctx.close()
        if self._browser is not None:
            await self._browser.close()
        if self._pw is not None:
            await self._pw.stop()
        self._pw = self._browser = self._ctx = self._page = None

    def _attach_listeners(self, page: Page):

        def on_console(msg):
            if msg.type == "error":
                self._console_errors.append(msg.text)

        def on_page_error(error):
            self._console_errors.append(f"Uncaught exception: {error}")

        def on_response(response):
            if response.request.resource_type not in ("xhr", "fetch"):
                return
            call = {
                "url": response.url,
                "status": response.status,
                "method": response.request.method,
            }
            self._api_calls.append(call)
            if response.status >= 400:
                self._console_errors.append(
                    f"{call['method']} {call['url']} returned {call['status']}"
                )

        page.on("console", on_console)
        page.on("pageerror", on_page_error)
        page.on("response", on_response)

    async def analyze(self, url: str, item: WorkItem) -> dict[str, Any]:
        page = self._page
        if page is None:
            raise AnalysisError(AnalysisFailure.COLLABORATOR_UNREACHABLE, "browser is not running")

        self._console_errors.clear()
        self._api_calls.clear()
        logger.debug("Loading %s for %s (%s)", url, item.id, ", ".join(item.test_cases))

        try:
            response = await page.goto(
                url, wait_until="domcontentloaded", timeout=self.navigation_timeout_ms,
            )
            await page.wait_for_timeout(self.settle_ms)
        except PlaywrightTimeoutError as exc:
            raise AnalysisError(AnalysisFailure.NAVIGATION_TIMEOUT, str(exc)[:300]) from exc
        except PlaywrightError as exc:
            raise AnalysisError(AnalysisFailure.COLLABORATOR_UNREACHABLE, str(exc)[:300]) from exc

        errors = list(self._console_errors)
        if response is not None and response.status >= 400:
            errors.insert(0, f"HTTP {response.status} loading {url}")

        try:
            links = await page.evaluate(_EXTRACT_LINKS_JS)
            elements = await page.evaluate(_DISCOVER_ELEMENTS_JS)
            timing = await page.evaluate(_NAVIGATION_TIMING_JS)
        except PlaywrightError as exc:
            raise AnalysisError(AnalysisFailure.COLLABORATOR_UNREACHABLE, str(exc)[:300]) from exc

        artifacts = []
        if self.capture_screenshots:
            shot = await _capture_screenshot(page)
            if shot:
                artifacts.append(shot)

        return {
            "url": page.url,
            "links": links,
            "elements": elements,
            "api_calls": list(self._api_calls),
            "timing_ms": timing or 0,
            "errors": errors,
            "artifacts": artifacts,
        }


async def _capture_screenshot(page: Page) -> str | None:
    try:
        buf = await page.screenshot(full_page=False, type="jpeg", quality=70)
        return base64.b64encode(buf).decode("utf-8")
    except PlaywrightError:
        logger.debug("Screenshot failed for %s", page.url, exc_info=True)
        return None
