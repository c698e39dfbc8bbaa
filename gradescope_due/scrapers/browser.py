"""Playwright page renderer for Gradescope pages."""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterator, Optional, TypeVar

from bs4 import BeautifulSoup
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeout
from playwright.sync_api import sync_playwright

from gradescope_due.scrapers.page_tree import BOX_ATTR, parse_page

logger = logging.getLogger("gradescope_due")

T = TypeVar("T")

# Stamp layout geometry on anchors and small elements so that extraction can
# run on the HTML snapshot. Elements with many children are never term labels.
STAMP_GEOMETRY_JS = """
(attr) => {
  for (const el of document.querySelectorAll('body *')) {
    if (el.tagName !== 'A' && el.childElementCount > 2) continue;
    const r = el.getBoundingClientRect();
    const box = [r.left, r.top + window.scrollY, r.width, r.height].map(v => Math.round(v));
    el.setAttribute(attr, box.join(','));
  }
}
"""


class RenderError(Exception):
    """Raised when a page cannot be rendered at all."""


@dataclass
class RenderedPage:
    """HTML snapshot of a loaded page."""

    url: str        # URL that was requested
    final_url: str  # URL after redirects
    html: str


class GradescopeBrowser:
    """Render Gradescope pages in a headless browser.

    Uses Playwright sync API. The logged-in session comes from a storage
    state file saved by an earlier interactive login; this class never
    signs in by itself.
    """

    USER_AGENT = "Gradescope-Due/1.0 (Personal Use)"

    def __init__(
        self,
        storage_state: Optional[str] = None,
        headless: bool = True,
        page_timeout_seconds: float = 20.0,
        settle_seconds: float = 1.4,
    ):
        """Start the browser.

        Args:
            storage_state: Path to a Playwright storage-state JSON file.
            headless: Run browser in headless mode (default: True).
            page_timeout_seconds: Max wait for a page load before scraping
                whatever has rendered.
            settle_seconds: Extra wait after load for client-side rendering.
        """
        self.headless = headless
        self.page_timeout_seconds = page_timeout_seconds
        self.settle_seconds = settle_seconds
        self.playwright = None
        self.browser = None
        self.context = None

        context_args: dict = {"user_agent": self.USER_AGENT}
        if storage_state:
            if Path(storage_state).exists():
                context_args["storage_state"] = storage_state
            else:
                logger.warning(
                    f"Storage state {storage_state} not found; pages will load logged out"
                )

        try:
            self.playwright = sync_playwright().start()
            self.browser = self.playwright.chromium.launch(headless=headless)
            self.context = self.browser.new_context(**context_args)
            logger.info("Playwright browser initialized successfully")
        except PlaywrightError as e:
            logger.warning(f"Failed to initialize Playwright browser: {e}")
            self.close()

    @contextmanager
    def render(self, url: str) -> Iterator[RenderedPage]:
        """Load url in a fresh tab and yield its snapshot.

        The tab is always closed on exit, including when the caller's
        extraction raises. A load timeout is not an error: the snapshot holds
        whatever content was present when the wait ran out.
        """
        if self.context is None:
            raise RenderError("Browser is not available")

        page = self.context.new_page()
        try:
            try:
                page.goto(url, wait_until="load", timeout=self.page_timeout_seconds * 1000)
            except PlaywrightTimeout:
                logger.warning(f"Timed out loading {url}; scraping partial content")
            if self.settle_seconds > 0:
                page.wait_for_timeout(self.settle_seconds * 1000)
            page.evaluate(STAMP_GEOMETRY_JS, BOX_ATTR)
            yield RenderedPage(url=url, final_url=page.url, html=page.content())
        finally:
            try:
                page.close()
            except PlaywrightError as e:
                logger.debug(f"Error closing page: {e}")

    def evaluate(self, rendered: RenderedPage, extract: Callable[[BeautifulSoup], T]) -> T:
        """Run an extraction function over a rendered page's tree."""
        return extract(parse_page(rendered.html))

    def close(self):
        """Clean up browser and Playwright resources.

        Safe to call multiple times.
        """
        if self.context:
            try:
                self.context.close()
            except PlaywrightError as e:
                logger.debug(f"Error closing context: {e}")
            self.context = None

        if self.browser:
            try:
                self.browser.close()
            except PlaywrightError as e:
                logger.debug(f"Error closing browser: {e}")
            self.browser = None

        if self.playwright:
            try:
                self.playwright.stop()
            except PlaywrightError as e:
                logger.debug(f"Error stopping Playwright: {e}")
            self.playwright = None

    def __enter__(self):
        """Support context manager protocol."""
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any):
        """Clean up on context manager exit."""
        self.close()
        return False
