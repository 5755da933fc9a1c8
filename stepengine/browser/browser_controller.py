# /stepengine/browser/browser_controller.py
from playwright.sync_api import sync_playwright, Page, Browser, Playwright, TimeoutError as PlaywrightTimeoutError, Error as PlaywrightError
import logging
from typing import Optional, Any, Dict

from . import page_scripts
from ..utils.utils import load_capture_timeout

logger = logging.getLogger(__name__)

HIDE_WEBDRIVER_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', {
  get: () => undefined
});
"""

DEFAULT_VIEWPORT = {'width': 1280, 'height': 800}


class BrowserController:
    """Owns the Playwright lifecycle for one page and the interactive-capture escape hatch."""

    def __init__(self, headless=True, viewport_size: Optional[Dict[str, int]] = None,
                 capture_timeout_s: Optional[float] = None):
        self.playwright: Playwright | None = None
        self.browser: Browser | None = None
        self.context: Optional[Any] = None
        self.page: Page | None = None
        self.headless = headless
        self.viewport_size = viewport_size or dict(DEFAULT_VIEWPORT)
        self.default_navigation_timeout = 30000
        self.default_action_timeout = 10000
        self.capture_timeout_s = capture_timeout_s if capture_timeout_s is not None else load_capture_timeout()
        logger.info(f"BrowserController initialized (headless={headless}).")

    @property
    def interactive(self) -> bool:
        """Interactive capture only makes sense when a human can see the browser."""
        return not self.headless

    def start(self) -> Page:
        """Starts Playwright, launches Chromium and opens a page."""
        try:
            logger.info("Starting Playwright...")
            self.playwright = sync_playwright().start()
            browser_args = ['--disable-blink-features=AutomationControlled']
            self.browser = self.playwright.chromium.launch(headless=self.headless, args=browser_args)
            self.context = self.browser.new_context(
                viewport=self.viewport_size,
                ignore_https_errors=True,
                java_script_enabled=True,
            )
            self.context.set_default_navigation_timeout(self.default_navigation_timeout)
            self.context.set_default_timeout(self.default_action_timeout)
            self.context.add_init_script(HIDE_WEBDRIVER_SCRIPT)
            self.page = self.context.new_page()
            logger.info("Browser context and page created.")
            return self.page
        except Exception as e:
            logger.error(f"Failed to start Playwright or launch browser: {e}", exc_info=True)
            self.close()
            raise

    def close(self):
        """Closes the browser and stops Playwright."""
        try:
            if self.page and not self.page.is_closed():
                self.page.close()
            if self.context:
                self.context.close()
                logger.info("Browser context closed.")
            if self.browser:
                self.browser.close()
                logger.info("Browser closed.")
            if self.playwright:
                self.playwright.stop()
                logger.info("Playwright stopped.")
        except PlaywrightError as e:
            logger.error(f"Error during browser/Playwright cleanup: {e}", exc_info=True)
        finally:
            self.page = None
            self.context = None
            self.browser = None
            self.playwright = None

    def goto(self, url: str):
        """Navigates the page to a specific URL."""
        if not self.page:
            raise PlaywrightError("Browser not started. Call start() first.")
        try:
            logger.info(f"Navigating to URL: {url}")
            response = self.page.goto(url, wait_until='domcontentloaded', timeout=self.default_navigation_timeout)
            status = response.status if response else 'unknown'
            logger.info(f"Navigation to {url} finished with status: {status}.")
            if response and not response.ok:
                logger.warning(f"Navigation to {url} resulted in non-OK status: {status}")
        except PlaywrightTimeoutError as e:
            logger.error(f"Timeout navigating to {url}: {e}")
            raise PlaywrightTimeoutError(f"Timeout loading page {url}. The page might be too slow or unresponsive.") from e

    def capture_selector(self, page: Page, prompt: str) -> Optional[str]:
        """
        Shows an overlay asking the operator to click the intended element and returns a
        selector synthesized from the clicked node (id, data-testid, class, then tag).
        Returns None in headless mode, on timeout or when the page is gone.
        """
        if self.headless:
            return None
        if page is None or page.is_closed():
            logger.error("Page not available. Cannot capture a click.")
            return None

        logger.info(f"Waiting up to {self.capture_timeout_s}s for user click...")
        try:
            page_scripts.install_click_capture(page, prompt)
            selector = page_scripts.wait_for_captured_selector(page, self.capture_timeout_s * 1000)
            logger.info(f"User click captured: {selector}")
            return selector
        except PlaywrightTimeoutError:
            logger.info("Timeout reached waiting for user click.")
            return None
        finally:
            try:
                page_scripts.remove_click_capture(page)
            except PlaywrightError as e:
                logger.debug(f"Could not remove click capture listener: {e}")
