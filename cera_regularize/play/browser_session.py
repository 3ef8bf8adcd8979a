"""
Owned Playwright browser session for the portal.

A single PortalSession holds the Playwright driver, browser, context, the
primary page and any auxiliary history pages. Callers must serialise access
to it; AttendanceAutomator does so with a lock.
"""
import logging
from pathlib import Path
from typing import Callable, Dict, Optional, Union

from playwright.sync_api import Browser, BrowserContext, Page, Playwright, sync_playwright

from cera_regularize.auth.cookies import load_cookies, save_cookies

logger = logging.getLogger(__name__)


class PortalSession:
    """
    Browser, context and pages for one logged-in portal user.

    Example:
        session = PortalSession(cookies_path)
        page = session.acquire_page(headless=True)
        ...
        session.save_cookies()
        session.reset()
    """

    def __init__(
        self,
        cookies_path: Union[str, Path],
        slow_mo: int = 0,
        default_timeout: int = 30000,
        playwright_factory: Callable[[], object] = sync_playwright,
        ensure_installed: Optional[Callable[[], None]] = None,
    ):
        """
        Args:
            cookies_path: Cookie persistence file
            slow_mo: Playwright slow-motion delay in milliseconds
            default_timeout: Default timeout applied to the context in milliseconds
            playwright_factory: Returns an object with start() (sync_playwright by default)
            ensure_installed: Called before the first browser launch
        """
        self.cookies_path = Path(cookies_path)
        self.slow_mo = slow_mo
        self.default_timeout = default_timeout
        self.playwright_factory = playwright_factory
        self.ensure_installed = ensure_installed

        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None
        self.headless: Optional[bool] = None
        # Set after the first verified login in this context
        self.bootstrapped = False
        self.history_pages: Dict[str, Page] = {}

    @property
    def is_open(self) -> bool:
        return self.browser is not None and self.context is not None

    def acquire_page(self, headless: bool) -> Page:
        """
        Return the primary page, launching or relaunching the browser as needed.

        A change in the headless flag tears the whole session down first.
        Any failure while acquiring resets the session before re-raising,
        so callers never hold a half-initialised session.

        Args:
            headless: Whether the browser should run headless

        Returns:
            The primary Page
        """
        try:
            if self.is_open and self.headless != headless:
                logger.info(f"Headless mode changed to {headless}, restarting browser")
                self.reset()

            if self.browser is not None and not self.browser.is_connected():
                logger.info("Browser disconnected, restarting")
                self.reset()

            if self.browser is None:
                self._launch(headless)

            if self.context is None:
                self._new_context()

            if self.page is None or self.page.is_closed():
                self.page = self.context.new_page()
                self.bootstrapped = False

            return self.page
        except Exception:
            logger.error("Failed to acquire browser page, resetting session", exc_info=True)
            self.reset()
            raise

    def _launch(self, headless: bool) -> None:
        if self.ensure_installed is not None:
            self.ensure_installed()
        if self.playwright is None:
            self.playwright = self.playwright_factory().start()
        logger.info(f"Launching Chromium (headless={headless}, slow_mo={self.slow_mo})")
        self.browser = self.playwright.chromium.launch(headless=headless, slow_mo=self.slow_mo)
        self.headless = headless

    def _new_context(self) -> None:
        self.context = self.browser.new_context()
        self.context.set_default_timeout(self.default_timeout)
        loaded = load_cookies(self.context, self.cookies_path)
        if loaded:
            logger.info(f"Restored {loaded} cookies from previous session")
        self.page = None
        self.history_pages = {}
        self.bootstrapped = False

    def new_page(self) -> Page:
        """Open a throwaway page in the current context (caller closes it)."""
        if self.context is None:
            raise RuntimeError("Browser context unavailable.")
        return self.context.new_page()

    def history_page(self, tab: str) -> Page:
        """
        Long-lived auxiliary page for one history tab, recreated if closed.

        Args:
            tab: Logical tab name, e.g. "regularize" or "leave_status"
        """
        if self.context is None:
            raise RuntimeError("Browser context unavailable.")
        page = self.history_pages.get(tab)
        if page is None or page.is_closed():
            page = self.context.new_page()
            self.history_pages[tab] = page
        return page

    def save_cookies(self) -> bool:
        """Persist the context's cookies; never raises."""
        if self.context is None:
            return False
        return save_cookies(self.context, self.cookies_path)

    def reset(self) -> None:
        """Tear down pages, context, browser and driver. Teardown failures are logged."""
        for name, closer in (
            ("context", self.context.close if self.context else None),
            ("browser", self.browser.close if self.browser else None),
            ("playwright", self.playwright.stop if self.playwright else None),
        ):
            if closer is None:
                continue
            try:
                closer()
            except Exception as e:
                logger.debug(f"Ignoring {name} teardown failure: {e}")

        self.playwright = None
        self.browser = None
        self.context = None
        self.page = None
        self.headless = None
        self.bootstrapped = False
        self.history_pages = {}
