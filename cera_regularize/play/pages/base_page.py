"""
Page object model for the eHRMS Base Page.
Encapsulates the interactions shared by every portal screen: probing for
elements, waiting out partial postbacks, and dismissing the portal's
transient UI (loading overlays, message boxes, browser dialogs).
"""
import logging
import time
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional, Sequence, TypeVar, Union

from playwright.sync_api import Dialog, Error as PlaywrightError, Locator, Page

from cera_regularize.exceptions import PortalError

logger = logging.getLogger(__name__)

T = TypeVar("T")

PROGRESS_SELECTORS = (
    "#UpdateProgress1",
    "#UpdateProgress",
    "#MiddleContent_UpdateProgress1",
    "div[id*='UpdateProgress']",
    ".updateProgress",
    ".ajax__updateProgress",
    "text=/Loading,?\\s*please wait/i",
)

MESSAGE_BOX_SELECTOR = "#MsgBox_pnlMsgBox"
MESSAGE_TEXT_SELECTOR = "#MsgBox_MsgBoxMessageText"
MESSAGE_CLOSE_SELECTORS = (
    "#MsgBox_MsgBoxCancel",
    "#MsgBox_MsgBoxClose",
    "a#MsgBox_MsgBoxClose",
    "input[id*='MsgBox'][value='Close']",
    "button:has-text('Close')",
)


def first_success(strategies: Iterable[Callable[[], Optional[T]]]) -> Optional[T]:
    """
    Evaluate probe strategies in order and return the first usable result.

    A strategy fails by returning None/False or by raising a Playwright error;
    either way the next strategy is tried.
    """
    for strategy in strategies:
        try:
            result = strategy()
        except PlaywrightError as e:
            logger.debug(f"Probe strategy failed: {e}")
            continue
        if result is not None and result is not False:
            return result
    return None


class BasePage:
    """Represents the Base page"""

    def __init__(self, page: Page) -> None:
        self.page = page

    def take_screenshot(self, filename: Optional[str] = None, full_page: bool = False) -> str:
        """
        Take a screenshot of the current page.

        Args:
            filename: Optional filename for the screenshot. If not provided, generates a timestamped name.
            full_page: If True, captures the full scrollable page

        Returns:
            Path to the saved screenshot
        """
        if filename is None:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            filename = f"screenshot_{timestamp}.png"

        if not filename.endswith('.png'):
            filename = f"{filename}.png"

        screenshot_path = Path(filename)
        if not screenshot_path.parent or str(screenshot_path.parent) == ".":
            screenshot_dir = Path("screenshots")
            screenshot_dir.mkdir(exist_ok=True)
            screenshot_path = screenshot_dir / filename
        self.page.screenshot(path=str(screenshot_path), full_page=full_page)
        logger.info(f"Screenshot saved to {screenshot_path}")
        return str(screenshot_path)

    @contextmanager
    def accept_dialogs(self) -> Iterator[None]:
        """
        Accept every alert/confirm the portal raises while the block runs.

        The portal asks for confirmation on submit buttons; an unhandled
        dialog would block the page.
        """
        def _accept(dialog: Dialog) -> None:
            logger.debug(f"Accepting portal dialog: {dialog.message}")
            try:
                dialog.accept()
            except PlaywrightError as e:
                logger.debug(f"Dialog already handled: {e}")

        self.page.on("dialog", _accept)
        try:
            yield
        finally:
            self.page.remove_listener("dialog", _accept)

    def is_element_visible(
            self,
            locator_or_getter: Union[Locator, Callable[[], Locator]],
            timeout: int = 5000
        ) -> bool:
        """
        Check if an element becomes visible within the timeout (non-raising).

        Args:
            locator_or_getter: either a Locator or a callable that returns a Locator
            timeout: Maximum time to wait in milliseconds

        Returns:
            True if element is visible, False otherwise
        """
        try:
            self.wait_for_element(locator_or_getter, state='visible', timeout=timeout)
            return True
        except PlaywrightError:
            return False

    def is_present(self, locator: Locator) -> bool:
        """Immediate visibility probe, without waiting."""
        try:
            return locator.count() > 0 and locator.first.is_visible()
        except PlaywrightError:
            return False

    def wait_for_element(
        self,
        locator_or_getter: Union[Locator, Callable[[], Locator]],
        state: str = "visible",
        timeout: int = 10000
    ) -> Locator:
        """
        Wait for an element to reach a specific state.

        Args:
            locator_or_getter: Either a Locator or a callable (e.g., property) that returns a Locator
            state: The state to wait for - "visible", "attached", "detached", "hidden" (default: "visible")
            timeout: Maximum time to wait in milliseconds (default: 10000)

        Returns:
            The Locator that was waited for (useful for chaining)

        Raises:
            TimeoutError: If element doesn't reach the state within timeout
        """
        if callable(locator_or_getter):
            locator = locator_or_getter()
        else:
            locator = locator_or_getter

        locator.wait_for(state=state, timeout=timeout)
        return locator

    def wait_for_idle(self, timeout: int = 1000) -> None:
        """
        Fixed settle delay after an action.

        Args:
            timeout: Time to wait in milliseconds (default: 1000)
        """
        self.page.wait_for_timeout(timeout)

    def wait_for_postback(self, timeout: int = 15000) -> None:
        """Wait for network idle after a partial postback; a timeout is not an error."""
        try:
            self.page.wait_for_load_state("networkidle", timeout=timeout)
            self.page.wait_for_timeout(200)
        except PlaywrightError as e:
            logger.debug(f"Postback did not settle within {timeout}ms: {e}")

    def reload(self, settle: int = 800) -> bool:
        """Reload the current screen in place. Returns False if the reload failed."""
        try:
            self.page.reload(wait_until="networkidle")
            self.page.wait_for_timeout(settle)
            return True
        except PlaywrightError as e:
            logger.debug(f"Reload failed, falling back to menu navigation: {e}")
            return False

    def click_first(
        self,
        label: str,
        selectors: Sequence[str],
        timeout: int = 15000,
        force: bool = True,
    ) -> None:
        """
        Click the first of several candidate selectors that becomes visible.

        Args:
            label: Human-readable name used in the error message
            selectors: Candidate selectors, tried in order
            timeout: Per-selector visibility and click timeout in milliseconds
            force: Dispatch the click without hit-testing (menus can be occluded)

        Raises:
            PortalError: If none of the selectors could be clicked
        """
        def _strategy(selector: str) -> Callable[[], bool]:
            def _click() -> bool:
                locator = self.page.locator(selector).first
                locator.wait_for(state="visible", timeout=timeout)
                locator.click(force=force, timeout=timeout)
                return True
            return _click

        if not first_success(_strategy(selector) for selector in selectors if selector):
            raise PortalError(f"{label} link not found.")

    @staticmethod
    def read_value(locator: Locator) -> str:
        """Current value of an input, or an empty string if it cannot be read."""
        return first_success([
            locator.input_value,
            lambda: locator.evaluate("el => (el.value || '').toString()"),
        ]) or ""

    def is_disabled(self, selector: str) -> bool:
        """True if the element carries a disabled or aria-disabled="true" attribute."""
        element = self.page.locator(selector).first
        try:
            if element.get_attribute("disabled", timeout=1000) is not None:
                return True
            aria = element.get_attribute("aria-disabled", timeout=1000)
        except PlaywrightError:
            return False
        return (aria or "").strip().lower() == "true"

    def wait_for_submission_progress(self, timeout_ms: int = 70000) -> bool:
        """
        Drain the portal's "update progress" overlay.

        Probes each known indicator briefly; once one shows, waits (up to the
        overall bound) for it to hide again. Falls back to network idle when
        no indicator appears.

        Returns:
            True if an indicator was seen and drained
        """
        deadline = time.monotonic() + timeout_ms / 1000
        for selector in PROGRESS_SELECTORS:
            locator = self.page.locator(selector).first
            try:
                locator.wait_for(state="visible", timeout=1200)
            except PlaywrightError:
                continue

            remaining = max(1000, int((deadline - time.monotonic()) * 1000))
            try:
                locator.wait_for(state="hidden", timeout=remaining)
                logger.debug(f"Progress indicator {selector} drained")
                return True
            except PlaywrightError as e:
                logger.warning(f"Progress indicator {selector} still visible: {e}")
                continue

        remaining = max(2000, int((deadline - time.monotonic()) * 1000))
        try:
            self.page.wait_for_load_state("networkidle", timeout=remaining)
        except PlaywrightError as e:
            logger.debug(f"Network idle not reached after progress probe: {e}")
        return False

    def dismiss_portal_message(self, timeout_ms: int = 4000) -> Optional[str]:
        """
        Close the portal's modal message box if it appears.

        Args:
            timeout_ms: How long to wait for the box to become visible

        Returns:
            The captured message text ("" if unreadable) when a box was shown,
            None when no box appeared
        """
        panel = self.page.locator(MESSAGE_BOX_SELECTOR)
        try:
            panel.wait_for(state="visible", timeout=timeout_ms)
        except PlaywrightError:
            return None

        message_text = None
        try:
            message_text = (panel.locator(MESSAGE_TEXT_SELECTOR).inner_text(timeout=2000) or "").strip()
        except PlaywrightError as e:
            logger.debug(f"Could not read portal message text: {e}")

        if message_text:
            logger.info(f"Portal message: {message_text}")

        def _close(selector: str) -> Callable[[], bool]:
            def _click() -> bool:
                control = self.page.locator(selector).first
                control.wait_for(state="visible", timeout=800)
                control.click()
                self.page.wait_for_timeout(800)
                return True
            return _click

        if first_success(_close(selector) for selector in MESSAGE_CLOSE_SELECTORS):
            return message_text or ""

        logger.warning("Portal message box could not be closed")
        return message_text

    def drain_postback(self, message_timeout: int = 1200) -> Optional[str]:
        """Progress drain, network settle, and message dismissal after a field change."""
        self.wait_for_submission_progress()
        self.wait_for_postback()
        return self.dismiss_portal_message(message_timeout)
