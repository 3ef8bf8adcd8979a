"""
Page Object Model for the Regularize Attendance screen.

The screen shows one attendance cycle at a time as a calendar grid; each
day cell may hold a link that opens the regularize popup for that day.
"""
import logging
import re
from datetime import date
from typing import Callable, Iterator, Optional, Tuple

from playwright.sync_api import Error as PlaywrightError, Locator, Page

from cera_regularize.attendance_cycle import cycle_dropdown_value, date_link_label
from cera_regularize.play.pages.base_page import BasePage, first_success

logger = logging.getLogger(__name__)


class RegularizePage(BasePage):
    """Represents the Regularize Attendance calendar and its day popup."""

    URL_MARKER = "attrequest.aspx"

    GRID_SELECTOR = "#MiddleContent_gvRep"
    GRID_CELL_SELECTOR = "#MiddleContent_gvRep td"
    GRID_LINK_SELECTOR = "#MiddleContent_gvRep a"
    MONTH_SELECTOR = "#MiddleContent_ddlMonth"

    POPUP_SELECTOR = "#MiddleContent_pnlPopup"
    SHIFT_SELECTOR = "#MiddleContent_ddlShift"
    IN_TIME_SELECTOR = "#MiddleContent_txtIn_Time_txtTime"
    OUT_TIME_SELECTOR = "#MiddleContent_txtOut_Time_txtTime"
    LEAVE_TYPE_SELECTOR = "#MiddleContent_ddlLvType"
    REMARKS_SELECTOR = "#MiddleContent_txtRemarks"
    SUBMIT_SELECTOR = "#MiddleContent_btnOK"
    CANCEL_SELECTORS = (
        "#MiddleContent_btnCancel",
        "input[value='Cancel']",
        "button:has-text('Cancel')",
    )
    # Inputs that the portal disables once a day's record is locked
    GUARDED_INPUTS = (
        IN_TIME_SELECTOR,
        OUT_TIME_SELECTOR,
        SHIFT_SELECTOR,
        LEAVE_TYPE_SELECTOR,
    )

    def __init__(self, page: Page):
        super().__init__(page)

    @property
    def grid(self) -> Locator:
        return self.page.locator(self.GRID_SELECTOR)

    @property
    def month_dropdown(self) -> Locator:
        return self.page.locator(self.MONTH_SELECTOR)

    @property
    def popup(self) -> Locator:
        return self.page.locator(self.POPUP_SELECTOR)

    def is_current(self) -> bool:
        """True if the page is already the Regularize screen."""
        if self.URL_MARKER in (self.page.url or "").lower():
            return True
        return self.is_present(self.grid) and self.is_present(self.month_dropdown)

    def select_cycle(self, option_value: str, wait_visible: bool = True) -> None:
        """
        Select an attendance cycle in the month dropdown.

        Args:
            option_value: Dropdown value, e.g. "2024-03-31"
            wait_visible: Wait for the dropdown to show before selecting

        Raises:
            TimeoutError: If the dropdown never shows or the option is missing
        """
        if wait_visible:
            self.month_dropdown.wait_for(state="visible", timeout=4000)
        self.month_dropdown.select_option(option_value)
        self.page.wait_for_load_state("networkidle")
        self.wait_for_idle(800)
        logger.debug(f"Selected regularize cycle {option_value}")

    def switch_month_for_date(self, target: date) -> None:
        """Select the cycle containing target. A failure leaves the current cycle selected."""
        try:
            self.select_cycle(cycle_dropdown_value(target), wait_visible=False)
        except PlaywrightError as e:
            logger.warning(f"Could not switch cycle for {target}: {e}")

    def open_popup_for_date(self, target: date) -> bool:
        """
        Click the first enabled link for target in the grid.

        A cell can hold several matching links; only one that is not
        disabled and has a real href opens the popup.

        Returns:
            True if a link was clicked, False if none was usable
        """
        label = date_link_label(target)
        pattern = re.compile(r"(?<!\d)" + re.escape(label), re.IGNORECASE)
        links = self.page.locator(self.GRID_LINK_SELECTOR).filter(has_text=pattern)

        if not self.is_element_visible(links.first, timeout=5000):
            logger.warning(f"No grid link found for {label}")
            return False

        for index in range(links.count()):
            link = links.nth(index)
            try:
                disabled = link.get_attribute("disabled")
                href = link.get_attribute("href")
            except PlaywrightError:
                continue
            if disabled is not None or not (href or "").strip():
                continue
            try:
                link.click(force=True, timeout=5000)
                self.wait_for_idle(1200)
                return True
            except PlaywrightError as e:
                logger.debug(f"Grid link {index} for {label} not clickable: {e}")

        logger.warning(f"All grid links for {label} are disabled")
        return False

    def is_popup_locked(self) -> bool:
        return any(self.is_disabled(selector) for selector in self.GUARDED_INPUTS)

    def dismiss_locked_popup(self, timeout_ms: int = 1500) -> bool:
        """
        Cancel the day popup if the portal has locked its inputs.

        Returns:
            True if a locked popup was found and cancelled
        """
        if not self.is_element_visible(self.popup, timeout=timeout_ms):
            return False
        if not self.is_popup_locked():
            return False

        logger.info("Regularize popup is locked by portal, cancelling")

        def _cancel(selector: str):
            def _click() -> bool:
                button = self.page.locator(selector).first
                button.wait_for(state="visible", timeout=800)
                button.click()
                self.wait_for_idle(600)
                return True
            return _click

        return bool(first_success(_cancel(selector) for selector in self.CANCEL_SELECTORS))

    def fill_popup(self, shift: str, in_time: str, out_time: str, status: str, remarks: str) -> None:
        """
        Fill the day popup. Each field is best-effort; a field the portal
        refuses is logged and skipped.

        The shift is only changed when it differs, since selecting it
        triggers a postback.
        """
        shift_dropdown = self.page.locator(self.SHIFT_SELECTOR)
        try:
            current_shift = shift_dropdown.input_value(timeout=5000)
            if (current_shift or "").strip().upper() != shift.upper():
                shift_dropdown.select_option(shift)
        except PlaywrightError as e:
            logger.warning(f"Could not set shift {shift}: {e}")

        for selector, value, name in (
            (self.IN_TIME_SELECTOR, in_time, "in time"),
            (self.OUT_TIME_SELECTOR, out_time, "out time"),
        ):
            try:
                self.page.locator(selector).fill(value)
            except PlaywrightError as e:
                logger.warning(f"Could not fill {name}: {e}")

        try:
            self.page.locator(self.LEAVE_TYPE_SELECTOR).select_option(status)
        except PlaywrightError as e:
            logger.warning(f"Could not select status {status}: {e}")

        try:
            self.page.locator(self.REMARKS_SELECTOR).fill(remarks)
        except PlaywrightError as e:
            logger.warning(f"Could not fill remarks: {e}")

    def submit_popup(self, on_clicked: Optional[Callable[[], None]] = None) -> Optional[str]:
        """
        Submit the popup and drain the resulting postback.

        Args:
            on_clicked: Called once the submit button has been clicked

        Returns:
            Text of the portal message box shown after submit, if any
        """
        logger.info("Submitting WFO regularize popup")
        with self.accept_dialogs():
            self.page.locator(self.SUBMIT_SELECTOR).click(timeout=45000)
            if on_clicked:
                on_clicked()
            try:
                self.page.wait_for_load_state("networkidle", timeout=45000)
            except PlaywrightError as e:
                logger.debug(f"Network idle not reached after submit: {e}")
            self.wait_for_submission_progress()
            self.wait_for_idle(800)
            message = self.dismiss_portal_message(70000)
        logger.info("WFO submit completed")
        return message

    def iter_grid_cells(self) -> Iterator[Tuple[str, str]]:
        """
        Yield (visible text, title attribute) for every grid cell.

        Unreadable cells yield empty strings rather than failing the scan.
        """
        cells = self.page.locator(self.GRID_CELL_SELECTOR)
        try:
            count = cells.count()
        except PlaywrightError as e:
            logger.warning(f"Regularize grid not readable: {e}")
            return

        logger.debug(f"Regularize table cells found: {count}")
        for index in range(count):
            cell = cells.nth(index)
            yield read_cell_text(cell), read_cell_attribute(cell, "title")


def read_cell_text(cell: Locator) -> str:
    try:
        return (cell.inner_text(timeout=5000) or "").replace("\u00a0", " ").strip()
    except PlaywrightError:
        return ""


def read_cell_attribute(cell: Locator, name: str) -> str:
    try:
        return (cell.get_attribute(name, timeout=5000) or "").replace("\u00a0", " ").strip()
    except PlaywrightError:
        return ""
