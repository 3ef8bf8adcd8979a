"""
Page Object Model for the Apply Leave screen, used to file work-from-home days.

Every field on this form triggers its own partial postback, which can
re-render and reset the other fields, so each change is followed by a
progress drain and a message dismissal before the next one.
"""
import logging
from datetime import date
from typing import Callable, Optional

from playwright.sync_api import Error as PlaywrightError, Locator, Page

from cera_regularize.play.pages.base_page import BasePage

logger = logging.getLogger(__name__)

REASON_MANDATORY_PHRASE = "reason is mandatory for work from home"


class ApplyLeavePage(BasePage):
    """Represents the Apply Leave form."""

    WFH_LEAVE_TYPE = "G"

    LEAVE_TYPE_SELECTOR = "#MiddleContent_ddlLvType"
    FROM_DATE_SELECTOR = "#MiddleContent_calLvFrom_textBox"
    TO_DATE_SELECTOR = "#MiddleContent_calLvTo_textBox"
    HALF_DAY_SELECTOR = "#MiddleContent_ddlLvFromHDy"
    REASON_SELECTOR = "#MiddleContent_txtReason"
    SUBMIT_SELECTOR = "#MiddleContent_btnSubmit"

    def __init__(self, page: Page):
        super().__init__(page)
        # Last remarks value read back from the reason field. Date postbacks
        # can clear the field after it was filled; it is re-filled from here
        # right before submit.
        self.pending_remarks: Optional[str] = None

    @property
    def reason_input(self) -> Locator:
        return self.page.locator(self.REASON_SELECTOR)

    def _fill_date(self, selector: str, value: str) -> None:
        field = self.page.locator(selector)
        field.fill(value)
        self.wait_for_submission_progress()
        field.press("Tab")
        self.drain_postback(1200)

    def fill_work_from_home_form(self, target: date, availability: str, remarks: str) -> bool:
        """
        Fill the leave form for a single work-from-home day.

        Args:
            target: The day to apply for (used for both from and to)
            availability: Half-day dropdown value ("0" full, "1" first half, "2" second half)
            remarks: Reason text

        Returns:
            True if every required field was set, False if the portal refused one
        """
        date_text = target.strftime("%d/%m/%Y")

        try:
            self.page.locator(self.LEAVE_TYPE_SELECTOR).select_option(self.WFH_LEAVE_TYPE)
            self.drain_postback(1500)

            self._fill_date(self.FROM_DATE_SELECTOR, date_text)
            self._fill_date(self.TO_DATE_SELECTOR, date_text)

            self.page.locator(self.HALF_DAY_SELECTOR).select_option(availability)
            self.drain_postback(1200)
        except PlaywrightError as e:
            logger.warning(f"Could not fill WFH form for {target}: {e}")
            return False

        if remarks and remarks.strip():
            try:
                self.reason_input.fill(remarks)
                self.wait_for_postback()
                current = self.read_value(self.reason_input)
                if current.strip():
                    self.pending_remarks = current
            except PlaywrightError as e:
                logger.warning(f"Could not fill WFH reason: {e}")

        return True

    def ensure_reason_before_submit(self) -> bool:
        """
        Re-fill the reason field from the cached value if a postback cleared it.

        Returns:
            True if the field had to be re-filled
        """
        if not self.pending_remarks:
            return False
        try:
            if self.read_value(self.reason_input).strip():
                return False
            logger.info("WFH reason was cleared by a postback, re-filling")
            self.reason_input.fill(self.pending_remarks)
            self.wait_for_postback()
            return True
        except PlaywrightError as e:
            logger.warning(f"Could not re-fill WFH reason: {e}")
            return False

    def submit(self, on_clicked: Optional[Callable[[], None]] = None) -> Optional[str]:
        """
        Submit the leave application and drain the resulting postback.

        Acknowledgement on this portal is unreliable; the caller confirms the
        outcome from a later history snapshot.

        Args:
            on_clicked: Called once the submit button has been clicked

        Returns:
            Text of the portal message box shown after submit, if any

        Raises:
            Error: If the submit button cannot be clicked
        """
        logger.info("Submitting WFH Apply Leave")
        try:
            with self.accept_dialogs():
                self.ensure_reason_before_submit()
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
        finally:
            self.pending_remarks = None

        if message and REASON_MANDATORY_PHRASE in message.lower():
            logger.warning("WFH submit blocked: reason is mandatory for Work from home")
        logger.info("WFH submit completed")
        return message
