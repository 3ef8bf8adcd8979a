"""
Regularization (WFO) and work-from-home leave (WFH) submission flows.

Each date is processed best-effort: a failure on one date is reported
through the status callback and the batch moves on. Cancellation is checked
between dates and never rolls back what was already submitted.
"""
import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from playwright.sync_api import Error as PlaywrightError, Page

from cera_regularize.config import PortalConfig
from cera_regularize.exceptions import LoginError, OperationCancelled, PortalError, PreconditionError
from cera_regularize.login_state import LoginStateMachine
from cera_regularize.play.pages.base_page import BasePage
from cera_regularize.play.pages.home_page import HomePage
from cera_regularize.play.pages.regularize_page import RegularizePage
from cera_regularize.regularize_models import (
    AssignmentOutcome,
    AssignmentStep,
    AttendanceMode,
    DaySpan,
    StatusLevel,
)
from cera_regularize.utils import StatusCallback, check_cancelled, emit_status, get_screenshot_path

logger = logging.getLogger(__name__)

REVIEW_DELAY_MS = 5000

# Leave type in the regularize popup: first letter is the first half
DAY_SPAN_TO_STATUS = {
    DaySpan.FULL: "PP",
    DaySpan.FIRST_HALF: "PA",
    DaySpan.SECOND_HALF: "AP",
}

# Half-day dropdown on the Apply Leave form
DAY_SPAN_TO_AVAILABILITY = {
    DaySpan.FULL: "0",
    DaySpan.FIRST_HALF: "1",
    DaySpan.SECOND_HALF: "2",
}

_SPAN_ALIASES = {
    "first": DaySpan.FIRST_HALF,
    "second": DaySpan.SECOND_HALF,
}


def normalize_span(span: Any) -> DaySpan:
    """Map a span value to a DaySpan; unknown or empty values mean a full day."""
    if isinstance(span, DaySpan):
        return span
    key = str(span or "").strip().lower()
    if key in _SPAN_ALIASES:
        return _SPAN_ALIASES[key]
    try:
        return DaySpan(key)
    except ValueError:
        return DaySpan.FULL


def normalize_mode(mode: Any) -> AttendanceMode:
    """
    Raises:
        PreconditionError: For anything other than "wfo" or "wfh"
    """
    try:
        return AttendanceMode(str(getattr(mode, "value", mode) or "").strip().lower())
    except ValueError:
        raise PreconditionError("Only 'wfo' or 'wfh' automation modes are supported right now.") from None


class SubmissionEngine:
    """Drives one batch of same-mode assignments on an authenticated page."""

    def __init__(
        self,
        page: Page,
        login: LoginStateMachine,
        config: PortalConfig,
        status_callback: Optional[StatusCallback] = None,
        cancel_token: Any = None,
        review_delay_ms: int = REVIEW_DELAY_MS,
        screenshot_on_error: bool = False,
    ):
        self.page = page
        self.login = login
        self.config = config
        self.status_callback = status_callback
        self.cancel_token = cancel_token
        self.review_delay_ms = review_delay_ms
        self.screenshot_on_error = screenshot_on_error
        self.home = HomePage(page, config.portal_url)

    def emit(self, message: str, level: StatusLevel = StatusLevel.INFO, advance: bool = False) -> None:
        emit_status(self.status_callback, message, level, advance)

    def run(self, mode: AttendanceMode, dates: Iterable[date], spans: Dict[date, DaySpan]) -> List[AssignmentOutcome]:
        """
        Submit every date in ascending order.

        Args:
            mode: WFO or WFH
            dates: Dates already filtered to the allowed window
            spans: Day span per date (missing dates default to full)

        Returns:
            One outcome per date, in processing order
        """
        ordered = sorted(dates)
        if mode == AttendanceMode.WFO:
            outcomes = self._run_wfo(ordered, spans)
        else:
            outcomes = self._run_wfh(ordered, spans)
        self.emit("Run completed", advance=True)
        return outcomes

    def _guarded(self, outcome: AssignmentOutcome, step) -> AssignmentOutcome:
        """Run one assignment, converting a per-date failure into a skip."""
        try:
            return step(outcome)
        except (OperationCancelled, LoginError):
            raise
        except Exception as e:
            logger.warning(f"Assignment for {outcome.date} failed at {outcome.step.value}: {e}", exc_info=True)
            if self.screenshot_on_error:
                self._capture_failure(outcome)
            self.emit(f"Skipping {outcome.date:%Y-%m-%d}: {e}", StatusLevel.WARNING, True)
            return outcome.skip(str(e))

    @staticmethod
    def _mark_submitted(outcome: AssignmentOutcome) -> None:
        outcome.step = AssignmentStep.SUBMITTED

    def _capture_failure(self, outcome: AssignmentOutcome) -> None:
        try:
            BasePage(self.page).take_screenshot(get_screenshot_path(f"{outcome.mode.value}_{outcome.date:%Y%m%d}"))
        except Exception as e:
            logger.warning(f"Could not capture failure screenshot: {e}")

    def _run_wfo(self, dates: List[date], spans: Dict[date, DaySpan]) -> List[AssignmentOutcome]:
        self.login.ensure_home_page(self.page)
        if RegularizePage(self.page).dismiss_locked_popup():
            self.emit("Closed leftover disabled popup before starting WFO flow", StatusLevel.WARNING)

        outcomes = []
        for target in dates:
            check_cancelled(self.cancel_token)
            outcome = AssignmentOutcome(target, AttendanceMode.WFO, spans.get(target, DaySpan.FULL))
            outcomes.append(self._guarded(outcome, self._submit_wfo))

        self._return_home()
        return outcomes

    def _return_home(self) -> None:
        """Best-effort return to the home screen once the batch is done."""
        try:
            self.login.ensure_home_page(self.page)
        except LoginError:
            raise
        except (PlaywrightError, PortalError) as e:
            logger.warning(f"Could not return to home after batch: {e}")
            self.emit(f"Could not return to home screen: {e}", StatusLevel.WARNING)

    def _submit_wfo(self, outcome: AssignmentOutcome) -> AssignmentOutcome:
        target, span = outcome.date, outcome.span
        label = f"{target:%Y-%m-%d}"

        self.emit("Opening Regularize Attendance screen")
        regularize = self.home.go_to_regularize()
        outcome.step = AssignmentStep.NAVIGATED
        self.emit("Regularize page loaded", advance=True)

        self.emit(f"Processing {label} [{span.value}]")
        regularize.switch_month_for_date(target)
        if not regularize.open_popup_for_date(target):
            self.emit(f"Skipping {label}: date cell not found or disabled.", StatusLevel.WARNING, True)
            return outcome.skip("date cell not found or disabled")
        outcome.step = AssignmentStep.POPUP_OPENED

        if regularize.dismiss_locked_popup():
            self.emit(f"Skipping {label}: popup fields are locked by portal.", StatusLevel.WARNING, True)
            return outcome.skip("popup fields are locked by portal")

        self.emit(f"Filling popup for {label}")
        regularize.fill_popup(
            shift=self.config.shift,
            in_time=self.config.in_time,
            out_time=self.config.out_time,
            status=DAY_SPAN_TO_STATUS[span],
            remarks=self.config.wfo_remarks,
        )
        outcome.step = AssignmentStep.FORM_FILLED
        regularize.wait_for_idle(self.review_delay_ms)
        self.emit(f"Filled {label} (waiting {self.review_delay_ms // 1000}s for review)", advance=True)

        outcome.portal_message = regularize.submit_popup(on_clicked=lambda: self._mark_submitted(outcome))
        outcome.step = AssignmentStep.PROGRESS_DRAINED
        self.emit(f"Submitted {label}", advance=True)
        outcome.step = AssignmentStep.DONE
        return outcome

    def _run_wfh(self, dates: List[date], spans: Dict[date, DaySpan]) -> List[AssignmentOutcome]:
        outcomes = []
        for target in dates:
            check_cancelled(self.cancel_token)
            outcome = AssignmentOutcome(target, AttendanceMode.WFH, spans.get(target, DaySpan.FULL))
            outcomes.append(self._guarded(outcome, self._submit_wfh))
        return outcomes

    def _submit_wfh(self, outcome: AssignmentOutcome) -> AssignmentOutcome:
        target, span = outcome.date, outcome.span
        label = f"{target:%Y-%m-%d}"

        self.login.ensure_home_page(self.page)
        if RegularizePage(self.page).dismiss_locked_popup():
            self.emit("Closed leftover disabled popup before WFH flow", StatusLevel.WARNING)

        self.emit("Opening Apply Leave screen")
        apply_leave = self.home.go_to_apply_leave()
        outcome.step = AssignmentStep.NAVIGATED
        self.emit("Apply Leave page loaded", advance=True)

        self.emit(f"Applying WFH for {label} [{span.value}]")
        if not apply_leave.fill_work_from_home_form(target, DAY_SPAN_TO_AVAILABILITY[span], self.config.wfh_remarks):
            self.emit(f"Skipping {label}: unable to fill WFH form.", StatusLevel.WARNING, True)
            return outcome.skip("unable to fill WFH form")
        outcome.step = AssignmentStep.FORM_FILLED

        try:
            outcome.portal_message = apply_leave.submit(on_clicked=lambda: self._mark_submitted(outcome))
        except PlaywrightError as e:
            logger.warning(f"WFH submit failed for {label}: {e}")
            self.emit(f"Apply Leave submission may have failed for {label} (check portal).", StatusLevel.WARNING, True)
            return outcome.skip("submit failed")

        outcome.step = AssignmentStep.PROGRESS_DRAINED
        self.emit(f"Submitted WFH for {label}", advance=True)
        outcome.step = AssignmentStep.DONE
        return outcome
