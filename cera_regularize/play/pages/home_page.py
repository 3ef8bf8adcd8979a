"""
Page Object Model for the eHRMS Home Page.
Encapsulates returning to the home screen and the tree-menu paths that
lead to the Regularize, Apply Leave, Leave Status and Profile screens.
"""
import logging
from typing import NamedTuple, Sequence, Tuple

from playwright.sync_api import Error as PlaywrightError, Locator, Page

from cera_regularize.exceptions import PortalError
from cera_regularize.play.pages.apply_leave_page import ApplyLeavePage
from cera_regularize.play.pages.base_page import BasePage
from cera_regularize.play.pages.leave_status_page import LeaveStatusPage
from cera_regularize.play.pages.login_page import LoginPage
from cera_regularize.play.pages.profile_page import ProfilePage
from cera_regularize.play.pages.regularize_page import RegularizePage

logger = logging.getLogger(__name__)


class MenuStep(NamedTuple):
    label: str
    selectors: Tuple[str, ...]
    timeout: int = 15000
    settle: int = 800


LEAVE_MENU = "a#tvwMenut1"
EMPLOYEE_MENU = "a#tvwMenut0"

REGULARIZE_PATH = (
    MenuStep("Leave", (LEAVE_MENU,)),
    MenuStep("Employee", (EMPLOYEE_MENU,)),
    MenuStep("Regularize Attendance", ("a#tvwMenut6",), settle=1200),
)

# After Leave -> Employee expands the tree, the apply-leave entry takes over the tvwMenut1 id.
APPLY_LEAVE_PATH = (
    MenuStep("Leave", (LEAVE_MENU,), timeout=5000),
    MenuStep("Employee", (EMPLOYEE_MENU,), timeout=5000),
    MenuStep("Apply Leave", (LEAVE_MENU,)),
)

LEAVE_STATUS_PATH = (
    MenuStep("Leave", (LEAVE_MENU,), timeout=5000),
    MenuStep("Employee", (EMPLOYEE_MENU,), timeout=5000),
    MenuStep("Leave Status", ("a#tvwMenut3", "a:has-text('Leave Status')"), timeout=5000, settle=1200),
)

PROFILE_PATH = (
    MenuStep("Profile", ("a[title='Profile']", "a:has-text('Profile')")),
    MenuStep("Personal Detail", ("a[title='Personal Detail']", "a:has-text('Personal Detail')")),
    MenuStep("General Detail", ("a[title='General Detail']", "a:has-text('General Detail')"), settle=1200),
)


class HomePage(BasePage):
    """Represents the home screen and the left-hand tree menu."""

    def __init__(self, page: Page, portal_url: str):
        super().__init__(page)
        self.portal_url = portal_url

    @property
    def home_link(self) -> Locator:
        return self.page.locator(LoginPage.HOME_LINK_SELECTOR)

    def try_click_home(self) -> bool:
        """Click the home anchor if it shows up quickly. Never raises."""
        try:
            link = self.home_link.first
            link.wait_for(state="visible", timeout=5000)
            link.click(timeout=5000)
            self.page.wait_for_load_state("networkidle")
            self.wait_for_idle(600)
            return True
        except PlaywrightError as e:
            logger.debug(f"Home link click failed: {e}")
            return False

    def ensure_on_home(self) -> None:
        """
        Force the page back to the home screen before any menu navigation.

        Raises:
            PortalError: If the page is on the login screen or the home link
                cannot be reached even after reloading the portal root
        """
        try:
            self.page.keyboard.press("Escape")
        except PlaywrightError:
            pass

        if LoginPage(self.page).is_login_page():
            raise PortalError("Session is on login page; monitor must login.")

        link = self.home_link.first
        if not self.is_element_visible(link, timeout=6000):
            logger.debug("Home link not visible, reloading portal root")
            self.page.goto(self.portal_url, wait_until="load", timeout=20000)
            self.page.wait_for_load_state("networkidle")
            self.wait_for_idle(800)
            link.wait_for(state="visible", timeout=6000)

        try:
            link.click(timeout=5000)
            self.page.wait_for_load_state("networkidle")
            self.wait_for_idle(800)
        except PlaywrightError as e:
            raise PortalError(
                "Home link not found; ensure the session is logged in and on the dashboard before submit."
            ) from e

    def follow_menu(self, steps: Sequence[MenuStep]) -> None:
        """Click through a fixed menu path, settling after each click."""
        for step in steps:
            self.click_first(step.label, step.selectors, timeout=step.timeout)
            self.wait_for_idle(step.settle)

    def go_to_regularize(self) -> RegularizePage:
        """Open the Regularize Attendance screen, reloading in place if already there."""
        target = RegularizePage(self.page)
        if target.is_current() and target.reload():
            return target

        logger.info("Navigating to Regularize Attendance")
        self.ensure_on_home()
        self.follow_menu(REGULARIZE_PATH)
        return target

    def go_to_apply_leave(self) -> ApplyLeavePage:
        """Open the Apply Leave screen. Always goes through the menu for a clean form."""
        logger.info("Navigating to Apply Leave")
        self.ensure_on_home()
        self.follow_menu(APPLY_LEAVE_PATH)
        return ApplyLeavePage(self.page)

    def go_to_leave_status(self) -> LeaveStatusPage:
        """Open the Leave Status screen, reloading in place if already there."""
        target = LeaveStatusPage(self.page)
        if target.is_current() and target.reload():
            return target

        logger.info("Navigating to Leave Status")
        self.ensure_on_home()
        self.follow_menu(LEAVE_STATUS_PATH)
        return target

    def go_to_profile(self) -> ProfilePage:
        """Open Profile > Personal Detail > General Detail."""
        target = ProfilePage(self.page)
        if target.is_current() and target.reload():
            return target

        logger.info("Navigating to Profile General Detail")
        self.ensure_on_home()
        self.follow_menu(PROFILE_PATH)
        return target
