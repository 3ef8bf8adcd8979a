"""
Page Object Model for the eHRMS Login Page.
Encapsulates the login form and the DOM markers that tell an
authenticated screen apart from the login screen.
"""
import logging
from typing import Optional

from playwright.sync_api import Error as PlaywrightError, Locator, Page

from cera_regularize.play.pages.base_page import BasePage

logger = logging.getLogger(__name__)


class LoginPage(BasePage):
    """Represents the eHRMS login page and the session markers around it."""

    LOGIN_URL_MARKER = "login.aspx"
    HOME_URL_MARKER = "home.aspx"

    USERNAME_SELECTOR = "input[type='text']"
    PASSWORD_SELECTOR = "input[type='password']"
    SUBMIT_SELECTOR = "input[type='submit'], button:has-text('Login')"
    VALIDATOR_SELECTOR = "#ucLogin_cvLogin"
    HOME_LINK_SELECTOR = "a#hlHome"
    SESSION_BANNER_SELECTOR = "#txtSessionTime"

    LOGIN_SETTLE_MS = 3000

    def __init__(self, page: Page):
        super().__init__(page)

    def goto(self, portal_url: str) -> None:
        """
        Navigate to the portal root (the login page when signed out).

        Args:
            portal_url: Full portal URL
        """
        self.page.goto(portal_url, wait_until="load", timeout=20000)

    @property
    def username_input(self) -> Locator:
        """Get the username input field."""
        return self.page.locator(self.USERNAME_SELECTOR).first

    @property
    def password_input(self) -> Locator:
        """Get the password input field."""
        return self.page.locator(self.PASSWORD_SELECTOR).first

    @property
    def sign_in_button(self) -> Locator:
        """Get the Login button."""
        return self.page.locator(self.SUBMIT_SELECTOR).first

    @property
    def validator_span(self) -> Locator:
        """Inline validator that shows the server's rejection text."""
        return self.page.locator(self.VALIDATOR_SELECTOR)

    @property
    def home_link(self) -> Locator:
        return self.page.locator(self.HOME_LINK_SELECTOR).first

    @property
    def session_banner(self) -> Locator:
        return self.page.locator(self.SESSION_BANNER_SELECTOR)

    def current_url(self) -> str:
        try:
            return self.page.url or ""
        except PlaywrightError:
            return ""

    def is_login_page(self) -> bool:
        """True if the URL says the login form is showing."""
        return self.LOGIN_URL_MARKER in self.current_url().lower()

    def is_home_url(self) -> bool:
        return self.HOME_URL_MARKER in self.current_url().lower()

    def has_home_link(self) -> bool:
        """True if the page is the home screen or shows the home navigation anchor."""
        if self.is_home_url():
            return True
        try:
            return self.home_link.is_visible()
        except PlaywrightError:
            return False

    def is_session_expired(self) -> bool:
        """True if the session banner reports that the session has expired."""
        try:
            if not self.session_banner.is_visible():
                return False
            text = (self.session_banner.inner_text(timeout=2000) or "").strip().lower()
        except PlaywrightError:
            return False
        return "expired" in text

    def login(self, username: str, password: str) -> None:
        """
        Perform the login form submission.

        Args:
            username: Username to login with
            password: Password to login with
        """
        self.username_input.fill(username)
        self.password_input.fill(password)
        self.sign_in_button.click()
        self.wait_for_idle(self.LOGIN_SETTLE_MS)

    def validation_error_text(self) -> Optional[str]:
        """
        Read the inline validator message, if it is showing.

        Returns:
            The message text (or a generic message if the span is empty),
            None when the validator is hidden or absent
        """
        try:
            if not self.validator_span.is_visible():
                return None
            text = (self.validator_span.inner_text(timeout=2000) or "").strip()
        except PlaywrightError:
            return None
        return text or "Invalid login credentials."

    def read_login_info(self) -> Optional[str]:
        """Text of the logged-in banner, e.g. "Welcome, Jane Doe (1234)"."""
        banner = self.page.locator("#lblLoginInfo")
        try:
            return (banner.first.inner_text(timeout=5000) or "").strip() or None
        except PlaywrightError:
            return None
