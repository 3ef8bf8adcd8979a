"""
Login and session-liveness state machine for the portal.

Tracks the outcome of the last explicit login (LoginStatus) separately from
where the current page is (PortalState). The bootstrapped flag lives on the
PortalSession because a new browser context invalidates it.
"""
import logging
from typing import Optional

from playwright.sync_api import Page

from cera_regularize.config import DEFAULT_PORTAL_URL
from cera_regularize.exceptions import LoginError, PortalError, PreconditionError
from cera_regularize.play.browser_session import PortalSession
from cera_regularize.play.pages.home_page import HomePage
from cera_regularize.play.pages.login_page import LoginPage
from cera_regularize.regularize_models import Credentials, LoginStatus, PortalState

logger = logging.getLogger(__name__)

INVALID_CREDENTIAL_PROMPT = "Invalid Login Credentials - Please provide the updated password"
GENERIC_INVALID_MESSAGE = "Invalid login credentials."
MAX_INVALID_LOGIN_ATTEMPTS = 2


def is_invalid_login_error(message: Optional[str]) -> bool:
    """True if a portal or login message reports invalid credentials."""
    text = (message or "").lower()
    return "invalid" in text and "credential" in text


class LoginStateMachine:
    """
    Decides when to log in and records the result.

    Example:
        machine = LoginStateMachine(session, credentials, portal_url)
        machine.ensure_session(page)
    """

    def __init__(
        self,
        session: PortalSession,
        credentials: Optional[Credentials] = None,
        portal_url: str = DEFAULT_PORTAL_URL,
    ):
        self.session = session
        self.credentials = credentials or Credentials("", "")
        self.portal_url = portal_url
        self.status = LoginStatus.NOT_VERIFIED
        self.message = ""
        # Persisted by the caller across runs; a rejected login clears it
        self.verified = False

    def update_login_state(self, success: bool, message: str) -> None:
        self.status = LoginStatus.SUCCESSFUL if success else LoginStatus.UNSUCCESSFUL
        self.verified = success
        self.message = message

    def handle_invalid_login_credentials(self, raw_message: Optional[str]) -> str:
        """
        Record an invalid-credentials rejection and return the message to show.

        Once a login has succeeded in this process, the portal's rejection is
        replaced by a stricter prompt to re-enter the password; otherwise the
        raw message is kept.
        """
        if self.status == LoginStatus.SUCCESSFUL:
            message = INVALID_CREDENTIAL_PROMPT
        else:
            message = (raw_message or "").strip() or GENERIC_INVALID_MESSAGE
        self.update_login_state(False, message)
        return message

    def detect_state(self, page: Page) -> PortalState:
        """Classify the current page, evaluating the rules in order."""
        login = LoginPage(page)
        if login.is_login_page():
            return PortalState.LOGIN_PAGE
        # A degraded DOM can drop the home anchor without changing the URL
        if not login.has_home_link():
            return PortalState.LOGIN_PAGE
        if login.is_session_expired():
            return PortalState.EXPIRED
        if self.session.bootstrapped:
            return PortalState.AUTHENTICATED_BOOTSTRAPPED
        return PortalState.AUTHENTICATED_FRESH

    def ensure_session(self, page: Page, force_login: bool = False) -> None:
        """
        Make sure page is authenticated, logging in through the form if needed.

        Args:
            page: The page to authenticate
            force_login: Skip the liveness short-circuit and reload the portal root

        Raises:
            LoginError: If the login form is rejected or home is never reached
            PreconditionError: If a login is needed but credentials are missing
        """
        if not force_login:
            state = self.detect_state(page)
            if state in (PortalState.AUTHENTICATED_FRESH, PortalState.AUTHENTICATED_BOOTSTRAPPED):
                logger.debug(f"Session already authenticated ({state.value})")
                self.session.bootstrapped = True
                return
            logger.debug(f"Session needs login ({state.value})")

        login = LoginPage(page)
        login.goto(self.portal_url)
        if login.is_login_page() or not login.has_home_link():
            self.login_with_form(page)
            self.validate_login_result(page)
        else:
            logger.info("Portal session restored from cookies")

        self.session.bootstrapped = True

    def login_with_form(self, page: Page) -> None:
        if not self.credentials.is_complete:
            raise PreconditionError("Credentials missing.")
        logger.info(f"Logging in as {self.credentials.username}")
        LoginPage(page).login(self.credentials.username, self.credentials.password)

    def validate_login_result(self, page: Page) -> None:
        """
        Decide whether the form submission reached the home screen.

        Checks, in order: the inline validator, the home URL, the home anchor.

        Raises:
            LoginError: With the validator text, or a generic failure message
        """
        login = LoginPage(page)
        login.wait_for_postback()
        login.wait_for_idle(500)

        error = login.validation_error_text()
        if error:
            invalid = is_invalid_login_error(error)
            if invalid:
                error = self.handle_invalid_login_credentials(error)
            logger.warning(f"Login rejected by portal: {error}")
            raise LoginError(error, invalid_credentials=invalid)

        if login.is_home_url() or login.has_home_link():
            self.update_login_state(True, "Login successful")
            logger.info("Login successful")
            return

        if login.is_login_page():
            message = "Login failed or credentials invalid."
        else:
            message = "Login did not reach Home.aspx; credentials may be invalid."
        raise LoginError(message, invalid_credentials=is_invalid_login_error(message))

    def ensure_home_page(self, page: Page) -> None:
        """
        Return to the home screen, logging in again if the home anchor is gone.

        One invalid-credentials rejection is tolerated, since the portal can
        report it spuriously; the second one is raised.

        Raises:
            LoginError: On the second invalid-credentials rejection
            PortalError: If home is still unreachable after a successful login
        """
        login = LoginPage(page)
        invalid_attempts = 0
        while True:
            if HomePage(page, self.portal_url).try_click_home() and login.has_home_link():
                return
            if login.has_home_link():
                return

            try:
                self.ensure_session(page, force_login=True)
            except LoginError as e:
                if not e.invalid_credentials:
                    raise
                invalid_attempts += 1
                message = self.handle_invalid_login_credentials(e.message)
                logger.warning(f"Invalid credentials while returning home (attempt {invalid_attempts}): {message}")
                if invalid_attempts >= MAX_INVALID_LOGIN_ATTEMPTS:
                    raise LoginError(message, invalid_credentials=True) from e
                continue

            if login.has_home_link():
                return
            raise PortalError("Home page not reachable after login.")
