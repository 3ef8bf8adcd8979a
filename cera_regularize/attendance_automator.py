"""
Public entry point of the portal automation engine.

AttendanceAutomator owns one PortalSession and serialises every public
operation behind a re-entrant lock. Sync Playwright handles are bound to
the thread that created them, so callers that must not block should route
operations through submit(), which runs them on a single worker thread.
"""
import logging
import threading
from collections import OrderedDict
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from cera_regularize.attendance_cycle import compute_history_range, filter_allowed_dates
from cera_regularize.config import PortalConfig, get_app_config, refresh_config_from_environment
from cera_regularize.exceptions import OperationCancelled, PreconditionError
from cera_regularize.history_parser import AttendanceHistoryParser, merge_entries
from cera_regularize.login_state import LoginStateMachine, is_invalid_login_error
from cera_regularize.play.browser_session import PortalSession
from cera_regularize.play.installer import ensure_browsers_installed
from cera_regularize.play.pages.home_page import HomePage
from cera_regularize.play.pages.login_page import LoginPage
from cera_regularize.regularize_models import (
    AssignmentOutcome,
    AttendanceHistorySnapshot,
    Credentials,
    DaySpan,
    LoginStatus,
    OperationResult,
    ProfileSummary,
    StatusLevel,
)
from cera_regularize.submission import SubmissionEngine, normalize_mode, normalize_span
from cera_regularize.utils import (
    StatusCallback,
    check_cancelled,
    emit_status,
    initials_from_name,
    name_from_login_info,
    retry,
)

logger = logging.getLogger(__name__)

UNKNOWN_INITIALS = ".."
MISSING_CREDENTIALS = "Credentials missing"
NOT_VERIFIED = "Credentials not verified. Run Test Login."

ConfigProvider = Callable[[], Optional[Mapping[str, Any]]]


class AttendanceAutomator:
    """
    Drives the HR portal on behalf of one user.

    Example:
        automator = AttendanceAutomator(username="jdoe", password="secret", headless=True)
        if automator.test_login():
            automator.regularize_dates([(date(2024, 3, 5), "full")], "wfo")
        automator.close()
    """

    def __init__(
        self,
        username: Optional[str] = None,
        password: Optional[str] = None,
        headless: Optional[bool] = None,
        slow_mo: Optional[int] = None,
        portal_url: Optional[str] = None,
        config_provider: Optional[ConfigProvider] = None,
        cookies_path: Optional[Union[str, Path]] = None,
        session: Optional[PortalSession] = None,
    ):
        """
        Args:
            username: Explicit portal username (overrides env and stored config)
            password: Explicit portal password
            headless: Explicit headless flag
            slow_mo: Explicit Playwright slow-motion delay in milliseconds
            portal_url: Explicit portal login URL
            config_provider: Returns the stored config mapping; called on every refresh
            cookies_path: Cookie persistence file (defaults to ATT_COOKIES_PATH / data dir)
            session: Pre-built PortalSession, mainly for tests
        """
        self._explicit = {
            key: value
            for key, value in (
                ("username", username),
                ("password", password),
                ("headless", headless),
                ("slow_mo", slow_mo),
                ("portal_url", portal_url),
            )
            if value is not None
        }
        self.config_provider = config_provider
        self._lock = threading.RLock()
        self._executor: Optional[ThreadPoolExecutor] = None
        self.last_session_message = ""

        app_config = get_app_config()
        self.screenshot_on_error = app_config["screenshot_on_error"]
        self.config = refresh_config_from_environment(self._explicit, self._stored_config())
        self.session = session or PortalSession(
            cookies_path or app_config["cookies_path"],
            slow_mo=self.config.slow_mo,
            default_timeout=app_config["default_timeout"],
            ensure_installed=ensure_browsers_installed,
        )
        self.login = LoginStateMachine(self.session, portal_url=self.config.portal_url)
        self.refresh_config()

    # Configuration

    def _stored_config(self) -> Mapping[str, Any]:
        if self.config_provider is None:
            return {}
        try:
            return self.config_provider() or {}
        except Exception as e:
            logger.warning(f"Stored config unavailable, using defaults: {e}")
            return {}

    def refresh_config(self) -> PortalConfig:
        """Re-resolve configuration and push it into the session and login machine."""
        self.config = refresh_config_from_environment(self._explicit, self._stored_config())
        self.login.credentials = Credentials(self.config.username, self.config.password)
        self.login.portal_url = self.config.portal_url
        self.session.slow_mo = self.config.slow_mo
        return self.config

    @property
    def login_status(self) -> LoginStatus:
        return self.login.status

    @property
    def login_message(self) -> str:
        return self.login.message

    @property
    def login_verified(self) -> bool:
        return self.login.verified

    @login_verified.setter
    def login_verified(self, value: bool) -> None:
        self.login.verified = bool(value)

    def _headless(self, headless: Optional[bool]) -> bool:
        return self.config.headless if headless is None else headless

    def _precondition_message(self, require_verified: bool = True) -> Optional[str]:
        if not self.config.has_credentials:
            return MISSING_CREDENTIALS
        if require_verified and not self.login.verified:
            return NOT_VERIFIED
        return None

    # Worker thread

    def submit(self, operation: Union[str, Callable[..., Any]], *args, **kwargs) -> Future:
        """
        Run a public operation on the dedicated worker thread.

        Args:
            operation: Method name (e.g. "test_login") or a bound method of this automator

        Returns:
            A Future resolving to the operation's return value
        """
        func = getattr(self, operation) if isinstance(operation, str) else operation
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="portal")
        return self._executor.submit(func, *args, **kwargs)

    # Operations

    def test_login(self, headless: Optional[bool] = None) -> OperationResult:
        """
        Force a fresh login with the current credentials.

        Returns:
            OperationResult; on failure the message is the one to show the user
        """
        self.refresh_config()
        if not self.config.has_credentials:
            self.login.update_login_state(False, MISSING_CREDENTIALS)
            logger.warning("Test login failed: missing credentials")
            return OperationResult(False, MISSING_CREDENTIALS)

        logger.info("Test login started")
        with self._lock:
            try:
                page = self.session.acquire_page(self._headless(headless))
                self.login.ensure_session(page, force_login=True)
                self.login.update_login_state(True, "Login successful")
                self.session.save_cookies()
                logger.info("Test login succeeded")
                return OperationResult(True, "Login successful")
            except Exception as e:
                raw = getattr(e, "message", None) or str(e)
                if is_invalid_login_error(raw):
                    message = self.login.handle_invalid_login_credentials(raw)
                else:
                    message = raw
                    self.login.update_login_state(False, message)
                logger.warning(f"Test login failed: {message}")
                return OperationResult(False, message, error=type(e).__name__)

    def ensure_session_alive(
        self,
        status_callback: Optional[StatusCallback] = None,
        headless: Optional[bool] = None,
        force_login: bool = False,
        allow_unverified: bool = False,
    ) -> bool:
        """
        Make sure the portal session is logged in, retrying once after a full reset.

        Returns:
            True if the session is active; last_session_message explains a False
        """
        self.refresh_config()
        logger.debug("ensure_session_alive requested")
        blocked = self._precondition_message(require_verified=not allow_unverified)
        if blocked:
            self.last_session_message = blocked
            logger.warning(f"ensure_session_alive blocked: {blocked}")
            return False

        desired_headless = self._headless(headless)

        @retry(max_attempts=2, on_failure=lambda exc: self.session.reset())
        def _check() -> None:
            page = self.session.acquire_page(desired_headless)
            emit_status(status_callback, "Checking HRMS session", StatusLevel.INFO)
            expired = LoginPage(page).is_session_expired()
            self.login.ensure_session(page, force_login=force_login or expired)
            self.session.save_cookies()

        with self._lock:
            try:
                _check()
            except OperationCancelled:
                raise
            except Exception as e:
                self.last_session_message = getattr(e, "message", None) or str(e) or "Failed to ensure session"
                logger.warning(f"ensure_session_alive failed: {self.last_session_message}")
                return False

        self.last_session_message = "Session active"
        logger.debug("ensure_session_alive succeeded")
        return True

    def collect_history_snapshot(
        self,
        cancel_token: Any = None,
        today: Optional[date] = None,
    ) -> Optional[AttendanceHistorySnapshot]:
        """
        Collect and reconcile attendance history for the lookback window.

        Args:
            cancel_token: Optional object with is_set(), checked between phases
            today: Reference date for the window (defaults to today)

        Returns:
            The snapshot, or None when credentials are missing or unverified

        Raises:
            OperationCancelled: If the token is set
        """
        self.refresh_config()
        blocked = self._precondition_message()
        if blocked:
            logger.warning(f"History snapshot skipped: {blocked}")
            return None

        range_start, range_end = compute_history_range(today)
        parser = AttendanceHistoryParser(range_start, range_end)

        with self._lock:
            try:
                check_cancelled(cancel_token)
                self.session.acquire_page(self.config.headless)

                regularize_tab = self.session.history_page("regularize")
                self.login.ensure_session(regularize_tab)
                regularize = HomePage(regularize_tab, self.config.portal_url).go_to_regularize()
                entries = parser.collect_regularize_entries(regularize, cancel_token)

                check_cancelled(cancel_token)
                leave_tab = self.session.history_page("leave_status")
                self.login.ensure_session(leave_tab)
                leave_status = HomePage(leave_tab, self.config.portal_url).go_to_leave_status()
                leave_entries = parser.collect_leave_status_entries(leave_status, cancel_token)

                entries = merge_entries(entries, leave_entries)
                self.session.save_cookies()
            except OperationCancelled:
                logger.info("History snapshot cancelled")
                raise
            except Exception:
                logger.error("History snapshot failed", exc_info=True)
                self.session.reset()
                raise

        snapshot = AttendanceHistorySnapshot(
            fetched_at=datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            range_start=range_start,
            range_end=range_end,
            entries=entries,
        )
        logger.info(f"History snapshot collected: {len(entries)} entries")
        return snapshot

    def collect_profile_summary(self, headless: Optional[bool] = None) -> Optional[ProfileSummary]:
        """
        Read the employee summary from Profile > Personal Detail > General Detail.

        Returns:
            The summary, or None if unavailable (any failure resets the session)
        """
        self.refresh_config()
        blocked = self._precondition_message()
        if blocked:
            logger.warning(f"Profile summary skipped: {blocked}")
            return None

        with self._lock:
            try:
                logger.info("Profile summary fetch started")
                self.session.acquire_page(self._headless(headless))
                profile_tab = self.session.new_page()
                try:
                    self.login.ensure_session(profile_tab)
                    profile = HomePage(profile_tab, self.config.portal_url).go_to_profile()
                    summary = profile.read_summary()
                    self.session.save_cookies()
                finally:
                    try:
                        profile_tab.close()
                    except Exception as e:
                        logger.debug(f"Ignoring profile tab close failure: {e}")
            except Exception:
                logger.error("Profile summary fetch failed", exc_info=True)
                self.session.reset()
                return None

        if summary is None or summary.is_empty:
            logger.warning("Profile summary empty")
            return None
        logger.info("Profile summary collected")
        return summary

    def get_user_initials(self, headless: Optional[bool] = None) -> str:
        """
        Initials of the logged-in user from the portal banner.

        Returns:
            Up to two upper-case letters, or ".." when unavailable
        """
        self.refresh_config()
        with self._lock:
            try:
                logger.debug("Fetching user initials")
                page = self.session.acquire_page(self._headless(headless))
                self.login.ensure_session(page)
                name = name_from_login_info(LoginPage(page).read_login_info())
            except Exception as e:
                logger.warning(f"Initials fetch failed: {e}")
                self.session.reset()
                return UNKNOWN_INITIALS

        initials = initials_from_name(name)
        logger.debug(f"Initials resolved: {initials or UNKNOWN_INITIALS}")
        return initials or UNKNOWN_INITIALS

    def regularize_dates(
        self,
        entries: Iterable[Tuple[date, Any]],
        mode: Any,
        status_callback: Optional[StatusCallback] = None,
        headless: Optional[bool] = None,
        cancel_token: Any = None,
        today: Optional[date] = None,
    ) -> List[AssignmentOutcome]:
        """
        Submit one mode (WFO or WFH) for a batch of (date, span) pairs.

        Dates before the current attendance cycle are dropped with a warning.

        Args:
            entries: (date, span) pairs; span may be a DaySpan, "full",
                "first_half"/"first", "second_half"/"second" or empty
            mode: "wfo" or "wfh"
            status_callback: Progress sink called with (message, level, advance)
            headless: Override the configured headless flag
            cancel_token: Optional object with is_set(), checked between dates
            today: Reference date for the allowed window (defaults to today)

        Returns:
            One AssignmentOutcome per submitted date

        Raises:
            PreconditionError: Missing or unverified credentials, an unsupported
                mode, or no date inside the allowed window
        """
        self.refresh_config()
        if not self.config.has_credentials:
            raise PreconditionError("Username or password is missing. Set credentials in Config.")
        if not self.login.verified:
            raise PreconditionError("Credentials not verified. Run Test Login before proceeding.")

        mode_key = normalize_mode(mode)
        logger.info(f"regularize_dates started: mode={mode_key.value}")

        spans: Dict[date, DaySpan] = {}
        for target, span in entries:
            spans[target] = normalize_span(span)

        requested = sorted(spans)
        allowed = filter_allowed_dates(requested, today)
        if not allowed:
            message = "No dates are allowed based on the attendance cycle window."
            emit_status(status_callback, message, StatusLevel.ERROR)
            raise PreconditionError(message)
        if len(allowed) != len(requested):
            skipped = ", ".join(d.isoformat() for d in requested if d not in allowed)
            emit_status(status_callback, f"Skipping dates outside allowed window: [{skipped}]", StatusLevel.WARNING)

        with self._lock:
            try:
                page = self.session.acquire_page(self._headless(headless))
                self.login.ensure_session(page)
                engine = SubmissionEngine(
                    page,
                    self.login,
                    self.config,
                    status_callback,
                    cancel_token,
                    screenshot_on_error=self.screenshot_on_error,
                )
                outcomes = engine.run(mode_key, allowed, spans)
                self.session.save_cookies()
            except OperationCancelled:
                logger.info("regularize_dates cancelled")
                raise
            except Exception:
                logger.error("regularize_dates failed", exc_info=True)
                self.session.reset()
                raise

        submitted = sum(1 for outcome in outcomes if not outcome.skipped)
        logger.info(f"regularize_dates finished: {submitted}/{len(outcomes)} submitted")
        return outcomes

    def regularize_assignments(
        self,
        assignments: Iterable[Tuple[date, Any, Any]],
        status_callback: Optional[StatusCallback] = None,
        headless: Optional[bool] = None,
        cancel_token: Any = None,
        today: Optional[date] = None,
    ) -> List[AssignmentOutcome]:
        """
        Group (date, mode, span) triples by mode and submit each group.

        Returns:
            Outcomes of every group, in group order
        """
        groups: "OrderedDict[str, List[Tuple[date, Any]]]" = OrderedDict()
        for target, mode, span in assignments:
            key = str(getattr(mode, "value", mode) or "").strip().lower()
            groups.setdefault(key, []).append((target, span))

        logger.info(f"regularize_assignments started: {len(groups)} group(s)")
        outcomes: List[AssignmentOutcome] = []
        for mode, entries in groups.items():
            outcomes.extend(
                self.regularize_dates(entries, mode, status_callback, headless, cancel_token, today)
            )
        return outcomes

    def close(self) -> None:
        """
        Tear down the browser and stop the worker thread.

        When operations ran on the worker thread the teardown runs there too,
        after any queued operations.
        """
        executor, self._executor = self._executor, None
        if executor is None:
            self._reset_session()
            return
        executor.submit(self._reset_session).result()
        executor.shutdown(wait=True)

    def _reset_session(self) -> None:
        with self._lock:
            self.session.reset()

    def __enter__(self) -> "AttendanceAutomator":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
