"""Page Object Model classes for the eHRMS portal screens."""

from .base_page import BasePage, first_success
from .login_page import LoginPage
from .home_page import HomePage
from .regularize_page import RegularizePage
from .apply_leave_page import ApplyLeavePage
from .leave_status_page import LeaveStatusPage
from .profile_page import ProfilePage

__all__ = [
    "BasePage",
    "first_success",
    "LoginPage",
    "HomePage",
    "RegularizePage",
    "ApplyLeavePage",
    "LeaveStatusPage",
    "ProfilePage",
]
