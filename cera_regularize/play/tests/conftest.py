import pytest

from cera_regularize.attendance_automator import AttendanceAutomator
from cera_regularize.login_state import LoginStateMachine
from cera_regularize.play.browser_session import PortalSession
from cera_regularize.play.tests.fake_portal import (
    PORTAL_URL,
    FakeContext,
    FakePlaywright,
    FakePortal,
    driver_factory,
)
from cera_regularize.regularize_models import Credentials

PORTAL_ENV_VARS = (
    "ATT_USERNAME",
    "ATT_PASSWORD",
    "ATT_HEADLESS",
    "ATT_SLOW_MO",
    "ATT_SLOW_MO_MS",
    "ATT_TIMEOUT_MS",
    "ATT_COOKIES_PATH",
    "ATT_SCREENSHOT_ON_ERROR",
    "PORTAL_URL",
)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Keep a developer's .env and data directory out of every test."""
    for name in PORTAL_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("ATT_DATA_DIR", str(tmp_path / "data"))


@pytest.fixture
def portal():
    return FakePortal()


@pytest.fixture
def context(portal):
    return FakeContext(portal.new_page)


@pytest.fixture
def page(context):
    return context.new_page()


@pytest.fixture
def fake_playwright(portal):
    return FakePlaywright(portal.new_page)


@pytest.fixture
def cookies_path(tmp_path):
    return tmp_path / "hrms_session.json"


@pytest.fixture
def session(cookies_path, fake_playwright):
    return PortalSession(cookies_path, playwright_factory=driver_factory(fake_playwright))


@pytest.fixture
def login_machine(portal, cookies_path):
    return LoginStateMachine(
        PortalSession(cookies_path),
        Credentials(portal.username, portal.password),
        PORTAL_URL,
    )


@pytest.fixture
def automator(portal, session):
    bot = AttendanceAutomator(
        username=portal.username,
        password=portal.password,
        headless=True,
        portal_url=PORTAL_URL,
        session=session,
    )
    yield bot
    bot.close()


@pytest.fixture
def verified_automator(automator):
    """Automator after a successful Test Login."""
    assert automator.test_login()
    return automator
