from pathlib import Path

import pytest
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from cera_regularize.exceptions import PortalError
from cera_regularize.play.pages.base_page import BasePage, first_success
from cera_regularize.play.tests.fake_portal import FakeElement


def _fail():
    raise PlaywrightTimeoutError("not there")


def test_first_success_skips_failed_strategies():
    assert first_success([_fail, lambda: None, lambda: False, lambda: "found", lambda: "later"]) == "found"
    assert first_success([_fail, lambda: None]) is None
    assert first_success([]) is None


def test_first_success_lets_unexpected_errors_through():
    def broken():
        raise ValueError("bug")

    with pytest.raises(ValueError):
        first_success([broken, lambda: "unreached"])


def test_progress_indicator_is_drained(page):
    spinner = page.add("#UpdateProgress1", FakeElement(name="spinner", hide_on_wait=True))
    assert BasePage(page).wait_for_submission_progress()
    assert not spinner.visible
    assert page.drained == ["#UpdateProgress1 >> nth=0"]


def test_progress_probe_without_indicator(page):
    assert not BasePage(page).wait_for_submission_progress()


def test_stuck_indicator_falls_through(page):
    page.add("div[id*='UpdateProgress']", FakeElement(name="stuck"))
    assert not BasePage(page).wait_for_submission_progress(timeout_ms=2000)


def test_portal_message_is_read_and_closed(portal, page):
    portal.show_home(page)
    portal._show_message(page, "  Record saved successfully. ")

    assert BasePage(page).dismiss_portal_message() == "Record saved successfully."
    assert "#MsgBox_pnlMsgBox" not in page.elements
    assert "msgbox-close" in page.clicks


def test_no_portal_message(page):
    assert BasePage(page).dismiss_portal_message(100) is None


def test_portal_message_without_close_control(page):
    page.add("#MsgBox_pnlMsgBox", FakeElement(children={"#MsgBox_MsgBoxMessageText": [FakeElement(text="Stuck")]}))
    assert BasePage(page).dismiss_portal_message() == "Stuck"
    assert "#MsgBox_pnlMsgBox" in page.elements


def test_dialogs_accepted_only_inside_block(page):
    base = BasePage(page)
    with base.accept_dialogs():
        inside = page.emit_dialog("Are you sure?")
    outside = page.emit_dialog("Are you sure?")

    assert inside.accepted
    assert not outside.accepted
    assert page.listener_count("dialog") == 0


def test_click_first_uses_fallback_selector(page):
    page.add("a:has-text('Leave Status')", FakeElement(name="leave-status"))
    BasePage(page).click_first("Leave Status", ["a#tvwMenut3", "a:has-text('Leave Status')"], timeout=100)
    assert page.clicks == ["leave-status"]


def test_click_first_raises_when_nothing_matches(page):
    with pytest.raises(PortalError, match="Leave Status link not found."):
        BasePage(page).click_first("Leave Status", ["a#tvwMenut3"], timeout=100)


def test_is_disabled(page):
    page.add("#a", FakeElement(attrs={"disabled": ""}))
    page.add("#b", FakeElement(attrs={"aria-disabled": "TRUE"}))
    page.add("#c", FakeElement())
    base = BasePage(page)

    assert base.is_disabled("#a")
    assert base.is_disabled("#b")
    assert not base.is_disabled("#c")
    assert not base.is_disabled("#missing")


def test_read_value(page):
    page.add("#reason", FakeElement(value="Remote"))
    assert BasePage.read_value(page.locator("#reason")) == "Remote"
    assert BasePage.read_value(page.locator("#missing")) == ""


def test_is_present_does_not_wait(page):
    page.add("#hidden", FakeElement(visible=False))
    base = BasePage(page)
    assert not base.is_present(page.locator("#hidden"))
    assert not base.is_present(page.locator("#missing"))


def test_take_screenshot_defaults_to_screenshots_dir(page, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    path = BasePage(page).take_screenshot("failure")

    assert Path(path) == Path("screenshots") / "failure.png"
    assert (tmp_path / "screenshots").is_dir()
    assert page.screenshots == [path]
