"""
In-memory stand-ins for Playwright handles and a scripted eHRMS portal.

Elements are registered on a FakePage under the exact selector strings the
page objects use. Every wait that cannot be satisfied raises Playwright's
own TimeoutError immediately, so tests never sleep.
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from cera_regularize.attendance_cycle import cycle_dropdown_value, date_link_label

BASE_URL = "https://hrms.example.test/eHRMS/CERAGON/"
PORTAL_URL = BASE_URL + "Login.aspx?CID=CERAGON"
SESSION_COOKIE = "ASP.NET_SessionId"


@dataclass
class FakeElement:
    name: str = ""
    text: str = ""
    value: str = ""
    visible: bool = True
    attrs: Dict[str, str] = field(default_factory=dict)
    children: Dict[str, List["FakeElement"]] = field(default_factory=dict)
    options: Optional[List[str]] = None
    # Becomes hidden the first time something waits for it to hide
    hide_on_wait: bool = False
    on_click: Optional[Callable[[], None]] = None
    on_select: Optional[Callable[[str], None]] = None
    on_press: Optional[Callable[[str], None]] = None


class FakeDialog:
    def __init__(self, message: str):
        self.message = message
        self.accepted = False

    def accept(self, prompt_text: Optional[str] = None) -> None:
        self.accepted = True


class FakeLocator:
    def __init__(self, page: "FakePage", resolve: Callable[[], List[FakeElement]], description: str):
        self.page = page
        self._resolve = resolve
        self.description = description

    def _elements(self) -> List[FakeElement]:
        return list(self._resolve())

    def _one(self) -> FakeElement:
        elements = self._elements()
        if not elements:
            raise PlaywrightTimeoutError(f"Timeout waiting for {self.description}")
        return elements[0]

    def _label(self, element: FakeElement) -> str:
        return element.name or self.description

    @property
    def first(self) -> "FakeLocator":
        return self.nth(0)

    def nth(self, index: int) -> "FakeLocator":
        return FakeLocator(self.page, lambda: self._elements()[index:index + 1], f"{self.description} >> nth={index}")

    def count(self) -> int:
        return len(self._elements())

    def all(self) -> List["FakeLocator"]:
        return [self.nth(i) for i in range(self.count())]

    def filter(self, has_text: Any = None) -> "FakeLocator":
        def _matches(element: FakeElement) -> bool:
            if has_text is None:
                return True
            if isinstance(has_text, str):
                return has_text.lower() in element.text.lower()
            return has_text.search(element.text) is not None

        return FakeLocator(
            self.page,
            lambda: [e for e in self._elements() if _matches(e)],
            f"{self.description} >> has_text={has_text!r}",
        )

    def locator(self, selector: str) -> "FakeLocator":
        return FakeLocator(
            self.page,
            lambda: [child for e in self._elements() for child in e.children.get(selector, [])],
            f"{self.description} >> {selector}",
        )

    def wait_for(self, state: str = "visible", timeout: Optional[int] = None) -> None:
        elements = self._elements()
        shown = bool(elements) and elements[0].visible
        if state == "attached" and not elements:
            raise PlaywrightTimeoutError(f"{self.description} not attached")
        if state == "detached" and elements:
            raise PlaywrightTimeoutError(f"{self.description} still attached")
        if state == "visible" and not shown:
            raise PlaywrightTimeoutError(f"{self.description} not visible")
        if state == "hidden" and shown:
            if not elements[0].hide_on_wait:
                raise PlaywrightTimeoutError(f"{self.description} still visible")
            elements[0].visible = False
            self.page.drained.append(self.description)

    def is_visible(self) -> bool:
        elements = self._elements()
        return bool(elements) and elements[0].visible

    def click(self, force: bool = False, timeout: Optional[int] = None) -> None:
        element = self._one()
        if not element.visible and not force:
            raise PlaywrightTimeoutError(f"{self.description} not clickable")
        self.page.clicks.append(self._label(element))
        if element.on_click:
            element.on_click()

    def fill(self, value: str, timeout: Optional[int] = None) -> None:
        element = self._one()
        if "disabled" in element.attrs:
            raise PlaywrightTimeoutError(f"{self.description} is disabled")
        element.value = value
        self.page.fills.append((self._label(element), value))

    def press(self, key: str, timeout: Optional[int] = None) -> None:
        element = self._one()
        self.page.presses.append((self._label(element), key))
        if element.on_press:
            element.on_press(key)

    def select_option(self, value: str, timeout: Optional[int] = None) -> List[str]:
        element = self._one()
        if "disabled" in element.attrs:
            raise PlaywrightTimeoutError(f"{self.description} is disabled")
        if element.options is not None and value not in element.options:
            raise PlaywrightTimeoutError(f"{self.description} has no option {value!r}")
        element.value = value
        self.page.selections.append((self._label(element), value))
        if element.on_select:
            element.on_select(value)
        return [value]

    def input_value(self, timeout: Optional[int] = None) -> str:
        return self._one().value

    def inner_text(self, timeout: Optional[int] = None) -> str:
        return self._one().text

    def get_attribute(self, name: str, timeout: Optional[int] = None) -> Optional[str]:
        return self._one().attrs.get(name)

    def evaluate(self, expression: str, arg: Any = None) -> Any:
        return self._one().value


class FakeKeyboard:
    def __init__(self):
        self.presses: List[str] = []

    def press(self, key: str) -> None:
        self.presses.append(key)


class FakePage:
    def __init__(
        self,
        context: Optional["FakeContext"] = None,
        url: str = "about:blank",
        goto_handler: Optional[Callable[["FakePage", str], None]] = None,
        reload_handler: Optional[Callable[["FakePage"], None]] = None,
    ):
        self.context = context
        self.url = url
        self.goto_handler = goto_handler
        self.reload_handler = reload_handler
        self.elements: Dict[str, List[FakeElement]] = {}
        self.state: Dict[str, Any] = {}
        self.keyboard = FakeKeyboard()
        self.clicks: List[str] = []
        self.fills: List[Tuple[str, str]] = []
        self.presses: List[Tuple[str, str]] = []
        self.selections: List[Tuple[str, str]] = []
        self.visits: List[str] = []
        self.waits: List[int] = []
        self.drained: List[str] = []
        self.screenshots: List[str] = []
        self.reload_count = 0
        self.closed = False
        self._listeners: Dict[str, List[Callable]] = {}

    def add(self, selector: str, *elements: FakeElement) -> FakeElement:
        self.elements.setdefault(selector, []).extend(elements)
        return elements[0]

    def set(self, selector: str, *elements: FakeElement) -> FakeElement:
        self.elements[selector] = list(elements)
        return elements[0]

    def remove(self, *selectors: str) -> None:
        for selector in selectors:
            self.elements.pop(selector, None)

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self, lambda: self.elements.get(selector, []), selector)

    def goto(self, url: str, wait_until: Optional[str] = None, timeout: Optional[int] = None) -> None:
        self.visits.append(url)
        if self.goto_handler:
            self.goto_handler(self, url)
        else:
            self.url = url

    def reload(self, wait_until: Optional[str] = None, timeout: Optional[int] = None) -> None:
        self.reload_count += 1
        if self.reload_handler:
            self.reload_handler(self)

    def wait_for_timeout(self, timeout: int) -> None:
        self.waits.append(timeout)

    def wait_for_load_state(self, state: str = "load", timeout: Optional[int] = None) -> None:
        pass

    def on(self, event: str, handler: Callable) -> None:
        self._listeners.setdefault(event, []).append(handler)

    def remove_listener(self, event: str, handler: Callable) -> None:
        self._listeners.get(event, []).remove(handler)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    def emit_dialog(self, message: str) -> FakeDialog:
        dialog = FakeDialog(message)
        for handler in list(self._listeners.get("dialog", [])):
            handler(dialog)
        return dialog

    def screenshot(self, path: Optional[str] = None, full_page: bool = False) -> None:
        self.screenshots.append(path)

    def is_closed(self) -> bool:
        return self.closed

    def close(self) -> None:
        self.closed = True


class FakeContext:
    def __init__(self, page_factory: Optional[Callable[["FakeContext"], FakePage]] = None):
        self.page_factory = page_factory
        self.pages: List[FakePage] = []
        self.default_timeout: Optional[int] = None
        self.closed = False
        self._cookies: List[Dict[str, Any]] = []

    def new_page(self) -> FakePage:
        page = self.page_factory(self) if self.page_factory else FakePage(context=self)
        self.pages.append(page)
        return page

    def cookies(self) -> List[Dict[str, Any]]:
        return [dict(cookie) for cookie in self._cookies]

    def add_cookies(self, cookies: List[Dict[str, Any]]) -> None:
        for cookie in cookies:
            self._cookies = [c for c in self._cookies if c["name"] != cookie["name"]]
            self._cookies.append(dict(cookie))

    def set_default_timeout(self, timeout: int) -> None:
        self.default_timeout = timeout

    def close(self) -> None:
        self.closed = True
        for page in self.pages:
            page.close()


class FakeBrowser:
    def __init__(self, page_factory=None):
        self.page_factory = page_factory
        self.contexts: List[FakeContext] = []
        self.connected = True

    def new_context(self) -> FakeContext:
        context = FakeContext(self.page_factory)
        self.contexts.append(context)
        return context

    def is_connected(self) -> bool:
        return self.connected

    def close(self) -> None:
        self.connected = False


class FakeBrowserType:
    def __init__(self, page_factory=None):
        self.page_factory = page_factory
        self.launches: List[Dict[str, Any]] = []
        self.browsers: List[FakeBrowser] = []

    def launch(self, headless: bool = True, slow_mo: int = 0) -> FakeBrowser:
        self.launches.append({"headless": headless, "slow_mo": slow_mo})
        browser = FakeBrowser(self.page_factory)
        self.browsers.append(browser)
        return browser


class FakePlaywright:
    def __init__(self, page_factory=None):
        self.chromium = FakeBrowserType(page_factory)
        self.stopped = 0

    def stop(self) -> None:
        self.stopped += 1


class FakeDriver:
    """Mimics the object returned by sync_playwright()."""

    def __init__(self, playwright: FakePlaywright):
        self.playwright = playwright

    def start(self) -> FakePlaywright:
        return self.playwright


def driver_factory(playwright: FakePlaywright) -> Callable[[], FakeDriver]:
    return lambda: FakeDriver(playwright)


# Menu anchor sequences (from the home screen) and the screen they open
MENU_ROUTES = {
    ("a#tvwMenut1", "a#tvwMenut0", "a#tvwMenut6"): "regularize",
    ("a#tvwMenut1", "a#tvwMenut0", "a#tvwMenut1"): "apply_leave",
    ("a#tvwMenut1", "a#tvwMenut0", "a#tvwMenut3"): "leave_status",
    ("a[title='Profile']", "a[title='Personal Detail']", "a[title='General Detail']"): "profile",
}
MENU_SELECTORS = sorted({selector for route in MENU_ROUTES for selector in route})

POPUP_INPUTS = (
    "#MiddleContent_ddlShift",
    "#MiddleContent_txtIn_Time_txtTime",
    "#MiddleContent_txtOut_Time_txtTime",
    "#MiddleContent_ddlLvType",
    "#MiddleContent_txtRemarks",
)
POPUP_SELECTORS = POPUP_INPUTS + ("#MiddleContent_pnlPopup", "#MiddleContent_btnOK", "#MiddleContent_btnCancel")

WFH_HALF_CODES = {"0": "GG", "1": "G?", "2": "?G"}


class FakePortal:
    """
    Scripted eHRMS portal.

    Login state is carried by a session cookie in the page's context, so a
    context restored from a cookie file is recognised as logged in.
    Submissions are recorded and folded into the attendance the regularize
    grid reports afterwards.
    """

    def __init__(self, username: str = "jdoe", password: str = "secret"):
        self.username = username
        self.password = password
        self.sessions: Set[str] = set()
        self.login_attempts = 0
        self.rejection_message = "Invalid Login Credentials"
        self.login_info = "Welcome, Jane Doe (1234)"
        self.session_banner = ""

        # Dates with a clickable grid link; disabled links render without href
        self.regularizable: Set[date] = set()
        self.disabled_links: Set[date] = set()
        self.locked: Set[date] = set()
        # Two-letter code per day, rendered into the regularize grid
        self.attendance: Dict[date, str] = {}
        # Explicit grid cells per cycle value, replacing the generated ones
        self.regularize_cells: Dict[str, List[Tuple[str, str]]] = {}
        self.leave_rows: List[List[str]] = []
        self.profile_fields: List[Tuple[str, str]] = [
            ("Employee ID", "1234"),
            ("Employee Name", "Jane Doe"),
            ("Designation :", "Engineer"),
            ("Reporting Manager", "John Roe"),
        ]

        self.submit_message = "Record saved successfully."
        self.submissions: List[Dict[str, Any]] = []
        self.dialogs: List[FakeDialog] = []

    # Wiring

    def new_page(self, context: Optional[FakeContext] = None) -> FakePage:
        page = FakePage(context=context, goto_handler=self._on_goto, reload_handler=self._on_reload)
        page.state.update(screen=None, trail=[], cycle=None, popup_date=None)
        return page

    def is_authenticated(self, page: FakePage) -> bool:
        if page.context is None:
            return False
        return any(
            cookie["name"] == SESSION_COOKIE and cookie["value"] in self.sessions
            for cookie in page.context.cookies()
        )

    def expire_sessions(self) -> None:
        self.sessions.clear()

    def _on_goto(self, page: FakePage, url: str) -> None:
        if self.is_authenticated(page):
            self.show_home(page)
        else:
            self.show_login(page)

    def _on_reload(self, page: FakePage) -> None:
        screen = page.state.get("screen")
        if screen in (None, "login") or not self.is_authenticated(page):
            self.show_login(page)
        elif screen == "regularize":
            self.show_regularize(page, page.state.get("cycle"))
        else:
            getattr(self, f"show_{screen}")(page)

    def _reset(self, page: FakePage, path: str, screen: str) -> None:
        page.elements = {}
        page.url = BASE_URL + path if path else PORTAL_URL
        page.state["screen"] = screen
        page.state["trail"] = []

    def _chrome(self, page: FakePage) -> None:
        page.add("a#hlHome", FakeElement(name="home", on_click=lambda: self.show_home(page)))
        page.add("#lblLoginInfo", FakeElement(name="login-info", text=self.login_info))
        if self.session_banner:
            page.add("#txtSessionTime", FakeElement(name="session-banner", text=self.session_banner))
        for selector in MENU_SELECTORS:
            page.add(selector, FakeElement(name=selector, on_click=lambda s=selector: self._menu(page, s)))

    def _menu(self, page: FakePage, selector: str) -> None:
        trail = page.state["trail"] + [selector]
        screen = MENU_ROUTES.get(tuple(trail))
        if screen:
            getattr(self, f"show_{screen}")(page)
        else:
            page.state["trail"] = trail

    def _show_message(self, page: FakePage, text: str) -> None:
        page.set(
            "#MsgBox_pnlMsgBox",
            FakeElement(name="msgbox", children={"#MsgBox_MsgBoxMessageText": [FakeElement(text=text)]}),
        )
        page.set(
            "#MsgBox_MsgBoxCancel",
            FakeElement(name="msgbox-close", on_click=lambda: page.remove("#MsgBox_pnlMsgBox", "#MsgBox_MsgBoxCancel")),
        )

    def _value(self, page: FakePage, selector: str) -> str:
        return page.elements[selector][0].value

    # Screens

    def show_login(self, page: FakePage, error: Optional[str] = None) -> None:
        self._reset(page, "", "login")
        page.add("input[type='text']", FakeElement(name="username"))
        page.add("input[type='password']", FakeElement(name="password"))
        page.add(
            "input[type='submit'], button:has-text('Login')",
            FakeElement(name="login", on_click=lambda: self._submit_login(page)),
        )
        page.add("#ucLogin_cvLogin", FakeElement(name="validator", text=error or "", visible=bool(error)))

    def _submit_login(self, page: FakePage) -> None:
        self.login_attempts += 1
        username = self._value(page, "input[type='text']")
        password = self._value(page, "input[type='password']")
        if username != self.username or password != self.password:
            self.show_login(page, error=self.rejection_message)
            return
        session_id = f"session-{self.login_attempts}"
        self.sessions.add(session_id)
        page.context.add_cookies([
            {"name": SESSION_COOKIE, "value": session_id, "domain": "hrms.example.test", "path": "/"},
        ])
        self.show_home(page)

    def show_home(self, page: FakePage) -> None:
        self._reset(page, "Home.aspx", "home")
        self._chrome(page)

    def show_regularize(self, page: FakePage, cycle: Optional[str] = None) -> None:
        self._reset(page, "AttRequest.aspx", "regularize")
        self._chrome(page)
        page.state["cycle"] = cycle
        page.state["popup_date"] = None
        page.add("#MiddleContent_gvRep", FakeElement(name="grid"))
        page.add(
            "#MiddleContent_ddlMonth",
            FakeElement(name="month", value=cycle or "", on_select=lambda value: self.show_regularize(page, value)),
        )
        if cycle is None:
            return

        for text, title in self._cells_for(cycle):
            page.add("#MiddleContent_gvRep td", FakeElement(text=text, attrs={"title": title}))

        for day in sorted(self.regularizable | self.disabled_links):
            if cycle_dropdown_value(day) != cycle:
                continue
            if day in self.disabled_links:
                attrs = {"disabled": "disabled"}
            else:
                attrs = {"href": f"javascript:__doPostBack('gvRep','Select${day.day}')"}
            page.add(
                "#MiddleContent_gvRep a",
                FakeElement(
                    name=f"link {day.isoformat()}",
                    text=date_link_label(day),
                    attrs=attrs,
                    on_click=lambda d=day: self._open_popup(page, d),
                ),
            )

    def _cells_for(self, cycle: str) -> List[Tuple[str, str]]:
        if cycle in self.regularize_cells:
            return self.regularize_cells[cycle]
        return [
            (f"{day.day}\n{code}", f"Date : {day:%d %b %Y}")
            for day, code in sorted(self.attendance.items())
            if cycle_dropdown_value(day) == cycle
        ]

    def _open_popup(self, page: FakePage, day: date) -> None:
        page.state["popup_date"] = day
        attrs = {"disabled": "disabled"} if day in self.locked else {}
        page.set("#MiddleContent_pnlPopup", FakeElement(name="popup"))
        page.set(
            "#MiddleContent_ddlShift",
            FakeElement(name="shift", value="S01", attrs=dict(attrs), options=["S01", "S02", "S03", "GEN"]),
        )
        page.set("#MiddleContent_txtIn_Time_txtTime", FakeElement(name="in-time", attrs=dict(attrs)))
        page.set("#MiddleContent_txtOut_Time_txtTime", FakeElement(name="out-time", attrs=dict(attrs)))
        page.set(
            "#MiddleContent_ddlLvType",
            FakeElement(name="status", attrs=dict(attrs), options=["PP", "PA", "AP"]),
        )
        page.set("#MiddleContent_txtRemarks", FakeElement(name="remarks"))
        page.set("#MiddleContent_btnOK", FakeElement(name="ok", on_click=lambda: self._submit_popup(page)))
        page.set("#MiddleContent_btnCancel", FakeElement(name="cancel", on_click=lambda: self._close_popup(page)))

    def _close_popup(self, page: FakePage) -> None:
        page.remove(*POPUP_SELECTORS)
        page.state["popup_date"] = None

    def _submit_popup(self, page: FakePage) -> None:
        self.dialogs.append(page.emit_dialog("Do you want to submit?"))
        day = page.state["popup_date"]
        status = self._value(page, "#MiddleContent_ddlLvType")
        self.submissions.append({
            "mode": "wfo",
            "date": day,
            "shift": self._value(page, "#MiddleContent_ddlShift"),
            "in_time": self._value(page, "#MiddleContent_txtIn_Time_txtTime"),
            "out_time": self._value(page, "#MiddleContent_txtOut_Time_txtTime"),
            "status": status,
            "remarks": self._value(page, "#MiddleContent_txtRemarks"),
        })
        self.attendance[day] = status
        self._close_popup(page)
        self._show_message(page, self.submit_message)

    def show_apply_leave(self, page: FakePage) -> None:
        self._reset(page, "LvApply.aspx", "apply_leave")
        self._chrome(page)
        page.add("#MiddleContent_ddlLvType", FakeElement(name="leave-type", options=["C", "S", "G"]))
        page.add("#MiddleContent_calLvFrom_textBox", FakeElement(name="from"))
        page.add("#MiddleContent_calLvTo_textBox", FakeElement(name="to"))
        page.add("#MiddleContent_ddlLvFromHDy", FakeElement(name="half-day", value="0", options=["0", "1", "2"]))
        page.add("#MiddleContent_txtReason", FakeElement(name="reason"))
        page.add("#MiddleContent_btnSubmit", FakeElement(name="submit", on_click=lambda: self._submit_leave(page)))

    def _submit_leave(self, page: FakePage) -> None:
        self.dialogs.append(page.emit_dialog("Do you want to apply?"))
        reason = self._value(page, "#MiddleContent_txtReason")
        record = {
            "mode": "wfh",
            "leave_type": self._value(page, "#MiddleContent_ddlLvType"),
            "from": self._value(page, "#MiddleContent_calLvFrom_textBox"),
            "to": self._value(page, "#MiddleContent_calLvTo_textBox"),
            "half_day": self._value(page, "#MiddleContent_ddlLvFromHDy"),
            "reason": reason,
        }
        self.submissions.append(record)
        if not reason.strip():
            self._show_message(page, "Reason is mandatory for Work from home")
            return

        day, month, year = (int(part) for part in record["from"].split("/"))
        applied = date(year, month, day)
        previous = self.attendance.get(applied, "AA")
        pattern = WFH_HALF_CODES[record["half_day"]]
        self.attendance[applied] = "".join(
            prior if new == "?" else new for new, prior in zip(pattern, previous)
        )
        self._show_message(page, "Leave applied successfully.")

    def show_leave_status(self, page: FakePage) -> None:
        self._reset(page, "LvAppStatus.aspx", "leave_status")
        self._chrome(page)
        page.add("#MiddleContent_ddlStatus", FakeElement(name="status"))
        page.add("#MiddleContent_gvRep", FakeElement(name="grid"))
        page.add("#MiddleContent_gvRep tr", FakeElement(name="header", children={"th": [FakeElement(text="Sr")]}))
        for row in self.leave_rows:
            page.add(
                "#MiddleContent_gvRep tr",
                FakeElement(children={"td": [FakeElement(text=cell) for cell in row]}),
            )

    def show_profile(self, page: FakePage) -> None:
        self._reset(page, "MyProfile.aspx", "profile")
        self._chrome(page)
        labels = []
        for index, (label, value) in enumerate(self.profile_fields):
            label_id = f"MiddleContent_ucGeneralInfo_lstGeneralInfo_lblField_{index}"
            labels.append(FakeElement(text=label, attrs={"id": label_id}))
            page.add(f"#{label_id.replace('lblField', 'txtField')}", FakeElement(text=value))
        page.add(
            "#MiddleContent_ucGeneralInfo_lstGeneralInfo",
            FakeElement(name="general-info", children={"span[id*='lblField_']": labels}),
        )


def leave_row(start: str, end: str, leave_type: str) -> List[str]:
    """A ten-column leave status row with from/to/type in their fixed columns."""
    row = [""] * 10
    row[0] = "1"
    row[4] = start
    row[5] = end
    row[7] = leave_type
    return row


def sign_in(portal: FakePortal, page: FakePage) -> None:
    """Put page on the home screen with a valid session cookie, bypassing the form."""
    portal.sessions.add("session-preset")
    page.context.add_cookies([
        {"name": SESSION_COOKIE, "value": "session-preset", "domain": "hrms.example.test", "path": "/"},
    ])
    portal.show_home(page)


class StatusRecorder:
    """Status callback that keeps every (message, level, advance) event."""

    def __init__(self, on_event: Optional[Callable[[str], None]] = None):
        self.events: List[Tuple[str, str, bool]] = []
        self.on_event = on_event

    def __call__(self, message: str, level: str, advance: bool) -> None:
        self.events.append((message, level, advance))
        if self.on_event:
            self.on_event(message)

    @property
    def messages(self) -> List[str]:
        return [message for message, _, _ in self.events]

    def level_of(self, message: str) -> str:
        return next(level for text, level, _ in self.events if text == message)
