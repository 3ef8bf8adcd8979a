"""
Data models for the attendance regularization workflow.

These are dataclass models used during the Playwright automation process.
Credentials are held in plaintext only for the duration of a login attempt;
persisting them is the caller's concern.
"""
import enum
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Mapping, Optional, Tuple


class LoginStatus(str, enum.Enum):
    """Outcome of the most recent explicit login or session check."""
    NOT_VERIFIED = "login_not_verified"
    SUCCESSFUL = "login_successful"
    UNSUCCESSFUL = "login_unsuccessful"


class PortalState(enum.Enum):
    """Where the portal page currently is, as far as the session is concerned."""
    LOGIN_PAGE = "login_page"
    AUTHENTICATED_FRESH = "authenticated_fresh"
    AUTHENTICATED_BOOTSTRAPPED = "authenticated_bootstrapped"
    EXPIRED = "expired"


class AttendanceMode(str, enum.Enum):
    WFO = "wfo"
    WFH = "wfh"


class DaySpan(str, enum.Enum):
    FULL = "full"
    FIRST_HALF = "first_half"
    SECOND_HALF = "second_half"


class AttendanceCategory(str, enum.Enum):
    NONE = "none"
    ABSENT = "absent"
    WEEKEND = "weekend"
    HOLIDAY = "holiday"
    WFO = "wfo"
    WFH = "wfh"
    OTHER = "other"


class StatusLevel(str, enum.Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AssignmentStep(str, enum.Enum):
    """Progress of a single (date, span) assignment through a submission flow."""
    NOT_STARTED = "not_started"
    NAVIGATED = "navigated_to_screen"
    POPUP_OPENED = "popup_opened"
    FORM_FILLED = "form_filled"
    SUBMITTED = "submitted"
    PROGRESS_DRAINED = "progress_drained"
    DONE = "done"
    SKIPPED = "skipped"


@dataclass
class Credentials:
    """Portal username and password for a single login attempt."""
    username: str
    password: str

    @property
    def is_complete(self) -> bool:
        return bool(self.username and self.username.strip()) and bool(self.password and self.password.strip())


@dataclass
class AssignmentOutcome:
    """How far one assignment got, and why it stopped if it was skipped."""
    date: date
    mode: AttendanceMode
    span: DaySpan
    step: AssignmentStep = AssignmentStep.NOT_STARTED
    reason: Optional[str] = None
    portal_message: Optional[str] = None
    # Last step reached before a skip
    stopped_at: Optional[AssignmentStep] = None

    @property
    def skipped(self) -> bool:
        return self.step == AssignmentStep.SKIPPED

    def skip(self, reason: str) -> "AssignmentOutcome":
        self.stopped_at = self.step
        self.step = AssignmentStep.SKIPPED
        self.reason = reason
        return self


@dataclass
class OperationResult:
    """
    Result of a session-level operation (test login, liveness check).

    Mirrors the boolean-plus-message contract the desktop shell consumes.
    """
    success: bool
    message: str
    timestamp: datetime = field(default_factory=datetime.now)
    error: Optional[str] = None

    def __bool__(self) -> bool:
        return self.success


@dataclass
class AttendanceHistoryEntry:
    first: AttendanceCategory = AttendanceCategory.NONE
    second: AttendanceCategory = AttendanceCategory.NONE
    source: str = "regularize"
    has_absent: bool = False

    @property
    def halves(self) -> Tuple[AttendanceCategory, AttendanceCategory]:
        return self.first, self.second

    def to_dict(self) -> Dict[str, Any]:
        return {
            "first": self.first.value,
            "second": self.second.value,
            "source": self.source,
            "has_absent": self.has_absent,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AttendanceHistoryEntry":
        return cls(
            first=_category_or_none(data.get("first")),
            second=_category_or_none(data.get("second")),
            source=data.get("source") or "regularize",
            has_absent=bool(data.get("has_absent", False)),
        )


@dataclass
class AttendanceHistorySnapshot:
    """
    Reconciled per-day attendance for a fixed lookback window.

    Entries are keyed by ISO date string (YYYY-MM-DD). The caller owns
    persistence and diffing against earlier snapshots.
    """
    fetched_at: str
    range_start: date
    range_end: date
    entries: Dict[str, AttendanceHistoryEntry] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fetched_at": self.fetched_at,
            "range_start": self.range_start.isoformat(),
            "range_end": self.range_end.isoformat(),
            "entries": {key: entry.to_dict() for key, entry in sorted(self.entries.items())},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AttendanceHistorySnapshot":
        entries = {}
        for key, value in (data.get("entries") or {}).items():
            if isinstance(value, Mapping):
                entries[key] = AttendanceHistoryEntry.from_dict(value)
        return cls(
            fetched_at=data.get("fetched_at") or "",
            range_start=date.fromisoformat(data["range_start"]),
            range_end=date.fromisoformat(data["range_end"]),
            entries=entries,
        )


@dataclass
class ProfileSummary:
    employee_name: str = ""
    employee_id: str = ""
    designation: str = ""
    reporting_manager: str = ""

    @property
    def is_empty(self) -> bool:
        return not any(
            value.strip()
            for value in (self.employee_name, self.employee_id, self.designation, self.reporting_manager)
        )


def _category_or_none(value: Any) -> AttendanceCategory:
    try:
        return AttendanceCategory(str(value).strip().lower())
    except ValueError:
        return AttendanceCategory.NONE


def to_overlay_map(
    snapshot: Optional[AttendanceHistorySnapshot],
) -> Dict[date, Tuple[Optional[str], Optional[str]]]:
    """
    Convert a snapshot into the calendar overlay shape.

    Halves recorded as "none" become None so the calendar leaves them blank.
    Keys that are not ISO dates are dropped.
    """
    result: Dict[date, Tuple[Optional[str], Optional[str]]] = {}
    if snapshot is None:
        return result

    for key, entry in snapshot.entries.items():
        try:
            day = date.fromisoformat(key)
        except ValueError:
            continue
        first = None if entry.first == AttendanceCategory.NONE else entry.first.value
        second = None if entry.second == AttendanceCategory.NONE else entry.second.value
        result[day] = (first, second)
    return result
