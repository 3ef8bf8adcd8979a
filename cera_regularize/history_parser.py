"""
Attendance history reconciliation.

Two independent passes feed a per-day map keyed by ISO date:

* the regularize report, a calendar grid whose cells carry a date and a
  two-letter attendance code in loosely structured text and title attributes;
* the leave status table, a flat list of submitted leave applications.

The parsing and merge functions here are pure and work on plain strings;
only the ``collect_*`` methods touch page objects.
"""
import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from cera_regularize.attendance_cycle import cycle_dropdown_value
from cera_regularize.regularize_models import AttendanceCategory, AttendanceHistoryEntry
from cera_regularize.utils import check_cancelled

logger = logging.getLogger(__name__)

ALLOWED_CODE_LETTERS = frozenset("ACDEHLOPWRTBGS")

CALENDAR_DATE_FORMATS = ("%d %b %Y",)
LEAVE_STATUS_DATE_FORMATS = ("%d.%b.%Y", "%d %b %Y")

# Leave status data row layout
LEAVE_FROM_COLUMN = 4
LEAVE_TO_COLUMN = 5
LEAVE_TYPE_COLUMN = 7
LEAVE_MIN_COLUMNS = 10

DATE_MARKER = "date :"
LEAVE_TYPE_MARKER = "leave type :"

LETTER_CATEGORIES = {
    "A": AttendanceCategory.ABSENT,
    "W": AttendanceCategory.WEEKEND,
    "H": AttendanceCategory.HOLIDAY,
    "P": AttendanceCategory.WFO,
    "G": AttendanceCategory.WFH,
}

# Checked in order against the title's leave type line
TITLE_CODE_PHRASES = (
    ("work from home", "GG"),
    ("weekly off", "WW"),
    ("present", "PP"),
    ("optional leave", "RR"),
    ("absent", "AA"),
)

# Checked in order against the leave status "leave type" column
LEAVE_TYPE_CATEGORIES = (
    ("work from home", AttendanceCategory.WFH),
    ("present", AttendanceCategory.WFO),
    ("weekly off", AttendanceCategory.WEEKEND),
    ("holiday", AttendanceCategory.HOLIDAY),
    ("absent", AttendanceCategory.ABSENT),
)

HistoryEntries = Dict[str, AttendanceHistoryEntry]


def _parse_with_formats(value: str, formats: Sequence[str]) -> Optional[date]:
    cleaned = (value or "").strip()
    if not cleaned:
        return None
    for fmt in formats:
        try:
            return datetime.strptime(cleaned, fmt).date()
        except ValueError:
            continue
    return None


def parse_calendar_date(value: str) -> Optional[date]:
    """Parse a regularize grid date such as "5 Mar 2024" or "05 Mar 2024"."""
    return _parse_with_formats(value, CALENDAR_DATE_FORMATS)


def parse_leave_status_date(value: str) -> Optional[date]:
    """Parse a leave status date, "05.Mar.2024" or "05 Mar 2024"."""
    return _parse_with_formats(value, LEAVE_STATUS_DATE_FORMATS)


def _first_line_after(text: str, marker: str) -> Optional[str]:
    """First line of text following a case-insensitive marker, or None."""
    if not text or not text.strip():
        return None
    index = text.lower().find(marker)
    if index < 0:
        return None
    segment = text[index + len(marker):].strip()
    if not segment:
        return None
    return segment.split("\n")[0].strip()


def extract_date_from_title(title: str) -> Optional[date]:
    """Date following a "Date :" marker in a cell's title attribute."""
    line = _first_line_after(title, DATE_MARKER)
    return parse_calendar_date(line) if line else None


def extract_date_from_segments(segments: Iterable[str]) -> Optional[date]:
    """
    Date from a cell's text lines: each line is tried whole, then scanned
    for any three consecutive tokens that form a date.
    """
    for segment in segments:
        parsed = parse_calendar_date(segment)
        if parsed:
            return parsed
        tokens = segment.split()
        for i in range(len(tokens) - 2):
            parsed = parse_calendar_date(" ".join(tokens[i:i + 3]))
            if parsed:
                return parsed
    return None


def split_segments(text: str) -> List[str]:
    """Non-empty, trimmed lines of a cell's visible text."""
    normalized = (text or "").replace("\r", "").replace("\u00a0", " ")
    return [line.strip() for line in normalized.split("\n") if line.strip()]


def extract_code_from_fragment(fragment: str) -> Optional[str]:
    """
    First one- or two-letter token made only of allowed code letters.

    Single letters are doubled, so "P" reads as "PP" (both halves).
    """
    for token in fragment.replace(":", " ").replace("/", " ").split():
        cleaned = "".join(c for c in token.upper() if c.isalpha())
        if not cleaned or len(cleaned) > 2:
            continue
        if all(c in ALLOWED_CODE_LETTERS for c in cleaned):
            return (cleaned * 2)[:2] if len(cleaned) == 1 else cleaned
    return None


def half_day_code_from_leave_type(line: str) -> Optional[str]:
    """
    Code for a "1/2"-qualified leave type such as
    "1/2 Present + 1/2 Casual Leave".

    The order the two categories appear in decides which half each covers.
    """
    lowered = (line or "").lower()
    if "1/2" not in lowered:
        return None

    matches: List[Tuple[int, str]] = []
    absent = lowered.find("absent")
    if absent >= 0:
        matches.append((absent, "A"))

    leave_positions = [i for i in (lowered.find("casual"), lowered.find("sickness")) if i >= 0]
    if leave_positions:
        matches.append((min(leave_positions), "C"))

    wfh = lowered.find("work from home")
    if wfh >= 0:
        matches.append((wfh, "G"))

    present = lowered.find("present")
    if present >= 0:
        matches.append((present, "P"))

    if len(matches) < 2:
        return None
    matches.sort()
    return matches[0][1] + matches[1][1]


def code_from_title(title: str) -> Optional[str]:
    """Attendance code derived from the "Leave Type :" line of a title attribute."""
    line = _first_line_after(title, LEAVE_TYPE_MARKER)
    if not line:
        return None

    half_day = half_day_code_from_leave_type(line)
    if half_day:
        return half_day

    lowered = line.lower()
    for phrase, code in TITLE_CODE_PHRASES:
        if phrase in lowered:
            return code

    letter = line[0].upper()
    return letter * 2 if letter in ALLOWED_CODE_LETTERS else None


def extract_code(segments: Iterable[str], title: str) -> Optional[str]:
    for segment in segments:
        code = extract_code_from_fragment(segment)
        if code:
            return code
    return code_from_title(title)


def letter_to_category(letter: str) -> AttendanceCategory:
    return LETTER_CATEGORIES.get(letter.upper(), AttendanceCategory.OTHER)


def code_to_categories(code: Optional[str]) -> Tuple[AttendanceCategory, AttendanceCategory]:
    """
    Map a two-letter code to (first half, second half) categories.

    Examples:
        "AG" -> (absent, wfh)
        "P"  -> (wfo, wfo)
    """
    if not code or not code.strip():
        return AttendanceCategory.NONE, AttendanceCategory.NONE
    code = code.strip()
    if len(code) == 1:
        code = code * 2
    return letter_to_category(code[0]), letter_to_category(code[1])


def code_has_absent(code: Optional[str]) -> bool:
    return "A" in (code or "").upper()


def category_for_leave_type(value: str) -> Optional[AttendanceCategory]:
    """Category for a leave status "leave type" label; None when the label is empty."""
    lowered = (value or "").strip().lower()
    if not lowered:
        return None
    for phrase, category in LEAVE_TYPE_CATEGORIES:
        if phrase in lowered:
            return category
    return AttendanceCategory.OTHER


def _sample(text: str, title: str) -> str:
    def _flat(value: str) -> str:
        return (value or "").replace("\r", "").replace("\n", " ").replace("\u00a0", " ").strip()
    return f"text='{_flat(text)}' title='{_flat(title)}'"


def _date_range(start: date, end: date) -> Iterator[date]:
    cursor = start
    while cursor <= end:
        yield cursor
        cursor += timedelta(days=1)


def merge_entries(base: HistoryEntries, overlay: HistoryEntries) -> HistoryEntries:
    """
    Merge leave status entries into regularize entries.

    Only days the regularize pass flagged with an absent half are touched,
    and within those only the absent halves are replaced. Neither input is
    modified.

    Args:
        base: Entries from the regularize report
        overlay: Entries from the leave status table

    Returns:
        A new merged mapping
    """
    merged = dict(base)
    for key, incoming in overlay.items():
        existing = merged.get(key)
        if incoming is None or existing is None or not existing.has_absent:
            continue

        first = _merge_half(existing.first, incoming.first)
        second = _merge_half(existing.second, incoming.second)
        merged[key] = AttendanceHistoryEntry(
            first=first,
            second=second,
            source="leave_status",
            has_absent=AttendanceCategory.ABSENT in (first, second),
        )
    return merged


def _merge_half(original: AttendanceCategory, incoming: AttendanceCategory) -> AttendanceCategory:
    if original == AttendanceCategory.ABSENT and incoming != AttendanceCategory.NONE:
        return incoming
    return original


class AttendanceHistoryParser:
    """Parses both history sources for one lookback window."""

    def __init__(self, range_start: date, range_end: date):
        self.range_start = range_start
        self.range_end = range_end

    def in_range(self, day: date) -> bool:
        return self.range_start <= day <= self.range_end

    def cycle_option_values(self) -> List[str]:
        """Distinct month dropdown values covering the window's start and end."""
        values: List[str] = []
        for day in (self.range_start, self.range_end):
            value = cycle_dropdown_value(day)
            if value not in values:
                values.append(value)
        return values

    def parse_regularize_cells(
        self,
        cells: Iterable[Tuple[str, str]],
        cancel_token: Any = None,
    ) -> HistoryEntries:
        """
        Parse (visible text, title) pairs from one regularize grid cycle.

        Cells without a recoverable date or code, or outside the window,
        are skipped.
        """
        entries: HistoryEntries = {}
        samples: List[str] = []

        for text, title in cells:
            check_cancelled(cancel_token)
            if len(samples) < 3:
                samples.append(_sample(text, title))

            segments = split_segments(text)
            title = (title or "").replace("\r", "")
            if not segments and not title.strip():
                continue

            day = extract_date_from_title(title) or extract_date_from_segments(segments)
            if day is None or not self.in_range(day):
                continue

            code = extract_code(segments, title)
            if not code:
                continue

            first, second = code_to_categories(code)
            entries[day.isoformat()] = AttendanceHistoryEntry(
                first=first,
                second=second,
                source="regularize",
                has_absent=code_has_absent(code),
            )

        if not entries and samples:
            logger.warning(f"Regularize parse yielded 0 entries. Sample cells: {' | '.join(samples)}")
        return entries

    def parse_leave_status_rows(
        self,
        rows: Iterable[Sequence[str]],
        cancel_token: Any = None,
    ) -> HistoryEntries:
        """
        Parse leave status data rows (header already skipped).

        Each usable row stamps every day of its from/to range, clipped to the
        window, with its category for both halves.
        """
        entries: HistoryEntries = {}
        for cells in rows:
            check_cancelled(cancel_token)
            if len(cells) < LEAVE_MIN_COLUMNS:
                continue

            start = parse_leave_status_date(cells[LEAVE_FROM_COLUMN])
            end = parse_leave_status_date(cells[LEAVE_TO_COLUMN])
            if start is None or end is None:
                continue

            category = category_for_leave_type(cells[LEAVE_TYPE_COLUMN])
            if category is None:
                continue

            for day in _date_range(start, end):
                if self.in_range(day):
                    entries[day.isoformat()] = AttendanceHistoryEntry(
                        first=category,
                        second=category,
                        source="leave_status",
                    )
        return entries

    def collect_regularize_entries(self, regularize_page, cancel_token: Any = None) -> HistoryEntries:
        """
        Walk every cycle in the window on the Regularize screen and parse its grid.

        Args:
            regularize_page: A RegularizePage already showing the screen
            cancel_token: Optional object with is_set()
        """
        entries: HistoryEntries = {}
        for option in self.cycle_option_values():
            check_cancelled(cancel_token)
            regularize_page.select_cycle(option)
            chunk = self.parse_regularize_cells(regularize_page.iter_grid_cells(), cancel_token)
            logger.debug(f"Regularize cycle {option} yielded {len(chunk)} entries")
            entries.update(chunk)
        return entries

    def collect_leave_status_entries(self, leave_status_page, cancel_token: Any = None) -> HistoryEntries:
        """Parse the Leave Status table currently shown by leave_status_page."""
        check_cancelled(cancel_token)
        return self.parse_leave_status_rows(leave_status_page.iter_rows(), cancel_token)
