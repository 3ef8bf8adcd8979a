"""
Page Object Model for the Leave Status screen.
"""
import logging
from typing import Iterator, List

from playwright.sync_api import Error as PlaywrightError, Locator, Page

from cera_regularize.history_parser import LEAVE_MIN_COLUMNS
from cera_regularize.play.pages.base_page import BasePage
from cera_regularize.play.pages.regularize_page import read_cell_text

logger = logging.getLogger(__name__)


class LeaveStatusPage(BasePage):
    """Represents the flat table of submitted leave applications."""

    URL_MARKER = "lvappstatus.aspx"

    GRID_SELECTOR = "#MiddleContent_gvRep"
    ROW_SELECTOR = "#MiddleContent_gvRep tr"
    STATUS_SELECTOR = "#MiddleContent_ddlStatus"

    def __init__(self, page: Page):
        super().__init__(page)

    @property
    def grid(self) -> Locator:
        return self.page.locator(self.GRID_SELECTOR)

    @property
    def status_dropdown(self) -> Locator:
        return self.page.locator(self.STATUS_SELECTOR)

    def is_current(self) -> bool:
        """True if the page is already the Leave Status screen."""
        if self.URL_MARKER in (self.page.url or "").lower():
            return True
        return self.is_present(self.status_dropdown) and self.is_present(self.grid)

    def iter_rows(self) -> Iterator[List[str]]:
        """
        Yield the cell texts of every data row, skipping the header row.

        Rows too short to carry the from/to/type columns are yielded as
        blanks without reading their cells; the parser drops them.
        """
        rows = self.page.locator(self.ROW_SELECTOR)
        try:
            count = rows.count()
        except PlaywrightError as e:
            logger.warning(f"Leave status grid not readable: {e}")
            return

        for index in range(1, count):
            cells = rows.nth(index).locator("td")
            try:
                cell_count = cells.count()
            except PlaywrightError:
                continue
            if cell_count < LEAVE_MIN_COLUMNS:
                yield [""] * cell_count
                continue
            yield [read_cell_text(cells.nth(column)) for column in range(cell_count)]
