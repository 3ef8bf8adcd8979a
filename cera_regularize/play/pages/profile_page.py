"""
Page Object Model for Profile > Personal Detail > General Detail.
"""
import logging
from typing import Optional

from playwright.sync_api import Error as PlaywrightError, Locator, Page

from cera_regularize.play.pages.base_page import BasePage
from cera_regularize.regularize_models import ProfileSummary

logger = logging.getLogger(__name__)

# Normalised label -> ProfileSummary field
PROFILE_FIELDS = {
    "employee id": "employee_id",
    "employee name": "employee_name",
    "designation": "designation",
    "reporting manager": "reporting_manager",
}


def normalize_profile_label(label: Optional[str]) -> str:
    """Lower-case a label and drop everything but letters, digits and spaces."""
    if not label:
        return ""
    cleaned = "".join(c for c in label if c.isalnum() or c.isspace())
    return " ".join(cleaned.split()).lower()


class ProfilePage(BasePage):
    """Represents the General Detail key/value table of the employee profile."""

    URL_MARKER = "myprofile.aspx"
    TABLE_SELECTOR = "#MiddleContent_ucGeneralInfo_lstGeneralInfo"
    LABEL_SELECTOR = "span[id*='lblField_']"

    def __init__(self, page: Page):
        super().__init__(page)

    @property
    def table(self) -> Locator:
        return self.page.locator(self.TABLE_SELECTOR)

    def is_current(self) -> bool:
        if self.URL_MARKER in (self.page.url or "").lower():
            return True
        return self.is_present(self.table)

    def read_summary(self) -> Optional[ProfileSummary]:
        """
        Read the four summary fields from the General Detail table.

        Each label span has a sibling value element whose id swaps
        "lblField" for "txtField".

        Returns:
            The summary, or None if the table has no labels or cannot be read
        """
        try:
            self.table.wait_for(state="visible", timeout=15000)
            labels = self.table.locator(self.LABEL_SELECTOR).all()
        except PlaywrightError as e:
            logger.warning(f"Profile summary parse failed: {e}")
            return None

        if not labels:
            return None

        summary = ProfileSummary()
        for label in labels:
            try:
                field = PROFILE_FIELDS.get(normalize_profile_label(label.inner_text()))
                label_id = label.get_attribute("id")
                if not field or not label_id:
                    continue
                value = self.page.locator(f"#{label_id.replace('lblField', 'txtField')}")
                if value.count() == 0:
                    continue
                setattr(summary, field, (value.first.inner_text() or "").strip())
            except PlaywrightError as e:
                logger.debug(f"Skipping unreadable profile field: {e}")

        return summary
