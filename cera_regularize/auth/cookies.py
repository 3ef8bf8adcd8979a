"""
Cookie persistence for the portal session.

The browser context's cookies are written to a JSON array after every
successful authenticated operation and loaded into each new context, so a
restart can reuse the portal session instead of logging in again. Both
directions are best-effort: a stale or missing cookie file only costs one
extra login.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Union

from playwright.sync_api import BrowserContext

logger = logging.getLogger(__name__)

COOKIE_FILE_NAME = "hrms_session.json"


def read_cookie_file(path: Union[str, Path]) -> List[Dict[str, Any]]:
    """
    Read cookies from the persistence file.

    Args:
        path: Path to the cookie file

    Returns:
        List of cookie dicts; empty if the file is missing or unreadable
    """
    cookie_path = Path(path)
    if not cookie_path.exists():
        return []

    try:
        data = json.loads(cookie_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(f"Ignoring unreadable cookie file {cookie_path}: {e}")
        return []

    if not isinstance(data, list):
        logger.warning(f"Ignoring cookie file {cookie_path}: expected a JSON array")
        return []

    return [
        cookie for cookie in data
        if isinstance(cookie, dict) and cookie.get("name") and "value" in cookie
    ]


def load_cookies(context: BrowserContext, path: Union[str, Path]) -> int:
    """
    Load persisted cookies into a fresh browser context.

    Args:
        context: The Playwright BrowserContext to populate
        path: Path to the cookie file

    Returns:
        Number of cookies loaded (0 when nothing usable was found)
    """
    cookies = read_cookie_file(path)
    if not cookies:
        return 0

    try:
        context.add_cookies(cookies)
    except Exception as e:
        logger.warning(f"Failed to load persisted cookies: {e}")
        return 0

    logger.debug(f"Loaded {len(cookies)} cookies from {path}")
    return len(cookies)


def save_cookies(context: BrowserContext, path: Union[str, Path]) -> bool:
    """
    Persist the context's cookies to disk.

    Args:
        context: The Playwright BrowserContext to read cookies from
        path: Path to the cookie file

    Returns:
        True if the file was written, False otherwise (the failure is logged)
    """
    cookie_path = Path(path)
    try:
        cookies = context.cookies()
        cookie_path.parent.mkdir(parents=True, exist_ok=True)
        cookie_path.write_text(json.dumps(cookies, indent=2), encoding="utf-8")
        logger.debug(f"Saved {len(cookies)} cookies to {cookie_path}")
        return True
    except Exception as e:
        logger.warning(f"Failed to save cookies to {cookie_path}: {e}")
        return False
