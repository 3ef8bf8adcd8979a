"""
Configuration management for the attendance regularization automation.

Values are resolved with the precedence:
explicit argument > environment variable > stored config > default.
"""
import os
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from dotenv import load_dotenv

load_dotenv()  # Load .env file if it exists

logger = logging.getLogger(__name__)

DEFAULT_PORTAL_URL = "https://in.megasoftsol.com/eHRMS/CERAGON/Login.aspx?CID=CERAGON"
DEFAULT_SHIFT = "S02"
DEFAULT_WFO_REMARKS = "Working from Office"
DEFAULT_WFH_REMARKS = "Working from Home"
APP_FOLDER_NAME = "CeraRegularize"

# Shift code -> (in time, out time) in HHMM
SHIFT_DEFAULTS: Dict[str, Tuple[str, str]] = {
    "S01": ("0800", "2000"),
    "S02": ("0900", "1800"),
    "S03": ("2000", "0800"),
    "GEN": ("0900", "1800"),
}

_TRUE_VALUES = {"1", "true", "yes"}


def get_bool_env(name: str) -> Optional[bool]:
    """Read a boolean environment variable; unset or blank means None."""
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip().lower() in _TRUE_VALUES


def get_int_env(name: str) -> Optional[int]:
    """Read an integer environment variable; unset or malformed means None."""
    value = os.getenv(name)
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        logger.warning(f"Ignoring non-integer value for {name}: {value!r}")
        return None


def get_data_dir() -> Path:
    """
    Get the per-user application data directory, creating it if needed.

    Returns:
        Path to the data directory
    """
    override = os.getenv("ATT_DATA_DIR")
    if override and override.strip():
        target = Path(override.strip()).expanduser()
    else:
        root = os.getenv("LOCALAPPDATA") or os.getenv("XDG_DATA_HOME")
        base = Path(root) if root else Path.home() / ".local" / "share"
        target = base / APP_FOLDER_NAME
    try:
        target.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.warning(f"Could not create data directory {target}: {e}")
    return target


def get_app_config() -> Dict[str, Any]:
    """
    Get application configuration settings from the environment.

    Returns:
        Dictionary with application configuration
    """
    cookies_path = os.getenv("ATT_COOKIES_PATH")
    slow_mo = get_int_env("ATT_SLOW_MO_MS")
    if slow_mo is None:
        slow_mo = get_int_env("ATT_SLOW_MO")
    return {
        "portal_url": os.getenv("PORTAL_URL") or DEFAULT_PORTAL_URL,
        "headless": get_bool_env("ATT_HEADLESS"),
        "slow_mo": slow_mo,
        "default_timeout": get_int_env("ATT_TIMEOUT_MS") or 30000,
        "cookies_path": Path(cookies_path) if cookies_path else get_data_dir() / "hrms_session.json",
        "screenshot_on_error": bool(get_bool_env("ATT_SCREENSHOT_ON_ERROR")),
    }


def normalize_shift(shift: Optional[str]) -> str:
    """Return a known shift code, falling back to the default shift."""
    code = (shift or "").strip().upper()
    return code if code in SHIFT_DEFAULTS else DEFAULT_SHIFT


def shift_times(shift: Optional[str]) -> Tuple[str, str]:
    """Default (in time, out time) for a shift code."""
    return SHIFT_DEFAULTS[normalize_shift(shift)]


@dataclass
class PortalConfig:
    """Per-user fields the automation consumes on every run."""
    username: str = ""
    password: str = ""
    shift: str = DEFAULT_SHIFT
    in_time: str = SHIFT_DEFAULTS[DEFAULT_SHIFT][0]
    out_time: str = SHIFT_DEFAULTS[DEFAULT_SHIFT][1]
    wfo_remarks: str = DEFAULT_WFO_REMARKS
    wfh_remarks: str = DEFAULT_WFH_REMARKS
    headless: bool = False
    slow_mo: int = 0
    portal_url: str = DEFAULT_PORTAL_URL

    @property
    def has_credentials(self) -> bool:
        return bool(self.username.strip()) and bool(self.password.strip())


def _first_present(*candidates: Any) -> Any:
    for candidate in candidates:
        if candidate is None:
            continue
        if isinstance(candidate, str) and not candidate.strip():
            continue
        return candidate
    return None


def refresh_config_from_environment(
    explicit: Optional[Mapping[str, Any]] = None,
    stored: Optional[Mapping[str, Any]] = None,
) -> PortalConfig:
    """
    Resolve a PortalConfig from explicit values, the environment and stored config.

    Calling this repeatedly with the same inputs yields the same result.

    Args:
        explicit: Values supplied directly by the caller (constructor or call arguments)
        stored: Values loaded by the external config store

    Returns:
        A fully populated PortalConfig
    """
    explicit = explicit or {}
    stored = stored or {}
    app_config = get_app_config()
    defaults = PortalConfig()

    username = _first_present(explicit.get("username"), os.getenv("ATT_USERNAME"), stored.get("username"))
    password = _first_present(explicit.get("password"), os.getenv("ATT_PASSWORD"), stored.get("password"))

    shift = normalize_shift(_first_present(explicit.get("shift"), stored.get("shift"), defaults.shift))
    default_in, default_out = SHIFT_DEFAULTS[shift]
    in_time = _first_present(explicit.get("in_time"), stored.get("in_time"), default_in)
    out_time = _first_present(explicit.get("out_time"), stored.get("out_time"), default_out)

    headless = _first_present(explicit.get("headless"), app_config["headless"], stored.get("headless"), defaults.headless)
    slow_mo = _first_present(explicit.get("slow_mo"), app_config["slow_mo"], stored.get("slow_mo"), defaults.slow_mo)
    portal_url = _first_present(explicit.get("portal_url"), os.getenv("PORTAL_URL"), stored.get("portal_url"), defaults.portal_url)

    return replace(
        defaults,
        username=(username or "").strip(),
        password=password or "",
        shift=shift,
        in_time=str(in_time).strip(),
        out_time=str(out_time).strip(),
        wfo_remarks=_first_present(explicit.get("wfo_remarks"), stored.get("wfo_remarks"), DEFAULT_WFO_REMARKS),
        wfh_remarks=_first_present(explicit.get("wfh_remarks"), stored.get("wfh_remarks"), DEFAULT_WFH_REMARKS),
        headless=bool(headless),
        slow_mo=int(slow_mo),
        portal_url=portal_url,
    )
