"""
Utility functions for attendance regularization automation.
"""
import logging
import sys
import time
from datetime import datetime
from functools import wraps
from pathlib import Path
from typing import Any, Callable, Optional

from cera_regularize.exceptions import OperationCancelled

logger = logging.getLogger(__name__)

# (message, level, advance progress)
StatusCallback = Callable[[str, str, bool], None]


class ColoredFormatter(logging.Formatter):
    """Custom formatter that adds colors to log levels."""
    COLORS = {
        "DEBUG": "\033[94m",      # Blue
        "INFO": "\033[92m",       # Green
        "WARNING": "\033[93m",    # Yellow
        "ERROR": "\033[91m",      # Red
        "CRITICAL": "\033[91m",   # Red
        "RESET": "\033[0m",       # Reset to default color
    }

    def format(self, record):
        log_message = super().format(record)
        color = self.COLORS.get(record.levelname, self.COLORS["RESET"])
        return f"{color}{log_message}{self.COLORS['RESET']}"


def setup_logging(verbose: bool = False, log_file: Optional[str] = None) -> None:
    """
    Set up logging configuration with colored output.

    Args:
        verbose: If True, set log level to DEBUG
        log_file: Optional path to log file
    """
    log_level = logging.DEBUG if verbose else logging.INFO
    fmt = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(ColoredFormatter(fmt))
    handlers = [stream_handler]

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(fmt))
        handlers.append(file_handler)

    logging.basicConfig(level=log_level, format=fmt, handlers=handlers)


def retry(
    max_attempts: int = 2,
    delay: float = 0.0,
    backoff: float = 2.0,
    on_failure: Optional[Callable[[Exception], Any]] = None,
):
    """
    Decorator for retrying a function on failure.

    Args:
        max_attempts: Maximum number of attempts
        delay: Initial delay between attempts in seconds
        backoff: Multiplier for delay after each attempt
        on_failure: Called with the exception after every failed attempt,
            before the next one starts (e.g. to tear down browser state)

    Example:
        @retry(max_attempts=2, on_failure=lambda exc: session.reset())
        def check():
            ...
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            current_delay = delay
            last_exception = None

            for attempt in range(max_attempts):
                try:
                    return func(*args, **kwargs)
                except OperationCancelled:
                    raise
                except Exception as e:
                    last_exception = e
                    if on_failure is not None:
                        on_failure(e)
                    if attempt < max_attempts - 1:
                        logger.warning(
                            f"Attempt {attempt + 1} failed for {func.__name__}: {e}. "
                            f"Retrying in {current_delay} seconds..."
                        )
                        if current_delay > 0:
                            time.sleep(current_delay)
                        current_delay *= backoff
                    else:
                        logger.error(f"All {max_attempts} attempts failed for {func.__name__}")

            raise last_exception
        return wrapper
    return decorator


def emit_status(callback: Optional[StatusCallback], message: str, level: str = "info", advance: bool = False) -> None:
    """
    Forward a progress message to the UI sink.

    The sink is best-effort: its failures are logged and never reach the engine.
    """
    if callback is None:
        return
    try:
        callback(message, str(getattr(level, "value", level)), advance)
    except Exception as e:
        logger.debug(f"Status callback raised, ignoring: {e}")


def check_cancelled(token: Any) -> None:
    """Raise OperationCancelled if the token (anything with is_set()) is set."""
    if token is not None and token.is_set():
        raise OperationCancelled("Operation cancelled")


def initials_from_name(name: Optional[str]) -> str:
    """
    Derive up to two upper-case initials from a display name.

    Examples:
        "John Smith" -> "JS"
        "john.smith" -> "JS"
        "Jo" -> "JO"
    """
    if not name or not name.strip():
        return ""

    parts = name.replace("_", " ").replace(".", " ").split()
    if not parts:
        return ""
    if len(parts) == 1:
        return parts[0][:2].upper()
    return (parts[0][0] + parts[1][0]).upper()


def name_from_login_info(text: Optional[str]) -> Optional[str]:
    """
    Extract the display name from the portal banner, e.g. "Welcome, Jane Doe (1234)".
    """
    if not text or not text.strip():
        return None
    after_comma = text.split(",", 1)[1] if "," in text else text
    cleaned = after_comma.split("(")[0].strip()
    return cleaned or None


def ensure_directory(path: str) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Path to the directory

    Returns:
        Path object for the directory
    """
    dir_path = Path(path)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path


def get_screenshot_path(suffix: str = "", directory: str = "screenshots") -> str:
    """
    Generate a timestamped screenshot path.

    Args:
        suffix: Optional suffix for the filename
        directory: Directory the screenshot is written to

    Returns:
        Path string for the screenshot
    """
    screenshots_dir = ensure_directory(directory)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    suffix_str = f"_{suffix}" if suffix else ""
    return str(screenshots_dir / f"portal{suffix_str}_{timestamp}.png")
