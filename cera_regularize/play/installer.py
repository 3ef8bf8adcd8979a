"""
Makes sure a Chromium build is available to Playwright before first launch.
"""
import logging
import os
import subprocess
import sys
import threading
from pathlib import Path
from typing import Optional

import playwright

logger = logging.getLogger(__name__)

_install_lock = threading.Lock()
_installed = False


def resolve_browser_cache_path() -> Optional[Path]:
    """
    Directory Playwright installs browsers into.

    PLAYWRIGHT_BROWSERS_PATH overrides the per-user cache; "0" means the
    directory inside the playwright package.
    """
    override = (os.getenv("PLAYWRIGHT_BROWSERS_PATH") or "").strip()
    if override == "0":
        return Path(playwright.__file__).parent / "driver" / "package" / ".local-browsers"
    if override:
        return Path(override).expanduser().resolve()

    if sys.platform.startswith("win"):
        local = os.getenv("LOCALAPPDATA")
        return Path(local) / "ms-playwright" if local else None
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Caches" / "ms-playwright"
    cache_root = os.getenv("XDG_CACHE_HOME")
    return (Path(cache_root) if cache_root else Path.home() / ".cache") / "ms-playwright"


def is_installed() -> bool:
    global _installed
    if _installed:
        return True

    cache_path = resolve_browser_cache_path()
    try:
        if cache_path is None or not cache_path.is_dir() or not any(cache_path.iterdir()):
            return False
    except OSError:
        return False

    _installed = True
    return True


def ensure_browsers_installed() -> None:
    """
    Install Chromium with ``python -m playwright install chromium`` if the
    browser cache is empty. Runs at most once per process.

    Raises:
        RuntimeError: If the install command fails
    """
    global _installed
    if is_installed():
        return

    with _install_lock:
        if is_installed():
            return

        logger.info("Ensuring Playwright browsers are installed")
        completed = subprocess.run(
            [sys.executable, "-m", "playwright", "install", "chromium"],
            capture_output=True,
            text=True,
        )
        if completed.returncode != 0:
            logger.error(f"Playwright install output: {completed.stderr.strip()}")
            raise RuntimeError(f"Playwright installation failed with exit code {completed.returncode}.")

        _installed = True
        logger.info("Playwright browsers verified")
