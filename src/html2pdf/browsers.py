"""Management of headless-shell builds in the local Playwright cache."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys
from pathlib import Path

from .constraint import DEFAULT_BROWSER_CACHE, HEADLESS_SHELL_INSTALL_NAME
from .errors import InstallError
from .locator import InstalledBrowser, find_headless_shells

logger = logging.getLogger(__name__)


def list_installed(cache_dir: Path | None = None) -> list[InstalledBrowser]:
    return find_headless_shells(cache_dir)


def clear_cache(cache_dir: Path | None = None) -> bool:
    cache_dir = cache_dir or DEFAULT_BROWSER_CACHE
    if not cache_dir.exists():
        return False
    shutil.rmtree(cache_dir)
    logger.info("Removed browser cache %s", cache_dir)
    return True


def install_headless_shell(cache_dir: Path | None = None, *, force: bool = False) -> InstalledBrowser:
    cache_dir = cache_dir or DEFAULT_BROWSER_CACHE
    existing = find_headless_shells(cache_dir)
    if existing and not force:
        logger.info("chromium-headless-shell is already installed (build %s)", existing[0].build_id)
        return existing[0]

    command = [sys.executable, "-m", "playwright", "install", HEADLESS_SHELL_INSTALL_NAME]
    if force:
        command.append("--force")
    logger.info("Downloading %s. This might take a few minutes.", HEADLESS_SHELL_INSTALL_NAME)
    env = dict(os.environ)
    env["PLAYWRIGHT_BROWSERS_PATH"] = str(cache_dir)
    result = subprocess.run(command, capture_output=True, text=True, env=env)
    if result.returncode != 0:
        raise InstallError(f"playwright install failed ({result.returncode}): {result.stderr.strip()}")

    installed = find_headless_shells(cache_dir)
    if not installed:
        raise InstallError(f"playwright install finished but no headless shell was found in {cache_dir}")
    return installed[0]


__all__ = ["clear_cache", "install_headless_shell", "list_installed"]
