from __future__ import annotations

import asyncio
import functools
import logging
import os
import shutil
import sys
from dataclasses import dataclass
from pathlib import Path

from .constraint import DEFAULT_BROWSER_CACHE, HEADLESS_SHELL_PREFIX
from .utils import compare_versions

logger = logging.getLogger(__name__)

MAC_PATHS = {
    "chromium": "/Applications/Chromium.app/Contents/MacOS/Chromium",
    "chrome": "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
}
LINUX_COMMANDS = {
    "chromium": ("chromium-browser", "chromium"),
    "chrome": ("google-chrome-stable", "google-chrome"),
}
WINDOWS_SUFFIXES = {
    "chromium": Path("Chromium") / "Application" / "chrome.exe",
    "chrome": Path("Google") / "Chrome" / "Application" / "chrome.exe",
}

_HEADLESS_SHELL_BINARIES = (
    Path("chrome-linux") / "headless_shell",
    Path("chrome-headless-shell-linux64") / "chrome-headless-shell",
    Path("chrome-mac") / "headless_shell",
    Path("chrome-headless-shell-mac-arm64") / "chrome-headless-shell",
    Path("chrome-headless-shell-mac-x64") / "chrome-headless-shell",
    Path("chrome-win") / "headless_shell.exe",
    Path("chrome-headless-shell-win64") / "chrome-headless-shell.exe",
)


@dataclass(slots=True)
class InstalledBrowser:
    name: str
    build_id: str
    executable_path: Path


def _headless_shell_executable(build_dir: Path) -> Path | None:
    for relative in _HEADLESS_SHELL_BINARIES:
        candidate = build_dir / relative
        if candidate.is_file():
            return candidate
    return None


def find_headless_shells(cache_dir: Path | None = None) -> list[InstalledBrowser]:
    """List cached headless-shell builds, newest first."""

    cache_dir = cache_dir or DEFAULT_BROWSER_CACHE
    try:
        entries = list(cache_dir.iterdir())
    except OSError:
        return []
    found: list[InstalledBrowser] = []
    for entry in entries:
        if not entry.is_dir() or not entry.name.startswith(HEADLESS_SHELL_PREFIX):
            continue
        executable = _headless_shell_executable(entry)
        if executable is None:
            continue
        build_id = entry.name[len(HEADLESS_SHELL_PREFIX):]
        found.append(InstalledBrowser(name="chromium-headless-shell", build_id=build_id, executable_path=executable))
    found.sort(key=functools.cmp_to_key(lambda a, b: compare_versions(b.build_id, a.build_id)))
    return found


def find_headless_shell(cache_dir: Path | None = None) -> str | None:
    shells = find_headless_shells(cache_dir)
    if not shells:
        return None
    return str(shells[0].executable_path)


def find_system_browser(kind: str, platform: str | None = None) -> str | None:
    platform = platform or sys.platform
    if platform == "darwin":
        mac_path = MAC_PATHS[kind]
        return mac_path if Path(mac_path).is_file() else None
    if platform.startswith("linux"):
        for command in LINUX_COMMANDS[kind]:
            resolved = shutil.which(command)
            if resolved:
                return resolved
        return None
    if platform == "win32":
        prefixes = [
            os.environ.get("ProgramFiles"),
            os.environ.get("ProgramFiles(x86)"),
            os.environ.get("LOCALAPPDATA"),
        ]
        for prefix in filter(None, prefixes):
            full_path = Path(prefix) / WINDOWS_SUFFIXES[kind]
            if full_path.is_file():
                return str(full_path)
        return None
    return None


def locate(custom_path: str | None = None, cache_dir: Path | None = None) -> str | None:
    """Return a browser executable, or ``None`` when nothing usable is installed.

    A custom path wins and is returned unchecked. Otherwise the order is:
    cached headless shell (newest build), system Chromium, system Chrome.
    """

    if custom_path:
        logger.info("Using custom browser path: %s", custom_path)
        return custom_path

    logger.info("Searching for browser executable...")
    headless = find_headless_shell(cache_dir)
    if headless:
        logger.info("Found installed headless shell: %s", headless)
        return headless

    chromium = find_system_browser("chromium")
    if chromium:
        logger.info("Found system Chromium: %s", chromium)
        return chromium

    chrome = find_system_browser("chrome")
    if chrome:
        logger.info("Found system Chrome: %s", chrome)
        return chrome

    return None


async def locate_async(custom_path: str | None = None, cache_dir: Path | None = None) -> str | None:
    return await asyncio.to_thread(locate, custom_path, cache_dir)


__all__ = [
    "InstalledBrowser",
    "find_headless_shell",
    "find_headless_shells",
    "find_system_browser",
    "locate",
    "locate_async",
]
