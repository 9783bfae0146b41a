from __future__ import annotations

from pathlib import Path

DEFAULT_CONFIG_PATH = Path.home() / ".html2pdf.toml"
DEFAULT_CACHE_DIR = Path.home() / ".cache" / "html2pdf"
DEFAULT_ENDPOINT_FILE = DEFAULT_CACHE_DIR / "html2pdf-endpoint.ws"
DEFAULT_RUN_LOG = DEFAULT_CACHE_DIR / "log.jsonl"
# Headless-shell builds installed by `html2pdf browser install`. Owned by
# html2pdf alone: `browser clear` deletes the whole directory.
DEFAULT_BROWSER_CACHE = DEFAULT_CACHE_DIR / "browsers"
ENV_PREFIX = "HTML2PDF_"

HEADLESS_SHELL_PREFIX = "chromium_headless_shell-"
HEADLESS_SHELL_INSTALL_NAME = "chromium-headless-shell"

PAGE_FORMATS = ("A0", "A1", "A2", "A3", "A4", "A5", "A6", "Letter", "Legal", "Tabloid", "Ledger")
GS_PRESETS = ("screen", "ebook", "printer", "prepress", "default")

# Hardened flag set shared by disposable and shared browsers. The profile
# directory and DevTools port are appended per launch.
BROWSER_ARGS = (
    "--headless=new",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-software-rasterizer",
    "--no-zygote",
    "--no-first-run",
    "--no-default-browser-check",
    "--allow-file-access-from-files",
    "--enable-local-file-accesses",
    "--ignore-certificate-errors",
)


__all__ = [
    "BROWSER_ARGS",
    "DEFAULT_BROWSER_CACHE",
    "DEFAULT_CACHE_DIR",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_ENDPOINT_FILE",
    "DEFAULT_RUN_LOG",
    "ENV_PREFIX",
    "GS_PRESETS",
    "HEADLESS_SHELL_INSTALL_NAME",
    "HEADLESS_SHELL_PREFIX",
    "PAGE_FORMATS",
]
