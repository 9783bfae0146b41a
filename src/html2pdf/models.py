"""Domain models for HTML to PDF conversion."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, Union

if TYPE_CHECKING:
    from playwright.async_api import Browser

    from .launcher import BrowserProcess

logger = logging.getLogger(__name__)


class PageFormat(str, Enum):
    A0 = "A0"
    A1 = "A1"
    A2 = "A2"
    A3 = "A3"
    A4 = "A4"
    A5 = "A5"
    A6 = "A6"
    LETTER = "Letter"
    LEGAL = "Legal"
    TABLOID = "Tabloid"
    LEDGER = "Ledger"


class PageLayout(str, Enum):
    PORTRAIT = "Portrait"
    LANDSCAPE = "Landscape"

    @property
    def landscape(self) -> bool:
        return self is PageLayout.LANDSCAPE


class BrowserOwnership(str, Enum):
    OWNED = "owned"
    BORROWED = "borrowed"


class Readable(Protocol):
    name: str

    def read_text(self) -> str:  # pragma: no cover - interface
        ...

    def delete(self) -> None:  # pragma: no cover - interface
        ...


class OutputSink(Protocol):
    name: str

    def write(self, data: bytes) -> None:  # pragma: no cover - interface
        ...


@dataclass(slots=True)
class UrlSource:
    """Content reached by navigating the page to ``path``."""

    path: str
    local_path: Path | None = None

    @property
    def is_local_file(self) -> bool:
        return self.local_path is not None

    def cleanup(self) -> None:
        if self.local_path is not None:
            self.local_path.unlink(missing_ok=True)


@dataclass(slots=True)
class FileSource:
    """Content read as text and injected into the page."""

    handle: Readable
    path: str
    is_remote: bool = False

    @property
    def is_local_file(self) -> bool:
        return not self.is_remote

    def cleanup(self) -> None:
        self.handle.delete()


InputSource = Union[UrlSource, FileSource]


@dataclass(slots=True)
class BrowserHandle:
    """A CDP connection plus who is responsible for the browser process."""

    browser: "Browser"
    ownership: BrowserOwnership
    endpoint: str
    process: "BrowserProcess | None" = None

    @property
    def owned(self) -> bool:
        return self.ownership is BrowserOwnership.OWNED

    async def close(self, timeout_s: float = 10.0) -> None:
        """Terminate an owned browser, or only disconnect from a borrowed one.

        A browser that does not answer within ``timeout_s`` is abandoned
        (borrowed) or killed (owned).
        """

        try:
            await asyncio.wait_for(self.browser.close(), timeout=timeout_s)
        except Exception as exc:
            logger.warning("Failed to close browser connection: %s", str(exc) or type(exc).__name__)
        if self.ownership is BrowserOwnership.OWNED and self.process is not None:
            await self.process.terminate()


@dataclass(frozen=True, slots=True)
class ConversionJob:
    """Parameters for a single conversion run."""

    source: InputSource
    sink: OutputSink
    page_format: PageFormat = PageFormat.A4
    layout: PageLayout = PageLayout.PORTRAIT
    timeout_s: float = 300.0
    chrome_path: str | None = None
    remove_source: bool = False
    compress: bool = False
    compress_preset: str = "ebook"


@dataclass(slots=True)
class ConversionResult:
    """Result metadata for an individual conversion."""

    output: str
    size_bytes: int
    ownership: BrowserOwnership
    elapsed_s: float
    summary: str
    compressed_size_bytes: int | None = None
    source_removed: bool = False


__all__ = [
    "BrowserHandle",
    "BrowserOwnership",
    "ConversionJob",
    "ConversionResult",
    "FileSource",
    "InputSource",
    "OutputSink",
    "PageFormat",
    "PageLayout",
    "Readable",
    "UrlSource",
]
