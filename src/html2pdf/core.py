from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from .compress import compress_pdf
from .config import AppConfig
from .endpoint import EndpointStore
from .errors import CompressionError, Html2PdfError, LoadTimeout, PageError, RenderTimeout
from .locator import locate_async
from .logging import RunLogEntry, RunLogger, StageTimings
from .models import (
    BrowserHandle,
    ConversionJob,
    ConversionResult,
    FileSource,
    InputSource,
    PageFormat,
    PageLayout,
    UrlSource,
)
from .resolver import resolve_io
from .session import SessionAcquirer
from .settings import S3Settings
from .storage import create_s3_client, needs_s3
from .utils import compression_ratio, format_size, generate_run_id

logger = logging.getLogger(__name__)

Compressor = Callable[[bytes, str], Awaitable[bytes]]

ZERO_MARGINS = {"top": "0mm", "bottom": "0mm", "left": "0mm", "right": "0mm"}

# Upper bound for each close call on a page, context or browser connection.
CLEANUP_TIMEOUT_S = 10.0


class ConversionService:
    """Render one input to PDF and release every resource it touched."""

    def __init__(
        self,
        acquirer: SessionAcquirer,
        *,
        compressor: Compressor = compress_pdf,
        run_logger: RunLogger | None = None,
        cleanup_timeout_s: float = CLEANUP_TIMEOUT_S,
    ) -> None:
        self._acquirer = acquirer
        self._compressor = compressor
        self._run_logger = run_logger or RunLogger(None)
        self._cleanup_timeout_s = cleanup_timeout_s

    async def convert(self, job: ConversionJob, executable: str | None = None) -> ConversionResult:
        run_id = generate_run_id("pdf")
        timings = StageTimings()
        start = time.perf_counter()
        handle: BrowserHandle | None = None
        page: Any = None
        size_bytes = 0
        compressed_size: int | None = None
        source_removed = False
        try:
            stage = time.perf_counter()
            handle = await self._acquirer.acquire(job.chrome_path, executable)
            page = await self._open_page(handle, job.timeout_s)
            timings.acquire_ms = _elapsed_ms(stage)
            logger.info("Browser ready (%s), new page created.", handle.ownership.value)

            stage = time.perf_counter()
            await self._load(page, job.source, job.timeout_s)
            timings.load_ms = _elapsed_ms(stage)
            logger.info("Content loaded successfully.")

            stage = time.perf_counter()
            buffer = await self._render(page, job)
            timings.render_ms = _elapsed_ms(stage)
            size_bytes = len(buffer)
            logger.info("PDF generated with size: %s", format_size(size_bytes))

            if job.compress:
                stage = time.perf_counter()
                buffer, compressed_size = await self._compress(buffer, job.compress_preset)
                timings.compress_ms = _elapsed_ms(stage)

            stage = time.perf_counter()
            logger.info("Writing PDF to: %s", job.sink.name)
            await asyncio.to_thread(job.sink.write, buffer)
            timings.write_ms = _elapsed_ms(stage)
            logger.info("PDF written successfully.")

            if job.remove_source and job.source.is_local_file:
                logger.info("Removing source file: %s", _source_name(job.source))
                await asyncio.to_thread(job.source.cleanup)
                source_removed = True
                logger.info("Source file removed.")
        except Html2PdfError as exc:
            self._log_run(run_id, job, "failure", exc.code, handle, size_bytes, compressed_size, timings)
            raise
        finally:
            await self._release(handle, page)

        elapsed = time.perf_counter() - start
        self._log_run(run_id, job, "success", None, handle, size_bytes, compressed_size, timings)
        return ConversionResult(
            output=job.sink.name,
            size_bytes=size_bytes,
            ownership=handle.ownership,
            elapsed_s=elapsed,
            summary=f"Converted {_source_name(job.source)} -> {job.sink.name} in {elapsed:.2f}s",
            compressed_size_bytes=compressed_size,
            source_removed=source_removed,
        )

    async def _open_page(self, handle: BrowserHandle, timeout_s: float) -> Any:
        opened: dict[str, Any] = {}

        async def _open() -> Any:
            opened["context"] = await handle.browser.new_context(ignore_https_errors=True)
            return await opened["context"].new_page()

        try:
            return await asyncio.wait_for(_open(), timeout=timeout_s)
        except (PlaywrightError, asyncio.TimeoutError) as exc:
            if "context" in opened:
                await self._close_quietly(opened["context"].close(), "browser context")
            if isinstance(exc, PlaywrightError):
                raise PageError(f"Failed to open a page: {exc.message}") from exc
            raise PageError(f"Browser did not open a page within {timeout_s:.0f}s") from exc

    async def _load(self, page: Any, source: InputSource, timeout_s: float) -> None:
        timeout_ms = timeout_s * 1000
        try:
            if isinstance(source, UrlSource):
                logger.info("Navigating to URL: %s", source.path)
                await page.goto(source.path, wait_until="networkidle", timeout=timeout_ms)
            elif isinstance(source, FileSource):
                logger.info("Loading content from file: %s", source.path)
                html = await asyncio.to_thread(source.handle.read_text)
                await page.set_content(html, wait_until="networkidle", timeout=timeout_ms)
            else:
                raise TypeError(f"Unsupported input source: {source!r}")
        except PlaywrightTimeoutError as exc:
            raise LoadTimeout(f"Page did not finish loading within {timeout_s:.0f}s") from exc
        except PlaywrightError as exc:
            raise PageError(f"Failed to load page content: {exc.message}") from exc

    async def _render(self, page: Any, job: ConversionJob) -> bytes:
        logger.info("Generating PDF (%s, %s)...", job.page_format.value, job.layout.value)
        try:
            # page.pdf() has no timeout of its own.
            return await asyncio.wait_for(
                page.pdf(
                    format=job.page_format.value,
                    landscape=job.layout.landscape,
                    margin=dict(ZERO_MARGINS),
                    print_background=True,
                    prefer_css_page_size=False,
                ),
                timeout=job.timeout_s,
            )
        except PlaywrightTimeoutError as exc:
            raise RenderTimeout(f"PDF generation did not finish within {job.timeout_s:.0f}s") from exc
        except PlaywrightError as exc:
            raise PageError(f"Failed to generate PDF: {exc.message}") from exc
        except asyncio.TimeoutError as exc:
            raise RenderTimeout(f"PDF generation did not finish within {job.timeout_s:.0f}s") from exc

    async def _compress(self, buffer: bytes, preset: str) -> tuple[bytes, int | None]:
        logger.info("Compressing PDF with Ghostscript (%s)...", preset)
        try:
            compressed = await self._compressor(buffer, preset)
        except (CompressionError, OSError) as exc:
            logger.warning("Compression failed, keeping uncompressed PDF: %s", exc)
            return buffer, None
        ratio = compression_ratio(len(buffer), len(compressed))
        logger.info(
            "Compressed PDF size: %s (ratio %.2f%%)",
            format_size(len(compressed)),
            ratio * 100,
        )
        return compressed, len(compressed)

    async def _close_quietly(self, closing: Awaitable[Any], what: str) -> None:
        try:
            await asyncio.wait_for(closing, timeout=self._cleanup_timeout_s)
        except Exception as exc:
            logger.warning("Failed to close %s: %s", what, str(exc) or type(exc).__name__)

    async def _release(self, handle: BrowserHandle | None, page: Any) -> None:
        if page is not None:
            await self._close_quietly(page.close(), "page")
            await self._close_quietly(page.context.close(), "browser context")
        if handle is None:
            return
        if handle.owned:
            logger.info("Closing browser...")
        else:
            logger.info("Disconnecting from shared browser...")
        await handle.close(self._cleanup_timeout_s)
        logger.info("Browser released.")

    def _log_run(
        self,
        run_id: str,
        job: ConversionJob,
        status: str,
        error_code: str | None,
        handle: BrowserHandle | None,
        size_bytes: int,
        compressed_size: int | None,
        timings: StageTimings,
    ) -> None:
        self._run_logger.append(
            RunLogEntry(
                run_id=run_id,
                source=_source_name(job.source),
                output=job.sink.name,
                status=status,
                error_code=error_code,
                ownership=handle.ownership.value if handle is not None else None,
                size_bytes=size_bytes,
                compressed_size_bytes=compressed_size,
                timings=timings,
            )
        )


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


def _source_name(source: InputSource) -> str:
    if isinstance(source, UrlSource) and source.local_path is not None:
        return str(source.local_path)
    return source.path


async def _resolve(input_path: str, output_path: str, s3_settings: S3Settings | None):
    s3 = None
    if needs_s3(input_path, output_path):
        s3 = await asyncio.to_thread(create_s3_client, s3_settings or S3Settings())
    return await resolve_io(input_path, output_path, s3)


async def run_conversion(
    input_path: str,
    output_path: str,
    *,
    config: AppConfig,
    s3_settings: S3Settings | None = None,
    page_format: PageFormat = PageFormat.A4,
    layout: PageLayout = PageLayout.PORTRAIT,
    timeout_minutes: float = 5,
    chrome_path: str | None = None,
    remove_source: bool = False,
    compress: bool = False,
    compress_preset: str | None = None,
) -> ConversionResult:
    """Resolve paths and locate a browser concurrently, then convert."""

    runtime = config.runtime
    executable, (source, sink) = await asyncio.gather(
        locate_async(chrome_path, runtime.cache_dir),
        _resolve(input_path, output_path, s3_settings),
    )
    if executable:
        logger.info("Browser found at: %s", executable)
    logger.info("Input/Output paths resolved.")

    job = ConversionJob(
        source=source,
        sink=sink,
        page_format=page_format,
        layout=layout,
        timeout_s=timeout_minutes * 60,
        chrome_path=chrome_path,
        remove_source=remove_source,
        compress=compress,
        compress_preset=compress_preset or config.compress.preset,
    )

    async def located(_: str | None) -> str | None:
        return executable

    async with async_playwright() as playwright:
        acquirer = SessionAcquirer(
            playwright.chromium,
            EndpointStore(runtime.endpoint_file),
            connect_timeout_s=runtime.connect_timeout_s,
            launch_timeout_s=runtime.launch_timeout_s,
            extra_args=config.browser.extra_args,
            locate=located,
        )
        service = ConversionService(acquirer, run_logger=RunLogger(runtime.run_log))
        return await service.convert(job, executable)


__all__ = ["ConversionService", "ZERO_MARGINS", "run_conversion"]
