import asyncio
import json
import logging
from pathlib import Path

import pytest
from botocore.exceptions import EndpointConnectionError
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from fakes import PDF_BYTES, FakeBrowser, FakeChromium, FakeLauncher, FakePage, MemorySink, locate_returning
from html2pdf.core import ZERO_MARGINS, ConversionService
from html2pdf.endpoint import EndpointStore
from html2pdf.errors import LoadTimeout, PageError, RenderTimeout, ToolFailed, ToolNotFound, WriteFailure
from html2pdf.logging import RunLogger
from html2pdf.models import BrowserOwnership, ConversionJob, PageFormat, PageLayout
from html2pdf.resolver import resolve_input, resolve_output
from html2pdf.session import SessionAcquirer
from html2pdf.storage import S3Object

SHARED = "ws://127.0.0.1:9222/devtools/browser/shared"


def build_service(
    tmp_path: Path,
    *,
    shared: FakeBrowser | None = None,
    compressor=None,
    run_log: Path | None = None,
    **service_kwargs,
):
    chromium = FakeChromium()
    store = EndpointStore(tmp_path / "endpoint.ws")
    if shared is not None:
        chromium.browsers[SHARED] = shared
        store.write(SHARED)
    launcher = FakeLauncher(chromium)
    acquirer = SessionAcquirer(chromium, store, locate=locate_returning("/usr/bin/chromium"), launch=launcher)
    kwargs = {"run_logger": RunLogger(run_log), **service_kwargs}
    if compressor is not None:
        kwargs["compressor"] = compressor
    return ConversionService(acquirer, **kwargs), launcher


class PageLauncher(FakeLauncher):
    def __init__(self, chromium: FakeChromium, page: FakePage) -> None:
        super().__init__(chromium)
        self.page = page

    async def __call__(self, executable: str, **kwargs):
        process = await super().__call__(executable, **kwargs)
        self.browsers[-1].page = self.page
        return process


def build_with_page(tmp_path: Path, page: FakePage, **kwargs):
    chromium = FakeChromium()
    store = EndpointStore(tmp_path / "endpoint.ws")
    launcher = PageLauncher(chromium, page)
    acquirer = SessionAcquirer(chromium, store, locate=locate_returning("/usr/bin/chromium"), launch=launcher)
    return ConversionService(acquirer, **kwargs), launcher


def test_local_html_end_to_end(tmp_path: Path) -> None:
    report = tmp_path / "report.html"
    report.write_text("<html><body><img src='chart.png'></body></html>")
    (tmp_path / "chart.png").write_bytes(b"png")
    output = tmp_path / "out.pdf"
    page = FakePage()
    service, launcher = build_with_page(tmp_path, page)
    job = ConversionJob(
        source=resolve_input(str(report)),
        sink=resolve_output(str(output)),
        page_format=PageFormat.A4,
        layout=PageLayout.PORTRAIT,
    )

    result = asyncio.run(service.convert(job))

    assert output.read_bytes() == PDF_BYTES
    assert page.goto_calls[0][0] == report.resolve().as_uri()
    assert page.goto_calls[0][1]["wait_until"] == "networkidle"
    pdf_kwargs = page.pdf_calls[0]
    assert pdf_kwargs["format"] == "A4"
    assert pdf_kwargs["landscape"] is False
    assert pdf_kwargs["margin"] == ZERO_MARGINS
    assert report.exists()
    assert result.ownership is BrowserOwnership.OWNED
    assert result.source_removed is False
    assert page.closed
    assert launcher.processes[0].terminated


def test_file_source_content_is_injected(tmp_path: Path) -> None:
    fragment = tmp_path / "fragment.txt"
    fragment.write_text("<h1>Hello</h1>")
    page = FakePage()
    service, _ = build_with_page(tmp_path, page)
    sink = MemorySink()
    job = ConversionJob(source=resolve_input(str(fragment)), sink=sink, timeout_s=30)

    asyncio.run(service.convert(job))

    html, kwargs = page.content_calls[0]
    assert html == "<h1>Hello</h1>"
    assert kwargs == {"wait_until": "networkidle", "timeout": 30000}
    assert sink.writes == [PDF_BYTES]


def test_https_to_s3_with_compression(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="html2pdf")
    compressed = b"%PDF-small"

    async def compressor(data: bytes, preset: str) -> bytes:
        assert data == PDF_BYTES
        assert preset == "ebook"
        return compressed

    service, _ = build_service(tmp_path, compressor=compressor)
    sink = MemorySink("s3://bucket/key.pdf")
    job = ConversionJob(source=resolve_input("https://example.com"), sink=sink, compress=True)

    result = asyncio.run(service.convert(job))

    assert sink.writes == [compressed]
    assert result.compressed_size_bytes == len(compressed)
    ratio_lines = [r.getMessage() for r in caplog.records if "ratio" in r.getMessage()]
    assert ratio_lines
    assert "ratio 0.00%" not in ratio_lines[0]


@pytest.mark.parametrize("error", [ToolNotFound("gs missing"), ToolFailed(1, "boom")])
def test_compression_failure_keeps_original(tmp_path: Path, error: Exception) -> None:
    async def compressor(data: bytes, preset: str) -> bytes:
        raise error

    service, _ = build_service(tmp_path, compressor=compressor)
    sink = MemorySink()
    job = ConversionJob(source=resolve_input("https://example.com"), sink=sink, compress=True)

    result = asyncio.run(service.convert(job))

    assert sink.writes == [PDF_BYTES]
    assert result.compressed_size_bytes is None


def test_borrowed_browser_is_only_disconnected(tmp_path: Path) -> None:
    shared = FakeBrowser()
    service, launcher = build_service(tmp_path, shared=shared)
    job = ConversionJob(source=resolve_input("https://example.com"), sink=MemorySink())

    result = asyncio.run(service.convert(job))

    assert result.ownership is BrowserOwnership.BORROWED
    assert launcher.calls == []
    assert shared.page.closed
    assert shared.closed
    assert not shared.terminated


def test_load_failure_still_cleans_up_owned_browser(tmp_path: Path) -> None:
    page = FakePage(load_error=PlaywrightError("net::ERR_NAME_NOT_RESOLVED"))
    service, launcher = build_with_page(tmp_path, page)
    sink = MemorySink()
    job = ConversionJob(source=resolve_input("https://nowhere.invalid"), sink=sink)

    with pytest.raises(PageError):
        asyncio.run(service.convert(job))

    assert page.closed
    assert page.context.closed
    assert launcher.processes[0].terminated
    assert sink.writes == []


def test_load_timeout(tmp_path: Path) -> None:
    page = FakePage(load_error=PlaywrightTimeoutError("Timeout 300000ms exceeded."))
    service, launcher = build_with_page(tmp_path, page)
    job = ConversionJob(source=resolve_input("https://example.com"), sink=MemorySink())

    with pytest.raises(LoadTimeout):
        asyncio.run(service.convert(job))
    assert page.closed
    assert launcher.processes[0].terminated


def test_render_timeout_is_bounded(tmp_path: Path) -> None:
    shared_page = FakePage(pdf_delay=5)
    shared = FakeBrowser(shared_page)
    service, _ = build_service(tmp_path, shared=shared)
    job = ConversionJob(source=resolve_input("https://example.com"), sink=MemorySink(), timeout_s=0.05)

    with pytest.raises(RenderTimeout):
        asyncio.run(service.convert(job))
    assert shared_page.closed
    assert shared.closed
    assert not shared.terminated


def test_dead_shared_browser_surfaces_page_error(tmp_path: Path) -> None:
    shared = FakeBrowser(FakePage(pdf_error=PlaywrightError("Target page, context or browser has been closed")))
    service, _ = build_service(tmp_path, shared=shared)
    job = ConversionJob(source=resolve_input("https://example.com"), sink=MemorySink())

    with pytest.raises(PageError):
        asyncio.run(service.convert(job))
    assert shared.page.closed


def test_remove_source_deletes_local_file(tmp_path: Path) -> None:
    report = tmp_path / "report.html"
    report.write_text("<html></html>")
    service, _ = build_service(tmp_path)
    job = ConversionJob(source=resolve_input(str(report)), sink=MemorySink(), remove_source=True)

    result = asyncio.run(service.convert(job))

    assert result.source_removed
    assert not report.exists()


def test_remove_source_ignores_remote_input(tmp_path: Path) -> None:
    service, _ = build_service(tmp_path)
    job = ConversionJob(source=resolve_input("https://example.com"), sink=MemorySink(), remove_source=True)
    result = asyncio.run(service.convert(job))
    assert result.source_removed is False


def test_source_kept_when_write_fails(tmp_path: Path) -> None:
    report = tmp_path / "report.html"
    report.write_text("<html></html>")
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    service, launcher = build_service(tmp_path)
    job = ConversionJob(
        source=resolve_input(str(report)),
        sink=resolve_output(str(blocker / "out.pdf")),
        remove_source=True,
    )

    with pytest.raises(WriteFailure):
        asyncio.run(service.convert(job))

    assert report.exists()
    assert launcher.processes[0].terminated


def test_landscape_layout(tmp_path: Path) -> None:
    page = FakePage()
    service, _ = build_with_page(tmp_path, page)
    job = ConversionJob(
        source=resolve_input("https://example.com"),
        sink=MemorySink(),
        page_format=PageFormat.LETTER,
        layout=PageLayout.LANDSCAPE,
    )
    asyncio.run(service.convert(job))
    assert page.pdf_calls[0]["format"] == "Letter"
    assert page.pdf_calls[0]["landscape"] is True


def test_run_log_records_success_and_failure(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "log.jsonl"
    service, _ = build_service(tmp_path, run_log=log_file)
    asyncio.run(service.convert(ConversionJob(source=resolve_input("https://example.com"), sink=MemorySink())))

    failing, _ = build_with_page(
        tmp_path, FakePage(load_error=PlaywrightError("boom")), run_logger=RunLogger(log_file)
    )
    with pytest.raises(PageError):
        asyncio.run(failing.convert(ConversionJob(source=resolve_input("https://example.com"), sink=MemorySink())))

    entries = [json.loads(line) for line in log_file.read_text().splitlines()]
    assert [entry["status"] for entry in entries] == ["success", "failure"]
    assert entries[0]["ownership"] == "owned"
    assert entries[0]["size_bytes"] == len(PDF_BYTES)
    assert entries[1]["error_code"] == "PAGE_ERROR"


def test_unresponsive_shared_browser_fails_within_timeout(tmp_path: Path) -> None:
    shared = FakeBrowser(open_delay=3600, close_delay=3600)
    service, launcher = build_service(tmp_path, shared=shared, cleanup_timeout_s=0.1)
    job = ConversionJob(source=resolve_input("https://example.com"), sink=MemorySink(), timeout_s=0.2)

    async def scenario() -> None:
        await asyncio.wait_for(service.convert(job), timeout=3)

    with pytest.raises(PageError):
        asyncio.run(scenario())
    assert launcher.calls == []
    assert not shared.terminated


def test_context_closed_when_page_close_fails(tmp_path: Path) -> None:
    page = FakePage(close_error=PlaywrightError("Target page, context or browser has been closed"))
    service, launcher = build_with_page(tmp_path, page)
    job = ConversionJob(source=resolve_input("https://example.com"), sink=MemorySink())

    asyncio.run(service.convert(job))

    assert not page.closed
    assert page.context.closed
    assert launcher.processes[0].terminated


class UnreachableS3Client:
    def put_object(self, **kwargs) -> dict:
        raise EndpointConnectionError(endpoint_url="https://s3.invalid")


def test_s3_connection_failure_is_logged_as_write_failure(tmp_path: Path) -> None:
    log_file = tmp_path / "log.jsonl"
    service, launcher = build_service(tmp_path, run_log=log_file)
    sink = S3Object.from_url(UnreachableS3Client(), "s3://bucket/out.pdf")
    job = ConversionJob(source=resolve_input("https://example.com"), sink=sink)

    with pytest.raises(WriteFailure):
        asyncio.run(service.convert(job))

    entry = json.loads(log_file.read_text().splitlines()[-1])
    assert entry["status"] == "failure"
    assert entry["error_code"] == "WRITE_FAILED"
    assert launcher.processes[0].terminated
