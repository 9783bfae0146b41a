from __future__ import annotations

import asyncio
import functools
from pathlib import Path

import typer
from playwright.async_api import Playwright, async_playwright
from rich.console import Console
from rich.table import Table

from .. import __version__
from ..browsers import clear_cache, install_headless_shell, list_installed
from ..config import AppConfig, dump_config, load_config
from ..constraint import GS_PRESETS
from ..core import run_conversion
from ..endpoint import EndpointStore
from ..errors import Html2PdfError
from ..locator import locate_async
from ..logging import configure_logging
from ..models import PageFormat, PageLayout
from ..server import ServerStatus, SharedServer
from ..settings import S3Settings, get_settings
from ..utils import format_size

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(help="Convert HTML to PDF with headless Chromium", no_args_is_help=True)
browser_app = typer.Typer(help="Manage local browsers used for PDF conversion", no_args_is_help=True)
config_app = typer.Typer(help="Inspect configuration", no_args_is_help=True)
app.add_typer(browser_app, name="browser")
app.add_typer(config_app, name="config")


def _fail(exc: Html2PdfError, action: str) -> typer.Exit:
    err_console.print(f"[red]{action} failed[/red]: {exc.code} - {exc}")
    return typer.Exit(1)


def _load_config(path: Path | None) -> AppConfig:
    try:
        return load_config(path or get_settings().config_path)
    except Html2PdfError as exc:
        raise _fail(exc, "Configuration") from exc


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug output"),
) -> None:
    configure_logging(verbose or get_settings().verbose)


@app.command()
def convert(
    input: str = typer.Argument(
        ...,
        help="HTML file or URL: local path, http(s)://, file:// or s3://",
    ),
    output: str = typer.Argument(..., help="Output PDF: local path or s3://"),
    chrome_path: Path | None = typer.Option(
        None, "--chrome-path", "-c", exists=True, dir_okay=False, help="Path to the Chrome/Chromium executable"
    ),
    page_format: PageFormat | None = typer.Option(
        None, "--page-format", "-p", case_sensitive=False, help="PDF page format"
    ),
    page_layout: PageLayout | None = typer.Option(
        None, "--page-layout", "-l", case_sensitive=False, help="Page orientation"
    ),
    timeout: int | None = typer.Option(
        None, "--timeout", "-t", min=1, help="Timeout in minutes for page loading and PDF generation"
    ),
    remove_source: bool = typer.Option(
        False, "--remove-source", "-d", help="Remove the local source file after a successful conversion"
    ),
    compress: bool = typer.Option(False, "--compress", help="Compress the PDF with Ghostscript"),
    compress_preset: str | None = typer.Option(
        None, "--compress-preset", help=f"Ghostscript preset: {', '.join(GS_PRESETS)}"
    ),
    s3_access_key_id: str | None = typer.Option(None, "--s3-access-key-id", help="Overrides S3_ACCESS_KEY_ID"),
    s3_secret_access_key: str | None = typer.Option(
        None, "--s3-secret-access-key", help="Overrides S3_SECRET_ACCESS_KEY"
    ),
    s3_bucket: str | None = typer.Option(None, "--s3-bucket", help="Overrides S3_BUCKET"),
    s3_region: str | None = typer.Option(None, "--s3-region", help="Overrides S3_REGION"),
    s3_endpoint: str | None = typer.Option(None, "--s3-endpoint", help="Overrides S3_ENDPOINT"),
    config: Path | None = typer.Option(None, "--config", help="Path to config TOML"),
) -> None:
    """Convert INPUT to a PDF written to OUTPUT."""

    if compress_preset is not None and compress_preset not in GS_PRESETS:
        raise typer.BadParameter(f"must be one of {', '.join(GS_PRESETS)}", param_hint="--compress-preset")
    try:
        cfg = _load_config(config)
        s3_settings = S3Settings().merged(
            access_key_id=s3_access_key_id,
            secret_access_key=s3_secret_access_key,
            bucket=s3_bucket,
            region=s3_region,
            endpoint=s3_endpoint,
        )
        console.print("Starting HTML to PDF conversion...")
        result = asyncio.run(
            run_conversion(
                input,
                output,
                config=cfg,
                s3_settings=s3_settings,
                page_format=page_format or PageFormat(cfg.runtime.page_format),
                layout=page_layout or PageLayout(cfg.runtime.page_layout),
                timeout_minutes=timeout or cfg.runtime.timeout_minutes,
                chrome_path=str(chrome_path) if chrome_path else None,
                remove_source=remove_source,
                compress=compress,
                compress_preset=compress_preset,
            )
        )
    except Html2PdfError as exc:
        raise _fail(exc, "Conversion") from exc
    console.print(f"[green]Success[/green]: {result.summary}")
    size = format_size(result.compressed_size_bytes or result.size_bytes)
    console.print(f"Output: {result.output} ({size}, {result.ownership.value} browser)")


@browser_app.command("list")
def browser_list(config: Path | None = typer.Option(None, "--config", help="Path to config TOML")) -> None:
    """List locally installed headless-shell builds."""

    cfg = _load_config(config)
    browsers = list_installed(cfg.runtime.cache_dir)
    if not browsers:
        console.print(f"No browsers found in {cfg.runtime.cache_dir}.")
        raise typer.Exit()
    table = Table(title="Installed browsers")
    table.add_column("Browser")
    table.add_column("Build")
    table.add_column("Path")
    for installed in browsers:
        table.add_row(installed.name, installed.build_id, str(installed.executable_path))
    console.print(table)


@browser_app.command("clear")
def browser_clear(
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    config: Path | None = typer.Option(None, "--config", help="Path to config TOML"),
) -> None:
    """Delete the browser cache directory."""

    cfg = _load_config(config)
    cache_dir = cfg.runtime.cache_dir
    if not yes:
        console.print(f"[yellow]This will permanently delete all contents of[/yellow] {cache_dir}")
        if not typer.confirm("Are you sure you want to continue?"):
            console.print("Operation cancelled.")
            raise typer.Exit()
    if clear_cache(cache_dir):
        console.print("[green]Browser cache cleared successfully.[/green]")
    else:
        console.print("Cache directory does not exist. Nothing to clear.")


@browser_app.command("install")
def browser_install(
    force: bool = typer.Option(False, "--force", help="Reinstall even if a build is present"),
    config: Path | None = typer.Option(None, "--config", help="Path to config TOML"),
) -> None:
    """Download the headless shell build matching the installed Playwright."""

    cfg = _load_config(config)
    try:
        installed = install_headless_shell(cfg.runtime.cache_dir, force=force)
    except Html2PdfError as exc:
        raise _fail(exc, "Install") from exc
    console.print(f"[green]Installed[/green] {installed.name} (build: {installed.build_id})")
    console.print(f"  at: {installed.executable_path}")


def _shared_server(playwright: Playwright, cfg: AppConfig) -> SharedServer:
    runtime = cfg.runtime
    return SharedServer(
        playwright.chromium,
        EndpointStore(runtime.endpoint_file),
        connect_timeout_s=runtime.connect_timeout_s,
        launch_timeout_s=runtime.launch_timeout_s,
        extra_args=cfg.browser.extra_args,
        locate=functools.partial(locate_async, cache_dir=runtime.cache_dir),
    )


@browser_app.command("start")
def browser_start(
    chrome_path: Path | None = typer.Option(
        None, "--chrome-path", "-c", exists=True, dir_okay=False, help="Path to the Chrome/Chromium executable"
    ),
    config: Path | None = typer.Option(None, "--config", help="Path to config TOML"),
) -> None:
    """Start a persistent, shared browser instance (runs in the foreground)."""

    cfg = _load_config(config)

    async def _start() -> int:
        async with async_playwright() as playwright:
            server = _shared_server(playwright, cfg)
            return await server.start(str(chrome_path) if chrome_path else None)

    try:
        code = asyncio.run(_start())
    except Html2PdfError as exc:
        raise _fail(exc, "Start") from exc
    raise typer.Exit(code)


@browser_app.command("stop")
def browser_stop(config: Path | None = typer.Option(None, "--config", help="Path to config TOML")) -> None:
    """Stop the shared browser instance and remove its endpoint record."""

    cfg = _load_config(config)

    async def _stop() -> bool:
        async with async_playwright() as playwright:
            return await _shared_server(playwright, cfg).stop()

    if asyncio.run(_stop()):
        console.print("[green]Shared browser stopped.[/green]")
    else:
        console.print("No running shared browser was reachable; endpoint record removed.")


@browser_app.command("status")
def browser_status(config: Path | None = typer.Option(None, "--config", help="Path to config TOML")) -> None:
    """Report whether a shared browser instance is recorded and reachable."""

    cfg = _load_config(config)

    async def _status() -> ServerStatus:
        async with async_playwright() as playwright:
            return await _shared_server(playwright, cfg).status()

    status = asyncio.run(_status())
    if status.endpoint is None:
        console.print("Stopped: no endpoint record.")
    elif status.reachable:
        console.print(f"[green]Running[/green] at {status.endpoint}")
    else:
        console.print(f"[yellow]Stale[/yellow] record: {status.endpoint} is not reachable")
        raise typer.Exit(1)


@config_app.command("show")
def config_show(config: Path | None = typer.Option(None, "--config", help="Path to config TOML")) -> None:
    """Print the effective configuration as JSON."""

    cfg = _load_config(config)
    console.print_json(dump_config(cfg))


@app.command()
def version() -> None:
    console.print(f"html2pdf {__version__}")


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
