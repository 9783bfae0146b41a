from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlsplit

from .errors import ConfigError, InputNotFound, UnsupportedProtocol
from .models import FileSource, InputSource, OutputSink, UrlSource
from .storage import LocalFile, S3Object

HTML_EXTENSIONS = {".html", ".htm"}
HTTP_SCHEMES = {"http", "https"}


def url_scheme(value: str) -> str | None:
    """Return the lower-cased scheme if ``value`` parses as a URL.

    Single-letter schemes are Windows drive letters, not URLs.
    """

    try:
        parts = urlsplit(value)
    except ValueError:
        return None
    if len(parts.scheme) < 2:
        return None
    return parts.scheme.lower()


def _require_s3(s3: Any | None, path: str) -> Any:
    if s3 is None:
        raise ConfigError(f"S3 client is required for S3 paths: {path}")
    return s3


def _file_url_path(url: str) -> Path:
    parts = urlsplit(url)
    raw = unquote(parts.path)
    # file:///C:/dir/page.html on Windows
    if len(raw) > 2 and raw[0] == "/" and raw[2] == ":":
        raw = raw[1:]
    return Path(raw)


def resolve_input(path: str, s3: Any | None = None) -> InputSource:
    scheme = url_scheme(path)
    if scheme is not None:
        if scheme == "s3":
            handle = S3Object.from_url(_require_s3(s3, path), path)
            return FileSource(handle=handle, path=path, is_remote=True)
        if scheme in HTTP_SCHEMES:
            return UrlSource(path=path)
        if scheme == "file":
            local = _file_url_path(path)
            return FileSource(handle=LocalFile(local), path=str(local), is_remote=False)
        raise UnsupportedProtocol(f"{scheme}:", direction="input")

    local = Path(path).expanduser()
    if local.suffix.lower() in HTML_EXTENSIONS:
        # Navigating to a file:// URL keeps relative <link>/<img> references working.
        absolute = local.resolve()
        return UrlSource(path=absolute.as_uri(), local_path=absolute)
    return FileSource(handle=LocalFile(local), path=str(local), is_remote=False)


def resolve_output(path: str, s3: Any | None = None) -> OutputSink:
    scheme = url_scheme(path)
    if scheme is not None:
        if scheme == "s3":
            return S3Object.from_url(_require_s3(s3, path), path)
        raise UnsupportedProtocol(f"{scheme}:", direction="output")
    return LocalFile(Path(path).expanduser())


def ensure_input_exists(source: InputSource) -> None:
    if isinstance(source, FileSource):
        if isinstance(source.handle, LocalFile) and not source.handle.exists():
            raise InputNotFound(f"Input file not found at: {source.path}")
    elif isinstance(source, UrlSource):
        if source.local_path is not None and not source.local_path.is_file():
            raise InputNotFound(f"Input file not found at: {source.local_path}")


async def resolve_io(
    input_path: str, output_path: str, s3: Any | None = None
) -> tuple[InputSource, OutputSink]:
    source = resolve_input(input_path, s3)
    sink = resolve_output(output_path, s3)
    await asyncio.to_thread(ensure_input_exists, source)
    return source, sink


__all__ = [
    "ensure_input_exists",
    "resolve_input",
    "resolve_io",
    "resolve_output",
    "url_scheme",
]
