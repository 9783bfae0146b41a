from __future__ import annotations


class Html2PdfError(RuntimeError):
    code = "ERROR"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code


class ConfigError(Html2PdfError):
    code = "CONFIG"


class UnsupportedProtocol(Html2PdfError):
    code = "UNSUPPORTED_PROTOCOL"

    def __init__(self, scheme: str, direction: str = "input") -> None:
        if direction == "output":
            message = f"Unsupported output URL protocol: {scheme}. Only s3:// is supported for URL outputs."
        else:
            message = f"Unsupported URL protocol: {scheme}"
        super().__init__(message)
        self.scheme = scheme
        self.direction = direction


class InputNotFound(Html2PdfError):
    code = "NOT_FOUND"


class BrowserNotFound(Html2PdfError):
    code = "BROWSER_NOT_FOUND"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message
            or "Chrome/Chromium executable not found. Specify it with --chrome-path "
            "or run 'html2pdf browser install'."
        )


class BrowserLaunchError(Html2PdfError):
    code = "BROWSER_LAUNCH"


class LoadTimeout(Html2PdfError):
    code = "LOAD_TIMEOUT"


class RenderTimeout(Html2PdfError):
    code = "RENDER_TIMEOUT"


class PageError(Html2PdfError):
    code = "PAGE_ERROR"


class CompressionError(Html2PdfError):
    code = "COMPRESSION"


class ToolNotFound(CompressionError):
    code = "TOOL_NOT_FOUND"


class ToolFailed(CompressionError):
    code = "TOOL_FAILED"

    def __init__(self, exit_code: int, stderr: str) -> None:
        super().__init__(f"Ghostscript exited with code {exit_code}: {stderr.strip() or '<no output>'}")
        self.exit_code = exit_code
        self.stderr = stderr


class WriteFailure(Html2PdfError):
    code = "WRITE_FAILED"


class InstallError(Html2PdfError):
    code = "INSTALL_FAILED"


__all__ = [
    "BrowserLaunchError",
    "BrowserNotFound",
    "CompressionError",
    "ConfigError",
    "Html2PdfError",
    "InputNotFound",
    "InstallError",
    "LoadTimeout",
    "PageError",
    "RenderTimeout",
    "ToolFailed",
    "ToolNotFound",
    "UnsupportedProtocol",
    "WriteFailure",
]
