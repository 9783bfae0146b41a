"""Convert HTML from files, URLs or S3 into PDF with headless Chromium."""

from .config import AppConfig, load_config
from .core import ConversionService, run_conversion
from .errors import Html2PdfError
from .models import BrowserOwnership, ConversionJob, ConversionResult, PageFormat, PageLayout

__version__ = "0.3.0"

__all__ = [
    "AppConfig",
    "BrowserOwnership",
    "ConversionJob",
    "ConversionResult",
    "ConversionService",
    "Html2PdfError",
    "PageFormat",
    "PageLayout",
    "load_config",
    "run_conversion",
]
