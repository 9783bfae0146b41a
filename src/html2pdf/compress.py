from __future__ import annotations

import asyncio
import shutil
import sys

from .constraint import GS_PRESETS
from .errors import ToolFailed, ToolNotFound


def find_ghostscript() -> str | None:
    if sys.platform == "win32":
        return shutil.which("gswin64c") or shutil.which("gswin32c") or shutil.which("gswin64")
    return shutil.which("gs")


def ghostscript_args(executable: str, preset: str) -> list[str]:
    return [
        executable,
        "-sDEVICE=pdfwrite",
        "-dCompatibilityLevel=1.4",
        f"-dPDFSETTINGS=/{preset}",
        "-dNOPAUSE",
        "-dQUIET",
        "-dBATCH",
        "-sOutputFile=-",
        "-",
    ]


async def compress_pdf(data: bytes, preset: str = "ebook") -> bytes:
    """Re-encode ``data`` through Ghostscript's pdfwrite device.

    Raises ``ToolNotFound`` when Ghostscript is not installed and
    ``ToolFailed`` when it exits non-zero.
    """

    if preset not in GS_PRESETS:
        raise ValueError(f"Unknown Ghostscript preset: {preset}")
    executable = find_ghostscript()
    if not executable:
        raise ToolNotFound("Ghostscript is not installed or not found in PATH.")

    proc = await asyncio.create_subprocess_exec(
        *ghostscript_args(executable, preset),
        stdin=asyncio.subprocess.PIPE,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    # communicate() feeds stdin while draining both pipes.
    stdout, stderr = await proc.communicate(input=data)
    if proc.returncode != 0:
        raise ToolFailed(proc.returncode or -1, stderr.decode("utf-8", errors="replace"))
    return stdout


__all__ = ["compress_pdf", "find_ghostscript", "ghostscript_args"]
