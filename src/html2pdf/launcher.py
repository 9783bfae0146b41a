"""Launching Chromium with a DevTools endpoint on a private profile."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import shutil
import signal
import socket
import tempfile
import time
from pathlib import Path
from typing import Sequence

import httpx

from .constraint import BROWSER_ARGS
from .errors import BrowserLaunchError

logger = logging.getLogger(__name__)

LOOPBACK = "127.0.0.1"


def pick_free_port(host: str = LOOPBACK) -> int:
    # Racy by nature; a collision surfaces as a launch timeout.
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((host, 0))
        return int(sock.getsockname()[1])


def build_launch_args(
    profile_dir: Path, port: int, extra_args: Sequence[str] = ()
) -> list[str]:
    args = [
        *BROWSER_ARGS,
        f"--remote-debugging-address={LOOPBACK}",
        f"--remote-debugging-port={port}",
        f"--user-data-dir={profile_dir}",
    ]
    for item in extra_args:
        if item not in args:
            args.append(item)
    args.append("about:blank")
    return args


async def wait_for_devtools(
    port: int,
    proc: asyncio.subprocess.Process | None,
    timeout_s: float,
    host: str = LOOPBACK,
) -> str:
    """Poll ``/json/version`` until Chromium answers and return its WebSocket URL."""

    deadline = time.monotonic() + max(0.1, timeout_s)
    url = f"http://{host}:{port}/json/version"
    async with httpx.AsyncClient(trust_env=False) as client:
        while time.monotonic() < deadline:
            if proc is not None and proc.returncode is not None:
                raise BrowserLaunchError(f"Browser exited early with code {proc.returncode}")
            try:
                response = await client.get(url, timeout=0.75)
            except httpx.HTTPError:
                response = None
            if response is not None and response.status_code == 200:
                endpoint = response.json().get("webSocketDebuggerUrl")
                if endpoint:
                    return str(endpoint)
            await asyncio.sleep(0.1)
    raise BrowserLaunchError(f"DevTools endpoint on port {port} did not become ready within {timeout_s:.0f}s")


class BrowserProcess:
    """A Chromium process started by this invocation, plus its profile directory."""

    def __init__(
        self,
        proc: asyncio.subprocess.Process,
        endpoint: str,
        profile_dir: Path,
    ) -> None:
        self._proc = proc
        self.endpoint = endpoint
        self.profile_dir = profile_dir

    @property
    def pid(self) -> int | None:
        return self._proc.pid

    @property
    def returncode(self) -> int | None:
        return self._proc.returncode

    @property
    def running(self) -> bool:
        return self._proc.returncode is None

    @classmethod
    async def launch(
        cls,
        executable: str,
        *,
        extra_args: Sequence[str] = (),
        timeout_s: float = 30.0,
    ) -> "BrowserProcess":
        profile_dir = Path(tempfile.mkdtemp(prefix="html2pdf-"))
        port = pick_free_port()
        args = build_launch_args(profile_dir, port, extra_args)
        logger.debug("Launching %s %s", executable, " ".join(args))
        try:
            proc = await asyncio.create_subprocess_exec(
                executable,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
                start_new_session=(os.name == "posix"),
            )
        except OSError as exc:
            shutil.rmtree(profile_dir, ignore_errors=True)
            raise BrowserLaunchError(f"Could not start browser {executable}: {exc}") from exc

        process = cls(proc, endpoint="", profile_dir=profile_dir)
        try:
            process.endpoint = await wait_for_devtools(port, proc, timeout_s)
        except BaseException:
            await process.terminate()
            raise
        logger.debug("Browser pid %s listening on %s", proc.pid, process.endpoint)
        return process

    async def wait(self) -> int:
        return await self._proc.wait()

    async def terminate(self, grace_s: float = 3.0) -> None:
        """Stop the process (TERM, then KILL) and remove its profile directory."""

        try:
            if self._proc.returncode is None:
                self._signal(signal.SIGTERM)
                try:
                    await asyncio.wait_for(self._proc.wait(), timeout=grace_s)
                except asyncio.TimeoutError:
                    self._signal(signal.SIGKILL if os.name == "posix" else signal.SIGTERM)
                    with contextlib.suppress(ProcessLookupError):
                        await self._proc.wait()
        finally:
            shutil.rmtree(self.profile_dir, ignore_errors=True)

    def _signal(self, signum: int) -> None:
        if os.name == "posix" and self._proc.pid is not None:
            with contextlib.suppress(ProcessLookupError, PermissionError):
                os.killpg(self._proc.pid, signum)
                return
        with contextlib.suppress(ProcessLookupError):
            self._proc.send_signal(signum)


__all__ = ["BrowserProcess", "build_launch_args", "pick_free_port", "wait_for_devtools"]
