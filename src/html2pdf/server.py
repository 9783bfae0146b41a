"""Lifecycle of the shared, long-lived browser instance."""

from __future__ import annotations

import asyncio
import atexit
import contextlib
import logging
import signal
from dataclasses import dataclass
from typing import Any, Sequence

from .endpoint import EndpointStore
from .errors import BrowserNotFound
from .launcher import BrowserProcess
from .locator import locate_async
from .session import LaunchFn, LocateFn, connect

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ServerStatus:
    endpoint: str | None
    reachable: bool

    @property
    def running(self) -> bool:
        return self.endpoint is not None and self.reachable


class SharedServer:
    def __init__(
        self,
        chromium: Any,
        store: EndpointStore,
        *,
        connect_timeout_s: float = 5.0,
        launch_timeout_s: float = 30.0,
        extra_args: Sequence[str] = (),
        locate: LocateFn = locate_async,
        launch: LaunchFn = BrowserProcess.launch,
    ) -> None:
        self._chromium = chromium
        self._store = store
        self._connect_timeout_s = connect_timeout_s
        self._launch_timeout_s = launch_timeout_s
        self._extra_args = tuple(extra_args)
        self._locate = locate
        self._launch = launch

    async def status(self) -> ServerStatus:
        endpoint = self._store.read()
        if endpoint is None:
            return ServerStatus(endpoint=None, reachable=False)
        try:
            browser = await connect(self._chromium, endpoint, self._connect_timeout_s)
        except Exception as exc:
            logger.debug("Endpoint %s is not reachable: %s", endpoint, exc)
            return ServerStatus(endpoint=endpoint, reachable=False)
        with contextlib.suppress(Exception):
            await browser.close()
        return ServerStatus(endpoint=endpoint, reachable=True)

    async def launch(self, chrome_path: str | None = None) -> BrowserProcess | None:
        """Launch the shared browser and record its endpoint.

        Returns ``None`` when a reachable shared browser already exists.
        """

        current = await self.status()
        if current.running:
            logger.info("A browser instance is already running at %s", current.endpoint)
            return None
        if current.endpoint is not None:
            logger.warning("Removing stale endpoint record %s", self._store.path)
            self._store.clear()

        logger.info("Starting a new shared browser instance...")
        executable = await self._locate(chrome_path)
        if not executable:
            raise BrowserNotFound("Could not find a Chrome/Chromium executable to start.")
        process = await self._launch(
            executable,
            extra_args=self._extra_args,
            timeout_s=self._launch_timeout_s,
        )
        self._store.write(process.endpoint)
        logger.info("Browser instance started, endpoint saved to %s", self._store.path)
        return process

    async def start(self, chrome_path: str | None = None) -> int:
        """Run the shared browser until a signal arrives or the browser dies.

        Returns the process exit code: 0 after a requested shutdown, 1 when
        the browser went away on its own.
        """

        process = await self.launch(chrome_path)
        if process is None:
            return 0

        atexit.register(self._store.clear)
        shutdown = asyncio.Event()
        installed = self._install_signal_handlers(shutdown)
        try:
            return await self.serve(process, shutdown)
        finally:
            loop = asyncio.get_running_loop()
            for signum in installed:
                loop.remove_signal_handler(signum)

    async def serve(self, process: BrowserProcess, shutdown: asyncio.Event) -> int:
        logger.info("This process will keep running. Press Ctrl+C or run 'html2pdf browser stop' to stop it.")
        exited = asyncio.create_task(process.wait())
        requested = asyncio.create_task(shutdown.wait())
        try:
            done, _ = await asyncio.wait({exited, requested}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (exited, requested):
                if not task.done():
                    task.cancel()

        if requested in done:
            logger.info("Gracefully shutting down shared browser instance...")
            await process.terminate()
            self._store.clear()
            logger.info("Cleanup complete.")
            return 0

        logger.warning("Shared browser instance exited unexpectedly (code %s). Cleaning up...", process.returncode)
        await process.terminate()
        self._store.clear()
        return 1

    def _install_signal_handlers(self, shutdown: asyncio.Event) -> list[int]:
        loop = asyncio.get_running_loop()
        installed: list[int] = []
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, shutdown.set)
            except (NotImplementedError, RuntimeError):
                # Windows event loops have no add_signal_handler.
                signal.signal(signum, lambda *_: loop.call_soon_threadsafe(shutdown.set))
                continue
            installed.append(signum)
        return installed

    async def stop(self) -> bool:
        """Ask the shared browser to exit and always remove the record.

        Returns ``True`` when a running browser was closed.
        """

        endpoint = self._store.read()
        if endpoint is None:
            self._store.clear()
            logger.info("No shared browser instance is recorded.")
            return False
        closed = False
        try:
            logger.info("Connecting to running browser to shut it down...")
            browser = await connect(self._chromium, endpoint, self._connect_timeout_s)
            session = await browser.new_browser_cdp_session()
            with contextlib.suppress(Exception):
                # The connection drops while Browser.close is answered.
                await session.send("Browser.close")
            with contextlib.suppress(Exception):
                await browser.close()
            closed = True
            logger.info("Browser instance closed.")
        except Exception as exc:
            logger.warning("No active browser instance found or could not connect: %s", exc)
        finally:
            self._store.clear()
            logger.info("Cleanup complete.")
        return closed


__all__ = ["ServerStatus", "SharedServer"]
