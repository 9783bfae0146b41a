from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Sequence

from .endpoint import EndpointStore
from .errors import BrowserLaunchError, BrowserNotFound
from .launcher import BrowserProcess
from .locator import locate_async
from .models import BrowserHandle, BrowserOwnership

logger = logging.getLogger(__name__)

LocateFn = Callable[[str | None], Awaitable[str | None]]
LaunchFn = Callable[..., Awaitable[BrowserProcess]]


async def connect(chromium: Any, endpoint: str, timeout_s: float) -> Any:
    return await chromium.connect_over_cdp(endpoint, timeout=timeout_s * 1000)


class SessionAcquirer:
    """Attach to the shared browser when one is reachable, else launch a disposable one."""

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

    async def connect_shared(self) -> BrowserHandle | None:
        endpoint = self._store.read()
        if endpoint is None:
            logger.debug("No shared browser record at %s", self._store.path)
            return None
        try:
            browser = await connect(self._chromium, endpoint, self._connect_timeout_s)
        except Exception as exc:
            logger.debug("Shared browser at %s is unreachable: %s", endpoint, exc)
            return None
        logger.info("Connected to shared browser instance at %s", endpoint)
        return BrowserHandle(browser=browser, ownership=BrowserOwnership.BORROWED, endpoint=endpoint)

    async def launch_disposable(self, executable: str) -> BrowserHandle:
        logger.info("Launching browser...")
        process = await self._launch(
            executable,
            extra_args=self._extra_args,
            timeout_s=self._launch_timeout_s,
        )
        try:
            browser = await connect(self._chromium, process.endpoint, self._connect_timeout_s)
        except Exception as exc:
            await process.terminate()
            raise BrowserLaunchError(f"Could not connect to launched browser: {exc}") from exc
        return BrowserHandle(
            browser=browser,
            ownership=BrowserOwnership.OWNED,
            endpoint=process.endpoint,
            process=process,
        )

    async def acquire(self, chrome_path: str | None = None, executable: str | None = None) -> BrowserHandle:
        """Return a browser handle tagged with who must shut the browser down.

        ``executable`` is a path located ahead of time; when missing the
        locator runs only after the shared browser turned out to be absent.
        """

        shared = await self.connect_shared()
        if shared is not None:
            return shared

        executable = executable or await self._locate(chrome_path)
        if not executable:
            raise BrowserNotFound()
        return await self.launch_disposable(executable)


__all__ = ["SessionAcquirer", "connect"]
