import asyncio
from pathlib import Path

import pytest

from fakes import FakeBrowser, FakeChromium, FakeLauncher, FakeProcess, locate_returning
from html2pdf.endpoint import EndpointStore
from html2pdf.errors import BrowserNotFound
from html2pdf.server import SharedServer

SHARED = "ws://127.0.0.1:9222/devtools/browser/shared"


def build(tmp_path: Path, chromium: FakeChromium, *, executable: str | None = "/usr/bin/chromium", **launcher_kwargs):
    store = EndpointStore(tmp_path / "endpoint.ws")
    launcher = FakeLauncher(chromium, **launcher_kwargs)
    server = SharedServer(chromium, store, locate=locate_returning(executable), launch=launcher)
    return store, launcher, server


def test_stop_without_record(tmp_path: Path) -> None:
    store, _, server = build(tmp_path, FakeChromium())
    assert asyncio.run(server.stop()) is False
    assert not store.exists()


def test_stop_unreachable_record_still_clears(tmp_path: Path) -> None:
    store, _, server = build(tmp_path, FakeChromium())
    store.write("ws://127.0.0.1:1/devtools/browser/gone")
    assert asyncio.run(server.stop()) is False
    assert not store.exists()


def test_stop_closes_running_browser(tmp_path: Path) -> None:
    shared = FakeBrowser()
    store, _, server = build(tmp_path, FakeChromium({SHARED: shared}))
    store.write(SHARED)
    assert asyncio.run(server.stop()) is True
    assert shared.sessions[0].sent == ["Browser.close"]
    assert shared.terminated
    assert not store.exists()


def test_status(tmp_path: Path) -> None:
    chromium = FakeChromium({SHARED: FakeBrowser()})
    store, _, server = build(tmp_path, chromium)
    assert asyncio.run(server.status()).endpoint is None

    store.write(SHARED)
    assert asyncio.run(server.status()).running

    store.write("ws://127.0.0.1:1/devtools/browser/gone")
    status = asyncio.run(server.status())
    assert status.endpoint is not None
    assert not status.running


def test_launch_is_noop_when_running(tmp_path: Path) -> None:
    store, launcher, server = build(tmp_path, FakeChromium({SHARED: FakeBrowser()}))
    store.write(SHARED)
    assert asyncio.run(server.launch()) is None
    assert launcher.calls == []
    assert store.read() == SHARED


def test_launch_replaces_stale_record(tmp_path: Path) -> None:
    store, launcher, server = build(tmp_path, FakeChromium())
    store.write("ws://127.0.0.1:1/devtools/browser/gone")
    process = asyncio.run(server.launch())
    assert process is launcher.processes[0]
    assert store.read() == process.endpoint


def test_launch_without_executable(tmp_path: Path) -> None:
    store, launcher, server = build(tmp_path, FakeChromium(), executable=None)
    with pytest.raises(BrowserNotFound):
        asyncio.run(server.launch())
    assert launcher.calls == []
    assert not store.exists()


def test_serve_stops_on_shutdown_request(tmp_path: Path) -> None:
    store, _, server = build(tmp_path, FakeChromium())
    process = FakeProcess("ws://127.0.0.1:9001/devtools/browser/launched")
    store.write(process.endpoint)

    async def scenario() -> int:
        shutdown = asyncio.Event()
        asyncio.get_running_loop().call_later(0.01, shutdown.set)
        return await server.serve(process, shutdown)

    assert asyncio.run(scenario()) == 0
    assert process.terminated
    assert not store.exists()


def test_serve_reports_unexpected_exit(tmp_path: Path) -> None:
    store, _, server = build(tmp_path, FakeChromium())
    process = FakeProcess("ws://127.0.0.1:9001/devtools/browser/launched", exit_code=9)
    store.write(process.endpoint)

    async def scenario() -> int:
        return await server.serve(process, asyncio.Event())

    assert asyncio.run(scenario()) == 1
    assert not store.exists()
