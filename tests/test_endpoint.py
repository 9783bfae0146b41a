from pathlib import Path

from html2pdf.endpoint import EndpointStore


def test_missing_record_reads_none(tmp_path: Path) -> None:
    store = EndpointStore(tmp_path / "endpoint.ws")
    assert store.read() is None
    assert not store.exists()


def test_write_read_clear(tmp_path: Path) -> None:
    store = EndpointStore(tmp_path / "cache" / "endpoint.ws")
    store.write("ws://127.0.0.1:9222/devtools/browser/abc\n")
    assert store.exists()
    assert store.read() == "ws://127.0.0.1:9222/devtools/browser/abc"
    assert store.clear() is True
    assert store.clear() is False
    assert store.read() is None


def test_empty_record_reads_none(tmp_path: Path) -> None:
    path = tmp_path / "endpoint.ws"
    path.write_text("  \n")
    assert EndpointStore(path).read() is None


def test_unreadable_record_reads_none(tmp_path: Path) -> None:
    path = tmp_path / "endpoint.ws"
    path.mkdir()
    assert EndpointStore(path).read() is None
