from __future__ import annotations

import logging
from pathlib import Path

from .utils import atomic_write

logger = logging.getLogger(__name__)


class EndpointStore:
    """On-disk record of the shared browser's DevTools endpoint.

    The file is shared by independent processes, so reads are advisory: a
    missing, unreadable or empty record all read as ``None``.
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.is_file()

    def read(self) -> str | None:
        try:
            endpoint = self._path.read_text(encoding="utf-8").strip()
        except OSError:
            return None
        return endpoint or None

    def write(self, endpoint: str) -> None:
        atomic_write(self._path, endpoint.strip())

    def clear(self) -> bool:
        try:
            self._path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.warning("Could not remove endpoint file %s: %s", self._path, exc)
            return False
        return True


__all__ = ["EndpointStore"]
