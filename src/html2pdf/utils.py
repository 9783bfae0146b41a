from __future__ import annotations

import hashlib
import os
import re
import tempfile
import time
from pathlib import Path


VERSION_SPLIT_RE = re.compile(r"[.\-_]")


def compare_versions(a: str, b: str) -> int:
    """Compare dotted version strings numerically.

    Missing trailing components count as zero, so ``"2.1"`` equals ``"2.1.0"``.
    Non-numeric components also count as zero.
    """

    parts_a = [_as_int(part) for part in VERSION_SPLIT_RE.split(a.strip())]
    parts_b = [_as_int(part) for part in VERSION_SPLIT_RE.split(b.strip())]
    length = max(len(parts_a), len(parts_b))
    for index in range(length):
        num_a = parts_a[index] if index < len(parts_a) else 0
        num_b = parts_b[index] if index < len(parts_b) else 0
        if num_a > num_b:
            return 1
        if num_a < num_b:
            return -1
    return 0


def _as_int(part: str) -> int:
    try:
        return int(part)
    except ValueError:
        return 0


def generate_run_id(prefix: str = "run") -> str:
    epoch_ms = int(time.time() * 1000)
    random_bits = hashlib.sha256(os.urandom(16)).hexdigest()[:8]
    return f"{prefix}-{epoch_ms}-{random_bits}"


def atomic_write(path: Path, data: str | bytes, encoding: str = "utf-8") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = data.encode(encoding) if isinstance(data, str) else data
    with tempfile.NamedTemporaryFile("wb", delete=False, dir=path.parent, prefix=f".{path.name}.") as tmp:
        tmp.write(payload)
        tmp.flush()
        os.fsync(tmp.fileno())
    os.replace(tmp.name, path)


def format_size(size_bytes: int) -> str:
    return f"{size_bytes / 1024:.2f} KB"


def compression_ratio(original: int, compressed: int) -> float:
    if original <= 0:
        return 0.0
    return (original - compressed) / original
