from __future__ import annotations

import json
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping

from .constraint import (
    DEFAULT_BROWSER_CACHE,
    DEFAULT_CONFIG_PATH,
    DEFAULT_ENDPOINT_FILE,
    DEFAULT_RUN_LOG,
    GS_PRESETS,
    PAGE_FORMATS,
)
from .errors import ConfigError


@dataclass(slots=True)
class RuntimeConfig:
    cache_dir: Path = DEFAULT_BROWSER_CACHE
    endpoint_file: Path = DEFAULT_ENDPOINT_FILE
    run_log: Path = DEFAULT_RUN_LOG
    timeout_minutes: int = 5
    page_format: str = "A4"
    page_layout: str = "Portrait"
    launch_timeout_s: float = 30.0
    connect_timeout_s: float = 5.0


@dataclass(slots=True)
class BrowserConfig:
    extra_args: tuple[str, ...] = ()


@dataclass(slots=True)
class CompressConfig:
    preset: str = "ebook"


@dataclass(slots=True)
class AppConfig:
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
    browser: BrowserConfig = field(default_factory=BrowserConfig)
    compress: CompressConfig = field(default_factory=CompressConfig)


def _read_toml(path: Path) -> Mapping[str, object]:
    if not path.exists():
        return {}
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid configuration file {path}: {exc}") from exc


def _path(value: object, default: Path) -> Path:
    if value is None or value == "":
        return default
    return Path(str(value)).expanduser()


def _build_runtime(data: Mapping[str, object] | None) -> RuntimeConfig:
    if not data:
        return RuntimeConfig()
    defaults = RuntimeConfig()
    page_format = str(data.get("page_format", defaults.page_format))
    if page_format not in PAGE_FORMATS:
        raise ConfigError(f"Unsupported page_format in configuration: {page_format}")
    page_layout = str(data.get("page_layout", defaults.page_layout)).capitalize()
    if page_layout not in {"Portrait", "Landscape"}:
        raise ConfigError(f"Unsupported page_layout in configuration: {page_layout}")
    return RuntimeConfig(
        cache_dir=_path(data.get("cache_dir"), defaults.cache_dir),
        endpoint_file=_path(data.get("endpoint_file"), defaults.endpoint_file),
        run_log=_path(data.get("run_log"), defaults.run_log),
        timeout_minutes=int(data.get("timeout_minutes", defaults.timeout_minutes)),
        page_format=page_format,
        page_layout=page_layout,
        launch_timeout_s=float(data.get("launch_timeout_s", defaults.launch_timeout_s)),
        connect_timeout_s=float(data.get("connect_timeout_s", defaults.connect_timeout_s)),
    )


def _tuple_of_strings(value: object | None) -> tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, Iterable):
        return tuple(str(item) for item in value)
    raise ConfigError(f"Unsupported extra_args configuration: {value!r}")


def _build_browser(data: Mapping[str, object] | None) -> BrowserConfig:
    if not data:
        return BrowserConfig()
    return BrowserConfig(extra_args=_tuple_of_strings(data.get("extra_args")))


def _build_compress(data: Mapping[str, object] | None) -> CompressConfig:
    if not data:
        return CompressConfig()
    preset = str(data.get("preset", "ebook"))
    if preset not in GS_PRESETS:
        raise ConfigError(f"Unsupported compress preset in configuration: {preset}")
    return CompressConfig(preset=preset)


def load_config(path: Path | None = None) -> AppConfig:
    path = path or DEFAULT_CONFIG_PATH
    raw = _read_toml(path)
    runtime_data = raw.get("runtime") if isinstance(raw, Mapping) else None
    browser_data = raw.get("browser") if isinstance(raw, Mapping) else None
    compress_data = raw.get("compress") if isinstance(raw, Mapping) else None
    return AppConfig(
        runtime=_build_runtime(runtime_data if isinstance(runtime_data, Mapping) else None),
        browser=_build_browser(browser_data if isinstance(browser_data, Mapping) else None),
        compress=_build_compress(compress_data if isinstance(compress_data, Mapping) else None),
    )


def dump_config(config: AppConfig) -> str:
    payload = {
        "runtime": {
            "cache_dir": str(config.runtime.cache_dir),
            "endpoint_file": str(config.runtime.endpoint_file),
            "run_log": str(config.runtime.run_log),
            "timeout_minutes": config.runtime.timeout_minutes,
            "page_format": config.runtime.page_format,
            "page_layout": config.runtime.page_layout,
            "launch_timeout_s": config.runtime.launch_timeout_s,
            "connect_timeout_s": config.runtime.connect_timeout_s,
        },
        "browser": {
            "extra_args": list(config.browser.extra_args),
        },
        "compress": {
            "preset": config.compress.preset,
        },
    }
    return json.dumps(payload, indent=2)
