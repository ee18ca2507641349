"""Run configuration — immutable value built once from defaults, JSON and CLI flags."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from loguru import logger

DEFAULT_BASE_URL = "https://raw.githubusercontent.com/JonAbrams/retropatcher/main/public"

_DEFAULTS: dict[str, Any] = {
    "rom_dir": "./roms",
    "cache_dir": "./.cache",
    "output_dir": "./output",
    "log_file": None,
    "base_url": DEFAULT_BASE_URL,
    "manifest_url": "/patches/pocket.json",
    "rom_extensions": [".gb", ".gbc"],
    "default_extension": "pocket",
    "workers": 4,
    "timeout": 30.0,
    "retries": 3,
    "retry_backoff": 0.5,
    "refresh_manifest": False,
    "progress_interval": 20,
}


@dataclass(frozen=True)
class Config:
    """Settings for one patch run. Passed explicitly to every service."""

    rom_dir: Path
    cache_dir: Path
    output_dir: Path
    log_file: Path | None = None
    base_url: str = DEFAULT_BASE_URL
    manifest_url: str = DEFAULT_BASE_URL + "/patches/pocket.json"
    rom_extensions: tuple[str, ...] = (".gb", ".gbc")
    default_extension: str = "pocket"
    workers: int = 4
    timeout: float = 30.0
    retries: int = 3
    retry_backoff: float = 0.5
    refresh_manifest: bool = False
    progress_interval: int = 20

    @property
    def catalogue_path(self) -> Path:
        return self.cache_dir / "catalogue.json"

    @property
    def log_dir(self) -> Path:
        return self.cache_dir / "logs"

    def resolve_url(self, url: str) -> str:
        """Prefix root-relative URLs (``/patches/...``) with ``base_url``."""
        if url.startswith("/"):
            return self.base_url.rstrip("/") + url
        return url

    def is_candidate(self, path: Path) -> bool:
        """Whether *path* has one of the configured ROM extensions."""
        return path.suffix.lower() in self.rom_extensions


def _deep_merge(base: dict, override: dict) -> None:
    """Recursively merge override into base."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


def _read_config_file(path: Path) -> dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(f"Failed to load config {path}, using defaults: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Ignoring config {path}: top level is not an object")
        return {}
    unknown = set(data) - set(_DEFAULTS)
    if unknown:
        logger.warning(f"Ignoring unknown config keys: {', '.join(sorted(unknown))}")
    return {k: v for k, v in data.items() if k in _DEFAULTS}


def load_config(path: Path | None = None, **overrides: Any) -> Config:
    """
    Build a ``Config``.

    Precedence (lowest first): built-in defaults, the JSON file at *path*,
    keyword *overrides* whose value is not ``None``.
    """
    data: dict[str, Any] = json.loads(json.dumps(_DEFAULTS))  # deep copy defaults
    if path is not None:
        _deep_merge(data, _read_config_file(path))
    _deep_merge(data, {k: v for k, v in overrides.items() if v is not None})

    base_url = str(data["base_url"]).rstrip("/")
    manifest_url = str(data["manifest_url"])
    if manifest_url.startswith("/"):
        manifest_url = base_url + manifest_url

    log_file = data.get("log_file")
    extensions = tuple(
        ext.lower() if ext.startswith(".") else f".{ext.lower()}"
        for ext in data["rom_extensions"]
    )

    return Config(
        rom_dir=Path(data["rom_dir"]).expanduser().resolve(),
        cache_dir=Path(data["cache_dir"]).expanduser().resolve(),
        output_dir=Path(data["output_dir"]).expanduser().resolve(),
        log_file=Path(log_file).expanduser().resolve() if log_file else None,
        base_url=base_url,
        manifest_url=manifest_url,
        rom_extensions=extensions,
        default_extension=str(data["default_extension"]),
        workers=max(1, int(data["workers"])),
        timeout=float(data["timeout"]),
        retries=max(0, int(data["retries"])),
        retry_backoff=max(0.0, float(data["retry_backoff"])),
        refresh_manifest=bool(data["refresh_manifest"]),
        progress_interval=max(1, int(data["progress_interval"])),
    )
