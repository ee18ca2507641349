"""Manifest loader — fetch the patch list through the cache and validate it."""

from __future__ import annotations

import json
import re
from typing import Any

from loguru import logger

from autopatcher.config import Config
from autopatcher.data.download_cache import DownloadCache
from autopatcher.errors import AutopatcherError, ManifestError
from autopatcher.models.patch_descriptor import Manifest, PatchDescriptor

_MD5_RE = re.compile(r"[0-9a-fA-F]{32}")


class ManifestLoader:
    """
    Loads the list of available patches.

    The manifest is JSON and is only ever parsed, never executed::

        {
            "updated": "2023-01-01",
            "patches": [
                {"name": "...", "md5": "<32 hex>", "downloadUrl": "/patches/x.ips",
                 "extension": "pocket"}
            ]
        }
    """

    def __init__(self, config: Config, cache: DownloadCache) -> None:
        self._config = config
        self._cache = cache

    def fetch(self, url: str | None = None) -> Manifest:
        url = self._config.resolve_url(url or self._config.manifest_url)
        try:
            raw = self._cache.fetch(url, force=self._config.refresh_manifest)
        except (AutopatcherError, OSError) as e:
            raise ManifestError(f"Failed to fetch manifest {url}: {e}") from e
        manifest = self.parse(raw)
        logger.info(f"Manifest {url}: {len(manifest)} patch(es), updated {manifest.updated}")
        return manifest

    def parse(self, raw: bytes) -> Manifest:
        """Parse and validate manifest bytes. Raises ``ManifestError``."""
        try:
            data = json.loads(raw.decode("utf-8-sig"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ManifestError(f"Manifest is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise ManifestError("Manifest must be a JSON object")

        updated = data.get("updated")
        if isinstance(updated, bool) or not isinstance(updated, (str, int, float)):
            raise ManifestError("Manifest 'updated' must be a string or number")

        patches = data.get("patches")
        if not isinstance(patches, list):
            raise ManifestError("Manifest 'patches' must be a list")

        descriptors = tuple(
            self._parse_descriptor(item, index) for index, item in enumerate(patches)
        )
        return Manifest(updated=str(updated), patches=descriptors)

    def _parse_descriptor(self, item: Any, index: int) -> PatchDescriptor:
        where = f"patches[{index}]"
        if not isinstance(item, dict):
            raise ManifestError(f"{where} must be an object")

        name = item.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ManifestError(f"{where}.name must be a non-empty string")

        md5 = item.get("md5")
        if not isinstance(md5, str) or not _MD5_RE.fullmatch(md5):
            raise ManifestError(f"{where}.md5 must be 32 hex characters ({name})")

        download_url = item.get("downloadUrl")
        if not isinstance(download_url, str) or not (
            download_url.startswith("/")
            or download_url.startswith("http://")
            or download_url.startswith("https://")
        ):
            raise ManifestError(
                f"{where}.downloadUrl must be an http(s) or root-relative URL ({name})"
            )

        extension = item.get("extension", self._config.default_extension)
        if (
            not isinstance(extension, str)
            or not extension
            or any(sep in extension for sep in ("/", "\\"))
        ):
            raise ManifestError(f"{where}.extension must be a plain non-empty string ({name})")

        return PatchDescriptor(
            name=name,
            content_hash=md5.lower(),
            download_url=self._config.resolve_url(download_url),
            extension=extension,
        )
