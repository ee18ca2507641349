"""Tests for manifest fetching and schema validation."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from autopatcher.config import load_config
from autopatcher.core.manifest import ManifestLoader
from autopatcher.data.download_cache import DownloadCache
from autopatcher.errors import ManifestError
from autopatcher.models.patch_descriptor import PatchDescriptor

BASE = "https://patches.test/public"
MANIFEST_URL = BASE + "/patches/pocket.json"
MD5 = "0123456789abcdef0123456789abcdef"


def _manifest(*patches: dict[str, Any], updated: Any = "2023-03-01") -> bytes:
    return json.dumps({"updated": updated, "patches": list(patches)}).encode()


@pytest.fixture
def config(tmp_path: Path):
    return load_config(
        rom_dir=tmp_path / "roms",
        cache_dir=tmp_path / "cache",
        output_dir=tmp_path / "out",
        base_url=BASE,
        retry_backoff=0,
    )


@pytest.fixture
def loader(config, server) -> ManifestLoader:
    return ManifestLoader(config, DownloadCache.from_config(config, client=server.client()))


class TestParse:
    def test_valid_manifest(self, loader: ManifestLoader) -> None:
        manifest = loader.parse(
            _manifest(
                {"name": "Game A", "md5": MD5.upper(), "downloadUrl": "/patches/a.ips"},
                {
                    "name": "Game B",
                    "md5": MD5,
                    "downloadUrl": "https://other.test/b.ips",
                    "extension": "gbc",
                },
            )
        )
        assert manifest.updated == "2023-03-01"
        assert manifest.patches == (
            PatchDescriptor("Game A", MD5, BASE + "/patches/a.ips", "pocket"),
            PatchDescriptor("Game B", MD5, "https://other.test/b.ips", "gbc"),
        )

    def test_numeric_timestamp(self, loader: ManifestLoader) -> None:
        assert loader.parse(_manifest(updated=1672531200)).updated == "1672531200"

    def test_empty_patch_list(self, loader: ManifestLoader) -> None:
        assert len(loader.parse(_manifest())) == 0

    @pytest.mark.parametrize(
        "raw",
        [
            b"export default { patches: [] }",
            b"[]",
            json.dumps({"patches": []}).encode(),
            json.dumps({"updated": "x"}).encode(),
            json.dumps({"updated": True, "patches": []}).encode(),
            json.dumps({"updated": "x", "patches": {}}).encode(),
        ],
    )
    def test_invalid_structure(self, loader: ManifestLoader, raw: bytes) -> None:
        with pytest.raises(ManifestError):
            loader.parse(raw)

    @pytest.mark.parametrize(
        "patch",
        [
            "not an object",
            {"md5": MD5, "downloadUrl": "/a.ips"},
            {"name": "  ", "md5": MD5, "downloadUrl": "/a.ips"},
            {"name": "A", "md5": "xyz", "downloadUrl": "/a.ips"},
            {"name": "A", "md5": MD5 + "00", "downloadUrl": "/a.ips"},
            {"name": "A", "md5": MD5, "downloadUrl": "a.ips"},
            {"name": "A", "md5": MD5, "downloadUrl": "ftp://host/a.ips"},
            {"name": "A", "md5": MD5},
            {"name": "A", "md5": MD5, "downloadUrl": "/a.ips", "extension": ""},
            {"name": "A", "md5": MD5, "downloadUrl": "/a.ips", "extension": "../x"},
            {"name": "A", "md5": MD5, "downloadUrl": "/a.ips", "extension": 3},
        ],
    )
    def test_invalid_descriptor(self, loader: ManifestLoader, patch: Any) -> None:
        with pytest.raises(ManifestError):
            loader.parse(_manifest(patch))


class TestFetch:
    def test_fetch_through_cache(self, loader: ManifestLoader, server) -> None:
        server.add(MANIFEST_URL, _manifest({"name": "A", "md5": MD5, "downloadUrl": "/a.ips"}))
        first = loader.fetch()
        second = loader.fetch()
        assert first == second
        assert server.hits[MANIFEST_URL] == 1

    def test_refresh_manifest(self, tmp_path: Path, server) -> None:
        config = load_config(
            cache_dir=tmp_path / "cache",
            base_url=BASE,
            refresh_manifest=True,
            retry_backoff=0,
        )
        loader = ManifestLoader(config, DownloadCache.from_config(config, client=server.client()))
        server.add(MANIFEST_URL, _manifest())
        loader.fetch()
        loader.fetch()
        assert server.hits[MANIFEST_URL] == 2

    def test_http_failure_is_manifest_error(self, loader: ManifestLoader) -> None:
        with pytest.raises(ManifestError, match="404"):
            loader.fetch()
