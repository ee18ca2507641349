"""Run context — service container for dependency injection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from autopatcher.config import Config
    from autopatcher.core.manifest import ManifestLoader
    from autopatcher.core.orchestrator import Orchestrator
    from autopatcher.core.scanner import Scanner
    from autopatcher.data.catalogue import Catalogue
    from autopatcher.data.download_cache import DownloadCache


@dataclass
class AppContext:
    """
    Central service container.

    Built once per run by ``main.create_context`` and handed to
    ``run_pipeline``.
    """

    config: Config

    # ROM catalogue
    catalogue: Catalogue
    scanner: Scanner

    # Remote patches
    cache: DownloadCache
    manifest_loader: ManifestLoader
    orchestrator: Orchestrator

    def close(self) -> None:
        self.cache.close()
