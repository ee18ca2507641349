"""Patch orchestrator — join catalogue and manifest, download, patch, classify."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from loguru import logger

from autopatcher.config import Config
from autopatcher.core.ips import apply_patch
from autopatcher.data.catalogue import Catalogue
from autopatcher.data.download_cache import DownloadCache
from autopatcher.errors import AutopatcherError, Cancelled, OutputConflict
from autopatcher.models.patch_descriptor import Manifest, PatchDescriptor
from autopatcher.models.run_result import Outcome, RunReport, RunResult
from autopatcher.utils import atomic_write_bytes, sanitize_filename


class Orchestrator:
    """
    Per-descriptor patch pipeline.

    Each manifest entry ends up in exactly one of missing / patched /
    failed / skipped.  Descriptors are processed on a bounded thread pool;
    the exclusive create of the output file is the only point where workers
    contend, so an existing output is never overwritten.
    """

    def __init__(
        self,
        config: Config,
        cache: DownloadCache,
        cancel: threading.Event | None = None,
    ) -> None:
        self._config = config
        self._cache = cache
        self._cancel = cancel

    def run(self, catalogue: Catalogue, manifest: Manifest) -> RunReport:
        self._config.output_dir.mkdir(parents=True, exist_ok=True)
        width = max((len(d.name) for d in manifest.patches), default=0)

        with ThreadPoolExecutor(
            max_workers=self._config.workers, thread_name_prefix="patch"
        ) as pool:
            futures = [
                pool.submit(self._process_safely, d, catalogue, width)
                for d in manifest.patches
            ]
            try:
                results = tuple(f.result() for f in futures)
            except KeyboardInterrupt:
                if self._cancel is not None:
                    self._cancel.set()
                pool.shutdown(cancel_futures=True)
                raise

        report = RunReport(results=results, updated=manifest.updated)
        logger.info(report.summary())
        return report

    def output_path_for(self, descriptor: PatchDescriptor) -> Path:
        stem = sanitize_filename(descriptor.name) or descriptor.content_hash
        return self._config.output_dir / f"{stem}.{descriptor.extension}"

    def _process_safely(
        self, descriptor: PatchDescriptor, catalogue: Catalogue, width: int
    ) -> RunResult:
        try:
            return self.process(descriptor, catalogue, width)
        except Exception as e:
            logger.exception(f"Unexpected error processing {descriptor.name}")
            return RunResult.failed(descriptor, f"{type(e).__name__}: {e}")

    def process(
        self, descriptor: PatchDescriptor, catalogue: Catalogue, width: int = 0
    ) -> RunResult:
        name = descriptor.name
        if self._cancel is not None and self._cancel.is_set():
            return RunResult.failed(descriptor, str(Cancelled()))

        rom_path = catalogue.lookup(descriptor.content_hash)
        if rom_path is None:
            logger.info(f"{name} ({descriptor.content_hash}) not found in catalogue, skipping")
            return RunResult.missing(descriptor)

        logger.info(f"Found {name.ljust(width)} {rom_path.name}")

        try:
            patch_data = self._cache.fetch(descriptor.download_url)
        except (AutopatcherError, OSError) as e:
            logger.error(f"Error downloading patch for {name}: {e}")
            return RunResult.failed(descriptor, str(e), rom_path)

        output_path = self.output_path_for(descriptor)
        try:
            self._claim(output_path)
        except OutputConflict:
            logger.debug(f"{output_path.name} already exists, skipping")
            return RunResult(descriptor, Outcome.SKIPPED, rom_path=rom_path, output_path=output_path)
        except OSError as e:
            logger.error(f"Cannot create {output_path}: {e}")
            return RunResult.failed(descriptor, str(e), rom_path)

        try:
            patched = apply_patch(rom_path.read_bytes(), patch_data)
            atomic_write_bytes(output_path, patched)
        except (AutopatcherError, OSError) as e:
            output_path.unlink(missing_ok=True)
            logger.error(f"Failed to patch {name} ({descriptor.content_hash}): {e}")
            return RunResult.failed(descriptor, str(e), rom_path)

        logger.info(f"Wrote {output_path}")
        return RunResult(descriptor, Outcome.PATCHED, rom_path=rom_path, output_path=output_path)

    @staticmethod
    def _claim(path: Path) -> None:
        """Exclusively create *path* as an empty placeholder."""
        try:
            with open(path, "xb"):
                pass
        except FileExistsError as e:
            raise OutputConflict(path) from e
