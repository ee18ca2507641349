"""Batch pipeline — scan and manifest fetch in parallel, then patch."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor, wait

from loguru import logger

from autopatcher.context import AppContext
from autopatcher.core.scanner import ProgressCallback
from autopatcher.models.run_result import RunReport


def run_pipeline(
    ctx: AppContext,
    cancel: threading.Event | None = None,
    progress: ProgressCallback | None = None,
) -> RunReport:
    """
    Run one batch.

    The catalogue scan and the manifest fetch are independent and run
    concurrently; patching starts only after both have finished.  A
    ``ManifestError`` or a ``FilesystemError`` on the ROM root propagates.
    Setting *cancel* stops the scan at the next file.
    """
    config = ctx.config
    config.cache_dir.mkdir(parents=True, exist_ok=True)
    config.output_dir.mkdir(parents=True, exist_ok=True)

    ctx.catalogue.load()

    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="prepare") as pool:
        scan_future = pool.submit(
            ctx.scanner.build_or_update, ctx.catalogue, progress=progress, cancel=cancel
        )
        manifest_future = pool.submit(ctx.manifest_loader.fetch)
        try:
            wait((scan_future, manifest_future))
        except KeyboardInterrupt:
            # The scan checks this once per file
            if cancel is not None:
                cancel.set()
            raise
    # The manifest error takes precedence
    manifest = manifest_future.result()
    scan_future.result()

    logger.debug(f"Joining {ctx.catalogue.count} ROM(s) against {len(manifest)} patch(es)")
    return ctx.orchestrator.run(ctx.catalogue, manifest)
