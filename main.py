"""Command-line entry point — wires services and runs one patch batch."""

from __future__ import annotations

import argparse
import sys
import threading
from pathlib import Path

import httpx
from loguru import logger

from autopatcher.config import Config, load_config
from autopatcher.context import AppContext
from autopatcher.core.manifest import ManifestLoader
from autopatcher.core.orchestrator import Orchestrator
from autopatcher.core.pipeline import run_pipeline
from autopatcher.core.scanner import Scanner
from autopatcher.data.catalogue import Catalogue
from autopatcher.data.download_cache import DownloadCache
from autopatcher.errors import AutopatcherError
from autopatcher.logger import setup_logger

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_USAGE = 2


def create_context(
    config: Config,
    client: httpx.Client | None = None,
    cancel: threading.Event | None = None,
) -> AppContext:
    """Wire all services and return an AppContext."""
    cache = DownloadCache.from_config(config, client=client, cancel=cancel)

    return AppContext(
        config=config,
        catalogue=Catalogue(config.catalogue_path),
        scanner=Scanner(config),
        cache=cache,
        manifest_loader=ManifestLoader(config, cache),
        orchestrator=Orchestrator(config, cache, cancel=cancel),
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="autopatcher",
        description="Apply remote IPS patches to matching ROMs in a local collection.",
        add_help=False,
    )
    parser.add_argument("-h", "--help", action="store_true", help="Show this help")
    parser.add_argument("-o", "--output", type=Path, help="Output directory")
    parser.add_argument("-c", "--cache", type=Path, help="Cache directory")
    parser.add_argument("-r", "--roms", type=Path, help="ROM directory")
    parser.add_argument("-l", "--log", type=Path, help="Write results to a log file")
    parser.add_argument("--config", type=Path, help="JSON config file")
    parser.add_argument("--manifest-url", help="Manifest URL (absolute or root-relative)")
    parser.add_argument("--workers", type=int, help="Concurrent patch workers")
    parser.add_argument(
        "--refresh-manifest",
        action="store_true",
        default=None,
        help="Re-download the manifest even if it is cached",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def _scan_progress(count: int, path: Path) -> None:
    """Single overwritten status line; only drawn on an interactive terminal."""
    if not sys.stderr.isatty():
        return
    line = f"{count} {path}"
    sys.stderr.write("\r\x1b[2K" + line[:120])
    sys.stderr.flush()


def _end_progress() -> None:
    if sys.stderr.isatty():
        sys.stderr.write("\r\x1b[2K")
        sys.stderr.flush()


def main(argv: list[str] | None = None) -> int:
    """Application entry point."""
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit:
        # argparse has already printed usage and the error
        return EXIT_USAGE
    if args.help:
        parser.print_help()
        return EXIT_USAGE

    setup_logger(verbose=args.verbose)
    config = load_config(
        args.config,
        output_dir=args.output,
        cache_dir=args.cache,
        rom_dir=args.roms,
        log_file=args.log,
        manifest_url=args.manifest_url,
        workers=args.workers,
        refresh_manifest=args.refresh_manifest,
    )
    setup_logger(config.log_dir, verbose=args.verbose)

    cancel = threading.Event()
    ctx = create_context(config, cancel=cancel)
    try:
        report = run_pipeline(ctx, cancel=cancel, progress=_scan_progress)
    except KeyboardInterrupt:
        cancel.set()
        _end_progress()
        logger.warning("Interrupted")
        return EXIT_FATAL
    except AutopatcherError as e:
        _end_progress()
        logger.error(str(e))
        return EXIT_FATAL
    finally:
        ctx.close()
    _end_progress()

    if config.log_file:
        report.write_log(config.log_file)
        logger.info(f"Results written to {config.log_file}")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
