"""ROM scanner — walk the ROM tree and hash new candidate files into the catalogue."""

from __future__ import annotations

import hashlib
import os
import threading
from pathlib import Path
from typing import Callable, Iterator

from loguru import logger

from autopatcher.config import Config
from autopatcher.data.catalogue import Catalogue
from autopatcher.errors import Cancelled, FilesystemError
from autopatcher.models.rom_entry import RomEntry

# Called with (files seen so far, current path)
ProgressCallback = Callable[[int, Path], None]

_CHUNK_SIZE = 65536


class FileTree:
    """
    Lazy, finite, restartable sequence of the regular files under *root*.

    Every ``iter()`` starts a fresh depth-first walk.  Entries are visited in
    sorted order so two walks over an unchanged tree yield the same sequence.
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    def __iter__(self) -> Iterator[Path]:
        try:
            top = self._list_dir(self.root)
        except OSError as e:
            raise FilesystemError(f"Cannot read ROM directory {self.root}: {e}") from e

        # Stack of pending entry lists; the last one is the directory being walked
        stack: list[list[os.DirEntry]] = [top]
        while stack:
            pending = stack[-1]
            if not pending:
                stack.pop()
                continue
            entry = pending.pop()
            try:
                if entry.is_dir(follow_symlinks=False):
                    stack.append(self._list_dir(Path(entry.path)))
                elif entry.is_file():
                    yield Path(entry.path)
            except OSError as e:
                logger.warning(f"Skipping unreadable directory {entry.path}: {e}")

    @staticmethod
    def _list_dir(path: Path) -> list[os.DirEntry]:
        with os.scandir(path) as it:
            # Reversed so pop() yields entries in name order
            return sorted(it, key=lambda e: e.name, reverse=True)


def md5_file(path: Path) -> str:
    """Stream *path* through MD5 in fixed-size chunks."""
    md5 = hashlib.md5()
    with open(path, "rb") as f:
        while True:
            chunk = f.read(_CHUNK_SIZE)
            if not chunk:
                break
            md5.update(chunk)
    return md5.hexdigest()


class Scanner:
    """
    Catalogue builder.

    Hashes every candidate file not already in the catalogue.  Unreadable
    files are logged and skipped.  After a complete walk, entries for paths
    that are no longer under the root are dropped.  An unreadable ROM root
    raises ``FilesystemError``; the catalogue is persisted either way.
    """

    def __init__(self, config: Config) -> None:
        self._config = config

    def build_or_update(
        self,
        catalogue: Catalogue,
        root: Path | None = None,
        progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> Catalogue:
        root = root or self._config.rom_dir
        interval = self._config.progress_interval
        present: set[Path] = set()
        seen = 0
        hashed = 0

        try:
            for path in FileTree(root):
                if cancel is not None and cancel.is_set():
                    raise Cancelled("scan cancelled")
                if progress is not None and seen % interval == 0:
                    progress(seen, path)
                seen += 1

                if not self._config.is_candidate(path):
                    continue
                present.add(path)
                if catalogue.knows(path):
                    continue

                try:
                    content_hash = md5_file(path)
                except OSError as e:
                    logger.warning(f"Skipping unreadable ROM {path}: {e}")
                    continue
                hashed += 1

                if catalogue.add(RomEntry(path, content_hash)):
                    logger.debug(f"Catalogued {path.name} → {content_hash}")
                else:
                    logger.info(
                        f"Duplicate ROM {path.name} has the same content as "
                        f"{catalogue.lookup(content_hash)}, keeping the first"
                    )

            removed = catalogue.prune(present)
            if removed:
                logger.info(f"Dropped {removed} catalogue path(s) no longer under {root}")
        finally:
            catalogue.save()

        logger.info(
            f"Scan complete — {seen} file(s) seen, {hashed} hashed, "
            f"{catalogue.count} ROM(s) catalogued"
        )
        return catalogue
