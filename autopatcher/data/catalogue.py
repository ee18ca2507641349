"""ROM catalogue — JSON-persisted MD5 ↔ path index."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable

from loguru import logger

from autopatcher.models.rom_entry import RomEntry
from autopatcher.utils import atomic_write_bytes


class Catalogue:
    """
    Bidirectional content-hash index, persisted to catalogue.json.

    File format: ``{"<md5 hex>": "<absolute path>", ...}``

    ``by_hash`` and ``by_path`` are kept as exact inverses.  When a second
    path hashes to a value already present, the first path keeps the hash
    and the newcomer goes to ``duplicates``.  Duplicates are stored in
    duplicates.json beside the catalogue (path -> hash) so they are not
    hashed again on the next run.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._duplicates_path = path.with_name("duplicates.json")
        self.by_hash: dict[str, Path] = {}
        self.by_path: dict[Path, str] = {}
        self.duplicates: dict[Path, str] = {}

    def load(self) -> None:
        """Load the index from disk; a missing or corrupt file leaves it empty."""
        self.by_hash.clear()
        self.by_path.clear()
        self.duplicates.clear()
        for content_hash, path in self._read_map(self._path):
            self.add(RomEntry(Path(path), content_hash))
        # Loaded second: a duplicate whose hash is free becomes the match
        for path, content_hash in self._read_map(self._duplicates_path):
            self.add(RomEntry(Path(path), content_hash))
        logger.debug(f"Loaded {self.count} catalogue entries from {self._path}")

    def _read_map(self, path: Path) -> list[tuple[str, str]]:
        if not path.exists():
            return []
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Failed to load {path.name}, starting empty: {e}")
            return []
        if not isinstance(data, dict):
            logger.warning(f"Ignoring {path}: not a JSON object")
            return []
        pairs = []
        for key, value in data.items():
            if not isinstance(value, str):
                logger.warning(f"Skipping malformed entry '{key}' in {path.name}")
                continue
            pairs.append((key, value))
        return pairs

    def save(self) -> None:
        """Persist ``by_hash`` and ``duplicates`` to disk atomically."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._write_map(self._path, {h: str(p) for h, p in self.by_hash.items()})
        self._write_map(
            self._duplicates_path, {str(p): h for p, h in self.duplicates.items()}
        )
        logger.debug(f"Saved {self.count} catalogue entries to {self._path}")

    @staticmethod
    def _write_map(path: Path, data: dict[str, str]) -> None:
        payload = json.dumps(data, ensure_ascii=False, indent=2).encode("utf-8")
        atomic_write_bytes(path, payload)

    def add(self, entry: RomEntry) -> bool:
        """Index *entry*. Returns False if its hash already belongs to another path."""
        content_hash = entry.content_hash.lower()
        old_hash = self.by_path.get(entry.path)
        if old_hash is not None and old_hash != content_hash:
            del self.by_hash[old_hash]
            del self.by_path[entry.path]
        existing = self.by_hash.get(content_hash)
        if existing is not None and existing != entry.path:
            self.duplicates[entry.path] = content_hash
            return False
        self.duplicates.pop(entry.path, None)
        self.by_hash[content_hash] = entry.path
        self.by_path[entry.path] = content_hash
        return True

    def prune(self, present: Iterable[Path]) -> int:
        """
        Forget every path not in *present*.

        A hash whose path was dropped passes to the first remaining duplicate
        with that hash (in path order).  Returns the number of paths removed.
        """
        keep = set(present)
        stale = [p for p in self.by_path if p not in keep]
        stale_duplicates = [p for p in self.duplicates if p not in keep]
        for path in stale:
            del self.by_hash[self.by_path.pop(path)]
        for path in stale_duplicates:
            del self.duplicates[path]

        for path in sorted(self.duplicates):
            content_hash = self.duplicates[path]
            if content_hash not in self.by_hash:
                del self.duplicates[path]
                self.add(RomEntry(path, content_hash))
                logger.debug(f"{path.name} now matches {content_hash}")
        return len(stale) + len(stale_duplicates)

    def knows(self, path: Path) -> bool:
        """Whether *path* has already been hashed (indexed or duplicate)."""
        return path in self.by_path or path in self.duplicates

    def lookup(self, content_hash: str) -> Path | None:
        return self.by_hash.get(content_hash.lower())

    @property
    def count(self) -> int:
        return len(self.by_hash)
