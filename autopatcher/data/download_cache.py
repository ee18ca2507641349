"""Download cache — URL-keyed mirror of fetched files, committed atomically."""

from __future__ import annotations

import os
import threading
import time
from pathlib import Path

import httpx
from loguru import logger

from autopatcher.config import Config
from autopatcher.errors import Cancelled, HttpError, NetworkError
from autopatcher.utils import format_size, temp_path_beside


class DownloadCache:
    """
    Fetch-once download cache.

    Each URL maps to a single file:
      {cache_dir}/{host}/{url path}

    Entries never expire.  A miss streams the body into a ``.part`` file
    next to the key and renames it into place only after the transfer
    completes, so the key either holds a full body or does not exist.
    Concurrent misses on one key are serialised; the later callers read the
    file the first one committed.
    """

    def __init__(
        self,
        cache_dir: Path,
        client: httpx.Client,
        retries: int = 3,
        retry_backoff: float = 0.5,
        cancel: threading.Event | None = None,
    ) -> None:
        self._cache_dir = cache_dir
        self._client = client
        self._retries = retries
        self._retry_backoff = retry_backoff
        self._cancel = cancel
        self._locks: dict[Path, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def from_config(
        cls,
        config: Config,
        client: httpx.Client | None = None,
        cancel: threading.Event | None = None,
    ) -> DownloadCache:
        if client is None:
            client = httpx.Client(timeout=config.timeout, follow_redirects=True)
        return cls(
            config.cache_dir,
            client,
            retries=config.retries,
            retry_backoff=config.retry_backoff,
            cancel=cancel,
        )

    def close(self) -> None:
        self._client.close()

    # ── Keys ──

    def path_for(self, url: str) -> Path:
        """Local file backing *url* (host + path; query and port ignored)."""
        parsed = httpx.URL(url)
        segments = [s for s in parsed.path.split("/") if s not in ("", ".", "..")]
        if not segments or parsed.path.endswith("/"):
            segments.append("index")
        return self._cache_dir.joinpath(parsed.host or "_", *segments)

    def contains(self, url: str) -> bool:
        return self.path_for(url).is_file()

    # ── Fetching ──

    def fetch(self, url: str, force: bool = False) -> bytes:
        """
        Return the bytes for *url*, downloading them on a miss.

        ``force`` re-downloads even when an entry exists; the old entry is
        replaced only once the new body is complete.
        """
        path = self.path_for(url)
        if not force and path.is_file():
            logger.debug(f"Cache hit: {url}")
            return path.read_bytes()

        with self._lock_for(path):
            # Another worker may have committed while we waited
            if not force and path.is_file():
                logger.debug(f"Cache hit after wait: {url}")
                return path.read_bytes()
            path.parent.mkdir(parents=True, exist_ok=True)
            self._download_with_retry(url, path)
        return path.read_bytes()

    def _lock_for(self, path: Path) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(path)
            if lock is None:
                lock = self._locks[path] = threading.Lock()
            return lock

    def _download_with_retry(self, url: str, path: Path) -> None:
        attempt = 0
        while True:
            try:
                self._download(url, path)
                return
            except (NetworkError, HttpError) as e:
                transient = isinstance(e, NetworkError) or e.transient
                if not transient or attempt >= self._retries:
                    raise
                delay = self._retry_backoff * (2**attempt)
                attempt += 1
                logger.warning(f"{e}; retrying in {delay:.1f}s ({attempt}/{self._retries})")
                self._sleep(delay)

    def _sleep(self, delay: float) -> None:
        if self._cancel is None:
            time.sleep(delay)
        elif self._cancel.wait(delay):
            raise Cancelled()

    def _check_cancelled(self) -> None:
        if self._cancel is not None and self._cancel.is_set():
            raise Cancelled()

    def _download(self, url: str, path: Path) -> None:
        self._check_cancelled()
        logger.info(f"Downloading {url}")
        tmp = temp_path_beside(path, suffix=".part")
        try:
            size = 0
            try:
                with self._client.stream("GET", url) as resp:
                    if not resp.is_success:
                        raise HttpError(resp.status_code, url)
                    with open(tmp, "wb") as f:
                        for chunk in resp.iter_bytes():
                            self._check_cancelled()
                            f.write(chunk)
                            size += len(chunk)
                        f.flush()
                        os.fsync(f.fileno())
            except httpx.RequestError as e:
                raise NetworkError(f"{type(e).__name__} fetching {url}: {e}") from e
            tmp.replace(path)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
        logger.debug(f"Cached {url} → {path} ({format_size(size)})")
