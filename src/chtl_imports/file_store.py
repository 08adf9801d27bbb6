# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""File content store with LRU eviction and staleness detection.

This module implements the caching layer that keeps imported files from
being read twice within one compilation run.

Key Features:
- Reads go through the FileSystem collaborator, never open() directly
- Modification-time staleness detection (demand-driven refresh)
- LRU eviction once max_entries is reached
- Retry with exponential backoff for transient read failures
- Failures returned as LoadResult values (not_found, unreadable, invalid_content)

Design Decisions:
- OrderedDict for the LRU order
- Entries are frozen CachedFile values: a refresh replaces the entry
- No time-based expiry: an entry stays valid until the file's mod time advances

Thread Safety:
- NOT thread-safe: owned by a single ImportResolver
"""

import logging
import time
from collections import OrderedDict
from typing import Optional

from chtl_imports.filesystem import FileSystem
from chtl_imports.models import (
    CachedFile,
    CacheStatistics,
    CanonicalPath,
    ErrorKind,
    LoadResult,
    ResolutionError,
)

logger = logging.getLogger(__name__)

_UTF8_BOM = b"\xef\xbb\xbf"


class FileStore:
    """Content cache keyed by canonical path.

    Usage:
        store = FileStore(LocalFileSystem(), max_entries=1000)
        result = store.load(canonicalizer.normalize("layout.chtl"))
        if result.ok:
            text = result.content
    """

    def __init__(
        self,
        filesystem: FileSystem,
        max_entries: int = 1000,
        max_retries: int = 3,
        enabled: bool = True,
    ) -> None:
        """Initialize file store.

        Args:
            filesystem: FileSystem collaborator used for stat and reads.
            max_entries: Maximum cached files before LRU eviction.
            max_retries: Maximum read attempts on transient failures.
            enabled: When False, every load reads and nothing is kept.
        """
        self._filesystem = filesystem
        self._max_entries = max_entries
        self._max_retries = max_retries
        self._enabled = enabled

        self._cache: "OrderedDict[CanonicalPath, CachedFile]" = OrderedDict()
        self._stats = CacheStatistics()

        logger.debug(
            f"FileStore initialized with max_entries={max_entries}, "
            f"max_retries={max_retries}, enabled={enabled}"
        )

    @property
    def enabled(self) -> bool:
        return self._enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        self._enabled = value
        if not value:
            self.clear()

    def load(self, path: CanonicalPath) -> LoadResult:
        """Return file content, reading only on a miss or a stale entry.

        Args:
            path: Canonical path of the file.

        Returns:
            LoadResult with content, or with an error of kind not_found,
            unreadable or invalid_content.
        """
        if not self._filesystem.exists(path):
            self._drop(path)
            return LoadResult(
                error=ResolutionError(ErrorKind.NOT_FOUND, f"File not found: {path}", path)
            )

        entry = self._cache.get(path) if self._enabled else None
        try:
            current_mod_time = self._filesystem.mod_time(path)
        except OSError as e:
            return LoadResult(
                error=ResolutionError(
                    ErrorKind.UNREADABLE, f"Cannot stat {path}: {e}", path
                )
            )

        if entry is not None and current_mod_time <= entry.mod_time:
            self._stats.hits += 1
            self._cache.move_to_end(path)
            logger.debug(f"Cache hit: {path}")
            return LoadResult(content=entry.content, from_cache=True)

        is_stale = entry is not None
        result = self._read(path)
        if not result.ok:
            # A file that can no longer be read must not be served from cache
            self._drop(path)
            return result

        assert result.content is not None
        if is_stale:
            self._stats.staleness_refreshes += 1
        else:
            self._stats.misses += 1

        if self._enabled:
            self._store(
                CachedFile(
                    path=path,
                    content=result.content,
                    mod_time=current_mod_time,
                    size_bytes=len(result.content.encode("utf-8")),
                )
            )

        logger.debug(
            f"Cache {'refresh' if is_stale else 'miss'}: {path} "
            f"(entries={len(self._cache)})"
        )
        return result

    def peek(self, path: CanonicalPath) -> Optional[str]:
        """Return cached content if present and still fresh, without reading.

        Counts as a cache hit when content is returned.

        Args:
            path: Canonical path of the file.

        Returns:
            Cached content, or None on a miss or a stale entry.
        """
        if not self._enabled:
            return None
        entry = self._cache.get(path)
        if entry is None:
            return None
        try:
            if self._filesystem.mod_time(path) > entry.mod_time:
                return None
        except OSError:
            return None

        self._stats.hits += 1
        self._cache.move_to_end(path)
        return entry.content

    def contains(self, path: CanonicalPath) -> bool:
        """Return True if an entry exists for path (fresh or not)."""
        return path in self._cache

    def _read(self, path: CanonicalPath) -> LoadResult:
        """Read and validate file content.

        Implements exponential backoff: 100ms, 200ms, 400ms
        """
        raw: Optional[bytes] = None
        for attempt in range(self._max_retries):
            try:
                raw = self._filesystem.read_all(path)
                break
            except FileNotFoundError:
                return LoadResult(
                    error=ResolutionError(ErrorKind.NOT_FOUND, f"File not found: {path}", path)
                )
            except OSError as e:
                if attempt < self._max_retries - 1:
                    delay = 0.1 * (2**attempt)
                    logger.debug(
                        f"File read attempt {attempt + 1} failed for {path}: {e}. "
                        f"Retrying in {delay * 1000}ms..."
                    )
                    time.sleep(delay)
                else:
                    logger.warning(
                        f"Failed to read {path} after {self._max_retries} attempts: {e}"
                    )
                    return LoadResult(
                        error=ResolutionError(
                            ErrorKind.UNREADABLE, f"Cannot read {path}: {e}", path
                        )
                    )

        if raw is None:
            return LoadResult(
                error=ResolutionError(ErrorKind.UNREADABLE, f"Cannot read {path}", path)
            )

        if raw.startswith(_UTF8_BOM):
            raw = raw[len(_UTF8_BOM) :]

        try:
            content = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            return LoadResult(
                error=ResolutionError(
                    ErrorKind.INVALID_CONTENT, f"File is not valid UTF-8: {path} ({e})", path
                )
            )

        if not content:
            return LoadResult(
                error=ResolutionError(ErrorKind.INVALID_CONTENT, f"File is empty: {path}", path)
            )

        return LoadResult(content=content)

    def _store(self, entry: CachedFile) -> None:
        previous = self._cache.pop(entry.path, None)
        if previous is not None:
            self._stats.current_size_bytes -= previous.size_bytes

        while len(self._cache) >= self._max_entries and self._cache:
            evicted_path, evicted = self._cache.popitem(last=False)
            self._stats.current_size_bytes -= evicted.size_bytes
            self._stats.evictions_lru += 1
            logger.debug(f"Evicted LRU entry: {evicted_path}")

        self._cache[entry.path] = entry
        self._stats.current_size_bytes += entry.size_bytes
        self._stats.current_entry_count = len(self._cache)
        if self._stats.current_size_bytes > self._stats.peak_size_bytes:
            self._stats.peak_size_bytes = self._stats.current_size_bytes
        if self._stats.current_entry_count > self._stats.peak_entry_count:
            self._stats.peak_entry_count = self._stats.current_entry_count

    def _drop(self, path: CanonicalPath) -> None:
        entry = self._cache.pop(path, None)
        if entry is not None:
            self._stats.current_size_bytes -= entry.size_bytes
            self._stats.current_entry_count = len(self._cache)

    def invalidate(self, path: CanonicalPath) -> None:
        """Drop the entry for path. The next load reads from disk.

        Args:
            path: Canonical path to invalidate.
        """
        self._drop(path)
        logger.debug(f"Invalidated cache entry: {path}")

    def clear(self) -> None:
        """Clear all cache entries."""
        self._cache.clear()
        self._stats.current_size_bytes = 0
        self._stats.current_entry_count = 0
        logger.debug("File store cleared")

    def size(self) -> int:
        """Number of cached files."""
        return len(self._cache)

    def get_statistics(self) -> CacheStatistics:
        """Get cache statistics.

        Returns:
            A copy of the counters.
        """
        return CacheStatistics(**self._stats.to_dict())

    def get_hit_rate(self) -> float:
        """Calculate cache hit rate.

        Returns:
            Hit rate as percentage (0.0-100.0), or 0.0 if no loads.
        """
        total = self._stats.hits + self._stats.misses + self._stats.staleness_refreshes
        if total == 0:
            return 0.0
        return (self._stats.hits / total) * 100.0
