# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Shared fixtures for unit tests.

MemoryFileSystem is an in-memory FileSystem collaborator with a read-count
spy, controllable modification times, injectable read failures and symlink
style aliases.
"""

import posixpath
from typing import Dict, List, Optional, Set

import pytest

from chtl_imports.filesystem import DirectoryModuleCatalog, FileSystem
from chtl_imports.paths import PathCanonicalizer


class MemoryFileSystem(FileSystem):
    """FileSystem backed by a dict of absolute POSIX paths."""

    def __init__(self) -> None:
        self.files: Dict[str, bytes] = {}
        self.mtimes: Dict[str, float] = {}
        self.links: Dict[str, str] = {}  # alias path -> real path
        self.failing_reads: Dict[str, int] = {}  # path -> remaining OSError raises
        self.read_counts: Dict[str, int] = {}
        self._clock = 1000.0

    # Helpers used by tests

    def write(self, path: str, content: str = "", mtime: Optional[float] = None) -> None:
        self.write_bytes(path, content.encode("utf-8"), mtime)

    def write_bytes(self, path: str, content: bytes, mtime: Optional[float] = None) -> None:
        self._clock += 1.0
        self.files[path] = content
        self.mtimes[path] = self._clock if mtime is None else mtime

    def touch(self, path: str) -> None:
        self._clock += 1.0
        self.mtimes[path] = self._clock

    def delete(self, path: str) -> None:
        self.files.pop(path, None)
        self.mtimes.pop(path, None)

    def reads_of(self, path: str) -> int:
        return self.read_counts.get(path, 0)

    def _real(self, path: str) -> str:
        return self.links.get(path, path)

    # FileSystem interface

    def exists(self, path: str) -> bool:
        return self._real(path) in self.files or self.is_directory(path)

    def is_directory(self, path: str) -> bool:
        prefix = path.rstrip("/") + "/"
        return any(name.startswith(prefix) for name in self.files)

    def read_all(self, path: str) -> bytes:
        real = self._real(path)
        self.read_counts[real] = self.read_counts.get(real, 0) + 1
        remaining = self.failing_reads.get(real, 0)
        if remaining > 0:
            self.failing_reads[real] = remaining - 1
            raise PermissionError(f"Permission denied: {real}")
        if real not in self.files:
            raise FileNotFoundError(real)
        return self.files[real]

    def mod_time(self, path: str) -> float:
        real = self._real(path)
        if real not in self.mtimes:
            raise FileNotFoundError(real)
        return self.mtimes[real]

    def list_directory(self, path: str) -> List[str]:
        prefix = path.rstrip("/") + "/"
        names: Set[str] = set()
        for name in self.files:
            if name.startswith(prefix):
                names.add(name[len(prefix) :].split("/", 1)[0])
        return list(names)

    def real_path(self, path: str) -> Optional[str]:
        if not self.exists(path):
            return None
        return posixpath.normpath(self._real(path))


@pytest.fixture
def memory_fs() -> MemoryFileSystem:
    """Empty in-memory filesystem."""
    return MemoryFileSystem()


@pytest.fixture
def canonicalizer(memory_fs: MemoryFileSystem) -> PathCanonicalizer:
    """Canonicalizer rooted at /project with a module root at /project/module."""
    catalog = DirectoryModuleCatalog("/project/module", memory_fs)
    return PathCanonicalizer(memory_fs, "/project", module_catalog=catalog)
