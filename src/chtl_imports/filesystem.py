# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Collaborator interfaces consumed by the import-resolution core.

The core never touches the disk or the module registry directly. It calls
through two narrow interfaces so that tests and the surrounding compiler can
substitute their own implementations:

- FileSystem: exists / read_all / mod_time / list_directory / real_path
- ModuleCatalog: is_known_module / module_path_for

LocalFileSystem and DirectoryModuleCatalog are the default implementations
used by CompilationContext.
"""

import logging
import os
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


class FileSystem(ABC):
    """Filesystem operations used by PathCanonicalizer and FileStore."""

    @abstractmethod
    def exists(self, path: str) -> bool:
        """Return True if path names an existing regular file or directory."""
        pass

    @abstractmethod
    def is_directory(self, path: str) -> bool:
        """Return True if path names an existing directory."""
        pass

    @abstractmethod
    def read_all(self, path: str) -> bytes:
        """Read the full content of a file.

        Raises:
            FileNotFoundError: If the file does not exist.
            OSError: On any other I/O failure.
        """
        pass

    @abstractmethod
    def mod_time(self, path: str) -> float:
        """Return the modification time of path as a Unix timestamp.

        Raises:
            OSError: If the file cannot be stat'ed.
        """
        pass

    @abstractmethod
    def list_directory(self, path: str) -> List[str]:
        """Return the entry names of a directory (names only, unsorted)."""
        pass

    @abstractmethod
    def real_path(self, path: str) -> Optional[str]:
        """Resolve symlinks for an existing path, or None if it does not exist."""
        pass


class LocalFileSystem(FileSystem):
    """FileSystem backed by the local disk via os / os.path."""

    def exists(self, path: str) -> bool:
        return os.path.exists(path)

    def is_directory(self, path: str) -> bool:
        return os.path.isdir(path)

    def read_all(self, path: str) -> bytes:
        with open(path, "rb") as f:
            return f.read()

    def mod_time(self, path: str) -> float:
        return os.path.getmtime(path)

    def list_directory(self, path: str) -> List[str]:
        try:
            return os.listdir(path)
        except OSError as e:
            logger.debug(f"Cannot list directory {path}: {e}")
            return []

    def real_path(self, path: str) -> Optional[str]:
        if not os.path.exists(path):
            return None
        return os.path.realpath(path)


class ModuleCatalog(ABC):
    """Lookup table from module names to module file paths."""

    @abstractmethod
    def is_known_module(self, name: str) -> bool:
        """Return True if a module with this name is available."""
        pass

    @abstractmethod
    def module_path_for(self, name: str) -> str:
        """Return the file path of a known module."""
        pass


class DirectoryModuleCatalog(ModuleCatalog):
    """Module catalog rooted at a module directory.

    A module named ``name`` is known when ``<module_root>/<name><extension>``
    exists, or when it was registered explicitly (built-in modules).
    """

    def __init__(
        self,
        module_root: str,
        filesystem: FileSystem,
        module_extension: str = ".chtl",
        registered: Optional[Dict[str, str]] = None,
    ) -> None:
        """Initialize module catalog.

        Args:
            module_root: Directory holding module files.
            filesystem: FileSystem used for existence checks.
            module_extension: Extension appended to module names.
            registered: Explicit name -> path entries, checked first.
        """
        self.module_root = module_root
        self.module_extension = module_extension
        self._filesystem = filesystem
        self._registered: Dict[str, str] = dict(registered or {})

    def register(self, name: str, path: str) -> None:
        """Register a module under an explicit path."""
        self._registered[name] = path
        logger.debug(f"Registered module '{name}' -> {path}")

    def _candidate(self, name: str) -> str:
        if name.endswith(self.module_extension):
            name = name[: -len(self.module_extension)]
        return f"{self.module_root.rstrip('/')}/{name}{self.module_extension}"

    def is_known_module(self, name: str) -> bool:
        if not name:
            return False
        if name in self._registered:
            return True
        return self._filesystem.exists(self._candidate(name))

    def module_path_for(self, name: str) -> str:
        if name in self._registered:
            return self._registered[name]
        return self._candidate(name)
