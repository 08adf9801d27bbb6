# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Module-resolution core for the CHTL compiler."""

from .config import Config, ConfigurationError
from .context import CompilationContext
from .file_store import FileStore
from .filesystem import DirectoryModuleCatalog, FileSystem, LocalFileSystem, ModuleCatalog
from .graph import DependencyGraph
from .ledger import ImportLedger
from .models import (
    CanonicalPath,
    ErrorKind,
    ImportOutcome,
    ImportRecord,
    ImportRequest,
    ImportStatistics,
    ImportType,
    ResolutionPolicy,
)
from .paths import PathCanonicalizer
from .resolver import ImportResolver
from .scanner import ImportScanner

__version__ = "0.1.0"

__all__ = [
    "CanonicalPath",
    "CompilationContext",
    "Config",
    "ConfigurationError",
    "DependencyGraph",
    "DirectoryModuleCatalog",
    "ErrorKind",
    "FileStore",
    "FileSystem",
    "ImportLedger",
    "ImportOutcome",
    "ImportRecord",
    "ImportRequest",
    "ImportResolver",
    "ImportScanner",
    "ImportStatistics",
    "ImportType",
    "LocalFileSystem",
    "ModuleCatalog",
    "PathCanonicalizer",
    "ResolutionPolicy",
]
