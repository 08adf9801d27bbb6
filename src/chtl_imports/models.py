# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Core data models for CHTL import resolution.

This module defines the value types shared by every component:
- CanonicalPath: Unique identity of a file (produced by PathCanonicalizer only)
- ErrorKind / ResolutionPolicy / ImportType: Class-constant enumerations
- ImportRequest: The caller's description of one [Import] statement
- DependencyEdge: (dependent, dependency) pair stored in the DependencyGraph
- ImportRecord: One (target, source file) import event in the ImportLedger
- CachedFile / CacheStatistics: FileStore entries and counters
- LoadResult / ResolutionError: Explicit result values instead of exceptions
- PathInfo: Result of PathCanonicalizer.analyze()
- ImportOutcome / ImportStatistics: Values returned across the resolver boundary

All models serialize to JSON-compatible primitives via to_dict().
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, NewType, Optional, Tuple

CanonicalPath = NewType("CanonicalPath", str)


class ErrorKind:
    """Failure kinds reported by FileStore and ImportResolver.

    Design: Using class constants (not Enum) for JSON-compatible strings.
    """

    NOT_FOUND = "not_found"  # target does not resolve to an existing file
    UNREADABLE = "unreadable"  # I/O failure while reading
    INVALID_CONTENT = "invalid_content"  # file exists but content rejected (e.g. empty)
    CIRCULAR_DEPENDENCY = "circular_dependency"  # import would close a cycle
    INVALID_REQUEST = "invalid_request"  # no path can be extracted from the request


class ResolutionPolicy:
    """Precedence between module-root and working-directory resolution."""

    MODULE_FIRST = "module_first"
    WORKING_DIRECTORY_FIRST = "working_directory_first"

    ALL = (MODULE_FIRST, WORKING_DIRECTORY_FIRST)


class ImportType:
    """Kinds of CHTL [Import] statements."""

    HTML = "@Html"
    STYLE = "@Style"
    JAVASCRIPT = "@JavaScript"
    CHTL = "@Chtl"
    CUSTOM_ELEMENT = "[Custom] @Element"
    CUSTOM_STYLE = "[Custom] @Style"
    CUSTOM_VAR = "[Custom] @Var"
    TEMPLATE_ELEMENT = "[Template] @Element"
    TEMPLATE_STYLE = "[Template] @Style"
    TEMPLATE_VAR = "[Template] @Var"


@dataclass(frozen=True)
class ImportRequest:
    """One [Import] statement as handed over by the parser.

    Only from_path matters for resolution. The remaining fields are carried
    through so callers can match outcomes back to their statements.
    """

    from_path: str
    import_type: str = ImportType.CHTL
    target_name: Optional[str] = None  # [Import] [Custom] @Element Box from ...
    as_name: Optional[str] = None  # ... as Alias
    is_wildcard: bool = False  # from dir/*
    line: int = 0

    def describe(self) -> str:
        """Render the request the way it appears in source."""
        parts = [self.import_type]
        if self.target_name:
            parts.append(self.target_name)
        parts.append(f"from {self.from_path}")
        if self.as_name:
            parts.append(f"as {self.as_name}")
        return "[Import] " + " ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        result: Dict[str, Any] = {
            "from_path": self.from_path,
            "import_type": self.import_type,
            "line": self.line,
        }
        if self.target_name is not None:
            result["target_name"] = self.target_name
        if self.as_name is not None:
            result["as_name"] = self.as_name
        if self.is_wildcard:
            result["is_wildcard"] = self.is_wildcard
        return result


@dataclass(frozen=True)
class DependencyEdge:
    """Edge meaning "dependent requires dependency to be resolved"."""

    dependent: CanonicalPath  # the importer
    dependency: CanonicalPath  # the imported target

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {"dependent": self.dependent, "dependency": self.dependency}


@dataclass
class ImportRecord:
    """A (target, source file) import event tracked by the ImportLedger.

    Identity key is (target, source_file). Re-recording the same key bumps
    import_count and last_import_time instead of creating a second record.
    """

    target: CanonicalPath
    source_file: CanonicalPath
    original_spelling: str
    import_time: float  # Unix timestamp of first recording
    is_resolved: bool = False
    import_count: int = 1
    last_import_time: Optional[float] = None

    @property
    def key(self) -> Tuple[str, str]:
        return (self.target, self.source_file)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        result: Dict[str, Any] = {
            "target": self.target,
            "source_file": self.source_file,
            "original_spelling": self.original_spelling,
            "import_time": self.import_time,
            "is_resolved": self.is_resolved,
            "import_count": self.import_count,
        }
        if self.last_import_time is not None:
            result["last_import_time"] = self.last_import_time
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImportRecord":
        """Deserialize from JSON-compatible dict.

        Raises:
            KeyError: If required fields are missing from data dict.
        """
        return cls(
            target=CanonicalPath(data["target"]),
            source_file=CanonicalPath(data["source_file"]),
            original_spelling=data["original_spelling"],
            import_time=data["import_time"],
            is_resolved=data.get("is_resolved", False),
            import_count=data.get("import_count", 1),
            last_import_time=data.get("last_import_time"),
        )


@dataclass(frozen=True)
class CachedFile:
    """Content cached by FileStore.

    Frozen: an invalidated entry is replaced, never mutated in place.
    """

    path: CanonicalPath
    content: str
    mod_time: float  # modification time observed when content was read
    size_bytes: int


@dataclass
class CacheStatistics:
    """Counters for the FileStore cache."""

    hits: int = 0
    misses: int = 0
    staleness_refreshes: int = 0  # re-reads because mod time advanced
    evictions_lru: int = 0
    current_size_bytes: int = 0
    peak_size_bytes: int = 0
    current_entry_count: int = 0
    peak_entry_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "staleness_refreshes": self.staleness_refreshes,
            "evictions_lru": self.evictions_lru,
            "current_size_bytes": self.current_size_bytes,
            "peak_size_bytes": self.peak_size_bytes,
            "current_entry_count": self.current_entry_count,
            "peak_entry_count": self.peak_entry_count,
        }


@dataclass(frozen=True)
class ResolutionError:
    """A failure reported as a value."""

    kind: str  # ErrorKind value
    message: str
    path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        result: Dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.path is not None:
            result["path"] = self.path
        return result


@dataclass(frozen=True)
class LoadResult:
    """Result of FileStore.load(): content on success, error otherwise."""

    content: Optional[str] = None
    error: Optional[ResolutionError] = None
    from_cache: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class PathInfo:
    """Breakdown of a path produced by PathCanonicalizer.analyze()."""

    original_path: str
    normalized_path: str  # lexical form (steps 1-4)
    canonical_path: CanonicalPath  # after real-path resolution
    file_name: str
    extension: str
    directory: str
    is_absolute: bool = False
    is_module: bool = False
    exists: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "original_path": self.original_path,
            "normalized_path": self.normalized_path,
            "canonical_path": self.canonical_path,
            "file_name": self.file_name,
            "extension": self.extension,
            "directory": self.directory,
            "is_absolute": self.is_absolute,
            "is_module": self.is_module,
            "exists": self.exists,
        }


@dataclass
class ImportOutcome:
    """Result of resolving one import.

    This is the only value returned across the resolver boundary. It holds
    its own content string and its own lists.
    """

    success: bool = False
    canonical_path: Optional[CanonicalPath] = None
    content: str = ""
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    was_cached: bool = False
    was_duplicate: bool = False
    cycle_chain: List[CanonicalPath] = field(default_factory=list)
    error_kind: Optional[str] = None  # ErrorKind value when success is False
    request: Optional[ImportRequest] = None

    def fail(self, kind: str, message: str) -> "ImportOutcome":
        """Mark the outcome failed with an error kind and message."""
        self.success = False
        self.error_kind = kind
        self.errors.append(message)
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        result: Dict[str, Any] = {
            "success": self.success,
            "canonical_path": self.canonical_path,
            "content": self.content,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "was_cached": self.was_cached,
            "was_duplicate": self.was_duplicate,
        }
        if self.cycle_chain:
            result["cycle_chain"] = list(self.cycle_chain)
        if self.error_kind is not None:
            result["error_kind"] = self.error_kind
        if self.request is not None:
            result["request"] = self.request.to_dict()
        return result


@dataclass
class ImportStatistics:
    """Read-only statistics derived on demand by ImportResolver.statistics()."""

    total_imports: int
    unique_targets: int
    duplicate_imports: int
    circular_dependencies: int
    cached_loads: int
    average_dependency_depth: float

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "total_imports": self.total_imports,
            "unique_targets": self.unique_targets,
            "duplicate_imports": self.duplicate_imports,
            "circular_dependencies": self.circular_dependencies,
            "cached_loads": self.cached_loads,
            "average_dependency_depth": self.average_dependency_depth,
        }
