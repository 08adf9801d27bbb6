# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Path canonicalization for import resolution.

PathCanonicalizer is the only component that turns textual file or module
references into CanonicalPath keys. Every other component compares paths by
the keys it produces, so duplicate and cycle detection are only as good as
this module.

Normalization rules, applied in order:
1. Backslashes become forward slashes
2. Runs of slashes collapse to one, a trailing slash is dropped
3. "." components are dropped, ".." pops the preceding real component
   (a leading ".." is kept for relative paths, dropped at the root)
4. Relative paths are anchored: a known module under the module root wins
   under ResolutionPolicy.MODULE_FIRST, otherwise the base directory
   (default: working directory) is used
5. The real filesystem path is taken when the target exists; otherwise the
   lexical form from steps 1-4 is the key

Wildcard expansion and extension probing for extension-less import
spellings are also handled here, since both produce canonical paths.
"""

import logging
import os
import posixpath
import re
from typing import Iterable, List, Optional, Sequence

from chtl_imports.filesystem import FileSystem, ModuleCatalog
from chtl_imports.models import CanonicalPath, PathInfo, ResolutionPolicy

logger = logging.getLogger(__name__)

_DRIVE_PREFIX = re.compile(r"^[A-Za-z]:/")
_SLASH_RUN = re.compile(r"/+")

DEFAULT_EXTENSIONS = (".chtl", ".html", ".css", ".js")


def is_absolute_path(path: str) -> bool:
    """Return True for "/x" and drive-letter "C:/x" paths (slashes already unified)."""
    return path.startswith("/") or bool(_DRIVE_PREFIX.match(path))


def lexical_normalize(path: str) -> str:
    """Apply normalization steps 1-3 without touching the filesystem.

    Args:
        path: Path in any spelling.

    Returns:
        Normalized path. "." for a relative path that collapses to nothing,
        "/" for the root. Empty input is returned unchanged.
    """
    if not path:
        return path

    unified = _SLASH_RUN.sub("/", path.replace("\\", "/"))
    absolute = is_absolute_path(unified)

    drive = ""
    if _DRIVE_PREFIX.match(unified):
        drive, unified = unified[:2], unified[2:]

    resolved: List[str] = []
    for component in unified.split("/"):
        if component in ("", "."):
            continue
        if component == "..":
            if resolved and resolved[-1] != "..":
                resolved.pop()
            elif not absolute:
                # Cannot be resolved without a base, keep it literally
                resolved.append(component)
            continue
        resolved.append(component)

    body = "/".join(resolved)
    if absolute:
        return f"{drive}/{body}"
    return body or "."


class PathCanonicalizer:
    """Produces CanonicalPath keys for file and module references.

    Usage:
        canonicalizer = PathCanonicalizer(LocalFileSystem(), "/project")
        key = canonicalizer.normalize("src\\\\pages/../index.chtl")
        same = canonicalizer.are_paths_equivalent("a/b.chtl", "a/./b.chtl")
    """

    def __init__(
        self,
        filesystem: FileSystem,
        working_directory: str,
        module_catalog: Optional[ModuleCatalog] = None,
        policy: str = ResolutionPolicy.MODULE_FIRST,
        module_extension: str = ".chtl",
        default_extensions: Sequence[str] = DEFAULT_EXTENSIONS,
    ) -> None:
        """Initialize path canonicalizer.

        Args:
            filesystem: FileSystem collaborator (existence and real paths).
            working_directory: Anchor for relative paths. Made absolute here.
            module_catalog: Optional module lookup for module-root resolution.
            policy: ResolutionPolicy value.
            module_extension: Extension of module files, stripped from module names.
            default_extensions: Extensions probed for extension-less import spellings.

        Raises:
            ValueError: If policy is not a ResolutionPolicy value.
        """
        if policy not in ResolutionPolicy.ALL:
            raise ValueError(f"Unknown resolution policy: {policy}")

        self._filesystem = filesystem
        self._module_catalog = module_catalog
        self.policy = policy
        self.module_extension = module_extension
        self.default_extensions = tuple(default_extensions)

        working = lexical_normalize(working_directory or ".")
        if not is_absolute_path(working):
            working = lexical_normalize(os.path.abspath(working))
        self.working_directory = working

    # ------------------------------------------------------------------
    # Core normalization
    # ------------------------------------------------------------------

    def normalize(self, path: str, base: Optional[str] = None) -> CanonicalPath:
        """Turn any spelling of a path into its CanonicalPath.

        Args:
            path: Path or module reference in any spelling.
            base: Directory relative paths are anchored to. Defaults to the
                working directory.

        Returns:
            Canonical path key.

        Raises:
            ValueError: If path is empty.
        """
        if not path or not path.strip():
            raise ValueError("Cannot normalize an empty path")

        lexical = lexical_normalize(path.strip())
        if not is_absolute_path(lexical):
            lexical = self._anchor(lexical, base)

        real = self._filesystem.real_path(lexical)
        if real:
            return CanonicalPath(lexical_normalize(real))
        return CanonicalPath(lexical)

    def are_paths_equivalent(self, path1: str, path2: str) -> bool:
        """Return True if both spellings denote the same file."""
        return self.normalize(path1) == self.normalize(path2)

    def normalize_module_path(self, module_name: str) -> CanonicalPath:
        """Canonical path of a module by name, using the catalog when available."""
        name = self._strip_module_extension(module_name)
        if self._module_catalog is not None:
            module_path = self._module_catalog.module_path_for(name)
        else:
            module_path = f"module/{name}{self.module_extension}"
        return self.normalize(module_path)

    def _anchor(self, relative: str, base: Optional[str]) -> str:
        """Apply step 4 to a lexically normalized relative path."""
        anchor = self.working_directory
        if base:
            anchor = lexical_normalize(base)
            if not is_absolute_path(anchor):
                anchor = lexical_normalize(f"{self.working_directory}/{anchor}")
        candidate = lexical_normalize(f"{anchor}/{relative}")

        module_name = self._known_module_name(relative)
        if module_name is None:
            return candidate

        if self.policy == ResolutionPolicy.MODULE_FIRST or not self._filesystem.exists(
            candidate
        ):
            assert self._module_catalog is not None
            module_path = lexical_normalize(self._module_catalog.module_path_for(module_name))
            if not is_absolute_path(module_path):
                module_path = lexical_normalize(f"{self.working_directory}/{module_path}")
            logger.debug(f"Resolved '{relative}' through module root: {module_path}")
            return module_path

        return candidate

    def _known_module_name(self, relative: str) -> Optional[str]:
        if self._module_catalog is None or relative.startswith(".."):
            return None
        name = self._strip_module_extension(relative)
        if self._module_catalog.is_known_module(name):
            return name
        return None

    def _strip_module_extension(self, name: str) -> str:
        if name.endswith(self.module_extension) and len(name) > len(self.module_extension):
            return name[: -len(self.module_extension)]
        return name

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def analyze(self, path: str) -> PathInfo:
        """Break a path down into its parts.

        Args:
            path: Path in any spelling.

        Returns:
            PathInfo with the lexical and canonical forms, file name,
            extension, directory and module/existence flags.
        """
        lexical = lexical_normalize(path.strip())
        normalized = lexical if is_absolute_path(lexical) else self._anchor(lexical, None)
        canonical = self.normalize(path)

        file_name = posixpath.basename(canonical)
        extension = posixpath.splitext(file_name)[1]
        stem = self._strip_module_extension(file_name)

        return PathInfo(
            original_path=path,
            normalized_path=normalized,
            canonical_path=canonical,
            file_name=file_name,
            extension=extension,
            directory=posixpath.dirname(canonical),
            is_absolute=is_absolute_path(lexical),
            is_module=extension == self.module_extension
            and canonical == self.normalize_module_path(stem),
            exists=self._filesystem.exists(canonical),
        )

    # ------------------------------------------------------------------
    # Import spellings
    # ------------------------------------------------------------------

    def resolve_import(self, spelling: str, source_file: str) -> CanonicalPath:
        """Resolve an import spelling as written inside source_file.

        The directory of the requesting file is tried first, then the
        working directory. Extension-less spellings are probed with the
        default extensions. When nothing exists, the canonical form relative
        to the requesting file is returned so the caller can report it.

        Args:
            spelling: Path as written in the [Import] statement.
            source_file: Canonical path of the requesting file.

        Returns:
            Canonical path of the best candidate.
        """
        bases = [posixpath.dirname(source_file) or self.working_directory]
        if bases[0] != self.working_directory:
            bases.append(self.working_directory)

        first: Optional[CanonicalPath] = None
        for base in bases:
            for candidate in self._candidates(spelling, base):
                if first is None:
                    first = candidate
                if self._filesystem.exists(candidate):
                    return candidate

        assert first is not None
        return first

    def _candidates(self, spelling: str, base: str) -> Iterable[CanonicalPath]:
        yield self.normalize(spelling, base=base)
        if posixpath.splitext(lexical_normalize(spelling))[1]:
            return
        for extension in self.default_extensions:
            yield self.normalize(spelling + extension, base=base)

    @staticmethod
    def is_wildcard(spelling: str) -> bool:
        """Return True for "dir/*" and "dir/*.ext" spellings."""
        last = lexical_normalize(spelling).rsplit("/", 1)[-1]
        return "*" in last

    def expand_wildcard(self, pattern: str, source_file: str) -> List[CanonicalPath]:
        """Expand a wildcard import into the supported files it matches.

        Args:
            pattern: "dir/*" (all supported extensions) or "dir/*.ext".
            source_file: Canonical path of the requesting file.

        Returns:
            Sorted canonical paths. Empty if the directory does not exist.
        """
        unified = lexical_normalize(pattern)
        directory, _, last = unified.rpartition("/")
        if not directory and unified.startswith("/"):
            directory = "/"

        wanted = self.default_extensions
        if last.startswith("*."):
            wanted = (last[1:],)

        base = posixpath.dirname(source_file) or self.working_directory
        resolved_dir = self.normalize(directory or ".", base=base)
        if not self._filesystem.is_directory(resolved_dir):
            logger.debug(f"Wildcard directory does not exist: {resolved_dir}")
            return []

        matches = set()
        for entry in self._filesystem.list_directory(resolved_dir):
            if posixpath.splitext(entry)[1] in wanted:
                matches.add(self.normalize(f"{resolved_dir}/{entry}"))
        return sorted(matches)
