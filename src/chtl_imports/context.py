# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Per-compilation context.

A CompilationContext bundles the collaborators one compilation run needs:
configuration, filesystem, module catalog and the PathCanonicalizer built
from them. ImportResolver takes a context instead of reaching for global
state, so two runs never share caches or graphs.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from chtl_imports.config import DEFAULT_CONFIG_FILENAME, Config
from chtl_imports.filesystem import (
    DirectoryModuleCatalog,
    FileSystem,
    LocalFileSystem,
    ModuleCatalog,
)
from chtl_imports.paths import PathCanonicalizer

logger = logging.getLogger(__name__)


class CompilationContext:
    """Collaborators shared by the components of one compilation run."""

    def __init__(
        self,
        config: Optional[Config] = None,
        filesystem: Optional[FileSystem] = None,
        module_catalog: Optional[ModuleCatalog] = None,
        working_directory: Optional[str] = None,
    ):
        """Initialize the context.

        Args:
            config: Configuration (default: Config.from_dict({}), i.e. defaults).
            filesystem: FileSystem collaborator (default: LocalFileSystem).
            module_catalog: Module lookup (default: DirectoryModuleCatalog
                rooted at the configured module_root).
            working_directory: Anchor for relative paths. Overrides the
                configured value; falls back to the process cwd.

        Raises:
            ConfigurationError: If the configured module root is a file.
        """
        self.config = config if config is not None else Config.from_dict({})
        self.filesystem = filesystem if filesystem is not None else LocalFileSystem()

        working = working_directory or self.config.working_directory or os.getcwd()
        self.working_directory = os.path.abspath(working)

        if module_catalog is None:
            module_catalog = DirectoryModuleCatalog(
                module_root=self.config.resolved_module_root(self.working_directory),
                filesystem=self.filesystem,
                module_extension=self.config.module_extension,
            )
        self.module_catalog = module_catalog

        self.canonicalizer = PathCanonicalizer(
            filesystem=self.filesystem,
            working_directory=self.working_directory,
            module_catalog=self.module_catalog,
            policy=self.config.resolution_policy,
            module_extension=self.config.module_extension,
            default_extensions=self.config.default_extensions,
        )

        logger.debug(
            f"Compilation context ready: working_directory={self.working_directory}, "
            f"policy={self.config.resolution_policy}"
        )

    @classmethod
    def for_directory(
        cls, working_directory: str, config_path: Optional[Path] = None
    ) -> "CompilationContext":
        """Build a context for a project directory.

        Loads the configuration file from that directory unless config_path is given.
        """
        if config_path is None:
            config_path = Path(working_directory) / DEFAULT_CONFIG_FILENAME
        return cls(config=Config(config_path), working_directory=working_directory)
