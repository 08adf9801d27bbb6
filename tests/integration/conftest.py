# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Shared fixtures for integration tests.

Provides a representative CHTL project on disk and a resolver wired to it
through the default LocalFileSystem and DirectoryModuleCatalog.
"""

from pathlib import Path

import pytest

from chtl_imports.config import Config
from chtl_imports.context import CompilationContext
from chtl_imports.resolver import ImportResolver


@pytest.fixture
def chtl_project(tmp_path: Path) -> Path:
    """Create a small CHTL project.

    Layout:
    - main.chtl: the entry file
    - style.css: plain stylesheet, no imports
    - a.chtl imports b.chtl, b.chtl imports a.chtl (a two-file cycle)
    - components/: header.chtl imports footer.chtl, footer.chtl, theme.css
    - module/ui.chtl: a module found through the module root
    - .chtl_imports.yml: project configuration

    Returns:
        Path to the project root directory
    """
    project_root = tmp_path / "site"
    project_root.mkdir()

    (project_root / "main.chtl").write_text(
        "[Import] @Style from style.css\n"
        "[Import] @Chtl from components/*\n"
        "html { body { } }\n",
        encoding="utf-8",
    )
    (project_root / "style.css").write_text("body { margin: 0; }\n", encoding="utf-8")
    (project_root / "a.chtl").write_text(
        "[Import] @Chtl from b.chtl\ndiv { }\n", encoding="utf-8"
    )
    (project_root / "b.chtl").write_text(
        "[Import] @Chtl from a.chtl\nspan { }\n", encoding="utf-8"
    )

    components = project_root / "components"
    components.mkdir()
    (components / "header.chtl").write_text(
        '[Import] @Chtl from "footer.chtl"\nheader { }\n', encoding="utf-8"
    )
    (components / "footer.chtl").write_text("footer { }\n", encoding="utf-8")
    (components / "theme.css").write_text(".header { color: #333; }\n", encoding="utf-8")

    modules = project_root / "module"
    modules.mkdir()
    (modules / "ui.chtl").write_text("[Custom] @Element Box { div { } }\n", encoding="utf-8")

    (project_root / ".chtl_imports.yml").write_text(
        "module_root: module\nfile_cache_max_entries: 100\n", encoding="utf-8"
    )

    return project_root


@pytest.fixture
def project_resolver(chtl_project: Path) -> ImportResolver:
    """Resolver for chtl_project using its configuration file."""
    return ImportResolver(CompilationContext.for_directory(str(chtl_project)))


@pytest.fixture
def uncached_resolver(chtl_project: Path) -> ImportResolver:
    """Resolver for chtl_project with content caching disabled."""
    context = CompilationContext(
        config=Config.from_dict({"enable_cache": False}),
        working_directory=str(chtl_project),
    )
    return ImportResolver(context)
