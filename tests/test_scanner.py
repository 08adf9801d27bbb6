# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for ImportScanner."""

from chtl_imports.models import ImportType
from chtl_imports.scanner import ImportScanner


class TestScan:
    """Tests for scan() path extraction."""

    def test_bare_and_quoted_paths(self):
        content = (
            "[Import] @Chtl from components/header.chtl\n"
            '[Import] @Style from "theme.css";\n'
            "[Import] @JavaScript from 'app.js'\n"
        )

        assert ImportScanner().scan(content) == [
            "components/header.chtl",
            "theme.css",
            "app.js",
        ]

    def test_no_imports(self):
        assert ImportScanner().scan("div { text { hello } }") == []

    def test_commented_out_import_skipped(self):
        content = "// [Import] @Chtl from old.chtl\n[Import] @Chtl from new.chtl\n"

        assert ImportScanner().scan(content) == ["new.chtl"]

    def test_empty_quoted_path_skipped(self):
        assert ImportScanner().scan('[Import] @Style from ""') == []


class TestScanRequests:
    """Tests for scan_requests() metadata."""

    def test_custom_element_with_alias(self):
        content = "div {}\n[Import] [Custom] @Element Box from ui/box as Panel\n"

        (request,) = ImportScanner().scan_requests(content)

        assert request.import_type == ImportType.CUSTOM_ELEMENT
        assert request.target_name == "Box"
        assert request.from_path == "ui/box"
        assert request.as_name == "Panel"
        assert request.line == 2
        assert request.is_wildcard is False

    def test_kind_whitespace_normalized(self):
        (request,) = ImportScanner().scan_requests("[Import] [Template]   @Var Colors from vars")

        assert request.import_type == ImportType.TEMPLATE_VAR
        assert request.target_name == "Colors"

    def test_missing_kind_defaults_to_chtl(self):
        (request,) = ImportScanner().scan_requests("[Import] from lib/base.chtl")

        assert request.import_type == ImportType.CHTL
        assert request.target_name is None

    def test_wildcard(self):
        (request,) = ImportScanner().scan_requests("[Import] @Chtl from components/*")

        assert request.is_wildcard is True
        assert request.from_path == "components/*"

    def test_wildcard_detected_with_backslashes(self):
        (request,) = ImportScanner().scan_requests("[Import] @Style from styles\\*.css")

        assert request.is_wildcard is True
