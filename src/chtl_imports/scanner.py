# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Lightweight [Import] statement scanner.

This module finds CHTL import statements in raw file content with a regular
expression instead of the full grammar parser. ImportResolver uses it to
discover the dependencies of a freshly loaded file so that multi-hop cycles
show up in the dependency graph.

Statements Detected:
- [Import] @Chtl from path/to/file.chtl
- [Import] @Style from "theme.css"
- [Import] [Custom] @Element Box from ui/box as Panel
- [Import] @Chtl from components/*

Lines commented out with "//" are skipped.
"""

import logging
import re
from typing import List

from chtl_imports.models import ImportRequest, ImportType

logger = logging.getLogger(__name__)

_IMPORT_STATEMENT = re.compile(
    r"\[Import\]\s*"
    r"(?P<kind>(?:\[(?:Custom|Template|Origin)\]\s*)?@[A-Za-z]+)?\s*"
    r"(?:(?!from\b)(?P<name>[A-Za-z_][\w\-]*)\s+)?"
    r"from\s+(?P<path>\"[^\"]*\"|'[^']*'|[^\s;]+)"
    r"(?:\s+as\s+(?P<alias>[A-Za-z_][\w\-]*))?"
)
_WHITESPACE = re.compile(r"\s+")


class ImportScanner:
    """Extracts import spellings from file content without parsing it.

    Stateless: one instance can scan any number of files.
    """

    def scan(self, content: str) -> List[str]:
        """Return the path spelling of every import statement, in source order.

        Args:
            content: Raw file content.

        Returns:
            Path spellings with surrounding quotes removed.
        """
        return [request.from_path for request in self.scan_requests(content)]

    def scan_requests(self, content: str) -> List[ImportRequest]:
        """Return an ImportRequest for every import statement, in source order.

        Args:
            content: Raw file content.

        Returns:
            Requests carrying the import type, target name, path, alias and
            line number of each statement. Statements with an empty path are
            dropped.
        """
        requests: List[ImportRequest] = []
        for match in _IMPORT_STATEMENT.finditer(content):
            line_start = content.rfind("\n", 0, match.start()) + 1
            if content[line_start : match.start()].lstrip().startswith("//"):
                continue

            path = match.group("path").strip("\"'").strip()
            if not path:
                logger.debug(f"Skipping import with empty path: {match.group(0)!r}")
                continue

            kind = match.group("kind")
            requests.append(
                ImportRequest(
                    from_path=path,
                    import_type=_WHITESPACE.sub(" ", kind) if kind else ImportType.CHTL,
                    target_name=match.group("name"),
                    as_name=match.group("alias"),
                    is_wildcard="*" in path.replace("\\", "/").rsplit("/", 1)[-1],
                    line=content.count("\n", 0, match.start()) + 1,
                )
            )
        return requests
