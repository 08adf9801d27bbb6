# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""ImportResolver - orchestration layer for CHTL [Import] statements.

The resolver owns one DependencyGraph, one ImportLedger and one FileStore for
the duration of a compilation run and drives every import through a fixed
state machine:

1. Canonicalize the requested path relative to the requesting file
2. Check the target exists
3. Cycle probe: add the edge, check for a cycle from the importer, roll the
   edge back and fail if one was found
4. Duplicate check: a repeated (target, importer) pair is served from the
   FileStore when its content is still fresh
5. Record the import in the ledger
6. Load the content through the FileStore (the edge survives a failed load)
7. Transitive extension: scan the content for further imports and add their
   edges with the same probe, so later resolutions see multi-hop cycles
8. Mark the record resolved and return the content

Failures are returned as ImportOutcome values carrying an ErrorKind; nothing
here raises for a bad import. TypeError is raised for arguments of the wrong
type.

Thread Safety:
- NOT thread-safe. The probe in step 3 mutates the graph and undoes the
  mutation; callers resolving concurrently must serialize access.
"""

import dataclasses
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from chtl_imports.context import CompilationContext
from chtl_imports.file_store import FileStore
from chtl_imports.graph import DependencyGraph
from chtl_imports.ledger import ImportLedger
from chtl_imports.models import (
    CanonicalPath,
    ErrorKind,
    ImportOutcome,
    ImportRecord,
    ImportRequest,
    ImportStatistics,
)
from chtl_imports.paths import PathCanonicalizer
from chtl_imports.scanner import ImportScanner

logger = logging.getLogger(__name__)

RequestLike = Union[ImportRequest, str]


def _format_chain(chain: Sequence[str]) -> str:
    return " -> ".join(chain)


def _cycle_log_fields(
    event: str, dependent: str, dependency: str, chain: Sequence[str]
) -> Dict[str, Dict[str, object]]:
    """extra= payload picked up by StructuredFormatter for cycle events."""
    return {
        "extra_fields": {
            "event": event,
            "source_file": dependent,
            "target": dependency,
            "cycle_chain": list(chain),
        }
    }


class ImportResolver:
    """Resolves import requests for one compilation run.

    Usage:
        resolver = ImportResolver(CompilationContext(working_directory="/project"))
        outcome = resolver.resolve("theme.css", "/project/main.chtl")
        if outcome.success:
            text = outcome.content
        print(resolver.format_statistics())
    """

    def __init__(
        self,
        context: Optional[CompilationContext] = None,
        scanner: Optional[ImportScanner] = None,
    ):
        """Initialize the resolver.

        Args:
            context: Collaborators and configuration for this run
                (default: CompilationContext() in the process cwd).
            scanner: Import extractor used for transitive extension
                (default: ImportScanner).
        """
        self.context = context if context is not None else CompilationContext()
        config = self.context.config

        self._canonicalizer = self.context.canonicalizer
        self._filesystem = self.context.filesystem
        self._scanner = scanner if scanner is not None else ImportScanner()
        self._warn_on_duplicates = config.warn_on_duplicate_imports

        self.graph = DependencyGraph()
        self.ledger = ImportLedger()
        self.file_store = self._new_file_store(config.enable_cache)

        self._errors: List[str] = []
        self._warnings: List[str] = []
        self._reported_cycles: List[List[CanonicalPath]] = []

        logger.info(
            f"ImportResolver initialized (working_directory="
            f"{self.context.working_directory}, cache={config.enable_cache})"
        )

    def _new_file_store(self, enabled: bool) -> FileStore:
        config = self.context.config
        return FileStore(
            self._filesystem,
            max_entries=config.file_cache_max_entries,
            max_retries=config.read_max_retries,
            enabled=enabled,
        )

    # =========================================================================
    # Single import
    # =========================================================================

    def resolve(self, request: RequestLike, source_file: str) -> ImportOutcome:
        """Resolve one import made by source_file.

        Args:
            request: ImportRequest, or the path spelling as a plain string.
            source_file: Path of the requesting file, in any spelling.

        Returns:
            ImportOutcome. On failure error_kind holds an ErrorKind value.

        Raises:
            TypeError: If request or source_file has the wrong type.
        """
        import_request = self._as_request(request)
        source = self._canonical_source(source_file)
        return self._finish(self._resolve(import_request, source))

    def _resolve(self, request: ImportRequest, source: CanonicalPath) -> ImportOutcome:
        outcome = ImportOutcome(request=request)

        # 1. Canonicalize
        spelling = request.from_path.strip()
        if not spelling:
            return outcome.fail(ErrorKind.INVALID_REQUEST, "Import request has no path")

        if request.is_wildcard or PathCanonicalizer.is_wildcard(spelling):
            matches = self._canonicalizer.expand_wildcard(spelling, source)
            if not matches:
                return outcome.fail(
                    ErrorKind.NOT_FOUND, f"No files match wildcard import: {spelling}"
                )
            return outcome.fail(
                ErrorKind.INVALID_REQUEST,
                f"Wildcard import {spelling} matches {len(matches)} files, "
                f"resolve it with resolve_all()",
            )

        try:
            target = self._canonicalizer.resolve_import(spelling, source)
        except ValueError as e:
            return outcome.fail(ErrorKind.INVALID_REQUEST, f"Cannot resolve '{spelling}': {e}")
        outcome.canonical_path = target

        # 2. Existence
        if not self._filesystem.exists(target):
            return outcome.fail(ErrorKind.NOT_FOUND, f"Import target not found: {target}")
        if self._filesystem.is_directory(target):
            return outcome.fail(
                ErrorKind.INVALID_REQUEST, f"Import target is a directory: {target}"
            )

        # 3. Cycle probe
        chain = self._probe_edge(self.graph, source, target)
        if chain:
            self._report_cycle(chain)
            outcome.cycle_chain = chain
            logger.warning(
                f"Rejected circular import: {_format_chain(chain)}",
                extra=_cycle_log_fields("circular_import_rejected", source, target, chain),
            )
            return outcome.fail(
                ErrorKind.CIRCULAR_DEPENDENCY,
                f"Circular dependency detected: {_format_chain(chain)}",
            )

        # 4. Duplicate check
        if self.ledger.is_already_imported(target, source):
            outcome.was_duplicate = True
            if self._warn_on_duplicates:
                outcome.warnings.append(f"Duplicate import of {target} in {source}")
            cached = self.file_store.peek(target)
            if cached is not None:
                self.ledger.record(target, source, spelling)
                outcome.content = cached
                outcome.was_cached = True
                outcome.success = True
                logger.debug(f"Served duplicate import from cache: {target}")
                return outcome

        # 5. Record
        self.ledger.record(target, source, spelling)

        # 6. Load
        result = self.file_store.load(target)
        if not result.ok:
            assert result.error is not None
            return outcome.fail(result.error.kind, result.error.message)
        assert result.content is not None
        outcome.content = result.content
        outcome.was_cached = result.from_cache

        # 7. Transitive extension
        outcome.warnings.extend(self._extend_transitively(target, result.content))

        # 8. Finalize
        self.ledger.mark_resolved(target, source)
        outcome.success = True
        logger.debug(
            f"Resolved {spelling} -> {target} (cached={outcome.was_cached}, "
            f"duplicate={outcome.was_duplicate})"
        )
        return outcome

    def _probe_edge(
        self, graph: DependencyGraph, dependent: CanonicalPath, dependency: CanonicalPath
    ) -> List[CanonicalPath]:
        """Add an edge unless it closes a cycle.

        Returns:
            Empty list if the edge was kept. Otherwise the cycle starting at
            dependency, with the edge removed again.
        """
        if graph.has_edge(dependent, dependency):
            return []

        graph.add_edge(dependent, dependency)
        if not graph.has_cycle_from(dependent):
            return []

        # The graph was acyclic before, so every cycle runs through the new edge
        chain = graph.find_cycle_chain(dependency)
        graph.remove_edge(dependent, dependency)
        return chain

    def _extend_transitively(self, target: CanonicalPath, content: str) -> List[str]:
        """Add edges for the imports found in target's content.

        Returns:
            Warnings for edges that were dropped because they close a cycle.
        """
        warnings: List[str] = []
        for dependency in self._discover_dependencies(target, content):
            chain = self._probe_edge(self.graph, target, dependency)
            if chain:
                self._report_cycle(chain)
                message = (
                    f"Import of {dependency} in {target} closes a cycle and was not "
                    f"added to the dependency graph: {_format_chain(chain)}"
                )
                logger.warning(
                    message,
                    extra=_cycle_log_fields(
                        "transitive_import_dropped", target, dependency, chain
                    ),
                )
                warnings.append(message)
        return warnings

    def _discover_dependencies(
        self, target: CanonicalPath, content: str
    ) -> List[CanonicalPath]:
        discovered: List[CanonicalPath] = []
        for spelling in self._scanner.scan(content):
            if PathCanonicalizer.is_wildcard(spelling):
                candidates = self._canonicalizer.expand_wildcard(spelling, target)
            else:
                try:
                    candidates = [self._canonicalizer.resolve_import(spelling, target)]
                except ValueError:
                    continue
            for candidate in candidates:
                if candidate in discovered or not self._filesystem.exists(candidate):
                    continue
                discovered.append(candidate)
        logger.debug(f"Discovered {len(discovered)} transitive imports in {target}")
        return discovered

    def _report_cycle(self, chain: List[CanonicalPath]) -> None:
        if chain not in self._reported_cycles:
            self._reported_cycles.append(list(chain))

    def _finish(self, outcome: ImportOutcome) -> ImportOutcome:
        self._errors.extend(outcome.errors)
        self._warnings.extend(outcome.warnings)
        return outcome

    # =========================================================================
    # Batches
    # =========================================================================

    def resolve_all(
        self, requests: Iterable[RequestLike], source_file: str
    ) -> List[ImportOutcome]:
        """Resolve a batch of imports made by source_file.

        Wildcard requests are expanded to one request per matching file. The
        targets are then processed in DependencyGraph.order() sequence;
        requests whose target could not be determined follow in input order.

        Args:
            requests: ImportRequests or path spellings.
            source_file: Path of the requesting file.

        Returns:
            One outcome per (expanded) request, in processing order.
        """
        source = self._canonical_source(source_file)
        planned = self._plan(requests, source)

        targets = [target for _, target in planned if target is not None]
        sequence = self.graph.order(targets)

        outcomes: List[ImportOutcome] = []
        done = [False] * len(planned)
        for target in sequence:
            for index, (request, planned_target) in enumerate(planned):
                if not done[index] and planned_target == target:
                    done[index] = True
                    outcomes.append(self._finish(self._resolve(request, source)))

        for index, (request, _) in enumerate(planned):
            if not done[index]:
                outcomes.append(self._finish(self._resolve(request, source)))

        failed = sum(1 for outcome in outcomes if not outcome.success)
        logger.info(
            f"Resolved {len(outcomes)} imports for {source} ({failed} failed)"
        )
        return outcomes

    def validate_chain(self, requests: Iterable[RequestLike], source_file: str) -> bool:
        """Return True if a batch of imports could be added without a cycle.

        Works on a copy of the graph; the live graph is never touched.
        """
        return not self.would_create_cycles(requests, source_file)

    def would_create_cycles(
        self, requests: Iterable[RequestLike], source_file: str
    ) -> List[List[CanonicalPath]]:
        """Cycle chains a batch of imports would close, probed on a graph copy."""
        source = self._canonical_source(source_file)
        scratch = self.graph.copy()
        cycles: List[List[CanonicalPath]] = []
        for _, target in self._plan(requests, source):
            if target is None:
                continue
            chain = self._probe_edge(scratch, source, target)
            if chain:
                cycles.append(chain)
        return cycles

    def optimal_import_order(
        self, requests: Iterable[RequestLike], source_file: str
    ) -> List[CanonicalPath]:
        """Processing sequence resolve_all() would use for these targets."""
        source = self._canonical_source(source_file)
        targets = [target for _, target in self._plan(requests, source) if target is not None]
        return self.graph.order(targets)

    def _plan(
        self, requests: Iterable[RequestLike], source: CanonicalPath
    ) -> List[Tuple[ImportRequest, Optional[CanonicalPath]]]:
        """Expand wildcards and canonicalize targets.

        Targets are None for requests that cannot be resolved to an existing
        file; resolve() reports those.
        """
        planned: List[Tuple[ImportRequest, Optional[CanonicalPath]]] = []
        for item in requests:
            request = self._as_request(item)
            spelling = request.from_path.strip()

            if spelling and (request.is_wildcard or PathCanonicalizer.is_wildcard(spelling)):
                matches = self._canonicalizer.expand_wildcard(spelling, source)
                if not matches:
                    planned.append((request, None))
                for match in matches:
                    planned.append(
                        (dataclasses.replace(request, from_path=match, is_wildcard=False), match)
                    )
                continue

            target: Optional[CanonicalPath] = None
            if spelling:
                try:
                    candidate = self._canonicalizer.resolve_import(spelling, source)
                except ValueError:
                    candidate = None
                if candidate is not None and self._filesystem.exists(candidate):
                    target = candidate
            planned.append((request, target))
        return planned

    # =========================================================================
    # Argument handling
    # =========================================================================

    @staticmethod
    def _as_request(request: RequestLike) -> ImportRequest:
        if isinstance(request, ImportRequest):
            return request
        if isinstance(request, str):
            return ImportRequest(
                from_path=request, is_wildcard=PathCanonicalizer.is_wildcard(request)
            )
        raise TypeError(f"Expected ImportRequest or str, got {type(request).__name__}")

    def _canonical_source(self, source_file: str) -> CanonicalPath:
        if not isinstance(source_file, str):
            raise TypeError(f"source_file must be a str, got {type(source_file).__name__}")
        return self._canonicalizer.normalize(source_file)

    # =========================================================================
    # Statistics and queries
    # =========================================================================

    def statistics(self) -> ImportStatistics:
        """Derive run statistics from the ledger, graph and file store."""
        frequency = self.ledger.import_frequency()
        nodes = self.graph.all_nodes()
        average_depth = (
            sum(self.graph.depth(node) for node in nodes) / len(nodes) if nodes else 0.0
        )
        return ImportStatistics(
            total_imports=self.ledger.total_import_events(),
            unique_targets=len(frequency),
            duplicate_imports=sum(max(0, count - 1) for count in frequency.values()),
            circular_dependencies=len(self._reported_cycles),
            cached_loads=self.file_store.get_statistics().hits,
            average_dependency_depth=average_depth,
        )

    def format_statistics(self) -> str:
        """Human-readable statistics summary."""
        stats = self.statistics()
        lines = [
            "=== Import Statistics ===",
            f"Total imports: {stats.total_imports}",
            f"Unique targets: {stats.unique_targets}",
            f"Duplicate imports: {stats.duplicate_imports}",
            f"Circular dependencies: {stats.circular_dependencies}",
            f"Cached loads: {stats.cached_loads}",
            f"Average dependency depth: {stats.average_dependency_depth:.2f}",
            f"Cache hit rate: {self.file_store.get_hit_rate():.1f}%",
        ]
        return "\n".join(lines)

    def has_circular_dependencies(self) -> bool:
        """Return True if the live graph contains a cycle."""
        return self.graph.has_cycle_global()

    def all_circular_dependencies(self) -> List[List[CanonicalPath]]:
        """Cycles present in the live graph."""
        return self.graph.find_all_cycles()

    def reported_cycles(self) -> List[List[CanonicalPath]]:
        """Distinct cycles rejected during this run, in order of first report."""
        return [list(chain) for chain in self._reported_cycles]

    def duplicate_imports(self) -> List[ImportRecord]:
        """Records of every target imported more than once."""
        frequency = self.ledger.import_frequency()
        repeated = sorted(target for target, count in frequency.items() if count > 1)
        records: List[ImportRecord] = []
        for target in repeated:
            records.extend(self.ledger.records_of_target(target))
        return records

    def import_frequency(self) -> Dict[CanonicalPath, int]:
        return self.ledger.import_frequency()

    @property
    def errors(self) -> List[str]:
        """Error messages of every outcome since the last clear_errors()."""
        return list(self._errors)

    @property
    def warnings(self) -> List[str]:
        """Warning messages of every outcome since the last clear_warnings()."""
        return list(self._warnings)

    def clear_errors(self) -> None:
        self._errors.clear()

    def clear_warnings(self) -> None:
        self._warnings.clear()

    # =========================================================================
    # Cache control
    # =========================================================================

    def enable_cache(self, enabled: bool) -> None:
        """Turn content caching on or off. Turning it off drops cached content."""
        self.file_store.enabled = enabled
        logger.info(f"Import cache {'enabled' if enabled else 'disabled'}")

    def is_cache_enabled(self) -> bool:
        return self.file_store.enabled

    def clear_cache(self) -> None:
        self.file_store.clear()

    def invalidate_cache(self, path: str) -> None:
        """Drop cached content for path, given in any spelling."""
        self.file_store.invalidate(self._canonicalizer.normalize(path))

    # =========================================================================
    # Export and lifecycle
    # =========================================================================

    def export_graph(self) -> str:
        """Dependency graph as DOT text."""
        return self.graph.to_dot()

    def export_graph_dict(self) -> Dict[str, object]:
        """Dependency graph and run statistics as a JSON-compatible dict."""
        export: Dict[str, object] = dict(self.graph.export_to_dict())
        export["statistics"] = self.statistics().to_dict()
        export["reported_cycles"] = self.reported_cycles()
        return export

    def reset(self) -> None:
        """Forget everything and start a new compilation run."""
        self.graph.clear()
        self.ledger.clear()
        self.file_store = self._new_file_store(self.file_store.enabled)
        self._errors.clear()
        self._warnings.clear()
        self._reported_cycles.clear()
        logger.info("ImportResolver reset")
