# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Unit tests for ImportResolver.

Tests coverage:
- Single-import state machine: success, not_found, invalid_request,
  unreadable, invalid_content, circular_dependency
- Rollback: a rejected import leaves no edge and no ledger record
- Duplicate handling with and without caching
- Transitive extension and multi-hop cycle detection
- resolve_all ordering, wildcard expansion, validate_chain, would_create_cycles
- Statistics, export, cache control and reset
"""

import pytest

from chtl_imports.config import Config
from chtl_imports.context import CompilationContext
from chtl_imports.models import CanonicalPath, ErrorKind, ImportRequest, ImportType
from chtl_imports.resolver import ImportResolver

MAIN = "/project/main.chtl"


def make_resolver(memory_fs, **config_values) -> ImportResolver:
    context = CompilationContext(
        config=Config.from_dict(config_values),
        filesystem=memory_fs,
        working_directory="/project",
    )
    return ImportResolver(context)


@pytest.fixture
def resolver(memory_fs) -> ImportResolver:
    return make_resolver(memory_fs)


class TestResolveSuccess:
    """Tests for the happy path."""

    def test_resolve_existing_file(self, memory_fs, resolver):
        memory_fs.write("/project/style.css", "body { color: red; }")

        outcome = resolver.resolve("style.css", MAIN)

        assert outcome.success
        assert outcome.canonical_path == "/project/style.css"
        assert outcome.content == "body { color: red; }"
        assert outcome.was_duplicate is False
        assert outcome.was_cached is False
        assert outcome.errors == []
        assert outcome.error_kind is None
        assert resolver.graph.has_edge(CanonicalPath(MAIN), CanonicalPath("/project/style.css"))
        record = resolver.ledger.get_record(
            CanonicalPath("/project/style.css"), CanonicalPath(MAIN)
        )
        assert record is not None
        assert record.is_resolved is True

    def test_import_request_carried_into_outcome(self, memory_fs, resolver):
        memory_fs.write("/project/ui/box.chtl", "[Custom] @Element Box { div {} }")
        request = ImportRequest(
            from_path="ui/box",
            import_type=ImportType.CUSTOM_ELEMENT,
            target_name="Box",
            as_name="Panel",
            line=4,
        )

        outcome = resolver.resolve(request, MAIN)

        assert outcome.success
        assert outcome.canonical_path == "/project/ui/box.chtl"
        assert outcome.request is request

    def test_source_spellings_are_canonicalized(self, memory_fs, resolver):
        memory_fs.write("/project/style.css", "body {}")

        first = resolver.resolve("style.css", "main.chtl")
        second = resolver.resolve("./style.css", "/project/./main.chtl")

        assert first.was_duplicate is False
        assert second.was_duplicate is True

    def test_wrong_argument_types_raise(self, resolver):
        with pytest.raises(TypeError):
            resolver.resolve(42, MAIN)  # type: ignore[arg-type]
        with pytest.raises(TypeError):
            resolver.resolve("style.css", None)  # type: ignore[arg-type]


class TestResolveFailures:
    """Tests for failures returned as values."""

    def test_empty_path_is_invalid_request(self, resolver):
        outcome = resolver.resolve(ImportRequest(from_path="  "), MAIN)

        assert not outcome.success
        assert outcome.error_kind == ErrorKind.INVALID_REQUEST
        assert resolver.errors == outcome.errors

    def test_missing_target(self, resolver):
        outcome = resolver.resolve("missing.chtl", MAIN)

        assert outcome.error_kind == ErrorKind.NOT_FOUND
        assert outcome.canonical_path == "/project/missing.chtl"
        assert resolver.graph.edge_count() == 0
        assert resolver.ledger.count() == 0

    def test_directory_target(self, memory_fs, resolver):
        memory_fs.write("/project/ui/box.chtl", "div {}")

        outcome = resolver.resolve("ui", MAIN)

        assert outcome.error_kind == ErrorKind.INVALID_REQUEST

    def test_unreadable_keeps_edge(self, memory_fs):
        resolver = make_resolver(memory_fs, read_max_retries=1)
        memory_fs.write("/project/locked.chtl", "div {}")
        memory_fs.failing_reads["/project/locked.chtl"] = 5

        outcome = resolver.resolve("locked.chtl", MAIN)

        assert outcome.error_kind == ErrorKind.UNREADABLE
        assert resolver.graph.has_edge(
            CanonicalPath(MAIN), CanonicalPath("/project/locked.chtl")
        )
        record = resolver.ledger.get_record(
            CanonicalPath("/project/locked.chtl"), CanonicalPath(MAIN)
        )
        assert record is not None
        assert record.is_resolved is False

    def test_empty_file_is_invalid_content(self, memory_fs, resolver):
        memory_fs.write("/project/empty.chtl", "")

        outcome = resolver.resolve("empty.chtl", MAIN)

        assert outcome.error_kind == ErrorKind.INVALID_CONTENT
        assert resolver.graph.edge_count() == 1

    def test_single_wildcard_resolve_is_rejected(self, memory_fs, resolver):
        memory_fs.write("/project/ui/a.chtl", "div {}")

        matched = resolver.resolve("ui/*", MAIN)
        unmatched = resolver.resolve("nothing/*", MAIN)

        assert matched.error_kind == ErrorKind.INVALID_REQUEST
        assert unmatched.error_kind == ErrorKind.NOT_FOUND


class TestCircularDependencies:
    """Tests for the cycle probe and rollback."""

    @pytest.fixture
    def pair_fs(self, memory_fs):
        memory_fs.write("/project/a.chtl", "div {}")
        memory_fs.write("/project/b.chtl", "span {}")
        return memory_fs

    def test_cycle_rejected_and_rolled_back(self, pair_fs, resolver):
        assert resolver.resolve("b.chtl", "/project/a.chtl").success
        edges_before = resolver.graph.edges()

        outcome = resolver.resolve("a.chtl", "/project/b.chtl")

        assert outcome.error_kind == ErrorKind.CIRCULAR_DEPENDENCY
        assert outcome.cycle_chain == ["/project/a.chtl", "/project/b.chtl", "/project/a.chtl"]
        assert not resolver.graph.has_edge(
            CanonicalPath("/project/b.chtl"), CanonicalPath("/project/a.chtl")
        )
        assert resolver.graph.edges() == edges_before
        assert not resolver.ledger.is_already_imported(
            CanonicalPath("/project/a.chtl"), CanonicalPath("/project/b.chtl")
        )
        assert not resolver.has_circular_dependencies()
        assert resolver.all_circular_dependencies() == []
        assert resolver.statistics().circular_dependencies == 1

    def test_self_import(self, pair_fs, resolver):
        outcome = resolver.resolve("a.chtl", "/project/a.chtl")

        assert outcome.error_kind == ErrorKind.CIRCULAR_DEPENDENCY
        assert outcome.cycle_chain == ["/project/a.chtl", "/project/a.chtl"]
        assert resolver.graph.edge_count() == 0

    def test_multi_hop_cycle_found_through_transitive_edges(self, memory_fs, resolver):
        memory_fs.write("/project/main.chtl", "[Import] @Chtl from lib.chtl\n")
        memory_fs.write("/project/lib.chtl", "[Import] @Chtl from util.chtl\n")
        memory_fs.write("/project/util.chtl", "div {}")

        assert resolver.resolve("main.chtl", "/project/index.chtl").success
        assert resolver.resolve("lib.chtl", "/project/main.chtl").success

        outcome = resolver.resolve("main.chtl", "/project/util.chtl")

        assert outcome.error_kind == ErrorKind.CIRCULAR_DEPENDENCY
        assert outcome.cycle_chain == [
            "/project/main.chtl",
            "/project/lib.chtl",
            "/project/util.chtl",
            "/project/main.chtl",
        ]

    def test_transitive_cycle_edge_becomes_warning(self, memory_fs, resolver):
        memory_fs.write("/project/a.chtl", "[Import] @Chtl from b.chtl\n")
        memory_fs.write("/project/b.chtl", "[Import] @Chtl from a.chtl\n")
        a = CanonicalPath("/project/a.chtl")
        b = CanonicalPath("/project/b.chtl")

        assert resolver.resolve("a.chtl", MAIN).success
        assert resolver.graph.has_edge(a, b)

        outcome = resolver.resolve("b.chtl", "/project/a.chtl")

        assert outcome.success
        assert any("closes a cycle" in warning for warning in outcome.warnings)
        assert not resolver.graph.has_edge(b, a)
        assert resolver.reported_cycles() == [[a, b, a]]

        rejected = resolver.resolve("a.chtl", "/project/b.chtl")

        assert rejected.error_kind == ErrorKind.CIRCULAR_DEPENDENCY
        # The same cycle is only counted once
        assert resolver.statistics().circular_dependencies == 1

    def test_cycle_through_long_chain_is_an_outcome(self, memory_fs, resolver):
        chain = [CanonicalPath(f"/project/f{i:04d}.chtl") for i in range(3000)]
        for dependent, dependency in zip(chain, chain[1:]):
            resolver.graph.add_edge(dependent, dependency)
        memory_fs.write(chain[0], "div {}")

        outcome = resolver.resolve("f0000.chtl", chain[-1])

        assert outcome.error_kind == ErrorKind.CIRCULAR_DEPENDENCY
        assert outcome.cycle_chain == chain + [chain[0]]
        assert not resolver.graph.has_edge(chain[-1], chain[0])


class TestDuplicates:
    """Tests for duplicate detection and cached content."""

    def test_second_import_served_from_cache(self, memory_fs, resolver):
        memory_fs.write("/project/style.css", "body {}")

        first = resolver.resolve("style.css", MAIN)
        second = resolver.resolve("style.css", MAIN)

        assert first.was_duplicate is False
        assert second.success
        assert second.was_duplicate is True
        assert second.was_cached is True
        assert second.content == "body {}"
        assert any("Duplicate import" in w for w in second.warnings)
        assert memory_fs.reads_of("/project/style.css") == 1
        stats = resolver.statistics()
        assert stats.duplicate_imports == 1
        assert stats.unique_targets == 1
        assert stats.total_imports == 2
        assert stats.cached_loads == 1

    def test_duplicate_without_cache_reads_again(self, memory_fs):
        resolver = make_resolver(memory_fs, enable_cache=False)
        memory_fs.write("/project/style.css", "body {}")

        resolver.resolve("style.css", MAIN)
        second = resolver.resolve("style.css", MAIN)

        assert second.success
        assert second.was_duplicate is True
        assert second.was_cached is False
        assert memory_fs.reads_of("/project/style.css") == 2
        assert resolver.statistics().duplicate_imports == 1

    def test_stale_duplicate_is_reloaded(self, memory_fs, resolver):
        memory_fs.write("/project/style.css", "body {}")
        resolver.resolve("style.css", MAIN)

        memory_fs.write("/project/style.css", "body { margin: 0; }")
        second = resolver.resolve("style.css", MAIN)

        assert second.was_duplicate is True
        assert second.was_cached is False
        assert second.content == "body { margin: 0; }"

    def test_duplicate_warning_can_be_disabled(self, memory_fs):
        resolver = make_resolver(memory_fs, warn_on_duplicate_imports=False)
        memory_fs.write("/project/style.css", "body {}")

        resolver.resolve("style.css", MAIN)
        second = resolver.resolve("style.css", MAIN)

        assert second.was_duplicate is True
        assert second.warnings == []

    def test_same_target_from_other_file_is_not_duplicate(self, memory_fs, resolver):
        memory_fs.write("/project/style.css", "body {}")

        resolver.resolve("style.css", MAIN)
        other = resolver.resolve("style.css", "/project/page.chtl")

        assert other.was_duplicate is False
        assert other.was_cached is True
        assert resolver.statistics().duplicate_imports == 1
        assert {r.source_file for r in resolver.duplicate_imports()} == {
            MAIN,
            "/project/page.chtl",
        }


class TestBatch:
    """Tests for resolve_all, validate_chain and optimal_import_order."""

    @pytest.fixture
    def batch_fs(self, memory_fs):
        memory_fs.write("/project/a.chtl", "[Import] @Chtl from b.chtl\n")
        memory_fs.write("/project/b.chtl", "div {}")
        memory_fs.write("/project/c.css", "p {}")
        return memory_fs

    def test_resolve_all_follows_graph_order(self, batch_fs, resolver):
        resolver.resolve("a.chtl", "/project/other.chtl")

        outcomes = resolver.resolve_all(["b.chtl", "c.css", "missing.chtl", "a.chtl"], MAIN)

        assert [o.request.from_path for o in outcomes] == [
            "a.chtl",
            "b.chtl",
            "c.css",
            "missing.chtl",
        ]
        assert [o.success for o in outcomes] == [True, True, True, False]
        assert outcomes[-1].error_kind == ErrorKind.NOT_FOUND

    def test_resolve_all_one_outcome_per_request(self, batch_fs, resolver):
        outcomes = resolver.resolve_all(["c.css", "c.css", ""], MAIN)

        assert len(outcomes) == 3
        assert [o.was_duplicate for o in outcomes[:2]] == [False, True]
        assert outcomes[2].error_kind == ErrorKind.INVALID_REQUEST

    def test_resolve_all_expands_wildcards(self, memory_fs, resolver):
        memory_fs.write("/project/ui/y.css", "p {}")
        memory_fs.write("/project/ui/x.chtl", "div {}")

        outcomes = resolver.resolve_all(
            [ImportRequest(from_path="ui/*", is_wildcard=True), "empty/*"], MAIN
        )

        assert len(outcomes) == 3
        resolved = sorted(o.canonical_path for o in outcomes if o.success)
        assert resolved == ["/project/ui/x.chtl", "/project/ui/y.css"]
        assert all(not o.request.is_wildcard for o in outcomes if o.success)
        assert outcomes[-1].error_kind == ErrorKind.NOT_FOUND

    def test_validate_chain_never_mutates_graph(self, batch_fs, resolver):
        resolver.resolve("b.chtl", "/project/a.chtl")
        edges_before = resolver.graph.edges()

        safe = resolver.validate_chain(["a.chtl", "c.css"], "/project/b.chtl")

        assert safe is False
        assert resolver.graph.edges() == edges_before
        assert resolver.validate_chain(["c.css"], "/project/b.chtl") is True
        assert resolver.statistics().circular_dependencies == 0

    def test_validate_chain_usable_as_condition(self, batch_fs, resolver):
        resolver.resolve("b.chtl", "/project/a.chtl")

        if resolver.validate_chain(["a.chtl"], "/project/b.chtl"):
            pytest.fail("a batch closing a cycle must not validate")
        assert not resolver.validate_chain(["a.chtl"], "/project/b.chtl")

    def test_would_create_cycles_lists_chains(self, batch_fs, resolver):
        resolver.resolve("b.chtl", "/project/a.chtl")

        cycles = resolver.would_create_cycles(["a.chtl", "c.css"], "/project/b.chtl")

        assert cycles == [["/project/a.chtl", "/project/b.chtl", "/project/a.chtl"]]
        assert resolver.would_create_cycles(["c.css"], "/project/b.chtl") == []
        assert not resolver.graph.has_edge("/project/b.chtl", "/project/a.chtl")

    def test_optimal_import_order(self, batch_fs, resolver):
        resolver.resolve("a.chtl", "/project/other.chtl")

        order = resolver.optimal_import_order(["b.chtl", "a.chtl"], MAIN)

        assert order == ["/project/a.chtl", "/project/b.chtl"]


class TestStatisticsAndExport:
    """Tests for derived statistics and export."""

    def test_empty_statistics(self, resolver):
        stats = resolver.statistics()

        assert stats.total_imports == 0
        assert stats.average_dependency_depth == 0.0

    def test_average_dependency_depth(self, memory_fs, resolver):
        memory_fs.write("/project/style.css", "body {}")
        resolver.resolve("style.css", MAIN)

        assert resolver.statistics().average_dependency_depth == 0.5

    def test_export_graph(self, memory_fs, resolver):
        memory_fs.write("/project/style.css", "body {}")
        resolver.resolve("style.css", MAIN)

        dot = resolver.export_graph()
        export = resolver.export_graph_dict()

        assert '"/project/main.chtl" -> "/project/style.css";' in dot
        assert export["statistics"]["unique_targets"] == 1
        assert export["reported_cycles"] == []

    def test_format_statistics(self, memory_fs, resolver):
        memory_fs.write("/project/style.css", "body {}")
        resolver.resolve("style.css", MAIN)

        text = resolver.format_statistics()

        assert "Total imports: 1" in text
        assert "Duplicate imports: 0" in text


class TestCacheControlAndReset:
    """Tests for cache switches, accumulators and reset."""

    def test_enable_cache_toggle(self, memory_fs, resolver):
        memory_fs.write("/project/style.css", "body {}")
        resolver.resolve("style.css", MAIN)

        resolver.enable_cache(False)

        assert resolver.is_cache_enabled() is False
        assert resolver.file_store.size() == 0

    def test_invalidate_cache_forces_reread(self, memory_fs, resolver):
        memory_fs.write("/project/style.css", "body {}")
        resolver.resolve("style.css", MAIN)

        resolver.invalidate_cache("style.css")
        second = resolver.resolve("style.css", MAIN)

        assert second.was_duplicate is True
        assert second.was_cached is False
        assert memory_fs.reads_of("/project/style.css") == 2

    def test_clear_cache(self, memory_fs, resolver):
        memory_fs.write("/project/style.css", "body {}")
        resolver.resolve("style.css", MAIN)

        resolver.clear_cache()

        assert resolver.file_store.size() == 0

    def test_error_and_warning_accumulators(self, memory_fs, resolver):
        memory_fs.write("/project/style.css", "body {}")
        resolver.resolve("missing.chtl", MAIN)
        resolver.resolve("style.css", MAIN)
        resolver.resolve("style.css", MAIN)

        assert len(resolver.errors) == 1
        assert len(resolver.warnings) == 1

        resolver.clear_errors()
        resolver.clear_warnings()

        assert resolver.errors == []
        assert resolver.warnings == []

    def test_reset(self, memory_fs, resolver):
        memory_fs.write("/project/a.chtl", "div {}")
        resolver.resolve("a.chtl", MAIN)
        resolver.resolve("a.chtl", "/project/a.chtl")

        resolver.reset()

        stats = resolver.statistics()
        assert stats.total_imports == 0
        assert stats.circular_dependencies == 0
        assert stats.cached_loads == 0
        assert resolver.graph.node_count() == 0
        assert resolver.file_store.size() == 0
        assert resolver.errors == []
        assert resolver.is_cache_enabled() is True
