"""End-to-end tests for the analysis pipeline."""

import json
import logging
import time

import pytest

from repolens import AnalysisOptions, RepositoryRootMissing, analyze, analyze_repository
from repolens import orchestrator
from repolens.models import SourceFile


def _comparable(result):
    payload = result.to_dict()
    payload.pop("generated_at")
    return payload


class TestFooBar:
    """The two-file call scenario run through every stage."""

    def test_full_pipeline(self, foo_bar_sources):
        """One call edge, one reference, one entry point, one sink, one path."""
        result = analyze(foo_bar_sources)

        calls = result.semantics.calls
        assert [(c.caller, c.callee) for c in calls] == [("foo", "bar")]
        assert result.cross_references.symbol_usage["bar"].reference_count == 1
        assert result.flows.entry_points == ["foo"]
        assert result.flows.sinks == ["bar"]
        assert [p.length for p in result.flows.execution_paths] == [2]
        assert result.dependencies.cycles == []
        assert result.files == ["a.js", "b.js"]
        assert result.unreadable_files == []

    def test_typescript_variant(self, foo_bar_ts_sources):
        """The same scenario in .ts files gives the same graph."""
        result = analyze(foo_bar_ts_sources)

        assert [(c.caller, c.callee, c.callee_file) for c in result.semantics.calls] == [("foo", "bar", "b.ts")]
        assert result.cross_references.symbol_usage["bar"].reference_count == 1
        assert result.flows.entry_points == ["foo"]
        assert result.flows.sinks == ["bar"]
        assert [p.files for p in result.flows.execution_paths] == [["a.ts", "b.ts"]]
        assert {m.language for m in result.languages.distribution} == {"TypeScript"}

    def test_indexing_of_preloaded_sources(self, foo_bar_sources):
        """Preloaded sources are indexed from their text."""
        result = analyze(foo_bar_sources)

        assert result.indexing.total_files == 2
        assert result.indexing.file_types == {"js": 2}


class TestSampleProject:
    """Runs against tests/fixtures/sample_project."""

    def test_summary(self, sample_project_path):
        """Languages, symbols, cycles and paths for the sample repository."""
        result = analyze_repository(sample_project_path)

        assert result.files[0] == "README.md"
        assert len(result.files) == 9
        languages = {m.language for m in result.languages.distribution}
        assert languages == {"Python", "JavaScript", "TypeScript", "Markdown"}

        assert result.semantics.stats["total_symbols"] == 17
        assert result.semantics.stats["total_calls"] == 5
        assert len(result.dependencies.cycles) == 1

        assert result.flows.entry_points == ["checkout", "new_order", "add_item", "main", "constructor", "render"]
        paths = [p.path for p in result.flows.execution_paths]
        assert ["main", "renderCart", "formatPrice"] in paths
        assert ["checkout", "apply_tax"] in paths
        assert len(paths) == 6

        assert result.cross_references.symbol_usage["Renderable"].reference_count == 1
        assert "TAX_RATE" in result.cross_references.unused
        assert 0 <= result.quality.overall_score <= 100

    def test_deterministic(self, sample_project_path):
        """Two runs produce the same output apart from the timestamp."""
        first = analyze_repository(sample_project_path)
        second = analyze_repository(sample_project_path)

        assert _comparable(first) == _comparable(second)

    def test_workers_do_not_change_results(self, sample_project_path):
        """Thread-pool runs match serial runs."""
        serial = analyze_repository(sample_project_path)
        threaded = analyze_repository(sample_project_path, AnalysisOptions(workers=4))

        assert _comparable(serial) == _comparable(threaded)

    def test_ast_backend_finds_same_symbols(self, sample_project_path):
        """Switching the Python backend keeps the symbol set."""
        regex = analyze_repository(sample_project_path, AnalysisOptions(stages=frozenset({"semantics"})))
        parsed = analyze_repository(
            sample_project_path,
            AnalysisOptions(stages=frozenset({"semantics"}), parser_backend="ast"),
        )

        def names(result):
            return sorted((s.file_path, s.name, s.kind.value) for s in result.semantics.symbols)

        assert names(regex) == names(parsed)

    def test_json_round_trip(self, sample_project_path):
        """The JSON payload parses and carries derived fields."""
        payload = json.loads(analyze_repository(sample_project_path).to_json())

        assert payload["dependencies"]["cycles"][0]["length"] == 2
        assert all("length" in p for p in payload["flows"]["execution_paths"])
        assert "total_impact_count" in payload["impact"]["impact_by_file"]["web/format.js"]
        assert payload["dependencies"]["external_dependencies"] == ["dataclasses", "react", "typing"]


class TestStageSelection:
    """Tests for running a subset of stages."""

    def test_only_requested_stages_run(self, foo_bar_sources):
        """Stages that were not requested stay None."""
        result = analyze(foo_bar_sources, AnalysisOptions().with_stages({"quality"}))

        assert result.quality is not None
        assert result.semantics is None
        assert result.dependencies is None
        assert result.impact is None

    def test_prerequisites_run(self, foo_bar_sources):
        """Asking for flows also produces the semantic result it needs."""
        result = analyze(foo_bar_sources, AnalysisOptions().with_stages({"flows"}))

        assert result.semantics is not None
        assert result.flows is not None
        assert result.cross_references is None

    def test_unknown_stage(self, foo_bar_sources):
        """An unknown stage name is a ValueError before any work starts."""
        with pytest.raises(ValueError):
            analyze(foo_bar_sources, AnalysisOptions().with_stages({"magic"}))

    def test_stage_timing_logged_when_stage_raises(self, foo_bar_sources, monkeypatch, caplog):
        """A failing stage still logs how long it ran before the error propagates."""

        def explode(sources, settings):
            raise RuntimeError("boom")

        monkeypatch.setattr(orchestrator, "analyze_code_quality", explode)

        with caplog.at_level(logging.INFO, logger="repolens.orchestrator"):
            with pytest.raises(RuntimeError):
                analyze(foo_bar_sources, AnalysisOptions().with_stages({"quality"}))

        assert "Stage quality finished" in caplog.text

    def test_unknown_parser_backend(self, foo_bar_sources):
        """An unknown parser backend is rejected."""
        with pytest.raises(ValueError):
            analyze(foo_bar_sources, AnalysisOptions(parser_backend="clang"))


class TestDegradation:
    """Unreadable input never aborts the run."""

    def test_unreadable_file_is_reported(self, foo_bar_sources):
        """A file without text is listed and otherwise ignored."""
        result = analyze(foo_bar_sources + [SourceFile("blob.js", None)])

        assert result.unreadable_files == ["blob.js"]
        assert len(result.semantics.symbols) == 2
        assert result.quality.complexity["blob.js"] == 1

    def test_binary_file_on_disk(self, write_files, temp_dir):
        """Binary files in a repository are read as unreadable."""
        root = write_files({"a.js": "function foo() { bar(); }\n", "b.js": "function bar() {}\n"})
        (temp_dir / "image.png").write_bytes(b"\x00\x01\x02")

        result = analyze_repository(root)

        assert result.unreadable_files == ["image.png"]
        assert len(result.semantics.calls) == 1

    def test_exhausted_time_budget(self, sample_project_path):
        """A zero time budget yields partial graph results without raising."""
        result = analyze_repository(sample_project_path, AnalysisOptions(time_budget_seconds=0))

        assert result.dependencies.cycles == []
        assert result.flows.execution_paths == []
        assert result.semantics.stats["total_calls"] == 5

    def test_missing_root(self, temp_dir):
        """A missing repository root raises a dedicated error."""
        with pytest.raises(RepositoryRootMissing):
            analyze_repository(temp_dir / "absent")

    def test_dense_call_graph_finishes_with_defaults(self):
        """Twelve functions that all call each other do not stall path search."""
        names = [f"n{i}" for i in range(12)]
        lines = ["function main() { " + " ".join(f"{n}();" for n in names) + " }"]
        for name in names:
            calls = " ".join(f"{other}();" for other in names if other != name)
            lines.append(f"function {name}() {{ {calls} }}")
        source = SourceFile("a.js", "\n".join(lines) + "\n")

        started = time.perf_counter()
        result = analyze([source], AnalysisOptions().with_stages({"flows"}))
        elapsed = time.perf_counter() - started

        assert result.flows.entry_points == ["main"]
        assert result.flows.sinks == []
        assert result.flows.execution_paths == []
        assert elapsed < 30

    def test_missing_imports_in_two_directories_stay_apart(self):
        """Each unresolved ./missing is predicted under its own directory."""
        sources = [
            SourceFile("src/a/x.js", "import u from './missing';\nfunction x() {}\n"),
            SourceFile("src/b/y.js", "import u from './missing';\nfunction y() {}\n"),
        ]
        impact = analyze(sources).impact.impact_by_file

        assert "./missing" not in impact
        assert impact["src/a/missing"].direct_impact == ["src/a/x.js"]
        assert impact["src/b/missing"].direct_impact == ["src/b/y.js"]
