"""Tests for call-graph flows and execution-path search."""

from repolens.flow import analyze_flows, find_execution_paths
from repolens.graph import SearchBudget
from repolens.models import CallEdge, DataFlowKind, Location, Symbol, SymbolKind, SymbolTable
from repolens.semantics import analyze_semantics


def _sym(name, file_path, line=1, kind=SymbolKind.FUNCTION):
    return Symbol(name=name, kind=kind, file_path=file_path, location=Location(line, 1))


def _chain(length):
    """f0 -> f1 -> ... -> f{length-1}, one function per line of chain.js."""
    table = SymbolTable([_sym(f"f{i}", "chain.js", i + 1) for i in range(length)])
    calls = [
        CallEdge(f"f{i}", f"f{i + 1}", "chain.js", Location(i + 1, 1), callee_file="chain.js")
        for i in range(length - 1)
    ]
    return table, calls


class TestAnalyzeFlows:
    """Tests for the whole flow stage."""

    def test_foo_bar(self, foo_bar_sources):
        """foo is an entry point, bar a sink, and one path joins them."""
        semantics = analyze_semantics(foo_bar_sources)
        result = analyze_flows(semantics.symbols, semantics.calls)

        assert result.call_graph == {"foo": ["bar"], "bar": []}
        assert result.entry_points == ["foo"]
        assert result.sinks == ["bar"]
        assert len(result.execution_paths) == 1
        path = result.execution_paths[0]
        assert path.entry_point == "foo"
        assert path.path == ["foo", "bar"]
        assert path.length == 2
        assert path.files == ["a.js", "b.js"]

    def test_cross_file_data_flows_and_component_io(self, foo_bar_sources):
        """A cross-file call yields one flow of each kind and fills component I/O."""
        semantics = analyze_semantics(foo_bar_sources)
        result = analyze_flows(semantics.symbols, semantics.calls)

        kinds = sorted((f.source, f.target, f.kind) for f in result.data_flows)
        assert kinds == [
            ("foo", "bar", DataFlowKind.FUNCTION_TO_RETURN),
            ("foo", "bar", DataFlowKind.PARAMETER_TO_FUNCTION),
        ]
        assert result.component_io["b.js"].inputs == ["bar"]
        assert result.component_io["b.js"].dependencies == ["a.js"]
        assert result.component_io["a.js"].outputs == ["foo"]
        assert result.component_io["a.js"].inputs == []

    def test_same_file_calls_make_no_data_flow(self):
        """Calls inside one file do not cross a component boundary."""
        table, calls = _chain(3)
        result = analyze_flows(table, calls)

        assert result.data_flows == []
        assert result.component_io["chain.js"].inputs == []

    def test_repeated_calls_are_deduplicated(self):
        """The call graph and data flows list each pair once."""
        table = SymbolTable([_sym("a", "a.js"), _sym("b", "b.js")])
        calls = [
            CallEdge("a", "b", "a.js", Location(2, 1), callee_file="b.js"),
            CallEdge("a", "b", "a.js", Location(3, 1), callee_file="b.js"),
        ]
        result = analyze_flows(table, calls)

        assert result.call_graph["a"] == ["b"]
        assert len(result.data_flows) == 2

    def test_non_callables_are_not_entry_points(self):
        """Classes and variables are never entry points or sinks."""
        table = SymbolTable([
            _sym("Thing", "t.js", 1, SymbolKind.CLASS),
            _sym("LIMIT", "t.js", 2, SymbolKind.VARIABLE),
            _sym("run", "t.js", 3),
        ])
        result = analyze_flows(table, [])

        assert result.entry_points == ["run"]
        assert result.sinks == ["run"]
        assert [p.path for p in result.execution_paths] == [["run"]]

    def test_entry_point_cap(self):
        """Only the first max_entry_points entries are walked."""
        table = SymbolTable([_sym(f"solo{i}", "s.js", i + 1) for i in range(5)])
        result = analyze_flows(table, [], max_entry_points=2)

        assert len(result.entry_points) == 5
        assert [p.entry_point for p in result.execution_paths] == ["solo0", "solo1"]

    def test_depth_limit(self):
        """Paths longer than max_depth symbols are not reported."""
        table, calls = _chain(6)

        assert [p.length for p in analyze_flows(table, calls, max_depth=10).execution_paths] == [6]
        assert analyze_flows(table, calls, max_depth=5).execution_paths == []


class TestFindExecutionPaths:
    """Tests for the bounded path enumeration."""

    def test_paths_through_intermediate_sink(self):
        """Every prefix ending on a sink is a path."""
        graph = {"e": ["s1"], "s1": ["s2"], "s2": []}
        paths = find_execution_paths(graph, ["e"], frozenset({"s1", "s2"}), {"e": "x", "s1": "x", "s2": "y"})

        assert [p.path for p in paths] == [["e", "s1"], ["e", "s1", "s2"]]
        assert paths[1].files == ["x", "y"]

    def test_cycles_are_not_revisited(self):
        """A loop in the call graph does not repeat symbols in a path."""
        graph = {"e": ["a"], "a": ["b"], "b": ["a", "s"], "s": []}
        paths = find_execution_paths(graph, ["e"], frozenset({"s"}), {})

        assert [p.path for p in paths] == [["e", "a", "b", "s"]]

    def test_budget_caps_paths(self):
        """The item budget limits how many paths are collected."""
        graph = {"e": ["s1", "s2", "s3"], "s1": [], "s2": [], "s3": []}
        sinks = frozenset({"s1", "s2", "s3"})

        paths = find_execution_paths(graph, ["e"], sinks, {}, budget=SearchBudget(max_items=2))

        assert len(paths) == 2

    def test_step_ceiling_stops_search(self):
        """max_visits bounds DFS steps even when no path has been recorded."""
        graph = {"e": ["a"], "a": ["b"], "b": ["s"], "s": []}
        sinks = frozenset({"s"})

        assert find_execution_paths(graph, ["e"], sinks, {}, max_visits=3) == []
        assert [p.path for p in find_execution_paths(graph, ["e"], sinks, {}, max_visits=4)] == [
            ["e", "a", "b", "s"]
        ]

    def test_dense_graph_without_sinks_is_bounded(self):
        """A complete call graph with no sink stops at the step ceiling."""
        nodes = [f"n{i}" for i in range(12)]
        graph = {"main": list(nodes)}
        graph.update({n: [m for m in nodes if m != n] for n in nodes})

        paths = find_execution_paths(graph, ["main"], frozenset(), {}, max_visits=5000)

        assert paths == []
