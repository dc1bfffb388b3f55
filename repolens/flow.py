"""Call graph, cross-file data flows and bounded execution-path search."""

from __future__ import annotations

import logging
from typing import Dict, FrozenSet, List, Optional, Sequence, Set, Tuple

from .graph import SearchBudget
from .models import (
    CallEdge,
    ComponentIO,
    DataFlow,
    DataFlowKind,
    ExecutionPath,
    FlowResult,
    Symbol,
    SymbolTable,
)
from .semantics import resolve_call

logger = logging.getLogger(__name__)


def _ordered_unique(items: Sequence[str]) -> List[str]:
    return list(dict.fromkeys(items))


def analyze_flows(
    symbols: SymbolTable,
    calls: Sequence[CallEdge],
    max_entry_points: int = 10,
    max_depth: int = 10,
    budget: Optional[SearchBudget] = None,
    max_visits: Optional[int] = None,
) -> FlowResult:
    label_of: Dict[Tuple[str, str], str] = {s.key: symbols.label(s) for s in symbols}
    by_label: Dict[str, Symbol] = {label_of[s.key]: s for s in symbols}

    call_graph: Dict[str, List[str]] = {label: [] for label in by_label}
    callers_of: Dict[Tuple[str, str], List[Symbol]] = {}
    callees_of: Dict[Tuple[str, str], List[Symbol]] = {}

    for call in calls:
        caller, callee = resolve_call(symbols, call)
        if caller is None or callee is None:
            continue
        targets = call_graph[label_of[caller.key]]
        if label_of[callee.key] not in targets:
            targets.append(label_of[callee.key])
        callers_of.setdefault(callee.key, []).append(caller)
        callees_of.setdefault(caller.key, []).append(callee)

    data_flows: List[DataFlow] = []
    seen_flows: Set[Tuple[str, str, DataFlowKind]] = set()

    def add_flow(source: Symbol, target: Symbol, kind: DataFlowKind) -> None:
        key = (label_of[source.key], label_of[target.key], kind)
        if key in seen_flows:
            return
        seen_flows.add(key)
        data_flows.append(DataFlow(
            source=key[0],
            target=key[1],
            kind=kind,
            source_file=source.file_path,
            target_file=target.file_path,
        ))

    component_io: Dict[str, ComponentIO] = {}
    for file_path in symbols.files():
        inputs: List[str] = []
        outputs: List[str] = []
        dependencies: List[str] = []
        for symbol in symbols.in_file(file_path):
            label = label_of[symbol.key]
            for caller in callers_of.get(symbol.key, []):
                if caller.file_path == file_path:
                    continue
                inputs.append(label)
                dependencies.append(caller.file_path)
                add_flow(caller, symbol, DataFlowKind.PARAMETER_TO_FUNCTION)
            for callee in callees_of.get(symbol.key, []):
                if callee.file_path == file_path:
                    continue
                outputs.append(label)
                add_flow(symbol, callee, DataFlowKind.FUNCTION_TO_RETURN)
        component_io[file_path] = ComponentIO(
            component=file_path,
            inputs=_ordered_unique(inputs),
            outputs=_ordered_unique(outputs),
            dependencies=_ordered_unique(dependencies),
        )

    called: FrozenSet[Tuple[str, str]] = frozenset(callers_of)
    calling: FrozenSet[Tuple[str, str]] = frozenset(callees_of)
    entry_points = [label_of[s.key] for s in symbols if s.is_callable and s.key not in called]
    sinks = [label_of[s.key] for s in symbols if s.is_callable and s.key not in calling]

    execution_paths = find_execution_paths(
        call_graph,
        entry_points[:max_entry_points],
        frozenset(sinks),
        {label: s.file_path for label, s in by_label.items()},
        max_depth=max_depth,
        budget=budget,
        max_visits=max_visits,
    )

    logger.info(
        "Flow analysis: %d data flows, %d entry points, %d sinks, %d paths",
        len(data_flows), len(entry_points), len(sinks), len(execution_paths),
    )
    return FlowResult(
        call_graph=call_graph,
        data_flows=data_flows,
        execution_paths=execution_paths,
        component_io=component_io,
        entry_points=entry_points,
        sinks=sinks,
    )


def find_execution_paths(
    call_graph: Dict[str, List[str]],
    entry_points: Sequence[str],
    sinks: FrozenSet[str],
    file_of: Dict[str, str],
    max_depth: int = 10,
    budget: Optional[SearchBudget] = None,
    max_visits: Optional[int] = None,
) -> List[ExecutionPath]:
    """Depth-first enumeration of entry-to-sink paths.

    A path holds at most *max_depth* symbols and never revisits one.
    Every prefix that ends on a sink is recorded, so a path can pass
    through a sink and keep going.

    *budget* counts recorded paths. *max_visits* caps the number of DFS
    steps, so dense call graphs with few reachable sinks still finish.
    """
    paths: List[ExecutionPath] = []
    steps = SearchBudget(max_items=max_visits)

    def walk(entry: str, current: str, path: Tuple[str, ...], visited: FrozenSet[str]) -> None:
        if budget is not None and budget.exhausted():
            budget.warn_once("execution path search")
            return
        if steps.exhausted():
            steps.warn_once("execution path search")
            return
        steps.charge()
        if current in visited or len(path) >= max_depth:
            return
        path = path + (current,)
        visited = visited | {current}
        if current in sinks:
            paths.append(ExecutionPath(
                entry_point=entry,
                path=list(path),
                files=_ordered_unique([file_of[p] for p in path if p in file_of]),
            ))
            if budget is not None:
                budget.charge()
        for nxt in call_graph.get(current, []):
            walk(entry, nxt, path, visited)

    for entry in entry_points:
        walk(entry, entry, (), frozenset())
    return paths
