"""Change-impact prediction over the dependency, reference and flow graphs."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Dict, List, Optional, Sequence, Tuple

from .config_manager import ImpactSettings
from .dependencies import build_dependency_graph
from .graph import DiGraph, SearchBudget
from .models import (
    DataFlow,
    FileDependency,
    ImpactPrediction,
    ImpactResult,
    ReferenceKind,
    RiskyArea,
    SymbolReference,
    SymbolTable,
)

logger = logging.getLogger(__name__)


def _unique(items: Sequence[str]) -> List[str]:
    return list(dict.fromkeys(items))


class _ImpactContext:
    """Indexes shared by every per-file prediction."""

    def __init__(
        self,
        dependencies: Sequence[FileDependency],
        data_flows: Sequence[DataFlow],
        references: Sequence[SymbolReference],
    ) -> None:
        self.graph: DiGraph = build_dependency_graph(dependencies)
        self.dependents: Dict[str, List[str]] = {}
        self.outbound: Counter = Counter()
        self.edge_counts: Counter = Counter()
        for dep in dependencies:
            target = dep.internal_target
            if target is None:
                continue
            self.dependents.setdefault(target, []).append(dep.source)
            self.outbound[dep.source] += 1
            self.edge_counts[(dep.source, target)] += 1

        self.referencing_files: Dict[str, List[str]] = {}
        for ref in references:
            if ref.kind == ReferenceKind.DECLARATION or not ref.target_file:
                continue
            self.referencing_files.setdefault(ref.target_file, []).append(ref.source_file)

        self.flow_targets: Dict[str, List[str]] = {}
        for flow in data_flows:
            self.flow_targets.setdefault(flow.source_file, []).append(flow.target_file)

    def coupling(self, a: str, b: str) -> int:
        return self.edge_counts[(a, b)] + self.edge_counts[(b, a)]


def predict_file_impact(
    file_path: str,
    ctx: _ImpactContext,
    settings: ImpactSettings,
    budget: Optional[SearchBudget] = None,
) -> Tuple[ImpactPrediction, List[List[str]]]:
    """Impact prediction for one file, plus the dependency cycles through it."""
    direct = _unique(
        ctx.dependents.get(file_path, [])
        + [f for f in ctx.referencing_files.get(file_path, []) if f != file_path]
        + [f for f in ctx.flow_targets.get(file_path, []) if f != file_path]
    )
    direct_set = set(direct)
    transitive = [
        f for f in ctx.graph.reverse_reachable(direct)
        if f != file_path and f not in direct_set
    ]

    raw = len(direct) * settings.direct_weight + len(transitive) * settings.transitive_weight
    score = min(settings.max_score, raw * settings.score_scale)

    risky: List[RiskyArea] = []
    cycles = ctx.graph.cycles_through(file_path, budget)
    for cycle in cycles:
        for member in _unique(cycle):
            if member != file_path:
                risky.append(RiskyArea(member, settings.cycle_risk, f"Circular dependency with {file_path}"))

    if len(direct) > settings.fan_in_threshold:
        risky.append(RiskyArea(file_path, settings.fan_in_risk, f"High fan-in ({len(direct)} dependents)"))

    for other in direct + transitive:
        total = ctx.coupling(file_path, other)
        if total > settings.coupling_threshold:
            risky.append(RiskyArea(
                other, settings.coupling_risk,
                f"High coupling with {file_path} ({total} references)",
            ))

    prediction = ImpactPrediction(
        file_path=file_path,
        impact_score=score,
        direct_impact=direct,
        transitive_impact=transitive,
        risky_areas=risky,
    )
    return prediction, cycles


def _risk_factors(
    prediction: ImpactPrediction,
    symbol_count: int,
    outbound: int,
    inbound: int,
    cycle_count: int,
    settings: ImpactSettings,
) -> List[str]:
    factors: List[str] = []
    if prediction.impact_score > settings.very_high_score:
        factors.append("Very high impact score")
    elif prediction.impact_score > settings.high_score:
        factors.append("High impact score")
    if symbol_count > settings.symbol_count_threshold:
        factors.append(f"High symbol count ({symbol_count} symbols)")
    if outbound > settings.outbound_threshold:
        factors.append(f"High outbound dependency count ({outbound} dependencies)")
    if inbound > settings.inbound_threshold:
        factors.append(f"High inbound dependency count ({inbound} dependents)")
    if cycle_count:
        factors.append(f"Involved in {cycle_count} circular dependencies")
    if prediction.risky_areas:
        factors.append(f"Affects {len(prediction.risky_areas)} high-risk areas")
    return factors


def analyze_change_impact(
    symbols: SymbolTable,
    dependencies: Sequence[FileDependency],
    data_flows: Sequence[DataFlow],
    references: Sequence[SymbolReference],
    settings: Optional[ImpactSettings] = None,
    budget: Optional[SearchBudget] = None,
) -> ImpactResult:
    settings = settings or ImpactSettings()
    ctx = _ImpactContext(dependencies, data_flows, references)

    endpoints: List[str] = []
    for dep in dependencies:
        if dep.internal_target is not None:
            endpoints.extend((dep.source, dep.internal_target))
    files = _unique([s.file_path for s in symbols] + endpoints)

    impact_by_file: Dict[str, ImpactPrediction] = {}
    risk_factors: Dict[str, List[str]] = {}
    for file_path in files:
        prediction, cycles = predict_file_impact(file_path, ctx, settings, budget)
        impact_by_file[file_path] = prediction
        risk_factors[file_path] = _risk_factors(
            prediction,
            symbol_count=len(symbols.in_file(file_path)),
            outbound=ctx.outbound[file_path],
            inbound=len(ctx.dependents.get(file_path, [])),
            cycle_count=len(cycles),
            settings=settings,
        )

    ranked = sorted(files, key=lambda f: impact_by_file[f].impact_score, reverse=True)
    impacted = {f for p in impact_by_file.values() for f in p.direct_impact}
    isolated = [f for f in files if not impact_by_file[f].direct_impact and f not in impacted]

    logger.info("Impact analysis: %d files, %d isolated", len(files), len(isolated))
    return ImpactResult(
        impact_by_file=impact_by_file,
        most_impactful_files=ranked[:settings.top_files],
        least_impactful_files=list(reversed(ranked))[:settings.top_files],
        isolated_files=isolated,
        risk_factors=risk_factors,
    )
