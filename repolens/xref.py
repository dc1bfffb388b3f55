"""Cross-reference index: who declares, calls and inherits what."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Dict, List, Sequence, Tuple

from .models import (
    CallEdge,
    CrossReferenceResult,
    InheritanceEdge,
    ReferenceKind,
    SymbolReference,
    SymbolTable,
    SymbolUsage,
)
from .semantics import resolve_call

logger = logging.getLogger(__name__)

HOTSPOT_LIMIT = 10
TOP_FILES_LIMIT = 10


def analyze_cross_references(
    symbols: SymbolTable,
    calls: Sequence[CallEdge],
    inheritance: Sequence[InheritanceEdge],
) -> CrossReferenceResult:
    """Build the reference list and per-symbol usage from calls and inheritance.

    Declarations are recorded as self references and do not count as
    usage.  ``symbol_usage`` is keyed by display label.
    """
    references: List[SymbolReference] = []
    usage: Dict[Tuple[str, str], SymbolUsage] = {}

    for symbol in symbols:
        label = symbols.label(symbol)
        references.append(SymbolReference(
            source_symbol=label,
            target_symbol=label,
            kind=ReferenceKind.DECLARATION,
            source_file=symbol.file_path,
            location=symbol.location,
            target_file=symbol.file_path,
        ))
        usage[symbol.key] = SymbolUsage(
            symbol_name=label,
            kind=symbol.kind,
            declared_in=symbol.file_path,
        )

    for call in calls:
        caller, callee = resolve_call(symbols, call)
        caller_label = symbols.label(caller) if caller else call.caller
        callee_label = symbols.label(callee) if callee else call.callee
        references.append(SymbolReference(
            source_symbol=caller_label,
            target_symbol=callee_label,
            kind=ReferenceKind.CALL,
            source_file=call.file_path,
            location=call.location,
            target_file=callee.file_path if callee else call.callee_file,
        ))
        if callee is not None:
            entry = usage[callee.key]
            entry.reference_count += 1
            if caller_label not in entry.callers:
                entry.callers.append(caller_label)
        if caller is not None:
            entry = usage[caller.key]
            if callee_label not in entry.callees:
                entry.callees.append(callee_label)

    for edge in inheritance:
        child = symbols.get(edge.file_path, edge.child) or symbols.resolve(edge.child, edge.file_path)
        parent = symbols.resolve(edge.parent, prefer_file=edge.file_path)
        if child is None:
            continue
        references.append(SymbolReference(
            source_symbol=symbols.label(child),
            target_symbol=symbols.label(parent) if parent else edge.parent,
            kind=ReferenceKind.INHERITANCE,
            source_file=child.file_path,
            location=child.location,
            target_file=parent.file_path if parent else None,
        ))
        if parent is not None:
            usage[parent.key].reference_count += 1

    ranked = sorted(
        (u for u in usage.values() if u.reference_count > 0),
        key=lambda u: u.reference_count,
        reverse=True,
    )
    hotspots = [u.symbol_name for u in ranked[:HOTSPOT_LIMIT]]
    unused = [u.symbol_name for u in usage.values() if u.reference_count == 0]

    per_file = Counter(s.file_path for s in symbols)
    top_files = sorted(per_file.items(), key=lambda item: item[1], reverse=True)[:TOP_FILES_LIMIT]

    logger.info("Cross references: %d references, %d unused symbols", len(references), len(unused))
    return CrossReferenceResult(
        references=references,
        symbol_usage={u.symbol_name: u for u in usage.values()},
        hotspots=hotspots,
        unused=unused,
        files_with_most_symbols=[{"file": f, "symbol_count": n} for f, n in top_files],
    )


def build_symbol_graph(references: Sequence[SymbolReference]) -> Dict[str, List[Dict[str, Any]]]:
    """Nodes/edges view of *references* for graph renderers."""
    nodes: Dict[str, Dict[str, Any]] = {}
    edges: List[Dict[str, Any]] = []
    for ref in references:
        for name in (ref.source_symbol, ref.target_symbol):
            if name not in nodes:
                nodes[name] = {"id": name, "label": name, "type": "symbol"}
        edges.append({
            "source": ref.source_symbol,
            "target": ref.target_symbol,
            "type": ref.kind.value,
        })
    return {"nodes": list(nodes.values()), "edges": edges}
