"""Semantic stage: global symbol table, call edges and inheritance edges."""

from __future__ import annotations

import bisect
import logging
import re
from collections import Counter
from typing import List, Optional, Sequence, Tuple

from .discovery import parallel_map
from .extractors import ExtractorRegistry, default_registry, extract_symbols
from .models import (
    CallEdge,
    InheritanceEdge,
    Location,
    SemanticResult,
    SourceFile,
    Symbol,
    SymbolKind,
    SymbolTable,
)

logger = logging.getLogger(__name__)

_CALL = re.compile(r"([A-Za-z_$][\w$]*)\s*\(")
_CALL_KEYWORDS = frozenset({"if", "for", "while", "switch", "catch"})


def build_symbol_table(per_file_symbols: Sequence[Tuple[str, List[Symbol]]]) -> SymbolTable:
    """Merge per-file symbol lists, in the given file order, into one table.

    ``children`` is filled in on parents declared in the same file.
    """
    table = SymbolTable()
    for _path, symbols in per_file_symbols:
        for symbol in symbols:
            table.add(symbol)

    for symbol in table:
        if not symbol.parent:
            continue
        parent = table.get(symbol.file_path, symbol.parent)
        if parent is not None and symbol.name not in parent.children:
            parent.children.append(symbol.name)
    return table


def extract_calls(text: Optional[str], file_path: str, symbol_table: SymbolTable) -> List[CallEdge]:
    """Find ``name(`` occurrences that name a known symbol.

    The caller is the nearest symbol of the same file declared at or
    before the call's line.
    """
    if text is None:
        return []
    file_symbols = symbol_table.in_file(file_path)
    if not file_symbols:
        return []
    decl_lines = [s.location.line for s in file_symbols]

    edges: List[CallEdge] = []
    for line_no, line in enumerate(text.split("\n"), start=1):
        for match in _CALL.finditer(line):
            callee = match.group(1)
            if callee in _CALL_KEYWORDS or callee not in symbol_table:
                continue
            idx = bisect.bisect_right(decl_lines, line_no) - 1
            if idx < 0:
                continue
            caller = file_symbols[idx].name
            if caller == callee:
                continue
            target = symbol_table.resolve(callee, prefer_file=file_path)
            edges.append(CallEdge(
                caller=caller,
                callee=callee,
                file_path=file_path,
                location=Location(line=line_no, column=match.start(1) + 1),
                callee_file=target.file_path if target else None,
            ))
    return edges


def resolve_call(symbol_table: SymbolTable, call: CallEdge) -> Tuple[Optional[Symbol], Optional[Symbol]]:
    """Look up the (caller, callee) symbols of *call*; either may be None."""
    caller = symbol_table.get(call.file_path, call.caller) or symbol_table.resolve(call.caller, call.file_path)
    callee = None
    if call.callee_file:
        callee = symbol_table.get(call.callee_file, call.callee)
    if callee is None:
        callee = symbol_table.resolve(call.callee, call.file_path)
    return caller, callee


def _targets(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


def extract_inheritance(symbol_table: SymbolTable) -> List[InheritanceEdge]:
    edges: List[InheritanceEdge] = []
    for symbol in symbol_table:
        if symbol.kind in (SymbolKind.CLASS, SymbolKind.INTERFACE):
            for parent in _targets(symbol.properties.get("extends")):
                edges.append(InheritanceEdge(symbol.name, parent, "extends", symbol.file_path))
        if symbol.kind == SymbolKind.CLASS:
            for parent in _targets(symbol.properties.get("implements")):
                edges.append(InheritanceEdge(symbol.name, parent, "implements", symbol.file_path))
    return edges


def analyze_semantics(
    sources: Sequence[SourceFile],
    registry: Optional[ExtractorRegistry] = None,
    workers: int = 1,
) -> SemanticResult:
    """Extract symbols from every file, then calls and inheritance over the merged table."""
    registry = registry or default_registry()
    ordered = sorted(sources, key=lambda s: s.path)

    per_file = parallel_map(
        lambda src: (src.path, extract_symbols(src.text, src.path, registry)),
        ordered,
        workers,
    )
    table = build_symbol_table(per_file)

    def _calls(src: SourceFile) -> List[CallEdge]:
        try:
            return extract_calls(src.text, src.path, table)
        except Exception as exc:
            logger.warning("Failed to extract calls from %s: %s", src.path, exc)
            return []

    calls: List[CallEdge] = []
    for file_calls in parallel_map(_calls, ordered, workers):
        calls.extend(file_calls)
    inheritance = extract_inheritance(table)

    by_kind = Counter(s.kind.value for s in table)
    stats = {
        "total_symbols": len(table),
        "symbols_by_kind": dict(sorted(by_kind.items())),
        "total_calls": len(calls),
        "total_inheritance": len(inheritance),
    }
    logger.info(
        "Semantic analysis: %d symbols, %d calls, %d inheritance edges",
        len(table), len(calls), len(inheritance),
    )
    return SemanticResult(symbols=table, calls=calls, inheritance=inheritance, stats=stats)
