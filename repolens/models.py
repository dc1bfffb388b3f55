"""Core data models shared by every analysis stage."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields, is_dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterator, List, Optional, Sequence, Set, Tuple


class SymbolKind(str, Enum):
    FUNCTION = "function"
    CLASS = "class"
    INTERFACE = "interface"
    VARIABLE = "variable"
    METHOD = "method"
    PROPERTY = "property"
    ENUM = "enum"
    MODULE = "module"
    UNKNOWN = "unknown"


class ReferenceKind(str, Enum):
    CALL = "call"
    INHERITANCE = "inheritance"
    IMPORT = "import"
    ASSIGNMENT = "assignment"
    ACCESS = "access"
    DECLARATION = "declaration"


class DataFlowKind(str, Enum):
    PARAMETER_TO_FUNCTION = "parameter-to-function"
    FUNCTION_TO_RETURN = "function-to-return"
    VARIABLE_TO_FUNCTION = "variable-to-function"
    FUNCTION_TO_VARIABLE = "function-to-variable"
    PROPERTY_ACCESS = "property-access"


CALLABLE_KINDS: FrozenSet[SymbolKind] = frozenset({SymbolKind.FUNCTION, SymbolKind.METHOD})


# ===================================================================
# Input files
# ===================================================================

@dataclass(frozen=True)
class FileRef:
    """A discovered file: repository-relative POSIX path plus its location on disk."""

    path: str
    abs_path: Path


@dataclass(frozen=True)
class SourceFile:
    """A file after reading. ``text`` is None when it could not be read or decoded."""

    path: str
    text: Optional[str] = None

    @property
    def readable(self) -> bool:
        return self.text is not None


# ===================================================================
# Symbols and edges
# ===================================================================

@dataclass(frozen=True)
class Location:
    line: int
    column: int

    def __str__(self) -> str:
        return f"{self.line}:{self.column}"


@dataclass
class Symbol:
    name: str
    kind: SymbolKind
    file_path: str
    location: Location
    parent: Optional[str] = None
    children: List[str] = field(default_factory=list)
    properties: Dict[str, str] = field(default_factory=dict)

    @property
    def key(self) -> Tuple[str, str]:
        return (self.file_path, self.name)

    @property
    def is_callable(self) -> bool:
        return self.kind in CALLABLE_KINDS


@dataclass
class CallEdge:
    caller: str
    callee: str
    file_path: str
    location: Location
    callee_file: Optional[str] = None


@dataclass
class InheritanceEdge:
    child: str
    parent: str
    kind: str  # "extends" | "implements"
    file_path: str = ""


@dataclass
class FileDependency:
    source: str
    target: str
    kind: str  # "import" | "require" | "include"
    is_external: bool
    resolved_target: Optional[str] = None

    @property
    def internal_target(self) -> Optional[str]:
        """Graph node this edge points at, or None for external edges.

        Set by resolution to the matched file, or to the normalised path
        when no analysed file matches.
        """
        if self.is_external:
            return None
        return self.resolved_target or self.target


@dataclass
class SymbolReference:
    source_symbol: str
    target_symbol: str
    kind: ReferenceKind
    source_file: str
    location: Location
    target_file: Optional[str] = None


@dataclass
class DependencyCycle:
    paths: List[str]
    length: int = field(init=False)

    def __post_init__(self) -> None:
        # paths closes back on its start, e.g. [a, b, a]
        self.length = len(set(self.paths))


@dataclass
class DataFlow:
    source: str
    target: str
    kind: DataFlowKind
    source_file: str
    target_file: str


@dataclass
class ExecutionPath:
    entry_point: str
    path: List[str]
    files: List[str]

    @property
    def length(self) -> int:
        return len(self.path)


@dataclass
class ComponentIO:
    component: str
    inputs: List[str] = field(default_factory=list)
    outputs: List[str] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)


@dataclass
class SymbolUsage:
    symbol_name: str
    kind: SymbolKind
    declared_in: str
    reference_count: int = 0
    callers: List[str] = field(default_factory=list)
    callees: List[str] = field(default_factory=list)


@dataclass
class RiskyArea:
    path: str
    risk: int
    reason: str


@dataclass
class ImpactPrediction:
    file_path: str
    impact_score: float
    direct_impact: List[str]
    transitive_impact: List[str]
    risky_areas: List[RiskyArea] = field(default_factory=list)

    @property
    def total_impact_count(self) -> int:
        return len(self.direct_impact) + len(self.transitive_impact)


@dataclass
class DependencyCount:
    inbound: int = 0
    outbound: int = 0


# ===================================================================
# Symbol table
# ===================================================================

class SymbolTable:
    """Canonical symbol store keyed by ``(file_path, name)``.

    A secondary ``name -> [Symbol]`` index serves cross-file lookups.
    When a bare name is ambiguous, :meth:`resolve` returns the most
    recently registered declaration, and :meth:`label` qualifies the
    symbol with its file so that collisions stay distinguishable.
    """

    def __init__(self, symbols: Sequence[Symbol] = ()) -> None:
        self._by_key: Dict[Tuple[str, str], Symbol] = {}
        self._by_name: Dict[str, List[Symbol]] = {}
        self._by_file: Dict[str, List[Symbol]] = {}
        for symbol in symbols:
            self.add(symbol)

    def add(self, symbol: Symbol) -> None:
        previous = self._by_key.get(symbol.key)
        if previous is not None:
            self._by_name[symbol.name].remove(previous)
            self._by_file[symbol.file_path].remove(previous)
            del self._by_key[symbol.key]
        self._by_key[symbol.key] = symbol
        self._by_name.setdefault(symbol.name, []).append(symbol)
        self._by_file.setdefault(symbol.file_path, []).append(symbol)

    def __len__(self) -> int:
        return len(self._by_key)

    def __iter__(self) -> Iterator[Symbol]:
        return iter(list(self._by_key.values()))

    def __contains__(self, name: object) -> bool:
        return bool(self._by_name.get(name))  # type: ignore[arg-type]

    def get(self, file_path: str, name: str) -> Optional[Symbol]:
        return self._by_key.get((file_path, name))

    def by_name(self, name: str) -> List[Symbol]:
        return list(self._by_name.get(name, []))

    def in_file(self, file_path: str) -> List[Symbol]:
        """Symbols declared in *file_path*, ordered by declaration position."""
        symbols = self._by_file.get(file_path, [])
        return sorted(symbols, key=lambda s: (s.location.line, s.location.column))

    def files(self) -> List[str]:
        return [f for f, syms in self._by_file.items() if syms]

    def resolve(self, name: str, prefer_file: Optional[str] = None) -> Optional[Symbol]:
        candidates = self._by_name.get(name)
        if not candidates:
            return None
        if prefer_file is not None:
            for candidate in candidates:
                if candidate.file_path == prefer_file:
                    return candidate
        return candidates[-1]

    def label(self, symbol: Symbol) -> str:
        if len(self._by_name.get(symbol.name, [])) > 1:
            return f"{symbol.file_path}::{symbol.name}"
        return symbol.name

    def to_list(self) -> List[Symbol]:
        return list(self._by_key.values())


# ===================================================================
# Stage results
# ===================================================================

class _Serializable:
    def to_dict(self) -> Dict[str, Any]:
        return to_plain(self)


@dataclass
class SemanticResult(_Serializable):
    symbols: SymbolTable
    calls: List[CallEdge] = field(default_factory=list)
    inheritance: List[InheritanceEdge] = field(default_factory=list)
    stats: Dict[str, Any] = field(default_factory=dict)


@dataclass
class DependencyResult(_Serializable):
    dependencies: List[FileDependency] = field(default_factory=list)
    dependency_counts: Dict[str, DependencyCount] = field(default_factory=dict)
    cycles: List[DependencyCycle] = field(default_factory=list)
    external_dependencies: Set[str] = field(default_factory=set)


@dataclass
class CrossReferenceResult(_Serializable):
    references: List[SymbolReference] = field(default_factory=list)
    symbol_usage: Dict[str, SymbolUsage] = field(default_factory=dict)
    hotspots: List[str] = field(default_factory=list)
    unused: List[str] = field(default_factory=list)
    files_with_most_symbols: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class FlowResult(_Serializable):
    call_graph: Dict[str, List[str]] = field(default_factory=dict)
    data_flows: List[DataFlow] = field(default_factory=list)
    execution_paths: List[ExecutionPath] = field(default_factory=list)
    component_io: Dict[str, ComponentIO] = field(default_factory=dict)
    entry_points: List[str] = field(default_factory=list)
    sinks: List[str] = field(default_factory=list)


@dataclass
class ImpactResult(_Serializable):
    impact_by_file: Dict[str, ImpactPrediction] = field(default_factory=dict)
    most_impactful_files: List[str] = field(default_factory=list)
    least_impactful_files: List[str] = field(default_factory=list)
    isolated_files: List[str] = field(default_factory=list)
    risk_factors: Dict[str, List[str]] = field(default_factory=dict)


@dataclass
class LongFunction:
    file: str
    name: str
    line: int
    length: int


@dataclass
class CodeDuplication:
    source_file: str
    target_file: str
    source_line: int
    target_line: int
    line_count: int
    similarity: float


@dataclass
class CommentRatio:
    file: str
    code_lines: int
    comment_lines: int
    ratio: float
    commented_out_code: bool = False


@dataclass
class QualityScores:
    complexity: float = 100.0
    long_functions: float = 100.0
    duplication: float = 100.0
    comments: float = 100.0


@dataclass
class CodeQualityResult(_Serializable):
    complexity: Dict[str, int] = field(default_factory=dict)
    long_functions: List[LongFunction] = field(default_factory=list)
    duplications: List[CodeDuplication] = field(default_factory=list)
    comment_ratios: Dict[str, CommentRatio] = field(default_factory=dict)
    excessive_comments: List[str] = field(default_factory=list)
    scores: QualityScores = field(default_factory=QualityScores)
    overall_score: int = 100


@dataclass
class LanguageMetrics:
    language: str
    files: int
    lines: int
    percentage: float


@dataclass
class LanguageReport(_Serializable):
    total_files: int = 0
    total_lines: int = 0
    language_count: int = 0
    distribution: List[LanguageMetrics] = field(default_factory=list)


@dataclass
class FileMetadata:
    path: str
    type: str
    size: int
    modified_time: Optional[str]
    checksum: str


@dataclass
class IndexingReport(_Serializable):
    total_files: int = 0
    total_size: int = 0
    file_types: Dict[str, int] = field(default_factory=dict)
    files: List[FileMetadata] = field(default_factory=list)


@dataclass
class AnalysisResult(_Serializable):
    generated_at: str
    files: List[str] = field(default_factory=list)
    unreadable_files: List[str] = field(default_factory=list)
    languages: Optional[LanguageReport] = None
    indexing: Optional[IndexingReport] = None
    semantics: Optional[SemanticResult] = None
    dependencies: Optional[DependencyResult] = None
    cross_references: Optional[CrossReferenceResult] = None
    flows: Optional[FlowResult] = None
    impact: Optional[ImpactResult] = None
    quality: Optional[CodeQualityResult] = None

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


# ===================================================================
# Serialization
# ===================================================================

_DERIVED_PROPERTIES = {
    ExecutionPath: ("length",),
    ImpactPrediction: ("total_impact_count",),
}


def to_plain(value: Any) -> Any:
    """Convert models into JSON-serializable builtins."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, SymbolTable):
        return [to_plain(s) for s in value.to_list()]
    if is_dataclass(value) and not isinstance(value, type):
        payload = {f.name: to_plain(getattr(value, f.name)) for f in fields(value)}
        for prop in _DERIVED_PROPERTIES.get(type(value), ()):
            payload[prop] = getattr(value, prop)
        return payload
    if isinstance(value, dict):
        return {str(k): to_plain(v) for k, v in value.items()}
    if isinstance(value, (set, frozenset)):
        return sorted(to_plain(v) for v in value)
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    if isinstance(value, Path):
        return value.as_posix()
    return value
