"""File-level dependency graph: import extraction, resolution and cycles."""

from __future__ import annotations

import logging
import posixpath
import re
from pathlib import PurePosixPath
from typing import Collection, Dict, Iterable, List, Optional, Pattern, Sequence, Set, Tuple

from .discovery import parallel_map
from .graph import DiGraph, SearchBudget
from .models import DependencyCount, DependencyCycle, DependencyResult, FileDependency, SourceFile

logger = logging.getLogger(__name__)

# "import a.b as c, d" names several modules in one statement.
_PY_IMPORT = re.compile(r"^[ \t]*import[ \t]+([^\n#;]+)", re.MULTILINE)

# (pattern, dependency kind) per language family.
IMPORT_PATTERNS: Dict[str, List[Tuple[Pattern[str], str]]] = {
    "js": [
        (re.compile(r"""\bimport\s+(?:type\s+)?(?:[\w$]+\s*,\s*)?(?:\{[^{}]*\}|\*\s+as\s+[\w$]+|[\w$]+)?\s*from\s+['"]([^'"]*)['"]"""), "import"),
        (re.compile(r"""^\s*import\s+['"]([^'"]*)['"]""", re.MULTILINE), "import"),
        (re.compile(r"""\bexport\s+(?:\*|\{[^{}]*\})\s*from\s+['"]([^'"]*)['"]"""), "import"),
        (re.compile(r"""\brequire\(\s*['"]([^'"]*)['"]\s*\)"""), "require"),
        (re.compile(r"""\bimport\(\s*['"]([^'"]*)['"]\s*\)"""), "import"),
    ],
    "py": [
        (_PY_IMPORT, "import"),
        (re.compile(r"^[ \t]*from[ \t]+(\S+)[ \t]+import\b", re.MULTILINE), "import"),
    ],
    "java": [
        (re.compile(r"^\s*import\s+(?:static\s+)?([^;]*);", re.MULTILINE), "import"),
    ],
    "c": [
        (re.compile(r"""#include\s*["<]([^">]*)[">]"""), "include"),
    ],
    "ruby": [
        (re.compile(r"""\brequire(?:_relative)?\s*\(?\s*['"]([^'"]*)['"]"""), "require"),
    ],
}

_FAMILY_BY_EXT: Dict[str, str] = {
    ".js": "js", ".jsx": "js", ".ts": "js", ".tsx": "js", ".mjs": "js", ".cjs": "js",
    ".py": "py",
    ".java": "java",
    ".c": "c", ".cc": "c", ".cpp": "c", ".h": "c", ".hpp": "c",
    ".rb": "ruby",
}

_RESOLVE_SUFFIXES = (".js", ".ts", ".jsx", ".tsx", ".py")


def is_external(target: str) -> bool:
    return not target.startswith((".", "/")) and ":" not in target


def _python_targets(raw: str) -> List[str]:
    # "import a.b as c, d" -> ["a.b", "d"]
    names = []
    for part in raw.split(","):
        tokens = part.split()
        if tokens:
            names.append(tokens[0])
    return names


def extract_imports(text: Optional[str], file_path: str) -> List[FileDependency]:
    """Return the raw import edges declared in one file."""
    if text is None:
        return []
    family = _FAMILY_BY_EXT.get(PurePosixPath(file_path).suffix.lower())
    if family is None:
        return []

    found: List[Tuple[int, str, str]] = []
    for pattern, kind in IMPORT_PATTERNS[family]:
        for match in pattern.finditer(text):
            raw = match.group(1).strip()
            targets = _python_targets(raw) if pattern is _PY_IMPORT else [raw]
            for target in targets:
                if not target or any(ch.isspace() for ch in target):
                    logger.debug("Skipping malformed import target %r in %s", raw, file_path)
                    continue
                found.append((match.start(1), target, kind))

    found.sort(key=lambda item: item[0])
    return [
        FileDependency(source=file_path, target=target, kind=kind, is_external=is_external(target))
        for _offset, target, kind in found
    ]


# ------------------------------------------------------------------
# Resolution
# ------------------------------------------------------------------

def _join(*parts: str) -> str:
    return posixpath.normpath("/".join(p for p in parts if p)) if any(parts) else ""


def _python_module_path(source: str, target: str) -> str:
    # ".models" from shop/checkout.py -> "shop/models"; ".." climbs one package
    dots = len(target) - len(target.lstrip("."))
    rest = target[dots:]
    package = posixpath.dirname(source)
    for _ in range(dots - 1):
        package = posixpath.dirname(package)
    return _join(package, rest.replace(".", "/"))


def _is_python_relative(source: str, target: str) -> bool:
    return source.endswith(".py") and target.startswith(".") and not target.startswith(("./", "../"))


def _resolve_python_relative(source: str, target: str, known: Collection[str]) -> Optional[str]:
    module = _python_module_path(source, target)
    candidates = [module + ".py"] if target.lstrip(".") else []
    candidates.append(_join(module, "__init__.py"))
    for candidate in candidates:
        if candidate in known:
            return candidate
    return None


def normalize_target(source: str, target: str) -> str:
    """Repository-relative path an internal import points at, before probing extensions."""
    if _is_python_relative(source, target):
        return _python_module_path(source, target)
    if target.startswith("/"):
        return posixpath.normpath(target.lstrip("/"))
    return posixpath.normpath(posixpath.join(posixpath.dirname(source), target))


def resolve_target(source: str, target: str, known: Collection[str]) -> Optional[str]:
    """Map an internal import target to an analysed file, if one matches."""
    if is_external(target):
        return None
    if _is_python_relative(source, target):
        return _resolve_python_relative(source, target, known)

    base = normalize_target(source, target)
    candidates = [base]
    candidates.extend(base + ext for ext in _RESOLVE_SUFFIXES)
    candidates.extend(f"{base}/index{ext}" for ext in _RESOLVE_SUFFIXES)
    for candidate in candidates:
        if candidate in known:
            return candidate
    return None


def resolve_dependencies(dependencies: Iterable[FileDependency], known: Collection[str]) -> List[FileDependency]:
    """Attach ``resolved_target`` to internal edges.

    Targets that match no analysed file keep their normalised path, so
    ``./missing`` imported from two directories stays two distinct nodes.
    """
    resolved: List[FileDependency] = []
    for dep in dependencies:
        target = None
        if not dep.is_external:
            target = resolve_target(dep.source, dep.target, known)
            if target is None:
                target = normalize_target(dep.source, dep.target)
                logger.debug("Unresolved import %r in %s -> %s", dep.target, dep.source, target)
        resolved.append(FileDependency(
            source=dep.source,
            target=dep.target,
            kind=dep.kind,
            is_external=dep.is_external,
            resolved_target=target,
        ))
    return resolved


# ------------------------------------------------------------------
# Graph
# ------------------------------------------------------------------

def build_dependency_graph(dependencies: Iterable[FileDependency], files: Iterable[str] = ()) -> DiGraph:
    """Nodes are *files* (sorted) then unresolved internal targets; edges are internal only."""
    graph = DiGraph()
    for path in sorted(files):
        graph.add_node(path)
    for dep in dependencies:
        graph.add_node(dep.source)
        target = dep.internal_target
        if target is not None:
            graph.add_edge(dep.source, target)
    return graph


def count_dependencies(dependencies: Iterable[FileDependency], files: Iterable[str] = ()) -> Dict[str, DependencyCount]:
    counts: Dict[str, DependencyCount] = {path: DependencyCount() for path in sorted(files)}
    for dep in dependencies:
        counts.setdefault(dep.source, DependencyCount()).outbound += 1
        target = dep.internal_target
        if target is not None:
            counts.setdefault(target, DependencyCount()).inbound += 1
    return counts


def find_cycles(
    graph: DiGraph,
    cycle_scope: Optional[Collection[str]] = None,
    budget: Optional[SearchBudget] = None,
) -> List[DependencyCycle]:
    cycles = [DependencyCycle(paths=path) for path in graph.find_cycles(budget)]
    if cycle_scope is not None:
        scope = set(cycle_scope)
        cycles = [c for c in cycles if scope.intersection(c.paths)]
    return cycles


def analyze_dependencies(
    sources: Sequence[SourceFile],
    cycle_scope: Optional[Collection[str]] = None,
    budget: Optional[SearchBudget] = None,
    workers: int = 1,
) -> DependencyResult:
    ordered = sorted(sources, key=lambda s: s.path)
    known: Set[str] = {s.path for s in ordered}

    def _extract(src: SourceFile) -> List[FileDependency]:
        try:
            return extract_imports(src.text, src.path)
        except Exception as exc:
            logger.warning("Failed to extract imports from %s: %s", src.path, exc)
            return []

    raw: List[FileDependency] = []
    for deps in parallel_map(_extract, ordered, workers):
        raw.extend(deps)
    dependencies = resolve_dependencies(raw, known)

    counts = count_dependencies(dependencies, known)
    graph = build_dependency_graph(dependencies, known)
    cycles = find_cycles(graph, cycle_scope, budget)
    external = {dep.target for dep in dependencies if dep.is_external}

    logger.info(
        "Dependency analysis: %d edges (%d external targets), %d cycles",
        len(dependencies), len(external), len(cycles),
    )
    return DependencyResult(
        dependencies=dependencies,
        dependency_counts=counts,
        cycles=cycles,
        external_dependencies=external,
    )
