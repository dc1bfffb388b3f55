"""Symbol extraction strategies.

Each :class:`SymbolExtractor` turns the text of one file into a flat list
of :class:`~repolens.models.Symbol` records.  The default backends are
lexical (regular expressions over lines); :class:`PythonAstExtractor`
is a parser-backed drop-in for Python selected with
``parser_backend="ast"``.

Extraction never raises to the caller: :func:`extract_symbols` turns
``None`` text and extractor failures into an empty list.
"""

from __future__ import annotations

import ast
import bisect
import logging
import re
from abc import ABC, abstractmethod
from pathlib import PurePosixPath
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .config import SUPPORTED_EXTENSIONS
from .models import Location, Symbol, SymbolKind

logger = logging.getLogger(__name__)

# Words that look like ``name(`` but never name a symbol.
CONTROL_KEYWORDS = frozenset({
    "if", "for", "while", "switch", "catch", "return",
    "function", "else", "do", "try", "with",
})

_IDENT = r"[A-Za-z_$][\w$]*"


class LineIndex:
    """Maps absolute character offsets to 1-based (line, column)."""

    def __init__(self, text: str) -> None:
        self._starts = [0]
        for match in re.finditer("\n", text):
            self._starts.append(match.end())

    def location(self, offset: int) -> Location:
        line_idx = bisect.bisect_right(self._starts, offset) - 1
        return Location(line=line_idx + 1, column=offset - self._starts[line_idx] + 1)

    def line_start(self, line: int) -> int:
        return self._starts[line - 1]


def offset_to_location(text: str, offset: int) -> Location:
    """Count newlines before *offset*; column is 1-based."""
    line = text.count("\n", 0, offset) + 1
    last_newline = text.rfind("\n", 0, offset)
    return Location(line=line, column=offset - last_newline)


# ===================================================================
# Abstract extractor interface
# ===================================================================

class SymbolExtractor(ABC):
    """Strategy interface for per-file symbol extraction."""

    #: File extensions (lower-case, with dot) handled by this extractor.
    extensions: Tuple[str, ...] = ()

    @abstractmethod
    def extract(self, text: str, file_path: str) -> List[Symbol]:
        """Return the symbols declared in *text*."""
        ...

    def supports(self, file_path: str) -> bool:
        return PurePosixPath(file_path).suffix.lower() in self.extensions


# ===================================================================
# JavaScript / TypeScript
# ===================================================================

_MODIFIERS = r"(?:(?:export|default|public|private|protected|static|async|readonly|override|abstract|declare|get|set)\s+)*"

_JS_FUNCTION = re.compile(rf"\bfunction\b\s*\*?\s*({_IDENT})\s*(?:<[^>]*>)?\s*\(")
_JS_ARROW_ASSIGN = re.compile(
    rf"\b(?:const|let|var)\s+({_IDENT})\s*(?::[^=]+)?=\s*(?:async\s*)?(?:\([^)]*\)|{_IDENT})\s*(?::\s*[^=]+)?=>"
)
_JS_ARROW_PROPERTY = re.compile(
    rf"^\s*{_MODIFIERS}({_IDENT})\s*[:=]\s*(?:async\s*)?\([^)]*\)\s*(?::\s*[^=]+)?=>"
)
_JS_CLASS = re.compile(
    rf"\bclass\s+({_IDENT})(?:\s*<[^>{{]*>)?"
    rf"(?:\s+extends\s+([\w$.]+)(?:\s*<[^>{{]*>)?)?"
    rf"(?:\s+implements\s+([\w$.]+(?:\s*,\s*[\w$.]+)*))?"
)
_JS_INTERFACE = re.compile(
    rf"\binterface\s+({_IDENT})(?:\s*<[^>{{]*>)?(?:\s+extends\s+([\w$.]+(?:\s*,\s*[\w$.]+)*))?"
)
_JS_ENUM = re.compile(rf"\benum\s+({_IDENT})")
_JS_VARIABLE = re.compile(rf"\b(?:const|let|var)\s+({_IDENT})\s*(?=[=:;]|$)")
_JS_METHOD = re.compile(rf"^\s*{_MODIFIERS}\*?\s*({_IDENT})\s*(?:<[^>]*>)?\s*\([^)]*\)\s*(?::\s*[^{{;]+)?\{{")

_JS_STRING = re.compile(r"'(?:\\.|[^'\\])*'|\"(?:\\.|[^\"\\])*\"|`(?:\\.|[^`\\])*`")


def _brace_delta(line: str) -> int:
    code = _JS_STRING.sub("''", line)
    comment = code.find("//")
    if comment != -1:
        code = code[:comment]
    return code.count("{") - code.count("}")


def _split_names(raw: Optional[str]) -> str:
    if not raw:
        return ""
    return ",".join(part.strip() for part in raw.split(",") if part.strip())


class _OpenClass:
    __slots__ = ("name", "depth", "line", "opened")

    def __init__(self, name: str, depth: int, line: int) -> None:
        self.name = name
        self.depth = depth
        self.line = line
        self.opened = False


class JavaScriptExtractor(SymbolExtractor):
    """Line-oriented extractor for JavaScript and TypeScript sources.

    Patterns are tried in priority order on every line; the first
    pattern to claim a ``(name, line)`` pair decides its kind.  An
    enclosing-class stack driven by brace depth turns method-shaped
    lines and arrow properties inside a class body into methods.
    """

    extensions = tuple(ext for ext, family in SUPPORTED_EXTENSIONS.items() if family == "javascript")

    def extract(self, text: str, file_path: str) -> List[Symbol]:
        index = LineIndex(text)
        symbols: List[Symbol] = []
        seen: Set[Tuple[str, int]] = set()
        classes: List[_OpenClass] = []
        depth = 0

        def emit(match: "re.Match[str]", kind: SymbolKind, line_no: int,
                 parent: Optional[str] = None, properties: Optional[Dict[str, str]] = None) -> None:
            name = match.group(1)
            if name in CONTROL_KEYWORDS or (name, line_no) in seen:
                return
            seen.add((name, line_no))
            offset = index.line_start(line_no) + match.start(1)
            symbols.append(Symbol(
                name=name,
                kind=kind,
                file_path=file_path,
                location=index.location(offset),
                parent=parent,
                properties=properties or {},
            ))

        for line_no, line in enumerate(text.split("\n"), start=1):
            stripped = line.lstrip()
            if stripped.startswith(("//", "*", "/*")):
                continue

            in_body = bool(classes) and classes[-1].opened and depth == classes[-1].depth + 1
            owner = classes[-1].name if in_body else None

            for m in _JS_FUNCTION.finditer(line):
                emit(m, SymbolKind.FUNCTION, line_no)
            for m in _JS_ARROW_ASSIGN.finditer(line):
                emit(m, SymbolKind.FUNCTION, line_no)
            m = _JS_ARROW_PROPERTY.match(line)
            if m:
                if owner:
                    emit(m, SymbolKind.METHOD, line_no, parent=owner)
                else:
                    emit(m, SymbolKind.FUNCTION, line_no)
            for m in _JS_CLASS.finditer(line):
                props: Dict[str, str] = {}
                if m.group(2):
                    props["extends"] = m.group(2)
                if m.group(3):
                    props["implements"] = _split_names(m.group(3))
                emit(m, SymbolKind.CLASS, line_no, properties=props)
                classes.append(_OpenClass(m.group(1), depth, line_no))
            for m in _JS_INTERFACE.finditer(line):
                props = {"extends": _split_names(m.group(2))} if m.group(2) else {}
                emit(m, SymbolKind.INTERFACE, line_no, properties=props)
            for m in _JS_ENUM.finditer(line):
                emit(m, SymbolKind.ENUM, line_no)
            for m in _JS_VARIABLE.finditer(line):
                emit(m, SymbolKind.VARIABLE, line_no)
            m = _JS_METHOD.match(line)
            if m:
                if owner:
                    emit(m, SymbolKind.METHOD, line_no, parent=owner)
                else:
                    emit(m, SymbolKind.FUNCTION, line_no)

            depth += _brace_delta(line)
            while classes:
                top = classes[-1]
                if depth > top.depth:
                    top.opened = True
                    break
                # Closed body, or an empty ``class A {}`` on one line.
                if top.opened or (top.line == line_no and "{" in line):
                    classes.pop()
                    continue
                break

        return symbols


# ===================================================================
# Python (regex)
# ===================================================================

_PY_DEF = re.compile(r"^([ \t]*)(?:async[ \t]+)?def[ \t]+(\w+)[ \t]*\(", re.MULTILINE)
_PY_CLASS = re.compile(r"^([ \t]*)class[ \t]+(\w+)[ \t]*(?:\(([^)]*)\))?[ \t]*:", re.MULTILINE)
_PY_ASSIGN = re.compile(r"^(\w+)[ \t]*(?::[^=\n]+)?=(?!=)", re.MULTILINE)


def _python_bases(raw: Sequence[str]) -> Dict[str, str]:
    bases = [b for b in raw if b and "=" not in b and not b.startswith("*")]
    props: Dict[str, str] = {}
    if bases:
        props["extends"] = bases[0]
    if len(bases) > 1:
        props["implements"] = ",".join(bases[1:])
    return props


class PythonExtractor(SymbolExtractor):
    """Regex extractor for Python; class context comes from indentation."""

    extensions = tuple(ext for ext, family in SUPPORTED_EXTENSIONS.items() if family == "python")

    def extract(self, text: str, file_path: str) -> List[Symbol]:
        index = LineIndex(text)
        found: List[Tuple[int, str, "re.Match[str]"]] = []
        for m in _PY_DEF.finditer(text):
            found.append((m.start(2), "def", m))
        for m in _PY_CLASS.finditer(text):
            found.append((m.start(2), "class", m))
        for m in _PY_ASSIGN.finditer(text):
            found.append((m.start(1), "var", m))
        found.sort(key=lambda item: item[0])

        # (indent width, name, is_class)
        scope: List[Tuple[int, str, bool]] = []
        symbols: List[Symbol] = []
        for offset, tag, m in found:
            location = index.location(offset)
            if tag == "var":
                scope.clear()
                symbols.append(Symbol(
                    name=m.group(1), kind=SymbolKind.VARIABLE,
                    file_path=file_path, location=location,
                ))
                continue

            indent = len(m.group(1).expandtabs())
            while scope and scope[-1][0] >= indent:
                scope.pop()
            name = m.group(2)

            if tag == "class":
                bases = [b.strip() for b in (m.group(3) or "").split(",")]
                symbols.append(Symbol(
                    name=name, kind=SymbolKind.CLASS, file_path=file_path,
                    location=location, properties=_python_bases(bases),
                ))
                scope.append((indent, name, True))
            else:
                owner = scope[-1][1] if scope and scope[-1][2] else None
                symbols.append(Symbol(
                    name=name,
                    kind=SymbolKind.METHOD if owner else SymbolKind.FUNCTION,
                    file_path=file_path,
                    location=location,
                    parent=owner,
                ))
                scope.append((indent, name, False))

        return symbols


# ===================================================================
# Python (stdlib ast)
# ===================================================================

class _SymbolVisitor(ast.NodeVisitor):
    """Collects classes, functions and module-level assignments."""

    def __init__(self, file_path: str, lines: List[str]) -> None:
        self.file_path = file_path
        self.lines = lines
        self.class_stack: List[Optional[str]] = []
        self.symbols: List[Symbol] = []

    def _name_location(self, node: ast.AST, name: str) -> Location:
        line_no = getattr(node, "lineno", 1)
        col = getattr(node, "col_offset", 0)
        line = self.lines[line_no - 1] if 0 < line_no <= len(self.lines) else ""
        pos = line.find(name, col)
        return Location(line=line_no, column=(pos if pos >= 0 else col) + 1)

    def visit_Module(self, node: ast.Module) -> None:
        for stmt in node.body:
            targets: List[ast.expr] = []
            if isinstance(stmt, ast.Assign):
                targets = list(stmt.targets)
            elif isinstance(stmt, ast.AnnAssign):
                targets = [stmt.target]
            for target in targets:
                if isinstance(target, ast.Name):
                    self.symbols.append(Symbol(
                        name=target.id, kind=SymbolKind.VARIABLE,
                        file_path=self.file_path,
                        location=Location(target.lineno, target.col_offset + 1),
                    ))
        self.generic_visit(node)

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        bases = [ast.unparse(b) for b in node.bases]
        self.symbols.append(Symbol(
            name=node.name, kind=SymbolKind.CLASS, file_path=self.file_path,
            location=self._name_location(node, node.name),
            properties=_python_bases(bases),
        ))
        self.class_stack.append(node.name)
        self.generic_visit(node)
        self.class_stack.pop()

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        self._visit_function(node)

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> None:
        self._visit_function(node)

    def _visit_function(self, node: ast.AST) -> None:
        assert isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef))
        owner = self.class_stack[-1] if self.class_stack else None
        self.symbols.append(Symbol(
            name=node.name,
            kind=SymbolKind.METHOD if owner else SymbolKind.FUNCTION,
            file_path=self.file_path,
            location=self._name_location(node, node.name),
            parent=owner,
        ))
        # Nested defs are not class members.
        self.class_stack.append(None)
        self.generic_visit(node)
        self.class_stack.pop()


class PythonAstExtractor(SymbolExtractor):
    """Parser-backed Python extractor; falls back to regex on syntax errors."""

    extensions = PythonExtractor.extensions

    def __init__(self) -> None:
        self._fallback = PythonExtractor()

    def extract(self, text: str, file_path: str) -> List[Symbol]:
        try:
            tree = ast.parse(text)
        except (SyntaxError, ValueError) as exc:
            logger.warning("SyntaxError in %s: %s; using regex extractor", file_path, exc)
            return self._fallback.extract(text, file_path)

        visitor = _SymbolVisitor(file_path, text.split("\n"))
        visitor.visit(tree)
        return sorted(visitor.symbols, key=lambda s: (s.location.line, s.location.column))


# ===================================================================
# Registry
# ===================================================================

class ExtractorRegistry:
    """Maps file extensions to the extractor responsible for them."""

    def __init__(self, extractors: Iterable[SymbolExtractor] = ()) -> None:
        self._by_ext: Dict[str, SymbolExtractor] = {}
        for extractor in extractors:
            self.register(extractor)

    def register(self, extractor: SymbolExtractor, extensions: Optional[Iterable[str]] = None) -> None:
        for ext in extensions or extractor.extensions:
            self._by_ext[ext.lower()] = extractor

    def for_path(self, file_path: str) -> Optional[SymbolExtractor]:
        return self._by_ext.get(PurePosixPath(file_path).suffix.lower())

    def extensions(self) -> List[str]:
        return sorted(self._by_ext)

    @classmethod
    def default(cls, parser_backend: str = "regex") -> "ExtractorRegistry":
        if parser_backend not in ("regex", "ast"):
            raise ValueError(f"Unknown parser backend '{parser_backend}' (expected regex or ast)")
        python: SymbolExtractor = PythonAstExtractor() if parser_backend == "ast" else PythonExtractor()
        logger.debug("Using %s extractor for Python files", parser_backend)
        return cls([JavaScriptExtractor(), python])


_DEFAULT_REGISTRY: Optional[ExtractorRegistry] = None


def default_registry() -> ExtractorRegistry:
    global _DEFAULT_REGISTRY
    if _DEFAULT_REGISTRY is None:
        _DEFAULT_REGISTRY = ExtractorRegistry.default()
    return _DEFAULT_REGISTRY


def extract_symbols(
    text: Optional[str],
    file_path: str,
    registry: Optional[ExtractorRegistry] = None,
) -> List[Symbol]:
    """Extract symbols from one file, returning ``[]`` on any failure."""
    if text is None:
        return []
    extractor = (registry or default_registry()).for_path(file_path)
    if extractor is None:
        return []
    try:
        return extractor.extract(text, file_path)
    except Exception as exc:
        logger.warning("Failed to extract symbols from %s: %s", file_path, exc)
        return []
