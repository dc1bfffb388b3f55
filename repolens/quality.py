"""Code-quality scoring: complexity, long functions, duplication and comments.

All measurements are lexical.  Each sub-score lands in ``[0, 100]`` and
the overall score is their weighted sum; every constant involved comes
from :class:`~repolens.config_manager.QualitySettings`.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Dict, List, Optional, Sequence, Tuple

from .config import CODE_EXTENSIONS
from .config_manager import QualitySettings
from .extractors import CONTROL_KEYWORDS
from .models import (
    CodeDuplication,
    CodeQualityResult,
    CommentRatio,
    LongFunction,
    QualityScores,
    SourceFile,
)

logger = logging.getLogger(__name__)

# Languages whose line comments start with ``#``.
HASH_COMMENT_EXTENSIONS = {".py", ".rb", ".sh", ".bash"}

COMPLEXITY_PATTERNS = [
    re.compile(r"\bif\s*\("),
    re.compile(r"\belse\s+if\s*\("),
    re.compile(r"\bfor\s*\("),
    re.compile(r"\bforeach\s*\("),
    re.compile(r"\bwhile\s*\("),
    re.compile(r"\bdo\s*\{"),
    re.compile(r"\bswitch\s*\("),
    re.compile(r"\bcase\s+[^:\n]+:"),
    re.compile(r"\bcatch\s*\("),
    re.compile(r"\breturn\b"),
    re.compile(r"\?\s*[^:\n]+\s*:"),
    re.compile(r"\|\|"),
    re.compile(r"&&"),
]

_SLASH_COMMENT = re.compile(r"//.*$", re.MULTILINE)
_HASH_COMMENT = re.compile(r"#.*$", re.MULTILINE)
_BLOCK_COMMENT = re.compile(r"/\*[\s\S]*?\*/")
_SINGLE_QUOTED = re.compile(r"'[^'\n]*'")
_DOUBLE_QUOTED = re.compile(r'"[^"\n]*"')
_TEMPLATE = re.compile(r"`[^`]*`")

_FUNCTION_PATTERNS = [
    re.compile(r"\bfunction\s+([A-Za-z0-9_$]+)\s*\("),
    re.compile(r"\b(?:const|let|var)\s+([A-Za-z0-9_$]+)\s*=\s*(?:async\s*)?(?:\([^)]*\)|[A-Za-z0-9_$]+)\s*=>"),
    re.compile(r"^\s*([A-Za-z0-9_$]+)\s*:\s*(?:async\s*)?\([^)]*\)\s*=>"),
    re.compile(
        r"^\s*(?:(?:public|private|protected|static|async|get|set|override)\s+)*"
        r"([A-Za-z0-9_$]+)\s*\([^)]*\)\s*(?::\s*[^{;]+)?\{"
    ),
]
_PY_DEF = re.compile(r"^([ \t]*)(?:async[ \t]+)?def[ \t]+(\w+)[ \t]*\(")

_COMMENTED_CODE = re.compile(
    r"(?://|/\*+)\s*(?:function|class|const|let|var|import|export|if|for|while|switch|return|=)"
)
_COMMENTED_CODE_HASH = re.compile(
    r"#\s*(?:def|function|class|const|let|var|import|export|if|for|while|switch|return|=)"
)


def _uses_hash_comments(file_path: str) -> bool:
    return PurePosixPath(file_path).suffix.lower() in HASH_COMMENT_EXTENSIONS


def is_code_file(file_path: str) -> bool:
    return PurePosixPath(file_path).suffix.lower() in CODE_EXTENSIONS


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


# ===================================================================
# Complexity
# ===================================================================

def strip_comments_and_strings(text: str, hash_comments: bool = False) -> str:
    cleaned = _BLOCK_COMMENT.sub("", text)
    cleaned = (_HASH_COMMENT if hash_comments else _SLASH_COMMENT).sub("", cleaned)
    cleaned = _SINGLE_QUOTED.sub("''", cleaned)
    cleaned = _DOUBLE_QUOTED.sub('""', cleaned)
    return _TEMPLATE.sub("``", cleaned)


def file_complexity(text: Optional[str], file_path: str = "") -> int:
    """Cyclomatic-style count: 1 plus one per branching token. Unreadable files score 1."""
    if text is None:
        return 1
    cleaned = strip_comments_and_strings(text, _uses_hash_comments(file_path))
    return 1 + sum(len(pattern.findall(cleaned)) for pattern in COMPLEXITY_PATTERNS)


# ===================================================================
# Function length
# ===================================================================

@dataclass
class _OpenFunction:
    name: str
    start_line: int
    braces: int = 0
    opened: bool = False


def _brace_counts(line: str) -> Tuple[int, int]:
    code = _DOUBLE_QUOTED.sub('""', _SINGLE_QUOTED.sub("''", _SLASH_COMMENT.sub("", line)))
    return code.count("{"), code.count("}")


def _match_function(line: str) -> Optional[str]:
    for pattern in _FUNCTION_PATTERNS:
        match = pattern.search(line)
        if match and match.group(1) not in CONTROL_KEYWORDS:
            return match.group(1)
    return None


def _scan_brace_functions(lines: List[str]) -> List[Tuple[str, int, int]]:
    found: List[Tuple[str, int, int]] = []
    stack: List[_OpenFunction] = []
    for line_no, line in enumerate(lines, start=1):
        name = _match_function(line)
        if name:
            stack.append(_OpenFunction(name, line_no))
        if not stack:
            continue

        opens, closes = _brace_counts(line)
        top = stack[-1]
        if not top.opened and opens == 0:
            # Declaration without a body, e.g. an overload signature.
            if line.rstrip().endswith(";"):
                stack.pop()
            continue
        top.braces += opens - closes
        top.opened = top.opened or opens > 0

        while stack and stack[-1].opened and stack[-1].braces <= 0:
            done = stack.pop()
            found.append((done.name, done.start_line, line_no - done.start_line + 1))
            if done.braces < 0 and stack:
                stack[-1].braces += done.braces
    return found


def _scan_python_functions(lines: List[str]) -> List[Tuple[str, int, int]]:
    found: List[Tuple[str, int, int]] = []
    for idx, line in enumerate(lines):
        match = _PY_DEF.match(line)
        if not match:
            continue
        indent = len(match.group(1).expandtabs())
        end = idx
        for j in range(idx + 1, len(lines)):
            body = lines[j]
            if not body.strip():
                continue
            if len(body) - len(body.lstrip()) <= indent and not body.lstrip().startswith((")", "]")):
                break
            end = j
        found.append((match.group(2), idx + 1, end - idx + 1))
    return found


def scan_functions(text: Optional[str], file_path: str) -> List[Tuple[str, int, int]]:
    """Every function found in *text* as ``(name, start_line, length)``."""
    if text is None:
        return []
    lines = text.split("\n")
    if PurePosixPath(file_path).suffix.lower() == ".py":
        return _scan_python_functions(lines)
    return _scan_brace_functions(lines)


# ===================================================================
# Duplication
# ===================================================================

def clean_lines(text: Optional[str], file_path: str, min_length: int = 5) -> List[Tuple[int, str]]:
    """Trimmed, comment-free lines of at least *min_length* chars with their line numbers."""
    if text is None:
        return []
    comment = _HASH_COMMENT if _uses_hash_comments(file_path) else _SLASH_COMMENT
    cleaned: List[Tuple[int, str]] = []
    for line_no, line in enumerate(text.split("\n"), start=1):
        stripped = line.strip()
        if stripped.startswith("*"):
            continue
        stripped = comment.sub("", stripped).strip()
        if len(stripped) >= min_length:
            cleaned.append((line_no, stripped))
    return cleaned


def _compare_files(
    source: str,
    a: List[Tuple[int, str]],
    target: str,
    b: List[Tuple[int, str]],
    chunk: int,
    threshold: float,
) -> List[CodeDuplication]:
    found: List[CodeDuplication] = []
    max_mismatch = int(round(chunk * (1 - threshold), 9))
    i = 0
    b_start = 0
    while i + chunk <= len(a):
        matched = False
        j = b_start
        while j + chunk <= len(b):
            mismatches = 0
            for k in range(chunk):
                if a[i + k][1] != b[j + k][1]:
                    mismatches += 1
                    if mismatches > max_mismatch:
                        break
            if mismatches <= max_mismatch:
                similarity = (chunk - mismatches) / chunk
                n = chunk
                while i + n < len(a) and j + n < len(b) and a[i + n][1] == b[j + n][1]:
                    n += 1
                found.append(CodeDuplication(
                    source_file=source,
                    target_file=target,
                    source_line=a[i][0],
                    target_line=b[j][0],
                    line_count=n,
                    similarity=round(similarity, 2),
                ))
                i += n
                b_start = j + n
                matched = True
                break
            j += 1
        if not matched:
            i += 1
    return found


def find_duplications(
    sources: Sequence[SourceFile],
    chunk_size: int = 10,
    threshold: float = 0.8,
    min_line_length: int = 5,
) -> Tuple[List[CodeDuplication], int, int]:
    """Pairwise chunk comparison across files.

    Returns the duplications plus the duplicated and total cleaned line counts.
    """
    cleaned = [
        (src.path, clean_lines(src.text, src.path, min_line_length))
        for src in sorted(sources, key=lambda s: s.path)
    ]
    line_sets = [{line for _no, line in lines} for _path, lines in cleaned]
    total_lines = sum(len(lines) for _path, lines in cleaned)

    duplications: List[CodeDuplication] = []
    for x in range(len(cleaned)):
        path_a, lines_a = cleaned[x]
        if len(lines_a) < chunk_size:
            continue
        for y in range(x + 1, len(cleaned)):
            path_b, lines_b = cleaned[y]
            if len(lines_b) < chunk_size:
                continue
            if len(line_sets[x] & line_sets[y]) < threshold * chunk_size:
                continue
            duplications.extend(_compare_files(path_a, lines_a, path_b, lines_b, chunk_size, threshold))

    duplicated_lines = sum(d.line_count for d in duplications)
    return duplications, duplicated_lines, total_lines


# ===================================================================
# Comments
# ===================================================================

def comment_ratio(text: Optional[str], file_path: str) -> Optional[CommentRatio]:
    """Classify every non-blank line as comment or code; None for empty files."""
    if text is None:
        return None
    hash_style = _uses_hash_comments(file_path)
    code_lines = 0
    comment_lines = 0
    in_block = False
    commented_code = False

    for raw in text.split("\n"):
        line = raw.strip()
        if not line:
            continue
        if in_block:
            comment_lines += 1
            commented_code = commented_code or bool(_COMMENTED_CODE.search(line))
            if "*/" in line:
                in_block = False
            continue
        if not hash_style and line.startswith("/*"):
            comment_lines += 1
            commented_code = commented_code or bool(_COMMENTED_CODE.search(line))
            in_block = "*/" not in line
            continue
        if line.startswith("#" if hash_style else "//"):
            comment_lines += 1
            pattern = _COMMENTED_CODE_HASH if hash_style else _COMMENTED_CODE
            commented_code = commented_code or bool(pattern.match(line))
            continue
        code_lines += 1

    total = code_lines + comment_lines
    if total == 0:
        return None
    return CommentRatio(
        file=file_path,
        code_lines=code_lines,
        comment_lines=comment_lines,
        ratio=comment_lines / total,
        commented_out_code=commented_code,
    )


# ===================================================================
# Scores
# ===================================================================

def compute_scores(
    complexity: Dict[str, int],
    function_counts: Dict[str, int],
    long_count: int,
    duplicated_lines: int,
    total_lines: int,
    ratios: Sequence[CommentRatio],
    settings: QualitySettings,
) -> Tuple[QualityScores, int]:
    densities = [value / max(1, function_counts.get(path, 0)) for path, value in complexity.items()]
    avg_density = sum(densities) / len(densities) if densities else 0.0
    complexity_score = _clamp(100 - max(0.0, avg_density - settings.ideal_complexity) * settings.complexity_penalty)

    total_functions = sum(function_counts.values())
    long_fraction = long_count / total_functions if total_functions else 0.0
    long_score = _clamp(100 - long_fraction * settings.long_function_penalty)

    dup_fraction = duplicated_lines / total_lines if total_lines else 0.0
    dup_score = _clamp(100 - dup_fraction * settings.duplication_penalty)

    if ratios:
        avg_ratio = sum(r.ratio for r in ratios) / len(ratios)
        comment_score = _clamp(100 - abs(avg_ratio - settings.ideal_comment_ratio) * settings.comment_penalty)
    else:
        comment_score = 100.0

    scores = QualityScores(
        complexity=round(complexity_score, 2),
        long_functions=round(long_score, 2),
        duplication=round(dup_score, 2),
        comments=round(comment_score, 2),
    )
    overall = (
        settings.complexity_weight * complexity_score
        + settings.long_function_weight * long_score
        + settings.duplication_weight * dup_score
        + settings.comment_weight * comment_score
    )
    return scores, int(_clamp(round(overall)))


def analyze_code_quality(
    sources: Sequence[SourceFile],
    settings: Optional[QualitySettings] = None,
) -> CodeQualityResult:
    settings = settings or QualitySettings()
    code_files = [src for src in sorted(sources, key=lambda s: s.path) if is_code_file(src.path)]
    readable = [src for src in code_files if src.readable]

    complexity: Dict[str, int] = {}
    function_counts: Dict[str, int] = {}
    long_functions: List[LongFunction] = []
    comment_ratios: Dict[str, CommentRatio] = {}

    for src in code_files:
        try:
            complexity[src.path] = file_complexity(src.text, src.path)
            functions = scan_functions(src.text, src.path)
            function_counts[src.path] = len(functions)
            long_functions.extend(
                LongFunction(file=src.path, name=name, line=start, length=length)
                for name, start, length in functions
                if length > settings.long_function_threshold
            )
            ratio = comment_ratio(src.text, src.path)
            if ratio is not None:
                comment_ratios[src.path] = ratio
        except Exception as exc:
            logger.warning("Quality analysis failed for %s: %s", src.path, exc)
            complexity[src.path] = 1
    long_functions.sort(key=lambda f: f.length, reverse=True)

    duplications, duplicated_lines, total_lines = find_duplications(
        readable,
        chunk_size=settings.duplication_chunk_size,
        threshold=settings.duplication_threshold,
        min_line_length=settings.min_line_length,
    )

    excessive = [
        path for path, r in comment_ratios.items()
        if r.ratio >= settings.excessive_comment_ratio and r.comment_lines > settings.excessive_comment_lines
    ]

    scores, overall = compute_scores(
        complexity,
        function_counts,
        len(long_functions),
        duplicated_lines,
        total_lines,
        list(comment_ratios.values()),
        settings,
    )
    logger.info(
        "Code quality: %d files, %d long functions, %d duplications, overall %d",
        len(code_files), len(long_functions), len(duplications), overall,
    )
    return CodeQualityResult(
        complexity=complexity,
        long_functions=long_functions,
        duplications=duplications,
        comment_ratios=comment_ratios,
        excessive_comments=excessive,
        scores=scores,
        overall_score=overall,
    )
