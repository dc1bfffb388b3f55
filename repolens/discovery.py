"""File discovery and fail-soft reading.

Discovery walks a repository root, honours exclusion names, and yields
:class:`~repolens.models.FileRef` entries in lexicographic order so that
every later merge step is reproducible.  Reading never raises: files that
cannot be read or decoded become ``SourceFile(path, text=None)``.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, TypeVar, Union

from .config import SKIP_DIRS
from .models import FileRef, SourceFile

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

# Bytes sniffed for NUL characters when deciding whether a file is binary.
_BINARY_SNIFF_BYTES = 8192


class RepositoryRootMissing(FileNotFoundError):
    """Raised when the repository root does not exist or is not a directory."""


def validate_root(root: Path) -> Path:
    resolved = Path(root).expanduser().resolve()
    if not resolved.exists():
        raise RepositoryRootMissing(f"Repository path does not exist: {root}")
    if not resolved.is_dir():
        raise RepositoryRootMissing(f"Repository path is not a directory: {root}")
    if not (resolved / ".git").exists():
        logger.debug("Path does not appear to be a git repository: %s", resolved)
    return resolved


def should_exclude(rel_parts: Sequence[str], exclude: Iterable[str]) -> bool:
    excluded = set(exclude)
    return any(part in excluded for part in rel_parts)


def discover_files(
    root: Union[str, Path],
    exclude: Optional[Iterable[str]] = None,
) -> List[FileRef]:
    """Recursively collect files under *root*, skipping excluded directory names."""
    resolved = validate_root(Path(root))
    excluded = set(SKIP_DIRS)
    if exclude:
        excluded.update(exclude)

    refs: List[FileRef] = []
    for file_path in resolved.rglob("*"):
        rel = file_path.relative_to(resolved)
        if should_exclude(rel.parts, excluded):
            continue
        if not file_path.is_file():
            continue
        refs.append(FileRef(path=rel.as_posix(), abs_path=file_path))

    refs.sort(key=lambda r: r.path)
    logger.info("Discovered %d files under %s", len(refs), resolved)
    return refs


def decode_source(raw: bytes, path: str) -> Optional[str]:
    """Decode *raw* as UTF-8 text, or return None for binary / undecodable content."""
    if b"\x00" in raw[:_BINARY_SNIFF_BYTES]:
        logger.warning("Skipping binary file %s", path)
        return None
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        logger.warning("Skipping undecodable file %s: %s", path, exc)
        return None


def read_source(ref: FileRef) -> SourceFile:
    try:
        raw = ref.abs_path.read_bytes()
    except OSError as exc:
        logger.warning("Cannot read %s: %s", ref.path, exc)
        return SourceFile(path=ref.path, text=None)
    return SourceFile(path=ref.path, text=decode_source(raw, ref.path))


def load_sources(
    files: Sequence[Union[FileRef, SourceFile]],
    workers: int = 1,
) -> List[SourceFile]:
    """Read every input, returning SourceFiles sorted by path.

    Preloaded :class:`SourceFile` entries pass through untouched.  With
    ``workers > 1`` reads are spread over a thread pool; ``map`` keeps the
    input order so the result is the same either way.
    """
    ordered = sorted(files, key=lambda f: f.path)

    def _load(item: Union[FileRef, SourceFile]) -> SourceFile:
        if isinstance(item, SourceFile):
            return item
        return read_source(item)

    return parallel_map(_load, ordered, workers)


def parallel_map(func: Callable[[T], R], items: Sequence[T], workers: int = 1) -> List[R]:
    """``map`` over *items*, on a thread pool when ``workers > 1``; order is kept."""
    if workers > 1 and len(items) > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(pool.map(func, items))
    return [func(item) for item in items]
