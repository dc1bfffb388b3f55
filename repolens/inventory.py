"""Repository inventory: language distribution and per-file metadata."""

from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Dict, List, Optional, Sequence, Union

from .config import FILENAME_LANGUAGES, LANGUAGE_MAP
from .models import (
    FileMetadata,
    FileRef,
    IndexingReport,
    LanguageMetrics,
    LanguageReport,
    SourceFile,
)

logger = logging.getLogger(__name__)


def detect_language(file_path: str) -> str:
    path = PurePosixPath(file_path)
    name = path.name.lower()
    if name in FILENAME_LANGUAGES:
        return FILENAME_LANGUAGES[name]
    return LANGUAGE_MAP.get(path.suffix.lower(), "Other")


def count_lines(text: Optional[str]) -> int:
    if text is None:
        return 0
    return text.count("\n") + 1 if text else 0


def analyze_languages(sources: Sequence[SourceFile]) -> LanguageReport:
    """Files and lines per language, sorted by line count (largest first)."""
    stats: Dict[str, List[int]] = {}
    total_lines = 0
    for src in sorted(sources, key=lambda s: s.path):
        language = detect_language(src.path)
        lines = count_lines(src.text)
        entry = stats.setdefault(language, [0, 0])
        entry[0] += 1
        entry[1] += lines
        total_lines += lines

    distribution = [
        LanguageMetrics(
            language=language,
            files=files,
            lines=lines,
            percentage=round(lines / total_lines * 100, 1) if total_lines else 0.0,
        )
        for language, (files, lines) in stats.items()
    ]
    distribution.sort(key=lambda m: m.lines, reverse=True)
    return LanguageReport(
        total_files=len(sources),
        total_lines=total_lines,
        language_count=len(distribution),
        distribution=distribution,
    )


def _file_type(file_path: str) -> str:
    return PurePosixPath(file_path).suffix.lower().lstrip(".") or "unknown"


def _metadata(item: Union[FileRef, SourceFile]) -> Optional[FileMetadata]:
    if isinstance(item, SourceFile):
        if item.text is None:
            return None
        raw = item.text.encode("utf-8")
        modified: Optional[str] = None
    else:
        try:
            raw = item.abs_path.read_bytes()
            mtime = item.abs_path.stat().st_mtime
        except OSError as exc:
            logger.warning("Cannot index %s: %s", item.path, exc)
            return None
        modified = datetime.fromtimestamp(mtime, tz=timezone.utc).isoformat()
    return FileMetadata(
        path=item.path,
        type=_file_type(item.path),
        size=len(raw),
        modified_time=modified,
        checksum=hashlib.sha256(raw).hexdigest(),
    )


def index_files(files: Sequence[Union[FileRef, SourceFile]]) -> IndexingReport:
    """Size, mtime and sha256 for every file that can be read."""
    report = IndexingReport()
    for item in sorted(files, key=lambda f: f.path):
        meta = _metadata(item)
        if meta is None:
            continue
        report.files.append(meta)
        report.total_size += meta.size
        report.file_types[meta.type] = report.file_types.get(meta.type, 0) + 1
    report.total_files = len(report.files)
    return report
