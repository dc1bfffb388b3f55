"""Configuration paths and static tables for RepoLens."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Set

BASE_DIR = Path(os.environ.get("REPOLENS_HOME", str(Path.home() / ".repolens"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"

# ---------------------------------------------------------------------------
# Language <-> file-extension mapping
# ---------------------------------------------------------------------------
LANGUAGE_MAP: Dict[str, str] = {
    # Web / JavaScript
    ".js": "JavaScript",
    ".jsx": "JavaScript",
    ".mjs": "JavaScript",
    ".cjs": "JavaScript",
    ".ts": "TypeScript",
    ".tsx": "TypeScript",
    ".html": "HTML",
    ".css": "CSS",
    ".scss": "SCSS",
    ".sass": "SCSS",
    ".less": "LESS",
    # Backend
    ".py": "Python",
    ".java": "Java",
    ".rb": "Ruby",
    ".php": "PHP",
    ".go": "Go",
    ".rs": "Rust",
    ".c": "C",
    ".cpp": "C++",
    ".cc": "C++",
    ".h": "C/C++ Header",
    ".hpp": "C++ Header",
    ".cs": "C#",
    ".swift": "Swift",
    ".kt": "Kotlin",
    # Data / config
    ".json": "JSON",
    ".yaml": "YAML",
    ".yml": "YAML",
    ".xml": "XML",
    ".toml": "TOML",
    ".ini": "INI",
    ".md": "Markdown",
    ".csv": "CSV",
    ".sql": "SQL",
    # Shell / scripts
    ".sh": "Shell",
    ".bash": "Shell",
    ".ps1": "PowerShell",
    ".bat": "Batch",
    ".cmd": "Batch",
}

# Extensions with a symbol extractor, mapped to the extractor family.
SUPPORTED_EXTENSIONS: Dict[str, str] = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "javascript",
    ".tsx": "javascript",
    ".py": "python",
}

# Files without a useful extension, matched by lower-cased name.
FILENAME_LANGUAGES: Dict[str, str] = {
    "dockerfile": "Dockerfile",
    ".gitignore": "Git Config",
    ".gitattributes": "Git Config",
    ".env": "Environment",
}

# Extensions the code-quality scorer looks at.
CODE_EXTENSIONS: Set[str] = {
    ".js", ".ts", ".jsx", ".tsx", ".mjs", ".cjs",
    ".py", ".java", ".kt", ".swift", ".go", ".rs",
    ".cpp", ".cc", ".c", ".h", ".hpp", ".cs", ".php", ".rb",
}

SKIP_DIRS: Set[str] = {
    ".venv", "venv", "__pycache__", "node_modules", ".git",
    "site-packages", ".tox", ".pytest_cache", "build", "dist",
    ".mypy_cache", ".ruff_cache", "htmlcov", ".eggs", "coverage",
    "bower_components", ".repolens",
}
