"""Pytest configuration and fixtures for RepoLens tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Callable, Dict, Generator

import pytest

from repolens.models import SourceFile


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path: Path, monkeypatch):
    """Point the config file at a per-test location so ~/.repolens is never touched."""
    config_file = tmp_path / "repolens-home" / "config.toml"
    monkeypatch.setattr("repolens.config.BASE_DIR", config_file.parent)
    monkeypatch.setattr("repolens.config.CONFIG_FILE", config_file)
    return config_file


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sample_project_path() -> Path:
    """Get path to sample test project."""
    return Path(__file__).parent / "fixtures" / "sample_project"


@pytest.fixture
def write_files(temp_dir: Path) -> Callable[[Dict[str, str]], Path]:
    """Write ``{relative path: text}`` into ``temp_dir`` and return the root."""

    def _write(files: Dict[str, str]) -> Path:
        for rel, text in files.items():
            target = temp_dir / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(text, encoding="utf-8")
        return temp_dir

    return _write


@pytest.fixture
def foo_bar_sources():
    """Two files where ``foo`` in a.js calls ``bar`` declared in b.js."""
    return [
        SourceFile("a.js", "function foo() { bar(); }\n"),
        SourceFile("b.js", "function bar() {}\n"),
    ]


@pytest.fixture
def foo_bar_ts_sources():
    """The same two-file call scenario written as TypeScript."""
    return [
        SourceFile("a.ts", "function foo(): void { bar(); }\n"),
        SourceFile("b.ts", "export function bar(): void {}\n"),
    ]


@pytest.fixture
def sample_python_code() -> str:
    """Sample Python code for testing extractors."""
    return '''"""Sample module for testing."""

GREETING = "Hello"


def hello(name: str) -> str:
    """Say hello."""
    return f"{GREETING}, {name}!"


class Calculator(Base, Mixin, metaclass=Meta):
    """Simple calculator."""

    def add(self, a: int, b: int) -> int:
        """Add two numbers."""
        return a + b

    def multiply(self, a: int, b: int) -> int:
        """Multiply two numbers."""
        result = self.add(a, 0)  # Call to add
        for _ in range(b - 1):
            result = self.add(result, a)
        return result


def main():
    calc = Calculator()
    print(hello("world"), calc.multiply(2, 3))
'''
