"""Tests for file discovery and fail-soft reading."""

import pytest

from repolens.discovery import (
    RepositoryRootMissing,
    decode_source,
    discover_files,
    load_sources,
    parallel_map,
    read_source,
)
from repolens.models import FileRef, SourceFile


def test_discovery_is_sorted_and_skips_vendor_dirs(write_files):
    """Files come back in path order; node_modules and custom excludes are skipped."""
    root = write_files({
        "z.js": "",
        "a/b.js": "",
        "node_modules/dep/index.js": "",
        "generated/out.js": "",
    })

    paths = [ref.path for ref in discover_files(root, exclude=["generated"])]

    assert paths == ["a/b.js", "z.js"]


def test_missing_root(temp_dir):
    """A root that does not exist raises RepositoryRootMissing."""
    with pytest.raises(RepositoryRootMissing):
        discover_files(temp_dir / "nope")


def test_root_must_be_directory(write_files):
    """A file path is not a repository root."""
    root = write_files({"only.js": ""})

    with pytest.raises(RepositoryRootMissing):
        discover_files(root / "only.js")


def test_binary_and_undecodable_files_read_as_none(temp_dir):
    """Binary or non-UTF-8 content is reported unreadable rather than raising."""
    (temp_dir / "logo.png").write_bytes(b"\x89PNG\x00\x00data")
    (temp_dir / "latin.js").write_bytes("café".encode("latin-1"))
    (temp_dir / "ok.js").write_text("const a = 1;\n", encoding="utf-8")

    sources = {s.path: s for s in load_sources(discover_files(temp_dir))}

    assert sources["logo.png"].text is None
    assert sources["latin.js"].text is None
    assert sources["ok.js"].readable


def test_read_source_missing_file(temp_dir):
    """A vanished file becomes an unreadable SourceFile."""
    ref = FileRef(path="gone.js", abs_path=temp_dir / "gone.js")

    assert read_source(ref) == SourceFile("gone.js", None)


def test_decode_source():
    """UTF-8 text decodes; NUL bytes mark binary."""
    assert decode_source(b"hello", "a.txt") == "hello"
    assert decode_source(b"he\x00llo", "a.bin") is None


def test_load_sources_passes_preloaded_through():
    """SourceFile inputs are kept as-is and sorted by path."""
    sources = load_sources([SourceFile("b.js", "b"), SourceFile("a.js", "a")], workers=3)

    assert [s.path for s in sources] == ["a.js", "b.js"]


def test_parallel_map_keeps_order():
    """Threaded map returns results in input order."""
    assert parallel_map(lambda x: x * 2, list(range(20)), workers=4) == [x * 2 for x in range(20)]
