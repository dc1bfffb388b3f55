"""Tests for the code-quality scorer."""

import pytest

from repolens.config_manager import QualitySettings
from repolens.models import SourceFile
from repolens.quality import (
    analyze_code_quality,
    clean_lines,
    comment_ratio,
    compute_scores,
    file_complexity,
    find_duplications,
    scan_functions,
    strip_comments_and_strings,
)

BRANCHY_JS = """function f(x) {
  if (x && y) {
    return 1;
  }
  return x ? 2 : 3;
}
"""

TWO_FUNCTIONS_JS = """function a() {
  return 1;
}
const b = () => {
  if (x) {
    return 2;
  }
};
"""

PYTHON_FUNCTIONS = """def outer():
    x = 1

    return x

def other(
    a,
):
    return a
"""

BLOCK = "".join(f"  const value{i} = compute({i});\n" for i in range(10))


class TestComplexity:
    """Tests for the lexical complexity count."""

    def test_branch_tokens(self):
        """One plus one per if, &&, return and ternary."""
        assert file_complexity(BRANCHY_JS, "f.js") == 6

    def test_comments_and_strings_do_not_count(self):
        """Tokens inside comments or string literals are ignored."""
        code = "// if (x) return\nconst s = 'if (y)';\n/* while (z) */\n"

        assert file_complexity(code, "s.js") == 1
        assert "if" not in strip_comments_and_strings(code)

    def test_hash_comments_for_python(self):
        """Python files strip ``#`` comments instead of ``//``."""
        assert file_complexity("# return early\nx = 1\n", "m.py") == 1
        assert file_complexity("x = 1  # then return\n", "m.js") == 2

    def test_unreadable_file_is_one(self):
        """A file without text scores the base complexity."""
        assert file_complexity(None, "bin.js") == 1


class TestFunctionScan:
    """Tests for function span detection."""

    def test_brace_functions(self):
        """Declarations and arrow bindings are measured from header to closing brace."""
        assert scan_functions(TWO_FUNCTIONS_JS, "f.js") == [("a", 1, 3), ("b", 4, 5)]

    def test_overload_signature_is_ignored(self):
        """A body-less declaration ending in ``;`` is not a function."""
        code = "function load(x: string): void;\nfunction load(x: any) {\n  return x;\n}\n"

        assert scan_functions(code, "f.ts") == [("load", 2, 3)]

    def test_nested_functions(self):
        """Inner functions close before their outer function."""
        code = "function outer() {\n  function inner() {\n    return 1;\n  }\n  return inner();\n}\n"

        assert scan_functions(code, "n.js") == [("inner", 2, 3), ("outer", 1, 6)]

    def test_python_indentation(self):
        """Python bodies end at the first line indented at or below the def."""
        assert scan_functions(PYTHON_FUNCTIONS, "m.py") == [("outer", 1, 4), ("other", 6, 4)]

    def test_unreadable(self):
        """No text, no functions."""
        assert scan_functions(None, "f.js") == []


class TestDuplication:
    """Tests for cross-file chunk duplication."""

    def test_clean_lines(self):
        """Short lines, comments and ``*`` continuation lines are dropped."""
        text = "  a = 1\n// comment here\n * doc line\nvalue = compute(1)  // trailing\n"

        assert clean_lines(text, "f.js") == [(1, "a = 1"), (4, "value = compute(1)")]

    def test_identical_block(self):
        """A shared ten-line block is one duplication with its start lines."""
        sources = [SourceFile("a.js", BLOCK), SourceFile("b.js", "// header\n" + BLOCK)]

        dups, dup_lines, total_lines = find_duplications(sources)

        assert len(dups) == 1
        dup = dups[0]
        assert (dup.source_file, dup.target_file) == ("a.js", "b.js")
        assert (dup.source_line, dup.target_line) == (1, 2)
        assert dup.line_count == 10
        assert dup.similarity == 1.0
        assert (dup_lines, total_lines) == (10, 20)

    def test_near_duplicate_within_threshold(self):
        """Two differing lines out of ten still meet an 0.8 threshold."""
        changed = BLOCK.replace("compute(3)", "other(3)").replace("compute(7)", "other(7)")
        dups, _, _ = find_duplications([SourceFile("a.js", BLOCK), SourceFile("b.js", changed)])

        assert len(dups) == 1
        assert dups[0].similarity == 0.8

    def test_too_different(self):
        """Three differing lines out of ten fall below 0.8."""
        changed = BLOCK
        for i in (2, 5, 8):
            changed = changed.replace(f"compute({i})", f"other({i})")

        dups, _, _ = find_duplications([SourceFile("a.js", BLOCK), SourceFile("b.js", changed)])

        assert dups == []

    def test_short_files_are_skipped(self):
        """Files with fewer cleaned lines than a chunk are never compared."""
        short = "".join(f"const v{i} = {i};\n" for i in range(3))

        assert find_duplications([SourceFile("a.js", short), SourceFile("b.js", short)])[0] == []


class TestComments:
    """Tests for comment ratio measurement."""

    def test_block_and_line_comments(self):
        """Block comments span lines; commented-out code is flagged."""
        code = "// comment one\n// const x = 1;\nconst y = 2;\n/* block\n still */\n"
        ratio = comment_ratio(code, "c.js")

        assert (ratio.code_lines, ratio.comment_lines) == (1, 4)
        assert ratio.ratio == pytest.approx(0.8)
        assert ratio.commented_out_code is True

    def test_python_comments(self):
        """Python uses ``#`` comments."""
        ratio = comment_ratio("# note\nx = 1\n", "m.py")

        assert ratio.ratio == pytest.approx(0.5)
        assert ratio.commented_out_code is False
        assert comment_ratio("# def old():\nx = 1\n", "m.py").commented_out_code is True

    def test_empty_files(self):
        """Blank or unreadable files have no ratio."""
        assert comment_ratio("\n   \n", "e.js") is None
        assert comment_ratio(None, "e.js") is None


class TestScores:
    """Tests for sub-scores and the weighted overall score."""

    def test_simple_file(self):
        """A tiny uncommented file loses only comment points."""
        result = analyze_code_quality([SourceFile("f.js", "function f() {\n  return 1;\n}\n")])

        assert result.complexity == {"f.js": 2}
        assert result.scores.complexity == 100.0
        assert result.scores.long_functions == 100.0
        assert result.scores.duplication == 100.0
        assert result.scores.comments == 50.0
        assert result.overall_score == 95

    def test_unreadable_file_scores_one(self):
        """Unreadable code files get complexity 1 and do not fail the stage."""
        result = analyze_code_quality([SourceFile("bin.js", None), SourceFile("README.md", "# hi")])

        assert result.complexity == {"bin.js": 1}
        assert result.overall_score == 100

    def test_scores_stay_in_bounds(self):
        """Extreme inputs clamp every score to [0, 100]."""
        from repolens.models import CommentRatio

        scores, overall = compute_scores(
            {"a.js": 500},
            {"a.js": 1},
            long_count=10,
            duplicated_lines=1000,
            total_lines=10,
            ratios=[CommentRatio("a.js", 0, 10, 1.0)],
            settings=QualitySettings(),
        )

        for value in (scores.complexity, scores.long_functions, scores.duplication, scores.comments):
            assert 0.0 <= value <= 100.0
        assert overall == 0

    def test_long_functions_and_excessive_comments(self):
        """Thresholds come from QualitySettings."""
        commented = "".join(f"// note {i}\n" for i in range(12)) + "const x = 1;\n"
        sources = [SourceFile("f.js", TWO_FUNCTIONS_JS), SourceFile("c.js", commented)]

        result = analyze_code_quality(sources, QualitySettings(long_function_threshold=3))

        assert [(f.name, f.length) for f in result.long_functions] == [("b", 5)]
        assert result.excessive_comments == ["c.js"]

    def test_duplication_lowers_score(self):
        """Duplicated blocks reduce the duplication sub-score."""
        result = analyze_code_quality([SourceFile("a.js", BLOCK), SourceFile("b.js", BLOCK)])

        assert len(result.duplications) == 1
        assert result.scores.duplication == 0.0
