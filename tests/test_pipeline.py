"""
End-to-end tests: scan -> layout -> evaluate -> report.
"""

from conftest import positions, rule_ids
from hsstyle import check_file, check_files, check_source


class TestCheckSource:
    """Checking documents held in memory."""

    def test_clean_fixture(self, clean_source):
        result = check_source(clean_source)
        assert result.violations == []
        assert result.scan_errors == []
        assert result.layout_errors == []
        assert result.exit_code == 0

    def test_messy_fixture(self, messy_source):
        result = check_source(messy_source, filename="messy.hs")
        violations = result.violations
        assert set(rule_ids(violations)) == {
            "max-line-length",
            "no-trailing-whitespace",
            "comment-spacing",
            "pragma-placement",
            "indent-step",
            "blank-lines-between-top-level",
            "import-order",
            "explicit-imports",
            "naming-case",
            "haddock-top-level",
        }
        assert result.exit_code == 1
        assert result.has_errors

    def test_messy_positions(self, messy_source):
        violations = check_source(messy_source).violations
        assert positions(violations, "import-order") == [(4, 8), (5, 8), (6, 8)]
        assert positions(violations, "explicit-imports") == [(4, 8)]
        assert positions(violations, "pragma-placement") == [(8, 1)]
        assert positions(violations, "naming-case") == [(10, 1), (12, 1)]
        assert positions(violations, "blank-lines-between-top-level") == [(12, 1)]
        assert positions(violations, "no-trailing-whitespace") == [(14, 27)]
        assert positions(violations, "comment-spacing") == [(15, 13)]
        assert positions(violations, "indent-step") == [(20, 7)]
        assert positions(violations, "haddock-top-level") == [(10, 1), (12, 1), (17, 1)]
        assert positions(violations, "max-line-length") == [(22, 81)]

    def test_report_is_sorted(self, messy_source):
        violations = check_source(messy_source).violations
        keys = [v.sort_key for v in violations]
        assert keys == sorted(keys)

    def test_check_is_idempotent(self, messy_source):
        assert check_source(messy_source).violations == check_source(messy_source).violations


class TestCheckFiles:
    """Checking files, sequentially and in a thread pool."""

    def test_check_file(self, fixtures_dir):
        result = check_file(fixtures_dir / "clean.hs")
        assert result.filename.endswith("clean.hs")
        assert result.violations == []

    def test_unreadable_file(self, tmp_path):
        result = check_file(tmp_path / "Missing.hs")
        assert result.read_error is not None
        assert result.exit_code == 1

    def test_results_in_input_order(self, fixtures_dir, tmp_path):
        paths = [fixtures_dir / "messy.hs", fixtures_dir / "clean.hs", tmp_path / "Missing.hs"] * 3
        results = check_files(paths, workers=4)
        assert [r.filename for r in results] == [str(p) for p in paths]
        assert [r.exit_code for r in results] == [1, 0, 1] * 3

    def test_threads_match_sequential(self, fixtures_dir):
        paths = [fixtures_dir / "messy.hs", fixtures_dir / "clean.hs"] * 4
        sequential = check_files(paths, workers=1)
        threaded = check_files(paths, workers=4)
        assert [r.violations for r in threaded] == [r.violations for r in sequential]
