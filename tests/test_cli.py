"""
Tests for the hsstyle command line.
"""

import json

import pytest
from hsstyle import __version__
from hsstyle import config as config_module
from hsstyle.cli import main


@pytest.fixture(autouse=True)
def no_user_config(monkeypatch, tmp_path):
    monkeypatch.setattr(config_module, "CONFIG_SEARCH_PATHS", [tmp_path / ".hsstyle.yaml"])
    for var in ("HSSTYLE_RULES", "HSSTYLE_WORKERS", "HSSTYLE_MAX_LINE_LENGTH"):
        monkeypatch.delenv(var, raising=False)


class TestCheckCommand:

    def test_clean_file(self, fixtures_dir, capsys):
        assert main(["check", str(fixtures_dir / "clean.hs")]) == 0
        out = capsys.readouterr().out
        assert "Checked 1 file(s): 0 error(s), 0 warning(s)" in out

    def test_messy_file(self, fixtures_dir, capsys):
        assert main(["check", str(fixtures_dir / "messy.hs")]) == 1
        out = capsys.readouterr().out
        assert "messy.hs:14:27: error [no-trailing-whitespace]" in out
        assert "messy.hs:22:81: warning [max-line-length]" in out

    def test_directory_with_jobs(self, fixtures_dir, capsys):
        assert main(["check", "-j", "2", str(fixtures_dir)]) == 1
        assert "Checked 2 file(s)" in capsys.readouterr().out

    def test_json(self, fixtures_dir, capsys):
        main(["check", "--json", str(fixtures_dir / "messy.hs")])
        data = json.loads(capsys.readouterr().out)
        assert data[0]["file"].endswith("messy.hs")
        assert {v["rule_id"] for v in data[0]["violations"]} >= {"import-order", "indent-step"}

    def test_missing_file(self, tmp_path, capsys):
        assert main(["check", str(tmp_path / "Missing.hs")]) == 1
        assert "cannot read file" in capsys.readouterr().out

    def test_custom_rules(self, fixtures_dir, tmp_path):
        rules = tmp_path / "rules.yaml"
        rules.write_text("rules:\n  - id: no-tabs\n", encoding="utf-8")
        assert main(["check", "--rules", str(rules), str(fixtures_dir / "messy.hs")]) == 0

    def test_bad_config_value(self, fixtures_dir, tmp_path, capsys):
        config = tmp_path / "hsstyle.yaml"
        config.write_text("workers: many\n", encoding="utf-8")
        assert main(["check", "--config", str(config), str(fixtures_dir / "clean.hs")]) == 2
        assert "workers" in capsys.readouterr().err

    def test_bad_rules_file(self, fixtures_dir, tmp_path, capsys):
        rules = tmp_path / "rules.yaml"
        rules.write_text("rules:\n  - id: no-such-rule\n", encoding="utf-8")
        assert main(["check", "--rules", str(rules), str(fixtures_dir / "clean.hs")]) == 2
        assert "Configuration error" in capsys.readouterr().err


class TestInspectionCommands:

    def test_scan(self, fixtures_dir, capsys):
        assert main(["scan", str(fixtures_dir / "clean.hs")]) == 0
        out = capsys.readouterr().out
        assert "Pragma" in out
        assert "HaddockComment" in out

    def test_scan_json(self, fixtures_dir, capsys):
        main(["scan", "--json", str(fixtures_dir / "clean.hs")])
        data = json.loads(capsys.readouterr().out)
        assert data["errors"] == []
        assert data["spans"][0]["kind"] == "Pragma"

    def test_layout(self, fixtures_dir, capsys):
        assert main(["layout", str(fixtures_dir / "clean.hs")]) == 0
        out = capsys.readouterr().out
        assert out.startswith("Module anchor=1")
        assert "Where" in out

    def test_layout_missing_file(self, tmp_path, capsys):
        assert main(["layout", str(tmp_path / "Missing.hs")]) == 1
        assert "Error:" in capsys.readouterr().err

    def test_rules(self, capsys):
        assert main(["rules"]) == 0
        out = capsys.readouterr().out
        assert "indent-step" in out
        assert "12 rule(s)" in out

    def test_rules_json(self, capsys):
        main(["rules", "--json"])
        entries = json.loads(capsys.readouterr().out)
        assert [e["id"] for e in entries][:2] == ["max-line-length", "no-trailing-whitespace"]


class TestMisc:

    def test_no_command(self, capsys):
        assert main([]) == 0
        assert "usage: hsstyle" in capsys.readouterr().out

    def test_version(self, capsys):
        with pytest.raises(SystemExit):
            main(["--version"])
        assert __version__ in capsys.readouterr().out
