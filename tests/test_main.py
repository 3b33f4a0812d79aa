"""Tests for the skein command line."""
from __future__ import annotations

import pytest

from skein.__main__ import main
from skein.formatters import human


@pytest.fixture
def config(tmp_path, monkeypatch):
    # main() re-initializes the shared console state; put it back afterwards
    monkeypatch.setattr(human, "USE_ASCII", human.USE_ASCII)
    monkeypatch.setattr(human, "console", human.console)
    monkeypatch.setenv("CLAUDE_CONFIG_DIR", str(tmp_path))
    monkeypatch.delenv("SKEIN_LOG", raising=False)
    monkeypatch.setenv("SKEIN_REPO_ANCHOR", "Git")
    return tmp_path


class TestMain:
    def test_missing_projects_dir(self, config, capsys):
        with pytest.raises(SystemExit) as exc:
            main([])
        assert exc.value.code == 1
        assert "Claude projects directory not found" in capsys.readouterr().err

    def test_list_output(self, config, acme_root, capsys):
        main(["--list"])
        out = capsys.readouterr().out
        assert "acme" in out
        assert "widget" in out
        assert "abc123" in out
        assert "1 sessions" in out

    def test_list_empty(self, config, capsys):
        (config / "projects").mkdir()
        main(["--list"])
        assert "No sessions found." in capsys.readouterr().out

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["--version"])
        assert exc.value.code == 0
        assert "skein 0.1.0" in capsys.readouterr().out
