"""
CLI Tests
=========
Commands invoked in-process through ``main(argv)``.
"""

import json
import textwrap

import pytest

from obfuscator.cli import main


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("OBFUSCATOR_KEY", "OBFUSCATOR_KEY_LENGTH", "OBFUSCATOR_OUTPUT_DIR", "OBFUSCATOR_BACKUP_DIR"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def project(tmp_path):
    root = tmp_path / "project"
    (root / "app").mkdir(parents=True)
    (root / "app" / "Service.php").write_text("<?php\n/* doc */\nclass Service {}\n", encoding="utf-8")
    (root / "app" / "notes.txt").write_text("notes", encoding="utf-8")
    (root / "obfuscator.yml").write_text(textwrap.dedent("""\
        version: 1
        encryptor: identity
        encryption_key: clikey
        include_paths: [app]
        exclude_paths: ["*.md"]
        exclude_patterns: []
        backup:
          enabled: true
          path: backups
          keep_last: 2
        logging:
          enabled: true
          path: logs/obfuscator.log
    """), encoding="utf-8")
    return root


def run_cli(project, *args):
    return main(["--root", str(project), *args])


class TestHelp:
    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "COMMANDS" in capsys.readouterr().out


class TestRunCommand:
    def test_forced_run_writes_output_report_and_backup(self, project, capsys):
        assert run_cli(project, "run", "--force") == 0

        out = capsys.readouterr().out
        assert "clikey" in out
        assert (project / "build" / "obfuscated" / "app" / "Service.php").exists()
        assert (project / "build" / "obfuscated" / "app" / "notes.txt").exists()
        assert (project / "build" / "obfuscation-report.json").exists()
        assert len(list((project / "backups").iterdir())) == 1
        assert (project / "logs" / "obfuscator.log").exists()

    def test_declined_confirmation_does_nothing(self, project, monkeypatch):
        monkeypatch.setattr("builtins.input", lambda prompt: "n")
        assert run_cli(project, "run") == 0
        assert not (project / "build").exists()

    def test_dry_run_needs_no_confirmation(self, project):
        assert run_cli(project, "run", "--dry-run") == 0
        assert not (project / "build" / "obfuscated").exists()

    def test_unknown_encryptor_fails(self, project):
        config = project / "obfuscator.yml"
        config.write_text(config.read_text(encoding="utf-8").replace("identity", "rot13"), encoding="utf-8")
        assert run_cli(project, "run", "--force") == 1

    def test_invalid_config_exits(self, project):
        (project / "obfuscator.yml").write_text("version: 7\n", encoding="utf-8")
        with pytest.raises(SystemExit):
            run_cli(project, "run", "--force")


class TestCheckCommand:
    def test_shows_statistics_and_files(self, project, capsys):
        assert run_cli(project, "check", "--show-files") == 0
        out = capsys.readouterr().out
        assert "Total Files" in out
        assert "Service.php" in out
        assert "notes.txt" in out


class TestStatusCommand:
    def test_json_status_after_run(self, project, capsys):
        run_cli(project, "run", "--force")
        capsys.readouterr()

        assert run_cli(project, "status", "--json") == 0
        status = json.loads(capsys.readouterr().out)

        assert status["output_exists"] is True
        assert len(status["backups"]) == 1
        assert status["report"]["stats"]["processed"] == 2
        assert status["report"]["encryption_key"] == "clikey"

    def test_report_section_without_report(self, project, capsys):
        assert run_cli(project, "status", "--report") == 0
        assert "No report available" in capsys.readouterr().out


class TestClearCommand:
    def test_clears_output_and_backups(self, project):
        run_cli(project, "run", "--force")

        assert run_cli(project, "clear", "--force") == 0

        assert not (project / "build" / "obfuscated").exists()
        assert not (project / "backups").exists()

    def test_clear_only_backups(self, project):
        run_cli(project, "run", "--force")

        assert run_cli(project, "clear", "--backups", "--force") == 0

        assert (project / "build" / "obfuscated").exists()
        assert not (project / "backups").exists()
