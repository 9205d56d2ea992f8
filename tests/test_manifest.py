"""
Configuration Tests
===================
YAML loading, defaults, validation and environment overrides.
"""

import textwrap

import pytest

from obfuscator.config import ENV_ENCRYPTION_KEY, ENV_OUTPUT_DIR, generate_session_key, resolve_session_key
from obfuscator.manifest import ObfuscatorConfig


def write_config(tmp_path, content: str):
    path = tmp_path / "obfuscator.yml"
    path.write_text(textwrap.dedent(content), encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("OBFUSCATOR_KEY", "OBFUSCATOR_KEY_LENGTH", "OBFUSCATOR_OUTPUT_DIR", "OBFUSCATOR_BACKUP_DIR"):
        monkeypatch.delenv(name, raising=False)


class TestLoad:
    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(RuntimeError, match="not found"):
            ObfuscatorConfig.load(tmp_path / "nope.yml")

    def test_missing_file_allowed_gives_defaults(self, tmp_path):
        config = ObfuscatorConfig.load(tmp_path / "nope.yml", allow_missing=True)
        assert config.output_dir == "build/obfuscated"
        assert "*.blade.php" in config.exclude_paths
        assert config.backup.keep_last == 5
        assert config.obfuscation.strip_comments is True

    def test_full_file(self, tmp_path):
        path = write_config(tmp_path, """
            version: 1
            encryptor: identity
            encryption_key: abc123
            output_dir: dist
            include_paths: [src]
            exclude_paths: [legacy]
            exclude_patterns: ['/\\.env/']
            obfuscation:
              strip_comments: false
            backup:
              enabled: false
              keep_last: 2
            logging:
              level: debug
            ci_mode:
              generate_report: false
            performance:
              workers: 4
            production_bundle:
              exclude_dirs: [node_modules]
              always_include: [storage/keep]
        """)

        config = ObfuscatorConfig.load(path)

        assert config.encryptor == "identity"
        assert config.encryption_key == "abc123"
        assert config.include_paths == ["src"]
        assert config.obfuscation.strip_comments is False
        assert config.obfuscation.strip_whitespace is True
        assert config.backup.enabled is False
        assert config.backup.keep_last == 2
        assert config.logging.level == "debug"
        assert config.ci_mode.generate_report is False
        assert config.workers == 4
        assert config.production_bundle.always_include == ("storage/keep",)
        assert config.rule_set().always_include == ("storage/keep",)

    def test_unsupported_version(self, tmp_path):
        with pytest.raises(RuntimeError, match="Unsupported configuration version"):
            ObfuscatorConfig.load(write_config(tmp_path, "version: 9\n"))

    def test_invalid_log_level(self, tmp_path):
        with pytest.raises(RuntimeError, match="Unknown log level"):
            ObfuscatorConfig.load(write_config(tmp_path, "logging:\n  level: loud\n"))

    def test_list_fields_must_be_lists(self, tmp_path):
        with pytest.raises(RuntimeError, match="include_paths"):
            ObfuscatorConfig.load(write_config(tmp_path, "include_paths: app\n"))

    def test_environment_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv(ENV_ENCRYPTION_KEY, "from-env")
        monkeypatch.setenv(ENV_OUTPUT_DIR, "elsewhere")

        config = ObfuscatorConfig.load(write_config(tmp_path, "encryption_key: from-file\n"))

        assert config.encryption_key == "from-env"
        assert config.output_dir == "elsewhere"

    def test_report_config_slice(self):
        config = ObfuscatorConfig.from_dict({"include_paths": ["app"], "exclude_paths": ["vendor"]})
        assert config.report_config() == {
            "include_paths": ["app"],
            "exclude_paths": ["vendor"],
            "obfuscation_options": {"strip_comments": True, "strip_whitespace": True},
        }


class TestSessionKey:
    def test_generated_key_has_requested_length(self):
        key = generate_session_key(12)
        assert len(key) == 12
        assert key.isalnum()

    def test_configured_key_wins(self):
        assert resolve_session_key("supplied", 6) == "supplied"
        assert len(resolve_session_key("", 8)) == 8

    def test_non_positive_length_rejected(self):
        with pytest.raises(ValueError):
            generate_session_key(0)
