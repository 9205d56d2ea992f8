"""
Configuration loading, validation, and normalization.

This module answers one question:
    "What does the user want the tool to do?"

Responsibilities:
- Load the YAML configuration file
- Validate structure and version
- Normalize defaults and apply environment overrides
- Expose a clean Python representation

This module does NOT:
- Match files
- Encrypt data
- Walk the filesystem
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .config import (
    DEFAULT_BACKUP_DIR,
    DEFAULT_ENCRYPTOR,
    DEFAULT_KEEP_LAST,
    DEFAULT_KEY_LENGTH,
    DEFAULT_LOG_LEVEL,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_REPORT_PATH,
    ENV_BACKUP_DIR,
    ENV_ENCRYPTION_KEY,
    ENV_KEY_LENGTH,
    ENV_OUTPUT_DIR,
    SUPPORTED_CONFIG_VERSION,
    env_override,
)
from .rules import BundleRules, RuleSet
from .transformer import TransformOptions

LOG_LEVELS = ("debug", "info", "warning", "error")

DEFAULT_INCLUDE_PATHS = ["app", "routes", "config", "database/migrations"]

DEFAULT_EXCLUDE_PATHS = [
    "tests",
    "vendor",
    "node_modules",
    "storage",
    "bootstrap/cache",
    "public",
    "*.blade.php",
    "*.stub",
    "*.md",
    "*.json",
    "*.xml",
]

DEFAULT_EXCLUDE_PATTERNS = [
    r"/\.env/",
    r"/\.git/",
    r"/\.gitignore/",
    r"/composer\.(json|lock)/",
    r"/package(-lock)?\.json/",
]

DEFAULT_BUNDLE_EXCLUDE_DIRS = [".git", "node_modules", "tests", "backups", "build"]
DEFAULT_BUNDLE_EXCLUDE_FILES = [".env", "*.log", ".phpunit.result.cache"]


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------


@dataclass
class BackupConfig:
    enabled: bool = True
    path: str = DEFAULT_BACKUP_DIR
    keep_last: int = DEFAULT_KEEP_LAST


@dataclass
class LoggingConfig:
    enabled: bool = True
    path: Optional[str] = None
    level: str = DEFAULT_LOG_LEVEL


@dataclass
class ReportConfig:
    fail_on_error: bool = True
    generate_report: bool = True
    report_path: str = DEFAULT_REPORT_PATH


@dataclass
class ObfuscatorConfig:
    version: int = SUPPORTED_CONFIG_VERSION
    encryptor: str = DEFAULT_ENCRYPTOR
    encryption_key: str = ""
    key_length: int = DEFAULT_KEY_LENGTH
    output_dir: str = DEFAULT_OUTPUT_DIR
    include_paths: List[str] = field(default_factory=lambda: list(DEFAULT_INCLUDE_PATHS))
    exclude_paths: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_PATHS))
    exclude_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS))
    source_extensions: List[str] = field(default_factory=lambda: ["php"])
    obfuscation: TransformOptions = field(default_factory=TransformOptions)
    copy_non_php_files: bool = True
    preserve_structure: bool = True
    backup: BackupConfig = field(default_factory=BackupConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    ci_mode: ReportConfig = field(default_factory=ReportConfig)
    workers: int = 1
    production_bundle: BundleRules = field(
        default_factory=lambda: BundleRules(
            exclude_dirs=tuple(DEFAULT_BUNDLE_EXCLUDE_DIRS),
            exclude_files=tuple(DEFAULT_BUNDLE_EXCLUDE_FILES),
        )
    )

    # ------------------------------------------------------------------
    # Loading API
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, path: str | Path, allow_missing: bool = False) -> "ObfuscatorConfig":
        """
        Load and validate a configuration file.

        Args:
            path: Path to the YAML configuration
            allow_missing: fall back to defaults if the file is absent

        Raises:
            RuntimeError: if the configuration is invalid

        Returns:
            ObfuscatorConfig
        """

        path = Path(path)
        if not path.exists():
            if allow_missing:
                return cls.from_dict({})
            raise RuntimeError(f"Configuration file not found: {path}")

        with path.open("r", encoding="utf-8") as fh:
            try:
                raw = yaml.safe_load(fh) or {}
            except yaml.YAMLError as e:
                raise RuntimeError(f"Invalid YAML in {path}: {e}") from e

        if not isinstance(raw, dict):
            raise RuntimeError(f"Configuration root must be a mapping: {path}")

        return cls.from_dict(raw)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ObfuscatorConfig":
        version = data.get("version", SUPPORTED_CONFIG_VERSION)
        if version != SUPPORTED_CONFIG_VERSION:
            raise RuntimeError(f"Unsupported configuration version: {version}")

        key_length = env_override(ENV_KEY_LENGTH, data.get("key_length", DEFAULT_KEY_LENGTH))
        try:
            key_length = int(key_length)
        except (TypeError, ValueError):
            raise RuntimeError(f"key_length must be an integer, got {key_length!r}")
        if key_length <= 0:
            raise RuntimeError(f"key_length must be positive, got {key_length}")

        performance = data.get("performance") or {}

        return cls(
            version=version,
            encryptor=str(data.get("encryptor", DEFAULT_ENCRYPTOR)),
            encryption_key=env_override(ENV_ENCRYPTION_KEY, data.get("encryption_key") or ""),
            key_length=key_length,
            output_dir=env_override(ENV_OUTPUT_DIR, data.get("output_dir", DEFAULT_OUTPUT_DIR)),
            include_paths=cls._parse_list(data, "include_paths", DEFAULT_INCLUDE_PATHS),
            exclude_paths=cls._parse_list(data, "exclude_paths", DEFAULT_EXCLUDE_PATHS),
            exclude_patterns=cls._parse_list(data, "exclude_patterns", DEFAULT_EXCLUDE_PATTERNS),
            source_extensions=cls._parse_list(data, "source_extensions", ["php"]),
            obfuscation=cls._parse_obfuscation(data.get("obfuscation") or {}),
            copy_non_php_files=bool(data.get("copy_non_php_files", True)),
            preserve_structure=bool(data.get("preserve_structure", True)),
            backup=cls._parse_backup(data.get("backup") or {}),
            logging=cls._parse_logging(data.get("logging") or {}),
            ci_mode=cls._parse_ci_mode(data.get("ci_mode") or {}),
            workers=int(performance.get("workers", 1)),
            production_bundle=cls._parse_bundle(data.get("production_bundle") or {}),
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_list(data: Dict[str, Any], key: str, default: List[str]) -> List[str]:
        value = data.get(key)
        if value is None:
            return list(default)
        if not isinstance(value, list):
            raise RuntimeError(f"'{key}' must be a list")
        return [str(item) for item in value]

    @staticmethod
    def _parse_obfuscation(data: Dict[str, Any]) -> TransformOptions:
        return TransformOptions(
            strip_comments=bool(data.get("strip_comments", True)),
            strip_whitespace=bool(data.get("strip_whitespace", True)),
        )

    @staticmethod
    def _parse_backup(data: Dict[str, Any]) -> BackupConfig:
        keep_last = int(data.get("keep_last", DEFAULT_KEEP_LAST))
        if keep_last < 1:
            raise RuntimeError(f"backup.keep_last must be at least 1, got {keep_last}")

        return BackupConfig(
            enabled=bool(data.get("enabled", True)),
            path=env_override(ENV_BACKUP_DIR, data.get("path", DEFAULT_BACKUP_DIR)),
            keep_last=keep_last,
        )

    @staticmethod
    def _parse_logging(data: Dict[str, Any]) -> LoggingConfig:
        level = str(data.get("level", DEFAULT_LOG_LEVEL)).lower()
        if level not in LOG_LEVELS:
            raise RuntimeError(f"Unknown log level: {level}")

        return LoggingConfig(
            enabled=bool(data.get("enabled", True)),
            path=data.get("path"),
            level=level,
        )

    @staticmethod
    def _parse_ci_mode(data: Dict[str, Any]) -> ReportConfig:
        return ReportConfig(
            fail_on_error=bool(data.get("fail_on_error", True)),
            generate_report=bool(data.get("generate_report", True)),
            report_path=str(data.get("report_path", DEFAULT_REPORT_PATH)),
        )

    @staticmethod
    def _parse_bundle(data: Dict[str, Any]) -> BundleRules:
        return BundleRules(
            exclude_dirs=tuple(data.get("exclude_dirs", DEFAULT_BUNDLE_EXCLUDE_DIRS)),
            exclude_files=tuple(data.get("exclude_files", DEFAULT_BUNDLE_EXCLUDE_FILES)),
            always_include=tuple(data.get("always_include", [])),
        )

    # ------------------------------------------------------------------
    # Public helpers
    # ------------------------------------------------------------------

    def rule_set(self) -> RuleSet:
        return RuleSet(
            exclude_paths=tuple(self.exclude_paths),
            exclude_patterns=tuple(self.exclude_patterns),
            always_include=tuple(self.production_bundle.always_include),
        )

    def report_config(self) -> Dict[str, Any]:
        """The slice of configuration recorded in run reports."""
        return {
            "include_paths": list(self.include_paths),
            "exclude_paths": list(self.exclude_paths),
            "obfuscation_options": {
                "strip_comments": self.obfuscation.strip_comments,
                "strip_whitespace": self.obfuscation.strip_whitespace,
            },
        }
