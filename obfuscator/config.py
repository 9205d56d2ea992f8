"""
Global configuration constants and environment handling.

This module is responsible for:
- Defining global constants and defaults
- Reading environment overrides (secrets, paths)
- Generating the per-run session key

Nothing in this file should depend on:
- the filesystem
- the YAML configuration structure
- rule evaluation
- CLI arguments
"""

from __future__ import annotations

import os
import secrets
import string
from typing import Final, Optional

# ---------------------------------------------------------------------------
# Tool / format versioning
# ---------------------------------------------------------------------------

SUPPORTED_CONFIG_VERSION: Final[int] = 1
TOOL_VERSION: Final[str] = "0.1.0"

DEFAULT_CONFIG_FILE: Final[str] = "obfuscator.yml"

# ---------------------------------------------------------------------------
# Default behavior
# ---------------------------------------------------------------------------

DEFAULT_ENCRYPTOR: Final[str] = "aes-gcm"
DEFAULT_KEY_LENGTH: Final[int] = 6
DEFAULT_OUTPUT_DIR: Final[str] = "build/obfuscated"
DEFAULT_BACKUP_DIR: Final[str] = "backups/pre-obfuscation"
DEFAULT_KEEP_LAST: Final[int] = 5
DEFAULT_REPORT_PATH: Final[str] = "build/obfuscation-report.json"
DEFAULT_LOG_LEVEL: Final[str] = "info"

KEY_ALPHABET: Final[str] = string.digits + string.ascii_lowercase + string.ascii_uppercase

# AES-GCM defaults
AES_NONCE_SIZE: Final[int] = 12
AES_TAG_SIZE: Final[int] = 16

# Framing written in front of every protected file
DECRYPT_HEADER: Final[str] = "<?php bolt_decrypt(__FILE__, PHP_BOLT_KEY); return 0;"
PAYLOAD_SEPARATOR: Final[str] = "\n##!##\n"

BACKUP_TIMESTAMP_FORMAT: Final[str] = "%Y-%m-%d_%H%M%S"
REPORT_TIMESTAMP_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

# ---------------------------------------------------------------------------
# Environment variable names
# ---------------------------------------------------------------------------

ENV_ENCRYPTION_KEY: Final[str] = "OBFUSCATOR_KEY"
ENV_KEY_LENGTH: Final[str] = "OBFUSCATOR_KEY_LENGTH"
ENV_OUTPUT_DIR: Final[str] = "OBFUSCATOR_OUTPUT_DIR"
ENV_BACKUP_DIR: Final[str] = "OBFUSCATOR_BACKUP_DIR"

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def env_override(name: str, default: Optional[str] = None) -> Optional[str]:
    """Return a non-empty environment value, or ``default``."""
    value = os.getenv(name)
    if not value:
        return default
    return value


def generate_session_key(length: int = DEFAULT_KEY_LENGTH) -> str:
    """
    Generate a random alphanumeric session key.

    Raises:
        ValueError: if the requested length is not positive

    Returns:
        str: key of exactly ``length`` characters
    """

    if length <= 0:
        raise ValueError(f"Key length must be positive, got {length}")

    return "".join(secrets.choice(KEY_ALPHABET) for _ in range(length))


def resolve_session_key(configured: Optional[str], length: int = DEFAULT_KEY_LENGTH) -> str:
    """
    Return the operator-supplied key when present, otherwise a fresh one.
    """

    if configured:
        return configured
    return generate_session_key(length)
