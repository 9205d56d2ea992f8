"""
Source Obfuscator

A build-time packaging tool that selects PHP sources with layered
include/exclude rules and writes an encrypted, mirrored copy of the
project alongside backups and a run report.
"""

__version__ = "0.1.0"

from .config import generate_session_key
from .encryption import AesGcmPrimitive, IdentityPrimitive, load_primitive
from .file_scanner import FileRecord, FileScanner, ScanResult
from .manifest import ObfuscatorConfig
from .paths import PathResolver
from .pipeline import ObfuscationPipeline, RunOptions, RunResult, RunStats
from .rules import BundleRules, Matcher, RuleSet
from .transformer import TransformError, Transformer

__all__ = [
    "generate_session_key",
    "AesGcmPrimitive",
    "IdentityPrimitive",
    "load_primitive",
    "FileRecord",
    "FileScanner",
    "ScanResult",
    "ObfuscatorConfig",
    "PathResolver",
    "ObfuscationPipeline",
    "RunOptions",
    "RunResult",
    "RunStats",
    "BundleRules",
    "Matcher",
    "RuleSet",
    "TransformError",
    "Transformer",
]
