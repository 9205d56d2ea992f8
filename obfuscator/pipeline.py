"""
Pipeline orchestration.

This module coordinates all other components for one obfuscation run:

    validate -> backup -> select -> prepare output -> dispatch
             -> report -> finish

The pipeline owns the session key. Everything a run accumulates
(stats, errors, processed files) lives in a RunContext that is handed
explicitly to each stage; nothing is kept in module or instance
globals between runs.

Failure semantics:
- a missing / unavailable encryption primitive aborts the run
  before anything on disk is touched
- an unreadable scan root propagates out of ``run``
- any per-file failure becomes one ErrorRecord and the loop goes on
"""

from __future__ import annotations

import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .backup import BackupManager
from .config import REPORT_TIMESTAMP_FORMAT, resolve_session_key
from .encryption import EncryptionPrimitive, load_primitive
from .file_scanner import FileRecord, FileScanner, ScanResult
from .lexer import Lexer
from .manifest import ObfuscatorConfig
from .paths import PathResolver
from .report import Report
from .rules import BundleAction, Matcher, bundle_decision
from .transformer import Transformer
from .utils import copy_file, delete_tree, ensure_dir, is_broken_link, resolve_dir_link

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Run data models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RunOptions:
    dry_run: bool = False
    skip_backup: bool = False
    source_override: Optional[Sequence[str]] = None
    destination_override: Optional[str] = None
    production_ready: bool = False


@dataclass
class RunStats:
    total_files: int = 0
    processed: int = 0
    failed: int = 0
    skipped: int = 0
    duration: float = 0.0


@dataclass(frozen=True)
class ErrorRecord:
    file: str
    error: str


@dataclass
class RunContext:
    """Mutable state of a single run."""

    options: RunOptions
    output_dir: str
    started_at: float = field(default_factory=time.monotonic)
    stats: RunStats = field(default_factory=RunStats)
    errors: List[ErrorRecord] = field(default_factory=list)
    processed_files: List[str] = field(default_factory=list)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def record_processed(self, path: str) -> None:
        with self.lock:
            self.stats.processed += 1
            self.processed_files.append(path)

    def record_skipped(self, path: str) -> None:
        with self.lock:
            self.stats.skipped += 1

    def record_failure(self, path: str, error: str) -> None:
        with self.lock:
            self.stats.failed += 1
            self.errors.append(ErrorRecord(file=path, error=error))

    def elapsed(self) -> float:
        return round(time.monotonic() - self.started_at, 2)


@dataclass
class RunResult:
    success: bool
    message: str
    stats: RunStats
    errors: List[ErrorRecord] = field(default_factory=list)
    encryption_key: str = ""
    processed_files: List[str] = field(default_factory=list)
    report_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class ObfuscationPipeline:
    def __init__(
        self,
        config: ObfuscatorConfig,
        root: str | Path,
        primitive: Optional[EncryptionPrimitive] = None,
        lexer: Optional[Lexer] = None,
    ):
        self.config = config
        self.resolver = PathResolver(os.path.abspath(str(root)))
        self.primitive = primitive if primitive is not None else load_primitive(config.encryptor)
        self.lexer = lexer

        self.matcher = Matcher(config.rule_set(), root=self.resolver.root)
        self.scanner = FileScanner(self.matcher, config.source_extensions)
        self.encryption_key = resolve_session_key(config.encryption_key, config.key_length)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def validate(self) -> bool:
        """Check that the configured encryption primitive can be used."""
        if self.primitive is None:
            logger.error("Encryption primitive '%s' is not registered", self.config.encryptor)
            return False

        if not self.primitive.is_available():
            logger.error("Encryption primitive '%s' is not available", self.primitive.name)
            return False

        logger.info("Encryption primitive '%s' validated successfully", self.primitive.name)
        return True

    def include_roots(self, source_override: Optional[Sequence[str]] = None) -> List[str]:
        paths = source_override if source_override else self.config.include_paths
        return [self.resolver.resolve(p) for p in paths]

    def output_dir(self, destination_override: Optional[str] = None) -> str:
        return self.resolver.resolve(destination_override or self.config.output_dir)

    def backup_manager(self) -> BackupManager:
        return BackupManager(
            self.resolver.resolve(self.config.backup.path),
            keep_last=self.config.backup.keep_last,
        )

    def scan(self, source_override: Optional[Sequence[str]] = None) -> ScanResult:
        return self.scanner.scan(self.include_roots(source_override))

    def run(self, options: Optional[RunOptions] = None) -> RunResult:
        """
        Execute one full obfuscation run.

        Raises:
            RuntimeError: if the encryption primitive is unavailable
        """

        options = options or RunOptions()
        ctx = RunContext(options=options, output_dir=self.output_dir(options.destination_override))

        if not self.validate():
            raise RuntimeError(
                f"Encryption primitive '{self.config.encryptor}' is not available. "
                "Check the 'encryptor' setting in your configuration."
            )

        if self.config.backup.enabled and not options.skip_backup:
            self._backup(ctx)

        selection = self.scan(options.source_override)
        ctx.stats.total_files = len(selection)

        if not selection:
            logger.info("No files found to obfuscate")
            return RunResult(
                success=True,
                message="No files found to obfuscate.",
                stats=ctx.stats,
                encryption_key=self.encryption_key,
            )

        self._prepare_output(ctx)
        self._dispatch(ctx, selection)

        report_path = None
        if self.config.ci_mode.generate_report:
            ctx.stats.duration = ctx.elapsed()
            report_path = self._write_report(ctx)

        ctx.stats.duration = ctx.elapsed()

        return RunResult(
            success=ctx.stats.failed == 0,
            message=(
                f"Obfuscation completed: {ctx.stats.processed} processed, "
                f"{ctx.stats.failed} failed"
            ),
            stats=ctx.stats,
            errors=list(ctx.errors),
            encryption_key=self.encryption_key,
            processed_files=list(ctx.processed_files),
            report_path=report_path,
        )

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _backup(self, ctx: RunContext) -> None:
        if ctx.options.dry_run:
            logger.info("Dry run: skipping backup")
            return

        self.backup_manager().create(self.include_roots())

    def _prepare_output(self, ctx: RunContext) -> None:
        if ctx.options.dry_run:
            logger.info("Dry run: leaving output directory untouched: %s", ctx.output_dir)
            return

        if ctx.options.production_ready:
            self.create_production_bundle(ctx.output_dir)
            ensure_dir(ctx.output_dir)
            return

        if os.path.isdir(ctx.output_dir):
            delete_tree(ctx.output_dir)
        ensure_dir(ctx.output_dir)

    def _dispatch(self, ctx: RunContext, selection: ScanResult) -> None:
        transformer = Transformer(self.primitive, self.config.obfuscation, self.lexer)
        workers = self._worker_count(len(selection))

        if workers <= 1:
            for record in selection:
                self._process_file(ctx, transformer, record)
            return

        logger.debug("Dispatching %d file(s) on %d workers", len(selection), workers)
        with ThreadPoolExecutor(max_workers=workers) as pool:
            list(pool.map(lambda r: self._process_file(ctx, transformer, r), selection))

    def _process_file(self, ctx: RunContext, transformer: Transformer, record: FileRecord) -> None:
        try:
            # Files outside the root keep their full path under the output dir
            relative = os.path.splitdrive(self.resolver.relative_to(record.path))[1].lstrip(os.sep)
            if not self.config.preserve_structure:
                relative = os.path.basename(relative)
            output_path = os.path.join(ctx.output_dir, relative)

            if record.extension in self.scanner.source_extensions:
                if ctx.options.dry_run:
                    logger.info("Would obfuscate: %s -> %s", record.path, output_path)
                else:
                    transformer.transform_file(record.path, output_path, self.encryption_key)
                    logger.debug("Successfully obfuscated: %s", record.path)
                ctx.record_processed(record.path)

            elif self.config.copy_non_php_files:
                if ctx.options.dry_run:
                    logger.info("Would copy: %s -> %s", record.path, output_path)
                else:
                    copy_file(record.path, output_path)
                ctx.record_processed(record.path)

            else:
                logger.debug("Skipped non-source file: %s", record.path)
                ctx.record_skipped(record.path)

        except Exception as e:
            logger.error("Failed to process file %s: %s", record.path, e)
            ctx.record_failure(record.path, str(e))

    def _write_report(self, ctx: RunContext) -> str:
        report = Report(
            timestamp=datetime.now().strftime(REPORT_TIMESTAMP_FORMAT),
            stats=asdict(ctx.stats),
            encryption_key=self.encryption_key,
            config=self.config.report_config(),
            errors=[asdict(e) for e in ctx.errors],
            processed_files=list(ctx.processed_files),
        )

        path = report.write(self.resolver.resolve(self.config.ci_mode.report_path))
        logger.info("Report generated at: %s", path)
        return str(path)

    # ------------------------------------------------------------------
    # Production bundle
    # ------------------------------------------------------------------

    def create_production_bundle(self, output_dir: str) -> int:
        """
        Copy the whole project root into ``output_dir``.

        Always-include entries win over exclude dirs / files. The
        output directory itself is never copied into itself. An
        existing output directory is merged into, not cleared.

        Returns:
            int: number of files copied
        """

        logger.info("Creating production-ready bundle")

        rules = self.config.production_bundle
        root = self.resolver.root
        output_dir = os.path.abspath(output_dir)
        output_real = os.path.realpath(output_dir)
        copied = 0

        ensure_dir(output_dir)
        stack = [(root, output_dir, False, frozenset([os.path.realpath(root)]))]

        while stack:
            source, destination, restricted, ancestors = stack.pop()
            ensure_dir(destination)

            with os.scandir(source) as entries:
                for entry in entries:
                    if entry.path == output_dir or entry.path.startswith(output_dir + os.sep):
                        continue
                    if is_broken_link(entry):
                        logger.warning("Skipping broken symlink: %s", entry.path)
                        continue

                    is_dir = entry.is_dir()
                    relative = self.resolver.relative_to(entry.path)
                    action = bundle_decision(
                        rules,
                        relative,
                        is_dir,
                        restricted,
                        always_included=self.matcher.is_always_included(entry.path),
                    )
                    target = os.path.join(destination, entry.name)

                    if action is BundleAction.SKIP:
                        continue
                    if is_dir:
                        real = resolve_dir_link(entry.path, ancestors)
                        if real is None:
                            logger.warning("Skipping symlink loop: %s", entry.path)
                            continue
                        if real == output_real or real.startswith(output_real + os.sep):
                            continue
                        restricted_child = action is BundleAction.DESCEND_RESTRICTED
                        stack.append((entry.path, target, restricted_child, ancestors | {real}))
                    else:
                        copy_file(entry.path, target)
                        copied += 1

        logger.info("Production bundle created successfully (%d files)", copied)
        return copied

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _worker_count(self, total: int) -> int:
        workers = self.config.workers
        if workers <= 0:
            workers = os.cpu_count() or 1
        return max(1, min(workers, total))
