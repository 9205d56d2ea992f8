"""
Command-line interface for the obfuscator tool.

This module wires configuration, logging and the pipeline together
and provides the user-facing CLI commands:
- run
- check
- status
- clear
- help
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from .backup import BackupManager
from .config import DEFAULT_CONFIG_FILE, TOOL_VERSION
from .manifest import ObfuscatorConfig
from .paths import PathResolver
from .pipeline import ObfuscationPipeline, RunOptions
from .report import Report
from .utils import delete_tree, format_bytes, tree_summary


# ---------------------------------------------------------------------------
# Color output helpers
# ---------------------------------------------------------------------------


class Colors:
    """ANSI color codes for terminal output."""
    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    CYAN = "\033[96m"
    RESET = "\033[0m"
    BOLD = "\033[1m"


def colored(text: str, color: str) -> str:
    """Return colored text for terminal output."""
    return f"{color}{text}{Colors.RESET}"


def print_error(msg: str) -> None:
    """Print error message to stderr."""
    print(colored(f"✗ Error: {msg}", Colors.RED), file=sys.stderr)


def print_success(msg: str) -> None:
    print(colored(f"✓ {msg}", Colors.GREEN))


def print_warning(msg: str) -> None:
    print(colored(f"⚠ Warning: {msg}", Colors.YELLOW))


def print_info(msg: str) -> None:
    print(colored(f"ℹ {msg}", Colors.CYAN))


def yes_no(value: bool) -> str:
    return "Yes" if value else "No"


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


def setup_logging(config: ObfuscatorConfig, root: str, verbose: bool = False) -> None:
    """
    Configure the package logger from the ``logging`` section.

    Library modules only call ``logging.getLogger(__name__)``; this is
    the single place where handlers and levels are decided.
    """

    logger = logging.getLogger("obfuscator")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if not config.logging.enabled:
        logger.addHandler(logging.NullHandler())
        logger.propagate = False
        logger.disabled = True
        return

    logger.disabled = False
    level = logging.DEBUG if verbose else getattr(logging, config.logging.level.upper())
    logger.setLevel(level)
    logger.propagate = False

    formatter = logging.Formatter("[%(asctime)s] %(levelname)s [Obfuscator] %(message)s")

    stream = logging.StreamHandler(sys.stderr)
    stream.setFormatter(formatter)
    stream.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.addHandler(stream)

    if config.logging.path:
        log_path = Path(PathResolver(root).resolve(config.logging.path))
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)


# ---------------------------------------------------------------------------
# CLI context
# ---------------------------------------------------------------------------


class CLIContext:
    """Shared context for CLI commands."""

    def __init__(self, config_path: Optional[str], root: str, verbose: bool, quiet: bool):
        self.root = os.path.abspath(root)
        self.config_path = Path(config_path or os.path.join(self.root, DEFAULT_CONFIG_FILE))
        self.verbose = verbose
        self.quiet = quiet
        self.resolver = PathResolver(self.root)

        # Lazy-loaded
        self._config: Optional[ObfuscatorConfig] = None
        self._pipeline: Optional[ObfuscationPipeline] = None

    @property
    def config(self) -> ObfuscatorConfig:
        """Load configuration lazily."""
        if self._config is None:
            try:
                self._config = ObfuscatorConfig.load(self.config_path, allow_missing=True)
            except RuntimeError as e:
                print_error(f"Failed to load configuration: {e}")
                sys.exit(1)
            setup_logging(self._config, self.root, self.verbose)
        return self._config

    @property
    def pipeline(self) -> ObfuscationPipeline:
        if self._pipeline is None:
            self._pipeline = ObfuscationPipeline(self.config, self.root)
        return self._pipeline

    def log(self, msg: str) -> None:
        """Log message if not quiet."""
        if not self.quiet:
            print(msg)

    def log_verbose(self, msg: str) -> None:
        """Log message if verbose."""
        if self.verbose:
            print(colored(f"  → {msg}", Colors.BLUE))

    def table(self, rows: List[tuple]) -> None:
        width = max((len(str(label)) for label, _ in rows), default=0)
        for label, value in rows:
            self.log(f"  {str(label).ljust(width)}  {value}")


# ---------------------------------------------------------------------------
# Command implementations
# ---------------------------------------------------------------------------


def cmd_run(ctx: CLIContext, args: argparse.Namespace) -> int:
    """
    Obfuscate the configured sources into the output directory.
    """
    config = ctx.config
    pipeline = ctx.pipeline

    ctx.log(colored("Source Code Obfuscator", Colors.BOLD))
    ctx.log("")

    if not pipeline.validate():
        print_error(f"Encryption primitive '{config.encryptor}' is not available")
        print_error(f"Please check your configuration in {ctx.config_path}")
        return 1

    ctx.log(colored("Configuration:", Colors.CYAN))
    ctx.table([
        ("Output Directory", args.destination or config.output_dir),
        ("Include Paths", ", ".join(args.source or config.include_paths)),
        ("Backup Enabled", yes_no(config.backup.enabled and not args.skip_backup)),
        ("Strip Comments", yes_no(config.obfuscation.strip_comments)),
        ("Strip Whitespace", yes_no(config.obfuscation.strip_whitespace)),
        ("Production Bundle", yes_no(args.production_ready)),
    ])
    ctx.log("")

    if args.dry_run:
        print_warning("DRY RUN MODE: No files will be modified")

    if not args.force and not args.dry_run:
        response = input(colored("Do you want to proceed with obfuscation? [Y/n] ", Colors.YELLOW))
        if response.strip().lower() not in ["", "y", "yes"]:
            ctx.log("Obfuscation cancelled.")
            return 0

    options = RunOptions(
        dry_run=args.dry_run,
        skip_backup=args.skip_backup,
        source_override=args.source or None,
        destination_override=args.destination,
        production_ready=args.production_ready,
    )

    ctx.log("Starting obfuscation process...")
    result = pipeline.run(options)
    stats = result.stats

    ctx.log("")
    if result.success:
        print_success(result.message)
    else:
        print_warning(result.message)

    ctx.log("")
    ctx.log(colored("Statistics:", Colors.CYAN))
    ctx.table([
        ("Total Files", stats.total_files),
        ("Processed", stats.processed),
        ("Failed", stats.failed),
        ("Skipped", stats.skipped),
        ("Duration", f"{stats.duration} seconds"),
    ])

    if result.errors and ctx.verbose:
        ctx.log("")
        print_error("Errors:")
        for error in result.errors:
            ctx.log(f"  - {error.file}: {error.error}")

    if result.report_path:
        ctx.log_verbose(f"Report written to {result.report_path}")

    if args.dry_run:
        ctx.log("")
        print_info("This was a dry run. No files were actually modified.")
    elif result.success and stats.total_files:
        ctx.log("")
        print_warning("IMPORTANT: Save your encryption key!")
        ctx.log(f"  Encryption Key: {colored(result.encryption_key, Colors.BOLD)}")
        ctx.log("  You will need this key to decrypt the files at runtime.")

    if not result.success and config.ci_mode.fail_on_error:
        return 1
    return 0


def cmd_check(ctx: CLIContext, args: argparse.Namespace) -> int:
    """
    Check the encryption primitive and preview the selection.
    """
    config = ctx.config
    pipeline = ctx.pipeline

    ctx.log(colored("Obfuscator Configuration Check", Colors.BOLD))
    ctx.log("")

    ctx.log(colored("Encryption Primitive:", Colors.CYAN))
    if pipeline.validate():
        ctx.log(f"  Status: {colored('✓ ' + config.encryptor + ' is available', Colors.GREEN)}")
    else:
        ctx.log(f"  Status: {colored('✗ ' + config.encryptor + ' is not available', Colors.RED)}")
    ctx.log("")

    ctx.log(colored("Configuration Summary:", Colors.CYAN))
    ctx.table([
        ("Config File", ctx.config_path if ctx.config_path.exists() else "(defaults)"),
        ("Encryption Key", "Configured" if config.encryption_key else "Will be generated"),
        ("Key Length", config.key_length),
        ("Output Directory", config.output_dir),
        ("Backup Enabled", yes_no(config.backup.enabled)),
        ("Backup Path", config.backup.path),
        ("Keep Last Backups", config.backup.keep_last),
        ("Copy Non-PHP Files", yes_no(config.copy_non_php_files)),
    ])

    ctx.log("")
    ctx.log(colored("Include Paths:", Colors.CYAN))
    for path in config.include_paths:
        ctx.log(f"  • {path}")

    ctx.log("")
    ctx.log(colored("Exclude Paths:", Colors.CYAN))
    for path in config.exclude_paths[:10]:
        ctx.log(f"  • {path}")
    if len(config.exclude_paths) > 10:
        ctx.log(f"  ... and {len(config.exclude_paths) - 10} more")

    ctx.log("")
    ctx.log(colored("Obfuscation Options:", Colors.CYAN))
    for label, enabled in [
        ("Strip Comments", config.obfuscation.strip_comments),
        ("Strip Whitespace", config.obfuscation.strip_whitespace),
    ]:
        ctx.log(f"  {'✓' if enabled else '✗'} {label}")

    roots = pipeline.include_roots()
    stats = pipeline.scanner.statistics(roots)

    ctx.log("")
    ctx.log(colored("File Statistics:", Colors.CYAN))
    ctx.table([
        ("Total Files", stats["total_files"]),
        ("PHP Files", stats["source_files"]),
        ("Other Files", stats["other_files"]),
        ("Total Size", format_bytes(stats["total_size"])),
    ])

    if args.show_files:
        ctx.log("")
        ctx.log(colored("Files to be obfuscated:", Colors.CYAN))
        for path in pipeline.scan().paths:
            ctx.log(f"  • {ctx.resolver.relative_to(path)}")
    else:
        ctx.log_verbose("Use --show-files to see the complete list of files.")

    return 0


def cmd_status(ctx: CLIContext, args: argparse.Namespace) -> int:
    """
    Show output, backup and report status.
    """
    config = ctx.config
    output_dir = ctx.resolver.resolve(config.output_dir)
    backups = BackupManager(ctx.resolver.resolve(config.backup.path), config.backup.keep_last)
    backup_names = backups.list_backups()
    report_path = ctx.resolver.resolve(config.ci_mode.report_path)

    if args.json:
        output = {
            "output_dir": output_dir,
            "output_exists": os.path.isdir(output_dir),
            "backups": backup_names,
            "report": None,
        }
        if os.path.exists(report_path):
            output["report"] = Report.load(report_path).to_dict()
        print(json.dumps(output, indent=2))
        return 0

    ctx.log(colored("Obfuscation Status", Colors.BOLD))
    ctx.log("")

    ctx.log(colored("Output Directory:", Colors.CYAN))
    ctx.log(f"  Path: {output_dir}")
    if os.path.isdir(output_dir):
        count, size, last_modified = tree_summary(output_dir)
        ctx.log(f"  Status: {colored('✓ Exists', Colors.GREEN)}")
        ctx.log(f"  Files: {count}")
        ctx.log(f"  Size: {format_bytes(size)}")
        if last_modified:
            ctx.log(f"  Last Modified: {last_modified:%Y-%m-%d %H:%M:%S}")
    else:
        ctx.log("  Status: Directory does not exist")

    ctx.log("")
    ctx.log(colored("Backup Directory:", Colors.CYAN))
    ctx.log(f"  Path: {backups.backup_root}")
    if os.path.isdir(backups.backup_root):
        ctx.log(f"  Status: {colored('✓ Exists', Colors.GREEN)}")
        ctx.log(f"  Backups: {len(backup_names)}")
        for name in backup_names[:5]:
            ctx.log(f"    • {name}")
        if len(backup_names) > 5:
            ctx.log(f"    ... and {len(backup_names) - 5} more")
    else:
        ctx.log("  Status: Directory does not exist")

    if args.report:
        ctx.log("")
        ctx.log(colored("Obfuscation Report:", Colors.CYAN))
        if not os.path.exists(report_path):
            ctx.log("  No report available")
            return 0

        try:
            report = Report.load(report_path)
        except RuntimeError as e:
            print_error(str(e))
            return 1

        ctx.log(f"  Timestamp: {report.timestamp}")
        ctx.log("  Statistics:")
        for key, value in report.stats.items():
            ctx.log(f"    {key.replace('_', ' ').title()}: {value}")

        if report.errors:
            ctx.log(colored(f"  Errors: {len(report.errors)}", Colors.RED))
            for error in report.errors[:5]:
                ctx.log(f"    • {error.get('file')}: {error.get('error')}")
            if len(report.errors) > 5:
                ctx.log(f"    ... and {len(report.errors) - 5} more errors")

    return 0


def cmd_clear(ctx: CLIContext, args: argparse.Namespace) -> int:
    """
    Delete the output directory and/or the backups.
    """
    config = ctx.config

    clear_output = args.output or not args.backups
    clear_backups = args.backups or not args.output

    if not args.force:
        if clear_output and clear_backups:
            target = "both output and backup directories"
        elif clear_output:
            target = "the output directory"
        else:
            target = "the backup directories"

        response = input(colored(f"This will delete {target}. Continue? [y/N] ", Colors.YELLOW))
        if response.strip().lower() not in ["y", "yes"]:
            ctx.log("Operation cancelled.")
            return 0

    if clear_output:
        output_dir = ctx.resolver.resolve(config.output_dir)
        if os.path.isdir(output_dir):
            ctx.log(f"Clearing output directory: {output_dir}")
            delete_tree(output_dir)
            print_success("Output directory cleared")
        else:
            ctx.log("Output directory does not exist")

    if clear_backups:
        backups = BackupManager(ctx.resolver.resolve(config.backup.path))
        if backups.clear():
            print_success(f"Backup directories cleared: {backups.backup_root}")
        else:
            ctx.log("Backup directory does not exist")

    return 0


def cmd_help(ctx: Optional[CLIContext], args: argparse.Namespace) -> int:
    """
    Show help message.
    """
    help_text = f"""
{colored('obfuscator', Colors.BOLD)}: package PHP sources in protected form

{colored('USAGE:', Colors.CYAN)}
  obfuscator [global options] <command> [options]

{colored('COMMANDS:', Colors.CYAN)}
  run         Obfuscate sources into the output directory
  check       Check the encryption primitive and preview the selection
  status      Show output directory, backups and last report
  clear       Delete the output directory and/or backups
  help        Show this help message

{colored('GLOBAL OPTIONS:', Colors.CYAN)}
  -c, --config PATH         Configuration file (default: {DEFAULT_CONFIG_FILE})
  -r, --root PATH           Project root (default: current directory)
  -v, --verbose             Enable verbose output
  -q, --quiet               Suppress non-error output
  -h, --help                Show this help message and exit

{colored('ENVIRONMENT:', Colors.CYAN)}
  OBFUSCATOR_KEY            Session key (generated per run when unset)
  OBFUSCATOR_KEY_LENGTH     Length of generated keys
  OBFUSCATOR_OUTPUT_DIR     Output directory override
  OBFUSCATOR_BACKUP_DIR     Backup directory override

{colored('EXAMPLES:', Colors.CYAN)}
  obfuscator check --show-files
  obfuscator run --dry-run
  obfuscator run --force --source app --destination dist
  obfuscator run --force --production-ready
  obfuscator status --report

{colored('VERSION:', Colors.CYAN)}
  {TOOL_VERSION}
"""
    print(help_text)
    return 0


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="obfuscator",
        description="Package PHP sources in protected form",
        add_help=False,
    )

    # Global options
    parser.add_argument("-c", "--config", default=None, help="Path to configuration file")
    parser.add_argument("-r", "--root", default=".", help="Project root directory")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument("-q", "--quiet", action="store_true", help="Suppress non-error output")
    parser.add_argument("-h", "--help", action="store_true", help="Show help message")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    run_parser = subparsers.add_parser("run", help="Obfuscate sources")
    run_parser.add_argument("--source", action="append", help="Override source paths (repeatable)")
    run_parser.add_argument("--destination", help="Override output directory")
    run_parser.add_argument("-n", "--dry-run", action="store_true", help="Run without writing any file")
    run_parser.add_argument("--skip-backup", action="store_true", help="Skip creating a backup")
    run_parser.add_argument("--production-ready", action="store_true", help="Copy the whole project first")
    run_parser.add_argument("--force", action="store_true", help="Skip confirmation prompt")

    check_parser = subparsers.add_parser("check", help="Check configuration")
    check_parser.add_argument("--show-files", action="store_true", help="List selected files")

    status_parser = subparsers.add_parser("status", help="Show obfuscation status")
    status_parser.add_argument("--report", action="store_true", help="Display the last report")
    status_parser.add_argument("--json", action="store_true", help="Output status as JSON")

    clear_parser = subparsers.add_parser("clear", help="Delete output and/or backups")
    clear_parser.add_argument("--output", action="store_true", help="Clear only the output directory")
    clear_parser.add_argument("--backups", action="store_true", help="Clear only the backups")
    clear_parser.add_argument("--force", action="store_true", help="Skip confirmation prompt")

    subparsers.add_parser("help", help="Show help message")

    return parser


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.help or not args.command:
        return cmd_help(None, args)

    ctx = CLIContext(
        config_path=args.config,
        root=args.root,
        verbose=args.verbose,
        quiet=args.quiet,
    )

    commands = {
        "run": cmd_run,
        "check": cmd_check,
        "status": cmd_status,
        "clear": cmd_clear,
        "help": cmd_help,
    }

    cmd_func = commands.get(args.command)
    if not cmd_func:
        print_error(f"Unknown command: {args.command}")
        return 1

    try:
        return cmd_func(ctx, args)
    except KeyboardInterrupt:
        print_error("Interrupted")
        return 130
    except Exception as e:
        print_error(f"Unexpected error: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
