"""
Main entry point for running obfuscator as a module.

Usage:
    python -m obfuscator <command> [options]
"""

from .cli import main
import sys

if __name__ == "__main__":
    sys.exit(main())
