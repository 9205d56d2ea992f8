"""
Rule evaluation logic.

Given a file path and a rule set, this module decides whether the
file takes part in a run. Rules DO NOT perform actions. They only
return decisions.

Two rule languages live here:
- RuleSet: the scanning rules (substring / wildcard exclude paths,
  regular-expression exclude patterns, always-include overrides)
- BundleRules: the production-bundle copy rules (exclude dirs,
  exclude files, always-include overrides)

Note that plain exclude paths match as *substrings* anywhere in the
path: ``"vendor"`` also excludes ``/srv/app/vendors-lib/a.php``.
"""

from __future__ import annotations

import fnmatch
import os
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Pattern, Sequence

from .paths import PathResolver

WILDCARD_CHARS = ("*", "?")

_DELIMITED_RE = re.compile(r"^([/#~!@%|])(.*)\1([imsx]*)$", re.DOTALL)
_REGEX_FLAGS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
}


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RuleSet:
    exclude_paths: Sequence[str] = field(default_factory=tuple)
    exclude_patterns: Sequence[str] = field(default_factory=tuple)
    always_include: Sequence[str] = field(default_factory=tuple)


@dataclass(frozen=True)
class BundleRules:
    exclude_dirs: Sequence[str] = field(default_factory=tuple)
    exclude_files: Sequence[str] = field(default_factory=tuple)
    always_include: Sequence[str] = field(default_factory=tuple)


class BundleAction(Enum):
    COPY = "copy"
    # Excluded directory that still holds always-include entries
    DESCEND_RESTRICTED = "descend_restricted"
    SKIP = "skip"


# ---------------------------------------------------------------------------
# Pattern helpers
# ---------------------------------------------------------------------------


def has_wildcard(pattern: str) -> bool:
    return any(ch in pattern for ch in WILDCARD_CHARS)


def wildcard_to_regex(pattern: str) -> Pattern[str]:
    """
    Compile a glob-ish pattern into an unanchored regex.

    ``*`` matches any characters, ``?`` any single character,
    everything else is literal.
    """

    parts = []
    for ch in pattern:
        if ch == "*":
            parts.append(".*")
        elif ch == "?":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    return re.compile("".join(parts))


def compile_exclude_pattern(pattern: str) -> Pattern[str]:
    """
    Compile a configured regular expression.

    Accepts bare expressions (``\\.env``) as well as delimited ones
    carried over from PHP-style configs (``/\\.env/i``).

    Raises:
        ValueError: if the expression does not compile
    """

    source = pattern
    flags = 0

    match = _DELIMITED_RE.match(pattern)
    if match:
        source = match.group(2)
        for flag in match.group(3):
            flags |= _REGEX_FLAGS[flag]

    try:
        return re.compile(source, flags)
    except re.error as e:
        raise ValueError(f"Invalid exclude pattern {pattern!r}: {e}") from e


def matches_prefix(relative_path: str, entries: Sequence[str]) -> bool:
    """Exact match or ``entry + separator`` prefix match."""
    for entry in entries:
        entry = entry.rstrip("/" + os.sep)
        if not entry:
            continue
        if relative_path == entry or relative_path.startswith(entry + os.sep):
            return True
    return False


# ---------------------------------------------------------------------------
# Scanning rules
# ---------------------------------------------------------------------------


class Matcher:
    def __init__(self, rules: RuleSet, root: Optional[str | Path] = None):
        self.rules = rules
        self.resolver = PathResolver(root) if root is not None else None

        self._wildcards: Dict[str, Pattern[str]] = {
            entry: wildcard_to_regex(entry)
            for entry in rules.exclude_paths
            if has_wildcard(entry)
        }
        self._patterns: List[Pattern[str]] = [
            compile_exclude_pattern(p) for p in rules.exclude_patterns
        ]

    def matches_pattern(self, path: str | Path, pattern: str) -> bool:
        """Check a single exclude-path entry against ``path``."""
        path = str(path)

        if has_wildcard(pattern):
            regex = self._wildcards.get(pattern) or wildcard_to_regex(pattern)
            return regex.search(path) is not None

        return pattern in path

    def is_always_included(self, path: str | Path) -> bool:
        path = str(path)
        if self.resolver is not None:
            path = self.resolver.relative_to(path)
        return matches_prefix(path, self.rules.always_include)

    def excluded_by(self, path: str | Path) -> Optional[str]:
        """Return the first rule that rejects ``path``, if any."""
        path = str(path)

        for entry in self.rules.exclude_paths:
            if self.matches_pattern(path, entry):
                return entry

        for raw, regex in zip(self.rules.exclude_patterns, self._patterns):
            if regex.search(path):
                return raw

        return None

    def should_include(self, path: str | Path, honor_always_include: bool = False) -> bool:
        if honor_always_include and self.is_always_included(path):
            return True

        return self.excluded_by(path) is None


# ---------------------------------------------------------------------------
# Production bundle rules
# ---------------------------------------------------------------------------


def bundle_decision(
    rules: BundleRules,
    relative_path: str,
    is_dir: bool,
    restricted: bool = False,
    always_included: Optional[bool] = None,
) -> BundleAction:
    """
    Decide what the production-bundle copy does with one entry.

    Precedence: always-include wins over exclude dirs and exclude
    files. Inside a restricted directory only always-include entries
    (and directories leading to them) are copied. The output
    directory is filtered by the caller, before this is consulted.

    ``always_included`` lets a caller holding a :class:`Matcher` pass
    its verdict; otherwise the bundle's own list is checked.
    """

    name = os.path.basename(relative_path)

    if always_included is None:
        always_included = matches_prefix(relative_path, rules.always_include)

    if always_included:
        return BundleAction.COPY

    leads_to_always = any(
        entry.rstrip("/" + os.sep).startswith(relative_path + os.sep)
        for entry in rules.always_include
    )

    if is_dir:
        excluded = restricted or any(
            name == entry
            or relative_path == entry
            or relative_path.startswith(entry + os.sep)
            for entry in rules.exclude_dirs
        )
        if not excluded:
            return BundleAction.COPY
        if leads_to_always:
            return BundleAction.DESCEND_RESTRICTED
        return BundleAction.SKIP

    if restricted:
        return BundleAction.SKIP

    for entry in rules.exclude_files:
        if name == entry or fnmatch.fnmatch(name, entry) or fnmatch.fnmatch(relative_path, entry):
            return BundleAction.SKIP

    return BundleAction.COPY
