"""
Run report persistence.

The report is the structured summary of one completed run. It is
written once per run (overwriting any previous report) and read back
by the ``status`` command.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List

from .utils import ensure_parent_dir


@dataclass
class Report:
    timestamp: str
    stats: Dict[str, Any]
    encryption_key: str
    config: Dict[str, Any] = field(default_factory=dict)
    errors: List[Dict[str, str]] = field(default_factory=list)
    processed_files: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def write(self, path: str | Path) -> Path:
        path = Path(path)
        ensure_parent_dir(path)
        path.write_text(json.dumps(self.to_dict(), indent=4), encoding="utf-8")
        return path

    @classmethod
    def load(cls, path: str | Path) -> "Report":
        """
        Read a report back.

        Raises:
            RuntimeError: if the file is missing or malformed
        """

        path = Path(path)
        if not path.exists():
            raise RuntimeError(f"Report file not found: {path}")

        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise RuntimeError(f"Failed to read report {path}: {e}") from e

        if not isinstance(raw, dict):
            raise RuntimeError(f"Malformed report: {path}")

        return cls(
            timestamp=raw.get("timestamp", ""),
            stats=raw.get("stats", {}),
            encryption_key=raw.get("encryption_key", ""),
            config=raw.get("config", {}),
            errors=raw.get("errors", []),
            processed_files=raw.get("processed_files", []),
        )
