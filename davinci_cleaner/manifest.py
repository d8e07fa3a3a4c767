"""Append-only record of where each backed-up file came from.

Each line is a JSON object ``{"original": ..., "backup": ...}`` written and
flushed before the corresponding move, so an interrupted backup still leaves
enough information for ``undo`` to put every moved file back.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Dict, Optional

logger = logging.getLogger("davinci_cleaner")


def _key(path: str) -> str:
    return os.path.normcase(os.path.normpath(path))


class BackupManifest:
    """JSON-lines manifest stored inside the backup root."""

    def __init__(self, path: str) -> None:
        self.path = path

    def append(self, original: str, backup: str) -> None:
        os.makedirs(os.path.dirname(self.path), exist_ok=True)
        line = json.dumps({"original": original, "backup": backup}, ensure_ascii=False)
        with open(self.path, "a", encoding="utf-8") as handle:
            handle.write(line + "\n")
            handle.flush()
            os.fsync(handle.fileno())

    def load(self) -> Dict[str, str]:
        """Map backup paths to original paths; later entries win."""
        entries: Dict[str, str] = {}
        try:
            with open(self.path, encoding="utf-8") as handle:
                lines = handle.readlines()
        except FileNotFoundError:
            return entries
        except OSError as exc:
            logger.warning("Failed to read backup manifest %s: %s", self.path, exc)
            return entries

        for lineno, line in enumerate(lines, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
                entries[_key(record["backup"])] = record["original"]
            except (ValueError, KeyError, TypeError) as exc:
                logger.warning("Ignoring malformed manifest line %d in %s: %s", lineno, self.path, exc)
        return entries

    def lookup(self, entries: Dict[str, str], backup: str) -> Optional[str]:
        return entries.get(_key(backup))
