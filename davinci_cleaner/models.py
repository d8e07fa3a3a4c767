"""Data models passed between the scan and cleanup stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Set

ResolvedPath = str
AssetReference = str


@dataclass
class FileReferences:
    """Raw asset references discovered in a single source file."""

    path: ResolvedPath
    references: List[AssetReference]


@dataclass
class SourceScan:
    """Outcome of walking the source tree."""

    used: Set[ResolvedPath] = field(default_factory=set)
    files: List[FileReferences] = field(default_factory=list)
    failed: List[ResolvedPath] = field(default_factory=list)


@dataclass
class ScanReport:
    """Reconciled view of referenced and physically present assets."""

    used: Set[ResolvedPath]
    all_assets: Set[ResolvedPath]
    unused: Set[ResolvedPath]
    files: List[FileReferences] = field(default_factory=list)
    failed_reads: List[ResolvedPath] = field(default_factory=list)


@dataclass
class MoveOutcome:
    """Result of relocating or deleting a single file."""

    source: ResolvedPath
    destination: Optional[ResolvedPath] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchResult:
    """Per-item outcomes of a best-effort batch of moves or deletions."""

    succeeded: List[MoveOutcome] = field(default_factory=list)
    failed: List[MoveOutcome] = field(default_factory=list)

    def record(self, outcome: MoveOutcome) -> None:
        if outcome.ok:
            self.succeeded.append(outcome)
        else:
            self.failed.append(outcome)


@dataclass
class UndoResult:
    """Outcome of restoring a backup root."""

    recovered: List[MoveOutcome] = field(default_factory=list)
    failed: List[MoveOutcome] = field(default_factory=list)
    backup_root_removed: bool = False
