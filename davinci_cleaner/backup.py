"""Reversible removal of unused assets and restoration of backups."""

from __future__ import annotations

import errno
import logging
import os
import shutil
import tempfile
from typing import Iterable, Optional

from .manifest import BackupManifest
from .models import BatchResult, MoveOutcome, ResolvedPath, UndoResult
from .paths import iter_files, relative_key, strip_anchor

logger = logging.getLogger("davinci_cleaner")

PARTIAL_SUFFIX = ".partial"


def _copy_then_replace(source: str, destination: str) -> None:
    """Cross-device fallback: copy beside the destination, rename into place."""
    directory = os.path.dirname(destination) or "."
    fd, temp_path = tempfile.mkstemp(
        prefix=f".{os.path.basename(destination)}.", suffix=PARTIAL_SUFFIX, dir=directory
    )
    os.close(fd)
    try:
        shutil.copy2(source, temp_path)
        os.replace(temp_path, destination)
    except BaseException:
        try:
            os.unlink(temp_path)
        except FileNotFoundError:
            pass
        raise
    try:
        os.unlink(source)
    except OSError as exc:
        logger.warning(
            "%s was copied to %s but could not be removed; it now exists in both places: %s",
            source,
            destination,
            exc,
        )
        raise


def move_file(source: str, destination: str) -> None:
    """Move a single file without ever overwriting an existing destination.

    Raises ``OSError`` when the move cannot be completed; the source is left
    in place in that case.
    """
    if os.path.lexists(destination):
        raise FileExistsError(errno.EEXIST, "Destination already exists", destination)
    try:
        os.rename(source, destination)
    except OSError as exc:
        if exc.errno != errno.EXDEV:
            raise
        logger.debug("Rename across devices failed for %s, copying instead", source)
        _copy_then_replace(source, destination)


def backup_key(asset: str, working_dir: str) -> str:
    """Path of ``asset`` under the backup root."""
    key = relative_key(asset, working_dir)
    if key is None:
        logger.warning(
            "%s is outside the working directory %s; backing it up under its full path",
            asset,
            working_dir,
        )
        key = strip_anchor(asset)
    return key


def backup_assets(
    unused: Iterable[ResolvedPath],
    working_dir: str,
    backup_root: str,
    manifest: Optional[BackupManifest] = None,
) -> BatchResult:
    """Move every unused asset under ``backup_root``, keeping its relative layout.

    Each item is independent: failures are recorded and the batch continues,
    and nothing already moved is rolled back.
    """
    result = BatchResult()
    if os.path.isdir(backup_root):
        logger.info("Adding to the existing backup at %s", backup_root)

    for asset in sorted(unused):
        destination = os.path.join(backup_root, backup_key(asset, working_dir))
        # The manifest must only ever name moves that can happen.
        if os.path.lexists(destination):
            logger.error("Failed to move %s -> %s: destination already exists", asset, destination)
            result.record(MoveOutcome(asset, destination, error="Destination already exists"))
            continue

        try:
            os.makedirs(os.path.dirname(destination), exist_ok=True)
        except OSError as exc:
            logger.error("Failed to create %s: %s", os.path.dirname(destination), exc)
            result.record(MoveOutcome(asset, destination, error=str(exc)))
            continue

        try:
            if manifest is not None:
                manifest.append(asset, destination)
            move_file(asset, destination)
        except OSError as exc:
            logger.error("Failed to move %s -> %s: %s", asset, destination, exc)
            result.record(MoveOutcome(asset, destination, error=str(exc)))
            continue

        logger.debug("Moved %s -> %s", asset, destination)
        result.record(MoveOutcome(asset, destination))
    return result


def delete_assets(unused: Iterable[ResolvedPath]) -> BatchResult:
    """Remove unused assets outright, without a backup."""
    result = BatchResult()
    for asset in sorted(unused):
        try:
            os.remove(asset)
        except OSError as exc:
            logger.error("Failed to delete %s: %s", asset, exc)
            result.record(MoveOutcome(asset, error=str(exc)))
            continue
        logger.debug("Deleted %s", asset)
        result.record(MoveOutcome(asset))
    return result


def undo_backup(
    backup_root: str,
    working_dir: str,
    manifest: Optional[BackupManifest] = None,
) -> UndoResult:
    """Move every file under ``backup_root`` back to where it came from.

    The backup root is only removed once every file has been restored; if any
    item fails it stays on disk so the undo can be retried.
    """
    result = UndoResult()
    if not os.path.isdir(backup_root):
        logger.info("No backup found at %s", backup_root)
        return result

    entries = manifest.load() if manifest is not None else {}
    skip = {os.path.normpath(manifest.path)} if manifest is not None else set()

    for backup_path in iter_files(backup_root):
        if os.path.normpath(backup_path) in skip:
            continue
        if backup_path.endswith(PARTIAL_SUFFIX):
            logger.warning("Ignoring leftover partial copy %s", backup_path)
            continue
        original = manifest.lookup(entries, backup_path) if manifest is not None else None
        if original is None:
            original = os.path.join(working_dir, relative_key(backup_path, backup_root) or "")

        try:
            os.makedirs(os.path.dirname(original), exist_ok=True)
        except OSError as exc:
            logger.error("Failed to create %s: %s", os.path.dirname(original), exc)

        try:
            move_file(backup_path, original)
        except OSError as exc:
            logger.error("Failed to restore %s -> %s: %s", backup_path, original, exc)
            result.failed.append(MoveOutcome(backup_path, original, error=str(exc)))
            continue
        logger.debug("Restored %s -> %s", backup_path, original)
        result.recovered.append(MoveOutcome(backup_path, original))

    if result.failed:
        logger.warning(
            "Keeping %s: %d file(s) could not be restored",
            backup_root,
            len(result.failed),
        )
        return result

    try:
        shutil.rmtree(backup_root)
        result.backup_root_removed = True
    except OSError as exc:
        logger.error("Failed to remove %s: %s", backup_root, exc)
    return result
