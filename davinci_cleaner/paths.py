"""Utility helpers for path normalization and relative path handling."""

from __future__ import annotations

import logging
import os
from pathlib import PurePath
from typing import Iterator, Optional, Sequence

logger = logging.getLogger("davinci_cleaner")


def resolve_path(target: str, base: str) -> str:
    """Join ``target`` onto ``base``, folding ``.`` and ``..`` segments.

    Absolute targets are trusted: only repeated separators and ``.`` segments
    are collapsed. ``..`` never climbs above the root of ``base``. No
    filesystem access is performed and symlinks are not resolved.
    """
    target = os.fspath(target)
    target_path = PurePath(target)
    if target_path.root:
        return str(target_path)

    resolved = PurePath(base)
    for part in target_path.parts:
        if part == ".":
            continue
        if part == "..":
            resolved = resolved.parent
        else:
            resolved = resolved / part
    return str(resolved)


def relative_key(path: str, base: str) -> Optional[str]:
    """Return ``path`` relative to ``base`` or ``None`` when it lies outside."""
    try:
        return str(PurePath(path).relative_to(PurePath(base)))
    except ValueError:
        return None


def strip_anchor(path: str) -> str:
    """Drop the drive and root so an absolute path can be re-joined elsewhere."""
    pure = PurePath(path)
    parts = pure.parts[1:] if pure.anchor else pure.parts
    return str(PurePath(*parts)) if parts else ""


def display_path(path: str, working_dir: str) -> str:
    """Shorten ``path`` for display when it sits under the working directory."""
    return relative_key(path, working_dir) or path


def iter_files(root: str, exclude: Sequence[str] = ()) -> Iterator[str]:
    """Yield every regular file under ``root`` in a stable order.

    Symlinks and other non-regular entries are skipped, as are directories
    listed in ``exclude``. Entries that cannot be read are logged and skipped.
    """
    excluded = {_normalized(path) for path in exclude}

    def _on_error(err: OSError) -> None:
        logger.debug("Skipping unreadable entry %s: %s", err.filename, err.strerror or err)

    for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error):
        dirnames[:] = sorted(
            name
            for name in dirnames
            if _normalized(os.path.join(dirpath, name)) not in excluded
        )
        for name in sorted(filenames):
            path = os.path.join(dirpath, name)
            if os.path.islink(path) or not os.path.isfile(path):
                continue
            yield path


def _normalized(path: str) -> str:
    return os.path.normcase(os.path.normpath(path))
