"""Source and asset tree scanning plus reconciliation."""

from __future__ import annotations

import logging
import os
from pathlib import PurePath
from typing import AbstractSet, Iterable, Optional, Sequence, Set

from .config import SOURCE_EXTENSIONS
from .extractor import ReferenceExtractor
from .models import AssetReference, FileReferences, ResolvedPath, SourceScan
from .paths import iter_files, resolve_path

logger = logging.getLogger("davinci_cleaner")

WILDCARD = "*"


def _strip_slash(value: str) -> str:
    return value[1:] if value.startswith("/") else value


def has_source_extension(path: str, extensions: AbstractSet[str] = SOURCE_EXTENSIONS) -> bool:
    _, ext = os.path.splitext(path)
    return ext[1:] in extensions


def normalize_reference(
    reference: AssetReference,
    assets_root: str,
    url_prefix: Optional[str] = None,
) -> Optional[ResolvedPath]:
    """Map a raw reference onto the asset it points at.

    Returns ``None`` for wildcard references, which cannot be resolved
    statically.
    """
    image = _strip_slash(reference)
    if image.startswith(WILDCARD):
        logger.debug("[-] skipping wildcard reference %s", reference)
        return None

    if url_prefix:
        prefix = _strip_slash(url_prefix)
        if prefix and image.startswith(prefix):
            image = image[len(prefix):]
        logger.debug("[--] %s", image)

    image = _strip_slash(image)
    if image.startswith(WILDCARD):
        logger.debug("[-] skipping wildcard reference %s", reference)
        return None

    resolved = resolve_path(image, assets_root)
    logger.debug("[---] %s", resolved)
    return resolved


def _read_source(path: str) -> Optional[bytes]:
    try:
        with open(path, "rb") as handle:
            return handle.read()
    except OSError as exc:
        logger.warning("Failed to read %s: %s", path, exc)
        return None


def scan_sources(
    source_root: str,
    assets_root: str,
    url_prefix: Optional[str] = None,
    extractor: Optional[ReferenceExtractor] = None,
    extensions: AbstractSet[str] = SOURCE_EXTENSIONS,
) -> SourceScan:
    """Collect the set of assets referenced anywhere under ``source_root``."""
    extractor = extractor or ReferenceExtractor()
    scan = SourceScan()

    for path in iter_files(source_root):
        if not has_source_extension(path, extensions):
            continue
        data = _read_source(path)
        if data is None:
            scan.failed.append(path)
            continue

        references = extractor.extract(data)
        scan.files.append(FileReferences(path=path, references=references))
        logger.debug("%s: %d images", path, len(references))

        for reference in references:
            logger.debug("[-] %s", reference)
            resolved = normalize_reference(reference, assets_root, url_prefix)
            if resolved is not None:
                scan.used.add(resolved)
    return scan


def sample_reference(
    source_root: str,
    extractor: Optional[ReferenceExtractor] = None,
    extensions: AbstractSet[str] = SOURCE_EXTENSIONS,
) -> Optional[str]:
    """Return the first resolvable reference, leading slash removed, if any."""
    extractor = extractor or ReferenceExtractor()
    for path in iter_files(source_root):
        if not has_source_extension(path, extensions):
            continue
        data = _read_source(path)
        if data is None:
            continue
        for reference in extractor.extract(data):
            image = _strip_slash(reference)
            if not image.startswith(WILDCARD):
                return image
    return None


def scan_assets(assets_root: str, exclude: Sequence[str] = ()) -> Set[ResolvedPath]:
    """Return every regular file that physically exists under ``assets_root``.

    Paths are rendered the same way ``resolve_path`` renders references, so a
    root spelled with ``//`` or ``/./`` still matches the used set.
    """
    return {str(PurePath(path)) for path in iter_files(assets_root, exclude=exclude)}


def reconcile(
    all_assets: Iterable[ResolvedPath],
    used: AbstractSet[ResolvedPath],
) -> Set[ResolvedPath]:
    """Assets present on disk that no source file references."""
    return set(all_assets) - set(used)
