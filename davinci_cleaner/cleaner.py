"""High-level orchestration of scanning, cleanup and undo."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from .backup import backup_assets, delete_assets, undo_backup
from .config import CleanerConfig
from .extractor import ReferenceExtractor
from .manifest import BackupManifest
from .models import BatchResult, ScanReport, UndoResult
from .scanner import reconcile, scan_assets, scan_sources

logger = logging.getLogger("davinci_cleaner")

ConfirmGate = Callable[[ScanReport], bool]


def prepare_scan(config: CleanerConfig) -> ReferenceExtractor:
    """Build the extractor and validate both roots; raises ``ConfigurationError``."""
    extractor = ReferenceExtractor(config.reference_pattern)
    config.validate()
    return extractor


def run_scan(
    config: CleanerConfig,
    extractor: Optional[ReferenceExtractor] = None,
) -> ScanReport:
    """Scan sources and assets and work out which assets are unused.

    Configuration problems are raised before anything is read. Passing the
    ``extractor`` returned by :func:`prepare_scan` skips preparing it again.
    """
    if extractor is None:
        extractor = prepare_scan(config)
    logger.debug("Source: %s", config.source_root)
    logger.debug("Assets: %s", config.assets_root)

    start = time.perf_counter()
    source_scan = scan_sources(
        config.source_root,
        config.assets_root,
        config.url_prefix,
        extractor=extractor,
        extensions=config.source_extensions,
    )
    all_assets = scan_assets(config.assets_root, exclude=(config.backup_root,))
    unused = reconcile(all_assets, source_scan.used)
    logger.debug(
        "Scanned %d source files and %d assets in %.2fs",
        len(source_scan.files),
        len(all_assets),
        time.perf_counter() - start,
    )
    return ScanReport(
        used=source_scan.used,
        all_assets=all_assets,
        unused=unused,
        files=source_scan.files,
        failed_reads=source_scan.failed,
    )


def apply_cleanup(
    config: CleanerConfig,
    report: ScanReport,
    confirm: ConfirmGate,
) -> Optional[BatchResult]:
    """Back up (or, with ``force_delete``, delete) the unused assets.

    Nothing is touched unless ``confirm`` returns ``True``; ``None`` is returned
    when the user declines or there is nothing to clean.
    """
    if not report.unused:
        logger.info("No unused images found")
        return None
    if not confirm(report):
        logger.info("Leaving %d unused images in place", len(report.unused))
        return None

    if config.force_delete:
        result = delete_assets(report.unused)
        action = "Deleted"
    else:
        manifest = BackupManifest(config.manifest_path)
        result = backup_assets(report.unused, config.working_dir, config.backup_root, manifest)
        action = "Backed up"
    logger.info(
        "%s %d/%d unused images (%d failed)",
        action,
        len(result.succeeded),
        len(report.unused),
        len(result.failed),
    )
    return result


def run_undo(config: CleanerConfig) -> UndoResult:
    """Restore everything held in the backup root of ``config.working_dir``."""
    manifest = BackupManifest(config.manifest_path)
    result = undo_backup(config.backup_root, config.working_dir, manifest)
    if result.recovered or result.failed:
        logger.info(
            "Recovered %d images (%d failed)",
            len(result.recovered),
            len(result.failed),
        )
    return result
