"""Configuration objects and constants for the cleaner."""

from __future__ import annotations

import os
import stat
from dataclasses import dataclass
from typing import FrozenSet, Optional

from .paths import resolve_path

BACKUP_DIR_NAME = ".davinci-cleaner-backup"
MANIFEST_NAME = ".manifest.jsonl"
URL_PREFIX_ENV = "DAVINCI_CLEANER_URL_PREFIX"

SOURCE_EXTENSIONS = frozenset({"html", "js", "css", "xml"})
IMAGE_EXTENSIONS = ("png", "jpg", "jpeg", "webp")
DEFAULT_REFERENCE_PATTERN = r"(/[^/]+)*/[^/]+\.(" + "|".join(IMAGE_EXTENSIONS) + r")"


class CleanerError(Exception):
    """Base class for errors raised by the cleaner."""


class ConfigurationError(CleanerError):
    """Raised before any file is touched when the run cannot be configured."""


@dataclass
class CleanerConfig:
    """Top-level settings that control scanning and cleanup behaviour."""

    working_dir: str
    source_root: str = ""
    assets_root: str = ""
    url_prefix: Optional[str] = None
    reference_pattern: str = DEFAULT_REFERENCE_PATTERN
    source_extensions: FrozenSet[str] = SOURCE_EXTENSIONS
    verbose: bool = False
    force_delete: bool = False

    @classmethod
    def from_inputs(
        cls,
        working_dir: str,
        source: str,
        assets: str,
        url_prefix: Optional[str] = None,
        **options,
    ) -> "CleanerConfig":
        """Resolve user supplied folders against the working directory."""
        working_dir = os.path.abspath(working_dir)
        return cls(
            working_dir=working_dir,
            source_root=resolve_path(source, working_dir),
            assets_root=resolve_path(assets, working_dir),
            url_prefix=url_prefix or None,
            **options,
        )

    @property
    def backup_root(self) -> str:
        return resolve_path(BACKUP_DIR_NAME, self.working_dir)

    @property
    def manifest_path(self) -> str:
        return os.path.join(self.backup_root, MANIFEST_NAME)

    def validate(self) -> None:
        """Check that both roots are accessible directories."""
        for label, root in (("Source", self.source_root), ("Assets", self.assets_root)):
            _require_directory(label, root)


def _require_directory(label: str, path: str) -> None:
    if not path:
        raise ConfigurationError(f"{label} folder is required")
    try:
        stat_result = os.stat(path)
    except FileNotFoundError:
        raise ConfigurationError(f"{label} directory doesn't exist: {path}") from None
    except PermissionError:
        raise ConfigurationError(f"Cannot access {label.lower()} directory: {path}") from None
    except OSError as exc:
        raise ConfigurationError(f"{label} directory is not usable: {path} ({exc})") from exc
    if not stat.S_ISDIR(stat_result.st_mode):
        raise ConfigurationError(f"{label} path is not a folder: {path}")
    if not os.access(path, os.R_OK | os.X_OK):
        raise ConfigurationError(f"Cannot access {label.lower()} directory: {path}")
