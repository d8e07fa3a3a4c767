"""Line-based extraction of image references from source files."""

from __future__ import annotations

import logging
import re
from typing import List, Pattern

from .config import DEFAULT_REFERENCE_PATTERN, ConfigurationError
from .models import AssetReference

logger = logging.getLogger("davinci_cleaner")

BINARY_MARKER = b"\x00"


def build_matcher(pattern: str) -> Pattern[bytes]:
    """Compile a reference pattern, reporting malformed ones as configuration errors."""
    try:
        return re.compile(pattern.encode("utf-8"))
    except re.error as exc:
        raise ConfigurationError(f"Error building regex {pattern!r}: {exc}") from exc


class ReferenceExtractor:
    """Report the first image reference on each line of a text file."""

    def __init__(self, pattern: str = DEFAULT_REFERENCE_PATTERN) -> None:
        self.pattern = pattern
        self._matcher = build_matcher(pattern)

    def extract(self, data: bytes) -> List[AssetReference]:
        """Return raw matched references in file order.

        Scanning stops at the first line containing a NUL byte, which marks the
        file as binary; references from earlier lines are kept.
        """
        references: List[AssetReference] = []
        for line in data.split(b"\n"):
            # Only lines from the NUL onward are dropped; earlier references
            # still count as used even though the file as a whole looks binary.
            if BINARY_MARKER in line:
                logger.debug("Binary content detected, stopping after %d references", len(references))
                break
            match = self._matcher.search(line)
            if match:
                references.append(match.group(0).decode("utf-8", errors="replace"))
        return references
