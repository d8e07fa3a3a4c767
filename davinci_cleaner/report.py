"""Human-readable rendering of scan and cleanup results."""

from __future__ import annotations

from collections import Counter
from typing import Optional

from filetype import guess
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.theme import Theme

from .models import BatchResult, ScanReport, UndoResult
from .paths import display_path

CLEANER_THEME = Theme(
    {
        "path": "blue",
        "count": "yellow",
        "asset": "magenta",
        "unused": "green",
        "error": "red",
        "rule": "yellow",
    }
)


def make_console(color: bool = True) -> Console:
    """Build the console used for output; colour support is detected by rich."""
    return Console(theme=CLEANER_THEME, no_color=not color, highlight=False)


def detect_image_format(path: str) -> Optional[str]:
    """Detect the image type from the file signature; returns a lowercase extension."""
    try:
        kind = guess(path)
    except OSError:
        return None
    if kind and kind.mime.startswith("image/"):
        ext = kind.extension.lower()
        if ext == "jpeg":
            return "jpg"
        return ext
    return None


class Reporter:
    """Render engine results onto an explicit rich console."""

    def __init__(
        self,
        console: Console,
        working_dir: str,
        verbose: bool = False,
    ) -> None:
        self.console = console
        self.working_dir = working_dir
        self.verbose = verbose

    def _short(self, path: str) -> str:
        return escape(display_path(path, self.working_dir))

    def scan(self, report: ScanReport) -> None:
        for entry in report.files:
            self.console.print(
                f"[path]{self._short(entry.path)}[/]: [count]{len(entry.references)}[/] images"
            )
        for path in report.failed_reads:
            self.console.print(f"[path]{self._short(path)}[/]: [error]unreadable[/]")

        if self.verbose:
            for path in sorted(report.used):
                self.console.print(f"\\[Used] [asset]{self._short(path)}[/]")

        self.console.print("[rule] -------------- [/]")
        formats: Counter = Counter()
        for path in sorted(report.unused):
            suffix = ""
            if self.verbose:
                kind = detect_image_format(path)
                formats[kind or "other"] += 1
                suffix = f" ({kind})" if kind else ""
            self.console.print(f"\\[Unused] [unused]{self._short(path)}[/]{suffix}")

        self.console.print()
        self.console.print(f"Used images: [count]{len(report.used)}[/]")
        self.console.print(f"Unused images: [count]{len(report.unused)}[/]")
        if self.verbose and formats:
            breakdown = ", ".join(f"{name}: {count}" for name, count in sorted(formats.items()))
            self.console.print(f"Unused by format: {breakdown}")

    def batch(self, result: BatchResult, action: str) -> None:
        for outcome in result.failed:
            target = f" -> {self._short(outcome.destination)}" if outcome.destination else ""
            self.console.print(
                f"[asset]{self._short(outcome.source)}{target}[/]: [error]{escape(outcome.error or '')}[/]"
            )
        table = Table(title=f"{action} summary")
        table.add_column("Outcome", style="path")
        table.add_column("Files", style="count", justify="right")
        table.add_row("Succeeded", str(len(result.succeeded)))
        table.add_row("Failed", str(len(result.failed)))
        self.console.print(table)

    def undo(self, result: UndoResult, backup_root: str) -> None:
        for outcome in result.recovered:
            self.console.print(f"[asset]{self._short(outcome.destination or outcome.source)}[/]")
        for outcome in result.failed:
            self.console.print(
                f"[asset]{self._short(outcome.source)} -> {self._short(outcome.destination or '')}[/]: "
                f"[error]{escape(outcome.error or '')}[/]"
            )
        if result.failed:
            self.console.print(
                f"Backup kept at [path]{self._short(backup_root)}[/]; run undo again once the "
                "failures are resolved."
            )
        self.console.print(f"Recovered Images: [count]{len(result.recovered)}[/]")
