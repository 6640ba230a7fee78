"""
Rich progress bar for offline folder downloads.

Browsing is one request per folder and playback reports through events,
so the download run is the only place with something to show.

Usage:
    from drive_player.core.progress import SyncProgressBar

    with SyncProgressBar(total=len(jobs), already_offline=3) as bar:
        for outcome in results:
            bar.advance(outcome)
"""

from rich import get_console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TaskID, TextColumn
from rich.theme import Theme


SYNC_THEME = Theme({
    "bar.back": "grey23",
    "bar.complete": "rgb(40,120,215)",
    "bar.finished": "rgb(114,156,31)",
    "bar.pulse": "rgb(40,120,215)",
    "progress.percentage": "white",
})

# Outcome name -> (rich style, glyph) in display order
OUTCOME_MARKS = {
    "downloaded": ("green", "✓"),
    "failed": ("red", "✗"),
    "cancelled": ("yellow", "⊘"),
}


class SyncProgressBar:
    """
    One bar per download_folder() run.

        Album A         ✓ 12  ✗ 1  ● 40   ━━━━━━━━━━━━━━━━━  13/20

    The ● count is files that were already offline when the run started
    and is only shown when non-zero. advance() is meant to be called from
    the thread collecting worker results, not from the workers.
    """

    def __init__(self, total: int, description: str = "Downloading", already_offline: int = 0) -> None:
        self.total = total
        self.description = description
        self.already_offline = already_offline
        self.counts = dict.fromkeys(OUTCOME_MARKS, 0)

        self.console = get_console()
        self.progress = Progress(
            TextColumn("[white]{task.description:<15.15}"),
            TextColumn("{task.fields[status]}"),
            BarColumn(bar_width=40, finished_style="green"),
            MofNCompleteColumn(),
            console=self.console,
            refresh_per_second=10,
        )
        self._task: TaskID | None = None

    @property
    def completed(self) -> int:
        return sum(self.counts.values())

    def __enter__(self) -> "SyncProgressBar":
        self.console.push_theme(SYNC_THEME)
        self.progress.start()
        self._task = self.progress.add_task(self.description, total=self.total, status=self.status_text())
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.progress.stop()
        self.console.pop_theme()
        self._task = None

    def status_text(self) -> str:
        parts = [
            f"[{style}]{glyph} {self.counts[outcome]}[/{style}]"
            for outcome, (style, glyph) in OUTCOME_MARKS.items()
            if outcome != "cancelled" or self.counts[outcome]
        ]
        if self.already_offline:
            parts.append(f"[dim]● {self.already_offline}[/dim]")
        return "  ".join(parts)

    def advance(self, outcome: str) -> None:
        """
        Count one finished job.

        Args:
            outcome: "downloaded", "failed" or "cancelled".
        """
        self.counts[outcome] += 1
        if self._task is not None:
            self.progress.update(self._task, completed=self.completed, status=self.status_text())
