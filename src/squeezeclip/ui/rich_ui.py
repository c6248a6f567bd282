"""
Rich-based status UI for squeezeclip.

Shows one progress bar for the whole batch, labelled with the current
file and step, and prints status messages above it.

Respects:
- NO_COLOR environment variable
- SQUEEZECLIP_SCRIPT_MODE environment variable
- sys.stdout.isatty() for automatic detection
"""

import os
import re
import sys
from typing import Optional

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from squeezeclip.i18n import _
from squeezeclip.pipeline import JobPipeline, JobState, StatusSnapshot
from squeezeclip.ui.legacy_ui import fmt_hms

_SPEED_RE = re.compile(r"speed=\s*([0-9.]+)x")


def _should_use_color() -> bool:
    """Check if color output should be used."""
    # Check NO_COLOR environment variable (https://no-color.org/)
    if os.getenv("NO_COLOR"):
        return False
    if os.getenv("SQUEEZECLIP_SCRIPT_MODE"):
        return False
    try:
        if not sys.stdout.isatty():
            return False
    except Exception:
        return False
    return True


def parse_speed(line: str) -> str:
    """Return the speed= field of an ffmpeg stats line as "1.5x", or ""."""
    m = _SPEED_RE.search(line)
    if not m:
        return ""
    return f"{float(m.group(1)):.1f}x"


class RichStatusUI:
    """Rich progress bar following a JobPipeline."""

    def __init__(self, progress_enabled: bool = True, console: Optional[Console] = None):
        use_color = _should_use_color()
        if console is None:
            console = Console(
                force_terminal=use_color if use_color else None,
                no_color=not use_color,
            )
        self.console = console
        self.enabled = progress_enabled and use_color

        self.progress: Optional[Progress] = None
        self.task_id: Optional[TaskID] = None
        self._last_message = ""

    def attach(self, pipeline: JobPipeline) -> None:
        """Follow the status updates of `pipeline`."""
        pipeline.add_listener(self.on_status)

    def _ensure_progress(self) -> None:
        if self.progress is not None or not self.enabled:
            return
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}[/bold blue]"),
            BarColumn(bar_width=40),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TextColumn("•"),
            TextColumn("[cyan]{task.fields[speed]}[/cyan]"),
            TextColumn("•"),
            TimeElapsedColumn(),
            console=self.console,
            transient=True,
        )
        self.task_id = self.progress.add_task("", total=100, speed="")
        self.progress.start()

    def on_status(self, st: StatusSnapshot) -> None:
        """Print status messages, keep the bar in step with the snapshot."""
        message = st.render() if (st.cancelled or st.override_message) else ""
        if message and message != self._last_message:
            style = "red" if st.cancelled else ""
            self.log(message, style=style)
        self._last_message = message

        if message:
            if st.cancelled or st.progress >= 100:
                self.stop()
            return

        self._ensure_progress()
        if self.progress is None or self.task_id is None:
            return
        desc = f"[{st.file_index}/{st.file_count}] {st.step} · {st.file_name}"
        fields = {"speed": parse_speed(st.ffmpeg_output)} if st.ffmpeg_output else {}
        self.progress.update(self.task_id, description=desc, completed=st.progress, **fields)

    def stop(self) -> None:
        """Remove the progress bar."""
        if self.progress is not None:
            self.progress.stop()
        self.progress = None
        self.task_id = None

    def log(self, msg: str, style: str = "") -> None:
        """Print a log message."""
        if style:
            self.console.print(msg, style=style)
        else:
            self.console.print(msg)

    def print_summary(self, pipeline: JobPipeline, total_time: float) -> None:
        """Print final summary."""
        self.stop()
        self.console.print()

        failed = 1 if pipeline.state == JobState.FAILED else 0
        done = len(pipeline.ctx.completed)
        remaining = pipeline.ctx.total_jobs - done - failed

        table = Table(title=_("Summary"), box=None, show_header=False)
        table.add_column("Metric", style="bold")
        table.add_column("Value", justify="right")

        table.add_row(f"✓ {_('Compressed')}", f"[green]{done}[/green]")
        table.add_row(f"✗ {_('Failed')}", f"[red]{failed}[/red]")
        table.add_row(f"⊘ {_('Not processed')}", f"[yellow]{max(0, remaining)}[/yellow]")
        table.add_row(f"⏱ {_('Total time')}", fmt_hms(total_time))

        self.console.print(table)
